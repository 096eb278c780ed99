"""Pydantic models for interactive evidence-gathering sessions."""

from datetime import datetime, timezone
from enum import Enum
from typing import List, Literal, Optional

from pydantic import BaseModel, Field

from curio.analysis.models import AnalysisRecord


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class NeedType(str, Enum):
    """Kind of evidence an information need asks for."""

    PHOTO_DETAIL = "photo_detail"
    PHOTO_MARKS = "photo_marks"
    PHOTO_UNDERSIDE = "photo_underside"
    PHOTO_BACK = "photo_back"
    PHOTO_DAMAGE = "photo_damage"
    PHOTO_SCALE = "photo_scale"
    PHOTO_CONTEXT = "photo_context"
    QUESTION_PROVENANCE = "question_provenance"
    QUESTION_PURCHASE = "question_purchase"
    QUESTION_CONDITION = "question_condition"
    QUESTION_COMPARISON = "question_comparison"
    QUESTION_MARKS = "question_marks"
    MEASUREMENT = "measurement"
    MATERIAL_TEST = "material_test"
    DOCUMENTATION = "documentation"


NeedPriority = Literal["critical", "high", "medium", "low"]

PRIORITY_RANK = {"critical": 0, "high": 1, "medium": 2, "low": 3}

ResponseType = Literal["photo", "text", "measurement", "document"]


class SessionStatus(str, Enum):
    """Lifecycle of an interactive session."""

    GATHERING_INFO = "gathering_info"
    PROCESSING = "processing"
    COMPLETE = "complete"
    ABANDONED = "abandoned"


class InformationNeed(BaseModel):
    """A specific request for evidence expected to reduce uncertainty."""

    id: str
    type: NeedType
    priority: NeedPriority
    question: str
    explanation: str
    expected_confidence_gain: float = Field(..., ge=0.0, le=1.0)
    photo_guidance: Optional[str] = None
    examples: Optional[List[str]] = None


class UserResponse(BaseModel):
    """Evidence supplied by the user for one information need."""

    need_id: str
    type: ResponseType
    content: str  # URL or data URL for photos, text for answers, JSON for measurements
    provided_at: datetime = Field(default_factory=utc_now)


class ConversationMessage(BaseModel):
    """One turn in the session conversation."""

    role: Literal["assistant", "user", "system"]
    content: str
    timestamp: datetime = Field(default_factory=utc_now)
    related_need_id: Optional[str] = None


class ComponentScores(BaseModel):
    identification: float
    dating: float
    authentication: float
    valuation: float


class ConfidenceProgressEntry(BaseModel):
    """Point in the session's confidence time series."""

    timestamp: datetime = Field(default_factory=utc_now)
    overall_confidence: float
    component_scores: ComponentScores
    reason: str


class InteractiveSession(BaseModel):
    """Conversation that gathers evidence to refine one analysis.

    Lists are append-only and the session is single-writer: callers must
    serialize concurrent responses to the same session.
    """

    id: str
    analysis_id: str
    current_analysis: AnalysisRecord
    information_needs: List[InformationNeed]
    collected_responses: List[UserResponse] = Field(default_factory=list)
    conversation_history: List[ConversationMessage] = Field(default_factory=list)
    confidence_progress: List[ConfidenceProgressEntry] = Field(default_factory=list)
    status: SessionStatus = SessionStatus.GATHERING_INFO
    created_at: datetime = Field(default_factory=utc_now)
    updated_at: datetime = Field(default_factory=utc_now)

    @property
    def answered_need_ids(self) -> set:
        return {response.need_id for response in self.collected_responses}

    @property
    def remaining_needs(self) -> List[InformationNeed]:
        answered = self.answered_need_ids
        return [need for need in self.information_needs if need.id not in answered]

    @property
    def is_terminal(self) -> bool:
        return self.status in (SessionStatus.COMPLETE, SessionStatus.ABANDONED)


class SessionView(BaseModel):
    """Read-only snapshot of a session for callers."""

    session_id: str
    status: SessionStatus
    current_confidence: float
    remaining_needs: List[InformationNeed]
    next_need: Optional[InformationNeed] = None
    messages: List[ConversationMessage]
    confidence_progress: List[ConfidenceProgressEntry]
    ready_for_reanalysis: bool
