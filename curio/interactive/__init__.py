"""Interactive evidence gathering to refine an analysis."""

from curio.interactive.models import (
    ComponentScores,
    ConfidenceProgressEntry,
    ConversationMessage,
    InformationNeed,
    InteractiveSession,
    NeedType,
    SessionStatus,
    SessionView,
    UserResponse,
)
from curio.interactive.needs import (
    DEFAULT_NEED_WEIGHTS,
    NeedWeights,
    detect_information_needs,
    get_quick_questions,
)
from curio.interactive.session import (
    abandon_session,
    add_user_response,
    create_interactive_session,
    get_session_view,
    reanalyze_session,
    update_with_reanalysis,
)

__all__ = [
    "ComponentScores",
    "ConfidenceProgressEntry",
    "ConversationMessage",
    "InformationNeed",
    "InteractiveSession",
    "NeedType",
    "SessionStatus",
    "SessionView",
    "UserResponse",
    "DEFAULT_NEED_WEIGHTS",
    "NeedWeights",
    "detect_information_needs",
    "get_quick_questions",
    "abandon_session",
    "add_user_response",
    "create_interactive_session",
    "get_session_view",
    "reanalyze_session",
    "update_with_reanalysis",
]
