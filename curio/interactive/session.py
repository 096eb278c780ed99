"""Interactive session state machine.

A session moves ``gathering_info -> processing -> complete``. Either
non-terminal state may move to ``abandoned`` when the user leaves. Invalid
transitions, unknown need ids and writes to finished sessions are logged
and ignored so that client retries and stale references stay harmless.
"""

import logging
import uuid
from typing import Any, Dict, List, Optional, Union

from curio.analysis.models import (
    AnalysisRecord,
    AuthenticityRisk,
    ConsensusConfig,
    ConsensusOutcome,
)
from curio.analysis.triggers import resolve_consensus_config
from curio.interactive import assistant
from curio.interactive.models import (
    ComponentScores,
    ConfidenceProgressEntry,
    ConversationMessage,
    InteractiveSession,
    ResponseType,
    SessionStatus,
    SessionView,
    UserResponse,
    utc_now,
)
from curio.interactive.needs import detect_information_needs
from curio.llm.models import CapturedImage, normalize_images

logger = logging.getLogger(__name__)

ALLOWED_TRANSITIONS = {
    SessionStatus.GATHERING_INFO: {SessionStatus.PROCESSING, SessionStatus.ABANDONED},
    SessionStatus.PROCESSING: {SessionStatus.COMPLETE, SessionStatus.ABANDONED},
    SessionStatus.COMPLETE: set(),
    SessionStatus.ABANDONED: set(),
}

MIN_RESPONSES_FOR_REANALYSIS = 2

AUTHENTICATION_PROXY = {
    AuthenticityRisk.LOW: 0.9,
    AuthenticityRisk.MEDIUM: 0.7,
}
DEFAULT_AUTHENTICATION_PROXY = 0.5

RESPONSE_IMAGE_ROLES = {
    "marks-photo": "marks",
    "underside-photo": "underside",
    "condition-photo": "damage",
    "scale-photo": "context",
}


def _transition(session: InteractiveSession, target: SessionStatus) -> bool:
    """Move the session to ``target`` if allowed. Returns whether it moved."""
    if target not in ALLOWED_TRANSITIONS[session.status]:
        logger.warning(
            "Ignoring invalid session transition %s -> %s (session %s)",
            session.status.value,
            target.value,
            session.id,
        )
        return False

    logger.debug("Session %s: %s -> %s", session.id, session.status.value, target.value)
    session.status = target
    session.updated_at = utc_now()
    return True


def component_scores(analysis: AnalysisRecord) -> ComponentScores:
    """Break an analysis into the per-aspect confidences tracked over time."""
    return ComponentScores(
        identification=analysis.confidence,
        dating=analysis.identification_confidence or analysis.confidence,
        authentication=AUTHENTICATION_PROXY.get(
            analysis.authenticity_risk, DEFAULT_AUTHENTICATION_PROXY
        ),
        valuation=analysis.maker_confidence or analysis.confidence,
    )


def _progress_entry(analysis: AnalysisRecord, reason: str) -> ConfidenceProgressEntry:
    return ConfidenceProgressEntry(
        overall_confidence=analysis.confidence,
        component_scores=component_scores(analysis),
        reason=reason,
    )


def create_interactive_session(
    analysis_id: str, analysis: AnalysisRecord
) -> InteractiveSession:
    """
    Start a session for an analysed item.

    Args:
        analysis_id: Identifier of the analysis being refined
        analysis: The analysis to refine

    Returns:
        New session with its opening assistant message. The session starts
        ``complete`` when no need above low priority exists.
    """
    needs = detect_information_needs(analysis)
    actionable = any(need.priority != "low" for need in needs)

    session = InteractiveSession(
        id=f"session-{uuid.uuid4().hex[:12]}",
        analysis_id=analysis_id,
        current_analysis=analysis,
        information_needs=needs,
        confidence_progress=[_progress_entry(analysis, "Initial AI analysis")],
        status=SessionStatus.GATHERING_INFO if actionable else SessionStatus.COMPLETE,
    )
    session.conversation_history.append(
        assistant.opening_message(analysis, needs[0] if actionable else None)
    )

    logger.info(
        "Created session %s for analysis %s: %d needs, status %s",
        session.id,
        analysis_id,
        len(needs),
        session.status.value,
    )
    return session


def _critical_needs_answered(session: InteractiveSession) -> bool:
    answered = session.answered_need_ids
    return all(
        need.id in answered for need in session.information_needs if need.priority == "critical"
    )


def add_user_response(
    session: InteractiveSession,
    need_id: str,
    response_type: ResponseType,
    content: str,
) -> InteractiveSession:
    """
    Record the user's answer to an information need.

    Appends the response and the assistant's follow-up turn, then moves the
    session to ``processing`` once every critical need is answered and at
    least two responses exist.

    Args:
        session: Session to update in place
        need_id: Id of the need being answered
        response_type: photo, text, measurement or document
        content: Data URL, text answer or JSON measurements

    Returns:
        The same session
    """
    if session.is_terminal:
        logger.warning(
            "Ignoring response to %s session %s", session.status.value, session.id
        )
        return session

    if all(need.id != need_id for need in session.information_needs):
        logger.warning("Ignoring response for unknown need %r (session %s)", need_id, session.id)
        return session

    session.collected_responses.append(
        UserResponse(need_id=need_id, type=response_type, content=content)
    )
    session.conversation_history.append(
        ConversationMessage(
            role="user",
            content="[Photo provided]" if response_type == "photo" else content,
            related_need_id=need_id,
        )
    )

    remaining = session.remaining_needs
    session.conversation_history.append(
        assistant.follow_up_message(
            response_type,
            len(session.collected_responses),
            remaining[0] if remaining else None,
        )
    )

    if (
        session.status == SessionStatus.GATHERING_INFO
        and _critical_needs_answered(session)
        and len(session.collected_responses) >= MIN_RESPONSES_FOR_REANALYSIS
    ):
        _transition(session, SessionStatus.PROCESSING)

    session.updated_at = utc_now()
    return session


def update_with_reanalysis(
    session: InteractiveSession, new_analysis: AnalysisRecord
) -> InteractiveSession:
    """
    Apply a reanalysis result and complete the session.

    Args:
        session: Session to update in place
        new_analysis: Result of reanalysing with the collected evidence

    Returns:
        The same session
    """
    if session.is_terminal:
        logger.warning(
            "Ignoring reanalysis for %s session %s", session.status.value, session.id
        )
        return session

    if session.status == SessionStatus.GATHERING_INFO:
        _transition(session, SessionStatus.PROCESSING)

    previous = session.current_analysis
    input_count = len(session.collected_responses)

    session.current_analysis = new_analysis
    session.confidence_progress.append(
        _progress_entry(new_analysis, f"Reanalysis with {input_count} additional inputs")
    )
    session.conversation_history.append(
        assistant.closing_message(previous, new_analysis, input_count)
    )

    logger.info(
        "Session %s reanalysed: confidence %.0f%% -> %.0f%%",
        session.id,
        previous.confidence * 100,
        new_analysis.confidence * 100,
    )
    _transition(session, SessionStatus.COMPLETE)
    return session


def abandon_session(session: InteractiveSession) -> InteractiveSession:
    """Mark the session abandoned at the user's request."""
    if _transition(session, SessionStatus.ABANDONED):
        logger.info("Session %s abandoned", session.id)
    return session


def get_session_view(session: InteractiveSession) -> SessionView:
    """Read-only snapshot of the session's needs, messages and progress."""
    remaining = session.remaining_needs
    return SessionView(
        session_id=session.id,
        status=session.status,
        current_confidence=session.current_analysis.confidence,
        remaining_needs=[need.model_copy() for need in remaining],
        next_need=remaining[0].model_copy() if remaining else None,
        messages=[message.model_copy() for message in session.conversation_history],
        confidence_progress=[entry.model_copy() for entry in session.confidence_progress],
        ready_for_reanalysis=session.status == SessionStatus.PROCESSING,
    )


def response_images(session: InteractiveSession) -> List[CapturedImage]:
    """Photos the user supplied during the session, as analysis images."""
    photos = [r for r in session.collected_responses if r.type == "photo"]
    return [
        CapturedImage(
            id=f"interactive-{i}",
            data_url=response.content,
            role=RESPONSE_IMAGE_ROLES.get(response.need_id, "detail"),
            label=f"Interactive Photo {i + 1}",
        )
        for i, response in enumerate(photos)
    ]


async def reanalyze_session(
    session: InteractiveSession,
    analyzer,
    images,
    asking_price: Optional[float] = None,
    config: Optional[Union[ConsensusConfig, Dict[str, Any]]] = None,
) -> Optional[ConsensusOutcome]:
    """
    Re-run consensus analysis with the evidence gathered in the session.

    Always forces a multi-run with reasoning synthesis enabled, on top of
    the caller's policy. On failure the session keeps its current analysis
    and stays in ``processing`` so the caller can retry.

    Args:
        session: Session to reanalyse
        analyzer: ConsensusAnalyzer to run
        images: Original item images (data URL or list of CapturedImage)
        asking_price: Seller's asking price, if known
        config: ConsensusConfig or dict of overrides on the defaults

    Returns:
        The consensus outcome, or None if the session was not reanalysed

    Raises:
        ConsensusConfigError: If the configuration is invalid
    """
    if session.is_terminal:
        logger.warning(
            "Ignoring reanalysis request for %s session %s", session.status.value, session.id
        )
        return None

    config = resolve_consensus_config(config).model_copy(update={"use_reasoning_model": True})

    if session.status == SessionStatus.GATHERING_INFO:
        _transition(session, SessionStatus.PROCESSING)

    all_images = normalize_images(images) + response_images(session)
    logger.info(
        "Reanalysing session %s with %d additional inputs",
        session.id,
        len(session.collected_responses),
    )

    try:
        outcome = await analyzer.analyze_with_consensus(
            all_images,
            asking_price=asking_price,
            config=config,
            force_multi_run=True,
        )
    except Exception as e:
        logger.error("Reanalysis failed for session %s: %s", session.id, e)
        session.conversation_history.append(
            ConversationMessage(
                role="assistant",
                content=(
                    "I wasn't able to complete the reanalysis just now. Your answers are "
                    "saved, so we can try again in a moment."
                ),
            )
        )
        session.updated_at = utc_now()
        return None

    update_with_reanalysis(session, outcome.final_result)
    return outcome
