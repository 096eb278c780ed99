"""Iris, the appraisal assistant: scripted turns and free-form replies."""

import asyncio
import logging
from typing import Awaitable, Callable, Literal, Optional

from curio.analysis.models import AnalysisRecord
from curio.config import get_settings
from curio.interactive.models import (
    ConversationMessage,
    InformationNeed,
    InteractiveSession,
)
from curio.utils.helpers import format_percentage, format_price

logger = logging.getLogger(__name__)

TextCall = Callable[[str, Optional[str]], Awaitable[str]]

ASSISTANT_NAME = "Iris"

ASSISTANT_GREETING = (
    f"Hello! I'm {ASSISTANT_NAME}, your appraisal assistant. I'm here to help you "
    "learn the story behind your antique or vintage item. Let's work together to "
    "reach the highest possible confidence in our analysis."
)

HISTORY_WINDOW = 6
REPLY_TIMEOUT_SECONDS = 30.0

ACKNOWLEDGMENTS = {
    "photo": [
        "Thank you for that photo!",
        "Great photo - this is very helpful.",
        "Excellent! This gives me more to work with.",
        "Perfect, I can see more details now.",
    ],
    "text": [
        "Thank you for that information.",
        "This context is very helpful.",
        "I appreciate you sharing that detail.",
        "Good to know - this helps with the analysis.",
    ],
    "measurement": [
        "Thank you for the measurements.",
        "These dimensions are helpful.",
        "Perfect - the size helps confirm the identification.",
    ],
    "document": [
        "Thank you for sharing that documentation.",
        "This documentation is very valuable.",
        "Excellent - documented provenance is always helpful.",
    ],
}


def confidence_framing(confidence: float) -> str:
    """Describe the preliminary analysis in terms of its confidence."""
    pct = format_percentage(confidence)
    if confidence >= 0.9:
        return (
            f"I've completed a preliminary analysis of your item with high confidence ({pct}). "
            "The identification appears strong, but let me see if we can confirm a few details."
        )
    if confidence >= 0.75:
        return (
            f"I've completed a preliminary analysis with good confidence ({pct}). I believe "
            "I've identified your item correctly, but some additional information could help "
            "us be more certain."
        )
    if confidence >= 0.6:
        return (
            f"I've completed a preliminary analysis, though my confidence is moderate ({pct}). "
            "With a few more details from you, we can significantly improve this assessment."
        )
    return (
        f"I've completed a preliminary analysis, but my confidence is lower than I'd like ({pct}). "
        "This item may be unusual or need more information for proper identification."
    )


def acknowledgment(response_type: str, response_count: int) -> str:
    """Pick an acknowledgment for a response, rotating by response count."""
    options = ACKNOWLEDGMENTS.get(response_type, ACKNOWLEDGMENTS["text"])
    return options[(response_count - 1) % len(options)]


def _need_prompt(need: InformationNeed) -> str:
    text = f"**{need.question}**\n\n_{need.explanation}_"
    if need.photo_guidance:
        text += f"\n\n**Photo tip:** {need.photo_guidance}"
    if need.examples:
        text += "\n\nFor example: " + "; ".join(need.examples)
    return text


def opening_message(
    analysis: AnalysisRecord, first_need: Optional[InformationNeed]
) -> ConversationMessage:
    """First assistant turn: introduction, framing and the first request."""
    message = f"{ASSISTANT_GREETING}\n\n{confidence_framing(analysis.confidence)}\n\n"
    if first_need:
        message += "To help improve our analysis, I have a question for you:\n\n"
        message += _need_prompt(first_need)
    else:
        message += (
            "Your item has been analyzed with high confidence. Would you like any "
            "additional details or have questions about the assessment?"
        )

    return ConversationMessage(
        role="assistant",
        content=message,
        related_need_id=first_need.id if first_need else None,
    )


def follow_up_message(
    response_type: str,
    response_count: int,
    next_need: Optional[InformationNeed],
) -> ConversationMessage:
    """Acknowledge a response and surface the next need, or wrap up."""
    message = acknowledgment(response_type, response_count)
    if next_need:
        message += "\n\nI have another question that would help:\n\n" + _need_prompt(next_need)
    else:
        message += (
            "\n\nThank you for providing all the requested information! I'll now re-analyze "
            "your item with this additional context. This should give us a more confident "
            "and accurate assessment."
        )

    return ConversationMessage(
        role="assistant",
        content=message,
        related_need_id=next_need.id if next_need else None,
    )


def closing_message(
    previous: AnalysisRecord, updated: AnalysisRecord, input_count: int
) -> ConversationMessage:
    """Summarize a reanalysis, comparing old and new confidence."""
    improvement = updated.confidence - previous.confidence
    new_pct = format_percentage(updated.confidence)

    if improvement > 0.1:
        message = (
            "Excellent news! With the additional information you provided, our confidence "
            f"has improved significantly from {format_percentage(previous.confidence)} to {new_pct}."
        )
    elif improvement > 0:
        message = (
            "Good news! The additional information has helped confirm our analysis, "
            f"with confidence now at {new_pct}."
        )
    else:
        message = (
            f"I've completed the reanalysis with the {input_count} new inputs. "
            f"The confidence remains at {new_pct}."
        )

    message += f"\n\n**Updated Assessment:**\n- **Item:** {updated.name}\n- **Confidence:** {new_pct}"
    if updated.maker:
        message += f"\n- **Maker:** {updated.maker}"
    if updated.era:
        message += f"\n- **Era:** {updated.era}"
    message += f"\n- **Value:** {format_price(updated.value_min)} - {format_price(updated.value_max)}"

    if updated.expert_referral_recommended:
        message += (
            "\n\n**Recommendation:** For this item, I recommend consulting a human expert "
            f"for full authentication. {updated.expert_referral_reason or ''}"
        ).rstrip()

    return ConversationMessage(role="assistant", content=message)


def _item_context(analysis: AnalysisRecord) -> str:
    lines = [
        "ITEM ANALYSIS CONTEXT:",
        f"- Identified as: {analysis.name}",
        f"- Maker/Brand: {analysis.maker or 'Unknown'}",
        f"- Era/Period: {analysis.era or 'Unknown'}",
        f"- Current Confidence: {format_percentage(analysis.confidence)}",
        f"- Domain: {analysis.domain_category.value}",
        f"- Value Range: {format_price(analysis.value_min)} - {format_price(analysis.value_max)}",
        f"- Authenticity Risk: {analysis.authenticity_risk.value}",
        f"- Description: {analysis.render_description() or 'No description available'}",
    ]
    if analysis.historical_context:
        lines.append(f"- Historical Context: {analysis.historical_context}")
    if analysis.evidence_for:
        lines.append(f"- Evidence For (authentic): {'; '.join(analysis.evidence_for[:3])}")
    if analysis.evidence_against:
        lines.append(f"- Evidence Against: {'; '.join(analysis.evidence_against[:3])}")
    return "\n".join(lines)


def build_reply_prompt(
    session: InteractiveSession, message: str, message_type: Literal["photo", "text"]
) -> str:
    """Build the conversational prompt for a free-form reply."""
    remaining = session.remaining_needs[:2]
    optional_questions = ""
    if remaining:
        questions = "\n".join(f"- {need.question}" for need in remaining)
        optional_questions = (
            "\nOPTIONAL - If natural to the conversation, you may ask about:\n"
            f"{questions}\n"
            "But ONLY if it flows naturally. Focus on answering the user's question first.\n"
        )

    history = "\n".join(
        f"{turn.role.upper()}: {turn.content}"
        for turn in session.conversation_history[-HISTORY_WINDOW:]
    )
    if message_type == "photo":
        user_turn = f"[User provided a photo] {message or 'Here is an additional photo of the item.'}"
    else:
        user_turn = message

    return f"""You are {ASSISTANT_NAME}, an appraisal assistant and expert in antiques, vintage items, and collectibles authentication. You are knowledgeable but approachable, and honest about uncertainty.

{_item_context(session.current_analysis)}

YOUR ROLE:
1. Answer the user's questions about their item based on the analysis
2. Explain authentication findings in plain language
3. Discuss whether the item might be authentic, a reproduction, or uncertain
4. Share relevant historical context when helpful
{optional_questions}
RULES:
- Actually answer the user's question
- If you're uncertain, explain why and what additional info would help
- Keep responses conversational and concise (2-4 sentences typically)
- Never make up specific facts not in the analysis

RECENT CONVERSATION:
{history}

USER: {user_turn}
ASSISTANT:"""


async def generate_ai_reply(
    session: InteractiveSession,
    message: str,
    message_type: Literal["photo", "text"],
    text_call: TextCall,
    model: Optional[str] = None,
) -> ConversationMessage:
    """
    Generate a free-form assistant reply with an LLM.

    Falls back to a scripted reply on any failure; the session itself is
    not modified.

    Args:
        session: Session supplying item context and recent history
        message: The user's message
        message_type: Whether the user sent a photo or text
        text_call: Async ``(prompt, model) -> text``
        model: Model override; defaults to the configured assistant model

    Returns:
        Assistant message
    """
    prompt = build_reply_prompt(session, message, message_type)
    model = model or get_settings().assistant_model

    try:
        reply = await asyncio.wait_for(text_call(prompt, model), timeout=REPLY_TIMEOUT_SECONDS)
    except Exception as e:
        logger.error("Error generating assistant reply: %s", e)
        if message_type == "photo":
            reply = (
                "Thank you for the photo! Let me take a look. Is there something specific "
                "about this image you'd like me to address?"
            )
        else:
            reply = (
                "I appreciate you sharing that. Could you tell me more about what you'd "
                "like to know about your item?"
            )
        return ConversationMessage(role="assistant", content=reply)

    if not reply or not reply.strip():
        reply = "I'm having trouble processing that. Could you rephrase your question?"

    return ConversationMessage(role="assistant", content=reply.strip())
