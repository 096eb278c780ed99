"""Tests for the assistant's scripted turns and free-form replies."""

import asyncio

import pytest

from curio.interactive.assistant import (
    ACKNOWLEDGMENTS,
    acknowledgment,
    build_reply_prompt,
    confidence_framing,
    generate_ai_reply,
)
from curio.interactive.session import create_interactive_session


@pytest.mark.parametrize(
    "confidence,phrase",
    [
        (0.95, "high confidence (95%)"),
        (0.8, "good confidence (80%)"),
        (0.6, "moderate (60%)"),
        (0.4, "lower than I'd like (40%)"),
    ],
)
def test_confidence_framing(confidence, phrase):
    assert phrase in confidence_framing(confidence)


def test_acknowledgments_rotate():
    photos = ACKNOWLEDGMENTS["photo"]

    assert acknowledgment("photo", 1) == photos[0]
    assert acknowledgment("photo", 2) == photos[1]
    assert acknowledgment("photo", len(photos) + 1) == photos[0]
    assert acknowledgment("sketch", 1) == ACKNOWLEDGMENTS["text"][0]


@pytest.fixture
def session(make_record):
    record = make_record(
        name="Rookwood Vase",
        confidence=0.65,
        domain_category="ceramics",
        evidence_for=["flame mark"],
        historical_context="Cincinnati art pottery.",
    )
    return create_interactive_session("analysis-1", record)


def test_reply_prompt_carries_context(session):
    prompt = build_reply_prompt(session, "Is it real?", "text")

    assert "Identified as: Rookwood Vase" in prompt
    assert "Evidence For (authentic): flame mark" in prompt
    assert "Historical Context: Cincinnati art pottery." in prompt
    assert session.information_needs[0].question in prompt
    assert prompt.rstrip().endswith("USER: Is it real?\nASSISTANT:")


def test_reply_prompt_for_photo(session):
    prompt = build_reply_prompt(session, "", "photo")

    assert "[User provided a photo] Here is an additional photo of the item." in prompt


def test_ai_reply(session):
    calls = []

    async def text_call(prompt, model):
        calls.append(model)
        return "  It looks consistent with Rookwood's flame mark.  "

    reply = asyncio.run(generate_ai_reply(session, "Is it real?", "text", text_call, "test-model"))

    assert reply.role == "assistant"
    assert reply.content == "It looks consistent with Rookwood's flame mark."
    assert calls == ["test-model"]
    # the session is left untouched
    assert len(session.conversation_history) == 1


def test_ai_reply_falls_back_on_error(session):
    async def text_call(prompt, model):
        raise RuntimeError("quota exceeded")

    reply = asyncio.run(generate_ai_reply(session, "", "photo", text_call, "test-model"))

    assert reply.content.startswith("Thank you for the photo!")


def test_ai_reply_handles_empty_text(session):
    async def text_call(prompt, model):
        return ""

    reply = asyncio.run(generate_ai_reply(session, "Hmm?", "text", text_call, "test-model"))

    assert "rephrase" in reply.content
