import asyncio

from HealthChat.crud import chat as store
from HealthChat.services.mock_responses import GENERIC_RESPONSES, PAIN_RESPONSE
from HealthChat.services.response_generator import ResponseGenerator, build_system_prompt, build_turns

from tests.conftest import AI_SETTINGS, MOCK_SETTINGS, FakeClient


def _thread(db, *contents):
    conv = store.create_conversation(db, "user-1", "A42", assessment_object={"pattern": "irregular", "pain_level": 7})
    previous = None
    messages = []
    for i, content in enumerate(contents):
        role = "user" if i % 2 == 0 else "assistant"
        previous = store.create_chat_message(db, conv.id, role, content, parent_message_id=previous.id if previous else None)
        messages.append(previous)
    db.commit()
    return conv, messages


def test_system_prompt_includes_assessment_fields():
    prompt = build_system_prompt({"pattern": "irregular", "cycle_length": "35", "physical_symptoms": ["bloating"]})

    assert "Pattern: irregular" in prompt
    assert "Cycle length: 35 days" in prompt
    assert "bloating" in prompt
    assert build_system_prompt(None) != prompt


def test_build_turns_stops_at_parent_and_skips_blank(db):
    conv, messages = _thread(db, "first", "   ", "second", "reply", "edited question")
    history = store.get_chat_history(db, conv.id)

    turns = build_turns(history, messages[4].id, "edited question", conv.assessment_object)

    assert turns[0]["role"] == "system"
    assert [(t["role"], t["content"]) for t in turns[1:]] == [
        ("user", "first"),
        ("user", "second"),
        ("assistant", "reply"),
        ("user", "edited question"),
    ]


def test_mock_mode_persists_reply_linked_to_user_message(db):
    conv, messages = _thread(db, "my cramps are bad")
    generator = ResponseGenerator(db, settings=MOCK_SETTINGS)

    reply = asyncio.run(generator.generate(conv.id, "user-1", messages[0].id, "my cramps are bad"))
    db.commit()

    assert reply.role == "assistant"
    assert reply.content == PAIN_RESPONSE
    assert reply.parent_message_id == messages[0].id
    assert reply.created_at > messages[0].created_at
    assert conv.preview == PAIN_RESPONSE[:50] + "..."


def test_ai_mode_sends_turns_to_provider(db):
    conv, messages = _thread(db, "hello", "hi there", "what does my pattern mean?")
    client = FakeClient(reply="  Your cycle looks irregular.  ")
    generator = ResponseGenerator(db, settings=AI_SETTINGS, client_factory=lambda: client)

    reply = asyncio.run(generator.generate(conv.id, "user-1", messages[2].id, "what does my pattern mean?"))

    assert reply.content == "Your cycle looks irregular."
    assert client.closed
    call = client.completions.calls[0]
    assert call["model"] == "test-model"
    assert [t["role"] for t in call["messages"]] == ["system", "user", "assistant", "user"]
    assert "Pattern: irregular" in call["messages"][0]["content"]


def test_provider_error_falls_back_to_mock(db):
    conv, messages = _thread(db, "the cramp is awful")
    client = FakeClient(error=RuntimeError("503 from provider"))
    generator = ResponseGenerator(db, settings=AI_SETTINGS, client_factory=lambda: client)

    reply = asyncio.run(generator.generate(conv.id, "user-1", messages[0].id, "the cramp is awful"))

    assert reply.content == PAIN_RESPONSE
    assert reply.parent_message_id == messages[0].id
    assert client.closed


def test_provider_timeout_falls_back_to_mock(db):
    conv, messages = _thread(db, "hello")
    client = FakeClient(delay=5.0)
    generator = ResponseGenerator(db, settings=AI_SETTINGS, client_factory=lambda: client)

    content, source = asyncio.run(generator.produce_text(conv.id, [{"role": "user", "content": "hello"}], "hello"))

    assert source == "fallback"
    assert content in GENERIC_RESPONSES


def test_client_construction_failure_falls_back(db):
    def _broken():
        raise ValueError("no credentials")

    generator = ResponseGenerator(db, settings=AI_SETTINGS, client_factory=_broken)

    content, source = asyncio.run(generator.produce_text("c1", [], "pain again"))

    assert (content, source) == (PAIN_RESPONSE, "fallback")
