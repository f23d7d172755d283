import asyncio
import os
import random
from datetime import datetime
from types import SimpleNamespace

os.environ["DATABASE_URL"] = "sqlite://"

import pytest  # noqa: E402

import HealthChat.models  # noqa: E402,F401
from HealthChat.database import Base, SessionLocal, engine  # noqa: E402
from HealthChat.models.assessment_model import Assessment  # noqa: E402
from HealthChat.services.chat_service import ChatService  # noqa: E402
from HealthChat.services.chat_settings import ChatSettings  # noqa: E402


MOCK_SETTINGS = ChatSettings(mode="mock")
AI_SETTINGS = ChatSettings(mode="ai", provider="gemini", model="test-model", api_key="test-key", timeout_seconds=0.5)


class FakeCompletions:
    def __init__(self, reply="Provider reply", error=None, delay=0.0):
        self.reply = reply
        self.error = error
        self.delay = delay
        self.calls = []

    async def create(self, **kwargs):
        self.calls.append(kwargs)
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.error is not None:
            raise self.error
        return SimpleNamespace(choices=[SimpleNamespace(message=SimpleNamespace(content=self.reply))])


class FakeClient:
    def __init__(self, **kwargs):
        self.completions = FakeCompletions(**kwargs)
        self.chat = SimpleNamespace(completions=self.completions)
        self.closed = False

    async def close(self):
        self.closed = True


@pytest.fixture
def db():
    Base.metadata.create_all(bind=engine)
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture
def assessment(db):
    row = Assessment(
        id="A42",
        user_id="user-1",
        age="25-34",
        pattern="regular",
        cycle_length="28",
        period_duration="5",
        flow_heaviness="moderate",
        pain_level=4,
        physical_symptoms=["bloating", "cramps"],
        emotional_symptoms=["irritability"],
        recommendations=["Track your cycle"],
        created_at=datetime(2026, 1, 2, 3, 4, 5),
    )
    db.add(row)
    db.commit()
    return row


@pytest.fixture
def make_service(db):
    def _make(settings=MOCK_SETTINGS, client=None, seed=7):
        factory = (lambda: client) if client is not None else None
        return ChatService(db, settings=settings, client_factory=factory, rng=random.Random(seed))

    return _make


@pytest.fixture
def service(make_service):
    return make_service()
