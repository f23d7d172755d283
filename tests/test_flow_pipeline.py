import asyncio

import pytest
from sqlalchemy.exc import OperationalError

from HealthChat.crud import chat as store
from HealthChat.models.chat_models import Conversation
from HealthChat.services.errors import ChatValidationError, PersistenceFailure
from HealthChat.services.flow_pipeline import FlowState, FlowStep, run_steps


def _run(db, steps):
    return asyncio.run(run_steps(db, "test_flow", steps))


def test_steps_run_in_order_and_results_are_recorded(db):
    async def _create(st):
        return store.create_conversation(db, "user-1", "A42").id

    async def _message(st):
        return store.create_chat_message(db, st.results["create"], "user", "hi").id

    state = _run(db, [FlowStep("create", _create), FlowStep("message", _message)])

    assert state.completed == ["create", "message"]
    assert state.failed_step is None
    assert not state.partial
    assert store.count_messages(db, state.results["create"]) == 1


def test_failure_keeps_committed_steps_and_attaches_state(db):
    async def _create(st):
        return store.create_conversation(db, "user-1", "A42").id

    async def _boom(st):
        raise ChatValidationError("nope")

    with pytest.raises(ChatValidationError) as excinfo:
        _run(db, [FlowStep("create", _create), FlowStep("boom", _boom)])

    state = excinfo.value.flow_state
    assert isinstance(state, FlowState)
    assert state.completed == ["create"]
    assert state.failed_step == "boom"
    assert state.partial
    assert db.query(Conversation).count() == 1


def test_store_error_becomes_persistence_failure(db):
    async def _create(st):
        store.create_conversation(db, "user-1", "A42")
        raise OperationalError("INSERT", {}, Exception("disk full"))

    with pytest.raises(PersistenceFailure) as excinfo:
        _run(db, [FlowStep("create", _create)])

    assert excinfo.value.flow_state.failed_step == "create"
    assert not excinfo.value.flow_state.partial
    assert db.query(Conversation).count() == 0


def test_compensations_run_in_reverse_order(db):
    calls = []

    async def _ok(st):
        return "ok"

    def _undo(name):
        async def _compensate(st):
            calls.append(name)
        return _compensate

    async def _fail(st):
        raise RuntimeError("unexpected")

    with pytest.raises(RuntimeError):
        _run(
            db,
            [
                FlowStep("first", _ok, compensate=_undo("first")),
                FlowStep("second", _ok),
                FlowStep("third", _ok, compensate=_undo("third")),
                FlowStep("fourth", _fail, compensate=_undo("fourth")),
            ],
        )

    assert calls == ["third", "first"]
