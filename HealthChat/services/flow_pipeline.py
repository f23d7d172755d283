"""Named-step runner for the multi-write chat flows.

The flows are not wrapped in a transaction: each step commits on its own and a
later failure leaves earlier writes in place. This module makes that explicit.
Steps run in order, each may register a compensating action, and the
resulting `FlowState` records what completed, what failed and what was
compensated, so callers and logs can see partial completion.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from HealthChat.services.errors import ChatError, PersistenceFailure

logger = logging.getLogger(__name__)

StepFn = Callable[["FlowState"], Awaitable[Any]]


@dataclass
class FlowStep:
    name: str
    run: StepFn
    compensate: Optional[StepFn] = None


@dataclass
class FlowState:
    flow: str
    completed: list[str] = field(default_factory=list)
    compensated: list[str] = field(default_factory=list)
    failed_step: Optional[str] = None
    results: dict[str, Any] = field(default_factory=dict)

    @property
    def partial(self) -> bool:
        return self.failed_step is not None and bool(self.completed)


async def _compensate(db: Session, steps: list[FlowStep], state: FlowState) -> None:
    by_name = {s.name: s for s in steps}
    for name in reversed(state.completed):
        step = by_name[name]
        if step.compensate is None:
            continue
        try:
            await step.compensate(state)
            db.commit()
            state.compensated.append(name)
        except Exception:
            db.rollback()
            logger.exception("flow.compensate.error: flow=%s step=%s", state.flow, name)


async def run_steps(db: Session, flow: str, steps: list[FlowStep], state: Optional[FlowState] = None) -> FlowState:
    """Run `steps` in order, committing after each one.

    A step's return value is stored in `state.results[step.name]`. On failure
    the session is rolled back, compensations of completed steps run in
    reverse order, and the error is re-raised as a `ChatError` carrying the
    state. Store errors become `PersistenceFailure`.
    """
    state = state or FlowState(flow=flow)
    for step in steps:
        try:
            state.results[step.name] = await step.run(state)
            db.commit()
            state.completed.append(step.name)
        except Exception as e:
            state.failed_step = step.name
            db.rollback()
            if state.completed:
                logger.warning("flow.partial: flow=%s failed=%s completed=%s", flow, step.name, ",".join(state.completed))
            await _compensate(db, steps, state)
            if isinstance(e, ChatError):
                e.flow_state = state
                raise
            if isinstance(e, SQLAlchemyError):
                raise PersistenceFailure(f"{flow}.{step.name} failed: {e.__class__.__name__}", flow_state=state) from e
            raise
    return state
