"""Plan input parsing and the one-shot decision latch."""

from __future__ import annotations

import asyncio
import json
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, ValidationError

from plannotator.errors import PlanInputError

DEFAULT_DENY_FEEDBACK = "Plan rejected by user"


class Decision(BaseModel):
    """Human verdict on a submitted plan."""

    model_config = ConfigDict(frozen=True)

    approved: bool
    feedback: Optional[str] = None

    @classmethod
    def approve(cls) -> "Decision":
        return cls(approved=True)

    @classmethod
    def deny(cls, feedback: Optional[str] = None) -> "Decision":
        text = feedback if isinstance(feedback, str) and feedback else DEFAULT_DENY_FEEDBACK
        return cls(approved=False, feedback=text)


class ToolInput(BaseModel):
    plan: str = ""


class PlanEvent(BaseModel):
    """Inbound hook event; only tool_input.plan is read."""

    model_config = ConfigDict(extra="ignore")

    tool_input: Optional[ToolInput] = None


def parse_plan_event(raw: str | bytes) -> str:
    """Return plan text from hook event JSON or raise PlanInputError."""
    try:
        payload: Any = json.loads(raw)
    except (TypeError, ValueError) as exc:
        raise PlanInputError("Failed to parse hook event from stdin") from exc
    if not isinstance(payload, dict):
        raise PlanInputError("Failed to parse hook event from stdin")
    try:
        event = PlanEvent.model_validate(payload)
    except ValidationError as exc:
        raise PlanInputError("No plan content in hook event") from exc
    plan = event.tool_input.plan if event.tool_input is not None else ""
    if not plan:
        raise PlanInputError("No plan content in hook event")
    return plan


class DecisionLatch:
    """Resolve-once channel; every waiter observes the first decision."""

    def __init__(self) -> None:
        self._future: asyncio.Future[Decision] | None = None

    def _get_future(self) -> asyncio.Future[Decision]:
        if self._future is None:
            self._future = asyncio.get_running_loop().create_future()
        return self._future

    @property
    def resolved(self) -> bool:
        return self._future is not None and self._future.done()

    @property
    def value(self) -> Decision | None:
        if not self.resolved:
            return None
        return self._get_future().result()

    def resolve(self, decision: Decision) -> bool:
        """Latch the decision; returns False if one was already latched."""
        future = self._get_future()
        if future.done():
            return False
        future.set_result(decision)
        return True

    async def wait(self) -> Decision:
        return await asyncio.shield(self._get_future())
