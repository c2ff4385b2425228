"""Plan review hook: serve the plan, await the human, emit the verdict."""

from __future__ import annotations

import logging
import sys
from typing import Any, Callable, Mapping, TextIO

from plannotator.browser import open_browser, ssh_forward_instructions
from plannotator.decision import Decision, parse_plan_event
from plannotator.ports import select_port
from plannotator.server import SHUTDOWN_GRACE_SECONDS, DecisionServer

logger = logging.getLogger("plannotator.hook")

HOOK_EVENT_NAME = "PermissionRequest"
DEFAULT_CHANGES_MESSAGE = "Plan changes requested"


def build_hook_output(decision: Decision) -> dict[str, Any]:
    """Hook-specific JSON telling the agent tool to allow or deny."""
    if decision.approved:
        verdict: dict[str, str] = {"behavior": "allow"}
    else:
        verdict = {"behavior": "deny", "message": decision.feedback or DEFAULT_CHANGES_MESSAGE}
    return {"hookSpecificOutput": {"hookEventName": HOOK_EVENT_NAME, "decision": verdict}}


async def review_plan(
    plan_text: str,
    *,
    port: int = 0,
    is_remote: bool = False,
    origin: str | None = None,
    opener: Callable[[str], Any] = open_browser,
    grace: float = SHUTDOWN_GRACE_SECONDS,
    server_factory: Callable[..., DecisionServer] = DecisionServer,
    stderr: TextIO | None = None,
) -> Decision:
    """Run one DecisionServer to completion and return its decision."""
    stderr = stderr or sys.stderr
    server = server_factory(plan_text, port, is_remote=is_remote, origin=origin)
    await server.start()
    try:
        print(f"\nPlannotator server running on {server.url}", file=stderr)
        if is_remote:
            print(ssh_forward_instructions(server.port), file=stderr)
        else:
            opener(server.url)
        decision = await server.wait_for_decision()
        await server.shutdown_after_grace(grace)
    finally:
        await server.stop()
    return decision


async def run_hook(
    event_json: str | bytes,
    env: Mapping[str, str] | None = None,
    **review_kwargs: Any,
) -> dict[str, Any]:
    """Process one hook event; PlanInputError is raised before any port is bound."""
    plan_text = parse_plan_event(event_json)
    selection = select_port(env)
    logger.debug("Selected port %s (remote=%s)", selection.port, selection.is_remote)
    decision = await review_plan(
        plan_text,
        port=selection.port,
        is_remote=selection.is_remote,
        **review_kwargs,
    )
    return build_hook_output(decision)
