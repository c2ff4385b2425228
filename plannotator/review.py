"""Agent-tool review flow: submit a plan and turn the verdict into tool output."""

from __future__ import annotations

from typing import Any

from plannotator.decision import Decision
from plannotator.errors import PlanInputError
from plannotator.hook import review_plan

REVIEW_ORIGIN = "opencode"


def format_tool_result(decision: Decision, summary: str) -> str:
    """Text returned to the agent after the user reviews its plan."""
    if decision.approved:
        return (
            "Plan approved! Switching to build mode.\n\n"
            "Your plan has been approved by the user. "
            "You may now proceed with implementation.\n\n"
            f"Plan Summary: {summary}"
        )
    return (
        "Plan needs revision.\n\n"
        "The user has requested changes to your plan. Please review their feedback "
        "below and revise your plan accordingly.\n\n"
        "## User Feedback\n\n"
        f"{decision.feedback}\n\n"
        "---\n\n"
        "Please revise your plan based on this feedback and call `submit_plan` again when ready."
    )


async def submit_plan(plan: str, summary: str, **review_kwargs: Any) -> str:
    """Serve plan on an OS-assigned port and wait for the user's verdict."""
    if not plan:
        raise PlanInputError("No plan content submitted")
    review_kwargs.setdefault("origin", REVIEW_ORIGIN)
    decision = await review_plan(plan, port=0, is_remote=False, **review_kwargs)
    return format_tool_result(decision, summary)
