"""End-to-end tests for the plan review hook and agent review flow."""

from __future__ import annotations

import asyncio
import io
import json
import unittest
from unittest import mock

import httpx

from plannotator.decision import Decision
from plannotator.errors import PlanInputError
from plannotator.hook import build_hook_output, review_plan, run_hook
from plannotator.review import format_tool_result, submit_plan
from plannotator.server import DecisionServer

EVENT = json.dumps({"hook_event_name": "PermissionRequest", "tool_input": {"plan": "# Plan: Cache\n"}})


def _local_url(url: str) -> str:
    return url.replace("localhost", "127.0.0.1")


class _BrowserStub:
    """Stands in for the user: opens the URL and posts a decision."""

    def __init__(self, path: str, body: dict | None = None):
        self.path = path
        self.body = body
        self.urls: list[str] = []
        self.tasks: list[asyncio.Task] = []

    def __call__(self, url: str) -> None:
        self.urls.append(url)
        self.tasks.append(asyncio.create_task(self._click(url)))

    async def _click(self, url: str) -> None:
        async with httpx.AsyncClient(base_url=_local_url(url)) as client:
            plan = await client.get("/plan")
            assert plan.status_code == 200
            await client.post(self.path, json=self.body)


class HookOutputTests(unittest.TestCase):
    def test_allow_payload(self) -> None:
        self.assertEqual(
            build_hook_output(Decision.approve()),
            {"hookSpecificOutput": {"hookEventName": "PermissionRequest", "decision": {"behavior": "allow"}}},
        )

    def test_deny_payload(self) -> None:
        output = build_hook_output(Decision.deny("needs tests"))
        self.assertEqual(output["hookSpecificOutput"]["decision"], {"behavior": "deny", "message": "needs tests"})
        fallback = build_hook_output(Decision(approved=False))
        self.assertEqual(fallback["hookSpecificOutput"]["decision"]["message"], "Plan changes requested")


class RunHookTests(unittest.IsolatedAsyncioTestCase):
    """Drive the whole hook through a real loopback server."""

    async def test_deny_feedback_reaches_output(self) -> None:
        browser = _BrowserStub("/deny", {"feedback": "needs tests"})
        output = await run_hook(EVENT, env={}, opener=browser, grace=0, stderr=io.StringIO())
        await asyncio.gather(*browser.tasks)
        decision = output["hookSpecificOutput"]["decision"]
        self.assertEqual(decision["behavior"], "deny")
        self.assertEqual(decision["message"], "needs tests")
        self.assertEqual(len(browser.urls), 1)
        self.assertTrue(browser.urls[0].startswith("http://localhost:"))

    async def test_approve_reaches_output(self) -> None:
        browser = _BrowserStub("/approve", {})
        output = await run_hook(EVENT, env={}, opener=browser, grace=0, stderr=io.StringIO())
        await asyncio.gather(*browser.tasks)
        self.assertEqual(output["hookSpecificOutput"]["decision"], {"behavior": "allow"})

    async def test_missing_plan_fails_before_binding(self) -> None:
        factory = mock.Mock()
        with self.assertRaises(PlanInputError):
            await run_hook('{"tool_input": {}}', env={}, server_factory=factory)
        factory.assert_not_called()

    async def test_remote_session_prints_forwarding_help(self) -> None:
        servers: list[DecisionServer] = []

        def factory(*args, **kwargs) -> DecisionServer:
            server = DecisionServer(*args, **kwargs)
            servers.append(server)
            return server

        async def deny_when_bound() -> None:
            while not servers or servers[0].session is None:
                await asyncio.sleep(0.01)
            async with httpx.AsyncClient() as client:
                await client.post(f"http://127.0.0.1:{servers[0].port}/deny", json={})

        opener = mock.Mock()
        stderr = io.StringIO()
        clicker = asyncio.create_task(deny_when_bound())
        decision = await review_plan(
            "# Plan", port=0, is_remote=True, opener=opener, grace=0,
            server_factory=factory, stderr=stderr,
        )
        await clicker
        opener.assert_not_called()
        self.assertIn("[SSH Remote Session Detected]", stderr.getvalue())
        self.assertEqual(stderr.getvalue().count("Plannotator server running on"), 1)
        self.assertIn(f"LocalForward {servers[0].session.port} localhost:", stderr.getvalue())
        self.assertEqual(decision.feedback, "Plan rejected by user")
        self.assertEqual(servers[0].state.value, "stopped")


class SubmitPlanTests(unittest.IsolatedAsyncioTestCase):
    """Agent-facing review returns revision or approval text."""

    async def test_submit_plan_revision_text(self) -> None:
        browser = _BrowserStub("/deny", {"feedback": "Split step 2"})
        result = await submit_plan("# Plan: Cache", "Adds a cache", opener=browser, grace=0, stderr=io.StringIO())
        await asyncio.gather(*browser.tasks)
        self.assertTrue(result.startswith("Plan needs revision."))
        self.assertIn("## User Feedback\n\nSplit step 2", result)

    async def test_submit_plan_rejects_empty_plan(self) -> None:
        with self.assertRaises(PlanInputError):
            await submit_plan("", "nothing")

    def test_approved_text_includes_summary(self) -> None:
        text = format_tool_result(Decision.approve(), "Adds a cache")
        self.assertTrue(text.startswith("Plan approved!"))
        self.assertTrue(text.endswith("Plan Summary: Adds a cache"))


if __name__ == "__main__":
    unittest.main()
