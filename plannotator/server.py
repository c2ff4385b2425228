"""Ephemeral loopback HTTP server that mediates one approve/deny decision."""

from __future__ import annotations

import asyncio
import enum
import errno
import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Callable, Optional

from aiohttp import web
from pydantic import BaseModel, ConfigDict, ValidationError

from plannotator.decision import Decision, DecisionLatch
from plannotator.errors import PortInUseError, ServerStateError
from plannotator.obsidian.vaults import detect_obsidian_vaults
from plannotator.obsidian.writer import VaultSaveResult, VaultTarget, save_to_obsidian

logger = logging.getLogger("plannotator.server")

UI_HTML_PATH = Path(__file__).parent / "ui" / "index.html"
LOOPBACK_HOST = "127.0.0.1"
BIND_MAX_RETRIES = 5
BIND_RETRY_DELAY_SECONDS = 0.5
SHUTDOWN_GRACE_SECONDS = 1.5
_ADDRESS_IN_USE_ERRNOS = {errno.EADDRINUSE, 10048}


class ServerState(str, enum.Enum):
    STARTING = "starting"
    BOUND = "bound"
    AWAITING_DECISION = "awaiting_decision"
    RESOLVED = "resolved"
    STOPPED = "stopped"


@dataclass(frozen=True)
class ServerSession:
    port: int
    bound_at: datetime
    plan_text: str


class ApproveRequest(BaseModel):
    model_config = ConfigDict(extra="ignore")

    obsidian: Optional[VaultTarget] = None


class DenyRequest(BaseModel):
    model_config = ConfigDict(extra="ignore")

    feedback: Optional[str] = None


def load_ui_html(path: Path = UI_HTML_PATH) -> str:
    return path.read_text(encoding="utf-8")


def is_address_in_use(exc: OSError) -> bool:
    return exc.errno in _ADDRESS_IN_USE_ERRNOS


async def _read_json(request: web.Request) -> Any:
    try:
        return await request.json()
    except ValueError:
        return None


class DecisionServer:
    """Single-shot aiohttp server that serves a plan and latches one decision."""

    def __init__(
        self,
        plan_text: str,
        port: int = 0,
        *,
        host: str = LOOPBACK_HOST,
        is_remote: bool = False,
        origin: str | None = None,
        html: str | None = None,
        vault_saver: Callable[[VaultTarget], VaultSaveResult] = save_to_obsidian,
        vault_detector: Callable[[], list[str]] = detect_obsidian_vaults,
        max_retries: int = BIND_MAX_RETRIES,
        retry_delay: float = BIND_RETRY_DELAY_SECONDS,
    ):
        self.plan_text = plan_text
        self.host = host
        self.requested_port = port
        self.is_remote = is_remote
        self.origin = origin
        self.max_retries = max_retries
        self.retry_delay = retry_delay
        self._html = html
        self._vault_saver = vault_saver
        self._vault_detector = vault_detector
        self._latch = DecisionLatch()
        self._runner: web.AppRunner | None = None
        self._site: web.TCPSite | None = None
        self.session: ServerSession | None = None
        self.state = ServerState.STARTING

    @property
    def port(self) -> int:
        if self.session is None:
            raise ServerStateError("server is not bound")
        return self.session.port

    @property
    def url(self) -> str:
        return f"http://localhost:{self.port}"

    @property
    def decision(self) -> Decision | None:
        return self._latch.value

    def _build_app(self) -> web.Application:
        app = web.Application()
        app.router.add_get("/plan", self._handle_plan)
        app.router.add_get("/obsidian/vaults", self._handle_vaults)
        app.router.add_post("/approve", self._handle_approve)
        app.router.add_post("/deny", self._handle_deny)
        app.router.add_get("/{tail:.*}", self._handle_index)
        return app

    async def _handle_plan(self, request: web.Request) -> web.Response:
        payload: dict[str, str] = {"plan": self.plan_text}
        if self.origin:
            payload["origin"] = self.origin
        return web.json_response(payload)

    async def _handle_vaults(self, request: web.Request) -> web.Response:
        try:
            vaults = self._vault_detector()
        except Exception as exc:
            logger.warning("Obsidian vault discovery failed: %s", exc)
            vaults = []
        return web.json_response({"vaults": vaults})

    async def _handle_approve(self, request: web.Request) -> web.Response:
        body = await _read_json(request)
        if self._latch.resolved:
            return web.json_response({"ok": True})

        try:
            approve = ApproveRequest.model_validate(body) if isinstance(body, dict) else ApproveRequest()
        except ValidationError:
            logger.debug("Ignoring malformed approve body")
            approve = ApproveRequest()

        # No await between the resolved check and resolve(): the vault write
        # runs only for the request that wins the latch.
        target = approve.obsidian
        if target is not None and target.is_complete():
            try:
                result = self._vault_saver(target)
            except Exception as exc:
                logger.error("Obsidian save failed: %s", exc)
            else:
                if not result.success:
                    logger.error("Obsidian save failed: %s", result.error)

        self._resolve(Decision.approve())
        return web.json_response({"ok": True})

    async def _handle_deny(self, request: web.Request) -> web.Response:
        body = await _read_json(request)
        feedback = None
        if isinstance(body, dict):
            try:
                feedback = DenyRequest.model_validate(body).feedback
            except ValidationError:
                logger.debug("Ignoring malformed deny body")
        self._resolve(Decision.deny(feedback))
        return web.json_response({"ok": True})

    async def _handle_index(self, request: web.Request) -> web.Response:
        if self._html is None:
            self._html = load_ui_html()
        return web.Response(text=self._html, content_type="text/html")

    def _resolve(self, decision: Decision) -> None:
        if self._latch.resolve(decision):
            if self.state is ServerState.AWAITING_DECISION:
                self.state = ServerState.RESOLVED
            logger.info("Decision received: %s", "approved" if decision.approved else "denied")

    async def _bind(self) -> tuple[web.AppRunner, web.TCPSite]:
        runner = web.AppRunner(self._build_app(), access_log=None)
        await runner.setup()
        site = web.TCPSite(runner, host=self.host, port=self.requested_port)
        try:
            await site.start()
        except BaseException:
            await runner.cleanup()
            raise
        return runner, site

    async def start(self) -> ServerSession:
        """Bind the listener, retrying while the port is in use."""
        if self.state is not ServerState.STARTING:
            raise ServerStateError(f"cannot start server in state {self.state.value}")

        for attempt in range(1, self.max_retries + 1):
            try:
                self._runner, self._site = await self._bind()
                break
            except OSError as exc:
                if not is_address_in_use(exc):
                    raise
                if attempt >= self.max_retries:
                    raise PortInUseError(
                        self.requested_port, self.max_retries, is_remote=self.is_remote
                    ) from exc
                logger.warning(
                    "Port %s in use, retrying in %dms... (%s/%s)",
                    self.requested_port,
                    int(self.retry_delay * 1000),
                    attempt,
                    self.max_retries,
                )
                await asyncio.sleep(self.retry_delay)

        bound_port = int(self._runner.addresses[0][1])
        self.session = ServerSession(
            port=bound_port,
            bound_at=datetime.now(timezone.utc),
            plan_text=self.plan_text,
        )
        self.state = ServerState.BOUND
        logger.debug("Plannotator server bound on %s", self.url)
        self.state = ServerState.AWAITING_DECISION
        return self.session

    async def wait_for_decision(self) -> Decision:
        """Suspend until the first approve or deny request lands."""
        decision = await self._latch.wait()
        if self.state is ServerState.AWAITING_DECISION:
            self.state = ServerState.RESOLVED
        return decision

    async def stop(self) -> None:
        """Stop the listener; a stopped server stays stopped."""
        if self._site is not None:
            await self._site.stop()
            self._site = None
        if self._runner is not None:
            await self._runner.cleanup()
            self._runner = None
        if self.state is not ServerState.STOPPED:
            self.state = ServerState.STOPPED
            logger.info("Plannotator server stopped")

    async def shutdown_after_grace(self, grace: float = SHUTDOWN_GRACE_SECONDS) -> None:
        """Let the UI finish handling its response before the socket closes."""
        await asyncio.sleep(grace)
        await self.stop()
