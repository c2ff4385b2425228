"""Port selection for the ephemeral decision server."""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from typing import Mapping

logger = logging.getLogger("plannotator.ports")

PORT_ENV_VAR = "PLANNOTATOR_PORT"
SSH_ENV_VARS = ("SSH_TTY", "SSH_CONNECTION")
DEFAULT_SSH_PORT = 19432
EPHEMERAL_PORT = 0


@dataclass(frozen=True)
class PortSelection:
    """Port to bind and whether the session runs over SSH."""

    port: int
    is_remote: bool


def is_remote_session(env: Mapping[str, str] | None = None) -> bool:
    """Return True when SSH allocated the terminal or connection."""
    env = os.environ if env is None else env
    return any(str(env.get(name, "")).strip() for name in SSH_ENV_VARS)


def _parse_port_override(raw: str) -> int | None:
    text = raw.strip()
    if not (text.isascii() and text.isdigit()):
        return None
    port = int(text)
    if 0 < port < 65536:
        return port
    return None


def select_port(env: Mapping[str, str] | None = None) -> PortSelection:
    """Pick the listener port from environment signals.

    An explicit PLANNOTATOR_PORT wins. Over SSH a fixed port is used so a
    LocalForward rule can be set up ahead of time; locally the OS assigns one
    so concurrent sessions never collide.
    """
    env = os.environ if env is None else env
    is_remote = is_remote_session(env)

    raw_override = env.get(PORT_ENV_VAR)
    if raw_override:
        port = _parse_port_override(str(raw_override))
        if port is not None:
            return PortSelection(port=port, is_remote=is_remote)
        logger.warning("Invalid %s %r, using default", PORT_ENV_VAR, raw_override)

    return PortSelection(
        port=DEFAULT_SSH_PORT if is_remote else EPHEMERAL_PORT,
        is_remote=is_remote,
    )
