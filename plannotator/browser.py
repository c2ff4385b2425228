"""Best-effort browser launch for the review UI."""

from __future__ import annotations

import logging
import sys
import webbrowser

logger = logging.getLogger("plannotator.browser")


def open_browser(url: str) -> bool:
    """Open url in the default browser; print a manual hint when that fails."""
    try:
        opened = webbrowser.open(url)
    except webbrowser.Error as exc:
        logger.debug("Browser launch failed: %s", exc)
        opened = False
    if not opened:
        print(f"Open browser manually: {url}", file=sys.stderr)
    return opened


def ssh_forward_instructions(port: int) -> str:
    """Text telling a remote user how to forward the review port."""
    url = f"http://localhost:{port}"
    return "\n".join(
        [
            "",
            "[SSH Remote Session Detected]",
            "Add this to your local ~/.ssh/config to access Plannotator:",
            "",
            "  Host your-server-alias",
            f"    LocalForward {port} localhost:{port}",
            "",
            f"Then open {url} in your local browser.",
            "",
        ]
    )
