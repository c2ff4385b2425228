"""Deterministic note artifacts for archiving approved plans in Obsidian."""

from __future__ import annotations

import re
from datetime import datetime, timezone

MAX_TAGS = 6
MAX_TITLE_TAGS = 3
MAX_TITLE_LENGTH = 50
DEFAULT_TITLE = "Plan"
BASE_TAG = "plan"
NOTE_SOURCE = "plannotator"
BACKLINK = "[[Plannotator Plans]]"

STOP_WORDS = frozenset(
    {
        "the", "and", "for", "with", "this", "that", "from", "into",
        "plan", "implementation", "overview", "phase", "step", "steps",
    }
)
IGNORED_FENCE_LANGUAGES = frozenset({"json", "yaml", "yml", "text", "txt", "markdown", "md"})
MONTHS = ("Jan", "Feb", "Mar", "Apr", "May", "Jun", "Jul", "Aug", "Sep", "Oct", "Nov", "Dec")

_H1_RE = re.compile(r"^#[ \t]+(?:Implementation\s+Plan:|Plan:)?[ \t]*(.+)$", re.IGNORECASE | re.MULTILINE)
_FENCE_LANG_RE = re.compile(r"```(\w+)")
_TITLE_WORD_RE = re.compile(r"[^\w\s-]")
_INVALID_FILENAME_RE = re.compile(r'[<>:"/\\|?*\x00-\x1f]')


def extract_title(markdown: str) -> str | None:
    """Return first H1 text with any Plan prefix removed."""
    match = _H1_RE.search(markdown or "")
    if not match:
        return None
    return match.group(1).strip()


def extract_tags(markdown: str) -> list[str]:
    """Derive up to six lowercase tags from the title and code fence languages.

    ``plan`` is always the first tag. Up to three meaningful title words follow,
    then fenced code languages in first-seen order.
    """
    tags: list[str] = [BASE_TAG]

    def _add(tag: str) -> None:
        if tag not in tags:
            tags.append(tag)

    title = extract_title(markdown)
    if title:
        words = _TITLE_WORD_RE.sub(" ", title.lower()).split()
        meaningful = [word for word in words if len(word) > 2 and word not in STOP_WORDS]
        for word in meaningful[:MAX_TITLE_TAGS]:
            _add(word)

    for lang in _FENCE_LANG_RE.findall(markdown or ""):
        normalized = lang.lower()
        if normalized in IGNORED_FENCE_LANGUAGES:
            continue
        _add(normalized)

    return tags[:MAX_TAGS]


def _iso_utc(now: datetime) -> str:
    stamp = now.astimezone(timezone.utc)
    return stamp.strftime("%Y-%m-%dT%H:%M:%S.") + f"{stamp.microsecond // 1000:03d}Z"


def generate_frontmatter(tags: list[str], now: datetime | None = None) -> str:
    """Build the YAML frontmatter block including both --- delimiters."""
    now = now or datetime.now(timezone.utc)
    tag_list = ", ".join(tag.lower() for tag in tags)
    return "\n".join(
        [
            "---",
            f"created: {_iso_utc(now)}",
            f"source: {NOTE_SOURCE}",
            f"tags: [{tag_list}]",
            "---",
        ]
    )


def sanitize_title(title: str | None) -> str:
    cleaned = _INVALID_FILENAME_RE.sub("", (title or "").strip())
    cleaned = " ".join(cleaned.split())
    cleaned = cleaned[:MAX_TITLE_LENGTH].strip()
    return cleaned or DEFAULT_TITLE


def generate_filename(markdown: str, now: datetime | None = None) -> str:
    """Return e.g. ``Auth Migration - Jan 2, 2026 2-30pm.md``.

    The timestamp fields are taken from ``now`` as given; pass local time.
    """
    now = now or datetime.now().astimezone()
    title = sanitize_title(extract_title(markdown))
    hour = now.hour % 12 or 12
    meridiem = "am" if now.hour < 12 else "pm"
    stamp = f"{MONTHS[now.month - 1]} {now.day}, {now.year} {hour}-{now.minute:02d}{meridiem}"
    return f"{title} - {stamp}.md"


def prepare_note_content(markdown: str, now: datetime | None = None) -> str:
    """Frontmatter, backlink and the original plan text."""
    frontmatter = generate_frontmatter(extract_tags(markdown), now)
    return f"{frontmatter}\n\n{BACKLINK}\n\n{markdown}"
