"""Document classification and metadata flattening.

Chroma only stores flat ``str``/``int``/``float``/``bool`` values, so every
metadata mapping passes through :func:`flatten_metadata` before it is written.
Lists become comma-joined strings, dates become ISO-8601 UTC timestamps, and
any other composite value is dropped.
"""

from __future__ import annotations

import logging
import math
import re
from datetime import date, datetime, time, timezone
from pathlib import Path, PurePath
from typing import Any, Dict, Mapping, Sequence, Tuple

import frontmatter

from .models import FlatMetadata

LOGGER = logging.getLogger(__name__)

DEFAULT_CATEGORY = "general"
DEFAULT_PRIORITY = 60

# Ordered: the first matching needle wins.
_CATEGORY_RULES: Tuple[Tuple[Tuple[str, ...], str], ...] = (
    (("architecture",), "architecture"),
    (("chatbot",), "chatbot"),
    (("design",), "design"),
    (("implementation",), "implementation-plans"),
    (("roadmap",), "roadmaps"),
    (("research",), "research"),
    (("testing",), "testing"),
    (("audit",), "audits"),
    (("eval",), "evaluations"),
    (("css", "style"), "styling"),
    (("animation",), "animation"),
    (("migration",), "migrations"),
    (("content",), "content"),
    (("feature",), "features"),
    (("_archive",), "archive"),
)

_PRIORITY_RULES: Tuple[Tuple[str, int], ...] = (
    ("claude.md", 100),
    ("readme", 95),
    ("current", 95),
    ("quick-reference", 90),
    ("implementation-plan", 85),
    ("architecture", 80),
    ("design", 75),
    ("roadmap", 75),
    ("testing", 70),
    ("_archive", 30),
    ("old", 35),
    ("deprecated", 35),
)

_H1_PATTERN = re.compile(r"^#\s+(.+)$", flags=re.MULTILINE)
_WORD_START = re.compile(r"\b\w")


def _relative_key(file_path: str | PurePath, root: str | PurePath | None) -> str:
    path = PurePath(file_path)
    if root is not None:
        try:
            path = path.relative_to(root)
        except ValueError:
            pass
    return path.as_posix().lower()


def infer_category(file_path: str | PurePath, root: str | PurePath | None = None) -> str:
    """Classify a document by substring rules on its path below ``root``."""
    relative = _relative_key(file_path, root)
    for needles, category in _CATEGORY_RULES:
        if any(needle in relative for needle in needles):
            return category

    parts = relative.split("/")
    if len(parts) > 1 and parts[0]:
        return parts[0]
    return DEFAULT_CATEGORY


def infer_priority(file_path: str | PurePath, root: str | PurePath | None = None) -> int:
    relative = _relative_key(file_path, root)
    for needle, priority in _PRIORITY_RULES:
        if needle in relative:
            return priority
    return DEFAULT_PRIORITY


def humanize_filename(file_path: str | PurePath) -> str:
    stem = PurePath(file_path).stem
    spaced = re.sub(r"[-_]", " ", stem)
    return _WORD_START.sub(lambda match: match.group(0).upper(), spaced)


def extract_title(content: str, file_path: str | PurePath) -> str:
    """Return the first level-1 heading, or a humanized filename."""
    match = _H1_PATTERN.search(content or "")
    if match:
        return match.group(1).strip()
    return humanize_filename(file_path)


def parse_front_matter(text: str) -> Tuple[Dict[str, Any], str]:
    """Split YAML front matter from a markdown body."""
    post = frontmatter.loads(text)
    return dict(post.metadata), post.content


def format_timestamp(value: date) -> str:
    """Render a date/datetime as ``YYYY-MM-DDTHH:MM:SS.mmmZ`` in UTC.

    Naive datetimes are taken to be UTC already; bare dates map to midnight.
    """

    if not isinstance(value, datetime):
        value = datetime.combine(value, time.min)
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    value = value.astimezone(timezone.utc)
    return value.strftime("%Y-%m-%dT%H:%M:%S.") + f"{value.microsecond // 1000:03d}Z"


def parse_timestamp(value: str) -> datetime | None:
    """Parse a stored ISO timestamp back into an aware datetime."""
    try:
        parsed = datetime.fromisoformat(value.strip().replace("Z", "+00:00"))
    except (AttributeError, ValueError):
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def _flatten_scalar(value: Any) -> Any:
    if isinstance(value, (str, int)):  # bool included
        return value
    if isinstance(value, float):
        return value if math.isfinite(value) else None
    if isinstance(value, date):
        return format_timestamp(value)
    return None


def flatten_metadata(metadata: Mapping[str, Any] | None) -> FlatMetadata:
    """Reduce a metadata mapping to the scalar shape Chroma accepts."""

    flattened: FlatMetadata = {}
    for key, value in (metadata or {}).items():
        if value is None:
            continue

        if isinstance(value, (list, tuple, set, frozenset)):
            items = [_flatten_scalar(item) for item in value if item is not None]
            if any(item is None for item in items):
                LOGGER.debug("Dropping metadata field %s: list holds composite values", key)
                continue
            flattened[key] = ",".join(str(item) for item in items)
            continue

        scalar = _flatten_scalar(value)
        if scalar is None:
            LOGGER.debug("Dropping metadata field %s of type %s", key, type(value).__name__)
            continue
        flattened[key] = scalar

    return flattened


def split_tags(value: Any) -> list[str]:
    """Inverse of list flattening for the ``tags`` field."""
    if value is None:
        return []
    if isinstance(value, str):
        return [tag.strip() for tag in value.split(",") if tag.strip()]
    if isinstance(value, Sequence):
        return [str(tag).strip() for tag in value if str(tag).strip()]
    return [str(value)]


def scalar_front_matter(front_matter: Mapping[str, Any], *, exclude: Sequence[str] = ("title", "tags")) -> Dict[str, Any]:
    """Front matter entries that survive flattening as scalars."""
    extras: Dict[str, Any] = {}
    for key, value in front_matter.items():
        if key in exclude:
            continue
        if value is None or isinstance(value, (str, int, float, bool, date)):
            extras[key] = value
    return extras


def file_modified_at(path: Path) -> str:
    return format_timestamp(datetime.fromtimestamp(path.stat().st_mtime, tz=timezone.utc))


__all__ = [
    "DEFAULT_CATEGORY",
    "DEFAULT_PRIORITY",
    "extract_title",
    "file_modified_at",
    "flatten_metadata",
    "format_timestamp",
    "humanize_filename",
    "infer_category",
    "infer_priority",
    "parse_front_matter",
    "parse_timestamp",
    "scalar_front_matter",
    "split_tags",
]
