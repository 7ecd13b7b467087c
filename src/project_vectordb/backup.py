"""Line-delimited JSON backup format.

Line 1 is a header ``{"version", "exportDate", "stats"}``; every following
line is one ``{"id", "content", "metadata"}`` record, optionally carrying
``"embedding"``. Decoding is all-or-nothing: the first malformed line aborts
the whole import.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, Iterable, Iterator, List, Tuple

from .errors import MalformedInputError
from .ingestion.metadata import format_timestamp
from .ingestion.models import CollectionStats, VectorDocument

LOGGER = logging.getLogger(__name__)

BACKUP_VERSION = "1.0"


@dataclass(slots=True)
class BackupHeader:
    version: str
    export_date: str
    stats: CollectionStats | None = None

    def as_record(self) -> Dict[str, object]:
        return {
            "version": self.version,
            "exportDate": self.export_date,
            "stats": self.stats.as_record() if self.stats is not None else None,
        }


def _dumps(payload: Dict[str, object]) -> str:
    return json.dumps(payload, ensure_ascii=False, separators=(",", ":"))


def encode_backup(
    documents: Iterable[VectorDocument],
    *,
    stats: CollectionStats | None = None,
    include_embeddings: bool = False,
    exported_at: datetime | None = None,
) -> Iterator[str]:
    """Yield backup lines without trailing newlines, header first."""

    header = BackupHeader(
        version=BACKUP_VERSION,
        export_date=format_timestamp(exported_at or datetime.now(timezone.utc)),
        stats=stats,
    )
    yield _dumps(header.as_record())
    for document in documents:
        yield _dumps(document.as_record(include_embedding=include_embeddings))


def _parse_line(line: str, line_number: int) -> Dict[str, Any]:
    try:
        payload = json.loads(line)
    except json.JSONDecodeError as exc:
        raise MalformedInputError(f"invalid JSON ({exc.msg})", line_number=line_number) from exc
    if not isinstance(payload, dict):
        raise MalformedInputError("expected a JSON object", line_number=line_number)
    return payload


def _parse_document(payload: Dict[str, Any], line_number: int) -> VectorDocument:
    doc_id = payload.get("id")
    if not isinstance(doc_id, str) or not doc_id:
        raise MalformedInputError("record has no string id", line_number=line_number)
    if not isinstance(payload.get("content", ""), str):
        raise MalformedInputError("record content must be a string", line_number=line_number)
    if not isinstance(payload.get("metadata") or {}, dict):
        raise MalformedInputError("record metadata must be an object", line_number=line_number)
    embedding = payload.get("embedding")
    if embedding is not None and not isinstance(embedding, list):
        raise MalformedInputError("record embedding must be a list", line_number=line_number)
    try:
        return VectorDocument.from_record(payload)
    except (TypeError, ValueError) as exc:
        raise MalformedInputError(f"invalid record ({exc})", line_number=line_number) from exc


def _header_stats(payload: Any, line_number: int) -> CollectionStats | None:
    # The header is informational; a damaged stats block must not block a restore.
    if not isinstance(payload, dict):
        return None
    try:
        return CollectionStats.from_record(payload)
    except (TypeError, ValueError) as exc:
        LOGGER.warning("Ignoring unreadable stats in backup header (line %d): %s", line_number, exc)
        return None


def _split_records(text: str) -> List[Tuple[int, str]]:
    # Only "\n" ends a record: U+2028, U+2029 and U+0085 are written raw inside
    # JSON strings and must not be treated as line breaks.
    lines = []
    for number, line in enumerate(text.split("\n"), start=1):
        line = line.removesuffix("\r")
        if line.strip():
            lines.append((number, line))
    return lines


def decode_backup(text: str) -> Tuple[BackupHeader, List[VectorDocument]]:
    """Parse a whole backup; blank lines are ignored."""

    lines = _split_records(text)
    if not lines:
        raise MalformedInputError("Backup file is empty")

    header_number, header_line = lines[0]
    header_payload = _parse_line(header_line, header_number)
    header = BackupHeader(
        version=str(header_payload.get("version", "")),
        export_date=str(header_payload.get("exportDate", "")),
        stats=_header_stats(header_payload.get("stats"), header_number),
    )

    documents = [
        _parse_document(_parse_line(line, number), number) for number, line in lines[1:]
    ]
    return header, documents


def write_backup_file(path: Path, lines: Iterable[str]) -> int:
    """Write lines to ``path``; returns the number of document records written."""
    path.parent.mkdir(parents=True, exist_ok=True)
    written = -1
    with path.open("w", encoding="utf-8") as fout:
        for line in lines:
            fout.write(line + "\n")
            written += 1
    return max(written, 0)


def read_backup_file(path: Path) -> Tuple[BackupHeader, List[VectorDocument]]:
    if not path.exists():
        raise FileNotFoundError(f"Backup file not found: {path}")
    return decode_backup(path.read_text(encoding="utf-8"))


__all__ = [
    "BACKUP_VERSION",
    "BackupHeader",
    "decode_backup",
    "encode_backup",
    "read_backup_file",
    "write_backup_file",
]
