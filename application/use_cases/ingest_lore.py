"""Use case that turns a raw lore dump into documents and indexes them batch by batch."""
from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Iterable, Mapping
from uuid import uuid4

from application.services.lore_repository import LoreRepository
from domain.entities import LoreDocument, normalize_category
from domain.errors import MalformedRecordError, UpstreamUnavailableError

logger = logging.getLogger(__name__)

RECORD_SEPARATOR = "$$$"
MIN_TEXT_LENGTH = 50
MAX_TEXT_LENGTH = 3000
DEFAULT_BATCH_SIZE = 50
_CONTENT_PARTS = ("summary", "description", "text")


@dataclass(slots=True)
class IngestError:
    kind: str
    position: int
    reason: str


@dataclass(slots=True)
class IngestReport:
    total: int = 0
    indexed: int = 0
    skipped: int = 0
    errors: list[IngestError] = field(default_factory=list)


def _is_json_object(line: str) -> bool:
    try:
        return isinstance(json.loads(line), dict)
    except json.JSONDecodeError:
        return False


def split_records(payload: str) -> list[str]:
    """Split a dump into raw records.

    A payload whose non-empty lines are all JSON objects is JSONL, even when a
    record's text contains ``$$$``. Anything else is split on ``$$$``.
    """
    lines = [line.strip() for line in payload.splitlines() if line.strip()]
    if lines and all(_is_json_object(line) for line in lines):
        return lines
    if RECORD_SEPARATOR not in payload:
        return lines
    chunks = payload.split(RECORD_SEPARATOR)
    return [chunk.strip() for chunk in chunks if chunk.strip()]


def read_records(path: str | Path) -> list[str]:
    return split_records(Path(path).read_text(encoding="utf-8"))


def _string_list(entry: Mapping[str, Any], key: str) -> tuple[str, ...]:
    value = entry.get(key)
    if value is None:
        return ()
    if not isinstance(value, list) or not all(isinstance(item, str) for item in value):
        raise MalformedRecordError(f"Field '{key}' must be a list of strings.")
    return tuple(value)


def _optional_string(entry: Mapping[str, Any], key: str) -> str | None:
    value = entry.get(key)
    if value is None:
        return None
    if not isinstance(value, str):
        raise MalformedRecordError(f"Field '{key}' must be a string.")
    return value


def _extract_text(entry: Mapping[str, Any], title: str | None) -> str:
    content = entry.get("content")
    text = ""
    if content is not None:
        if not isinstance(content, Mapping):
            raise MalformedRecordError("Field 'content' must be an object.")
        parts = [content.get(name) for name in _CONTENT_PARTS]
        if any(part is not None and not isinstance(part, str) for part in parts):
            raise MalformedRecordError("Content parts must be strings.")
        text = "\n\n".join(part for part in parts if part)
    if not text and title:
        text = title
    return text


def parse_record(raw: str | Mapping[str, Any]) -> LoreDocument | None:
    """Convert one raw record into a document.

    Returns ``None`` for records whose text is too short to be useful and
    raises :class:`MalformedRecordError` for records that cannot be parsed.
    """
    if isinstance(raw, str):
        try:
            entry = json.loads(raw)
        except json.JSONDecodeError as exc:
            raise MalformedRecordError(f"Invalid JSON: {exc}") from exc
    else:
        entry = raw
    if not isinstance(entry, Mapping):
        raise MalformedRecordError("Record must be a JSON object.")

    title = _optional_string(entry, "title")
    text = _extract_text(entry, title)
    if len(text) < MIN_TEXT_LENGTH:
        return None

    return LoreDocument(
        id=_optional_string(entry, "id") or f"entry_{uuid4().hex}",
        text=text[:MAX_TEXT_LENGTH],
        title=title or "Unknown",
        category=normalize_category(_optional_string(entry, "type")),
        aliases=_string_list(entry, "aliases"),
        tags=_string_list(entry, "tags"),
        source_url=_optional_string(entry, "url") or None,
    )


def ingest_records(
    records: Iterable[str | Mapping[str, Any]],
    *,
    repository: LoreRepository,
    batch_size: int = DEFAULT_BATCH_SIZE,
) -> IngestReport:
    """Parse and index ``records``. Bad records and failed batches are counted, never fatal."""
    if batch_size < 1:
        raise ValueError("batch_size must be positive.")

    report = IngestReport()
    batch: list[LoreDocument] = []
    batch_number = 0

    def flush() -> None:
        nonlocal batch, batch_number
        batch_number += 1
        try:
            written = repository.add_documents(batch)
        except UpstreamUnavailableError as exc:
            logger.error("Failed to index batch %d: %s", batch_number, exc)
            report.errors.append(IngestError(kind="batch", position=batch_number, reason=str(exc)))
        else:
            report.indexed += written
            logger.info("Indexed: %d / Processed: %d", report.indexed, report.total)
        batch = []

    for position, raw in enumerate(records):
        report.total += 1
        try:
            document = parse_record(raw)
        except MalformedRecordError as exc:
            logger.debug("Skipping malformed record %d: %s", position, exc)
            report.errors.append(IngestError(kind="record", position=position, reason=str(exc)))
            continue
        if document is None:
            report.skipped += 1
            continue
        batch.append(document)
        if len(batch) >= batch_size:
            flush()

    if batch:
        flush()

    logger.info(
        "Ingestion complete: processed=%d indexed=%d skipped=%d errors=%d",
        report.total,
        report.indexed,
        report.skipped,
        len(report.errors),
    )
    return report


__all__ = [
    "IngestError",
    "IngestReport",
    "ingest_records",
    "parse_record",
    "read_records",
    "split_records",
]
