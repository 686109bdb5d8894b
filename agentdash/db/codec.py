"""
JSON codec for collection documents.

Documents are JSON arrays of camelCase records, pretty-printed with two-space
indentation. Timestamps are written as UTC ISO-8601 with millisecond precision
and a trailing ``Z``; on read every string that is entirely a timestamp is
revived to an aware ``datetime``.
"""
import json
import re
from datetime import datetime, timezone
from typing import Any

_TIMESTAMP_RE = re.compile(
    r"^\d{4}-\d{2}-\d{2}T\d{2}:\d{2}:\d{2}(?:\.\d+)?(?:Z|[+-]\d{2}:?\d{2})?$"
)


def format_timestamp(value: datetime) -> str:
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


class RevivedTimestamp(datetime):
    """A timestamp revived from document text. ``source`` is that text, verbatim."""

    source: str


def parse_timestamp(value: str) -> datetime:
    if value.endswith("Z"):
        value = value[:-1] + "+00:00"
    parsed = datetime.fromisoformat(value)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def _revive_timestamp(value: str) -> RevivedTimestamp:
    parsed = parse_timestamp(value)
    revived = RevivedTimestamp(
        parsed.year, parsed.month, parsed.day,
        parsed.hour, parsed.minute, parsed.second, parsed.microsecond,
        tzinfo=parsed.tzinfo,
    )
    revived.source = value
    return revived


def timestamp_text(value: datetime) -> str:
    """The original text of a revived timestamp, else its canonical form."""
    return getattr(value, "source", None) or format_timestamp(value)


def is_timestamp(value: Any) -> bool:
    return isinstance(value, str) and _TIMESTAMP_RE.match(value) is not None


def _revive(value: Any) -> Any:
    if isinstance(value, str):
        if is_timestamp(value):
            try:
                return _revive_timestamp(value)
            except ValueError:
                return value
        return value
    if isinstance(value, list):
        return [_revive(v) for v in value]
    if isinstance(value, dict):
        return {k: _revive(v) for k, v in value.items()}
    return value


def _default(value: Any) -> Any:
    if isinstance(value, datetime):
        return format_timestamp(value)
    raise TypeError(f"Object of type {type(value).__name__} is not JSON serializable")


def encode_record(record: dict[str, Any]) -> str:
    return json.dumps(record, default=_default, ensure_ascii=False)


def decode_record(text: str) -> dict[str, Any]:
    data = json.loads(text)
    if not isinstance(data, dict):
        raise ValueError("Record document must be a JSON object")
    return _revive(data)


def encode_records(records: list[dict[str, Any]]) -> str:
    return json.dumps(records, default=_default, indent=2, ensure_ascii=False)


def decode_records(text: str) -> list[dict[str, Any]]:
    """Parse a collection document. Raises ``ValueError`` if it is not a JSON array."""
    data = json.loads(text)
    if not isinstance(data, list):
        raise ValueError("Collection document must be a JSON array")
    return _revive(data)
