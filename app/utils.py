"""Utility helpers for the WatchDeck service."""

from __future__ import annotations

import json
import unicodedata
from datetime import datetime, timezone
from typing import Any


# Largest instant a JavaScript-style millisecond timestamp can represent.
MAX_TIMESTAMP_MS = 8_640_000_000_000_000


def collation_key(value: str) -> tuple[str, str]:
    """Return a case- and accent-insensitive sort key for display names."""

    decomposed = unicodedata.normalize("NFKD", value)
    stripped = "".join(char for char in decomposed if not unicodedata.combining(char))
    return stripped.casefold(), value


def parse_iso_date(value: str | None) -> datetime | None:
    """Parse a ``YYYY-MM-DD`` provider date as UTC midnight."""

    if not value:
        return None
    try:
        parsed = datetime.strptime(value[:10], "%Y-%m-%d")
    except ValueError:
        return None
    return parsed.replace(tzinfo=timezone.utc)


def timestamp_ms(moment: datetime) -> int:
    return int(moment.timestamp() * 1000)


def normalise_email(value: str) -> str:
    return value.strip().casefold()


def dump_envelope(data: Any, *, version: int) -> str:
    """Serialise ``data`` with a schema version marker."""

    return json.dumps({"version": version, "data": data}, ensure_ascii=False)


def load_envelope(raw: str, *, version: int) -> Any:
    """Return the payload of an envelope written by :func:`dump_envelope`."""

    try:
        document = json.loads(raw)
    except json.JSONDecodeError as exc:
        raise ValueError("Stored value is not valid JSON") from exc
    if not isinstance(document, dict) or document.get("version") != version:
        raise ValueError("Stored value has an unsupported schema version")
    return document.get("data")
