"""Validated-parse boundary for provider replies.

The provider answers in free text that is *supposed* to be raw JSON but is
frequently wrapped in a markdown fence or not JSON at all. Everything that
inspects that text lives here so callers branch on a typed result instead
of catching decode exceptions.
"""

import json
import re
from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel

_FENCE_OPEN = re.compile(r"^```[A-Za-z0-9_-]*[ \t]*\n?")
_FENCE_CLOSE = re.compile(r"\n?```$")


class ParseStatus(str, Enum):
    """Outcome of parsing one provider reply."""

    OK = "ok"
    EMPTY = "empty"  # blank text
    MALFORMED = "malformed"  # not valid JSON
    WRONG_SHAPE = "wrong_shape"  # valid JSON, unexpected type or empty array


class ParsedBatch(BaseModel):
    """Result of :func:`parse_batch`. ``records`` is non-empty only when ``ok``."""

    status: ParseStatus
    records: list[dict[str, Any]] = []
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.status == ParseStatus.OK


class ParsedObject(BaseModel):
    """Result of :func:`parse_object`."""

    status: ParseStatus
    data: dict[str, Any] = {}
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.status == ParseStatus.OK


def strip_code_fences(text: str) -> str:
    """Remove a leading ```` ``` ```` / ```` ```json ```` marker and a trailing ```` ``` ````."""
    cleaned = text.strip()
    cleaned = _FENCE_OPEN.sub("", cleaned, count=1)
    cleaned = _FENCE_CLOSE.sub("", cleaned, count=1)
    return cleaned.strip()


def _decode(raw: Optional[str]) -> tuple[ParseStatus, Any, Optional[str]]:
    if raw is None or not raw.strip():
        return ParseStatus.EMPTY, None, "empty response"

    cleaned = strip_code_fences(raw)
    if not cleaned:
        return ParseStatus.EMPTY, None, "empty response"

    try:
        return ParseStatus.OK, json.loads(cleaned), None
    except json.JSONDecodeError as e:
        return ParseStatus.MALFORMED, None, f"invalid JSON: {e.msg} at pos {e.pos}"


def parse_batch(raw: Optional[str]) -> ParsedBatch:
    """Parse a reply expected to hold a non-empty JSON array of objects.

    Non-object array items are discarded; an array with no object items
    counts as ``WRONG_SHAPE``.
    """
    status, value, error = _decode(raw)
    if status != ParseStatus.OK:
        return ParsedBatch(status=status, error=error)

    if not isinstance(value, list):
        return ParsedBatch(
            status=ParseStatus.WRONG_SHAPE,
            error=f"expected a JSON array, got {type(value).__name__}",
        )

    records = [item for item in value if isinstance(item, dict)]
    if not records:
        return ParsedBatch(status=ParseStatus.WRONG_SHAPE, error="array holds no records")

    return ParsedBatch(status=ParseStatus.OK, records=records)


def parse_object(raw: Optional[str]) -> ParsedObject:
    """Parse a reply expected to hold a single JSON object.

    A one-element array wrapping the object is accepted as well.
    """
    status, value, error = _decode(raw)
    if status != ParseStatus.OK:
        return ParsedObject(status=status, error=error)

    if isinstance(value, list) and len(value) == 1:
        value = value[0]

    if not isinstance(value, dict):
        return ParsedObject(
            status=ParseStatus.WRONG_SHAPE,
            error=f"expected a JSON object, got {type(value).__name__}",
        )

    return ParsedObject(status=ParseStatus.OK, data=value)
