"""
Best-effort decoding of stored image lists.

Legacy rows hold more than clean JSON arrays: single-quoted Python-style
lists, double-encoded JSON, Postgres array literals, or a single bare path.
`parse_image_list` tries each known shape in turn and, when nothing fits,
falls back to an empty list with status 'unparseable'.
"""
import ast
import json
import logging
from dataclasses import dataclass, field
from typing import Any, List, Optional

from ..exceptions import ImageListParseError

STATUS_OK = "ok"
STATUS_REPAIRED = "repaired"
STATUS_EMPTY = "empty"
STATUS_UNPARSEABLE = "unparseable"

EMPTY_MARKERS = {"", "null", "none", "[]", "{}", '""', "''"}


@dataclass
class ParsedImages:
    images: List[str] = field(default_factory=list)
    status: str = STATUS_OK


def parse_image_list(raw: Any, context: Optional[str] = None) -> ParsedImages:
    """
    Decodes a stored `images` value into a list of reference strings.

    Args:
        raw: The value as read from storage (str, bytes, list, or None).
        context: Label used in log lines (e.g. "Property 12").
    """
    label = context or "Image list"

    if raw is None:
        return ParsedImages([], STATUS_EMPTY)
    if isinstance(raw, (list, tuple)):
        return _from_sequence(raw, STATUS_OK, label)
    if isinstance(raw, bytes):
        raw = raw.decode("utf-8", errors="replace")
    if not isinstance(raw, str):
        logging.warning(f"{label}: unexpected images type {type(raw).__name__}, treating as empty")
        return ParsedImages([], STATUS_UNPARSEABLE)

    text = raw.strip()
    if text.lower() in EMPTY_MARKERS:
        return ParsedImages([], STATUS_EMPTY)

    # 1. Clean JSON
    try:
        value = json.loads(text)
    except ValueError:
        value = None
    else:
        if isinstance(value, list):
            return _from_sequence(value, STATUS_OK, label)
        if isinstance(value, str):
            # Double-encoded: the JSON string holds another serialized list
            inner = parse_image_list(value, context)
            if inner.status == STATUS_UNPARSEABLE:
                return inner
            status = STATUS_REPAIRED if inner.images or inner.status == STATUS_REPAIRED else STATUS_EMPTY
            return ParsedImages(inner.images, status)
        logging.warning(f"{label}: images JSON is a {type(value).__name__}, not a list; treating as empty")
        return ParsedImages([], STATUS_UNPARSEABLE)

    # 2. Repair strategies for the known malformed shapes
    try:
        images = _repair(text)
    except ImageListParseError as e:
        logging.warning(f"{label}: could not decode images ({e}); raw data: {text[:120]!r}")
        return ParsedImages([], STATUS_UNPARSEABLE)

    logging.info(f"{label}: repaired malformed images value {text[:80]!r}")
    return _from_sequence(images, STATUS_REPAIRED, label)


def _repair(text: str) -> List[Any]:
    if text.startswith("["):
        # Single-quoted list. literal_eval keeps apostrophes inside
        # double-quoted items intact, which a blind quote swap would not.
        try:
            value = ast.literal_eval(text)
        except (ValueError, SyntaxError):
            value = None
        if isinstance(value, (list, tuple)):
            return list(value)

        try:
            value = json.loads(text.replace("'", '"'))
        except ValueError:
            raise ImageListParseError("list literal is neither JSON nor quote-normalizable")
        if isinstance(value, list):
            return value
        raise ImageListParseError("list literal did not decode to a list")

    if text.startswith("{") and text.endswith("}"):
        # Postgres array literal: {a.jpg,"b c.jpg"}
        body = text[1:-1].strip()
        if not body:
            return []
        if ":" in body:
            raise ImageListParseError("value looks like an object, not an array")
        return [part.strip().strip('"') for part in body.split(",") if part.strip()]

    if text[0] in "\"'" and text[-1] == text[0]:
        text = text[1:-1].strip()

    # Bare path or comma-separated paths
    parts = [part.strip() for part in text.split(",")]
    if all(_looks_like_reference(part) for part in parts if part):
        return [part for part in parts if part]

    raise ImageListParseError("not a recognized image list shape")


def _looks_like_reference(value: str) -> bool:
    if any(c in value for c in "[]{}\n"):
        return False
    return "." in value.rsplit("/", 1)[-1]


def _from_sequence(values, status: str, label: str) -> ParsedImages:
    images = []
    dropped = 0
    for item in values:
        if isinstance(item, str) and item.strip():
            images.append(item.strip())
        else:
            dropped += 1
            logging.warning(f"{label}: dropping non-path image entry {item!r}")
    if dropped:
        # The stored value still holds the bad entries until it is rewritten
        status = STATUS_REPAIRED
    elif not images and status == STATUS_OK:
        status = STATUS_EMPTY
    return ParsedImages(images, status)
