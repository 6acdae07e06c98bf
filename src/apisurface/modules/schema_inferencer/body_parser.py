"""Body Parser.

Decodes raw bodies according to their declared content type.
"""

import json
from typing import Any

import httpx

from apisurface.types import Body

# Returned when a body carries nothing to merge (empty, HTML, binary, ...)
NO_SAMPLE = object()

FORM_CONTENT_TYPE = "application/x-www-form-urlencoded"


class MalformedBodyError(ValueError):
    """A body could not be decoded for its declared content type."""

    def __init__(self, content_type: str, reason: str, truncated: bool = False) -> None:
        self.content_type = content_type
        self.reason = reason
        self.truncated = truncated
        suffix = " (truncated)" if truncated else ""
        super().__init__(f"body is not valid {content_type}{suffix}: {reason}")


def media_type(content_type: str | None) -> str:
    """Strip parameters from a content type, e.g. `application/json; charset=utf-8`."""
    if not content_type:
        return ""
    return content_type.split(";", 1)[0].strip().lower()


def is_json_type(mime: str) -> bool:
    return mime.endswith("/json") or mime.endswith("+json")


def parse_body(body: Body | None) -> Any:
    """Decode a body into a JSON-like value.

    Args:
        body: The raw body, or None when the exchange had none.

    Returns:
        The decoded value, or NO_SAMPLE when the body contributes nothing.

    Raises:
        MalformedBodyError: If a JSON or form body cannot be decoded.
    """
    if body is None or not body.content:
        return NO_SAMPLE

    mime = media_type(body.content_type)

    if not mime:
        # Undeclared bodies are only considered when they look like JSON
        if body.content.lstrip()[:1] in (b"{", b"["):
            return _parse_json(body, "application/json")
        return NO_SAMPLE

    if is_json_type(mime):
        return _parse_json(body, mime)

    if mime == FORM_CONTENT_TYPE:
        return _parse_form(body, mime)

    return NO_SAMPLE


def _decode_text(body: Body, mime: str) -> str:
    try:
        return body.content.decode("utf-8")
    except UnicodeDecodeError as e:
        raise MalformedBodyError(mime, f"invalid UTF-8 ({e.reason})", body.truncated) from e


def _parse_json(body: Body, mime: str) -> Any:
    text = _decode_text(body, mime)
    try:
        return json.loads(text)
    except json.JSONDecodeError as e:
        raise MalformedBodyError(mime, e.msg, body.truncated) from e


def _parse_form(body: Body, mime: str) -> dict[str, Any]:
    text = _decode_text(body, mime)
    fields: dict[str, Any] = {}
    for name, value in httpx.QueryParams(text).multi_items():
        if name in fields:
            existing = fields[name]
            fields[name] = existing + [value] if isinstance(existing, list) else [existing, value]
        else:
            fields[name] = value
    return fields
