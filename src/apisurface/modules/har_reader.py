"""HAR Reader.

Converts browser-exported HTTP Archive (HAR) files into Observations.

HAR files contain all network traffic of a session: API calls (what we
want), static assets and third-party noise. With `api_only` the reader
keeps JSON traffic and requests on API-looking paths, and drops static
assets.
"""

import base64
import binascii
import json
import logging
from pathlib import Path
from typing import Any

import httpx
from pydantic import TypeAdapter

from apisurface.config import DiscoveryConfig
from apisurface.types import Body, HttpMethod, Observation

from .schema_inferencer.body_parser import media_type

logger = logging.getLogger("apisurface.har")

_OBSERVATION_LIST = TypeAdapter(list[Observation])


def is_api_entry(entry: dict[str, Any], config: DiscoveryConfig) -> bool:
    """Decide whether a HAR entry is API traffic worth modelling."""
    url = entry.get("request", {}).get("url", "")
    mime = entry.get("response", {}).get("content", {}).get("mimeType", "")

    try:
        path = httpx.URL(url).path.lower()
    except httpx.InvalidURL:
        return False

    if any(path.endswith(ext) for ext in config.static_extensions):
        return False

    url_match = any(pattern in path for pattern in config.api_path_patterns)
    is_json = "json" in media_type(mime)
    return url_match or is_json


def _header_pairs(headers: list[dict[str, Any]]) -> tuple[tuple[str, str], ...]:
    # HTTP/2 pseudo-headers carry no API information
    return tuple(
        (str(h.get("name", "")), str(h.get("value", "")))
        for h in headers
        if h.get("name") and not str(h["name"]).startswith(":")
    )


def _request_body(request: dict[str, Any]) -> Body | None:
    post_data = request.get("postData")
    if not post_data:
        return None

    mime = post_data.get("mimeType") or None
    text = post_data.get("text")
    if text is None and post_data.get("params"):
        # Some exporters only keep the decoded form fields
        params = [(p.get("name", ""), p.get("value", "")) for p in post_data["params"]]
        text = str(httpx.QueryParams(params))
    if not text:
        return None

    return Body(content=text.encode("utf-8"), content_type=mime)


def _response_body(response: dict[str, Any]) -> Body | None:
    content = response.get("content") or {}
    text = content.get("text")
    if text is None:
        return None

    mime = content.get("mimeType") or None
    if content.get("encoding") == "base64":
        try:
            raw = base64.b64decode(text, validate=True)
        except (binascii.Error, ValueError):
            # Undecodable payloads still reach the inferencer, which reports them
            raw = text.encode("utf-8")
    else:
        raw = text.encode("utf-8")

    size = content.get("size")
    truncated = isinstance(size, int) and size > len(raw)
    return Body(content=raw, content_type=mime, truncated=truncated)


def observation_from_entry(entry: dict[str, Any]) -> Observation | None:
    """Convert one HAR entry, or return None for unsupported methods."""
    request = entry.get("request", {})
    response = entry.get("response", {})

    method = str(request.get("method", "")).upper()
    if method not in HttpMethod.__members__:
        logger.warning(f"Skipping HAR entry with unsupported method {method!r}")
        return None

    return Observation(
        method=HttpMethod(method),
        url=request.get("url", ""),
        request_headers=_header_pairs(request.get("headers", [])),
        request_body=_request_body(request),
        status_code=int(response.get("status", 0)),
        response_headers=_header_pairs(response.get("headers", [])),
        response_body=_response_body(response),
    )


def observations_from_har(
    document: dict[str, Any],
    config: DiscoveryConfig | None = None,
    api_only: bool = True,
) -> list[Observation]:
    """Convert a parsed HAR document into observations.

    Args:
        document: Parsed HAR JSON.
        config: Discovery configuration (API filters).
        api_only: Drop static assets and non-API traffic.

    Returns:
        Observations in archive order.

    Raises:
        ValueError: If the document is not a HAR log.
    """
    config = config or DiscoveryConfig()
    log = document.get("log") if isinstance(document, dict) else None
    if not isinstance(log, dict) or not isinstance(log.get("entries"), list):
        raise ValueError("Not a HAR document: missing log.entries")

    observations: list[Observation] = []
    filtered = 0
    for entry in log["entries"]:
        if api_only and not is_api_entry(entry, config):
            filtered += 1
            continue
        observation = observation_from_entry(entry)
        if observation is not None:
            observations.append(observation)

    logger.debug(f"Read {len(observations)} observations from HAR ({filtered} non-API entries filtered)")
    return observations


def load_observations(
    file_path: str | Path,
    config: DiscoveryConfig | None = None,
    api_only: bool = True,
) -> list[Observation]:
    """Load observations from a `.har` archive or a JSON observation list.

    Args:
        file_path: Path to the capture file.
        config: Discovery configuration.
        api_only: For HAR files, keep API traffic only.

    Returns:
        Loaded observations.
    """
    path = Path(file_path)
    with open(path, encoding="utf-8") as f:
        document = json.load(f)

    if path.suffix.lower() == ".har" or (isinstance(document, dict) and "log" in document):
        return observations_from_har(document, config, api_only)

    if not isinstance(document, list):
        raise ValueError(f"{path} is neither a HAR archive nor a list of observations")
    return _OBSERVATION_LIST.validate_python(document)
