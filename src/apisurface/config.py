"""Discovery configuration.

Heuristic thresholds live here so that a run can be tuned from a YAML
file without touching code.
"""

import logging
import os
from pathlib import Path

import yaml
from pydantic import BaseModel, ConfigDict, Field

logger = logging.getLogger("apisurface.config")

# Environment variable pointing at a YAML config file
CONFIG_ENV_VAR = "APISURFACE_CONFIG"


class DiscoveryConfig(BaseModel):
    """Tunables for templating, schema inference, auth detection and capture filtering."""

    model_config = ConfigDict(extra="forbid", frozen=True)

    opaque_segment_min_length: int = Field(
        default=20,
        ge=1,
        description="Alphanumeric path segments longer than this are parameters",
    )
    enum_max_values: int = Field(
        default=8,
        ge=1,
        description="Maximum distinct values for a string field to become an enum",
    )
    api_key_min_ratio: float = Field(
        default=0.5,
        ge=0.0,
        le=1.0,
        description="Share of observations an X-*-Key/X-*-Token header must appear on",
    )
    api_path_patterns: list[str] = Field(
        default_factory=lambda: ["/api/", "/v1/", "/v2/", "/graphql"],
    )
    static_extensions: list[str] = Field(
        default_factory=lambda: [
            ".js", ".css", ".png", ".jpg", ".jpeg", ".gif", ".svg",
            ".woff", ".woff2", ".ttf", ".ico", ".map", ".webp",
        ],
    )


def load_config(path: str | Path | None = None) -> DiscoveryConfig:
    """Load discovery configuration.

    Args:
        path: YAML file to read. Falls back to the APISURFACE_CONFIG
            environment variable, then to built-in defaults.

    Returns:
        Validated DiscoveryConfig.

    Raises:
        ValueError: If the file is not a YAML mapping or has unknown keys.
    """
    resolved = path or os.environ.get(CONFIG_ENV_VAR)
    if not resolved:
        return DiscoveryConfig()

    logger.debug(f"Loading config from {resolved}")
    with open(resolved, encoding="utf-8") as f:
        raw = yaml.safe_load(f)

    if raw is None:
        return DiscoveryConfig()
    if not isinstance(raw, dict):
        raise ValueError(f"Config file {resolved} must contain a mapping")

    return DiscoveryConfig.model_validate(raw)
