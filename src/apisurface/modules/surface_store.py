"""Surface Store - Canonical serialization of surfaces and diffs.

Equal surfaces always serialize to identical bytes: keys are sorted,
unset fields omitted and endpoints are already ordered by id.
"""

import json
from pathlib import Path
from typing import Any

import yaml

from apisurface.types import SURFACE_FORMAT_VERSION, Surface, SurfaceDiff

YAML_SUFFIXES = {".yaml", ".yml"}


def surface_to_dict(surface: Surface) -> dict[str, Any]:
    """Plain JSON-compatible form of a surface."""
    return surface.model_dump(mode="json", exclude_none=True)


def surface_to_json(surface: Surface) -> str:
    """Convert a surface to canonical JSON text.

    Args:
        surface: Surface to serialize.

    Returns:
        JSON string with sorted keys and a trailing newline.
    """
    return json.dumps(surface_to_dict(surface), indent=2, sort_keys=True, ensure_ascii=False) + "\n"


def surface_to_yaml(surface: Surface) -> str:
    """Convert a surface to canonical YAML text.

    Args:
        surface: Surface to serialize.

    Returns:
        YAML-formatted string.
    """
    return yaml.safe_dump(
        surface_to_dict(surface),
        default_flow_style=False,
        sort_keys=True,
        allow_unicode=True,
    )


def parse_surface(document: dict[str, Any]) -> Surface:
    """Validate a parsed surface document.

    Raises:
        ValueError: If the document is not a mapping, has an unsupported
            format version, or fails validation.
    """
    if not isinstance(document, dict):
        raise ValueError("Surface document must be a mapping")

    version = document.get("format_version", SURFACE_FORMAT_VERSION)
    if version != SURFACE_FORMAT_VERSION:
        raise ValueError(
            f"Unsupported surface format version: {version}. Only {SURFACE_FORMAT_VERSION} is supported."
        )

    return Surface.model_validate(document)


def save_surface(surface: Surface, file_path: str | Path) -> None:
    """Save a surface, as YAML for .yaml/.yml paths and JSON otherwise.

    Args:
        surface: Surface to save.
        file_path: Destination path.
    """
    path = Path(file_path)
    text = surface_to_yaml(surface) if path.suffix.lower() in YAML_SUFFIXES else surface_to_json(surface)
    with open(path, "w", encoding="utf-8") as f:
        f.write(text)


def load_surface(file_path: str | Path) -> Surface:
    """Load a surface saved by save_surface.

    Args:
        file_path: Path to a JSON or YAML surface.

    Returns:
        The validated Surface.
    """
    path = Path(file_path)
    with open(path, encoding="utf-8") as f:
        content = f.read()

    if path.suffix.lower() in YAML_SUFFIXES:
        document = yaml.safe_load(content)
    else:
        document = json.loads(content)
    return parse_surface(document)


def diff_to_json(diff: SurfaceDiff) -> str:
    """Serialize a diff for the versioning layer."""
    return json.dumps(diff.model_dump(mode="json"), indent=2, sort_keys=True) + "\n"
