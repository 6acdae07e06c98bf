"""Main Pipeline Orchestrator.

Coordinates discovery (observations -> surface) and comparison
(surface vs surface -> diff).
"""

import logging
from collections.abc import Sequence
from datetime import datetime
from pathlib import Path

from apisurface.config import DiscoveryConfig
from apisurface.types import Observation, SourceKind, Surface, SurfaceDiff

from .har_reader import load_observations
from .surface_builder import build_surface
from .surface_differ import diff_surfaces
from .surface_store import load_surface, save_surface


# Set up logging
logger = logging.getLogger("apisurface.pipeline")


def discover_surface(
    observations: Sequence[Observation],
    source_kind: SourceKind = SourceKind.OBSERVATIONS,
    source_id: str = "",
    config: DiscoveryConfig | None = None,
    generated_at: datetime | None = None,
) -> Surface:
    """Run discovery over already-collected observations.

    Args:
        observations: Captured request/response pairs.
        source_kind: Where the observations came from.
        source_id: Identifier of the source.
        config: Discovery configuration.
        generated_at: Fixed generation timestamp, for reproducible output.

    Returns:
        The discovered Surface.
    """
    logger.info("=" * 60)
    logger.info("🔍 API SURFACE DISCOVERY")
    logger.info("=" * 60)
    logger.info(f"   Source: {source_kind.value} {source_id}")
    logger.info(f"   Observations: {len(observations)}")

    logger.info("🧩 Grouping observations and inferring schemas...")
    surface = build_surface(
        observations,
        source_kind=source_kind,
        source_id=source_id,
        config=config,
        generated_at=generated_at,
    )

    logger.info(f"   ✓ Found {surface.metadata.endpoint_count} endpoints")
    logger.info(f"   ✓ Extracted {len(surface.models)} shared models")
    logger.info(f"   ✓ Auth: {surface.auth.primary.value} ({len(surface.auth.mechanisms)} mechanisms)")
    if surface.metadata.skipped_observation_count:
        logger.warning(f"   ! Skipped {surface.metadata.skipped_observation_count} unusable observations")

    malformed = sum(e.malformed_sample_count for e in surface.endpoints)
    if malformed:
        logger.warning(f"   ! Excluded {malformed} malformed bodies from schema inference")

    logger.info("=" * 60)
    return surface


def discover_from_file(
    input_path: str | Path,
    output_path: str | Path | None = None,
    source_id: str | None = None,
    config: DiscoveryConfig | None = None,
    api_only: bool = True,
    generated_at: datetime | None = None,
) -> Surface:
    """Discover a surface from a capture file and optionally save it.

    Args:
        input_path: HAR archive or JSON observation list.
        output_path: Where to save the surface (JSON or YAML by suffix).
        source_id: Source identifier; defaults to the input file name.
        config: Discovery configuration.
        api_only: For HAR files, keep API traffic only.
        generated_at: Fixed generation timestamp.

    Returns:
        The discovered Surface.
    """
    path = Path(input_path)
    logger.info(f"📄 Loading observations from {path}")
    observations = load_observations(path, config, api_only=api_only)

    source_kind = SourceKind.HAR if path.suffix.lower() == ".har" else SourceKind.OBSERVATIONS
    surface = discover_surface(
        observations,
        source_kind=source_kind,
        source_id=source_id or path.name,
        config=config,
        generated_at=generated_at,
    )

    if output_path is not None:
        save_surface(surface, output_path)
        logger.info(f"💾 Saved surface to {output_path}")

    return surface


def compare_surfaces(old: Surface, new: Surface) -> SurfaceDiff:
    """Diff two surfaces and log a summary.

    Args:
        old: Previously published surface.
        new: Newly discovered surface.

    Returns:
        SurfaceDiff with all changes.
    """
    logger.info("🔬 Comparing surfaces...")
    logger.info(f"   Old: {old.metadata.source_id} ({old.metadata.endpoint_count} endpoints)")
    logger.info(f"   New: {new.metadata.source_id} ({new.metadata.endpoint_count} endpoints)")

    diff = diff_surfaces(old, new)
    logger.info(f"   ✓ Detected {len(diff.changes)} changes")
    for i, change in enumerate(diff.changes, 1):
        marker = "BREAKING" if change.breaking else "ok"
        logger.debug(f"   [{i}] {change.kind.value} {change.endpoint_id} {change.json_path or ''} ({marker})")

    if diff.has_breaking_changes:
        logger.info("   → Breaking changes present")
    return diff


def compare_surface_files(old_path: str | Path, new_path: str | Path) -> SurfaceDiff:
    """Load two saved surfaces and diff them."""
    return compare_surfaces(load_surface(old_path), load_surface(new_path))
