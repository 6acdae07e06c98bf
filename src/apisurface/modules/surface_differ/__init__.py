"""Surface Differ Package - Deterministic surface comparison.

Compares two surfaces endpoint by endpoint and classifies every change as
breaking or not. Pure function of its two inputs.
"""

from apisurface.types import Change, ChangeKind, Surface, SurfaceDiff

from .detectors.endpoint_detector import detect_endpoint_presence, detect_identity_changes
from .detectors.param_detector import detect_param_changes
from .detectors.schema_detector import detect_schema_changes
from .detectors.status_detector import detect_status_changes


def diff_surfaces(old: Surface, new: Surface) -> SurfaceDiff:
    """Compare an old surface against a new one.

    This is the main entry point for the differ. Endpoints are matched by
    id; surfaces describing different APIs simply produce a diff made of
    added and removed endpoints.

    Args:
        old: The previously published surface.
        new: The freshly discovered surface.

    Returns:
        SurfaceDiff with changes ordered by endpoint id.
    """
    old_endpoints = {e.id: e for e in old.endpoints}
    new_endpoints = {e.id: e for e in new.endpoints}
    changes: list[Change] = []

    for endpoint_id in sorted(old_endpoints.keys() | new_endpoints.keys()):
        old_endpoint = old_endpoints.get(endpoint_id)
        new_endpoint = new_endpoints.get(endpoint_id)

        if old_endpoint is None or new_endpoint is None:
            changes.extend(detect_endpoint_presence(old_endpoint, new_endpoint))
            continue

        changes.extend(detect_identity_changes(old_endpoint, new_endpoint))
        changes.extend(detect_param_changes(old_endpoint, new_endpoint, old.models, new.models))
        changes.extend(
            detect_schema_changes(
                old_endpoint.response_schema,
                new_endpoint.response_schema,
                old.models,
                new.models,
                endpoint_id,
            )
        )
        changes.extend(
            detect_status_changes(old_endpoint.status_codes, new_endpoint.status_codes, endpoint_id)
        )

    return summarize_changes(changes)


def summarize_changes(changes: list[Change]) -> SurfaceDiff:
    """Wrap a change list with its aggregate flags.

    Args:
        changes: Ordered changes.

    Returns:
        SurfaceDiff with per-kind counts and the breaking flag.
    """
    by_kind: dict[ChangeKind, int] = {}
    for change in changes:
        by_kind[change.kind] = by_kind.get(change.kind, 0) + 1

    return SurfaceDiff(
        changes=changes,
        has_breaking_changes=any(change.breaking for change in changes),
        changes_by_kind=by_kind,
    )


__all__ = [
    "diff_surfaces",
    "summarize_changes",
]
