"""Endpoint Change Detector.

Detects endpoints that appeared or disappeared, and identity changes of
endpoints present on both sides.
"""

from apisurface.types import Change, ChangeKind, Endpoint


def detect_endpoint_presence(old: Endpoint | None, new: Endpoint | None) -> list[Change]:
    """Detect an added or removed endpoint (0 or 1 item)."""
    if old is None and new is not None:
        return [
            Change(
                kind=ChangeKind.ENDPOINT_ADDED,
                endpoint_id=new.id,
                after=f"{new.method.value} {new.path}",
                breaking=False,
                message=f"New endpoint {new.method.value} {new.path}",
            )
        ]
    if new is None and old is not None:
        return [
            Change(
                kind=ChangeKind.ENDPOINT_REMOVED,
                endpoint_id=old.id,
                before=f"{old.method.value} {old.path}",
                breaking=True,
                message=f"Endpoint {old.method.value} {old.path} removed",
            )
        ]
    return []


def detect_identity_changes(old: Endpoint, new: Endpoint) -> list[Change]:
    """Detect method or path template changes under the same endpoint id."""
    changes: list[Change] = []

    if old.method != new.method:
        changes.append(
            Change(
                kind=ChangeKind.METHOD_CHANGED,
                endpoint_id=new.id,
                before=old.method.value,
                after=new.method.value,
                breaking=True,
                message=f"Method changed from {old.method.value} to {new.method.value}",
            )
        )

    if old.path != new.path:
        changes.append(
            Change(
                kind=ChangeKind.PATH_CHANGED,
                endpoint_id=new.id,
                before=old.path,
                after=new.path,
                breaking=True,
                message=f"Path changed from {old.path} to {new.path}",
            )
        )

    return changes
