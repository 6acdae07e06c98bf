"""Status Code Change Detector.

Detects status codes that appeared or disappeared on an endpoint.
"""

from apisurface.types import Change, ChangeKind


def detect_status_changes(
    old_codes: list[int],
    new_codes: list[int],
    endpoint_id: str,
) -> list[Change]:
    """Detect status code changes.

    New codes are informational, except when an endpoint that only ever
    succeeded starts returning 4xx/5xx codes: callers may not handle them.

    Args:
        old_codes: Status codes observed in the old surface.
        new_codes: Status codes observed in the new surface.
        endpoint_id: Endpoint being compared.

    Returns:
        List with at most one status code change.
    """
    added = sorted(set(new_codes) - set(old_codes))
    removed = sorted(set(old_codes) - set(new_codes))
    if not added and not removed:
        return []

    always_succeeded = bool(old_codes) and all(code < 400 for code in old_codes)
    new_error_classes = sorted({code // 100 for code in added if code >= 400})
    breaking = always_succeeded and bool(new_error_classes)

    parts = []
    if added:
        parts.append(f"added {added}")
    if removed:
        parts.append(f"no longer observed {removed}")

    return [
        Change(
            kind=ChangeKind.STATUS_CODES_CHANGED,
            endpoint_id=endpoint_id,
            json_path="$.status_code",
            before=sorted(set(old_codes)),
            after=sorted(set(new_codes)),
            breaking=breaking,
            message="Status codes " + ", ".join(parts),
        )
    ]
