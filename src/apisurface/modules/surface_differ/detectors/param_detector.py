"""Parameter Change Detector.

Detects added, removed, retyped and re-required query and body parameters.
Body parameters are the top-level properties of an object request body.
"""

from apisurface.types import Change, ChangeKind, Endpoint, SchemaNode, SchemaType

from .schema_detector import resolve, type_label

# (required, type label) per parameter name
ParamTable = dict[str, tuple[bool, str]]


def _query_table(endpoint: Endpoint) -> ParamTable:
    return {p.name: (p.required, p.type.value) for p in endpoint.query_params}


def _body_table(endpoint: Endpoint, models: dict[str, SchemaNode]) -> ParamTable:
    schema = resolve(endpoint.request_schema, models)
    if schema is None or schema.type != SchemaType.OBJECT:
        return {}
    return {
        name: (prop.required, type_label(resolve(prop.node, models)))
        for name, prop in (schema.properties or {}).items()
    }


def detect_param_changes(
    old: Endpoint,
    new: Endpoint,
    old_models: dict[str, SchemaNode],
    new_models: dict[str, SchemaNode],
) -> list[Change]:
    """Detect query and body parameter changes of one endpoint.

    Args:
        old: Endpoint from the old surface.
        new: Endpoint from the new surface.
        old_models: Shared models of the old surface.
        new_models: Shared models of the new surface.

    Returns:
        Query parameter changes followed by body parameter changes.
    """
    changes = _compare_tables("query", _query_table(old), _query_table(new), new.id)
    changes.extend(
        _compare_tables("body", _body_table(old, old_models), _body_table(new, new_models), new.id)
    )
    return changes


def _compare_tables(location: str, old: ParamTable, new: ParamTable, endpoint_id: str) -> list[Change]:
    changes: list[Change] = []

    for name in sorted(old.keys() | new.keys()):
        json_path = f"{location}.{name}"

        if name not in old:
            required = new[name][0]
            changes.append(
                Change(
                    kind=ChangeKind.PARAM_ADDED_REQUIRED if required else ChangeKind.PARAM_ADDED_OPTIONAL,
                    endpoint_id=endpoint_id,
                    json_path=json_path,
                    after={"required": required, "type": new[name][1]},
                    # Existing callers omit a new required parameter
                    breaking=required,
                    message=f"New {'required' if required else 'optional'} {location} parameter '{name}'",
                )
            )
            continue

        if name not in new:
            changes.append(
                Change(
                    kind=ChangeKind.PARAM_REMOVED,
                    endpoint_id=endpoint_id,
                    json_path=json_path,
                    before={"required": old[name][0], "type": old[name][1]},
                    breaking=True,
                    message=f"{location.capitalize()} parameter '{name}' removed",
                )
            )
            continue

        old_required, old_type = old[name]
        new_required, new_type = new[name]

        if old_required != new_required:
            changes.append(
                Change(
                    kind=ChangeKind.PARAM_REQUIRED_CHANGED,
                    endpoint_id=endpoint_id,
                    json_path=json_path,
                    before=old_required,
                    after=new_required,
                    breaking=new_required,
                    message=f"{location.capitalize()} parameter '{name}' became "
                    f"{'required' if new_required else 'optional'}",
                )
            )

        if old_type != new_type:
            changes.append(
                Change(
                    kind=ChangeKind.TYPE_CHANGED,
                    endpoint_id=endpoint_id,
                    json_path=json_path,
                    before=old_type,
                    after=new_type,
                    breaking=True,
                    message=f"Type of {location} parameter '{name}' changed from {old_type} to {new_type}",
                )
            )

    return changes
