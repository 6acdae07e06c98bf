"""Response Schema Change Detector.

Walks two response schemas side by side and reports added, removed and
retyped fields, plus nullability and presence changes.
"""

from apisurface.types import Change, ChangeKind, SchemaNode, SchemaType

# Shared models never nest deeper than the surface they came from
MAX_REF_DEPTH = 64


def resolve(node: SchemaNode | None, models: dict[str, SchemaNode]) -> SchemaNode | None:
    """Follow shared-model references, keeping the reference's nullability."""
    depth = 0
    while node is not None and node.type == SchemaType.REF and depth < MAX_REF_DEPTH:
        target = models.get(node.ref or "")
        if target is None:
            return node
        node = target.model_copy(update={"nullable": node.nullable or target.nullable})
        depth += 1
    return node


def type_label(node: SchemaNode) -> str:
    """Human-readable base type, e.g. `integer` or `union[integer,string]`."""
    if node.type == SchemaType.UNION and node.variants:
        return "union[" + ",".join(v.type.value for v in node.variants) + "]"
    if node.type == SchemaType.REF:
        return f"ref[{node.ref}]"
    return node.type.value


def detect_schema_changes(
    old: SchemaNode | None,
    new: SchemaNode | None,
    old_models: dict[str, SchemaNode],
    new_models: dict[str, SchemaNode],
    endpoint_id: str,
    path: str = "$",
) -> list[Change]:
    """Detect changes between an old and a new response schema.

    Args:
        old: Schema from the old surface.
        new: Schema from the new surface.
        old_models: Shared models of the old surface.
        new_models: Shared models of the new surface.
        endpoint_id: Endpoint being compared.
        path: Current JSON path for reporting.

    Returns:
        List of changes, depth-first with properties in name order.
    """
    old = resolve(old, old_models)
    new = resolve(new, new_models)

    if old is None and new is None:
        return []
    if old is None:
        return [
            Change(
                kind=ChangeKind.FIELD_ADDED,
                endpoint_id=endpoint_id,
                json_path=path,
                after=type_label(new),
                breaking=False,
                message=f"Response body appeared at {path}",
            )
        ]
    if new is None:
        return [
            Change(
                kind=ChangeKind.FIELD_REMOVED,
                endpoint_id=endpoint_id,
                json_path=path,
                before=type_label(old),
                breaking=True,
                message=f"Response body disappeared at {path}",
            )
        ]

    changes: list[Change] = []

    old_label, new_label = type_label(old), type_label(new)
    if old_label != new_label:
        changes.append(
            Change(
                kind=ChangeKind.TYPE_CHANGED,
                endpoint_id=endpoint_id,
                json_path=path,
                before=old_label,
                after=new_label,
                breaking=True,
                message=f"Type of {path} changed from {old_label} to {new_label}",
            )
        )

    if old.nullable != new.nullable:
        # Consumers assuming non-null values break; tightening is safe
        changes.append(
            Change(
                kind=ChangeKind.NULLABILITY_CHANGED,
                endpoint_id=endpoint_id,
                json_path=path,
                before=old.nullable,
                after=new.nullable,
                breaking=new.nullable,
                message=f"{path} became {'nullable' if new.nullable else 'non-nullable'}",
            )
        )

    if old_label != new_label:
        return changes

    if old.type == SchemaType.OBJECT:
        changes.extend(_detect_property_changes(old, new, old_models, new_models, endpoint_id, path))
    elif old.type == SchemaType.ARRAY:
        if old.items is not None and new.items is not None:
            changes.extend(
                detect_schema_changes(old.items, new.items, old_models, new_models, endpoint_id, f"{path}[]")
            )
    elif old.type == SchemaType.UNION:
        for old_variant, new_variant in zip(old.variants or [], new.variants or []):
            changes.extend(
                detect_schema_changes(
                    old_variant,
                    new_variant,
                    old_models,
                    new_models,
                    endpoint_id,
                    f"{path}<{old_variant.type.value}>",
                )
            )

    return changes


def _detect_property_changes(
    old: SchemaNode,
    new: SchemaNode,
    old_models: dict[str, SchemaNode],
    new_models: dict[str, SchemaNode],
    endpoint_id: str,
    path: str,
) -> list[Change]:
    changes: list[Change] = []
    old_props = old.properties or {}
    new_props = new.properties or {}

    for name in sorted(old_props.keys() | new_props.keys()):
        field_path = f"{path}.{name}"

        if name not in old_props:
            changes.append(
                Change(
                    kind=ChangeKind.FIELD_ADDED,
                    endpoint_id=endpoint_id,
                    json_path=field_path,
                    after=type_label(resolve(new_props[name].node, new_models)),
                    breaking=False,
                    message=f"New field '{name}' at {path}",
                )
            )
            continue

        if name not in new_props:
            changes.append(
                Change(
                    kind=ChangeKind.FIELD_REMOVED,
                    endpoint_id=endpoint_id,
                    json_path=field_path,
                    before=type_label(resolve(old_props[name].node, old_models)),
                    breaking=True,
                    message=f"Field '{name}' removed from {path}",
                )
            )
            continue

        old_required = old_props[name].required
        new_required = new_props[name].required
        if old_required != new_required:
            changes.append(
                Change(
                    kind=ChangeKind.FIELD_REQUIRED_CHANGED,
                    endpoint_id=endpoint_id,
                    json_path=field_path,
                    before=old_required,
                    after=new_required,
                    breaking=old_required and not new_required,
                    message=f"Field '{name}' became {'always present' if new_required else 'optional'}",
                )
            )

        changes.extend(
            detect_schema_changes(
                old_props[name].node,
                new_props[name].node,
                old_models,
                new_models,
                endpoint_id,
                field_path,
            )
        )

    return changes
