"""Shared model extraction.

Hoists object shapes that appear on two or more endpoints into the
surface's model mapping and replaces every occurrence with a reference.
"""

import json
import logging
import re
from collections import defaultdict
from dataclasses import dataclass
from typing import Any, Callable

from apisurface.types import Endpoint, SchemaNode, SchemaType, StringFormat

from ..path_templater import singularize

logger = logging.getLogger("apisurface.models")

SCHEMA_FIELDS = ("request_schema", "response_schema", "error_schema")


@dataclass
class _Occurrence:
    endpoint_id: str
    location: str
    hint: str | None
    node: SchemaNode


def shape_signature(node: SchemaNode) -> str:
    """Structural signature of an object node, independent of field order.

    The node's own nullability is left out: it belongs to the reference,
    not to the shared model.
    """
    return json.dumps(_shape(node, include_nullable=False), sort_keys=True)


def _shape(node: SchemaNode, include_nullable: bool = True) -> dict[str, Any]:
    shape: dict[str, Any] = {"type": node.type.value}
    if include_nullable and node.nullable:
        shape["nullable"] = True
    if node.ref:
        shape["ref"] = node.ref
    if node.items is not None:
        shape["items"] = _shape(node.items)
    if node.properties is not None:
        shape["properties"] = {
            name: [prop.required, _shape(prop.node)] for name, prop in node.properties.items()
        }
    if node.variants is not None:
        shape["variants"] = [_shape(v) for v in node.variants]
    return shape


def _is_candidate(node: SchemaNode) -> bool:
    return node.type == SchemaType.OBJECT and bool(node.properties)


def _walk(
    node: SchemaNode,
    location: str,
    hint: str | None,
    visit: Callable[[SchemaNode, str, str | None], None],
) -> None:
    visit(node, location, hint)
    if node.properties:
        for name, prop in node.properties.items():
            _walk(prop.node, f"{location}.{name}", name, visit)
    if node.items is not None:
        _walk(node.items, f"{location}[]", hint, visit)
    if node.variants:
        for variant in node.variants:
            _walk(variant, f"{location}|{variant.type.value}", hint, visit)


def _root_hint(endpoint: Endpoint) -> str | None:
    literals = [s for s in endpoint.path.split("/") if s and not s.startswith("{")]
    return literals[-1] if literals else None


def model_name(hint: str | None, taken: set[str]) -> str:
    """PascalCase singular name for a model, unique within `taken`."""
    words = re.split(r"[^0-9a-zA-Z]+", singularize(hint)) if hint else []
    # camelCase hints become separate words
    parts = [p for w in words for p in re.findall(r"[A-Z]?[a-z0-9]+|[A-Z]+(?![a-z])", w)]
    base = "".join(p[:1].upper() + p[1:] for p in parts) or "Model"
    if base[0].isdigit():
        base = f"Model{base}"
    name = base
    suffix = 2
    while name in taken:
        name = f"{base}{suffix}"
        suffix += 1
    return name


def merge_annotations(nodes: list[SchemaNode]) -> SchemaNode:
    """Combine structurally identical nodes into one that admits all of them.

    Signatures ignore string annotations, so occurrences of one model can
    disagree on them: enum values are united, and any other format survives
    only when every occurrence carries it.
    """
    first = nodes[0]
    update: dict[str, Any] = {}

    if first.type == SchemaType.STRING:
        formats = {node.format for node in nodes}
        if formats == {StringFormat.ENUM}:
            update["enum"] = sorted({value for node in nodes for value in node.enum or []})
        elif len(formats) > 1:
            update["format"] = None
            update["enum"] = None

    if first.properties:
        update["properties"] = {
            name: prop.model_copy(
                update={"node": merge_annotations([node.properties[name].node for node in nodes])}
            )
            for name, prop in first.properties.items()
        }
    if first.items is not None:
        update["items"] = merge_annotations([node.items for node in nodes])
    if first.variants:
        update["variants"] = [
            merge_annotations(list(variants)) for variants in zip(*(node.variants for node in nodes))
        ]
    return first.model_copy(update=update) if update else first


def extract_shared_models(
    endpoints: list[Endpoint],
) -> tuple[list[Endpoint], dict[str, SchemaNode]]:
    """Hoist object shapes shared by two or more endpoints.

    Args:
        endpoints: Endpoints with fully inferred schemas, in id order.

    Returns:
        The endpoints with shared shapes replaced by references, and the
        model mapping keyed by generated name.
    """
    occurrences: dict[str, list[_Occurrence]] = defaultdict(list)

    for endpoint in endpoints:
        for field_name in SCHEMA_FIELDS:
            root: SchemaNode | None = getattr(endpoint, field_name)
            if root is None:
                continue

            def visit(node: SchemaNode, location: str, hint: str | None, _endpoint=endpoint) -> None:
                if _is_candidate(node):
                    occurrences[shape_signature(node)].append(
                        _Occurrence(_endpoint.id, location, hint, node)
                    )

            _walk(root, field_name, _root_hint(endpoint), visit)

    shared = {
        signature: sorted(found, key=lambda o: (o.endpoint_id, o.location))
        for signature, found in occurrences.items()
        if len({o.endpoint_id for o in found}) >= 2
    }
    if not shared:
        return endpoints, {}

    # Name models in order of their first occurrence
    names: dict[str, str] = {}
    for signature, found in sorted(
        shared.items(), key=lambda item: (item[1][0].endpoint_id, item[1][0].location)
    ):
        names[signature] = model_name(found[0].hint, set(names.values()))

    models: dict[str, SchemaNode] = {}
    for signature, name in names.items():
        merged = merge_annotations([o.node for o in shared[signature]])
        models[name] = _rewrite(merged.model_copy(update={"nullable": False}), names, keep_root=True)

    rewritten = [
        endpoint.model_copy(
            update={
                field_name: _rewrite(getattr(endpoint, field_name), names)
                for field_name in SCHEMA_FIELDS
                if getattr(endpoint, field_name) is not None
            }
        )
        for endpoint in endpoints
    ]

    logger.debug(f"Extracted {len(models)} shared models: {sorted(models)}")
    return rewritten, dict(sorted(models.items()))


def _rewrite(node: SchemaNode, names: dict[str, str], keep_root: bool = False) -> SchemaNode:
    if not keep_root and _is_candidate(node):
        name = names.get(shape_signature(node))
        if name is not None:
            return SchemaNode(type=SchemaType.REF, ref=name, nullable=node.nullable)

    update: dict[str, Any] = {}
    if node.properties:
        update["properties"] = {
            key: prop.model_copy(update={"node": _rewrite(prop.node, names)})
            for key, prop in node.properties.items()
        }
    if node.items is not None:
        update["items"] = _rewrite(node.items, names)
    if node.variants:
        update["variants"] = [_rewrite(v, names) for v in node.variants]
    return node.model_copy(update=update) if update else node
