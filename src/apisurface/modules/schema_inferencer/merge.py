"""Structural schema inference and merging.

Samples are first turned into InferredShape trees, left-folded pairwise
with merge_shapes, and only then converted to public SchemaNode values.
Shapes keep the observed string values so format and enum inference can
run once the whole sample set is known.
"""

from collections import Counter
from dataclasses import dataclass, field, replace
from typing import Any

from apisurface.config import DiscoveryConfig
from apisurface.types import PropertySchema, SchemaNode, SchemaType

from .formats import infer_string_annotations

# Sort order for union variants
TYPE_ORDER = {
    SchemaType.NULL: 0,
    SchemaType.BOOLEAN: 1,
    SchemaType.INTEGER: 2,
    SchemaType.NUMBER: 3,
    SchemaType.STRING: 4,
    SchemaType.ARRAY: 5,
    SchemaType.OBJECT: 6,
}

NUMERIC_TYPES = {SchemaType.INTEGER, SchemaType.NUMBER}


@dataclass
class InferredProperty:
    """An object property with its presence flag."""

    shape: "InferredShape"
    required: bool = True


@dataclass
class InferredShape:
    """Intermediate representation of an inferred value type."""

    type: SchemaType
    nullable: bool = False
    values: Counter = field(default_factory=Counter)
    items: "InferredShape | None" = None
    properties: dict[str, InferredProperty] = field(default_factory=dict)
    variants: list["InferredShape"] = field(default_factory=list)


def shape_of(value: Any) -> InferredShape:
    """Infer the shape of a single JSON-like value."""
    if value is None:
        return InferredShape(type=SchemaType.NULL)

    # bool must be checked before int
    if isinstance(value, bool):
        return InferredShape(type=SchemaType.BOOLEAN)

    if isinstance(value, int):
        return InferredShape(type=SchemaType.INTEGER)

    if isinstance(value, float):
        return InferredShape(type=SchemaType.NUMBER)

    if isinstance(value, str):
        return InferredShape(type=SchemaType.STRING, values=Counter([value]))

    if isinstance(value, list):
        items: InferredShape | None = None
        for item in value:
            item_shape = shape_of(item)
            items = item_shape if items is None else merge_shapes(items, item_shape)
        return InferredShape(type=SchemaType.ARRAY, items=items)

    if isinstance(value, dict):
        return InferredShape(
            type=SchemaType.OBJECT,
            properties={str(k): InferredProperty(shape=shape_of(v)) for k, v in value.items()},
        )

    # Anything else is treated as its string form
    return InferredShape(type=SchemaType.STRING, values=Counter([str(value)]))


def _compatible(left: SchemaType, right: SchemaType) -> bool:
    return left == right or {left, right} <= NUMERIC_TYPES


def merge_shapes(left: InferredShape, right: InferredShape) -> InferredShape:
    """Merge two shapes into one that describes both.

    Null contributes nullability rather than a type. Disagreeing non-null
    types become a union instead of one side being dropped; integer and
    number widen to number.
    """
    if left.type == SchemaType.NULL and right.type == SchemaType.NULL:
        return InferredShape(type=SchemaType.NULL)
    if left.type == SchemaType.NULL:
        return replace(right, nullable=True)
    if right.type == SchemaType.NULL:
        return replace(left, nullable=True)

    nullable = left.nullable or right.nullable

    if (
        left.type == SchemaType.UNION
        or right.type == SchemaType.UNION
        or not _compatible(left.type, right.type)
    ):
        return _merge_union(left, right, nullable)

    if left.type in NUMERIC_TYPES and left.type != right.type:
        return InferredShape(type=SchemaType.NUMBER, nullable=nullable)

    if left.type == SchemaType.OBJECT:
        return InferredShape(
            type=SchemaType.OBJECT,
            nullable=nullable,
            properties=_merge_properties(left.properties, right.properties),
        )

    if left.type == SchemaType.ARRAY:
        if left.items is None or right.items is None:
            items = left.items or right.items
        else:
            items = merge_shapes(left.items, right.items)
        return InferredShape(type=SchemaType.ARRAY, nullable=nullable, items=items)

    if left.type == SchemaType.STRING:
        return InferredShape(
            type=SchemaType.STRING,
            nullable=nullable,
            values=left.values + right.values,
        )

    return InferredShape(type=left.type, nullable=nullable)


def _merge_properties(
    left: dict[str, InferredProperty],
    right: dict[str, InferredProperty],
) -> dict[str, InferredProperty]:
    merged: dict[str, InferredProperty] = {}
    for name in left.keys() | right.keys():
        if name in left and name in right:
            merged[name] = InferredProperty(
                shape=merge_shapes(left[name].shape, right[name].shape),
                required=left[name].required and right[name].required,
            )
        else:
            # Missing from one side: optional from now on
            only = left.get(name) or right[name]
            merged[name] = InferredProperty(shape=only.shape, required=False)
    return merged


def _merge_union(left: InferredShape, right: InferredShape, nullable: bool) -> InferredShape:
    variants: list[InferredShape] = []
    for shape in _variants_of(left) + _variants_of(right):
        shape = replace(shape, nullable=False)
        for index, existing in enumerate(variants):
            if _compatible(existing.type, shape.type):
                variants[index] = merge_shapes(existing, shape)
                break
        else:
            variants.append(shape)

    if len(variants) == 1:
        return replace(variants[0], nullable=nullable)

    variants.sort(key=lambda v: TYPE_ORDER.get(v.type, len(TYPE_ORDER)))
    return InferredShape(type=SchemaType.UNION, nullable=nullable, variants=variants)


def _variants_of(shape: InferredShape) -> list[InferredShape]:
    if shape.type == SchemaType.UNION:
        return list(shape.variants)
    return [shape]


def merge_samples(samples: list[Any]) -> InferredShape | None:
    """Left-fold a list of decoded samples into one shape."""
    merged: InferredShape | None = None
    for sample in samples:
        shape = shape_of(sample)
        merged = shape if merged is None else merge_shapes(merged, shape)
    return merged


def to_schema_node(
    shape: InferredShape,
    config: DiscoveryConfig | None = None,
    always_present: bool = True,
) -> SchemaNode:
    """Convert a merged shape into a SchemaNode, applying semantic inference.

    Args:
        shape: Merged shape.
        config: Discovery configuration.
        always_present: Whether every contributing sample carried this value.
            Enum inference only applies to values that were always present.
    """
    config = config or DiscoveryConfig()

    if shape.type == SchemaType.STRING:
        string_format, enum = infer_string_annotations(
            shape.values,
            config,
            always_present=always_present and not shape.nullable,
        )
        return SchemaNode(type=SchemaType.STRING, nullable=shape.nullable, format=string_format, enum=enum)

    if shape.type == SchemaType.OBJECT:
        properties = {
            name: PropertySchema(
                node=to_schema_node(prop.shape, config, always_present and prop.required and not shape.nullable),
                required=prop.required,
            )
            for name, prop in sorted(shape.properties.items())
        }
        return SchemaNode(type=SchemaType.OBJECT, nullable=shape.nullable, properties=properties)

    if shape.type == SchemaType.ARRAY:
        items = None
        if shape.items is not None:
            items = to_schema_node(shape.items, config, always_present and not shape.nullable)
        return SchemaNode(type=SchemaType.ARRAY, nullable=shape.nullable, items=items)

    if shape.type == SchemaType.UNION:
        variants = [to_schema_node(v, config, always_present=False) for v in shape.variants]
        return SchemaNode(type=SchemaType.UNION, nullable=shape.nullable, variants=variants)

    return SchemaNode(type=shape.type, nullable=shape.nullable)
