"""Endpoint Grouper.

Buckets observations by (method, path template) and aggregates the
per-endpoint query parameters, headers, path parameters and status codes.

Grouping runs in two passes. The first pass templates each observation
against the paths seen so far; the second re-derives every template from
the full path set and re-buckets observations whose template moved. Only
the second pass decides the final grouping, which makes the result
independent of arrival order.
"""

import logging
import re
from collections import defaultdict
from collections.abc import Iterable, Sequence
from dataclasses import dataclass, field
from typing import Any

import httpx

from apisurface.config import DiscoveryConfig
from apisurface.types import (
    HeaderParameter,
    Observation,
    PathParameter,
    PathTemplate,
    QueryParameter,
    SchemaType,
)

from .path_templater import PathKey, PathTemplater, split_path

logger = logging.getLogger("apisurface.grouper")

INTEGER_PATTERN = re.compile(r"^-?\d+$")
NUMBER_PATTERN = re.compile(r"^-?(\d+\.\d*|\.\d+|\d+)([eE][-+]?\d+)?$")
BOOLEAN_VALUES = {"true", "false"}


@dataclass
class EndpointGroup:
    """All observations that share one path template."""

    template: PathTemplate
    observations: list[Observation] = field(default_factory=list)
    paths: list[PathKey] = field(default_factory=list)


@dataclass
class GroupingResult:
    """Output of grouping: endpoint groups plus observations that could not be placed."""

    groups: dict[PathTemplate, EndpointGroup]
    skipped: int = 0
    rebucketed: int = 0


def group_observations(
    observations: Iterable[Observation],
    config: DiscoveryConfig | None = None,
) -> GroupingResult:
    """Group observations into endpoint buckets.

    Args:
        observations: Observations in arrival order.
        config: Discovery configuration.

    Returns:
        GroupingResult keyed by final path template.
    """
    config = config or DiscoveryConfig()
    templater = PathTemplater(config)

    # Pass 1: provisional templates from the history seen so far
    provisional: list[tuple[Observation, str, PathTemplate]] = []
    skipped = 0
    for observation in observations:
        try:
            path = observation.parsed_url.path
        except httpx.InvalidURL as e:
            logger.warning(f"Skipping observation with unparseable URL: {e}")
            skipped += 1
            continue
        template = templater.template_for(observation.method, path)
        provisional.append((observation, path, template))

    # Pass 2: re-derive every template from the complete path set
    groups: dict[PathTemplate, EndpointGroup] = {}
    rebucketed = 0
    for observation, path, first_guess in provisional:
        template = templater.template_for(observation.method, path)
        if template != first_guess:
            rebucketed += 1
            logger.debug(f"Re-bucketed {observation.method.value} {path}: {first_guess.path} -> {template.path}")
        group = groups.get(template)
        if group is None:
            group = groups[template] = EndpointGroup(template=template)
        group.observations.append(observation)
        group.paths.append(split_path(path))

    logger.debug(f"Grouped {len(provisional)} observations into {len(groups)} endpoints")
    return GroupingResult(groups=groups, skipped=skipped, rebucketed=rebucketed)


# ============================================================================
# Endpoint identifiers
# ============================================================================


def _slug(text: str) -> str:
    return re.sub(r"[^a-z0-9]+", "-", text.lower()).strip("-")


def endpoint_slug(template: PathTemplate) -> str:
    """Slug for a template, e.g. `get-users-{user_id}`."""
    parts = [template.method.value.lower()]
    for segment in template.segments:
        if segment.param:
            parts.append(f"{{{segment.value}}}")
        else:
            literal = _slug(segment.value)
            if literal:
                parts.append(literal)
    if len(parts) == 1:
        parts.append("root")
    return "-".join(parts)


def assign_endpoint_ids(templates: Iterable[PathTemplate]) -> dict[PathTemplate, str]:
    """Assign unique, stable ids to templates.

    Templates are visited in (method, path) order so that the numeric suffix
    used to break slug collisions is the same on every run.
    """
    ids: dict[PathTemplate, str] = {}
    used: set[str] = set()
    for template in sorted(set(templates), key=lambda t: (t.method.value, t.path)):
        base = endpoint_slug(template)
        candidate = base
        suffix = 2
        while candidate in used:
            candidate = f"{base}-{suffix}"
            suffix += 1
        used.add(candidate)
        ids[template] = candidate
    return ids


# ============================================================================
# Aggregation
# ============================================================================


def infer_scalar_type(values: Iterable[str]) -> SchemaType:
    """Most specific scalar type satisfied by every string value.

    integer is narrower than number; booleans stand alone. Free text makes
    the parameter a string, while a mix of only booleans and numbers is a
    genuine conflict and becomes a union.
    """
    kinds: set[SchemaType] = set()
    for value in values:
        if INTEGER_PATTERN.match(value):
            kinds.add(SchemaType.INTEGER)
        elif NUMBER_PATTERN.match(value):
            kinds.add(SchemaType.NUMBER)
        elif value.lower() in BOOLEAN_VALUES:
            kinds.add(SchemaType.BOOLEAN)
        else:
            kinds.add(SchemaType.STRING)

    if not kinds or SchemaType.STRING in kinds:
        return SchemaType.STRING
    if kinds == {SchemaType.INTEGER}:
        return SchemaType.INTEGER
    if kinds <= {SchemaType.INTEGER, SchemaType.NUMBER}:
        return SchemaType.NUMBER
    if kinds == {SchemaType.BOOLEAN}:
        return SchemaType.BOOLEAN
    return SchemaType.UNION


def _typed_value(value: str, schema_type: SchemaType) -> Any:
    if schema_type == SchemaType.INTEGER:
        return int(value)
    if schema_type == SchemaType.NUMBER:
        return float(value)
    if schema_type == SchemaType.BOOLEAN:
        return value.lower() == "true"
    return value


def aggregate_query_params(observations: Sequence[Observation]) -> list[QueryParameter]:
    """Aggregate query parameters across an endpoint's observations.

    A parameter is required only if every observation carries it, and gets a
    default only if it carries the same single value every time.
    """
    per_observation: list[dict[str, list[str]]] = []
    for observation in observations:
        seen: dict[str, list[str]] = defaultdict(list)
        try:
            items = observation.parsed_url.params.multi_items()
        except httpx.InvalidURL:
            items = []
        for name, value in items:
            seen[name].append(value)
        per_observation.append(seen)

    names = sorted({name for seen in per_observation for name in seen})
    params: list[QueryParameter] = []
    for name in names:
        occurrences = [seen[name] for seen in per_observation if name in seen]
        values = [v for occurrence in occurrences for v in occurrence]
        schema_type = infer_scalar_type(values)
        required = len(occurrences) == len(per_observation)
        repeated = any(len(occurrence) > 1 for occurrence in occurrences)

        default = None
        if required and not repeated and len(set(values)) == 1:
            default = _typed_value(values[0], schema_type)

        params.append(
            QueryParameter(
                name=name,
                type=schema_type,
                required=required,
                repeated=repeated,
                default=default,
            )
        )
    return params


def aggregate_headers(observations: Sequence[Observation]) -> list[HeaderParameter]:
    """Collect request header names; values are never retained."""
    per_observation = [
        {name.lower() for name, _ in observation.request_headers if not name.startswith(":")}
        for observation in observations
    ]
    names = sorted(set().union(*per_observation)) if per_observation else []
    return [
        HeaderParameter(
            name=name,
            required=all(name in seen for seen in per_observation),
        )
        for name in names
    ]


def aggregate_path_params(group: EndpointGroup) -> list[PathParameter]:
    """Describe each template parameter with the type of its observed values."""
    params: list[PathParameter] = []
    for position, segment in enumerate(group.template.segments):
        if not segment.param:
            continue
        values = {path[position] for path in group.paths}
        schema_type = SchemaType.INTEGER if all(v.isdigit() for v in values) else SchemaType.STRING
        params.append(PathParameter(name=segment.value, position=position, type=schema_type))
    return params


def aggregate_status_codes(observations: Sequence[Observation]) -> list[int]:
    return sorted({observation.status_code for observation in observations})
