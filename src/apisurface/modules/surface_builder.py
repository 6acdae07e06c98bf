"""Surface Builder.

Assembles grouping, schema inference and auth detection into one Surface.
"""

import logging
from collections.abc import Iterable
from datetime import datetime, timezone

from apisurface.config import DiscoveryConfig
from apisurface.types import (
    AuthDescriptor,
    Endpoint,
    Observation,
    PaginationDescriptor,
    PaginationStyle,
    QueryParameter,
    SchemaNode,
    SchemaType,
    SourceKind,
    Surface,
    SurfaceMetadata,
)

from .auth_detector import detect_auth, endpoint_auth_schemes
from .endpoint_grouper import (
    EndpointGroup,
    aggregate_headers,
    aggregate_path_params,
    aggregate_query_params,
    aggregate_status_codes,
    assign_endpoint_ids,
    group_observations,
)
from .schema_inferencer import extract_shared_models, infer_endpoint_schemas

logger = logging.getLogger("apisurface.builder")

CURSOR_PARAMS = ("cursor", "after", "before", "page_token", "pageToken", "next_token", "starting_after")
CURSOR_FIELDS = ("next_cursor", "nextCursor", "next_page_token", "nextPageToken", "cursor")
OFFSET_PARAMS = ("offset", "skip")
PAGE_PARAMS = ("page", "page_number", "pageNumber")
SIZE_PARAMS = ("limit", "per_page", "page_size", "pageSize", "size", "count")


def infer_pagination(
    query_params: list[QueryParameter],
    response_schema: SchemaNode | None,
) -> PaginationDescriptor | None:
    """Recognize cursor, offset or page pagination from names alone."""
    names = {p.name for p in query_params}
    fields = set(response_schema.properties or {}) if response_schema is not None else set()
    size_param = next((p for p in SIZE_PARAMS if p in names), None)

    cursor_params = [p for p in CURSOR_PARAMS if p in names]
    next_field = next((f for f in CURSOR_FIELDS if f in fields), None)
    if cursor_params or next_field:
        return PaginationDescriptor(
            style=PaginationStyle.CURSOR,
            params=cursor_params,
            size_param=size_param,
            next_field=next_field,
        )

    offset_params = [p for p in OFFSET_PARAMS if p in names]
    if offset_params:
        return PaginationDescriptor(style=PaginationStyle.OFFSET, params=offset_params, size_param=size_param)

    page_params = [p for p in PAGE_PARAMS if p in names]
    if page_params:
        return PaginationDescriptor(style=PaginationStyle.PAGE, params=page_params, size_param=size_param)

    return None


def build_endpoint(
    endpoint_id: str,
    group: EndpointGroup,
    auth: AuthDescriptor,
    config: DiscoveryConfig,
) -> Endpoint:
    """Aggregate one endpoint group into an Endpoint record."""
    observations = group.observations
    schemas = infer_endpoint_schemas(observations, config)
    query_params = aggregate_query_params(observations)

    return Endpoint(
        id=endpoint_id,
        method=group.template.method,
        path=group.template.path,
        path_params=aggregate_path_params(group),
        query_params=query_params,
        request_headers=aggregate_headers(observations),
        request_schema=schemas.request_schema,
        response_schema=schemas.response_schema,
        error_schema=schemas.error_schema,
        status_codes=aggregate_status_codes(observations),
        pagination=infer_pagination(query_params, _object_root(schemas.response_schema)),
        auth_schemes=endpoint_auth_schemes(observations, auth),
        observation_count=len(observations),
        malformed_sample_count=schemas.malformed_sample_count,
        notes=schemas.notes,
    )


def _object_root(node: SchemaNode | None) -> SchemaNode | None:
    if node is not None and node.type == SchemaType.OBJECT:
        return node
    return None


def build_surface(
    observations: Iterable[Observation],
    *,
    source_kind: SourceKind = SourceKind.OBSERVATIONS,
    source_id: str = "",
    config: DiscoveryConfig | None = None,
    generated_at: datetime | None = None,
) -> Surface:
    """Build a Surface from a finite set of observations.

    Args:
        observations: Captured observations, in any order.
        source_kind: Where the observations came from.
        source_id: Identifier of the source (file name, base URL, ...).
        config: Discovery configuration.
        generated_at: Generation timestamp; defaults to now (UTC).

    Returns:
        The assembled, immutable Surface.
    """
    config = config or DiscoveryConfig()
    observations = list(observations)

    grouping = group_observations(observations, config)
    if grouping.rebucketed:
        logger.debug(f"Second pass moved {grouping.rebucketed} observations to a different template")

    auth = detect_auth(observations, config)
    ids = assign_endpoint_ids(grouping.groups)

    endpoints = sorted(
        (build_endpoint(ids[template], group, auth, config) for template, group in grouping.groups.items()),
        key=lambda e: e.id,
    )
    endpoints, models = extract_shared_models(endpoints)

    metadata = SurfaceMetadata(
        source_kind=source_kind,
        source_id=source_id,
        generated_at=generated_at or datetime.now(timezone.utc),
        endpoint_count=len(endpoints),
        observation_count=len(observations),
        skipped_observation_count=grouping.skipped,
    )
    return Surface(metadata=metadata, auth=auth, endpoints=endpoints, models=models)
