"""Schema Inferencer Package - Multi-sample schema merging.

Merges every request/response body attached to an endpoint into one
inferred schema per role, with required/nullable/union tracking, format
and enum inference, and shared-model extraction across endpoints.
"""

import logging
from collections.abc import Sequence
from dataclasses import dataclass, field
from typing import Any

from apisurface.config import DiscoveryConfig
from apisurface.types import Observation, SchemaNode

from .body_parser import NO_SAMPLE, MalformedBodyError, parse_body
from .merge import merge_samples, to_schema_node
from .shared_models import extract_shared_models

logger = logging.getLogger("apisurface.inferencer")


@dataclass
class EndpointSchemas:
    """Merged schemas for one endpoint plus notes on excluded samples."""

    request_schema: SchemaNode | None = None
    response_schema: SchemaNode | None = None
    error_schema: SchemaNode | None = None
    malformed_sample_count: int = 0
    notes: list[str] = field(default_factory=list)


def infer_schema(samples: Sequence[Any], config: DiscoveryConfig | None = None) -> SchemaNode | None:
    """Merge decoded samples into one schema node.

    Args:
        samples: Decoded JSON-like values.
        config: Discovery configuration.

    Returns:
        The merged schema, or None when there are no samples.
    """
    shape = merge_samples(list(samples))
    if shape is None:
        return None
    return to_schema_node(shape, config or DiscoveryConfig())


def infer_endpoint_schemas(
    observations: Sequence[Observation],
    config: DiscoveryConfig | None = None,
) -> EndpointSchemas:
    """Infer request, success-response and error-response schemas.

    Bodies that cannot be decoded for their declared content type are left
    out of the merge and reported as notes; they never abort inference.

    Args:
        observations: All observations of one endpoint.
        config: Discovery configuration.

    Returns:
        EndpointSchemas for the endpoint.
    """
    config = config or DiscoveryConfig()
    requests: list[Any] = []
    responses: list[Any] = []
    errors: list[Any] = []
    notes: set[str] = set()
    malformed = 0

    for observation in observations:
        target = errors if observation.status_code >= 400 else responses
        for role, body, bucket in (
            ("request", observation.request_body, requests),
            ("response", observation.response_body, target),
        ):
            try:
                value = parse_body(body)
            except MalformedBodyError as e:
                malformed += 1
                notes.add(f"{role} body excluded from schema: {e}")
                logger.debug(f"Excluded {role} body of {observation.method.value} {observation.url}: {e}")
                continue
            if value is not NO_SAMPLE:
                bucket.append(value)

    return EndpointSchemas(
        request_schema=infer_schema(requests, config),
        response_schema=infer_schema(responses, config),
        error_schema=infer_schema(errors, config),
        malformed_sample_count=malformed,
        notes=sorted(notes),
    )


__all__ = [
    "EndpointSchemas",
    "MalformedBodyError",
    "extract_shared_models",
    "infer_endpoint_schemas",
    "infer_schema",
    "parse_body",
]
