"""Core type definitions for the API surface engine.

All types use Pydantic so that surfaces can be saved, reloaded and diffed
across discovery runs.
"""

from datetime import datetime
from enum import Enum
from typing import Any

import httpx
from pydantic import BaseModel, ConfigDict, Field, field_validator


# ============================================================================
# Enums
# ============================================================================


class HttpMethod(str, Enum):
    """Supported HTTP methods."""

    GET = "GET"
    POST = "POST"
    PUT = "PUT"
    PATCH = "PATCH"
    DELETE = "DELETE"
    HEAD = "HEAD"
    OPTIONS = "OPTIONS"


class SchemaType(str, Enum):
    """Base type tag of a schema node."""

    NULL = "null"
    BOOLEAN = "boolean"
    INTEGER = "integer"
    NUMBER = "number"
    STRING = "string"
    ARRAY = "array"
    OBJECT = "object"
    UNION = "union"
    REF = "ref"


class StringFormat(str, Enum):
    """Semantic formats inferred for string leaves."""

    DATE_TIME = "date-time"
    EMAIL = "email"
    URI = "uri"
    ENUM = "enum"


class AuthScheme(str, Enum):
    """Authentication mechanisms the detector can classify."""

    NONE = "none"
    BEARER = "bearer"
    API_KEY = "api_key"
    COOKIE = "cookie"
    OAUTH2 = "oauth2"
    CUSTOM = "custom"


class PaginationStyle(str, Enum):
    """Pagination styles recognized on list endpoints."""

    PAGE = "page"
    OFFSET = "offset"
    CURSOR = "cursor"


class SourceKind(str, Enum):
    """Where the observations of a surface came from."""

    HAR = "har"
    CRAWL = "crawl"
    OBSERVATIONS = "observations"


class ChangeKind(str, Enum):
    """Types of changes detected between two surfaces."""

    ENDPOINT_ADDED = "endpoint-added"
    ENDPOINT_REMOVED = "endpoint-removed"
    FIELD_ADDED = "field-added"
    FIELD_REMOVED = "field-removed"
    TYPE_CHANGED = "type-changed"
    PARAM_ADDED_OPTIONAL = "param-added-optional"
    PARAM_ADDED_REQUIRED = "param-added-required"
    METHOD_CHANGED = "method-changed"
    PATH_CHANGED = "path-changed"
    STATUS_CODES_CHANGED = "status-codes-changed"
    PARAM_REQUIRED_CHANGED = "param-required-changed"
    PARAM_REMOVED = "param-removed"
    NULLABILITY_CHANGED = "nullability-changed"
    FIELD_REQUIRED_CHANGED = "field-required-changed"


# ============================================================================
# Observation Types
# ============================================================================


HeaderPairs = tuple[tuple[str, str], ...]


def _coerce_header_pairs(value: Any) -> Any:
    """Accept a mapping or a list of pairs for header fields."""
    if isinstance(value, dict):
        return tuple((str(k), str(v)) for k, v in value.items())
    if isinstance(value, httpx.Headers):
        return tuple(value.multi_items())
    return value


class Body(BaseModel):
    """A raw request or response body with its declared content type."""

    model_config = ConfigDict(frozen=True)

    content: bytes = b""
    content_type: str | None = None
    truncated: bool = False


class Observation(BaseModel):
    """One captured request/response exchange."""

    model_config = ConfigDict(frozen=True)

    method: HttpMethod
    url: str
    request_headers: HeaderPairs = ()
    request_body: Body | None = None
    status_code: int
    response_headers: HeaderPairs = ()
    response_body: Body | None = None

    @field_validator("method", mode="before")
    @classmethod
    def _upper_method(cls, value: Any) -> Any:
        if isinstance(value, str):
            return value.upper()
        return value

    @field_validator("request_headers", "response_headers", mode="before")
    @classmethod
    def _header_pairs(cls, value: Any) -> Any:
        return _coerce_header_pairs(value)

    @property
    def headers(self) -> httpx.Headers:
        """Case-insensitive view of the request headers."""
        # Captured values are not guaranteed to be ASCII
        return httpx.Headers(list(self.request_headers), encoding="utf-8")

    @property
    def parsed_url(self) -> httpx.URL:
        return httpx.URL(self.url)


# ============================================================================
# Path Template Types
# ============================================================================


class PathSegment(BaseModel):
    """One template segment: a literal, or a named parameter when `param` is set."""

    model_config = ConfigDict(frozen=True)

    value: str
    param: bool = False


class PathTemplate(BaseModel):
    """A method plus an ordered list of literal/parameter segments."""

    model_config = ConfigDict(frozen=True)

    method: HttpMethod
    segments: tuple[PathSegment, ...] = ()

    @property
    def path(self) -> str:
        """Render the template, e.g. `/users/{user_id}`."""
        if not self.segments:
            return "/"
        parts = [f"{{{s.value}}}" if s.param else s.value for s in self.segments]
        return "/" + "/".join(parts)

    @property
    def parameter_names(self) -> list[str]:
        return [s.value for s in self.segments if s.param]

    @property
    def shape(self) -> tuple[str | None, ...]:
        """Segments with parameter names elided, used for grouping keys."""
        return tuple(None if s.param else s.value for s in self.segments)


# ============================================================================
# Schema Types
# ============================================================================


class PropertySchema(BaseModel):
    """An object property: its schema plus whether every sample carried it."""

    node: "SchemaNode"
    required: bool = True


class SchemaNode(BaseModel):
    """Recursive inferred type of one value.

    `nullable` is orthogonal to the type tag and to the `required` flag of
    the property holding the node.
    """

    type: SchemaType
    nullable: bool = False
    format: StringFormat | None = None
    enum: list[str] | None = None
    items: "SchemaNode | None" = None
    properties: dict[str, PropertySchema] | None = None
    variants: list["SchemaNode"] | None = None
    ref: str | None = None


PropertySchema.model_rebuild()
SchemaNode.model_rebuild()


# ============================================================================
# Endpoint Types
# ============================================================================


class PathParameter(BaseModel):
    """A path parameter inferred by the templater."""

    name: str
    position: int
    type: SchemaType = SchemaType.STRING


class QueryParameter(BaseModel):
    """An aggregated query string parameter."""

    name: str
    type: SchemaType = SchemaType.STRING
    required: bool = False
    repeated: bool = False
    default: Any | None = None


class HeaderParameter(BaseModel):
    """A request header name seen on an endpoint. Values are never kept."""

    name: str
    required: bool = False


class PaginationDescriptor(BaseModel):
    """How a list endpoint pages through results."""

    style: PaginationStyle
    params: list[str] = Field(default_factory=list)
    size_param: str | None = None
    next_field: str | None = None


class Endpoint(BaseModel):
    """A method + path-template bucket aggregating its observations."""

    id: str
    method: HttpMethod
    path: str
    path_params: list[PathParameter] = Field(default_factory=list)
    query_params: list[QueryParameter] = Field(default_factory=list)
    request_headers: list[HeaderParameter] = Field(default_factory=list)
    request_schema: SchemaNode | None = None
    response_schema: SchemaNode | None = None
    error_schema: SchemaNode | None = None
    status_codes: list[int] = Field(default_factory=list)
    pagination: PaginationDescriptor | None = None
    auth_schemes: list[AuthScheme] = Field(default_factory=list)
    observation_count: int = 0
    malformed_sample_count: int = 0
    notes: list[str] = Field(default_factory=list)


# ============================================================================
# Auth Types
# ============================================================================


class AuthMechanism(BaseModel):
    """One observed authentication mechanism."""

    scheme: AuthScheme
    credential_name: str | None = Field(
        default=None,
        description="Header, cookie or field carrying the credential",
    )
    auth_scheme_label: str | None = Field(
        default=None,
        description="Authorization scheme for custom mechanisms (e.g. Basic)",
    )
    token_endpoint: str | None = None
    refresh_flow_observed: bool = False
    observation_count: int = 0


class AuthDescriptor(BaseModel):
    """Every authentication mechanism observed across a surface."""

    primary: AuthScheme = AuthScheme.NONE
    mechanisms: list[AuthMechanism] = Field(default_factory=list)


# ============================================================================
# Surface Types
# ============================================================================


SURFACE_FORMAT_VERSION = 1


class SurfaceMetadata(BaseModel):
    """Provenance of one discovery run."""

    source_kind: SourceKind
    source_id: str
    generated_at: datetime
    endpoint_count: int
    observation_count: int = 0
    skipped_observation_count: int = 0


class Surface(BaseModel):
    """The complete snapshot of inferred endpoints, models and auth."""

    model_config = ConfigDict(frozen=True)

    format_version: int = SURFACE_FORMAT_VERSION
    metadata: SurfaceMetadata
    auth: AuthDescriptor = Field(default_factory=AuthDescriptor)
    endpoints: list[Endpoint] = Field(default_factory=list)
    models: dict[str, SchemaNode] = Field(default_factory=dict)

    def endpoint(self, endpoint_id: str) -> Endpoint | None:
        for endpoint in self.endpoints:
            if endpoint.id == endpoint_id:
                return endpoint
        return None


# ============================================================================
# Diff Types
# ============================================================================


class Change(BaseModel):
    """A single difference between two surfaces."""

    kind: ChangeKind
    endpoint_id: str
    json_path: str | None = Field(
        default=None,
        description="Location of the change inside the endpoint",
    )
    before: Any = None
    after: Any = None
    breaking: bool
    message: str = ""


class SurfaceDiff(BaseModel):
    """Ordered change list between an old and a new surface."""

    changes: list[Change] = Field(default_factory=list)
    has_breaking_changes: bool = False
    changes_by_kind: dict[ChangeKind, int] = Field(default_factory=dict)
