"""Auth Detector.

Classifies the authentication mechanisms visible in request headers and
token-endpoint traffic. Every rule is evaluated independently so that a
secondary mechanism (e.g. cookies on page loads next to bearer tokens on
API calls) is never dropped.

Only header, cookie and field names are recorded; credential values are
never copied into the result.
"""

import logging
import re
from collections import Counter, defaultdict
from collections.abc import Iterable, Sequence
from dataclasses import dataclass
from typing import Any

import httpx

from apisurface.config import DiscoveryConfig
from apisurface.types import AuthDescriptor, AuthMechanism, AuthScheme, Observation

from .path_templater import split_path
from .schema_inferencer.body_parser import MalformedBodyError, parse_body

logger = logging.getLogger("apisurface.auth")

API_KEY_HEADER_PATTERN = re.compile(r"^x-[a-z0-9-]+-(key|token)$", re.IGNORECASE)
SESSION_COOKIE_PATTERN = re.compile(r"session|sess|sid|auth|token|jwt", re.IGNORECASE)
# Anti-forgery tokens look like credentials but are not
CSRF_PATTERN = re.compile(r"csrf|xsrf", re.IGNORECASE)
TOKEN_SEGMENTS = {"token", "tokens", "access_token"}

SCHEME_ORDER = list(AuthScheme)


@dataclass(frozen=True)
class AuthSignal:
    """One auth mechanism seen on one observation."""

    scheme: AuthScheme
    credential_name: str | None = None
    label: str | None = None
    token_endpoint: str | None = None
    refresh: bool = False

    @property
    def key(self) -> tuple[AuthScheme, str | None, str | None]:
        return (self.scheme, self.credential_name, self.label)


def _cookie_names(header_value: str) -> list[str]:
    names = []
    for pair in header_value.split(";"):
        name = pair.split("=", 1)[0].strip()
        if name:
            names.append(name)
    return names


def _is_token_endpoint(path: str) -> bool:
    for segment in split_path(path):
        lower = segment.lower()
        if "oauth" in lower or lower in TOKEN_SEGMENTS:
            return True
    return False


def _grant_type(observation: Observation) -> Any:
    try:
        grant = observation.parsed_url.params.get("grant_type")
    except httpx.InvalidURL:
        grant = None
    if grant:
        return grant
    try:
        body = parse_body(observation.request_body)
    except MalformedBodyError:
        return None
    if isinstance(body, dict):
        return body.get("grant_type")
    return None


def classify_observation(observation: Observation) -> list[AuthSignal]:
    """List the auth signals carried by a single observation."""
    signals: list[AuthSignal] = []
    headers = observation.headers

    authorization = headers.get("authorization")
    if authorization:
        scheme = authorization.strip().split(" ", 1)[0]
        if scheme.lower() == "bearer":
            signals.append(AuthSignal(AuthScheme.BEARER, credential_name="Authorization"))
        elif scheme:
            signals.append(AuthSignal(AuthScheme.CUSTOM, credential_name="Authorization", label=scheme))

    for cookie_header in headers.get_list("cookie"):
        for name in _cookie_names(cookie_header):
            if SESSION_COOKIE_PATTERN.search(name) and not CSRF_PATTERN.search(name):
                signals.append(AuthSignal(AuthScheme.COOKIE, credential_name=name))

    for name in sorted({name for name, _ in observation.request_headers}, key=str.lower):
        if API_KEY_HEADER_PATTERN.match(name) and not CSRF_PATTERN.search(name):
            signals.append(AuthSignal(AuthScheme.API_KEY, credential_name=name))

    try:
        path = observation.parsed_url.path
    except httpx.InvalidURL:
        path = ""
    if path and _is_token_endpoint(path):
        signals.append(
            AuthSignal(
                AuthScheme.OAUTH2,
                token_endpoint="/" + "/".join(split_path(path)),
                refresh=_grant_type(observation) == "refresh_token",
            )
        )

    return signals


def detect_auth(
    observations: Sequence[Observation],
    config: DiscoveryConfig | None = None,
) -> AuthDescriptor:
    """Classify every authentication mechanism across a set of observations.

    Args:
        observations: All observations of the discovery run.
        config: Discovery configuration.

    Returns:
        AuthDescriptor listing all mechanisms, most frequently observed first.
    """
    config = config or DiscoveryConfig()
    counts: Counter = Counter()
    token_endpoints: dict[tuple, set[str]] = defaultdict(set)
    refresh_seen: set[tuple] = set()

    for observation in observations:
        # Count each mechanism at most once per observation
        seen: set[tuple] = set()
        for signal in classify_observation(observation):
            key = _canonical_key(signal)
            if signal.token_endpoint:
                token_endpoints[key].add(signal.token_endpoint)
            if signal.refresh:
                refresh_seen.add(key)
            seen.add(key)
        counts.update(seen)

    total = len(observations)
    mechanisms: list[AuthMechanism] = []
    for key, count in counts.items():
        scheme, credential_name, label = key
        if scheme == AuthScheme.API_KEY and count < config.api_key_min_ratio * total:
            logger.debug(f"Ignoring {credential_name}: present on {count}/{total} observations")
            continue
        endpoints = sorted(token_endpoints.get(key, ()))
        if len(endpoints) > 1:
            logger.debug(f"Recording token endpoint {endpoints[0]}, ignoring {endpoints[1:]}")
        mechanisms.append(
            AuthMechanism(
                scheme=scheme,
                credential_name=credential_name,
                auth_scheme_label=label,
                token_endpoint=endpoints[0] if endpoints else None,
                refresh_flow_observed=key in refresh_seen,
                observation_count=count,
            )
        )

    mechanisms.sort(
        key=lambda m: (
            -m.observation_count,
            SCHEME_ORDER.index(m.scheme),
            m.credential_name or "",
            m.auth_scheme_label or "",
        )
    )
    primary = mechanisms[0].scheme if mechanisms else AuthScheme.NONE
    logger.debug(f"Detected auth: primary={primary.value}, mechanisms={len(mechanisms)}")
    return AuthDescriptor(primary=primary, mechanisms=mechanisms)


def _canonical_key(signal: AuthSignal) -> tuple:
    # Header names are case-insensitive; keep one spelling per mechanism
    scheme, credential_name, label = signal.key
    if scheme == AuthScheme.API_KEY and credential_name:
        credential_name = credential_name.lower()
    if label:
        label = label.capitalize()
    return (scheme, credential_name, label)


def endpoint_auth_schemes(
    observations: Iterable[Observation],
    descriptor: AuthDescriptor,
) -> list[AuthScheme]:
    """Schemes of the surface-level mechanisms seen on these observations."""
    accepted = {
        (m.scheme, m.credential_name, m.auth_scheme_label) for m in descriptor.mechanisms
    }
    schemes: set[AuthScheme] = set()
    for observation in observations:
        for signal in classify_observation(observation):
            if _canonical_key(signal) in accepted:
                schemes.add(signal.scheme)
    return sorted(schemes, key=SCHEME_ORDER.index)
