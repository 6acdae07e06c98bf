"""Path Templater.

Turns concrete URL paths into parameterized templates.

Segment classification, first match wins:
    1. all digits                       -> parameter
    2. UUID shaped                      -> parameter
    3. long (> 20) alphanumeric token   -> parameter
    4. varies across sibling paths      -> parameter (slugs)
    5. otherwise                        -> literal

Rule 4 promotes a position as soon as two sibling paths disagree there,
whether the other value is a literal or an id matched by rules 1-3:
`/items/123` next to `/items/featured` collapses into
`/items/{item_id}`.

Variation is only evidence when the siblings share a literal somewhere
else in the path, so `/users` and `/orders` stay apart. A segment directly
followed by a parameter (`users` in `/api/users/1`) and a leaf that
prefixes a longer observed path (`/api/users` next to `/api/users/1`)
are collection names and never promoted. Leaf collections without
observed children are indistinguishable from slugs: `/api/orders` and
`/api/tickets` alone become `/api/{api_id}`.
"""

import logging
import re
from collections import defaultdict
from collections.abc import Iterable

from apisurface.config import DiscoveryConfig
from apisurface.types import HttpMethod, PathSegment, PathTemplate

logger = logging.getLogger("apisurface.templater")

UUID_PATTERN = re.compile(
    r"^[0-9a-f]{8}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{12}$",
    re.IGNORECASE,
)
ALNUM_PATTERN = re.compile(r"^[A-Za-z0-9]+$")

# A template key: literal segment values, None where a parameter sits
TemplateKey = tuple[str | None, ...]
PathKey = tuple[str, ...]


def split_path(path: str) -> PathKey:
    """Split a decoded path into segments.

    Trailing slashes and empty segments are dropped, so `/users/` and
    `/users` are the same path and the empty path is `/`.
    """
    return tuple(segment for segment in path.split("/") if segment)


def is_parameter_shaped(segment: str, config: DiscoveryConfig | None = None) -> bool:
    """Apply the shape rules (1-3) to a single segment."""
    config = config or DiscoveryConfig()
    if segment.isdigit():
        return True
    if UUID_PATTERN.match(segment):
        return True
    if len(segment) > config.opaque_segment_min_length and ALNUM_PATTERN.match(segment):
        return True
    return False


def singularize(word: str) -> str:
    """Best-effort English singular of a resource name."""
    lower = word.lower()
    if lower.endswith("ies") and len(word) > 3:
        return word[:-3] + "y"
    if lower.endswith(("sses", "shes", "ches", "xes", "zes")):
        return word[:-2]
    if lower.endswith("ses") and len(word) > 4:
        return word[:-1]
    if lower.endswith("s") and not lower.endswith(("ss", "us", "is")):
        return word[:-1]
    return word


def _identifier(segment: str) -> str:
    """Snake-case a literal segment for use inside a parameter name."""
    cleaned = re.sub(r"[^0-9a-zA-Z]+", "_", segment).strip("_").lower()
    return cleaned


def parameter_names(key: TemplateKey) -> list[str]:
    """Name the parameters of a template key.

    Each parameter is named after the nearest preceding literal, singularized
    and suffixed with `_id`; with no preceding literal it is `id`. Names that
    would collide get their 1-based parameter index appended.
    """
    names: list[str] = []
    last_literal: str | None = None
    for segment in key:
        if segment is None:
            base = _identifier(singularize(last_literal)) if last_literal else ""
            names.append(f"{base}_id" if base else "id")
        else:
            last_literal = segment

    counts: dict[str, int] = defaultdict(int)
    for name in names:
        counts[name] += 1
    return [
        f"{name}{index}" if counts[name] > 1 else name
        for index, name in enumerate(names, start=1)
    ]


def build_template(method: HttpMethod, key: TemplateKey) -> PathTemplate:
    """Render a template key with its parameter names."""
    names = iter(parameter_names(key))
    segments = tuple(
        PathSegment(value=next(names), param=True) if segment is None else PathSegment(value=segment)
        for segment in key
    )
    return PathTemplate(method=method, segments=segments)


def infer_template_keys(
    paths: Iterable[PathKey],
    config: DiscoveryConfig | None = None,
) -> dict[PathKey, TemplateKey]:
    """Cluster a set of same-method paths into template keys.

    The result depends only on the set of distinct paths, never on the
    order they were seen in.

    Args:
        paths: Split concrete paths observed for one method.
        config: Discovery configuration.

    Returns:
        Mapping of each distinct path to its template key.
    """
    config = config or DiscoveryConfig()

    by_length: dict[int, set[PathKey]] = defaultdict(set)
    for path in paths:
        by_length[len(path)].add(path)

    # Proper prefixes of longer paths name collections, not slugs
    branches = {
        path[:end]
        for same_length in by_length.values()
        for path in same_length
        for end in range(1, len(path))
    }

    result: dict[PathKey, TemplateKey] = {}
    for length, same_length in by_length.items():
        for key, members in _cluster(same_length, length, branches, config).items():
            for path in members:
                result[path] = key
    return result


def _cluster(
    paths: set[PathKey],
    length: int,
    branches: set[PathKey],
    config: DiscoveryConfig,
) -> dict[TemplateKey, set[PathKey]]:
    clusters: dict[TemplateKey, set[PathKey]] = defaultdict(set)
    for path in paths:
        key = tuple(None if is_parameter_shaped(s, config) else s for s in path)
        clusters[key].add(path)

    changed = True
    while changed:
        changed = False
        # Rightmost positions first: leaf identifiers vary most often
        for position in reversed(range(length)):
            leaf = position == length - 1
            groups: dict[TemplateKey, list[TemplateKey]] = defaultdict(list)
            for key in clusters:
                groups[key[:position] + key[position + 1:]].append(key)

            for rest, keys in groups.items():
                if not _promotable(rest, position, leaf):
                    continue

                literal_keys = [
                    k for k in keys
                    if k[position] is not None
                    and not (leaf and any(p in branches for p in clusters[k]))
                ]
                param_keys = [k for k in keys if k[position] is None]
                if not literal_keys:
                    continue

                # One literal next to a parameter already varies at this position
                if len(literal_keys) + len(param_keys) < 2:
                    continue

                merged_key = rest[:position] + (None,) + rest[position:]
                merged: set[PathKey] = set()
                for k in literal_keys + param_keys:
                    merged |= clusters.pop(k)
                clusters[merged_key] = merged
                changed = True
                logger.debug(
                    f"Promoted position {position} of {_render(merged_key)} "
                    f"({len(literal_keys)} literal variants)"
                )

    return clusters


def _promotable(rest: TemplateKey, position: int, leaf: bool) -> bool:
    """Whether the surroundings of a position can anchor slug variation.

    The surrounding segments need at least one literal, and a segment
    directly followed by a parameter is a collection name.
    """
    if all(segment is None for segment in rest):
        return False
    if not leaf and rest[position] is None:
        return False
    return True


def _render(key: TemplateKey) -> str:
    return "/" + "/".join("{}" if s is None else s for s in key)


def template_path(
    method: HttpMethod,
    path: str,
    history: Iterable[str] = (),
    config: DiscoveryConfig | None = None,
) -> PathTemplate:
    """Template one path given the other paths seen for the same method.

    Args:
        method: HTTP method of the request.
        path: Decoded concrete path.
        history: Concrete paths previously seen under the same method.
        config: Discovery configuration.

    Returns:
        The path's template.
    """
    split = split_path(path)
    keys = infer_template_keys([split, *(split_path(p) for p in history)], config)
    return build_template(method, keys[split])


class PathTemplater:
    """Accumulates concrete paths per method and templates them on demand.

    Templates are recomputed lazily whenever a new distinct path has been
    observed, so early calls reflect only the paths seen so far.
    """

    def __init__(self, config: DiscoveryConfig | None = None) -> None:
        self.config = config or DiscoveryConfig()
        self._paths: dict[HttpMethod, set[PathKey]] = defaultdict(set)
        self._keys: dict[HttpMethod, dict[PathKey, TemplateKey]] = {}

    def observe(self, method: HttpMethod, path: str) -> PathKey:
        split = split_path(path)
        known = self._paths[method]
        if split not in known:
            known.add(split)
            self._keys.pop(method, None)
        return split

    def template_for(self, method: HttpMethod, path: str) -> PathTemplate:
        """Template a path against everything observed so far for its method."""
        split = self.observe(method, path)
        if method not in self._keys:
            self._keys[method] = infer_template_keys(self._paths[method], self.config)
        return build_template(method, self._keys[method][split])

    def paths(self, method: HttpMethod) -> set[PathKey]:
        return set(self._paths.get(method, ()))
