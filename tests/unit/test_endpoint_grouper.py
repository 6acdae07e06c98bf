"""Unit tests for the Endpoint Grouper."""

import random

from apisurface.modules.endpoint_grouper import (
    aggregate_headers,
    aggregate_query_params,
    aggregate_status_codes,
    assign_endpoint_ids,
    endpoint_slug,
    group_observations,
    infer_scalar_type,
)
from apisurface.modules.path_templater import build_template
from apisurface.types import HttpMethod, Observation, SchemaType


def obs(method: str, url: str, status: int = 200, headers=None) -> Observation:
    return Observation(
        method=method,
        url=url,
        status_code=status,
        request_headers=headers or {},
    )


def paths_by_template(result) -> dict[str, list[str]]:
    return {
        template.path: sorted("/" + "/".join(p) for p in group.paths)
        for template, group in result.groups.items()
    }


class TestGroupObservations:
    """Tests for two-pass grouping."""

    def test_numeric_ids_share_an_endpoint(self):
        """`/users/1` and `/users/2` land in one group."""
        result = group_observations([
            obs("GET", "https://api.example.com/users/1"),
            obs("GET", "https://api.example.com/users/2"),
        ])

        assert list(paths_by_template(result)) == ["/users/{user_id}"]
        assert result.skipped == 0

    def test_methods_are_grouped_separately(self):
        """The same path under two methods yields two endpoints."""
        result = group_observations([
            obs("GET", "https://api.example.com/users/1"),
            obs("DELETE", "https://api.example.com/users/1"),
        ])

        methods = sorted(t.method.value for t in result.groups)
        assert methods == ["DELETE", "GET"]

    def test_slug_observed_first_is_rebucketed(self):
        """A slug templated as a literal on first sight moves once siblings appear."""
        result = group_observations([
            obs("GET", "https://example.com/posts/hello"),
            obs("GET", "https://example.com/posts/world"),
            obs("GET", "https://example.com/posts/again"),
        ])

        assert paths_by_template(result) == {
            "/posts/{post_id}": ["/posts/again", "/posts/hello", "/posts/world"],
        }
        assert result.rebucketed == 1

    def test_grouping_is_order_independent(self):
        """Any arrival order produces the same final groups."""
        observations = [
            obs("GET", "https://example.com/items/123"),
            obs("GET", "https://example.com/items/456"),
            obs("GET", "https://example.com/items/featured"),
            obs("GET", "https://example.com/posts/hello"),
            obs("GET", "https://example.com/posts/world"),
            obs("GET", "https://example.com/users"),
            obs("GET", "https://example.com/users/7"),
            obs("POST", "https://example.com/users"),
        ]
        expected = paths_by_template(group_observations(observations))

        rng = random.Random(1234)
        for _ in range(20):
            shuffled = observations[:]
            rng.shuffle(shuffled)
            assert paths_by_template(group_observations(shuffled)) == expected

    def test_query_string_does_not_affect_grouping(self):
        """Only the path takes part in templating."""
        result = group_observations([
            obs("GET", "https://example.com/search?q=a"),
            obs("GET", "https://example.com/search?q=b&page=2"),
        ])

        assert list(paths_by_template(result)) == ["/search"]


class TestEndpointIds:
    """Tests for endpoint id slugs."""

    def test_slug_keeps_parameter_names(self):
        """Parameters appear in the id with their names."""
        template = build_template(HttpMethod.GET, ("users", None))
        assert endpoint_slug(template) == "get-users-{user_id}"

    def test_root_path(self):
        """The root path gets a readable id."""
        assert endpoint_slug(build_template(HttpMethod.GET, ())) == "get-root"

    def test_literals_are_kebab_cased(self):
        """Literals are lower-cased and non-alphanumerics become dashes."""
        template = build_template(HttpMethod.POST, ("api", "v1", "Line_Items"))
        assert endpoint_slug(template) == "post-api-v1-line-items"

    def test_collisions_get_numeric_suffix(self):
        """Colliding slugs are suffixed in (method, path) order."""
        dashed = build_template(HttpMethod.GET, ("a-b",))
        underscored = build_template(HttpMethod.GET, ("a_b",))

        ids = assign_endpoint_ids([underscored, dashed])

        assert ids[dashed] == "get-a-b"
        assert ids[underscored] == "get-a-b-2"

    def test_ids_are_unique(self):
        """Every template gets a distinct id."""
        templates = [
            build_template(HttpMethod.GET, ("users",)),
            build_template(HttpMethod.GET, ("users", None)),
            build_template(HttpMethod.POST, ("users",)),
        ]
        ids = assign_endpoint_ids(templates)
        assert len(set(ids.values())) == 3


class TestScalarTypes:
    """Tests for query value typing."""

    def test_integers(self):
        """Whole numbers are integers."""
        assert infer_scalar_type(["1", "2", "-3"]) == SchemaType.INTEGER

    def test_integer_and_decimal_widen_to_number(self):
        """A decimal next to integers widens to number."""
        assert infer_scalar_type(["1", "2.5"]) == SchemaType.NUMBER

    def test_booleans(self):
        """true/false in any case are booleans."""
        assert infer_scalar_type(["true", "False"]) == SchemaType.BOOLEAN

    def test_free_text_is_string(self):
        """Any free text makes the whole parameter a string."""
        assert infer_scalar_type(["1", "abc"]) == SchemaType.STRING

    def test_boolean_number_conflict_is_union(self):
        """Booleans mixed with numbers are a genuine conflict."""
        assert infer_scalar_type(["true", "1"]) == SchemaType.UNION


class TestQueryAggregation:
    """Tests for query parameter aggregation."""

    def test_required_only_when_always_present(self):
        """`page` on every request is required, `limit` on one is optional."""
        params = aggregate_query_params([
            obs("GET", "https://example.com/items?page=1"),
            obs("GET", "https://example.com/items?page=2&limit=20"),
        ])

        by_name = {p.name: p for p in params}
        assert by_name["page"].required is True
        assert by_name["page"].type == SchemaType.INTEGER
        assert by_name["page"].default is None
        assert by_name["limit"].required is False
        assert by_name["limit"].default is None

    def test_constant_value_becomes_default(self):
        """A required parameter with one constant value records it as default."""
        params = aggregate_query_params([
            obs("GET", "https://example.com/export?format=json&v=2"),
            obs("GET", "https://example.com/export?format=json&v=2"),
        ])

        by_name = {p.name: p for p in params}
        assert by_name["format"].default == "json"
        assert by_name["v"].default == 2

    def test_repeated_parameter(self):
        """Parameters given more than once per request are marked repeated."""
        params = aggregate_query_params([
            obs("GET", "https://example.com/items?tag=a&tag=b"),
        ])

        assert params[0].name == "tag"
        assert params[0].repeated is True
        assert params[0].default is None

    def test_parameters_are_sorted_by_name(self):
        """Output order does not depend on the query string order."""
        params = aggregate_query_params([obs("GET", "https://example.com/x?z=1&a=2")])
        assert [p.name for p in params] == ["a", "z"]


class TestOtherAggregates:
    """Tests for header and status code aggregation."""

    def test_headers_are_case_insensitive(self):
        """Header names are lower-cased; required means present on every request."""
        headers = aggregate_headers([
            obs("GET", "https://example.com/x", headers={"Accept": "a", "X-Trace": "1"}),
            obs("GET", "https://example.com/x", headers={"accept": "b"}),
        ])

        assert [(h.name, h.required) for h in headers] == [
            ("accept", True),
            ("x-trace", False),
        ]

    def test_header_values_are_not_kept(self):
        """Only header names reach the aggregate."""
        headers = aggregate_headers([
            obs("GET", "https://example.com/x", headers={"Authorization": "Bearer s3cr3t"}),
        ])
        assert "s3cr3t" not in repr(headers)

    def test_status_codes_are_sorted_and_unique(self):
        """Status codes form a sorted set."""
        codes = aggregate_status_codes([
            obs("GET", "https://example.com/x", status=404),
            obs("GET", "https://example.com/x", status=200),
            obs("GET", "https://example.com/x", status=200),
        ])
        assert codes == [200, 404]
