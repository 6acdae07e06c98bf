"""Unit tests for the Path Templater."""

import itertools

import pytest

from apisurface.config import DiscoveryConfig
from apisurface.modules.path_templater import (
    PathTemplater,
    build_template,
    infer_template_keys,
    is_parameter_shaped,
    parameter_names,
    singularize,
    split_path,
    template_path,
)
from apisurface.types import HttpMethod


class TestSegmentClassification:
    """Tests for the shape rules applied to single segments."""

    def test_digits_are_parameters(self):
        """All-digit segments are parameters."""
        assert is_parameter_shaped("42")

    def test_uuid_is_parameter(self):
        """UUID-shaped segments are parameters, in either case."""
        assert is_parameter_shaped("3f2b8c1e-9a4d-4c3b-8e2f-1a2b3c4d5e6f")
        assert is_parameter_shaped("3F2B8C1E-9A4D-4C3B-8E2F-1A2B3C4D5E6F")

    def test_long_alphanumeric_token_is_parameter(self):
        """Alphanumeric segments longer than 20 characters are opaque ids."""
        assert is_parameter_shaped("a1b2c3d4e5f6g7h8i9j0k1")

    def test_twenty_characters_is_still_literal(self):
        """The opaque-token rule needs strictly more than 20 characters."""
        assert not is_parameter_shaped("abcdefghijabcdefghij")

    def test_long_token_with_dashes_is_literal(self):
        """Only alphanumeric tokens count as opaque ids."""
        assert not is_parameter_shaped("this-is-a-very-long-slug-segment")

    def test_threshold_is_configurable(self):
        """The opaque-token length comes from configuration."""
        config = DiscoveryConfig(opaque_segment_min_length=5)
        assert is_parameter_shaped("abcdef", config)

    def test_words_are_literal(self):
        """Plain words stay literal."""
        assert not is_parameter_shaped("users")
        assert not is_parameter_shaped("v1")


class TestSingularize:
    """Tests for resource-name singularization."""

    @pytest.mark.parametrize(
        "plural,singular",
        [
            ("users", "user"),
            ("categories", "category"),
            ("addresses", "address"),
            ("boxes", "box"),
            ("status", "status"),
            ("user", "user"),
        ],
    )
    def test_singularize(self, plural, singular):
        """Common plural forms are reduced to their singular."""
        assert singularize(plural) == singular


class TestParameterNaming:
    """Tests for parameter name derivation."""

    def test_named_after_preceding_literal(self):
        """A parameter takes the singular of the preceding literal."""
        assert parameter_names(("projects", None)) == ["project_id"]

    def test_no_preceding_literal(self):
        """A leading parameter is named `id`."""
        assert parameter_names((None,)) == ["id"]

    def test_collisions_get_parameter_index(self):
        """Colliding names are disambiguated with their 1-based index."""
        assert parameter_names(("users", None, None)) == ["user_id1", "user_id2"]

    def test_nested_resources(self):
        """Each parameter uses its own nearest literal."""
        template = build_template(HttpMethod.GET, ("users", None, "posts", None))
        assert template.path == "/users/{user_id}/posts/{post_id}"
        assert template.parameter_names == ["user_id", "post_id"]

    def test_literal_is_snake_cased(self):
        """Dashes in literals become underscores in parameter names."""
        assert parameter_names(("api-keys", None)) == ["api_key_id"]


class TestTemplatePath:
    """Tests for templating a single path against its history."""

    def test_numeric_id(self):
        """Numeric ids become named parameters."""
        template = template_path(HttpMethod.GET, "/users/42")
        assert template.path == "/users/{user_id}"

    def test_uuid_id(self):
        """UUID ids become named parameters."""
        template = template_path(HttpMethod.GET, "/orders/3f2b8c1e-9a4d-4c3b-8e2f-1a2b3c4d5e6f")
        assert template.path == "/orders/{order_id}"

    def test_single_slug_stays_literal(self):
        """Without siblings a slug cannot be told apart from a literal."""
        template = template_path(HttpMethod.GET, "/posts/hello-world")
        assert template.path == "/posts/hello-world"

    def test_slug_next_to_numeric_id(self):
        """A slug seen next to a numeric id is a parameter too."""
        template = template_path(HttpMethod.GET, "/posts/hello-world", history=["/posts/42"])
        assert template.path == "/posts/{post_id}"

    def test_varying_slug_is_promoted(self):
        """A segment that varies between otherwise identical paths is a parameter."""
        template = template_path(HttpMethod.GET, "/posts/another-post", history=["/posts/hello-world"])
        assert template.path == "/posts/{post_id}"

    def test_middle_segment_variation(self):
        """Variation in a middle segment is promoted when the suffix matches."""
        template = template_path(HttpMethod.GET, "/users/alice/repos", history=["/users/bob/repos"])
        assert template.path == "/users/{user_id}/repos"

    def test_trailing_slash_is_ignored(self):
        """Trailing slashes are normalized away."""
        assert template_path(HttpMethod.GET, "/users/").path == "/users"

    def test_empty_path_is_root(self):
        """The empty path maps to `/`."""
        assert template_path(HttpMethod.GET, "").path == "/"
        assert split_path("/") == ()


class TestInferTemplateKeys:
    """Tests for set-based clustering."""

    def test_word_next_to_numeric_id_is_promoted(self):
        """`/items/featured` varies against `/items/123` and joins its template."""
        keys = infer_template_keys([("items", "123"), ("items", "featured")])
        assert keys[("items", "123")] == ("items", None)
        assert keys[("items", "featured")] == ("items", None)

    def test_word_next_to_id_below_collection_is_promoted(self):
        """The collection guard only protects collections, not their members."""
        keys = infer_template_keys([("users", "1"), ("users", "me"), ("users", "1", "posts")])
        assert keys[("users", "me")] == ("users", None)

    def test_leaf_collections_without_children_merge(self):
        """Childless leaves under a shared prefix look like slugs."""
        keys = infer_template_keys([("api", "orders"), ("api", "tickets")])
        assert set(keys.values()) == {("api", None)}

    def test_two_words_join_numeric_parameter(self):
        """Two non-numeric siblings promote the position for all three paths."""
        keys = infer_template_keys(
            [("items", "123"), ("items", "featured"), ("items", "popular")]
        )
        assert set(keys.values()) == {("items", None)}

    def test_different_lengths_never_merge(self):
        """Paths of different depth are clustered separately."""
        keys = infer_template_keys([("users",), ("users", "1")])
        assert keys[("users",)] == ("users",)
        assert keys[("users", "1")] == ("users", None)

    def test_top_level_collections_stay_apart(self):
        """`/users` and `/orders` share no literal and are never merged."""
        keys = infer_template_keys([("users",), ("orders",)])
        assert keys[("users",)] == ("users",)
        assert keys[("orders",)] == ("orders",)

    def test_collections_followed_by_ids_stay_apart(self):
        """A segment followed by a parameter is a collection name."""
        keys = infer_template_keys([("api", "users", "1"), ("api", "orders", "2")])
        assert keys[("api", "users", "1")] == ("api", "users", None)
        assert keys[("api", "orders", "2")] == ("api", "orders", None)

    def test_collections_with_children_stay_apart(self):
        """A leaf that prefixes a longer observed path is a collection."""
        keys = infer_template_keys(
            [("api", "users"), ("api", "orders"), ("api", "users", "1")]
        )
        assert keys[("api", "users")] == ("api", "users")
        assert keys[("api", "orders")] == ("api", "orders")

    def test_order_independent(self):
        """Every ordering of the same path set yields the same clustering."""
        paths = [
            ("repos", "alice", "proj1"),
            ("repos", "alice", "proj2"),
            ("repos", "bob", "proj1"),
            ("posts", "hello"),
            ("posts", "world"),
        ]
        expected = infer_template_keys(paths)
        for permutation in itertools.permutations(paths):
            assert infer_template_keys(permutation) == expected

    def test_templates_are_fixed_points(self):
        """Re-templating an endpoint's own example paths reproduces its template."""
        paths = [
            ("items", "123"),
            ("items", "456"),
            ("items", "featured"),
            ("repos", "alice", "proj1"),
            ("repos", "alice", "proj2"),
            ("repos", "bob", "proj1"),
            ("posts", "hello"),
            ("posts", "world"),
            ("posts", "again"),
        ]
        keys = infer_template_keys(paths)
        clusters: dict = {}
        for path, key in keys.items():
            clusters.setdefault(key, []).append(path)

        for key, examples in clusters.items():
            assert set(infer_template_keys(examples).values()) == {key}


class TestPathTemplater:
    """Tests for the incremental templater."""

    def test_templates_change_as_history_grows(self):
        """Early templates reflect only the paths seen so far."""
        templater = PathTemplater()
        assert templater.template_for(HttpMethod.GET, "/posts/a").path == "/posts/a"

        templater.observe(HttpMethod.GET, "/posts/b")
        assert templater.template_for(HttpMethod.GET, "/posts/a").path == "/posts/{post_id}"

    def test_methods_are_independent(self):
        """Variation under one method does not promote segments of another."""
        templater = PathTemplater()
        templater.observe(HttpMethod.GET, "/posts/a")
        templater.observe(HttpMethod.POST, "/posts/b")

        assert templater.template_for(HttpMethod.GET, "/posts/a").path == "/posts/a"
        assert templater.template_for(HttpMethod.POST, "/posts/b").path == "/posts/b"

    def test_paths_are_recorded_per_method(self):
        """Observed paths are kept split and de-duplicated."""
        templater = PathTemplater()
        templater.observe(HttpMethod.GET, "/users/1/")
        templater.observe(HttpMethod.GET, "/users/1")

        assert templater.paths(HttpMethod.GET) == {("users", "1")}
        assert templater.paths(HttpMethod.DELETE) == set()
