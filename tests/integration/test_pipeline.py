"""Integration tests for the discovery pipeline, the surface store and the CLI."""

import base64
import json
from datetime import datetime, timezone

import pytest
from typer.testing import CliRunner

from apisurface.cli import app
from apisurface.config import CONFIG_ENV_VAR, load_config
from apisurface.modules.har_reader import load_observations, observation_from_entry, observations_from_har
from apisurface.modules.pipeline import compare_surface_files, compare_surfaces, discover_from_file
from apisurface.modules.surface_store import load_surface, save_surface, surface_to_json
from apisurface.types import AuthScheme, ChangeKind, HttpMethod, SourceKind

GENERATED_AT = datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc)

BEARER = [{"name": "Authorization", "value": "Bearer {token}"}]


def entry(method, url, status=200, response=None, mime="application/json", request=None, headers=BEARER):
    har_entry = {
        "request": {"method": method, "url": url, "headers": headers},
        "response": {"status": status, "headers": [], "content": {"mimeType": mime}},
    }
    if response is not None:
        har_entry["response"]["content"]["text"] = response
    if request is not None:
        har_entry["request"]["postData"] = {"mimeType": "application/json", "text": request}
    return har_entry


def har_document(include_create: bool = True) -> dict:
    entries = [
        entry("GET", "https://app.example.com/api/users/1", response='{"id": 1, "name": "a"}'),
        entry("GET", "https://app.example.com/api/users/2", response='{"id": 2, "name": "b"}'),
        entry("GET", "https://app.example.com/static/app.js", response="var x;", mime="application/javascript"),
    ]
    if include_create:
        entries.append(
            entry(
                "POST",
                "https://app.example.com/api/users",
                status=201,
                response='{"id": 3, "name": "c"}',
                request='{"name": "c"}',
            )
        )
    return {"log": {"version": "1.2", "entries": entries}}


@pytest.fixture
def har_file(tmp_path):
    path = tmp_path / "capture.har"
    path.write_text(json.dumps(har_document()), encoding="utf-8")
    return path


@pytest.fixture
def shrunk_har_file(tmp_path):
    path = tmp_path / "capture-v2.har"
    path.write_text(json.dumps(har_document(include_create=False)), encoding="utf-8")
    return path


class TestHarReader:
    """Tests for reading HAR archives."""

    def test_static_assets_are_filtered(self):
        """Only API traffic is kept by default."""
        observations = observations_from_har(har_document())

        assert len(observations) == 3
        assert all("/api/" in o.url for o in observations)

    def test_all_traffic(self):
        """Filtering can be disabled."""
        assert len(observations_from_har(har_document(), api_only=False)) == 4

    def test_request_body_and_headers(self):
        """Request bodies and headers are carried over."""
        create = observations_from_har(har_document())[-1]

        assert create.method == HttpMethod.POST
        assert create.request_body.content == b'{"name": "c"}'
        assert create.headers["authorization"] == "Bearer {token}"

    def test_base64_response(self):
        """Base64-encoded content is decoded."""
        har_entry = entry("GET", "https://example.com/api/x")
        har_entry["response"]["content"].update(
            text=base64.b64encode(b'{"a": 1}').decode("ascii"),
            encoding="base64",
        )

        observation = observation_from_entry(har_entry)

        assert observation.response_body.content == b'{"a": 1}'
        assert observation.response_body.truncated is False

    def test_truncated_content(self):
        """Content shorter than its recorded size is flagged as truncated."""
        har_entry = entry("GET", "https://example.com/api/x", response='{"a": ')
        har_entry["response"]["content"]["size"] = 4096

        assert observation_from_entry(har_entry).response_body.truncated is True

    def test_pseudo_headers_are_dropped(self):
        """HTTP/2 pseudo-headers are not request headers."""
        har_entry = entry(
            "GET",
            "https://example.com/api/x",
            headers=[{"name": ":authority", "value": "example.com"}, {"name": "Accept", "value": "*/*"}],
        )
        assert observation_from_entry(har_entry).request_headers == (("Accept", "*/*"),)

    def test_unsupported_method_is_skipped(self):
        """Methods outside the supported set are dropped."""
        assert observation_from_entry(entry("CONNECT", "https://example.com/api/x")) is None

    def test_not_a_har(self):
        """Documents without log.entries are rejected."""
        with pytest.raises(ValueError, match="Not a HAR document"):
            observations_from_har({"entries": []})

    def test_observation_list_file(self, tmp_path):
        """A JSON list of observations loads without HAR conversion."""
        path = tmp_path / "observations.json"
        path.write_text(
            json.dumps([
                {
                    "method": "get",
                    "url": "https://example.com/api/items?page=1",
                    "status_code": 200,
                    "request_headers": {"X-Api-Key": "{key}"},
                    "response_body": {"content": '{"items": []}', "content_type": "application/json"},
                }
            ]),
            encoding="utf-8",
        )

        observations = load_observations(path)

        assert len(observations) == 1
        assert observations[0].method == HttpMethod.GET
        assert observations[0].response_body.content == b'{"items": []}'


class TestPipeline:
    """Tests for discovery and comparison across files."""

    def test_discover_from_har(self, har_file, tmp_path):
        """A HAR archive becomes a saved surface."""
        output = tmp_path / "surface.json"

        surface = discover_from_file(har_file, output_path=output, generated_at=GENERATED_AT)

        assert [e.id for e in surface.endpoints] == ["get-api-users-{user_id}", "post-api-users"]
        assert surface.metadata.source_kind == SourceKind.HAR
        assert surface.metadata.source_id == "capture.har"
        assert surface.auth.primary == AuthScheme.BEARER
        assert output.read_text(encoding="utf-8") == surface_to_json(surface)

    @pytest.mark.parametrize("suffix", [".json", ".yaml"])
    def test_store_round_trip(self, har_file, tmp_path, suffix):
        """Saved surfaces load back unchanged."""
        surface = discover_from_file(har_file, generated_at=GENERATED_AT)
        path = tmp_path / f"surface{suffix}"

        save_surface(surface, path)

        assert load_surface(path) == surface

    def test_rediscovery_has_no_changes(self, har_file):
        """Two runs over the same capture diff to nothing."""
        first = discover_from_file(har_file, generated_at=GENERATED_AT)
        second = discover_from_file(har_file, generated_at=datetime(2024, 6, 1, tzinfo=timezone.utc))

        assert compare_surfaces(first, second).changes == []

    def test_removed_endpoint_between_captures(self, har_file, shrunk_har_file, tmp_path):
        """A capture missing an endpoint yields a breaking removal."""
        old_path = tmp_path / "old.json"
        new_path = tmp_path / "new.json"
        discover_from_file(har_file, output_path=old_path, generated_at=GENERATED_AT)
        discover_from_file(shrunk_har_file, output_path=new_path, generated_at=GENERATED_AT)

        diff = compare_surface_files(old_path, new_path)

        assert diff.has_breaking_changes is True
        assert [(c.kind, c.endpoint_id) for c in diff.changes] == [
            (ChangeKind.ENDPOINT_REMOVED, "post-api-users"),
        ]


class TestConfig:
    """Tests for configuration loading."""

    def test_defaults(self, monkeypatch):
        """Without a file the built-in defaults apply."""
        monkeypatch.delenv(CONFIG_ENV_VAR, raising=False)
        assert load_config().enum_max_values == 8

    def test_environment_variable(self, tmp_path, monkeypatch):
        """The config file can be named by environment variable."""
        path = tmp_path / "config.yaml"
        path.write_text("enum_max_values: 3\napi_key_min_ratio: 0.9\n", encoding="utf-8")
        monkeypatch.setenv(CONFIG_ENV_VAR, str(path))

        config = load_config()

        assert config.enum_max_values == 3
        assert config.api_key_min_ratio == 0.9

    def test_unknown_keys_are_rejected(self, tmp_path):
        """Typos in the config file are errors."""
        path = tmp_path / "config.yaml"
        path.write_text("enum_max_value: 3\n", encoding="utf-8")

        with pytest.raises(ValueError):
            load_config(path)


class TestCli:
    """Tests for the command-line interface."""

    runner = CliRunner()

    def test_discover(self, har_file, tmp_path):
        """discover writes the surface and exits cleanly."""
        output = tmp_path / "surface.json"

        result = self.runner.invoke(app, ["discover", str(har_file), "--output", str(output)])

        assert result.exit_code == 0
        assert load_surface(output).metadata.endpoint_count == 2

    def test_discover_bad_config(self, har_file, tmp_path):
        """An invalid config file exits with status 2."""
        config = tmp_path / "config.yaml"
        config.write_text("- not a mapping\n", encoding="utf-8")

        result = self.runner.invoke(app, ["discover", str(har_file), "--config", str(config)])

        assert result.exit_code == 2

    def test_diff_without_breaking_changes(self, har_file, tmp_path):
        """Identical surfaces exit with status 0."""
        output = tmp_path / "surface.json"
        discover_from_file(har_file, output_path=output, generated_at=GENERATED_AT)

        result = self.runner.invoke(app, ["diff", str(output), str(output)])

        assert result.exit_code == 0

    def test_diff_with_breaking_changes(self, har_file, shrunk_har_file, tmp_path):
        """Breaking changes exit with status 1 and can be emitted as JSON."""
        old_path = tmp_path / "old.json"
        new_path = tmp_path / "new.json"
        discover_from_file(har_file, output_path=old_path, generated_at=GENERATED_AT)
        discover_from_file(shrunk_har_file, output_path=new_path, generated_at=GENERATED_AT)

        result = self.runner.invoke(app, ["diff", str(old_path), str(new_path), "--json"])

        assert result.exit_code == 1
        document = json.loads(result.stdout[result.stdout.index('{\n  "changes"'):])
        assert document["has_breaking_changes"] is True
        assert document["changes"][0]["kind"] == "endpoint-removed"

    def test_version(self):
        """version prints the package version."""
        from apisurface import __version__

        result = self.runner.invoke(app, ["version"])

        assert result.exit_code == 0
        assert __version__ in result.stdout
