"""Tests for uploading sources to a registry."""

import json
from pathlib import Path
from unittest.mock import Mock, patch
from urllib.parse import quote

import pytest
import requests

from fractal.exceptions import PublishError
from fractal.publisher import Publisher
from fractal.registry import RegistryStore, create_app
from fractal.schemas import BuildResult

REGISTRY = "http://registry.test"
SOURCE = '"use fractal";\nexport default function Button() { return <button>Hi</button>; }\n'


class RecordingTransport:
    """Transport that records every upload and answers like the registry."""

    def __init__(self, fail_ids=()):
        self.fail_ids = set(fail_ids)
        self.calls = []

    def __call__(self, url, headers, payload):
        self.calls.append((url, headers, payload))
        if any(url.endswith(quote(i, safe="")) for i in self.fail_ids):
            raise requests.ConnectionError("connection refused")
        return {"id": url.rsplit("/", 1)[-1], "createdAt": "2024-01-01T00:00:00Z"}


def registry_transport(client):
    """Route uploads into a Flask test client."""

    def transport(url, headers, payload):
        response = client.post(url[len(REGISTRY):], json=payload)
        if response.status_code >= 400:
            error_response = requests.Response()
            error_response.status_code = response.status_code
            error_response._content = response.data
            raise requests.HTTPError(response=error_response)
        return response.get_json()

    return transport


@pytest.fixture
def build_output(tmp_path):
    """A build output directory with two artifacts."""
    src = tmp_path / "src"
    src.mkdir()
    dist = tmp_path / "dist"
    dist.mkdir()
    for safe, name, file_name in (
        ("app_button_1_0_0", "app::button::1.0.0", "Button.tsx"),
        ("app_card_1_0_0", "app::card::1.0.0", "Card.tsx"),
    ):
        (src / file_name).write_text(SOURCE)
        (dist / f"{safe}.meta.json").write_text(json.dumps({"name": name, "originalPath": str(src / file_name)}))
        (dist / f"{safe}.manifest.json").write_text(json.dumps({"name": name, "version": "1.0.0"}))
    return dist


class TestPublishSource:
    """Tests for single uploads."""

    def test_posts_to_quoted_endpoint(self):
        """Test the payload and URL of one upload."""
        transport = RecordingTransport()
        publisher = Publisher(REGISTRY + "/", transport=transport)

        response = publisher.publish_source("app::button::1.0.0", SOURCE, {"name": "x"})

        url, headers, payload = transport.calls[0]
        assert url == "http://registry.test/fractals/app%3A%3Abutton%3A%3A1.0.0"
        assert headers == {"Content-Type": "application/json"}
        assert payload == {"source": SOURCE, "manifest": {"name": "x"}}
        assert response["createdAt"] == "2024-01-01T00:00:00Z"

    def test_manifest_is_optional(self):
        transport = RecordingTransport()
        Publisher(REGISTRY, transport=transport).publish_source("button", SOURCE)
        assert transport.calls[0][2] == {"source": SOURCE}

    def test_unreachable_registry(self):
        """Test connection errors become PublishError."""
        publisher = Publisher(REGISTRY, transport=RecordingTransport(fail_ids={"button"}))
        with pytest.raises(PublishError, match="Cannot reach registry"):
            publisher.publish_source("button", SOURCE)

    def test_default_transport_uses_requests(self):
        """Test the default transport posts JSON with a timeout."""
        fake_response = Mock()
        fake_response.json.return_value = {"id": "button"}
        with patch("fractal.publisher.requests.post", return_value=fake_response) as post:
            result = Publisher(REGISTRY, timeout=5).publish_source("button", SOURCE)

        assert result == {"id": "button"}
        post.assert_called_once()
        assert post.call_args.kwargs["json"] == {"source": SOURCE}
        assert post.call_args.kwargs["timeout"] == 5
        fake_response.raise_for_status.assert_called_once()


class TestAgainstRegistry:
    """Tests that publish into a real registry app."""

    def test_publish_then_fetch(self, tmp_path):
        """Test an uploaded source is compiled and served."""
        store = RegistryStore(tmp_path / "storage")
        client = create_app(store).test_client()
        publisher = Publisher(REGISTRY, transport=registry_transport(client))

        response = publisher.publish_source("app::button::1.0.0", SOURCE)

        assert response["id"] == "app::button::1.0.0"
        code = client.get("/fractals/app::button::1.0.0/code").get_data(as_text=True)
        assert 'React.createElement("button", null, "Hi")' in code

    def test_rejection_carries_status(self, tmp_path):
        """Test registry rejections surface status and body."""
        client = create_app(RegistryStore(tmp_path / "storage")).test_client()
        publisher = Publisher(REGISTRY, transport=registry_transport(client))

        with pytest.raises(PublishError, match="422"):
            publisher.publish_source("button", "export default 1;")


class TestBulkPublish:
    """Tests for best-effort bulk uploads."""

    def test_publish_output_dir(self, build_output):
        """Test every metadata file yields one upload with its manifest."""
        transport = RecordingTransport()

        report = Publisher(REGISTRY, transport=transport).publish_output_dir(build_output)

        assert report.ok
        assert report.published == ["app::button::1.0.0", "app::card::1.0.0"]
        assert transport.calls[0][2]["source"] == SOURCE
        assert transport.calls[0][2]["manifest"] == {"name": "app::button::1.0.0", "version": "1.0.0"}

    def test_failures_do_not_stop_the_batch(self, build_output):
        """Test one failed upload is tallied and the rest continue."""
        transport = RecordingTransport(fail_ids={"app::button::1.0.0"})

        report = Publisher(REGISTRY, transport=transport).publish_output_dir(build_output)

        assert report.published == ["app::card::1.0.0"]
        assert list(report.failures) == ["app::button::1.0.0"]
        assert not report.ok

    def test_invalid_metadata_and_missing_source(self, build_output):
        """Test bad metadata and unreadable sources are failures."""
        (build_output / "broken.meta.json").write_text("{ nope")
        (build_output / "ghost.meta.json").write_text(json.dumps({"name": "ghost", "originalPath": "/no/such.tsx"}))

        report = Publisher(REGISTRY, transport=RecordingTransport()).publish_output_dir(build_output)

        assert len(report.published) == 2
        assert "broken" in report.failures
        assert report.failures["ghost"].startswith("Cannot read source")

    def test_publish_results(self, tmp_path):
        """Test build results are uploaded from their source files."""
        source = tmp_path / "Button.tsx"
        source.write_text(SOURCE)
        manifest = tmp_path / "button.manifest.json"
        manifest.write_text(json.dumps({"name": "app::button::1.0.0"}))
        result = BuildResult(
            name="app::button::1.0.0",
            file_path=source,
            output_path=tmp_path / "button.js",
            manifest_path=manifest,
            metadata_path=tmp_path / "button.meta.json",
        )
        transport = RecordingTransport()

        report = Publisher(REGISTRY, transport=transport).publish_results([result])

        assert report.published == ["app::button::1.0.0"]
        assert transport.calls[0][2]["manifest"] == {"name": "app::button::1.0.0"}

    def test_publish_sources(self, tmp_path):
        """Test detected sources are uploaded under their identities."""
        (tmp_path / "package.json").write_text(json.dumps({"name": "@acme/ui", "version": "3.0.0"}))
        (tmp_path / "StatsCard.tsx").write_text(SOURCE)
        (tmp_path / "plain.tsx").write_text("export default 1;")
        transport = RecordingTransport()

        report = Publisher(REGISTRY, transport=transport).publish_sources(tmp_path)

        assert report.published == ["acme-ui::stats-card::3.0.0"]
        assert Path(transport.calls[0][0]).name == "acme-ui%3A%3Astats-card%3A%3A3.0.0"
