"""Tests for the registry HTTP surface using the Flask test client."""

from unittest.mock import Mock

import pytest

from fractal.exceptions import StorageError
from fractal.registry import RegistryStore, create_app
from fractal.registry.server import wrap_code
from fractal.schemas import FractalConfig

SOURCE = '"use fractal";\nexport default function Button() { return <button className="btn">Hi</button>; }\n'
STYLED = '"use fractal";\nexport default () => <div><style>{`.btn { color: red; }`}</style></div>;\n'

MANIFEST = {
    "name": "app::button::1.0.0",
    "version": "1.0.0",
    "generationDate": "2024-01-01T00:00:00Z",
    "parentApplication": {"name": "app", "version": "1.0.0", "path": "/repo/package.json"},
    "source": {"filePath": "/repo/src/Button.tsx", "relativePath": "src/Button.tsx"},
}


@pytest.fixture
def store(tmp_path):
    return RegistryStore(tmp_path / "storage")


@pytest.fixture
def client(store):
    app = create_app(store)
    app.config["TESTING"] = True
    return app.test_client()


class TestPublish:
    """Tests for POST /fractals/<id>."""

    def test_publish(self, client):
        """Test a valid publish returns the id and creation time."""
        response = client.post("/fractals/button", json={"source": SOURCE})

        assert response.status_code == 200
        body = response.get_json()
        assert body["id"] == "button"
        assert body["createdAt"]
        assert body["hasManifest"] is False

    def test_publish_with_manifest(self, client):
        response = client.post("/fractals/button", json={"source": SOURCE, "manifest": MANIFEST})

        assert response.status_code == 200
        assert response.get_json()["hasManifest"] is True

    @pytest.mark.parametrize("payload", [{}, {"source": ""}, {"source": 42}, None])
    def test_missing_source(self, client, payload):
        """Test requests without a source string are rejected with 400."""
        if payload is None:
            response = client.post("/fractals/button", data="not json", content_type="text/plain")
        else:
            response = client.post("/fractals/button", json=payload)

        assert response.status_code == 400
        assert response.get_json()["error"] == "Source required"

    def test_missing_directive(self, client, store):
        """Test a source without the directive is rejected and not stored."""
        response = client.post("/fractals/button", json={"source": "export default () => null;"})

        assert response.status_code == 422
        assert "directive" in response.get_json()["error"]
        assert store.get_fractal("button") is None

    def test_syntax_error(self, client):
        response = client.post("/fractals/button", json={"source": '"use fractal";\nexport default function ( {'})
        assert response.status_code == 422

    def test_invalid_manifest(self, client):
        response = client.post("/fractals/button", json={"source": SOURCE, "manifest": {"name": "x"}})
        assert response.status_code == 400

    def test_storage_failure(self, tmp_path):
        """Test storage errors map to 500."""
        store = Mock()
        store.add_fractal.side_effect = StorageError("disk full")
        client = create_app(store).test_client()

        response = client.post("/fractals/button", json={"source": SOURCE})

        assert response.status_code == 500
        assert response.get_json()["error"] == "disk full"


class TestFetch:
    """Tests for the GET endpoints."""

    def test_health(self, client):
        assert client.get("/health").get_json() == {"status": "ok"}

    def test_metadata(self, client):
        """Test metadata points at the code and manifest endpoints."""
        client.post("/fractals/app::button::1.0.0", json={"source": STYLED})

        response = client.get("/fractals/app::button::1.0.0")

        assert response.status_code == 200
        body = response.get_json()
        assert body["url"] == "http://localhost/fractals/app%3A%3Abutton%3A%3A1.0.0/code"
        assert body["manifestUrl"] == "http://localhost/fractals/app%3A%3Abutton%3A%3A1.0.0/manifest"
        assert body["styles"] == ".btn { color: red; }"
        assert body["hasManifest"] is False

    def test_metadata_unknown(self, client):
        response = client.get("/fractals/no-such-fractal")
        assert response.status_code == 404
        assert response.get_json() == {"error": "Not found"}

    def test_code(self, client, store):
        """Test code is served wrapped as an evaluable expression."""
        client.post("/fractals/button", json={"source": SOURCE})

        response = client.get("/fractals/button/code")

        assert response.status_code == 200
        assert response.mimetype == "application/javascript"
        text = response.get_data(as_text=True)
        assert text == wrap_code(store.get_fractal("button").compiled_code)
        assert text.startswith("(function () {")
        assert text.rstrip().endswith("})()")
        assert 'React.createElement("button", { className: "btn" }, "Hi")' in text

    def test_code_follows_quoted_url(self, client):
        """Test the url from the metadata response resolves."""
        client.post("/fractals/app::button::1.0.0", json={"source": SOURCE})
        url = client.get("/fractals/app::button::1.0.0").get_json()["url"]

        response = client.get(url.replace("http://localhost", ""))

        assert response.status_code == 200

    def test_code_unknown(self, client):
        response = client.get("/fractals/nope/code")
        assert response.status_code == 404
        assert response.get_data() == b""

    def test_manifest(self, client):
        """Test the stored manifest document is served."""
        client.post("/fractals/button", json={"source": SOURCE, "manifest": MANIFEST})

        body = client.get("/fractals/button/manifest").get_json()

        assert body["name"] == "app::button::1.0.0"
        assert body["parentApplication"]["name"] == "app"
        assert body["internalFractalReferences"] == []

    def test_manifest_absent(self, client):
        """Test 404 when a fractal was published without a manifest."""
        client.post("/fractals/button", json={"source": SOURCE})

        response = client.get("/fractals/button/manifest")

        assert response.status_code == 404
        assert response.get_json() == {"error": "Manifest not available"}

    def test_cors_header(self, client):
        """Test every response allows cross-origin requests."""
        response = client.get("/health", headers={"Origin": "http://app.example"})
        assert response.headers["Access-Control-Allow-Origin"] == "*"

    def test_cors_preflight(self, client):
        response = client.options(
            "/fractals/button",
            headers={"Origin": "http://app.example", "Access-Control-Request-Method": "POST"},
        )
        assert response.headers["Access-Control-Allow-Origin"] == "*"

    def test_cors_wildcard_on_code(self, client):
        """Test artifact code is served with a wildcard origin, not an echo."""
        response = client.get("/fractals/missing/code", headers={"Origin": "https://other.example"})
        assert response.status_code == 404
        assert response.headers["Access-Control-Allow-Origin"] == "*"


def test_create_app_builds_default_store(tmp_path):
    config = FractalConfig.model_validate({"registry": {"storage_dir": str(tmp_path / "store")}})
    app = create_app(config=config)

    assert isinstance(app.config["FRACTAL_STORE"], RegistryStore)
    assert (tmp_path / "store").is_dir()
