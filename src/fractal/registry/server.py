"""HTTP surface of the registry (Flask)."""

from __future__ import annotations

import logging
from typing import Optional
from urllib.parse import quote

from flask import Flask, Response, jsonify, request
from flask_cors import CORS

from ..exceptions import CompileError, InvalidFractalIdError, InvalidManifestError, StorageError
from ..schemas import FractalConfig
from .compiler import get_compiler
from .store import RegistryStore

logger = logging.getLogger(__name__)

# ``require`` resolves react itself, everything else through the client module
# table. The compiled body runs in its own function scope.
CODE_WRAPPER = """(function () {
  var module = { exports: {} };
  var exports = module.exports;
  var React = window.React;
  var require = function (name) {
    if (name === 'react') return window.React;
    return (window.__fractalModules && window.__fractalModules.getModule(name)) || {};
  };
  (function (module, exports, require) {
%(code)s
  })(module, exports, require);
  return module.exports;
})()"""


def wrap_code(compiled_code: str) -> str:
    return CODE_WRAPPER % {"code": compiled_code}


def create_app(store: Optional[RegistryStore] = None, config: Optional[FractalConfig] = None) -> Flask:
    """Build the registry application around a store."""
    config = config or FractalConfig()
    if store is None:
        store = RegistryStore(
            config.registry.storage_dir,
            compiler=get_compiler(config.registry.compiler, config.esbuild_path),
        )

    app = Flask(__name__)
    app.config["FRACTAL_STORE"] = store
    CORS(app, send_wildcard=True)

    def fractal_url(fractal_id: str, suffix: str) -> str:
        return f"{request.host_url}fractals/{quote(fractal_id, safe='')}/{suffix}"

    @app.get("/health")
    def health():
        return jsonify({"status": "ok"})

    @app.get("/fractals/<fractal_id>")
    def get_metadata(fractal_id: str):
        record = store.get_fractal(fractal_id)
        if record is None:
            return jsonify({"error": "Not found"}), 404
        return jsonify({
            "url": fractal_url(fractal_id, "code"),
            "manifestUrl": fractal_url(fractal_id, "manifest"),
            "styles": record.styles,
            "hasManifest": record.has_manifest,
        })

    @app.get("/fractals/<fractal_id>/code")
    def get_code(fractal_id: str):
        record = store.get_fractal(fractal_id)
        if record is None:
            return Response("", status=404, mimetype="application/javascript")
        return Response(wrap_code(record.compiled_code), mimetype="application/javascript")

    @app.get("/fractals/<fractal_id>/manifest")
    def get_manifest(fractal_id: str):
        record = store.get_fractal(fractal_id)
        if record is None:
            return jsonify({"error": "Not found"}), 404
        if record.manifest is None:
            return jsonify({"error": "Manifest not available"}), 404
        return jsonify(record.manifest.to_document())

    @app.post("/fractals/<fractal_id>")
    def publish(fractal_id: str):
        body = request.get_json(silent=True) or {}
        source = body.get("source") if isinstance(body, dict) else None
        if not source or not isinstance(source, str):
            return jsonify({"error": "Source required"}), 400
        try:
            record = store.add_fractal(fractal_id, source, body.get("manifest"))
        except (InvalidFractalIdError, InvalidManifestError) as e:
            return jsonify({"error": str(e)}), 400
        except CompileError as e:
            logger.info("Rejected %s: %s", fractal_id, e)
            return jsonify({"error": str(e)}), 422
        except StorageError as e:
            logger.error("Cannot store %s: %s", fractal_id, e)
            return jsonify({"error": str(e)}), 500
        document = record.to_document()
        return jsonify({
            "id": record.id,
            "createdAt": document["createdAt"],
            "hasManifest": record.has_manifest,
        })

    return app
