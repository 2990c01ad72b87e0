"""Models API routes: list models and test the completions endpoint."""

from flask import Blueprint, jsonify, current_app

from summarizer.exceptions import ConfigurationError, SummarizerError
from summarizer.models import CompletionClient
from web.app import run_async

models_bp = Blueprint("models", __name__)


@models_bp.route("/models", methods=["GET"])
def list_models():
    """List model ids offered by the configured endpoint."""
    config = current_app.config["summarizer_config"]
    client = CompletionClient(config.api)
    try:
        models = run_async(client.list_models())
    except ConfigurationError as e:
        return jsonify({"error": str(e), "models": []}), 400
    except SummarizerError as e:
        return jsonify({"error": str(e), "models": []}), 502
    return jsonify({"models": models})


@models_bp.route("/models/test", methods=["POST"])
def test_connection():
    """Send a tiny completion request to the configured endpoint."""
    config = current_app.config["summarizer_config"]
    client = CompletionClient(config.api)
    try:
        run_async(client.test_connection())
    except ConfigurationError as e:
        return jsonify({"ok": False, "error": str(e)}), 400
    except SummarizerError as e:
        return jsonify({"ok": False, "error": str(e)}), 502
    return jsonify({"ok": True, "message": "Connection OK"})
