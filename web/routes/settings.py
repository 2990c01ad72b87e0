"""Settings API routes: get and update configuration."""

from flask import Blueprint, request, jsonify, current_app

from summarizer.config import config_from_dict, config_to_dict
from summarizer.exceptions import ConfigurationError, PersistenceError
from web.app import replace_config

settings_bp = Blueprint("settings", __name__)


@settings_bp.route("/settings", methods=["GET"])
def get_settings():
    """Return current configuration without the API key."""
    config = current_app.config["summarizer_config"]
    payload = config_to_dict(config)
    payload["api"]["has_api_key"] = bool(config.api.api_key)
    return jsonify(payload)


@settings_bp.route("/settings", methods=["POST"])
def save_settings():
    """Merge the posted fields into the current settings and apply them."""
    data = request.get_json(silent=True)
    if not isinstance(data, dict):
        return jsonify({"error": "Invalid JSON payload"}), 400

    config = current_app.config["summarizer_config"]
    merged = config_to_dict(config, include_secrets=True)
    _merge(merged, data)
    try:
        new_config = config_from_dict(merged)
    except ConfigurationError as e:
        return jsonify({"error": str(e)}), 400

    try:
        replace_config(new_config)
    except PersistenceError as e:
        return jsonify({"error": str(e)}), 500
    return jsonify({"status": "saved"})


def _merge(target: dict, updates: dict) -> None:
    for key, value in updates.items():
        if isinstance(value, dict) and isinstance(target.get(key), dict):
            _merge(target[key], value)
        else:
            target[key] = value
