"""Rules API routes: extraction rules, presets and the blacklist."""

from flask import Blueprint, request, jsonify, current_app

from extraction.rules import PRESETS
from summarizer.exceptions import ConfigurationError, PatternError, PersistenceError

rules_bp = Blueprint("rules", __name__)


def _extraction():
    return current_app.config["extraction"]


def _rules_payload():
    extraction = _extraction()
    return {
        "enabled": extraction.enabled,
        "rules": extraction.rules.to_config(),
    }


@rules_bp.errorhandler(PersistenceError)
def _persistence_failed(e):
    return jsonify({"error": str(e)}), 500


@rules_bp.route("/rules", methods=["GET"])
def list_rules():
    return jsonify(_rules_payload())


@rules_bp.route("/rules", methods=["POST"])
def add_rule():
    """Add a rule ({"type", "value"}) and/or toggle extraction ({"enabled"})."""
    data = request.get_json(silent=True) or {}
    extraction = _extraction()

    if "enabled" in data:
        if not isinstance(data["enabled"], bool):
            return jsonify({"error": "enabled must be a boolean"}), 400
        extraction.set_enabled(data["enabled"])

    if "type" in data or "value" in data:
        kind = data.get("type")
        value = data.get("value")
        if not isinstance(kind, str) or not isinstance(value, str):
            return jsonify({"error": "type and value must be strings"}), 400
        try:
            extraction.add_rule(kind, value)
        except (PatternError, ConfigurationError) as e:
            return jsonify({"error": str(e)}), 400

    return jsonify(_rules_payload())


@rules_bp.route("/rules", methods=["DELETE"])
def clear_rules():
    _extraction().clear_rules()
    return jsonify(_rules_payload())


@rules_bp.route("/rules/<int:index>", methods=["DELETE"])
def remove_rule(index):
    try:
        _extraction().remove_rule(index)
    except IndexError as e:
        return jsonify({"error": str(e)}), 404
    return jsonify(_rules_payload())


@rules_bp.route("/rules/presets", methods=["GET"])
def list_presets():
    return jsonify({
        "presets": [
            {"key": p.key, "name": p.name, "rules": [r.to_dict() for r in p.rules]}
            for p in PRESETS.values()
        ]
    })


@rules_bp.route("/rules/presets/<key>", methods=["POST"])
def add_preset(key):
    try:
        added = _extraction().add_preset(key)
    except KeyError:
        return jsonify({"error": f"Unknown preset: {key}"}), 404
    return jsonify({**_rules_payload(), "added": [r.to_dict() for r in added]})


@rules_bp.route("/blacklist", methods=["GET"])
def list_blacklist():
    return jsonify({"blacklist": _extraction().blacklist.to_config()})


@rules_bp.route("/blacklist", methods=["POST"])
def add_blacklist():
    data = request.get_json(silent=True) or {}
    entry = data.get("entry")
    if not isinstance(entry, str):
        return jsonify({"error": "entry must be a string"}), 400
    try:
        added = _extraction().add_blacklist(entry)
    except ValueError as e:
        return jsonify({"error": str(e)}), 400
    return jsonify({"blacklist": _extraction().blacklist.to_config(), "added": added})


@rules_bp.route("/blacklist", methods=["DELETE"])
def remove_blacklist():
    """Remove one entry ({"entry"}) or, with no body, clear the blacklist."""
    data = request.get_json(silent=True) or {}
    entry = data.get("entry")
    extraction = _extraction()
    if entry is None:
        extraction.clear_blacklist()
    elif not extraction.remove_blacklist(entry):
        return jsonify({"error": "Entry not found"}), 404
    return jsonify({"blacklist": extraction.blacklist.to_config()})
