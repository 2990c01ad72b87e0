"""Chat API routes: message events, summaries, hiding and extraction preview."""

from flask import Blueprint, request, jsonify

from summarizer.chat_log import Message
from summarizer.exceptions import PersistenceError
from summarizer.records import STATUS_BUSY
from web.app import get_session, run_async, run_in_background, valid_chat_id

chat_bp = Blueprint("chat", __name__)

MESSAGE_EVENTS = ("sent", "received", "edited", "deleted", "swiped")


@chat_bp.before_request
def _check_chat_id():
    chat_id = (request.view_args or {}).get("chat_id")
    if chat_id is not None and not valid_chat_id(chat_id):
        return jsonify({"error": "Invalid chat id"}), 400
    return None


@chat_bp.route("/chats/<chat_id>/messages", methods=["POST"])
def message_event(chat_id):
    """Record a host message event and let the extensions react to it."""
    data = request.get_json(silent=True) or {}
    event_type = data.get("event", "received")
    if event_type not in MESSAGE_EVENTS:
        return jsonify({"error": f"event must be one of {', '.join(MESSAGE_EVENTS)}"}), 400

    session = get_session(chat_id)
    index = None
    if "message" in data:
        if not isinstance(data["message"], dict):
            return jsonify({"error": "message must be an object"}), 400
        index = session.chat.append(Message.from_dict(data["message"]))
        try:
            session.chat.save()
        except PersistenceError as e:
            return jsonify({"error": str(e)}), 500

    run_in_background(session, event_type)
    return jsonify({"status": "accepted", "index": index, "length": len(session.chat)}), 202


@chat_bp.route("/chats/<chat_id>/summarize", methods=["POST"])
def summarize(chat_id):
    """Manual trigger over the newest messages."""
    session = get_session(chat_id)
    outcome = run_async(session.summarize_now())
    body = {
        "status": outcome.status,
        "message": outcome.message,
        "record": outcome.record.to_dict() if outcome.record else None,
    }
    if outcome.status == STATUS_BUSY:
        return jsonify(body), 409
    return jsonify(body)


@chat_bp.route("/chats/<chat_id>/history", methods=["GET"])
def history(chat_id):
    session = get_session(chat_id)
    return jsonify({
        "text": session.history_text(),
        "summaries": [r.to_dict() for r in session.store.list_recent()],
    })


@chat_bp.route("/chats/<chat_id>/history", methods=["DELETE"])
def clear_history(chat_id):
    session = get_session(chat_id)
    count = session.clear_history()
    return jsonify({"cleared": count, "message": session.status})


@chat_bp.route("/chats/<chat_id>/unhide", methods=["POST"])
def unhide(chat_id):
    session = get_session(chat_id)
    count = session.unhide_all()
    return jsonify({"unhidden": count, "message": session.status})


@chat_bp.route("/chats/<chat_id>/hide-status", methods=["GET"])
def hide_status(chat_id):
    status = get_session(chat_id).hide_status()
    return jsonify({
        "visible": status.visible,
        "hidden": status.hidden,
        "total": status.total,
        "text": status.describe(),
    })


@chat_bp.route("/chats/<chat_id>/extraction/test", methods=["POST"])
def test_extraction(chat_id):
    session = get_session(chat_id)
    preview = session.test_extraction()
    if preview is None:
        return jsonify({"error": session.status}), 404
    return jsonify({**preview, "message": session.status})


@chat_bp.route("/chats/<chat_id>/status", methods=["GET"])
def status(chat_id):
    session = get_session(chat_id)
    return jsonify({
        "status": session.status,
        "busy": session.busy,
        "length": len(session.chat),
        "last_summarized_index": session.scheduler.last_summarized_index,
    })
