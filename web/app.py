"""Flask application factory for the chat summarizer HTTP surface."""

import asyncio
import os
import re
import threading
from flask import Flask, current_app
from flask_cors import CORS

from summarizer.chat_log import ChatLog
from summarizer.config import CredentialStore, SettingsStore, SummarizerConfig
from summarizer.log import build_file_logger
from summarizer.session import ExtractionSettings, SummarizerSession

_CHAT_ID = re.compile(r"^[A-Za-z0-9_\-.]{1,128}$")


def create_app(
    config: SummarizerConfig,
    settings_store: SettingsStore | None = None,
    config_path: str = "config.json",
) -> Flask:
    """Create and configure the Flask application."""
    app = Flask(__name__)
    CORS(app)

    if settings_store is None:
        settings_store = SettingsStore(config_path, CredentialStore(config.credentials_path))

    # Shared state
    app.config["summarizer_config"] = config
    app.config["settings_store"] = settings_store
    app.config["extraction"] = ExtractionSettings(config, settings_store)
    app.config["sessions"] = {}  # chat_id -> SummarizerSession
    app.config["chat_logs"] = {}  # chat_id -> ChatLog, kept across config swaps
    app.config["chat_guards"] = {}  # chat_id -> scheduler lock, kept across config swaps
    app.config["sessions_lock"] = threading.Lock()
    app.config["web_logger"] = build_file_logger("web.app", config.log_dir, "web.log")

    # Register blueprints
    from web.routes.chat import chat_bp
    from web.routes.settings import settings_bp
    from web.routes.models import models_bp
    from web.routes.rules import rules_bp

    app.register_blueprint(chat_bp, url_prefix="/api")
    app.register_blueprint(settings_bp, url_prefix="/api")
    app.register_blueprint(models_bp, url_prefix="/api")
    app.register_blueprint(rules_bp, url_prefix="/api")

    return app


def valid_chat_id(chat_id: str) -> bool:
    return bool(_CHAT_ID.match(chat_id))


def get_session(chat_id: str) -> SummarizerSession:
    """Return the live session for a chat, opening its log on first use."""
    sessions = current_app.config["sessions"]
    with current_app.config["sessions_lock"]:
        session = sessions.get(chat_id)
        if session is None:
            config = current_app.config["summarizer_config"]
            chat_logs = current_app.config["chat_logs"]
            chat = chat_logs.get(chat_id)
            if chat is None:
                chat = ChatLog.open(os.path.join(config.chats_dir, f"{chat_id}.json"))
                chat_logs[chat_id] = chat
            guard = current_app.config["chat_guards"].setdefault(chat_id, threading.Lock())
            session = SummarizerSession(
                config,
                chat,
                chat_id=chat_id,
                extraction=current_app.config["extraction"],
                guard=guard,
            )
            sessions[chat_id] = session
        return session


def replace_config(config: SummarizerConfig) -> None:
    """Swap in a new config; sessions are rebuilt on next use.

    Chat logs and scheduler locks outlive the swap, so a run still in flight
    on an old session keeps excluding new runs and writes the same log.
    """
    store = current_app.config["settings_store"]
    store.save(config)
    current_app.config["summarizer_config"] = config
    current_app.config["extraction"] = ExtractionSettings(config, store)
    with current_app.config["sessions_lock"]:
        current_app.config["sessions"].clear()


def run_async(coro):
    """Run a coroutine to completion on a fresh event loop."""
    loop = asyncio.new_event_loop()
    try:
        return loop.run_until_complete(coro)
    finally:
        loop.close()


def run_in_background(session: SummarizerSession, event_type: str) -> threading.Thread:
    """Handle a message event on a daemon thread with its own event loop."""
    logger = current_app.config["web_logger"]

    def run_in_thread():
        loop = asyncio.new_event_loop()
        asyncio.set_event_loop(loop)
        try:
            loop.run_until_complete(session.handle_message_event(event_type))
        except Exception as e:
            logger.exception("Message event %s for chat %s failed: %s", event_type, session.chat_id, e)
            session.status = f"Message event failed: {e}"
        finally:
            loop.close()

    thread = threading.Thread(target=run_in_thread, daemon=True)
    thread.start()
    return thread
