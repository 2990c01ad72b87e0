#!/usr/bin/env python3
"""Web entry point for the chat summarizer."""

import sys

from summarizer.config import CredentialStore, SettingsStore, load_config
from web.app import create_app


def main():
    config_path = sys.argv[1] if len(sys.argv) > 1 else "config.json"
    base = load_config(config_path)
    settings_store = SettingsStore(config_path, CredentialStore(base.credentials_path))
    config = settings_store.load()

    print(f"\n  Chat Summarizer: HTTP API")
    print(f"  Endpoint: {config.api.endpoint or '(not configured)'}")
    print(f"  Model: {config.api.model or '(not configured)'}")
    print(f"  Listening on http://localhost:5000/api\n")

    app = create_app(config, settings_store=settings_store, config_path=config_path)
    app.run(host="0.0.0.0", port=5000, debug=False, threaded=True)


if __name__ == "__main__":
    main()
