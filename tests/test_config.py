import json
import os
import tempfile
import unittest
from pathlib import Path
from unittest import mock

from summarizer.config import (
    ApiConfig,
    CredentialStore,
    DEFAULT_SUMMARY_PROMPT,
    SettingsStore,
    config_from_dict,
    load_config,
    require_api,
)
from summarizer.exceptions import ConfigurationError

_NO_ENV = {"SUMMARIZER_API_ENDPOINT": "", "SUMMARIZER_API_KEY": "", "SUMMARIZER_MODEL": ""}


class TestConfig(unittest.TestCase):
    def test_load_config_defaults(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            config_path = Path(tmpdir) / "config.json"
            data_dir = Path(tmpdir) / "data"
            config_path.write_text(json.dumps({"data_dir": str(data_dir)}))

            with mock.patch.dict(os.environ, _NO_ENV):
                config = load_config(str(config_path))

            self.assertEqual(config.api.endpoint, "")
            self.assertEqual(config.api.temperature, 0.7)
            self.assertEqual(config.api.max_tokens, 2000)
            self.assertEqual(config.api.max_retries, 3)
            self.assertEqual(config.summary_prompt, DEFAULT_SUMMARY_PROMPT)
            self.assertEqual(config.max_messages, 20)
            self.assertFalse(config.auto_summarize)
            self.assertEqual(config.trigger_interval, 20)
            self.assertEqual(config.keep_visible, 10)
            self.assertFalse(config.auto_hide)
            self.assertFalse(config.extraction.enabled)
            self.assertEqual(config.extraction.rules, [])
            self.assertEqual(config.extraction.blacklist, [])
            self.assertFalse(config.world_info.enabled)
            self.assertEqual(config.world_info.directory, str(data_dir / "world_info"))
            self.assertEqual(config.store_path, str(data_dir / "summaries.db"))
            self.assertEqual(config.log_dir, str(data_dir / "logs"))
            self.assertEqual(config.extensions.enabled_map, {})

    def test_missing_file_yields_defaults(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            with mock.patch.dict(os.environ, _NO_ENV):
                config = load_config(str(Path(tmpdir) / "absent.json"))
            self.assertEqual(config.trigger_interval, 20)

    def test_env_overrides(self):
        env = {
            "SUMMARIZER_API_ENDPOINT": "http://env.example/v1",
            "SUMMARIZER_API_KEY": "env-key",
            "SUMMARIZER_MODEL": "env-model",
        }
        with mock.patch.dict(os.environ, env):
            config = config_from_dict({"api": {"endpoint": "http://file.example", "model": "m"}})
        self.assertEqual(config.api.endpoint, "http://env.example/v1")
        self.assertEqual(config.api.api_key, "env-key")
        self.assertEqual(config.api.model, "env-model")

    def test_invalid_values_raise(self):
        bad = [
            {"trigger_interval": 0},
            {"keep_visible": -1},
            {"max_messages": "many"},
            {"auto_hide": "yes"},
            {"api": {"temperature": "hot"}},
            {"extraction": {"rules": [{"type": "include"}]}},
            {"extraction": {"blacklist": [1]}},
            {"extensions": {"auto_hide": "off"}},
        ]
        for raw in bad:
            with self.subTest(raw=raw):
                with self.assertRaises(ConfigurationError):
                    config_from_dict(raw)

    def test_invalid_json_raises(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            config_path = Path(tmpdir) / "config.json"
            config_path.write_text("{not json")
            with self.assertRaises(ConfigurationError):
                load_config(str(config_path))

    def test_require_api(self):
        with self.assertRaises(ConfigurationError):
            require_api(ApiConfig(endpoint="http://x", api_key="k"))
        require_api(ApiConfig(endpoint="http://x", api_key="k"), need_model=False)
        require_api(ApiConfig(endpoint="http://x", api_key="k", model="m"))


class TestSettingsStore(unittest.TestCase):
    def test_save_keeps_key_out_of_settings_and_mirrors_credentials(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            settings_path = Path(tmpdir) / "config.json"
            creds_path = Path(tmpdir) / "credentials.json"
            settings_path.write_text(json.dumps({"custom": "kept", "data_dir": tmpdir}))
            store = SettingsStore(str(settings_path), CredentialStore(str(creds_path)))

            with mock.patch.dict(os.environ, _NO_ENV):
                config = store.load()
                config.api.endpoint = "http://api.example"
                config.api.api_key = "secret"
                config.extraction.rules = [{"type": "include", "value": "content"}]
                store.save(config)

                saved = json.loads(settings_path.read_text())
                self.assertEqual(saved["custom"], "kept")
                self.assertNotIn("api_key", saved["api"])
                self.assertEqual(saved["extraction"]["rules"][0]["value"], "content")
                self.assertEqual(
                    json.loads(creds_path.read_text()),
                    {"endpoint": "http://api.example", "api_key": "secret"},
                )

                reloaded = store.load()
            self.assertEqual(reloaded.api.api_key, "secret")
            self.assertEqual(reloaded.extraction.rules, [{"type": "include", "value": "content"}])

    def test_save_without_credential_store_keeps_key(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            settings_path = Path(tmpdir) / "config.json"
            store = SettingsStore(str(settings_path))
            with mock.patch.dict(os.environ, _NO_ENV):
                config = config_from_dict({"data_dir": tmpdir})
            config.api.api_key = "inline"
            store.save(config)
            self.assertEqual(json.loads(settings_path.read_text())["api"]["api_key"], "inline")


if __name__ == "__main__":
    unittest.main()
