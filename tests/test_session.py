import json
import logging
import os
import tempfile
import unittest
from pathlib import Path

from extensions.base_extension import Extension
from extensions.extension_manager import ExtensionManager
from summarizer.chat_log import ChatLog, Message
from summarizer.config import ExtensionsConfig, SettingsStore, SummarizerConfig
from summarizer.exceptions import NetworkError, PatternError
from summarizer.records import STATUS_NOT_DUE, STATUS_SUCCESS
from summarizer.session import ExtractionSettings, SummarizerSession
from summarizer.summary_store import SummaryStore


class FakeClient:
    def __init__(self, reply="summary", error=None):
        self.reply = reply
        self.error = error
        self.prompts: list[str] = []

    async def complete(self, prompt):
        self.prompts.append(prompt)
        if self.error:
            raise self.error
        return self.reply

    async def list_models(self):
        if self.error:
            raise self.error
        return ["model-a", "model-b"]

    async def test_connection(self):
        if self.error:
            raise self.error
        return True


class RecordingExtension(Extension):
    name = "recording"

    def __init__(self, config):
        super().__init__(config)
        self.events = []
        self.records = []

    async def on_message_event(self, session, event_type, **kwargs):
        self.events.append(event_type)

    async def on_summary_created(self, session, record, **kwargs):
        self.records.append(record)


class FailingExtension(Extension):
    name = "failing"

    async def on_message_event(self, session, event_type, **kwargs):
        raise RuntimeError("boom")


class SessionTestCase(unittest.IsolatedAsyncioTestCase):
    def setUp(self):
        self._tmpdir = tempfile.TemporaryDirectory()
        self.addCleanup(self._tmpdir.cleanup)
        self.tmp = Path(self._tmpdir.name)
        self.config = SummarizerConfig(log_dir=None, settle_delay=0.0, trigger_interval=5, keep_visible=2)
        self.chat = ChatLog()
        self.client = FakeClient()

    def make_session(self, extensions=None, discover=False, **kwargs):
        manager = ExtensionManager(self.config)
        if discover:
            manager.discover_extensions()
        for ext in extensions or []:
            manager.register(ext)
        return SummarizerSession(
            self.config,
            self.chat,
            chat_id="chat-1",
            client=self.client,
            store=SummaryStore(str(self.tmp / "summaries.db"), chat_id="chat-1"),
            extension_manager=manager,
            **kwargs,
        )

    def add_messages(self, count):
        for i in range(count):
            self.chat.append(Message(f"message {len(self.chat)}", is_user=i % 2 == 0, name="Bot"))


class TestSummarizerSession(SessionTestCase):
    async def test_summarize_now_sets_status_and_notifies(self):
        recorder = RecordingExtension(self.config)
        session = self.make_session([recorder])
        self.add_messages(4)

        outcome = await session.summarize_now()

        self.assertEqual(outcome.status, STATUS_SUCCESS)
        self.assertEqual(session.status, "summary")
        self.assertEqual(recorder.records, [outcome.record])

    async def test_failure_becomes_status(self):
        self.client.error = NetworkError("HTTP 401")
        session = self.make_session()
        self.add_messages(4)

        await session.summarize_now()

        self.assertIn("HTTP 401", session.status)

    async def test_message_event_dispatches_and_survives_extension_errors(self):
        recorder = RecordingExtension(self.config)
        session = self.make_session([FailingExtension(self.config), recorder])

        await session.handle_message_event("received")

        self.assertEqual(recorder.events, ["received"])

    async def test_check_auto_not_due_is_silent(self):
        session = self.make_session()
        self.add_messages(2)
        session.status = "previous"

        outcome = await session.check_auto()

        self.assertEqual(outcome.status, STATUS_NOT_DUE)
        self.assertEqual(session.status, "previous")

    async def test_history_text_most_recent_first(self):
        session = self.make_session()
        self.add_messages(5)
        self.client.reply = "first"
        await session.summarize_now()
        self.add_messages(5)
        self.client.reply = "second"
        await session.check_auto()

        text = session.history_text()

        parts = text.split("\n\n---\n\n")
        self.assertEqual(len(parts), 2)
        self.assertRegex(parts[0], r"^【.+】6-10 \(auto\)\nsecond$")
        self.assertRegex(parts[1], r"^【.+】1-5\nfirst$")

    async def test_clear_history(self):
        session = self.make_session()
        self.add_messages(5)
        await session.summarize_now()

        self.assertEqual(session.clear_history(), 1)
        self.assertEqual(session.history_text(), "No summary history")
        self.assertEqual(session.scheduler.last_summarized_index, 0)

    async def test_unhide_and_hide_status(self):
        session = self.make_session()
        self.add_messages(6)
        self.assertEqual(session.apply_auto_hide(), 4)
        self.assertEqual(session.hide_status().hidden, 4)

        self.assertEqual(session.unhide_all(), 4)
        self.assertEqual(session.status, "Unhid 4 messages")

    async def test_extraction_preview(self):
        session = self.make_session()
        self.assertIsNone(session.test_extraction())

        session.extraction.add_rule("include", "content")
        session.extraction.set_enabled(True)
        self.chat.append(Message("x" * 600 + "<content>kept</content>", name="Bot"))

        preview = session.test_extraction()

        self.assertEqual(preview["original_length"], 623)
        self.assertTrue(preview["original"].endswith("..."))
        self.assertEqual(preview["extracted"], "kept")
        self.assertEqual(preview["extracted_length"], 4)

    async def test_models_and_connection(self):
        session = self.make_session()
        self.assertEqual(await session.list_models(), ["model-a", "model-b"])
        self.assertTrue(await session.test_connection())

        self.client.error = NetworkError("unreachable")
        self.assertEqual(await session.list_models(), [])
        self.assertFalse(await session.test_connection())
        self.assertIn("unreachable", session.status)


class TestSessionLogging(SessionTestCase):
    LOGGERS = ("summarizer.scheduler", "summarizer.hide_controller", "extraction.engine", "extensions.manager")

    def tearDown(self):
        for name in self.LOGGERS:
            logger = logging.getLogger(name)
            for handler in list(logger.handlers):
                logger.removeHandler(handler)
                handler.close()
            logger.propagate = True

    def _file_handlers(self, name):
        return [h for h in logging.getLogger(name).handlers if isinstance(h, logging.FileHandler)]

    def test_rebuilt_sessions_reuse_one_handler_per_component(self):
        self.config.log_dir = str(self.tmp / "logs")
        for _ in range(5):
            self.make_session()

        for name in self.LOGGERS:
            self.assertEqual(len(self._file_handlers(name)), 1, name)

    def test_new_log_dir_replaces_handler(self):
        self.config.log_dir = str(self.tmp / "logs")
        self.make_session()
        old_handler = self._file_handlers("summarizer.scheduler")[0]

        self.config.log_dir = str(self.tmp / "other_logs")
        self.make_session()

        handlers = self._file_handlers("summarizer.scheduler")
        self.assertEqual(len(handlers), 1)
        self.assertIsNot(handlers[0], old_handler)
        self.assertEqual(os.path.dirname(handlers[0].baseFilename), os.path.abspath(self.tmp / "other_logs"))


class TestBuiltinExtensions(SessionTestCase):
    async def test_auto_summarize_and_auto_hide(self):
        self.config.auto_summarize = True
        self.config.auto_hide = True
        self.config.log_dir = str(self.tmp / "logs")
        session = self.make_session(discover=True)
        self.add_messages(5)

        await session.handle_message_event("received")

        self.assertEqual(len(session.store.list()), 1)
        self.assertEqual(sum(m.hidden for m in self.chat), 3)
        log_lines = (self.tmp / "logs" / "summaries_chat-1.jsonl").read_text(encoding="utf-8").splitlines()
        self.assertEqual(json.loads(log_lines[0])["range"], "1-5")

    async def test_toggles_off_do_nothing(self):
        session = self.make_session(discover=True)
        self.add_messages(5)

        await session.handle_message_event("received")

        self.assertEqual(session.store.list(), [])
        self.assertFalse(any(m.hidden for m in self.chat))

    def test_enabled_map_disables_extension(self):
        config = SummarizerConfig(log_dir=None, extensions=ExtensionsConfig({"auto_hide": False}))
        manager = ExtensionManager(config)
        manager.discover_extensions()
        names = [ext.name for ext in manager.extensions]
        self.assertEqual(names, ["auto_summarize", "summary_logger"])


class TestExtractionSettings(unittest.TestCase):
    def test_changes_are_saved(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            settings_path = Path(tmpdir) / "config.json"
            config = SummarizerConfig(log_dir=None)
            settings = ExtractionSettings(config, SettingsStore(str(settings_path)))

            settings.add_rule("regex_exclude", "<!--.*?-->")
            settings.add_preset("content-tag")
            settings.add_blacklist("foo")
            with self.assertRaises(PatternError):
                settings.add_rule("regex-include", "(")

            saved = json.loads(settings_path.read_text(encoding="utf-8"))
            self.assertEqual(
                saved["extraction"]["rules"],
                [
                    {"type": "regex-exclude", "value": "<!--.*?-->"},
                    {"type": "include", "value": "content"},
                ],
            )
            self.assertEqual(saved["extraction"]["blacklist"], ["foo"])

            settings.remove_rule(0)
            settings.clear_blacklist()
            self.assertEqual(config.extraction.rules, [{"type": "include", "value": "content"}])
            self.assertEqual(config.extraction.blacklist, [])


if __name__ == "__main__":
    unittest.main()
