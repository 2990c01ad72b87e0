import json
import tempfile
import unittest
from pathlib import Path

from summarizer.chat_log import ChatLog, Message
from summarizer.hide_controller import HideController


def _chat(count, path=None, system_at=()):
    messages = [Message(f"m{i}", is_system=i in system_at, name="A") for i in range(count)]
    return ChatLog(messages, path=path)


class TestHideController(unittest.TestCase):
    def test_hide_below_watermark(self):
        chat = _chat(15)
        controller = HideController(chat)
        self.assertEqual(controller.hide_below_watermark(10), 5)
        self.assertEqual([m.hidden for m in chat], [True] * 5 + [False] * 10)

    def test_nothing_to_hide_when_short(self):
        chat = _chat(8)
        self.assertEqual(HideController(chat).hide_below_watermark(10), 0)
        self.assertFalse(any(m.hidden for m in chat))

    def test_hiding_is_monotonic(self):
        chat = _chat(12)
        controller = HideController(chat)
        controller.hide_below_watermark(2)
        self.assertEqual(controller.hide_below_watermark(5), 0)
        self.assertEqual(sum(m.hidden for m in chat), 10)

    def test_system_messages_never_hidden(self):
        chat = _chat(6, system_at=(1,))
        controller = HideController(chat)
        self.assertEqual(controller.hide_range(0, 4), 3)
        self.assertFalse(chat[1].hidden)

    def test_unhide_all_and_status(self):
        chat = _chat(6, system_at=(0,))
        controller = HideController(chat)
        controller.hide_range(0, 6)

        status = controller.status()
        self.assertEqual((status.visible, status.hidden, status.total), (0, 5, 5))
        self.assertEqual(controller.unhide_all(), 5)
        self.assertEqual(controller.status().describe(), "visible: 5 | hidden: 0 | total: 5")

    def test_changes_are_saved(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            path = Path(tmpdir) / "chat.json"
            controller = HideController(_chat(4, path=str(path)))
            controller.hide_below_watermark(1)

            saved = json.loads(path.read_text(encoding="utf-8"))
            self.assertEqual([m["hidden"] for m in saved["messages"]], [True, True, True, False])
            self.assertIsNone(controller.last_error)

            reopened = ChatLog.open(str(path))
            self.assertTrue(reopened[0].hidden)

    def test_save_failure_is_recorded(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            # A directory in place of the chat file makes the write fail.
            path = Path(tmpdir) / "chat.json"
            path.mkdir()
            chat = _chat(3, path=str(path))
            controller = HideController(chat)

            self.assertEqual(controller.hide_below_watermark(1), 2)
            self.assertTrue(chat[0].hidden)
            self.assertIsNotNone(controller.last_error)


if __name__ == "__main__":
    unittest.main()
