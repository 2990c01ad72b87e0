"""Summary logger extension: appends each created summary to a JSONL file."""

import json
import os
from datetime import datetime, timezone

from extensions.base_extension import Extension


class SummaryLoggerExtension(Extension):
    name = "summary_logger"
    enabled = True

    def _log_path(self, session) -> str | None:
        log_dir = self.config.log_dir
        if not log_dir:
            return None
        os.makedirs(log_dir, exist_ok=True)
        return os.path.join(log_dir, f"summaries_{session.chat_id}.jsonl")

    async def on_summary_created(self, session, record, **kwargs):
        path = self._log_path(session)
        if path is None:
            return
        entry = {
            "logged_at": datetime.now(timezone.utc).isoformat(),
            "chat_id": session.chat_id,
            **record.to_dict(),
        }
        with open(path, "a", encoding="utf-8") as f:
            f.write(json.dumps(entry, ensure_ascii=False) + "\n")
