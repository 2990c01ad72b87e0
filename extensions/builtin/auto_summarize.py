"""Auto-summarize extension: runs the interval trigger on message events."""

from extensions.base_extension import Extension


class AutoSummarizeExtension(Extension):
    name = "auto_summarize"
    enabled = True

    async def on_message_event(self, session, event_type: str, **kwargs):
        if not session.config.auto_summarize:
            return None
        return await session.check_auto()
