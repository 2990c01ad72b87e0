"""Auto-hide extension: keeps only the newest messages visible."""

from extensions.base_extension import Extension


class AutoHideExtension(Extension):
    name = "auto_hide"
    enabled = True

    async def on_message_event(self, session, event_type: str, **kwargs):
        if not session.config.auto_hide:
            return
        session.apply_auto_hide()
