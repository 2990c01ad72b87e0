"""Abstract base class for all extensions (lifecycle hooks)."""

from abc import ABC


class Extension(ABC):
    """
    Base class for extensions. Override the hook methods you need.
    Extensions are called in filename order at each lifecycle point.
    """

    name: str = ""
    enabled: bool = True

    def __init__(self, config):
        self.config = config

    async def on_message_event(self, session, event_type: str, **kwargs):
        """A message was sent, received, edited, deleted or swiped."""
        pass

    async def on_summary_created(self, session, record, **kwargs):
        pass
