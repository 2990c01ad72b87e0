"""Custom exceptions for the chat summarizer."""


class SummarizerError(Exception):
    """Base class for all summarizer failures."""
    pass


class ConfigurationError(SummarizerError):
    """Raised when configuration is invalid or a required setting is missing."""
    pass


class NetworkError(SummarizerError):
    """Raised when the completions endpoint fails or cannot be reached."""
    pass


class PatternError(SummarizerError):
    """Raised when an extraction rule holds an invalid regular expression."""
    pass


class EmptyContentError(SummarizerError):
    """Raised when extraction leaves nothing to summarize."""
    pass


class PersistenceError(SummarizerError):
    """Raised when a chat, world-info, or settings write fails."""
    pass
