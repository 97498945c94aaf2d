"""Exceptions raised by chunking and narration."""


class ReelReadError(Exception):
    """Base class for reel reader errors."""


class ConfigError(ReelReadError, ValueError):
    """Invalid configuration, such as an inconsistent chunking policy."""


class NarrationError(ReelReadError):
    """A narration collaborator failed."""


class PreparationError(NarrationError):
    """Narration failed before playback started."""


class PlaybackError(NarrationError):
    """Narration failed while playing."""


class StaleCallbackIgnored(ReelReadError):
    """A callback arrived for a superseded session. Never leaves the controller."""
