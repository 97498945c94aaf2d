"""ReelRead: bite-sized reading with word-synchronized narration."""

__version__ = "1.0.0"
