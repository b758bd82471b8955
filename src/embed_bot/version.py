"""Single source of truth for the embed-bot package version."""

__version__: str = "0.3.0"
