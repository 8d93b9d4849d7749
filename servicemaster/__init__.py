"""servicemaster - manage user-level background services."""

__version__ = "0.3.0"
__logo__ = "⚙"
