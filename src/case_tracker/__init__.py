"""Case/task tracker for small legal practices."""

__version__ = "0.1.0"
