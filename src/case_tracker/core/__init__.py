"""Ports (interfaces) and the session state object."""
