"""Taskgate: task lifecycle and role-gated editing engine."""

__version__ = "0.1.0"
