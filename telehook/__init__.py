"""Telehook: Telegram approval bridge for coding-agent hooks."""

__version__ = "0.3.0"
