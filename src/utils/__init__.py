"""Utility modules."""

from src.utils.logger import bind_context, clear_context, get_logger, token_fingerprint

__all__ = [
    "bind_context",
    "clear_context",
    "get_logger",
    "token_fingerprint",
]
