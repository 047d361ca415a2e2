"""Shared utility helpers."""

from pyarab_runner.utils.paths import find_upward, write_text_atomically

__all__ = [
    "find_upward",
    "write_text_atomically",
]
