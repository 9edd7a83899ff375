"""Text utility functions for ordering and display."""

from __future__ import annotations

import unicodedata


def locale_key(text: str) -> tuple[str, str]:
    """Sort key approximating a locale-aware, accent-insensitive comparison.

    Args:
        text: Text to order

    Returns:
        Key comparing base letters case-insensitively, then the original text
    """
    decomposed = unicodedata.normalize("NFKD", text)
    base = "".join(char for char in decomposed if not unicodedata.combining(char))
    return (base.casefold(), text)


def locale_compare(left: str, right: str) -> int:
    """Three-way locale-aware comparison."""
    left_key = locale_key(left)
    right_key = locale_key(right)
    return (left_key > right_key) - (left_key < right_key)

