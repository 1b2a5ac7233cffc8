"""Shared utility helpers for prcraft."""


def clog2(value: int) -> int:
    """Smallest ``w >= 1`` with ``2**w >= value``."""
    width = 1
    while (1 << width) < value:
        width += 1
    return width
