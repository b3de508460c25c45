"""Helpers for deterministic ordering and serialisation."""

from __future__ import annotations

from typing import Callable, Iterable, TypeVar

T = TypeVar("T")


def stable_sorted(items: Iterable[T], key: Callable[[T], object], *, descending: bool = False) -> list[T]:
    # sorted() keeps equal keys in input order, also with reverse=True.
    return sorted(items, key=key, reverse=descending)


def plain_number(value: float | int) -> float | int:
    """Collapse integral floats to int so 125000.0 serialises as 125000."""
    if isinstance(value, float) and value.is_integer():
        return int(value)
    return value
