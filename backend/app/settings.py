"""Parsing helpers shared by the environment-driven configuration loaders."""
from __future__ import annotations

from typing import FrozenSet, Optional


def to_bool(value: Optional[str], *, default: bool) -> bool:
    if value is None:
        return default
    lowered = value.strip().lower()
    if lowered in {"1", "true", "yes", "on"}:
        return True
    if lowered in {"0", "false", "no", "off"}:
        return False
    return default


def to_int(value: Optional[str], *, default: int) -> int:
    if value is None or value == "":
        return default
    try:
        return int(value)
    except (TypeError, ValueError) as exc:
        raise ValueError(f"Expected integer value, got {value!r}") from exc


def to_float(value: Optional[str], *, default: float) -> float:
    if value is None or value == "":
        return default
    try:
        return float(value)
    except (TypeError, ValueError) as exc:
        raise ValueError(f"Expected float value, got {value!r}") from exc


def to_lowercase_set(value: Optional[str]) -> FrozenSet[str]:
    """Split a comma separated list into a normalized set, dropping blanks."""

    if not value:
        return frozenset()
    return frozenset(item.strip().lower() for item in value.split(",") if item.strip())


__all__ = ["to_bool", "to_float", "to_int", "to_lowercase_set"]
