"""
Miscellaneous helpers used across services and blueprints.
"""
import math
from typing import Iterable, Iterator, TypeVar

T = TypeVar("T")


def to_float(val) -> float | None:
    """Convert a Scryfall price string ('1.23', None, '') to float or None."""
    if val is None or val == "":
        return None
    try:
        num = float(val)
    except (TypeError, ValueError):
        return None
    return num if math.isfinite(num) else None


def usd_price(card: dict) -> float:
    """Current USD price of a Scryfall-shaped card dict, 0.0 when unknown."""
    prices = card.get("prices") or {}
    return to_float(prices.get("usd")) or 0.0


def format_currency(value: float) -> str:
    """US-dollar display string: 1234.5 → "$1,234.50"."""
    if value < 0:
        return f"-${abs(value):,.2f}"
    return f"${value:,.2f}"


def chunked(items: list[T], size: int) -> Iterator[list[T]]:
    for start in range(0, len(items), size):
        yield items[start:start + size]


def unique(items: Iterable[T]) -> list[T]:
    """Drop duplicates, keeping first-seen order."""
    return list(dict.fromkeys(items))


def parse_bool(value) -> bool:
    """Query-string / JSON truthiness: "true", "1", "yes", True."""
    if isinstance(value, bool):
        return value
    return str(value or "").strip().lower() in ("1", "true", "yes", "on")
