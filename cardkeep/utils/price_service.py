"""
Price service — collection value, price-history rotation and analytics.

Public API:
  calculate_collection_value(cards) -> float
      Σ usd price × quantity over Scryfall-shaped card dicts.

  rotate_price_history(...) -> PriceHistory
      The rolling 6-/12-month snapshot policy, as a pure function.

  refresh_card_price(session, card_id) -> Card
  refresh_all_prices(session, pause=0.1) -> RefreshReport
      Fetch fresh prices from Scryfall and apply the rotation policy.

  price_listing(cards) / collection_analytics(cards)
      Read-only views for the prices and analytics endpoints.
"""
import time
import logging
from dataclasses import dataclass, field
from datetime import datetime

from sqlalchemy import select
from sqlalchemy.orm import Session

from cardkeep.errors import (
    CardKeepError, Failure, NotFoundError, Ok, Result, UpstreamLookupError,
)
from cardkeep.models import Card
from cardkeep.models.base import as_utc, utcnow
from cardkeep.utils.helpers import to_float, usd_price
from cardkeep.utils.scryfall import get_card_by_id

log = logging.getLogger(__name__)

SIX_MONTH_ROTATION_DAYS = 180
MONTHLY_ROTATION_DAYS = 30
PERFORMER_LIMIT = 5

HORIZONS = ("six_month", "twelve_month")


# ── Collection value ──────────────────────────────────────────────────────────

def card_quantity(card: dict) -> int:
    """Quantity of a card dict; an unset quantity counts as one copy."""
    qty = card.get("quantity")
    return 1 if qty is None else qty


def calculate_collection_value(cards: list[dict]) -> float:
    """Total USD value. Missing or malformed prices count as 0."""
    return sum(usd_price(card) * card_quantity(card) for card in cards)


# ── Rotation policy ───────────────────────────────────────────────────────────

@dataclass(frozen=True)
class PriceHistory:
    price_usd: str | None
    usd_6mo_ago: str | None
    usd_12mo_ago: str | None
    last_updated: datetime


def rotate_price_history(
    current: str | None,
    six_month: str | None,
    twelve_month: str | None,
    last_updated: datetime | None,
    new_price: str | None,
    now: datetime | None = None,
) -> PriceHistory:
    """Work out the stored prices after a refresh.

    - Never refreshed before: the new price seeds the 6-month slot.
    - ≥180 days since the last refresh: 6-month moves to 12-month (the old
      current price when 6-month was empty) and current moves to 6-month,
      even when current was never set.
    - 30–179 days: current moves to 6-month.
    - <30 days: history untouched.
    The current price and timestamp are always replaced.
    """
    now = as_utc(now) or utcnow()

    if last_updated is None:
        six_month = new_price
    else:
        elapsed = (now - as_utc(last_updated)).total_seconds() / 86400
        if elapsed >= SIX_MONTH_ROTATION_DAYS:
            twelve_month = six_month or current
            six_month = current
        elif elapsed >= MONTHLY_ROTATION_DAYS:
            six_month = current

    return PriceHistory(
        price_usd=new_price,
        usd_6mo_ago=six_month,
        usd_12mo_ago=twelve_month,
        last_updated=now,
    )


def apply_price_refresh(card: Card, data: dict, now: datetime | None = None) -> Card:
    """Write freshly fetched Scryfall prices onto a Card row."""
    prices = data.get("prices") or {}
    history = rotate_price_history(
        current=card.price_usd,
        six_month=card.price_usd_6mo_ago,
        twelve_month=card.price_usd_12mo_ago,
        last_updated=card.price_last_updated,
        new_price=prices.get("usd") or None,
        now=now,
    )
    card.price_usd          = history.price_usd
    card.price_usd_foil     = prices.get("usd_foil") or None
    card.price_eur          = prices.get("eur") or None
    card.price_tix          = prices.get("tix") or None
    card.price_usd_6mo_ago  = history.usd_6mo_ago
    card.price_usd_12mo_ago = history.usd_12mo_ago
    card.price_last_updated = history.last_updated
    return card


# ── Refresh ───────────────────────────────────────────────────────────────────

@dataclass
class RefreshReport:
    """Outcome of a bulk refresh, one Result per card attempted."""
    results: dict[str, Result] = field(default_factory=dict)

    @property
    def total(self) -> int:
        return len(self.results)

    @property
    def updated(self) -> int:
        return sum(1 for r in self.results.values() if r.ok)

    @property
    def errors(self) -> list[str]:
        return [f"{cid}: {r.message}" for cid, r in self.results.items() if not r.ok]

    def to_dict(self) -> dict:
        body = {
            "success": True,
            "message": f"Updated prices for {self.updated} cards",
            "updated": self.updated,
            "total":   self.total,
        }
        if self.errors:
            body["errors"] = self.errors
        return body


def refresh_card_price(session: Session, card_id: str, now: datetime | None = None) -> Card:
    """Refresh one card's prices.

    Raises:
        NotFoundError:       Card not in the store.
        UpstreamLookupError: Scryfall failed.
    """
    card = session.get(Card, card_id)
    if card is None:
        raise NotFoundError("Card not found in collection")

    data = get_card_by_id(card.id)
    apply_price_refresh(card, data, now=now)
    session.flush()
    log.info("Refreshed price for %s: %s", card.name, card.price_usd)
    return card


def _refresh_one(card: Card, now: datetime | None) -> Result:
    try:
        data = get_card_by_id(card.id)
    except UpstreamLookupError as exc:
        log.warning("Price refresh: Scryfall error for %s, skipping: %s", card.id, exc)
        return Failure.from_exception(exc)

    if not (data.get("prices") or {}).get("usd"):
        return Failure.from_exception(
            UpstreamLookupError(f"No USD price available for card {card.id}")
        )

    apply_price_refresh(card, data, now=now)
    return Ok(card.price_usd)


def refresh_all_prices(
    session: Session, pause: float = 0.1, now: datetime | None = None,
) -> RefreshReport:
    """Refresh every card in the store, one Scryfall request at a time.

    A failed lookup is recorded in the report and the loop moves on.
    Cards Scryfall has no USD price for are left unchanged.
    """
    report = RefreshReport()
    cards = session.scalars(select(Card).order_by(Card.name)).all()
    if not cards:
        log.info("Price refresh: no cards in DB, skipping.")
        return report

    for i, card in enumerate(cards):
        if i and pause:
            time.sleep(pause)   # honour Scryfall's ≤ 10 req/s guideline
        try:
            report.results[card.id] = _refresh_one(card, now)
        except CardKeepError as exc:
            report.results[card.id] = Failure.from_exception(exc)

    session.flush()
    log.info("Price refresh: %d of %d cards updated, %d errors.",
             report.updated, report.total, len(report.errors))
    return report


# ── Read-only views ───────────────────────────────────────────────────────────

def price_listing(cards: list[dict]) -> list[dict]:
    """Current and historical prices for each card, as numbers."""
    history = lambda c: c.get("price_history") or {}  # noqa: E731
    return [
        {
            "id":             c["id"],
            "name":           c["name"],
            "current_price":  usd_price(c),
            "price_6mo_ago":  to_float(history(c).get("usd_6mo_ago")),
            "price_12mo_ago": to_float(history(c).get("usd_12mo_ago")),
            "last_updated":   history(c).get("last_updated"),
        }
        for c in cards
    ]


@dataclass
class CardPerformance:
    id: str
    name: str
    current_price: float
    quantity: int
    six_month_change: float | None = None
    six_month_gain: float | None = None
    twelve_month_change: float | None = None
    twelve_month_gain: float | None = None

    @property
    def current_value(self) -> float:
        return self.current_price * self.quantity

    def change(self, horizon: str) -> float | None:
        return getattr(self, f"{horizon}_change")

    def gain(self, horizon: str) -> float | None:
        return getattr(self, f"{horizon}_gain")

    def to_dict(self) -> dict:
        return {
            "id":                  self.id,
            "name":                self.name,
            "current_price":       self.current_price,
            "quantity":            self.quantity,
            "current_value":       self.current_value,
            "six_month_change":    self.six_month_change,
            "six_month_gain":      self.six_month_gain,
            "twelve_month_change": self.twelve_month_change,
            "twelve_month_gain":   self.twelve_month_gain,
        }


def percentage_change(current: float, historical: float | None) -> float | None:
    """None when there is no usable historical price."""
    if historical is None or historical <= 0:
        return None
    return (current - historical) / historical * 100


def card_performance(card: dict) -> CardPerformance:
    current = usd_price(card)
    qty = card_quantity(card)
    history = card.get("price_history") or {}
    perf = CardPerformance(
        id=card["id"], name=card["name"], current_price=current, quantity=qty,
    )

    for horizon, key in (("six_month", "usd_6mo_ago"), ("twelve_month", "usd_12mo_ago")):
        past = to_float(history.get(key))
        change = percentage_change(current, past)
        if change is not None:
            setattr(perf, f"{horizon}_change", change)
            setattr(perf, f"{horizon}_gain", (current - past) * qty)
    return perf


def portfolio_change(performances: list[CardPerformance], horizon: str) -> tuple[float | None, float | None]:
    """(percentage change, absolute gain) for the whole portfolio, or (None, None)."""
    with_data = [p for p in performances if p.gain(horizon) is not None]
    if not with_data:
        return None, None

    total_value = sum(p.current_value for p in performances)
    gain = sum(p.gain(horizon) for p in with_data)
    base = total_value - gain
    change = gain / base * 100 if base > 0 else None
    return change, gain


def top_performers(performances: list[CardPerformance], horizon: str, best: bool = True) -> list[CardPerformance]:
    ranked = [p for p in performances if p.change(horizon) is not None]
    # sorted() is stable, also with reverse=True
    ranked = sorted(ranked, key=lambda p: p.change(horizon), reverse=best)
    return ranked[:PERFORMER_LIMIT]


def _round(value: float | None) -> float | None:
    return round(value, 2) if value is not None else None


def collection_analytics(cards: list[dict]) -> dict:
    """Portfolio summary plus top/bottom performers for both horizons."""
    performances = [card_performance(c) for c in cards]

    summary = {
        "total_value":  _round(sum(p.current_value for p in performances)),
        "total_cards":  sum(p.quantity for p in performances),
        "unique_cards": len(performances),
    }
    for horizon in HORIZONS:
        change, gain = portfolio_change(performances, horizon)
        summary[f"{horizon}_change"] = _round(change)
        summary[f"{horizon}_gain"] = _round(gain)

    return {
        "portfolio_summary": summary,
        "top_performers": {
            h: [p.to_dict() for p in top_performers(performances, h, best=True)]
            for h in HORIZONS
        },
        "bottom_performers": {
            h: [p.to_dict() for p in top_performers(performances, h, best=False)]
            for h in HORIZONS
        },
    }
