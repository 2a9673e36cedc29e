"""
Card service layer — bridges Scryfall API with the collection store.

This module owns all logic for:
  - Adding cards to the collection (from a full Scryfall payload, or by
    looking one up by id / name) and merging quantities
  - Quantity, favorite and removal changes
  - The bulk collection replace used by the migration endpoint
  - Back-filling images for cards stored without them
  - Turning pasted decklist text into enriched card lists

Callers (blueprints, CLI) never touch the Scryfall API directly; they go
through this module so fuzzy fallback, error mapping and rate-limiting are
always applied consistently. Every function takes the caller's Session and
never commits; the surrounding session_scope() does.
"""
import time
import logging
from datetime import datetime, timedelta

from sqlalchemy import delete, select
from sqlalchemy.orm import Session

from cardkeep.errors import NotFoundError, UpstreamLookupError, ValidationError
from cardkeep.models import Card
from cardkeep.models.base import as_utc, utcnow
from cardkeep.utils.deck_parser import ParsedDeckCard, parse_deck_list, validate_deck
from cardkeep.utils.scryfall import (
    fetch_collection,
    get_card_by_id,
    get_card_by_name,
    normalize_card,
)

log = logging.getLogger(__name__)

# Columns a refresh may overwrite without touching prices or ownership
_CATALOG_FIELDS = (
    "name", "mana_cost", "type_line", "oracle_text", "colors", "color_identity",
    "image_normal", "image_small", "image_large", "card_faces",
)
_IMAGE_FIELDS = (
    "image_normal", "image_small", "image_large", "card_faces",
    "mana_cost", "oracle_text", "colors", "color_identity",
)


# ── Lookup ────────────────────────────────────────────────────────────────────

def _is_full_payload(data: dict) -> bool:
    """A Scryfall card object as the search UI posts it, not just an identifier."""
    return bool(data.get("id") and data.get("name") and "type_line" in data)


def lookup_card(card_id: str | None = None, name: str | None = None) -> tuple[dict, bool]:
    """
    Resolve a card on Scryfall.

    Lookup priority:
      1. card_id (exact printing)
      2. name, exact match
      3. name, fuzzy match (tolerates typos)

    Returns:
        (raw Scryfall card, fuzzy) — fuzzy is True when step 3 matched.

    Raises:
        ValidationError:     Neither identifier given.
        NotFoundError:       Scryfall has no such card.
        UpstreamLookupError: Network failure or Scryfall error.
    """
    if not card_id and not name:
        raise ValidationError("Provide a card id or a card name")

    try:
        if card_id:
            return get_card_by_id(card_id), False
        try:
            return get_card_by_name(name), False
        except UpstreamLookupError as exc:
            if not exc.not_found:
                raise
            # Try fuzzy match as fallback when exact name fails
            return get_card_by_name(name, fuzzy=True), True
    except UpstreamLookupError as exc:
        if exc.not_found:
            raise NotFoundError(f"Card not found: '{card_id or name}'") from exc
        raise


# ── Collection CRUD ───────────────────────────────────────────────────────────

def _quantity(value, default: int = 1, minimum: int = 1) -> int:
    if value is None:
        return default
    if isinstance(value, bool):
        raise ValidationError("Quantity must be a whole number")
    try:
        qty = int(value)
    except (TypeError, ValueError) as exc:
        raise ValidationError("Quantity must be a whole number") from exc
    if qty != value and not isinstance(value, str):
        raise ValidationError("Quantity must be a whole number")
    if qty < minimum:
        raise ValidationError(f"Quantity must be at least {minimum}")
    return qty


def get_card(session: Session, card_id: str) -> Card:
    card = session.get(Card, card_id)
    if card is None:
        raise NotFoundError("Card not found in collection")
    return card


def add_card(session: Session, card_data: dict, quantity=None) -> tuple[Card, bool]:
    """
    Add copies of a card to the collection.

    card_data is either a full Scryfall card object or just {"id": ...} /
    {"name": ...}, in which case the card is looked up first. A card that
    already has a row (owned or a quantity-0 deck reference) has its
    quantity incremented rather than creating a duplicate row.

    Returns:
        (card, created) — created is False when an existing row was merged.

    Raises:
        ValidationError, NotFoundError, UpstreamLookupError
    """
    if not isinstance(card_data, dict):
        raise ValidationError("Invalid card data")

    qty = _quantity(quantity if quantity is not None else card_data.get("quantity"))

    fuzzy = bool(card_data.get("fuzzy_match"))
    if _is_full_payload(card_data):
        raw = card_data
    else:
        raw, fuzzy = lookup_card(card_data.get("id"), card_data.get("name"))
    values = normalize_card(raw)

    card = session.get(Card, values["id"])
    if card is not None:
        for attr in _CATALOG_FIELDS:
            if values.get(attr) is not None:
                setattr(card, attr, values[attr])
        card.quantity = (card.quantity or 0) + qty
        created = False
    else:
        card = Card(**values, quantity=qty, fuzzy_match=fuzzy)
        session.add(card)
        created = True

    session.flush()
    log.info("%s %dx %s", "Added" if created else "Merged", qty, card.name)
    return card, created


def remove_card(session: Session, card_id: str, remove_all: bool = False) -> Card | None:
    """
    Remove one copy, or the whole row when remove_all is set.

    Removing the last copy keeps the row with quantity 0 so deck lists that
    reference it stay intact. remove_all deletes the row, and with it every
    deck entry for the card.

    Returns:
        The updated card, or None when the row was deleted.
    """
    card = get_card(session, card_id)
    if remove_all:
        session.delete(card)
        session.flush()
        log.info("Deleted %s from the collection", card.name)
        return None

    if not card.is_owned:
        raise NotFoundError("Card not found in collection")
    card.quantity -= 1
    session.flush()
    return card


def set_quantity(session: Session, card_id: str, quantity) -> Card:
    """Set the owned copy count; 0 takes the card out of the collection."""
    if not card_id:
        raise ValidationError("Invalid card ID or quantity")
    qty = _quantity(quantity, default=None, minimum=0)
    if qty is None:
        raise ValidationError("Invalid card ID or quantity")

    card = get_card(session, card_id)
    card.quantity = qty
    session.flush()
    return card


def set_favorite(session: Session, card_id: str, is_favorite: bool) -> Card:
    card = get_card(session, card_id)
    card.is_favorite = bool(is_favorite)
    session.flush()
    return card


def list_collection(session: Session) -> list[Card]:
    """Owned cards (quantity > 0), newest first."""
    stmt = (
        select(Card)
        .where(Card.quantity > 0)
        .order_by(Card.created_at.desc(), Card.name)
    )
    return list(session.scalars(stmt))


def cards_added_today(session: Session, now: datetime | None = None) -> list[Card]:
    """Owned cards whose row was created on the current (UTC) calendar day."""
    now = as_utc(now) or utcnow()
    start = now.replace(hour=0, minute=0, second=0, microsecond=0)
    stmt = (
        select(Card)
        .where(
            Card.quantity > 0,
            Card.created_at >= start,
            Card.created_at < start + timedelta(days=1),
        )
        .order_by(Card.created_at.desc())
    )
    return list(session.scalars(stmt))


# ── Bulk replace ──────────────────────────────────────────────────────────────

def _card_from_payload(data: dict) -> Card:
    if not isinstance(data, dict) or not data.get("id") or not data.get("name"):
        raise ValidationError("Every card needs an id and a name")

    values = normalize_card(data)
    history = data.get("price_history") or {}
    created = data.get("created_at")
    return Card(
        **values,
        quantity=_quantity(data.get("quantity"), minimum=0),
        is_favorite=bool(data.get("is_favorite")),
        fuzzy_match=bool(data.get("fuzzy_match")),
        price_usd_6mo_ago=history.get("usd_6mo_ago"),
        price_usd_12mo_ago=history.get("usd_12mo_ago"),
        price_last_updated=_parse_timestamp(history.get("last_updated")),
        created_at=_parse_timestamp(created) or utcnow(),
    )


def _parse_timestamp(value) -> datetime | None:
    if not value:
        return None
    try:
        return as_utc(datetime.fromisoformat(str(value).replace("Z", "+00:00")))
    except ValueError:
        return None


def replace_collection(session: Session, cards: list[dict]) -> int:
    """
    Replace the whole card table with the given Scryfall-shaped cards.

    Delete-then-insert inside the caller's transaction, with no commit of
    its own. A bad payload raises before the delete; a store error after it
    is rolled back by session_scope, deleted rows and cascaded deck entries
    included. Deck entries of deleted cards go with them (ON DELETE CASCADE).

    Returns:
        Number of cards written.
    """
    if not isinstance(cards, list):
        raise ValidationError("Invalid data format")

    # Validate everything before the first write
    rows: dict[str, Card] = {}
    for data in cards:
        card = _card_from_payload(data)
        rows[card.id] = card

    session.execute(delete(Card))
    session.add_all(rows.values())
    session.flush()
    log.info("Collection replaced: %d cards", len(rows))
    return len(rows)


# ── Image back-fill ───────────────────────────────────────────────────────────

def refresh_missing_images(session: Session, pause: float = 0.1) -> dict:
    """
    Re-fetch every card stored without an image and fill in image URIs,
    faces, mana cost, oracle text and colors. Failed lookups are logged and
    skipped.
    """
    cards = session.scalars(select(Card).where(Card.image_normal.is_(None))).all()
    if not cards:
        return {"success": True, "message": "No cards need refreshing", "updated": 0}

    updated = 0
    for i, card in enumerate(cards):
        if i and pause:
            time.sleep(pause)
        try:
            values = normalize_card(get_card_by_id(card.id))
        except UpstreamLookupError as exc:
            log.warning("Failed to fetch card %s (%s): %s", card.name, card.id, exc)
            continue
        for attr in _IMAGE_FIELDS:
            setattr(card, attr, values[attr])
        updated += 1

    session.flush()
    log.info("Image refresh: %d of %d cards updated", updated, len(cards))
    return {
        "success": True,
        "message": f"Successfully refreshed {updated} out of {len(cards)} cards",
        "updated": updated,
        "total":   len(cards),
    }


# ── Decklist enrichment ───────────────────────────────────────────────────────

def _enrich(entry: ParsedDeckCard, found: dict[str, dict]) -> dict | None:
    raw = found.get(entry.name.lower())
    if raw is None:
        return None
    return {**raw, "quantity": entry.quantity, "is_sideboard": entry.is_sideboard}


def enrich_deck_list(text: str) -> dict:
    """
    Parse, validate and look up a pasted decklist.

    Returns:
        {"mainboard": [card...], "sideboard": [card...], "total_cards": N,
         "not_found": [name...]}
        Each card is the raw Scryfall object plus the parsed "quantity"
        and "is_sideboard".

    Raises:
        ValidationError: Empty text or the deck fails validation (the
                         validator's messages are in .details).
    """
    if not text or not text.strip():
        raise ValidationError("Deck text is required")

    parsed = parse_deck_list(text)
    validation = validate_deck(parsed)
    if not validation.valid:
        raise ValidationError("Invalid deck", details=validation.errors)

    found, not_found = fetch_collection([c.name for c in parsed.cards])

    mainboard = [c for c in (_enrich(e, found) for e in parsed.mainboard) if c]
    sideboard = [c for c in (_enrich(e, found) for e in parsed.sideboard) if c]

    log.info(
        "Deck import: %d entries resolved, %d names not found",
        len(mainboard) + len(sideboard), len(not_found),
    )
    return {
        "mainboard":   mainboard,
        "sideboard":   sideboard,
        "total_cards": parsed.total_cards,
        "not_found":   not_found,
    }
