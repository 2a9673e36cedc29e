"""
Deck service layer.

Deck CRUD plus the card-in-deck operations behind /api/decks. A deck holds
DeckEntry rows keyed by (card, board); mainboard and sideboard copies of a
card are separate entries and every function that targets an entry takes
an is_sideboard flag to pick one.

Like card_service, functions work on the caller's Session and never commit.
"""
import logging

from sqlalchemy import select
from sqlalchemy.orm import Session

from cardkeep.errors import ConflictError, NotFoundError, ValidationError
from cardkeep.models import Card, Deck, DeckEntry, MTG_FORMATS
from cardkeep.utils.scryfall import normalize_card

log = logging.getLogger(__name__)

MAX_NAME_LENGTH = 100


# ── Validation helpers ────────────────────────────────────────────────────────

def _clean_name(name) -> str:
    if not isinstance(name, str) or not name.strip():
        raise ValidationError("Deck name is required")
    name = name.strip()
    if len(name) > MAX_NAME_LENGTH:
        raise ValidationError(f"Deck name must be at most {MAX_NAME_LENGTH} characters")
    return name


def _clean_format(fmt) -> str | None:
    if not fmt:
        return None
    if fmt not in MTG_FORMATS:
        raise ValidationError(f"Unknown format '{fmt}'")
    return fmt


def _int(value, minimum: int, message: str) -> int:
    if isinstance(value, bool) or not isinstance(value, int) or value < minimum:
        raise ValidationError(message)
    return value


def _ensure_unique_name(session: Session, name: str, exclude_id: int | None = None) -> None:
    stmt = select(Deck.id).where(Deck.name == name)
    if exclude_id is not None:
        stmt = stmt.where(Deck.id != exclude_id)
    if session.scalar(stmt) is not None:
        raise ConflictError("A deck with this name already exists")


# ── Deck CRUD ─────────────────────────────────────────────────────────────────

def list_decks(session: Session) -> list[Deck]:
    """All decks, newest first."""
    return list(session.scalars(select(Deck).order_by(Deck.created_at.desc(), Deck.id.desc())))


def get_deck(session: Session, deck_id: int) -> Deck:
    deck = session.get(Deck, deck_id)
    if deck is None:
        raise NotFoundError("Deck not found")
    return deck


def create_deck(
    session: Session, name, description: str | None = None, fmt: str | None = None,
) -> Deck:
    """
    Create an empty deck.

    Raises:
        ValidationError: Empty/over-long name or unknown format.
        ConflictError:   Another deck already has this name.
    """
    name = _clean_name(name)
    _ensure_unique_name(session, name)

    deck = Deck(name=name, description=(description or "").strip() or None, format=_clean_format(fmt))
    session.add(deck)
    session.flush()
    log.info("Created deck %r (id=%s)", deck.name, deck.id)
    return deck


def update_deck(
    session: Session, deck_id: int, name, description: str | None = None, fmt: str | None = None,
) -> Deck:
    """Rename a deck and replace its description and format."""
    deck = get_deck(session, deck_id)
    name = _clean_name(name)
    _ensure_unique_name(session, name, exclude_id=deck.id)

    deck.name = name
    deck.description = (description or "").strip() or None
    deck.format = _clean_format(fmt)
    session.flush()
    return deck


def delete_deck(session: Session, deck_id: int) -> None:
    """Delete a deck and its entries. Cards stay in the collection."""
    deck = get_deck(session, deck_id)
    session.delete(deck)
    session.flush()
    log.info("Deleted deck %r", deck.name)


# ── Deck entries ──────────────────────────────────────────────────────────────

def _find_entry(session: Session, deck_id: int, card_id: str, is_sideboard: bool) -> DeckEntry | None:
    return session.scalar(
        select(DeckEntry).where(
            DeckEntry.deck_id == deck_id,
            DeckEntry.card_id == card_id,
            DeckEntry.is_sideboard == bool(is_sideboard),
        )
    )


def _upsert_entry(session: Session, deck: Deck, card: Card, qty: int, is_sideboard: bool) -> DeckEntry:
    """Merge qty into an existing entry, or create a new one."""
    entry = _find_entry(session, deck.id, card.id, is_sideboard)
    if entry is not None:
        entry.quantity += qty
    else:
        entry = DeckEntry(deck=deck, card=card, quantity=qty, is_sideboard=bool(is_sideboard))
        session.add(entry)
    session.flush()
    return entry


def add_card_to_deck(
    session: Session, deck_id: int, card_id, quantity=1, is_sideboard: bool = False,
) -> DeckEntry:
    """
    Add copies of a stored card to a deck board.

    Raises:
        ValidationError: Missing card id or quantity below 1.
        NotFoundError:   Unknown deck or card.
    """
    if not card_id or not isinstance(card_id, str):
        raise ValidationError("Card ID is required")
    qty = _int(quantity, 1, "Quantity must be a positive integer")

    deck = get_deck(session, deck_id)
    card = session.get(Card, card_id)
    if card is None:
        raise NotFoundError("Card not found in collection")

    entry = _upsert_entry(session, deck, card, qty, is_sideboard)
    log.info("Deck %s: +%d %s (now %d)", deck.id, qty, card.name, entry.quantity)
    return entry


def set_deck_card_quantity(
    session: Session, deck_id: int, card_id, quantity, is_sideboard: bool = False,
) -> DeckEntry | None:
    """Set an entry's quantity; 0 removes the entry and returns None."""
    if not card_id or not isinstance(card_id, str):
        raise ValidationError("Card ID is required")
    qty = _int(quantity, 0, "Quantity must be a non-negative integer")

    deck = get_deck(session, deck_id)
    entry = _find_entry(session, deck_id, card_id, is_sideboard)
    if entry is None:
        raise NotFoundError("Card not found in deck")

    if qty == 0:
        deck.entries.remove(entry)
        session.flush()
        return None
    entry.quantity = qty
    session.flush()
    return entry


def remove_card_from_deck(
    session: Session, deck_id: int, card_id, is_sideboard: bool = False,
) -> None:
    if not card_id or not isinstance(card_id, str):
        raise ValidationError("Card ID is required")
    deck = get_deck(session, deck_id)
    entry = _find_entry(session, deck_id, card_id, is_sideboard)
    if entry is None:
        raise NotFoundError("Card not found in deck")
    deck.entries.remove(entry)
    session.flush()


# ── Saving an imported list ───────────────────────────────────────────────────

def _stored_card(session: Session, data: dict) -> Card:
    """The Card row for a Scryfall object, created unowned if it is new."""
    card = session.get(Card, data["id"])
    if card is None:
        card = Card(**normalize_card(data), quantity=0)
        session.add(card)
        session.flush()
    return card


def save_imported_deck(
    session: Session,
    name,
    mainboard: list[dict],
    sideboard: list[dict] | None = None,
    description: str | None = None,
    fmt: str | None = None,
) -> Deck:
    """
    Persist an enriched import (see card_service.enrich_deck_list) as a deck.

    Cards not yet stored are created with quantity 0, so saving a deck never
    changes what the collection owns. Repeated lines for the same card and
    board are merged into one entry.
    """
    deck = create_deck(session, name, description, fmt)

    boards = ((mainboard or [], False), (sideboard or [], True))
    for cards, is_sideboard in boards:
        for data in cards:
            if not data.get("id") or not data.get("name"):
                raise ValidationError("Every imported card needs an id and a name")
            qty = _int(data.get("quantity") or 1, 1, "Quantity must be a positive integer")
            card = _stored_card(session, data)
            _upsert_entry(session, deck, card, qty, is_sideboard)

    log.info("Saved imported deck %r: %d cards", deck.name, deck.card_count)
    return deck
