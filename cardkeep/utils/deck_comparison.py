"""
Deck-vs-collection comparison.

compare_deck() is pure: it takes Scryfall-shaped card dicts whose
"quantity" is the number of copies the deck needs, plus a mapping of card
id → copies owned, and works out what is missing and what it would cost.
compare_deck_with_collection() is the store-backed wrapper used by the
decks blueprint.
"""
import logging
from dataclasses import dataclass, field
from typing import Mapping

from sqlalchemy.orm import Session

from cardkeep.errors import NotFoundError
from cardkeep.models import Deck
from cardkeep.utils.helpers import usd_price

log = logging.getLogger(__name__)

SHOPPING_LIST_RULE = "═" * 50
SHOPPING_LIST_SEPARATOR = "─" * 50
FULLY_OWNED_MESSAGE = "You own all cards in this deck!"

_SPELL_TYPES = ("instant", "sorcery", "enchantment", "artifact", "planeswalker")


@dataclass
class DeckCardComparison:
    card: dict
    deck_quantity: int
    owned_quantity: int

    @property
    def name(self) -> str:
        return self.card.get("name", "")

    @property
    def missing_quantity(self) -> int:
        return max(0, self.deck_quantity - self.owned_quantity)

    @property
    def has_enough(self) -> bool:
        return self.owned_quantity >= self.deck_quantity

    @property
    def completion_percentage(self) -> float:
        return min(100.0, self.owned_quantity / self.deck_quantity * 100)

    @property
    def unit_price(self) -> float:
        return usd_price(self.card)

    def to_dict(self) -> dict:
        return {
            **self.card,
            "deck_quantity":         self.deck_quantity,
            "owned_quantity":        self.owned_quantity,
            "missing_quantity":      self.missing_quantity,
            "has_enough":            self.has_enough,
            "completion_percentage": round(self.completion_percentage, 2),
        }


@dataclass
class DeckComparison:
    cards: list[DeckCardComparison] = field(default_factory=list)

    @property
    def total_cards(self) -> int:
        return sum(c.deck_quantity for c in self.cards)

    @property
    def owned_cards(self) -> int:
        # Spare copies of one card never cover another card's shortfall
        return sum(min(c.owned_quantity, c.deck_quantity) for c in self.cards)

    @property
    def missing_cards(self) -> int:
        return self.total_cards - self.owned_cards

    @property
    def completion_percentage(self) -> float:
        total = self.total_cards
        return self.owned_cards / total * 100 if total > 0 else 0.0

    @property
    def estimated_cost(self) -> float:
        return sum(
            c.unit_price * c.missing_quantity
            for c in self.cards if c.missing_quantity > 0
        )

    @property
    def missing_cards_list(self) -> list[DeckCardComparison]:
        return [c for c in self.cards if not c.has_enough]

    def to_dict(self) -> dict:
        return {
            "cards":                 [c.to_dict() for c in self.cards],
            "total_cards":           self.total_cards,
            "owned_cards":           self.owned_cards,
            "missing_cards":         self.missing_cards,
            "completion_percentage": round(self.completion_percentage, 2),
            "estimated_cost":        round(self.estimated_cost, 2),
            "missing_cards_list":    [c.to_dict() for c in self.missing_cards_list],
        }


# ── Pure engine ───────────────────────────────────────────────────────────────

def compare_deck(deck_cards: list[dict], owned: Mapping[str, int]) -> DeckComparison:
    """Compare each deck card against the owned copy count.

    Args:
        deck_cards: card dicts; "quantity" is the number the deck needs
                    (missing or 0 counts as 1).
        owned:      card id → owned quantity; absent ids count as 0.
    """
    comparison = DeckComparison()
    for card in deck_cards:
        needed = card.get("quantity") or 1
        have = max(0, owned.get(card.get("id"), 0) or 0)
        comparison.cards.append(
            DeckCardComparison(card=card, deck_quantity=needed, owned_quantity=have)
        )
    return comparison


def generate_shopping_list(comparison: DeckComparison) -> str:
    """Plain-text list of the cards still to buy, with line and total cost."""
    missing = comparison.missing_cards_list
    if not missing:
        return FULLY_OWNED_MESSAGE

    lines = ["SHOPPING LIST", SHOPPING_LIST_RULE, ""]
    total_cost = 0.0

    for c in missing:
        price = c.unit_price
        line_cost = price * c.missing_quantity
        total_cost += line_cost

        line = f"{c.missing_quantity}x {c.name}"
        if price > 0:
            line += f" - ${line_cost:.2f}"
        lines.append(line)

    lines += [
        "",
        SHOPPING_LIST_SEPARATOR,
        f"Total: ${total_cost:.2f}",
        f"Missing {comparison.missing_cards} of {comparison.total_cards} cards",
    ]
    return "\n".join(lines) + "\n"


def card_group(type_line: str | None) -> str:
    """Display bucket for a type line; the first match wins."""
    t = (type_line or "").lower()
    if "creature" in t:
        return "creatures"
    if any(kind in t for kind in _SPELL_TYPES):
        return "spells"
    if "land" in t:
        return "lands"
    return "other"


def group_cards_by_type(cards: list) -> dict[str, list]:
    """Split comparisons (or plain card dicts) into creatures/spells/lands/other."""
    groups: dict[str, list] = {"creatures": [], "spells": [], "lands": [], "other": []}
    for c in cards:
        card = c.card if isinstance(c, DeckCardComparison) else c
        groups[card_group(card.get("type_line"))].append(c)
    return groups


# ── Store-backed wrapper ──────────────────────────────────────────────────────

def compare_deck_with_collection(
    session: Session, deck_id: int, include_sideboard: bool = True,
) -> DeckComparison:
    """Compare a saved deck against the owned quantities in the cards table.

    Every entry is compared on its own; a card with both mainboard and
    sideboard copies is checked twice against the same owned count.

    Raises:
        NotFoundError: No deck with this id.
    """
    deck = session.get(Deck, deck_id)
    if deck is None:
        raise NotFoundError("Deck not found")

    entries = [e for e in deck.entries if include_sideboard or not e.is_sideboard]
    deck_cards = [e.to_dict() for e in entries]
    owned = {e.card.id: e.card.quantity or 0 for e in entries}

    comparison = compare_deck(deck_cards, owned)
    log.debug(
        "Deck %s comparison: %d/%d cards owned",
        deck_id, comparison.owned_cards, comparison.total_cards,
    )
    return comparison
