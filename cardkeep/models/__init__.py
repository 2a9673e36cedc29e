# Import all models so Base.metadata knows every table before create_all().
# Card before Deck: deck_cards has a foreign key into cards.
from cardkeep.models.base import Base
from cardkeep.models.card import Card
from cardkeep.models.deck import Deck, DeckEntry, MTG_FORMATS

__all__ = [
    "Base",
    "Card",
    "Deck", "DeckEntry", "MTG_FORMATS",
]
