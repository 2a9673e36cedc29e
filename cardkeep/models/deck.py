from sqlalchemy import (
    Boolean, Column, DateTime, ForeignKey, Integer, String, Text, UniqueConstraint,
)
from sqlalchemy.orm import relationship

from cardkeep.models.base import Base, as_utc, utcnow

# Valid MTG formats, stored as plain string in DB
MTG_FORMATS = [
    "Commander",
    "Standard",
    "Pioneer",
    "Modern",
    "Legacy",
    "Vintage",
    "Pauper",
    "Limited",
    "Casual",
    "Other",
]


class Deck(Base):
    """A named deck. Cards are attached through DeckEntry rows."""
    __tablename__ = "decks"

    id          = Column(Integer, primary_key=True)
    name        = Column(String(100), nullable=False, unique=True)
    description = Column(Text)
    format      = Column(String(30))
    created_at  = Column(DateTime(timezone=True), default=utcnow, index=True)
    updated_at  = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow)

    # ── Relationships ────────────────────────────────────────────────────────
    entries = relationship(
        "DeckEntry", back_populates="deck",
        cascade="all, delete-orphan", passive_deletes=True,
        order_by="DeckEntry.id",
    )

    # ── Computed properties ──────────────────────────────────────────────────
    @property
    def card_count(self) -> int:
        """Sum of all entry quantities (4x Lightning Bolt counts as 4)."""
        return sum(e.quantity for e in self.entries)

    @property
    def unique_cards(self) -> int:
        return len(self.entries)

    def to_dict(self, include_cards: bool = False) -> dict:
        data = {
            "id":           self.id,
            "name":         self.name,
            "description":  self.description,
            "format":       self.format,
            "created_at":   as_utc(self.created_at).isoformat() if self.created_at else None,
            "updated_at":   as_utc(self.updated_at).isoformat() if self.updated_at else None,
            "card_count":   self.card_count,
            "unique_cards": self.unique_cards,
        }
        if include_cards:
            data["cards"] = [e.to_dict() for e in sorted(self.entries, key=lambda e: e.card.name)]
        return data

    def __repr__(self) -> str:
        return f"<Deck {self.name!r}>"


class DeckEntry(Base):
    """Copies of one card in one deck section.

    Mainboard and sideboard copies of the same card are separate rows, so
    "2 main + 1 side" is representable and each count is tracked on its own.
    """
    __tablename__ = "deck_cards"
    __table_args__ = (
        UniqueConstraint("deck_id", "card_id", "is_sideboard", name="uq_deck_card_board"),
    )

    id           = Column(Integer, primary_key=True)
    deck_id      = Column(
        Integer, ForeignKey("decks.id", ondelete="CASCADE"), nullable=False, index=True
    )
    card_id      = Column(
        String(40), ForeignKey("cards.id", ondelete="CASCADE"), nullable=False, index=True
    )
    quantity     = Column(Integer, nullable=False, default=1)
    is_sideboard = Column(Boolean, nullable=False, default=False)

    deck = relationship("Deck", back_populates="entries")
    card = relationship("Card", back_populates="deck_entries")

    def to_dict(self) -> dict:
        """Card dict with the copies this deck needs stored under "quantity"."""
        data = self.card.to_dict()
        data["owned_quantity"] = data["quantity"]
        data["quantity"] = self.quantity
        data["deck_quantity"] = self.quantity
        data["is_sideboard"] = bool(self.is_sideboard)
        return data

    def __repr__(self) -> str:
        board = "side" if self.is_sideboard else "main"
        return f"<DeckEntry {self.quantity}x {self.card_id} [{board}]>"
