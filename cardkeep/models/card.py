import json

from sqlalchemy import Boolean, Column, DateTime, Integer, String, Text
from sqlalchemy.orm import relationship

from cardkeep.models.base import Base, as_utc, utcnow


class Card(Base):
    """Cached Scryfall card data plus the owner's copy count.

    The primary key is the Scryfall id, so each row is one printing.
    quantity = 0 keeps the row (deck lists may still reference it) but
    removes the card from the owned collection.
    Prices are kept as the strings Scryfall returns; use
    cardkeep.utils.helpers.to_float() before doing arithmetic.
    """
    __tablename__ = "cards"

    id               = Column(String(40), primary_key=True)
    name             = Column(String(200), nullable=False, index=True)
    mana_cost        = Column(String(100))
    type_line        = Column(String(200), nullable=False, default="", index=True)
    oracle_text      = Column(Text)
    colors           = Column(String(20))   # e.g. "WUB", "" for colorless
    color_identity   = Column(String(20))

    # Images (Scryfall CDN URLs, front face for DFCs)
    image_normal     = Column(String(400))
    image_small      = Column(String(400))
    image_large      = Column(String(400))
    card_faces       = Column(Text)         # JSON list, NULL for single-faced cards

    # Current prices
    price_usd        = Column(String(20))
    price_usd_foil   = Column(String(20))
    price_eur        = Column(String(20))
    price_tix        = Column(String(20))

    # Rolling price history (see price_service.rotate_price_history)
    price_usd_6mo_ago  = Column(String(20))
    price_usd_12mo_ago = Column(String(20))
    price_last_updated = Column(DateTime(timezone=True))

    quantity         = Column(Integer, nullable=False, default=1)
    is_favorite      = Column(Boolean, nullable=False, default=False)
    fuzzy_match      = Column(Boolean, nullable=False, default=False)

    created_at       = Column(DateTime(timezone=True), default=utcnow, index=True)
    updated_at       = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow)

    # ── Relationships ────────────────────────────────────────────────────────
    deck_entries = relationship(
        "DeckEntry", back_populates="card",
        cascade="all, delete-orphan", passive_deletes=True,
    )

    # ── Helpers ─────────────────────────────────────────────────────────────
    @property
    def is_owned(self) -> bool:
        return (self.quantity or 0) > 0

    @property
    def faces(self) -> list[dict]:
        if not self.card_faces:
            return []
        try:
            return json.loads(self.card_faces)
        except ValueError:
            return []

    def to_dict(self) -> dict:
        """Scryfall-shaped dict, the form the pricing and comparison code reads."""
        last = as_utc(self.price_last_updated)
        return {
            "id":             self.id,
            "name":           self.name,
            "mana_cost":      self.mana_cost,
            "type_line":      self.type_line or "",
            "oracle_text":    self.oracle_text,
            "colors":         list(self.colors or ""),
            "color_identity": list(self.color_identity or ""),
            "image_uris": {
                "normal": self.image_normal,
                "small":  self.image_small or self.image_normal,
                "large":  self.image_large or self.image_normal,
            } if self.image_normal else None,
            "card_faces": self.faces or None,
            "prices": {
                "usd":      self.price_usd,
                "usd_foil": self.price_usd_foil,
                "eur":      self.price_eur,
                "tix":      self.price_tix,
            },
            "price_history": {
                "usd_6mo_ago":  self.price_usd_6mo_ago,
                "usd_12mo_ago": self.price_usd_12mo_ago,
                "last_updated": last.isoformat() if last else None,
            },
            "quantity":    self.quantity,
            "is_favorite": bool(self.is_favorite),
            "fuzzy_match": bool(self.fuzzy_match),
            "created_at":  as_utc(self.created_at).isoformat() if self.created_at else None,
        }

    def __repr__(self) -> str:
        return f"<Card {self.name} x{self.quantity}>"
