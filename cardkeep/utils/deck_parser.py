"""
Decklist text parser and validator — pure functions, no I/O.

parse_deck_list() turns pasted text (Arena / MTGO / Moxfield exports, or a
hand-typed list) into mainboard and sideboard entries. It never raises on
a bad line: lines it cannot read simply produce no entry. Structural
problems (too few cards, oversized sideboard) are reported by
validate_deck(), which is a separate step.
"""
import re
from dataclasses import dataclass, field

# "Sideboard", "SIDEBOARD:", "Sideboard (15)": one-way switch into the sideboard
_SIDEBOARD_RE = re.compile(r"^sideboard", re.IGNORECASE)

# Bare category headers such as "Creatures (12)" or "Lands(24)"
_CATEGORY_RE = re.compile(r"^[a-z]+\s*\(\d+\)$", re.IGNORECASE)

# Arena's opening "Deck" header
_DECK_HEADER_RE = re.compile(r"^deck$", re.IGNORECASE)

# Quantity at the start: "4 Lightning Bolt", "4x Lightning Bolt"
_QTY_LINE_RE = re.compile(r"^(\d+)x?\s+(.+)$")

# Set-code annotations: "(NEO)", "[NEO]"
_SET_CODE_RE = re.compile(r"[(\[][\w\d]+[)\]]")

MIN_MAINBOARD = 30
MAX_MAINBOARD = 250
MAX_SIDEBOARD = 15


@dataclass
class ParsedDeckCard:
    """One card line from a decklist."""
    quantity: int
    name: str
    is_sideboard: bool = False

    def to_dict(self) -> dict:
        return {"quantity": self.quantity, "name": self.name, "is_sideboard": self.is_sideboard}


@dataclass
class ParsedDeck:
    mainboard: list[ParsedDeckCard] = field(default_factory=list)
    sideboard: list[ParsedDeckCard] = field(default_factory=list)

    @property
    def total_cards(self) -> int:
        return self.mainboard_count + self.sideboard_count

    @property
    def mainboard_count(self) -> int:
        return sum(c.quantity for c in self.mainboard)

    @property
    def sideboard_count(self) -> int:
        return sum(c.quantity for c in self.sideboard)

    @property
    def cards(self) -> list[ParsedDeckCard]:
        return self.mainboard + self.sideboard

    def to_dict(self) -> dict:
        return {
            "mainboard":   [c.to_dict() for c in self.mainboard],
            "sideboard":   [c.to_dict() for c in self.sideboard],
            "total_cards": self.total_cards,
        }


@dataclass
class DeckValidation:
    valid: bool
    errors: list[str]

    def to_dict(self) -> dict:
        return {"valid": self.valid, "errors": self.errors}


# ── Parser ────────────────────────────────────────────────────────────────────

def clean_card_name(name: str) -> str:
    """Front face only for DFCs, set-code annotations removed."""
    if "//" in name:
        name = name.split("//", 1)[0].strip()
    return _SET_CODE_RE.sub("", name).strip()


def parse_card_line(line: str) -> tuple[int, str] | None:
    """
    Parse one trimmed card line into (quantity, name).

    Supported formats:
      4 Lightning Bolt
      4x Lightning Bolt
      1 Island (NEO)
      1 Brazen Borrower // Petty Theft
      Lightning Bolt            (no quantity → 1 copy)

    Returns None for lines that start with a digit but are not a
    quantity + name pair, and for lines that leave no name behind.
    """
    match = _QTY_LINE_RE.match(line)
    if match:
        quantity = int(match.group(1))
        name = clean_card_name(match.group(2).strip())
    elif line and line[0] not in "0123456789":
        quantity = 1
        name = clean_card_name(line)
    else:
        return None

    if quantity < 1 or not name:
        return None
    return quantity, name


def parse_deck_list(text: str) -> ParsedDeck:
    """Parse a full decklist string into mainboard and sideboard entries.

    Entries keep input order and duplicate names are not merged.
    """
    deck = ParsedDeck()
    in_sideboard = False

    for raw_line in (text or "").splitlines():
        line = raw_line.strip()
        if not line:
            continue
        if _SIDEBOARD_RE.match(line):
            in_sideboard = True
            continue
        if _CATEGORY_RE.match(line) or _DECK_HEADER_RE.match(line):
            continue

        parsed = parse_card_line(line)
        if parsed is None:
            continue

        quantity, name = parsed
        card = ParsedDeckCard(quantity=quantity, name=name, is_sideboard=in_sideboard)
        if in_sideboard:
            deck.sideboard.append(card)
        else:
            deck.mainboard.append(card)

    return deck


# ── Validator ─────────────────────────────────────────────────────────────────

def validate_deck(deck: ParsedDeck) -> DeckValidation:
    """Check a parsed deck against loose format-size limits.

    The 30–250 mainboard window admits limited, constructed and commander
    lists alike. Every rule is checked and every violation reported.
    """
    errors: list[str] = []

    if not deck.mainboard:
        errors.append("Deck must have at least one card")

    main_size = deck.mainboard_count
    if main_size < MIN_MAINBOARD:
        errors.append(f"Mainboard has only {main_size} cards (seems too small)")
    if main_size > MAX_MAINBOARD:
        errors.append(f"Mainboard has {main_size} cards (seems too large)")

    side_size = deck.sideboard_count
    if side_size > MAX_SIDEBOARD:
        errors.append(
            f"Sideboard has {side_size} cards (too large, maximum is usually {MAX_SIDEBOARD})"
        )

    return DeckValidation(valid=not errors, errors=errors)
