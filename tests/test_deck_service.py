"""
Tests for cardkeep.utils.deck_service.
"""
import pytest
from sqlalchemy import select

from cardkeep.errors import ConflictError, NotFoundError, ValidationError
from cardkeep.models import Card, Deck, DeckEntry
from cardkeep.utils.deck_service import (
    add_card_to_deck,
    create_deck,
    delete_deck,
    get_deck,
    list_decks,
    remove_card_from_deck,
    save_imported_deck,
    set_deck_card_quantity,
    update_deck,
)


@pytest.fixture
def bolt(session):
    card = Card(id="bolt", name="Lightning Bolt", type_line="Instant", quantity=2)
    session.add(card)
    session.flush()
    return card


@pytest.fixture
def deck(session):
    return create_deck(session, "Burn", fmt="Modern")


# ── Deck CRUD ─────────────────────────────────────────────────────────────────

class TestDeckCrud:

    def test_create(self, session):
        deck = create_deck(session, "  Burn  ", description=" fast ", fmt="Modern")
        assert deck.id is not None
        assert deck.name == "Burn"
        assert deck.description == "fast"
        assert deck.format == "Modern"
        assert deck.card_count == 0

    @pytest.mark.parametrize("name", ["", "   ", None, "x" * 101])
    def test_bad_name(self, session, name):
        with pytest.raises(ValidationError):
            create_deck(session, name)

    def test_unknown_format(self, session):
        with pytest.raises(ValidationError):
            create_deck(session, "Burn", fmt="Hearthstone")

    def test_duplicate_name(self, session, deck):
        with pytest.raises(ConflictError):
            create_deck(session, "Burn")

    def test_update(self, session, deck):
        updated = update_deck(session, deck.id, "Boros Burn", "now with white", "Pioneer")
        assert (updated.name, updated.description, updated.format) == (
            "Boros Burn", "now with white", "Pioneer",
        )

    def test_update_keeps_own_name(self, session, deck):
        assert update_deck(session, deck.id, "Burn").format is None

    def test_update_to_taken_name(self, session, deck):
        other = create_deck(session, "Control")
        with pytest.raises(ConflictError):
            update_deck(session, other.id, "Burn")

    def test_list_newest_first(self, session):
        create_deck(session, "First")
        create_deck(session, "Second")
        assert [d.name for d in list_decks(session)] == ["Second", "First"]

    def test_delete_keeps_cards(self, session, deck, bolt):
        add_card_to_deck(session, deck.id, "bolt", 4)
        delete_deck(session, deck.id)

        with pytest.raises(NotFoundError):
            get_deck(session, deck.id)
        assert session.scalars(select(DeckEntry)).all() == []
        assert session.get(Card, "bolt").quantity == 2

    def test_missing_deck(self, session):
        with pytest.raises(NotFoundError):
            delete_deck(session, 404)


# ── Deck entries ──────────────────────────────────────────────────────────────

class TestDeckEntries:

    def test_add_and_merge(self, session, deck, bolt):
        add_card_to_deck(session, deck.id, "bolt", 2)
        entry = add_card_to_deck(session, deck.id, "bolt", 2)
        assert entry.quantity == 4
        assert deck.card_count == 4
        assert deck.unique_cards == 1

    def test_boards_are_separate(self, session, deck, bolt):
        add_card_to_deck(session, deck.id, "bolt", 4)
        side = add_card_to_deck(session, deck.id, "bolt", 1, is_sideboard=True)
        assert side.quantity == 1
        assert deck.unique_cards == 2
        assert deck.card_count == 5

    def test_deck_copies_do_not_change_ownership(self, session, deck, bolt):
        add_card_to_deck(session, deck.id, "bolt", 4)
        assert session.get(Card, "bolt").quantity == 2

    @pytest.mark.parametrize("qty", [0, -2, "3", True, 1.5])
    def test_bad_quantity(self, session, deck, bolt, qty):
        with pytest.raises(ValidationError):
            add_card_to_deck(session, deck.id, "bolt", qty)

    def test_missing_card_id(self, session, deck):
        with pytest.raises(ValidationError):
            add_card_to_deck(session, deck.id, "")

    def test_card_not_stored(self, session, deck):
        with pytest.raises(NotFoundError):
            add_card_to_deck(session, deck.id, "ghost")

    def test_set_quantity(self, session, deck, bolt):
        add_card_to_deck(session, deck.id, "bolt", 4)
        entry = set_deck_card_quantity(session, deck.id, "bolt", 3)
        assert entry.quantity == 3

    def test_set_quantity_zero_removes_entry(self, session, deck, bolt):
        add_card_to_deck(session, deck.id, "bolt", 4)
        add_card_to_deck(session, deck.id, "bolt", 1, is_sideboard=True)

        assert set_deck_card_quantity(session, deck.id, "bolt", 0) is None
        assert [e.is_sideboard for e in deck.entries] == [True]
        assert len(session.scalars(select(DeckEntry)).all()) == 1

    def test_set_quantity_wrong_board(self, session, deck, bolt):
        add_card_to_deck(session, deck.id, "bolt", 4)
        with pytest.raises(NotFoundError):
            set_deck_card_quantity(session, deck.id, "bolt", 2, is_sideboard=True)

    def test_remove(self, session, deck, bolt):
        add_card_to_deck(session, deck.id, "bolt", 4)
        remove_card_from_deck(session, deck.id, "bolt")
        assert deck.entries == []
        with pytest.raises(NotFoundError):
            remove_card_from_deck(session, deck.id, "bolt")

    def test_to_dict_lists_cards(self, session, deck, bolt):
        add_card_to_deck(session, deck.id, "bolt", 4)
        [card] = deck.to_dict(include_cards=True)["cards"]
        assert card["quantity"] == 4
        assert card["owned_quantity"] == 2
        assert card["is_sideboard"] is False


# ── Saving imports ────────────────────────────────────────────────────────────

class TestSaveImportedDeck:

    def test_creates_unowned_cards_and_merges(self, session, bolt, card_factory):
        mainboard = [
            card_factory("Lightning Bolt", card_id="bolt", quantity=4),
            card_factory("Mountain", card_id="mtn", type_line="Basic Land — Mountain", quantity=10),
            card_factory("Mountain", card_id="mtn", type_line="Basic Land — Mountain", quantity=10),
        ]
        sideboard = [card_factory("Pyroblast", card_id="pyro", quantity=2)]

        deck = save_imported_deck(session, "Imported", mainboard, sideboard, fmt="Legacy")

        assert deck.format == "Legacy"
        assert deck.card_count == 26
        assert deck.unique_cards == 3
        # Existing row untouched, new rows unowned
        assert session.get(Card, "bolt").quantity == 2
        assert session.get(Card, "mtn").quantity == 0
        assert session.get(Card, "pyro").quantity == 0

        side = [e for e in deck.entries if e.is_sideboard]
        assert [(e.card_id, e.quantity) for e in side] == [("pyro", 2)]

    def test_bad_card_payload(self, session):
        with pytest.raises(ValidationError):
            save_imported_deck(session, "Imported", [{"quantity": 2}])

    def test_name_conflict(self, session, deck, card_factory):
        with pytest.raises(ConflictError):
            save_imported_deck(session, "Burn", [card_factory(card_id="x")])
        assert session.scalars(select(Deck)).all() == [deck]
