"""
Tests for cardkeep.utils.card_service against the in-memory store.

Scryfall lookups are patched where card_service imported them.
"""
from datetime import datetime, timedelta, timezone
from unittest.mock import patch

import pytest
from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError

from cardkeep.errors import NotFoundError, PersistenceError, UpstreamLookupError, ValidationError
from cardkeep.models import Card, Deck, DeckEntry
from cardkeep.utils.card_service import (
    add_card,
    cards_added_today,
    enrich_deck_list,
    list_collection,
    lookup_card,
    refresh_missing_images,
    remove_card,
    replace_collection,
    set_favorite,
    set_quantity,
)

SVC = "cardkeep.utils.card_service"


# ── lookup_card ───────────────────────────────────────────────────────────────

class TestLookupCard:

    def test_requires_identifier(self):
        with pytest.raises(ValidationError):
            lookup_card()

    def test_by_id(self, card_factory):
        data = card_factory(card_id="bolt")
        with patch(f"{SVC}.get_card_by_id", return_value=data):
            assert lookup_card(card_id="bolt") == (data, False)

    def test_fuzzy_fallback(self, card_factory):
        data = card_factory("Lightning Bolt")
        miss = UpstreamLookupError("Card not found", status_code=404, not_found=True)
        with patch(f"{SVC}.get_card_by_name", side_effect=[miss, data]) as named:
            assert lookup_card(name="Lightnin Bolt") == (data, True)
        assert named.call_args_list[1].kwargs == {"fuzzy": True}

    def test_not_found_anywhere(self):
        miss = UpstreamLookupError("Card not found", status_code=404, not_found=True)
        with patch(f"{SVC}.get_card_by_name", side_effect=miss):
            with pytest.raises(NotFoundError):
                lookup_card(name="Zzzz")

    def test_upstream_error_not_retried_fuzzy(self):
        err = UpstreamLookupError("Scryfall returned 500", status_code=500)
        with patch(f"{SVC}.get_card_by_name", side_effect=err) as named:
            with pytest.raises(UpstreamLookupError):
                lookup_card(name="Opt")
        assert named.call_count == 1


# ── add / remove / quantity ───────────────────────────────────────────────────

class TestAddCard:

    def test_full_payload_no_lookup(self, session, card_factory):
        data = card_factory("Lightning Bolt", usd="1.00", card_id="bolt")
        with patch(f"{SVC}.get_card_by_id") as by_id:
            card, created = add_card(session, data)

        by_id.assert_not_called()
        assert created is True
        assert card.quantity == 1
        assert card.price_usd == "1.00"
        assert card.image_normal

    def test_merges_quantity(self, session, card_factory):
        data = card_factory(card_id="bolt")
        add_card(session, data, quantity=2)
        card, created = add_card(session, data, quantity=3)
        assert created is False
        assert card.quantity == 5
        assert len(session.scalars(select(Card)).all()) == 1

    def test_lookup_by_name_sets_fuzzy_flag(self, session, card_factory):
        data = card_factory("Lightning Bolt", card_id="bolt")
        with patch(f"{SVC}.lookup_card", return_value=(data, True)):
            card, _ = add_card(session, {"name": "lightnig bolt"})
        assert card.name == "Lightning Bolt"
        assert card.fuzzy_match is True

    def test_quantity_from_payload(self, session, card_factory):
        card, _ = add_card(session, card_factory(card_id="bolt", quantity=4))
        assert card.quantity == 4

    @pytest.mark.parametrize("qty", [0, -1, "x", 1.5, True])
    def test_bad_quantity(self, session, card_factory, qty):
        with pytest.raises(ValidationError):
            add_card(session, card_factory(), quantity=qty)

    def test_no_identifier(self, session):
        with pytest.raises(ValidationError):
            add_card(session, {"quantity": 1})


class TestRemoveAndQuantity:

    @pytest.fixture
    def bolt(self, session, card_factory):
        card, _ = add_card(session, card_factory(card_id="bolt"), quantity=2)
        return card

    def test_remove_one_copy(self, session, bolt):
        card = remove_card(session, "bolt")
        assert card.quantity == 1
        remove_card(session, "bolt")
        # Logical delete: the row stays, the collection no longer lists it
        assert session.get(Card, "bolt").quantity == 0
        assert list_collection(session) == []

    def test_remove_from_empty_row(self, session, bolt):
        set_quantity(session, "bolt", 0)
        with pytest.raises(NotFoundError):
            remove_card(session, "bolt")

    def test_remove_all_deletes_row_and_deck_entries(self, session, bolt):
        deck = Deck(name="Burn")
        session.add(deck)
        session.flush()
        session.add(DeckEntry(deck_id=deck.id, card_id="bolt", quantity=4))
        session.flush()

        assert remove_card(session, "bolt", remove_all=True) is None
        assert session.get(Card, "bolt") is None
        assert session.scalars(select(DeckEntry)).all() == []

    def test_remove_unknown(self, session):
        with pytest.raises(NotFoundError):
            remove_card(session, "nope")

    def test_set_quantity(self, session, bolt):
        assert set_quantity(session, "bolt", 7).quantity == 7
        assert set_quantity(session, "bolt", 0).quantity == 0

    @pytest.mark.parametrize("qty", [-1, None, "many"])
    def test_set_quantity_invalid(self, session, bolt, qty):
        with pytest.raises(ValidationError):
            set_quantity(session, "bolt", qty)

    def test_set_quantity_unknown(self, session):
        with pytest.raises(NotFoundError):
            set_quantity(session, "nope", 1)

    def test_favorite(self, session, bolt):
        assert set_favorite(session, "bolt", True).is_favorite is True
        assert set_favorite(session, "bolt", False).is_favorite is False


# ── Listings ──────────────────────────────────────────────────────────────────

class TestListings:

    def test_newest_first_and_owned_only(self, session):
        now = datetime.now(timezone.utc)
        session.add_all([
            Card(id="old", name="Old", type_line="", quantity=1, created_at=now - timedelta(days=3)),
            Card(id="new", name="New", type_line="", quantity=1, created_at=now),
            Card(id="gone", name="Gone", type_line="", quantity=0, created_at=now),
        ])
        session.flush()
        assert [c.id for c in list_collection(session)] == ["new", "old"]

    def test_added_today(self, session):
        now = datetime(2025, 3, 10, 15, 0, tzinfo=timezone.utc)
        session.add_all([
            Card(id="a", name="A", type_line="", created_at=now.replace(hour=1)),
            Card(id="b", name="B", type_line="", created_at=now - timedelta(days=1)),
            Card(id="c", name="C", type_line="", quantity=0, created_at=now),
        ])
        session.flush()
        assert [c.id for c in cards_added_today(session, now=now)] == ["a"]


# ── Bulk replace ──────────────────────────────────────────────────────────────

class TestReplaceCollection:

    def test_replaces_everything(self, session, card_factory):
        add_card(session, card_factory(card_id="old"))
        incoming = [
            card_factory("Opt", card_id="n1", quantity=3, is_favorite=True,
                         price_history={"usd_6mo_ago": "0.10", "usd_12mo_ago": None, "last_updated": None}),
            card_factory("Ponder", card_id="n2"),
        ]
        assert replace_collection(session, incoming) == 2

        ids = sorted(c.id for c in session.scalars(select(Card)))
        assert ids == ["n1", "n2"]
        opt = session.get(Card, "n1")
        assert opt.quantity == 3
        assert opt.is_favorite is True
        assert opt.price_usd_6mo_ago == "0.10"

    def test_round_trips_own_export(self, session, card_factory):
        card, _ = add_card(session, card_factory(card_id="bolt"), quantity=2)
        exported = [card.to_dict()]
        replace_collection(session, exported)
        assert session.get(Card, "bolt").quantity == 2

    def test_invalid_payload_raises_before_writing(self, session, card_factory):
        add_card(session, card_factory(card_id="keep"))
        with pytest.raises(ValidationError):
            replace_collection(session, [card_factory(card_id="n1"), {"name": "No id"}])
        assert session.get(Card, "keep") is not None

    def test_not_a_list(self, session):
        with pytest.raises(ValidationError):
            replace_collection(session, {"cards": []})

    def test_write_failure_after_delete_rolls_back(self, store, card_factory):
        with store.session_scope() as s:
            add_card(s, card_factory("Opt", card_id="old"), quantity=3)
            deck = Deck(name="Blue")
            s.add(deck)
            s.flush()
            s.add(DeckEntry(deck_id=deck.id, card_id="old", quantity=4))

        with pytest.raises(PersistenceError):
            with store.session_scope() as s:

                def fail_insert(rows):
                    # The delete has already run inside this transaction
                    assert s.scalars(select(Card)).all() == []
                    assert s.scalars(select(DeckEntry)).all() == []
                    raise SQLAlchemyError("disk I/O error")

                with patch.object(s, "add_all", side_effect=fail_insert):
                    replace_collection(s, [card_factory("Ponder", card_id="new")])

        with store.session_scope() as s:
            assert [c.id for c in s.scalars(select(Card))] == ["old"]
            assert s.get(Card, "old").quantity == 3
            [entry] = s.scalars(select(DeckEntry)).all()
            assert (entry.card_id, entry.quantity) == ("old", 4)


# ── Image back-fill ───────────────────────────────────────────────────────────

class TestRefreshMissingImages:

    def test_nothing_to_do(self, session):
        assert refresh_missing_images(session, pause=0)["updated"] == 0

    def test_fills_images_and_skips_failures(self, session, card_factory):
        session.add_all([
            Card(id="a", name="Alpha", type_line="Instant"),
            Card(id="b", name="Beta", type_line="Instant"),
        ])
        session.flush()

        def lookup(card_id):
            if card_id == "b":
                raise UpstreamLookupError("Scryfall returned 500", status_code=500)
            return card_factory("Alpha", card_id="a")

        with patch(f"{SVC}.get_card_by_id", side_effect=lookup):
            result = refresh_missing_images(session, pause=0)

        assert result["updated"] == 1
        assert result["total"] == 2
        assert session.get(Card, "a").image_normal is not None
        assert session.get(Card, "b").image_normal is None


# ── Decklist enrichment ───────────────────────────────────────────────────────

DECK_TEXT = "4 Lightning Bolt\n56 Mountain\nSideboard\n2 Pyroblast\n1 Made Up Card\n"


class TestEnrichDeckList:

    def test_enriches_and_reports_missing(self, card_factory):
        found = {
            "lightning bolt": card_factory("Lightning Bolt", card_id="bolt"),
            "mountain": card_factory("Mountain", card_id="mtn", type_line="Basic Land — Mountain"),
            "pyroblast": card_factory("Pyroblast", card_id="pyro"),
        }
        with patch(f"{SVC}.fetch_collection", return_value=(found, ["Made Up Card"])) as fetch:
            result = enrich_deck_list(DECK_TEXT)

        assert fetch.call_args.args[0] == ["Lightning Bolt", "Mountain", "Pyroblast", "Made Up Card"]
        assert [(c["name"], c["quantity"]) for c in result["mainboard"]] == [
            ("Lightning Bolt", 4), ("Mountain", 56),
        ]
        assert [c["name"] for c in result["sideboard"]] == ["Pyroblast"]
        assert result["sideboard"][0]["is_sideboard"] is True
        assert result["total_cards"] == 63
        assert result["not_found"] == ["Made Up Card"]

    def test_invalid_deck(self):
        with patch(f"{SVC}.fetch_collection") as fetch:
            with pytest.raises(ValidationError) as exc:
                enrich_deck_list("4 Lightning Bolt")
        fetch.assert_not_called()
        assert exc.value.details == ["Mainboard has only 4 cards (seems too small)"]

    def test_empty_text(self):
        with pytest.raises(ValidationError):
            enrich_deck_list("   ")
