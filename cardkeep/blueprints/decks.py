"""
Decks blueprint.

Handles deck CRUD, card membership per board, decklist import and the
deck-vs-collection comparison.

Deck entry rules:
  - A card must already have a Card row before it can join a deck
  - Mainboard and sideboard copies are separate entries ("is_sideboard")
  - Setting an entry's quantity to 0 removes it

URLs:
  GET|POST        /api/decks                       – deck list / create deck
  GET|PUT|DELETE  /api/decks/<id>                  – detail / update / delete
  POST|PUT|DELETE /api/decks/<id>/cards            – add / set quantity / remove entry
  POST            /api/decks/import                – parse + enrich a pasted list (optionally save)
  GET             /api/decks/<id>/comparison       – what the collection is missing
  GET             /api/decks/<id>/shopping-list    – plain-text shopping list
"""
import logging

from flask import Blueprint, Response, jsonify, request

from cardkeep.errors import ValidationError
from cardkeep.extensions import get_store
from cardkeep.utils.helpers import parse_bool

log = logging.getLogger(__name__)
decks_bp = Blueprint("decks", __name__, url_prefix="/api/decks")


def _validated(form_cls):
    """Instantiate a FlaskForm from the JSON body and validate it, or raise."""
    if request.get_json(silent=True) is None:
        raise ValidationError("No data provided")
    form = form_cls()
    if not form.validate():
        errors = [msg for msgs in form.errors.values() for msg in msgs]
        raise ValidationError(errors[0] if errors else "Invalid request", details=errors)
    return form


# ── Deck list / create ────────────────────────────────────────────────────────

@decks_bp.route("")
def index():
    from cardkeep.utils.deck_service import list_decks

    with get_store().session_scope() as session:
        decks = [d.to_dict() for d in list_decks(session)]
    return jsonify(decks)


@decks_bp.route("", methods=["POST"])
def create():
    from cardkeep.forms.decks import DeckForm
    from cardkeep.utils.deck_service import create_deck

    form = _validated(DeckForm)
    with get_store().session_scope() as session:
        deck = create_deck(session, form.name.data, form.description.data, form.format.data)
        body = deck.to_dict()
    return jsonify(body), 201


# ── Single deck ───────────────────────────────────────────────────────────────

@decks_bp.route("/<int:deck_id>")
def detail(deck_id):
    from cardkeep.utils.deck_service import get_deck

    with get_store().session_scope() as session:
        body = get_deck(session, deck_id).to_dict(include_cards=True)
    return jsonify(body)


@decks_bp.route("/<int:deck_id>", methods=["PUT"])
def update(deck_id):
    from cardkeep.forms.decks import DeckForm
    from cardkeep.utils.deck_service import update_deck

    form = _validated(DeckForm)
    with get_store().session_scope() as session:
        deck = update_deck(session, deck_id, form.name.data, form.description.data, form.format.data)
        body = deck.to_dict()
    return jsonify(body)


@decks_bp.route("/<int:deck_id>", methods=["DELETE"])
def delete(deck_id):
    from cardkeep.utils.deck_service import delete_deck

    with get_store().session_scope() as session:
        delete_deck(session, deck_id)
    return jsonify(success=True)


# ── Deck entries ──────────────────────────────────────────────────────────────

@decks_bp.route("/<int:deck_id>/cards", methods=["POST"])
def add_card(deck_id):
    from cardkeep.forms.decks import DeckCardForm
    from cardkeep.utils.deck_service import add_card_to_deck

    form = _validated(DeckCardForm)
    qty = form.quantity.data if form.quantity.data is not None else 1
    with get_store().session_scope() as session:
        entry = add_card_to_deck(
            session, deck_id, form.card_id.data, qty, is_sideboard=form.is_sideboard.data,
        )
        new_qty = entry.quantity

    return jsonify(success=True, message=f"Added {qty} copy/copies to deck", new_quantity=new_qty)


@decks_bp.route("/<int:deck_id>/cards", methods=["PUT"])
def set_card_quantity(deck_id):
    from cardkeep.forms.decks import DeckCardForm
    from cardkeep.utils.deck_service import set_deck_card_quantity

    form = _validated(DeckCardForm)
    if form.quantity.data is None:
        raise ValidationError("Quantity must be a non-negative integer")

    with get_store().session_scope() as session:
        entry = set_deck_card_quantity(
            session, deck_id, form.card_id.data, form.quantity.data,
            is_sideboard=form.is_sideboard.data,
        )

    if entry is None:
        return jsonify(success=True, message="Card removed from deck", new_quantity=0)
    return jsonify(
        success=True,
        message=f"Updated quantity to {form.quantity.data}",
        new_quantity=form.quantity.data,
    )


@decks_bp.route("/<int:deck_id>/cards", methods=["DELETE"])
def remove_card(deck_id):
    from cardkeep.forms.decks import DeckCardForm
    from cardkeep.utils.deck_service import remove_card_from_deck

    form = _validated(DeckCardForm)
    with get_store().session_scope() as session:
        remove_card_from_deck(session, deck_id, form.card_id.data, is_sideboard=form.is_sideboard.data)
    return jsonify(success=True, message="Card removed from deck")


# ── Import ────────────────────────────────────────────────────────────────────

@decks_bp.route("/import", methods=["POST"])
def import_deck():
    """
    Body: {"deck_text", "deck_name"?, "format"?, "description"?, "save"?}.
    Returns the enriched list; with save=true the deck is also stored and
    its id returned as "deck_id".
    """
    from cardkeep.forms.decks import DeckImportForm
    from cardkeep.utils.card_service import enrich_deck_list
    from cardkeep.utils.deck_service import save_imported_deck

    form = _validated(DeckImportForm)
    enriched = enrich_deck_list(form.deck_text.data)
    body = {
        "name":   form.deck_name.data or "Imported Deck",
        "format": form.format.data or None,
        **enriched,
    }

    if form.save.data:
        with get_store().session_scope() as session:
            deck = save_imported_deck(
                session,
                body["name"],
                enriched["mainboard"],
                enriched["sideboard"],
                description=form.description.data,
                fmt=form.format.data,
            )
            body["deck_id"] = deck.id
        return jsonify(body), 201

    return jsonify(body)


# ── Comparison ────────────────────────────────────────────────────────────────

@decks_bp.route("/<int:deck_id>/comparison")
def comparison(deck_id):
    from cardkeep.utils.deck_comparison import compare_deck_with_collection, group_cards_by_type

    include_sideboard = parse_bool(request.args.get("sideboard", "true"))
    with get_store().session_scope() as session:
        result = compare_deck_with_collection(session, deck_id, include_sideboard=include_sideboard)

    body = result.to_dict()
    body["groups"] = {
        group: [c.to_dict() for c in cards]
        for group, cards in group_cards_by_type(result.cards).items()
    }
    return jsonify(body)


@decks_bp.route("/<int:deck_id>/shopping-list")
def shopping_list(deck_id):
    from cardkeep.utils.deck_comparison import compare_deck_with_collection, generate_shopping_list

    include_sideboard = parse_bool(request.args.get("sideboard", "true"))
    with get_store().session_scope() as session:
        result = compare_deck_with_collection(session, deck_id, include_sideboard=include_sideboard)

    return Response(generate_shopping_list(result), mimetype="text/plain")
