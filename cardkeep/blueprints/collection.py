"""
Collection blueprint.

The collection is every Card row with quantity > 0. This blueprint owns
the card CRUD endpoints, single-card price refresh, the image back-fill
and the bulk replace used to migrate a collection in from elsewhere.

URLs:
  GET    /api/collection                – owned cards, newest first
  POST   /api/collection                – add a card (merges quantity)
  DELETE /api/collection/<id>           – remove one copy (?all=true: delete row)
  PUT    /api/collection/quantity       – set quantity, 0 = logical delete
  PUT    /api/collection/<id>/favorite  – set favorite flag
  PUT    /api/collection/<id>/price     – refresh one card's price
  POST   /api/collection/refresh        – re-fetch cards with missing images
  GET    /api/collection/today          – owned cards added today
  POST   /api/migration                 – replace the whole collection
"""
import logging

from flask import Blueprint, current_app, jsonify, request

from cardkeep.errors import ValidationError
from cardkeep.extensions import get_store
from cardkeep.utils.helpers import parse_bool

log = logging.getLogger(__name__)
collection_bp = Blueprint("collection", __name__, url_prefix="/api")


def _json_body():
    data = request.get_json(silent=True)
    if data is None:
        raise ValidationError("No data provided")
    return data


def _form_errors(form) -> list[str]:
    return [f"{name}: {msg}" for name, msgs in form.errors.items() for msg in msgs]


# ── Listing ───────────────────────────────────────────────────────────────────

@collection_bp.route("/collection")
def list_cards():
    from cardkeep.utils.card_service import list_collection

    with get_store().session_scope() as session:
        cards = [c.to_dict() for c in list_collection(session)]
    return jsonify(cards)


@collection_bp.route("/collection/today")
def today():
    from cardkeep.utils.card_service import cards_added_today

    with get_store().session_scope() as session:
        cards = [c.to_dict() for c in cards_added_today(session)]
    return jsonify(cards)


# ── Add / remove ──────────────────────────────────────────────────────────────

@collection_bp.route("/collection", methods=["POST"])
def add():
    """
    Body: a full Scryfall card object, or {"id": ...} / {"name": ...}.
    Optional "quantity" (default 1).
    """
    from cardkeep.utils.card_service import add_card

    data = _json_body()
    with get_store().session_scope() as session:
        card, created = add_card(session, data)
        body = card.to_dict()

    msg = "Card added to collection" if created else f"Now {body['quantity']}× {body['name']} in collection"
    return jsonify(success=True, message=msg, created=created, card=body), 201 if created else 200


@collection_bp.route("/collection/<card_id>", methods=["DELETE"])
def remove(card_id):
    from cardkeep.utils.card_service import remove_card

    remove_all = parse_bool(request.args.get("all"))
    with get_store().session_scope() as session:
        card = remove_card(session, card_id, remove_all=remove_all)
        quantity = card.quantity if card is not None else 0

    return jsonify(success=True, message="Card removed from collection", quantity=quantity)


# ── Updates ───────────────────────────────────────────────────────────────────

@collection_bp.route("/collection/quantity", methods=["PUT"])
def quantity():
    from cardkeep.forms.collection import QuantityForm
    from cardkeep.utils.card_service import set_quantity

    form = QuantityForm()
    if not form.validate():
        raise ValidationError("Invalid card ID or quantity", details=_form_errors(form))

    with get_store().session_scope() as session:
        card = set_quantity(session, form.card_id.data, form.quantity.data)
        qty = card.quantity

    msg = "Card removed from collection" if qty == 0 else "Card quantity updated"
    return jsonify(success=True, message=msg, quantity=qty)


@collection_bp.route("/collection/<card_id>/favorite", methods=["PUT"])
def favorite(card_id):
    from cardkeep.forms.collection import FavoriteForm
    from cardkeep.utils.card_service import set_favorite

    form = FavoriteForm()
    if not form.validate():
        raise ValidationError("Invalid favorite flag", details=_form_errors(form))

    with get_store().session_scope() as session:
        card = set_favorite(session, card_id, form.is_favorite.data)
        is_fav = card.is_favorite

    verb = "added to" if is_fav else "removed from"
    return jsonify(success=True, is_favorite=is_fav, message=f"Card {verb} favorites")


@collection_bp.route("/collection/<card_id>/price", methods=["PUT"])
def refresh_price(card_id):
    from cardkeep.utils.price_service import refresh_card_price

    with get_store().session_scope() as session:
        card = refresh_card_price(session, card_id)
        body = {
            "id":           card.id,
            "name":         card.name,
            "price":        card.price_usd,
            "last_updated": card.to_dict()["price_history"]["last_updated"],
        }

    return jsonify(success=True, message="Price updated", card=body)


@collection_bp.route("/collection/refresh", methods=["POST"])
def refresh_images():
    from cardkeep.utils.card_service import refresh_missing_images

    pause = current_app.config["PRICE_REFRESH_PAUSE"]
    with get_store().session_scope() as session:
        result = refresh_missing_images(session, pause=pause)
    return jsonify(result)


# ── Bulk replace ──────────────────────────────────────────────────────────────

@collection_bp.route("/migration", methods=["POST"])
def migrate():
    """Body: {"cards": [Scryfall-shaped card, ...]}. All or nothing."""
    from cardkeep.utils.card_service import replace_collection

    data = _json_body()
    cards = data.get("cards") if isinstance(data, dict) else None
    if not isinstance(cards, list):
        raise ValidationError("Invalid data format")

    with get_store().session_scope() as session:
        count = replace_collection(session, cards)

    log.info("Migration imported %d cards", count)
    return jsonify(success=True, message=f"Successfully migrated {count} cards", count=count)
