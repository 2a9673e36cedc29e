from flask import Blueprint, render_template

from cardkeep.extensions import get_store

main_bp = Blueprint("main", __name__)


@main_bp.route("/")
@main_bp.route("/dashboard")
def dashboard():
    from cardkeep.utils.card_service import list_collection
    from cardkeep.utils.deck_service import list_decks
    from cardkeep.utils.helpers import format_currency
    from cardkeep.utils.price_service import calculate_collection_value

    with get_store().session_scope() as session:
        cards = [c.to_dict() for c in list_collection(session)]
        decks = [d.to_dict() for d in list_decks(session)]

    # Python loop is fine at personal scale
    collection_value = calculate_collection_value(cards)
    card_qty = sum(c["quantity"] or 0 for c in cards)

    return render_template(
        "index.html",
        card_qty=card_qty,
        unique_cards=len(cards),
        deck_count=len(decks),
        decks=decks[:10],
        recent_cards=cards[:12],
        collection_value=format_currency(collection_value),
    )
