"""
Prices blueprint — price listing, bulk refresh and portfolio analytics.

URLs:
  GET  /api/prices     – current and historical USD prices per owned card
  PUT  /api/prices     – refresh every card from Scryfall (rate limited)
  GET  /api/analytics  – portfolio summary + top/bottom performers
"""
import logging

from flask import Blueprint, current_app, jsonify

from cardkeep.extensions import get_store, limiter

log = logging.getLogger(__name__)
prices_bp = Blueprint("prices", __name__, url_prefix="/api")


def _owned_cards() -> list[dict]:
    from cardkeep.utils.card_service import list_collection

    with get_store().session_scope() as session:
        return [c.to_dict() for c in list_collection(session)]


@prices_bp.route("/prices")
def listing():
    from cardkeep.utils.price_service import price_listing

    return jsonify(price_listing(_owned_cards()))


@prices_bp.route("/prices", methods=["PUT"])
@limiter.limit(lambda: current_app.config["PRICE_REFRESH_LIMIT"])
def refresh_all():
    from cardkeep.utils.price_service import refresh_all_prices

    pause = current_app.config["PRICE_REFRESH_PAUSE"]
    with get_store().session_scope() as session:
        report = refresh_all_prices(session, pause=pause)

    if report.total == 0:
        return jsonify(success=True, message="No cards to update", updated=0, total=0)
    return jsonify(report.to_dict())


@prices_bp.route("/analytics")
def analytics():
    from cardkeep.utils.price_service import collection_analytics

    return jsonify(collection_analytics(_owned_cards()))
