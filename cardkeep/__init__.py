"""
CardKeep – Flask application factory.
Personal MTG collection tracker: cards, decks, prices.
"""
import os
import logging

import click
from flask import Flask, jsonify

from cardkeep.config import config
from cardkeep.errors import CardKeepError, Failure
from cardkeep.extensions import csrf, get_store, init_store, limiter
from cardkeep.store import CollectionStore
from cardkeep.utils import scryfall

log = logging.getLogger(__name__)


def create_app(config_name: str = "default", store: CollectionStore | None = None) -> Flask:
    app = Flask(__name__, instance_relative_config=True)
    app.config.from_object(config[config_name])

    logging.basicConfig(
        level=app.config["LOG_LEVEL"],
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    # Ensure instance directory exists (SQLite lives here)
    os.makedirs(app.instance_path, exist_ok=True)
    if not app.config.get("DATABASE_URL"):
        db_path = os.path.join(app.instance_path, "collection.db")
        app.config["DATABASE_URL"] = f"sqlite:///{db_path}"

    # ── Store + extensions ───────────────────────────────────────────────────
    if store is None:
        store = CollectionStore(
            app.config["DATABASE_URL"], echo=app.config.get("DATABASE_ECHO", False)
        )
    init_store(app, store.open())

    scryfall.configure(rate_sleep=app.config["SCRYFALL_RATE_SLEEP"])
    csrf.init_app(app)
    limiter.init_app(app)

    # ── Register blueprints ──────────────────────────────────────────────────
    from cardkeep.blueprints.main import main_bp
    from cardkeep.blueprints.collection import collection_bp
    from cardkeep.blueprints.decks import decks_bp
    from cardkeep.blueprints.prices import prices_bp

    app.register_blueprint(main_bp)
    app.register_blueprint(collection_bp)
    app.register_blueprint(decks_bp)
    app.register_blueprint(prices_bp)

    # ── Error handlers ───────────────────────────────────────────────────────
    @app.errorhandler(CardKeepError)
    def service_error(e):
        if e.kind.http_status >= 500:
            log.error("%s: %s", e.__class__.__name__, e.message)
        return jsonify(Failure.from_exception(e).to_dict()), e.kind.http_status

    @app.errorhandler(404)
    def not_found(e):
        return jsonify(error="Not found", kind="not_found"), 404

    @app.errorhandler(429)
    def rate_limited(e):
        return jsonify(error=f"Rate limit exceeded: {e.description}", kind="rate_limited"), 429

    _register_cli(app)
    return app


# ── CLI ──────────────────────────────────────────────────────────────────────
def _register_cli(app: Flask) -> None:

    @app.cli.command("refresh-prices")
    @click.option("--pause", type=float, default=None,
                  help="Seconds between Scryfall lookups (default: PRICE_REFRESH_PAUSE).")
    def refresh_prices_command(pause):
        """Refresh every card's price from Scryfall."""
        from cardkeep.utils.price_service import refresh_all_prices

        if pause is None:
            pause = app.config["PRICE_REFRESH_PAUSE"]
        with get_store().session_scope() as session:
            report = refresh_all_prices(session, pause=pause)

        click.echo(f"Updated {report.updated} of {report.total} cards.")
        for error in report.errors:
            click.echo(f"  ! {error}", err=True)

    @app.cli.command("collection-value")
    def collection_value_command():
        """Print the total USD value of the owned collection."""
        from cardkeep.utils.card_service import list_collection
        from cardkeep.utils.helpers import format_currency
        from cardkeep.utils.price_service import calculate_collection_value

        with get_store().session_scope() as session:
            cards = [c.to_dict() for c in list_collection(session)]

        click.echo(f"{len(cards)} cards, total value {format_currency(calculate_collection_value(cards))}")
