"""
Shared fixtures: an in-memory store, a session on it, a Flask test client
and a factory for Scryfall-shaped card payloads.

Scryfall is never contacted; tests that need lookups patch the functions
in cardkeep.utils.scryfall (or where a service imported them).
"""
import uuid

import pytest

from cardkeep import create_app
from cardkeep.store import CollectionStore
from cardkeep.utils import scryfall


@pytest.fixture(autouse=True)
def no_rate_sleep(monkeypatch):
    monkeypatch.setattr(scryfall, "_RATE_SLEEP", 0)


@pytest.fixture
def store():
    s = CollectionStore("sqlite://").open()
    yield s
    s.close()


@pytest.fixture
def session(store):
    s = store.session()
    yield s
    s.rollback()
    s.close()


@pytest.fixture
def app():
    app = create_app("testing")
    yield app
    app.extensions["collection_store"].close()


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def app_store(app):
    return app.extensions["collection_store"]


def make_card(
    name: str = "Lightning Bolt",
    usd: str | None = "1.00",
    type_line: str = "Instant",
    card_id: str | None = None,
    **extra,
) -> dict:
    """A raw Scryfall card object, trimmed to the fields the app reads."""
    data = {
        "object":         "card",
        "id":             card_id or str(uuid.uuid4()),
        "name":           name,
        "mana_cost":      "{R}",
        "type_line":      type_line,
        "oracle_text":    "Lightning Bolt deals 3 damage to any target.",
        "colors":         ["R"],
        "color_identity": ["R"],
        "image_uris": {
            "small":  f"https://cards.scryfall.io/small/{name}.jpg",
            "normal": f"https://cards.scryfall.io/normal/{name}.jpg",
            "large":  f"https://cards.scryfall.io/large/{name}.jpg",
        },
        "prices": {"usd": usd, "usd_foil": None, "eur": None, "tix": None},
    }
    data.update(extra)
    return data


@pytest.fixture
def card_factory():
    return make_card
