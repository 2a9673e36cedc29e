"""
Flask extension instances, created unbound and attached in create_app().
"""
from flask import current_app
from flask_limiter import Limiter
from flask_limiter.util import get_remote_address
from flask_wtf.csrf import CSRFProtect

from cardkeep.store import CollectionStore

csrf = CSRFProtect()
limiter = Limiter(key_func=get_remote_address)

STORE_KEY = "collection_store"


def init_store(app, store: CollectionStore) -> None:
    app.extensions[STORE_KEY] = store


def get_store() -> CollectionStore:
    """The CollectionStore owned by the current app."""
    return current_app.extensions[STORE_KEY]
