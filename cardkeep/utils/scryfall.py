"""
Scryfall API wrapper — pure HTTP layer, no database interaction.

All functions respect Scryfall's rate-limit guidance (max 10 req/s).
A short sleep is applied before every call. Functions raise
UpstreamLookupError on any non-200 response or network failure so callers
can handle it without crashing a batch job.

Scryfall API reference: https://scryfall.com/docs/api
"""
import json
import time
import logging
import requests

from cardkeep.errors import UpstreamLookupError
from cardkeep.utils.helpers import chunked, unique

log = logging.getLogger(__name__)

_BASE = "https://api.scryfall.com"
_SESSION = requests.Session()
_SESSION.headers.update({
    "Accept": "application/json;q=0.9,*/*;q=0.8",
    "User-Agent": "CardKeep/1.0",
})
_RATE_SLEEP = 0.1  # seconds between requests (Scryfall ToS)

# /cards/collection accepts at most 75 identifiers per request
COLLECTION_CHUNK = 75


def configure(rate_sleep: float | None = None) -> None:
    """Override module settings from app config."""
    global _RATE_SLEEP
    if rate_sleep is not None:
        _RATE_SLEEP = rate_sleep


# ── Internal helpers ──────────────────────────────────────────────────────────

def _check(resp: requests.Response) -> dict:
    if resp.status_code == 404:
        raise UpstreamLookupError("Card not found", status_code=404, not_found=True)
    if resp.status_code == 429:
        raise UpstreamLookupError("Scryfall rate limit hit, try again shortly", status_code=429)
    if not resp.ok:
        raise UpstreamLookupError(
            f"Scryfall returned {resp.status_code}: {resp.text[:200]}",
            status_code=resp.status_code,
        )
    try:
        return resp.json()
    except ValueError as exc:
        raise UpstreamLookupError("Scryfall returned a non-JSON body") from exc


def _get(url: str, params: dict = None) -> dict:
    """Make a rate-limited GET request and return parsed JSON."""
    time.sleep(_RATE_SLEEP)
    try:
        resp = _SESSION.get(url, params=params, timeout=10)
    except requests.RequestException as exc:
        raise UpstreamLookupError(f"Network error contacting Scryfall: {exc}") from exc
    return _check(resp)


def _post(url: str, payload: dict) -> dict:
    """Make a rate-limited POST request with a JSON body."""
    time.sleep(_RATE_SLEEP)
    try:
        resp = _SESSION.post(url, json=payload, timeout=30)
    except requests.RequestException as exc:
        raise UpstreamLookupError(f"Network error contacting Scryfall: {exc}") from exc
    return _check(resp)


def _image_uris(data: dict) -> dict:
    """Extract image URIs, handling double-faced cards (image_uris lives in card_faces)."""
    uris = data.get("image_uris")
    if not uris and data.get("card_faces"):
        uris = data["card_faces"][0].get("image_uris", {})
    return uris or {}


def _oracle_text(data: dict) -> str:
    """Extract oracle text, combining both faces for DFCs."""
    text = data.get("oracle_text")
    if text is None and data.get("card_faces"):
        parts = [f.get("oracle_text", "") for f in data["card_faces"]]
        text = " // ".join(p for p in parts if p)
    return text or ""


def _mana_cost(data: dict) -> str:
    cost = data.get("mana_cost")
    if cost is None and data.get("card_faces"):
        cost = data["card_faces"][0].get("mana_cost")
    return cost or ""


def _faces(data: dict) -> str | None:
    faces = data.get("card_faces")
    if not faces:
        return None
    return json.dumps([
        {
            "name":        f.get("name"),
            "mana_cost":   f.get("mana_cost"),
            "type_line":   f.get("type_line"),
            "oracle_text": f.get("oracle_text"),
            "image_uris":  f.get("image_uris"),
        }
        for f in faces
    ])


def front_face_name(name: str) -> str:
    """'Brazen Borrower // Petty Theft' → 'Brazen Borrower'."""
    return name.split("//", 1)[0].strip()


def normalize_card(data: dict) -> dict:
    """
    Convert a raw Scryfall card object into a flat dict matching our Card model.
    Safe to call with any valid Scryfall card object (single-faced or DFC).
    Prices stay as strings; empty values become None.
    """
    uris = _image_uris(data)
    prices = data.get("prices") or {}

    return {
        "id":             data["id"],
        "name":           data["name"],
        "mana_cost":      _mana_cost(data),
        "type_line":      data.get("type_line", ""),
        "oracle_text":    _oracle_text(data),
        "colors":         "".join(data.get("colors") or []),
        "color_identity": "".join(data.get("color_identity") or []),
        "image_normal":   uris.get("normal"),
        "image_small":    uris.get("small"),
        "image_large":    uris.get("large"),
        "card_faces":     _faces(data),
        "price_usd":      prices.get("usd") or None,
        "price_usd_foil": prices.get("usd_foil") or None,
        "price_eur":      prices.get("eur") or None,
        "price_tix":      prices.get("tix") or None,
    }


# ── Public API functions ──────────────────────────────────────────────────────

def get_card_by_id(scryfall_id: str) -> dict:
    """
    Fetch a specific card printing by its Scryfall UUID.

    Returns:
        Raw Scryfall card object.

    Raises:
        UpstreamLookupError: Not found or API error.
    """
    return _get(f"{_BASE}/cards/{scryfall_id}")


def get_card_by_name(name: str, fuzzy: bool = False) -> dict:
    """
    Fetch a card by name from Scryfall.

    Args:
        name:  Card name (exact or fuzzy).
        fuzzy: If True, use Scryfall's fuzzy match (tolerates typos).

    Returns:
        Raw Scryfall card object.

    Raises:
        UpstreamLookupError: Card not found or API error.
    """
    params = {"fuzzy": name} if fuzzy else {"exact": name}
    return _get(f"{_BASE}/cards/named", params=params)


def fetch_collection(names: list[str]) -> tuple[dict[str, dict], list[str]]:
    """
    Look up many cards by name using the /cards/collection endpoint.

    Names are de-duplicated and sent in chunks of COLLECTION_CHUNK. A chunk
    that fails (network error, 5xx) is logged and its names are reported
    as not found; the remaining chunks are still fetched.

    Returns:
        (found, not_found)
        found:     {lowercase name: raw card}; double-faced cards are also
                   keyed by their front-face name
        not_found: requested names with no match, in request order
    """
    found: dict[str, dict] = {}

    for chunk in chunked(unique(names), COLLECTION_CHUNK):
        try:
            data = _post(
                f"{_BASE}/cards/collection",
                {"identifiers": [{"name": n} for n in chunk]},
            )
        except UpstreamLookupError as exc:
            log.warning("Scryfall collection lookup failed for %d names: %s", len(chunk), exc)
            continue

        for card in data.get("data", []):
            found[card["name"].lower()] = card
            found.setdefault(front_face_name(card["name"]).lower(), card)

        not_found = [nf.get("name", "") for nf in data.get("not_found", [])]
        if not_found:
            log.warning("Cards not found on Scryfall: %s", ", ".join(not_found))

    # A failed chunk leaves its names out of found, so they land here too
    missing = [name for name in unique(names) if name.lower() not in found]
    return found, missing
