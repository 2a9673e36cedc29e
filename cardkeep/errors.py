"""
Error taxonomy and the result type shared by services and blueprints.

Services raise the exceptions below; blueprints let them propagate to the
error handlers registered in create_app(), which turn them into JSON via
Failure.from_exception(). Batch operations (bulk price refresh, bulk
enrichment) catch per-item errors and keep a Failure for each instead of
aborting.
"""
import enum
from dataclasses import dataclass, field
from typing import Any, Generic, TypeVar, Union

T = TypeVar("T")


class ErrorKind(enum.Enum):
    VALIDATION = "validation"
    NOT_FOUND  = "not_found"
    CONFLICT   = "conflict"
    UPSTREAM   = "upstream"
    PERSISTENCE = "persistence"

    @property
    def http_status(self) -> int:
        return {
            "validation":  400,
            "not_found":   404,
            "conflict":    409,
            "upstream":    502,
            "persistence": 500,
        }[self.value]


class CardKeepError(Exception):
    """Base class for every error the services raise on purpose."""
    kind = ErrorKind.PERSISTENCE

    def __init__(self, message: str, details: list[str] | None = None):
        super().__init__(message)
        self.message = message
        self.details = list(details or [])


class ValidationError(CardKeepError):
    """Malformed input: missing field, non-positive quantity, empty name…"""
    kind = ErrorKind.VALIDATION


class NotFoundError(CardKeepError):
    """A referenced card, deck or deck entry does not exist."""
    kind = ErrorKind.NOT_FOUND


class ConflictError(CardKeepError):
    """The write would break a uniqueness rule (e.g. duplicate deck name)."""
    kind = ErrorKind.CONFLICT


class UpstreamLookupError(CardKeepError):
    """Raised when Scryfall returns an error or the network fails."""
    kind = ErrorKind.UPSTREAM

    def __init__(self, message: str, status_code: int = None, not_found: bool = False):
        super().__init__(message)
        self.status_code = status_code
        self.not_found = not_found


class PersistenceError(CardKeepError):
    """A store operation failed; the surrounding transaction was rolled back."""
    kind = ErrorKind.PERSISTENCE


# ── Result type ───────────────────────────────────────────────────────────────

@dataclass(frozen=True)
class Ok(Generic[T]):
    value: T
    ok: bool = field(default=True, init=False)


@dataclass(frozen=True)
class Failure:
    kind: ErrorKind
    message: str
    details: list[str] = field(default_factory=list)
    ok: bool = field(default=False, init=False)

    @classmethod
    def from_exception(cls, exc: CardKeepError) -> "Failure":
        return cls(kind=exc.kind, message=exc.message, details=list(exc.details))

    def to_dict(self) -> dict[str, Any]:
        body: dict[str, Any] = {"error": self.message, "kind": self.kind.value}
        if self.details:
            body["details"] = self.details
        return body


Result = Union[Ok[T], Failure]
