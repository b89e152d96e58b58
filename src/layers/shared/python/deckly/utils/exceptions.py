"""Errors surfaced by dashboard queries and tracking request validation.

Telemetry writes never raise: the recorder and the capture client log and
drop their failures. Everything here is meant to reach an API response via
``responses.from_exception``; none of it is retried by the query cache.
"""


class DecklyError(Exception):
    """Base for errors that map to an HTTP status."""

    status_code = 500
    error_code = "INTERNAL_ERROR"

    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def to_dict(self) -> dict:
        """Response body for this error."""
        body = {"error": True, "error_code": self.error_code, "message": self.message}
        if self.details:
            body["details"] = self.details
        return body


class UnauthorizedError(DecklyError):
    """A dashboard query ran with no signed-in owner."""

    status_code = 401
    error_code = "UNAUTHORIZED"

    def __init__(self, message: str = "Not authenticated"):
        super().__init__(message)


class DeckNotFoundError(DecklyError):
    """The deck does not exist for anyone."""

    status_code = 404
    error_code = "NOT_FOUND"

    def __init__(self, deck_id: str):
        self.deck_id = deck_id
        super().__init__(f"Deck '{deck_id}' not found", {"deck_id": deck_id})


class DeckAccessDeniedError(DecklyError):
    """The deck exists but belongs to another owner."""

    status_code = 403
    error_code = "FORBIDDEN"

    def __init__(self, deck_id: str):
        self.deck_id = deck_id
        super().__init__("You don't have access to this deck's analytics", {"deck_id": deck_id})


class ValidationError(DecklyError):
    """A tracking payload or query parameter was rejected.

    ``errors`` is a list of ``{"field", "message"}`` dicts, one per problem.
    """

    status_code = 400
    error_code = "VALIDATION_ERROR"

    def __init__(self, message: str = "Validation failed", errors: list[dict] | None = None):
        self.errors = errors or []
        super().__init__(message, {"errors": self.errors})

    @classmethod
    def from_pydantic(cls, exc) -> "ValidationError":
        """Flatten a pydantic ValidationError into field errors."""
        return cls(
            errors=[
                {
                    "field": ".".join(str(part) for part in err.get("loc", ())),
                    "message": err.get("msg", "Invalid value"),
                    "type": err.get("type", "unknown"),
                }
                for err in exc.errors()
            ]
        )


class ConflictError(DecklyError):
    """A conditional write found the row already present."""

    status_code = 409
    error_code = "CONFLICT"

    def __init__(self, pk: str, sk: str):
        self.pk = pk
        self.sk = sk
        super().__init__("Item already exists", {"pk": pk, "sk": sk})
