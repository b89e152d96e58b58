"""API Gateway response builders for the analytics handlers."""

import json
import os
from datetime import datetime
from enum import Enum
from typing import Any

from pydantic import BaseModel as PydanticBaseModel

from deckly.utils.exceptions import DecklyError

_ALLOWED_ORIGIN = os.environ.get("CORS_ALLOWED_ORIGIN", "https://app.deckly.io")
_STAGE = os.environ.get("STAGE", "dev")


def get_cors_headers(request_origin: str | None = None) -> dict:
    """CORS headers for a response.

    In dev, localhost origins are echoed back so the dashboard can run locally.
    """
    origin = _ALLOWED_ORIGIN
    if _STAGE == "dev" and request_origin and request_origin.startswith("http://localhost:"):
        origin = request_origin

    return {
        "Access-Control-Allow-Origin": origin,
        "Access-Control-Allow-Headers": "Content-Type,Authorization",
        "Access-Control-Allow-Methods": "GET,POST,OPTIONS",
        "Access-Control-Allow-Credentials": "true",
        "Content-Type": "application/json",
    }


CORS_HEADERS = get_cors_headers()


def _json_default(obj: Any) -> Any:
    if isinstance(obj, datetime):
        return obj.isoformat()
    if isinstance(obj, Enum):
        return obj.value
    if isinstance(obj, PydanticBaseModel):
        return obj.model_dump(mode="json")
    raise TypeError(f"Object of type {type(obj)} is not JSON serializable")


def _response(status_code: int, body: Any, headers: dict | None = None) -> dict:
    return {
        "statusCode": status_code,
        "headers": {**CORS_HEADERS, **(headers or {})},
        "body": json.dumps(body, default=_json_default),
    }


def success(data: Any, status_code: int = 200) -> dict:
    """Create a successful API response.

    Args:
        data: Response data (dict, list, or Pydantic model).
        status_code: HTTP status code (default 200).

    Returns:
        API Gateway response dict.
    """
    if isinstance(data, PydanticBaseModel):
        data = data.model_dump(mode="json")
    elif isinstance(data, list):
        data = [
            item.model_dump(mode="json") if isinstance(item, PydanticBaseModel) else item
            for item in data
        ]
    return _response(status_code, data)


def accepted() -> dict:
    """202 response for fire-and-forget tracking calls."""
    return _response(202, {"accepted": True})


def error(
    message: str,
    status_code: int = 500,
    error_code: str | None = None,
    details: dict | None = None,
    headers: dict | None = None,
) -> dict:
    """Create an error API response.

    Args:
        message: Error message.
        status_code: HTTP status code.
        error_code: Machine-readable error code.
        details: Additional error details.
        headers: Extra headers (e.g. Retry-After).

    Returns:
        API Gateway response dict.
    """
    body: dict[str, Any] = {"error": True, "message": message}
    if error_code:
        body["error_code"] = error_code
    if details:
        body["details"] = details
    return _response(status_code, body, headers)


def from_exception(exc: DecklyError) -> dict:
    """Map a DecklyError to its response."""
    return _response(exc.status_code, exc.to_dict())


def validation_error(errors: list[dict]) -> dict:
    """Create a 400 response listing field errors."""
    return error(
        message="Validation failed",
        status_code=400,
        error_code="VALIDATION_ERROR",
        details={"errors": errors},
    )


def too_many_requests(retry_after: int) -> dict:
    """Create a 429 response with a Retry-After header."""
    return error(
        message="Too many requests. Please try again later.",
        status_code=429,
        error_code="RATE_LIMITED",
        headers={"Retry-After": str(retry_after)},
    )
