"""Request bodies accepted by the public tracking endpoint."""

import re
from typing import Any

from pydantic import BaseModel as PydanticBaseModel, Field, field_validator

EMAIL_REGEX = re.compile(r"^[a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,}$")


class TrackPageViewRequest(PydanticBaseModel):
    """A dwell on one page, reported by the viewer."""

    visitor_id: str = Field(..., min_length=1, max_length=128)
    page_number: int = Field(..., ge=1)
    time_spent: float = Field(..., ge=0, le=86400)
    viewer_email: str | None = Field(None, max_length=254)

    @field_validator("viewer_email")
    @classmethod
    def validate_email(cls, v: str | None) -> str | None:
        """Accept blank as absent; reject malformed addresses."""
        if v is None or not v.strip():
            return None
        v = v.strip().lower()
        if not EMAIL_REGEX.match(v):
            raise ValueError("Invalid email address")
        return v


class TrackDeckViewRequest(PydanticBaseModel):
    """A viewer opened a deck."""

    visitor_id: str = Field(..., min_length=1, max_length=128)
    metadata: dict[str, Any] = Field(default_factory=dict)
