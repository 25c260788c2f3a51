"""Common Pydantic schemas shared across the API."""

from typing import Any, Optional
from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    """
    Base for every wire model: snake_case in Python, camelCase in JSON.

    Reads ORM objects directly (``from_attributes``) and accepts either
    spelling on input.
    """

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        from_attributes=True,
    )

    def to_json_dict(self) -> dict[str, Any]:
        """JSON-safe dict with camelCase keys, as stored in JSON columns."""
        return self.model_dump(mode="json", by_alias=True)


class ErrorBody(BaseModel):
    code: str
    message: str
    path: str
    method: str
    details: Optional[Any] = None


class ErrorResponse(BaseModel):
    """Error envelope returned for every failed request."""

    error: ErrorBody
