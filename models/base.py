"""Base model with camelCase serialization for storage and API output."""

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    """Base for every persisted or API-facing model; dumps camelCase keys.

    Persisted sessions, archived attempts and exports all share this shape,
    so ``model_dump(by_alias=True)`` output can be validated straight back.
    """

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
    )

    def to_payload(self) -> dict:
        """JSON-compatible camelCase dict."""
        return self.model_dump(mode="json", by_alias=True)
