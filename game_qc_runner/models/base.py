"""Base model configuration for all data structures."""

from typing import Any

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


class Model(BaseModel):
    """Base model with standard configuration."""

    model_config = ConfigDict(frozen=True)


class WireModel(Model):
    """Model exchanged with external consumers using camelCase keys."""

    model_config = ConfigDict(
        frozen=True,
        alias_generator=to_camel,
        populate_by_name=True,
    )

    def to_wire(self) -> dict[str, Any]:
        """Dump to the JSON-compatible camelCase representation."""
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)
