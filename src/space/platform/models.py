"""Base model for engine entities."""

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


class SpaceBaseModel(BaseModel):
    """Base model for pricing and contract entities.

    Fields are snake_case in Python and camelCase in stored/wire form.
    """

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        from_attributes=True,
        validate_assignment=True,
    )

    def to_document(self) -> dict:
        """Serialize to the camelCase form used by stores and caches."""
        return self.model_dump(mode="json", by_alias=True)
