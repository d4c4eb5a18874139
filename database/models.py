"""Base model for rows returned by the managers.

Fields are snake_case in Python and camelCase on the wire, matching the
JSON the web client sends and expects.
"""
from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


class RecordModel(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        from_attributes=True,
    )

    @classmethod
    def from_row(cls, row):
        """Build the model from an asyncpg Record (or any mapping)."""
        return cls.model_validate(dict(row))
