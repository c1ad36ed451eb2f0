from typing import Any

from pydantic import BaseModel, ConfigDict


class CustomBaseModel(BaseModel):
    """Custom base model for all response schemas.
    - read ORM objects directly (from_attributes)
    - accept either python names or wire aliases on input
    - build from a dict or an ORM record with from_record
    """

    model_config = ConfigDict(from_attributes=True, populate_by_name=True)

    @classmethod
    def from_record(cls, record: Any):
        if isinstance(record, dict):
            return cls(**record)
        if record is None:
            raise ValueError("Invalid record type: None")
        return cls.model_validate(record)


class Message(CustomBaseModel):
    success: bool = True
    message: str = ""
