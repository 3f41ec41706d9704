"""
Schemas for the booking intake service

Field definitions are authored by an admin and stored in the
"settings/formFields" Firestore document; each submitted booking becomes a
document of the "bookings" collection.
"""

from enum import Enum
from pydantic import BaseModel, ConfigDict, Field
from typing import Any, Dict, List, Optional, Union


class FieldType(str, Enum):
    TEXT = "text"
    EMAIL = "email"
    NUMBER = "number"
    DATE = "date"
    DATETIME = "datetime"
    TEL = "tel"

    @classmethod
    def parse(cls, raw: Optional[str]) -> "FieldType":
        """Map a stored type string onto the closed set; unknown types are text."""
        value = (raw or "").strip().lower()
        if value == "datetime-local":
            return cls.DATETIME
        try:
            return cls(value)
        except ValueError:
            return cls.TEXT


class FieldDefinition(BaseModel):
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    id: Union[str, int]
    name: str = Field(..., min_length=1, description="Key of the value in submitted data")
    label: str
    type: str = Field("text", description="text, email, number, date, datetime, tel")
    required: bool = False
    min: Optional[float] = None
    max: Optional[float] = None
    min_length: Optional[int] = Field(None, alias="minLength", ge=0)
    placeholder: Optional[str] = None

    @property
    def field_type(self) -> FieldType:
        return FieldType.parse(self.type)


DEFAULT_FIELDS: List[FieldDefinition] = [
    FieldDefinition(id=1, name="fullName", label="Full Name", type="text", required=True, min_length=2),
    FieldDefinition(id=2, name="email", label="Email", type="email", required=True),
    FieldDefinition(id=3, name="date", label="Date & Time", type="datetime", required=True),
]


class Booking(BaseModel):
    data: Dict[str, Any]
    status: str = "pending"
