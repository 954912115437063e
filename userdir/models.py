"""Domain models shared by the directory client, workflow and web interface."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Mapping, Optional

from pydantic import BaseModel, ConfigDict, Field


class UserRecord(BaseModel):
    """A user entry as stored by the remote directory service."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    id: str = Field(..., alias="_id", min_length=1)
    name: str
    email: str
    age: int

    def to_payload(self) -> Dict[str, object]:
        return {"name": self.name, "email": self.email, "age": self.age}


class Envelope(BaseModel):
    """Response wrapper returned by every directory API call."""

    success: bool = False
    message: Optional[str] = None
    data: Any = None


@dataclass(frozen=True)
class UserDraft:
    """Raw form input for a user that has not been validated yet."""

    name: str = ""
    email: str = ""
    age: str = ""

    @classmethod
    def from_record(cls, record: UserRecord) -> "UserDraft":
        return cls(name=record.name, email=record.email, age=str(record.age))

    @classmethod
    def from_mapping(cls, data: Mapping[str, object]) -> "UserDraft":
        def _text(key: str) -> str:
            value = data.get(key)
            return "" if value is None else str(value)

        return cls(name=_text("name"), email=_text("email"), age=_text("age"))

    def to_payload(self) -> Dict[str, object]:
        """Return the JSON body for create/update calls.

        Only call this for drafts that passed :func:`userdir.validation.validate_user`.
        """

        return {
            "name": self.name.strip(),
            "email": self.email.strip(),
            "age": int(self.age.strip()),
        }

    def to_dict(self) -> Dict[str, str]:
        return {"name": self.name, "email": self.email, "age": self.age}


__all__ = ["Envelope", "UserDraft", "UserRecord"]
