"""Instant Event Schemas: pydantic models for operation inputs and returned documents.

Invariants:
    - title, message and reply bodies: rejected when blank, otherwise stored verbatim
    - startDate/endDate are parseable ISO-8601; endDate never precedes startDate
    - Write payloads are sparse: unset optional fields are omitted, never written as null
    - Read models expose server timestamps as ISO-8601 strings; updateAt/reply only when present

Design Decisions:
    - camelCase aliases (to_camel) match stored field names; Python side stays snake_case
    - exclude_none dump is the sparse-update builder: presence tracked per field by pydantic
    - parse_input maps pydantic ValidationError to InputValidationError (core/errors.py)
"""

from datetime import datetime
from typing import Any, TypeVar

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator, model_validator
from pydantic.alias_generators import to_camel

from instant_events.core.closing_policy import parse_iso_instant
from instant_events.core.errors import InputValidationError
from instant_events.core.store_protocols import DocumentSnapshot

M = TypeVar("M", bound=BaseModel)


class _DocumentModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    def to_document(self) -> dict[str, Any]:
        """Sparse payload with stored (camelCase) field names."""
        return self.model_dump(by_alias=True, exclude_none=True)


def _require_text(v: str, name: str) -> str:
    if not v.strip():
        raise ValueError(f"{name} cannot be empty or whitespace")
    return v


def parse_input(model: type[M], **values: Any) -> M:
    """Validate operation arguments, raising InputValidationError on failure."""
    try:
        return model.model_validate(values)
    except ValidationError as e:
        first = e.errors()[0]
        field = ".".join(str(loc) for loc in first["loc"]) or model.__name__
        raise InputValidationError(f"Invalid {field}: {first['msg']}", field)


# ─── Inputs ─────────────────────────────────────────────────────

class InstantEventCreate(_DocumentModel):
    """Event creation: title required, schedule optional."""
    title: str = Field(min_length=1)
    desc: str | None = None
    start_date: str | None = None
    end_date: str | None = None

    @field_validator("title")
    @classmethod
    def check_title(cls, v: str) -> str:
        return _require_text(v, "title")

    @field_validator("start_date", "end_date")
    @classmethod
    def check_iso_date(cls, v: str | None) -> str | None:
        if v is not None:
            parse_iso_instant(v)
        return v

    @model_validator(mode="after")
    def check_schedule_order(self):
        if self.start_date and self.end_date:
            if parse_iso_instant(self.end_date) < parse_iso_instant(self.start_date):
                raise ValueError("endDate must not precede startDate")
        return self

    def to_document(self) -> dict[str, Any]:
        return {**super().to_document(), "closed": False}


class MessageCreate(_DocumentModel):
    message: str = Field(min_length=1)

    @field_validator("message")
    @classmethod
    def check_message(cls, v: str) -> str:
        return _require_text(v, "message")


class ReplyAuthor(_DocumentModel):
    """Author shown next to a reply."""
    display_name: str
    photo_url: str | None = Field(None, alias="photoURL")


class ReplyCreate(_DocumentModel):
    reply: str = Field(min_length=1)
    author: ReplyAuthor | None = None

    @field_validator("reply")
    @classmethod
    def check_reply(cls, v: str) -> str:
        return _require_text(v, "reply")

    def to_entry(self, created_at: datetime) -> dict[str, Any]:
        """Embedded reply value stamped with the client-side creation time."""
        return {**self.to_document(), "createAt": created_at.isoformat()}


# ─── Read models ────────────────────────────────────────────────

def _iso(value: Any) -> Any:
    if isinstance(value, datetime):
        return value.isoformat()
    return value


class InstantEvent(_DocumentModel):
    """Event payload merged with its id."""
    instant_event_id: str
    title: str
    desc: str | None = None
    start_date: str | None = None
    end_date: str | None = None
    closed: bool = False

    @classmethod
    def from_snapshot(cls, snapshot: DocumentSnapshot) -> "InstantEvent":
        return cls.model_validate({**snapshot.data, "instantEventId": snapshot.id})


class Reply(_DocumentModel):
    reply: str
    create_at: str
    author: ReplyAuthor | None = None


class Message(_DocumentModel):
    """Top-level message with timestamps rendered as ISO-8601 strings."""
    id: str
    message: str
    reply_count: int = 0
    create_at: str
    update_at: str | None = None
    reply: list[Reply] | None = None

    @classmethod
    def from_snapshot(cls, snapshot: DocumentSnapshot) -> "Message":
        data = snapshot.data
        payload: dict[str, Any] = {
            "id": snapshot.id,
            "message": data["message"],
            "replyCount": data.get("replyCount", 0),
            "createAt": _iso(data["createAt"]),
        }
        if data.get("updateAt") is not None:
            payload["updateAt"] = _iso(data["updateAt"])
        if data.get("reply"):
            payload["reply"] = data["reply"]
        return cls.model_validate(payload)
