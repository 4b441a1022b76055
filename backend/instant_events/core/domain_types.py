"""Domain Types: identity types, collection layout and enums for the event aggregate.

Invariants:
    - MemberId, EventId, MessageId wrap opaque document ids (never bare str in domain logic)
    - Document paths are built only through the helpers below
    - All valid states encoded as Enums, no raw string matching

Design Decisions:
    - NewType over dataclass wrappers: zero runtime cost, full type-checker support
    - str Enums: serialize to JSON without custom encoders (used in log extras)
"""

from enum import Enum
from typing import NewType


# ─── Identity Types ──────────────────────────────────────────────

MemberId = NewType("MemberId", str)
EventId = NewType("EventId", str)
MessageId = NewType("MessageId", str)


# ─── Collection Layout ───────────────────────────────────────────

MEMBER_COLLECTION = "members"
INSTANT_EVENT_COLLECTION = "instants"
MESSAGE_COLLECTION = "messages"


def member_path(member_id: MemberId) -> str:
    return f"{MEMBER_COLLECTION}/{member_id}"


def event_collection_path(member_id: MemberId) -> str:
    return f"{member_path(member_id)}/{INSTANT_EVENT_COLLECTION}"


def event_path(member_id: MemberId, event_id: EventId) -> str:
    return f"{event_collection_path(member_id)}/{event_id}"


def message_collection_path(member_id: MemberId, event_id: EventId) -> str:
    return f"{event_path(member_id, event_id)}/{MESSAGE_COLLECTION}"


def message_path(
    member_id: MemberId, event_id: EventId, message_id: MessageId,
) -> str:
    return f"{message_collection_path(member_id, event_id)}/{message_id}"


# ─── Enums ───────────────────────────────────────────────────────

class NotFoundTarget(str, Enum):
    """Which link of the member -> event -> message chain was missing."""
    MEMBER = "member"
    EVENT = "event"
    MESSAGE = "message"

    @property
    def label(self) -> str:
        return self.value.capitalize()


class ClosingDecision(str, Enum):
    """Outcome of the closing policy evaluated inside a post transaction."""
    OPEN = "open"
    ALREADY_CLOSED = "already_closed"
    EXPIRED = "expired"
