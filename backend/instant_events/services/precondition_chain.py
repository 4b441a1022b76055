"""Precondition Chain: existence checks shared by every transaction body.

Invariants:
    - Called only inside a transaction body, with that body's Transaction
    - Order is member -> event -> message; the first missing link raises
      ResourceNotFoundError with its NotFoundTarget
    - require_event reads the member first, require_message reads member and event first

Design Decisions:
    - Each helper returns the snapshot it verified, so bodies reuse it for the
      closing policy or the read-modify-write of replies without a second read
"""

from instant_events.core.domain_types import (
    EventId, MemberId, MessageId, NotFoundTarget,
    event_path, member_path, message_path,
)
from instant_events.core.errors import ErrorContext, ResourceNotFoundError
from instant_events.core.store_protocols import DocumentSnapshot, Transaction


async def require_member(txn: Transaction, member_id: MemberId) -> DocumentSnapshot:
    snapshot = await txn.get(member_path(member_id))
    if not snapshot.exists:
        raise ResourceNotFoundError(
            NotFoundTarget.MEMBER, member_id,
            ErrorContext(member_id=member_id),
        )
    return snapshot


async def require_event(
    txn: Transaction, member_id: MemberId, event_id: EventId,
) -> DocumentSnapshot:
    await require_member(txn, member_id)
    snapshot = await txn.get(event_path(member_id, event_id))
    if not snapshot.exists:
        raise ResourceNotFoundError(
            NotFoundTarget.EVENT, event_id,
            ErrorContext(member_id=member_id, event_id=event_id),
        )
    return snapshot


async def require_message(
    txn: Transaction,
    member_id: MemberId,
    event_id: EventId,
    message_id: MessageId,
) -> DocumentSnapshot:
    await require_event(txn, member_id, event_id)
    snapshot = await txn.get(message_path(member_id, event_id, message_id))
    if not snapshot.exists:
        raise ResourceNotFoundError(
            NotFoundTarget.MESSAGE, message_id,
            ErrorContext(
                member_id=member_id, event_id=event_id, message_id=message_id,
            ),
        )
    return snapshot
