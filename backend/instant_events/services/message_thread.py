"""Message Thread Manager: posting, listing and reading messages of an event.

Invariants:
    - post() runs member check, event check, closing policy and message write
      as ONE transaction; no outcome is ever partially applied
    - Closed event: EventClosedError raised inside the body, nothing written
    - Unreadable stored endDate: CorruptDocumentError raised inside the body, nothing written
    - Expired event (now >= endDate): closed=True committed, message NOT written,
      then EventClosedError(closed_now=True) raised after commit
    - A racing post that committed nothing re-runs on conflict and observes the close
    - message_list() and message_info() verify member and event; message_info also the message
    - Listing order is the store's document order (by id); no sort applied

Design Decisions:
    - Lazy close inside post, never a background sweep: the close is atomic with
      the rejected write attempt
    - The body returns its ClosingDecision instead of raising on EXPIRED: raising
      would abort the transaction and drop the closed=True write
    - Clock injected for deterministic expiry tests
"""

from datetime import datetime, timezone
from typing import Callable

from instant_events.core.closing_policy import evaluate_closing
from instant_events.core.domain_types import (
    ClosingDecision, EventId, MemberId, MessageId, message_collection_path,
)
from instant_events.core.errors import CorruptDocumentError, ErrorContext, EventClosedError
from instant_events.core.store_protocols import SERVER_TIMESTAMP, DocumentStore, Transaction
from instant_events.schemas.instant_event import Message, MessageCreate, parse_input
from instant_events.services.precondition_chain import require_event, require_message


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


class MessageThreadManager:
    """Owns the Message documents of an event, including expiry enforcement."""

    def __init__(
        self,
        store: DocumentStore,
        clock: Callable[[], datetime] = _utc_now,
    ):
        self._store = store
        self._clock = clock

    async def post(
        self, member_id: MemberId, event_id: EventId, message: str,
    ) -> None:
        body = parse_input(MessageCreate, message=message)

        async def _post(txn: Transaction) -> ClosingDecision:
            event = await require_event(txn, member_id, event_id)
            try:
                decision = evaluate_closing(event.data, self._clock())
            except CorruptDocumentError as e:
                e.context = ErrorContext(member_id=member_id, event_id=event_id)
                raise
            if decision is ClosingDecision.ALREADY_CLOSED:
                raise EventClosedError(
                    event_id, context=ErrorContext(member_id=member_id, event_id=event_id),
                )
            if decision is ClosingDecision.EXPIRED:
                txn.update(event.path, {"closed": True})
                return decision
            path = txn.new_document_path(message_collection_path(member_id, event_id))
            txn.create(path, {
                **body.to_document(),
                "replyCount": 0,
                "createAt": SERVER_TIMESTAMP,
            })
            return decision

        decision = await self._store.run_transaction(_post)
        if decision is ClosingDecision.EXPIRED:
            raise EventClosedError(
                event_id, closed_now=True,
                context=ErrorContext(member_id=member_id, event_id=event_id),
            )

    async def message_list(
        self, member_id: MemberId, event_id: EventId,
    ) -> list[Message]:
        async def _list(txn: Transaction) -> list[Message]:
            await require_event(txn, member_id, event_id)
            children = await txn.list_children(
                message_collection_path(member_id, event_id),
            )
            return [Message.from_snapshot(child) for child in children]

        return await self._store.run_transaction(_list)

    async def message_info(
        self, member_id: MemberId, event_id: EventId, message_id: MessageId,
    ) -> Message:
        async def _info(txn: Transaction) -> Message:
            snapshot = await require_message(txn, member_id, event_id, message_id)
            return Message.from_snapshot(snapshot)

        return await self._store.run_transaction(_info)
