"""InstantEventService: the six public operations of the instant-event core.

Invariants:
    - Each operation delegates to exactly one manager call (one transaction)
    - Every InstantEventError is logged once here, with structured extras, and re-raised
    - No transport mapping: callers receive typed exceptions, never status codes

Design Decisions:
    - Facade over three managers: the boundary layer depends on one object
    - Logging lives here, outside transaction bodies, so retried bodies stay side-effect free
"""

import logging
from datetime import datetime, timezone
from typing import Any, Awaitable, Callable, TypeVar

from instant_events.core.domain_types import EventId, MemberId, MessageId
from instant_events.core.errors import ErrorSeverity, InstantEventError
from instant_events.core.store_protocols import DocumentStore
from instant_events.schemas.instant_event import InstantEvent, Message, ReplyAuthor
from instant_events.services.event_aggregate import EventAggregateManager
from instant_events.services.message_thread import MessageThreadManager
from instant_events.services.reply_ledger import ReplyLedger

logger = logging.getLogger(__name__)

T = TypeVar("T")


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


class InstantEventService:
    """Public entry point consumed by the (external) transport layer."""

    def __init__(
        self,
        store: DocumentStore,
        clock: Callable[[], datetime] = _utc_now,
    ):
        self.events = EventAggregateManager(store)
        self.messages = MessageThreadManager(store, clock)
        self.replies = ReplyLedger(store, clock)

    async def _run(self, operation: str, call: Awaitable[T]) -> T:
        try:
            return await call
        except InstantEventError as exc:
            log = logger.error if exc.severity is ErrorSeverity.CRITICAL else logger.warning
            log(
                f"{operation} failed: {exc.message}",
                extra={**exc.log_extra(), "operation": operation},
            )
            raise

    async def create_event(
        self,
        member_id: MemberId,
        title: str,
        desc: str | None = None,
        start_date: str | None = None,
        end_date: str | None = None,
    ) -> EventId:
        event_id = await self._run("create_event", self.events.create(
            member_id, title, desc=desc, start_date=start_date, end_date=end_date,
        ))
        logger.info(
            "Instant event created",
            extra={"member_id": member_id, "event_id": event_id},
        )
        return event_id

    async def get_event(self, member_id: MemberId, event_id: EventId) -> InstantEvent:
        return await self._run("get_event", self.events.get(member_id, event_id))

    async def post_message(
        self, member_id: MemberId, event_id: EventId, message: str,
    ) -> None:
        await self._run(
            "post_message", self.messages.post(member_id, event_id, message),
        )

    async def list_messages(
        self, member_id: MemberId, event_id: EventId,
    ) -> list[Message]:
        return await self._run(
            "list_messages", self.messages.message_list(member_id, event_id),
        )

    async def get_message(
        self, member_id: MemberId, event_id: EventId, message_id: MessageId,
    ) -> Message:
        return await self._run(
            "get_message",
            self.messages.message_info(member_id, event_id, message_id),
        )

    async def post_reply(
        self,
        member_id: MemberId,
        event_id: EventId,
        message_id: MessageId,
        reply: str,
        author: ReplyAuthor | dict[str, Any] | None = None,
    ) -> None:
        await self._run("post_reply", self.replies.post_reply(
            member_id, event_id, message_id, reply, author=author,
        ))
