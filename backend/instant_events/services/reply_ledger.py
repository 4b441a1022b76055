"""Reply Ledger: threaded replies embedded in a message, newest first.

Invariants:
    - One transaction: member, event, message checks, then read-modify-write
      of the whole embedded reply list
    - New reply is PREPENDED: [r1, r2] + r3 -> [r3, r1, r2]
    - replyCount incremented in the same write, so replyCount == len(reply)
    - updateAt refreshed with the server timestamp; createAt never touched
    - Replies are accepted on closed events (closing only gates new messages)

Design Decisions:
    - Whole-list rewrite under optimistic concurrency: a concurrent reply
      conflicts, re-reads the latest list and re-applies, so no reply is lost
    - Reply createAt comes from the injected clock (client-side time), updateAt
      from the store (server time)
"""

from datetime import datetime, timezone
from typing import Any, Callable

from instant_events.core.domain_types import EventId, MemberId, MessageId
from instant_events.core.store_protocols import SERVER_TIMESTAMP, DocumentStore, Transaction
from instant_events.schemas.instant_event import ReplyAuthor, ReplyCreate, parse_input
from instant_events.services.precondition_chain import require_message


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


class ReplyLedger:
    def __init__(
        self,
        store: DocumentStore,
        clock: Callable[[], datetime] = _utc_now,
    ):
        self._store = store
        self._clock = clock

    async def post_reply(
        self,
        member_id: MemberId,
        event_id: EventId,
        message_id: MessageId,
        reply: str,
        author: ReplyAuthor | dict[str, Any] | None = None,
    ) -> None:
        """Prepend a reply to the message's thread."""
        body = parse_input(ReplyCreate, reply=reply, author=author)

        async def _post_reply(txn: Transaction) -> None:
            message = await require_message(txn, member_id, event_id, message_id)
            entry = body.to_entry(self._clock())
            existing = list(message.data.get("reply") or [])
            txn.update(message.path, {
                "reply": [entry, *existing],
                "replyCount": int(message.data.get("replyCount", 0)) + 1,
                "updateAt": SERVER_TIMESTAMP,
            })

        await self._store.run_transaction(_post_reply)
