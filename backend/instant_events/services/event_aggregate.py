"""Event Aggregate Manager: creation and retrieval of instant events under a member.

Invariants:
    - create() checks the member and writes the event in ONE transaction
      (no orphaned event under a concurrently removed member)
    - New events carry closed=False and only the fields supplied
    - get() reads member then event in one transaction; NotFound at the first gap
    - There is no public close(): closing is a side effect of MessageThreadManager.post

Design Decisions:
    - Store handle injected: no global client, lifecycle owned by the composition root
"""

from instant_events.core.domain_types import EventId, MemberId, event_collection_path
from instant_events.core.store_protocols import DocumentStore, Transaction
from instant_events.schemas.instant_event import InstantEvent, InstantEventCreate, parse_input
from instant_events.services.precondition_chain import require_event, require_member


class EventAggregateManager:
    """Owns the InstantEvent documents of each member."""

    def __init__(self, store: DocumentStore):
        self._store = store

    async def create(
        self,
        member_id: MemberId,
        title: str,
        desc: str | None = None,
        start_date: str | None = None,
        end_date: str | None = None,
    ) -> EventId:
        """Create an open event and return its store-assigned id."""
        body = parse_input(
            InstantEventCreate,
            title=title, desc=desc, start_date=start_date, end_date=end_date,
        )
        document = body.to_document()

        async def _create(txn: Transaction) -> EventId:
            await require_member(txn, member_id)
            path = txn.new_document_path(event_collection_path(member_id))
            txn.create(path, document)
            return EventId(path.rsplit("/", 1)[-1])

        return await self._store.run_transaction(_create)

    async def get(self, member_id: MemberId, event_id: EventId) -> InstantEvent:
        async def _get(txn: Transaction) -> InstantEvent:
            snapshot = await require_event(txn, member_id, event_id)
            return InstantEvent.from_snapshot(snapshot)

        return await self._store.run_transaction(_get)
