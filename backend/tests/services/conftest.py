"""Service test fixtures: managers and facade wired to the test store and FakeClock.

Invariants:
    - All managers share one store, so their transactions race on the same documents
    - The clock fixture controls "now" for expiry and reply creation times
"""

import pytest

from instant_events.core.domain_types import EventId, MemberId, event_path
from instant_events.services.event_aggregate import EventAggregateManager
from instant_events.services.instant_event_service import InstantEventService
from instant_events.services.message_thread import MessageThreadManager
from instant_events.services.reply_ledger import ReplyLedger


@pytest.fixture
def events(store):
    return EventAggregateManager(store)


@pytest.fixture
def threads(store, clock):
    return MessageThreadManager(store, clock)


@pytest.fixture
def ledger(store, clock):
    return ReplyLedger(store, clock)


@pytest.fixture
def service(store, clock):
    return InstantEventService(store, clock)


@pytest.fixture
def seed_event(seed_document):
    """Insert an event document under a member with the given fields."""
    async def _seed(member_id: str, event_id: str, **fields) -> EventId:
        data = {"title": "AMA", "closed": False, **fields}
        await seed_document(event_path(MemberId(member_id), EventId(event_id)), data)
        return EventId(event_id)
    return _seed
