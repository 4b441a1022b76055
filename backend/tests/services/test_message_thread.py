"""Message Thread Manager: posting with lazy close, listing and message info.

Invariants:
    - No endDate: posts never auto-close, however far the clock moves
    - First post at/after endDate closes the event AND fails; nothing else written
    - Later posts on a closed event fail without any write (event version unchanged)
    - Racing posts at expiry: at most one message per open observation, event ends closed
    - list/info check member, then event, then message
"""

import asyncio
from datetime import datetime, timedelta, timezone

import pytest

from instant_events.core.domain_types import EventId, MemberId, MessageId, NotFoundTarget
from instant_events.core.errors import (
    CorruptDocumentError, EventClosedError, InputValidationError, ResourceNotFoundError,
)
from instant_events.services.message_thread import MessageThreadManager

EVENT_PATH = "members/m1/instants/e1"
MESSAGES = f"{EVENT_PATH}/messages"


async def test_post_creates_message_with_zero_reply_count(
    threads, member, seed_event, read_document,
):
    await seed_event("m1", "e1")
    await threads.post(member, EventId("e1"), "hello")

    [message] = await threads.message_list(member, EventId("e1"))
    assert message.message == "hello"
    assert message.reply_count == 0
    assert datetime.fromisoformat(message.create_at).tzinfo is not None
    assert message.update_at is None
    assert message.reply is None

    _, stored = await read_document(f"{MESSAGES}/{message.id}")
    assert set(stored) == {"message", "replyCount", "createAt"}


async def test_event_without_end_date_never_auto_closes(
    threads, member, seed_event, clock, read_document,
):
    await seed_event("m1", "e1")
    clock.advance(days=365 * 50)
    await threads.post(member, EventId("e1"), "still open")
    _, data = await read_document(EVENT_PATH)
    assert data["closed"] is False


async def test_post_before_end_date_succeeds(threads, member, seed_event, clock, count_children):
    await seed_event("m1", "e1", endDate=(clock.now + timedelta(hours=1)).isoformat())
    await threads.post(member, EventId("e1"), "in time")
    assert await count_children(MESSAGES) == 1


async def test_first_post_after_expiry_closes_and_fails(
    threads, member, seed_event, clock, read_document, count_children,
):
    await seed_event("m1", "e1", endDate=(clock.now - timedelta(minutes=1)).isoformat())

    with pytest.raises(EventClosedError) as exc:
        await threads.post(member, EventId("e1"), "too late")

    assert exc.value.closed_now is True
    version, data = await read_document(EVENT_PATH)
    assert data["closed"] is True
    assert version == 2
    assert await count_children(MESSAGES) == 0


async def test_post_exactly_at_end_date_is_rejected(
    threads, member, seed_event, clock, count_children,
):
    await seed_event("m1", "e1", endDate=clock.now.isoformat())
    with pytest.raises(EventClosedError):
        await threads.post(member, EventId("e1"), "on the bell")
    assert await count_children(MESSAGES) == 0


async def test_second_post_after_close_writes_nothing(
    threads, member, seed_event, clock, read_document,
):
    await seed_event("m1", "e1", endDate=(clock.now - timedelta(minutes=1)).isoformat())
    with pytest.raises(EventClosedError):
        await threads.post(member, EventId("e1"), "first")
    closed_version, _ = await read_document(EVENT_PATH)

    with pytest.raises(EventClosedError) as exc:
        await threads.post(member, EventId("e1"), "second")

    assert exc.value.closed_now is False
    assert (await read_document(EVENT_PATH))[0] == closed_version


async def test_closed_flag_never_reverts(threads, member, seed_event, clock, read_document):
    await seed_event("m1", "e1", closed=True)
    clock.advance(days=-30)
    with pytest.raises(EventClosedError):
        await threads.post(member, EventId("e1"), "hello")
    assert (await read_document(EVENT_PATH))[1]["closed"] is True


async def test_racing_posts_at_expiry_create_no_message(
    store, member, seed_event, clock, read_document, count_children,
):
    await seed_event("m1", "e1", endDate=clock.now.isoformat())
    posters = [MessageThreadManager(store, clock) for _ in range(2)]

    results = await asyncio.gather(
        *(p.post(member, EventId("e1"), "race") for p in posters),
        return_exceptions=True,
    )

    assert all(isinstance(r, EventClosedError) for r in results)
    assert sum(r.closed_now for r in results) == 1
    assert await count_children(MESSAGES) == 0
    assert (await read_document(EVENT_PATH))[1]["closed"] is True


async def test_racing_posts_around_expiry_never_post_after_close(
    store, member, seed_event, clock, read_document, count_children,
):
    end = clock.now
    await seed_event("m1", "e1", endDate=end.isoformat())
    early = [
        MessageThreadManager(store, lambda: end - timedelta(microseconds=1))
        for _ in range(4)
    ]
    late = MessageThreadManager(store, lambda: end)

    results = await asyncio.gather(
        *(p.post(member, EventId("e1"), f"early {i}") for i, p in enumerate(early)),
        late.post(member, EventId("e1"), "late"),
        return_exceptions=True,
    )

    successes = [r for r in results if r is None]
    failures = [r for r in results if isinstance(r, EventClosedError)]
    assert len(successes) + len(failures) == len(results)
    assert isinstance(results[-1], EventClosedError)
    assert await count_children(MESSAGES) == len(successes)
    assert (await read_document(EVENT_PATH))[1]["closed"] is True


async def test_post_blank_message_rejected(threads, member, seed_event):
    await seed_event("m1", "e1")
    with pytest.raises(InputValidationError):
        await threads.post(member, EventId("e1"), "  ")


async def test_post_to_missing_event(threads, member):
    with pytest.raises(ResourceNotFoundError) as exc:
        await threads.post(member, EventId("nope"), "hello")
    assert exc.value.target is NotFoundTarget.EVENT


async def test_post_checks_member_before_closing_policy(threads, seed_event, clock):
    # Expired event under a missing member: NotFound wins, nothing is closed
    await seed_event("ghost", "e1", endDate=(clock.now - timedelta(days=1)).isoformat())
    with pytest.raises(ResourceNotFoundError) as exc:
        await threads.post(MemberId("ghost"), EventId("e1"), "hello")
    assert exc.value.target is NotFoundTarget.MEMBER


async def test_message_list_in_store_order(threads, member, seed_event, seed_document):
    await seed_event("m1", "e1")
    created = datetime(2026, 3, 1, tzinfo=timezone.utc).isoformat()
    for doc_id in ("bbb", "aaa", "ccc"):
        await seed_document(
            f"{MESSAGES}/{doc_id}",
            {"message": doc_id, "replyCount": 0, "createAt": {"__timestamp__": created}},
        )

    messages = await threads.message_list(member, EventId("e1"))
    assert [m.id for m in messages] == ["aaa", "bbb", "ccc"]
    assert all(m.create_at == created for m in messages)


async def test_message_list_for_missing_event_is_not_found(threads, member):
    with pytest.raises(ResourceNotFoundError) as exc:
        await threads.message_list(member, EventId("nope"))
    assert exc.value.target is NotFoundTarget.EVENT


async def test_message_list_for_missing_member_is_not_found(threads):
    with pytest.raises(ResourceNotFoundError) as exc:
        await threads.message_list(MemberId("ghost"), EventId("e1"))
    assert exc.value.target is NotFoundTarget.MEMBER


async def test_message_list_of_event_without_messages(threads, member, seed_event):
    await seed_event("m1", "e1")
    assert await threads.message_list(member, EventId("e1")) == []


async def test_message_info_returns_posted_message(threads, member, seed_event):
    await seed_event("m1", "e1")
    await threads.post(member, EventId("e1"), "hello")
    [listed] = await threads.message_list(member, EventId("e1"))

    info = await threads.message_info(member, EventId("e1"), MessageId(listed.id))
    assert info == listed


@pytest.mark.parametrize("member_id, event_id, message_id, target", [
    ("ghost", "e1", "x1", NotFoundTarget.MEMBER),
    ("m1", "nope", "x1", NotFoundTarget.EVENT),
    ("m1", "e1", "nope", NotFoundTarget.MESSAGE),
])
async def test_message_info_fails_at_first_missing_link(
    threads, member, seed_event, member_id, event_id, message_id, target,
):
    await seed_event("m1", "e1")
    with pytest.raises(ResourceNotFoundError) as exc:
        await threads.message_info(
            MemberId(member_id), EventId(event_id), MessageId(message_id),
        )
    assert exc.value.target is target


async def test_message_body_stored_verbatim(threads, member, seed_event):
    await seed_event("m1", "e1")
    await threads.post(member, EventId("e1"), "  why?\n")
    [message] = await threads.message_list(member, EventId("e1"))
    assert message.message == "  why?\n"


async def test_unreadable_end_date_fails_typed_and_writes_nothing(
    threads, member, seed_event, read_document, count_children,
):
    await seed_event("m1", "e1", endDate="not-a-date")

    with pytest.raises(CorruptDocumentError) as exc:
        await threads.post(member, EventId("e1"), "hello")
    assert exc.value.field == "endDate"
    assert exc.value.context.event_id == "e1"

    version, data = await read_document(EVENT_PATH)
    assert version == 1
    assert data["closed"] is False
    assert await count_children(MESSAGES) == 0
