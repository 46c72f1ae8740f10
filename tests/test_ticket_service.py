from __future__ import annotations

from datetime import timedelta
from unittest.mock import AsyncMock

import pytest

from ticket_service.core.exceptions import InvalidTicketInputError, TicketNotFoundError
from ticket_service.events import TicketEventDispatcher
from ticket_service.services.tickets import TicketRepository, TicketService, TicketStatus


@pytest.fixture
def dispatcher(recording_sink) -> TicketEventDispatcher:
    return TicketEventDispatcher(recording_sink, timeout=1.0)


@pytest.fixture
def service(repository: TicketRepository, dispatcher: TicketEventDispatcher) -> TicketService:
    return TicketService(repository, dispatcher=dispatcher)


@pytest.mark.asyncio
async def test_create_defaults_to_open(service: TicketService):
    ticket = await service.create_ticket(session_id="s1", client_id="c1")

    assert ticket.id > 0
    assert ticket.status is TicketStatus.OPEN
    assert ticket.created_at == ticket.updated_at
    assert ticket.closed_at is None
    assert ticket.operator_id == ""


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "kwargs, message",
    [
        ({"session_id": "", "client_id": "c1"}, "session_id is required"),
        ({"session_id": "s1", "client_id": "   "}, "client_id is required"),
        ({"session_id": "s1", "client_id": "c1", "status": "reopened"}, "invalid status"),
    ],
)
async def test_create_rejects_invalid_input(kwargs, message):
    store = AsyncMock()
    service = TicketService(store)

    with pytest.raises(InvalidTicketInputError, match=message):
        await service.create_ticket(**kwargs)

    store.create_ticket.assert_not_awaited()


@pytest.mark.asyncio
async def test_create_closed_sets_closed_at(service: TicketService):
    ticket = await service.create_ticket(session_id="s1", client_id="c1", status="closed")

    assert ticket.status is TicketStatus.CLOSED
    assert ticket.closed_at == ticket.created_at


@pytest.mark.asyncio
async def test_get_missing_ticket_raises_not_found(service: TicketService):
    with pytest.raises(TicketNotFoundError, match="ticket 77 not found"):
        await service.get_ticket(77)


@pytest.mark.asyncio
async def test_list_ignores_filters_outside_allow_list(service: TicketService):
    await service.create_ticket(session_id="s1", client_id="c1")
    await service.create_ticket(session_id="s2", client_id="c2")

    page = await service.list_tickets({"client_id": "c1", "session_id": "s2", "subject": "x"})

    assert page.total == 1
    assert [ticket.client_id for ticket in page.tickets] == ["c1"]


@pytest.mark.asyncio
async def test_list_treats_negative_paging_as_unbounded(service: TicketService):
    for _ in range(3):
        await service.create_ticket(session_id="s1", client_id="c1")

    page = await service.list_tickets({}, limit=-5, offset=-1)

    assert page.total == 3
    assert len(page.tickets) == 3


@pytest.mark.asyncio
async def test_update_drops_keys_outside_allow_list(service: TicketService):
    created = await service.create_ticket(session_id="s1", client_id="c1", subject="old")

    updated = await service.update_ticket(
        created.id, {"subject": "new", "client_id": "mallory", "created_at": "2000-01-01"}
    )

    assert updated.subject == "new"
    assert updated.client_id == "c1"
    assert updated.created_at == created.created_at


@pytest.mark.asyncio
async def test_update_without_allowed_changes_is_rejected_before_write(make_ticket):
    store = AsyncMock()
    store.get_ticket.return_value = make_ticket(7)
    service = TicketService(store)

    with pytest.raises(InvalidTicketInputError, match="no changes provided"):
        await service.update_ticket(7, {"client_id": "x", "session_id": "y"})

    store.update_ticket.assert_not_awaited()


@pytest.mark.asyncio
async def test_update_with_invalid_status_is_rejected_before_write(make_ticket):
    store = AsyncMock()
    store.get_ticket.return_value = make_ticket(7)
    service = TicketService(store)

    with pytest.raises(InvalidTicketInputError, match="invalid status"):
        await service.update_ticket(7, {"status": "done"})

    store.update_ticket.assert_not_awaited()


@pytest.mark.asyncio
async def test_update_rejects_non_string_values(make_ticket):
    store = AsyncMock()
    store.get_ticket.return_value = make_ticket(7)
    service = TicketService(store)

    with pytest.raises(InvalidTicketInputError):
        await service.update_ticket(7, {"subject": 12})

    store.update_ticket.assert_not_awaited()


@pytest.mark.asyncio
async def test_update_missing_ticket_raises_not_found(service: TicketService):
    with pytest.raises(TicketNotFoundError):
        await service.update_ticket(404, {"subject": "x"})


@pytest.mark.asyncio
async def test_update_tracks_closed_at(service: TicketService):
    created = await service.create_ticket(session_id="s1", client_id="c1")

    closed = await service.update_ticket(created.id, {"status": "closed"})
    assert closed.closed_at is not None
    assert closed.updated_at > created.updated_at

    reopened = await service.update_ticket(created.id, {"status": "in_progress"})
    assert reopened.closed_at is None
    assert reopened.status is TicketStatus.IN_PROGRESS


@pytest.mark.asyncio
async def test_update_advances_updated_at_even_when_clock_lags(make_ticket):
    current = make_ticket(3)
    future = make_ticket(3, updated_at=current.updated_at + timedelta(days=3650))
    store = AsyncMock()
    store.get_ticket.return_value = future
    store.update_ticket.side_effect = lambda ticket_id, values: make_ticket(3, **{
        key: value for key, value in values.items() if key != "status"
    })
    service = TicketService(store, refetch_before_notify=False)

    updated = await service.update_ticket(3, {"notes": "n"})

    assert updated.updated_at > future.updated_at


@pytest.mark.asyncio
async def test_repeated_update_is_idempotent_apart_from_updated_at(service: TicketService):
    created = await service.create_ticket(session_id="s1", client_id="c1")

    first = await service.update_ticket(created.id, {"notes": "same"})
    second = await service.update_ticket(created.id, {"notes": "same"})

    assert first.notes == second.notes == "same"
    assert second.updated_at > first.updated_at


@pytest.mark.asyncio
async def test_notifications_follow_persisted_state(
    service: TicketService, dispatcher: TicketEventDispatcher, recording_sink, repository
):
    created = await service.create_ticket(session_id="s1", client_id="c1")
    updated = await service.update_ticket(created.id, {"subject": "printer"})
    await dispatcher.drain()

    kinds = [kind for kind, _ in recording_sink.events]
    assert kinds == ["ticket.created", "ticket.updated"]
    _, notified = recording_sink.events[-1]
    assert notified == updated
    assert notified == await repository.get_ticket(created.id)


@pytest.mark.asyncio
async def test_refetch_before_notify_can_be_disabled(make_ticket, recording_sink):
    store = AsyncMock()
    store.get_ticket.return_value = make_ticket(5)
    store.update_ticket.return_value = make_ticket(5, subject="x")
    dispatcher = TicketEventDispatcher(recording_sink)
    service = TicketService(store, dispatcher=dispatcher, refetch_before_notify=False)

    await service.update_ticket(5, {"subject": "x"})
    await dispatcher.drain()

    assert store.get_ticket.await_count == 1
    assert recording_sink.events[0][1].subject == "x"


@pytest.mark.asyncio
async def test_sink_failure_does_not_fail_the_request(repository: TicketRepository):
    sink = AsyncMock()
    sink.notify_change.side_effect = RuntimeError("index down")
    dispatcher = TicketEventDispatcher(sink, timeout=1.0)
    service = TicketService(repository, dispatcher=dispatcher)

    ticket = await service.create_ticket(session_id="s1", client_id="c1")
    await dispatcher.drain()

    assert ticket.id > 0
    sink.notify_change.assert_awaited_once()


@pytest.mark.asyncio
async def test_ticket_history_scenario(service: TicketService):
    opened = await service.create_ticket(
        session_id="chat-9", client_id="alice", operator_id="op-1", region="eu", subject="login"
    )
    await service.update_ticket(opened.id, {"status": "in_progress", "notes": "looking"})
    closed = await service.update_ticket(opened.id, {"status": "closed"})

    page = await service.list_tickets({"client_id": "alice", "status": "closed"})

    assert page.total == 1
    assert page.tickets[0].id == opened.id
    assert closed.notes == "looking"
    assert closed.closed_at is not None
    assert await service.list_all_tickets() == [closed]


@pytest.mark.asyncio
async def test_created_ticket_reads_back_unchanged_then_closes(service: TicketService):
    fields = {
        "session_id": "chat-1",
        "client_id": "alice",
        "operator_id": "op-7",
        "status": "in_progress",
        "priority": "high",
        "region": "eu-west",
        "subject": "Cannot log in",
        "notes": "Reset link expired",
    }

    created = await service.create_ticket(**fields)
    fetched = await service.get_ticket(created.id)

    assert fetched.id == created.id > 0
    for name, value in fields.items():
        assert getattr(fetched, name) == value, name
    assert fetched.created_at == created.created_at
    assert fetched.updated_at == created.updated_at
    assert fetched.closed_at is None

    await service.update_ticket(created.id, {"status": "closed"})
    closed = await service.get_ticket(created.id)

    assert closed.status is TicketStatus.CLOSED
    assert closed.closed_at is not None
    assert closed.updated_at > closed.created_at
    assert closed.subject == fields["subject"]
