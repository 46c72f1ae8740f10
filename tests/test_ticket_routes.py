from __future__ import annotations

from unittest.mock import AsyncMock

import pytest
from fastapi.testclient import TestClient

from ticket_service.core.config import Settings
from ticket_service.core.exceptions import InvalidTicketInputError, TicketNotFoundError
from ticket_service.main import create_app
from ticket_service.services.tickets import TicketPage, TicketStatus


@pytest.fixture
def ticket_client():
    app = create_app()
    service = AsyncMock()
    app.state.ticket_service = service

    client = TestClient(app, raise_server_exceptions=False)
    yield client, service


def test_create_ticket_returns_created(ticket_client, make_ticket):
    client, service = ticket_client
    service.create_ticket = AsyncMock(return_value=make_ticket(11, subject="vpn"))

    response = client.post("/api/v1/tickets", json={"session_id": "s1", "client_id": "c1", "subject": "vpn"})

    assert response.status_code == 201
    body = response.json()
    assert body["id"] == 11
    assert body["status"] == "open"
    assert body["closed_at"] is None
    kwargs = service.create_ticket.await_args.kwargs
    assert kwargs["session_id"] == "s1"
    assert kwargs["subject"] == "vpn"


def test_create_ticket_without_required_fields_is_bad_request(ticket_client):
    client, service = ticket_client

    response = client.post("/api/v1/tickets", json={"session_id": "s1"})

    assert response.status_code == 400
    assert response.json() == {"detail": "invalid body", "code": "invalid_argument"}
    service.create_ticket.assert_not_awaited()


def test_create_ticket_with_unknown_status_maps_to_400(ticket_client):
    client, service = ticket_client
    service.create_ticket = AsyncMock(side_effect=InvalidTicketInputError("invalid status: must be 'open', 'in_progress', or 'closed'"))

    response = client.post("/api/v1/tickets", json={"session_id": "s1", "client_id": "c1", "status": "new"})

    assert response.status_code == 400
    assert response.json()["code"] == "invalid_argument"
    assert response.json()["detail"].startswith("invalid status")


def test_get_ticket_not_found(ticket_client):
    client, service = ticket_client
    service.get_ticket = AsyncMock(side_effect=TicketNotFoundError("ticket 5 not found"))

    response = client.get("/api/v1/tickets/5")

    assert response.status_code == 404
    assert response.json() == {"detail": "ticket 5 not found", "code": "not_found"}


@pytest.mark.parametrize("raw_id", ["abc", "0", "-3", "9223372036854775808", "99999999999999999999"])
def test_get_ticket_with_invalid_id(ticket_client, raw_id):
    client, service = ticket_client

    response = client.get(f"/api/v1/tickets/{raw_id}")

    assert response.status_code == 400
    assert response.json()["detail"] == "invalid id"
    service.get_ticket.assert_not_awaited()


def test_list_tickets_passes_filters_and_paging(ticket_client, make_ticket):
    client, service = ticket_client
    service.list_tickets = AsyncMock(return_value=TicketPage(tickets=[make_ticket(1)], total=3))

    response = client.get("/api/v1/tickets", params={"client_id": "c1", "status": "open", "limit": 1, "offset": 1})

    assert response.status_code == 200
    body = response.json()
    assert body["total"] == 3
    assert [ticket["id"] for ticket in body["tickets"]] == [1]
    filters = service.list_tickets.await_args.args[0]
    assert filters["client_id"] == "c1"
    assert filters["status"] == "open"
    assert service.list_tickets.await_args.kwargs == {"limit": 1, "offset": 1}


def test_list_tickets_with_non_numeric_limit(ticket_client):
    client, _ = ticket_client

    response = client.get("/api/v1/tickets", params={"limit": "many"})

    assert response.status_code == 400
    assert response.json()["detail"] == "invalid query"


def test_update_ticket_forwards_changes(ticket_client, make_ticket):
    client, service = ticket_client
    service.update_ticket = AsyncMock(return_value=make_ticket(8, status=TicketStatus.CLOSED))

    response = client.put("/api/v1/tickets/8", json={"status": "closed", "client_id": "other"})

    assert response.status_code == 200
    assert response.json()["status"] == "closed"
    ticket_id, changes = service.update_ticket.await_args.args
    assert ticket_id == 8
    assert changes == {"status": "closed", "client_id": "other"}


def test_update_ticket_with_empty_body_is_rejected(ticket_client):
    client, service = ticket_client
    service.update_ticket = AsyncMock(side_effect=InvalidTicketInputError("no changes provided"))

    response = client.put("/api/v1/tickets/8", json={})

    assert response.status_code == 400
    assert response.json()["detail"] == "no changes provided"


def test_unexpected_errors_become_generic_500(ticket_client):
    client, service = ticket_client
    service.get_ticket = AsyncMock(side_effect=RuntimeError("connection reset by db-7"))

    response = client.get("/api/v1/tickets/1")

    assert response.status_code == 500
    assert response.json() == {"detail": "internal error", "code": "internal"}


def test_service_unavailable_without_state():
    client = TestClient(create_app())

    response = client.get("/api/v1/tickets/1")

    assert response.status_code == 503


def test_health_reports_service_name():
    client = TestClient(create_app(Settings(_env_file=None, app_name="ticket-service")))

    response = client.get("/health")

    assert response.status_code == 200
    body = response.json()
    assert body["status"] == "ok"
    assert body["service"] == "ticket-service"
    assert isinstance(body["time"], int)


def test_ready_pings_repository():
    app = create_app()
    repository = AsyncMock()
    repository.ping = AsyncMock(return_value=True)
    app.state.ticket_repository = repository
    client = TestClient(app)

    assert client.get("/ready").json() == {"status": "ready"}

    repository.ping.side_effect = ConnectionError("db down")
    response = client.get("/ready")
    assert response.status_code == 503


def test_update_ticket_with_id_beyond_bigint(ticket_client):
    client, service = ticket_client

    response = client.put("/api/v1/tickets/99999999999999999999", json={"subject": "x"})

    assert response.status_code == 400
    assert response.json() == {"detail": "invalid id", "code": "invalid_argument"}
    service.update_ticket.assert_not_awaited()


def test_largest_bigint_id_reaches_the_service(ticket_client):
    client, service = ticket_client
    service.get_ticket = AsyncMock(side_effect=TicketNotFoundError("ticket 9223372036854775807 not found"))

    response = client.get("/api/v1/tickets/9223372036854775807")

    assert response.status_code == 404
    service.get_ticket.assert_awaited_once_with(9223372036854775807)
