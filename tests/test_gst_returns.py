# tests/test_gst_returns.py
"""Tests for GSTR-1/2/3B fetching: gating, validation, forwarding."""

from datetime import date, timedelta

import pytest

from gstbooks.domain.errors import PreconditionFailed, RemoteRejection, ValidationFailure
from gstbooks.domain.models.gst import GSTCredential
from gstbooks.domain.services.gst_credential import GSTCredentialWorkflow
from gstbooks.domain.services.gst_returns import GSTReturnsService, ReturnType, parse_return_type


@pytest.fixture
def workflow(client, cache, clock):
    return GSTCredentialWorkflow(client, cache, clock=clock, warning_window=timedelta(minutes=30))


@pytest.fixture
def service(client, workflow):
    return GSTReturnsService(client, workflow)


@pytest.fixture
def usable(now, authenticated_payload):
    return GSTCredential.model_validate(authenticated_payload(now + timedelta(hours=2)))


@pytest.fixture
def pending(credential_payload):
    return GSTCredential.model_validate(credential_payload())


def test_parse_return_type():
    assert parse_return_type(" GSTR3B ") == ReturnType.GSTR3B
    with pytest.raises(ValidationFailure) as exc:
        parse_return_type("gstr9")
    assert exc.value.errors[0]["field"] == "return_type"


def test_network_summary_needs_usable_credential(event_loop, service, client, pending):
    with pytest.raises(PreconditionFailed):
        event_loop.run_until_complete(service.fetch(pending, "gstr3b", "0425", "2025-26"))
    assert client.mock_calls == []


def test_expired_token_makes_no_call(event_loop, service, client, now, authenticated_payload):
    expired = GSTCredential.model_validate(authenticated_payload(now - timedelta(seconds=1)))
    with pytest.raises(PreconditionFailed):
        event_loop.run_until_complete(service.fetch(expired, "gstr1", "0425", "2025-26"))
    client.get_gstr1.assert_not_called()


def test_network_summary(event_loop, service, client, usable):
    client.get_gstr3b.return_value = {"gstin": "27AAAAA0000A1Z5", "ret_period": "0425"}
    data = event_loop.run_until_complete(service.fetch(usable, "gstr3b", " 0425 ", "2025-26"))
    assert data["ret_period"] == "0425"
    client.get_gstr3b.assert_awaited_once_with("cred-1", "0425", "2025-26", from_date=None, to_date=None)


def test_books_format_is_not_gated(event_loop, service, client, pending):
    client.get_gstr1.return_value = {"description": "Outward supplies", "summary": []}
    event_loop.run_until_complete(
        service.fetch(pending, ReturnType.GSTR1, "0425", "2025-26", date(2025, 4, 1), date(2025, 4, 30))
    )
    client.get_gstr1.assert_awaited_once_with(
        "cred-1", "0425", "2025-26", from_date="2025-04-01", to_date="2025-04-30",
    )


@pytest.mark.parametrize("from_date,to_date", [
    (date(2025, 4, 1), None),
    (None, date(2025, 4, 30)),
    (date(2025, 5, 1), date(2025, 4, 1)),
])
def test_bad_date_range(event_loop, service, client, usable, from_date, to_date):
    with pytest.raises(ValidationFailure):
        event_loop.run_until_complete(
            service.fetch(usable, "gstr2", "0425", "2025-26", from_date, to_date)
        )
    client.get_gstr2.assert_not_called()


def test_bad_period_makes_no_call(event_loop, service, client, usable):
    with pytest.raises(ValidationFailure):
        event_loop.run_until_complete(service.fetch(usable, "gstr2", "2025-04", "2025-26"))
    assert client.mock_calls == []


def test_non_object_response_rejected(event_loop, service, client, usable):
    client.get_gstr2.return_value = ["unexpected"]
    with pytest.raises(RemoteRejection):
        event_loop.run_until_complete(service.fetch(usable, "gstr2", "0425", "2025-26"))


def test_remote_rejection_propagates(event_loop, service, client, usable):
    client.get_gstr3b.side_effect = RemoteRejection("Return not filed", status_code=404)
    with pytest.raises(RemoteRejection) as exc:
        event_loop.run_until_complete(service.fetch(usable, "gstr3b", "0425", "2025-26"))
    assert exc.value.status_code == 404
