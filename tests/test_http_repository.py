from decimal import Decimal

import pytest
import requests
from factories import at, make_expense

from models import Assigned, Category
from remote.base import RemoteError
from remote.http import HttpExpenseRepository

SERVER_EXPENSE = {
    "_id": "65a1f0c2e4b0a1b2c3d4e5f6",
    "localId": "local_abc",
    "amount": 12.5,
    "category": "food",
    "description": "lunch",
    "date": "2026-01-01T00:00:00.000Z",
    "createdAt": "2026-01-01T12:00:00.000Z",
    "updatedAt": "2026-01-01T12:00:10.000Z",
    "deleted": False,
    "__v": 0,
}


@pytest.fixture
def session(mocker):
    return mocker.Mock(spec=requests.Session)


@pytest.fixture
def repository(session):
    return HttpExpenseRepository("http://server/api/", timeout=5, session=session)


def respond(mocker, session, payload=None, status=200, text=""):
    response = mocker.Mock(spec=requests.Response)
    response.status_code = status
    response.text = text
    response.json.return_value = payload
    if status >= 400:
        response.raise_for_status.side_effect = requests.HTTPError(f"{status} Error")
    session.request.return_value = response
    return response


async def test_fetch_parses_server_records(mocker, session, repository):
    respond(mocker, session, [SERVER_EXPENSE])

    (expense,) = await repository.fetch()

    session.request.assert_called_once_with("GET", "http://server/api/expenses", timeout=5, params=None)
    assert expense.id == Assigned("65a1f0c2e4b0a1b2c3d4e5f6")
    assert expense.origin == "local_abc"
    assert expense.amount == Decimal("12.50")
    assert expense.category is Category.FOOD
    assert expense.date.isoformat() == "2026-01-01"
    assert expense.updated_at == at(10)
    assert expense.synced


async def test_fetch_since_sends_the_watermark(mocker, session, repository):
    respond(mocker, session, [])

    await repository.fetch(since=at(0))

    _, kwargs = session.request.call_args
    assert kwargs["params"] == {"since": "2026-01-01T12:00:00.000Z"}


async def test_push_sends_wire_format_and_returns_server_state(mocker, session, repository):
    respond(mocker, session, [SERVER_EXPENSE])
    provisional = make_expense(token="local_abc", updated=5)
    existing = make_expense("65a1f0c2e4b0a1b2c3d4e5f7", updated=5, deleted=True, synced=False)

    echoed = await repository.push([provisional, existing])

    args, kwargs = session.request.call_args
    assert args == ("POST", "http://server/api/expenses/sync")
    sent = kwargs["json"]["expenses"]
    assert "_id" not in sent[0]
    assert sent[0]["localId"] == "local_abc"
    assert sent[0]["amount"] == 12.5
    assert sent[0]["updatedAt"] == "2026-01-01T12:00:05.000Z"
    assert sent[1]["_id"] == "65a1f0c2e4b0a1b2c3d4e5f7"
    assert sent[1]["deleted"] is True
    assert echoed[0].server_id == "65a1f0c2e4b0a1b2c3d4e5f6"


async def test_delete_targets_the_record(mocker, session, repository):
    respond(mocker, session, status=204)

    await repository.delete("abc")

    session.request.assert_called_once_with("DELETE", "http://server/api/expenses/abc", timeout=5)


async def test_export_returns_csv_text(mocker, session, repository):
    respond(mocker, session, text="date,description\n2026-01-01,lunch\n")

    assert (await repository.export_csv()).startswith("date,description")


async def test_http_error_becomes_remote_error(mocker, session, repository):
    respond(mocker, session, status=500)

    with pytest.raises(RemoteError):
        await repository.fetch()


async def test_connection_error_becomes_remote_error(session, repository):
    session.request.side_effect = requests.ConnectionError("connection refused")

    with pytest.raises(RemoteError, match="connection refused"):
        await repository.push([make_expense("a")])


@pytest.mark.parametrize(
    "payload",
    [
        {"expenses": []},
        [{"amount": 1}],
        [dict(SERVER_EXPENSE, category="groceries")],
        [dict(SERVER_EXPENSE, _id=None)],
        [dict(SERVER_EXPENSE, updatedAt=1767268810000)],
        [dict(SERVER_EXPENSE, deleted=None)],
    ],
)
async def test_malformed_payload_becomes_remote_error(mocker, session, repository, payload):
    respond(mocker, session, payload)

    with pytest.raises(RemoteError):
        await repository.fetch()


async def test_invalid_json_becomes_remote_error(mocker, session, repository):
    response = respond(mocker, session)
    response.json.side_effect = ValueError("Expecting value")

    with pytest.raises(RemoteError, match="invalid JSON"):
        await repository.fetch()
