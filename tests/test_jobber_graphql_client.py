try:
    from . import _bootstrap  # noqa: F401
except Exception:  # pragma: no cover - fallback for direct execution
    import _bootstrap  # type: ignore # noqa: F401

import json

import httpx
import pytest

from app.clients.jobber_graphql import JobberAPIError, JobberGraphQLClient
from app.core.config import JobberSettings

pytestmark = pytest.mark.anyio("asyncio")

SETTINGS = JobberSettings(
    JOBBER_CLIENT_ID="client-id",
    JOBBER_CLIENT_SECRET="client-secret",
    JOBBER_GRAPHQL_URL="https://jobber.test/graphql",
    JOBBER_GRAPHQL_VERSION="2024-12-05",
)


class RecordingHandler:
    def __init__(self, *responses: httpx.Response) -> None:
        self.responses = list(responses)
        self.requests: list[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        return self.responses.pop(0)

    def body(self, index: int = 0) -> dict:
        return json.loads(self.requests[index].content)


def _client(handler) -> JobberGraphQLClient:
    return JobberGraphQLClient(SETTINGS, transport=httpx.MockTransport(handler))


def _client_node(client_id: str, created_at: str, **extra) -> dict:
    return {"client": {"id": client_id, "createdAt": created_at, **extra}}


async def test_find_client_by_email_picks_most_recent() -> None:
    handler = RecordingHandler(
        httpx.Response(
            200,
            json={
                "data": {
                    "clientEmails": {
                        "nodes": [
                            _client_node("c-old", "2023-01-01T00:00:00Z", name="Old"),
                            _client_node("c-new", "2024-06-01T00:00:00Z", name="New"),
                            _client_node("c-mid", "2024-01-01T00:00:00Z"),
                        ]
                    }
                }
            },
        )
    )

    client = await _client(handler).find_client_by_email("pat@example.com", "token-1")

    assert client.id == "c-new"
    request = handler.requests[0]
    assert str(request.url) == "https://jobber.test/graphql"
    assert request.headers["Authorization"] == "Bearer token-1"
    assert request.headers["X-JOBBER-GRAPHQL-VERSION"] == "2024-12-05"
    assert handler.body()["variables"] == {"email": "pat@example.com"}


async def test_find_client_by_email_without_matches() -> None:
    handler = RecordingHandler(
        httpx.Response(200, json={"data": {"clientEmails": {"nodes": []}}})
    )

    assert await _client(handler).find_client_by_email("x@example.com", "t") is None


async def test_fetch_invoices_and_quotes() -> None:
    handler = RecordingHandler(
        httpx.Response(
            200,
            json={
                "data": {
                    "client": {
                        "invoices": {
                            "nodes": [
                                {
                                    "id": "i-1",
                                    "amounts": {"total": 120.5, "invoiceBalance": 20},
                                    "invoiceNumber": "101",
                                    "invoiceStatus": "awaiting_payment",
                                    "dueDate": "2025-02-01",
                                    "clientHubUri": "https://hub.test/i-1",
                                }
                            ]
                        }
                    }
                }
            },
        ),
        httpx.Response(200, json={"data": {"client": {"quotes": {"nodes": []}}}}),
    )
    client = _client(handler)

    invoices = await client.fetch_invoices("c-1", "t")
    quotes = await client.fetch_quotes("c-1", "t")

    assert [invoice.invoiceNumber for invoice in invoices] == ["101"]
    assert invoices[0].amounts.invoiceBalance == 20
    assert quotes == []
    assert handler.body(0)["variables"] == {"clientId": "c-1"}
    assert "invoices" in handler.body(0)["query"]
    assert "quotes" in handler.body(1)["query"]


async def test_fetch_account() -> None:
    handler = RecordingHandler(
        httpx.Response(
            200,
            json={
                "data": {
                    "account": {
                        "id": "acct-1",
                        "name": "Acme Plumbing",
                        "signupName": "Empty",
                        "industry": "Plumbing",
                        "phone": None,
                    }
                }
            },
        )
    )

    account = await _client(handler).fetch_account("t")

    assert account.id == "acct-1"
    assert account.name == "Acme Plumbing"
    assert "variables" not in handler.body()


@pytest.mark.parametrize(
    "response",
    [
        httpx.Response(500, text="oops"),
        httpx.Response(200, text="not json"),
        httpx.Response(200, json={"errors": [{"message": "Throttled"}]}),
        httpx.Response(200, json={"data": {"unexpected": True}}),
    ],
)
async def test_failures_raise_jobber_api_error(response) -> None:
    with pytest.raises(JobberAPIError):
        await _client(RecordingHandler(response)).fetch_account("t")


async def test_network_failure_raises_jobber_api_error() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("refused", request=request)

    with pytest.raises(JobberAPIError):
        await _client(handler).fetch_account("t")
