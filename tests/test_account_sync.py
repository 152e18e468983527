try:
    from . import _bootstrap  # noqa: F401
except Exception:  # pragma: no cover - fallback for direct execution
    import _bootstrap  # type: ignore # noqa: F401

import pytest

from app.clients.jobber_auth import OAuthTokenNotFoundError
from app.clients.sqlite_store import SQLiteStore
from app.models.oauth import ConnectionStatus
from app.schemas.jobber import Account
from app.services.accounts import AccountSyncService
from app.services.token_cipher import TokenCipherService

pytestmark = pytest.mark.anyio("asyncio")


class StubTokenManager:
    def __init__(self, *, missing: bool = False) -> None:
        self.missing = missing

    async def get_valid_token(self, *, user_id: str) -> str:
        if self.missing:
            raise OAuthTokenNotFoundError(user_id)
        return "access-token"


class StubGraphQLClient:
    def __init__(self, account: Account) -> None:
        self.account = account
        self.tokens: list[str] = []

    async def fetch_account(self, token: str) -> Account:
        self.tokens.append(token)
        return self.account


@pytest.fixture()
def store(tmp_path) -> SQLiteStore:
    return SQLiteStore(str(tmp_path / "sync.db"), cipher=TokenCipherService(secret="s"))


async def test_sync_upserts_account_and_marks_connected(store) -> None:
    graphql = StubGraphQLClient(
        Account(id="acct-1", name="Acme", signupName="Empty", industry="HVAC", phone="555")
    )
    service = AccountSyncService(
        store=store, token_manager=StubTokenManager(), graphql_client=graphql
    )

    account = await service.sync(user_id="user-1")

    assert graphql.tokens == ["access-token"]
    assert account.jobber_id == "acct-1"
    assert account.signup_name is None
    assert account.connection_status is ConnectionStatus.CONNECTED
    stored = store.get_account_for_user("user-1")
    assert stored.public_id == account.public_id
    assert stored.connection_status is ConnectionStatus.CONNECTED
    assert stored.industry == "HVAC"


async def test_resync_keeps_public_id(store) -> None:
    graphql = StubGraphQLClient(Account(id="acct-1", name="Acme", signupName="Pat"))
    service = AccountSyncService(
        store=store, token_manager=StubTokenManager(), graphql_client=graphql
    )

    first = await service.sync(user_id="user-1")
    graphql.account = Account(id="acct-1", name="Acme Renamed", signupName="Pat")
    second = await service.sync(user_id="user-1")

    assert second.public_id == first.public_id
    assert second.name == "Acme Renamed"
    assert second.signup_name == "Pat"


async def test_sync_without_token_propagates(store) -> None:
    service = AccountSyncService(
        store=store,
        token_manager=StubTokenManager(missing=True),
        graphql_client=StubGraphQLClient(Account(id="acct-1")),
    )

    with pytest.raises(OAuthTokenNotFoundError):
        await service.sync(user_id="user-1")
    assert store.get_account_for_user("user-1") is None
