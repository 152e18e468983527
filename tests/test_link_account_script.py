"""Tests for the token seeding script."""

try:
    from . import _bootstrap  # noqa: F401
except Exception:  # pragma: no cover - fallback for direct execution
    import _bootstrap  # type: ignore # noqa: F401

from argparse import Namespace
from datetime import datetime, timedelta, timezone

import pytest

from app.clients.jobber_graphql import JobberAPIError
from app.clients.sqlite_store import TokenStoreError
from app.models.oauth import JobberAccount
from scripts import link_account

NOW = datetime(2025, 1, 1, 12, 0, tzinfo=timezone.utc)


class RecordingStore:
    def __init__(self, *, fail: bool = False) -> None:
        self.records = []
        self.fail = fail

    def insert_token(self, record) -> None:
        if self.fail:
            raise TokenStoreError("disk full")
        self.records.append(record)


class StubSyncService:
    def __init__(self, *, error: Exception | None = None) -> None:
        self.error = error
        self.users: list[str] = []

    async def sync(self, *, user_id: str) -> JobberAccount:
        self.users.append(user_id)
        if self.error:
            raise self.error
        return JobberAccount(id=1, public_id="pub-1", user_id=user_id, jobber_id="acct-1")


def _args(**overrides) -> Namespace:
    values = {
        "user_id": "42",
        "access_token": "access",
        "refresh_token": "refresh",
        "expires_at": None,
        "sync": False,
    }
    values.update(overrides)
    return Namespace(**values)


def test_build_record_parses_jobber_expiry() -> None:
    record = link_account.build_record(
        _args(expires_at="2025-01-01 14:00:00 UTC"),
        now=NOW,
        default_lifetime=timedelta(hours=1),
    )

    assert record.user_id == "42"
    assert record.expires_at == datetime(2025, 1, 1, 14, 0, tzinfo=timezone.utc)
    assert record.created_at == NOW


def test_build_record_defaults_expiry() -> None:
    record = link_account.build_record(_args(), now=NOW, default_lifetime=timedelta(minutes=30))

    assert record.expires_at == NOW + timedelta(minutes=30)


def _patch(monkeypatch: pytest.MonkeyPatch, store, sync_service=None) -> None:
    monkeypatch.setattr(link_account, "get_token_store", lambda: store)
    if sync_service is not None:
        monkeypatch.setattr(link_account, "get_account_sync_service", lambda: sync_service)


BASE_ARGV = ["--user-id", "42", "--access-token", "a", "--refresh-token", "r"]


def test_main_stores_token(monkeypatch: pytest.MonkeyPatch) -> None:
    store = RecordingStore()
    _patch(monkeypatch, store)

    assert link_account.main(BASE_ARGV) == 0
    assert [record.refresh_token for record in store.records] == ["r"]


def test_main_reports_store_failure(monkeypatch: pytest.MonkeyPatch) -> None:
    _patch(monkeypatch, RecordingStore(fail=True))

    assert link_account.main(BASE_ARGV) == 1


def test_main_syncs_account(monkeypatch: pytest.MonkeyPatch, capsys) -> None:
    sync_service = StubSyncService()
    _patch(monkeypatch, RecordingStore(), sync_service)

    assert link_account.main([*BASE_ARGV, "--sync"]) == 0
    assert sync_service.users == ["42"]
    assert "pub-1" in capsys.readouterr().out


def test_main_sync_failure(monkeypatch: pytest.MonkeyPatch) -> None:
    _patch(monkeypatch, RecordingStore(), StubSyncService(error=JobberAPIError("boom")))

    assert link_account.main([*BASE_ARGV, "--sync"]) == 1


def test_main_rejects_unreadable_expiry(monkeypatch: pytest.MonkeyPatch) -> None:
    store = RecordingStore()
    _patch(monkeypatch, store)

    with pytest.raises(SystemExit) as excinfo:
        link_account.main([*BASE_ARGV, "--expires-at", "next tuesday"])

    assert excinfo.value.code == 2
    assert store.records == []
