"""SQLite-backed token store, account directory and usage log."""

from __future__ import annotations

import json
import sqlite3
import uuid
from contextlib import contextmanager
from datetime import datetime, timezone
from pathlib import Path
from typing import TYPE_CHECKING, Any, Dict, Iterator, List, Optional

from app.models.oauth import (
    AccountStatus,
    ConnectionStatus,
    JobberAccount,
    TokenRecord,
    ensure_utc,
)
from app.models.usage import UsageLogType

if TYPE_CHECKING:
    from app.services.token_cipher import TokenCipherService


class TokenStoreError(Exception):
    """Raised when the backing store cannot complete an operation."""


def _to_db_time(value: datetime) -> str:
    # Fixed-width ISO strings keep lexical and chronological order identical.
    return ensure_utc(value).isoformat(timespec="microseconds")


def _from_db_time(value: Optional[str]) -> Optional[datetime]:
    if value is None:
        return None
    return ensure_utc(datetime.fromisoformat(value))


class SQLiteStore:
    """Relational storage for OAuth tokens, linked accounts and usage logs.

    Token values are encrypted at rest. ``refresh_token_hash`` carries the
    uniqueness constraint and is the compare-and-set key for refreshes.
    """

    def __init__(
        self,
        db_path: str,
        *,
        cipher: "TokenCipherService",
        timeout_seconds: float = 10.0,
    ) -> None:
        self._db_path = Path(db_path)
        self._cipher = cipher
        self._timeout = timeout_seconds
        if self._db_path.parent and not self._db_path.parent.exists():
            self._db_path.parent.mkdir(parents=True, exist_ok=True)
        self._ensure_schema()

    def _connect(self) -> sqlite3.Connection:
        conn = sqlite3.connect(
            self._db_path, timeout=self._timeout, check_same_thread=False
        )
        conn.row_factory = sqlite3.Row
        return conn

    @contextmanager
    def _session(self) -> Iterator[sqlite3.Connection]:
        """Open a connection, commit on success, roll back on failure."""
        try:
            conn = self._connect()
        except sqlite3.Error as exc:
            raise TokenStoreError(f"Could not open token database: {exc}") from exc
        try:
            yield conn
            conn.commit()
        except sqlite3.Error as exc:
            conn.rollback()
            raise TokenStoreError(str(exc)) from exc
        except Exception:
            conn.rollback()
            raise
        finally:
            conn.close()

    def _ensure_schema(self) -> None:
        with self._session() as conn:
            conn.executescript(
                """
                CREATE TABLE IF NOT EXISTS jobber_tokens (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    user_id TEXT NOT NULL,
                    access_token TEXT NOT NULL,
                    refresh_token TEXT NOT NULL,
                    refresh_token_hash TEXT NOT NULL UNIQUE,
                    expires_at TEXT NOT NULL,
                    created_at TEXT NOT NULL
                );
                CREATE INDEX IF NOT EXISTS ix_jobber_tokens_user
                    ON jobber_tokens (user_id, expires_at);

                CREATE TABLE IF NOT EXISTS jobber_accounts (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    public_id TEXT NOT NULL UNIQUE,
                    user_id TEXT NOT NULL,
                    jobber_id TEXT NOT NULL,
                    name TEXT,
                    signup_name TEXT,
                    industry TEXT,
                    phone TEXT,
                    connection_status TEXT NOT NULL DEFAULT 'disconnected',
                    disconnected_at TEXT,
                    UNIQUE (user_id, jobber_id)
                );

                CREATE TABLE IF NOT EXISTS usage_logs (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    user_id TEXT NOT NULL,
                    jobber_account_id INTEGER
                        REFERENCES jobber_accounts (id) ON DELETE CASCADE,
                    log_type TEXT NOT NULL,
                    route TEXT NOT NULL,
                    metadata TEXT,
                    created_at TEXT NOT NULL
                );
                """
            )

    # ------------------------------------------------------------------
    # Tokens
    # ------------------------------------------------------------------

    def _token_from_row(self, row: sqlite3.Row) -> TokenRecord:
        try:
            access_token = self._cipher.decrypt(row["access_token"])
            refresh_token = self._cipher.decrypt(row["refresh_token"])
        except ValueError as exc:
            raise TokenStoreError(
                f"Stored token for user {row['user_id']} could not be decrypted."
            ) from exc
        return TokenRecord(
            user_id=row["user_id"],
            access_token=access_token,
            refresh_token=refresh_token,
            expires_at=_from_db_time(row["expires_at"]),
            created_at=_from_db_time(row["created_at"]),
        )

    def insert_token(self, record: TokenRecord) -> None:
        """Persist a token pair obtained from the initial authorization."""
        with self._session() as conn:
            conn.execute(
                """
                INSERT INTO jobber_tokens (
                    user_id, access_token, refresh_token, refresh_token_hash,
                    expires_at, created_at
                ) VALUES (?, ?, ?, ?, ?, ?)
                """,
                (
                    record.user_id,
                    self._cipher.encrypt(record.access_token),
                    self._cipher.encrypt(record.refresh_token),
                    self._cipher.fingerprint(record.refresh_token),
                    _to_db_time(record.expires_at),
                    _to_db_time(record.created_at),
                ),
            )

    def find_current(self, user_id: str) -> Optional[TokenRecord]:
        """Return the user's most recent token record, if any."""
        with self._session() as conn:
            row = conn.execute(
                """
                SELECT * FROM jobber_tokens
                WHERE user_id = ?
                ORDER BY expires_at DESC, created_at DESC, id DESC
                LIMIT 1
                """,
                (user_id,),
            ).fetchone()
        if not row:
            return None
        return self._token_from_row(row)

    def conditional_replace(
        self,
        user_id: str,
        *,
        expected_refresh_token: str,
        new_record: TokenRecord,
    ) -> bool:
        """Swap in ``new_record`` only if the stored refresh token is still ``expected_refresh_token``."""
        with self._session() as conn:
            cursor = conn.execute(
                """
                UPDATE jobber_tokens
                SET access_token = ?,
                    refresh_token = ?,
                    refresh_token_hash = ?,
                    expires_at = ?,
                    created_at = ?
                WHERE user_id = ? AND refresh_token_hash = ?
                """,
                (
                    self._cipher.encrypt(new_record.access_token),
                    self._cipher.encrypt(new_record.refresh_token),
                    self._cipher.fingerprint(new_record.refresh_token),
                    _to_db_time(new_record.expires_at),
                    _to_db_time(new_record.created_at),
                    user_id,
                    self._cipher.fingerprint(expected_refresh_token),
                ),
            )
            return cursor.rowcount == 1

    # ------------------------------------------------------------------
    # Accounts
    # ------------------------------------------------------------------

    @staticmethod
    def _account_from_row(row: sqlite3.Row) -> JobberAccount:
        return JobberAccount(
            id=row["id"],
            public_id=row["public_id"],
            user_id=row["user_id"],
            jobber_id=row["jobber_id"],
            name=row["name"],
            signup_name=row["signup_name"],
            industry=row["industry"],
            phone=row["phone"],
            connection_status=ConnectionStatus(row["connection_status"]),
            disconnected_at=_from_db_time(row["disconnected_at"]),
        )

    def set_connection_status(
        self,
        user_id: str,
        status: ConnectionStatus,
        disconnected_at: Optional[datetime] = None,
    ) -> None:
        """Record credential health for every account the user has linked."""
        if status is ConnectionStatus.DISCONNECTED:
            stamp: Optional[str] = _to_db_time(disconnected_at or datetime.now(timezone.utc))
        else:
            stamp = None
        with self._session() as conn:
            conn.execute(
                """
                UPDATE jobber_accounts
                SET connection_status = ?, disconnected_at = ?
                WHERE user_id = ?
                """,
                (status.value, stamp, user_id),
            )

    def upsert_account(
        self,
        *,
        user_id: str,
        jobber_id: str,
        name: Optional[str] = None,
        signup_name: Optional[str] = None,
        industry: Optional[str] = None,
        phone: Optional[str] = None,
    ) -> JobberAccount:
        with self._session() as conn:
            conn.execute(
                """
                INSERT INTO jobber_accounts (
                    public_id, user_id, jobber_id, name, signup_name, industry, phone
                ) VALUES (?, ?, ?, ?, ?, ?, ?)
                ON CONFLICT (user_id, jobber_id) DO UPDATE SET
                    name = excluded.name,
                    signup_name = excluded.signup_name,
                    industry = excluded.industry,
                    phone = excluded.phone
                """,
                (str(uuid.uuid4()), user_id, jobber_id, name, signup_name, industry, phone),
            )
            row = conn.execute(
                "SELECT * FROM jobber_accounts WHERE user_id = ? AND jobber_id = ?",
                (user_id, jobber_id),
            ).fetchone()
        return self._account_from_row(row)

    def get_account_by_public_id(self, public_id: str) -> Optional[JobberAccount]:
        with self._session() as conn:
            row = conn.execute(
                "SELECT * FROM jobber_accounts WHERE public_id = ?",
                (public_id,),
            ).fetchone()
        return self._account_from_row(row) if row else None

    def get_account_for_user(self, user_id: str) -> Optional[JobberAccount]:
        with self._session() as conn:
            row = conn.execute(
                "SELECT * FROM jobber_accounts WHERE user_id = ? ORDER BY id LIMIT 1",
                (user_id,),
            ).fetchone()
        return self._account_from_row(row) if row else None

    def list_account_statuses(self) -> List[AccountStatus]:
        with self._session() as conn:
            rows = conn.execute(
                """
                SELECT name, public_id, connection_status, disconnected_at
                FROM jobber_accounts ORDER BY id
                """
            ).fetchall()
        return [
            AccountStatus(
                name=row["name"],
                public_id=row["public_id"],
                connection_status=ConnectionStatus(row["connection_status"]),
                disconnected_at=_from_db_time(row["disconnected_at"]),
            )
            for row in rows
        ]

    # ------------------------------------------------------------------
    # Usage logs
    # ------------------------------------------------------------------

    def log_action(
        self,
        *,
        user_id: str,
        log_type: UsageLogType,
        route: str,
        jobber_account_id: Optional[int] = None,
        metadata: Optional[Dict[str, Any]] = None,
    ) -> None:
        with self._session() as conn:
            conn.execute(
                """
                INSERT INTO usage_logs (
                    user_id, jobber_account_id, log_type, route, metadata, created_at
                ) VALUES (?, ?, ?, ?, ?, ?)
                """,
                (
                    user_id,
                    jobber_account_id,
                    log_type.value,
                    route,
                    json.dumps(metadata) if metadata is not None else None,
                    _to_db_time(datetime.now(timezone.utc)),
                ),
            )

    def count_usage(
        self,
        *,
        user_id: str,
        log_type: Optional[UsageLogType] = None,
        jobber_account_id: Optional[int] = None,
        route: Optional[str] = None,
        since: Optional[datetime] = None,
    ) -> int:
        """Number of usage log entries for a user, optionally filtered."""
        query = "SELECT COUNT(*) FROM usage_logs WHERE user_id = ?"
        params: List[Any] = [user_id]
        if jobber_account_id is not None:
            query += " AND jobber_account_id = ?"
            params.append(jobber_account_id)
        if route is not None:
            query += " AND route = ?"
            params.append(route)
        if log_type is not None:
            query += " AND log_type = ?"
            params.append(log_type.value)
        if since is not None:
            query += " AND created_at >= ?"
            params.append(_to_db_time(since))
        with self._session() as conn:
            (count,) = conn.execute(query, params).fetchone()
        return int(count)


__all__ = ["SQLiteStore", "TokenStoreError"]
