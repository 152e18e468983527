"""
DynamoDB-backed token store, one item per user.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Dict, Optional

import boto3
from botocore.config import Config
from botocore.exceptions import BotoCoreError, ClientError

from app.clients.sqlite_store import TokenStoreError
from app.core.config import AWSSettings
from app.models.oauth import TokenRecord, ensure_utc

if TYPE_CHECKING:
    from app.services.token_cipher import TokenCipherService

_CONDITION_FAILED = "ConditionalCheckFailedException"


class DynamoDBTokenStore:
    """Token persistence using conditional writes for refresh compare-and-set."""

    SORT_KEY = "oauth#jobber"

    def __init__(
        self,
        settings: AWSSettings,
        *,
        cipher: "TokenCipherService",
        timeout_seconds: float = 10.0,
        table: Any = None,
    ) -> None:
        self._cipher = cipher
        if table is None:
            if not settings.dynamodb_table_name:
                raise ValueError("DYNAMODB_TABLE_NAME is required for the dynamodb token store.")
            config = Config(
                connect_timeout=timeout_seconds,
                read_timeout=timeout_seconds,
                retries={"max_attempts": 2},
            )
            resource = boto3.resource(
                "dynamodb", region_name=settings.region_name, config=config
            )
            table = resource.Table(settings.dynamodb_table_name)
        self._table = table

    @staticmethod
    def _key(user_id: str) -> Dict[str, str]:
        return {"pk": f"user#{user_id}", "sk": DynamoDBTokenStore.SORT_KEY}

    def _item_from_record(self, record: TokenRecord) -> Dict[str, Any]:
        return {
            **self._key(record.user_id),
            "user_id": record.user_id,
            "access_token_encrypted": self._cipher.encrypt(record.access_token),
            "refresh_token_encrypted": self._cipher.encrypt(record.refresh_token),
            "refresh_token_hash": self._cipher.fingerprint(record.refresh_token),
            "expires_at": ensure_utc(record.expires_at).isoformat(),
            "created_at": ensure_utc(record.created_at).isoformat(),
        }

    def insert_token(self, record: TokenRecord) -> None:
        try:
            self._table.put_item(Item=self._item_from_record(record))
        except (BotoCoreError, ClientError) as exc:
            raise TokenStoreError(f"Failed to store token for user {record.user_id}.") from exc

    def find_current(self, user_id: str) -> Optional[TokenRecord]:
        try:
            response = self._table.get_item(Key=self._key(user_id), ConsistentRead=True)
        except (BotoCoreError, ClientError) as exc:
            raise TokenStoreError(f"Failed to read token for user {user_id}.") from exc

        item = response.get("Item")
        if not item:
            return None
        try:
            return TokenRecord(
                user_id=item["user_id"],
                access_token=self._cipher.decrypt(item["access_token_encrypted"]),
                refresh_token=self._cipher.decrypt(item["refresh_token_encrypted"]),
                expires_at=item["expires_at"],
                created_at=item["created_at"],
            )
        except (KeyError, ValueError) as exc:
            raise TokenStoreError(f"Stored token for user {user_id} is unreadable.") from exc

    def conditional_replace(
        self,
        user_id: str,
        *,
        expected_refresh_token: str,
        new_record: TokenRecord,
    ) -> bool:
        item = self._item_from_record(new_record)
        try:
            self._table.update_item(
                Key=self._key(user_id),
                UpdateExpression=(
                    "SET access_token_encrypted = :access, "
                    "refresh_token_encrypted = :refresh, "
                    "refresh_token_hash = :hash, "
                    "expires_at = :expires, "
                    "created_at = :created"
                ),
                ConditionExpression="refresh_token_hash = :expected",
                ExpressionAttributeValues={
                    ":access": item["access_token_encrypted"],
                    ":refresh": item["refresh_token_encrypted"],
                    ":hash": item["refresh_token_hash"],
                    ":expires": item["expires_at"],
                    ":created": item["created_at"],
                    ":expected": self._cipher.fingerprint(expected_refresh_token),
                },
            )
        except ClientError as exc:
            if exc.response.get("Error", {}).get("Code") == _CONDITION_FAILED:
                return False
            raise TokenStoreError(f"Failed to replace token for user {user_id}.") from exc
        except BotoCoreError as exc:
            raise TokenStoreError(f"Failed to replace token for user {user_id}.") from exc
        return True


__all__ = ["DynamoDBTokenStore"]
