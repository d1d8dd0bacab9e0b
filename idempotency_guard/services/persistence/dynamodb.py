"""
DynamoDB Idempotency Store
Uses UpdateItem condition expressions as the conditional-write primitive
"""

from datetime import datetime
from typing import Any, Optional
import json

import structlog
from botocore.exceptions import BotoCoreError, ClientError

from idempotency_guard.services.errors import (
    IdempotencyRecordNotFoundError,
    PersistenceError,
    UnableToRemoveIdempotencyKeyError,
)
from idempotency_guard.services.persistence.base import (
    IdempotencyRecord,
    IdempotencyStatus,
    IdempotencyStore,
)

logger = structlog.get_logger(__name__)

CONDITIONAL_CHECK_FAILED = "ConditionalCheckFailedException"
RESOURCE_NOT_FOUND = "ResourceNotFoundException"


def _error_code(exc: ClientError) -> str:
    return exc.response.get("Error", {}).get("Code", "")


class DynamoDBIdempotencyStore(IdempotencyStore):
    """
    Table layout: PK (S) = use case, SK (S) = key.

    `expiration` (N, epoch ms) drives the conditional writes. `ttl` (N, epoch
    seconds) mirrors it for DynamoDB's native TTL sweep, which is never relied
    upon by the conditions.
    """

    def __init__(self, client, table_name: str, ttl=None, clock=None):
        """
        Args:
            client: boto3 DynamoDB client (boto3.client("dynamodb"))
            table_name: Name of the idempotency table
        """
        super().__init__(ttl=ttl, clock=clock)
        self.client = client
        self.table_name = table_name
        self.logger = logger.bind(store="dynamodb", table=table_name)

    def _item_key(self, use_case: str, key: str) -> dict:
        return {"PK": {"S": use_case}, "SK": {"S": key}}

    def conditional_insert(self, use_case: str, key: str, status: IdempotencyStatus) -> bool:
        now = self.now()
        expiration = self.in_progress_expiration(now)

        try:
            self.client.update_item(
                TableName=self.table_name,
                Key=self._item_key(use_case, key),
                UpdateExpression=(
                    "SET #status = :status, #expiration = :expiration, "
                    "#ttl = :ttl, #createdAt = :createdAt REMOVE #resultData"
                ),
                ConditionExpression=(
                    "(attribute_not_exists(PK) AND attribute_not_exists(SK)) "
                    "OR #expiration <= :now"
                ),
                ExpressionAttributeNames={
                    "#status": "status",
                    "#expiration": "expiration",
                    "#ttl": "ttl",
                    "#createdAt": "createdAt",
                    "#resultData": "resultData",
                },
                ExpressionAttributeValues={
                    ":now": {"N": str(now)},
                    ":status": {"S": status.value},
                    ":expiration": {"N": str(expiration)},
                    ":ttl": {"N": str(expiration // 1000)},
                    ":createdAt": {"S": self.created_at(now).isoformat()},
                },
            )
        except ClientError as e:
            if _error_code(e) == CONDITIONAL_CHECK_FAILED:
                self.logger.info("idempotency_insert_rejected", use_case=use_case, key=key)
                return False
            self.logger.error("idempotency_insert_failed", use_case=use_case, key=key, error=str(e))
            raise PersistenceError(use_case, key, e) from e
        except BotoCoreError as e:
            self.logger.error("idempotency_insert_failed", use_case=use_case, key=key, error=str(e))
            raise PersistenceError(use_case, key, e) from e

        self.logger.info("idempotency_record_inserted", use_case=use_case, key=key)
        return True

    def read(self, use_case: str, key: str) -> Optional[IdempotencyRecord]:
        try:
            response = self.client.get_item(
                TableName=self.table_name,
                Key=self._item_key(use_case, key),
                ConsistentRead=True,
            )
        except (ClientError, BotoCoreError) as e:
            self.logger.error("idempotency_read_failed", use_case=use_case, key=key, error=str(e))
            raise PersistenceError(use_case, key, e) from e

        item = response.get("Item")
        if item is None:
            return None

        result_data = None
        if "resultData" in item:
            result_data = json.loads(item["resultData"]["S"])

        created_at = None
        if "createdAt" in item:
            created_at = datetime.fromisoformat(item["createdAt"]["S"])

        return IdempotencyRecord(
            use_case=use_case,
            key=key,
            status=IdempotencyStatus(item["status"]["S"]),
            expiration=int(item["expiration"]["N"]),
            created_at=created_at,
            result_data=result_data,
        )

    def conditional_update(self, use_case: str, key: str, status: IdempotencyStatus, result: Any) -> None:
        expiration = self.completed_expiration(self.now())

        try:
            self.client.update_item(
                TableName=self.table_name,
                Key=self._item_key(use_case, key),
                UpdateExpression=(
                    "SET #status = :status, #resultData = :resultData, "
                    "#expiration = :expiration, #ttl = :ttl"
                ),
                ConditionExpression="attribute_exists(PK) AND attribute_exists(SK)",
                ExpressionAttributeNames={
                    "#status": "status",
                    "#resultData": "resultData",
                    "#expiration": "expiration",
                    "#ttl": "ttl",
                },
                ExpressionAttributeValues={
                    ":status": {"S": status.value},
                    ":resultData": {"S": json.dumps(result, default=str)},
                    ":expiration": {"N": str(expiration)},
                    ":ttl": {"N": str(expiration // 1000)},
                },
            )
        except ClientError as e:
            if _error_code(e) == CONDITIONAL_CHECK_FAILED:
                raise IdempotencyRecordNotFoundError(use_case, key) from e
            self.logger.error("idempotency_update_failed", use_case=use_case, key=key, error=str(e))
            raise PersistenceError(use_case, key, e) from e
        except BotoCoreError as e:
            self.logger.error("idempotency_update_failed", use_case=use_case, key=key, error=str(e))
            raise PersistenceError(use_case, key, e) from e

        self.logger.info("idempotency_record_updated", use_case=use_case, key=key, status=status.value)

    def delete(self, use_case: str, key: str) -> None:
        try:
            self.client.delete_item(TableName=self.table_name, Key=self._item_key(use_case, key))
        except ClientError as e:
            # DeleteItem on a missing item succeeds; this code means the table is gone
            if _error_code(e) == RESOURCE_NOT_FOUND:
                self.logger.error("idempotency_delete_impossible", use_case=use_case, key=key, error=str(e))
                raise UnableToRemoveIdempotencyKeyError(use_case, key, reason=str(e)) from e
            self.logger.error("idempotency_delete_failed", use_case=use_case, key=key, error=str(e))
            raise PersistenceError(use_case, key, e) from e
        except BotoCoreError as e:
            self.logger.error("idempotency_delete_failed", use_case=use_case, key=key, error=str(e))
            raise PersistenceError(use_case, key, e) from e

        self.logger.info("idempotency_record_deleted", use_case=use_case, key=key)

    def purge_expired(self) -> int:
        # Native TTL on the `ttl` attribute removes expired items
        return 0
