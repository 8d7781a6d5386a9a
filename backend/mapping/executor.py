"""
Pet Store API — Storage Command Executor

1コマンド = 1回の DynamoDB 呼び出し (Scan/Query はページを辿って全件返す)。
業務ロジックは持たず、DynamoDB のエラー語彙を FailureKind に翻訳するだけ。
リトライは行わない。
"""

from __future__ import annotations

import time
from typing import Any

from boto3.dynamodb.types import TypeDeserializer, TypeSerializer
from botocore.exceptions import (
    BotoCoreError,
    ClientError,
    ConnectionClosedError,
    ConnectTimeoutError,
    EndpointConnectionError,
    ReadTimeoutError,
)

from mapping.commands import (
    CheckOwnership,
    DeleteItem,
    GetItem,
    OwnershipCondition,
    PutItem,
    QueryIndex,
    ScanTable,
    StorageCommand,
    UpdateItem,
)
from mapping.errors import Failure, FailureKind, Outcome, Success
from utils.logger import logger

# ---------------------------------------------------------------------------
# DynamoDB エラーコード → FailureKind
# ---------------------------------------------------------------------------
THROTTLING_CODES = frozenset(
    {
        "ProvisionedThroughputExceededException",
        "ThrottlingException",
        "RequestLimitExceeded",
        "Throttling",
    }
)
UNAVAILABLE_CODES = frozenset(
    {
        "InternalServerError",
        "ServiceUnavailable",
        "ServiceUnavailableException",
        "TransactionConflictException",
        "TransactionInProgressException",
    }
)
CONDITION_FAILED_CODES = frozenset({"ConditionalCheckFailedException"})

_NETWORK_ERRORS = (
    EndpointConnectionError,
    ConnectTimeoutError,
    ReadTimeoutError,
    ConnectionClosedError,
)

_serializer = TypeSerializer()
_deserializer = TypeDeserializer()


def serialize_item(item: dict[str, Any]) -> dict[str, Any]:
    return {k: _serializer.serialize(v) for k, v in item.items()}


def deserialize_item(item: dict[str, Any]) -> dict[str, Any]:
    return {k: _deserializer.deserialize(v) for k, v in item.items()}


def _condition_params(condition: OwnershipCondition) -> dict[str, Any]:
    return {
        "ConditionExpression": "#owner = :principal",
        "ExpressionAttributeNames": {"#owner": condition.attribute},
        "ExpressionAttributeValues": {":principal": {"S": condition.principal}},
        "ReturnValuesOnConditionCheckFailure": "ALL_OLD",
    }


def classify_client_error(error: ClientError) -> Failure:
    """ClientError を FailureKind に翻訳する。

    条件チェック失敗は、返却された旧アイテムの有無で
    ConditionFailed (他人のレコード) と NotFound (レコード無し) を区別する。
    """
    response = error.response
    code = response.get("Error", {}).get("Code", "")
    message = response.get("Error", {}).get("Message", "") or code

    if code in CONDITION_FAILED_CODES:
        if response.get("Item"):
            return Failure(FailureKind.CONDITION_FAILED, "caller does not own this record", code)
        return Failure(FailureKind.NOT_FOUND, "not found", code)

    if code == "TransactionCanceledException":
        for reason in response.get("CancellationReasons", []) or []:
            reason_code = reason.get("Code")
            if reason_code == "ConditionalCheckFailed":
                if reason.get("Item"):
                    return Failure(
                        FailureKind.CONDITION_FAILED, "caller does not own this record", code
                    )
                return Failure(FailureKind.NOT_FOUND, "not found", code)
            if reason_code in ("ThrottlingError", "ProvisionedThroughputExceeded"):
                return Failure(FailureKind.THROTTLED, "storage throttled the request", code)
            if reason_code in ("TransactionConflict",):
                return Failure(FailureKind.UNAVAILABLE, "storage is unavailable", code)
        return Failure(FailureKind.UNKNOWN, message, code)

    if code in THROTTLING_CODES:
        return Failure(FailureKind.THROTTLED, "storage throttled the request", code)
    status = response.get("ResponseMetadata", {}).get("HTTPStatusCode", 0)
    if code in UNAVAILABLE_CODES or status >= 500:
        return Failure(FailureKind.UNAVAILABLE, "storage is unavailable", code)
    return Failure(FailureKind.UNKNOWN, message, code)


class DynamoDBExecutor:
    """DynamoDB に対してストレージコマンドを実行するアダプタ。"""

    def __init__(
        self,
        client: Any,
        table_name: str,
        owner_index_name: str,
        consistent_read: bool = False,
    ) -> None:
        self._client = client
        self._table_name = table_name
        self._owner_index_name = owner_index_name
        self._consistent_read = consistent_read

    # -----------------------------------------------------------------------
    # 公開インターフェース
    # -----------------------------------------------------------------------
    def execute(self, command: StorageCommand, deadline: float | None = None) -> Outcome:
        """コマンドを1回実行し、Success または Failure を返す。例外は送出しない。

        Args:
            command: 実行するストレージコマンド
            deadline: time.monotonic() 基準の期限。超過済みなら Unavailable
        """
        if deadline is not None and time.monotonic() >= deadline:
            logger.warning("Deadline exceeded before storage call", extra={"command": type(command).__name__})
            return Failure(FailureKind.UNAVAILABLE, "deadline exceeded before storage call")

        try:
            return self._dispatch(command)
        except ClientError as e:
            failure = classify_client_error(e)
        except _NETWORK_ERRORS as e:
            failure = Failure(FailureKind.UNAVAILABLE, "storage is unavailable", type(e).__name__)
        except BotoCoreError as e:
            failure = Failure(FailureKind.UNKNOWN, str(e), type(e).__name__)

        if failure.kind not in (FailureKind.CONDITION_FAILED, FailureKind.NOT_FOUND):
            logger.warning(
                "Storage call failed",
                extra={
                    "command": type(command).__name__,
                    "failure_kind": failure.kind.value,
                    "native_code": failure.native_code,
                },
            )
        return failure

    # -----------------------------------------------------------------------
    # コマンド別
    # -----------------------------------------------------------------------
    def _dispatch(self, command: StorageCommand) -> Outcome:
        if isinstance(command, PutItem):
            return self._put(command)
        if isinstance(command, GetItem):
            return self._get(command)
        if isinstance(command, UpdateItem):
            return self._update(command)
        if isinstance(command, DeleteItem):
            return self._delete(command)
        if isinstance(command, ScanTable):
            return self._scan()
        if isinstance(command, QueryIndex):
            return self._query(command)
        if isinstance(command, CheckOwnership):
            return self._check(command)
        raise TypeError(f"unsupported storage command: {type(command).__name__}")

    def _key(self, key: str) -> dict[str, Any]:
        return {"id": {"S": key}}

    def _put(self, command: PutItem) -> Outcome:
        self._client.put_item(
            TableName=self._table_name,
            Item=serialize_item(command.item),
            ConditionExpression="attribute_not_exists(#id)",
            ExpressionAttributeNames={"#id": "id"},
        )
        return Success(key=command.key)

    def _get(self, command: GetItem) -> Outcome:
        response = self._client.get_item(
            TableName=self._table_name,
            Key=self._key(command.key),
            ConsistentRead=self._consistent_read,
        )
        item = response.get("Item")
        if not item:
            return Failure(FailureKind.NOT_FOUND, "not found")
        return Success(key=command.key, item=deserialize_item(item))

    def _update(self, command: UpdateItem) -> Outcome:
        params = _condition_params(command.condition)
        assignments = []
        for i, (name, value) in enumerate(command.fields.items()):
            params["ExpressionAttributeNames"][f"#f{i}"] = name
            params["ExpressionAttributeValues"][f":v{i}"] = _serializer.serialize(value)
            assignments.append(f"#f{i} = :v{i}")
        self._client.update_item(
            TableName=self._table_name,
            Key=self._key(command.key),
            UpdateExpression="SET " + ", ".join(assignments),
            ReturnValues="NONE",
            **params,
        )
        return Success(key=command.key)

    def _delete(self, command: DeleteItem) -> Outcome:
        self._client.delete_item(
            TableName=self._table_name,
            Key=self._key(command.key),
            **_condition_params(command.condition),
        )
        return Success(key=command.key)

    def _scan(self) -> Outcome:
        paginator = self._client.get_paginator("scan")
        items: list[dict[str, Any]] = []
        for page in paginator.paginate(
            TableName=self._table_name, ConsistentRead=self._consistent_read
        ):
            items.extend(deserialize_item(item) for item in page.get("Items", []))
        return Success(items=items)

    def _query(self, command: QueryIndex) -> Outcome:
        # GSI は強整合読み込み不可
        paginator = self._client.get_paginator("query")
        items: list[dict[str, Any]] = []
        for page in paginator.paginate(
            TableName=self._table_name,
            IndexName=self._owner_index_name,
            KeyConditionExpression="#owner = :principal",
            ExpressionAttributeNames={"#owner": command.attribute},
            ExpressionAttributeValues={":principal": {"S": command.principal}},
        ):
            items.extend(deserialize_item(item) for item in page.get("Items", []))
        return Success(items=items)

    def _check(self, command: CheckOwnership) -> Outcome:
        check = {"TableName": self._table_name, "Key": self._key(command.key)}
        check.update(_condition_params(command.condition))
        self._client.transact_write_items(TransactItems=[{"ConditionCheck": check}])
        return Success(key=command.key)
