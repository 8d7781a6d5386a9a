"""共通テストフィクスチャ"""

from __future__ import annotations

import copy
import re
from dataclasses import dataclass, field
from typing import Any, Callable, Generator, Iterator

import pytest
from botocore.exceptions import ClientError
from fastapi.testclient import TestClient

from api.app import app
from api.dependencies import get_executor, get_principal
from mapping.executor import DynamoDBExecutor
from utils.config import get_settings

TABLE_NAME = "Pets"
OWNER_INDEX_NAME = "ownerId-index"


# ---------------------------------------------------------------------------
# 設定キャッシュ
# ---------------------------------------------------------------------------
@pytest.fixture(autouse=True)
def _clear_settings_cache() -> Generator[None, None, None]:
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


# ---------------------------------------------------------------------------
# Lambda Context
# ---------------------------------------------------------------------------
@dataclass
class FakeLambdaContext:
    """テスト用の疑似 Lambda Context オブジェクト。"""

    function_name: str = "test-function"
    memory_limit_in_mb: int = 128
    invoked_function_arn: str = "arn:aws:lambda:us-east-1:123456789012:function:test-function"
    aws_request_id: str = "test-request-id-00000000"
    log_group_name: str = "/aws/lambda/test-function"
    log_stream_name: str = "2026/10/19/[$LATEST]test"
    identity: object = field(default=None)
    client_context: object = field(default=None)
    remaining_time_in_millis: int = 30000

    def get_remaining_time_in_millis(self) -> int:
        return self.remaining_time_in_millis


@pytest.fixture
def lambda_context() -> FakeLambdaContext:
    """テスト用の Lambda Context を返すフィクスチャ。"""
    return FakeLambdaContext()


# ---------------------------------------------------------------------------
# 疑似 DynamoDB クライアント
# ---------------------------------------------------------------------------
def client_error(
    code: str,
    operation: str,
    message: str = "",
    status: int = 400,
    **extra: Any,
) -> ClientError:
    """botocore と同じ形のエラーレスポンスで ClientError を作る。"""
    response: dict[str, Any] = {
        "Error": {"Code": code, "Message": message},
        "ResponseMetadata": {"HTTPStatusCode": status},
    }
    response.update(extra)
    return ClientError(response, operation)  # type: ignore[arg-type]


class FakePaginator:
    def __init__(self, client: FakeDynamoDBClient, operation: str) -> None:
        self._client = client
        self._operation = operation

    def paginate(self, **kwargs: Any) -> Iterator[dict[str, Any]]:
        op_name = "Scan" if self._operation == "scan" else "Query"
        self._client._record(op_name, kwargs)
        items = list(self._client._table(kwargs["TableName"]).values())
        if self._operation == "query":
            match = re.fullmatch(r"(#\w+) = (:\w+)", kwargs["KeyConditionExpression"])
            assert match, kwargs["KeyConditionExpression"]
            attr = kwargs["ExpressionAttributeNames"][match.group(1)]
            value = kwargs["ExpressionAttributeValues"][match.group(2)]
            items = [item for item in items if item.get(attr) == value]

        size = self._client.page_size
        pages = [items[i : i + size] for i in range(0, len(items), size)] or [[]]
        for page in pages:
            yield {"Items": copy.deepcopy(page), "Count": len(page)}


class FakeDynamoDBClient:
    """テスト用の疑似 DynamoDB 低レベルクライアント。

    Executor が生成する条件式・更新式だけを解釈する。
    failures に操作名 (PutItem など) → 例外 を登録すると、その操作で送出する。
    """

    def __init__(self, page_size: int = 2) -> None:
        self.tables: dict[str, dict[str, dict[str, Any]]] = {}
        self.calls: list[tuple[str, dict[str, Any]]] = []
        self.failures: dict[str, Exception] = {}
        self.page_size = page_size

    # 内部ヘルパー -----------------------------------------------------------
    def _table(self, name: str) -> dict[str, dict[str, Any]]:
        return self.tables.setdefault(name, {})

    def _record(self, operation: str, kwargs: dict[str, Any]) -> None:
        self.calls.append((operation, copy.deepcopy(kwargs)))
        if operation in self.failures:
            raise self.failures[operation]

    def _evaluate(self, params: dict[str, Any], current: dict[str, Any] | None) -> bool:
        expr = params.get("ConditionExpression")
        if not expr:
            return True
        names = params.get("ExpressionAttributeNames", {})
        values = params.get("ExpressionAttributeValues", {})
        match = re.fullmatch(r"attribute_not_exists\((#\w+)\)", expr)
        if match:
            return current is None or names[match.group(1)] not in current
        match = re.fullmatch(r"(#\w+) = (:\w+)", expr)
        if match:
            return current is not None and current.get(names[match.group(1)]) == values[match.group(2)]
        raise AssertionError(f"unsupported condition: {expr}")

    def _old_item(self, params: dict[str, Any], current: dict[str, Any] | None) -> dict[str, Any]:
        if current is not None and params.get("ReturnValuesOnConditionCheckFailure") == "ALL_OLD":
            return {"Item": copy.deepcopy(current)}
        return {}

    # DynamoDB API ----------------------------------------------------------
    def put_item(self, **kwargs: Any) -> dict[str, Any]:
        self._record("PutItem", kwargs)
        table = self._table(kwargs["TableName"])
        key = kwargs["Item"]["id"]["S"]
        current = table.get(key)
        if not self._evaluate(kwargs, current):
            raise client_error(
                "ConditionalCheckFailedException",
                "PutItem",
                "The conditional request failed",
                **self._old_item(kwargs, current),
            )
        table[key] = copy.deepcopy(kwargs["Item"])
        return {}

    def get_item(self, **kwargs: Any) -> dict[str, Any]:
        self._record("GetItem", kwargs)
        item = self._table(kwargs["TableName"]).get(kwargs["Key"]["id"]["S"])
        return {"Item": copy.deepcopy(item)} if item is not None else {}

    def update_item(self, **kwargs: Any) -> dict[str, Any]:
        self._record("UpdateItem", kwargs)
        table = self._table(kwargs["TableName"])
        key = kwargs["Key"]["id"]["S"]
        current = table.get(key)
        if not self._evaluate(kwargs, current):
            raise client_error(
                "ConditionalCheckFailedException",
                "UpdateItem",
                "The conditional request failed",
                **self._old_item(kwargs, current),
            )
        updated = copy.deepcopy(current) if current is not None else {"id": {"S": key}}
        expression = kwargs["UpdateExpression"]
        assert expression.startswith("SET "), expression
        for assignment in expression[len("SET ") :].split(", "):
            name_ref, value_ref = assignment.split(" = ")
            name = kwargs["ExpressionAttributeNames"][name_ref]
            updated[name] = kwargs["ExpressionAttributeValues"][value_ref]
        table[key] = updated
        return {}

    def delete_item(self, **kwargs: Any) -> dict[str, Any]:
        self._record("DeleteItem", kwargs)
        table = self._table(kwargs["TableName"])
        key = kwargs["Key"]["id"]["S"]
        current = table.get(key)
        if not self._evaluate(kwargs, current):
            raise client_error(
                "ConditionalCheckFailedException",
                "DeleteItem",
                "The conditional request failed",
                **self._old_item(kwargs, current),
            )
        table.pop(key, None)
        return {}

    def transact_write_items(self, **kwargs: Any) -> dict[str, Any]:
        self._record("TransactWriteItems", kwargs)
        reasons: list[dict[str, Any]] = []
        failed = False
        for entry in kwargs["TransactItems"]:
            check = entry["ConditionCheck"]
            current = self._table(check["TableName"]).get(check["Key"]["id"]["S"])
            if self._evaluate(check, current):
                reasons.append({"Code": "None"})
            else:
                failed = True
                reason = {"Code": "ConditionalCheckFailed", "Message": "The conditional request failed"}
                reason.update(self._old_item(check, current))
                reasons.append(reason)
        if failed:
            raise client_error(
                "TransactionCanceledException",
                "TransactWriteItems",
                "Transaction cancelled",
                CancellationReasons=reasons,
            )
        return {}

    def get_paginator(self, operation: str) -> FakePaginator:
        assert operation in ("scan", "query"), operation
        return FakePaginator(self, operation)

    # テスト補助 --------------------------------------------------------------
    def stored(self, key: str, table_name: str = TABLE_NAME) -> dict[str, Any] | None:
        return self._table(table_name).get(key)

    def operations(self) -> list[str]:
        return [name for name, _ in self.calls]


@pytest.fixture
def fake_ddb() -> FakeDynamoDBClient:
    """テスト用の疑似 DynamoDB クライアントを返す。"""
    return FakeDynamoDBClient()


@pytest.fixture
def executor(fake_ddb: FakeDynamoDBClient) -> DynamoDBExecutor:
    return DynamoDBExecutor(fake_ddb, TABLE_NAME, OWNER_INDEX_NAME)


@pytest.fixture
def make_client_error() -> Callable[..., ClientError]:
    return client_error


# ---------------------------------------------------------------------------
# 呼び出し元
# ---------------------------------------------------------------------------
@dataclass
class Caller:
    """テスト中に切り替え可能な呼び出し元プリンシパル。"""

    principal: str | None = "P1"


@pytest.fixture
def caller() -> Caller:
    return Caller()


@pytest.fixture
def api_client(
    executor: DynamoDBExecutor,
    caller: Caller,
) -> Generator[TestClient, None, None]:
    """FastAPI TestClient。Executor と認証をオーバーライド。"""

    def _override_executor() -> DynamoDBExecutor:
        return executor

    def _override_principal() -> str | None:
        return caller.principal

    app.dependency_overrides[get_executor] = _override_executor
    app.dependency_overrides[get_principal] = _override_principal
    yield TestClient(app)
    app.dependency_overrides.clear()


# ---------------------------------------------------------------------------
# API Gateway イベント
# ---------------------------------------------------------------------------
@pytest.fixture
def api_event() -> Callable[..., dict[str, Any]]:
    """API Gateway (REST, プロキシ統合) のイベントを組み立てる。"""

    def _build(
        method: str,
        path: str,
        principal: str | None = "P1",
        body: str | None = None,
        request_id: str = "apigw-request-id",
    ) -> dict[str, Any]:
        request_context: dict[str, Any] = {"requestId": request_id, "identity": {}}
        if principal is not None:
            request_context["authorizer"] = {"claims": {"sub": principal}}
        return {
            "resource": path,
            "path": path,
            "httpMethod": method,
            "headers": {"Content-Type": "application/json"},
            "pathParameters": None,
            "requestContext": request_context,
            "body": body,
            "isBase64Encoded": False,
        }

    return _build
