"""
Pet Store API — Request Renderer

(Operation Descriptor, パスパラメータ, ボディ, 呼び出し元プリンシパル) → ストレージコマンド
の純粋関数。入力不備は MalformedRequest を送出する。
"""

from __future__ import annotations

import json
import math
import uuid
from collections.abc import Callable, Mapping
from datetime import datetime, timezone
from decimal import Decimal, DecimalException, InvalidOperation
from typing import Any

from boto3.dynamodb.types import DYNAMODB_CONTEXT

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
from mapping.descriptors import Action, FieldSpec, FieldType, OperationDescriptor, ScanScope
from mapping.errors import MalformedRequest


def _utc_now() -> str:
    return datetime.now(timezone.utc).strftime("%Y-%m-%dT%H:%M:%S.%f")[:-3] + "Z"


def _new_id() -> str:
    return str(uuid.uuid4())


# ---------------------------------------------------------------------------
# ボディの解析と型変換
# ---------------------------------------------------------------------------
def parse_body(raw: str | bytes | None) -> Any:
    """生のリクエストボディを JSON としてパースする。空ボディは None。"""
    if raw is None:
        return None
    if isinstance(raw, bytes):
        try:
            raw = raw.decode("utf-8")
        except UnicodeDecodeError:
            raise MalformedRequest("request body is not valid UTF-8") from None
    if not raw.strip():
        return None
    try:
        return json.loads(raw, parse_float=Decimal)
    except json.JSONDecodeError as e:
        raise MalformedRequest(f"request body is not valid JSON: {e.msg}") from None
    except ValueError:
        # 桁数上限を超える整数リテラルなど
        raise MalformedRequest("request body is not valid JSON") from None


def coerce_field(spec: FieldSpec, value: Any) -> Any:
    """宣言された型に変換する。数値はテキストで届いても Decimal にする。

    数値は DynamoDB の Number 型 (有効桁 38、指数 -130..125) に収まる必要がある。
    """
    if spec.type is FieldType.STRING:
        if not isinstance(value, str):
            raise MalformedRequest(f"field '{spec.name}' must be a string")
        return value

    # bool は int のサブクラスなので先に弾く
    if isinstance(value, bool):
        raise MalformedRequest(f"field '{spec.name}' must be a number")
    if isinstance(value, int):
        number = Decimal(value)
    elif isinstance(value, float):
        if not math.isfinite(value):
            raise MalformedRequest(f"field '{spec.name}' must be a finite number")
        number = Decimal(str(value))
    elif isinstance(value, Decimal):
        number = value
    elif isinstance(value, str):
        text = value.strip()
        # "1_000" のような Python 固有の数値表記は受け付けない
        if "_" in text:
            raise MalformedRequest(f"field '{spec.name}' must be a number")
        try:
            number = Decimal(text)
        except InvalidOperation:
            raise MalformedRequest(f"field '{spec.name}' must be a number") from None
    else:
        raise MalformedRequest(f"field '{spec.name}' must be a number")

    if not number.is_finite():
        raise MalformedRequest(f"field '{spec.name}' must be a finite number")
    try:
        return DYNAMODB_CONTEXT.create_decimal(number)
    except DecimalException:
        raise MalformedRequest(f"field '{spec.name}' is out of the storable number range") from None


def render_fields(descriptor: OperationDescriptor, body: Any) -> dict[str, Any]:
    """ボディから required_fields を順に取り出して型変換する。

    スキーマは閉じている: 未宣言のフィールドは拒否する。
    """
    if body is None:
        raise MalformedRequest("request body is required")
    if not isinstance(body, Mapping):
        raise MalformedRequest("request body must be a JSON object")

    declared = set(descriptor.field_names)
    extra = sorted(k for k in body if k not in declared)
    if extra:
        raise MalformedRequest(f"unexpected fields: {', '.join(extra)}")

    fields: dict[str, Any] = {}
    for spec in descriptor.required_fields:
        if spec.name not in body or body[spec.name] is None:
            raise MalformedRequest(f"missing required field '{spec.name}'")
        fields[spec.name] = coerce_field(spec, body[spec.name])
    return fields


def _path_id(path_params: Mapping[str, str]) -> str:
    record_id = path_params.get("id")
    if not record_id:
        raise MalformedRequest("missing path parameter 'id'")
    return record_id


# ---------------------------------------------------------------------------
# アクション別のレンダリング
# ---------------------------------------------------------------------------
def _render_create(
    descriptor: OperationDescriptor,
    path_params: Mapping[str, str],
    body: Any,
    principal: str,
) -> StorageCommand:
    fields = render_fields(descriptor, body)
    item: dict[str, Any] = {"id": _new_id(), "ownerId": principal}
    item.update(fields)
    item["createdAt"] = _utc_now()
    return PutItem(item=item)


def _render_read(
    descriptor: OperationDescriptor,
    path_params: Mapping[str, str],
    body: Any,
    principal: str,
) -> StorageCommand:
    return GetItem(key=_path_id(path_params))


def _render_scan(
    descriptor: OperationDescriptor,
    path_params: Mapping[str, str],
    body: Any,
    principal: str,
) -> StorageCommand:
    if descriptor.scan_scope is ScanScope.BY_OWNER:
        return QueryIndex(principal=principal)
    return ScanTable()


def _render_update(
    descriptor: OperationDescriptor,
    path_params: Mapping[str, str],
    body: Any,
    principal: str,
) -> StorageCommand:
    key = _path_id(path_params)
    return UpdateItem(
        key=key,
        fields=render_fields(descriptor, body),
        condition=OwnershipCondition(principal=principal),
    )


def _render_delete(
    descriptor: OperationDescriptor,
    path_params: Mapping[str, str],
    body: Any,
    principal: str,
) -> StorageCommand:
    return DeleteItem(key=_path_id(path_params), condition=OwnershipCondition(principal=principal))


_Renderer = Callable[[OperationDescriptor, Mapping[str, str], Any, str], StorageCommand]

_RENDERERS: dict[Action, _Renderer] = {
    Action.CREATE: _render_create,
    Action.READ: _render_read,
    Action.LIST: _render_scan,
    Action.QUERY: _render_scan,
    Action.UPDATE: _render_update,
    Action.DELETE: _render_delete,
}


def render_request(
    descriptor: OperationDescriptor,
    path_params: Mapping[str, str],
    body: Any,
    principal: str,
) -> StorageCommand:
    """HTTP リクエストをストレージコマンドに変換する。

    Args:
        descriptor: ルートテーブルで解決した Operation Descriptor
        path_params: パスパラメータ ({"id": ...})
        body: パース済みボディ (Create/Update 以外では無視)
        principal: 認証済み呼び出し元の ID

    Returns:
        ストレージコマンド

    Raises:
        MalformedRequest: 入力が不正
    """
    return _RENDERERS[descriptor.action](descriptor, path_params, body, principal)


def render_ownership_probe(
    descriptor: OperationDescriptor,
    path_params: Mapping[str, str],
    principal: str,
) -> CheckOwnership | None:
    """所有者ガード付きアクション用の所有者チェックコマンドを返す。

    対象外のアクション、または id が無い場合は None。
    """
    if not descriptor.requires_ownership or not path_params.get("id"):
        return None
    return CheckOwnership(
        key=path_params["id"],
        condition=OwnershipCondition(principal=principal),
    )
