"""
Pet Store API — Response Renderer

(Operation Descriptor, 実行結果) → HTTP ステータス + ボディ の純粋関数。
ステータスの選択はタグ付きの結果のみで決まり、エラーメッセージの文字列は見ない。
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from mapping.descriptors import Action, OperationDescriptor
from mapping.errors import STORAGE_SIDE_FAILURES, Failure, FailureKind, Outcome, Success
from utils.models import ErrorBody, IdBody, ItemBody, ItemsBody, PetRecord

JSON_HEADERS = {"Content-Type": "application/json"}

_ID_ACTIONS = frozenset({Action.CREATE, Action.UPDATE, Action.DELETE})
_COLLECTION_ACTIONS = frozenset({Action.LIST, Action.QUERY})
_OWNERSHIP_ACTIONS = frozenset({Action.UPDATE, Action.DELETE})
_KEYED_ACTIONS = frozenset({Action.READ, Action.UPDATE, Action.DELETE})


@dataclass(frozen=True)
class HttpResponse:
    status_code: int
    body: dict[str, Any]
    headers: dict[str, str] = field(default_factory=lambda: dict(JSON_HEADERS))
    failure_kind: FailureKind | None = None


def failure_status(action: Action, kind: FailureKind) -> int:
    """失敗タグ × アクションから HTTP ステータスを選ぶ。

    表に無い組み合わせはストレージ側の想定外の結果として 502。
    """
    if kind is FailureKind.MALFORMED_REQUEST:
        return 400
    if kind is FailureKind.UNAUTHORIZED:
        return 401
    if kind is FailureKind.CONDITION_FAILED and action in _OWNERSHIP_ACTIONS:
        return 403
    if kind is FailureKind.NOT_FOUND and action in _KEYED_ACTIONS:
        return 404
    return 502


def _failure_message(action: Action, failure: Failure, status: int) -> str:
    if status == 404:
        return "not found"
    if status == 401:
        return "unauthorized"
    if status == 502 and failure.kind not in STORAGE_SIDE_FAILURES:
        return f"unexpected storage outcome {failure.kind.value} for {action.value}"
    return failure.message


def _render_success(descriptor: OperationDescriptor, success: Success) -> dict[str, Any]:
    action = descriptor.action
    if action in _ID_ACTIONS:
        return IdBody(id=success.key or "").model_dump()
    if action is Action.READ:
        record = PetRecord.from_item(success.item or {})
        return ItemBody(item=record.to_response()).model_dump()
    if action in _COLLECTION_ACTIONS:
        items = [PetRecord.from_item(item).to_response() for item in success.items or []]
        return ItemsBody(items=items).model_dump()
    raise ValueError(f"unsupported action: {action}")


def render_error(status_code: int, message: str, request_id: str, kind: FailureKind | None = None) -> HttpResponse:
    """エラーボディ {"error", "requestId"} を組み立てる。"""
    body = ErrorBody(error=message, requestId=request_id).model_dump(by_alias=True)
    return HttpResponse(status_code=status_code, body=body, failure_kind=kind)


def render_response(
    descriptor: OperationDescriptor,
    outcome: Outcome,
    request_id: str,
) -> HttpResponse:
    """実行結果を HTTP レスポンスに変換する。

    Args:
        descriptor: 対象の Operation Descriptor
        outcome: Executor の結果、または engine が変換した入力エラー
        request_id: エラーボディに載せるリクエスト ID

    Returns:
        HttpResponse
    """
    if isinstance(outcome, Success):
        return HttpResponse(status_code=200, body=_render_success(descriptor, outcome))

    status = failure_status(descriptor.action, outcome.kind)
    message = _failure_message(descriptor.action, outcome, status)
    return render_error(status, message, request_id, outcome.kind)
