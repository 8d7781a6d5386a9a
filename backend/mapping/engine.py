"""
Pet Store API — ディスパッチ

Descriptor → Request Renderer → Executor → Response Renderer の制御フロー。
リクエスト間で共有する可変状態は持たない。
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Protocol

from mapping.commands import StorageCommand
from mapping.descriptors import OperationDescriptor
from mapping.errors import Failure, MalformedRequest, Outcome, Unauthorized
from mapping.request_renderer import parse_body, render_ownership_probe, render_request
from mapping.response_renderer import HttpResponse, render_response
from utils.logger import log_operation_outcome


class StorageExecutor(Protocol):
    def execute(self, command: StorageCommand, deadline: float | None = None) -> Outcome: ...


@dataclass(frozen=True)
class OperationRequest:
    """トランスポートから切り離したリクエスト。"""

    descriptor: OperationDescriptor
    principal: str | None
    request_id: str
    path_params: dict[str, str] = field(default_factory=dict)
    raw_body: str | bytes | None = None
    deadline: float | None = None


def _render_input_failure(
    request: OperationRequest,
    principal: str,
    error: MalformedRequest,
    executor: StorageExecutor,
) -> Outcome:
    """入力エラー時、所有者ガード付きアクションなら所有者チェックを優先する。

    他人のレコードは 403、存在しないレコードは 404。所有者本人だけが 400 を受け取る。
    """
    probe = render_ownership_probe(request.descriptor, request.path_params, principal)
    if probe is None:
        return error.to_failure()
    outcome = executor.execute(probe, deadline=request.deadline)
    if isinstance(outcome, Failure):
        return outcome
    return error.to_failure()


def _run(request: OperationRequest, executor: StorageExecutor) -> Outcome:
    if not request.principal:
        return Unauthorized("unauthorized").to_failure()

    try:
        body: Any = None
        if request.descriptor.required_fields:
            body = parse_body(request.raw_body)
        command = render_request(
            request.descriptor, request.path_params, body, request.principal
        )
    except MalformedRequest as e:
        return _render_input_failure(request, request.principal, e, executor)

    return executor.execute(command, deadline=request.deadline)


def dispatch(request: OperationRequest, executor: StorageExecutor) -> HttpResponse:
    """1リクエストを処理して HTTP レスポンスを返す。

    Args:
        request: 解決済みの Descriptor とリクエスト内容
        executor: ストレージコマンドの実行者

    Returns:
        HttpResponse
    """
    outcome = _run(request, executor)
    response = render_response(request.descriptor, outcome, request.request_id)

    log_operation_outcome(
        action=request.descriptor.action.value,
        status_code=response.status_code,
        failure_kind=response.failure_kind.value if response.failure_kind else None,
        request_id=request.request_id,
    )
    return response
