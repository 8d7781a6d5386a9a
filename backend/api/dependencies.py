"""
Pet Store API — FastAPI 共通依存

- get_executor(): DynamoDB Executor を返す
- get_principal(): Cognito claims から呼び出し元プリンシパルを解決
- get_request_id(): トレーサビリティ用のリクエスト ID
- get_deadline(): Lambda の残り時間から求めたストレージ呼び出しの期限
"""

from __future__ import annotations

import time
from typing import Any

from fastapi import Request

from mapping.executor import DynamoDBExecutor
from mapping.identity import extract_principal, extract_request_id
from utils.config import DEADLINE_MARGIN_MS, get_settings
from utils.db import get_dynamodb_client


# ---------------------------------------------------------------------------
# ストレージ
# ---------------------------------------------------------------------------
def get_executor() -> DynamoDBExecutor:
    """設定済みテーブルに対する Executor を返す。"""
    settings = get_settings()
    return DynamoDBExecutor(
        client=get_dynamodb_client(),
        table_name=settings.table_name,
        owner_index_name=settings.owner_index_name,
        consistent_read=settings.consistent_read,
    )


# ---------------------------------------------------------------------------
# 呼び出し元の解決
# ---------------------------------------------------------------------------
def _aws_event(request: Request) -> dict[str, Any] | None:
    # Mangum 経由: request.scope["aws.event"]
    aws_event = request.scope.get("aws.event")
    return aws_event if isinstance(aws_event, dict) else None


def get_principal(request: Request) -> str | None:
    """Mangum が ASGI scope に格納した API Gateway イベントから principal を取得する。

    未認証の場合は None を返し、401 の判定は engine に任せる。
    """
    return extract_principal(_aws_event(request))


def cors_headers() -> dict[str, str]:
    """CORS_ALLOW_ORIGIN が設定されていれば Access-Control-Allow-Origin を返す。"""
    origin = get_settings().cors_allow_origin
    return {"Access-Control-Allow-Origin": origin} if origin else {}


def get_request_id(request: Request) -> str:
    return extract_request_id(
        _aws_event(request),
        request.scope.get("aws.context"),
        dict(request.headers),
    )


# ---------------------------------------------------------------------------
# 期限
# ---------------------------------------------------------------------------
def deadline_from_context(context: Any) -> float | None:
    """Lambda context の残り時間から time.monotonic() 基準の期限を求める。

    context が無い (ローカル実行など) 場合は None。
    """
    remaining = getattr(context, "get_remaining_time_in_millis", None)
    if remaining is None:
        return None
    return time.monotonic() + max(remaining() - DEADLINE_MARGIN_MS, 0) / 1000


def get_deadline(request: Request) -> float | None:
    # Mangum 経由: request.scope["aws.context"]
    return deadline_from_context(request.scope.get("aws.context"))
