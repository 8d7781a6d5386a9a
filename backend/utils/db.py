"""
Pet Store API — DynamoDB 接続管理

boto3 の低レベルクライアントを使用する。
Lambda 環境では1クライアントを invocation 間で再利用する。
リトライはコア内で行わないため、botocore の試行回数は1回に固定する。
"""

from __future__ import annotations

from typing import Any

import boto3
from botocore.config import Config

from utils.config import get_settings
from utils.logger import logger

# ---------------------------------------------------------------------------
# DynamoDB クライアント (Lambda ライフサイクルで再利用)
# ---------------------------------------------------------------------------
_client: Any = None


def get_dynamodb_client() -> Any:
    """DynamoDB クライアントを取得する。初回呼び出し時に生成。"""
    global _client  # noqa: PLW0603
    if _client is None:
        settings = get_settings()
        logger.info(
            "Creating DynamoDB client",
            extra={"region": settings.region, "endpoint_url": settings.endpoint_url},
        )
        _client = boto3.client(
            "dynamodb",
            region_name=settings.region,
            endpoint_url=settings.endpoint_url,
            config=Config(
                connect_timeout=settings.storage_timeout_sec,
                read_timeout=settings.storage_timeout_sec,
                retries={"total_max_attempts": 1, "mode": "standard"},
            ),
        )
    return _client


def reset_client() -> None:
    """キャッシュ済みクライアントを破棄する。設定変更後やテストで使用。"""
    global _client  # noqa: PLW0603
    _client = None
