"""
Pet Store API — 設定

DynamoDB テーブル名・インデックス名・タイムアウト等を環境変数から読み込む。
コールドスタート時に1度だけ解決し、@lru_cache でキャッシュする。
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from functools import lru_cache

# ---------------------------------------------------------------------------
# デフォルト値
# ---------------------------------------------------------------------------
DEFAULT_TABLE_NAME = "Pets"
DEFAULT_OWNER_INDEX_NAME = "ownerId-index"
DEFAULT_REGION = "us-east-1"
DEFAULT_STORAGE_TIMEOUT_SEC = 3.0

# Lambda の残り時間からストレージ呼び出しの期限を引く際の余裕
DEADLINE_MARGIN_MS = 500


@dataclass(frozen=True)
class Settings:
    """実行時設定。"""

    table_name: str = DEFAULT_TABLE_NAME
    owner_index_name: str = DEFAULT_OWNER_INDEX_NAME
    region: str = DEFAULT_REGION
    endpoint_url: str | None = None
    storage_timeout_sec: float = DEFAULT_STORAGE_TIMEOUT_SEC
    consistent_read: bool = False
    cors_allow_origin: str | None = None
    base_path: str = ""


def _env_bool(name: str, default: bool = False) -> bool:
    value = os.environ.get(name)
    if value is None:
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


def _env_float(name: str, default: float) -> float:
    value = os.environ.get(name, "")
    if not value:
        return default
    try:
        return float(value)
    except ValueError:
        raise RuntimeError(f"{name} must be a number, got {value!r}") from None


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """環境変数から Settings を構築する。

    Returns:
        キャッシュされた Settings
    """
    base_path = os.environ.get("API_BASE_PATH", "").rstrip("/")
    if base_path and not base_path.startswith("/"):
        base_path = "/" + base_path

    return Settings(
        table_name=os.environ.get("TABLE_NAME") or DEFAULT_TABLE_NAME,
        owner_index_name=os.environ.get("OWNER_INDEX_NAME") or DEFAULT_OWNER_INDEX_NAME,
        region=os.environ.get("AWS_REGION") or DEFAULT_REGION,
        endpoint_url=os.environ.get("DYNAMODB_ENDPOINT_URL") or None,
        storage_timeout_sec=_env_float("STORAGE_TIMEOUT_SEC", DEFAULT_STORAGE_TIMEOUT_SEC),
        consistent_read=_env_bool("CONSISTENT_READ"),
        cors_allow_origin=os.environ.get("CORS_ALLOW_ORIGIN") or None,
        base_path=base_path,
    )
