"""
Pet Store API — 失敗の分類と実行結果

Executor は失敗を例外ではなく Failure 値として返す。
Renderer 側の入力エラーは MappingError 系の例外として送出され、
engine が Failure に変換する。
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class FailureKind(str, Enum):
    """失敗タグ。HTTP ステータスの選択はこのタグのみで決まる。"""

    MALFORMED_REQUEST = "MalformedRequest"
    UNAUTHORIZED = "Unauthorized"
    CONDITION_FAILED = "ConditionFailed"
    NOT_FOUND = "NotFound"
    THROTTLED = "Throttled"
    UNAVAILABLE = "Unavailable"
    UNKNOWN = "Unknown"


# ストレージ側の失敗 (→ 502)
STORAGE_SIDE_FAILURES = frozenset(
    {FailureKind.THROTTLED, FailureKind.UNAVAILABLE, FailureKind.UNKNOWN}
)


# ---------------------------------------------------------------------------
# 例外
# ---------------------------------------------------------------------------
class MappingError(Exception):
    """マッピング層の例外基底。"""

    kind: FailureKind = FailureKind.UNKNOWN

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message

    def to_failure(self) -> Failure:
        return Failure(kind=self.kind, message=self.message)


class MalformedRequest(MappingError):
    """必須フィールド欠落・型不一致・未宣言フィールドなど。"""

    kind = FailureKind.MALFORMED_REQUEST


class Unauthorized(MappingError):
    """有効な呼び出し元プリンシパルが無い。"""

    kind = FailureKind.UNAUTHORIZED


# ---------------------------------------------------------------------------
# 実行結果
# ---------------------------------------------------------------------------
@dataclass(frozen=True)
class Success:
    """ストレージ操作の成功。

    key はコマンドが対象とした id (Create では生成された id)。
    item は Read、items は List/Query でのみ設定される。
    """

    key: str | None = None
    item: dict[str, Any] | None = None
    items: list[dict[str, Any]] | None = None


@dataclass(frozen=True)
class Failure:
    """タグ付きの失敗。native_code はログ用の元のエラーコード。"""

    kind: FailureKind
    message: str
    native_code: str | None = field(default=None, compare=False)


Outcome = Success | Failure
