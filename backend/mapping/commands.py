"""
Pet Store API — ストレージコマンド

Request Renderer が生成し、Executor が実行するデータ。
数値は Decimal で保持する (DynamoDB の N 型)。
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

OWNER_ATTRIBUTE = "ownerId"


@dataclass(frozen=True)
class OwnershipCondition:
    """ownerId == principal。ストレージエンジンが書き込みと同時に評価する。"""

    principal: str
    attribute: str = OWNER_ATTRIBUTE


@dataclass(frozen=True)
class PutItem:
    """新規作成。既存 id の上書きは行わない。"""

    item: dict[str, Any]

    @property
    def key(self) -> str:
        return str(self.item["id"])


@dataclass(frozen=True)
class GetItem:
    key: str


@dataclass(frozen=True)
class UpdateItem:
    key: str
    fields: dict[str, Any]
    condition: OwnershipCondition


@dataclass(frozen=True)
class DeleteItem:
    key: str
    condition: OwnershipCondition


@dataclass(frozen=True)
class ScanTable:
    pass


@dataclass(frozen=True)
class QueryIndex:
    """オーナーインデックスを principal で絞り込む。"""

    principal: str
    attribute: str = field(default=OWNER_ATTRIBUTE)


@dataclass(frozen=True)
class CheckOwnership:
    """書き込みを伴わない所有者チェック。"""

    key: str
    condition: OwnershipCondition


StorageCommand = PutItem | GetItem | UpdateItem | DeleteItem | ScanTable | QueryIndex | CheckOwnership
