"""
Pet Store API — Pydantic データモデル

ストレージ上のレコードと、HTTP レスポンスボディ (成功/エラー) を型安全に定義する。
"""

from __future__ import annotations

from decimal import Decimal
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

# システムが付与する属性。これ以外は attributes に入る
SYSTEM_ATTRIBUTES = ("id", "ownerId", "createdAt")


def to_json_number(value: Decimal) -> int | float:
    """DynamoDB の Decimal を JSON 数値に変換する。整数値は int。"""
    if value == value.to_integral_value():
        return int(value)
    return float(value)


# ---------------------------------------------------------------------------
# レコード
# ---------------------------------------------------------------------------
class PetRecord(BaseModel):
    """ストレージに保存されるレコード。"""

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    id: str
    owner_id: str = Field(alias="ownerId")
    created_at: str | None = Field(default=None, alias="createdAt")
    attributes: dict[str, str | int | float] = Field(default_factory=dict)

    @classmethod
    def from_item(cls, item: dict[str, Any]) -> PetRecord:
        """デシリアライズ済みの DynamoDB アイテムからレコードを構築する。"""
        attributes: dict[str, str | int | float] = {}
        for name, value in item.items():
            if name in SYSTEM_ATTRIBUTES:
                continue
            attributes[name] = to_json_number(value) if isinstance(value, Decimal) else value
        return cls(
            id=item["id"],
            ownerId=item["ownerId"],
            createdAt=item.get("createdAt"),
            attributes=attributes,
        )

    def to_response(self) -> dict[str, Any]:
        """フラットな JSON 表現 {id, ownerId, <attributes>, createdAt} を返す。"""
        body: dict[str, Any] = {"id": self.id, "ownerId": self.owner_id}
        body.update(self.attributes)
        if self.created_at is not None:
            body["createdAt"] = self.created_at
        return body


# ---------------------------------------------------------------------------
# レスポンスボディ
# ---------------------------------------------------------------------------
class IdBody(BaseModel):
    """Create / Update / Delete 成功時。"""

    id: str


class ItemBody(BaseModel):
    """Read 成功時。"""

    item: dict[str, Any]


class ItemsBody(BaseModel):
    """List / Query 成功時。"""

    items: list[dict[str, Any]] = Field(default_factory=list)


class ErrorBody(BaseModel):
    """全エラー共通。"""

    model_config = ConfigDict(populate_by_name=True)

    error: str
    request_id: str = Field(alias="requestId")
