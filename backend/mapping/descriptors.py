"""
Pet Store API — Operation Descriptor & ルートテーブル

(HTTP メソッド, パスパターン) ごとに1つの Operation Descriptor を静的に定義する。
List と Query は scan_scope のみが異なる。
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from enum import Enum


class Action(str, Enum):
    CREATE = "Create"
    READ = "Read"
    LIST = "List"
    QUERY = "Query"
    UPDATE = "Update"
    DELETE = "Delete"


class ScanScope(str, Enum):
    ALL = "All"
    BY_OWNER = "ByOwner"


class FieldType(str, Enum):
    STRING = "string"
    NUMBER = "number"


@dataclass(frozen=True)
class FieldSpec:
    """ボディのフィールド宣言。"""

    name: str
    type: FieldType


@dataclass(frozen=True)
class OperationDescriptor:
    """1エンドポイント分の宣言的マッピング。実行時に変更しない。"""

    action: Action
    requires_ownership: bool = False
    required_fields: tuple[FieldSpec, ...] = ()
    scan_scope: ScanScope = ScanScope.ALL

    @property
    def field_names(self) -> tuple[str, ...]:
        return tuple(f.name for f in self.required_fields)


# ---------------------------------------------------------------------------
# ペットのスキーマ
# ---------------------------------------------------------------------------
PET_FIELDS: tuple[FieldSpec, ...] = (
    FieldSpec("name", FieldType.STRING),
    FieldSpec("type", FieldType.STRING),
    FieldSpec("age", FieldType.NUMBER),
)

CREATE_PET = OperationDescriptor(action=Action.CREATE, required_fields=PET_FIELDS)
READ_PET = OperationDescriptor(action=Action.READ)
LIST_PETS = OperationDescriptor(action=Action.LIST, scan_scope=ScanScope.ALL)
QUERY_MY_PETS = OperationDescriptor(action=Action.QUERY, scan_scope=ScanScope.BY_OWNER)
UPDATE_PET = OperationDescriptor(
    action=Action.UPDATE, requires_ownership=True, required_fields=PET_FIELDS
)
DELETE_PET = OperationDescriptor(action=Action.DELETE, requires_ownership=True)


# ---------------------------------------------------------------------------
# ルートテーブル
# ---------------------------------------------------------------------------
class RouteNotFound(LookupError):
    """パスに一致するルートが無い。"""


class MethodNotAllowed(LookupError):
    """パスは一致したがメソッドが無い。"""

    def __init__(self, path: str, allowed: list[str]) -> None:
        super().__init__(f"method not allowed for {path}")
        self.allowed = allowed


_PARAM_RE = re.compile(r"\{(\w+)\}")


@dataclass(frozen=True)
class Route:
    method: str
    path: str
    descriptor: OperationDescriptor

    @property
    def pattern(self) -> re.Pattern[str]:
        return re.compile("^" + _PARAM_RE.sub(r"(?P<\1>[^/]+)", self.path) + "/?$")


class RouteTable:
    """(メソッド, パスパターン) → Operation Descriptor の静的な対応表。"""

    def __init__(self, routes: list[Route]) -> None:
        self._routes = tuple(routes)
        self._compiled = [(route, route.pattern) for route in self._routes]

    def __iter__(self):  # type: ignore[no-untyped-def]
        return iter(self._routes)

    def __len__(self) -> int:
        return len(self._routes)

    def resolve(self, method: str, path: str) -> tuple[OperationDescriptor, dict[str, str]]:
        """メソッドとパスから Descriptor とパスパラメータを解決する。

        Raises:
            RouteNotFound: どのパターンにも一致しない
            MethodNotAllowed: パターンは一致したがメソッドが登録されていない
        """
        method = method.upper()
        allowed: list[str] = []
        for route, pattern in self._compiled:
            match = pattern.match(path)
            if match is None:
                continue
            if route.method == method:
                return route.descriptor, match.groupdict()
            allowed.append(route.method)
        if allowed:
            raise MethodNotAllowed(path, allowed)
        raise RouteNotFound(path)


ROUTE_TABLE = RouteTable(
    [
        Route("POST", "/pets", CREATE_PET),
        Route("GET", "/pets", LIST_PETS),
        Route("GET", "/pets/{id}", READ_PET),
        Route("PUT", "/pets/{id}", UPDATE_PET),
        Route("DELETE", "/pets/{id}", DELETE_PET),
        Route("GET", "/my-pets", QUERY_MY_PETS),
    ]
)
