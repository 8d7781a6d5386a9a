"""
Pet Store API — Identity Context Extractor

API Gateway イベントから呼び出し元プリンシパル (不透明な文字列) を取り出す。
認証そのものは Cognito オーソライザーの責務。
"""

from __future__ import annotations

import uuid
from typing import Any


def extract_principal(event: dict[str, Any] | None) -> str | None:
    """プリンシパルを返す。見つからなければ None。

    優先順:
      1. requestContext.authorizer.claims.sub (REST API + Cognito User Pool)
      2. requestContext.authorizer.jwt.claims.sub (HTTP API + JWT オーソライザー)
      3. requestContext.identity.cognitoIdentityId (IAM 認証 + Identity Pool)
    """
    if not isinstance(event, dict):
        return None
    request_context = event.get("requestContext") or {}
    authorizer = request_context.get("authorizer") or {}

    claims = authorizer.get("claims")
    if not isinstance(claims, dict):
        claims = (authorizer.get("jwt") or {}).get("claims")
    if isinstance(claims, dict):
        sub = claims.get("sub")
        if isinstance(sub, str) and sub:
            return sub

    identity = request_context.get("identity") or {}
    identity_id = identity.get("cognitoIdentityId")
    if isinstance(identity_id, str) and identity_id:
        return identity_id
    return None


def extract_request_id(
    event: dict[str, Any] | None,
    context: Any = None,
    headers: dict[str, str] | None = None,
) -> str:
    """トレーサビリティ用のリクエスト ID を返す。

    API Gateway の requestId → Lambda の aws_request_id → X-Request-Id ヘッダ → uuid4
    """
    if isinstance(event, dict):
        request_id = (event.get("requestContext") or {}).get("requestId")
        if request_id:
            return str(request_id)
    aws_request_id = getattr(context, "aws_request_id", None)
    if aws_request_id:
        return str(aws_request_id)
    if headers:
        for name, value in headers.items():
            if name.lower() == "x-request-id" and value:
                return value
    return str(uuid.uuid4())
