"""
Pet Store API — API Lambda Handler (直接プロキシ統合)

ASGI アプリを経由せず、ルートテーブルで Descriptor を解決して engine に渡す。

REST API エンドポイント:
  POST   /pets
  GET    /pets, /pets/:id
  PUT    /pets/:id
  DELETE /pets/:id
  GET    /my-pets
  GET    /health
"""

from __future__ import annotations

import base64
import json
from typing import Any

from aws_lambda_powertools.logging import correlation_paths

from api.dependencies import cors_headers, deadline_from_context, get_executor
from api.routers.health import HEALTH_BODY
from mapping.descriptors import ROUTE_TABLE, MethodNotAllowed, RouteNotFound
from mapping.engine import OperationRequest, dispatch
from mapping.identity import extract_principal, extract_request_id
from mapping.response_renderer import HttpResponse, render_error
from utils.config import get_settings
from utils.logger import logger, metrics


def _to_proxy_result(response: HttpResponse) -> dict[str, Any]:
    headers = dict(response.headers)
    headers.update(cors_headers())
    return {
        "statusCode": response.status_code,
        "headers": headers,
        "body": json.dumps(response.body),
    }


def _strip_base_path(path: str) -> str:
    base_path = get_settings().base_path
    if base_path and (path == base_path or path.startswith(base_path + "/")):
        path = path[len(base_path) :] or "/"
    return path


def _raw_body(event: dict[str, Any]) -> str | bytes | None:
    body = event.get("body")
    if body is not None and event.get("isBase64Encoded"):
        return base64.b64decode(body)
    return body

@logger.inject_lambda_context(correlation_id_path=correlation_paths.API_GATEWAY_REST)
@metrics.log_metrics
def main(event: dict[str, Any], context: Any) -> dict[str, Any]:
    """API Gateway からプロキシ統合で呼ばれるエントリーポイント"""
    path = _strip_base_path(event.get("path") or event.get("rawPath") or "/")
    method = event.get("httpMethod") or (
        event.get("requestContext", {}).get("http", {}).get("method", "GET")
    )
    request_id = extract_request_id(event, context, event.get("headers") or {})
    logger.info("API request received", extra={"path": path, "method": method})

    if path == "/health" and method == "GET":
        return _to_proxy_result(HttpResponse(status_code=200, body=dict(HEALTH_BODY)))

    try:
        descriptor, path_params = ROUTE_TABLE.resolve(method, path)
    except MethodNotAllowed as e:
        response = render_error(405, "method not allowed", request_id)
        result = _to_proxy_result(response)
        result["headers"]["Allow"] = ", ".join(e.allowed)
        return result
    except RouteNotFound:
        return _to_proxy_result(render_error(404, "not found", request_id))

    operation = OperationRequest(
        descriptor=descriptor,
        principal=extract_principal(event),
        request_id=request_id,
        path_params=path_params,
        raw_body=_raw_body(event),
        deadline=deadline_from_context(context),
    )
    return _to_proxy_result(dispatch(operation, get_executor()))

