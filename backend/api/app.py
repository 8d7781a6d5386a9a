"""
Pet Store API — FastAPI アプリケーション定義

ルートテーブルから生成したルーターを登録し、Mangum で Lambda アダプタ化する。
"""

from __future__ import annotations

from typing import Any

from aws_lambda_powertools.logging import correlation_paths
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from mangum import Mangum
from starlette.exceptions import HTTPException as StarletteHTTPException

from api.dependencies import get_request_id
from api.routers import health, pets
from mapping.response_renderer import render_error
from utils.config import get_settings
from utils.logger import logger, metrics

app = FastAPI(title="Pet Store API", version="1.0.0")

# ---------------------------------------------------------------------------
# ルーター登録
# ---------------------------------------------------------------------------
app.include_router(health.router)
app.include_router(pets.router)


# ---------------------------------------------------------------------------
# 例外ハンドラ
# ---------------------------------------------------------------------------
@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    """HTTPException → {"error", "requestId"} 形式でレスポンス。"""
    detail: Any = exc.detail
    message = detail if isinstance(detail, str) else str(detail)
    if exc.status_code == 404:
        message = "not found"
    response = render_error(exc.status_code, message, get_request_id(request))
    return JSONResponse(status_code=exc.status_code, content=response.body, headers=exc.headers)


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    """バリデーションエラー → 400"""
    response = render_error(400, str(exc.errors()), get_request_id(request))
    return JSONResponse(status_code=400, content=response.body)


@app.exception_handler(Exception)
async def general_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """汎用例外 → 500"""
    request_id = get_request_id(request)
    logger.exception("Unhandled exception", extra={"request_id": request_id})
    response = render_error(500, "An internal error occurred", request_id)
    return JSONResponse(status_code=500, content=response.body)


# ---------------------------------------------------------------------------
# Mangum Lambda ハンドラ
# ---------------------------------------------------------------------------
_mangum = Mangum(app, api_gateway_base_path=get_settings().base_path or "/", lifespan="off")


@logger.inject_lambda_context(correlation_id_path=correlation_paths.API_GATEWAY_REST)
@metrics.log_metrics
def handler(event: dict[str, Any], context: Any) -> dict[str, Any]:
    """API Gateway からプロキシ統合で呼ばれる ASGI 経由のエントリーポイント。"""
    return _mangum(event, context)
