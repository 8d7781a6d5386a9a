"""ペットエンドポイント。ルートテーブルから生成する。"""

from __future__ import annotations

from typing import Annotated, Any, Callable

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse
from starlette.concurrency import run_in_threadpool

from api.dependencies import (
    cors_headers,
    get_deadline,
    get_executor,
    get_principal,
    get_request_id,
)
from mapping.descriptors import ROUTE_TABLE, OperationDescriptor, Route
from mapping.engine import OperationRequest, StorageExecutor, dispatch
from mapping.response_renderer import HttpResponse

router = APIRouter()


def to_json_response(response: HttpResponse) -> JSONResponse:
    headers = {k: v for k, v in response.headers.items() if k.lower() != "content-type"}
    headers.update(cors_headers())
    return JSONResponse(status_code=response.status_code, content=response.body, headers=headers)


def _make_endpoint(descriptor: OperationDescriptor) -> Callable[..., Any]:
    async def endpoint(
        request: Request,
        principal: Annotated[str | None, Depends(get_principal)],
        request_id: Annotated[str, Depends(get_request_id)],
        executor: Annotated[StorageExecutor, Depends(get_executor)],
        deadline: Annotated[float | None, Depends(get_deadline)],
    ) -> JSONResponse:
        raw_body = await request.body() if descriptor.required_fields else None
        operation = OperationRequest(
            descriptor=descriptor,
            principal=principal,
            request_id=request_id,
            path_params=dict(request.path_params),
            raw_body=raw_body,
            deadline=deadline,
        )
        # boto3 は同期クライアントなのでスレッドプールで実行
        response = await run_in_threadpool(dispatch, operation, executor)
        return to_json_response(response)

    return endpoint


def _register(route: Route) -> None:
    router.add_api_route(
        route.path,
        _make_endpoint(route.descriptor),
        methods=[route.method],
        name=f"{route.descriptor.action.value.lower()}_{route.path.strip('/').split('/')[0]}",
        response_class=JSONResponse,
    )


for _route in ROUTE_TABLE:
    _register(_route)
