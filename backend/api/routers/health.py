"""ヘルスチェック。認証不要で、ストレージには触れない。"""

from __future__ import annotations

from fastapi import APIRouter

router = APIRouter(tags=["health"])

HEALTH_BODY = {"status": "ok"}


@router.get("/health")
def health_check() -> dict[str, str]:
    """GET /health → {"status": "ok"}"""
    return dict(HEALTH_BODY)
