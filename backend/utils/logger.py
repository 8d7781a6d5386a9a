"""
Pet Store API — 共通ロガー & メトリクス

AWS Lambda Powertools を使用した構造化ログとカスタムメトリクスを提供。
リクエスト単位の処理結果 (アクション × ステータス) を記録するヘルパーを含む。
"""

from __future__ import annotations

from aws_lambda_powertools import Logger, Metrics
from aws_lambda_powertools.metrics import MetricUnit

# ---------------------------------------------------------------------------
# シングルトン Logger / Metrics
# ---------------------------------------------------------------------------
logger = Logger(service="pets-api")
metrics = Metrics(namespace="PetsApi", service="pets-api")


# ---------------------------------------------------------------------------
# リクエスト結果のログ出力
# ---------------------------------------------------------------------------
def log_operation_outcome(
    action: str,
    status_code: int,
    failure_kind: str | None,
    request_id: str,
) -> None:
    """1リクエストの処理結果を構造化ログで出力し、
    CloudWatch カスタムメトリクスとしても記録する。

    Args:
        action: Operation Descriptor のアクション名 (例: Update)
        status_code: 返却する HTTP ステータス
        failure_kind: 失敗時の FailureKind 名。成功時は None
        request_id: トレーサビリティ用のリクエスト ID
    """
    extra = {
        "action": action,
        "status_code": status_code,
        "failure_kind": failure_kind,
        "request_id": request_id,
    }
    if status_code >= 500:
        logger.warning("Operation failed on storage side", extra=extra)
    else:
        logger.info("Operation completed", extra=extra)

    # CloudWatch カスタムメトリクス (例: Update4xx)
    metrics.add_metric(
        name=f"{action}{status_code // 100}xx",
        unit=MetricUnit.Count,
        value=1,
    )
