"""ペットテーブルを作成するスクリプト (ローカル開発用)。

DynamoDB Local などに対して、id をパーティションキーとするテーブルと
ownerId をキーとするグローバルセカンダリインデックスを作成する。
環境変数 (.env) から設定を読み込む。
"""

import sys

import boto3
from botocore.exceptions import ClientError
from dotenv import load_dotenv

from utils.config import get_settings
from utils.logger import logger


def table_definition(table_name: str, owner_index_name: str) -> dict:
    return {
        "TableName": table_name,
        "AttributeDefinitions": [
            {"AttributeName": "id", "AttributeType": "S"},
            {"AttributeName": "ownerId", "AttributeType": "S"},
        ],
        "KeySchema": [{"AttributeName": "id", "KeyType": "HASH"}],
        "GlobalSecondaryIndexes": [
            {
                "IndexName": owner_index_name,
                "KeySchema": [{"AttributeName": "ownerId", "KeyType": "HASH"}],
                "Projection": {"ProjectionType": "ALL"},
            }
        ],
        "BillingMode": "PAY_PER_REQUEST",
    }


def main() -> None:
    load_dotenv()
    settings = get_settings()

    client = boto3.client(
        "dynamodb", region_name=settings.region, endpoint_url=settings.endpoint_url
    )
    logger.info("Creating table", extra={"table_name": settings.table_name})
    try:
        client.create_table(**table_definition(settings.table_name, settings.owner_index_name))
    except ClientError as e:
        if e.response.get("Error", {}).get("Code") == "ResourceInUseException":
            logger.info("Table already exists", extra={"table_name": settings.table_name})
            return
        logger.error("Table creation failed", exc_info=True)
        sys.exit(1)

    client.get_waiter("table_exists").wait(TableName=settings.table_name)
    logger.info("Table created", extra={"table_name": settings.table_name})


if __name__ == "__main__":
    main()
