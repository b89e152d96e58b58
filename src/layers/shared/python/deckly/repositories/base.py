"""Base repository class for DynamoDB operations."""

import os
from typing import Any, Generic, TypeVar

import boto3
import structlog
from botocore.exceptions import ClientError

from deckly.models.base import BaseModel
from deckly.utils.exceptions import ConflictError

logger = structlog.get_logger()

T = TypeVar("T", bound=BaseModel)


class BaseRepository(Generic[T]):
    """Base repository for the single-table design.

    Subclasses add the access patterns; this class owns the table handle,
    item serialization and pagination.
    """

    def __init__(self, model_class: type[T], table_name: str | None = None):
        """Initialize repository.

        Args:
            model_class: The Pydantic model class for this repository.
            table_name: DynamoDB table name. Defaults to TABLE_NAME env var.
        """
        self.model_class = model_class
        self.table_name = table_name or os.environ.get("TABLE_NAME", "deckly-dev")
        self._dynamodb = None
        self._table = None

    @property
    def dynamodb(self):
        """Get DynamoDB resource (lazy initialization)."""
        if self._dynamodb is None:
            self._dynamodb = boto3.resource("dynamodb")
        return self._dynamodb

    @property
    def table(self):
        """Get DynamoDB table (lazy initialization)."""
        if self._table is None:
            self._table = self.dynamodb.Table(self.table_name)
        return self._table

    def _to_item(self, model: T) -> dict[str, Any]:
        """Serialize a model with its primary and index keys."""
        item = model.to_dynamodb()
        item.update(model.get_keys())
        gsi_keys = model.get_gsi1_keys()
        if gsi_keys:
            item.update(gsi_keys)
        return item

    def get_item(self, pk: str, sk: str) -> T | None:
        """Get an item by its primary key.

        Returns:
            Model instance or None if not found.
        """
        try:
            response = self.table.get_item(Key={"PK": pk, "SK": sk})
        except ClientError as e:
            logger.error("DynamoDB get_item failed", error=str(e), pk=pk, sk=sk)
            raise

        item = response.get("Item")
        if not item:
            return None
        return self.model_class.from_dynamodb(item)

    def put_item(self, model: T, condition_expression: str | None = None) -> T:
        """Write a model, replacing any item with the same key.

        Raises:
            ConflictError: If ``condition_expression`` is given and fails.
        """
        item = self._to_item(model)
        kwargs: dict[str, Any] = {"Item": item}
        if condition_expression:
            kwargs["ConditionExpression"] = condition_expression

        try:
            self.table.put_item(**kwargs)
        except ClientError as e:
            if e.response["Error"]["Code"] == "ConditionalCheckFailedException":
                raise ConflictError(item["PK"], item["SK"])
            logger.error("DynamoDB put_item failed", error=str(e), pk=item["PK"], sk=item["SK"])
            raise

        logger.debug("Item saved", pk=item["PK"], sk=item["SK"], model=self.model_class.__name__)
        return model

    def query_all(self, key_condition, index_name: str | None = None, **kwargs: Any) -> list[T]:
        """Run a query and follow ``LastEvaluatedKey`` until exhausted.

        Args:
            key_condition: boto3 ``Key`` condition.
            index_name: Optional GSI name.
            **kwargs: Extra ``Table.query`` arguments (FilterExpression, ...).

        Returns:
            Every matching item, in index order.
        """
        query_kwargs: dict[str, Any] = {"KeyConditionExpression": key_condition, **kwargs}
        if index_name:
            query_kwargs["IndexName"] = index_name

        results: list[T] = []
        try:
            while True:
                response = self.table.query(**query_kwargs)
                results.extend(
                    self.model_class.from_dynamodb(item) for item in response.get("Items", [])
                )
                last_key = response.get("LastEvaluatedKey")
                if not last_key:
                    break
                query_kwargs["ExclusiveStartKey"] = last_key
        except ClientError as e:
            logger.error(
                "DynamoDB query failed",
                error=str(e),
                model=self.model_class.__name__,
                index=index_name,
            )
            raise

        return results
