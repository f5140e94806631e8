"""DynamoDB-backed record store.

Table layout:
    - Partition key: userId (S)
    - Sort key: timestamp (N)
    - GSI FeedbackTypeIndex: feedbackType (S) / timestamp (N)
"""

import logging
import time
from decimal import Decimal
from typing import Any, Dict, List, Optional, Sequence

import boto3
from boto3.dynamodb.conditions import Attr, Key
from botocore.exceptions import ClientError

from feedback_recs.config import DELETE_BATCH_SIZE
from feedback_recs.lib.exceptions import RecordNotFoundError, StoreFailureError
from feedback_recs.lib.feedback.models import RecommendationRecord, RecordKey
from .base import RecordFilter, RecordStore, UpdateRequest

logger = logging.getLogger(__name__)

CATEGORY_INDEX_NAME = "FeedbackTypeIndex"


def _from_dynamo(value: Any) -> Any:
    """Convert the Decimals returned by the resource API into int/float."""
    if isinstance(value, Decimal):
        return int(value) if value == value.to_integral_value() else float(value)
    if isinstance(value, list):
        return [_from_dynamo(v) for v in value]
    if isinstance(value, dict):
        return {k: _from_dynamo(v) for k, v in value.items()}
    return value


def build_filter_condition(record_filter: Optional[RecordFilter]):
    """Translate a RecordFilter into a boto3 condition, or None if empty."""
    if record_filter is None or record_filter.is_empty():
        return None

    conditions = []
    if record_filter.from_timestamp is not None:
        conditions.append(Attr("timestamp").gte(record_filter.from_timestamp))
    if record_filter.to_timestamp is not None:
        conditions.append(Attr("timestamp").lte(record_filter.to_timestamp))
    if record_filter.category is not None:
        conditions.append(Attr("feedbackType").eq(record_filter.category))
    if record_filter.completed is not None:
        conditions.append(Attr("completed").eq(record_filter.completed))
    if record_filter.tags:
        tag_condition = Attr("tags").contains(record_filter.tags[0])
        for tag in record_filter.tags[1:]:
            tag_condition = tag_condition | Attr("tags").contains(tag)
        conditions.append(tag_condition)

    combined = conditions[0]
    for condition in conditions[1:]:
        combined = combined & condition
    return combined


class DynamoDBRecordStore(RecordStore):
    """Record store over a single DynamoDB table."""

    MAX_RETRIES = 3

    def __init__(
        self,
        table_name: str,
        region: str = "us-east-1",
        profile: Optional[str] = None,
        endpoint_url: Optional[str] = None,
        resource=None,
    ):
        """Initialize the store.

        Args:
            table_name: DynamoDB table name
            region: AWS region (default: us-east-1)
            profile: Optional named AWS profile
            endpoint_url: Alternate endpoint (DynamoDB Local)
            resource: Pre-built boto3 DynamoDB resource (tests)
        """
        self.table_name = table_name
        self.region = region
        if resource is None:
            if profile:
                session = boto3.Session(profile_name=profile)
                resource = session.resource(
                    "dynamodb", region_name=region, endpoint_url=endpoint_url
                )
            else:
                resource = boto3.resource(
                    "dynamodb", region_name=region, endpoint_url=endpoint_url
                )
        self.resource = resource
        self.table = resource.Table(table_name)

    def put_record(self, record: RecommendationRecord, *, if_absent: bool = False) -> bool:
        params: Dict[str, Any] = {"Item": record.to_item()}
        if if_absent:
            params["ConditionExpression"] = "attribute_not_exists(userId)"

        try:
            self.table.put_item(**params)
        except ClientError as e:
            if _error_code(e) == "ConditionalCheckFailedException":
                logger.info(
                    "Record already exists, skipping conditional write",
                    extra={"owner": record.owner, "submitted_at": record.submitted_at},
                )
                return False
            raise StoreFailureError(f"Failed to write record: {e}") from e
        return True

    def get_record(self, owner: str, submitted_at: int) -> Optional[RecommendationRecord]:
        try:
            response = self.table.get_item(Key={"userId": owner, "timestamp": submitted_at})
        except ClientError as e:
            raise StoreFailureError(f"Failed to read record: {e}") from e

        item = response.get("Item")
        return RecommendationRecord.from_item(_from_dynamo(item)) if item else None

    def query_records(
        self,
        owner: str,
        record_filter: Optional[RecordFilter] = None,
    ) -> List[RecommendationRecord]:
        params: Dict[str, Any] = {
            "KeyConditionExpression": Key("userId").eq(owner),
            "ScanIndexForward": False,
        }
        filter_condition = build_filter_condition(record_filter)
        if filter_condition is not None:
            params["FilterExpression"] = filter_condition

        items = self._query_all(params)
        return [RecommendationRecord.from_item(_from_dynamo(item)) for item in items]

    def update_record(
        self,
        owner: str,
        submitted_at: int,
        update: UpdateRequest,
        updated_at: str,
    ) -> RecommendationRecord:
        assignments = update.assignments()
        assignments["updatedAt"] = updated_at

        set_clauses = []
        names: Dict[str, str] = {}
        values: Dict[str, Any] = {}
        for attribute, value in assignments.items():
            set_clauses.append(f"#{attribute} = :{attribute}")
            names[f"#{attribute}"] = attribute
            values[f":{attribute}"] = value

        try:
            response = self.table.update_item(
                Key={"userId": owner, "timestamp": submitted_at},
                UpdateExpression="SET " + ", ".join(set_clauses),
                ConditionExpression="attribute_exists(userId)",
                ExpressionAttributeNames=names,
                ExpressionAttributeValues=values,
                ReturnValues="ALL_NEW",
            )
        except ClientError as e:
            if _error_code(e) == "ConditionalCheckFailedException":
                raise RecordNotFoundError("Recommendation not found") from e
            raise StoreFailureError(f"Failed to update record: {e}") from e

        return RecommendationRecord.from_item(_from_dynamo(response["Attributes"]))

    def list_keys(self, owner: str) -> List[RecordKey]:
        params: Dict[str, Any] = {
            "KeyConditionExpression": Key("userId").eq(owner),
            "ProjectionExpression": "userId, #ts",
            "ExpressionAttributeNames": {"#ts": "timestamp"},
        }
        items = self._query_all(params)
        return [RecordKey(item["userId"], int(item["timestamp"])) for item in items]

    def delete_batch(self, keys: Sequence[RecordKey]) -> None:
        if len(keys) > DELETE_BATCH_SIZE:
            raise StoreFailureError(
                f"Batch of {len(keys)} exceeds the store limit of {DELETE_BATCH_SIZE}"
            )
        request_items = {
            self.table_name: [
                {"DeleteRequest": {"Key": {"userId": key[0], "timestamp": key[1]}}}
                for key in keys
            ]
        }

        for attempt in range(self.MAX_RETRIES):
            try:
                response = self.resource.batch_write_item(RequestItems=request_items)
            except ClientError as e:
                raise StoreFailureError(f"Failed to delete records: {e}") from e

            unprocessed = response.get("UnprocessedItems") or {}
            if not unprocessed:
                return

            if attempt < self.MAX_RETRIES - 1:
                # Exponential backoff: 2^attempt seconds
                sleep_time = 2 ** attempt
                logger.warning(
                    f"{len(unprocessed.get(self.table_name, []))} deletes left unprocessed "
                    f"(attempt {attempt + 1}/{self.MAX_RETRIES}). "
                    f"Retrying in {sleep_time} seconds..."
                )
                time.sleep(sleep_time)
                request_items = unprocessed

        raise StoreFailureError(
            f"Deletes still unprocessed after {self.MAX_RETRIES} attempts"
        )

    def ensure_table(self) -> None:
        """Create the table and its category index if it does not exist.

        Intended for local DynamoDB; deployed tables are provisioned outside
        the application.
        """
        client = self.resource.meta.client
        try:
            client.describe_table(TableName=self.table_name)
            logger.info("DynamoDB table %s already exists", self.table_name)
            return
        except ClientError as e:
            if _error_code(e) != "ResourceNotFoundException":
                raise StoreFailureError(f"Failed to describe table: {e}") from e

        logger.info("Creating DynamoDB table %s", self.table_name)
        client.create_table(
            TableName=self.table_name,
            KeySchema=[
                {"AttributeName": "userId", "KeyType": "HASH"},
                {"AttributeName": "timestamp", "KeyType": "RANGE"},
            ],
            AttributeDefinitions=[
                {"AttributeName": "userId", "AttributeType": "S"},
                {"AttributeName": "timestamp", "AttributeType": "N"},
                {"AttributeName": "feedbackType", "AttributeType": "S"},
            ],
            GlobalSecondaryIndexes=[
                {
                    "IndexName": CATEGORY_INDEX_NAME,
                    "KeySchema": [
                        {"AttributeName": "feedbackType", "KeyType": "HASH"},
                        {"AttributeName": "timestamp", "KeyType": "RANGE"},
                    ],
                    "Projection": {"ProjectionType": "ALL"},
                }
            ],
            BillingMode="PAY_PER_REQUEST",
        )
        client.get_waiter("table_exists").wait(TableName=self.table_name)

    def _query_all(self, params: Dict[str, Any]) -> List[Dict[str, Any]]:
        """Run a query, following LastEvaluatedKey until the partition is exhausted."""
        items: List[Dict[str, Any]] = []
        page_params = dict(params)
        while True:
            try:
                response = self.table.query(**page_params)
            except ClientError as e:
                raise StoreFailureError(f"Failed to query records: {e}") from e

            items.extend(response.get("Items", []))
            last_key = response.get("LastEvaluatedKey")
            if not last_key:
                return items
            page_params["ExclusiveStartKey"] = last_key


def _error_code(error: ClientError) -> str:
    return error.response.get("Error", {}).get("Code", "")
