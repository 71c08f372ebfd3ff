"""DynamoDB manager for planner document storage."""
import json
import logging
from decimal import Decimal
from typing import Any, Dict, List, Optional

import boto3
from boto3.dynamodb.conditions import Attr
from botocore.exceptions import ClientError

logger = logging.getLogger(__name__)

TEAM_EVENTS = 'events'
INDIVIDUAL_EVENTS = 'individual-events'
COACHES = 'coaches'
CONTACTS = 'contacts'
EVENT_LOGISTICS = 'event-logistics'

# Hash key attribute per collection
KEY_ATTRIBUTES = {
    TEAM_EVENTS: 'id',
    INDIVIDUAL_EVENTS: 'id',
    COACHES: 'id',
    CONTACTS: 'id',
    EVENT_LOGISTICS: 'event_id',
}


def to_item(document: Dict[str, Any]) -> Dict[str, Any]:
    """
    Convert a plain document to a DynamoDB item.

    DynamoDB rejects floats, so numbers are round-tripped through JSON as
    Decimal. None values are dropped.
    """
    document = {key: value for key, value in document.items() if value is not None}
    return json.loads(json.dumps(document), parse_float=Decimal)


def from_item(item: Any) -> Any:
    """Convert a DynamoDB item back to plain Python types."""
    if isinstance(item, dict):
        return {key: from_item(value) for key, value in item.items()}
    if isinstance(item, list):
        return [from_item(value) for value in item]
    if isinstance(item, Decimal):
        return int(item) if item == item.to_integral_value() else float(item)
    return item


class DynamoDBManager:
    """Manager for DynamoDB document operations."""

    def __init__(self, table_prefix: str):
        """
        Initialize DynamoDB resource and table references.

        Args:
            table_prefix: Prefix of the planner tables, e.g. 'eventflow'
        """
        self.table_prefix = table_prefix
        self.dynamodb = boto3.resource('dynamodb')
        self._tables = {}
        logger.info(f"Initialized DynamoDBManager for table prefix: {table_prefix}")

    def table_name(self, collection: str) -> str:
        """
        Build the full table name of a collection.

        Args:
            collection: Collection name, e.g. 'events'

        Returns:
            Table name with the configured prefix
        """
        return f"{self.table_prefix}-{collection}"

    def table(self, collection: str):
        """
        Get the boto3 Table for a collection, created on first use.

        Args:
            collection: One of the planner collections

        Returns:
            boto3 DynamoDB Table resource

        Raises:
            ValueError: If the collection is unknown
        """
        if collection not in KEY_ATTRIBUTES:
            raise ValueError(f"Unknown collection: {collection}")
        if collection not in self._tables:
            self._tables[collection] = self.dynamodb.Table(self.table_name(collection))
        return self._tables[collection]

    def put_document(self, collection: str, document: Dict[str, Any]) -> None:
        """
        Write a whole document, replacing any existing one with the same key.

        Args:
            collection: Collection name
            document: Plain document including its key attribute

        Raises:
            ClientError: If the write fails
        """
        key_name = KEY_ATTRIBUTES[collection]
        try:
            self.table(collection).put_item(Item=to_item(document))
            logger.info(f"Wrote {collection} document {document[key_name]}")
        except ClientError as e:
            logger.error(f"Error writing {collection} document {document.get(key_name)}: {e}")
            raise

    def get_document(self, collection: str, key: str) -> Optional[Dict[str, Any]]:
        """
        Read one document by key.

        Returns:
            The document, or None if it does not exist
        """
        key_name = KEY_ATTRIBUTES[collection]
        try:
            response = self.table(collection).get_item(Key={key_name: key})
        except ClientError as e:
            logger.error(f"Error reading {collection} document {key}: {e}")
            raise

        item = response.get('Item')
        return from_item(item) if item else None

    def update_document(
        self, collection: str, key: str, changes: Dict[str, Any]
    ) -> Dict[str, Any]:
        """
        Set the given top-level attributes on an existing document.

        Args:
            collection: Collection name
            key: Document key
            changes: Attributes to set

        Returns:
            The full document after the update

        Raises:
            ClientError: If the document does not exist or the write fails
        """
        key_name = KEY_ATTRIBUTES[collection]
        changes = to_item({k: v for k, v in changes.items() if k != key_name})
        if not changes:
            raise ValueError('No attributes to update')

        names = {'#key': key_name}
        values = {}
        assignments = []
        for index, (attribute, value) in enumerate(changes.items()):
            names[f"#a{index}"] = attribute
            values[f":v{index}"] = value
            assignments.append(f"#a{index} = :v{index}")

        try:
            response = self.table(collection).update_item(
                Key={key_name: key},
                UpdateExpression='SET ' + ', '.join(assignments),
                ConditionExpression='attribute_exists(#key)',
                ExpressionAttributeNames=names,
                ExpressionAttributeValues=values,
                ReturnValues='ALL_NEW',
            )
        except ClientError as e:
            logger.error(f"Error updating {collection} document {key}: {e}")
            raise

        logger.info(f"Updated {collection} document {key}")
        return from_item(response['Attributes'])

    def delete_document(self, collection: str, key: str) -> Optional[Dict[str, Any]]:
        """
        Delete a document.

        Returns:
            The deleted document, or None if none existed
        """
        key_name = KEY_ATTRIBUTES[collection]
        try:
            response = self.table(collection).delete_item(
                Key={key_name: key},
                ReturnValues='ALL_OLD',
            )
        except ClientError as e:
            logger.error(f"Error deleting {collection} document {key}: {e}")
            raise

        old = response.get('Attributes')
        logger.info(f"Delete {collection} document {key}: {'done' if old else 'not found'}")
        return from_item(old) if old else None

    def scan_documents(
        self, collection: str, filters: Optional[Dict[str, Any]] = None
    ) -> List[Dict[str, Any]]:
        """
        Retrieve all documents in a collection using Scan.

        Args:
            collection: Collection name
            filters: Optional attribute equality filters

        Returns:
            List of documents
        """
        logger.info(f"Scanning {collection} table")
        scan_kwargs = {}
        if filters:
            condition = None
            for attribute, value in filters.items():
                clause = Attr(attribute).eq(value)
                condition = clause if condition is None else condition & clause
            scan_kwargs['FilterExpression'] = condition

        table = self.table(collection)
        try:
            response = table.scan(**scan_kwargs)
            items = response.get('Items', [])

            # Handle pagination
            while 'LastEvaluatedKey' in response:
                response = table.scan(
                    ExclusiveStartKey=response['LastEvaluatedKey'],
                    **scan_kwargs
                )
                items.extend(response.get('Items', []))
        except ClientError as e:
            logger.error(f"Error scanning {collection} table: {e}")
            raise

        logger.info(f"Retrieved {len(items)} documents from {collection}")
        return [from_item(item) for item in items]
