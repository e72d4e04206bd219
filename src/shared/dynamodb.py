"""Table access for the portal's DynamoDB tables."""

import logging
from contextlib import contextmanager
from decimal import Decimal
from typing import Any, Dict, Iterator, List, Optional

import boto3
from botocore.exceptions import BotoCoreError, ClientError

from .exceptions import DatabaseError

logger = logging.getLogger(__name__)

# DynamoDB rejects transactions with more actions than this
MAX_TRANSACTION_ACTIONS = 100


def to_store(value: Any) -> Any:
    """Floats become Decimals; DynamoDB refuses binary floats."""
    if isinstance(value, dict):
        return {k: to_store(v) for k, v in value.items()}
    if isinstance(value, list):
        return [to_store(v) for v in value]
    if isinstance(value, float):
        return Decimal(str(value))
    return value


def from_store(value: Any) -> Any:
    """Decimals become ints when whole, floats otherwise."""
    if isinstance(value, dict):
        return {k: from_store(v) for k, v in value.items()}
    if isinstance(value, list):
        return [from_store(v) for v in value]
    if isinstance(value, Decimal):
        return int(value) if value % 1 == 0 else float(value)
    return value


class DynamoDBClient:
    """
    One table, plain-dict rows in and out.

    Every failed call is logged and raised as DatabaseError. The ``*_action``
    builders produce TransactItems entries with plain values; the resource
    client serializes them, and one ``transact_write`` can span several tables.
    """

    def __init__(self, table_name: str, endpoint_url: Optional[str] = None):
        self.table_name = table_name
        self.dynamodb = boto3.resource('dynamodb', **({'endpoint_url': endpoint_url} if endpoint_url else {}))
        self.table = self.dynamodb.Table(table_name)

    @contextmanager
    def _call(self, operation: str):
        try:
            yield
        except (BotoCoreError, ClientError) as e:
            logger.error(f"{operation} on {self.table_name} failed: {e}")
            raise DatabaseError(f"{operation} on {self.table_name} failed: {e}")

    def put_item(self, item: Dict[str, Any]) -> Dict[str, Any]:
        """Write a whole row, replacing any row with the same key."""
        row = to_store(item)
        with self._call('put_item'):
            self.table.put_item(Item=row)
        return from_store(row)

    def get_item(self, key: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        with self._call('get_item'):
            row = self.table.get_item(Key=key).get('Item')
        return from_store(row) if row else None

    def update_item(
        self,
        key: Dict[str, Any],
        update_expression: str,
        expression_values: Dict[str, Any],
        expression_names: Optional[Dict[str, str]] = None,
        condition_expression: Optional[str] = None
    ) -> Dict[str, Any]:
        """
        Apply a SET expression and return the row as stored afterwards.

        Args:
            key: Primary key of the row
            update_expression: e.g. ``SET #status = :status``
            expression_values: Values for the ``:`` placeholders
            expression_names: Attribute names for the ``#`` placeholders
            condition_expression: Guard such as ``attribute_exists(request_id)``

        Raises:
            DatabaseError: If the call fails or the guard does not hold
        """
        params = self._expression_params(update_expression, expression_values, expression_names,
                                         condition_expression)
        with self._call('update_item'):
            response = self.table.update_item(Key=key, ReturnValues='ALL_NEW', **params)
        return from_store(response['Attributes'])

    def query_all(
        self,
        key_condition_expression: Any,
        filter_expression: Optional[Any] = None,
        index_name: Optional[str] = None,
        scan_forward: bool = True
    ) -> List[Dict[str, Any]]:
        """Rows matching a key condition, across every page."""
        params = {'KeyConditionExpression': key_condition_expression, 'ScanIndexForward': scan_forward}
        if filter_expression is not None:
            params['FilterExpression'] = filter_expression
        if index_name:
            params['IndexName'] = index_name

        return [from_store(row) for page in self._pages('query', params) for row in page.get('Items', [])]

    def scan_all(self, filter_expression: Optional[Any] = None) -> List[Dict[str, Any]]:
        """Every row of the table passing the filter."""
        params = {} if filter_expression is None else {'FilterExpression': filter_expression}
        return [from_store(row) for page in self._pages('scan', params) for row in page.get('Items', [])]

    def count(
        self,
        key_condition_expression: Optional[Any] = None,
        filter_expression: Optional[Any] = None,
        index_name: Optional[str] = None
    ) -> int:
        """
        Count matching rows without fetching them.

        A key condition makes this a query, otherwise it scans the table.
        """
        params: Dict[str, Any] = {'Select': 'COUNT'}
        if key_condition_expression is not None:
            params['KeyConditionExpression'] = key_condition_expression
        if filter_expression is not None:
            params['FilterExpression'] = filter_expression
        if index_name:
            params['IndexName'] = index_name

        operation = 'query' if key_condition_expression is not None else 'scan'
        return sum(page.get('Count', 0) for page in self._pages(operation, params))

    def batch_write(self, items: List[Dict[str, Any]]) -> None:
        """Put many rows; boto3 chunks them and resends unprocessed ones."""
        with self._call('batch_write'), self.table.batch_writer() as batch:
            for item in items:
                batch.put_item(Item=to_store(item))

    def batch_delete(self, keys: List[Dict[str, Any]]) -> None:
        with self._call('batch_delete'), self.table.batch_writer() as batch:
            for key in keys:
                batch.delete_item(Key=key)

    def put_action(self, item: Dict[str, Any]) -> Dict[str, Any]:
        return {'Put': {'TableName': self.table_name, 'Item': to_store(item)}}

    def delete_action(self, key: Dict[str, Any]) -> Dict[str, Any]:
        return {'Delete': {'TableName': self.table_name, 'Key': to_store(key)}}

    def update_action(
        self,
        key: Dict[str, Any],
        update_expression: str,
        expression_values: Dict[str, Any],
        expression_names: Optional[Dict[str, str]] = None,
        condition_expression: Optional[str] = None
    ) -> Dict[str, Any]:
        """Transactional counterpart of update_item; see its arguments."""
        update = {'TableName': self.table_name, 'Key': to_store(key)}
        update.update(self._expression_params(update_expression, expression_values, expression_names,
                                              condition_expression))
        return {'Update': update}

    def transact_write(self, actions: List[Dict[str, Any]]) -> None:
        """
        Apply actions from put_action/update_action/delete_action atomically.

        Either every action lands or none does.

        Raises:
            DatabaseError: If there are too many actions or DynamoDB cancels the transaction
        """
        if not actions:
            return

        if len(actions) > MAX_TRANSACTION_ACTIONS:
            raise DatabaseError(
                f"Transaction has {len(actions)} actions; the limit is {MAX_TRANSACTION_ACTIONS}"
            )

        with self._call('transact_write_items'):
            self.dynamodb.meta.client.transact_write_items(TransactItems=actions)

    def _pages(self, operation: str, params: Dict[str, Any]) -> Iterator[Dict[str, Any]]:
        """Yield raw responses of a query or scan until LastEvaluatedKey runs out."""
        method = getattr(self.table, operation)
        params = dict(params)

        while True:
            with self._call(operation):
                response = method(**params)
            yield response

            last_key = response.get('LastEvaluatedKey')
            if not last_key:
                return
            params['ExclusiveStartKey'] = last_key

    def _expression_params(self, update_expression, expression_values, expression_names,
                           condition_expression) -> Dict[str, Any]:
        values = to_store(expression_values)
        params = {'UpdateExpression': update_expression, 'ExpressionAttributeValues': values}
        if expression_names:
            params['ExpressionAttributeNames'] = expression_names
        if condition_expression:
            params['ConditionExpression'] = condition_expression
        return params
