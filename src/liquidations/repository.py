"""Row store access for liquidation requests and their items."""

from typing import Any, Dict, Iterable, List, Optional
import logging
from boto3.dynamodb.conditions import Key, Attr

from shared.dates import utcnow, to_iso
from shared.dynamodb import MAX_TRANSACTION_ACTIONS
from shared.validators import validate_choice, validate_status, sanitize_string
from shared.exceptions import NotFoundError, ValidationError
from liquidations.models import (
    LiquidationItem,
    LiquidationRequest,
    RequesterProfile,
    RequestStatus
)

logger = logging.getLogger(__name__)

REQUESTS_BY_USER_INDEX = 'user-submitted-index'

# Header update + old item deletes + new item puts must fit one transaction
MAX_ITEMS_PER_REQUEST = 40

# Header fields that can be edited inline from the request list
EDITABLE_FIELDS = ['title', 'description', 'category', 'currency', 'notes', 'status']


class LiquidationRepository:
    """Queries and mutations over the liquidation tables."""

    def __init__(self, portal):
        """
        Initialize repository.

        Args:
            portal: Started PortalContext
        """
        self.requests_table = portal.requests_table
        self.items_table = portal.items_table
        self.profiles_table = portal.profiles_table

    def list_requests(
        self,
        viewer: RequesterProfile,
        start_date: Optional[str] = None,
        end_date: Optional[str] = None,
        category: Optional[str] = None
    ) -> List[LiquidationRequest]:
        """
        Fetch the requests visible to a viewer, newest first.

        Regular users only see their own rows; approvers and admins see all.
        Each request comes back with its items and requester profile.

        Args:
            viewer: Profile of the signed-in user
            start_date: Optional lower bound on submitted_date (ISO)
            end_date: Optional upper bound on submitted_date (ISO)
            category: Optional category equality filter

        Returns:
            List of requests
        """
        if viewer.is_privileged:
            conditions = self._date_conditions(Attr('submitted_date'), start_date, end_date)
            if category:
                conditions.append(Attr('category').eq(category))

            rows = self.requests_table.scan_all(filter_expression=self._combine(conditions))
        else:
            key_condition = Key('user_id').eq(viewer.user_id)
            for condition in self._date_conditions(Key('submitted_date'), start_date, end_date):
                key_condition = key_condition & condition

            rows = self.requests_table.query_all(
                key_condition,
                filter_expression=Attr('category').eq(category) if category else None,
                index_name=REQUESTS_BY_USER_INDEX,
                scan_forward=False  # Most recent first
            )

        profiles: Dict[str, Optional[RequesterProfile]] = {}
        requests = [self._expand(row, profiles) for row in rows]
        requests.sort(key=lambda request: request.submitted_date or '', reverse=True)

        logger.info(f"Fetched {len(requests)} requests for {viewer.user_id}")
        return requests

    def get_request(self, request_id: str) -> LiquidationRequest:
        """
        Get a request with its items and requester.

        Raises:
            NotFoundError: If the request does not exist
        """
        row = self.requests_table.get_item({'request_id': request_id})

        if not row:
            raise NotFoundError("Liquidation request not found")

        return self._expand(row, {})

    def list_items(self, request_id: str) -> List[LiquidationItem]:
        rows = self.items_table.query_all(Key('request_id').eq(request_id))
        return [LiquidationItem.from_row(row) for row in rows]

    def save_request(
        self,
        request: LiquidationRequest,
        items: List[LiquidationItem],
        replace_existing: bool = False
    ) -> LiquidationRequest:
        """
        Save a request header and replace its item set in one transaction.

        When replacing, the stored header fields are updated, every stored item
        is deleted and the given items are inserted. Otherwise the header and
        items are inserted. Either everything is written or nothing is.

        Args:
            request: Request header to save
            items: Complete item list (fresh item ids)
            replace_existing: True when editing an existing request

        Returns:
            Saved request with its items

        Raises:
            ValidationError: If there are too many items
            DatabaseError: If the transaction fails
        """
        if len(items) > MAX_ITEMS_PER_REQUEST:
            raise ValidationError(f"A request can have at most {MAX_ITEMS_PER_REQUEST} items")

        now = to_iso(utcnow())
        actions = []

        if replace_existing:
            existing = self.items_table.query_all(Key('request_id').eq(request.request_id))

            fields = {
                'title': request.title,
                'description': request.description,
                'category': request.category,
                'currency': request.currency,
                'notes': request.notes,
                'total_amount': request.total_amount,
                'updated_at': now
            }
            update_expr, expr_values, expr_names = self._set_expression(fields)

            actions.append(self.requests_table.update_action(
                key={'request_id': request.request_id},
                update_expression=update_expr,
                expression_values=expr_values,
                expression_names=expr_names,
                condition_expression='attribute_exists(request_id)'
            ))
            actions.extend(
                self.items_table.delete_action({'request_id': row['request_id'], 'item_id': row['item_id']})
                for row in existing
            )
            request = request.model_copy(update={'updated_at': now})
        else:
            request = request.model_copy(update={'created_at': now, 'updated_at': now})
            actions.append(self.requests_table.put_action(request.to_row()))

        actions.extend(self.items_table.put_action(item.to_row()) for item in items)

        self.requests_table.transact_write(actions)

        logger.info(
            f"{'Updated' if replace_existing else 'Created'} request {request.request_id} "
            f"with {len(items)} items"
        )
        return request.model_copy(update={'items': list(items)})

    def update_field(self, request_id: str, field: str, value: Any) -> LiquidationRequest:
        """
        Update a single header field.

        Raises:
            ValidationError: If the field is not editable or the value is invalid
            DatabaseError: If the request no longer exists or the update fails
        """
        validate_choice(field, EDITABLE_FIELDS, 'field')

        if field == 'status':
            fields = self._status_fields(validate_status(value))
        elif field == 'title':
            title = sanitize_string(value, max_length=200)
            if not title:
                raise ValidationError("Title is required")
            fields = {'title': title}
        else:
            fields = {field: sanitize_string(value, max_length=2000)}

        fields['updated_at'] = to_iso(utcnow())
        update_expr, expr_values, expr_names = self._set_expression(fields)

        row = self.requests_table.update_item(
            key={'request_id': request_id},
            update_expression=update_expr,
            expression_values=expr_values,
            expression_names=expr_names,
            condition_expression='attribute_exists(request_id)'
        )

        logger.info(f"Updated {field} of request {request_id}")
        return LiquidationRequest.from_row(row)

    def update_status(self, request_ids: List[str], status: str) -> None:
        """
        Assign one status to many requests.

        Up to 100 requests are updated atomically in a single call.

        Raises:
            ValidationError: If the status is invalid
            DatabaseError: If the update fails
        """
        status = validate_status(status)
        fields = self._status_fields(status)
        fields['updated_at'] = to_iso(utcnow())
        update_expr, expr_values, expr_names = self._set_expression(fields)

        actions = [
            self.requests_table.update_action(
                key={'request_id': request_id},
                update_expression=update_expr,
                expression_values=expr_values,
                expression_names=expr_names,
                condition_expression='attribute_exists(request_id)'
            )
            for request_id in request_ids
        ]

        for chunk in self._chunks(actions, MAX_TRANSACTION_ACTIONS):
            self.requests_table.transact_write(chunk)

        logger.info(f"Set status {status} on {len(request_ids)} requests")

    def delete_requests(self, request_ids: List[str]) -> None:
        """Delete requests together with their items."""
        item_keys = []
        for request_id in request_ids:
            rows = self.items_table.query_all(Key('request_id').eq(request_id))
            item_keys.extend({'request_id': row['request_id'], 'item_id': row['item_id']} for row in rows)

        if item_keys:
            self.items_table.batch_delete(item_keys)
        self.requests_table.batch_delete([{'request_id': request_id} for request_id in request_ids])

        logger.info(f"Deleted {len(request_ids)} requests and {len(item_keys)} items")

    def insert_requests(self, requests: List[LiquidationRequest]) -> None:
        """Insert item-less request headers in one batch (spreadsheet import)."""
        now = to_iso(utcnow())
        rows = [
            request.model_copy(update={'created_at': now, 'updated_at': now}).to_row()
            for request in requests
        ]
        self.requests_table.batch_write(rows)

        logger.info(f"Inserted {len(rows)} requests")

    def count_by_status(self, status: str, viewer: RequesterProfile) -> int:
        """Count the requests in a status that the viewer can see."""
        status = validate_status(status)

        if viewer.is_privileged:
            return self.requests_table.count(filter_expression=Attr('status').eq(status))

        return self.requests_table.count(
            key_condition_expression=Key('user_id').eq(viewer.user_id),
            filter_expression=Attr('status').eq(status),
            index_name=REQUESTS_BY_USER_INDEX
        )

    def _expand(
        self,
        row: Dict[str, Any],
        profiles: Dict[str, Optional[RequesterProfile]]
    ) -> LiquidationRequest:
        """Attach items and the requester profile to a header row."""
        items = self.items_table.query_all(Key('request_id').eq(row['request_id']))

        user_id = row.get('user_id')
        if user_id and user_id not in profiles:
            profile_row = self.profiles_table.get_item({'user_id': user_id})
            profiles[user_id] = RequesterProfile.from_row(profile_row) if profile_row else None

        return LiquidationRequest.from_row(row, items=items, requester=profiles.get(user_id))

    @staticmethod
    def _status_fields(status: str) -> Dict[str, Any]:
        fields: Dict[str, Any] = {'status': status}
        if status == RequestStatus.APPROVED.value:
            fields['approved_date'] = to_iso(utcnow())
        return fields

    @staticmethod
    def _set_expression(fields: Dict[str, Any]):
        """Build a SET expression with placeholder names and values."""
        update_parts = []
        expr_values = {}
        expr_names = {}

        for key, value in fields.items():
            update_parts.append(f"#{key} = :{key}")
            expr_names[f'#{key}'] = key
            expr_values[f':{key}'] = value

        return "SET " + ", ".join(update_parts), expr_values, expr_names

    @staticmethod
    def _date_conditions(attribute, start_date: Optional[str], end_date: Optional[str]) -> List[Any]:
        if start_date and end_date:
            return [attribute.between(start_date, end_date)]
        elif start_date:
            return [attribute.gte(start_date)]
        elif end_date:
            return [attribute.lte(end_date)]
        return []

    @staticmethod
    def _combine(conditions: List[Any]) -> Optional[Any]:
        combined = None
        for condition in conditions:
            combined = condition if combined is None else combined & condition
        return combined

    @staticmethod
    def _chunks(values: List[Any], size: int) -> Iterable[List[Any]]:
        for start in range(0, len(values), size):
            yield values[start:start + size]
