"""Request list view: fetched rows, predicates, selection and inline edits."""

import logging
from typing import Callable, List, Optional, Tuple

from pydantic import BaseModel

from shared.dates import utcnow
from shared.exceptions import AuthorizationError, PortalError
from shared.messages import Notification, failure, success, user_message
from shared.validators import validate_choice, validate_status, VALID_STATUSES
from liquidations.filters import (
    ALL,
    DATE_BUCKETS,
    SORTABLE_FIELDS,
    SORT_ORDERS,
    filter_requests,
    sort_requests
)
from liquidations.models import LiquidationRequest, RequesterProfile
from liquidations.repository import EDITABLE_FIELDS, LiquidationRepository
from spreadsheets import adapter

logger = logging.getLogger(__name__)


class EditSession(BaseModel):
    """The single (row, field) pair being edited inline."""

    request_id: str
    field: str
    value: str = ''


class RequestListView:
    """
    Liquidation request table state.

    The visible rows are re-derived from the fetched rows whenever the rows
    or any predicate change. Remote failures never raise out of the view;
    they leave the rows as they were, add an error notification and are kept
    in ``last_error``.
    """

    def __init__(
        self,
        repository: LiquidationRepository,
        viewer: RequesterProfile,
        clock: Callable = utcnow
    ):
        self.repository = repository
        self.viewer = viewer
        self.clock = clock

        self.rows: List[LiquidationRequest] = []
        self.visible: List[LiquidationRequest] = []
        self.search_term = ''
        self.status_filter = ALL
        self.category_filter = ALL
        self.date_filter = ALL
        self.sort_by = 'submitted_date'
        self.sort_order = 'desc'

        self.selected: List[str] = []
        self.editing: Optional[EditSession] = None
        self.notifications: List[Notification] = []
        self.last_error: Optional[PortalError] = None

    # Fetching

    def refresh(self) -> bool:
        """Refetch every visible row from the store."""
        try:
            rows = self.repository.list_requests(self.viewer)
        except PortalError as e:
            logger.error(f"Error fetching liquidations: {e}")
            self.last_error = e
            self.notifications.append(failure("Failed to fetch liquidation requests"))
            return False

        self.rows = rows
        known = {row.request_id for row in rows}
        self.selected = [request_id for request_id in self.selected if request_id in known]
        self._recompute()
        return True

    @property
    def categories(self) -> List[str]:
        """Distinct non-empty categories of the fetched rows, first seen first."""
        seen = []
        for row in self.rows:
            if row.category and row.category not in seen:
                seen.append(row.category)
        return seen

    # Predicates

    def set_search(self, term: Optional[str]) -> None:
        self.search_term = (term or '').strip()
        self._recompute()

    def set_status_filter(self, status: str) -> None:
        self.status_filter = validate_choice(status, [ALL] + VALID_STATUSES, 'status filter')
        self._recompute()

    def set_category_filter(self, category: Optional[str]) -> None:
        self.category_filter = category or ALL
        self._recompute()

    def set_date_filter(self, bucket: str) -> None:
        self.date_filter = validate_choice(bucket, DATE_BUCKETS, 'date filter')
        self._recompute()

    def set_sort(self, field: str, order: Optional[str] = None) -> None:
        self.sort_by = validate_choice(field, SORTABLE_FIELDS, 'sort field')
        if order is not None:
            self.sort_order = validate_choice(order, SORT_ORDERS, 'sort order')
        self._recompute()

    def _recompute(self) -> None:
        filtered = filter_requests(
            self.rows,
            now=self.clock(),
            search=self.search_term,
            status=self.status_filter,
            category=self.category_filter,
            date_bucket=self.date_filter
        )
        self.visible = sort_requests(filtered, self.sort_by, self.sort_order)

    # Selection

    def toggle_selection(self, request_id: str) -> None:
        if request_id in self.selected:
            self.selected.remove(request_id)
        else:
            self.selected.append(request_id)

    def select_all(self) -> None:
        """Select every visible row, or clear when they already are."""
        if self.visible and len(self.selected) == len(self.visible):
            self.selected = []
        else:
            self.selected = [row.request_id for row in self.visible]

    def clear_selection(self) -> None:
        self.selected = []

    # Bulk actions

    def bulk_update_status(self, status: str) -> bool:
        """Assign a status to every selected row, then refetch."""
        if not self.selected:
            return False

        try:
            status = validate_status(status)
            self._require_reviewer()
            self.repository.update_status(list(self.selected), status)
        except PortalError as e:
            logger.error(f"Error bulk updating: {e}")
            self.last_error = e
            self.notifications.append(failure(user_message(e, "Failed to update items")))
            return False

        count = len(self.selected)
        self.notifications.append(success(f"Updated {count} items to {status}"))
        self.selected = []
        self.refresh()
        return True

    def bulk_delete(self) -> bool:
        """Delete every selected row, then refetch."""
        if not self.selected:
            return False

        try:
            self.repository.delete_requests(list(self.selected))
        except PortalError as e:
            logger.error(f"Error bulk deleting: {e}")
            self.last_error = e
            self.notifications.append(failure("Failed to delete items"))
            return False

        count = len(self.selected)
        self.notifications.append(success(f"Deleted {count} items"))
        self.selected = []
        self.refresh()
        return True

    # Inline editing

    def start_edit(self, request_id: str, field: str, current_value: Optional[str] = None) -> None:
        """Open an edit session, replacing any session already open."""
        validate_choice(field, EDITABLE_FIELDS, 'field')
        self.editing = EditSession(request_id=request_id, field=field, value=current_value or '')

    def set_edit_value(self, value: str) -> None:
        if self.editing is not None:
            self.editing.value = value

    def commit_edit(self) -> bool:
        """Save the pending value of the open session, then refetch."""
        if self.editing is None:
            return False

        try:
            if self.editing.field == 'status':
                self._require_reviewer()
            self.repository.update_field(self.editing.request_id, self.editing.field, self.editing.value)
        except PortalError as e:
            logger.error(f"Error updating: {e}")
            self.last_error = e
            self.notifications.append(failure(user_message(e, "Failed to update")))
            return False

        self.notifications.append(success("Updated successfully"))
        self.editing = None
        self.refresh()
        return True

    def cancel_edit(self) -> None:
        self.editing = None

    # Spreadsheets

    def export_workbook(self) -> Tuple[str, bytes]:
        """Export the visible rows; returns (filename, xlsx bytes)."""
        filename, content = adapter.export_requests(self.visible, today=self.clock().date())
        self.notifications.append(success("Excel file downloaded successfully"))
        return filename, content

    def import_workbook(self, content: bytes, filename: str) -> int:
        """
        Insert the rows of an uploaded workbook as requests owned by the viewer.

        Returns:
            Number of imported rows, 0 on failure
        """
        try:
            requests = adapter.parse_import(content, filename, user_id=self.viewer.user_id, now=self.clock())
            self.repository.insert_requests(requests)
        except PortalError as e:
            logger.error(f"Error importing: {e}")
            self.last_error = e
            self.notifications.append(failure(user_message(e, "Failed to import Excel file")))
            return 0

        self.notifications.append(success(f"Imported {len(requests)} records successfully"))
        self.refresh()
        return len(requests)

    def _require_reviewer(self) -> None:
        if not self.viewer.is_privileged:
            raise AuthorizationError("Only approvers and admins can change request status")
