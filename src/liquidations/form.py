"""Request form: header fields, item rows and the save path."""

import uuid
import logging
from typing import Any, Dict, List, Optional

from pydantic import BaseModel

from shared.dates import utcnow, to_iso
from shared.exceptions import PortalError, ValidationError
from shared.messages import Notification, failure, success, user_message
from shared.validators import validate_money, validate_quantity, sanitize_string
from liquidations.models import LiquidationItem, LiquidationRequest, RequestStatus
from liquidations.repository import LiquidationRepository

logger = logging.getLogger(__name__)

HEADER_FIELDS = ['title', 'description', 'category', 'currency', 'notes']

ITEM_FIELDS = ['description', 'category', 'quantity', 'unit_price', 'amount', 'receipt_url']


class FormItem(BaseModel):
    """Editable item row; amount tracks quantity × unit price."""

    item_id: str
    description: str = ''
    category: str = ''
    quantity: int = 1
    unit_price: float = 0.0
    amount: float = 0.0
    receipt_url: Optional[str] = None


def _new_item() -> FormItem:
    return FormItem(item_id=str(uuid.uuid4()))


class RequestForm:
    """
    Form state for creating or editing a liquidation request.

    Item amounts are kept consistent as they are edited: changing quantity or
    unit price recomputes the amount, and changing the amount back-derives the
    unit price when quantity is positive.
    """

    def __init__(
        self,
        repository: LiquidationRepository,
        user_id: str,
        editing: Optional[LiquidationRequest] = None,
        receipts=None
    ):
        """
        Args:
            repository: Row store access
            user_id: Owner of new requests
            editing: Request being edited, None when creating
            receipts: Optional ReceiptUploadService for attachments
        """
        self.repository = repository
        self.user_id = user_id
        self.editing = editing
        self.receipts = receipts

        self.title = ''
        self.description = ''
        self.category = ''
        self.currency = 'USD'
        self.notes = ''
        self.items: List[FormItem] = [_new_item()]

        self.uploading: Dict[str, bool] = {}
        self.receipt_errors: Dict[str, str] = {}
        self.notifications: List[Notification] = []

        if editing is not None:
            self.title = editing.title
            self.description = editing.description
            self.category = editing.category
            self.currency = editing.currency or 'USD'
            self.notes = editing.notes
            if editing.items:
                self.items = [
                    FormItem(
                        item_id=item.item_id,
                        description=item.description,
                        category=item.category,
                        quantity=item.quantity,
                        unit_price=item.unit_price,
                        amount=item.amount,
                        receipt_url=item.receipt_url
                    )
                    for item in editing.items
                ]

    @classmethod
    def for_request(
        cls,
        repository: LiquidationRepository,
        request_id: str,
        user_id: str,
        receipts=None
    ) -> 'RequestForm':
        """Load an existing request and its items for editing."""
        request = repository.get_request(request_id)
        return cls(repository, user_id, editing=request, receipts=receipts)

    # Header and items

    def set_field(self, field: str, value: Any) -> None:
        if field not in HEADER_FIELDS:
            raise ValidationError(f"Unknown field: {field}")
        setattr(self, field, sanitize_string(value, max_length=2000))

    def add_item(self) -> FormItem:
        item = _new_item()
        self.items.append(item)
        return item

    def remove_item(self, item_id: str) -> bool:
        """Remove an item row; the last remaining row is kept."""
        if len(self.items) <= 1:
            return False

        remaining = [item for item in self.items if item.item_id != item_id]
        if len(remaining) == len(self.items):
            return False

        self.items = remaining
        return True

    def get_item(self, item_id: str) -> FormItem:
        for item in self.items:
            if item.item_id == item_id:
                return item
        raise ValidationError(f"Unknown item: {item_id}")

    def update_item(self, item_id: str, field: str, value: Any) -> FormItem:
        """
        Edit one field of an item row, keeping amount consistent.

        Raises:
            ValidationError: If the field or value is invalid
        """
        if field not in ITEM_FIELDS:
            raise ValidationError(f"Unknown item field: {field}")

        item = self.get_item(item_id)

        if field == 'quantity':
            item.quantity = validate_quantity(value)
            item.amount = item.quantity * item.unit_price
        elif field == 'unit_price':
            item.unit_price = validate_money(value, 'Unit price')
            item.amount = item.quantity * item.unit_price
        elif field == 'amount':
            item.amount = validate_money(value, 'Amount')
            if item.quantity > 0:
                item.unit_price = item.amount / item.quantity
        elif field == 'receipt_url':
            item.receipt_url = value or None
        else:
            setattr(item, field, sanitize_string(value, max_length=2000))

        return item

    @property
    def total(self) -> float:
        """Sum of the current item amounts."""
        return sum(item.amount or 0 for item in self.items)

    def apply_payload(self, payload: Dict[str, Any]) -> 'RequestForm':
        """
        Fill the form from a JSON body.

        Header fields are copied when present. When 'items' is present it
        replaces the item rows; each row's quantity and unit price are applied
        first, then an explicit amount (if given) back-derives the unit price.
        """
        for field in HEADER_FIELDS:
            if field in payload:
                self.set_field(field, payload[field])

        if 'items' in payload:
            rows = payload['items'] or []
            if not isinstance(rows, list):
                raise ValidationError("Items must be a list")

            self.items = []
            for row in rows:
                if not isinstance(row, dict):
                    raise ValidationError("Each item must be an object")
                item = self.add_item()
                for field in ('description', 'category', 'receipt_url'):
                    if field in row:
                        self.update_item(item.item_id, field, row[field])
                self.update_item(item.item_id, 'quantity', row.get('quantity', 1))
                self.update_item(item.item_id, 'unit_price', row.get('unit_price', 0))
                if 'amount' in row and row['amount'] not in (None, ''):
                    self.update_item(item.item_id, 'amount', row['amount'])

            if not self.items:
                self.add_item()

        return self

    # Receipts

    def upload_receipt(
        self,
        item_id: str,
        content: bytes,
        filename: str,
        content_type: Optional[str] = None
    ) -> Optional[str]:
        """
        Attach a receipt file to an item.

        Failures are recorded against the item and do not raise.

        Returns:
            Public URL of the receipt, or None when the upload failed
        """
        item = self.get_item(item_id)
        self.uploading[item_id] = True
        self.receipt_errors.pop(item_id, None)

        try:
            if self.receipts is None:
                raise ValidationError("Receipt uploads are not available")

            receipt = self.receipts.upload_receipt(
                user_id=self.user_id,
                content=content,
                filename=filename,
                content_type=content_type
            )
            item.receipt_url = receipt['receipt_url']
            self.notifications.append(success("Receipt uploaded successfully"))
            return item.receipt_url
        except PortalError as e:
            logger.error(f"Error uploading receipt for item {item_id}: {e}")
            self.receipt_errors[item_id] = user_message(e, "Failed to upload receipt")
            self.notifications.append(failure("Failed to upload receipt"))
            return None
        finally:
            self.uploading[item_id] = False

    # Submission

    def validate(self) -> List[FormItem]:
        """
        Check the form locally and return the items that will be saved.

        Raises:
            ValidationError: If the title is empty or no item has a description
        """
        if not self.title.strip():
            raise ValidationError("Title is required")

        kept = [item for item in self.items if item.description.strip()]
        if not kept:
            raise ValidationError("At least one item is required")

        return kept

    def submit(self) -> LiquidationRequest:
        """
        Validate and save the request with its items.

        Items with an empty description are dropped, and the saved total is the
        sum of the remaining items. Editing replaces the whole item set.

        Raises:
            ValidationError: If local validation fails (nothing is sent)
            DatabaseError: If the save fails
        """
        kept = self.validate()
        total_amount = sum(item.amount for item in kept)

        if self.editing is not None:
            request = self.editing.model_copy(update={
                'title': self.title.strip(),
                'description': self.description,
                'category': self.category,
                'currency': self.currency or 'USD',
                'notes': self.notes,
                'total_amount': total_amount,
                'items': [],
                'requester': None
            })
        else:
            request = LiquidationRequest(
                request_id=str(uuid.uuid4()),
                user_id=self.user_id,
                title=self.title.strip(),
                description=self.description,
                category=self.category,
                currency=self.currency or 'USD',
                notes=self.notes,
                total_amount=total_amount,
                status=RequestStatus.PENDING,
                submitted_date=to_iso(utcnow())
            )

        # Fresh ids: stored items are replaced, never diffed
        items = [
            LiquidationItem(
                item_id=str(uuid.uuid4()),
                request_id=request.request_id,
                description=item.description.strip(),
                category=item.category,
                quantity=item.quantity,
                unit_price=item.unit_price,
                amount=item.amount,
                receipt_url=item.receipt_url
            )
            for item in kept
        ]

        saved = self.repository.save_request(request, items, replace_existing=self.editing is not None)

        self.notifications.append(success(
            "Request updated successfully" if self.editing is not None else "Request created successfully"
        ))
        return saved
