"""Unit tests for the request form."""

import pytest
from unittest.mock import Mock
import sys
import os

# Add src directory to path
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..', '..', 'src'))

from liquidations.form import RequestForm
from liquidations.models import LiquidationItem, LiquidationRequest
from shared.exceptions import StorageError, ValidationError


class TestRequestForm:
    """Test cases for RequestForm."""

    @pytest.fixture
    def repository(self):
        repository = Mock()
        repository.save_request.side_effect = lambda request, items, replace_existing=False: request.model_copy(
            update={'items': items}
        )
        return repository

    @pytest.fixture
    def form(self, repository):
        return RequestForm(repository, 'user123')

    @pytest.fixture
    def existing(self):
        return LiquidationRequest(
            request_id='req1',
            user_id='user123',
            title='Conference trip',
            category='travel',
            total_amount=120.0,
            status='approved',
            submitted_date='2024-02-01T08:00:00+00:00',
            approved_date='2024-02-03T08:00:00+00:00',
            items=[
                LiquidationItem(item_id='i1', request_id='req1', description='Taxi',
                                quantity=2, unit_price=10.0, amount=20.0),
                LiquidationItem(item_id='i2', request_id='req1', description='Hotel',
                                quantity=1, unit_price=100.0, amount=100.0)
            ]
        )

    def test_starts_with_one_item(self, form):
        assert len(form.items) == 1
        assert form.currency == 'USD'
        assert form.total == 0

    def test_quantity_and_price_recompute_amount(self, form):
        item = form.items[0]

        form.update_item(item.item_id, 'unit_price', '12.5')
        form.update_item(item.item_id, 'quantity', 4)

        assert item.amount == 50.0
        assert item.quantity * item.unit_price == item.amount

    def test_amount_back_derives_unit_price(self, form):
        item = form.items[0]
        form.update_item(item.item_id, 'quantity', 4)

        form.update_item(item.item_id, 'amount', 100)

        assert item.unit_price == 25.0
        assert item.amount == 100.0

    def test_invalid_item_values_rejected(self, form):
        item_id = form.items[0].item_id

        with pytest.raises(ValidationError):
            form.update_item(item_id, 'quantity', 0)
        with pytest.raises(ValidationError):
            form.update_item(item_id, 'quantity', 1.5)
        with pytest.raises(ValidationError):
            form.update_item(item_id, 'unit_price', -1)
        with pytest.raises(ValidationError):
            form.update_item(item_id, 'amount', 'abc')

    def test_remove_item_keeps_last_row(self, form):
        first = form.items[0]
        second = form.add_item()

        assert form.remove_item(first.item_id) is True
        assert form.remove_item(second.item_id) is False
        assert [item.item_id for item in form.items] == [second.item_id]

    def test_total_sums_amounts(self, form):
        form.update_item(form.items[0].item_id, 'amount', 30)
        extra = form.add_item()
        form.update_item(extra.item_id, 'amount', 12.5)

        assert form.total == 42.5

    def test_submit_requires_title(self, form, repository):
        form.update_item(form.items[0].item_id, 'description', 'Taxi')

        with pytest.raises(ValidationError, match="Title is required"):
            form.submit()

        repository.save_request.assert_not_called()

    def test_submit_requires_described_item(self, form, repository):
        form.set_field('title', 'Trip')

        with pytest.raises(ValidationError, match="At least one item is required"):
            form.submit()

        repository.save_request.assert_not_called()

    def test_submit_creates_pending_request(self, form, repository):
        form.set_field('title', 'Trip')
        form.set_field('category', 'travel')
        first = form.items[0]
        form.update_item(first.item_id, 'description', 'Taxi')
        form.update_item(first.item_id, 'amount', 25)
        blank = form.add_item()
        form.update_item(blank.item_id, 'amount', 999)

        saved = form.submit()

        request, items = repository.save_request.call_args[0]
        assert repository.save_request.call_args[1] == {'replace_existing': False}
        assert request.user_id == 'user123'
        assert request.status.value == 'pending'
        assert request.submitted_date is not None
        # Blank-description row is dropped and excluded from the total
        assert len(items) == 1
        assert request.total_amount == 25
        assert items[0].request_id == request.request_id
        assert saved.items == items
        assert form.notifications[-1].description == "Request created successfully"

    def test_edit_loads_existing_items(self, existing, repository):
        form = RequestForm(repository, 'user123', editing=existing)

        assert form.title == 'Conference trip'
        assert [item.description for item in form.items] == ['Taxi', 'Hotel']
        assert form.total == 120

    def test_for_request(self, existing, repository):
        repository.get_request.return_value = existing

        form = RequestForm.for_request(repository, 'req1', 'user123')

        repository.get_request.assert_called_once_with('req1')
        assert form.editing is existing

    def test_submit_edit_replaces_items(self, existing, repository):
        form = RequestForm(repository, 'user123', editing=existing)
        form.remove_item('i2')
        form.update_item('i1', 'quantity', 3)

        form.submit()

        request, items = repository.save_request.call_args[0]
        assert repository.save_request.call_args[1] == {'replace_existing': True}
        assert request.request_id == 'req1'
        assert request.status.value == 'approved'
        assert request.approved_date == '2024-02-03T08:00:00+00:00'
        assert request.total_amount == 30
        assert len(items) == 1
        assert items[0].item_id != 'i1'
        assert form.notifications[-1].description == "Request updated successfully"

    def test_apply_payload(self, form):
        form.apply_payload({
            'title': 'Supplies',
            'currency': 'PHP',
            'items': [
                {'description': 'Paper', 'quantity': 3, 'unit_price': 2.5},
                {'description': 'Toner', 'quantity': 2, 'amount': 90}
            ]
        })

        assert form.title == 'Supplies'
        assert form.currency == 'PHP'
        assert [(i.quantity, i.unit_price, i.amount) for i in form.items] == [(3, 2.5, 7.5), (2, 45.0, 90.0)]

    def test_apply_payload_rejects_bad_items(self, form):
        with pytest.raises(ValidationError):
            form.apply_payload({'items': 'not a list'})

    def test_upload_receipt_sets_url(self, repository):
        receipts = Mock()
        receipts.upload_receipt.return_value = {
            's3_key': 'receipts/user123/abc.png',
            'receipt_url': 'https://cdn.example.com/receipts/user123/abc.png'
        }
        form = RequestForm(repository, 'user123', receipts=receipts)
        item_id = form.items[0].item_id

        url = form.upload_receipt(item_id, b'png', 'receipt.png', 'image/png')

        assert url == 'https://cdn.example.com/receipts/user123/abc.png'
        assert form.items[0].receipt_url == url
        assert form.uploading[item_id] is False
        assert item_id not in form.receipt_errors

    def test_upload_receipt_failure_is_recorded(self, repository):
        receipts = Mock()
        receipts.upload_receipt.side_effect = StorageError("Failed to upload file")
        form = RequestForm(repository, 'user123', receipts=receipts)
        item_id = form.items[0].item_id

        url = form.upload_receipt(item_id, b'png', 'receipt.png')

        assert url is None
        assert form.items[0].receipt_url is None
        assert form.receipt_errors[item_id] == "Failed to upload file"
        assert form.uploading[item_id] is False
        assert form.notifications[-1].variant == 'destructive'
