"""Unit tests for Lambda handler routing and error envelopes."""

import base64
import json
import pytest
from unittest.mock import Mock, patch
import sys
import os

# Add src directory to path
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..', '..', 'src'))

from liquidations import handler as liquidations_handler
from analytics import handler as analytics_handler
from auth import handler as auth_handler
from liquidations.models import LiquidationRequest, RequesterProfile
from shared.exceptions import AuthenticationError, ConflictError


def make_event(method, path, body=None, query=None, user_id='user123', path_id=None):
    event = {
        'httpMethod': method,
        'path': path,
        'body': json.dumps(body) if body is not None else None,
        'queryStringParameters': query,
        'pathParameters': {'id': path_id} if path_id else None,
        'requestContext': {'authorizer': {'claims': {}}}
    }
    if user_id:
        event['requestContext']['authorizer']['claims'] = {
            'sub': user_id,
            'email': 'maria@example.com',
            'name': 'Maria'
        }
    return event


def body_of(response):
    return json.loads(response['body'])


def make_request(request_id, amount, status='pending'):
    return LiquidationRequest(
        request_id=request_id,
        user_id='user123',
        title=f'Request {request_id}',
        total_amount=amount,
        status=status,
        submitted_date='2024-05-30T10:00:00+00:00'
    )


class TestLiquidationsHandler:
    """Test cases for the liquidations handler."""

    @pytest.fixture
    def viewer(self):
        return RequesterProfile(user_id='user123', full_name='Maria', role='user')

    @pytest.fixture
    def repository(self):
        repository = Mock()
        repository.list_requests.return_value = [
            make_request('r1', 300, 'approved'),
            make_request('r2', 100, 'pending'),
            make_request('r3', 500, 'approved')
        ]
        return repository

    @pytest.fixture
    def wired(self, viewer, repository):
        with patch.object(liquidations_handler, 'portal') as mock_portal, \
                patch.object(liquidations_handler, 'ProfileService') as mock_profiles, \
                patch.object(liquidations_handler, 'LiquidationRepository') as mock_repository, \
                patch.object(liquidations_handler, 'ReceiptUploadService'):
            mock_profiles.return_value.get_or_create.return_value = viewer
            mock_repository.return_value = repository
            yield mock_portal

    def test_unauthorized_without_claims(self, wired):
        response = liquidations_handler.lambda_handler(make_event('GET', '/liquidations', user_id=None), None)

        assert response['statusCode'] == 401

    def test_unknown_route(self, wired):
        response = liquidations_handler.lambda_handler(make_event('DELETE', '/liquidations'), None)

        assert response['statusCode'] == 404

    def test_list_filters_and_sorts(self, wired):
        event = make_event('GET', '/liquidations', query={
            'status': 'approved', 'sort_by': 'total_amount', 'sort_order': 'desc'
        })

        response = liquidations_handler.lambda_handler(event, None)

        assert response['statusCode'] == 200
        data = body_of(response)['data']
        assert [row['request_id'] for row in data['liquidations']] == ['r3', 'r1']
        assert data['total'] == 3

    def test_list_invalid_sort_is_400(self, wired):
        response = liquidations_handler.lambda_handler(
            make_event('GET', '/liquidations', query={'sort_by': 'password_hash'}), None
        )

        assert response['statusCode'] == 400

    def test_bulk_status_forbidden_for_user(self, wired, repository):
        event = make_event('POST', '/liquidations/bulk-status', body={'ids': ['r2'], 'status': 'approved'})

        response = liquidations_handler.lambda_handler(event, None)

        assert response['statusCode'] == 403
        repository.update_status.assert_not_called()

    def test_bulk_status_by_approver(self, wired, repository):
        approver = RequesterProfile(user_id='boss', full_name='Boss', role='approver')
        with patch.object(liquidations_handler, 'ProfileService') as mock_profiles:
            mock_profiles.return_value.get_or_create.return_value = approver
            event = make_event('POST', '/liquidations/bulk-status',
                               body={'ids': ['r2', 'r1', 'unknown'], 'status': 'approved'})

            response = liquidations_handler.lambda_handler(event, None)

        assert response['statusCode'] == 200
        repository.update_status.assert_called_once_with(['r2', 'r1'], 'approved')

    def test_create_request(self, wired, repository):
        repository.save_request.side_effect = lambda request, items, replace_existing=False: request.model_copy(
            update={'items': items}
        )
        event = make_event('POST', '/liquidations', body={
            'title': 'Trip',
            'items': [{'description': 'Taxi', 'quantity': 2, 'unit_price': 15}]
        })

        response = liquidations_handler.lambda_handler(event, None)

        assert response['statusCode'] == 201
        data = body_of(response)['data']
        assert data['total_amount'] == 30
        assert data['status'] == 'pending'

    def test_create_without_title_is_400(self, wired, repository):
        event = make_event('POST', '/liquidations', body={'items': [{'description': 'Taxi'}]})

        response = liquidations_handler.lambda_handler(event, None)

        assert response['statusCode'] == 400
        assert body_of(response)['error']['message'] == "Title is required"
        repository.save_request.assert_not_called()

    def test_get_other_users_request_is_404(self, wired, repository):
        repository.get_request.return_value = make_request('r9', 10).model_copy(update={'user_id': 'someone'})

        response = liquidations_handler.lambda_handler(
            make_event('GET', '/liquidations/r9', path_id='r9'), None
        )

        assert response['statusCode'] == 404

    def test_pending_count(self, wired, repository):
        repository.count_by_status.return_value = 4

        response = liquidations_handler.lambda_handler(make_event('GET', '/liquidations/pending-count'), None)

        assert body_of(response)['data'] == {'count': 4}

    def test_export_is_base64_xlsx(self, wired):
        response = liquidations_handler.lambda_handler(make_event('GET', '/liquidations/export'), None)

        assert response['statusCode'] == 200
        assert response['isBase64Encoded'] is True
        assert 'liquidations_' in response['headers']['Content-Disposition']
        assert base64.b64decode(response['body'])[:2] == b'PK'

    def test_import_csv(self, wired, repository):
        csv_data = base64.b64encode(b'Title,Amount\nTaxi,12\nHotel,80\n').decode('ascii')
        event = make_event('POST', '/liquidations/import', body={'file_data': csv_data, 'filename': 'batch.csv'})

        response = liquidations_handler.lambda_handler(event, None)

        assert response['statusCode'] == 201
        assert body_of(response)['data'] == {'imported': 2}
        inserted = repository.insert_requests.call_args[0][0]
        assert all(request.user_id == 'user123' for request in inserted)


class TestAnalyticsHandler:
    """Test cases for the analytics handler."""

    @pytest.fixture
    def wired(self):
        viewer = RequesterProfile(user_id='user123', full_name='Maria')
        with patch.object(analytics_handler, 'portal'), \
                patch.object(analytics_handler, 'ProfileService') as mock_profiles, \
                patch.object(analytics_handler, 'LiquidationRepository') as mock_repository:
            mock_profiles.return_value.get_or_create.return_value = viewer
            mock_repository.return_value.list_requests.return_value = [make_request('r1', 100)]
            yield mock_repository.return_value

    def test_report(self, wired):
        response = analytics_handler.lambda_handler(make_event('GET', '/analytics', query={'days': '7'}), None)

        assert response['statusCode'] == 200
        data = body_of(response)['data']
        assert data['total_requests'] == 1
        assert data['days'] == 7
        assert data['top_requesters'] == []

    def test_invalid_range_is_400(self, wired):
        response = analytics_handler.lambda_handler(make_event('GET', '/analytics', query={'days': '14'}), None)

        assert response['statusCode'] == 400
        wired.list_requests.assert_not_called()

    def test_export(self, wired):
        response = analytics_handler.lambda_handler(make_event('GET', '/analytics/export'), None)

        assert response['statusCode'] == 200
        assert 'liquidation_analytics_' in response['headers']['Content-Disposition']


class TestAuthHandler:
    """Test cases for the auth handler."""

    @pytest.fixture
    def sessions(self):
        with patch.object(auth_handler, 'portal') as mock_portal, \
                patch.object(auth_handler, 'ProfileService'):
            yield mock_portal.open_session.return_value.__enter__.return_value

    def test_register_duplicate_email(self, sessions):
        sessions.sign_up.side_effect = ConflictError("User already registered")
        event = make_event('POST', '/auth/register', user_id=None,
                           body={'email': 'maria@example.com', 'password': 'secret1', 'full_name': 'Maria'})

        response = auth_handler.lambda_handler(event, None)

        assert response['statusCode'] == 409
        assert body_of(response)['error']['message'] == "This email is already registered. Try signing in instead."

    def test_register_missing_fields(self, sessions):
        event = make_event('POST', '/auth/register', user_id=None, body={'email': 'maria@example.com'})

        response = auth_handler.lambda_handler(event, None)

        assert response['statusCode'] == 400
        sessions.sign_up.assert_not_called()

    def test_login_bad_credentials(self, sessions):
        sessions.sign_in.side_effect = AuthenticationError("Invalid login credentials")
        event = make_event('POST', '/auth/login', user_id=None,
                           body={'email': 'maria@example.com', 'password': 'wrong1'})

        response = auth_handler.lambda_handler(event, None)

        assert response['statusCode'] == 401
        assert body_of(response)['error']['message'] == "Invalid login credentials"

    def test_logout_requires_token(self, sessions):
        response = auth_handler.lambda_handler(make_event('POST', '/auth/logout'), None)

        assert response['statusCode'] == 401
