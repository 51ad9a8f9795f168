"""Tests for Alert Service HTTP handler.

Runs against the in-memory store the handler wires up when DB_HOST is
unset; each test uses its own scope.
"""
import json
import uuid
import pytest
from unittest.mock import patch

from carewatch.shared.database import RepositoryError
from carewatch.shared.utils import configure_pii_salt


@pytest.fixture(autouse=True)
def setup_pii_salt():
    """Configure PII salt before each test."""
    configure_pii_salt("test_salt_that_is_at_least_32_characters_long")


@pytest.fixture
def client():
    """Create Flask test client."""
    from carewatch.services.alert_service.handler import app
    app.config['TESTING'] = True
    with app.test_client() as client:
        yield client


@pytest.fixture
def scope():
    return f"school_{uuid.uuid4().hex[:8]}"


def crisis_alert(scope, **overrides):
    body = {
        "type": "crisis",
        "priority": "critical",
        "title": "Crisis reported - Room 12",
        "message": "Student in immediate danger",
        "organization_scope": scope,
    }
    body.update(overrides)
    return body


class TestHealthEndpoint:
    """Tests for /health."""

    def test_health_returns_200(self, client):
        response = client.get('/health')

        assert response.status_code == 200
        data = json.loads(response.data)
        assert data['service'] == 'alert-service'
        assert data['store'] == 'InMemoryAlertStore'

    def test_ready_checks_store(self, client):
        response = client.get('/ready')

        assert response.status_code == 200
        assert json.loads(response.data)['store']['healthy'] is True


class TestSubscriptionEndpoints:
    """Tests for /subscriptions."""

    def test_register(self, client, scope):
        response = client.post('/subscriptions', json={
            'subscriber_id': 'counselor_1',
            'role': 'counselor',
            'organization_scope': scope,
        })

        assert response.status_code == 201
        data = json.loads(response.data)
        assert data['alert_types'] == ['crisis', 'distress']
        assert data['is_active'] is True

    def test_register_missing_role(self, client, scope):
        response = client.post('/subscriptions', json={
            'subscriber_id': 'counselor_1',
            'organization_scope': scope,
        })

        assert response.status_code == 400

    def test_register_invalid_alert_type(self, client, scope):
        response = client.post('/subscriptions', json={
            'subscriber_id': 'counselor_1',
            'role': 'counselor',
            'organization_scope': scope,
            'alert_types': ['gossip'],
        })

        assert response.status_code == 400

    def test_register_empty_alert_types(self, client, scope):
        response = client.post('/subscriptions', json={
            'subscriber_id': 'counselor_1',
            'role': 'counselor',
            'organization_scope': scope,
            'alert_types': [],
        })

        assert response.status_code == 400

    def test_patch_and_list_by_type(self, client, scope):
        client.post('/subscriptions', json={
            'subscriber_id': 'teacher_1', 'role': 'teacher', 'organization_scope': scope,
        })

        response = client.patch('/subscriptions/teacher_1', json={
            'organization_scope': scope,
            'alert_types': ['engagement'],
        })
        assert response.status_code == 200

        listed = json.loads(client.get(
            f'/subscriptions?scope={scope}&alert_type=engagement'
        ).data)
        assert [s['subscriber_id'] for s in listed['subscriptions']] == ['teacher_1']

    def test_patch_rejects_non_boolean_is_active(self, client, scope):
        client.post('/subscriptions', json={
            'subscriber_id': 'teacher_1', 'role': 'teacher', 'organization_scope': scope,
        })

        response = client.patch('/subscriptions/teacher_1', json={
            'organization_scope': scope,
            'is_active': 'false',
        })

        assert response.status_code == 400
        listed = json.loads(client.get(f'/subscriptions?scope={scope}').data)
        assert listed['subscriptions'][0]['is_active'] is True

    def test_patch_deactivates_with_boolean(self, client, scope):
        client.post('/subscriptions', json={
            'subscriber_id': 'teacher_1', 'role': 'teacher', 'organization_scope': scope,
        })

        response = client.patch('/subscriptions/teacher_1', json={
            'organization_scope': scope,
            'is_active': False,
        })

        assert response.status_code == 200
        assert json.loads(response.data)['is_active'] is False

    def test_deactivate(self, client, scope):
        client.post('/subscriptions', json={
            'subscriber_id': 'teacher_1', 'role': 'teacher', 'organization_scope': scope,
        })

        response = client.delete(f'/subscriptions/teacher_1?scope={scope}')

        assert response.status_code == 200
        assert json.loads(response.data)['is_active'] is False

    def test_deactivate_requires_scope(self, client):
        assert client.delete('/subscriptions/teacher_1').status_code == 400

    def test_deactivate_unknown(self, client, scope):
        assert client.delete(f'/subscriptions/nobody?scope={scope}').status_code == 404

    def test_list_requires_scope(self, client):
        assert client.get('/subscriptions').status_code == 400


class TestAlertEndpoints:
    """Tests for /alerts."""

    def test_create_alert(self, client, scope):
        response = client.post('/alerts', json=crisis_alert(scope))

        assert response.status_code == 201
        data = json.loads(response.data)
        assert data['id'].startswith('alert_')
        assert data['type'] == 'crisis'
        assert data['state'] == 'delivered'

    def test_create_alert_missing_title(self, client, scope):
        response = client.post('/alerts', json=crisis_alert(scope, title=''))

        assert response.status_code == 400

    def test_create_alert_invalid_priority(self, client, scope):
        response = client.post('/alerts', json=crisis_alert(scope, priority='urgent'))

        assert response.status_code == 400

    @patch('carewatch.services.alert_service.handler.dispatcher')
    def test_create_alert_store_down(self, mock_dispatcher, client, scope):
        mock_dispatcher.create_alert.side_effect = RepositoryError("db down")

        response = client.post('/alerts', json=crisis_alert(scope))

        assert response.status_code == 503

    def test_list_alerts(self, client, scope):
        client.post('/alerts', json=crisis_alert(scope))
        client.post('/alerts', json=crisis_alert(scope, type='system', priority='low'))

        data = json.loads(client.get(f'/alerts?scope={scope}').data)

        assert data['count'] == 2
        assert data['unacknowledged'] == 2

    def test_list_alerts_bad_days(self, client, scope):
        assert client.get(f'/alerts?scope={scope}&days=soon').status_code == 400

    def test_acknowledge_flow(self, client, scope):
        alert_id = json.loads(client.post('/alerts', json=crisis_alert(scope)).data)['id']

        first = client.post(f'/alerts/{alert_id}/acknowledge', json={
            'acknowledged_by': 'counselor_1',
        })
        second = client.post(f'/alerts/{alert_id}/acknowledge', json={
            'acknowledged_by': 'teacher_2',
        })

        assert first.status_code == 200
        assert json.loads(first.data)['state'] == 'acknowledged'
        assert json.loads(second.data)['acknowledged_by'] == 'counselor_1'

        listed = json.loads(client.get(f'/alerts?scope={scope}').data)
        assert listed['unacknowledged'] == 0

    def test_acknowledge_requires_responder(self, client):
        response = client.post('/alerts/alert_x/acknowledge', json={'note': 'seen'})

        assert response.status_code == 400

    def test_acknowledge_unknown_alert(self, client):
        response = client.post('/alerts/alert_missing/acknowledge', json={
            'acknowledged_by': 'counselor_1',
        })

        assert response.status_code == 404
