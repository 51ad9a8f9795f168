"""Tests for Distress Service HTTP handler.

Tests the /analyze endpoint and hand-off to the alert dispatcher.
"""
import json
import uuid
import pytest
from unittest.mock import patch, MagicMock

from carewatch.shared.database import RepositoryError
from carewatch.shared.models import AlertType
from carewatch.shared.utils import configure_pii_salt


@pytest.fixture(autouse=True)
def setup_pii_salt():
    """Configure PII salt before each test."""
    configure_pii_salt("test_salt_that_is_at_least_32_characters_long")


@pytest.fixture
def client():
    """Create Flask test client."""
    from carewatch.services.distress_service.handler import app
    app.config['TESTING'] = True
    with app.test_client() as client:
        yield client


class TestHealthEndpoint:
    """Tests for /health and /ready."""

    def test_health_returns_200(self, client):
        response = client.get('/health')

        assert response.status_code == 200
        data = json.loads(response.data)
        assert data['status'] == 'healthy'
        assert data['service'] == 'distress-service'
        assert 'lexicon_version' in data

    def test_ready_returns_200(self, client):
        response = client.get('/ready')

        assert response.status_code == 200
        assert json.loads(response.data)['status'] == 'ready'


class TestAnalyzeEndpoint:
    """Tests for /analyze."""

    def test_missing_body(self, client):
        response = client.post('/analyze', data='', content_type='application/json')

        assert response.status_code == 400

    def test_missing_text(self, client):
        response = client.post('/analyze', json={'subject_id': 'student_1'})

        assert response.status_code == 400

    @patch('carewatch.services.distress_service.handler.dispatcher')
    def test_positive_feedback_without_scope(self, mock_dispatcher, client):
        response = client.post('/analyze', json={
            'text': "Today's lesson was great, I understood everything!",
        })

        assert response.status_code == 200
        data = json.loads(response.data)
        assert data['risk_level'] == 'low'
        assert data['detected_language'] == 'en'
        assert data['emotional_markers']['sentiment'] == 'positive'
        assert 'crisis_resources' not in data
        mock_dispatcher.process_distress.assert_not_called()

    @patch('carewatch.services.distress_service.handler.dispatcher')
    def test_critical_feedback_dispatches_alert(self, mock_dispatcher, client):
        mock_dispatcher.process_distress.return_value = MagicMock(id='alert_abc123')

        response = client.post('/analyze', json={
            'text': 'I want to end it all',
            'subject_id': 'student_789',
            'subject_name': 'Ana',
            'organization_scope': 'school_001',
        })

        assert response.status_code == 200
        data = json.loads(response.data)
        assert data['risk_level'] == 'critical'
        assert data['alert_id'] == 'alert_abc123'
        assert data['crisis_resources']['hotlines'][1]['number'] == '988'

        kwargs = mock_dispatcher.process_distress.call_args.kwargs
        assert kwargs['scope'] == 'school_001'
        assert kwargs['subject_id'] == 'student_789'
        assert kwargs['analysis'].risk_level.value == 'critical'

    @patch('carewatch.services.distress_service.handler.dispatcher')
    def test_below_threshold_has_no_alert_id(self, mock_dispatcher, client):
        mock_dispatcher.process_distress.return_value = None

        response = client.post('/analyze', json={
            'text': 'The lesson was about rivers',
            'organization_scope': 'school_001',
        })

        assert response.status_code == 200
        assert 'alert_id' not in json.loads(response.data)

    @patch('carewatch.services.distress_service.handler.dispatcher')
    def test_store_failure_returns_503(self, mock_dispatcher, client):
        mock_dispatcher.process_distress.side_effect = RepositoryError("db down")

        response = client.post('/analyze', json={
            'text': 'I want to end it all',
            'organization_scope': 'school_001',
        })

        assert response.status_code == 503
        data = json.loads(response.data)
        assert data['risk_level'] == 'critical'
        assert data['error'] == 'Alert could not be recorded'

    @patch('carewatch.services.distress_service.handler.dispatcher')
    @patch('carewatch.services.distress_service.handler.analyzer')
    def test_analyzer_error_defaults_to_medium(self, mock_analyzer, mock_dispatcher, client):
        """Never fail open - a broken analyzer still reaches a human."""
        mock_analyzer.analyze.side_effect = RuntimeError("boom")
        mock_dispatcher.process_distress.return_value = MagicMock(id='alert_fallback')

        response = client.post('/analyze', json={
            'text': 'anything',
            'organization_scope': 'school_001',
        })

        assert response.status_code == 200
        data = json.loads(response.data)
        assert data['risk_level'] == 'medium'
        assert 'error' in data
        assert data['alert_id'] == 'alert_fallback'


class TestAlertServiceHandOff:
    """Distress and alert services share one store when DB_HOST is unset."""

    @pytest.fixture
    def alert_client(self):
        from carewatch.services.alert_service.handler import app
        app.config['TESTING'] = True
        with app.test_client() as alert_client:
            yield alert_client

    @pytest.fixture
    def scope(self):
        return f"school_{uuid.uuid4().hex[:8]}"

    def test_subscriber_registered_on_alert_service_is_seen(self, client, alert_client, scope):
        from carewatch.services.distress_service import handler

        alert_client.post('/subscriptions', json={
            'subscriber_id': 'counselor_1',
            'role': 'counselor',
            'organization_scope': scope,
        })

        active = handler.dispatcher.registry.list_active_for(scope, AlertType.DISTRESS)
        assert [s.subscriber_id for s in active] == ['counselor_1']

    def test_distress_alert_can_be_acknowledged(self, client, alert_client, scope):
        response = client.post('/analyze', json={
            'text': 'I want to end it all',
            'subject_id': 'student_789',
            'organization_scope': scope,
        })
        alert_id = json.loads(response.data)['alert_id']

        listed = json.loads(alert_client.get(f'/alerts?scope={scope}').data)
        acknowledged = alert_client.post(f'/alerts/{alert_id}/acknowledge', json={
            'acknowledged_by': 'counselor_1',
        })

        assert [a['id'] for a in listed['alerts']] == [alert_id]
        assert acknowledged.status_code == 200


class TestCrisisResourcesEndpoint:
    """Tests for /crisis-resources/<language>."""

    def test_lithuanian(self, client):
        response = client.get('/crisis-resources/lt')

        assert response.status_code == 200
        data = json.loads(response.data)
        assert data['language'] == 'lt'
        assert data['hotlines'][0]['name'] == 'Jaunimo linija'

    def test_unknown_code_falls_back_to_english(self, client):
        response = client.get('/crisis-resources/fr')

        data = json.loads(response.data)
        assert data['language'] == 'en'
