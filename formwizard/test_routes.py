"""
Route Tests

End-to-end tests of the screens and JSON API through the Flask test
client. The form service client is replaced with a mock.
"""

from unittest import mock

import pytest

from formwizard import create_app, db
from formwizard.client import FormServiceClient, FormFetchError, RegistrationResult
from formwizard.audit_logger import verify_audit_integrity, get_audit_trail_for_submission
from formwizard.models import Submission, AuditLog
from formwizard.schema import FormDefinition
from formwizard.session import get_store


FORM_RESPONSE = {
    'form': {
        'formTitle': 'Student Information Form',
        'formId': 'student-info',
        'version': '1.0',
        'sections': [
            {
                'sectionId': 1,
                'title': 'Personal Details',
                'description': 'Tell us about yourself',
                'fields': [
                    {'fieldId': 'name', 'type': 'text', 'label': 'Name', 'required': True},
                ]
            },
            {
                'sectionId': 2,
                'title': 'Contact',
                'description': 'How can we reach you',
                'fields': [
                    {'fieldId': 'email', 'type': 'email', 'label': 'Email'},
                    {'fieldId': 'phone', 'type': 'tel', 'label': 'Phone'},
                    {
                        'fieldId': 'year', 'type': 'dropdown', 'label': 'Year',
                        'options': [{'value': '1', 'label': 'First'}, {'value': '2', 'label': 'Second'}]
                    },
                    {'fieldId': 'agree', 'type': 'checkbox', 'label': 'I agree', 'required': True},
                ]
            }
        ]
    }
}


@pytest.fixture
def app():
    app = create_app({
        'TESTING': True,
        'SECRET_KEY': 'test',
        'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
        'WTF_CSRF_ENABLED': False,
        'RATELIMIT_ENABLED': False,
    })
    service = mock.Mock(spec=FormServiceClient)
    service.register_user.return_value = RegistrationResult(True, 'User created')
    service.fetch_form.return_value = FormDefinition.from_response(FORM_RESPONSE)
    app.extensions['form_service'] = service

    yield app

    with app.app_context():
        db.drop_all()


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def service(app):
    return app.extensions['form_service']


def login(client, roll_number='RA001', name='Alice'):
    return client.post('/', data={'rollNumber': roll_number, 'name': name})


def post_section(client, index, action, **values):
    data = {'section_index': str(index), 'action': action}
    data.update(values)
    return client.post('/form', data=data, follow_redirects=True)


class TestLogin:
    def test_login_screen(self, client):
        response = client.get('/')
        assert response.status_code == 200
        assert b'Student Portal' in response.data
        assert b'roll-number-input' in response.data

    def test_blank_fields(self, client, service):
        response = login(client, roll_number='  ', name='Alice')
        assert response.status_code == 200
        assert b'Please fill in all fields' in response.data
        service.register_user.assert_not_called()

    def test_registration_failure_stays_on_login(self, client, service, app):
        service.register_user.return_value = RegistrationResult(False, 'User already exists')
        response = login(client)
        assert response.status_code == 200
        assert b'Registration Failed: User already exists' in response.data
        service.fetch_form.assert_not_called()
        assert len(get_store(app)) == 0

    def test_fetch_failure_stays_on_login(self, client, service, app):
        service.fetch_form.side_effect = FormFetchError('Failed to fetch form')
        response = login(client)
        assert response.status_code == 200
        assert b'Failed to fetch form' in response.data
        assert len(get_store(app)) == 0

    def test_success_redirects_to_form(self, client, service):
        response = login(client)
        assert response.status_code == 302
        assert response.headers['Location'].endswith('/form')
        service.register_user.assert_called_once_with('RA001', 'Alice')
        service.fetch_form.assert_called_once_with('RA001')

        page = client.get('/form')
        assert page.status_code == 200
        assert b'Login successful' in page.data
        assert b'Student Information Form' in page.data
        assert b'Form ID: student-info | Version: 1.0' in page.data
        assert b'Personal Details' in page.data
        assert b'1/2' in page.data

    def test_credentials_are_sanitized(self, client, service):
        login(client, roll_number=' RA001 ', name='<b>Alice</b>')
        service.register_user.assert_called_once_with('RA001', 'Alice')

    def test_audit_trail(self, client, app):
        login(client)
        with app.app_context():
            actions = [log.action for log in AuditLog.query.order_by(AuditLog.id).all()]
            assert actions == ['user_registered', 'form_fetched']
            assert verify_audit_integrity() == (2, 0, [])


class TestFormScreen:
    def test_form_without_login_redirects(self, client):
        response = client.get('/form')
        assert response.status_code == 302
        assert response.headers['Location'].endswith('/')

    def test_errors_hidden_before_first_attempt(self, client):
        login(client)
        page = client.get('/form')
        assert b'This field is required' not in page.data

    def test_browser_validation_is_disabled(self, client):
        login(client)
        page = client.get('/form')
        assert b'novalidate' in page.data
        assert b'value="prev" formnovalidate' in page.data

    def test_empty_name_blocks_next(self, client, app):
        login(client)
        page = post_section(client, 0, 'next', name='')
        assert b'Personal Details' in page.data
        assert b'This field is required' in page.data
        with app.app_context():
            blocked = AuditLog.query.filter_by(action='navigation_blocked').one()
            assert blocked.to_dict()['details']['failing_fields'] == ['name']

    def test_valid_name_moves_to_next_section(self, client):
        login(client)
        post_section(client, 0, 'next', name='')
        page = post_section(client, 0, 'next', name='Alice')
        assert b'Contact' in page.data
        assert b'2/2' in page.data
        assert b'Submit' in page.data

    def test_previous_is_always_allowed(self, client):
        login(client)
        post_section(client, 0, 'next', name='Alice')
        page = post_section(client, 1, 'prev', email='bad')
        assert b'Personal Details' in page.data
        assert b'value="Alice"' in page.data

    def test_stale_section_is_ignored(self, client, app):
        login(client)
        page = post_section(client, 1, 'next', name='Alice')
        assert b'updated in another window' in page.data
        assert b'Personal Details' in page.data

    def test_unknown_action(self, client):
        login(client)
        response = client.post('/form', data={'section_index': '0', 'action': 'jump'})
        assert response.status_code == 400

    def test_submit_requires_valid_last_section(self, client, app):
        login(client)
        post_section(client, 0, 'next', name='Alice')
        page = post_section(client, 1, 'submit', email='a@b', phone='')
        assert b'Please enter a valid email address' in page.data
        assert b'This field is required' in page.data  # agree checkbox
        with app.app_context():
            assert Submission.query.count() == 0

    def test_submit_stores_all_answers(self, client, app):
        login(client)
        post_section(client, 0, 'next', name='Alice')
        page = post_section(client, 1, 'submit', email='a@b.co', phone='1234567890', agree='on')
        assert b'Form Submitted' in page.data
        assert b'Contact' in page.data  # navigation is not reset

        with app.app_context():
            submission = Submission.query.one()
            assert submission.roll_number == 'RA001'
            assert submission.form_id == 'student-info'
            assert submission.get_answers() == {
                'name': 'Alice', 'email': 'a@b.co', 'phone': '1234567890',
                'year': '', 'agree': True
            }
            assert submission.verify_answers()
            trail = get_audit_trail_for_submission(submission.id)
            assert [entry['action'] for entry in trail] == ['form_submitted']

    def test_each_submit_click_is_recorded(self, client, app):
        login(client)
        post_section(client, 0, 'next', name='Alice')
        post_section(client, 1, 'submit', agree='on')
        post_section(client, 1, 'submit', agree='on')
        with app.app_context():
            assert Submission.query.count() == 2

    def test_logout_discards_session(self, client, app):
        login(client)
        response = client.post('/logout', follow_redirects=True)
        assert b'You have been logged out' in response.data
        assert len(get_store(app)) == 0
        assert client.get('/form').status_code == 302

    def test_relogin_replaces_session(self, client, app):
        login(client)
        login(client)
        assert len(get_store(app)) == 1


class TestApi:
    def test_requires_session(self, client):
        response = client.get('/api/session')
        assert response.status_code == 401
        assert response.get_json()['ok'] is False

    def test_session_state(self, client):
        login(client)
        data = client.get('/api/session').get_json()
        assert data['ok'] is True
        assert data['user'] == {'rollNumber': 'RA001', 'name': 'Alice'}
        assert data['index'] == 0
        assert data['answers'] == {'name': ''}
        assert data['validation']['valid'] is False

    def test_set_answer_recomputes_validation(self, client):
        login(client)
        data = client.post('/api/answers', json={'fieldId': 'name', 'value': 'Alice'}).get_json()
        assert data['validation'] == {'valid': True, 'errors': {'name': None}}
        assert data['canAdvance'] is True

    def test_set_answer_rejects_unknown_field(self, client):
        login(client)
        response = client.post('/api/answers', json={'fieldId': 'nope', 'value': 'x'})
        assert response.status_code == 400

    def test_navigate_and_submit(self, client, app):
        login(client)
        blocked = client.post('/api/navigate', json={'action': 'next'}).get_json()
        assert blocked['moved'] is False
        assert blocked['index'] == 0
        assert blocked['validation']['errors']['name'] == 'This field is required'

        client.post('/api/answers', json={'fieldId': 'name', 'value': 'Alice'})
        moved = client.post('/api/navigate', json={'action': 'next'}).get_json()
        assert moved['moved'] is True
        assert moved['index'] == 1

        client.post('/api/answers', json={'fieldId': 'agree', 'value': True})
        submitted = client.post('/api/navigate', json={'action': 'submit'}).get_json()
        assert submitted['moved'] is True
        assert submitted['submissionId'] is not None

        listing = client.get('/api/submissions').get_json()
        assert len(listing['submissions']) == 1
        assert len(listing['submissions'][0]['reference']) == 16

    def test_clearing_earlier_answer_blocks_advance_and_submit(self, client, app):
        login(client)
        client.post('/api/answers', json={'fieldId': 'name', 'value': 'Alice'})
        client.post('/api/navigate', json={'action': 'next'})
        client.post('/api/answers', json={'fieldId': 'agree', 'value': True})
        client.post('/api/answers', json={'fieldId': 'name', 'value': ''})

        back = client.post('/api/navigate', json={'action': 'prev'}).get_json()
        assert back['index'] == 0
        assert back['validation']['valid'] is False

        blocked = client.post('/api/navigate', json={'action': 'next'}).get_json()
        assert blocked['moved'] is False
        assert blocked['validation']['errors']['name'] == 'This field is required'
        with app.app_context():
            assert Submission.query.count() == 0

    def test_navigate_rejects_unknown_action(self, client):
        login(client)
        response = client.post('/api/navigate', json={'action': 'jump'})
        assert response.status_code == 400


class TestApplication:
    def test_not_found_screen(self, client):
        response = client.get('/does-not-exist')
        assert response.status_code == 404
        assert b'Oops! Page not found' in response.data

    def test_security_headers(self, client):
        response = client.get('/')
        assert response.headers['X-Frame-Options'] == 'DENY'
        assert response.headers['X-Content-Type-Options'] == 'nosniff'

    def test_content_security_policy_blocks_scripts(self, client):
        response = client.get('/')
        policy = response.headers['Content-Security-Policy']
        assert "default-src 'none'" in policy
        assert "form-action 'self'" in policy
        assert 'script-src' not in policy
        assert response.headers['Cache-Control'] == 'no-store'
