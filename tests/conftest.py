"""Pytest configuration and fixtures."""

import io

import pytest
from flask import g
from werkzeug.datastructures import FileStorage as Upload

from printdesk import create_app
from printdesk.config import TestingConfig
from printdesk.extensions import db as _db
from printdesk.models import Organization, RequestStatus, Role, SubscriptionPlan, User

PASSWORD = 'password123'

PDF_BYTES = b'%PDF-1.4 test document'


class RecordingNotifier:
    """Collects emitted event batches instead of queueing them."""

    def __init__(self):
        self.batches = []

    def emit(self, events):
        self.batches.append(list(events))
        return True

    @property
    def events(self):
        return [event for batch in self.batches for event in batch]


@pytest.fixture(scope='function')
def app(tmp_path):
    """Create and configure Flask app for testing."""

    class TestConfig(TestingConfig):
        # Use temporary directory for test file uploads
        UPLOAD_FOLDER = str(tmp_path / 'storage')

    app = create_app(TestConfig)

    # Test client requests reuse the fixture's app context and its ``g``;
    # drop the identity cached by the previous request.
    @app.before_request
    def reset_request_globals():
        g.pop('_login_user', None)
        g.pop('session_invalid', None)

    with app.app_context():
        _db.create_all()
        yield app
        _db.session.remove()
        _db.drop_all()


@pytest.fixture(scope='function')
def db(app):
    """Provide database for tests."""
    return _db


@pytest.fixture(scope='function')
def client(app):
    """Provide an anonymous test client."""
    return app.test_client()


@pytest.fixture(scope='function')
def engine(app):
    return app.extensions['printdesk.lifecycle']


@pytest.fixture(scope='function')
def fanout(app):
    return app.extensions['printdesk.fanout']


@pytest.fixture(scope='function')
def notifier(engine, monkeypatch):
    """Replace Celery dispatch with an in-memory recorder."""
    recorder = RecordingNotifier()
    monkeypatch.setattr(engine, 'notifier', recorder)
    return recorder


def make_user(db, organization, role, email, name=None):
    user = User(
        name=name or email.split('@')[0],
        email=email,
        role=role,
        organization_id=organization.id,
        is_active=True
    )
    user.set_password(PASSWORD)
    db.session.add(user)
    db.session.commit()
    return user


def login(app, email, password=PASSWORD):
    """Return a new test client logged in as ``email``."""
    client = app.test_client()
    response = client.post('/api/auth/login', json={'email': email, 'password': password})
    assert response.status_code == 200, response.get_json()
    return client


@pytest.fixture(scope='function')
def org1(db):
    """Create test organization 1 (STARTER plan, India time)."""
    org = Organization(
        name='Organization 1',
        admin_email='admin@org1.com',
        subscription_plan=SubscriptionPlan.STARTER,
        timezone='Asia/Kolkata'
    )
    db.session.add(org)
    db.session.commit()
    return org


@pytest.fixture(scope='function')
def org2(db):
    """Create test organization 2."""
    org = Organization(
        name='Organization 2',
        admin_email='admin@org2.com',
        subscription_plan=SubscriptionPlan.PROFESSIONAL,
        timezone='America/New_York'
    )
    db.session.add(org)
    db.session.commit()
    return org


@pytest.fixture(scope='function')
def admin(db, org1):
    return make_user(db, org1, Role.ORG_ADMIN, 'admin@org1.com')


@pytest.fixture(scope='function')
def operator(db, org1):
    return make_user(db, org1, Role.PRINT_OPERATOR, 'operator@org1.com')


@pytest.fixture(scope='function')
def requester(db, org1):
    return make_user(db, org1, Role.REQUESTER, 'staff@org1.com')


@pytest.fixture(scope='function')
def other_requester(db, org1):
    return make_user(db, org1, Role.REQUESTER, 'other.staff@org1.com')


@pytest.fixture(scope='function')
def org2_admin(db, org2):
    return make_user(db, org2, Role.ORG_ADMIN, 'admin@org2.com')


@pytest.fixture(scope='function')
def org2_operator(db, org2):
    return make_user(db, org2, Role.PRINT_OPERATOR, 'operator@org2.com')


@pytest.fixture(scope='function')
def org2_requester(db, org2):
    return make_user(db, org2, Role.REQUESTER, 'staff@org2.com')


@pytest.fixture(scope='function')
def admin_client(app, admin):
    return login(app, admin.email)


@pytest.fixture(scope='function')
def operator_client(app, operator):
    return login(app, operator.email)


@pytest.fixture(scope='function')
def requester_client(app, requester):
    return login(app, requester.email)


@pytest.fixture(scope='function')
def other_requester_client(app, other_requester):
    return login(app, other_requester.email)


@pytest.fixture(scope='function')
def org2_admin_client(app, org2_admin):
    return login(app, org2_admin.email)


@pytest.fixture(scope='function')
def org2_operator_client(app, org2_operator):
    return login(app, org2_operator.email)


def request_fields(**overrides):
    fields = {
        'title': 'Unit 3 worksheet',
        'copies': '2',
        'print_format': 'SINGLE_SIDED',
        'delivery_method': 'PICKUP',
        'due_at': '2026-01-23T14:41',
    }
    fields.update(overrides)
    return fields


@pytest.fixture(scope='function')
def submit():
    """Submit a print request through the API as ``client``."""

    def _submit(client, filename='worksheet.pdf', content=PDF_BYTES, **overrides):
        data = request_fields(**overrides)
        data['file'] = (io.BytesIO(content), filename)
        return client.post('/api/print-requests', data=data, content_type='multipart/form-data')

    return _submit


@pytest.fixture(scope='function')
def make_request(db, engine):
    """Create a print request directly through the engine, then force its status."""

    def _make(actor, status=RequestStatus.PENDING, filename='worksheet.pdf', **overrides):
        upload = Upload(
            stream=io.BytesIO(PDF_BYTES),
            filename=filename,
            content_type='application/pdf'
        )
        print_request = engine.create_request(actor, request_fields(**overrides), upload)
        if status != RequestStatus.PENDING:
            print_request.status = status
            db.session.commit()
        return print_request

    return _make
