import os
import tempfile

import pytest

# Configure the app before it is imported: in-memory DB, scratch upload dir,
# cheap bcrypt and a known bootstrap admin.
UPLOAD_DIR = tempfile.mkdtemp(prefix='mediscan-test-uploads-')
os.environ['DATABASE_URL'] = 'sqlite://'
os.environ['UPLOAD_FOLDER'] = UPLOAD_DIR
os.environ['BCRYPT_LOG_ROUNDS'] = '4'
os.environ['ADMIN_USERNAME'] = 'admin'
os.environ['ADMIN_PASSWORD'] = 'admin-pass'
os.environ['SECRET_KEY'] = 'test-secret-key-with-enough-length-for-hs256'
os.environ['JWT_SECRET_KEY'] = 'test-secret-key-with-enough-length-for-hs256'

import app as app_module  # noqa: E402
from models import db  # noqa: E402


DOCTOR_PASSWORD = 'secret123'


@pytest.fixture
def app():
    flask_app = app_module.app
    flask_app.config.update(TESTING=True)
    with flask_app.app_context():
        db.drop_all()
        app_module.init_db()
        yield flask_app
        db.session.remove()
        db.drop_all()


@pytest.fixture
def client(app):
    return app.test_client()


def register(client, username='drsmith', full_name='Dr. Jane Smith', password=DOCTOR_PASSWORD, **extra):
    body = {'username': username, 'full_name': full_name, 'password': password}
    body.update(extra)
    return client.post('/register', json=body)


def auth_headers(client, username, password=DOCTOR_PASSWORD):
    resp = client.post('/login', json={'username': username, 'password': password})
    assert resp.status_code == 200, resp.get_json()
    return {'Authorization': f"Bearer {resp.get_json()['access_token']}"}


@pytest.fixture
def doctor_headers(client):
    assert register(client).status_code == 201
    return auth_headers(client, 'drsmith')


@pytest.fixture
def other_doctor_headers(client):
    assert register(client, username='drjones', full_name='Dr. Sam Jones').status_code == 201
    return auth_headers(client, 'drjones')


@pytest.fixture
def admin_headers(client):
    return auth_headers(client, 'admin', 'admin-pass')


def create_record(client, headers, **fields):
    body = {
        'patient_name': 'John Smith',
        'patient_id': 'P12345',
        'age': 45,
        'gender': 'Male',
        'diagnosis': 'Hypertension',
        'prescription': 'Amlodipine 5mg once daily',
        'record_date': '2026-10-01',
    }
    body.update(fields)
    resp = client.post('/api/records', json=body, headers=headers)
    assert resp.status_code == 201, resp.get_json()
    return resp.get_json()['record']
