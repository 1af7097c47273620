from pathlib import Path
import os
import shutil
import tempfile
import uuid
import pytest

# Settings are read once at import time, so point the app at a throwaway
# database and upload dir before any test module imports it.
_TMP = Path(tempfile.mkdtemp(prefix="toyshare-tests-"))
os.environ["DATABASE_URL"] = f"sqlite:///{_TMP / 'test.db'}"
os.environ["UPLOAD_DIR"] = str(_TMP / "uploads")
os.environ["ADMIN_USERNAMES"] = "root_admin"
os.environ["ENV"] = "dev"

from fastapi.testclient import TestClient  # noqa: E402
from toyshare.main import app  # noqa: E402

ADMIN_USERNAME = "root_admin"
PASSWORD = "pass123"


@pytest.fixture(scope="session", autouse=True)
def reset_db():
    """Remove the temporary database and uploads after the run."""
    yield
    shutil.rmtree(_TMP, ignore_errors=True)


@pytest.fixture(scope="session")
def api():
    return TestClient(app)


def _register(client, prefix, **profile):
    username = f"{prefix}_{uuid.uuid4().hex[:8]}"
    body = {
        'username': username,
        'password': PASSWORD,
        'email': f'{username}@example.com',
        'name': prefix.title(),
        'location': 'London',
    }
    body.update(profile)
    r = client.post('/api/register', json=body)
    assert r.status_code == 201, r.text
    data = r.json()
    return data, {'Authorization': f"Bearer {data['access_token']}"}


@pytest.fixture
def make_user(api):
    """Factory: register a fresh member, return (user_json, auth_headers)."""
    def _make(prefix="member", **profile):
        return _register(api, prefix, **profile)
    return _make


@pytest.fixture(scope="session")
def admin_headers(api):
    r = api.post('/api/register', json={
        'username': ADMIN_USERNAME,
        'password': PASSWORD,
        'email': 'root_admin@example.com',
        'name': 'Root Admin',
        'location': 'London',
    })
    assert r.status_code in (201, 400), r.text
    r = api.post('/api/login', json={'username': ADMIN_USERNAME, 'password': PASSWORD})
    assert r.status_code == 200
    return {'Authorization': f"Bearer {r.json()['access_token']}"}


def toy_payload(**overrides):
    body = {
        'title': 'Wooden train',
        'description': 'A classic wooden train set',
        'age_range': '3-5 years',
        'condition': 'Good',
        'category': 'Vehicles',
        'location': 'London',
        'tags': ['wooden', 'train'],
    }
    body.update(overrides)
    return body


@pytest.fixture
def make_toy(api):
    """Factory: list a toy for `headers` and return its JSON."""
    def _make(headers, **overrides):
        r = api.post('/api/toys', json=toy_payload(**overrides), headers=headers)
        assert r.status_code == 201, r.text
        return r.json()
    return _make
