from unittest.mock import MagicMock

import mongomock
import pytest
from fastapi.testclient import TestClient

from database import Database
from main import app, get_db, get_mailer, get_settings, get_uploader
from media import MediaUploader
from notifier import Mailer
from settings import Settings

TEST_SETTINGS = Settings(
    database_url="mongodb://localhost:27017",
    database_name="gamezone_test",
    site_url="https://gamezone.test",
    upload_folder="games",
)


@pytest.fixture
def db():
    database = Database(mongomock.MongoClient()["gamezone_test"])
    database.ensure_indexes()
    return database


@pytest.fixture
def mailer():
    m = MagicMock(spec=Mailer)
    m.send.return_value = True
    return m


@pytest.fixture
def uploader():
    return MagicMock(spec=MediaUploader)


@pytest.fixture
def client(db, mailer, uploader):
    app.dependency_overrides[get_db] = lambda: db
    app.dependency_overrides[get_mailer] = lambda: mailer
    app.dependency_overrides[get_uploader] = lambda: uploader
    app.dependency_overrides[get_settings] = lambda: TEST_SETTINGS
    # No context manager: the startup hook would try to reach a real MongoDB
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def add_game(client):
    def _add(**fields):
        resp = client.post("/games", json=fields)
        assert resp.status_code == 201, resp.text
        return resp.json()["insertedId"]
    return _add
