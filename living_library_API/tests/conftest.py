# conftest.py
# Description: Shared fixtures: a real LibraryDB and MediaStorage under tmp_path, fake AI providers and a TestClient
# wired to them through dependency overrides.
#
# Imports
#
# 3rd-party Libraries
import pytest
from fastapi.testclient import TestClient
#
# Local Imports
from living_library_API.app.api.v1.API_Deps.Library_Deps import (
    get_classification_service,
    get_embedding_service,
    get_library_db,
    get_login_link_sender,
    get_media_storage,
    get_transcription_service,
)
from living_library_API.app.api.v1.endpoints.auth import limiter
from living_library_API.app.core.DB_Management.Library_DB import LibraryDB
from living_library_API.app.core.Storage.Media_Storage import MediaStorage
from living_library_API.app.main import app
from living_library_API.tests.test_utils import (
    FakeClassificationService,
    FakeEmbeddingService,
    FakeTranscriptionService,
    RecordingLoginLinkSender,
    TEST_SITE_URL,
)
#
#######################################################################################################################
#
# Functions:

# --- Fixtures ---

@pytest.fixture
def library_db(tmp_path):
    """A fresh file-backed LibraryDB per test."""
    db = LibraryDB(tmp_path / "library.sqlite")
    yield db
    db.close_connection()


@pytest.fixture
def media_storage(tmp_path):
    return MediaStorage(tmp_path / "media", "fragments", TEST_SITE_URL)


@pytest.fixture
def owner(library_db):
    return library_db.add_user("owner@example.com")


@pytest.fixture
def other_user(library_db):
    return library_db.add_user("other@example.com")


@pytest.fixture
def transcription_service():
    return FakeTranscriptionService()


@pytest.fixture
def embedding_service():
    return FakeEmbeddingService()


@pytest.fixture
def classification_service():
    return FakeClassificationService()


@pytest.fixture
def login_sender():
    return RecordingLoginLinkSender()


@pytest.fixture
def client(library_db, media_storage, transcription_service, embedding_service, classification_service,
           login_sender):
    limiter.reset()
    app.dependency_overrides[get_library_db] = lambda: library_db
    app.dependency_overrides[get_media_storage] = lambda: media_storage
    app.dependency_overrides[get_transcription_service] = lambda: transcription_service
    app.dependency_overrides[get_embedding_service] = lambda: embedding_service
    app.dependency_overrides[get_classification_service] = lambda: classification_service
    app.dependency_overrides[get_login_link_sender] = lambda: login_sender
    # No context manager: the lifespan (and its real services) is not started
    yield TestClient(app)
    app.dependency_overrides.clear()

#
# End of conftest.py
#######################################################################################################################
