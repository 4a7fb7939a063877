# test_utils.py
# Description: Fake providers and small helpers shared by the test modules.
#
# Imports
from typing import Any, Dict, List, Optional
#
# Local Imports
from living_library_API.app.core.AI_Services.AI_Interfaces import (
    ClassificationService,
    EmbeddingService,
    PIIDetection,
    TranscriptionService,
)
from living_library_API.app.core.AuthNZ.Login_Links import LoginLinkSender
from living_library_API.app.core.DB_Management.Library_DB import LibraryDB
from living_library_API.app.core.exceptions import UpstreamServiceError
from living_library_API.app.core.Security.Security import create_access_token
#
#######################################################################################################################
#
# Functions:

TEST_SITE_URL = "http://testserver"


# --- Fake providers ---

class FakeTranscriptionService(TranscriptionService):
    def __init__(self, transcripts: Optional[Dict[str, str]] = None):
        self.transcripts = transcripts or {}
        self.calls: List[str] = []

    async def transcribe(self, audio_url: str) -> str:
        self.calls.append(audio_url)
        return self.transcripts.get(audio_url, "")


class FakeEmbeddingService(EmbeddingService):
    """Returns a fixed vector per text, or ``default``; raises when ``fail`` is set."""

    def __init__(self, vectors: Optional[Dict[str, List[float]]] = None, default: Optional[List[float]] = None,
                 fail: bool = False):
        self.vectors = vectors or {}
        self.default = default or [1.0, 0.0, 0.0]
        self.fail = fail
        self.calls: List[str] = []

    async def embed(self, text: str) -> List[float]:
        self.calls.append(text)
        if self.fail:
            raise UpstreamServiceError("embedding provider down", provider="fake")
        return self.vectors.get(text, self.default)


class FakeClassificationService(ClassificationService):
    def __init__(self, emotions=None, themes=None, pii: Optional[List[PIIDetection]] = None):
        self.emotions = emotions or ['joy']
        self.themes = themes or ['family']
        self.pii = pii or []
        self.pii_calls: List[str] = []

    async def classify_emotions(self, text: str) -> List[str]:
        return list(self.emotions)

    async def classify_themes(self, text: str) -> List[str]:
        return list(self.themes)

    async def detect_pii(self, text: str) -> List[PIIDetection]:
        self.pii_calls.append(text)
        return list(self.pii)


class RecordingLoginLinkSender(LoginLinkSender):
    def __init__(self, fail: bool = False):
        self.sent: List[Dict[str, str]] = []
        self.fail = fail

    async def send(self, email: str, link: str) -> None:
        if self.fail:
            raise UpstreamServiceError("mail relay rejected the message", provider="login-webhook")
        self.sent.append({"email": email, "link": link})


# --- Helpers ---

def auth_headers(user: Dict[str, Any]) -> Dict[str, str]:
    token = create_access_token({"user_id": user["id"]})
    return {"Authorization": f"Bearer {token}"}


def make_fragment(db: LibraryDB, user: Dict[str, Any], **overrides) -> Dict[str, Any]:
    data = {
        "title": "First day at the lake",
        "body": "We swam until the sun went down.",
        "event_at": "2020-07-01T12:00:00.000Z",
        "visibility": "PRIVATE",
        "tags": [],
        "media": [],
        "status": "READY",
    }
    data.update(overrides)
    return db.add_fragment(user["id"], data)


def set_created_at(db: LibraryDB, fragment_id: str, created_at: str) -> None:
    db.execute_query("UPDATE fragment SET created_at = ? WHERE id = ?", (created_at, fragment_id))

#
# End of test_utils.py
#######################################################################################################################
