# Local_Services.py
# Description: Self-hosted Whisper and embedding server clients.
#
# Imports
from typing import List
#
# 3rd-party Libraries
import httpx
#
# Local Imports
from living_library_API.app.core.AI_Services.AI_Interfaces import (
    EmbeddingService,
    HTTPServiceBase,
    TranscriptionService,
)
from living_library_API.app.core.AI_Services.OpenAI_Services import EMBEDDING_MAX_CHARS
from living_library_API.app.core.exceptions import UpstreamServiceError
#
#######################################################################################################################
#
# Functions:

DEFAULT_WHISPER_ENDPOINT = "http://localhost:8001"
DEFAULT_EMBEDDING_ENDPOINT = "http://localhost:8002"


class LocalTranscriptionService(HTTPServiceBase, TranscriptionService):
    provider_name = "local-whisper"

    def __init__(self, client: httpx.AsyncClient, endpoint: str = DEFAULT_WHISPER_ENDPOINT):
        super().__init__(client)
        self.endpoint = (endpoint or DEFAULT_WHISPER_ENDPOINT).rstrip("/")

    async def transcribe(self, audio_url: str) -> str:
        result = await self._post_json(f"{self.endpoint}/transcribe", json={"audio_url": audio_url})
        return result.get("text") or ""


class LocalEmbeddingService(HTTPServiceBase, EmbeddingService):
    provider_name = "local-embedding"

    def __init__(self, client: httpx.AsyncClient, endpoint: str = DEFAULT_EMBEDDING_ENDPOINT):
        super().__init__(client)
        self.endpoint = (endpoint or DEFAULT_EMBEDDING_ENDPOINT).rstrip("/")

    async def embed(self, text: str) -> List[float]:
        result = await self._post_json(f"{self.endpoint}/embed", json={"text": text[:EMBEDDING_MAX_CHARS]})
        embedding = result.get("embedding")
        if not isinstance(embedding, list) or not embedding:
            raise UpstreamServiceError("Local embedding server returned no embedding", provider=self.provider_name)
        return embedding

#
# End of Local_Services.py
#######################################################################################################################
