# OpenAI_Services.py
# Description: OpenAI-hosted implementations of the transcription, embedding and classification capabilities.
#
# Imports
import json
from typing import List, Optional
#
# 3rd-party Libraries
import httpx
from loguru import logger
#
# Local Imports
from living_library_API.app.core.AI_Services.AI_Interfaces import (
    ClassificationService,
    EmbeddingService,
    HTTPServiceBase,
    PIIDetection,
    TranscriptionService,
)
from living_library_API.app.core.AI_Services.Rule_Based_Classification import RuleBasedClassificationService
from living_library_API.app.core.exceptions import UpstreamServiceError
#
#######################################################################################################################
#
# Functions:

OPENAI_TRANSCRIPTION_MODEL = "whisper-1"
OPENAI_EMBEDDING_MODEL = "text-embedding-3-large"
OPENAI_CLASSIFICATION_MODEL = "gpt-3.5-turbo"
EMBEDDING_MAX_CHARS = 8000  # roughly the token limit of text-embedding-3-large
CLASSIFICATION_MAX_CHARS = 2000

EMOTION_PROMPT = (
    "You are an emotion classifier. Return only a JSON array of emotions detected in the text. "
    "Use these emotions: joy, sadness, anger, fear, surprise, nostalgia, gratitude, pride, anxiety, "
    "excitement, contentment, frustration."
)
THEME_PROMPT = (
    "You are a theme classifier. Return only a JSON array of themes detected in the text. "
    "Use these themes: family, work, travel, health, education, relationships, hobbies, home, nature, "
    "celebration, personal_growth, challenges, achievements, memories, daily_life."
)


class OpenAIServiceBase(HTTPServiceBase):
    provider_name = "OpenAI"

    def __init__(self, client: httpx.AsyncClient, api_key: str, base_url: str = "https://api.openai.com/v1"):
        super().__init__(client)
        if not api_key:
            raise ValueError("OpenAI API key is required.")
        self.api_key = api_key
        self.base_url = base_url.rstrip("/")

    @property
    def auth_headers(self) -> dict:
        return {"Authorization": f"Bearer {self.api_key}"}


class OpenAITranscriptionService(OpenAIServiceBase, TranscriptionService):
    async def transcribe(self, audio_url: str) -> str:
        try:
            audio_response = await self.client.get(audio_url, follow_redirects=True)
            audio_response.raise_for_status()
        except httpx.HTTPError as e:
            logger.error(f"OpenAI transcription: failed to download media {audio_url}: {e}")
            raise UpstreamServiceError("Failed to download media for transcription",
                                       provider=self.provider_name, original_error=e,
                                       context={"audio_url": audio_url}) from e

        url = f"{self.base_url}/audio/transcriptions"
        try:
            response = await self.client.post(
                url,
                headers=self.auth_headers,
                files={"file": ("audio.mp3", audio_response.content, "audio/mpeg")},
                data={"model": OPENAI_TRANSCRIPTION_MODEL},
            )
            response.raise_for_status()
            result = response.json()
        except httpx.HTTPStatusError as e:
            logger.error(f"OpenAI transcription failed: {e.response.status_code}")
            raise UpstreamServiceError(f"OpenAI transcription failed with status {e.response.status_code}",
                                       provider=self.provider_name, original_error=e) from e
        except (httpx.RequestError, ValueError) as e:
            logger.error(f"OpenAI transcription failed: {e}")
            raise UpstreamServiceError("OpenAI transcription failed", provider=self.provider_name,
                                       original_error=e) from e
        return self._require_object(result, url).get("text") or ""


class OpenAIEmbeddingService(OpenAIServiceBase, EmbeddingService):
    async def embed(self, text: str) -> List[float]:
        result = await self._post_json(
            f"{self.base_url}/embeddings",
            json={"model": OPENAI_EMBEDDING_MODEL, "input": text[:EMBEDDING_MAX_CHARS]},
            headers=self.auth_headers,
        )
        data = result.get("data") or []
        first = data[0] if isinstance(data, list) and data else None
        if not isinstance(first, dict) or not isinstance(first.get("embedding"), list) or not first["embedding"]:
            raise UpstreamServiceError("OpenAI returned no embedding", provider=self.provider_name)
        return first["embedding"]


class OpenAIClassificationService(OpenAIServiceBase, ClassificationService):
    """
    Chat-completion classifier. Any provider failure falls back to the rule-based
    classifier; PII detection is always rule-based.
    """

    def __init__(self, client: httpx.AsyncClient, api_key: str, base_url: str = "https://api.openai.com/v1",
                 fallback: Optional[RuleBasedClassificationService] = None):
        super().__init__(client, api_key, base_url)
        self.fallback = fallback or RuleBasedClassificationService()

    async def _classify(self, system_prompt: str, text: str) -> List[str]:
        result = await self._post_json(
            f"{self.base_url}/chat/completions",
            json={
                "model": OPENAI_CLASSIFICATION_MODEL,
                "messages": [
                    {"role": "system", "content": system_prompt},
                    {"role": "user", "content": text[:CLASSIFICATION_MAX_CHARS]},
                ],
                "max_tokens": 100,
                "temperature": 0.1,
            },
            headers=self.auth_headers,
        )
        choices = result.get("choices") or []
        first = choices[0] if isinstance(choices, list) and choices else {}
        message = first.get("message") if isinstance(first, dict) else None
        if not isinstance(message, dict):
            raise UpstreamServiceError("OpenAI returned no completion message", provider=self.provider_name)
        content = message.get("content")
        if content is not None and not isinstance(content, str):
            raise ValueError(f"Expected string completion content, got: {content!r}")
        labels = json.loads(content or "[]")
        if not isinstance(labels, list) or not all(isinstance(label, str) for label in labels):
            raise ValueError(f"Expected a JSON array of strings, got: {content!r}")
        return labels

    async def classify_emotions(self, text: str) -> List[str]:
        try:
            return await self._classify(EMOTION_PROMPT, text)
        except (UpstreamServiceError, ValueError) as e:
            logger.warning(f"OpenAI emotion classification failed, using rule-based fallback: {e}")
            return await self.fallback.classify_emotions(text)

    async def classify_themes(self, text: str) -> List[str]:
        try:
            return await self._classify(THEME_PROMPT, text)
        except (UpstreamServiceError, ValueError) as e:
            logger.warning(f"OpenAI theme classification failed, using rule-based fallback: {e}")
            return await self.fallback.classify_themes(text)

    async def detect_pii(self, text: str) -> List[PIIDetection]:
        return await self.fallback.detect_pii(text)

#
# End of OpenAI_Services.py
#######################################################################################################################
