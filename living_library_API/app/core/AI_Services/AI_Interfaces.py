# AI_Interfaces.py
# Description: Abstract capability interfaces for the AI layer (transcription, embedding, classification).
#
# Imports
from abc import ABC, abstractmethod
from typing import List, Literal, Optional
#
# 3rd-party Libraries
import httpx
from loguru import logger
from pydantic import BaseModel, Field
#
# Local Imports
from living_library_API.app.core.exceptions import UpstreamServiceError
#
#######################################################################################################################
#
# Functions:

PIIType = Literal['email', 'phone', 'ssn', 'credit_card', 'name', 'address']


class PIIDetection(BaseModel):
    text: str = Field(..., description="The matched text")
    type: PIIType = Field(..., description="Kind of personal information detected")
    start: int = Field(..., ge=0, description="Start offset (inclusive) in the checked text")
    end: int = Field(..., ge=0, description="End offset (exclusive) in the checked text")
    confidence: float = Field(..., ge=0.0, le=1.0)


class HTTPServiceBase:
    """Shared plumbing for providers that talk HTTP through one httpx.AsyncClient."""
    provider_name = "http"

    def __init__(self, client: httpx.AsyncClient):
        self.client = client

    async def _post_json(self, url: str, *, json: dict, headers: Optional[dict] = None) -> dict:
        try:
            response = await self.client.post(url, json=json, headers=headers)
            response.raise_for_status()
            result = response.json()
        except httpx.HTTPStatusError as e:
            logger.error(f"{self.provider_name}: HTTP {e.response.status_code} from {url}")
            raise UpstreamServiceError(f"{self.provider_name} request failed with status {e.response.status_code}",
                                       provider=self.provider_name, original_error=e) from e
        except httpx.RequestError as e:
            logger.error(f"{self.provider_name}: request to {url} failed: {e}")
            raise UpstreamServiceError(f"{self.provider_name} is unreachable",
                                       provider=self.provider_name, original_error=e) from e
        except ValueError as e:
            logger.error(f"{self.provider_name}: invalid JSON from {url}: {e}")
            raise UpstreamServiceError(f"{self.provider_name} returned an invalid response",
                                       provider=self.provider_name, original_error=e) from e
        return self._require_object(result, url)

    def _require_object(self, result, url: str) -> dict:
        if not isinstance(result, dict):
            logger.error(f"{self.provider_name}: expected a JSON object from {url}, got {type(result).__name__}")
            raise UpstreamServiceError(f"{self.provider_name} returned an invalid response",
                                       provider=self.provider_name, context={"url": url})
        return result


class TranscriptionService(ABC):
    @abstractmethod
    async def transcribe(self, audio_url: str) -> str:
        """Returns the transcript of the audio/video at ``audio_url``."""


class EmbeddingService(ABC):
    @abstractmethod
    async def embed(self, text: str) -> List[float]:
        """Returns an embedding vector for ``text``."""


class ClassificationService(ABC):
    @abstractmethod
    async def classify_emotions(self, text: str) -> List[str]:
        ...

    @abstractmethod
    async def classify_themes(self, text: str) -> List[str]:
        ...

    @abstractmethod
    async def detect_pii(self, text: str) -> List[PIIDetection]:
        ...

#
# End of AI_Interfaces.py
#######################################################################################################################
