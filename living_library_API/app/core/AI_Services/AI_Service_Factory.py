# AI_Service_Factory.py
# Description: Chooses one provider implementation per AI capability based on configuration.
#
# Imports
from typing import Any, Callable, Dict, Mapping, Optional
#
# 3rd-party Libraries
import httpx
from loguru import logger
from pydantic import BaseModel, Field
#
# Local Imports
from living_library_API.app.core.AI_Services.AI_Interfaces import (
    ClassificationService,
    EmbeddingService,
    TranscriptionService,
)
from living_library_API.app.core.AI_Services.Local_Services import (
    DEFAULT_EMBEDDING_ENDPOINT,
    DEFAULT_WHISPER_ENDPOINT,
    LocalEmbeddingService,
    LocalTranscriptionService,
)
from living_library_API.app.core.AI_Services.OpenAI_Services import (
    OpenAIClassificationService,
    OpenAIEmbeddingService,
    OpenAITranscriptionService,
)
from living_library_API.app.core.AI_Services.Rule_Based_Classification import RuleBasedClassificationService
#
#######################################################################################################################
#
# Functions:


class AIServiceConfig(BaseModel):
    transcribe_provider: str = "local"
    embeddings_provider: str = "local"
    classification_provider: str = "rules"
    openai_api_key: Optional[str] = None
    openai_base_url: str = "https://api.openai.com/v1"
    local_whisper_endpoint: str = DEFAULT_WHISPER_ENDPOINT
    local_embedding_endpoint: str = DEFAULT_EMBEDDING_ENDPOINT
    request_timeout: float = Field(default=30.0, gt=0)

    @classmethod
    def from_settings(cls, app_settings: Mapping[str, Any]) -> "AIServiceConfig":
        return cls(
            transcribe_provider=app_settings.get("TRANSCRIBE_PROVIDER") or "local",
            embeddings_provider=app_settings.get("EMBEDDINGS_PROVIDER") or "local",
            classification_provider=app_settings.get("CLASSIFICATION_PROVIDER") or "rules",
            openai_api_key=app_settings.get("OPENAI_API_KEY"),
            openai_base_url=app_settings.get("OPENAI_BASE_URL") or "https://api.openai.com/v1",
            local_whisper_endpoint=app_settings.get("LOCAL_WHISPER_ENDPOINT") or DEFAULT_WHISPER_ENDPOINT,
            local_embedding_endpoint=app_settings.get("LOCAL_EMBEDDING_ENDPOINT") or DEFAULT_EMBEDDING_ENDPOINT,
            request_timeout=app_settings.get("AI_REQUEST_TIMEOUT") or 30.0,
        )


class AIServiceFactory:
    """
    Builds transcription, embedding and classification services for the configured providers.

    One factory is created per application (in the lifespan) and handed to request handlers as a
    dependency. All HTTP-backed services share the factory's ``httpx.AsyncClient``; call
    ``aclose()`` on shutdown.

    Provider selection:
        - ``openai`` requires an API key; without one the factory logs a warning and falls back
          to the local implementation (rule-based for classification).
        - ``local`` classification is rule-based.
        - Unknown provider names use the default implementation.
    """

    def __init__(self, config: AIServiceConfig, client: Optional[httpx.AsyncClient] = None):
        self.config = config
        self._owns_client = client is None
        self.client = client or httpx.AsyncClient(timeout=config.request_timeout)

        self._transcription_providers: Dict[str, Callable[[], TranscriptionService]] = {
            "openai": self._openai_transcription,
            "local": self._local_transcription,
        }
        self._embedding_providers: Dict[str, Callable[[], EmbeddingService]] = {
            "openai": self._openai_embedding,
            "local": self._local_embedding,
        }
        self._classification_providers: Dict[str, Callable[[], ClassificationService]] = {
            "openai": self._openai_classification,
            "local": self._rule_based_classification,
            "rules": self._rule_based_classification,
        }

    # --- Provider constructors ---
    def _has_openai_key(self, capability: str) -> bool:
        if self.config.openai_api_key:
            return True
        logger.warning(f"AIServiceFactory: OpenAI selected for {capability} but OPENAI_API_KEY is not set. "
                       f"Falling back to the default provider.")
        return False

    def _local_transcription(self) -> TranscriptionService:
        return LocalTranscriptionService(self.client, self.config.local_whisper_endpoint)

    def _openai_transcription(self) -> TranscriptionService:
        if not self._has_openai_key("transcription"):
            return self._local_transcription()
        return OpenAITranscriptionService(self.client, self.config.openai_api_key, self.config.openai_base_url)

    def _local_embedding(self) -> EmbeddingService:
        return LocalEmbeddingService(self.client, self.config.local_embedding_endpoint)

    def _openai_embedding(self) -> EmbeddingService:
        if not self._has_openai_key("embeddings"):
            return self._local_embedding()
        return OpenAIEmbeddingService(self.client, self.config.openai_api_key, self.config.openai_base_url)

    def _rule_based_classification(self) -> ClassificationService:
        return RuleBasedClassificationService()

    def _openai_classification(self) -> ClassificationService:
        if not self._has_openai_key("classification"):
            return self._rule_based_classification()
        return OpenAIClassificationService(self.client, self.config.openai_api_key, self.config.openai_base_url)

    # --- Public API ---
    @staticmethod
    def _select(registry: Dict[str, Callable[[], Any]], provider: str, default: str, capability: str):
        builder = registry.get((provider or "").lower())
        if builder is None:
            logger.warning(f"AIServiceFactory: Unknown {capability} provider '{provider}'. Using '{default}'.")
            builder = registry[default]
        return builder()

    def create_transcription_service(self) -> TranscriptionService:
        return self._select(self._transcription_providers, self.config.transcribe_provider, "local", "transcription")

    def create_embedding_service(self) -> EmbeddingService:
        return self._select(self._embedding_providers, self.config.embeddings_provider, "local", "embeddings")

    def create_classification_service(self) -> ClassificationService:
        return self._select(self._classification_providers, self.config.classification_provider, "rules",
                            "classification")

    async def aclose(self) -> None:
        if self._owns_client:
            await self.client.aclose()

#
# End of AI_Service_Factory.py
#######################################################################################################################
