# Library_Deps.py
# Description: FastAPI dependencies handing the application's shared services to request handlers.
#
# Imports
from typing import Any
#
# 3rd-party Libraries
from fastapi import Depends, HTTPException, Request, status
from loguru import logger
#
# Local Imports
from living_library_API.app.core.AI_Services.AI_Interfaces import (
    ClassificationService,
    EmbeddingService,
    TranscriptionService,
)
from living_library_API.app.core.AI_Services.AI_Service_Factory import AIServiceFactory
from living_library_API.app.core.AuthNZ.Login_Links import LoginLinkSender
from living_library_API.app.core.DB_Management.Library_DB import LibraryDB
from living_library_API.app.core.Storage.Media_Storage import MediaStorage
#
#######################################################################################################################
#
# Functions:

# Services are built once in the application lifespan (see main.py) and kept on app.state.


def _app_state_service(request: Request, name: str) -> Any:
    service = getattr(request.app.state, name, None)
    if service is None:
        logger.critical(f"'{name}' is not initialized on app.state.")
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
                            detail="Service is not initialized. Please try again later.")
    return service


def get_library_db(request: Request) -> LibraryDB:
    return _app_state_service(request, "library_db")


def get_media_storage(request: Request) -> MediaStorage:
    return _app_state_service(request, "media_storage")


def get_ai_service_factory(request: Request) -> AIServiceFactory:
    return _app_state_service(request, "ai_service_factory")


def get_login_link_sender(request: Request) -> LoginLinkSender:
    return _app_state_service(request, "login_link_sender")


def get_transcription_service(factory: AIServiceFactory = Depends(get_ai_service_factory)) -> TranscriptionService:
    return factory.create_transcription_service()


def get_embedding_service(factory: AIServiceFactory = Depends(get_ai_service_factory)) -> EmbeddingService:
    return factory.create_embedding_service()


def get_classification_service(factory: AIServiceFactory = Depends(get_ai_service_factory)) -> ClassificationService:
    return factory.create_classification_service()

#
# End of Library_Deps.py
#######################################################################################################################
