# main.py
# Description: This file contains the main FastAPI application, which serves as the primary API for the Living Library.
#
# Imports
import logging
#
# 3rd-party Libraries
import sys
from contextlib import asynccontextmanager
from cachetools import LRUCache
from loguru import logger
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded
#
# Local Imports
from living_library_API.app.core.config import API_V1_PREFIX, settings
from living_library_API.app.core.AI_Services.AI_Service_Factory import AIServiceConfig, AIServiceFactory
from living_library_API.app.core.AuthNZ.Login_Links import create_login_link_sender
from living_library_API.app.core.DB_Management.Library_DB import LibraryDB
from living_library_API.app.core.Storage.Media_Storage import MediaStorage
#
# Admin Endpoints
from living_library_API.app.api.v1.endpoints.admin_moderation import router as admin_moderation_router
from living_library_API.app.api.v1.endpoints.admin_verification import router as admin_verification_router
#
# Auth Endpoint
from living_library_API.app.api.v1.endpoints.auth import limiter, router as auth_router
#
# Fragments Endpoint
from living_library_API.app.api.v1.endpoints.fragments import router as fragments_router
#
# Insights Endpoint
from living_library_API.app.api.v1.endpoints.insights import router as insights_router
#
# Links Endpoint
from living_library_API.app.api.v1.endpoints.links import router as links_router
#
# Search Endpoint
from living_library_API.app.api.v1.endpoints.search import router as search_router
#
# Storage Endpoint
from living_library_API.app.api.v1.endpoints.storage import router as storage_router
#
# Upload Endpoint
from living_library_API.app.api.v1.endpoints.upload import router as upload_router
#
########################################################################################################################
#
# Functions:

QUERY_EMBEDDING_CACHE_SIZE = 256


# --- Loguru Configuration with Intercept Handler ---

# Define a handler class to intercept standard logging messages
class InterceptHandler(logging.Handler):
    def emit(self, record):
        # Get corresponding Loguru level if it exists
        try:
            level = logger.level(record.levelname).name
        except ValueError:
            level = record.levelno

        # Find caller from where originated the logged message
        frame, depth = logging.currentframe(), 2
        while frame.f_code.co_filename == logging.__file__:
            frame = frame.f_back
            depth += 1

        logger.opt(depth=depth, exception=record.exc_info).log(
            level, record.getMessage()
        )

# Remove default handler
logger.remove()

logger.add(
    sys.stderr,
    level=settings["LOG_LEVEL"],
    format="<green>{time:YYYY-MM-DD HH:mm:ss.SSS}</green> | <level>{level: <8}</level> | <cyan>{name}</cyan>:<cyan>{function}</cyan>:<cyan>{line}</cyan> - <level>{message}</level>",
    colorize=True,
)

# Route uvicorn's standard logging through loguru
loggers_to_intercept = ["uvicorn", "uvicorn.error", "uvicorn.access"]
for logger_name in loggers_to_intercept:
    mod_logger = logging.getLogger(logger_name)
    mod_logger.handlers = [InterceptHandler()]
    mod_logger.propagate = False

logger.info(f"Loguru logger configured at level {settings['LOG_LEVEL']}")


@asynccontextmanager
async def lifespan(app: FastAPI):
    # Startup: one instance of each service for the whole process
    app.state.library_db = LibraryDB(settings["LIBRARY_DB_PATH"])
    app.state.media_storage = MediaStorage(settings["MEDIA_STORAGE_DIR"], settings["MEDIA_BUCKET"],
                                           settings["SITE_URL"])
    app.state.ai_service_factory = AIServiceFactory(AIServiceConfig.from_settings(settings))
    app.state.login_link_sender = create_login_link_sender(settings)
    app.state.query_embedding_cache = LRUCache(maxsize=QUERY_EMBEDDING_CACHE_SIZE)
    logger.info("App Startup: services ready")
    yield
    # Shutdown code
    logger.info("App Shutdown: closing service clients and DB connection")
    await app.state.ai_service_factory.aclose()
    await app.state.login_link_sender.aclose()
    app.state.library_db.close_connection()


app = FastAPI(
    title=settings["APP_NAME"],
    version="0.1.0",
    description="FastAPI Backend for the Living Library of Human Experience",
    lifespan=lifespan,
)

app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)

# Use configured origins
origins = settings["ALLOWED_ORIGINS"] if settings["ALLOWED_ORIGINS"] else ["*"]

app.add_middleware(
    CORSMiddleware,
    allow_origins=origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.get("/")
async def root():
    return {"message": "Welcome to the Living Library API; If you're seeing this, the server is running!"}


# Router for passwordless login
app.include_router(auth_router, prefix=f"{API_V1_PREFIX}/auth", tags=["auth"])


# Router for fragment management
app.include_router(fragments_router, prefix=f"{API_V1_PREFIX}/fragments", tags=["fragments"])


# Router for fragment links
app.include_router(links_router, prefix=f"{API_V1_PREFIX}/links", tags=["links"])


# Router for personal insights
app.include_router(insights_router, prefix=f"{API_V1_PREFIX}/insights", tags=["insights"])


# Router for advanced search
app.include_router(search_router, prefix=f"{API_V1_PREFIX}/search/advanced", tags=["search"])


# Router for signed upload URLs
app.include_router(upload_router, prefix=f"{API_V1_PREFIX}/upload", tags=["upload"])


# Router for stored media objects
app.include_router(storage_router, prefix=f"{API_V1_PREFIX}/storage", tags=["storage"])


# Router for admin moderation
app.include_router(admin_moderation_router, prefix=f"{API_V1_PREFIX}/admin/moderation", tags=["admin"])


# Router for admin verification
app.include_router(admin_verification_router, prefix=f"{API_V1_PREFIX}/admin/verification", tags=["admin"])


# Health check
@app.get("/health")
async def health_check():
    return {"status": "healthy"}

#
## End of main.py
########################################################################################################################
