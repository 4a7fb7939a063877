# v1_endpoint_deps.py
# Description: Shared pieces for the v1 endpoints: the bearer scheme and error-to-HTTP mapping.
# Imports
from typing import Any, NoReturn
#
# 3rd-party Libraries
from fastapi import HTTPException
from fastapi.responses import JSONResponse
from fastapi.security import OAuth2PasswordBearer
from loguru import logger
from starlette import status
#
# Local Imports
from living_library_API.app.core.exceptions import ErrorKind, LibraryError
#
#######################################################################################################################
#
# Static Variables
oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/api/v1/auth/login", auto_error=False)

_CLIENT_ERROR_KINDS = {
    ErrorKind.VALIDATION,
    ErrorKind.FORBIDDEN,
    ErrorKind.NOT_FOUND,
    ErrorKind.CONFLICT,
    ErrorKind.AUTHENTICATION,
    ErrorKind.SEARCH_FAILED,
}
#
# Functions:


def error_response(status_code: int, error: str, **extra: Any) -> JSONResponse:
    """JSON body of the form {"error": ..., **extra}."""
    return JSONResponse(status_code=status_code, content={"error": error, **extra})


def handle_library_errors(e: Exception, entity_type: str = "resource") -> NoReturn:
    """
    Maps an exception raised while serving ``entity_type`` to an HTTPException.
    The status comes from the error's ErrorKind.
    """
    if isinstance(e, HTTPException):
        raise e
    if isinstance(e, LibraryError):
        if e.kind in _CLIENT_ERROR_KINDS:
            logger.warning(f"{e.kind.value} error for {entity_type}: {e}")
            raise HTTPException(status_code=e.status_code, detail=e.message)
        if e.kind == ErrorKind.UPSTREAM_UNAVAILABLE:
            logger.error(f"Upstream service unavailable for {entity_type}: {e}")
            raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
                                detail="AI service temporarily unavailable")
        logger.opt(exception=e).error(f"Service error for {entity_type}: {e}")
        raise HTTPException(status_code=e.status_code,
                            detail=f"An error occurred while processing your request for {entity_type}.")
    logger.exception(f"Unexpected error for {entity_type}: {e}")
    raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                        detail=f"An unexpected error occurred while processing your request for {entity_type}.")

#
# End of v1_endpoint_deps.py
#######################################################################################################################
