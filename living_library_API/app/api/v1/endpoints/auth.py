# auth.py
# Description: Passwordless login: issue one-time login links and exchange them for access tokens.
#
# Imports
from typing import Optional
#
# 3rd-party Libraries
from fastapi import APIRouter, Depends, HTTPException, Query, Request, status
from loguru import logger
from pydantic import ValidationError
from slowapi import Limiter
from slowapi.util import get_remote_address
#
# Local Imports
from living_library_API.app.api.v1.API_Deps.Library_Deps import get_library_db, get_login_link_sender
from living_library_API.app.api.v1.API_Deps.v1_endpoint_deps import error_response, handle_library_errors
from living_library_API.app.api.v1.schemas.auth_schemas import LoginRequest, LoginResponse, Token, UserRead
from living_library_API.app.core.AuthNZ.Login_Links import LoginLinkSender
from living_library_API.app.core.config import API_V1_PREFIX, settings
from living_library_API.app.core.DB_Management.Library_DB import ConflictError, LibraryDB
from living_library_API.app.core.exceptions import UpstreamServiceError
from living_library_API.app.core.Security.Security import (
    create_access_token,
    create_login_token,
    decode_login_token,
)
#
#######################################################################################################################
#
# Functions:

router = APIRouter()
limiter = Limiter(key_func=get_remote_address)

LOGIN_LINK_USED_ACTION = "login_link_used"


@router.post(
    "/login",
    response_model=LoginResponse,
    summary="Send a one-time login link",
    tags=["Auth"],
)
@limiter.limit(settings["LOGIN_RATE_LIMIT"])
async def login(
        request: Request,
        sender: LoginLinkSender = Depends(get_login_link_sender),
):
    try:
        payload = await request.json()
    except ValueError:
        logger.warning("Login request with a malformed JSON body")
        return error_response(status.HTTP_400_BAD_REQUEST, "Invalid email format",
                              details=[{"loc": ["body"], "msg": "Malformed JSON body", "type": "json_invalid"}])

    try:
        login_request = LoginRequest.model_validate(payload)
    except ValidationError as e:
        logger.warning(f"Login request rejected: {e.error_count()} validation error(s)")
        details = [{"loc": list(err["loc"]), "msg": err["msg"], "type": err["type"]} for err in e.errors()]
        return error_response(status.HTTP_400_BAD_REQUEST, "Invalid email format", details=details)

    token, claims = create_login_token(login_request.email)
    link = f"{settings['SITE_URL']}{API_V1_PREFIX}/auth/callback?token={token}"
    try:
        await sender.send(login_request.email, link)
    except UpstreamServiceError as e:
        logger.error(f"Failed to send login link to {login_request.email}: {e}")
        return error_response(status.HTTP_400_BAD_REQUEST, "Failed to send magic link", message=e.message)

    logger.info(f"Login link issued for {login_request.email} (expires {claims.expires_at.isoformat()})")
    return LoginResponse(message="Magic link sent successfully")


@router.get(
    "/callback",
    response_model=Token,
    summary="Exchange a login link token for an access token",
    tags=["Auth"],
)
async def auth_callback(
        token: Optional[str] = Query(None, description="Token from the login link"),
        db: LibraryDB = Depends(get_library_db),
):
    auth_failed = HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="auth_failed")
    claims = decode_login_token(token) if token else None
    if claims is None:
        logger.warning("Login callback with a missing or invalid token")
        raise auth_failed

    try:
        if db.has_audit_event(LOGIN_LINK_USED_ACTION, claims.jti):
            logger.warning(f"Login link {claims.jti} was already used")
            raise auth_failed
        user, created = db.ensure_user_for_email(claims.email)
        db.add_audit_event(user['id'], LOGIN_LINK_USED_ACTION, claims.jti, {"new_user": created})
        access_token = create_access_token({"user_id": user['id']})
    except ConflictError:
        logger.warning(f"Login link {claims.jti} was redeemed concurrently")
        raise auth_failed
    except Exception as e:
        handle_library_errors(e, "login")

    logger.info(f"User {user['id']} signed in{' (new account)' if created else ''}")
    return Token(access_token=access_token, user=UserRead(**user))

#
# End of auth.py
#######################################################################################################################
