# Security.py
#
# Description: Creating/validating the JWTs used by the Living Library: session access tokens,
# one-time login-link tokens and signed media upload tokens.
#
# Imports
import uuid
from datetime import datetime, timedelta, timezone
from typing import Optional, Dict, Any, Tuple

# 3rd-Party Libraries
import jwt  # PyJWT
from loguru import logger
from pydantic import BaseModel

# Local Imports
from living_library_API.app.core.config import settings

#######################################################################################################################

# --- Token purposes ---
# Every token carries a 'purpose' claim; decoding rejects a mismatch.
PURPOSE_ACCESS = "access"
PURPOSE_LOGIN = "login"
PURPOSE_UPLOAD = "upload"


# --- Payload models ---
class TokenData(BaseModel):
    user_id: Optional[str] = None


class LoginTokenData(BaseModel):
    email: str
    jti: str
    expires_at: datetime


class UploadTokenData(BaseModel):
    path: str
    bucket: str
    expires_at: datetime


def _secret_key() -> str:
    return settings["JWT_SECRET_KEY"]


def _algorithm() -> str:
    return settings["JWT_ALGORITHM"]


def _encode(claims: Dict[str, Any], purpose: str, expires_delta: timedelta) -> str:
    now = datetime.now(timezone.utc)
    payload = {
        **claims,
        "purpose": purpose,
        "iat": now,
        "exp": now + expires_delta,
    }
    return jwt.encode(payload, _secret_key(), algorithm=_algorithm())


def _decode(token: str, purpose: str) -> Optional[Dict[str, Any]]:
    """Decodes a token and checks its purpose. Returns None for any invalid token."""
    if not token:
        return None
    try:
        # PyJWT handles expiration ('exp') check automatically.
        payload = jwt.decode(token, _secret_key(), algorithms=[_algorithm()])
    except jwt.ExpiredSignatureError:
        logger.warning(f"{purpose} token validation failed: Signature has expired.")
        return None
    except jwt.InvalidSignatureError:
        logger.error(f"{purpose} token validation failed: Invalid signature.")
        return None
    except jwt.InvalidTokenError as e:
        logger.warning(f"{purpose} token validation failed: Invalid token - {e}")
        return None

    if payload.get("purpose") != purpose:
        logger.warning(f"Token purpose mismatch. Expected '{purpose}', got '{payload.get('purpose')}'.")
        return None
    return payload


# --- Access tokens ---
def create_access_token(data: dict, expires_delta_minutes: Optional[int] = None) -> str:
    """
    Creates a JWT access token.

    Args:
        data (dict): Data to encode in the token. MUST contain 'user_id'.
        expires_delta_minutes (Optional[int]): Custom expiration time in minutes.
                                                 Defaults to ACCESS_TOKEN_EXPIRE_MINUTES.

    Raises:
        ValueError: If 'user_id' is missing in the input data.
    """
    if "user_id" not in data:
        logger.error("Attempted to create token without 'user_id' in data.")
        raise ValueError("Input data for token creation must contain 'user_id'.")

    minutes = expires_delta_minutes if expires_delta_minutes is not None else settings["ACCESS_TOKEN_EXPIRE_MINUTES"]
    logger.debug(f"Creating access token for user_id: {data['user_id']}")
    return _encode({"sub": str(data["user_id"])}, PURPOSE_ACCESS, timedelta(minutes=minutes))


def decode_access_token(token: str) -> Optional[TokenData]:
    payload = _decode(token, PURPOSE_ACCESS)
    if payload is None:
        return None
    user_id = payload.get("sub")
    if not user_id:
        logger.warning("Token decoded successfully, but 'sub' (user_id) claim is missing.")
        return None
    return TokenData(user_id=user_id)


# --- Login link tokens ---
def create_login_token(email: str, expires_delta_minutes: Optional[int] = None) -> Tuple[str, LoginTokenData]:
    """Issues a one-time login token. Returns (token, claims); ``jti`` identifies the link for single use."""
    minutes = expires_delta_minutes if expires_delta_minutes is not None else settings["LOGIN_LINK_EXPIRE_MINUTES"]
    jti = str(uuid.uuid4())
    delta = timedelta(minutes=minutes)
    token = _encode({"email": email, "jti": jti}, PURPOSE_LOGIN, delta)
    return token, LoginTokenData(email=email, jti=jti, expires_at=datetime.now(timezone.utc) + delta)


def decode_login_token(token: str) -> Optional[LoginTokenData]:
    payload = _decode(token, PURPOSE_LOGIN)
    if payload is None:
        return None
    if not payload.get("email") or not payload.get("jti"):
        logger.warning("Login token is missing 'email' or 'jti'.")
        return None
    return LoginTokenData(email=payload["email"], jti=payload["jti"],
                          expires_at=datetime.fromtimestamp(payload["exp"], tz=timezone.utc))


# --- Upload tokens ---
def create_upload_token(bucket: str, path: str, expires_in_seconds: int) -> str:
    return _encode({"bucket": bucket, "path": path}, PURPOSE_UPLOAD, timedelta(seconds=expires_in_seconds))


def decode_upload_token(token: str) -> Optional[UploadTokenData]:
    payload = _decode(token, PURPOSE_UPLOAD)
    if payload is None or not payload.get("path") or not payload.get("bucket"):
        return None
    return UploadTokenData(path=payload["path"], bucket=payload["bucket"],
                           expires_at=datetime.fromtimestamp(payload["exp"], tz=timezone.utc))

#
# End of Security.py
# #####################################################################################################################
