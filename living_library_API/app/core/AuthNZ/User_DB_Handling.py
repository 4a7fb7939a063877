# User_DB_Handling.py
# Description: Resolves the authenticated user for a request from its Bearer access token.
#
# Imports
from typing import Optional
#
# 3rd-Party Libraries
from fastapi import Depends, HTTPException, status
from loguru import logger
from pydantic import BaseModel
#
# Local Imports
from living_library_API.app.api.v1.API_Deps.Library_Deps import get_library_db
from living_library_API.app.api.v1.API_Deps.v1_endpoint_deps import oauth2_scheme
from living_library_API.app.core.DB_Management.Library_DB import LibraryDB, LibraryDBError
from living_library_API.app.core.Security.Security import decode_access_token, TokenData
#
#######################################################################################################################

# --- User Model ---
class User(BaseModel):
    id: str
    email: str
    created_at: Optional[str] = None


async def get_request_user(
    token: Optional[str] = Depends(oauth2_scheme),
    db: LibraryDB = Depends(get_library_db),
) -> User:
    """
    Dependency returning the User behind the request's Bearer access token.
    Missing, invalid or expired tokens, and tokens for unknown users, all yield 401.
    """
    credentials_exception = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Unauthorized",
        headers={"WWW-Authenticate": "Bearer"},
    )
    if not token:
        logger.debug("get_request_user: no Bearer token on request.")
        raise credentials_exception

    token_data: Optional[TokenData] = decode_access_token(token)
    if token_data is None or token_data.user_id is None:
        logger.warning("Token decoding failed or user_id missing in token payload.")
        raise credentials_exception

    try:
        user_data = db.get_user_by_id(token_data.user_id)
    except LibraryDBError as e:
        logger.error(f"Error fetching user {token_data.user_id}: {e}")
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                            detail="Error retrieving user information.")
    if user_data is None:
        logger.warning(f"User with ID {token_data.user_id} from token not found.")
        raise credentials_exception

    user = User(**user_data)
    logger.debug(f"Authenticated user: {user.id}")
    return user

#
# End of User_DB_Handling.py
#######################################################################################################################
