# admin_verification.py
# Description: Admin view of contributor verification requests and trust metrics.
#
# Imports
#
# 3rd-party Libraries
from fastapi import APIRouter, Depends, Query
from loguru import logger
#
# Local Imports
from living_library_API.app.api.v1.API_Deps.Library_Deps import get_library_db
from living_library_API.app.api.v1.API_Deps.v1_endpoint_deps import handle_library_errors
from living_library_API.app.api.v1.schemas.admin_schemas import VerificationActionRequest, VerificationActionResponse
from living_library_API.app.core.Admin.Verification_Samples import get_trust_metrics, get_verification_requests
from living_library_API.app.core.AuthNZ.User_DB_Handling import User, get_request_user
from living_library_API.app.core.DB_Management.Library_DB import LibraryDB
#
#######################################################################################################################
#
# Functions:

router = APIRouter()


@router.get(
    "/",
    summary="List verification requests or trust metrics",
    tags=["Admin"],
)
async def list_verification(
        type: str = Query("requests", description="'requests' or 'metrics'"),
        current_user: User = Depends(get_request_user),
):
    logger.debug(f"User {current_user.id} viewed verification {type}")
    if type == "requests":
        return {"requests": get_verification_requests()}
    return {"metrics": get_trust_metrics()}


@router.patch(
    "/",
    response_model=VerificationActionResponse,
    summary="Act on a verification request",
    tags=["Admin"],
)
async def act_on_verification(
        action_request: VerificationActionRequest,
        db: LibraryDB = Depends(get_library_db),
        current_user: User = Depends(get_request_user),
):
    try:
        logger.info(f"Verification action '{action_request.action}' on request {action_request.request_id} "
                    f"by user {current_user.id}")
        db.add_audit_event(current_user.id, f"verification_{action_request.action}", action_request.request_id,
                           {"notes": action_request.notes})
        return VerificationActionResponse(success=True)
    except Exception as e:
        handle_library_errors(e, "verification request")

#
# End of admin_verification.py
#######################################################################################################################
