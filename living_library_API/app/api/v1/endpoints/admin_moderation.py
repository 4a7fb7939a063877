# admin_moderation.py
# Description: Admin moderation queue: list reported content and record approve/reject decisions.
#
# Imports
#
# 3rd-party Libraries
from fastapi import APIRouter, Depends, Query, status
from loguru import logger
#
# Local Imports
from living_library_API.app.api.v1.API_Deps.Library_Deps import get_library_db
from living_library_API.app.api.v1.API_Deps.v1_endpoint_deps import error_response, handle_library_errors
from living_library_API.app.api.v1.schemas.admin_schemas import ModerationActionRequest, ModerationActionResponse
from living_library_API.app.core.Admin.Moderation_Samples import MODERATION_FILTERS, get_moderation_items
from living_library_API.app.core.AuthNZ.User_DB_Handling import User, get_request_user
from living_library_API.app.core.DB_Management.Library_DB import LibraryDB
#
#######################################################################################################################
#
# Functions:

router = APIRouter()


@router.get(
    "/",
    summary="List items in the moderation queue",
    tags=["Admin"],
)
async def list_moderation_items(
        filter: str = Query("pending", description="One of: pending, all, high-priority"),
        current_user: User = Depends(get_request_user),
):
    if filter not in MODERATION_FILTERS:
        return error_response(status.HTTP_400_BAD_REQUEST,
                              f"Invalid filter. Available filters: {', '.join(MODERATION_FILTERS)}")
    items = get_moderation_items(filter)
    logger.debug(f"User {current_user.id} viewed {len(items)} moderation item(s) with filter '{filter}'")
    return {"items": items}


@router.patch(
    "/",
    response_model=ModerationActionResponse,
    summary="Approve or reject a moderation item",
    tags=["Admin"],
)
async def moderate_item(
        action_request: ModerationActionRequest,
        db: LibraryDB = Depends(get_library_db),
        current_user: User = Depends(get_request_user),
):
    try:
        logger.info(f"Moderation action '{action_request.action}' on item {action_request.id} "
                    f"by user {current_user.id}")
        db.add_audit_event(current_user.id, f"moderation_{action_request.action}", action_request.id,
                           {"notes": action_request.notes})
        return ModerationActionResponse(success=True)
    except Exception as e:
        handle_library_errors(e, "moderation item")

#
# End of admin_moderation.py
#######################################################################################################################
