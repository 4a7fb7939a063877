# links.py
# Description: Rebuild the links of a fragment on demand.
#
# Imports
#
# 3rd-party Libraries
from fastapi import APIRouter, Depends, Path, status
from loguru import logger
#
# Local Imports
from living_library_API.app.api.v1.API_Deps.Library_Deps import get_library_db
from living_library_API.app.api.v1.API_Deps.v1_endpoint_deps import error_response, handle_library_errors
from living_library_API.app.api.v1.schemas.link_schemas import RecomputeLinksResponse
from living_library_API.app.core.AuthNZ.User_DB_Handling import User, get_request_user
from living_library_API.app.core.DB_Management.Library_DB import LibraryDB
from living_library_API.app.core.Fragments.Link_Builder import FragmentNotReadyError, recompute_links
#
#######################################################################################################################
#
# Functions:

router = APIRouter()


@router.post(
    "/recompute/{fragment_id}",
    response_model=RecomputeLinksResponse,
    summary="Recompute the links of a READY fragment",
    tags=["Links"],
)
async def recompute_fragment_links(
        fragment_id: str = Path(..., description="Fragment ID"),
        db: LibraryDB = Depends(get_library_db),
        current_user: User = Depends(get_request_user),
):
    try:
        return recompute_links(db, fragment_id, current_user.id)
    except FragmentNotReadyError as e:
        logger.warning(f"Link recompute refused for fragment {fragment_id}: status {e.status}")
        return error_response(status.HTTP_400_BAD_REQUEST, "Fragment is not ready for linking", status=e.status)
    except Exception as e:
        handle_library_errors(e, "links")

#
# End of links.py
#######################################################################################################################
