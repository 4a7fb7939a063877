# upload.py
# Description: Hand out signed upload URLs for fragment media.
#
# Imports
import random
import string
from datetime import timedelta
#
# 3rd-party Libraries
from fastapi import APIRouter, Depends, status
from loguru import logger
#
# Local Imports
from living_library_API.app.api.v1.API_Deps.Library_Deps import get_media_storage
from living_library_API.app.api.v1.API_Deps.v1_endpoint_deps import error_response, handle_library_errors
from living_library_API.app.api.v1.schemas.upload_schemas import UploadUrlRequest, UploadUrlResponse
from living_library_API.app.core.AuthNZ.User_DB_Handling import User, get_request_user
from living_library_API.app.core.config import ALLOWED_UPLOAD_TYPES, settings
from living_library_API.app.core.Storage.Media_Storage import MediaStorage
from living_library_API.app.core.Utils.Utils import to_utc_iso, utc_now
#
#######################################################################################################################
#
# Functions:

router = APIRouter()


def build_object_path(user_id: str, file_name: str) -> str:
    now = utc_now()
    suffix = ''.join(random.choices(string.ascii_lowercase + string.digits, k=11))
    extension = file_name.split('.')[-1]
    return f"{user_id}/{int(now.timestamp() * 1000)}-{suffix}.{extension}"


@router.post(
    "/url",
    response_model=UploadUrlResponse,
    response_model_by_alias=True,
    summary="Get a signed URL for uploading one media file",
    tags=["Upload"],
)
async def create_upload_url(
        upload_request: UploadUrlRequest,
        storage: MediaStorage = Depends(get_media_storage),
        current_user: User = Depends(get_request_user),
):
    if upload_request.file_type not in ALLOWED_UPLOAD_TYPES:
        logger.warning(f"User {current_user.id} requested upload of unsupported type {upload_request.file_type}")
        return error_response(status.HTTP_400_BAD_REQUEST, "Unsupported file type", allowedTypes=ALLOWED_UPLOAD_TYPES)

    try:
        expires_in = settings["UPLOAD_URL_EXPIRE_SECONDS"]
        file_path = build_object_path(current_user.id, upload_request.file_name)
        upload_url = storage.create_signed_upload_url(file_path, expires_in)
        logger.info(f"Signed upload URL issued to user {current_user.id} for {file_path}")
        return UploadUrlResponse(
            upload_url=upload_url,
            public_url=storage.get_public_url(file_path),
            file_path=file_path,
            expires_at=to_utc_iso(utc_now() + timedelta(seconds=expires_in)),
        )
    except Exception as e:
        handle_library_errors(e, "upload URL")

#
# End of upload.py
#######################################################################################################################
