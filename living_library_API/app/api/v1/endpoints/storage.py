# storage.py
# Description: Signed-URL upload target and public read access for stored media objects.
#
# Imports
#
# 3rd-party Libraries
from fastapi import APIRouter, Depends, HTTPException, Path, Request, status
from fastapi.responses import FileResponse
from loguru import logger
#
# Local Imports
from living_library_API.app.api.v1.API_Deps.Library_Deps import get_media_storage
from living_library_API.app.api.v1.API_Deps.v1_endpoint_deps import handle_library_errors
from living_library_API.app.api.v1.schemas.upload_schemas import StoredObjectResponse
from living_library_API.app.core.config import settings
from living_library_API.app.core.Storage.Media_Storage import MediaStorage
#
#######################################################################################################################
#
# Functions:

router = APIRouter()


@router.put(
    "/upload/{token}",
    response_model=StoredObjectResponse,
    response_model_by_alias=True,
    summary="Upload the raw bytes of one object to a signed URL",
    tags=["Storage"],
)
async def upload_object(
        request: Request,
        token: str = Path(..., description="Signed upload token"),
        storage: MediaStorage = Depends(get_media_storage),
):
    try:
        token_data = storage.verify_upload_token(token)
        max_bytes = settings["MAX_UPLOAD_BYTES"]
        too_large = HTTPException(status_code=status.HTTP_413_REQUEST_ENTITY_TOO_LARGE,
                                  detail=f"Upload exceeds the {max_bytes} byte limit")
        declared = request.headers.get("content-length")
        if declared and declared.isdigit() and int(declared) > max_bytes:
            raise too_large
        # Chunked bodies carry no Content-Length, so count while reading
        data = bytearray()
        async for chunk in request.stream():
            data.extend(chunk)
            if len(data) > max_bytes:
                logger.warning(f"Upload to {token_data.path} aborted after {len(data)} bytes")
                raise too_large
        data = bytes(data)
        storage.put_object(token_data.path, data)
        return StoredObjectResponse(path=token_data.path, size=len(data),
                                    public_url=storage.get_public_url(token_data.path))
    except Exception as e:
        handle_library_errors(e, "upload")


@router.get(
    "/object/{bucket}/{object_path:path}",
    summary="Read a stored object",
    tags=["Storage"],
)
async def read_object(
        bucket: str,
        object_path: str,
        storage: MediaStorage = Depends(get_media_storage),
):
    if bucket != storage.bucket:
        logger.debug(f"Object requested from unknown bucket '{bucket}'")
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Bucket not found")
    try:
        return FileResponse(storage.object_file(object_path))
    except Exception as e:
        handle_library_errors(e, "stored object")

#
# End of storage.py
#######################################################################################################################
