# app/api/v1/schemas/upload_schemas.py
#
# Imports
# 3rd-party Libraries
from pydantic import BaseModel, ConfigDict, Field
#
# Local Imports
from living_library_API.app.core.config import MAX_UPLOAD_FILE_SIZE
#
#######################################################################################################################
#
# Schemas:


class UploadUrlRequest(BaseModel):
    file_name: str = Field(..., alias="fileName", min_length=1)
    file_type: str = Field(..., alias="fileType", min_length=1)
    file_size: int = Field(..., alias="fileSize", ge=1, le=MAX_UPLOAD_FILE_SIZE)

    model_config = ConfigDict(populate_by_name=True)


class UploadUrlResponse(BaseModel):
    upload_url: str = Field(..., alias="uploadUrl")
    public_url: str = Field(..., alias="publicUrl")
    file_path: str = Field(..., alias="filePath")
    expires_at: str = Field(..., alias="expiresAt")

    model_config = ConfigDict(populate_by_name=True)


class StoredObjectResponse(BaseModel):
    path: str
    size: int
    public_url: str = Field(..., alias="publicUrl")

    model_config = ConfigDict(populate_by_name=True)

#
# End of upload_schemas.py
#######################################################################################################################
