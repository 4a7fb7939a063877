# app/api/v1/schemas/admin_schemas.py
#
# Imports
from typing import Literal, Optional
# 3rd-party Libraries
from pydantic import BaseModel, ConfigDict, Field
#
#######################################################################################################################
#
# Schemas:


class VerificationActionRequest(BaseModel):
    request_id: str = Field(..., alias="requestId", min_length=1)
    action: str = Field(..., min_length=1, pattern=r"^[A-Za-z_-]+$",
                        description="e.g. approve, reject, request-info")
    notes: Optional[str] = None

    model_config = ConfigDict(populate_by_name=True)


class VerificationActionResponse(BaseModel):
    success: bool = True


class ModerationActionRequest(BaseModel):
    id: str = Field(..., min_length=1)
    action: Literal['approve', 'reject']
    notes: Optional[str] = None


class ModerationActionResponse(BaseModel):
    success: bool = True

#
# End of admin_schemas.py
#######################################################################################################################
