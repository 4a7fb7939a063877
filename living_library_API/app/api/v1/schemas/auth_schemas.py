# app/api/v1/schemas/auth_schemas.py
#
# Imports
import re
from typing import Optional
# 3rd-party Libraries
from pydantic import BaseModel, ConfigDict, Field, field_validator
#
#######################################################################################################################
#
# Schemas:

_EMAIL_RE = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")


class LoginRequest(BaseModel):
    email: str = Field(..., description="Address the one-time login link is sent to")

    @field_validator("email")
    @classmethod
    def validate_email(cls, value: str) -> str:
        value = value.strip()
        if not _EMAIL_RE.match(value):
            raise ValueError("Invalid email")
        return value.lower()


class LoginResponse(BaseModel):
    message: str


class UserRead(BaseModel):
    id: str
    email: str
    created_at: Optional[str] = None

    model_config = ConfigDict(from_attributes=True)


class Token(BaseModel):
    access_token: str
    token_type: str = "bearer"
    user: UserRead

#
# End of auth_schemas.py
#######################################################################################################################
