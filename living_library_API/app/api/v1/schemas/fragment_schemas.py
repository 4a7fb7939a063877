# app/api/v1/schemas/fragment_schemas.py
#
# Imports
from datetime import datetime
from typing import Any, Dict, List, Literal, Optional
# 3rd-party Libraries
from pydantic import AnyHttpUrl, BaseModel, ConfigDict, Field, field_validator
#
# Local Imports
from living_library_API.app.api.v1.schemas.link_schemas import InboundLink, OutboundLink
#
#######################################################################################################################
#
# Schemas:

Visibility = Literal['PRIVATE', 'UNLISTED', 'PUBLIC']
FragmentStatus = Literal['PROCESSING', 'READY', 'FAILED']

# Request fields stored under the same column name
_FRAGMENT_COLUMNS = ('title', 'body', 'event_at', 'location_text', 'lat', 'lng', 'visibility', 'tags', 'media')


class MediaItem(BaseModel):
    url: AnyHttpUrl
    type: Literal['image', 'audio', 'video']
    duration: Optional[float] = None
    size: Optional[float] = None
    mime_type: Optional[str] = Field(None, alias="mimeType")

    model_config = ConfigDict(populate_by_name=True)


class _FragmentFields(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    def to_db_dict(self, exclude_unset: bool = False) -> Dict[str, Any]:
        """Column-keyed dict for LibraryDB; media items keep their wire (camelCase) keys."""
        data = {}
        for field in self.model_fields_set if exclude_unset else type(self).model_fields:
            if field not in _FRAGMENT_COLUMNS:
                continue
            value = getattr(self, field)
            if field == 'media' and value is not None:
                value = [item.model_dump(mode="json", by_alias=True, exclude_none=True) for item in value]
            data[field] = value
        return data


class FragmentCreate(_FragmentFields):
    title: str = Field(..., min_length=1, max_length=80)
    body: str = Field(..., min_length=1)
    event_at: datetime = Field(..., alias="eventAt")
    location_text: Optional[str] = Field(None, alias="locationText")
    lat: Optional[float] = Field(None, ge=-90, le=90)
    lng: Optional[float] = Field(None, ge=-180, le=180)
    visibility: Visibility = 'PRIVATE'
    tags: List[str] = Field(default_factory=list)
    media: List[MediaItem] = Field(default_factory=list)


class FragmentUpdate(_FragmentFields):
    title: Optional[str] = Field(None, min_length=1, max_length=80)
    body: Optional[str] = Field(None, min_length=1)
    event_at: Optional[datetime] = Field(None, alias="eventAt")
    location_text: Optional[str] = Field(None, alias="locationText")
    lat: Optional[float] = Field(None, ge=-90, le=90)
    lng: Optional[float] = Field(None, ge=-180, le=180)
    visibility: Optional[Visibility] = None
    tags: Optional[List[str]] = None
    media: Optional[List[MediaItem]] = None

    @field_validator("title", "body", "event_at", "visibility", "tags", "media", mode="before")
    @classmethod
    def reject_null(cls, value):
        # Columns are NOT NULL; omit the field to leave it unchanged
        if value is None:
            raise ValueError("may be omitted but not null")
        return value


class FragmentResponse(BaseModel):
    id: str
    user_id: str
    title: str
    body: str
    transcript: str = ''
    event_at: str
    location_text: Optional[str] = None
    lat: Optional[float] = None
    lng: Optional[float] = None
    visibility: Visibility
    tags: List[str] = []
    system_emotions: List[str] = []
    system_themes: List[str] = []
    life_stage: Optional[str] = None
    media: List[Dict[str, Any]] = []
    status: FragmentStatus
    created_at: str
    updated_at: str


class FragmentDetailResponse(FragmentResponse):
    links_from: List[OutboundLink] = []
    links_to: List[InboundLink] = []


class FragmentEnvelope(BaseModel):
    fragment: FragmentResponse


class FragmentDetailEnvelope(BaseModel):
    fragment: FragmentDetailResponse


class Pagination(BaseModel):
    offset: int
    limit: int
    total: int


class FragmentListResponse(BaseModel):
    fragments: List[FragmentResponse]
    pagination: Pagination


class DeleteResponse(BaseModel):
    success: bool = True

#
# End of fragment_schemas.py
#######################################################################################################################
