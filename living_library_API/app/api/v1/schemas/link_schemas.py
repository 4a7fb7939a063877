# app/api/v1/schemas/link_schemas.py
#
# Imports
from typing import List, Literal, Optional
# 3rd-party Libraries
from pydantic import BaseModel, ConfigDict, Field
#
#######################################################################################################################
#
# Schemas:

LinkType = Literal['SEMANTIC', 'SHARED_TAG', 'SAME_TIMEWINDOW', 'SAME_LOCATION']


class LinkedFragmentSummary(BaseModel):
    id: str
    title: str
    body: str
    event_at: str
    visibility: str
    tags: List[str] = []
    system_emotions: List[str] = []
    system_themes: List[str] = []


class OutboundLink(BaseModel):
    id: str
    to_id: str
    type: LinkType
    score: float
    reason: str
    created_at: Optional[str] = None
    to_fragment: LinkedFragmentSummary


class InboundLink(BaseModel):
    id: str
    from_id: str
    type: LinkType
    score: float
    reason: str
    from_fragment: LinkedFragmentSummary


class RecomputeLinksResponse(BaseModel):
    success: bool = True
    links_created: int = Field(..., alias="linksCreated")
    links: List[OutboundLink]

    model_config = ConfigDict(populate_by_name=True)

#
# End of link_schemas.py
#######################################################################################################################
