# app/api/v1/schemas/search_schemas.py
#
# Imports
from datetime import datetime
from typing import List, Literal, Optional
# 3rd-party Libraries
from pydantic import BaseModel, ConfigDict, Field
#
#######################################################################################################################
#
# Schemas:

Era = Literal['childhood', 'youth', 'adulthood', 'recent']
ContentType = Literal['all', 'short', 'medium', 'long']


class TimeRangeFilter(BaseModel):
    start: Optional[datetime] = None
    end: Optional[datetime] = None
    era: Optional[Era] = None


class SignificanceFilter(BaseModel):
    min: Optional[float] = None
    max: Optional[float] = None


class AdvancedSearchFilters(BaseModel):
    themes: List[str] = Field(default_factory=list)
    emotions: List[str] = Field(default_factory=list)
    time_range: Optional[TimeRangeFilter] = Field(None, alias="timeRange")
    content_type: Optional[ContentType] = Field(None, alias="contentType")
    sentiment: Optional[Literal['positive', 'negative', 'neutral', 'mixed']] = None
    significance: Optional[SignificanceFilter] = None
    location: Optional[str] = None
    people: List[str] = Field(default_factory=list)
    events: List[str] = Field(default_factory=list)

    model_config = ConfigDict(populate_by_name=True)


class AdvancedSearchOptions(BaseModel):
    include_analytics: bool = Field(True, alias="includeAnalytics")
    include_clustering: bool = Field(True, alias="includeClustering")
    include_suggestions: bool = Field(True, alias="includeSuggestions")
    limit: int = Field(20, ge=1, le=100)
    require_semantic: bool = Field(False, alias="requireSemantic",
                                   description="Fail with 503 instead of falling back to text search")

    model_config = ConfigDict(populate_by_name=True)


class AdvancedSearchRequest(BaseModel):
    query: str = ""
    filters: AdvancedSearchFilters = Field(default_factory=AdvancedSearchFilters)
    options: AdvancedSearchOptions = Field(default_factory=AdvancedSearchOptions)

#
# End of search_schemas.py
#######################################################################################################################
