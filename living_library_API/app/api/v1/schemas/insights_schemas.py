# app/api/v1/schemas/insights_schemas.py
#
# Imports
from datetime import datetime
from typing import Any, Dict, List, Literal, Optional
# 3rd-party Libraries
from pydantic import BaseModel, ConfigDict, Field
#
#######################################################################################################################
#
# Schemas:

InsightsAction = Literal['analyze_specific_pattern', 'compare_periods', 'predict_trends', 'generate_recommendations']


class InsightsActionRequest(BaseModel):
    action: InsightsAction
    parameters: Dict[str, Any] = Field(default_factory=dict)


class OpenPeriod(BaseModel):
    start: Optional[datetime] = None
    end: Optional[datetime] = None


class Period(BaseModel):
    start: datetime
    end: datetime


class PatternParameters(BaseModel):
    pattern_type: Optional[Literal['thematic', 'emotional', 'growth']] = Field(None, alias="patternType")
    time_range: Optional[OpenPeriod] = Field(None, alias="timeRange")
    themes: List[str] = Field(default_factory=list)

    model_config = ConfigDict(populate_by_name=True)


class ComparePeriodsParameters(BaseModel):
    period1: Period
    period2: Period


class PredictTrendsParameters(BaseModel):
    time_horizon: int = Field(6, alias="timeHorizon", ge=1, le=60)
    confidence: float = Field(0.7, ge=0, le=1)

    model_config = ConfigDict(populate_by_name=True)


class RecommendationParameters(BaseModel):
    focus: Literal['growth', 'exploration', 'writing', 'reflection'] = 'growth'
    count: int = Field(5, ge=1, le=20)

#
# End of insights_schemas.py
#######################################################################################################################
