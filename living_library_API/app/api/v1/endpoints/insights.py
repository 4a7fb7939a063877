# insights.py
# Description: Personal insights over the caller's fragments, plus focused pattern, period and trend analyses.
#
# Imports
#
# 3rd-party Libraries
from fastapi import APIRouter, Depends, Query, status
from loguru import logger
from pydantic import ValidationError
#
# Local Imports
from living_library_API.app.api.v1.API_Deps.Library_Deps import get_library_db
from living_library_API.app.api.v1.API_Deps.v1_endpoint_deps import error_response, handle_library_errors
from living_library_API.app.api.v1.schemas.insights_schemas import (
    ComparePeriodsParameters,
    InsightsActionRequest,
    PatternParameters,
    PredictTrendsParameters,
    RecommendationParameters,
)
from living_library_API.app.core.AuthNZ.User_DB_Handling import User, get_request_user
from living_library_API.app.core.DB_Management.Library_DB import LibraryDB
from living_library_API.app.core.Insights import Insights_Analyzer as analyzer
from living_library_API.app.core.Utils.Utils import to_utc_iso, utc_now
#
#######################################################################################################################
#
# Functions:

router = APIRouter()

_PARAMETER_MODELS = {
    'analyze_specific_pattern': PatternParameters,
    'compare_periods': ComparePeriodsParameters,
    'predict_trends': PredictTrendsParameters,
    'generate_recommendations': RecommendationParameters,
}


@router.get(
    "/",
    summary="Generate personal insights from the caller's fragments",
    tags=["Insights"],
)
async def get_insights(
        type: str = Query("full", description="One of: patterns, growth, relationships, full"),
        db: LibraryDB = Depends(get_library_db),
        current_user: User = Depends(get_request_user),
):
    if type not in analyzer.INSIGHT_TYPES:
        return error_response(status.HTTP_400_BAD_REQUEST,
                              f"Invalid insights type. Available types: {', '.join(analyzer.INSIGHT_TYPES)}")
    try:
        insights = analyzer.generate_personal_insights(db.get_fragment_insight_rows(current_user.id))
        logger.info(f"Generated '{type}' insights for user {current_user.id} "
                    f"from {insights['metadata']['analyzedFragments']} fragments")
        return {
            "success": True,
            "data": analyzer.select_sections(insights, type),
            "cached": False,
            "generatedAt": to_utc_iso(utc_now()),
        }
    except Exception as e:
        handle_library_errors(e, "insights")


@router.post(
    "/",
    summary="Run a focused insights analysis",
    tags=["Insights"],
)
async def run_insights_action(
        action_request: InsightsActionRequest,
        db: LibraryDB = Depends(get_library_db),
        current_user: User = Depends(get_request_user),
):
    action = action_request.action
    try:
        params = _PARAMETER_MODELS[action].model_validate(action_request.parameters)
    except ValidationError as e:
        logger.warning(f"Insights action '{action}' rejected: {e.error_count()} invalid parameter(s)")
        details = [{"loc": list(err["loc"]), "msg": err["msg"], "type": err["type"]} for err in e.errors()]
        return error_response(status.HTTP_400_BAD_REQUEST, "Invalid parameters", details=details)

    try:
        if action == 'compare_periods':
            data = analyzer.compare_periods(
                db.get_fragment_insight_rows(current_user.id, params.period1.start, params.period1.end),
                db.get_fragment_insight_rows(current_user.id, params.period2.start, params.period2.end),
            )
            return {"success": True, "data": data}

        insights = analyzer.generate_personal_insights(db.get_fragment_insight_rows(current_user.id))
        if action == 'analyze_specific_pattern':
            time_range = params.time_range
            analyzed = db.get_fragment_insight_rows(
                current_user.id,
                created_from=time_range.start if time_range else None,
                created_to=time_range.end if time_range else None,
                themes=params.themes or None,
            )
            data = {
                "patterns": analyzer.filter_patterns(insights, params.pattern_type),
                "analyzedFragments": len(analyzed),
                "parameters": action_request.parameters,
            }
        elif action == 'predict_trends':
            data = analyzer.predict_trends(insights, params.time_horizon, params.confidence)
        else:
            data = {
                "recommendations": analyzer.recommendations_for(insights, params.focus, params.count),
                "focus": params.focus,
                "basedOn": {
                    "patterns": len(insights['patterns']),
                    "fragments": insights['metadata']['analyzedFragments'],
                    "confidence": insights['metadata']['confidence'],
                },
            }
        logger.debug(f"Insights action '{action}' completed for user {current_user.id}")
        return {"success": True, "data": data}
    except Exception as e:
        handle_library_errors(e, f"insights {action}")

#
# End of insights.py
#######################################################################################################################
