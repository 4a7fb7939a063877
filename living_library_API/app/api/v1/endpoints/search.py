# search.py
# Description: Advanced search over a user's fragments, plus suggestion, facet and analytics lookups.
#
# Imports
from typing import Optional
#
# 3rd-party Libraries
from fastapi import APIRouter, Depends, Query, Request, status
from loguru import logger
#
# Local Imports
from living_library_API.app.api.v1.API_Deps.Library_Deps import get_embedding_service, get_library_db
from living_library_API.app.api.v1.API_Deps.v1_endpoint_deps import error_response, handle_library_errors
from living_library_API.app.api.v1.schemas.search_schemas import AdvancedSearchRequest
from living_library_API.app.core.AI_Services.AI_Interfaces import EmbeddingService
from living_library_API.app.core.AuthNZ.User_DB_Handling import User, get_request_user
from living_library_API.app.core.DB_Management.Library_DB import LibraryDB
from living_library_API.app.core.exceptions import LibraryError, SearchFailedError, UpstreamServiceError
from living_library_API.app.core.Search.Advanced_Search import AdvancedSearchService, content_type_for
from living_library_API.app.core.Search.Facets import aggregate_facets
from living_library_API.app.core.Search.Search_Analytics import parse_timeframe, summarize_search_logs
from living_library_API.app.core.Utils.Utils import to_utc_iso, utc_now
#
#######################################################################################################################
#
# Functions:

router = APIRouter()

SEARCH_ACTIONS = ('suggestions', 'filters', 'analytics')

CONTENT_TYPE_LABELS = (
    ('short', 'Short Stories'),
    ('medium', 'Medium Stories'),
    ('long', 'Long Stories'),
)

ERAS = [
    {"value": "childhood", "label": "Childhood"},
    {"value": "youth", "label": "Youth"},
    {"value": "adulthood", "label": "Adulthood"},
    {"value": "recent", "label": "Recent"},
]


def get_advanced_search_service(
        request: Request,
        db: LibraryDB = Depends(get_library_db),
        embedding_service: EmbeddingService = Depends(get_embedding_service),
) -> AdvancedSearchService:
    cache = getattr(request.app.state, "query_embedding_cache", None)
    return AdvancedSearchService(db, embedding_service=embedding_service, embedding_cache=cache)


@router.post(
    "/",
    summary="Hybrid semantic and text search with clustering, suggestions and insights",
    tags=["Search"],
)
async def advanced_search(
        search_request: AdvancedSearchRequest,
        db: LibraryDB = Depends(get_library_db),
        search_service: AdvancedSearchService = Depends(get_advanced_search_service),
        current_user: User = Depends(get_request_user),
):
    query = search_request.query.strip()
    if not query:
        return error_response(status.HTTP_400_BAD_REQUEST, "Search query is required")

    options = search_request.options
    echoed_filters = search_request.filters.model_dump(mode="json", by_alias=True, exclude_none=True)
    try:
        results = await search_service.advanced_search(
            query,
            current_user.id,
            filters=search_request.filters.model_dump(),
            include_analytics=options.include_analytics,
            include_clustering=options.include_clustering,
            include_suggestions=options.include_suggestions,
            limit=options.limit,
            require_semantic=options.require_semantic,
        )
    except UpstreamServiceError as e:
        logger.error(f"Advanced search for user {current_user.id} lost its AI provider: {e}")
        return error_response(status.HTTP_503_SERVICE_UNAVAILABLE, "AI search service temporarily unavailable",
                              details="Please try again later")
    except SearchFailedError as e:
        logger.warning(f"Advanced search failed for user {current_user.id}: {e}")
        return error_response(status.HTTP_400_BAD_REQUEST, "Search failed",
                              details="Please try a different query or check your filters")
    except Exception as e:
        handle_library_errors(e, "search")

    analytics = results['analytics']
    try:
        db.add_search_log(current_user.id, query, echoed_filters, analytics['totalResults'],
                          analytics['searchTime'], analytics['method'], analytics['relevanceScore'])
    except LibraryError as log_error:
        logger.error(f"Failed to log search query: {log_error}")

    logger.info(f"Search by user {current_user.id} returned {analytics['totalResults']} results")
    return {
        "success": True,
        "results": results,
        "metadata": {
            "query": search_request.query,
            "filters": echoed_filters,
            "userId": current_user.id,
            "timestamp": to_utc_iso(utc_now()),
        },
    }


@router.get(
    "/",
    summary="Search suggestions, available filters or search analytics",
    tags=["Search"],
)
async def search_lookup(
        action: Optional[str] = Query(None, description="One of: suggestions, filters, analytics"),
        q: str = Query(""),
        limit: int = Query(10, ge=1, le=100),
        timeframe: str = Query("30d", description="'30d', '24h' or 'all'"),
        db: LibraryDB = Depends(get_library_db),
        search_service: AdvancedSearchService = Depends(get_advanced_search_service),
        current_user: User = Depends(get_request_user),
):
    if action not in SEARCH_ACTIONS:
        return error_response(status.HTTP_400_BAD_REQUEST,
                              f"Invalid action. Available actions: {', '.join(SEARCH_ACTIONS)}")
    try:
        if action == 'suggestions':
            suggestions = search_service.generate_suggestions(q, current_user.id, [])
            return {"suggestions": suggestions[:limit], "query": q, "generatedAt": to_utc_iso(utc_now())}
        if action == 'filters':
            return available_filters(db, current_user.id)
        logs = db.list_search_logs(current_user.id, since=parse_timeframe(timeframe))
        summary = summarize_search_logs(logs, timeframe, limit)
        summary["generatedAt"] = to_utc_iso(utc_now())
        return summary
    except Exception as e:
        handle_library_errors(e, f"search {action}")


def available_filters(db: LibraryDB, user_id: str) -> dict:
    rows = [r for r in db.get_fragment_facet_rows(user_id)
            if r.get('system_themes') is not None and r.get('system_emotions') is not None]
    facets = aggregate_facets(rows)

    date_range = None
    if facets.date_range is not None:
        date_range = {"earliest": to_utc_iso(facets.date_range.earliest),
                      "latest": to_utc_iso(facets.date_range.latest)}

    body_types = [content_type_for(r.get('body')) for r in rows]
    content_types = [{"value": "all", "label": "All Content", "count": len(rows)}]
    content_types.extend({"value": value, "label": label, "count": body_types.count(value)}
                         for value, label in CONTENT_TYPE_LABELS)

    return {
        "availableFilters": {
            "themes": [v.model_dump() for v in facets.popular_themes],
            "emotions": [v.model_dump() for v in facets.popular_emotions],
            "dateRange": date_range,
            "contentTypes": content_types,
            "eras": ERAS,
        },
        "statistics": {
            "totalFragments": len(rows),
            "uniqueThemes": len(facets.theme_counts),
            "uniqueEmotions": len(facets.emotion_counts),
            "dateSpan": date_range,
        },
        "generatedAt": to_utc_iso(utc_now()),
    }

#
# End of search.py
#######################################################################################################################
