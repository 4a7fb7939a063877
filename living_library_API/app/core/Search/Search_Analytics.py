# Search_Analytics.py
# Description: Summaries of a user's logged searches (top queries, trends, popular filters, success rate).
#
# Imports
import re
from collections import Counter
from datetime import datetime, timedelta
from typing import Any, Dict, List, Mapping, Optional, Sequence
#
# 3rd-party Libraries
from loguru import logger
#
# Local Imports
from living_library_API.app.core.exceptions import InputError
from living_library_API.app.core.Utils.Utils import parse_timestamp, utc_now
#
#######################################################################################################################
#
# Functions:

_TIMEFRAME_RE = re.compile(r'^(\d+)([dh])$')


def parse_timeframe(timeframe: str, now: Optional[datetime] = None) -> Optional[datetime]:
    """
    '30d' / '12h' -> the start of the window; 'all' -> None.
    Raises InputError for anything else.
    """
    value = (timeframe or '').strip().lower()
    if value == 'all':
        return None
    match = _TIMEFRAME_RE.match(value)
    if not match:
        raise InputError(f"Invalid timeframe '{timeframe}'. Use e.g. '30d', '24h' or 'all'.")
    amount, unit = int(match.group(1)), match.group(2)
    delta = timedelta(days=amount) if unit == 'd' else timedelta(hours=amount)
    return (now or utc_now()) - delta


def _top(values: Sequence[str], n: int = 3) -> List[str]:
    return [value for value, _ in Counter(values).most_common(n)]


def summarize_search_logs(logs: Sequence[Mapping[str, Any]], timeframe: str, limit: int = 10) -> Dict[str, Any]:
    total = len(logs)

    by_query: Dict[str, List[int]] = {}
    for log in logs:
        key = (log.get('query') or '').strip().lower()
        by_query.setdefault(key, []).append(int(log.get('results_count') or 0))
    top_queries = sorted(by_query.items(), key=lambda item: len(item[1]), reverse=True)[:limit]

    result_counts = [int(log.get('results_count') or 0) for log in logs]
    search_times = [float(log.get('search_time_ms') or 0) for log in logs]
    timestamps = [t for t in (parse_timestamp(log.get('created_at')) for log in logs) if t is not None]
    days = Counter(t.strftime('%A') for t in timestamps).most_common(1)
    hours = Counter(t.hour for t in timestamps).most_common(1)

    themes, emotions, eras = [], [], []
    for log in logs:
        filters = log.get('filters') or {}
        themes.extend(filters.get('themes') or [])
        emotions.extend(filters.get('emotions') or [])
        era = (filters.get('timeRange') or {}).get('era')
        if era:
            eras.append(era)

    with_results = sum(1 for c in result_counts if c > 0)
    logger.debug(f"Summarized {total} search log entries for timeframe {timeframe}")
    return {
        "topQueries": [
            {"query": query, "count": len(counts), "avgResults": round(sum(counts) / len(counts), 1)}
            for query, counts in top_queries
        ],
        "searchTrends": {
            "totalSearches": total,
            "avgResultsPerSearch": round(sum(result_counts) / total, 1) if total else 0,
            "avgSearchTime": round(sum(search_times) / total) if total else 0,
            "mostActiveDay": days[0][0] if days else None,
            "peakSearchHour": hours[0][0] if hours else None,
        },
        "popularFilters": {
            "themes": _top(themes),
            "emotions": _top(emotions),
            "timeRanges": _top(eras),
        },
        "searchSuccess": {
            "withResults": with_results,
            "withoutResults": total - with_results,
            "successRate": round(with_results / total * 100, 1) if total else 0,
        },
        "timeframe": timeframe,
    }

#
# End of Search_Analytics.py
#######################################################################################################################
