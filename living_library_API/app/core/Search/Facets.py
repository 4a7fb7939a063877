# Facets.py
# Description: Theme/emotion facet aggregation over a user's fragments.
#
"""
Facet aggregation
=================

Given one user's fragments (each with optional ``system_themes`` and
``system_emotions`` lists and a ``created_at`` timestamp), computes:

- raw occurrence counts per theme and per emotion (exact, case-sensitive),
- the "popular" values (count >= 2), ranked by count descending with ties in
  first-encounter order, capped at 15 themes and 10 emotions,
- the earliest and latest creation timestamp, or None for an empty input.

Everything here is pure: no I/O, and the input rows are never modified.
"""
#
# Imports
from datetime import datetime
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence
#
# 3rd-party Libraries
from pydantic import BaseModel
#
# Local Imports
from living_library_API.app.core.Utils.Utils import parse_timestamp
#
#######################################################################################################################
#
# Functions:

POPULAR_THEMES_CAP = 15
POPULAR_EMOTIONS_CAP = 10
POPULARITY_THRESHOLD = 2


class FacetValue(BaseModel):
    value: str
    count: int


class DateRange(BaseModel):
    earliest: datetime
    latest: datetime


class FacetSummary(BaseModel):
    theme_counts: Dict[str, int]
    emotion_counts: Dict[str, int]
    popular_themes: List[FacetValue]
    popular_emotions: List[FacetValue]
    date_range: Optional[DateRange] = None


def count_values(rows: Iterable[Mapping[str, Any]], field: str) -> Dict[str, int]:
    """Occurrences of each value of list field ``field``. Keys keep first-encounter order."""
    counts: Dict[str, int] = {}
    for row in rows:
        for value in row.get(field) or []:
            counts[value] = counts.get(value, 0) + 1
    return counts


def rank_popular(counts: Mapping[str, int], cap: int, threshold: int = POPULARITY_THRESHOLD) -> List[FacetValue]:
    popular = [(value, count) for value, count in counts.items() if count >= threshold]
    # sorted() is stable, so equal counts stay in first-encounter order
    popular = sorted(popular, key=lambda item: item[1], reverse=True)[:cap]
    return [FacetValue(value=value, count=count) for value, count in popular]


def compute_date_range(rows: Iterable[Mapping[str, Any]], field: str = "created_at") -> Optional[DateRange]:
    dates = [d for d in (parse_timestamp(row.get(field)) for row in rows) if d is not None]
    if not dates:
        return None
    return DateRange(earliest=min(dates), latest=max(dates))


def aggregate_facets(rows: Sequence[Mapping[str, Any]],
                     theme_cap: int = POPULAR_THEMES_CAP,
                     emotion_cap: int = POPULAR_EMOTIONS_CAP) -> FacetSummary:
    theme_counts = count_values(rows, "system_themes")
    emotion_counts = count_values(rows, "system_emotions")
    return FacetSummary(
        theme_counts=theme_counts,
        emotion_counts=emotion_counts,
        popular_themes=rank_popular(theme_counts, theme_cap),
        popular_emotions=rank_popular(emotion_counts, emotion_cap),
        date_range=compute_date_range(rows),
    )

#
# End of Facets.py
#######################################################################################################################
