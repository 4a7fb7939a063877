# Insights_Analyzer.py
# Description: Personal insights over one user's fragments: recurring patterns, period trends, growth and recurring tags.
#
"""
Personal insights
=================

Works on the rows returned by ``LibraryDB.get_fragment_insight_rows`` (id,
title, body, tags, system_themes, system_emotions, created_at), oldest first.

- patterns: themes and emotions that recur across the library, plus themes
  whose share of the writing grows from the first year to the last
- temporal trends: theme/emotion counts per calendar year, then per month for
  the twelve most recent months
- growth insights: per-theme share of each year's fragments and its direction
- relationship mappings: tags used on two or more fragments
- summary, recommendations and metadata built from the above

Like the facet core, this is pure aggregation: no I/O, inputs are not modified.
"""
#
# Imports
from datetime import datetime
from typing import Any, Dict, List, Mapping, Optional, Sequence
#
# 3rd-party Libraries
from loguru import logger
#
# Local Imports
from living_library_API.app.core.exceptions import InputError, NotFoundError
from living_library_API.app.core.Search.Advanced_Search import MEDIUM_STORY_MAX_CHARS, SHORT_STORY_MAX_CHARS
from living_library_API.app.core.Search.Facets import compute_date_range, count_values
from living_library_API.app.core.Utils.Utils import parse_timestamp, to_utc_iso, utc_now
#
#######################################################################################################################
#
# Functions:

MAX_PATTERNS = 10
MAX_THEMATIC_PATTERNS = 5
MAX_EMOTIONAL_PATTERNS = 3
RECENT_MONTHS = 12
MAX_RELATIONSHIPS = 15
GROWTH_CHANGE_THRESHOLD = 0.1
GROWTH_PATTERN_MIN_STRENGTH = 0.3

INSIGHT_TYPES = ('patterns', 'growth', 'relationships', 'full')
PATTERN_TYPES = ('thematic', 'emotional', 'growth')

EXPLORATION_SUGGESTIONS = [
    'Explore themes that appear less frequently in your writing',
    'Write about relationships that have shaped you',
    'Reflect on your earliest and latest memories for growth patterns',
]
WRITING_PROMPTS = [
    'What would you tell your younger self about the patterns you see now?',
    'How have your dominant themes evolved over time?',
    'What emotions do you want to explore more deeply?',
]
REFLECTION_QUESTIONS = [
    'What do your writing patterns reveal about your values?',
    'How have challenging experiences contributed to your growth?',
    'What relationships have been most influential in your journey?',
]


def writing_style(average_length: float) -> str:
    if average_length < SHORT_STORY_MAX_CHARS:
        return 'concise'
    if average_length < MEDIUM_STORY_MAX_CHARS:
        return 'reflective'
    return 'expansive'


def _slug(value: str) -> str:
    return '_'.join(value.lower().split())


def _ranked(counts: Mapping[str, int]) -> List[tuple]:
    # Stable sort: equal counts keep first-encounter order
    return sorted(counts.items(), key=lambda item: item[1], reverse=True)


def _timespan(rows: Sequence[Mapping[str, Any]]) -> Optional[Dict[str, str]]:
    date_range = compute_date_range(rows)
    if date_range is None:
        return None
    return {"start": to_utc_iso(date_range.earliest), "end": to_utc_iso(date_range.latest)}


def group_by_period(rows: Sequence[Mapping[str, Any]], period: str) -> Dict[str, List[Mapping[str, Any]]]:
    """Groups rows by creation 'year' ('2024') or 'month' ('2024-08'). Keys are in ascending order."""
    fmt = '%Y' if period == 'year' else '%Y-%m'
    groups: Dict[str, List[Mapping[str, Any]]] = {}
    for row in rows:
        created = parse_timestamp(row.get('created_at'))
        if created is None:
            continue
        groups.setdefault(created.strftime(fmt), []).append(row)
    return dict(sorted(groups.items()))


def period_trend(period: str, rows: Sequence[Mapping[str, Any]], granularity: str = 'year') -> Dict[str, Any]:
    lengths = [len(row.get('body') or '') for row in rows]
    return {
        "period": period,
        "granularity": granularity,
        "themes": count_values(rows, 'system_themes'),
        "emotions": count_values(rows, 'system_emotions'),
        "writingFrequency": len(rows),
        "averageLength": round(sum(lengths) / len(lengths), 1) if lengths else 0,
    }


def temporal_trends(rows: Sequence[Mapping[str, Any]]) -> List[Dict[str, Any]]:
    """Yearly trends oldest first, followed by the most recent months newest first."""
    trends = [period_trend(year, group) for year, group in group_by_period(rows, 'year').items()]
    months = list(group_by_period(rows, 'month').items())[::-1][:RECENT_MONTHS]
    trends.extend(period_trend(month, group, 'month') for month, group in months)
    return trends


def co_occurring(value: str, rows: Sequence[Mapping[str, Any]], field: str, other_field: str,
                 top_n: int = 3) -> List[str]:
    """The ``other_field`` values seen most often on rows whose ``field`` contains ``value``."""
    matching = [row for row in rows if value in (row.get(field) or [])]
    counts = count_values(matching, other_field)
    counts.pop(value, None)
    return [item for item, _ in _ranked(counts)[:top_n]]


def _pattern(pattern_type: str, key: str, title: str, description: str, count: int,
             rows: Sequence[Mapping[str, Any]], related: Sequence[Mapping[str, Any]],
             confidence: float, insights: List[str]) -> Dict[str, Any]:
    return {
        "id": f"{pattern_type}_{_slug(key)}",
        "type": pattern_type,
        "title": title,
        "description": description,
        "evidence": [row.get('title') for row in related[:3]],
        "confidence": round(confidence, 3),
        "frequency": count,
        "significance": round(count / len(rows), 3),
        "timespan": _timespan(related),
        "relatedFragments": [row['id'] for row in related],
        "insights": insights,
    }


def thematic_patterns(rows: Sequence[Mapping[str, Any]]) -> List[Dict[str, Any]]:
    total = len(rows)
    threshold = max(3, total * 0.2)
    patterns = []
    for theme, count in _ranked(count_values(rows, 'system_themes')):
        if count < threshold or len(patterns) >= MAX_THEMATIC_PATTERNS:
            continue
        related = [row for row in rows if theme in (row.get('system_themes') or [])]
        insights = [f"Appears in {round(count / total * 100)}% of your writings"]
        associated = co_occurring(theme, rows, 'system_themes', 'system_themes')
        if associated:
            insights.append(f"Often associated with {', '.join(associated)}")
        patterns.append(_pattern(
            'thematic', theme, f"Recurring Focus on {theme}",
            "This theme appears frequently in your writings, suggesting it's a central aspect of your life experience.",
            count, rows, related, min(0.95, count / total + 0.5), insights))
    return patterns


def emotional_patterns(rows: Sequence[Mapping[str, Any]]) -> List[Dict[str, Any]]:
    total = len(rows)
    threshold = max(2, total * 0.15)
    patterns = []
    for emotion, count in _ranked(count_values(rows, 'system_emotions')):
        if count < threshold or len(patterns) >= MAX_EMOTIONAL_PATTERNS:
            continue
        related = [row for row in rows if emotion in (row.get('system_emotions') or [])]
        insights = [f"Present in {round(count / total * 100)}% of your writings"]
        themes = co_occurring(emotion, rows, 'system_emotions', 'system_themes')
        if themes:
            insights.append(f"Associated with themes: {', '.join(themes)}")
        patterns.append(_pattern(
            'emotional', emotion, f"Emotional Pattern: {emotion}",
            f"You frequently write about {emotion.lower()}, indicating this emotion plays a significant role "
            f"in your life narrative.",
            count, rows, related, min(0.9, count / total + 0.4), insights))
    return patterns


def growth_insights(rows: Sequence[Mapping[str, Any]]) -> List[Dict[str, Any]]:
    """
    For every theme seen at least twice, its share of each year's fragments.
    Direction compares the first and last year; themes that hold steady are left out.
    """
    years = group_by_period(rows, 'year')
    insights = []
    for theme, count in _ranked(count_values(rows, 'system_themes')):
        if count < 2 or len(years) < 2:
            continue
        timeline = []
        for year, group in years.items():
            matching = [row for row in group if theme in (row.get('system_themes') or [])]
            timeline.append({
                "period": year,
                "value": round(len(matching) / len(group), 3),
                "evidence": [row.get('title') for row in matching[:3]],
            })
        change = timeline[-1]['value'] - timeline[0]['value']
        if abs(change) <= GROWTH_CHANGE_THRESHOLD:
            continue
        growing = change > 0
        insights.append({
            "area": theme,
            "direction": 'growing' if growing else 'declining',
            "strength": round(abs(change), 3),
            "timeline": timeline,
            "recommendations": [
                f"Keep writing about {theme}; it is taking a larger place in your story" if growing
                else f"Revisit {theme}; it appears less often than it used to",
            ],
        })
    return sorted(insights, key=lambda insight: insight['strength'], reverse=True)


def growth_patterns(rows: Sequence[Mapping[str, Any]], growth: Sequence[Mapping[str, Any]]) -> List[Dict[str, Any]]:
    patterns = []
    for insight in growth:
        if insight['direction'] != 'growing' or insight['strength'] <= GROWTH_PATTERN_MIN_STRENGTH:
            continue
        theme = insight['area']
        related = [row for row in rows if theme in (row.get('system_themes') or [])]
        first, last = insight['timeline'][0], insight['timeline'][-1]
        pattern = _pattern(
            'growth', theme, f"Growing Focus on {theme}",
            f"Your interest in {theme} has been increasing over time, suggesting personal growth in this area.",
            len(related), rows, related, min(0.9, 0.5 + insight['strength'] / 2),
            [f"Share of your writing rose from {round(first['value'] * 100)}% in {first['period']} "
             f"to {round(last['value'] * 100)}% in {last['period']}"])
        pattern['significance'] = insight['strength']
        patterns.append(pattern)
    return patterns


def relationship_mappings(rows: Sequence[Mapping[str, Any]]) -> List[Dict[str, Any]]:
    """Tags used on two or more fragments, strongest first."""
    total = len(rows)
    mappings = []
    for tag, count in _ranked(count_values(rows, 'tags')):
        if count < 2:
            continue
        related = [row for row in rows if tag in (row.get('tags') or [])]
        mappings.append({
            "entity": tag,
            "type": 'concept',
            "strength": round(count / total, 3),
            "frequency": count,
            "evolution": [{"period": year, "count": len(group)}
                          for year, group in group_by_period(related, 'year').items()],
            "keyMoments": [{"date": row.get('created_at'), "fragment": row['id']} for row in related[:5]],
        })
    return mappings[:MAX_RELATIONSHIPS]


def summarize(rows: Sequence[Mapping[str, Any]], trends: Sequence[Mapping[str, Any]],
              growth: Sequence[Mapping[str, Any]], relationships: Sequence[Mapping[str, Any]]) -> Dict[str, Any]:
    total = len(rows)
    emotion_counts = _ranked(count_values(rows, 'system_emotions'))[:10]
    average_length = sum(len(row.get('body') or '') for row in rows) / total

    yearly = [trend for trend in trends if trend['granularity'] == 'year']
    mean_frequency = sum(t['writingFrequency'] for t in yearly) / len(yearly) if yearly else 0
    growing = sum(1 for g in growth if g['direction'] == 'growing')
    declining = len(growth) - growing
    if growing > declining:
        trajectory = 'growing'
    elif declining > growing:
        trajectory = 'narrowing'
    else:
        trajectory = 'steady'

    return {
        "dominantThemes": [theme for theme, _ in _ranked(count_values(rows, 'system_themes'))[:5]],
        "emotionalProfile": {emotion: round(count / total, 3) for emotion, count in emotion_counts},
        "writingStyle": writing_style(average_length),
        "growthTrajectory": trajectory,
        "keyRelationships": [mapping['entity'] for mapping in relationships[:5]],
        "significantPeriods": [t['period'] for t in yearly if t['writingFrequency'] > mean_frequency],
    }


def recommendations(growth: Sequence[Mapping[str, Any]]) -> Dict[str, List[str]]:
    return {
        "explorationSuggestions": list(EXPLORATION_SUGGESTIONS),
        "writingPrompts": list(WRITING_PROMPTS),
        "reflectionQuestions": list(REFLECTION_QUESTIONS),
        "growthOpportunities": [f"Continue developing in {g['area']}" for g in growth
                                if g['direction'] == 'growing'][:3],
    }


def overall_confidence(total: int, patterns: Sequence[Mapping[str, Any]]) -> float:
    base = min(0.9, total / 20)
    pattern_confidence = sum(p['confidence'] for p in patterns) / len(patterns) if patterns else 0.5
    return round((base + pattern_confidence) / 2, 3)


def generate_personal_insights(rows: Sequence[Mapping[str, Any]], now: Optional[datetime] = None) -> Dict[str, Any]:
    """
    Full insights document for one user's fragment rows.
    Raises NotFoundError when there is nothing to analyze.
    """
    if not rows:
        raise NotFoundError("No fragments found for analysis")

    trends = temporal_trends(rows)
    growth = growth_insights(rows)
    patterns = thematic_patterns(rows) + emotional_patterns(rows) + growth_patterns(rows, growth)
    patterns = sorted(patterns, key=lambda p: p['significance'], reverse=True)[:MAX_PATTERNS]
    relationships = relationship_mappings(rows)

    logger.debug(f"Generated {len(patterns)} patterns and {len(trends)} trends from {len(rows)} fragments")
    return {
        "patterns": patterns,
        "temporalTrends": trends,
        "growthInsights": growth,
        "relationshipMappings": relationships,
        "summary": summarize(rows, trends, growth, relationships),
        "recommendations": recommendations(growth),
        "metadata": {
            "analyzedFragments": len(rows),
            "timeSpan": _timespan(rows),
            "lastUpdated": to_utc_iso(now or utc_now()),
            "confidence": overall_confidence(len(rows), patterns),
        },
    }


def select_sections(insights: Mapping[str, Any], analysis_type: str) -> Dict[str, Any]:
    """The slice of a full insights document that one ``type=`` query asks for."""
    if analysis_type == 'patterns':
        keys = ('patterns', 'metadata')
    elif analysis_type == 'growth':
        keys = ('growthInsights', 'summary', 'metadata')
    elif analysis_type == 'relationships':
        keys = ('relationshipMappings', 'metadata')
    elif analysis_type == 'full':
        return dict(insights)
    else:
        raise InputError(f"Invalid insights type '{analysis_type}'. Use one of: {', '.join(INSIGHT_TYPES)}")
    return {key: insights[key] for key in keys}


# --- Focused analyses ---

def filter_patterns(insights: Mapping[str, Any], pattern_type: Optional[str]) -> List[Dict[str, Any]]:
    if pattern_type in PATTERN_TYPES:
        return [p for p in insights['patterns'] if p['type'] == pattern_type]
    return list(insights['patterns'])


def period_profile(rows: Sequence[Mapping[str, Any]]) -> Dict[str, Any]:
    lengths = [len(row.get('body') or '') for row in rows]
    return {
        "fragments": len(rows),
        "themes": count_values(rows, 'system_themes'),
        "emotions": count_values(rows, 'system_emotions'),
        "averageLength": round(sum(lengths) / len(lengths), 1) if lengths else 0,
    }


def emerging_elements(before: Mapping[str, int], after: Mapping[str, int], top_n: int = 5) -> List[Dict[str, Any]]:
    emerging = [{"element": element, "change": count - before.get(element, 0)}
                for element, count in after.items() if count > before.get(element, 0)]
    return sorted(emerging, key=lambda item: item['change'], reverse=True)[:top_n]


def changing_elements(before: Mapping[str, int], after: Mapping[str, int], top_n: int = 5) -> List[Dict[str, Any]]:
    changing = []
    for element in list(before) + [e for e in after if e not in before]:
        old, new = before.get(element, 0), after.get(element, 0)
        if old != new:
            changing.append({"element": element, "change": abs(new - old),
                             "direction": 'increase' if new > old else 'decrease'})
    return sorted(changing, key=lambda item: item['change'], reverse=True)[:top_n]


def compare_periods(first_rows: Sequence[Mapping[str, Any]], second_rows: Sequence[Mapping[str, Any]]) -> Dict[str, Any]:
    first, second = period_profile(first_rows), period_profile(second_rows)
    return {
        "period1": first,
        "period2": second,
        "changes": {
            "fragmentCount": second['fragments'] - first['fragments'],
            "emergingThemes": emerging_elements(first['themes'], second['themes']),
            "changingEmotions": changing_elements(first['emotions'], second['emotions']),
        },
    }


def trend_projection(trends: Sequence[Mapping[str, Any]], metric: str) -> float:
    """Average of the last three periods nudged by half their overall change."""
    if len(trends) < 2:
        return 0
    values = [t.get(metric) or 0 for t in trends[-3:]]
    average = sum(values) / len(values)
    return round(average + (values[-1] - values[0]) * 0.5, 2)


def predict_trends(insights: Mapping[str, Any], time_horizon: int = 6, confidence: float = 0.7) -> Dict[str, Any]:
    yearly = [t for t in insights['temporalTrends'] if t['granularity'] == 'year']
    trajectory = []
    for trend in yearly[-3:]:
        ranked = _ranked(trend['emotions'])
        trajectory.append({"period": trend['period'], "dominantEmotion": ranked[0][0] if ranked else 'neutral'})
    return {
        "likelyThemes": [
            {"theme": g['area'], "probability": g['strength'],
             "reasoning": f"Based on {len(g['timeline'])} years of growth data"}
            for g in insights['growthInsights'] if g['direction'] == 'growing' and g['strength'] > confidence
        ],
        "emotionalTrajectory": trajectory,
        "writingPatterns": {
            "expectedFrequency": trend_projection(yearly, 'writingFrequency'),
            "expectedLength": trend_projection(yearly, 'averageLength'),
            "timeHorizon": f"{time_horizon} months",
        },
    }


def recommendations_for(insights: Mapping[str, Any], focus: str = 'growth', count: int = 5) -> List[str]:
    key = {
        'exploration': 'explorationSuggestions',
        'writing': 'writingPrompts',
        'reflection': 'reflectionQuestions',
    }.get(focus, 'growthOpportunities')
    return insights['recommendations'][key][:count]

#
# End of Insights_Analyzer.py
#######################################################################################################################
