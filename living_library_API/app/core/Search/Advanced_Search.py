# Advanced_Search.py
# Description: Hybrid (semantic + text) search over a user's fragments, with clustering, suggestions and insights.
#
# Imports
import random
import string
import time
from collections import Counter
from typing import Any, Dict, List, Mapping, Optional, Sequence
#
# 3rd-party Libraries
from cachetools import LRUCache
from loguru import logger
#
# Local Imports
from living_library_API.app.core.AI_Services.AI_Interfaces import EmbeddingService
from living_library_API.app.core.DB_Management.Library_DB import LibraryDB
from living_library_API.app.core.exceptions import LibraryError, SearchFailedError, UpstreamServiceError
from living_library_API.app.core.Search.Facets import count_values
from living_library_API.app.core.Utils.Utils import cosine_similarity, parse_timestamp, utc_now, to_utc_iso
#
#######################################################################################################################
#
# Functions:

SEMANTIC_RESULT_CAP = 10
SUGGESTION_SOURCE_LIMIT = 100
MAX_SUGGESTIONS = 10
CLUSTER_MIN_RESULTS = 3
SHORT_STORY_MAX_CHARS = 500
MEDIUM_STORY_MAX_CHARS = 2000

POSITIVE_EMOTIONS = ('joy', 'happiness', 'love', 'excitement', 'gratitude', 'hope')
NEGATIVE_EMOTIONS = ('sadness', 'anger', 'fear', 'anxiety', 'disappointment')
SEASONS = ('winter', 'spring', 'summer', 'fall')

_RESULT_FIELDS = ('id', 'title', 'body', 'system_themes', 'system_emotions', 'created_at', 'updated_at', 'user_id')


def content_type_for(body: Optional[str]) -> str:
    length = len(body or '')
    if length < SHORT_STORY_MAX_CHARS:
        return 'short'
    if length < MEDIUM_STORY_MAX_CHARS:
        return 'medium'
    return 'long'


def _top_common(rows: Sequence[Mapping[str, Any]], field: str, top_n: int = 3) -> List[str]:
    counts = count_values(rows, field)
    common = sorted(((v, c) for v, c in counts.items() if c >= 2), key=lambda item: item[1], reverse=True)
    return [value for value, _ in common[:top_n]]


def _time_span(rows: Sequence[Mapping[str, Any]]) -> Optional[Dict[str, Any]]:
    dates = [d for d in (parse_timestamp(r.get('created_at')) for r in rows) if d is not None]
    if not dates:
        return None
    return {"start": min(dates), "end": max(dates)}


class AdvancedSearchService:
    """
    Runs one advanced search for one user.

    The semantic step embeds the query and ranks the user's embedded fragments by
    cosine similarity; the traditional step is a text/facet match scored by
    ``calculate_relevance_score``. Results are merged by id, semantic first.
    """

    def __init__(self, db: LibraryDB, embedding_service: Optional[EmbeddingService] = None,
                 embedding_cache: Optional[LRUCache] = None):
        self.db = db
        self.embedding_service = embedding_service
        self.embedding_cache = embedding_cache

    # --- Entry point ---
    async def advanced_search(self, query: str, user_id: str, filters: Optional[Mapping[str, Any]] = None,
                              include_analytics: bool = True, include_clustering: bool = True,
                              include_suggestions: bool = True, limit: int = 20,
                              require_semantic: bool = False) -> Dict[str, Any]:
        filters = filters or {}
        start = time.perf_counter()
        try:
            results = await self.execute_multi_method_search(query, user_id, filters, limit, require_semantic)

            clusters = self.cluster_results(results) if include_clustering and len(results) > CLUSTER_MIN_RESULTS else []
            suggestions = self.generate_suggestions(query, user_id, results) if include_suggestions else []

            search_time = int((time.perf_counter() - start) * 1000)
            if include_analytics:
                analytics = self.generate_analytics(results, search_time)
            else:
                analytics = {"totalResults": len(results), "searchTime": search_time, "method": "hybrid",
                             "relevanceScore": 0.8}

            return {
                "fragments": results[:limit],
                "clusters": clusters,
                "suggestions": suggestions,
                "analytics": analytics,
                "insights": self.generate_insights(results),
            }
        except UpstreamServiceError:
            raise
        except Exception as e:
            logger.opt(exception=e).error(f"Advanced search failed for user {user_id}: {e}")
            raise SearchFailedError(query=query, original_error=e) from e

    # --- Retrieval ---
    async def _embed_query(self, query: str) -> List[float]:
        if self.embedding_cache is not None:
            cached = self.embedding_cache.get(query)
            if cached is not None:
                return cached
        embedding = await self.embedding_service.embed(query)
        if self.embedding_cache is not None:
            self.embedding_cache[query] = embedding
        return embedding

    async def semantic_search(self, query: str, user_id: str, filters: Mapping[str, Any],
                              limit: int) -> List[Dict[str, Any]]:
        time_range = filters.get('time_range') or {}
        query_embedding = await self._embed_query(query)
        candidates = self.db.get_user_fragments_with_embeddings(
            user_id,
            themes=filters.get('themes'),
            emotions=filters.get('emotions'),
            created_from=time_range.get('start'),
            created_to=time_range.get('end'),
        )
        scored = []
        for fragment in candidates:
            embedding = fragment.get('embedding')
            if not isinstance(embedding, list):
                continue
            similarity = cosine_similarity(query_embedding, embedding)
            row = {field: fragment.get(field) for field in _RESULT_FIELDS}
            row.update(similarity=similarity, searchMethod='semantic', relevanceScore=similarity)
            scored.append(row)
        scored.sort(key=lambda r: r['similarity'], reverse=True)
        return scored[:limit]

    def traditional_search(self, query: str, user_id: str, filters: Mapping[str, Any],
                           limit: int) -> List[Dict[str, Any]]:
        time_range = filters.get('time_range') or {}
        rows = self.db.search_user_fragments(
            user_id,
            query=query,
            themes=filters.get('themes'),
            emotions=filters.get('emotions'),
            created_from=time_range.get('start'),
            created_to=time_range.get('end'),
            limit=limit,
        )
        for row in rows:
            row['searchMethod'] = 'traditional'
            row['relevanceScore'] = self.calculate_relevance_score(row, query, filters)
        return rows

    async def execute_multi_method_search(self, query: str, user_id: str, filters: Mapping[str, Any],
                                          limit: int, require_semantic: bool = False) -> List[Dict[str, Any]]:
        results: List[Dict[str, Any]] = []
        if query.strip() and self.embedding_service is not None:
            try:
                results = await self.semantic_search(query, user_id, filters, min(limit, SEMANTIC_RESULT_CAP))
            except LibraryError as e:
                if require_semantic:
                    raise
                logger.warning(f"Semantic search unavailable, continuing with text search: {e}")
        elif require_semantic:
            raise UpstreamServiceError("No embedding service is configured for semantic search")

        seen = {r['id'] for r in results}
        results.extend(r for r in self.traditional_search(query, user_id, filters, limit) if r['id'] not in seen)

        content_type = filters.get('content_type')
        if content_type and content_type != 'all':
            results = [r for r in results if content_type_for(r.get('body')) == content_type]

        results.sort(key=lambda r: r['relevanceScore'], reverse=True)
        return results

    @staticmethod
    def calculate_relevance_score(row: Mapping[str, Any], query: str, filters: Mapping[str, Any]) -> float:
        score = 0.5
        if query:
            lowered = query.lower()
            if lowered in (row.get('title') or '').lower():
                score += 0.3
            if lowered in (row.get('body') or '').lower():
                score += 0.2

        themes = filters.get('themes') or []
        row_themes = row.get('system_themes') or []
        if themes and row_themes:
            score += sum(1 for t in themes if t in row_themes) / len(themes) * 0.2

        emotions = filters.get('emotions') or []
        row_emotions = row.get('system_emotions') or []
        if emotions and row_emotions:
            score += sum(1 for e in emotions if e in row_emotions) / len(emotions) * 0.1

        return min(1.0, score)

    # --- Clustering ---
    def cluster_results(self, results: Sequence[Dict[str, Any]]) -> List[Dict[str, Any]]:
        groups: Dict[str, List[Dict[str, Any]]] = {}
        for result in results:
            themes = result.get('system_themes') or []
            groups.setdefault(themes[0] if themes else 'general', []).append(result)

        clusters = []
        for fragments in groups.values():
            if len(fragments) < 2:
                continue
            common_themes = _top_common(fragments, 'system_themes')
            common_emotions = _top_common(fragments, 'system_emotions')
            span = _time_span(fragments)
            clusters.append({
                "id": self._cluster_id(),
                "title": self.cluster_title(common_themes, len(fragments)),
                "description": self.cluster_description(common_themes, common_emotions, len(fragments)),
                "fragments": fragments,
                "commonThemes": common_themes,
                "commonEmotions": common_emotions,
                "timeSpan": {"start": to_utc_iso(span["start"]), "end": to_utc_iso(span["end"])} if span else None,
                "significance": self.cluster_significance(fragments),
            })
        clusters.sort(key=lambda c: c['significance'], reverse=True)
        return clusters

    @staticmethod
    def _cluster_id() -> str:
        suffix = ''.join(random.choices(string.ascii_lowercase + string.digits, k=9))
        return f"cluster_{int(time.time() * 1000)}_{suffix}"

    @staticmethod
    def cluster_title(themes: Sequence[str], count: int) -> str:
        if not themes:
            return f"{count} Related Memories"
        if len(themes) == 1:
            return f"{themes[0]} Stories ({count})"
        return f"{themes[0]} & {themes[1]} Collection ({count})"

    @staticmethod
    def cluster_description(themes: Sequence[str], emotions: Sequence[str], count: int) -> str:
        theme_text = ' and '.join(themes[:2]) if themes else 'various themes'
        emotion_text = ' and '.join(emotions[:2]) if emotions else 'mixed emotions'
        return f"{count} memories exploring {theme_text} with {emotion_text}"

    @staticmethod
    def cluster_significance(fragments: Sequence[Mapping[str, Any]]) -> float:
        base_score = min(len(fragments) / 10, 1)
        all_themes = [t for f in fragments for t in (f.get('system_themes') or [])]
        unique_count = len(set(all_themes))
        consistency = len(all_themes) / unique_count / len(fragments) if unique_count else 0
        return (base_score + consistency) / 2

    # --- Suggestions ---
    def generate_suggestions(self, query: str, user_id: str,
                             results: Sequence[Mapping[str, Any]] = ()) -> List[Dict[str, Any]]:
        try:
            user_fragments = self.db.get_fragment_facet_rows(user_id, limit=SUGGESTION_SOURCE_LIMIT)
        except LibraryError as e:
            logger.error(f"Suggestion generation failed for user {user_id}: {e}")
            return []

        suggestions: List[Dict[str, Any]] = []
        total = len(user_fragments)
        if total:
            for value, count in Counter(count_values(user_fragments, 'system_themes')).most_common(5):
                if count >= 2:
                    suggestions.append({"type": "theme", "value": value, "confidence": min(0.9, count / total * 2),
                                        "context": f"Found in {count} of your stories", "count": count})
            for value, count in Counter(count_values(user_fragments, 'system_emotions')).most_common(3):
                if count >= 2:
                    suggestions.append({"type": "emotion", "value": value, "confidence": min(0.8, count / total * 2),
                                        "context": f"Appears in {count} memories", "count": count})

        if query and len(query) > 3:
            for related in self.related_queries(query):
                suggestions.append({"type": "query", "value": related, "confidence": 0.7, "context": "AI suggested"})

        suggestions.extend(self.time_based_suggestions())
        suggestions.sort(key=lambda s: s['confidence'], reverse=True)
        return suggestions[:MAX_SUGGESTIONS]

    @staticmethod
    def related_queries(query: str) -> List[str]:
        return [q for q in (f"{query} memories", f"childhood {query}", f"recent {query}") if q != query]

    @staticmethod
    def time_based_suggestions() -> List[Dict[str, Any]]:
        season = SEASONS[(utc_now().month - 1) // 3]
        return [
            {"type": "time", "value": "recent memories", "confidence": 0.6,
             "context": "Explore what you've written recently"},
            {"type": "time", "value": f"{season} memories", "confidence": 0.5, "context": f"Current season: {season}"},
        ]

    # --- Analytics & insights ---
    @staticmethod
    def generate_analytics(results: Sequence[Mapping[str, Any]], search_time: int) -> Dict[str, Any]:
        semantic = sum(1 for r in results if r.get('searchMethod') == 'semantic')
        traditional = sum(1 for r in results if r.get('searchMethod') == 'traditional')
        if semantic > traditional:
            method = 'semantic'
        elif traditional > semantic:
            method = 'traditional'
        else:
            method = 'hybrid'
        relevance = sum((r.get('relevanceScore') or 0.5) for r in results) / len(results) if results else 0
        return {"totalResults": len(results), "searchTime": search_time, "method": method,
                "relevanceScore": round(relevance, 2)}

    def generate_insights(self, results: Sequence[Mapping[str, Any]]) -> Dict[str, Any]:
        if not results:
            return {"patterns": [], "themes": [], "timeDistribution": {}, "emotionalTone": "neutral"}

        all_themes = [t for r in results for t in (r.get('system_themes') or [])]
        return {
            "patterns": self.identify_patterns(results),
            "themes": list(dict.fromkeys(all_themes))[:5],
            "timeDistribution": self.time_distribution(results),
            "emotionalTone": self.emotional_tone(results),
        }

    @staticmethod
    def identify_patterns(results: Sequence[Mapping[str, Any]]) -> List[str]:
        patterns = []
        if len(results) > 5:
            patterns.append('Rich collection of memories')
        span = _time_span(results)
        if span:
            days = (span["end"] - span["start"]).days
            if days > 365:
                patterns.append('Spans multiple years')
            elif days > 30:
                patterns.append('Covers several months')
        common = _top_common(results, 'system_themes')
        if common:
            patterns.append(f"Common themes: {', '.join(common[:2])}")
        return patterns

    @staticmethod
    def time_distribution(results: Sequence[Mapping[str, Any]]) -> Dict[str, int]:
        distribution: Dict[str, int] = {}
        for result in results:
            created = parse_timestamp(result.get('created_at'))
            if created is None:
                continue
            year = str(created.year)
            distribution[year] = distribution.get(year, 0) + 1
        return distribution

    @staticmethod
    def emotional_tone(results: Sequence[Mapping[str, Any]]) -> str:
        emotions = [e.lower() for r in results for e in (r.get('system_emotions') or [])]
        if not emotions:
            return 'neutral'
        positive = sum(1 for e in emotions if any(p in e for p in POSITIVE_EMOTIONS))
        negative = sum(1 for e in emotions if any(n in e for n in NEGATIVE_EMOTIONS))
        if positive > negative * 1.5:
            return 'positive'
        if negative > positive * 1.5:
            return 'negative'
        return 'mixed'

#
# End of Advanced_Search.py
#######################################################################################################################
