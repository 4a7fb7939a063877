# Link_Builder.py
# Description: Computes semantic and rule-based links between fragments and stores them.
#
# Imports
from datetime import timedelta
from typing import Any, Dict, List, Mapping, Sequence
#
# 3rd-party Libraries
from loguru import logger
#
# Local Imports
from living_library_API.app.core.DB_Management.Library_DB import LibraryDB
from living_library_API.app.core.exceptions import ForbiddenError, InputError, NotFoundError
from living_library_API.app.core.Utils.Utils import (
    cosine_similarity,
    haversine_meters,
    parse_timestamp,
    to_utc_iso,
    utc_now,
)
#
#######################################################################################################################
#
# Functions:

SEMANTIC_NEIGHBOURS = 12
SEMANTIC_MIN_SIMILARITY = 0.7
SHARED_TAG_MIN = 2
TIME_WINDOW = timedelta(days=7)
TIME_WINDOW_SCORE = 0.8
NEARBY_METERS = 1000.0


class FragmentNotReadyError(InputError):
    def __init__(self, status: str, **kwargs):
        super().__init__("Fragment is not ready for linking", details={"status": status}, **kwargs)
        self.status = status


def _format_gap(delta: timedelta) -> str:
    if delta.days >= 1:
        return f"{delta.days} day{'s' if delta.days != 1 else ''}"
    hours = int(delta.total_seconds() // 3600)
    if hours >= 1:
        return f"{hours} hour{'s' if hours != 1 else ''}"
    minutes = int(delta.total_seconds() // 60)
    return f"{minutes} minute{'s' if minutes != 1 else ''}"


def semantic_links(fragment: Mapping[str, Any], candidates: Sequence[Mapping[str, Any]]) -> List[Dict[str, Any]]:
    embedding = fragment.get('embedding')
    if not isinstance(embedding, list) or not embedding:
        return []
    scored = []
    for candidate in candidates:
        other = candidate.get('embedding')
        if candidate.get('status') != 'READY' or not isinstance(other, list):
            continue
        scored.append((cosine_similarity(embedding, other), candidate['id']))
    scored.sort(key=lambda item: item[0], reverse=True)
    return [
        {"to_id": to_id, "type": "SEMANTIC", "score": similarity,
         "reason": f"High semantic similarity ({similarity:.2f}) based on content analysis"}
        for similarity, to_id in scored[:SEMANTIC_NEIGHBOURS]
        if similarity > SEMANTIC_MIN_SIMILARITY
    ]


def rule_links(fragment: Mapping[str, Any], candidates: Sequence[Mapping[str, Any]]) -> List[Dict[str, Any]]:
    links = []
    tags = set(fragment.get('tags') or [])
    event_at = parse_timestamp(fragment.get('event_at'))
    lat, lng = fragment.get('lat'), fragment.get('lng')

    for candidate in candidates:
        shared = [t for t in (candidate.get('tags') or []) if t in tags]
        shared = list(dict.fromkeys(shared))
        if len(shared) >= SHARED_TAG_MIN:
            links.append({"to_id": candidate['id'], "type": "SHARED_TAG", "score": len(shared) / 10,
                          "reason": f"Shares {len(shared)} tags: {', '.join(shared)}"})

        other_event = parse_timestamp(candidate.get('event_at'))
        if event_at and other_event:
            gap = abs(event_at - other_event)
            if gap <= TIME_WINDOW:
                links.append({"to_id": candidate['id'], "type": "SAME_TIMEWINDOW", "score": TIME_WINDOW_SCORE,
                              "reason": f"Occurred within same time window ({_format_gap(gap)} apart)"})

        if None not in (lat, lng, candidate.get('lat'), candidate.get('lng')):
            distance = haversine_meters(lat, lng, candidate['lat'], candidate['lng'])
            if distance <= NEARBY_METERS:
                place = fragment.get('location_text') or 'same area'
                links.append({"to_id": candidate['id'], "type": "SAME_LOCATION",
                              "score": 1 - distance / NEARBY_METERS,
                              "reason": f"Located nearby ({round(distance)}m apart) in {place}"})
    return links


def recompute_links(db: LibraryDB, fragment_id: str, user_id: str) -> Dict[str, Any]:
    """
    Replaces every link touching ``fragment_id`` with freshly computed outbound links.

    The caller must own the fragment or the fragment must be PUBLIC, and the
    fragment must be READY. Candidates are the fragments visible to the
    fragment's owner.
    """
    fragment = db.get_fragment_by_id(fragment_id, include_embedding=True)
    if not fragment:
        raise NotFoundError("Fragment not found", context={"fragment_id": fragment_id})
    if fragment['user_id'] != user_id and fragment['visibility'] != 'PUBLIC':
        raise ForbiddenError("Access denied", context={"fragment_id": fragment_id})
    if fragment['status'] != 'READY':
        raise FragmentNotReadyError(fragment['status'], context={"fragment_id": fragment_id})

    candidates = db.get_candidate_link_fragments(fragment_id, fragment['user_id'])
    links = semantic_links(fragment, candidates) + rule_links(fragment, candidates)
    db.replace_links_for_fragment(fragment_id, links)

    stored = db.get_links_from(fragment_id)
    db.add_audit_event(user_id, 'links_recomputed', fragment_id,
                       {"links_created": len(stored), "recomputed_at": to_utc_iso(utc_now())})
    logger.info(f"Recomputed links for fragment {fragment_id}: {len(stored)} links")
    return {"success": True, "linksCreated": len(stored), "links": stored}

#
# End of Link_Builder.py
#######################################################################################################################
