# Moderation_Samples.py
# Description: Sample moderation queue served by the admin moderation endpoint, and the queue filters.
#
# There is no report storage yet; the admin UI is driven by these fixed records.
#
# Imports
import copy
from typing import Any, Dict, List
#
#######################################################################################################################
#
# Functions:

MODERATION_FILTERS = ('pending', 'all', 'high-priority')
HIGH_PRIORITY_SEVERITIES = ('high', 'critical')

SAMPLE_MODERATION_ITEMS: List[Dict[str, Any]] = [
    {
        "id": "1",
        "type": "fragment",
        "title": "Personal Story About Recovery",
        "content": "This story contains potentially sensitive content about addiction recovery...",
        "reportedBy": "user123",
        "reportReason": "Potentially triggering content",
        "severity": "medium",
        "status": "pending",
        "createdAt": "2025-08-17T10:30:00Z",
        "aiConfidence": 0.75,
        "reportCount": 2,
    },
    {
        "id": "2",
        "type": "comment",
        "title": "Comment on \"Life Lessons\"",
        "content": "This comment may contain inappropriate language...",
        "reportedBy": "user456",
        "reportReason": "Inappropriate language",
        "severity": "high",
        "status": "pending",
        "createdAt": "2025-08-17T09:15:00Z",
        "aiConfidence": 0.92,
        "reportCount": 5,
    },
]


def matches_filter(item: Dict[str, Any], queue_filter: str) -> bool:
    if queue_filter == 'all':
        return True
    if queue_filter == 'pending':
        return item.get('status') == 'pending'
    if queue_filter == 'high-priority':
        return item.get('severity') in HIGH_PRIORITY_SEVERITIES
    return False


def get_moderation_items(queue_filter: str = 'pending') -> List[Dict[str, Any]]:
    return [copy.deepcopy(item) for item in SAMPLE_MODERATION_ITEMS if matches_filter(item, queue_filter)]

#
# End of Moderation_Samples.py
#######################################################################################################################
