# Verification_Samples.py
# Description: Sample verification requests and trust metrics served by the admin verification endpoint.
#
# There is no verification workflow storage yet; the admin UI is driven by these fixed records.
#
# Imports
import copy
from typing import Any, Dict, List
#
#######################################################################################################################
#
# Functions:

SAMPLE_VERIFICATION_REQUESTS: List[Dict[str, Any]] = [
    {
        "id": "1",
        "userId": "user_123",
        "userName": "Dr. Sarah Chen",
        "userEmail": "sarah.chen@email.com",
        "verificationType": "expertise",
        "submittedDocuments": ["medical_license.pdf", "cv.pdf"],
        "personalStatement": "I am a practicing psychiatrist with 15 years of experience specializing in trauma recovery...",
        "endorsements": 8,
        "communityVotes": {"positive": 24, "negative": 2},
        "aiCredibilityScore": 0.94,
        "status": "pending",
        "submittedAt": "2025-08-15T14:30:00Z",
    },
    {
        "id": "2",
        "userId": "user_456",
        "userName": "Mark Thompson",
        "userEmail": "mark.t@email.com",
        "verificationType": "experience",
        "submittedDocuments": ["testimonial.pdf"],
        "personalStatement": "I have lived experience with addiction recovery and have been sober for 8 years...",
        "endorsements": 12,
        "communityVotes": {"positive": 45, "negative": 1},
        "aiCredibilityScore": 0.87,
        "status": "under-review",
        "submittedAt": "2025-08-14T09:15:00Z",
    },
]

SAMPLE_TRUST_METRICS: List[Dict[str, Any]] = [
    {
        "userId": "user_789",
        "userName": "Alex Rivera",
        "trustScore": 0.92,
        "verificationLevel": "verified",
        "contributionCount": 34,
        "positiveRatings": 128,
        "communityReports": 0,
        "accountAge": 245,
        "lastActivity": "2025-08-17T08:30:00Z",
    },
    {
        "userId": "user_101",
        "userName": "Jamie Wilson",
        "trustScore": 0.67,
        "verificationLevel": "basic",
        "contributionCount": 8,
        "positiveRatings": 23,
        "communityReports": 1,
        "accountAge": 45,
        "lastActivity": "2025-08-16T15:45:00Z",
    },
]


def get_verification_requests() -> List[Dict[str, Any]]:
    return copy.deepcopy(SAMPLE_VERIFICATION_REQUESTS)


def get_trust_metrics() -> List[Dict[str, Any]]:
    return copy.deepcopy(SAMPLE_TRUST_METRICS)

#
# End of Verification_Samples.py
#######################################################################################################################
