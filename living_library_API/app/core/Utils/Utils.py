# Utils.py
#########################################
# General Utilities Library
# Small helpers shared by the DB layer, link builder and search services.
#
####################
# Function List
#
# 1. utc_now() -> datetime
# 2. to_utc_iso(value) -> str
# 3. parse_timestamp(value) -> Optional[datetime]
# 4. cosine_similarity(a, b) -> float
# 5. haversine_meters(lat1, lng1, lat2, lng2) -> float
# 6. escape_like(term) -> str
#
####################
#
# Imports
import math
from datetime import datetime, timezone
from typing import Optional, Sequence, Union
#
# 3rd-party Libraries
import numpy as np
#
# Local Imports
#
#######################################################################################################################
#
# Functions:

EARTH_RADIUS_METERS = 6371008.8


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def to_utc_iso(value: Union[datetime, str]) -> str:
    """
    Normalizes a datetime (or ISO string) to a fixed-width UTC string,
    e.g. '2024-08-17T14:30:00.000Z'. Naive datetimes are treated as UTC.

    Fixed width keeps lexicographic ordering in SQLite equal to time ordering.
    """
    if isinstance(value, str):
        parsed = parse_timestamp(value)
        if parsed is None:
            raise ValueError(f"Invalid timestamp: {value!r}")
        value = parsed
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc).isoformat(timespec='milliseconds').replace('+00:00', 'Z')


def parse_timestamp(value: Union[datetime, str, None]) -> Optional[datetime]:
    """Parses an ISO timestamp (with 'Z' or an offset) into an aware datetime. Returns None on failure."""
    if value is None:
        return None
    if isinstance(value, datetime):
        return value if value.tzinfo else value.replace(tzinfo=timezone.utc)
    text = value.strip()
    if not text:
        return None
    if text.endswith('Z'):
        text = text[:-1] + '+00:00'
    try:
        parsed = datetime.fromisoformat(text)
    except ValueError:
        return None
    return parsed if parsed.tzinfo else parsed.replace(tzinfo=timezone.utc)


def cosine_similarity(a: Sequence[float], b: Sequence[float]) -> float:
    """Cosine similarity of two vectors. Mismatched, empty or zero vectors score 0.0."""
    if not a or not b or len(a) != len(b):
        return 0.0
    vec_a = np.asarray(a, dtype=np.float64)
    vec_b = np.asarray(b, dtype=np.float64)
    denom = np.linalg.norm(vec_a) * np.linalg.norm(vec_b)
    if denom == 0:
        return 0.0
    return float(np.dot(vec_a, vec_b) / denom)


def haversine_meters(lat1: float, lng1: float, lat2: float, lng2: float) -> float:
    phi1, phi2 = math.radians(lat1), math.radians(lat2)
    d_phi = math.radians(lat2 - lat1)
    d_lambda = math.radians(lng2 - lng1)
    h = math.sin(d_phi / 2) ** 2 + math.cos(phi1) * math.cos(phi2) * math.sin(d_lambda / 2) ** 2
    return 2 * EARTH_RADIUS_METERS * math.asin(min(1.0, math.sqrt(h)))


def escape_like(term: str) -> str:
    """Escapes LIKE wildcards so user text matches literally (use with ESCAPE '\\')."""
    return term.replace('\\', '\\\\').replace('%', '\\%').replace('_', '\\_')

#
# End of Utils.py
#######################################################################################################################
