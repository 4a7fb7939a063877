# Rule_Based_Classification.py
# Description: Keyword/regex classifier used when no hosted model is configured, and as the fallback for one.
#
# Imports
import re
from typing import Dict, List, Optional, Pattern, Tuple
#
# 3rd-party Libraries
#
# Local Imports
from living_library_API.app.core.AI_Services.AI_Interfaces import ClassificationService, PIIDetection
#
#######################################################################################################################
#
# Functions:

EMOTION_KEYWORDS: Dict[str, List[str]] = {
    'joy': ['happy', 'excited', 'joy', 'celebration', 'wonderful', 'amazing', 'great', 'love'],
    'sadness': ['sad', 'disappointed', 'lonely', 'grief', 'loss', 'hurt', 'pain'],
    'anger': ['angry', 'frustrated', 'mad', 'rage', 'furious', 'annoyed'],
    'fear': ['scared', 'afraid', 'anxious', 'worried', 'nervous', 'panic'],
    'surprise': ['surprised', 'shocked', 'unexpected', 'sudden', 'wow'],
    'nostalgia': ['remember', 'reminds', 'childhood', 'past', 'memories', 'used to'],
    'gratitude': ['grateful', 'thankful', 'appreciate', 'blessed', 'lucky'],
    'pride': ['proud', 'accomplished', 'achievement', 'success', 'won'],
}

THEME_KEYWORDS: Dict[str, List[str]] = {
    'family': ['family', 'mother', 'father', 'parents', 'siblings', 'children', 'kids', 'relatives'],
    'work': ['work', 'job', 'career', 'office', 'colleague', 'boss', 'meeting', 'project'],
    'travel': ['travel', 'trip', 'vacation', 'journey', 'airport', 'hotel', 'sightseeing'],
    'health': ['health', 'doctor', 'hospital', 'medicine', 'exercise', 'fitness', 'illness'],
    'education': ['school', 'university', 'learning', 'study', 'teacher', 'student', 'exam'],
    'relationships': ['friend', 'partner', 'relationship', 'dating', 'marriage', 'love'],
    'hobbies': ['hobby', 'music', 'art', 'reading', 'sports', 'gaming', 'cooking'],
    'home': ['home', 'house', 'apartment', 'garden', 'neighborhood', 'moving'],
    'nature': ['nature', 'outdoors', 'hiking', 'beach', 'mountains', 'forest', 'animals'],
    'celebration': ['birthday', 'wedding', 'holiday', 'party', 'anniversary', 'graduation'],
}

# Detections are reported pattern by pattern, in this order.
PII_PATTERNS: List[Tuple[str, Pattern]] = [
    ('email', re.compile(r'\b[A-Za-z0-9._%+-]+@[A-Za-z0-9.-]+\.[A-Z|a-z]{2,}\b')),
    ('phone', re.compile(r'\b\d{3}[-.]?\d{3}[-.]?\d{4}\b')),
    ('ssn', re.compile(r'\b\d{3}-\d{2}-\d{4}\b')),
    ('credit_card', re.compile(r'\b\d{4}[-\s]?\d{4}[-\s]?\d{4}[-\s]?\d{4}\b')),
]
PII_RULE_CONFIDENCE = 0.9


class RuleBasedClassificationService(ClassificationService):
    """Substring keyword matching for emotions/themes; regexes for PII. Never fails."""

    def __init__(self, emotion_keywords: Optional[Dict[str, List[str]]] = None,
                 theme_keywords: Optional[Dict[str, List[str]]] = None):
        self.emotion_keywords = emotion_keywords or EMOTION_KEYWORDS
        self.theme_keywords = theme_keywords or THEME_KEYWORDS

    @staticmethod
    def _match_labels(text: str, table: Dict[str, List[str]]) -> List[str]:
        lower_text = text.lower()
        return [label for label, keywords in table.items() if any(k in lower_text for k in keywords)]

    def emotions_for(self, text: str) -> List[str]:
        return self._match_labels(text, self.emotion_keywords)

    def themes_for(self, text: str) -> List[str]:
        return self._match_labels(text, self.theme_keywords)

    def pii_for(self, text: str) -> List[PIIDetection]:
        detections = []
        for pii_type, pattern in PII_PATTERNS:
            for match in pattern.finditer(text):
                detections.append(PIIDetection(
                    text=match.group(0),
                    type=pii_type,
                    start=match.start(),
                    end=match.end(),
                    confidence=PII_RULE_CONFIDENCE,
                ))
        return detections

    async def classify_emotions(self, text: str) -> List[str]:
        return self.emotions_for(text)

    async def classify_themes(self, text: str) -> List[str]:
        return self.themes_for(text)

    async def detect_pii(self, text: str) -> List[PIIDetection]:
        return self.pii_for(text)

#
# End of Rule_Based_Classification.py
#######################################################################################################################
