"""
Language detection for Marathi/English farmer queries.
Script is the dominant signal; keyword hits refine it.
"""

import logging
import re
from dataclasses import dataclass
from typing import Dict, Any

from krishi.nlu.lexicon import (
    DEVANAGARI_WEIGHT,
    KEYWORD_WEIGHT,
    MARATHI_KEYWORDS,
    ENGLISH_KEYWORDS
)

logger = logging.getLogger(__name__)

DEVANAGARI_PATTERN = re.compile(r"[\u0900-\u097F]")

# Minimum normalized score for a language to be reported
DECISION_THRESHOLD = 0.3


@dataclass(frozen=True)
class LanguageResult:
    """Detected language and how sure we are about it."""
    language: str
    confidence: float

    def to_dict(self) -> Dict[str, Any]:
        return {"language": self.language, "confidence": self.confidence}


UNKNOWN = LanguageResult(language="unknown", confidence=0.0)


def _keyword_hits(text: str, keywords) -> int:
    return sum(1 for keyword in keywords if keyword.lower() in text)


class LanguageDetector:
    """
    Classifies text as Marathi, English or unknown.

    Hindi shares the Devanagari script with Marathi and is reported as
    Marathi; the "hi" tag is reserved for explicit client hints.
    """

    def detect(self, text: str) -> LanguageResult:
        """
        Detect the language of a text span.

        Args:
            text: Text to classify

        Returns:
            LanguageResult with the winning tag and its normalized score
        """
        if not text or not text.strip():
            return UNKNOWN

        lower_text = text.lower()

        marathi_score = 0.0
        english_score = 0.0

        if DEVANAGARI_PATTERN.search(text):
            marathi_score += DEVANAGARI_WEIGHT

        marathi_score += KEYWORD_WEIGHT * _keyword_hits(lower_text, MARATHI_KEYWORDS)
        english_score += KEYWORD_WEIGHT * _keyword_hits(lower_text, ENGLISH_KEYWORDS)

        total = marathi_score + english_score
        if total == 0:
            return UNKNOWN

        marathi_confidence = marathi_score / total
        english_confidence = 1.0 - marathi_confidence

        if marathi_confidence >= english_confidence and marathi_confidence > DECISION_THRESHOLD:
            return LanguageResult("mr", marathi_confidence)
        if english_confidence > DECISION_THRESHOLD:
            return LanguageResult("en", english_confidence)

        return LanguageResult("unknown", max(marathi_confidence, english_confidence))
