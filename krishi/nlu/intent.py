"""
Keyword-based intent classification for farmer queries.
"""

import logging
from dataclasses import dataclass
from typing import Optional, Dict, Any

from krishi.nlu.entities import EntityBag, EntityExtractor
from krishi.nlu.lexicon import INTENT_KEYWORDS, INTENT_PRIORITY

logger = logging.getLogger(__name__)

DEFAULT_INTENT = "general"

# Reported for the default intent so a confidence badge can always be shown
CONFIDENCE_FLOOR = 0.1

# Matches needed for full confidence
FULL_CONFIDENCE_MATCHES = 3


@dataclass(frozen=True)
class IntentResult:
    """Classified intent with extracted entities."""
    intent: str = DEFAULT_INTENT
    entities: EntityBag = EntityBag()
    confidence: float = CONFIDENCE_FLOOR
    sub_intent: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        data = {
            "intent": self.intent,
            "entities": self.entities.to_dict(),
            "confidence": self.confidence
        }
        if self.sub_intent:
            data["sub_intent"] = self.sub_intent
        return data


def keyword_language(language: str) -> str:
    """Marathi and English have their own lists; anything else uses English."""
    return language if language in ("mr", "en") else "en"


def score_to_confidence(score: int) -> float:
    if score <= 0:
        return CONFIDENCE_FLOOR
    return min(score / FULL_CONFIDENCE_MATCHES, 1.0)


class IntentClassifier:
    """
    Scores the fixed intent taxonomy against language-specific keywords.

    The same (text, language) pair always yields the same result.
    """

    def __init__(self, entity_extractor: Optional[EntityExtractor] = None):
        self.entity_extractor = entity_extractor or EntityExtractor()

    def score(self, text: str, language: str) -> Dict[str, int]:
        """Raw keyword match count per named intent, in priority order."""
        lower_text = text.lower()
        key = keyword_language(language)

        scores = {}
        for intent in INTENT_PRIORITY:
            keywords = INTENT_KEYWORDS[intent][key]
            scores[intent] = sum(1 for keyword in keywords if keyword.lower() in lower_text)
        return scores

    def classify(self, text: str, language: str) -> IntentResult:
        """
        Classify a query.

        Args:
            text: User query
            language: Detected language tag

        Returns:
            IntentResult; "general" with the confidence floor when nothing matched
        """
        best_intent, best_score = DEFAULT_INTENT, 0
        for intent, score in self.score(text, language).items():
            # Strictly greater: earlier intents keep ties
            if score > best_score:
                best_intent, best_score = intent, score

        entities = self.entity_extractor.extract(text, language)

        logger.debug(f"Classified intent={best_intent} score={best_score} language={language}")

        return IntentResult(
            intent=best_intent,
            entities=entities,
            confidence=score_to_confidence(best_score)
        )
