"""Query understanding: language detection, intents and entities."""

from krishi.nlu.language import LanguageDetector, LanguageResult
from krishi.nlu.entities import EntityExtractor, EntityBag
from krishi.nlu.intent import IntentClassifier, IntentResult

__all__ = [
    "LanguageDetector",
    "LanguageResult",
    "EntityExtractor",
    "EntityBag",
    "IntentClassifier",
    "IntentResult"
]
