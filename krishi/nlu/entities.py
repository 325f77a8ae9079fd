"""
Rule-based entity extraction for crops, diseases and timeframes.
"""

import logging
import re
from dataclasses import dataclass
from typing import Optional, Dict, Any, Tuple

from krishi.nlu.lexicon import CROP_GAZETTEER, DISEASE_GAZETTEER, TIMEFRAMES

logger = logging.getLogger(__name__)

# Word separators. Devanagari vowel signs are not \w, so \W cannot be used.
WORD_SEPARATORS = re.compile(r"[\s.,!?;:।॥\"'()\[\]{}/\\-]+")


@dataclass(frozen=True)
class EntityBag:
    """
    Entities found in a query.
    None means "not detected"; lists are never empty when present.
    """
    crops: Optional[Tuple[str, ...]] = None
    diseases: Optional[Tuple[str, ...]] = None
    timeframe: Optional[str] = None
    location: Optional[str] = None

    def is_empty(self) -> bool:
        return not (self.crops or self.diseases or self.timeframe or self.location)

    def to_dict(self) -> Dict[str, Any]:
        """Serialize, omitting entities that were not detected."""
        data: Dict[str, Any] = {}
        if self.crops:
            data["crops"] = list(self.crops)
        if self.diseases:
            data["diseases"] = list(self.diseases)
        if self.timeframe:
            data["timeframe"] = self.timeframe
        if self.location:
            data["location"] = self.location
        return data


def gazetteer_language(language: str) -> str:
    """Marathi gets the Marathi lists; everything else uses English."""
    return "mr" if language == "mr" else "en"


def word_index(text: str) -> str:
    """Lowercased text with one space before every word."""
    words = [w for w in WORD_SEPARATORS.split(text.lower()) if w]
    return " " + " ".join(words)


def starts_word(index: str, term: str) -> bool:
    """True when some word (or run of words) in the index begins with term."""
    return (" " + term.lower()) in index


class EntityExtractor:
    """Extracts agricultural entities with fixed gazetteers."""

    def extract(self, text: str, language: str) -> EntityBag:
        """
        Extract entities from text.

        Args:
            text: User query
            language: Detected language tag (mr, en, hi, unknown)

        Returns:
            EntityBag with only the detected fields set
        """
        key = gazetteer_language(language)
        index = word_index(text)

        crops = self._match_gazetteer(index, CROP_GAZETTEER[key])
        diseases = self._match_gazetteer(index, DISEASE_GAZETTEER[key])

        # Last match in list order wins
        timeframe = None
        for expression in TIMEFRAMES[key]:
            if starts_word(index, expression):
                timeframe = expression

        return EntityBag(
            crops=crops or None,
            diseases=diseases or None,
            timeframe=timeframe
        )

    def _match_gazetteer(self, index: str, gazetteer) -> Tuple[str, ...]:
        found = []
        for canonical, stems in gazetteer:
            if canonical in found:
                continue
            if any(starts_word(index, stem) for stem in stems):
                found.append(canonical)
        return tuple(found)
