"""Tests for krishi.nlu.language: script and keyword based detection."""

import pytest

from krishi.nlu.language import DECISION_THRESHOLD, LanguageDetector, LanguageResult


@pytest.fixture
def detector():
    return LanguageDetector()


class TestLanguageDetector:
    def test_devanagari_with_keywords_is_marathi(self, detector):
        result = detector.detect("माझ्या कापसाच्या पिकाला पाऊस नुकसान")
        assert result.language == "mr"
        assert result.confidence > DECISION_THRESHOLD
        assert result.confidence == pytest.approx(1.0)

    def test_devanagari_without_keywords_is_marathi(self, detector):
        result = detector.detect("नमस्कार")
        assert result == LanguageResult("mr", 1.0)

    def test_english_query(self, detector):
        result = detector.detect("What is the weather tomorrow?")
        assert result.language == "en"
        assert result.confidence == pytest.approx(1.0)

    @pytest.mark.parametrize("text", ["", "   ", "\n\t"])
    def test_empty_or_whitespace_is_unknown(self, detector, text):
        assert detector.detect(text) == LanguageResult("unknown", 0.0)

    def test_no_signal_is_unknown(self, detector):
        result = detector.detect("12345")
        assert result.language == "unknown"
        assert result.confidence == 0.0

    def test_mixed_script_leans_marathi(self, detector):
        # Script weight 0.8 + one Marathi keyword against two English hits
        result = detector.detect("my कापूस crop")
        assert result.language == "mr"
        assert 0.5 < result.confidence < 1.0

    def test_confidence_is_normalized(self, detector):
        for text in ("rain rain rain", "पाऊस पाणी खत", "rain पाऊस"):
            result = detector.detect(text)
            assert 0.0 <= result.confidence <= 1.0

    def test_deterministic(self, detector):
        text = "उद्या पाऊस पडेल का?"
        assert detector.detect(text) == detector.detect(text)

    def test_to_dict(self, detector):
        assert detector.detect("").to_dict() == {"language": "unknown", "confidence": 0.0}
