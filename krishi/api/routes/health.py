"""
Health Check Endpoints.
Liveness, readiness and quick self-tests of query understanding and speech.
"""

import time
from datetime import datetime
from fastapi import APIRouter, Request

from krishi.config import get_settings, INTENTS
from krishi.nlu import IntentClassifier, LanguageDetector
from krishi.services.tts.capability import DEFAULT_EDGE_VOICES

router = APIRouter()
settings = get_settings()

# One query per language the assistant understands
SELF_TEST_QUERIES = [
    "माझ्या कापसाच्या पिकाला पाऊस नुकसान",
    "What is the onion price in the market today?"
]


@router.get("/health")
async def health_check():
    """Basic health check endpoint."""
    return {
        "status": "healthy",
        "timestamp": datetime.utcnow().isoformat(),
        "version": settings.APP_VERSION
    }


@router.get("/health/ready")
async def readiness_check(request: Request):
    """
    Readiness check - the agent log is writable and the session registry exists.
    """
    agent_logger = getattr(request.app.state, "agent_logger", None)
    checks = {
        "agent_log": agent_logger is not None and agent_logger.log_path.parent.exists(),
        "session_registry": hasattr(request.app.state, "session_manager"),
        "intent_lexicon": len(INTENTS) > 0
    }

    return {
        "status": "ready" if all(checks.values()) else "not_ready",
        "checks": checks,
        "geocoding": settings.GEOCODING_ENABLED,
        "timestamp": datetime.utcnow().isoformat()
    }


@router.get("/health/live")
async def liveness_check():
    """
    Liveness check - just verifies the server is responding.
    """
    return {
        "status": "alive",
        "timestamp": datetime.utcnow().isoformat()
    }


@router.get("/health/metrics")
async def metrics(request: Request):
    """
    Live WebSocket sessions and how busy they are.
    """
    metrics_data = {
        "timestamp": datetime.utcnow().isoformat(),
        "version": settings.APP_VERSION,
        "environment": settings.ENVIRONMENT
    }

    session_manager = getattr(request.app.state, "session_manager", None)
    if session_manager is not None:
        sessions = session_manager.sessions()
        metrics_data["active_sessions"] = len(sessions)
        metrics_data["listening_sessions"] = sum(1 for s in sessions if s.speech.is_listening)
        metrics_data["wake_word_sessions"] = sum(1 for s in sessions if s.wake_word.is_listening)
        metrics_data["turns"] = sum(s.turn_count for s in sessions)

    return metrics_data


# ===========================================
# Self-tests
# ===========================================

@router.get("/nlu-test")
async def nlu_test():
    """
    Run the sample Marathi and English queries through language
    detection and intent classification.
    """
    detector = LanguageDetector()
    classifier = IntentClassifier()
    results = []

    for text in SELF_TEST_QUERIES:
        start_time = time.time()
        language = detector.detect(text)
        intent = classifier.classify(text, language.language)
        results.append({
            "text": text,
            "language": language.to_dict(),
            "intent": intent.to_dict(),
            "latency_ms": round((time.time() - start_time) * 1000, 3)
        })

    return {
        "service": "nlu",
        "status": "ready",
        "intents": INTENTS,
        "results": results
    }


@router.get("/tts-test")
async def tts_test():
    """Synthesis settings and the fallback edge-tts voice per language."""
    return {
        "service": "tts",
        "engine": "edge-tts",
        "voices": DEFAULT_EDGE_VOICES,
        "rate": settings.TTS_RATE,
        "pitch": settings.TTS_PITCH,
        "volume": settings.TTS_VOLUME,
        "timestamp": datetime.utcnow().isoformat()
    }
