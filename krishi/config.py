"""
Configuration management for the Krishi Assistant.
Loads settings from environment variables with sensible defaults.
"""

from pathlib import Path
from typing import List
from pydantic_settings import BaseSettings
from pydantic import Field
from functools import lru_cache


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # =========================
    # Application Settings
    # =========================
    APP_NAME: str = "Krishi Assistant"
    APP_VERSION: str = "1.0.0"
    DEBUG: bool = Field(default=False, description="Enable debug mode")
    ENVIRONMENT: str = Field(default="development", description="Environment name")

    # =========================
    # Server Settings
    # =========================
    HOST: str = Field(default="0.0.0.0", description="Server host")
    PORT: int = Field(default=8000, description="Server port")

    # =========================
    # Recognition Settings
    # =========================
    PRIMARY_RECOGNITION_LANGUAGE: str = Field(
        default="mr-IN",
        description="Language tag tried first when starting capture"
    )
    SECONDARY_RECOGNITION_LANGUAGE: str = Field(
        default="en-IN",
        description="Language tag used when the primary one is rejected"
    )
    RECOGNITION_MAX_ALTERNATIVES: int = Field(default=3, description="Alternatives per result")
    RECOGNITION_INTERIM_RESULTS: bool = Field(default=True, description="Request interim results")
    DEFAULT_FRAGMENT_CONFIDENCE: float = Field(
        default=0.5,
        description="Confidence assumed when the recognizer omits one"
    )

    # =========================
    # Wake Word Settings
    # =========================
    WAKE_WORDS: List[str] = Field(
        default=["krishi", "कृषी", "कृषि"],
        description="Trigger phrase variants (Latin and Devanagari)"
    )
    WAKE_WORD_RESTART_ON_END: bool = Field(
        default=True,
        description="Restart the wake-word recognizer when it ends on its own"
    )

    # =========================
    # Location Settings
    # =========================
    LOCATION_HIGH_ACCURACY: bool = Field(default=True, description="Request high accuracy fixes")
    LOCATION_TIMEOUT_MS: int = Field(default=10000, description="Geolocation fetch timeout")
    LOCATION_MAX_AGE_MS: int = Field(default=300000, description="Max cached fix age for one-shot fetch")
    LOCATION_WATCH_MAX_AGE_MS: int = Field(default=60000, description="Max cached fix age while tracking")
    NEARBY_MARKET_RADIUS_KM: float = Field(default=50.0, description="Default nearby market radius")

    # =========================
    # Geocoding Settings
    # =========================
    GEOCODING_ENABLED: bool = Field(default=True, description="Reverse geocode fixes")
    GEOCODING_URL: str = Field(
        default="https://nominatim.openstreetmap.org/reverse",
        description="Nominatim reverse geocoding endpoint"
    )
    GEOCODING_USER_AGENT: str = Field(default="KrishiAssistant/1.0", description="Geocoder User-Agent")
    GEOCODING_TIMEOUT_SECONDS: float = Field(default=5.0, description="Geocoder HTTP timeout")

    # =========================
    # Speech Synthesis Settings
    # =========================
    TTS_RATE: float = Field(default=0.9, description="Speaking rate (1.0 = normal)")
    TTS_PITCH: float = Field(default=1.0, description="Speaking pitch (1.0 = normal)")
    TTS_VOLUME: float = Field(default=0.8, description="Speaking volume (0..1)")

    # =========================
    # Logging Settings
    # =========================
    LOG_LEVEL: str = Field(default="INFO", description="Logging level")
    AGENT_LOG_PATH: Path = Field(
        default=Path("./logs/agent_log.md"),
        description="Path to agent markdown log"
    )

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        case_sensitive = True


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()


# Language mapping for display names
LANGUAGE_NAMES = {
    "mr": "Marathi (मराठी)",
    "en": "English",
    "hi": "Hindi (हिन्दी)",
    "unknown": "Unknown"
}

# Detected language tags
LANGUAGES = ["mr", "en", "hi", "unknown"]

# Speech synthesis language tags
SYNTHESIS_LANGUAGE_TAGS = {
    "mr": "mr-IN",
    "en": "en-IN"
}

# Intent categories
INTENTS = [
    "weather",
    "disease",
    "market",
    "advisory",
    "crop_health",
    "general"
]

# Intents whose answers depend on where the farmer is
LOCATION_INTENTS = [
    "weather",
    "market"
]
