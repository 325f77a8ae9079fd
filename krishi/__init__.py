"""
Krishi Voice Assistant
======================
Bilingual (Marathi / English) voice and text query understanding for
farmers.

Features:
- Voice capture with Marathi first, English fallback
- Language detection, intent classification and entity extraction
- Hands-free wake word ("कृषी" / "krishi")
- Location-aware weather and market queries
- Spoken replies

Tech Stack:
- FastAPI (async backend, WebSocket relay)
- Client speech recognition and geolocation, relayed over WebSocket
- Edge TTS (speech synthesis)
- Nominatim (reverse geocoding)
"""

__version__ = "1.0.0"
__author__ = "Krishi Assistant Team"
