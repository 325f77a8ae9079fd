"""
Assistant REST Endpoints.
Stateless text queries for clients that cannot hold a WebSocket open.
"""

import logging
from typing import Optional

from fastapi import APIRouter, Query, Request
from pydantic import BaseModel, Field

from krishi.config import get_settings
from krishi.core.message import Attachment
from krishi.core.session import AssistantSession
from krishi.services.location.models import LocationFix

logger = logging.getLogger(__name__)
settings = get_settings()

router = APIRouter()


class LocationBody(BaseModel):
    """A fix the client already has."""
    latitude: float = Field(..., ge=-90, le=90)
    longitude: float = Field(..., ge=-180, le=180)
    accuracy: float = 0.0
    timestamp: float = 0.0


class AttachmentBody(BaseModel):
    filename: str
    content_type: str
    size: int = 0


class MessageRequest(BaseModel):
    """Request model for sending a query."""
    text: str = Field(..., min_length=1)
    location: Optional[LocationBody] = None
    attachment: Optional[AttachmentBody] = None


class UnderstandRequest(BaseModel):
    text: str


def _session(request: Request) -> AssistantSession:
    # No client capabilities over plain HTTP: location comes from the body only
    return AssistantSession(agent_logger=getattr(request.app.state, "agent_logger", None))


@router.post("/message")
async def send_message(request: Request, body: MessageRequest):
    """
    Turn a typed query into the outgoing message envelope.

    Body:
    {
        "text": "उद्या पाऊस पडेल का?",
        "location": {"latitude": 19.88, "longitude": 75.34},  // optional
        "attachment": {"filename": "leaf.jpg", "content_type": "image/jpeg"}  // optional
    }
    """
    session = _session(request)
    known_fix = LocationFix(**body.location.model_dump()) if body.location else None
    attachment = Attachment(**body.attachment.model_dump()) if body.attachment else None

    message = await session.handle_text(body.text, known_fix=known_fix, attachment=attachment)
    await session.close()
    return message.to_dict()


@router.post("/understand")
async def understand(request: Request, body: UnderstandRequest):
    """Language, intent and entities for a query, without sending it."""
    return _session(request).understand(body.text).to_dict()


@router.get("/markets")
async def nearby_markets(
    request: Request,
    latitude: float = Query(..., ge=-90, le=90),
    longitude: float = Query(..., ge=-180, le=180),
    radius_km: float = Query(settings.NEARBY_MARKET_RADIUS_KM, gt=0)
):
    """Agricultural markets within radius_km, closest first."""
    session = _session(request)
    fix = LocationFix(latitude=latitude, longitude=longitude)
    markets = session.location.nearby_markets(fix, radius_km)
    return {
        "latitude": latitude,
        "longitude": longitude,
        "radius_km": radius_km,
        "markets": [market.to_dict() for market in markets]
    }
