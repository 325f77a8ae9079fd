"""
Outgoing message envelope handed to the transport boundary.
"""

from dataclasses import dataclass
from typing import Optional, Dict, Any

from krishi.nlu.intent import IntentResult
from krishi.services.location.models import LocationFix


@dataclass(frozen=True)
class Attachment:
    """File sent along with a message (crop photo, etc.)."""
    filename: str
    content_type: str
    size: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "filename": self.filename,
            "content_type": self.content_type,
            "size": self.size
        }


@dataclass(frozen=True)
class OutgoingMessage:
    """
    One user turn, ready for the response generator.
    Built once per turn; never changed after it is sent.
    """
    text: str
    detected_language: str
    intent: Optional[IntentResult] = None
    location: Optional[LocationFix] = None
    attachment: Optional[Attachment] = None

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "text": self.text,
            "detected_language": self.detected_language
        }
        if self.intent is not None:
            data["intent"] = self.intent.to_dict()
        if self.location is not None:
            data["location"] = self.location.to_dict()
        if self.attachment is not None:
            data["attachment"] = self.attachment.to_dict()
        return data
