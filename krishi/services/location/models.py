"""
Location data types.
"""

from dataclasses import dataclass, asdict
from typing import Optional, Dict, Any


@dataclass(frozen=True)
class PlaceAddress:
    """Administrative place fields for a fix. Any field may be missing."""
    village: Optional[str] = None
    taluka: Optional[str] = None
    district: Optional[str] = None
    state: Optional[str] = None
    country: Optional[str] = None
    pincode: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {k: v for k, v in asdict(self).items() if v is not None}


@dataclass(frozen=True)
class LocationFix:
    """A single geolocation reading. Timestamp is milliseconds since epoch."""
    latitude: float
    longitude: float
    accuracy: float = 0.0
    timestamp: float = 0.0
    address: Optional[PlaceAddress] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "LocationFix":
        """Fix from a client payload; any address sent along is ignored."""
        return cls(
            latitude=float(data["latitude"]),
            longitude=float(data["longitude"]),
            accuracy=float(data.get("accuracy") or 0.0),
            timestamp=float(data.get("timestamp") or 0.0)
        )

    def to_dict(self) -> Dict[str, Any]:
        data = {
            "latitude": self.latitude,
            "longitude": self.longitude,
            "accuracy": self.accuracy,
            "timestamp": self.timestamp
        }
        if self.address is not None:
            data["address"] = self.address.to_dict()
        return data


@dataclass(frozen=True)
class LocationPermissionStatus:
    granted: bool = False
    denied: bool = False
    prompt: bool = True

    @classmethod
    def from_state(cls, state: str) -> "LocationPermissionStatus":
        return cls(
            granted=state == "granted",
            denied=state == "denied",
            prompt=state not in ("granted", "denied")
        )

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True)
class NearbyMarket:
    """An agricultural market and its distance from the farmer."""
    name: str
    name_marathi: str
    latitude: float
    longitude: float
    type: str
    distance_km: float

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)
