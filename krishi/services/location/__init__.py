"""
Location Service for GPS-based weather and market queries.
Caches the last fix, reverse geocodes it and finds nearby markets.
"""

import asyncio
import logging
import math
from typing import Callable, List, Optional, Set

from krishi.config import get_settings
from krishi.core.exceptions import (
    GeocodingException,
    UnsupportedCapabilityException,
    location_exception_for_code
)
from krishi.services.location.capability import (
    GeolocationCapability,
    Position,
    PositionError,
    PositionOptions
)
from krishi.services.location.geocoding import NominatimGeocoder, address_from_coordinates
from krishi.services.location.models import (
    LocationFix,
    LocationPermissionStatus,
    NearbyMarket,
    PlaceAddress
)

logger = logging.getLogger(__name__)
settings = get_settings()

EARTH_RADIUS_KM = 6371.0

# Market directory used for nearby-market lookups
MARKETS = [
    {
        "name": "Jalna APMC Market",
        "name_marathi": "जालना कृषी उत्पादन मार्केट कमिटी",
        "latitude": 19.8347,
        "longitude": 75.8831,
        "type": "APMC"
    },
    {
        "name": "Aurangabad APMC Market",
        "name_marathi": "औरंगाबाद कृषी उत्पादन मार्केट कमिटी",
        "latitude": 19.8762,
        "longitude": 75.3433,
        "type": "APMC"
    },
    {
        "name": "Parbhani APMC Market",
        "name_marathi": "परभणी कृषी उत्पादन मार्केट कमिटी",
        "latitude": 19.2608,
        "longitude": 76.7734,
        "type": "APMC"
    },
    {
        "name": "Local FPC Center",
        "name_marathi": "स्थानिक एफपीसी केंद्र",
        "latitude": 19.8500,
        "longitude": 75.9000,
        "type": "FPC"
    }
]


def default_position_options() -> PositionOptions:
    return PositionOptions(
        high_accuracy=settings.LOCATION_HIGH_ACCURACY,
        timeout_ms=settings.LOCATION_TIMEOUT_MS,
        max_age_ms=settings.LOCATION_MAX_AGE_MS
    )


def watch_position_options() -> PositionOptions:
    return PositionOptions(
        high_accuracy=settings.LOCATION_HIGH_ACCURACY,
        timeout_ms=settings.LOCATION_TIMEOUT_MS,
        max_age_ms=settings.LOCATION_WATCH_MAX_AGE_MS
    )


def calculate_distance(
    latitude1: float,
    longitude1: float,
    latitude2: float,
    longitude2: float
) -> float:
    """Great-circle distance in kilometers (haversine)."""
    d_lat = math.radians(latitude2 - latitude1)
    d_lon = math.radians(longitude2 - longitude1)

    a = (
        math.sin(d_lat / 2) ** 2
        + math.cos(math.radians(latitude1))
        * math.cos(math.radians(latitude2))
        * math.sin(d_lon / 2) ** 2
    )
    c = 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))
    return EARTH_RADIUS_KM * c


def format_location(fix: LocationFix, language: str = "mr") -> str:
    """Place names when known, otherwise coordinates."""
    # Place names come back from the geocoder in both languages already
    if fix.address is not None:
        parts = [
            part for part in (
                fix.address.village,
                fix.address.taluka,
                fix.address.district,
                fix.address.state
            )
            if part
        ]
        if parts:
            return ", ".join(parts)

    return f"{fix.latitude:.4f}, {fix.longitude:.4f}"


def format_coordinates(fix: LocationFix) -> str:
    return f"{fix.latitude:.6f}, {fix.longitude:.6f} (±{round(fix.accuracy or 0)}m)"


class LocationService:
    """
    Location access for one assistant session.

    Features:
    - One-shot fixes with reverse geocoding
    - Last-known fix cache, cleared explicitly
    - Continuous tracking shared by any number of callbacks
    - Nearby market lookup
    """

    def __init__(
        self,
        capability: Optional[GeolocationCapability],
        geocoder: Optional[NominatimGeocoder] = None
    ):
        self.capability = capability
        self.geocoder = geocoder
        self._is_supported = capability is not None and capability.is_available()

        self._last_known: Optional[LocationFix] = None
        self._callbacks: List[Callable[[LocationFix], None]] = []
        self._watch_id: Optional[int] = None
        self._tasks: Set[asyncio.Task] = set()

    @property
    def is_supported(self) -> bool:
        return self._is_supported

    @property
    def is_tracking(self) -> bool:
        return self._watch_id is not None

    async def get_current_location(self, options: Optional[PositionOptions] = None) -> LocationFix:
        """
        Fetch a fresh fix and cache it.

        Raises:
            UnsupportedCapabilityException: no geolocation in this environment
            LocationDeniedException / LocationUnavailableException /
            LocationTimeoutException: the fetch failed
        """
        if not self._is_supported:
            raise UnsupportedCapabilityException("geolocation")

        try:
            position = await self.capability.get_current_position(options or default_position_options())
        except PositionError as e:
            logger.error(f"Geolocation error: {e}")
            raise location_exception_for_code(e.code) from e

        fix = await self._build_fix(position)
        self._remember(fix)
        return fix

    def get_last_known(self) -> Optional[LocationFix]:
        return self._last_known

    def clear_cache(self):
        self._last_known = None

    async def check_permission(self) -> LocationPermissionStatus:
        """Current permission state; unknown states read as "prompt"."""
        if not self._is_supported:
            return LocationPermissionStatus()

        try:
            state = await self.capability.permission_state()
        except Exception as e:
            logger.error(f"Permission check failed: {e}")
            return LocationPermissionStatus()

        return LocationPermissionStatus.from_state(state)

    # =========================
    # Tracking
    # =========================

    async def start_tracking(self, callback: Callable[[LocationFix], None]):
        """Deliver every new fix to callback until stop_tracking()."""
        if not self._is_supported:
            raise UnsupportedCapabilityException("geolocation")

        if callback not in self._callbacks:
            self._callbacks.append(callback)

        if self._watch_id is None:
            self._watch_id = await self.capability.watch_position(
                self._on_watch_position,
                self._on_watch_error,
                watch_position_options()
            )
            logger.info(f"Location tracking started (watch {self._watch_id})")

    async def stop_tracking(self, callback: Optional[Callable[[LocationFix], None]] = None):
        """Remove one callback, or all of them; the watch ends with the last."""
        if callback is not None:
            if callback in self._callbacks:
                self._callbacks.remove(callback)
        else:
            self._callbacks.clear()

        if not self._callbacks and self._watch_id is not None:
            watch_id, self._watch_id = self._watch_id, None
            await self.capability.clear_watch(watch_id)
            logger.info(f"Location tracking stopped (watch {watch_id})")

    def _on_watch_position(self, position: Position):
        task = asyncio.ensure_future(self._handle_watch_position(position))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    async def _handle_watch_position(self, position: Position):
        fix = await self._build_fix(position)
        self._remember(fix)

    def _on_watch_error(self, error: PositionError):
        logger.error(f"Location tracking error: {error}")

    # =========================
    # Helpers
    # =========================

    async def _build_fix(self, position: Position) -> LocationFix:
        address = await self._resolve_address(position.latitude, position.longitude)
        return LocationFix(
            latitude=position.latitude,
            longitude=position.longitude,
            accuracy=position.accuracy,
            timestamp=position.timestamp,
            address=address
        )

    async def _resolve_address(self, latitude: float, longitude: float) -> PlaceAddress:
        if self.geocoder is not None:
            try:
                return await self.geocoder.reverse(latitude, longitude)
            except GeocodingException as e:
                logger.warning(f"Reverse geocoding failed: {e.message}")
        return address_from_coordinates(latitude, longitude)

    def _remember(self, fix: LocationFix):
        self._last_known = fix
        for callback in list(self._callbacks):
            try:
                callback(fix)
            except Exception as e:
                logger.error(f"Location callback error: {e}")

    def nearby_markets(
        self,
        fix: LocationFix,
        radius_km: float = settings.NEARBY_MARKET_RADIUS_KM
    ) -> List[NearbyMarket]:
        """Markets within radius_km of the fix, closest first."""
        markets = [
            NearbyMarket(
                distance_km=calculate_distance(
                    fix.latitude, fix.longitude, market["latitude"], market["longitude"]
                ),
                **market
            )
            for market in MARKETS
        ]
        return sorted(
            (m for m in markets if m.distance_km <= radius_km),
            key=lambda m: m.distance_km
        )

    async def cleanup(self):
        """Stop tracking and drop the cached fix."""
        if self._watch_id is not None:
            await self.stop_tracking()
        for task in list(self._tasks):
            task.cancel()
        self.clear_cache()
        logger.info("Location service cleaned up")


__all__ = [
    "LocationService",
    "LocationFix",
    "PlaceAddress",
    "NearbyMarket",
    "calculate_distance",
    "format_location",
    "format_coordinates",
    "default_position_options"
]
