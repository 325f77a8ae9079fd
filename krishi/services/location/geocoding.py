"""
Reverse geocoding via OpenStreetMap Nominatim, with a coordinate-range
fallback when the service cannot be reached.
"""

import logging
from typing import Optional

import httpx

from krishi.config import get_settings
from krishi.core.exceptions import GeocodingException
from krishi.services.location.models import PlaceAddress

logger = logging.getLogger(__name__)
settings = get_settings()

# (lat_min, lat_max, lon_min, lon_max), approximate
MAHARASHTRA_BOUNDS = (15.6, 22.0, 72.6, 80.9)
INDIA_BOUNDS = (8.0, 37.6, 68.7, 97.25)


def _within(latitude: float, longitude: float, bounds) -> bool:
    lat_min, lat_max, lon_min, lon_max = bounds
    return lat_min <= latitude <= lat_max and lon_min <= longitude <= lon_max


def address_from_coordinates(latitude: float, longitude: float) -> PlaceAddress:
    """Coarse place guess from coordinate ranges alone."""
    if _within(latitude, longitude, MAHARASHTRA_BOUNDS):
        return PlaceAddress(state="Maharashtra", country="India")
    if _within(latitude, longitude, INDIA_BOUNDS):
        return PlaceAddress(country="India")
    return PlaceAddress(country="Unknown")


class NominatimGeocoder:
    """Reverse geocoder for the Nominatim `/reverse` endpoint."""

    def __init__(
        self,
        url: str = settings.GEOCODING_URL,
        user_agent: str = settings.GEOCODING_USER_AGENT,
        timeout_seconds: float = settings.GEOCODING_TIMEOUT_SECONDS,
        client: Optional[httpx.AsyncClient] = None
    ):
        self.url = url
        self.user_agent = user_agent
        self.timeout_seconds = timeout_seconds
        self._client = client

    async def reverse(self, latitude: float, longitude: float) -> PlaceAddress:
        """
        Look up the place at a coordinate.

        Raises:
            GeocodingException: the request failed or returned garbage
        """
        params = {
            "lat": latitude,
            "lon": longitude,
            "format": "json",
            "accept-language": "en,mr"
        }
        headers = {"User-Agent": self.user_agent}

        try:
            if self._client is not None:
                response = await self._client.get(self.url, params=params, headers=headers)
            else:
                async with httpx.AsyncClient(timeout=self.timeout_seconds) as client:
                    response = await client.get(self.url, params=params, headers=headers)
            response.raise_for_status()
            data = response.json()
        except (httpx.HTTPError, ValueError) as e:
            raise GeocodingException(str(e)) from e

        address = data.get("address") or {}
        return PlaceAddress(
            village=address.get("village") or address.get("hamlet"),
            taluka=address.get("county") or address.get("state_district"),
            district=address.get("state_district") or address.get("administrative_area_level_2"),
            state=address.get("state"),
            country=address.get("country"),
            pincode=address.get("postcode")
        )
