"""
Location-augmentation policy.
Weather and market answers depend on where the farmer is; everything
else is sent without waiting for a fix.
"""

import dataclasses
import logging
from typing import Optional

from krishi.config import LOCATION_INTENTS
from krishi.core.exceptions import LocationException
from krishi.core.message import OutgoingMessage
from krishi.nlu.intent import IntentResult
from krishi.services.location import LocationService, default_position_options
from krishi.services.location.capability import PositionOptions
from krishi.services.location.models import LocationFix

logger = logging.getLogger(__name__)


class LocationAugmentationPolicy:
    """
    Decides whether a message needs a location fetch and merges the fix.

    A failed fetch never blocks the message: it goes out without a
    location and the failure is kept in `last_error` for the caller.
    """

    def __init__(
        self,
        location_service: LocationService,
        options: Optional[PositionOptions] = None
    ):
        self.location_service = location_service
        self.options = options or default_position_options()
        self.last_error: Optional[LocationException] = None

    def known_fix(self, known_fix: Optional[LocationFix] = None) -> Optional[LocationFix]:
        """The caller's fix if given, else the cached one."""
        return known_fix or self.location_service.get_last_known()

    def requires_location(
        self,
        intent: Optional[IntentResult],
        known_fix: Optional[LocationFix] = None
    ) -> bool:
        if intent is None or intent.intent not in LOCATION_INTENTS:
            return False
        return self.known_fix(known_fix) is None

    async def augment(
        self,
        message: OutgoingMessage,
        known_fix: Optional[LocationFix] = None
    ) -> OutgoingMessage:
        """
        Attach a location to a message.

        Args:
            message: Envelope without location
            known_fix: Fix the caller already has, if any

        Returns:
            A new envelope with the best available location, or the
            original one when no fix could be had
        """
        self.last_error = None
        location = self.known_fix(known_fix)

        if self.requires_location(message.intent, known_fix):
            location = await self._fetch()

        if location is None:
            return message
        return dataclasses.replace(message, location=location)

    async def _fetch(self) -> Optional[LocationFix]:
        if not self.location_service.is_supported:
            logger.info("Location needed but geolocation is not available, sending without it")
            return None

        try:
            return await self.location_service.get_current_location(self.options)
        except LocationException as e:
            logger.warning(f"Proceeding without location: {e.reason}")
            self.last_error = e
            return None
