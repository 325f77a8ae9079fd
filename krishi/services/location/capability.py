"""
Geolocation capability interface and the client relay binding.
"""

import asyncio
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, asdict
from typing import Any, Awaitable, Callable, Dict, Optional, Tuple
from uuid import uuid4

logger = logging.getLogger(__name__)

# W3C code reported when the client sends something unusable
POSITION_UNAVAILABLE = 2

# Extra time allowed for the reply to cross the connection
RELAY_GRACE_SECONDS = 2.0


@dataclass(frozen=True)
class PositionOptions:
    high_accuracy: bool = True
    timeout_ms: int = 10000
    max_age_ms: int = 300000

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True)
class Position:
    """Raw reading from the capability."""
    latitude: float
    longitude: float
    accuracy: float
    timestamp: float

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Position":
        return cls(
            latitude=float(data["latitude"]),
            longitude=float(data["longitude"]),
            accuracy=float(data.get("accuracy") or 0.0),
            timestamp=float(data.get("timestamp") or 0.0)
        )


class PositionError(Exception):
    """Capability-level failure carrying a W3C geolocation error code."""

    def __init__(self, code: int, message: str = ""):
        self.code = code
        super().__init__(message or f"Geolocation error {code}")


PositionCallback = Callable[[Position], None]
PositionErrorCallback = Callable[[PositionError], None]


class GeolocationCapability(ABC):
    """Contract for a position source."""

    @abstractmethod
    def is_available(self) -> bool:
        """Whether geolocation exists in this environment."""

    @abstractmethod
    async def get_current_position(self, options: PositionOptions) -> Position:
        """One-shot fix. Raises PositionError."""

    @abstractmethod
    async def watch_position(
        self,
        on_position: PositionCallback,
        on_error: PositionErrorCallback,
        options: PositionOptions
    ) -> int:
        """Start continuous updates; returns a watch id."""

    @abstractmethod
    async def clear_watch(self, watch_id: int) -> None:
        """Stop a watch started with watch_position()."""

    async def permission_state(self) -> str:
        """Permission state: granted, denied or prompt."""
        return "prompt"


class ClientGeolocation(GeolocationCapability):
    """
    Geolocation of the connected client.

    Requests go out through `send`; the connection handler feeds
    `geolocation.position` / `geolocation.error` replies back in with
    dispatch(). The client applies the timeout from the request options;
    a request with no reply at all fails as a timeout shortly after.
    """

    def __init__(
        self,
        send: Callable[[Dict[str, Any]], Awaitable[None]],
        available: bool = False,
        permission: str = "prompt",
        reply_grace: float = RELAY_GRACE_SECONDS
    ):
        self._send = send
        self.reply_grace = reply_grace
        self._available = available
        self._permission = permission
        self._pending: Dict[str, asyncio.Future] = {}
        self._watches: Dict[int, Tuple[PositionCallback, PositionErrorCallback]] = {}
        self._next_watch_id = 1

    def is_available(self) -> bool:
        return self._available

    async def permission_state(self) -> str:
        return self._permission

    async def get_current_position(self, options: PositionOptions) -> Position:
        request_id = uuid4().hex[:8]
        future = asyncio.get_running_loop().create_future()
        self._pending[request_id] = future

        try:
            await self._send({
                "type": "geolocation.request",
                "request_id": request_id,
                "options": options.to_dict()
            })
            return await asyncio.wait_for(future, options.timeout_ms / 1000 + self.reply_grace)
        except asyncio.TimeoutError:
            raise PositionError(3, "No reply from the client") from None
        finally:
            self._pending.pop(request_id, None)

    async def watch_position(
        self,
        on_position: PositionCallback,
        on_error: PositionErrorCallback,
        options: PositionOptions
    ) -> int:
        watch_id = self._next_watch_id
        self._next_watch_id += 1
        self._watches[watch_id] = (on_position, on_error)

        await self._send({
            "type": "geolocation.watch",
            "watch_id": watch_id,
            "options": options.to_dict()
        })
        return watch_id

    async def clear_watch(self, watch_id: int):
        if self._watches.pop(watch_id, None) is not None:
            await self._send({"type": "geolocation.clear_watch", "watch_id": watch_id})

    def dispatch(self, message: Dict[str, Any]):
        """Route a `geolocation.position` or `geolocation.error` message."""
        kind = message.get("type")

        if kind == "geolocation.permission":
            self._permission = str(message.get("state", "prompt"))
            return

        if kind == "geolocation.position":
            try:
                outcome: Any = Position.from_dict(message)
            except (KeyError, TypeError, ValueError):
                logger.warning(f"Malformed geolocation position: {message}")
                outcome = PositionError(POSITION_UNAVAILABLE, "Malformed position from the client")
        elif kind == "geolocation.error":
            code = message.get("code")
            if not isinstance(code, int):
                code = POSITION_UNAVAILABLE
            outcome = PositionError(code, str(message.get("message", "")))
        else:
            logger.warning(f"Unknown geolocation message: {kind}")
            return

        request_id = message.get("request_id")
        if request_id is not None:
            future = self._pending.get(str(request_id))
            if future is None or future.done():
                logger.debug(f"No pending geolocation request {request_id}")
                return
            if isinstance(outcome, PositionError):
                future.set_exception(outcome)
            else:
                future.set_result(outcome)
            return

        watch_id = message.get("watch_id")
        watch = self._watches.get(watch_id) if isinstance(watch_id, int) else None
        if watch is None:
            logger.debug("Geolocation update for an unknown watch")
            return

        on_position, on_error = watch
        if isinstance(outcome, PositionError):
            on_error(outcome)
        else:
            on_position(outcome)
