# =============================================================================
# Person Narrator - Endpoint Connection Manager
# =============================================================================
# Owns the two long-lived inference sessions (fast "detect" and slower
# "detailed" visual-intelligence profile). Each session connects lazily and
# exactly once, and serializes every operation submitted to it: an operation
# starts only after the previous one on the same session has finished,
# whether it succeeded or raised. The sessions are independent of each other.
# =============================================================================

import asyncio
import logging
from enum import Enum
from typing import Any, AsyncIterator, Awaitable, Callable, Dict, Optional, Protocol, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")


class InferenceProfile(str, Enum):
    """The two inference configurations the gateway talks to."""

    DETECT = "detect"
    DETAILED = "detailed"


class InferenceEndpoint(Protocol):
    """A connected, stateful handle to one inference profile."""

    def process(self, image: bytes, mime_type: str) -> AsyncIterator[Dict[str, Any]]:
        """Submit one image and stream back its result frames."""
        ...

    async def disconnect(self) -> None:
        ...


class EndpointConnector(Protocol):
    """Factory that performs the real connection setup for a profile."""

    async def connect(self, profile: InferenceProfile) -> InferenceEndpoint:
        ...


class EndpointSession:
    """
    Lazily-connected, exclusively-accessed handle to one inference profile.

    Operations submitted through :meth:`run_exclusive` are queued on an
    ``asyncio.Lock``, which hands the lock to waiters in arrival order, so
    operations run strictly one at a time and in FIFO order. An operation
    that raises releases the lock like any other, so it never blocks the
    operations queued behind it.

    Args:
        profile:   Which inference profile this session represents.
        connector: Performs the actual connection on first use.
    """

    def __init__(self, profile: InferenceProfile, connector: EndpointConnector):
        self.profile = profile
        self._connector = connector
        self._endpoint: Optional[InferenceEndpoint] = None
        self._connect_lock = asyncio.Lock()
        self._exclusive_lock = asyncio.Lock()

    @property
    def is_connected(self) -> bool:
        """Whether the underlying endpoint has been established."""
        return self._endpoint is not None

    async def connect(self) -> InferenceEndpoint:
        """
        Return the cached endpoint, connecting on the first call.

        Concurrent first callers share a single connection attempt. A failed
        attempt leaves the session unconnected so the next call retries.
        """
        if self._endpoint is not None:
            return self._endpoint

        async with self._connect_lock:
            if self._endpoint is None:
                logger.info("Connecting %s endpoint...", self.profile.value)
                self._endpoint = await self._connector.connect(self.profile)
                logger.info("%s endpoint connected", self.profile.value.capitalize())
        return self._endpoint

    async def run_exclusive(self, operation: Callable[[InferenceEndpoint], Awaitable[T]]) -> T:
        """
        Run ``operation(endpoint)`` once every earlier operation has finished.

        Args:
            operation: Coroutine function receiving the connected endpoint.

        Returns:
            Whatever the operation returns.

        Raises:
            Exception: Anything raised by the connection attempt or the
                operation is propagated to this caller only.
        """
        async with self._exclusive_lock:
            endpoint = await self.connect()
            return await operation(endpoint)

    async def close(self) -> bool:
        """
        Disconnect the endpoint if it was ever connected.

        Returns:
            True if an endpoint was disconnected, False if there was none.
        """
        endpoint, self._endpoint = self._endpoint, None
        if endpoint is None:
            return False
        await endpoint.disconnect()
        logger.info("%s endpoint disconnected", self.profile.value.capitalize())
        return True


class SessionContext:
    """
    Explicit owner of the process-wide inference sessions.

    Passed to the gateway instead of keeping sessions as module globals.

    Args:
        connector: Connector shared by both sessions.
    """

    def __init__(self, connector: EndpointConnector):
        self._sessions: Dict[InferenceProfile, EndpointSession] = {
            profile: EndpointSession(profile, connector) for profile in InferenceProfile
        }

    def session(self, profile: InferenceProfile) -> EndpointSession:
        return self._sessions[profile]

    @property
    def detect(self) -> EndpointSession:
        return self._sessions[InferenceProfile.DETECT]

    @property
    def detailed(self) -> EndpointSession:
        return self._sessions[InferenceProfile.DETAILED]

    async def start(self) -> None:
        """Connect the detect session eagerly so auth errors surface at startup."""
        await self.detect.connect()

    async def close(self) -> None:
        """
        Disconnect every session.

        A failure while closing one session is logged and does not prevent
        the remaining sessions from being closed.
        """
        for profile, session in self._sessions.items():
            try:
                await session.close()
            except Exception:
                logger.exception("Failed to disconnect %s endpoint", profile.value)
