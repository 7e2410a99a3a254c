# =============================================================================
# Person Narrator - Auto-Repeat Loop
# =============================================================================
# Periodically re-captures and re-detects while automatic mode is on, and
# narrates only when the coarse scene summary ("bucket") changes: number of
# people (0, 1, 2, 3+) together with the nearest person's position, or an
# "error" sentinel when the cycle failed. Ticks that arrive while a cycle is
# still in flight are dropped, never queued.
# =============================================================================

import asyncio
import logging
from typing import Awaitable, Callable, Optional

from shared.schemas import InferResponse

logger = logging.getLogger(__name__)

ERROR_BUCKET = "error"


def announcement_bucket(response: Optional[InferResponse]) -> str:
    """
    Quantize a response into the key used for change detection.

    Returns:
        "0" for nobody, otherwise "<count class>:<nearest position>" where the
        count class is "1", "2" or "3+" (e.g. "2:left"); ERROR_BUCKET for None.
    """
    if response is None:
        return ERROR_BUCKET
    count = len(response.people)
    if count == 0:
        return "0"
    count_class = "3+" if count >= 3 else str(count)
    return f"{count_class}:{response.people[0].position.value}"


class AutoRepeatLoop:
    """
    Timer-driven capture loop with change-triggered narration.

    Args:
        detect:           Coroutine function performing one capture + detect.
                          Returns None when the capture was dropped because
                          another one was in flight.
        on_result:        Called with a response whose bucket changed.
        on_error:         Called with the exception when the error bucket is new.
        interval_seconds: Period between ticks.
    """

    def __init__(
        self,
        detect: Callable[[], Awaitable[Optional[InferResponse]]],
        on_result: Callable[[InferResponse], None],
        on_error: Callable[[Exception], None],
        interval_seconds: float = 2.5,
    ):
        self._detect = detect
        self._on_result = on_result
        self._on_error = on_error
        self._interval = interval_seconds
        self._active = False
        self._last_bucket: Optional[str] = None
        self._ticker: Optional[asyncio.Task] = None
        self._cycle: Optional[asyncio.Task] = None
        self.dropped_ticks = 0

    @property
    def active(self) -> bool:
        return self._active

    @property
    def last_bucket(self) -> Optional[str]:
        return self._last_bucket

    def activate(self) -> None:
        """Start ticking; the first cycle runs immediately and always announces."""
        if self._active:
            return
        self._active = True
        self._last_bucket = None
        self._ticker = asyncio.get_running_loop().create_task(self._tick_forever())
        logger.info("Auto-repeat on (every %.1fs)", self._interval)

    def deactivate(self) -> None:
        """Stop ticking and forget the last bucket. An in-flight cycle is not cancelled."""
        if not self._active:
            return
        self._active = False
        self._last_bucket = None
        if self._ticker is not None:
            self._ticker.cancel()
            self._ticker = None
        logger.info("Auto-repeat off")

    def toggle(self) -> bool:
        """Flip the loop on or off; returns the new state."""
        if self._active:
            self.deactivate()
        else:
            self.activate()
        return self._active

    def tick(self) -> bool:
        """
        Start a cycle unless the previous one is still running.

        Returns:
            True if a cycle was started, False if the tick was dropped.
        """
        if self._cycle is not None and not self._cycle.done():
            self.dropped_ticks += 1
            logger.debug("Auto-repeat tick dropped: previous cycle still in flight")
            return False
        self._cycle = asyncio.get_running_loop().create_task(self.run_cycle())
        return True

    async def wait_for_cycle(self) -> None:
        """Wait for the most recently started cycle, if any."""
        if self._cycle is not None:
            await self._cycle

    async def run_cycle(self) -> bool:
        """
        Capture, detect and announce if the bucket changed.

        Returns:
            True if something was announced.
        """
        try:
            response = await self._detect()
        except Exception as exc:
            logger.warning("Auto-repeat cycle failed: %s", exc)
            return self._announce_if_changed(ERROR_BUCKET, lambda: self._on_error(exc))

        if response is None:
            return False
        return self._announce_if_changed(announcement_bucket(response), lambda: self._on_result(response))

    async def _tick_forever(self) -> None:
        while self._active:
            self.tick()
            await asyncio.sleep(self._interval)

    def _announce_if_changed(self, bucket: str, announce: Callable[[], None]) -> bool:
        if not self._active:
            logger.debug("Auto-repeat result (%s) after deactivation ignored", bucket)
            return False
        if bucket == self._last_bucket:
            logger.debug("Bucket unchanged (%s); staying quiet", bucket)
            return False
        logger.debug("Bucket %s -> %s", self._last_bucket, bucket)
        self._last_bucket = bucket
        announce()
        return True
