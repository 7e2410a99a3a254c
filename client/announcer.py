# =============================================================================
# Person Narrator - Announcement Scheduler
# =============================================================================
# Provides the AnnouncementScheduler, a strictly ordered speech queue with a
# single consumer task: an utterance starts only after every earlier one has
# finished (or failed), nothing is ever interrupted mid-sentence, and a
# failing utterance does not hold up the ones behind it. Haptic pulses are
# fired at enqueue time and never wait for the speech queue.
#
# Also provides the concrete speech (pyttsx3) and haptic back-ends.
# =============================================================================

import asyncio
import logging
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from typing import Optional, Protocol, Sequence, Tuple

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SpeechTask:
    """One queued utterance and the haptic pattern that accompanied it."""

    text: str
    haptic_pattern: Tuple[int, ...] = ()


class SpeechEngine(Protocol):
    async def say(self, text: str) -> None: ...


class Haptics(Protocol):
    def vibrate(self, pattern: Sequence[int]) -> None: ...


class AnnouncementScheduler:
    """
    FIFO speech queue consumed by exactly one task.

    Args:
        speech:  Engine that speaks one utterance and returns when done.
        haptics: Vibration back-end, called synchronously on enqueue.
    """

    def __init__(self, speech: SpeechEngine, haptics: Haptics):
        self._speech = speech
        self._haptics = haptics
        self._queue: "asyncio.Queue[SpeechTask]" = asyncio.Queue()
        self._consumer: Optional[asyncio.Task] = None
        self.spoken = 0
        self.failed = 0

    def announce(self, text: str, haptic_pattern: Sequence[int] = ()) -> SpeechTask:
        """
        Queue an utterance and fire its haptic pattern immediately.

        Must be called from within the running event loop.

        Args:
            text:           What to say.
            haptic_pattern: Vibration pattern in milliseconds; empty for none.

        Returns:
            The queued SpeechTask.
        """
        task = SpeechTask(text=text, haptic_pattern=tuple(haptic_pattern))
        if task.haptic_pattern:
            try:
                self._haptics.vibrate(task.haptic_pattern)
            except Exception:
                logger.exception("Haptic pulse failed")

        self._ensure_consumer()
        self._queue.put_nowait(task)
        logger.debug("Queued announcement (%d pending): %s", self._queue.qsize(), text)
        return task

    async def join(self) -> None:
        """Wait until every queued utterance has been spoken or has failed."""
        await self._queue.join()

    async def close(self) -> None:
        """Stop the consumer; utterances still queued are discarded."""
        if self._consumer is not None:
            self._consumer.cancel()
            try:
                await self._consumer
            except asyncio.CancelledError:
                pass
            self._consumer = None

    def _ensure_consumer(self) -> None:
        if self._consumer is None or self._consumer.done():
            self._consumer = asyncio.get_running_loop().create_task(self._consume())

    async def _consume(self) -> None:
        while True:
            task = await self._queue.get()
            try:
                await self._speech.say(task.text)
                self.spoken += 1
            except Exception:
                self.failed += 1
                logger.exception("Utterance failed: %s", task.text)
            finally:
                self._queue.task_done()


class Pyttsx3Speech:
    """
    Text-to-speech via pyttsx3.

    The engine blocks while speaking and is not thread-safe, so every call
    runs on one dedicated worker thread, which also creates the engine.

    Args:
        rate: Speaking rate in words per minute.
    """

    def __init__(self, rate: int = 180):
        self._rate = rate
        self._engine = None
        self._executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="speech")

    def _speak_blocking(self, text: str) -> None:
        if self._engine is None:
            import pyttsx3

            self._engine = pyttsx3.init()
            self._engine.setProperty("rate", self._rate)
        self._engine.say(text)
        self._engine.runAndWait()

    async def say(self, text: str) -> None:
        loop = asyncio.get_running_loop()
        await loop.run_in_executor(self._executor, self._speak_blocking, text)

    def close(self) -> None:
        self._executor.shutdown(wait=False)


class LoggingHaptics:
    """Haptic back-end for hosts without a vibration motor."""

    def vibrate(self, pattern: Sequence[int]) -> None:
        logger.info("Vibrate %s", "-".join(str(ms) for ms in pattern))
