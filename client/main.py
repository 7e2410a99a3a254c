# =============================================================================
# Person Narrator - Client Orchestrator
# =============================================================================
# Entry point for the narration client. Wires the camera, the gateway
# client, the gesture dispatcher, the auto-repeat loop and the announcement
# scheduler together on a single asyncio event loop:
#
#   tap         -> take one photo, narrate people count and positions
#   double tap  -> toggle automatic mode (re-detect every few seconds and
#                  narrate only when the scene summary changes)
#   long press  -> detailed pass: also gender / activity of the nearest person
# =============================================================================

import argparse
import asyncio
import logging
import sys
from typing import Optional, Set

from config import Config, get_config
from client.announcer import AnnouncementScheduler, Haptics, LoggingHaptics, Pyttsx3Speech, SpeechEngine
from client.api import InferenceClient
from client.auto_repeat import AutoRepeatLoop
from client.capture import CameraCapture, CameraError, CaptureLoop
from client.gestures import Gesture, GestureDispatcher
from client.narration import (
    AUTO_OFF_TEXT,
    AUTO_ON_TEXT,
    HAPTIC_TOGGLE,
    INTRO_TEXT,
    REMINDER_TEXT,
    Narration,
    describe_details,
    describe_error,
    describe_people,
)
from client.window import PreviewWindow
from shared.schemas import InferResponse

logger = logging.getLogger(__name__)


class NarratorClient:
    """
    Orchestrator tying together capture, gestures, auto-repeat and speech.

    Args:
        config:  The global Config instance with all tunable parameters.
        camera:  Frame source (defaults to the configured OpenCV camera).
        api:     Gateway client (defaults to the configured server URL).
        speech:  Speech engine (defaults to pyttsx3).
        haptics: Vibration back-end (defaults to logging only).
    """

    def __init__(
        self,
        config: Config,
        camera: Optional[CameraCapture] = None,
        api: Optional[InferenceClient] = None,
        speech: Optional[SpeechEngine] = None,
        haptics: Optional[Haptics] = None,
    ):
        self._config = config
        self._camera = camera or CameraCapture(
            camera_index=config.camera_index,
            max_width=config.capture_max_width,
            jpeg_quality=config.jpeg_quality,
        )
        self._api = api or InferenceClient(config.server_url, timeout=config.request_timeout_seconds)
        self._speech = speech or Pyttsx3Speech(rate=config.speech_rate)
        self._announcer = AnnouncementScheduler(self._speech, haptics or LoggingHaptics())

        self.dispatcher = GestureDispatcher(
            handler=self.handle_gesture,
            auto_repeat_active=lambda: self.auto_repeat.active,
            long_press_seconds=config.long_press_ms / 1000.0,
            double_tap_seconds=config.double_tap_ms / 1000.0,
        )
        self._window = PreviewWindow(self.dispatcher)
        self._capture = CaptureLoop(self._camera, self._api, status=self._window.set_status)
        self.auto_repeat = AutoRepeatLoop(
            detect=lambda: self._capture.capture_and_infer("detect"),
            on_result=self._narrate_people,
            on_error=self._narrate_error,
            interval_seconds=config.auto_repeat_interval_seconds,
        )
        self._tasks: Set[asyncio.Task] = set()

    # -----------------------------------------------------------------
    # Gestures
    # -----------------------------------------------------------------

    def handle_gesture(self, gesture: Gesture) -> None:
        """Dispatch a recognized gesture to its action."""
        if gesture is Gesture.INTRO:
            self._say(Narration(INTRO_TEXT))
        elif gesture is Gesture.SINGLE_TAP:
            self._spawn(self.describe_once())
        elif gesture is Gesture.DOUBLE_TAP:
            self.toggle_auto_repeat()
        elif gesture is Gesture.LONG_PRESS:
            self._spawn(self.describe_detailed())
        elif gesture is Gesture.REMINDER:
            self._say(Narration(REMINDER_TEXT))

    async def describe_once(self) -> None:
        """Take one photo and narrate who is in it."""
        try:
            response = await self._capture.capture_and_infer("detect")
        except Exception as exc:
            self._narrate_error(exc)
            return
        if response is not None:
            self._narrate_people(response)

    async def describe_detailed(self) -> None:
        """Take one photo and narrate the nearest person's gender and activity too."""
        try:
            response = await self._capture.capture_and_infer("vi")
        except Exception as exc:
            self._narrate_error(exc)
            return
        if response is not None:
            narration = describe_details(response)
            self._window.set_status(narration.text)
            self._say(narration)

    def toggle_auto_repeat(self) -> None:
        if self.auto_repeat.active:
            self.auto_repeat.deactivate()
            self._say(Narration(AUTO_OFF_TEXT, HAPTIC_TOGGLE))
        else:
            self._say(Narration(AUTO_ON_TEXT, HAPTIC_TOGGLE))
            self.auto_repeat.activate()

    # -----------------------------------------------------------------
    # Narration
    # -----------------------------------------------------------------

    def _narrate_people(self, response: InferResponse) -> None:
        narration = describe_people(response)
        self._window.set_status(narration.text)
        self._say(narration)

    def _narrate_error(self, exc: Exception) -> None:
        logger.warning("Capture failed: %s", exc)
        self._window.set_status(f"Error. {exc}")
        self._say(describe_error())

    def _say(self, narration: Narration) -> None:
        self._announcer.announce(narration.text, narration.haptic_pattern)

    def _spawn(self, coro) -> None:
        task = asyncio.get_running_loop().create_task(coro)
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    async def wait_idle(self) -> None:
        """Wait for spawned actions and all queued speech to finish."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks))
        await self._announcer.join()

    # -----------------------------------------------------------------
    # Lifecycle
    # -----------------------------------------------------------------

    async def run(self) -> bool:
        """
        Open the camera, wait for the gateway, and pump the preview window.

        Returns when the user quits. Returns False if the gateway never
        became ready.
        """
        print("\n" + "=" * 60)
        print("  Person Narrator — Client")
        print("=" * 60)
        print(f"  Server      : {self._config.server_url}")
        print(f"  Camera      : {self._config.camera_index}")
        print(f"  Auto repeat : {self._config.auto_repeat_interval_seconds}s")
        print(f"  Long press  : {self._config.long_press_ms}ms")
        print(f"  Double tap  : {self._config.double_tap_ms}ms")
        print("=" * 60 + "\n")

        self._camera.open()
        if not await asyncio.to_thread(self._api.wait_for_server):
            logger.error("Gateway not available.")
            self._camera.close()
            return False

        self._window.open()
        self._window.set_status("Ready. Tap to describe.")
        logger.info("Client running — press q or Esc in the window to stop.")

        try:
            while True:
                try:
                    frame = self._camera.read()
                except CameraError as exc:
                    frame = None
                    self._window.set_status(str(exc))
                if not self._window.show(frame):
                    break
                await asyncio.sleep(self._config.preview_interval_seconds)
        finally:
            await self.stop()
        return True

    async def stop(self) -> None:
        """Stop timers and speech, and release the camera and window."""
        self.auto_repeat.deactivate()
        self.dispatcher.reset()
        await self._announcer.close()
        self._window.close()
        self._camera.close()
        self._api.close()
        if isinstance(self._speech, Pyttsx3Speech):
            self._speech.close()
        logger.info("Client stopped.")


def main():
    """CLI entry point for the narration client."""
    parser = argparse.ArgumentParser(
        description="Person Narrator — Client",
        formatter_class=argparse.ArgumentDefaultsHelpFormatter,
    )
    parser.add_argument(
        "--server-url", type=str, default=None,
        help="Gateway base URL (e.g., http://127.0.0.1:5173)",
    )
    parser.add_argument(
        "--camera", type=int, default=None,
        help="OpenCV camera index",
    )
    parser.add_argument(
        "--interval", type=float, default=None,
        help="Seconds between automatic-mode captures (overrides config)",
    )
    args = parser.parse_args()

    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s [%(name)s] %(levelname)s: %(message)s",
        datefmt="%H:%M:%S",
    )

    config = get_config()
    if args.server_url is not None:
        config.server_url = args.server_url
    if args.camera is not None:
        config.camera_index = args.camera
    if args.interval is not None:
        config.auto_repeat_interval_seconds = args.interval

    client = NarratorClient(config)
    try:
        ready = asyncio.run(client.run())
    except KeyboardInterrupt:
        logger.info("Keyboard interrupt received. Shutting down...")
        return
    except CameraError as exc:
        logger.error("%s", exc)
        sys.exit(1)

    if not ready:
        sys.exit(1)


if __name__ == "__main__":
    main()
