# =============================================================================
# Person Narrator - Preview Window
# =============================================================================
# An OpenCV window that shows the live camera image with the current status
# line and doubles as the single physical control: pressing and releasing
# the mouse button anywhere in the window feeds press / release / click into
# the gesture dispatcher. Space is a keyboard click; q or Esc quits.
# =============================================================================

import logging
from typing import Optional

import cv2
import numpy as np

from client.gestures import GestureDispatcher

logger = logging.getLogger(__name__)

KEY_SPACE = 32
KEY_ESC = 27
QUIT_KEYS = (ord("q"), KEY_ESC)


class PreviewWindow:
    """
    Camera preview and input surface.

    Mouse callbacks are delivered by OpenCV from inside ``cv2.waitKey``,
    i.e. on the event-loop thread while :meth:`show` runs.

    Args:
        dispatcher: Receives the raw control events.
        title:      Window title (also the OpenCV window name).
    """

    def __init__(self, dispatcher: GestureDispatcher, title: str = "Person Narrator"):
        self._dispatcher = dispatcher
        self._title = title
        self._status = ""
        self._open = False

    def open(self) -> None:
        cv2.namedWindow(self._title, cv2.WINDOW_NORMAL)
        cv2.setMouseCallback(self._title, self._on_mouse)
        self._open = True

    def set_status(self, text: str) -> None:
        if text != self._status:
            logger.info("Status: %s", text)
        self._status = text

    def show(self, frame: Optional[np.ndarray]) -> bool:
        """
        Draw the frame with the status line and pump window events.

        Returns:
            False once the user asked to quit.
        """
        if frame is not None:
            display = frame.copy()
            cv2.rectangle(display, (0, 0), (display.shape[1], 32), (0, 0, 0), thickness=-1)
            cv2.putText(
                display, self._status, (8, 22),
                cv2.FONT_HERSHEY_SIMPLEX, 0.6, (255, 255, 255), 1, cv2.LINE_AA,
            )
            cv2.imshow(self._title, display)

        key = cv2.waitKey(1) & 0xFF
        if key in QUIT_KEYS:
            return False
        if key == KEY_SPACE:
            self._dispatcher.click()
        return True

    def _on_mouse(self, event, x, y, flags, param) -> None:
        if event == cv2.EVENT_LBUTTONDOWN:
            self._dispatcher.press()
        elif event == cv2.EVENT_LBUTTONUP:
            self._dispatcher.release()
            self._dispatcher.click()

    def close(self) -> None:
        if self._open:
            cv2.destroyWindow(self._title)
            self._open = False
