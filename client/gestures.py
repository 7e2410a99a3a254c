# =============================================================================
# Person Narrator - Gesture Dispatcher
# =============================================================================
# Turns raw press / release / click events from the single physical control
# into tap, double-tap and long-press gestures with two small state machines:
#
#   PressState - owns the long-press timer. Holding the control for
#                long_press_seconds fires LONG_PRESS right away, without
#                waiting for release; the click after the release is swallowed.
#   TapState   - owns the double-tap window. A click arms the window; a second
#                click inside it fires DOUBLE_TAP, otherwise the window expiring
#                fires SINGLE_TAP (or REMINDER while auto-repeat runs).
#
# The very first click of a session only triggers the spoken introduction;
# double taps are not possible before that.
# =============================================================================

import asyncio
import logging
from enum import Enum
from typing import Any, Callable, Optional, Protocol

logger = logging.getLogger(__name__)


class TimerHandle(Protocol):
    def cancel(self) -> None: ...


CallLater = Callable[[float, Callable[[], None]], TimerHandle]


class Gesture(str, Enum):
    INTRO = "intro"
    SINGLE_TAP = "single_tap"
    DOUBLE_TAP = "double_tap"
    LONG_PRESS = "long_press"
    REMINDER = "reminder"


class PressState(str, Enum):
    IDLE = "idle"
    PRESSING = "pressing"
    LONG_PRESS_FIRED = "long_press_fired"


class TapState(str, Enum):
    IDLE = "idle"
    PENDING_TAP = "pending_tap"


def _loop_call_later(delay: float, callback: Callable[[], None]) -> asyncio.TimerHandle:
    return asyncio.get_running_loop().call_later(delay, callback)


class GestureDispatcher:
    """Finite-state machine mapping control events to gestures."""

    def __init__(
        self,
        handler: Callable[[Gesture], Any],
        auto_repeat_active: Callable[[], bool] = lambda: False,
        long_press_seconds: float = 0.65,
        double_tap_seconds: float = 0.26,
        call_later: Optional[CallLater] = None,
    ) -> None:
        self._handler = handler
        self._auto_repeat_active = auto_repeat_active
        self._long_press_seconds = long_press_seconds
        self._double_tap_seconds = double_tap_seconds
        self._call_later = call_later or _loop_call_later

        self.press_state = PressState.IDLE
        self.tap_state = TapState.IDLE
        self.intro_spoken = False
        self._hold_timer: Optional[TimerHandle] = None
        self._tap_timer: Optional[TimerHandle] = None

    # -- raw events ---------------------------------------------------------

    def press(self) -> None:
        self._cancel_hold_timer()
        self.press_state = PressState.PRESSING
        self._hold_timer = self._call_later(self._long_press_seconds, self._on_hold_elapsed)

    def release(self) -> None:
        if self.press_state is PressState.PRESSING:
            self._cancel_hold_timer()
            self.press_state = PressState.IDLE

    def click(self) -> None:
        if self.press_state is PressState.LONG_PRESS_FIRED:
            # the click belongs to the long press that already fired
            self.press_state = PressState.IDLE
            return

        if not self.intro_spoken:
            self.intro_spoken = True
            self._emit(Gesture.INTRO)
            return

        if self.tap_state is TapState.PENDING_TAP:
            self._cancel_tap_timer()
            self.tap_state = TapState.IDLE
            self._emit(Gesture.DOUBLE_TAP)
            return

        self.tap_state = TapState.PENDING_TAP
        self._tap_timer = self._call_later(self._double_tap_seconds, self._on_tap_window_elapsed)

    def reset(self) -> None:
        """Cancel pending timers and return both machines to IDLE."""
        self._cancel_hold_timer()
        self._cancel_tap_timer()
        self.press_state = PressState.IDLE
        self.tap_state = TapState.IDLE

    # -- timers -------------------------------------------------------------

    def _on_hold_elapsed(self) -> None:
        self._hold_timer = None
        if self.press_state is not PressState.PRESSING:
            return
        self.press_state = PressState.LONG_PRESS_FIRED
        self._emit(Gesture.LONG_PRESS)

    def _on_tap_window_elapsed(self) -> None:
        self._tap_timer = None
        if self.tap_state is not TapState.PENDING_TAP:
            return
        self.tap_state = TapState.IDLE
        if self.press_state is PressState.PRESSING:
            # a second press is still held; it resolves on its own
            logger.debug("Pending tap abandoned: button held again")
            return
        self._emit(Gesture.REMINDER if self._auto_repeat_active() else Gesture.SINGLE_TAP)

    def _cancel_hold_timer(self) -> None:
        if self._hold_timer is not None:
            self._hold_timer.cancel()
            self._hold_timer = None

    def _cancel_tap_timer(self) -> None:
        if self._tap_timer is not None:
            self._tap_timer.cancel()
            self._tap_timer = None

    def _emit(self, gesture: Gesture) -> None:
        logger.debug("Gesture: %s", gesture.value)
        self._handler(gesture)
