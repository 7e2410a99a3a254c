from client.gestures import Gesture, GestureDispatcher, PressState, TapState


class _FakeHandle:
    def __init__(self, when, callback) -> None:
        self.when = when
        self.callback = callback
        self.cancelled = False

    def cancel(self) -> None:
        self.cancelled = True


class _FakeTimers:
    """Deterministic stand-in for ``loop.call_later``."""

    def __init__(self) -> None:
        self.now = 0.0
        self._pending = []

    def call_later(self, delay, callback):
        handle = _FakeHandle(self.now + delay, callback)
        self._pending.append(handle)
        return handle

    def advance(self, seconds) -> None:
        target = self.now + seconds
        while True:
            due = [h for h in self._pending if not h.cancelled and h.when <= target]
            if not due:
                break
            handle = min(due, key=lambda h: h.when)
            self._pending.remove(handle)
            self.now = handle.when
            handle.callback()
        self.now = target


def _dispatcher(auto_active=False, intro_done=True):
    timers = _FakeTimers()
    gestures = []
    dispatcher = GestureDispatcher(
        handler=gestures.append,
        auto_repeat_active=lambda: auto_active,
        long_press_seconds=0.65,
        double_tap_seconds=0.26,
        call_later=timers.call_later,
    )
    dispatcher.intro_spoken = intro_done
    return dispatcher, timers, gestures


def _tap(dispatcher, timers, hold=0.05) -> None:
    dispatcher.press()
    timers.advance(hold)
    dispatcher.release()
    dispatcher.click()


def test_first_click_only_speaks_the_introduction() -> None:
    dispatcher, timers, gestures = _dispatcher(intro_done=False)

    _tap(dispatcher, timers)
    timers.advance(1.0)

    assert gestures == [Gesture.INTRO]
    assert dispatcher.intro_spoken


def test_double_tap_is_not_possible_before_the_introduction() -> None:
    dispatcher, timers, gestures = _dispatcher(intro_done=False)

    dispatcher.click()
    timers.advance(0.1)
    dispatcher.click()
    timers.advance(1.0)

    assert gestures == [Gesture.INTRO, Gesture.SINGLE_TAP]


def test_single_tap_fires_after_the_window_elapses() -> None:
    dispatcher, timers, gestures = _dispatcher()

    _tap(dispatcher, timers)
    timers.advance(0.2)
    assert gestures == []
    assert dispatcher.tap_state is TapState.PENDING_TAP

    timers.advance(0.1)
    assert gestures == [Gesture.SINGLE_TAP]
    assert dispatcher.tap_state is TapState.IDLE


def test_two_clicks_inside_the_window_fire_double_tap_only() -> None:
    dispatcher, timers, gestures = _dispatcher()

    dispatcher.click()
    timers.advance(0.15)
    dispatcher.click()
    timers.advance(1.0)

    assert gestures == [Gesture.DOUBLE_TAP]


def test_long_press_fires_before_release_and_swallows_the_click() -> None:
    dispatcher, timers, gestures = _dispatcher()

    dispatcher.press()
    timers.advance(0.65)
    assert gestures == [Gesture.LONG_PRESS]
    assert dispatcher.press_state is PressState.LONG_PRESS_FIRED

    timers.advance(0.5)
    dispatcher.release()
    dispatcher.click()
    timers.advance(1.0)

    assert gestures == [Gesture.LONG_PRESS]
    assert dispatcher.press_state is PressState.IDLE


def test_click_after_a_consumed_long_press_works_normally() -> None:
    dispatcher, timers, gestures = _dispatcher()

    dispatcher.press()
    timers.advance(0.7)
    dispatcher.release()
    dispatcher.click()
    _tap(dispatcher, timers)
    timers.advance(0.3)

    assert gestures == [Gesture.LONG_PRESS, Gesture.SINGLE_TAP]


def test_release_before_threshold_cancels_the_long_press() -> None:
    dispatcher, timers, gestures = _dispatcher()

    _tap(dispatcher, timers, hold=0.6)
    timers.advance(1.0)

    assert gestures == [Gesture.SINGLE_TAP]


def test_single_tap_during_auto_repeat_gives_a_reminder() -> None:
    dispatcher, timers, gestures = _dispatcher(auto_active=True)

    _tap(dispatcher, timers)
    timers.advance(0.3)

    assert gestures == [Gesture.REMINDER]


def test_reset_cancels_pending_timers() -> None:
    dispatcher, timers, gestures = _dispatcher()

    dispatcher.click()
    dispatcher.press()
    dispatcher.reset()
    timers.advance(1.0)

    assert gestures == []
    assert dispatcher.press_state is PressState.IDLE
    assert dispatcher.tap_state is TapState.IDLE


def test_holding_a_second_press_past_the_tap_window_gives_only_long_press() -> None:
    dispatcher, timers, gestures = _dispatcher()

    _tap(dispatcher, timers)
    timers.advance(0.1)
    dispatcher.press()
    timers.advance(1.0)
    dispatcher.release()
    dispatcher.click()
    timers.advance(1.0)

    assert gestures == [Gesture.LONG_PRESS]


def test_slow_second_press_becomes_a_fresh_single_tap() -> None:
    dispatcher, timers, gestures = _dispatcher()

    _tap(dispatcher, timers)
    timers.advance(0.1)
    _tap(dispatcher, timers, hold=0.3)
    timers.advance(1.0)

    assert gestures == [Gesture.SINGLE_TAP]
