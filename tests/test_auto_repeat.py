import asyncio

from client.auto_repeat import ERROR_BUCKET, AutoRepeatLoop, announcement_bucket
from shared.schemas import InferResponse, PersonRecord


def _response(*positions) -> InferResponse:
    return InferResponse(
        source_width=640,
        people=[PersonRecord(confidence=0.9, width=10, height=10, position=p) for p in positions],
    )


class _ScriptedDetect:
    """Returns (or raises) the scripted outcomes in order, repeating the last."""

    def __init__(self, outcomes) -> None:
        self._outcomes = list(outcomes)
        self.calls = 0

    async def __call__(self):
        outcome = self._outcomes[min(self.calls, len(self._outcomes) - 1)]
        self.calls += 1
        if isinstance(outcome, Exception):
            raise outcome
        return outcome


def _loop(detect, interval_seconds=60.0):
    announced = []
    loop = AutoRepeatLoop(
        detect=detect,
        on_result=lambda response: announced.append(announcement_bucket(response)),
        on_error=lambda exc: announced.append(ERROR_BUCKET),
        interval_seconds=interval_seconds,
    )
    return loop, announced


def test_bucket_keys() -> None:
    assert announcement_bucket(_response()) == "0"
    assert announcement_bucket(_response("left")) == "1:left"
    assert announcement_bucket(_response("center", "left")) == "2:center"
    assert announcement_bucket(_response("right", "left", "left", "center")) == "3+:right"
    assert announcement_bucket(None) == ERROR_BUCKET


def test_identical_buckets_are_announced_once() -> None:
    detect = _ScriptedDetect([_response("left"), _response("left"), _response("left", "right")])
    loop, announced = _loop(detect)

    async def scenario():
        loop.activate()
        await asyncio.sleep(0)
        await loop.wait_for_cycle()
        await loop.run_cycle()
        await loop.run_cycle()
        loop.deactivate()

    asyncio.run(scenario())

    assert detect.calls == 3
    assert announced == ["1:left", "2:left"]


def test_repeated_errors_are_announced_once() -> None:
    detect = _ScriptedDetect([RuntimeError("camera"), RuntimeError("camera"), _response()])
    loop, announced = _loop(detect)

    async def scenario():
        loop.activate()
        await asyncio.sleep(0)
        await loop.wait_for_cycle()
        await loop.run_cycle()
        await loop.run_cycle()
        loop.deactivate()

    asyncio.run(scenario())

    assert announced == [ERROR_BUCKET, "0"]


def test_ticks_are_dropped_while_a_cycle_is_in_flight() -> None:
    async def scenario():
        release = asyncio.Event()

        async def slow_detect():
            await release.wait()
            return _response("center")

        loop, announced = _loop(slow_detect)
        loop.activate()
        await asyncio.sleep(0)

        assert loop.tick() is False
        assert loop.tick() is False
        release.set()
        await loop.wait_for_cycle()
        assert loop.tick() is True
        await loop.wait_for_cycle()
        loop.deactivate()
        return loop, announced

    loop, announced = asyncio.run(scenario())

    assert loop.dropped_ticks == 2
    assert announced == ["1:center"]


def test_reactivation_always_announces_the_first_result() -> None:
    detect = _ScriptedDetect([_response("left")])
    loop, announced = _loop(detect)

    async def scenario():
        loop.activate()
        await asyncio.sleep(0)
        await loop.wait_for_cycle()
        loop.deactivate()
        assert loop.last_bucket is None

        loop.activate()
        await asyncio.sleep(0)
        await loop.wait_for_cycle()
        loop.deactivate()

    asyncio.run(scenario())

    assert announced == ["1:left", "1:left"]


def test_dropped_capture_announces_nothing() -> None:
    loop, announced = _loop(_ScriptedDetect([None]))

    async def scenario():
        loop.activate()
        await asyncio.sleep(0)
        await loop.wait_for_cycle()
        loop.deactivate()

    asyncio.run(scenario())

    assert announced == []


def test_result_after_deactivation_is_not_announced() -> None:
    async def scenario():
        release = asyncio.Event()

        async def slow_detect():
            await release.wait()
            return _response("right")

        loop, announced = _loop(slow_detect)
        loop.activate()
        await asyncio.sleep(0)
        loop.deactivate()
        release.set()
        await loop.wait_for_cycle()
        return announced

    assert asyncio.run(scenario()) == []


def test_timer_keeps_ticking_at_the_configured_interval() -> None:
    detect = _ScriptedDetect([_response("left")])
    loop, announced = _loop(detect, interval_seconds=0.01)

    async def scenario():
        loop.activate()
        await asyncio.sleep(0.1)
        loop.deactivate()

    asyncio.run(scenario())

    assert detect.calls >= 3
    assert announced == ["1:left"]
