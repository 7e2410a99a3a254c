import asyncio

import pytest

from server.sessions import EndpointSession, InferenceProfile, SessionContext


class _FakeEndpoint:
    def __init__(self, fail_disconnect: bool = False) -> None:
        self.disconnected = False
        self._fail_disconnect = fail_disconnect

    async def process(self, image, mime_type):
        yield {"objects": []}

    async def disconnect(self) -> None:
        if self._fail_disconnect:
            raise RuntimeError("socket already closed")
        self.disconnected = True


class _FakeConnector:
    def __init__(self, fail_disconnect_for=()) -> None:
        self.calls = []
        self.endpoints = {}
        self._fail_disconnect_for = set(fail_disconnect_for)

    async def connect(self, profile):
        self.calls.append(profile)
        await asyncio.sleep(0)
        endpoint = _FakeEndpoint(fail_disconnect=profile in self._fail_disconnect_for)
        self.endpoints[profile] = endpoint
        return endpoint


def test_connect_is_lazy_and_idempotent() -> None:
    connector = _FakeConnector()
    session = EndpointSession(InferenceProfile.DETAILED, connector)

    async def scenario():
        assert not session.is_connected
        first, second, third = await asyncio.gather(session.connect(), session.connect(), session.connect())
        return first, second, third

    first, second, third = asyncio.run(scenario())

    assert first is second is third
    assert connector.calls == [InferenceProfile.DETAILED]
    assert session.is_connected


def test_operations_on_one_session_never_overlap() -> None:
    session = EndpointSession(InferenceProfile.DETECT, _FakeConnector())
    events = []

    def make_op(index):
        async def op(endpoint):
            events.append(("start", index))
            for _ in range(3):
                await asyncio.sleep(0)
            events.append(("end", index))
            return index

        return op

    async def scenario():
        return await asyncio.gather(*(session.run_exclusive(make_op(i)) for i in range(3)))

    results = asyncio.run(scenario())

    assert results == [0, 1, 2]
    assert events == [
        ("start", 0), ("end", 0),
        ("start", 1), ("end", 1),
        ("start", 2), ("end", 2),
    ]


def test_failed_operation_does_not_block_the_next() -> None:
    session = EndpointSession(InferenceProfile.DETECT, _FakeConnector())

    async def failing(endpoint):
        raise RuntimeError("upstream 401")

    async def succeeding(endpoint):
        return "ok"

    async def scenario():
        return await asyncio.gather(
            session.run_exclusive(failing),
            session.run_exclusive(succeeding),
            return_exceptions=True,
        )

    failure, success = asyncio.run(scenario())

    assert isinstance(failure, RuntimeError)
    assert str(failure) == "upstream 401"
    assert success == "ok"


def test_sessions_run_independently() -> None:
    context = SessionContext(_FakeConnector())
    order = []

    async def scenario():
        release = asyncio.Event()

        async def slow_detect(endpoint):
            await release.wait()
            order.append("detect")

        async def quick_detail(endpoint):
            order.append("detailed")
            release.set()

        await asyncio.gather(
            context.detect.run_exclusive(slow_detect),
            context.detailed.run_exclusive(quick_detail),
        )

    asyncio.run(asyncio.wait_for(scenario(), timeout=5))

    assert order == ["detailed", "detect"]


def test_start_connects_only_the_detect_session() -> None:
    connector = _FakeConnector()
    context = SessionContext(connector)

    asyncio.run(context.start())

    assert connector.calls == [InferenceProfile.DETECT]
    assert context.detect.is_connected
    assert not context.detailed.is_connected


def test_close_continues_after_a_failing_disconnect() -> None:
    connector = _FakeConnector(fail_disconnect_for=[InferenceProfile.DETECT])
    context = SessionContext(connector)

    async def scenario():
        await context.detect.connect()
        await context.detailed.connect()
        await context.close()

    asyncio.run(scenario())

    assert connector.endpoints[InferenceProfile.DETAILED].disconnected
    assert not context.detect.is_connected
    assert not context.detailed.is_connected


def test_close_without_connection_is_a_no_op() -> None:
    session = EndpointSession(InferenceProfile.DETECT, _FakeConnector())

    assert asyncio.run(session.close()) is False


def test_failed_connect_is_retried_on_next_use() -> None:
    class _FlakyConnector(_FakeConnector):
        async def connect(self, profile):
            if not self.calls:
                self.calls.append(profile)
                raise ConnectionError("auth failed")
            return await super().connect(profile)

    connector = _FlakyConnector()
    session = EndpointSession(InferenceProfile.DETECT, connector)

    with pytest.raises(ConnectionError):
        asyncio.run(session.connect())

    asyncio.run(session.connect())
    assert session.is_connected
    assert len(connector.calls) == 2
