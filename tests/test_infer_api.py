from fastapi.testclient import TestClient

from config import Config
from server.app import create_app
from server.sessions import InferenceProfile

P1 = {"classLabel": "person", "confidence": 0.9, "x": 10, "y": 10, "width": 20, "height": 40}
P2 = {"classLabel": "person", "confidence": 0.8, "x": 500, "y": 20, "width": 100, "height": 200}
CAR = {"classLabel": "car", "confidence": 0.99, "x": 0, "y": 0, "width": 300, "height": 300}

DETECT_FRAMES = [
    {"source_width": 640, "source_height": 480, "objects": []},
    {"source_width": 640, "source_height": 480, "objects": [P1]},
    {"source_width": 640, "source_height": 480, "objects": [P1, P2]},
]

VI_FRAMES = [
    {"source_width": 640, "classes": []},
    {
        "source_width": 640,
        "objects": [{"classes": [{"category": "Gender", "classLabel": "Female", "confidence": 0.9}]}],
        "texts": [{"text": "The closest person is walking."}],
    },
]

IMAGE = {"file": ("photo.jpg", b"\xff\xd8fake-jpeg", "image/jpeg")}


class _ScriptedEndpoint:
    def __init__(self, frames, error=None) -> None:
        self.frames = frames
        self.error = error
        self.requests = 0
        self.disconnected = False

    async def process(self, image, mime_type):
        self.requests += 1
        if self.error is not None and self.requests == 1:
            raise self.error
        for frame in self.frames:
            yield frame

    async def disconnect(self) -> None:
        self.disconnected = True


class _ScriptedConnector:
    def __init__(self, detect_frames=(), detailed_frames=(), detect_error=None) -> None:
        self.endpoints = {
            InferenceProfile.DETECT: _ScriptedEndpoint(list(detect_frames), error=detect_error),
            InferenceProfile.DETAILED: _ScriptedEndpoint(list(detailed_frames)),
        }
        self.calls = []

    async def connect(self, profile):
        self.calls.append(profile)
        return self.endpoints[profile]


def _app(connector, **config_overrides):
    config = Config(eyepop_secret_key="test-key", eyepop_pop_id="test-pop", **config_overrides)
    return create_app(config=config, connector=connector)


def test_detect_returns_people_from_the_fullest_frame() -> None:
    connector = _ScriptedConnector(DETECT_FRAMES)

    with TestClient(_app(connector)) as client:
        response = client.post("/api/infer?mode=detect", files=IMAGE)

    assert response.status_code == 200
    body = response.json()
    assert body["source_width"] == 640
    assert body["source_height"] == 480
    assert len(body["people"]) == 2
    assert body["people"][0]["x"] == 500  # larger box ranks first
    assert body["people"][0]["position"] == "right"
    assert body["people"][1]["position"] == "left"
    assert "vi_debug" not in body


def test_detect_response_uses_wire_field_names() -> None:
    connector = _ScriptedConnector([{"source_width": 640, "objects": [P1, CAR]}])

    with TestClient(_app(connector)) as client:
        person = client.post("/api/infer", files=IMAGE).json()["people"][0]

    assert set(person) == {
        "confidence", "x", "y", "width", "height", "position",
        "gender", "genderConfidence", "activity", "activityConfidence",
    }
    assert person["gender"] is None
    assert person["activity"] is None


def test_vi_mode_characterizes_only_the_top_person() -> None:
    connector = _ScriptedConnector(DETECT_FRAMES, VI_FRAMES)

    with TestClient(_app(connector)) as client:
        body = client.post("/api/infer?mode=vi", files=IMAGE).json()

    top, other = body["people"]
    assert top["gender"] == "female"
    assert top["genderConfidence"] == 0.9
    assert top["activity"] == "walking"
    assert other["gender"] is None
    assert other["activity"] is None
    assert "vi_debug" not in body
    assert connector.calls == [InferenceProfile.DETECT, InferenceProfile.DETAILED]


def test_vi_debug_diagnostics() -> None:
    connector = _ScriptedConnector(DETECT_FRAMES, VI_FRAMES)

    with TestClient(_app(connector)) as client:
        body = client.post("/api/infer?mode=vi&debug=1", files=IMAGE).json()

    debug = body["vi_debug"]
    assert debug["vi_keys"] == ["source_width", "objects", "texts"]
    assert debug["classes_len"] == 1
    assert debug["label_text"] == "Female"
    assert "The closest person is walking." in debug["strings_sample"]


def test_vi_with_nobody_detected_returns_empty_people() -> None:
    connector = _ScriptedConnector([{"source_width": 640, "objects": []}], VI_FRAMES)

    with TestClient(_app(connector)) as client:
        body = client.post("/api/infer?mode=vi", files=IMAGE).json()

    assert body["people"] == []


def test_missing_file_is_rejected() -> None:
    with TestClient(_app(_ScriptedConnector(DETECT_FRAMES))) as client:
        response = client.post("/api/infer?mode=detect")

    assert response.status_code == 400
    assert response.json() == {"error": "No file uploaded"}


def test_oversized_upload_is_rejected() -> None:
    with TestClient(_app(_ScriptedConnector(DETECT_FRAMES), max_upload_bytes=4)) as client:
        response = client.post("/api/infer", files=IMAGE)

    assert response.status_code == 413
    assert response.json() == {"error": "File too large"}


def test_upstream_failure_is_reported_and_does_not_poison_the_session() -> None:
    connector = _ScriptedConnector(DETECT_FRAMES, detect_error=RuntimeError("EyePop unavailable"))

    with TestClient(_app(connector)) as client:
        failed = client.post("/api/infer", files=IMAGE)
        recovered = client.post("/api/infer", files=IMAGE)

    assert failed.status_code == 500
    assert failed.json() == {"error": "EyePop unavailable"}
    assert recovered.status_code == 200
    assert len(recovered.json()["people"]) == 2


def test_lifespan_connects_detect_eagerly_and_disconnects_on_shutdown() -> None:
    connector = _ScriptedConnector(DETECT_FRAMES)

    with TestClient(_app(connector)) as client:
        assert connector.calls == [InferenceProfile.DETECT]
        health = client.get("/health").json()

    assert health["status"] == "ok"
    assert health["detect_connected"] is True
    assert health["detailed_connected"] is False
    assert connector.endpoints[InferenceProfile.DETECT].disconnected


def test_integer_frame_size_stays_integer_on_the_wire() -> None:
    connector = _ScriptedConnector(DETECT_FRAMES)

    with TestClient(_app(connector)) as client:
        body = client.post("/api/infer", files=IMAGE).json()

    assert body["source_width"] == 640 and isinstance(body["source_width"], int)
    assert body["source_height"] == 480 and isinstance(body["source_height"], int)
