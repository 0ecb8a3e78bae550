import base64

import pytest
from fastapi.testclient import TestClient

from camera_bridge.main import app
from camera_bridge.routers import stream
from camera_bridge.services import camera_view


@pytest.fixture
def client():
    with TestClient(app) as client:
        yield client
    camera_view.disconnect_camera()
    camera_view.surface.clear()


def test_health(client):
    response = client.get("/health")
    assert response.status_code == 200
    body = response.json()
    assert body["status"] == "ok"
    assert body["camera_source"] == "demo"


def test_status_before_connect(client):
    response = client.get("/camera/status")
    assert response.status_code == 200
    assert response.json()["connected"] is False


def test_frame_unavailable_before_connect(client):
    response = client.get("/stream/frame")
    assert response.status_code == 503


def test_connect_streams_demo_frames(client, waiter):
    response = client.post("/camera/connect", json={"width": 640, "height": 480})
    assert response.status_code == 200
    status = response.json()
    assert status["connected"] is True
    assert (status["frame_width"], status["frame_height"]) == (320, 240)
    assert status["scale"] == pytest.approx(2.0)

    assert waiter(lambda: camera_view.surface.frames_drawn > 0, timeout=5.0)

    frame = client.get("/stream/frame")
    assert frame.status_code == 200
    jpeg = base64.b64decode(frame.json()["image"])
    assert jpeg[:2] == b"\xff\xd8"

    response = client.post("/camera/disconnect")
    assert response.status_code == 200
    assert response.json()["connected"] is False
    assert client.get("/stream/frame").status_code == 503


def test_connect_without_body_uses_surface_size(client):
    response = client.post("/camera/connect")
    assert response.status_code == 200
    assert response.json()["frame_width"] == 320


def test_connect_failure_returns_503(client):
    response = client.post("/camera/connect", json={"width": 10, "height": 10})
    assert response.status_code == 503
    assert client.get("/camera/status").json()["connected"] is False


def test_mjpeg_generator_yields_multipart_chunks(client, waiter):
    assert client.post("/camera/connect").status_code == 200
    assert waiter(lambda: camera_view.surface.frames_drawn > 0, timeout=5.0)

    chunks = list(stream.mjpeg_generator(max_frames=2))

    assert len(chunks) == 2
    for chunk in chunks:
        assert chunk.startswith(b"--frame\r\nContent-Type: image/jpeg\r\n\r\n\xff\xd8")
