import pytest
from fastapi.testclient import TestClient

from shortvideo.main import app, get_video_service
from test_video_service import build_service


@pytest.fixture
def service(settings):
    return build_service(settings)


@pytest.fixture
def client(service):
    app.dependency_overrides[get_video_service] = lambda: service
    yield TestClient(app)
    app.dependency_overrides.clear()


SHORT_PAYLOAD = {
    "scenes": [{"text": "Cats love rooftops", "searchTerms": ["cat", "roof"]}],
    "config": {"paddingBack": 1500, "music": "chill", "captionPosition": "top"},
}


def test_short_video_flow(client, service):
    create_resp = client.post("/short-video", json=SHORT_PAYLOAD)
    assert create_resp.status_code == 201
    video_id = create_resp.json()["videoId"]

    assert service.queue.wait_idle(5)

    status_resp = client.get(f"/short-video/{video_id}/status")
    assert status_resp.status_code == 200
    assert status_resp.json()["status"] == "ready"

    list_resp = client.get("/short-videos")
    assert list_resp.status_code == 200
    assert [item["id"] for item in list_resp.json()["videos"]] == [video_id]

    file_resp = client.get(f"/short-video/{video_id}")
    assert file_resp.status_code == 200
    assert file_resp.headers["content-type"] == "video/mp4"
    assert file_resp.content == b"mp4-bytes"

    delete_resp = client.delete(f"/short-video/{video_id}")
    assert delete_resp.status_code == 200
    assert client.get(f"/short-video/{video_id}").status_code == 404
    assert client.get(f"/short-video/{video_id}/status").json()["status"] == "failed"


def test_invalid_payloads_are_rejected(client):
    assert client.post("/short-video", json={"scenes": []}).status_code == 422
    assert client.post(
        "/short-video",
        json={"scenes": [{"text": "   ", "searchTerms": ["cat"]}]},
    ).status_code == 422
    assert client.post(
        "/short-video",
        json={"scenes": [{"text": "hi", "searchTerms": []}]},
    ).status_code == 422
    assert client.post(
        "/short-video",
        json={"scenes": [{"text": "hi", "searchTerms": ["cat"]}], "config": {"paddingBack": -1}},
    ).status_code == 422


def test_unregistered_provider_is_bad_request(client):
    payload = {
        "scenes": [{"text": "hi", "searchTerms": ["cat"]}],
        "config": {"provider": "elevenlabs"},
    }
    assert client.post("/short-video", json=payload).status_code == 400


def test_malformed_video_id_is_not_found(client):
    assert client.get("/short-video/bad.id/status").status_code == 404
    assert client.get("/short-video/bad.id").status_code == 404


def test_long_form_video_flow(client, service):
    missing = {"scenes": SHORT_PAYLOAD["scenes"], "config": {"personName": "Dana"}}
    assert client.post("/long-form-video", json=missing).status_code == 422

    payload = {
        "scenes": SHORT_PAYLOAD["scenes"],
        "config": {"personImageUrl": "https://img.example.com/dana.jpg", "personName": "Dana"},
    }
    create_resp = client.post("/long-form-video", json=payload)
    assert create_resp.status_code == 201
    video_id = create_resp.json()["videoId"]
    assert service.queue.wait_idle(5)

    assert client.get(f"/long-form-video/{video_id}/status").json()["status"] == "ready"
    assert [item["id"] for item in client.get("/long-form-videos").json()["videos"]] == [video_id]
    assert client.get("/short-videos").json()["videos"] == []
    assert client.get(f"/long-form-video/{video_id}").status_code == 200


def test_catalog_routes(client):
    providers = client.get("/tts-providers").json()
    assert providers == {"items": ["remote"], "default": "remote"}

    voices = client.get("/voices").json()
    assert voices["provider"] == "remote"
    assert voices["items"] == ["af_heart", "am_adam"]
    assert client.get("/voices", params={"provider": "nope"}).status_code == 400

    assert client.get("/music-tags").json() == {"items": ["chill", "sad"]}


def test_file_routes(client, settings):
    settings.temp_dir.mkdir(parents=True, exist_ok=True)
    (settings.temp_dir / "scene.mp3").write_bytes(b"tmp-audio")
    settings.music_dir.mkdir(parents=True, exist_ok=True)
    (settings.music_dir / "chill.mp3").write_bytes(b"music")

    assert client.get("/tmp/scene.mp3").content == b"tmp-audio"
    assert client.get("/tmp/other.mp3").status_code == 404
    assert client.get("/music/chill.mp3").content == b"music"
    assert client.get("/music/missing.mp3").status_code == 404


def test_admin_routes(client):
    status_resp = client.get("/admin/queue-status", params={"kind": "longform"})
    assert status_resp.status_code == 200
    assert status_resp.json()["status"] == {"queue_length": 0, "is_processing": False, "items": []}

    clear_resp = client.post("/admin/clear-stuck")
    assert clear_resp.status_code == 200
    assert clear_resp.json()["result"] == {"removed": 0, "cleared_processing": False}

    restart_resp = client.post("/admin/restart-queue")
    assert restart_resp.status_code == 200
    assert restart_resp.json()["restarted"] is False

    assert client.get("/admin/queue-status", params={"kind": "weekly"}).status_code == 422
