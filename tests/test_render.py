import json

import httpx
import pytest

from shortvideo.clients.renderer import RemotionRenderClient, RenderError
from shortvideo.models.domain import (
    AssembledScene,
    AssemblyResult,
    Caption,
    Job,
    LongFormRenderConfig,
    MusicTrack,
    MusicVolume,
    Orientation,
    RenderConfig,
    SceneInput,
    SpeechProviderKey,
    VideoKind,
)
from shortvideo.services.render import RenderHandoff
from shortvideo.storage.repository import VideoRepository

MUSIC = MusicTrack(file="chill.mp3", mood="chill", url="http://testserver/music/chill.mp3")


def _assembly(person_image_ref=None):
    scene = AssembledScene(
        captions=[Caption(text="hi", start_ms=0, end_ms=400)],
        footage_ref="http://testserver/tmp/a.mp4",
        audio_ref="http://testserver/tmp/a.mp3",
        audio_duration_seconds=5.5,
    )
    return AssemblyResult(
        scenes=[scene],
        total_duration_seconds=5.5,
        speech_provider=SpeechProviderKey.REMOTE,
        voice="af_heart",
        person_image_ref=person_image_ref,
    )


def _job(config, kind=VideoKind.SHORT):
    return Job(id="abc123", kind=kind, scenes=[SceneInput(text="hi", search_terms=["cat"])], config=config)


class RecordingEngine:
    def __init__(self):
        self.calls = []

    def render(self, manifest, job_id, orientation, output_path):
        self.calls.append((manifest, job_id, orientation, output_path))
        output_path.write_bytes(b"video")
        return output_path


def test_manifest_for_short_video(tmp_path):
    handoff = RenderHandoff(RecordingEngine(), VideoRepository(tmp_path))
    config = RenderConfig(padding_back=500, caption_background_color="red")

    manifest = handoff.build_manifest(_job(config), _assembly(), MUSIC)

    assert manifest.duration_ms == 5500
    assert manifest.padding_ms == 500
    assert manifest.caption_style == {"position": "bottom", "backgroundColor": "red"}
    assert manifest.music_volume is MusicVolume.HIGH
    assert manifest.overlay is None


def test_longform_render_writes_prefixed_file(tmp_path):
    engine = RecordingEngine()
    handoff = RenderHandoff(engine, VideoRepository(tmp_path))
    config = LongFormRenderConfig(person_image_url="https://img.example.com/p.jpg", person_name="Dana")

    output = handoff.render(
        _job(config, kind=VideoKind.LONGFORM),
        _assembly(person_image_ref="http://testserver/tmp/p.jpg"),
        MUSIC,
    )

    manifest, job_id, orientation, path = engine.calls[0]
    assert output == tmp_path / "longform_abc123.mp4" == path
    assert orientation is Orientation.LANDSCAPE
    assert manifest.music_volume is MusicVolume.MEDIUM
    assert manifest.overlay == {
        "personImageUrl": "http://testserver/tmp/p.jpg",
        "personName": "Dana",
        "nameBannerColor": "#FF4444",
        "personOverlaySize": 0.25,
    }


def test_remotion_client_streams_video_to_disk(tmp_path):
    seen = {}

    def handler(request):
        seen["url"] = str(request.url)
        seen["body"] = json.loads(request.content)
        return httpx.Response(200, content=b"\x00\x00\x00\x18ftypmp42")

    handoff = RenderHandoff(RecordingEngine(), VideoRepository(tmp_path))
    manifest = handoff.build_manifest(_job(RenderConfig()), _assembly(), MUSIC)
    client = RemotionRenderClient(base_url="http://render.local/", transport=httpx.MockTransport(handler))

    output = client.render(manifest, "abc123", Orientation.PORTRAIT, tmp_path / "abc123.mp4")

    assert output.read_bytes() == b"\x00\x00\x00\x18ftypmp42"
    assert not (tmp_path / "abc123.mp4.part").exists()
    assert seen["url"] == "http://render.local/render"
    assert seen["body"]["composition"] == "PortraitVideo"
    assert seen["body"]["inputProps"]["durationMs"] == 5500
    assert seen["body"]["inputProps"]["scenes"][0]["audioRef"] == "http://testserver/tmp/a.mp3"


def test_remotion_client_failure_leaves_no_file(tmp_path):
    handoff = RenderHandoff(RecordingEngine(), VideoRepository(tmp_path))
    manifest = handoff.build_manifest(_job(RenderConfig()), _assembly(), MUSIC)
    client = RemotionRenderClient(
        base_url="http://render.local",
        transport=httpx.MockTransport(lambda request: httpx.Response(500, text="render crashed")),
    )

    with pytest.raises(RenderError):
        client.render(manifest, "abc123", Orientation.PORTRAIT, tmp_path / "abc123.mp4")

    assert list(tmp_path.iterdir()) == []


def test_remotion_client_rejects_empty_video(tmp_path):
    handoff = RenderHandoff(RecordingEngine(), VideoRepository(tmp_path))
    manifest = handoff.build_manifest(_job(RenderConfig()), _assembly(), MUSIC)
    client = RemotionRenderClient(
        base_url="http://render.local",
        transport=httpx.MockTransport(lambda request: httpx.Response(200, content=b"")),
    )

    with pytest.raises(RenderError):
        client.render(manifest, "abc123", Orientation.PORTRAIT, tmp_path / "abc123.mp4")

    assert not (tmp_path / "abc123.mp4").exists()
