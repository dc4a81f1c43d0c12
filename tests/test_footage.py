import random

import httpx
import pytest

from shortvideo.clients.footage import (
    JOKER_TERMS,
    FootageError,
    FootageNotFoundError,
    FootageTimeoutError,
    PexelsClient,
    PixabayClient,
)
from shortvideo.models.domain import Orientation


def pexels_video(video_id, duration=20, width=1080, height=1920, fps=30):
    return {
        "id": video_id,
        "duration": duration,
        "video_files": [
            {"quality": "sd", "width": 540, "height": 960, "fps": fps, "link": f"https://cdn/{video_id}-sd.mp4"},
            {"quality": "hd", "width": width, "height": height, "fps": fps, "link": f"https://cdn/{video_id}.mp4"},
        ],
    }


def pexels_client(handler, **kwargs):
    return PexelsClient(api_key="key", rng=random.Random(7), transport=httpx.MockTransport(handler), **kwargs)


def test_pexels_returns_matching_hd_file():
    seen = []

    def handler(request):
        seen.append(request)
        return httpx.Response(200, json={"videos": [pexels_video(1)]})

    clip = pexels_client(handler).find(["cat"], 5.0)

    assert clip.id == "1"
    assert clip.url == "https://cdn/1.mp4"
    assert seen[0].headers["Authorization"] == "key"
    assert seen[0].url.params["orientation"] == "portrait"


def test_pexels_filters_short_low_fps_and_excluded_videos():
    videos = [
        pexels_video(1),
        pexels_video(2, duration=7),
        pexels_video(3, duration=10, fps=12),
        pexels_video(4, width=1920, height=1080),
        pexels_video(5),
    ]

    def handler(request):
        return httpx.Response(200, json={"videos": videos})

    clip = pexels_client(handler).find(["cat"], 5.0, exclude_ids=["1"])

    assert clip.id == "5"


def test_falls_back_to_joker_terms():
    queries = []

    def handler(request):
        query = request.url.params["query"]
        queries.append(query)
        if query in JOKER_TERMS:
            return httpx.Response(200, json={"videos": [pexels_video(9, width=1920, height=1080)]})
        return httpx.Response(200, json={"videos": []})

    clip = pexels_client(handler).find(["cat", "dog"], 2.0, orientation=Orientation.LANDSCAPE)

    assert clip.id == "9"
    assert set(queries[:2]) == {"cat", "dog"}
    assert queries[2] in JOKER_TERMS


def test_nothing_found_raises_not_found():
    def handler(request):
        return httpx.Response(200, json={"videos": []})

    with pytest.raises(FootageNotFoundError):
        pexels_client(handler).find(["cat"], 2.0)


def test_timeouts_are_retried_then_reported():
    calls = []

    def handler(request):
        calls.append(request)
        raise httpx.ReadTimeout("timed out", request=request)

    with pytest.raises(FootageTimeoutError):
        pexels_client(handler, retry_times=2).find(["cat"], 2.0)

    assert len(calls) == 3


def test_timeout_then_success():
    calls = []

    def handler(request):
        calls.append(request)
        if len(calls) == 1:
            raise httpx.ConnectTimeout("timed out", request=request)
        return httpx.Response(200, json={"videos": [pexels_video(3)]})

    assert pexels_client(handler).find(["cat"], 2.0).id == "3"


def test_invalid_key_is_not_retried_as_not_found():
    def handler(request):
        return httpx.Response(401, json={"error": "unauthorized"})

    with pytest.raises(FootageError) as exc_info:
        pexels_client(handler).find(["cat"], 2.0)
    assert not isinstance(exc_info.value, FootageNotFoundError)


def test_server_error_moves_to_next_term():
    def handler(request):
        if request.url.params["query"] == "cat":
            return httpx.Response(500)
        return httpx.Response(200, json={"videos": [pexels_video(4)]})

    assert pexels_client(handler).find(["cat"], 2.0).id == "4"


def test_missing_api_key():
    client = PexelsClient(api_key="", transport=httpx.MockTransport(lambda request: httpx.Response(200)))
    with pytest.raises(FootageError):
        client.find(["cat"], 2.0)


def test_pixabay_uses_large_rendition():
    def handler(request):
        assert request.url.params["key"] == "px"
        return httpx.Response(
            200,
            json={
                "hits": [
                    {"id": 1, "duration": 3, "videos": {"large": {"url": "https://px/1.mp4", "width": 1920, "height": 1080}}},
                    {"id": 2, "duration": 30, "videos": {"large": {"url": "https://px/2.mp4", "width": 1920, "height": 1080}}},
                ]
            },
        )

    client = PixabayClient(api_key="px", rng=random.Random(1), transport=httpx.MockTransport(handler))
    clip = client.find(["ocean"], 5.0)

    assert clip.id == "2"
    assert clip.url == "https://px/2.mp4"
    assert clip.width == 1920
