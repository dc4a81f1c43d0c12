from __future__ import annotations

from pathlib import Path

import pytest

from shortvideo.clients.footage import FootageNotFoundError
from shortvideo.clients.registry import SpeechProviderRegistry
from shortvideo.clients.tts import SpeechProvider
from shortvideo.clients.whisper import Transcriber
from shortvideo.config import Settings
from shortvideo.models.domain import Caption, FootageClip, Orientation, SpeechProviderKey, SpeechResult
from shortvideo.services.duration import DurationReconciler


class StubSpeech(SpeechProvider):
    key = SpeechProviderKey.REMOTE
    fallback_voices = ("af_heart",)

    def __init__(self, durations=None, voices=("af_heart", "am_adam"), audio=b"ID3fake-audio"):
        super().__init__()
        self.durations = list(durations or [])
        self.voices = list(voices)
        self.audio = audio
        self.calls: list[tuple[str, str]] = []

    def generate(self, text, voice):
        self.calls.append((text, voice))
        index = len(self.calls) - 1
        duration = self.durations[index] if index < len(self.durations) else 2.0
        return SpeechResult(audio=self.audio, estimated_duration_seconds=duration, audio_format="mp3")

    def _fetch_voices(self):
        return list(self.voices)


class StubConverter:
    def save_normalized_wav(self, audio, output_path, audio_format="auto"):
        output_path.write_bytes(audio)
        return output_path

    def save_mp3(self, audio, output_path, audio_format="auto"):
        output_path.write_bytes(audio)
        return output_path


class StubTranscriber(Transcriber):
    def __init__(self):
        self.paths: list[Path] = []

    def create_captions(self, audio_path):
        self.paths.append(audio_path)
        return [Caption(text="hello", start_ms=0, end_ms=500)]


class StubFootage:
    def __init__(self, fail_on_call: int | None = None):
        self.calls: list[dict] = []
        self.fail_on_call = fail_on_call

    def find(self, terms, min_duration_seconds, exclude_ids=(), orientation=Orientation.PORTRAIT):
        self.calls.append(
            {
                "terms": list(terms),
                "duration": min_duration_seconds,
                "exclude": list(exclude_ids),
                "orientation": orientation,
            }
        )
        if self.fail_on_call == len(self.calls):
            raise FootageNotFoundError(f"no videos found for terms {list(terms)}")
        n = len(self.calls)
        return FootageClip(id=f"clip{n}", url=f"https://footage.example.com/{n}.mp4", width=1080, height=1920)


def fake_download(url, path):
    Path(path).write_bytes(b"downloaded:" + url.encode())
    return path


def keep_estimate_reconciler() -> DurationReconciler:
    return DurationReconciler(measure=lambda path: 0.0)


def make_registry(provider: SpeechProvider) -> SpeechProviderRegistry:
    return SpeechProviderRegistry({SpeechProviderKey.REMOTE: lambda: provider}, default=SpeechProviderKey.REMOTE)


@pytest.fixture
def settings(tmp_path) -> Settings:
    return Settings(
        data_dir=tmp_path,
        public_url="http://testserver",
        music_catalog=[
            {"file": "chill.mp3", "mood": "chill", "start": "0", "end": "30"},
            {"file": "sad.mp3", "mood": "sad"},
        ],
    )
