from __future__ import annotations

import logging
import math
from abc import ABC, abstractmethod
from typing import Any, Optional

import httpx
from pydantic import BaseModel

from shortvideo.clients.ffmpeg import detect_audio_format
from shortvideo.models.domain import SpeechProviderKey, SpeechResult


class SpeechSynthesisError(RuntimeError):
    pass


class VoiceCatalog(BaseModel):
    voices: list[str]
    source: str


class SpeechProvider(ABC):
    """Common contract for text-to-speech engines.

    Voice lists are fetched from the engine on demand. A successful fetch is
    cached; a failed or malformed one returns the static fallback list and is
    retried on the next call.
    """

    key: SpeechProviderKey
    fallback_voices: tuple[str, ...] = ()

    def __init__(
        self,
        timeout: float = 60.0,
        logger: Optional[logging.Logger] = None,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        self.timeout = timeout
        self.log = logger or logging.getLogger(__name__)
        self._transport = transport
        self._voice_cache: VoiceCatalog | None = None

    @abstractmethod
    def generate(self, text: str, voice: str) -> SpeechResult: ...

    @abstractmethod
    def _fetch_voices(self) -> list[str]: ...

    def _client(self, timeout: float | None = None) -> httpx.Client:
        return httpx.Client(timeout=timeout or self.timeout, transport=self._transport)

    def voice_catalog(self) -> VoiceCatalog:
        if self._voice_cache is not None:
            return self._voice_cache
        try:
            voices = self._fetch_voices()
        except (httpx.HTTPError, ValueError, KeyError, TypeError):
            self.log.warning(
                "voice list fetch failed, using fallback voices",
                extra={"provider": self.key.value},
                exc_info=True,
            )
            voices = []
        if voices:
            self._voice_cache = VoiceCatalog(voices=voices, source="api")
            return self._voice_cache
        return VoiceCatalog(voices=list(self.fallback_voices), source="fallback")

    def list_voices(self) -> list[str]:
        return self.voice_catalog().voices

    def default_voice(self) -> str:
        voices = self.list_voices()
        if voices:
            return voices[0]
        if self.fallback_voices:
            return self.fallback_voices[0]
        raise SpeechSynthesisError(f"no voices available for provider {self.key.value}")

    def _download_audio(self, client: httpx.Client, url: str) -> tuple[bytes, str | None]:
        response = client.get(url)
        response.raise_for_status()
        if not response.content:
            raise SpeechSynthesisError(f"received empty audio from {url}")
        return response.content, response.headers.get("content-type")


def _format_from_content_type(content_type: str | None, url: str = "") -> str:
    lowered = (content_type or "").lower()
    for needle, fmt in (
        ("mpeg", "mp3"),
        ("mp3", "mp3"),
        ("opus", "opus"),
        ("aac", "aac"),
        ("flac", "flac"),
        ("wav", "wav"),
        ("wave", "wav"),
        ("pcm", "pcm"),
    ):
        if needle in lowered:
            return fmt
    for fmt in ("mp3", "opus", "aac", "flac", "wav", "pcm"):
        if url.lower().endswith(f".{fmt}"):
            return fmt
    return "auto"


def _resolve_format(audio: bytes, content_type: str | None, url: str = "") -> str:
    detected = detect_audio_format(audio)
    if detected != "auto":
        return detected
    return _format_from_content_type(content_type, url)


class RemoteTTSClient(SpeechProvider):
    """Multi-engine TTS API that answers with a downloadable ``audio_url``."""

    key = SpeechProviderKey.REMOTE
    fallback_voices = ("af_heart", "af_alloy", "af_aoede")

    def __init__(
        self,
        base_url: str,
        engine: str = "kokoro",
        speed: float = 1.0,
        timeout: float = 60.0,
        logger: Optional[logging.Logger] = None,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        super().__init__(timeout=timeout, logger=logger, transport=transport)
        base = base_url.rstrip("/")
        if base.endswith("/api"):
            base = base[: -len("/api")]
        self.base_url = base
        self.engine = engine
        self.speed = speed

    def generate(self, text: str, voice: str) -> SpeechResult:
        payload = {
            "text": text,
            "voice": voice,
            "provider": self.engine,
            "speed": self.speed,
            "format": "wav",
        }
        try:
            with self._client() as client:
                response = client.post(f"{self.base_url}/api/tts", json=payload)
                response.raise_for_status()
                result = self._pick_result(response.json())
                audio_url = result.get("audio_url")
                if not audio_url:
                    raise SpeechSynthesisError("no audio_url returned from TTS service")
                audio, content_type = self._download_audio(client, audio_url)
        except httpx.HTTPError as exc:
            raise SpeechSynthesisError(f"TTS service at {self.base_url} failed: {exc}") from exc
        duration_ms = result.get("duration")
        if duration_ms:
            estimate = float(duration_ms) / 1000
        else:
            estimate = len(text.split()) * 0.3
        audio_format = _resolve_format(audio, content_type, audio_url)
        self.log.debug(
            "remote tts synthesis completed",
            extra={"voice": voice, "engine": self.engine, "bytes": len(audio), "format": audio_format},
        )
        return SpeechResult(audio=audio, estimated_duration_seconds=estimate, audio_format=audio_format)

    def _pick_result(self, data: Any) -> dict[str, Any]:
        if isinstance(data, list):
            result = next((item for item in data if isinstance(item, dict) and item.get("success")), None)
        else:
            result = data
        if not isinstance(result, dict):
            raise SpeechSynthesisError("TTS service returned no successful result")
        if result.get("success") is False:
            raise SpeechSynthesisError(f"TTS service error: {result.get('error') or 'unknown error'}")
        return result

    def _fetch_voices(self) -> list[str]:
        with self._client(timeout=15.0) as client:
            response = client.get(f"{self.base_url}/api/voices/{self.engine}")
            response.raise_for_status()
            data = response.json()
        if not isinstance(data, list):
            raise ValueError("unexpected voice list payload")
        return [item["name"] if isinstance(item, dict) else str(item) for item in data]


class OpenAIEdgeTTSClient(SpeechProvider):
    """OpenAI-compatible ``/v1/audio/speech`` endpoint backed by Edge voices."""

    key = SpeechProviderKey.OPENAI_EDGE
    fallback_voices = (
        "alloy",
        "echo",
        "fable",
        "onyx",
        "nova",
        "shimmer",
        "en-US-AriaNeural",
        "en-US-JennyNeural",
        "en-US-GuyNeural",
    )

    def __init__(
        self,
        base_url: str,
        api_key: str | None = None,
        model: str = "tts-1",
        timeout: float = 30.0,
        logger: Optional[logging.Logger] = None,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        super().__init__(timeout=timeout, logger=logger, transport=transport)
        self.base_url = base_url.rstrip("/")
        self.api_key = (api_key or "").strip()
        self.model = model

    def _headers(self) -> dict[str, str]:
        headers = {"Content-Type": "application/json"}
        if self.api_key:
            headers["Authorization"] = f"Bearer {self.api_key}"
        return headers

    def generate(self, text: str, voice: str) -> SpeechResult:
        payload = {
            "input": text,
            "text": text,
            "voice": voice,
            "model": self.model,
            "response_format": "mp3",
        }
        duration: float | None = None
        audio_url = ""
        try:
            with self._client() as client:
                response = client.post(f"{self.base_url}/v1/audio/speech", json=payload, headers=self._headers())
                response.raise_for_status()
                content_type = response.headers.get("content-type", "")
                if content_type.startswith("audio/"):
                    audio = response.content
                else:
                    data = response.json()
                    audio_url = data.get("audio_url") or ""
                    if not audio_url:
                        raise SpeechSynthesisError(f"no audio_url found in response: {data}")
                    if isinstance(data.get("duration"), (int, float)):
                        duration = float(data["duration"])
                    audio, content_type = self._download_audio(client, audio_url)
        except httpx.HTTPError as exc:
            raise SpeechSynthesisError(f"OpenAI Edge TTS at {self.base_url} failed: {exc}") from exc
        if duration is None:
            words = len(text.split())
            duration = float(max(1, math.ceil(words / 150 * 60)))
        self.log.info(
            "openai edge tts synthesis completed",
            extra={"voice": voice, "bytes": len(audio), "estimated_duration": duration},
        )
        return SpeechResult(
            audio=audio,
            estimated_duration_seconds=duration,
            audio_format=_resolve_format(audio, content_type, audio_url),
        )

    def _fetch_voices(self) -> list[str]:
        with self._client(timeout=15.0) as client:
            response = client.get(f"{self.base_url}/v1/voices", headers=self._headers())
            response.raise_for_status()
            data = response.json()
        if isinstance(data, dict):
            data = data.get("voices")
        if not isinstance(data, list):
            raise ValueError("unexpected voice list payload")
        return [
            (item.get("name") or item.get("id")) if isinstance(item, dict) else str(item)
            for item in data
            if item
        ]


class ElevenLabsClient(SpeechProvider):
    key = SpeechProviderKey.ELEVENLABS
    fallback_voices = ("21m00Tcm4TlvDq8ikWAM",)

    # mp3_44100_128 output
    BYTES_PER_SECOND = 128_000 / 8

    def __init__(
        self,
        api_key: str | None,
        model_id: str = "eleven_multilingual_v2",
        base_url: str = "https://api.elevenlabs.io",
        timeout: float = 30.0,
        logger: Optional[logging.Logger] = None,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        super().__init__(timeout=timeout, logger=logger, transport=transport)
        self.api_key = (api_key or "").strip()
        self.model_id = model_id
        self.base_url = base_url.rstrip("/")

    def enabled(self) -> bool:
        return bool(self.api_key)

    def _headers(self) -> dict[str, str]:
        return {"xi-api-key": self.api_key, "Content-Type": "application/json"}

    def generate(self, text: str, voice: str) -> SpeechResult:
        if not self.enabled():
            raise SpeechSynthesisError("ElevenLabs client is not configured")
        url = f"{self.base_url}/v1/text-to-speech/{voice}"
        payload = {
            "text": text,
            "model_id": self.model_id,
            "voice_settings": {"stability": 0.5, "similarity_boost": 0.5},
        }
        try:
            with self._client() as client:
                response = client.post(url, json=payload, headers=self._headers())
                response.raise_for_status()
                audio = response.content
        except httpx.HTTPError as exc:
            raise SpeechSynthesisError(f"ElevenLabs synthesis failed: {exc}") from exc
        self.log.info(
            "elevenlabs synthesis completed",
            extra={"voice_id": voice, "model_id": self.model_id, "content_length": len(audio)},
        )
        return SpeechResult(
            audio=audio,
            estimated_duration_seconds=len(audio) / self.BYTES_PER_SECOND,
            audio_format="mp3",
        )

    def _fetch_voices(self) -> list[str]:
        if not self.enabled():
            return []
        with self._client(timeout=15.0) as client:
            response = client.get(f"{self.base_url}/v1/voices", headers=self._headers())
            response.raise_for_status()
            data = response.json()
        if not isinstance(data, dict) or not isinstance(data.get("voices", []), list):
            raise ValueError("unexpected voice list payload")
        return [
            item["voice_id"] for item in data.get("voices", []) if isinstance(item, dict) and item.get("voice_id")
        ]
