from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from pathlib import Path
from threading import Lock
from typing import Any, Iterable, Optional

import httpx

from shortvideo.models.domain import Caption


class TranscriptionError(RuntimeError):
    pass


class Transcriber(ABC):
    @abstractmethod
    def create_captions(self, audio_path: Path) -> list[Caption]: ...


def captions_from_segments(segments: Iterable[dict[str, Any]]) -> list[Caption]:
    """Flatten whisper-style segments into word captions.

    A token that does not start with a space continues the previous word
    (whisper splits some words into several tokens), unless the previous
    caption already ends with one.
    """
    captions: list[Caption] = []
    for segment in segments:
        words = segment.get("words") or []
        if not words:
            text = (segment.get("text") or "").strip()
            if text:
                captions.append(
                    Caption(
                        text=text,
                        start_ms=int(round(float(segment["start"]) * 1000)),
                        end_ms=int(round(float(segment["end"]) * 1000)),
                    )
                )
            continue
        for word in words:
            text = word.get("word") or word.get("text") or ""
            if not text or text.startswith("[_"):
                continue
            start_ms = int(round(float(word["start"]) * 1000))
            end_ms = int(round(float(word["end"]) * 1000))
            if captions and not text.startswith(" ") and not captions[-1].text.endswith(" "):
                previous = captions[-1]
                captions[-1] = Caption(text=previous.text + text, start_ms=previous.start_ms, end_ms=end_ms)
                continue
            captions.append(Caption(text=text, start_ms=start_ms, end_ms=end_ms))
    return captions


class LocalWhisperClient(Transcriber):
    def __init__(
        self,
        model_name: str = "base",
        language: str | None = None,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        self.model_name = model_name
        self.language = language
        self.log = logger or logging.getLogger(__name__)
        self._model = None
        self._lock = Lock()

    def _load_model(self):
        with self._lock:
            if self._model is None:
                import whisper

                self._model = whisper.load_model(self.model_name)
                self.log.info("local whisper model loaded", extra={"model": self.model_name})
        return self._model

    def create_captions(self, audio_path: Path) -> list[Caption]:
        model = self._load_model()
        self.log.debug("starting transcription", extra={"audio_path": str(audio_path)})
        try:
            result = model.transcribe(
                str(audio_path),
                task="transcribe",
                language=self.language,
                word_timestamps=True,
                verbose=False,
            )
        except Exception as exc:
            raise TranscriptionError(f"whisper failed on {audio_path.name}: {exc}") from exc
        captions = captions_from_segments(result.get("segments", []))
        self.log.info(
            "whisper transcription completed (local)",
            extra={"model": self.model_name, "segments": len(result.get("segments", [])), "captions": len(captions)},
        )
        return captions


class RemoteTranscriptionClient(Transcriber):
    def __init__(
        self,
        base_url: str,
        api_key: str | None,
        language: str | None = None,
        timeout: float = 300.0,
        logger: Optional[logging.Logger] = None,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.api_key = (api_key or "").strip()
        self.language = language
        self.timeout = timeout
        self.log = logger or logging.getLogger(__name__)
        self._transport = transport
        if not self.api_key:
            self.log.warning("transcription api key not set, remote transcription will fail")

    def create_captions(self, audio_path: Path) -> list[Caption]:
        if not self.api_key:
            raise TranscriptionError("transcription api key is required")
        data = {
            "task": "transcribe",
            "word_timestamps": "true",
            "include_segments": "true",
            "include_text": "false",
            "response_type": "direct",
        }
        if self.language:
            data["language"] = self.language
        try:
            with httpx.Client(timeout=self.timeout, transport=self._transport) as client, open(audio_path, "rb") as fh:
                response = client.post(
                    f"{self.base_url}/v1/media/transcribe",
                    data=data,
                    files={"file": (audio_path.name, fh, "audio/wav")},
                    headers={"x-api-key": self.api_key},
                )
                response.raise_for_status()
                payload = response.json()
        except httpx.HTTPError as exc:
            raise TranscriptionError(f"transcription service failed: {exc}") from exc
        body = payload.get("response", payload) if isinstance(payload, dict) else payload
        segments = body.get("segments") if isinstance(body, dict) else None
        if segments is None:
            raise TranscriptionError("transcription response has no segments")
        captions = captions_from_segments(segments)
        self.log.info(
            "transcription completed (remote)",
            extra={"audio_path": str(audio_path), "captions": len(captions)},
        )
        return captions
