from __future__ import annotations

import logging
import pathlib
from typing import Callable, Optional

from shortvideo.clients.downloads import download_file
from shortvideo.clients.ffmpeg import AudioConverter
from shortvideo.clients.footage import FootageProvider
from shortvideo.clients.registry import SpeechProviderRegistry
from shortvideo.clients.tts import SpeechProvider, SpeechSynthesisError
from shortvideo.clients.whisper import Transcriber
from shortvideo.models.domain import (
    AssembledScene,
    AssemblyResult,
    Job,
    LongFormRenderConfig,
    Orientation,
    SceneInput,
    SpeechProviderKey,
    VideoKind,
)
from shortvideo.services.duration import DurationReconciler
from shortvideo.services.temp_files import TempFileLedger

Downloader = Callable[[str, pathlib.Path], pathlib.Path]

SHORT_SCENE_SECONDS = 1.0
SHORT_VIDEO_SECONDS = 5.0


class SceneAssembler:
    """Turns a job's scene inputs into timed scenes ready for rendering.

    Scenes are processed strictly in order. The speech provider and voice are
    resolved once, on the first scene, and reused for the rest of the job.
    Footage picked for a scene is excluded for every later scene of the same
    job. Any scene failure aborts the job; temp files stay registered in the
    caller's ledger so they are released either way.
    """

    def __init__(
        self,
        speech: SpeechProviderRegistry,
        transcriber: Transcriber,
        footage: FootageProvider,
        converter: AudioConverter,
        reconciler: DurationReconciler,
        public_url: str,
        default_voice: str | None = None,
        downloader: Downloader | None = None,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        self.speech = speech
        self.transcriber = transcriber
        self.footage = footage
        self.converter = converter
        self.reconciler = reconciler
        self.public_url = public_url.rstrip("/")
        self.default_voice = default_voice
        self.download = downloader or download_file
        self.log = logger or logging.getLogger(__name__)

    def assemble(self, job: Job, ledger: TempFileLedger) -> AssemblyResult:
        config = job.config
        orientation = Orientation.LANDSCAPE if job.kind is VideoKind.LONGFORM else config.orientation
        self.log.debug(
            "assembling scenes",
            extra={"job_id": job.id, "kind": job.kind.value, "scenes": len(job.scenes), "orientation": orientation.value},
        )

        person_image_ref: str | None = None
        if isinstance(config, LongFormRenderConfig):
            suffix = pathlib.PurePosixPath(config.person_image_url.split("?", 1)[0]).suffix or ".jpg"
            image_path = ledger.new_path(suffix)
            self.download(config.person_image_url, image_path)
            person_image_ref = self._temp_url(image_path)

        scenes: list[AssembledScene] = []
        exclude_ids: list[str] = []
        total_duration = 0.0
        key: SpeechProviderKey | None = None
        provider: SpeechProvider | None = None
        voice = ""
        last_index = len(job.scenes) - 1
        for index, scene in enumerate(job.scenes):
            if index == 0:
                key, provider, voice = self._resolve_voice(job)
            try:
                assembled = self._assemble_scene(
                    job,
                    scene,
                    index,
                    is_last=index == last_index,
                    provider=provider,
                    voice=voice,
                    orientation=orientation,
                    exclude_ids=exclude_ids,
                    ledger=ledger,
                )
            except Exception:
                self.log.error(
                    "scene assembly failed",
                    extra={"job_id": job.id, "scene": index + 1, "search_terms": scene.search_terms},
                )
                raise
            scenes.append(assembled)
            total_duration += assembled.audio_duration_seconds

        self.log.info(
            "scene durations computed",
            extra={
                "job_id": job.id,
                "scene_durations": [scene.audio_duration_seconds for scene in scenes],
                "total_duration": total_duration,
                "padding_back": config.padding_back,
            },
        )
        if total_duration < SHORT_VIDEO_SECONDS:
            self.log.warning(
                "video shorter than 5 seconds, rendering may misbehave",
                extra={"job_id": job.id, "total_duration": total_duration},
            )
        return AssemblyResult(
            scenes=scenes,
            total_duration_seconds=total_duration,
            speech_provider=key,
            voice=voice,
            person_image_ref=person_image_ref,
        )

    def _resolve_voice(self, job: Job) -> tuple[SpeechProviderKey, SpeechProvider, str]:
        key = self.speech.resolve_key(job.config.provider)
        provider = self.speech.get(key)
        requested = job.config.voice or self.default_voice
        voices = provider.list_voices()
        if requested and requested in voices:
            return key, provider, requested
        voice = voices[0] if voices else provider.default_voice()
        if job.config.voice and job.config.voice != voice:
            self.log.warning(
                "requested voice not supported by provider, using provider default for the whole video",
                extra={"job_id": job.id, "requested_voice": job.config.voice, "voice": voice, "provider": key.value},
            )
        return key, provider, voice

    def _assemble_scene(
        self,
        job: Job,
        scene: SceneInput,
        index: int,
        *,
        is_last: bool,
        provider: SpeechProvider,
        voice: str,
        orientation: Orientation,
        exclude_ids: list[str],
        ledger: TempFileLedger,
    ) -> AssembledScene:
        speech = provider.generate(scene.text, voice)
        if not speech.audio:
            raise SpeechSynthesisError(f"empty audio returned for scene {index + 1}")
        if speech.estimated_duration_seconds < SHORT_SCENE_SECONDS:
            self.log.warning(
                "scene speech shorter than one second",
                extra={"job_id": job.id, "scene": index + 1, "estimated": speech.estimated_duration_seconds},
            )

        wav_path = ledger.new_path(".wav")
        mp3_path = ledger.new_path(".mp3")
        self.converter.save_normalized_wav(speech.audio, wav_path, speech.audio_format)
        self.converter.save_mp3(speech.audio, mp3_path, speech.audio_format)

        captions = self.transcriber.create_captions(wav_path)
        duration = self.reconciler.reconcile(speech.estimated_duration_seconds, mp3_path)
        if is_last:
            duration = self.reconciler.apply_padding(duration, job.config.padding_back)

        clip = self.footage.find(scene.search_terms, duration, exclude_ids, orientation)
        exclude_ids.append(clip.id)
        video_path = ledger.new_path(".mp4")
        self.log.debug("downloading footage", extra={"job_id": job.id, "video_id": clip.id, "url": clip.url})
        self.download(clip.url, video_path)

        return AssembledScene(
            captions=captions,
            footage_ref=self._temp_url(video_path),
            audio_ref=self._temp_url(mp3_path),
            audio_duration_seconds=duration,
        )

    def _temp_url(self, path: pathlib.Path) -> str:
        return f"{self.public_url}/tmp/{path.name}"
