from __future__ import annotations

import logging
import pathlib
from functools import partial
from typing import Optional
from uuid import uuid4

from shortvideo.clients.downloads import download_file
from shortvideo.clients.ffmpeg import AudioConverter
from shortvideo.clients.footage import FootageProvider, PexelsClient, PixabayClient
from shortvideo.clients.registry import SpeechProviderRegistry, build_speech_registry
from shortvideo.clients.renderer import RemotionRenderClient, RenderEngine
from shortvideo.clients.tts import VoiceCatalog
from shortvideo.clients.whisper import LocalWhisperClient, RemoteTranscriptionClient, Transcriber
from shortvideo.config import Settings
from shortvideo.models.domain import (
    ClearStuckResult,
    Job,
    LongFormRenderConfig,
    QueueStatus,
    RenderConfig,
    SceneInput,
    VideoKind,
    VideoStatus,
    VideoSummary,
    utcnow,
)
from shortvideo.queue.queue import JobQueue
from shortvideo.services.assembler import SceneAssembler
from shortvideo.services.duration import DurationReconciler
from shortvideo.services.music import MusicCatalog, MusicSelector
from shortvideo.services.render import RenderHandoff
from shortvideo.services.temp_files import TempFileLedger
from shortvideo.storage.repository import VideoRepository


def build_transcriber(settings: Settings, logger: Optional[logging.Logger] = None) -> Transcriber:
    provider = settings.transcription_provider.lower()
    if provider == "whisper-local":
        return LocalWhisperClient(model_name=settings.whisper_local_model, logger=logger)
    if provider == "remote":
        return RemoteTranscriptionClient(
            base_url=settings.transcription_api_url,
            api_key=settings.transcription_api_key,
            timeout=settings.transcription_timeout,
            logger=logger,
        )
    raise ValueError(f"unsupported transcription provider: {settings.transcription_provider}")


def build_footage_provider(settings: Settings, logger: Optional[logging.Logger] = None) -> FootageProvider:
    provider = settings.footage_provider.lower()
    if provider == "pexels":
        return PexelsClient(api_key=settings.pexels_api_key, timeout=settings.footage_timeout, logger=logger)
    if provider == "pixabay":
        return PixabayClient(api_key=settings.pixabay_api_key, timeout=settings.footage_timeout, logger=logger)
    raise ValueError(f"unsupported footage provider: {settings.footage_provider}")


class VideoService:
    def __init__(
        self,
        settings: Settings,
        repository: VideoRepository | None = None,
        speech: SpeechProviderRegistry | None = None,
        assembler: SceneAssembler | None = None,
        music: MusicSelector | None = None,
        renderer: RenderEngine | None = None,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        self.settings = settings
        self.log = logger or logging.getLogger(__name__)
        self.repository = repository or VideoRepository(settings.videos_dir)
        self.speech = speech or build_speech_registry(settings, logger=self.log)
        self.assembler = assembler or SceneAssembler(
            speech=self.speech,
            transcriber=build_transcriber(settings, logger=self.log),
            footage=build_footage_provider(settings, logger=self.log),
            converter=AudioConverter(ffmpeg_path=settings.ffmpeg_path, logger=self.log),
            reconciler=DurationReconciler(logger=self.log),
            public_url=settings.public_url,
            default_voice=settings.tts_voice,
            downloader=partial(
                download_file,
                timeout=settings.asset_download_timeout,
                retries=settings.download_retries,
                logger=self.log,
            ),
            logger=self.log,
        )
        self.music = music or MusicSelector(
            MusicCatalog(
                music_dir=settings.music_dir,
                public_url=settings.public_url,
                entries=settings.music_catalog,
                logger=self.log,
            )
        )
        self.handoff = RenderHandoff(
            engine=renderer or RemotionRenderClient(
                base_url=settings.render_api_url,
                timeout=settings.render_timeout,
                logger=self.log,
            ),
            repository=self.repository,
            logger=self.log,
        )
        # a single worker serves both kinds
        self.queue = JobQueue(
            processor=self.process_job,
            timeouts={
                VideoKind.SHORT: settings.short_job_timeout_minutes * 60,
                VideoKind.LONGFORM: settings.longform_job_timeout_minutes * 60,
            },
            logger=self.log,
        )

    def create_short(self, scenes: list[SceneInput], config: RenderConfig) -> str:
        return self._enqueue(VideoKind.SHORT, scenes, config)

    def create_longform(self, scenes: list[SceneInput], config: LongFormRenderConfig) -> str:
        return self._enqueue(VideoKind.LONGFORM, scenes, config)

    def _enqueue(self, kind: VideoKind, scenes: list[SceneInput], config: RenderConfig) -> str:
        if not scenes:
            raise ValueError("at least one scene is required")
        # reject unknown providers before the job reaches the queue
        self.speech.resolve_key(config.provider)
        job = Job(id=uuid4().hex, kind=kind, scenes=scenes, config=config, enqueued_at=utcnow())
        self.log.debug(
            "creating video job",
            extra={"job_id": job.id, "kind": kind.value, "scenes": len(scenes)},
        )
        return self.queue.enqueue(job)

    def status(self, job_id: str, kind: VideoKind = VideoKind.SHORT) -> VideoStatus:
        if self.queue.contains(job_id, kind):
            return VideoStatus.PROCESSING
        if self.repository.exists(job_id, kind):
            return VideoStatus.READY
        return VideoStatus.FAILED

    def list_videos(self, kind: VideoKind = VideoKind.SHORT) -> list[VideoSummary]:
        pending = {job.id: job for job in self.queue.snapshot(kind)}
        videos: list[VideoSummary] = []
        for video_id in self.repository.list_ids(kind):
            job = pending.pop(video_id, None)
            videos.append(
                VideoSummary(
                    id=video_id,
                    kind=kind,
                    status=VideoStatus.PROCESSING if job else VideoStatus.READY,
                    scenes=len(job.scenes) if job else None,
                    created_at=self.repository.created_at(video_id, kind),
                )
            )
        for job in pending.values():
            videos.append(
                VideoSummary(
                    id=job.id,
                    kind=kind,
                    status=VideoStatus.PROCESSING,
                    scenes=len(job.scenes),
                    created_at=job.enqueued_at,
                )
            )
        return videos

    def queue_status(self, kind: VideoKind = VideoKind.SHORT) -> QueueStatus:
        return self.queue.queue_status(kind)

    def clear_stuck(self, kind: VideoKind = VideoKind.SHORT) -> ClearStuckResult:
        return self.queue.clear_stuck(kind)

    def force_restart(self) -> bool:
        return self.queue.force_restart()

    def process_job(self, job: Job) -> None:
        ledger = TempFileLedger(self.settings.temp_dir, job_id=job.id, logger=self.log)
        try:
            assembly = self.assembler.assemble(job, ledger)
            music = self.music.select(assembly.total_duration_seconds, job.config.music)
            self.log.debug(
                "selected music",
                extra={"job_id": job.id, "music": music.file, "mood": music.mood},
            )
            output = self.handoff.render(job, assembly, music)
            self.log.info("video created", extra={"job_id": job.id, "output": str(output)})
        finally:
            ledger.release_all()

    def video_path(self, job_id: str, kind: VideoKind = VideoKind.SHORT) -> pathlib.Path:
        path = self.repository.path_for(job_id, kind)
        if not path.is_file():
            raise ValueError(f"video {job_id} not found")
        return path

    def delete_video(self, job_id: str, kind: VideoKind = VideoKind.SHORT) -> None:
        if not self.repository.delete(job_id, kind):
            raise ValueError(f"video {job_id} not found")
        self.log.debug("deleted video file", extra={"job_id": job_id, "kind": kind.value})

    def temp_file_path(self, filename: str) -> pathlib.Path:
        temp_dir = pathlib.Path(self.settings.temp_dir).resolve()
        candidate = (temp_dir / pathlib.PurePosixPath(filename).name).resolve()
        if candidate.parent != temp_dir or not candidate.is_file():
            raise ValueError(f"temp file {filename} not found")
        return candidate

    def music_file_path(self, filename: str) -> pathlib.Path:
        path = self.music.catalog.path_for(filename)
        if path is None:
            raise ValueError(f"music file {filename} not found")
        return path

    def list_voices(self, provider: str | None = None) -> tuple[str, VoiceCatalog]:
        key = self.speech.resolve_key(provider)
        return key.value, self.speech.get(key).voice_catalog()

    def list_providers(self) -> list[str]:
        return [key.value for key in self.speech.available()]

    def default_provider(self) -> str:
        return self.speech.default.value

    def list_music_tags(self) -> list[str]:
        return self.music.tags()
