from __future__ import annotations

import logging
from pathlib import Path
from typing import Optional

from shortvideo.clients.renderer import RenderEngine
from shortvideo.models.domain import (
    AssemblyResult,
    Job,
    LongFormRenderConfig,
    MusicTrack,
    Orientation,
    RenderManifest,
    VideoKind,
)
from shortvideo.storage.repository import VideoRepository


class RenderHandoff:
    def __init__(self, engine: RenderEngine, repository: VideoRepository, logger: Optional[logging.Logger] = None) -> None:
        self.engine = engine
        self.repository = repository
        self.log = logger or logging.getLogger(__name__)

    def build_manifest(self, job: Job, assembly: AssemblyResult, music: MusicTrack) -> RenderManifest:
        config = job.config
        overlay = None
        if isinstance(config, LongFormRenderConfig):
            overlay = {
                "personImageUrl": assembly.person_image_ref or config.person_image_url,
                "personName": config.person_name,
                "nameBannerColor": config.name_banner_color,
                "personOverlaySize": config.person_overlay_size,
            }
        return RenderManifest(
            scenes=assembly.scenes,
            music=music,
            duration_ms=int(round(assembly.total_duration_seconds * 1000)),
            padding_ms=config.padding_back,
            caption_style={
                "position": config.caption_position.value,
                "backgroundColor": config.caption_background_color,
            },
            music_volume=config.music_volume,
            overlay=overlay,
        )

    def render(self, job: Job, assembly: AssemblyResult, music: MusicTrack) -> Path:
        manifest = self.build_manifest(job, assembly, music)
        orientation = Orientation.LANDSCAPE if job.kind is VideoKind.LONGFORM else job.config.orientation
        output_path = self.repository.path_for(job.id, job.kind)
        self.log.debug(
            "handing manifest to render engine",
            extra={"job_id": job.id, "music": music.file, "duration_ms": manifest.duration_ms},
        )
        return self.engine.render(manifest, job.id, orientation, output_path)
