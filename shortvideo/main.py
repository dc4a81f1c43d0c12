from __future__ import annotations

import logging

from fastapi import Depends, FastAPI, HTTPException, Query, status
from fastapi.responses import FileResponse

from shortvideo.config import Settings, get_settings
from shortvideo.models.api import (
    ClearStuckResponse,
    CreateLongFormRequest,
    CreateShortRequest,
    MusicTagListResponse,
    ProviderListResponse,
    QueueStatusResponse,
    RestartQueueResponse,
    VideoCreatedResponse,
    VideoListResponse,
    VideoStatusResponse,
    VoiceListResponse,
)
from shortvideo.models.domain import VideoKind
from shortvideo.services.video_service import VideoService

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
)

app = FastAPI(title="short-video-service")

_service: VideoService | None = None


def get_video_service(settings: Settings = Depends(get_settings)) -> VideoService:
    global _service
    if _service is None:
        _service = VideoService(settings=settings)
    return _service


def _not_found(exc: ValueError) -> HTTPException:
    return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc))


def _video_status(service: VideoService, video_id: str, kind: VideoKind) -> VideoStatusResponse:
    try:
        return VideoStatusResponse(status=service.status(video_id, kind))
    except ValueError as exc:
        raise _not_found(exc) from exc


def _video_file(service: VideoService, video_id: str, kind: VideoKind) -> FileResponse:
    try:
        path = service.video_path(video_id, kind)
    except ValueError as exc:
        raise _not_found(exc) from exc
    return FileResponse(path, media_type="video/mp4", filename=path.name)


def _delete_video(service: VideoService, video_id: str, kind: VideoKind) -> dict[str, bool]:
    try:
        service.delete_video(video_id, kind)
    except ValueError as exc:
        raise _not_found(exc) from exc
    return {"success": True}


@app.post("/short-video", response_model=VideoCreatedResponse, status_code=status.HTTP_201_CREATED)
def create_short_video(
    payload: CreateShortRequest,
    service: VideoService = Depends(get_video_service),
) -> VideoCreatedResponse:
    try:
        video_id = service.create_short(payload.scenes, payload.config)
    except ValueError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc
    return VideoCreatedResponse(video_id=video_id)


@app.get("/short-video/{video_id}/status", response_model=VideoStatusResponse)
def short_video_status(video_id: str, service: VideoService = Depends(get_video_service)) -> VideoStatusResponse:
    return _video_status(service, video_id, VideoKind.SHORT)


@app.get("/short-videos", response_model=VideoListResponse)
def list_short_videos(service: VideoService = Depends(get_video_service)) -> VideoListResponse:
    return VideoListResponse(videos=service.list_videos(VideoKind.SHORT))


@app.get("/short-video/{video_id}")
def get_short_video(video_id: str, service: VideoService = Depends(get_video_service)) -> FileResponse:
    return _video_file(service, video_id, VideoKind.SHORT)


@app.delete("/short-video/{video_id}")
def delete_short_video(video_id: str, service: VideoService = Depends(get_video_service)) -> dict[str, bool]:
    return _delete_video(service, video_id, VideoKind.SHORT)


@app.post("/long-form-video", response_model=VideoCreatedResponse, status_code=status.HTTP_201_CREATED)
def create_long_form_video(
    payload: CreateLongFormRequest,
    service: VideoService = Depends(get_video_service),
) -> VideoCreatedResponse:
    try:
        video_id = service.create_longform(payload.scenes, payload.config)
    except ValueError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc
    return VideoCreatedResponse(video_id=video_id)


@app.get("/long-form-video/{video_id}/status", response_model=VideoStatusResponse)
def long_form_video_status(video_id: str, service: VideoService = Depends(get_video_service)) -> VideoStatusResponse:
    return _video_status(service, video_id, VideoKind.LONGFORM)


@app.get("/long-form-videos", response_model=VideoListResponse)
def list_long_form_videos(service: VideoService = Depends(get_video_service)) -> VideoListResponse:
    return VideoListResponse(videos=service.list_videos(VideoKind.LONGFORM))


@app.get("/long-form-video/{video_id}")
def get_long_form_video(video_id: str, service: VideoService = Depends(get_video_service)) -> FileResponse:
    return _video_file(service, video_id, VideoKind.LONGFORM)


@app.delete("/long-form-video/{video_id}")
def delete_long_form_video(video_id: str, service: VideoService = Depends(get_video_service)) -> dict[str, bool]:
    return _delete_video(service, video_id, VideoKind.LONGFORM)


@app.get("/voices", response_model=VoiceListResponse)
def list_voices(
    provider: str | None = Query(default=None, description="remote, openai-edge or elevenlabs"),
    service: VideoService = Depends(get_video_service),
) -> VoiceListResponse:
    try:
        key, catalog = service.list_voices(provider)
    except ValueError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc
    return VoiceListResponse(provider=key, source=catalog.source, items=catalog.voices)


@app.get("/tts-providers", response_model=ProviderListResponse)
def list_tts_providers(service: VideoService = Depends(get_video_service)) -> ProviderListResponse:
    return ProviderListResponse(items=service.list_providers(), default=service.default_provider())


@app.get("/music-tags", response_model=MusicTagListResponse)
def list_music_tags(service: VideoService = Depends(get_video_service)) -> MusicTagListResponse:
    return MusicTagListResponse(items=service.list_music_tags())


@app.get("/tmp/{filename}")
def get_temp_file(filename: str, service: VideoService = Depends(get_video_service)) -> FileResponse:
    try:
        path = service.temp_file_path(filename)
    except ValueError as exc:
        raise _not_found(exc) from exc
    return FileResponse(path)


@app.get("/music/{filename}")
def get_music_file(filename: str, service: VideoService = Depends(get_video_service)) -> FileResponse:
    try:
        path = service.music_file_path(filename)
    except ValueError as exc:
        raise _not_found(exc) from exc
    return FileResponse(path, media_type="audio/mpeg")


@app.get("/admin/queue-status", response_model=QueueStatusResponse)
def queue_status(
    kind: VideoKind = Query(default=VideoKind.SHORT),
    service: VideoService = Depends(get_video_service),
) -> QueueStatusResponse:
    return QueueStatusResponse(status=service.queue_status(kind))


@app.post("/admin/clear-stuck", response_model=ClearStuckResponse)
def clear_stuck(
    kind: VideoKind = Query(default=VideoKind.SHORT),
    service: VideoService = Depends(get_video_service),
) -> ClearStuckResponse:
    result = service.clear_stuck(kind)
    return ClearStuckResponse(
        message=f"removed {result.removed} stuck {kind.value} videos",
        result=result,
    )


@app.post("/admin/restart-queue", response_model=RestartQueueResponse)
def restart_queue(service: VideoService = Depends(get_video_service)) -> RestartQueueResponse:
    restarted = service.force_restart()
    message = "queue restarted" if restarted else "queue restart skipped"
    return RestartQueueResponse(message=message, restarted=restarted)
