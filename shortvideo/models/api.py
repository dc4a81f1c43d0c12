from __future__ import annotations

from typing import List, Optional

from pydantic import BaseModel, Field

from .domain import (
    CamelModel,
    ClearStuckResult,
    LongFormRenderConfig,
    QueueStatus,
    RenderConfig,
    SceneInput,
    VideoStatus,
    VideoSummary,
)


class CreateShortRequest(CamelModel):
    scenes: List[SceneInput] = Field(..., min_length=1)
    config: RenderConfig = Field(default_factory=RenderConfig)


class CreateLongFormRequest(CamelModel):
    scenes: List[SceneInput] = Field(..., min_length=1)
    config: LongFormRenderConfig


class VideoCreatedResponse(BaseModel):
    video_id: str = Field(..., serialization_alias="videoId")


class VideoStatusResponse(BaseModel):
    status: VideoStatus


class VideoListResponse(BaseModel):
    videos: List[VideoSummary]


class VoiceListResponse(BaseModel):
    provider: str
    source: str
    items: List[str]


class ProviderListResponse(BaseModel):
    items: List[str]
    default: Optional[str] = None


class MusicTagListResponse(BaseModel):
    items: List[str]


class QueueStatusResponse(BaseModel):
    status: QueueStatus


class ClearStuckResponse(BaseModel):
    message: str
    result: ClearStuckResult


class RestartQueueResponse(BaseModel):
    message: str
    restarted: bool
