from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from typing import Any, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class VideoKind(str, Enum):
    SHORT = "short"
    LONGFORM = "longform"


class VideoStatus(str, Enum):
    PROCESSING = "processing"
    READY = "ready"
    FAILED = "failed"


class Orientation(str, Enum):
    PORTRAIT = "portrait"
    LANDSCAPE = "landscape"


class MusicMood(str, Enum):
    SAD = "sad"
    MELANCHOLIC = "melancholic"
    HAPPY = "happy"
    EUPHORIC = "euphoric/high"
    EXCITED = "excited"
    CHILL = "chill"
    UNEASY = "uneasy"
    ANGRY = "angry"
    DARK = "dark"
    HOPEFUL = "hopeful"
    CONTEMPLATIVE = "contemplative"
    FUNNY = "funny/quirky"


class CaptionPosition(str, Enum):
    TOP = "top"
    CENTER = "center"
    BOTTOM = "bottom"


class MusicVolume(str, Enum):
    MUTED = "muted"
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class SpeechProviderKey(str, Enum):
    REMOTE = "remote"
    OPENAI_EDGE = "openai-edge"
    ELEVENLABS = "elevenlabs"


class CamelModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True, alias_generator=to_camel)


class SceneInput(CamelModel):
    model_config = ConfigDict(populate_by_name=True, alias_generator=to_camel, frozen=True)

    text: str
    search_terms: List[str] = Field(..., min_length=1)

    @field_validator("text")
    @classmethod
    def validate_text(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("scene text must not be empty")
        return value.strip()

    @field_validator("search_terms")
    @classmethod
    def validate_search_terms(cls, value: List[str]) -> List[str]:
        terms = [term.strip() for term in value if term and term.strip()]
        if not terms:
            raise ValueError("at least one non-empty search term is required")
        return terms


class RenderConfig(CamelModel):
    padding_back: Optional[int] = Field(default=None, ge=0, description="Trailing duration in milliseconds")
    music: Optional[MusicMood] = None
    caption_position: CaptionPosition = CaptionPosition.BOTTOM
    caption_background_color: str = "blue"
    voice: Optional[str] = None
    provider: Optional[SpeechProviderKey] = None
    orientation: Orientation = Orientation.PORTRAIT
    music_volume: MusicVolume = MusicVolume.HIGH


class LongFormRenderConfig(RenderConfig):
    orientation: Orientation = Orientation.LANDSCAPE
    music_volume: MusicVolume = MusicVolume.MEDIUM
    person_image_url: str
    person_name: str = Field(..., min_length=1)
    name_banner_color: str = "#FF4444"
    person_overlay_size: float = Field(default=0.25, gt=0, le=1)

    @field_validator("person_image_url")
    @classmethod
    def validate_person_image_url(cls, value: str) -> str:
        if not value.lower().startswith(("http://", "https://")):
            raise ValueError("person_image_url must be an http(s) URL")
        return value


class Job(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    kind: VideoKind = VideoKind.SHORT
    scenes: List[SceneInput] = Field(..., min_length=1)
    config: RenderConfig
    enqueued_at: datetime = Field(default_factory=utcnow)


class Caption(CamelModel):
    text: str
    start_ms: int
    end_ms: int


class SpeechResult(BaseModel):
    audio: bytes
    estimated_duration_seconds: float
    audio_format: str = "auto"


class FootageClip(BaseModel):
    id: str
    url: str
    width: int
    height: int


class AssembledScene(CamelModel):
    model_config = ConfigDict(populate_by_name=True, alias_generator=to_camel, frozen=True)

    captions: List[Caption]
    footage_ref: str
    audio_ref: str
    audio_duration_seconds: float


class AssemblyResult(BaseModel):
    scenes: List[AssembledScene]
    total_duration_seconds: float
    speech_provider: SpeechProviderKey
    voice: str
    person_image_ref: Optional[str] = None


class MusicTrack(CamelModel):
    file: str
    mood: str
    start: float = 0.0
    end: float = 0.0
    url: str = ""


class RenderManifest(CamelModel):
    scenes: List[AssembledScene]
    music: MusicTrack
    duration_ms: int
    padding_ms: Optional[int] = None
    caption_style: dict[str, Any] = Field(default_factory=dict)
    music_volume: MusicVolume
    overlay: Optional[dict[str, Any]] = None


class QueueItem(BaseModel):
    id: str
    kind: VideoKind
    enqueued_at: datetime
    age_seconds: float


class QueueStatus(BaseModel):
    queue_length: int
    is_processing: bool
    items: List[QueueItem] = Field(default_factory=list)


class ClearStuckResult(BaseModel):
    removed: int
    cleared_processing: bool


class VideoSummary(BaseModel):
    id: str
    kind: VideoKind
    status: VideoStatus
    scenes: Optional[int] = None
    created_at: Optional[datetime] = None
