from functools import lru_cache
from pathlib import Path

from pydantic import Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_prefix="SHORTVIDEO_", env_file=".env", env_file_encoding="utf-8")

    app_name: str = "short-video-service"
    host: str = "0.0.0.0"
    port: int = 3123
    public_url: str = ""

    # Filesystem layout
    data_dir: Path = Path.home() / ".short-video-service"
    videos_dir: Path | None = None
    temp_dir: Path | None = None
    music_dir: Path | None = None

    # Queue
    short_job_timeout_minutes: float = 30
    longform_job_timeout_minutes: float = 45

    # Speech synthesis
    tts_provider: str = "remote"
    tts_voice: str = "af_heart"
    tts_api_url: str = "https://tts.dahopevi.com/api"
    tts_engine: str = "kokoro"
    openai_edge_tts_url: str = "http://localhost:5050"
    openai_edge_tts_api_key: str = ""
    elevenlabs_api_key: str = ""
    elevenlabs_model_id: str = "eleven_multilingual_v2"
    elevenlabs_base_url: str = "https://api.elevenlabs.io"
    tts_timeout: float = 60.0

    # Transcription
    transcription_provider: str = "whisper-local"
    whisper_local_model: str = "base"
    transcription_api_url: str = "https://api.dahopevi.com"
    transcription_api_key: str = ""
    transcription_timeout: float = 300.0

    # Stock footage
    footage_provider: str = "pexels"
    pexels_api_key: str = ""
    pixabay_api_key: str = ""
    footage_timeout: float = 5.0

    # Rendering
    render_api_url: str = "http://localhost:3000"
    render_timeout: float = 1800.0

    asset_download_timeout: float = 60.0
    download_retries: int = 2
    ffmpeg_path: str = "ffmpeg"

    music_catalog: list[dict[str, str]] = Field(default_factory=list)

    @model_validator(mode="after")
    def _derive_directories(self) -> "Settings":
        if self.videos_dir is None:
            self.videos_dir = self.data_dir / "videos"
        if self.temp_dir is None:
            self.temp_dir = self.data_dir / "temp"
        if self.music_dir is None:
            self.music_dir = self.data_dir / "music"
        if not self.public_url:
            self.public_url = f"http://localhost:{self.port}"
        self.public_url = self.public_url.rstrip("/")
        return self


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings()
