from __future__ import annotations

import logging
import subprocess
from pathlib import Path
from typing import Optional

# ffmpeg demuxer names for the formats TTS engines hand back
_INPUT_FORMATS = {
    "mp3": "mp3",
    "opus": "ogg",
    "aac": "aac",
    "flac": "flac",
    "wav": "wav",
    "pcm": "s16le",
}


def detect_audio_format(audio: bytes) -> str:
    header = audio[:16]
    if header[:3] == b"ID3" or (len(header) > 1 and header[0] == 0xFF and (header[1] & 0xE0) == 0xE0):
        return "mp3"
    if header[:4] == b"RIFF" and header[8:12] == b"WAVE":
        return "wav"
    if header[:4] == b"fLaC":
        return "flac"
    if header[:4] == b"OggS":
        return "opus"
    return "auto"


class AudioConverter:
    def __init__(self, ffmpeg_path: str = "ffmpeg", logger: Optional[logging.Logger] = None) -> None:
        self.ffmpeg_path = ffmpeg_path
        self.log = logger or logging.getLogger(__name__)

    def save_normalized_wav(self, audio: bytes, output_path: Path, audio_format: str = "auto") -> Path:
        """16 kHz mono PCM, the input whisper expects."""
        return self._convert(
            audio,
            output_path,
            audio_format,
            ["-acodec", "pcm_s16le", "-ac", "1", "-ar", "16000", "-f", "wav"],
        )

    def save_mp3(self, audio: bytes, output_path: Path, audio_format: str = "auto") -> Path:
        return self._convert(
            audio,
            output_path,
            audio_format,
            ["-acodec", "libmp3lame", "-b:a", "128k", "-ac", "2", "-f", "mp3"],
        )

    def _convert(self, audio: bytes, output_path: Path, audio_format: str, output_args: list[str]) -> Path:
        if not audio:
            raise ValueError("cannot process empty audio buffer")
        fmt = audio_format if audio_format and audio_format != "auto" else detect_audio_format(audio)
        cmd = [self.ffmpeg_path, "-y", "-hide_banner", "-loglevel", "error"]
        if fmt in _INPUT_FORMATS:
            cmd += ["-f", _INPUT_FORMATS[fmt]]
        cmd += ["-i", "pipe:0", *output_args, str(output_path)]
        self.log.debug("running ffmpeg", extra={"cmd": " ".join(cmd), "bytes": len(audio), "format": fmt})
        try:
            subprocess.run(cmd, input=audio, check=True, capture_output=True)
        except subprocess.CalledProcessError as exc:
            stderr = exc.stderr.decode("utf-8", errors="replace") if exc.stderr else ""
            self.log.error(
                "ffmpeg audio conversion failed",
                extra={"output": str(output_path), "format": fmt, "stderr": stderr[-500:]},
            )
            raise RuntimeError(f"ffmpeg failed to write {output_path.name}: {stderr.strip()[-200:]}") from exc
        return output_path
