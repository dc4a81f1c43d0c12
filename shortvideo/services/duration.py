from __future__ import annotations

import logging
from pathlib import Path
from typing import Callable, Optional

from moviepy.audio.io.AudioFileClip import AudioFileClip


def measure_audio_duration(path: Path) -> float:
    clip = AudioFileClip(str(path))
    try:
        return float(clip.duration)
    finally:
        clip.close()


class DurationReconciler:
    """Replaces a TTS engine's duration estimate with the decoded length of the saved file."""

    def __init__(
        self,
        measure: Callable[[Path], float] = measure_audio_duration,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        self.measure = measure
        self.log = logger or logging.getLogger(__name__)

    def reconcile(self, estimated: float, audio_path: Path) -> float:
        try:
            measured = self.measure(audio_path)
        except Exception:
            self.log.warning(
                "could not measure audio duration, using estimate",
                extra={"audio_path": str(audio_path), "estimated": estimated},
                exc_info=True,
            )
            return estimated
        if not measured or measured <= 0:
            self.log.warning(
                "measured audio duration not positive, using estimate",
                extra={"audio_path": str(audio_path), "estimated": estimated, "measured": measured},
            )
            return estimated
        if abs(measured - estimated) > 1e-3:
            self.log.debug(
                "audio duration reconciled",
                extra={"audio_path": str(audio_path), "estimated": estimated, "measured": measured},
            )
        return measured

    @staticmethod
    def apply_padding(duration: float, padding_ms: int | None) -> float:
        if not padding_ms:
            return duration
        return duration + padding_ms / 1000
