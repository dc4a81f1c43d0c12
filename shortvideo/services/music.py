from __future__ import annotations

import json
import logging
import random
from pathlib import Path
from typing import Any, Iterable, Optional

from shortvideo.models.domain import MusicMood, MusicTrack


class MusicCatalog:
    """Background tracks from settings or ``<music_dir>/music.json``."""

    def __init__(
        self,
        music_dir: Path,
        public_url: str,
        entries: Iterable[dict[str, Any]] | None = None,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        self.music_dir = Path(music_dir)
        self.public_url = public_url.rstrip("/")
        self.log = logger or logging.getLogger(__name__)
        self._entries = list(entries or [])
        self._tracks: list[MusicTrack] | None = None

    def tracks(self) -> list[MusicTrack]:
        if self._tracks is None:
            self._tracks = self._load()
        return list(self._tracks)

    def path_for(self, filename: str) -> Path | None:
        candidate = (self.music_dir / Path(filename).name).resolve()
        if candidate.parent != self.music_dir.resolve() or not candidate.is_file():
            return None
        return candidate

    def _load(self) -> list[MusicTrack]:
        entries = self._entries
        if not entries:
            index = self.music_dir / "music.json"
            if index.is_file():
                try:
                    entries = json.loads(index.read_text(encoding="utf-8"))
                except (OSError, ValueError):
                    self.log.warning("music index unreadable", extra={"path": str(index)}, exc_info=True)
                    entries = []
        tracks: list[MusicTrack] = []
        for entry in entries:
            filename = (entry.get("file") or "").strip()
            mood = (entry.get("mood") or "").strip()
            if not filename or not mood:
                continue
            tracks.append(
                MusicTrack(
                    file=filename,
                    mood=mood,
                    start=float(entry.get("start") or 0),
                    end=float(entry.get("end") or 0),
                    url=entry.get("url") or f"{self.public_url}/music/{filename}",
                )
            )
        if not tracks:
            self.log.warning(
                "music catalog is empty, every job will fail at music selection",
                extra={"music_dir": str(self.music_dir)},
            )
        self.log.debug("music catalog loaded", extra={"tracks": len(tracks)})
        return tracks


class MusicSelector:
    def __init__(self, catalog: MusicCatalog, rng: random.Random | None = None) -> None:
        self.catalog = catalog
        self.rng = rng or random.Random()

    def select(self, total_duration_seconds: float, mood: MusicMood | str | None = None) -> MusicTrack:
        # duration is informational; looping and trimming happen in the renderer
        tag = mood.value if isinstance(mood, MusicMood) else mood
        tracks = [track for track in self.catalog.tracks() if not tag or track.mood == tag]
        if not tracks:
            raise ValueError(f"no music available for mood {tag or 'any'}")
        return self.rng.choice(tracks)

    def tags(self) -> list[str]:
        seen: dict[str, None] = {}
        for track in self.catalog.tracks():
            seen.setdefault(track.mood, None)
        return list(seen)
