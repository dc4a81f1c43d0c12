from __future__ import annotations

import re
from datetime import datetime, timezone
from pathlib import Path
from typing import List

from shortvideo.models.domain import VideoKind

_SAFE_ID = re.compile(r"^[A-Za-z0-9_-]+$")

_PREFIXES = {
    VideoKind.SHORT: "",
    VideoKind.LONGFORM: "longform_",
}


class VideoRepository:
    """Finished videos on disk, one ``.mp4`` per job id."""

    def __init__(self, videos_dir: Path) -> None:
        self.videos_dir = Path(videos_dir)
        self.videos_dir.mkdir(parents=True, exist_ok=True)

    def path_for(self, job_id: str, kind: VideoKind = VideoKind.SHORT) -> Path:
        if not _SAFE_ID.match(job_id or ""):
            raise ValueError(f"invalid video id: {job_id!r}")
        return self.videos_dir / f"{_PREFIXES[kind]}{job_id}.mp4"

    def exists(self, job_id: str, kind: VideoKind = VideoKind.SHORT) -> bool:
        return self.path_for(job_id, kind).is_file()

    def list_ids(self, kind: VideoKind = VideoKind.SHORT) -> List[str]:
        prefix = _PREFIXES[kind]
        ids: List[str] = []
        for path in sorted(self.videos_dir.glob("*.mp4")):
            name = path.stem
            if kind is VideoKind.SHORT and name.startswith(_PREFIXES[VideoKind.LONGFORM]):
                continue
            if prefix and not name.startswith(prefix):
                continue
            ids.append(name[len(prefix):])
        return ids

    def created_at(self, job_id: str, kind: VideoKind = VideoKind.SHORT) -> datetime | None:
        path = self.path_for(job_id, kind)
        if not path.is_file():
            return None
        return datetime.fromtimestamp(path.stat().st_mtime, tz=timezone.utc)

    def delete(self, job_id: str, kind: VideoKind = VideoKind.SHORT) -> bool:
        path = self.path_for(job_id, kind)
        try:
            path.unlink()
        except FileNotFoundError:
            return False
        return True
