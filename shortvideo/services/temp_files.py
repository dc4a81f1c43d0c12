from __future__ import annotations

import logging
from pathlib import Path
from typing import Optional
from uuid import uuid4


class TempFileLedger:
    """Scratch files created while processing one job.

    Every path handed out by ``new_path`` or passed to ``register`` is deleted
    by ``release_all``, whichever way the job ends.
    """

    def __init__(self, temp_dir: Path, job_id: str | None = None, logger: Optional[logging.Logger] = None) -> None:
        self.temp_dir = Path(temp_dir)
        self.temp_dir.mkdir(parents=True, exist_ok=True)
        self.job_id = job_id
        self.log = logger or logging.getLogger(__name__)
        self._paths: list[Path] = []

    @property
    def registered(self) -> list[Path]:
        return list(self._paths)

    def register(self, path: Path | str) -> Path:
        path = Path(path)
        if path not in self._paths:
            self._paths.append(path)
        return path

    def new_path(self, suffix: str) -> Path:
        return self.register(self.temp_dir / f"{uuid4().hex}{suffix}")

    def release_all(self) -> list[Path]:
        removed: list[Path] = []
        for path in self._paths:
            try:
                path.unlink()
                removed.append(path)
            except FileNotFoundError:
                continue
            except OSError:
                self.log.warning(
                    "temp file removal failed",
                    extra={"job_id": self.job_id, "path": str(path)},
                    exc_info=True,
                )
        self.log.debug(
            "temp files released",
            extra={"job_id": self.job_id, "registered": len(self._paths), "removed": len(removed)},
        )
        self._paths.clear()
        return removed

    def __enter__(self) -> "TempFileLedger":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.release_all()
