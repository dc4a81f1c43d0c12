from __future__ import annotations

import logging
import os
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Optional

import httpx

from shortvideo.models.domain import Orientation, RenderManifest

COMPOSITIONS = {
    Orientation.PORTRAIT: "PortraitVideo",
    Orientation.LANDSCAPE: "LandscapeVideo",
}


class RenderError(RuntimeError):
    pass


class RenderEngine(ABC):
    @abstractmethod
    def render(self, manifest: RenderManifest, job_id: str, orientation: Orientation, output_path: Path) -> Path:
        """Render the manifest into ``output_path``; the file must exist on return."""


class RemotionRenderClient(RenderEngine):
    """Hands the manifest to a Remotion render server and stores the MP4 it streams back."""

    def __init__(
        self,
        base_url: str,
        timeout: float = 1800.0,
        logger: Optional[logging.Logger] = None,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.log = logger or logging.getLogger(__name__)
        self._transport = transport

    def render(self, manifest: RenderManifest, job_id: str, orientation: Orientation, output_path: Path) -> Path:
        payload = {
            "videoId": job_id,
            "composition": COMPOSITIONS[orientation],
            "orientation": orientation.value,
            "inputProps": manifest.model_dump(mode="json", by_alias=True),
        }
        partial = output_path.with_name(output_path.name + ".part")
        timeout = httpx.Timeout(connect=10.0, read=self.timeout, write=30.0, pool=10.0)
        self.log.info(
            "starting render",
            extra={"job_id": job_id, "scenes": len(manifest.scenes), "duration_ms": manifest.duration_ms},
        )
        try:
            with httpx.Client(timeout=timeout, transport=self._transport) as client:
                with client.stream("POST", f"{self.base_url}/render", json=payload) as response:
                    response.raise_for_status()
                    with open(partial, "wb") as fh:
                        for chunk in response.iter_bytes():
                            if chunk:
                                fh.write(chunk)
        except httpx.HTTPError as exc:
            partial.unlink(missing_ok=True)
            raise RenderError(f"render failed for {job_id}: {exc}") from exc
        except OSError:
            partial.unlink(missing_ok=True)
            raise
        if partial.stat().st_size == 0:
            partial.unlink(missing_ok=True)
            raise RenderError(f"render server returned an empty video for {job_id}")
        os.replace(partial, output_path)
        self.log.info("render completed", extra={"job_id": job_id, "output": str(output_path)})
        return output_path
