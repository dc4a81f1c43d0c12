from __future__ import annotations

import logging
import random
from abc import ABC, abstractmethod
from typing import Any, Iterable, Optional, Sequence

import httpx

from shortvideo.models.domain import FootageClip, Orientation

JOKER_TERMS = ("nature", "globe", "space", "ocean")
DURATION_BUFFER_SECONDS = 3
RETRY_TIMES = 3

ORIENTATION_SIZES = {
    Orientation.PORTRAIT: (1080, 1920),
    Orientation.LANDSCAPE: (1920, 1080),
}


class FootageError(RuntimeError):
    pass


class FootageNotFoundError(FootageError):
    pass


class FootageTimeoutError(FootageError):
    pass


class FootageProvider(ABC):
    """Stock footage search with fallback terms.

    ``find`` tries every caller term in random order, then the generic joker
    terms. A term with no usable result moves on to the next term. A request
    timeout restarts the whole search, at most ``retry_times`` times, and is
    then reported as ``FootageTimeoutError`` rather than not-found.
    """

    name = "footage"

    def __init__(
        self,
        api_key: str,
        timeout: float = 5.0,
        retry_times: int = RETRY_TIMES,
        rng: random.Random | None = None,
        logger: Optional[logging.Logger] = None,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        self.api_key = (api_key or "").strip()
        self.timeout = timeout
        self.retry_times = retry_times
        self.rng = rng or random.Random()
        self.log = logger or logging.getLogger(__name__)
        self._transport = transport

    @abstractmethod
    def _search(
        self,
        client: httpx.Client,
        term: str,
        min_duration_seconds: float,
        exclude_ids: set[str],
        orientation: Orientation,
    ) -> list[FootageClip]: ...

    def find(
        self,
        terms: Sequence[str],
        min_duration_seconds: float,
        exclude_ids: Iterable[str] = (),
        orientation: Orientation = Orientation.PORTRAIT,
    ) -> FootageClip:
        if not self.api_key:
            raise FootageError(f"{self.name} api key not set")
        excluded = {str(item) for item in exclude_ids}
        for attempt in range(self.retry_times + 1):
            candidates = self._shuffled(terms) + self._shuffled(JOKER_TERMS)
            try:
                clip = self._try_terms(candidates, min_duration_seconds, excluded, orientation)
            except httpx.TimeoutException as exc:
                if attempt >= self.retry_times:
                    self.log.error(
                        "footage search timed out, retry limit reached",
                        extra={"provider": self.name, "terms": list(terms), "attempt": attempt},
                    )
                    raise FootageTimeoutError(f"{self.name} search timed out after {attempt + 1} attempts") from exc
                self.log.warning(
                    "footage search timed out, retrying",
                    extra={"provider": self.name, "terms": list(terms), "attempt": attempt},
                )
                continue
            if clip is not None:
                return clip
            break
        self.log.error("no footage found for terms", extra={"provider": self.name, "terms": list(terms)})
        raise FootageNotFoundError(f"no videos found in {self.name} for terms {list(terms)}")

    def _try_terms(
        self,
        terms: list[str],
        min_duration_seconds: float,
        excluded: set[str],
        orientation: Orientation,
    ) -> FootageClip | None:
        with httpx.Client(timeout=self.timeout, transport=self._transport) as client:
            for term in terms:
                try:
                    found = self._search(client, term, min_duration_seconds, excluded, orientation)
                except httpx.HTTPStatusError as exc:
                    if exc.response.status_code in (401, 403):
                        raise FootageError(f"invalid {self.name} api key") from exc
                    self.log.warning(
                        "footage search failed for term",
                        extra={"provider": self.name, "term": term, "status": exc.response.status_code},
                    )
                    continue
                found = [clip for clip in found if clip.id not in excluded]
                if not found:
                    self.log.debug("no footage for term", extra={"provider": self.name, "term": term})
                    continue
                clip = self.rng.choice(found)
                self.log.debug(
                    "found footage",
                    extra={"provider": self.name, "term": term, "video_id": clip.id, "orientation": orientation.value},
                )
                return clip
        return None

    def _shuffled(self, items: Iterable[str]) -> list[str]:
        result = list(items)
        self.rng.shuffle(result)
        return result


class PexelsClient(FootageProvider):
    name = "pexels"
    base_url = "https://api.pexels.com"

    def _search(
        self,
        client: httpx.Client,
        term: str,
        min_duration_seconds: float,
        exclude_ids: set[str],
        orientation: Orientation,
    ) -> list[FootageClip]:
        response = client.get(
            f"{self.base_url}/videos/search",
            params={"query": term, "per_page": 80, "orientation": orientation.value},
            headers={"Authorization": self.api_key},
        )
        response.raise_for_status()
        width, height = ORIENTATION_SIZES[orientation]
        clips: list[FootageClip] = []
        for video in response.json().get("videos") or []:
            video_id = str(video.get("id"))
            files = video.get("video_files") or []
            if video_id in exclude_ids or not files:
                continue
            if self._effective_duration(video, files) < min_duration_seconds + DURATION_BUFFER_SECONDS:
                continue
            for item in files:
                if item.get("quality") == "hd" and item.get("width") == width and item.get("height") == height:
                    clips.append(FootageClip(id=video_id, url=item["link"], width=width, height=height))
                    break
        return clips

    def _effective_duration(self, video: dict[str, Any], files: list[dict[str, Any]]) -> float:
        # low-fps files get stretched to 25fps on render
        duration = float(video.get("duration") or 0)
        fps = files[0].get("fps")
        if fps and fps < 25:
            return duration * (fps / 25)
        return duration


class PixabayClient(FootageProvider):
    name = "pixabay"
    base_url = "https://pixabay.com/api"

    def _search(
        self,
        client: httpx.Client,
        term: str,
        min_duration_seconds: float,
        exclude_ids: set[str],
        orientation: Orientation,
    ) -> list[FootageClip]:
        response = client.get(
            f"{self.base_url}/videos/",
            params={"key": self.api_key, "q": term, "per_page": 100},
        )
        response.raise_for_status()
        default_width, default_height = ORIENTATION_SIZES[orientation]
        clips: list[FootageClip] = []
        for hit in response.json().get("hits") or []:
            video_id = str(hit.get("id"))
            if video_id in exclude_ids:
                continue
            duration = hit.get("duration")
            if duration and float(duration) < min_duration_seconds + DURATION_BUFFER_SECONDS:
                continue
            large = (hit.get("videos") or {}).get("large") or {}
            if not large.get("url"):
                continue
            clips.append(
                FootageClip(
                    id=video_id,
                    url=large["url"],
                    width=large.get("width") or default_width,
                    height=large.get("height") or default_height,
                )
            )
        return clips
