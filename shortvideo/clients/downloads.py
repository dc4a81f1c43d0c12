from __future__ import annotations

import logging
import time
from pathlib import Path
from typing import Optional

import httpx

log = logging.getLogger(__name__)


def download_file(
    url: str,
    path: Path,
    timeout: float = 60.0,
    retries: int = 2,
    backoff: float = 1.0,
    transport: httpx.BaseTransport | None = None,
    logger: Optional[logging.Logger] = None,
) -> Path:
    """Stream ``url`` into ``path``.

    Transport errors and 5xx responses are retried ``retries`` times. The
    partial file is removed after every failed attempt.
    """
    logger = logger or log
    read_timeout = max(10.0, timeout)
    client_timeout = httpx.Timeout(connect=10.0, read=read_timeout, write=10.0, pool=read_timeout)
    attempts = max(0, retries) + 1
    for attempt in range(attempts):
        try:
            with httpx.Client(timeout=client_timeout, transport=transport, follow_redirects=True) as client:
                with client.stream("GET", url) as response:
                    response.raise_for_status()
                    with open(path, "wb") as fh:
                        for chunk in response.iter_bytes():
                            if chunk:
                                fh.write(chunk)
            logger.debug("file downloaded", extra={"url": url, "path": str(path)})
            return path
        except httpx.HTTPStatusError as exc:
            path.unlink(missing_ok=True)
            if exc.response.status_code < 500 or attempt + 1 >= attempts:
                logger.error(
                    "download failed",
                    extra={"url": url, "status": exc.response.status_code, "attempt": attempt + 1},
                )
                raise
        except httpx.TransportError:
            path.unlink(missing_ok=True)
            if attempt + 1 >= attempts:
                logger.error("download failed", extra={"url": url, "attempt": attempt + 1}, exc_info=True)
                raise
        except OSError:
            path.unlink(missing_ok=True)
            raise
        logger.warning("download failed, retrying", extra={"url": url, "attempt": attempt + 1})
        time.sleep(backoff * (attempt + 1))
    raise RuntimeError("unreachable")  # pragma: no cover
