from __future__ import annotations

import logging
import threading
from datetime import datetime
from typing import Callable, Mapping, Optional

from shortvideo.models.domain import ClearStuckResult, Job, QueueItem, QueueStatus, VideoKind, utcnow


class JobQueue:
    """FIFO of pending jobs of every kind drained by a single worker thread.

    The head job stays in the pending list while it is processed and is popped
    afterwards whatever the outcome, so ``contains`` doubles as the
    "processing" signal. At most one worker loop runs at a time: ``enqueue``
    only starts one when the queue is idle, and ``force_restart`` refuses to
    start a second loop while the current one is alive. Each kind has its own
    timeout; the per-kind views filter the shared pending list.
    """

    def __init__(
        self,
        processor: Callable[[Job], None],
        timeouts: Mapping[VideoKind, float],
        name: str = "videos",
        clock: Callable[[], datetime] = utcnow,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        self._processor = processor
        self.timeouts = dict(timeouts)
        self.name = name
        self._clock = clock
        self.log = logger or logging.getLogger(__name__)
        self._pending: list[Job] = []
        self._lock = threading.Lock()
        self._changed = threading.Condition(self._lock)
        self._processing = False
        self._current: Job | None = None
        self._worker: threading.Thread | None = None

    @property
    def is_processing(self) -> bool:
        with self._lock:
            return self._processing

    def timeout_for(self, job: Job) -> float:
        return self.timeouts[job.kind]

    def enqueue(self, job: Job) -> str:
        with self._lock:
            self._pending.append(job)
            queue_length = len(self._pending)
            if not self._processing:
                self._processing = True
                # a worker left running after clear_stuck picks the job up itself
                if not self._worker_alive():
                    self._start_worker()
        self.log.info(
            "job enqueued",
            extra={"queue": self.name, "job_id": job.id, "kind": job.kind.value, "queue_length": queue_length},
        )
        return job.id

    def contains(self, job_id: str, kind: VideoKind | None = None) -> bool:
        with self._lock:
            return any(job.id == job_id and (kind is None or job.kind is kind) for job in self._pending)

    def snapshot(self, kind: VideoKind | None = None) -> list[Job]:
        with self._lock:
            return [job for job in self._pending if kind is None or job.kind is kind]

    def queue_status(self, kind: VideoKind | None = None) -> QueueStatus:
        now = self._clock()
        with self._lock:
            items = [
                QueueItem(
                    id=job.id,
                    kind=job.kind,
                    enqueued_at=job.enqueued_at,
                    age_seconds=(now - job.enqueued_at).total_seconds(),
                )
                for job in self._pending
                if kind is None or job.kind is kind
            ]
            return QueueStatus(queue_length=len(items), is_processing=self._processing, items=items)

    def clear_stuck(self, kind: VideoKind | None = None) -> ClearStuckResult:
        """Drop expired jobs that are not being worked on.

        The job a live worker is running is left alone; it leaves the queue
        when the processor returns.
        """
        now = self._clock()
        with self._lock:
            in_flight = self._current if self._worker_alive() else None
            expired = [
                job
                for job in self._pending
                if job is not in_flight and (kind is None or job.kind is kind) and self._expired(job, now)
            ]
            self._pending = [job for job in self._pending if not any(job is item for item in expired)]
            cleared_processing = False
            if not self._pending and self._processing:
                self._processing = False
                cleared_processing = True
            self._changed.notify_all()
        for job in expired:
            self.log.warning(
                "removing timed out job from queue",
                extra={"queue": self.name, "job_id": job.id, "age_seconds": (now - job.enqueued_at).total_seconds()},
            )
        if cleared_processing:
            self.log.info("reset processing flag on empty queue", extra={"queue": self.name})
        return ClearStuckResult(removed=len(expired), cleared_processing=cleared_processing)

    def force_restart(self) -> bool:
        """Restart the worker loop after a crash left the processing flag set.

        Returns ``True`` when a new worker was started.
        """
        self.log.info("force restarting queue processing", extra={"queue": self.name})
        with self._lock:
            if self._worker_alive():
                self._processing = bool(self._pending)
                self.log.warning(
                    "worker still running, restart skipped",
                    extra={"queue": self.name, "queue_length": len(self._pending)},
                )
                return False
            self._processing = False
            self._current = None
            self._worker = None
            if not self._pending:
                self._changed.notify_all()
                return False
            self._processing = True
            self._start_worker()
            return True

    def wait_idle(self, timeout: float | None = None) -> bool:
        with self._changed:
            return self._changed.wait_for(lambda: not self._pending and not self._processing, timeout)

    def _start_worker(self) -> None:
        worker = threading.Thread(target=self._run, name=f"{self.name}-queue-worker", daemon=True)
        self._worker = worker
        worker.start()

    def _worker_alive(self) -> bool:
        return self._worker is not None and self._worker.is_alive()

    def _expired(self, job: Job, now: datetime) -> bool:
        return (now - job.enqueued_at).total_seconds() > self.timeout_for(job)

    def _run(self) -> None:
        while True:
            now = self._clock()
            with self._lock:
                if not self._pending:
                    if self._worker is threading.current_thread():
                        self._worker = None
                        self._processing = False
                    self._changed.notify_all()
                    return
                job = self._pending[0]
                queue_length = len(self._pending)
                expired = self._expired(job, now)
                if not expired:
                    self._current = job
            if expired:
                self.log.warning(
                    "job timed out before processing, removing from queue",
                    extra={
                        "queue": self.name,
                        "job_id": job.id,
                        "age_seconds": (now - job.enqueued_at).total_seconds(),
                    },
                )
                self._remove(job)
                continue
            self.log.info(
                "processing job",
                extra={"queue": self.name, "job_id": job.id, "kind": job.kind.value, "queue_length": queue_length},
            )
            try:
                self._processor(job)
                self.log.info("job completed", extra={"queue": self.name, "job_id": job.id})
            except Exception:
                self.log.exception("job failed, moving to next item", extra={"queue": self.name, "job_id": job.id})
            finally:
                self._remove(job)

    def _remove(self, job: Job) -> None:
        with self._lock:
            if self._current is job:
                self._current = None
            for index, item in enumerate(self._pending):
                if item is job:
                    del self._pending[index]
                    break
            self._changed.notify_all()
