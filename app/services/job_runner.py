import logging
import threading
from dataclasses import dataclass, replace
from typing import Optional

from app.config import get_settings
from app.core.logging import job_context
from app.services.uploads_service import ImportJobInput, import_file, new_job_id

logger = logging.getLogger(__name__)


@dataclass
class _RunningJob:
    thread: threading.Thread
    cancel_event: threading.Event


class ImportJobRunner:
    """Runs imports in background threads, at most ``max_concurrent`` at a time."""

    def __init__(self, max_concurrent: Optional[int] = None, session_factory=None, layout=None) -> None:
        if max_concurrent is None:
            max_concurrent = get_settings().IMPORT_MAX_CONCURRENT_JOBS
        self._slots = threading.BoundedSemaphore(max(1, int(max_concurrent)))
        self._session_factory = session_factory
        self._layout = layout
        self._lock = threading.Lock()
        self._jobs: dict[str, _RunningJob] = {}

    def submit(self, job_input: ImportJobInput) -> str:
        job_id = job_input.job_id or new_job_id()
        job_input = replace(job_input, job_id=job_id)
        cancel_event = threading.Event()
        thread = threading.Thread(
            target=self._run,
            args=(job_input, cancel_event),
            name=f"import-job-{job_id[:8]}",
            daemon=True,
        )
        with self._lock:
            if job_id in self._jobs:
                raise ValueError(f"import job {job_id} is already running")
            self._jobs[job_id] = _RunningJob(thread=thread, cancel_event=cancel_event)
        thread.start()
        logger.info("Import job %s queued", job_id, extra=job_context(job_id))
        return job_id

    def _run(self, job_input: ImportJobInput, cancel_event: threading.Event) -> None:
        try:
            with self._slots:
                import_file(
                    job_input,
                    session_factory=self._session_factory,
                    cancel_event=cancel_event,
                    layout=self._layout,
                )
        except Exception:
            logger.exception("Import job %s failed", job_input.job_id, extra=job_context(job_input.job_id))
        finally:
            with self._lock:
                self._jobs.pop(job_input.job_id, None)

    def cancel(self, job_id: str) -> bool:
        with self._lock:
            job = self._jobs.get(job_id)
        if job is None:
            return False
        job.cancel_event.set()
        logger.info("Cancellation requested for import job %s", job_id, extra=job_context(job_id))
        return True

    def is_running(self, job_id: str) -> bool:
        with self._lock:
            job = self._jobs.get(job_id)
        return job is not None and job.thread.is_alive()

    def join(self, job_id: str, timeout: Optional[float] = None) -> bool:
        """Wait for a job; returns True once it is no longer running."""
        with self._lock:
            job = self._jobs.get(job_id)
        if job is None:
            return True
        job.thread.join(timeout)
        return not job.thread.is_alive()

    def shutdown(self, timeout: Optional[float] = None) -> None:
        with self._lock:
            jobs = list(self._jobs.values())
        for job in jobs:
            job.cancel_event.set()
        for job in jobs:
            job.thread.join(timeout)
        logger.info("Import job runner stopped")


__all__ = ["ImportJobRunner"]
