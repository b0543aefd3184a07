"""
Job Store - Thread-safe job id -> status records with expiry.

Records are created on submission, updated by the pipeline's progress callback,
and dropped once a terminal record outlives the retention window. The store is
bounded: when full, the oldest terminal records are evicted first.
"""

import logging
import threading
import time
from dataclasses import dataclass, field, replace
from typing import Callable, Optional

from storyreel.services.story_pipeline import JobStatus

logger = logging.getLogger(__name__)


TERMINAL_STATUSES = (JobStatus.COMPLETED, JobStatus.FAILED)


@dataclass
class JobRecord:
    """Externally visible state of one job."""

    job_id: str
    status: JobStatus = JobStatus.PROCESSING
    progress_percent: float = 0.0
    message: str = ""
    output_url: Optional[str] = None
    error: Optional[str] = None
    created_at: float = field(default_factory=time.time)
    updated_at: float = field(default_factory=time.time)
    finished_at: Optional[float] = None

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES


class JobStore:
    """In-process job registry guarded by a lock."""

    def __init__(
        self,
        ttl_seconds: float = 3600,
        max_jobs: int = 500,
        clock: Callable[[], float] = time.time,
    ):
        self.ttl_seconds = ttl_seconds
        self.max_jobs = max_jobs
        self._clock = clock
        self._records: dict[str, JobRecord] = {}
        self._lock = threading.Lock()

    def __len__(self) -> int:
        with self._lock:
            return len(self._records)

    def create(self, job_id: str, message: str = "Queued") -> JobRecord:
        """
        Register a new job in processing state.

        Raises:
            JobStoreError: If the id exists or the store is full of active jobs
        """
        now = self._clock()
        with self._lock:
            self._purge_expired_locked(now)
            if job_id in self._records:
                raise JobStoreError(f"Job already exists: {job_id}")
            if len(self._records) >= self.max_jobs:
                self._evict_oldest_terminal_locked()
            if len(self._records) >= self.max_jobs:
                raise JobStoreError(f"Job store full ({self.max_jobs} active jobs)")

            record = JobRecord(job_id=job_id, message=message, created_at=now, updated_at=now)
            self._records[job_id] = record
            return replace(record)

    def update(self, job_id: str, **changes) -> Optional[JobRecord]:
        """
        Apply field changes to a job; returns a copy or None if the job is unknown.

        Terminal records are frozen: later updates are ignored.
        """
        now = self._clock()
        with self._lock:
            record = self._records.get(job_id)
            if record is None:
                logger.debug(f"Update for unknown job {job_id} ignored")
                return None
            if record.is_terminal:
                return replace(record)

            for key, value in changes.items():
                if not hasattr(record, key):
                    raise AttributeError(f"JobRecord has no field '{key}'")
                setattr(record, key, value)
            record.updated_at = now
            if record.is_terminal:
                record.finished_at = now
            return replace(record)

    def get(self, job_id: str) -> Optional[JobRecord]:
        """Return a copy of the record, or None if unknown or expired."""
        now = self._clock()
        with self._lock:
            record = self._records.get(job_id)
            if record is None:
                return None
            if self._is_expired(record, now):
                del self._records[job_id]
                return None
            return replace(record)

    def purge_expired(self) -> int:
        """Drop terminal records past the retention window; returns how many were removed."""
        with self._lock:
            return self._purge_expired_locked(self._clock())

    def _is_expired(self, record: JobRecord, now: float) -> bool:
        return record.is_terminal and record.finished_at is not None and now - record.finished_at > self.ttl_seconds

    def _purge_expired_locked(self, now: float) -> int:
        expired = [job_id for job_id, record in self._records.items() if self._is_expired(record, now)]
        for job_id in expired:
            del self._records[job_id]
        if expired:
            logger.debug(f"Purged {len(expired)} expired jobs")
        return len(expired)

    def _evict_oldest_terminal_locked(self) -> None:
        terminal = [r for r in self._records.values() if r.is_terminal]
        if not terminal:
            return
        oldest = min(terminal, key=lambda r: r.finished_at or r.updated_at)
        del self._records[oldest.job_id]
        logger.debug(f"Evicted job {oldest.job_id} to make room")


class JobStoreError(Exception):
    """Exception raised when a job cannot be registered."""
    pass
