"""
Data models for remote asynchronous jobs.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Optional


class JobStatus(Enum):
    """Remote job status as seen by the client."""

    PENDING = "pending"
    SUCCEEDED = "succeeded"
    FAILED = "failed"

    @classmethod
    def from_remote(cls, status: Optional[str]) -> "JobStatus":
        """
        Map a status string reported by the service.

        Anything that is neither succeeded nor failed (queued, preprocessing,
        running, processing, ...) is still pending. A job cancelled on the
        service side is terminal and counts as failed.
        """
        value = (status or "").strip().lower()
        if value == "succeeded":
            return cls.SUCCEEDED
        if value in ("failed", "cancelled", "canceled"):
            return cls.FAILED
        return cls.PENDING


class JobPhase(Enum):
    """Client-side state of one submit-and-await run."""

    SUBMITTED = "submitted"
    POLLING = "polling"
    SUCCEEDED = "succeeded"
    FAILED = "failed"


@dataclass(frozen=True)
class AsyncJob:
    """Last observed state of a remote job."""

    id: str
    status: JobStatus
    result_ref: Optional[str] = None
    failure_reason: Optional[str] = None
    remote_status: Optional[str] = None
