"""
Client package for remote generation services that run as asynchronous jobs.
"""

from .auth import ApiKeyCredential, BearerTokenCredential, Credential
from .job_client import AsyncJobClient, VideoJobClient
from .models import AsyncJob, JobPhase, JobStatus

__all__ = [
    "ApiKeyCredential",
    "BearerTokenCredential",
    "Credential",
    "AsyncJobClient",
    "VideoJobClient",
    "AsyncJob",
    "JobPhase",
    "JobStatus",
]
