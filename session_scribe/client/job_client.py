"""
Client for remote generation APIs that work through asynchronous jobs.

The service accepts a request, answers with a job id and does the work in the
background. There is no push notification: the client polls the job at a
fixed interval until it succeeds or fails, then downloads the artifact the
job produced.

- AsyncJobClient: the submit / poll / fetch state machine, transport-agnostic
- VideoJobClient: binding to the video generation REST API using requests
"""

import logging
import threading
from abc import ABC, abstractmethod
from typing import Any, Callable, Dict, Optional

import requests
from requests.exceptions import RequestException
from tenacity import Retrying, before_sleep_log, retry_if_exception_type, stop_after_attempt, wait_fixed

from ..cancellation import CancellationToken, run_cancellable
from ..config import VideoJobSettings
from ..errors import (
    ArtifactFetchError,
    ArtifactMissingError,
    JobFailedError,
    JobPollingError,
    JobSubmissionError,
    JobTimeoutError,
)
from .auth import Credential
from .models import AsyncJob, JobPhase, JobStatus

logger = logging.getLogger(__name__)


class AsyncJobClient(ABC):
    """
    Submit a job, poll it to a terminal state and return its artifact.

    Subclasses implement the three remote operations; this class owns the
    polling loop, its limits and the error classification.

    A client runs one job at a time: concurrent ``submit_and_await`` calls on
    the same instance are serialized, so ``phase`` and ``last_job`` always
    describe the job of the call currently running (or the last one that ran).
    Use one client per job to run jobs in parallel.
    """

    def __init__(
        self,
        poll_interval_seconds: float = 5.0,
        max_wait_seconds: Optional[float] = 3600.0,
        max_polls: Optional[int] = None,
        max_poll_failures: int = 0,
        sleep: Optional[Callable[[float], None]] = None,
    ):
        """
        Initialize the job client.

        Args:
            poll_interval_seconds: Fixed wait between two status requests
            max_wait_seconds: Give up once this much time was spent waiting (None = no limit)
            max_polls: Give up after this many status requests (None = no limit)
            max_poll_failures: Consecutive failed status requests tolerated before giving up
            sleep: Wait function, defaults to a wait that wakes up on cancellation
        """
        if max_wait_seconds is None and max_polls is None:
            raise ValueError("At least one of max_wait_seconds and max_polls must be set")

        self.poll_interval_seconds = poll_interval_seconds
        self.max_wait_seconds = max_wait_seconds
        self.max_polls = max_polls
        self.max_poll_failures = max_poll_failures
        self.sleep = sleep

        self.phase: Optional[JobPhase] = None
        self.last_job: Optional[AsyncJob] = None
        self._job_lock = threading.Lock()

    @abstractmethod
    def submit_job(self, payload: Dict[str, Any], cancel_token: CancellationToken) -> str:
        """Create the remote job and return its id. Raises JobSubmissionError."""

    @abstractmethod
    def poll_job(self, job_id: str, cancel_token: CancellationToken) -> AsyncJob:
        """Request the current job state once. Raises JobPollingError."""

    @abstractmethod
    def fetch_artifact(self, job: AsyncJob, cancel_token: CancellationToken) -> bytes:
        """Download the artifact referenced by ``job.result_ref``. Raises ArtifactFetchError."""

    def submit_and_await(self, payload: Dict[str, Any], cancel_token: Optional[CancellationToken] = None) -> bytes:
        """
        Run one job to completion and return the produced artifact.

        Waits for any job already running on this client to finish first.

        Args:
            payload: Service-specific request body
            cancel_token: Stops the polling loop and any in-flight request or download

        Returns:
            Artifact bytes

        Raises:
            JobSubmissionError: If the job could not be created
            JobPollingError: If status requests kept failing
            JobFailedError: If the service reported the job as failed
            ArtifactMissingError: If the job succeeded without a result reference
            ArtifactFetchError: If the artifact download failed
            JobTimeoutError: If the job did not finish within the polling limits
            OperationCancelledError: If ``cancel_token`` was cancelled
        """
        token = cancel_token or CancellationToken()
        token.raise_if_cancelled()

        with self._job_lock:
            self.phase = None
            self.last_job = None

            job_id = self.submit_job(payload, token)
            token.raise_if_cancelled()
            self.phase = JobPhase.SUBMITTED
            logger.info(f"Job {job_id} submitted")

            job = self.wait_for_completion(job_id, token)

            if not job.result_ref:
                raise ArtifactMissingError(job_id)

            token.raise_if_cancelled()
            artifact = self.fetch_artifact(job, token)
            token.raise_if_cancelled()
            logger.info(f"Job {job_id}: fetched artifact {job.result_ref} ({len(artifact)} bytes)")
            return artifact

    def wait_for_completion(self, job_id: str, cancel_token: Optional[CancellationToken] = None) -> AsyncJob:
        """
        Poll a job until it succeeds.

        A failed status request is retried after the poll interval, up to
        ``max_poll_failures`` times in a row; the next failure is raised.

        Returns:
            The succeeded job

        Raises:
            JobFailedError, JobPollingError, JobTimeoutError, OperationCancelledError
        """
        token = cancel_token or CancellationToken()
        self.phase = JobPhase.POLLING

        polls = 0
        waited = 0.0

        def poll_once() -> AsyncJob:
            nonlocal polls
            token.raise_if_cancelled()
            polls += 1
            return self.poll_job(job_id, token)

        def wait(seconds: float) -> None:
            nonlocal waited
            self._wait(seconds, token)
            waited += seconds

        retrying = Retrying(
            stop=stop_after_attempt(self.max_poll_failures + 1),
            wait=wait_fixed(self.poll_interval_seconds),
            retry=retry_if_exception_type(JobPollingError),
            sleep=wait,
            before_sleep=before_sleep_log(logger, logging.WARNING),
            reraise=True,
        )

        try:
            while True:
                try:
                    job = retrying(poll_once)
                except JobPollingError as e:
                    raise JobPollingError(
                        job_id, e.detail, status_code=e.status_code, attempt=polls, cause=e.cause
                    ) from e

                token.raise_if_cancelled()
                self.last_job = job
                logger.info(f"Job {job_id}: poll {polls} status {job.remote_status or job.status.value}")

                if job.status is JobStatus.SUCCEEDED:
                    self.phase = JobPhase.SUCCEEDED
                    return job
                if job.status is JobStatus.FAILED:
                    raise JobFailedError(job_id, job.failure_reason)

                if self.max_polls is not None and polls >= self.max_polls:
                    raise JobTimeoutError(job_id, polls, waited)
                if self.max_wait_seconds is not None and waited + self.poll_interval_seconds > self.max_wait_seconds:
                    raise JobTimeoutError(job_id, polls, waited)

                wait(self.poll_interval_seconds)
        except BaseException:
            self.phase = JobPhase.FAILED
            raise

    def _wait(self, seconds: float, token: CancellationToken) -> None:
        if self.sleep is None:
            token.wait(seconds)
            return
        self.sleep(seconds)
        token.raise_if_cancelled()


class VideoJobClient(AsyncJobClient):
    """Generate short video clips through the video generation jobs API."""

    API_VERSION = "preview"
    DOWNLOAD_CHUNK_SIZE = 1024 * 1024

    def __init__(
        self,
        settings: VideoJobSettings,
        credential: Credential,
        session: Optional[requests.Session] = None,
        sleep: Optional[Callable[[float], None]] = None,
    ):
        """
        Initialize the video client.

        Args:
            settings: Endpoint, model, clip format and polling limits
            credential: Authentication attached to every request
            session: HTTP session (default: a new requests.Session)
            sleep: Wait function used between polls
        """
        super().__init__(
            poll_interval_seconds=settings.poll_interval_seconds,
            max_wait_seconds=settings.max_wait_seconds,
            max_polls=settings.max_polls,
            max_poll_failures=settings.max_poll_failures,
            sleep=sleep,
        )
        if not settings.endpoint:
            raise ValueError("A video generation endpoint is required")

        self.settings = settings
        self.base_url = settings.endpoint.rstrip("/")
        self.credential = credential
        self.session = session or requests.Session()

    def generate_video(self, prompt: str, cancel_token: Optional[CancellationToken] = None) -> bytes:
        """
        Generate a clip for ``prompt`` and return the MP4 bytes.

        Args:
            prompt: Scene description
            cancel_token: Cancels submission, polling and download

        Returns:
            Video file contents
        """
        payload = {
            "model": self.settings.model,
            "prompt": prompt,
            "width": self.settings.width,
            "height": self.settings.height,
            "n_seconds": self.settings.n_seconds,
        }
        return self.submit_and_await(payload, cancel_token)

    def submit_job(self, payload: Dict[str, Any], cancel_token: CancellationToken) -> str:
        try:
            response = run_cancellable(
                cancel_token,
                self.session.post,
                f"{self.base_url}/openai/v1/video/generations/jobs",
                params={"api-version": self.API_VERSION},
                json=payload,
                headers=self.credential.headers(),
                timeout=self.settings.request_timeout_seconds,
            )
        except RequestException as e:
            raise JobSubmissionError(f"request failed: {e}", cause=e) from e

        if not response.ok:
            raise JobSubmissionError(response.text, status_code=response.status_code)

        job_id = self._json(response).get("id")
        if not job_id:
            raise JobSubmissionError("response did not contain a job id", status_code=response.status_code)
        return str(job_id)

    def poll_job(self, job_id: str, cancel_token: CancellationToken) -> AsyncJob:
        try:
            response = run_cancellable(
                cancel_token,
                self.session.get,
                f"{self.base_url}/openai/v1/video/generations/jobs/{job_id}",
                params={"api-version": self.API_VERSION},
                headers=self.credential.headers(),
                timeout=self.settings.request_timeout_seconds,
            )
        except RequestException as e:
            raise JobPollingError(job_id, f"request failed: {e}", cause=e) from e

        if not response.ok:
            raise JobPollingError(job_id, response.text, status_code=response.status_code)

        body = self._json(response)
        remote_status = body.get("status")
        generations = body.get("generations") or []
        result_ref = generations[0].get("id") if generations and isinstance(generations[0], dict) else None

        error = body.get("error")
        failure_reason = body.get("failure_reason") or (error.get("message") if isinstance(error, dict) else error)

        return AsyncJob(
            id=job_id,
            status=JobStatus.from_remote(remote_status),
            result_ref=result_ref,
            failure_reason=failure_reason,
            remote_status=remote_status,
        )

    def fetch_artifact(self, job: AsyncJob, cancel_token: CancellationToken) -> bytes:
        url = f"{self.base_url}/openai/v1/video/generations/{job.result_ref}/content/video"
        chunks = []

        try:
            response = run_cancellable(
                cancel_token,
                self.session.get,
                url,
                params={"api-version": self.API_VERSION},
                headers=self.credential.headers(),
                timeout=self.settings.request_timeout_seconds,
                stream=True,
            )
            # Closing the response aborts a read blocked on the socket
            unregister = cancel_token.register(response.close)
            try:
                with response:
                    if not response.ok:
                        raise ArtifactFetchError(job.id, job.result_ref, status_code=response.status_code)

                    for chunk in response.iter_content(chunk_size=self.DOWNLOAD_CHUNK_SIZE):
                        cancel_token.raise_if_cancelled()
                        chunks.append(chunk)
            finally:
                unregister()
        except RequestException as e:
            cancel_token.raise_if_cancelled()
            raise ArtifactFetchError(job.id, job.result_ref, cause=e) from e

        cancel_token.raise_if_cancelled()
        return b"".join(chunks)

    @staticmethod
    def _json(response: requests.Response) -> Dict[str, Any]:
        try:
            body = response.json()
        except ValueError:
            return {}
        return body if isinstance(body, dict) else {}
