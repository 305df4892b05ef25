"""
Exceptions raised by the transcription pipeline and the job client.

Every error carries enough context (segment index, job id, job phase) for the
caller to log it and decide whether to retry the whole operation.
"""

from typing import Optional


class SessionScribeError(Exception):
    """Base class for all session-scribe errors."""


class DecodeError(SessionScribeError):
    """Raised when an audio container is malformed or unsupported."""

    def __init__(self, name: str, reason: str, cause: Optional[Exception] = None):
        self.name = name
        self.reason = reason
        self.cause = cause
        super().__init__(f"Failed to decode audio '{name}': {reason}")


class BufferReleasedError(SessionScribeError):
    """Raised when an audio buffer is read after it was released."""

    def __init__(self, name: str):
        self.name = name
        super().__init__(f"Audio buffer '{name}' has already been released")


class SegmentTranscriptionError(SessionScribeError):
    """Raised when the remote transcription of one segment fails."""

    def __init__(self, segment_index: int, segment_name: str, cause: Optional[Exception] = None):
        self.segment_index = segment_index
        self.segment_name = segment_name
        self.cause = cause
        super().__init__(f"Failed to transcribe segment {segment_index} ('{segment_name}'): {cause}")


class OperationCancelledError(SessionScribeError):
    """Raised when a cancellation token is observed as cancelled."""

    def __init__(self, message: str = "Operation was cancelled"):
        super().__init__(message)


class TranscriptNotFoundError(SessionScribeError):
    """Raised when a recording has no stored transcript."""

    def __init__(self, campaign: str, recording: Optional[str] = None):
        self.campaign = campaign
        self.recording = recording
        if recording is None:
            super().__init__(f"No transcripts found in campaign '{campaign}'")
        else:
            super().__init__(f"No transcript found for recording '{recording}' in campaign '{campaign}'")


class CharacterNotFoundError(SessionScribeError):
    """Raised when a character is not part of the campaign's character summary."""

    def __init__(self, campaign: str, character: str):
        self.campaign = campaign
        self.character = character
        super().__init__(f"No character '{character}' found in campaign '{campaign}'")


class GenerationError(SessionScribeError):
    """Raised when a generative model returns empty or unusable output."""

    def __init__(self, what: str, detail: str):
        self.what = what
        self.detail = detail
        super().__init__(f"Could not generate {what}: {detail}")


class JobError(SessionScribeError):
    """Base class for failures of a remote asynchronous job."""

    phase = "job"

    def __init__(self, message: str, job_id: Optional[str] = None, cause: Optional[Exception] = None):
        self.job_id = job_id
        self.cause = cause
        super().__init__(message)


class JobSubmissionError(JobError):
    """Raised when the remote service rejects or never receives the job."""

    phase = "submission"

    def __init__(self, detail: str, status_code: Optional[int] = None, cause: Optional[Exception] = None):
        self.status_code = status_code
        self.detail = detail
        status = f" (HTTP {status_code})" if status_code is not None else ""
        super().__init__(f"Job submission failed{status}: {detail}", cause=cause)


class JobPollingError(JobError):
    """Raised when a status request for a running job fails."""

    phase = "polling"

    def __init__(
        self,
        job_id: str,
        detail: str,
        status_code: Optional[int] = None,
        attempt: Optional[int] = None,
        cause: Optional[Exception] = None,
    ):
        self.status_code = status_code
        self.attempt = attempt
        self.detail = detail
        status = f" (HTTP {status_code})" if status_code is not None else ""
        on_attempt = f" on attempt {attempt}" if attempt is not None else ""
        super().__init__(f"Polling job {job_id} failed{on_attempt}{status}: {detail}", job_id, cause)


class JobFailedError(JobError):
    """Raised when the remote service reports the job itself as failed."""

    phase = "job"

    def __init__(self, job_id: str, reason: Optional[str] = None):
        self.reason = reason
        super().__init__(f"Job {job_id} failed: {reason or 'no reason given'}", job_id)


class ArtifactMissingError(JobError):
    """Raised when a job succeeded but did not reference any artifact."""

    phase = "artifact"

    def __init__(self, job_id: str):
        super().__init__(f"Job {job_id} succeeded but returned no result reference", job_id)


class ArtifactFetchError(JobError):
    """Raised when downloading the artifact of a succeeded job fails."""

    phase = "artifact"

    def __init__(
        self,
        job_id: str,
        result_ref: str,
        status_code: Optional[int] = None,
        cause: Optional[Exception] = None,
    ):
        self.result_ref = result_ref
        self.status_code = status_code
        status = f" (HTTP {status_code})" if status_code is not None else ""
        super().__init__(f"Fetching artifact {result_ref} of job {job_id} failed{status}", job_id, cause)


class JobTimeoutError(JobError):
    """Raised when a job does not reach a terminal state within the polling limits."""

    phase = "polling"

    def __init__(self, job_id: str, polls: int, waited_seconds: float):
        self.polls = polls
        self.waited_seconds = waited_seconds
        super().__init__(
            f"Job {job_id} did not complete after {polls} polls ({waited_seconds:.0f} seconds waited)", job_id
        )
