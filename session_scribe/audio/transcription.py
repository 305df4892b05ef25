"""
Transcription of arbitrarily long recordings through a remote speech-to-text API.

Remote transcription services limit both the duration and the byte size of a
single request. This module splits a recording into segments, shrinks any
segment that is still too large, transcribes all segments concurrently and
merges the texts back in recording order.

Key features:
- Frame-aligned segmentation (see ``segmenter``)
- Bitrate reduction for oversized segments (see ``transcoder``)
- Concurrent per-segment calls with fail-fast sibling cancellation
- Deterministic merge by segment index, whatever the completion order
- OpenAI / Azure OpenAI transcription capability
"""

import logging
from concurrent.futures import Future, ThreadPoolExecutor, as_completed
from typing import Dict, Iterable, List, Optional, Protocol

from ..cancellation import CancellationToken, run_cancellable
from ..config import TranscriptionSettings
from ..errors import OperationCancelledError, SegmentTranscriptionError
from .models import AudioBuffer, AudioSegment, TranscriptionResult
from .segmenter import AudioSegmenter
from .transcoder import AudioTranscoder
from .utils import format_timestamp

logger = logging.getLogger(__name__)


class RemoteTranscriber(Protocol):
    """Capability that turns one audio buffer into transcript text."""

    def __call__(self, audio: AudioBuffer, file_name: str, cancel_token: CancellationToken) -> str: ...


def merge_transcripts(results: Iterable[TranscriptionResult], segment_count: int) -> str:
    """
    Join per-segment texts in segment order, one newline between segments.

    Raises:
        ValueError: If there is not exactly one result per segment index
    """
    by_index: Dict[int, TranscriptionResult] = {}
    for result in results:
        if result.segment_index in by_index:
            raise ValueError(f"Duplicate transcription result for segment {result.segment_index}")
        by_index[result.segment_index] = result

    if sorted(by_index) != list(range(segment_count)):
        missing = sorted(set(range(segment_count)) - set(by_index))
        raise ValueError(f"Transcription results do not match segments (missing: {missing})")

    return "\n".join(by_index[index].text for index in sorted(by_index))


class TranscriptionOrchestrator:
    """
    Produce one transcript for a recording of any length.

    Segments the recording, keeps every segment under the payload limit,
    transcribes all segments concurrently and merges the results.
    """

    def __init__(
        self,
        settings: Optional[TranscriptionSettings] = None,
        segmenter: Optional[AudioSegmenter] = None,
        transcoder: Optional[AudioTranscoder] = None,
    ):
        """
        Initialize orchestrator.

        Args:
            settings: Segment duration, payload and concurrency limits
            segmenter: Segmenter to use (default: AudioSegmenter())
            transcoder: Transcoder to use (default: AudioTranscoder at settings.target_bitrate)
        """
        self.settings = settings or TranscriptionSettings()
        self.segmenter = segmenter or AudioSegmenter()
        self.transcoder = transcoder or AudioTranscoder(self.settings.target_bitrate)

    def transcribe(
        self,
        buffer: AudioBuffer,
        file_name: str,
        remote_transcribe: RemoteTranscriber,
        cancel_token: Optional[CancellationToken] = None,
    ) -> str:
        """
        Transcribe a complete recording.

        Args:
            buffer: The whole recording (MP3 or WAV)
            file_name: Logical name used to derive segment names
            remote_transcribe: Remote speech-to-text call for one buffer
            cancel_token: Cancels every in-flight segment call when triggered

        Returns:
            Segment transcripts in recording order, joined by newlines

        Raises:
            DecodeError: If the recording or a segment cannot be decoded
            SegmentTranscriptionError: If any segment's remote call fails
            OperationCancelledError: If ``cancel_token`` is cancelled
        """
        token = cancel_token or CancellationToken()
        token.raise_if_cancelled()

        source = buffer if buffer.name == file_name else AudioBuffer(buffer.data, file_name)
        segments = self.segmenter.segment(source, self.settings.max_segment_duration_seconds)

        try:
            for segment in segments:
                token.raise_if_cancelled()
                self._fit_payload(segment)

            results = self._transcribe_all(segments, remote_transcribe, token)
        finally:
            for segment in segments:
                segment.data.release()

        token.raise_if_cancelled()
        transcript = merge_transcripts(results, len(segments))
        logger.info(f"{file_name}: merged {len(segments)} segment transcript(s), {len(transcript)} characters")
        return transcript

    def _fit_payload(self, segment: AudioSegment) -> None:
        """Replace the segment's buffer by a re-encoded one if it is too large."""
        original = segment.data
        reduced = self.transcoder.reduce_bitrate(original, self.settings.max_payload_bytes)
        if reduced is not original:
            original.release()
            segment.data = reduced

    def _transcribe_all(
        self,
        segments: List[AudioSegment],
        remote_transcribe: RemoteTranscriber,
        token: CancellationToken,
    ) -> List[TranscriptionResult]:
        # Child token: a failing segment cancels its siblings without touching
        # the caller's token.
        group_token = token.child()
        # Completes when the group is cancelled, so waiting on the segments
        # never outlives a cancellation.
        cancelled: Future = Future()
        unregister = group_token.register(lambda: cancelled.set_result(None))

        max_workers = self.settings.max_concurrent_requests or len(segments)
        executor = ThreadPoolExecutor(max_workers=max_workers, thread_name_prefix="transcribe")
        futures: Dict[Future, AudioSegment] = {}
        results: List[TranscriptionResult] = []

        logger.info(f"Submitting {len(segments)} segment(s) for transcription ({max_workers} concurrent)")

        try:
            for segment in segments:
                futures[executor.submit(self._transcribe_segment, segment, remote_transcribe, group_token)] = segment

            for future in as_completed([cancelled, *futures]):
                group_token.raise_if_cancelled()
                results.append(future.result())
                if len(results) == len(futures):
                    break

            group_token.raise_if_cancelled()
        except BaseException as e:
            group_token.cancel(f"Transcription aborted: {e}")
            # Report now; running calls finish in the background and release
            # their own buffers.
            executor.shutdown(wait=False, cancel_futures=True)
            raise
        finally:
            unregister()
            group_token.close()

        executor.shutdown(wait=True)
        return results

    def _transcribe_segment(
        self,
        segment: AudioSegment,
        remote_transcribe: RemoteTranscriber,
        token: CancellationToken,
    ) -> TranscriptionResult:
        audio = segment.data
        try:
            token.raise_if_cancelled()
            text = remote_transcribe(audio, audio.name, token)
            # A remote call that ignored the token must not report success
            token.raise_if_cancelled()
        except OperationCancelledError:
            raise
        except Exception as e:
            logger.error(f"Segment {segment.sequence_index} ({segment.name}) failed: {e}")
            raise SegmentTranscriptionError(segment.sequence_index, segment.name, e) from e
        finally:
            audio.release()

        logger.info(
            f"Segment {segment.sequence_index} "
            f"[{format_timestamp(segment.start_time)}-{format_timestamp(segment.end_time)}] transcribed"
        )
        return TranscriptionResult(segment_index=segment.sequence_index, text=text)


class OpenAITranscriber:
    """
    Remote transcription through the OpenAI (or Azure OpenAI) audio API.

    Instances are callables matching ``RemoteTranscriber``. With a token the
    request runs through ``run_cancellable``, so cancelling releases the caller
    while the HTTP call is still in flight.
    """

    def __init__(self, client, model: str = "gpt-4o-transcribe", language: Optional[str] = None):
        """
        Initialize transcriber.

        Args:
            client: ``openai.OpenAI`` or ``openai.AzureOpenAI`` client
            model: Transcription model or Azure deployment name
            language: Optional ISO-639-1 language hint
        """
        self.client = client
        self.model = model
        self.language = language

    def __call__(self, audio: AudioBuffer, file_name: str, cancel_token: Optional[CancellationToken] = None) -> str:
        kwargs = {}
        if self.language:
            kwargs["language"] = self.language

        request = dict(model=self.model, file=(file_name, audio.data), response_format="text", **kwargs)
        if cancel_token is None:
            response = self.client.audio.transcriptions.create(**request)
        else:
            response = run_cancellable(cancel_token, self.client.audio.transcriptions.create, **request)

        # response_format="text" returns a plain string; some SDK versions wrap it
        text = response if isinstance(response, str) else getattr(response, "text", "")
        return text.strip()
