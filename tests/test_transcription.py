import threading
import time
from unittest.mock import Mock

import pytest
from conftest import mp3_bytes

from session_scribe.audio import (
    AudioBuffer,
    AudioSegmenter,
    OpenAITranscriber,
    TranscriptionOrchestrator,
    TranscriptionResult,
    merge_transcripts,
)
from session_scribe.cancellation import CancellationToken
from session_scribe.config import TranscriptionSettings
from session_scribe.errors import OperationCancelledError, SegmentTranscriptionError


def chunk_index(name: str) -> int:
    return int(name.rsplit("chunk", 1)[1].split(".")[0])


class RecordingSegmenter(AudioSegmenter):
    """Keeps the segments it produced so tests can inspect them afterwards."""

    def __init__(self):
        self.segments = []

    def segment(self, buffer, max_segment_duration_seconds):
        self.segments = super().segment(buffer, max_segment_duration_seconds)
        return self.segments


class ShrinkingTranscoder:
    def __init__(self):
        self.calls = []

    def reduce_bitrate(self, buffer, threshold_bytes):
        self.calls.append(buffer.name)
        if buffer.size <= threshold_bytes:
            return buffer
        return AudioBuffer(b"small", f"{buffer.stem}.mp3")


def test_45_minute_session_transcript_is_merged_in_order(session_mp3):
    seen = []

    def remote(audio, file_name, cancel_token):
        seen.append(file_name)
        return f"t{chunk_index(file_name)}"

    text = TranscriptionOrchestrator().transcribe(AudioBuffer(session_mp3, "session.mp3"), "session.mp3", remote)

    assert text == "t0\nt1\nt2"
    assert sorted(seen) == ["session-chunk000.mp3", "session-chunk001.mp3", "session-chunk002.mp3"]


def test_merge_order_does_not_depend_on_completion_order(session_mp3):
    last_done = threading.Event()
    middle_done = threading.Event()
    completion_order = []

    def remote(audio, file_name, cancel_token):
        index = chunk_index(file_name)
        if index == 0:
            assert middle_done.wait(5)
        elif index == 1:
            assert last_done.wait(5)
        completion_order.append(index)
        if index == 2:
            last_done.set()
        elif index == 1:
            middle_done.set()
        return f"part {index}"

    text = TranscriptionOrchestrator().transcribe(AudioBuffer(session_mp3, "session.mp3"), "session.mp3", remote)

    assert completion_order == [2, 1, 0]
    assert text == "part 0\npart 1\npart 2"


def test_short_recording_makes_one_remote_call():
    calls = []

    def remote(audio, file_name, cancel_token):
        calls.append(file_name)
        return "  only part  "

    text = TranscriptionOrchestrator().transcribe(AudioBuffer(mp3_bytes(30), "short.mp3"), "short.mp3", remote)

    assert calls == ["short.mp3"]
    assert text == "  only part  "


def test_file_name_overrides_buffer_name():
    calls = []

    def remote(audio, file_name, cancel_token):
        calls.append(file_name)
        return "x"

    TranscriptionOrchestrator().transcribe(AudioBuffer(mp3_bytes(5), "upload.bin"), "night-one.mp3", remote)

    assert calls == ["night-one.mp3"]


def test_segment_buffers_are_released_after_transcription(session_mp3):
    segmenter = RecordingSegmenter()
    orchestrator = TranscriptionOrchestrator(segmenter=segmenter)
    caller_buffer = AudioBuffer(session_mp3, "session.mp3")

    orchestrator.transcribe(caller_buffer, "session.mp3", lambda audio, name, token: "ok")

    assert len(segmenter.segments) == 3
    assert all(segment.data.released for segment in segmenter.segments)
    assert not caller_buffer.released


def test_oversized_segments_are_reencoded_before_upload(session_mp3):
    transcoder = ShrinkingTranscoder()
    segmenter = RecordingSegmenter()
    settings = TranscriptionSettings(max_payload_bytes=1_000_000)
    orchestrator = TranscriptionOrchestrator(settings, segmenter=segmenter, transcoder=transcoder)
    sizes = {}

    def remote(audio, file_name, cancel_token):
        sizes[file_name] = audio.size
        return file_name

    orchestrator.transcribe(AudioBuffer(session_mp3, "session.mp3"), "session.mp3", remote)

    assert len(transcoder.calls) == 3
    assert sizes["session-chunk000.mp3"] == len(b"small")
    assert sizes["session-chunk001.mp3"] == len(b"small")
    assert sizes["session-chunk002.mp3"] > 1000
    assert all(size <= 1_000_000 for size in sizes.values())


def test_failed_segment_cancels_siblings_and_reports_index(session_mp3):
    all_started = threading.Barrier(3, timeout=5)
    lock = threading.Lock()
    observed_cancellation = []
    finished_normally = []

    def remote(audio, file_name, cancel_token):
        index = chunk_index(file_name)
        all_started.wait()
        if index == 1:
            raise RuntimeError("HTTP 500 from transcription service")
        try:
            cancel_token.wait(5)
        except OperationCancelledError:
            with lock:
                observed_cancellation.append(index)
            raise
        finished_normally.append(index)
        return "late"

    caller_token = CancellationToken()

    with pytest.raises(SegmentTranscriptionError) as exc_info:
        TranscriptionOrchestrator().transcribe(
            AudioBuffer(session_mp3, "session.mp3"), "session.mp3", remote, caller_token
        )

    assert exc_info.value.segment_index == 1
    assert exc_info.value.segment_name == "session-chunk001.mp3"
    assert isinstance(exc_info.value.cause, RuntimeError)

    deadline = time.monotonic() + 5
    while len(observed_cancellation) < 2 and time.monotonic() < deadline:
        time.sleep(0.01)

    assert sorted(observed_cancellation) == [0, 2]
    assert finished_normally == []
    assert not caller_token.cancelled


def test_caller_cancellation_reaches_in_flight_segments(session_mp3):
    caller_token = CancellationToken()
    all_started = threading.Barrier(3, timeout=5)

    def remote(audio, file_name, cancel_token):
        all_started.wait()
        if chunk_index(file_name) == 0:
            caller_token.cancel("user pressed stop")
        cancel_token.wait(5)
        return "never"

    with pytest.raises(OperationCancelledError):
        TranscriptionOrchestrator().transcribe(
            AudioBuffer(session_mp3, "session.mp3"), "session.mp3", remote, caller_token
        )


def test_already_cancelled_token_makes_no_remote_calls(session_mp3):
    token = CancellationToken()
    token.cancel()
    remote = Mock(return_value="text")

    with pytest.raises(OperationCancelledError):
        TranscriptionOrchestrator().transcribe(AudioBuffer(session_mp3, "session.mp3"), "session.mp3", remote, token)

    remote.assert_not_called()


def test_limited_concurrency_still_transcribes_every_segment(session_mp3):
    settings = TranscriptionSettings(max_concurrent_requests=1)
    text = TranscriptionOrchestrator(settings).transcribe(
        AudioBuffer(session_mp3, "session.mp3"),
        "session.mp3",
        lambda audio, name, token: name,
    )
    assert text.splitlines() == ["session-chunk000.mp3", "session-chunk001.mp3", "session-chunk002.mp3"]


def test_merge_transcripts_orders_by_index():
    results = [TranscriptionResult(2, "c"), TranscriptionResult(0, "a"), TranscriptionResult(1, "b")]
    assert merge_transcripts(results, 3) == "a\nb\nc"


def test_merge_transcripts_rejects_missing_and_duplicate_results():
    with pytest.raises(ValueError, match="missing"):
        merge_transcripts([TranscriptionResult(0, "a"), TranscriptionResult(2, "c")], 3)
    with pytest.raises(ValueError, match="Duplicate"):
        merge_transcripts([TranscriptionResult(0, "a"), TranscriptionResult(0, "a")], 1)


def test_openai_transcriber_sends_named_file():
    client = Mock()
    client.audio.transcriptions.create.return_value = "  The party enters the crypt.\n"
    transcriber = OpenAITranscriber(client, model="gpt-4o-transcribe", language="en")

    text = transcriber(AudioBuffer(b"audio", "session-chunk000.mp3"), "session-chunk000.mp3", CancellationToken())

    assert text == "The party enters the crypt."
    client.audio.transcriptions.create.assert_called_once_with(
        model="gpt-4o-transcribe",
        file=("session-chunk000.mp3", b"audio"),
        response_format="text",
        language="en",
    )


def test_openai_transcriber_checks_cancellation_first():
    client = Mock()
    token = CancellationToken()
    token.cancel()

    with pytest.raises(OperationCancelledError):
        OpenAITranscriber(client)(AudioBuffer(b"audio", "a.mp3"), "a.mp3", token)

    client.audio.transcriptions.create.assert_not_called()


def test_remote_that_ignores_the_token_cannot_complete_a_cancelled_run(session_mp3):
    caller_token = CancellationToken()
    all_started = threading.Barrier(3, timeout=5)
    returned = []

    def remote(audio, file_name, cancel_token):
        all_started.wait()
        if chunk_index(file_name) == 0:
            caller_token.cancel("user pressed stop")
        time.sleep(0.5)
        returned.append(file_name)
        return "finished anyway"

    with pytest.raises(OperationCancelledError, match="user pressed stop"):
        TranscriptionOrchestrator().transcribe(
            AudioBuffer(session_mp3, "session.mp3"), "session.mp3", remote, caller_token
        )

    # Raised as soon as the token fired, not after the remote calls returned
    assert len(returned) < 3


def test_group_token_is_detached_from_the_caller_after_each_run(session_mp3):
    caller_token = CancellationToken()
    orchestrator = TranscriptionOrchestrator()

    for _ in range(3):
        orchestrator.transcribe(
            AudioBuffer(session_mp3, "session.mp3"), "session.mp3", lambda audio, name, token: "ok", caller_token
        )

    assert caller_token._children == []


def test_group_token_is_detached_after_a_failed_run(session_mp3):
    caller_token = CancellationToken()

    def remote(audio, file_name, cancel_token):
        raise RuntimeError("boom")

    with pytest.raises(SegmentTranscriptionError):
        TranscriptionOrchestrator().transcribe(
            AudioBuffer(session_mp3, "session.mp3"), "session.mp3", remote, caller_token
        )

    assert caller_token._children == []


def test_openai_transcriber_returns_promptly_when_cancelled_mid_request():
    release = threading.Event()
    client = Mock()

    def slow_create(**kwargs):
        release.wait(2)
        return "too late"

    client.audio.transcriptions.create.side_effect = slow_create
    token = CancellationToken()
    threading.Timer(0.1, token.cancel).start()

    start = time.monotonic()
    with pytest.raises(OperationCancelledError):
        OpenAITranscriber(client)(AudioBuffer(b"audio", "a.mp3"), "a.mp3", token)

    assert time.monotonic() - start < 1.5
    release.set()
