"""
Audio segmentation, transcoding and transcription for session recordings.

This package turns a complete recording of any length into one transcript by
splitting it into frame-aligned segments, shrinking segments that exceed the
remote payload limit, transcribing the segments concurrently and merging the
results in order.

Main components:
- AudioSegmenter: Frame-aligned splitting of MP3 and WAV recordings
- AudioTranscoder: Bitrate reduction for oversized audio (pydub/ffmpeg)
- TranscriptionOrchestrator: Segment, shrink, fan out, merge
- OpenAITranscriber: Remote transcription through the OpenAI audio API

Example usage:
    from session_scribe.audio import AudioBuffer, OpenAITranscriber, TranscriptionOrchestrator

    orchestrator = TranscriptionOrchestrator()
    transcriber = OpenAITranscriber(client)
    text = orchestrator.transcribe(AudioBuffer(data, "session-01.mp3"), "session-01.mp3", transcriber)
"""

from .models import AudioBuffer, AudioSegment, TranscriptionResult
from .segmenter import AudioSegmenter
from .transcoder import AudioTranscoder
from .transcription import OpenAITranscriber, RemoteTranscriber, TranscriptionOrchestrator, merge_transcripts
from .utils import format_timestamp, is_wav, segment_name

__all__ = [
    "AudioBuffer",
    "AudioSegment",
    "TranscriptionResult",
    "AudioSegmenter",
    "AudioTranscoder",
    "OpenAITranscriber",
    "RemoteTranscriber",
    "TranscriptionOrchestrator",
    "merge_transcripts",
    "format_timestamp",
    "is_wav",
    "segment_name",
]
