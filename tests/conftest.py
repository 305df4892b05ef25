"""
Shared fixtures: synthetic MP3 and WAV recordings that need no ffmpeg.
"""

import io
import wave

import pytest

from session_scribe.audio.mp3 import MPEG1, MPEG25, build_frame

# MPEG-2.5 layer III, 8 kHz, 8 kbps: 72-byte frames of 576 samples (72 ms)
LOW_RATE_FRAME = build_frame(8, 8000, version=MPEG25)
LOW_RATE_FRAME_SECONDS = 0.072

# MPEG-1 layer III, 48 kHz, 32 kbps: 96-byte frames of 1152 samples (24 ms)
STANDARD_FRAME = build_frame(32, 48000, version=MPEG1)
STANDARD_FRAME_SECONDS = 0.024


def mp3_bytes(seconds: float, frame: bytes = LOW_RATE_FRAME, frame_seconds: float = LOW_RATE_FRAME_SECONDS) -> bytes:
    """Concatenate enough frames to last ``seconds``."""
    return frame * round(seconds / frame_seconds)


def wav_bytes(seconds: float, rate: int = 8000, channels: int = 1, sampwidth: int = 2) -> bytes:
    """Silent PCM WAV file of the given duration."""
    n_frames = int(seconds * rate)
    out = io.BytesIO()
    with wave.open(out, "wb") as wf:
        wf.setnchannels(channels)
        wf.setsampwidth(sampwidth)
        wf.setframerate(rate)
        wf.writeframes(bytes(n_frames * channels * sampwidth))
    return out.getvalue()


@pytest.fixture
def session_mp3() -> bytes:
    """A 45 minute low-bitrate MP3 recording (about 2.7 MB)."""
    return mp3_bytes(45 * 60)


@pytest.fixture(autouse=True)
def clean_config_env(monkeypatch):
    """Keep a developer's .env or shell from leaking into configuration tests."""
    for key in (
        "SEGMENT_MAX_SECONDS",
        "MAX_PAYLOAD_BYTES",
        "TARGET_BITRATE",
        "TRANSCRIPTION_MODEL",
        "CHAT_MODEL",
        "IMAGE_MODEL",
        "VIDEO_MODEL",
        "VIDEO_ENDPOINT",
        "VIDEO_API_KEY",
        "VIDEO_BEARER_TOKEN",
        "AZURE_OPENAI_ENDPOINT",
        "AZURE_OPENAI_API_KEY",
        "OPENAI_BASE_URL",
        "POLL_INTERVAL_SECONDS",
        "POLL_MAX_WAIT_SECONDS",
        "POLL_MAX_FAILURES",
        "CAMPAIGNS_DIR",
        "LOG_LEVEL",
    ):
        monkeypatch.delenv(key, raising=False)
