"""
Data models for audio buffers, segments and per-segment transcription results.
"""

from dataclasses import dataclass
from pathlib import PurePath
from typing import Optional

from ..errors import BufferReleasedError


class AudioBuffer:
    """
    In-memory audio file (or a slice of one) tagged with a logical name.

    The bytes are owned by whoever holds the buffer; ``release()`` drops them
    so large recordings do not outlive the remote call they were made for.
    """

    def __init__(self, data: bytes, name: str):
        self._data: Optional[bytes] = bytes(data)
        self.name = name

    @property
    def data(self) -> bytes:
        if self._data is None:
            raise BufferReleasedError(self.name)
        return self._data

    @property
    def size(self) -> int:
        return len(self.data)

    @property
    def released(self) -> bool:
        return self._data is None

    @property
    def suffix(self) -> str:
        return PurePath(self.name).suffix.lower()

    @property
    def stem(self) -> str:
        return PurePath(self.name).stem

    def release(self) -> None:
        """Drop the underlying bytes. Safe to call more than once."""
        self._data = None

    def __repr__(self) -> str:
        size = "released" if self.released else f"{len(self._data)} bytes"
        return f"AudioBuffer(name={self.name!r}, {size})"


@dataclass
class AudioSegment:
    """A time-bounded, independently decodable slice of a recording."""

    sequence_index: int
    name: str
    data: AudioBuffer
    start_time: float
    end_time: float

    @property
    def duration(self) -> float:
        return self.end_time - self.start_time


@dataclass(frozen=True)
class TranscriptionResult:
    """Transcript text of one segment."""

    segment_index: int
    text: str
