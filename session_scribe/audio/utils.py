"""
Utility functions for audio processing.

Helpers shared by the segmenter, the transcoder and the orchestrator:
timestamp formatting for logs, segment naming and container sniffing.
"""

from pathlib import PurePath

MIN_INDEX_WIDTH = 3


def format_timestamp(seconds: float) -> str:
    """
    Format seconds as MM:SS or HH:MM:SS.

    Args:
        seconds: Time in seconds

    Returns:
        Formatted time string
    """
    hours = int(seconds // 3600)
    minutes = int((seconds % 3600) // 60)
    secs = int(seconds % 60)

    if hours > 0:
        return f"{hours:02d}:{minutes:02d}:{secs:02d}"
    return f"{minutes:02d}:{secs:02d}"


def segment_name(base_name: str, index: int, count: int, suffix: str) -> str:
    """
    Build the name of segment ``index`` out of ``count``.

    The index is zero-padded so that sorting names gives the same order as
    sorting indices, e.g. ``session-chunk000.mp3``.

    Args:
        base_name: Name of the whole recording
        index: Zero-based sequence index
        count: Total number of segments
        suffix: File extension including the dot

    Returns:
        Segment file name
    """
    stem = PurePath(base_name).stem
    width = max(MIN_INDEX_WIDTH, len(str(max(count - 1, 0))))
    return f"{stem}-chunk{index:0{width}d}{suffix}"


def is_wav(data: bytes) -> bool:
    """Check for a RIFF/WAVE container signature."""
    return len(data) >= 12 and data[:4] == b"RIFF" and data[8:12] == b"WAVE"
