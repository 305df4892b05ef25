"""
Bitrate reduction for audio that exceeds the transcription payload limit.

Decoding and encoding are performed locally with ``pydub``, which delegates
to ``ffmpeg``. Buffers already under the threshold are returned untouched so
short recordings never pay the re-encode cost.
"""

import io
import logging

from pydub import AudioSegment as PydubSegment
from pydub.exceptions import CouldntDecodeError, CouldntEncodeError

from ..errors import DecodeError
from .models import AudioBuffer

logger = logging.getLogger(__name__)

# Container formats ffmpeg should be told about explicitly. Anything else is
# detected from the content.
_FORMATS = {".mp3": "mp3", ".wav": "wav", ".m4a": "mp4", ".mp4": "mp4", ".ogg": "ogg", ".flac": "flac"}


class AudioTranscoder:
    """Re-encode audio to a lower average bitrate MP3."""

    def __init__(self, target_bitrate: str = "64k"):
        """
        Initialize transcoder.

        Args:
            target_bitrate: ffmpeg bitrate string for the re-encoded MP3 (e.g. "64k")
        """
        self.target_bitrate = target_bitrate

    def reduce_bitrate(self, buffer: AudioBuffer, threshold_bytes: int) -> AudioBuffer:
        """
        Shrink ``buffer`` if it is larger than ``threshold_bytes``.

        Args:
            buffer: Audio to check
            threshold_bytes: Largest size that is passed through unchanged

        Returns:
            ``buffer`` itself when it is small enough, otherwise a new MP3 buffer.
            The caller releases the original when a new buffer is returned.

        Raises:
            DecodeError: If the audio cannot be decoded or re-encoded
        """
        if buffer.size <= threshold_bytes:
            return buffer

        logger.info(
            f"{buffer.name}: {buffer.size} bytes exceeds {threshold_bytes}, re-encoding at {self.target_bitrate}"
        )

        try:
            audio = PydubSegment.from_file(io.BytesIO(buffer.data), format=_FORMATS.get(buffer.suffix))
            out = io.BytesIO()
            audio.export(out, format="mp3", bitrate=self.target_bitrate)
        except (CouldntDecodeError, CouldntEncodeError) as e:
            raise DecodeError(buffer.name, f"re-encoding failed: {e}", e) from e

        reduced = AudioBuffer(out.getvalue(), f"{buffer.stem}.mp3")
        logger.info(f"{buffer.name}: re-encoded to {reduced.size} bytes")
        if reduced.size > threshold_bytes:
            logger.warning(f"{reduced.name}: still {reduced.size} bytes after re-encoding")
        return reduced
