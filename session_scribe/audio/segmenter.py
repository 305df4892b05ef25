"""
Split recordings into bounded-duration segments on frame boundaries.

Remote transcription services cap the duration (and size) of a single
request, so long session recordings are cut into segments of a configured
maximum duration. Segment boundaries fall on multiples of that maximum and
are moved back to the nearest frame boundary, so a segment may run one frame
longer than the maximum but no error accumulates. Cuts are only ever made
between frames:

- MP3: between MPEG audio frames, found by walking the frame headers
- WAV: between PCM sample frames, each segment rewritten with its own header

so every segment is independently decodable. Timing uses exact rational
arithmetic, which keeps segment boundaries contiguous and lets the last
segment end exactly at the total duration.
"""

import io
import logging
import wave
from fractions import Fraction
from typing import List, Tuple

from ..errors import DecodeError
from .models import AudioBuffer, AudioSegment
from .mp3 import Mp3Frame, iter_frames
from .utils import is_wav, segment_name

logger = logging.getLogger(__name__)


class AudioSegmenter:
    """Split an audio buffer into segments of at most a given duration."""

    def segment(self, buffer: AudioBuffer, max_segment_duration_seconds: float) -> List[AudioSegment]:
        """
        Split ``buffer`` into consecutive segments.

        Args:
            buffer: Complete MP3 or WAV recording
            max_segment_duration_seconds: Segment length; boundaries are placed on its multiples

        Returns:
            Segments ordered by ``sequence_index``. A recording no longer than
            the maximum comes back as a single segment holding the whole input.

        Raises:
            DecodeError: If the container cannot be parsed
            ValueError: If the maximum duration is not positive
        """
        if max_segment_duration_seconds <= 0:
            raise ValueError(f"max_segment_duration_seconds must be positive, got {max_segment_duration_seconds}")

        max_duration = Fraction(max_segment_duration_seconds).limit_denominator(1_000_000)
        data = buffer.data

        if is_wav(data):
            return self._segment_wav(buffer, max_duration)
        return self._segment_mp3(buffer, max_duration)

    def get_duration(self, buffer: AudioBuffer) -> float:
        """Total duration of the recording in seconds."""
        data = buffer.data
        if is_wav(data):
            _, n_frames, rate, _ = self._read_wav(buffer)
            return float(Fraction(n_frames, rate))
        return float(sum((frame.duration for frame in self._read_mp3_frames(buffer)), Fraction(0)))

    # MP3

    def _read_mp3_frames(self, buffer: AudioBuffer) -> List[Mp3Frame]:
        frames = list(iter_frames(buffer.data))
        if not frames:
            raise DecodeError(buffer.name, "no MPEG audio frames found")
        return frames

    def _segment_mp3(self, buffer: AudioBuffer, max_duration: Fraction) -> List[AudioSegment]:
        frames = self._read_mp3_frames(buffer)
        total_duration = sum((frame.duration for frame in frames), Fraction(0))

        if total_duration <= max_duration:
            logger.info(f"{buffer.name}: {float(total_duration):.1f}s fits in one segment")
            return [self._whole(buffer, total_duration)]

        data = buffer.data
        spans: List[Tuple[int, int, Fraction, Fraction]] = []

        current_time = Fraction(0)
        index = 0
        while current_time < total_duration:
            segment_start = current_time
            # Boundaries sit on a fixed grid of multiples of the maximum, so
            # frame rounding never accumulates from one segment to the next.
            segment_end = min(max_duration * (len(spans) + 1), total_duration)
            first = index

            # Always take at least one frame, then stop before the frame that
            # would cross the segment boundary.
            while index < len(frames):
                frame_end_time = current_time + frames[index].duration
                if index > first and frame_end_time > segment_end:
                    break
                current_time = frame_end_time
                index += 1

            spans.append((frames[first].offset, frames[index - 1].end, segment_start, current_time))

        segments = []
        for sequence_index, (start_offset, end_offset, start, end) in enumerate(spans):
            name = segment_name(buffer.name, sequence_index, len(spans), buffer.suffix or ".mp3")
            segments.append(
                AudioSegment(
                    sequence_index=sequence_index,
                    name=name,
                    data=AudioBuffer(data[start_offset:end_offset], name),
                    start_time=float(start),
                    end_time=float(end),
                )
            )

        logger.info(
            f"{buffer.name}: split {float(total_duration):.1f}s into {len(segments)} segments "
            f"on a {float(max_duration):.0f}s grid"
        )
        return segments

    # WAV

    def _read_wav(self, buffer: AudioBuffer):
        try:
            with wave.open(io.BytesIO(buffer.data), "rb") as wf:
                params = wf.getparams()
                pcm = wf.readframes(params.nframes)
        except (wave.Error, EOFError) as e:
            raise DecodeError(buffer.name, str(e), e) from e

        if params.framerate <= 0:
            raise DecodeError(buffer.name, "invalid sample rate")

        frame_size = params.nchannels * params.sampwidth
        n_frames = len(pcm) // frame_size
        return params, n_frames, params.framerate, pcm

    def _segment_wav(self, buffer: AudioBuffer, max_duration: Fraction) -> List[AudioSegment]:
        params, n_frames, rate, pcm = self._read_wav(buffer)
        if n_frames == 0:
            raise DecodeError(buffer.name, "no PCM frames found")

        total_duration = Fraction(n_frames, rate)
        if total_duration <= max_duration:
            logger.info(f"{buffer.name}: {float(total_duration):.1f}s fits in one segment")
            return [self._whole(buffer, total_duration)]

        frame_size = params.nchannels * params.sampwidth
        bounds = []
        position = 0
        while position < n_frames:
            end = min(max(position + 1, int(max_duration * (len(bounds) + 1) * rate)), n_frames)
            bounds.append((position, end))
            position = end

        segments = []
        for sequence_index, (start, end) in enumerate(bounds):
            out = io.BytesIO()
            with wave.open(out, "wb") as wf:
                wf.setnchannels(params.nchannels)
                wf.setsampwidth(params.sampwidth)
                wf.setframerate(rate)
                wf.writeframes(pcm[start * frame_size : end * frame_size])

            name = segment_name(buffer.name, sequence_index, len(bounds), buffer.suffix or ".wav")
            segments.append(
                AudioSegment(
                    sequence_index=sequence_index,
                    name=name,
                    data=AudioBuffer(out.getvalue(), name),
                    start_time=float(Fraction(start, rate)),
                    end_time=float(Fraction(end, rate)),
                )
            )

        logger.info(f"{buffer.name}: split {float(total_duration):.1f}s into {len(segments)} WAV segments")
        return segments

    @staticmethod
    def _whole(buffer: AudioBuffer, total_duration: Fraction) -> AudioSegment:
        # New buffer object over the same bytes: releasing the segment leaves
        # the caller's buffer intact.
        return AudioSegment(
            sequence_index=0,
            name=buffer.name,
            data=AudioBuffer(buffer.data, buffer.name),
            start_time=0.0,
            end_time=float(total_duration),
        )
