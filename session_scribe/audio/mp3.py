"""
MPEG audio (MP3) frame reader.

Walks an MP3 byte stream frame by frame without decoding it. Only frame
headers are parsed, which is enough to know where every frame starts, how
many PCM samples it carries and therefore the exact timeline of the stream.
Splitting a stream on these boundaries yields pieces that decoders accept on
their own.

Supports MPEG-1, MPEG-2 and MPEG-2.5, layers I to III. A leading ID3v2 tag is
skipped; anything else that is not a valid frame header (ID3v1 tags, padding,
junk) is skipped byte by byte until the next sync word.
"""

from dataclasses import dataclass
from fractions import Fraction
from typing import Iterator, Optional

# MPEG version bits -> name
MPEG1, MPEG2, MPEG25 = "1", "2", "2.5"
_VERSIONS = {0b00: MPEG25, 0b10: MPEG2, 0b11: MPEG1}

# Layer bits -> layer number
_LAYERS = {0b11: 1, 0b10: 2, 0b01: 3}

# Bitrates in kbps indexed by the 4-bit bitrate index (0 = free, 15 = invalid)
_BITRATES = {
    (MPEG1, 1): (0, 32, 64, 96, 128, 160, 192, 224, 256, 288, 320, 352, 384, 416, 448),
    (MPEG1, 2): (0, 32, 48, 56, 64, 80, 96, 112, 128, 160, 192, 224, 256, 320, 384),
    (MPEG1, 3): (0, 32, 40, 48, 56, 64, 80, 96, 112, 128, 160, 192, 224, 256, 320),
    ("2x", 1): (0, 32, 48, 56, 64, 80, 96, 112, 128, 144, 160, 176, 192, 224, 256),
    ("2x", 2): (0, 8, 16, 24, 32, 40, 48, 56, 64, 80, 96, 112, 128, 144, 160),
    ("2x", 3): (0, 8, 16, 24, 32, 40, 48, 56, 64, 80, 96, 112, 128, 144, 160),
}

_SAMPLE_RATES = {
    MPEG1: (44100, 48000, 32000),
    MPEG2: (22050, 24000, 16000),
    MPEG25: (11025, 12000, 8000),
}

HEADER_SIZE = 4


@dataclass(frozen=True)
class Mp3Frame:
    """Location and timing of one MPEG audio frame inside a byte stream."""

    offset: int
    length: int
    version: str
    layer: int
    bitrate_kbps: int
    sample_rate: int
    samples: int

    @property
    def end(self) -> int:
        return self.offset + self.length

    @property
    def duration(self) -> Fraction:
        """Exact frame duration in seconds."""
        return Fraction(self.samples, self.sample_rate)


def id3v2_size(data: bytes) -> int:
    """Return the byte size of a leading ID3v2 tag, or 0 if there is none."""
    if len(data) < 10 or data[:3] != b"ID3":
        return 0

    size_bytes = data[6:10]
    if any(b & 0x80 for b in size_bytes):
        # Not a syncsafe integer, so not a real tag header
        return 0

    size = 0
    for b in size_bytes:
        size = (size << 7) | b

    has_footer = bool(data[5] & 0x10)
    return 10 + size + (10 if has_footer else 0)


def parse_header(data: bytes, offset: int) -> Optional[Mp3Frame]:
    """
    Parse the frame header at ``offset``.

    Returns:
        The frame if the four bytes at ``offset`` form a valid header, else None
    """
    if offset + HEADER_SIZE > len(data):
        return None

    b0, b1, b2 = data[offset], data[offset + 1], data[offset + 2]
    if b0 != 0xFF or (b1 & 0xE0) != 0xE0:
        return None

    version = _VERSIONS.get((b1 >> 3) & 0b11)
    layer = _LAYERS.get((b1 >> 1) & 0b11)
    if version is None or layer is None:
        return None

    bitrate_index = b2 >> 4
    sample_rate_index = (b2 >> 2) & 0b11
    if bitrate_index in (0, 15) or sample_rate_index == 3:
        # Free-format streams cannot be walked without decoding
        return None

    table_version = MPEG1 if version == MPEG1 else "2x"
    bitrate_kbps = _BITRATES[(table_version, layer)][bitrate_index]
    sample_rate = _SAMPLE_RATES[version][sample_rate_index]
    padding = (b2 >> 1) & 0b1
    bitrate = bitrate_kbps * 1000

    if layer == 1:
        samples = 384
        length = (12 * bitrate // sample_rate + padding) * 4
    elif layer == 2 or version == MPEG1:
        samples = 1152
        length = 144 * bitrate // sample_rate + padding
    else:
        samples = 576
        length = 72 * bitrate // sample_rate + padding

    return Mp3Frame(
        offset=offset,
        length=length,
        version=version,
        layer=layer,
        bitrate_kbps=bitrate_kbps,
        sample_rate=sample_rate,
        samples=samples,
    )


def iter_frames(data: bytes) -> Iterator[Mp3Frame]:
    """
    Yield every complete frame of an MP3 stream in order.

    A trailing frame that is cut short is not yielded.
    """
    offset = id3v2_size(data)
    total = len(data)

    while offset + HEADER_SIZE <= total:
        frame = parse_header(data, offset)
        if frame is None:
            offset += 1
            continue
        if frame.end > total:
            break
        yield frame
        offset = frame.end


def build_header(
    bitrate_kbps: int,
    sample_rate: int,
    version: str = MPEG1,
    layer: int = 3,
    padding: bool = False,
) -> bytes:
    """
    Build a four-byte frame header (no CRC, mono).

    Used to synthesise streams for tests and silence padding.
    """
    version_bits = {v: k for k, v in _VERSIONS.items()}[version]
    layer_bits = {v: k for k, v in _LAYERS.items()}[layer]
    table_version = MPEG1 if version == MPEG1 else "2x"

    bitrate_index = _BITRATES[(table_version, layer)].index(bitrate_kbps)
    sample_rate_index = _SAMPLE_RATES[version].index(sample_rate)

    b1 = 0xE0 | (version_bits << 3) | (layer_bits << 1) | 0b1
    b2 = (bitrate_index << 4) | (sample_rate_index << 2) | (int(padding) << 1)
    b3 = 0b11 << 6  # mono
    return bytes((0xFF, b1, b2, b3))


def build_frame(bitrate_kbps: int, sample_rate: int, version: str = MPEG1, layer: int = 3) -> bytes:
    """Build one complete frame whose payload is zero bytes."""
    header = build_header(bitrate_kbps, sample_rate, version, layer)
    frame = parse_header(header, 0)
    return header + bytes(frame.length - HEADER_SIZE)
