from fractions import Fraction

from session_scribe.audio.mp3 import (
    MPEG1,
    MPEG2,
    MPEG25,
    build_frame,
    build_header,
    id3v2_size,
    iter_frames,
    parse_header,
)


def test_parse_mpeg1_layer3_header():
    frame = parse_header(build_header(128, 44100), 0)

    assert frame.version == MPEG1
    assert frame.layer == 3
    assert frame.bitrate_kbps == 128
    assert frame.sample_rate == 44100
    assert frame.samples == 1152
    assert frame.length == 417
    assert frame.duration == Fraction(1152, 44100)


def test_padding_adds_one_byte():
    plain = parse_header(build_header(128, 44100), 0)
    padded = parse_header(build_header(128, 44100, padding=True), 0)
    assert padded.length == plain.length + 1


def test_mpeg2_and_25_layer3_use_576_samples():
    mpeg2 = parse_header(build_header(64, 24000, version=MPEG2), 0)
    mpeg25 = parse_header(build_header(8, 8000, version=MPEG25), 0)

    assert (mpeg2.samples, mpeg2.length) == (576, 192)
    assert (mpeg25.samples, mpeg25.length) == (576, 72)
    assert mpeg25.duration == Fraction(9, 125)


def test_layer1_and_layer2_lengths():
    layer1 = parse_header(build_header(32, 32000, layer=1), 0)
    layer2 = parse_header(build_header(32, 32000, layer=2), 0)

    assert (layer1.samples, layer1.length) == (384, 48)
    assert (layer2.samples, layer2.length) == (1152, 144)


def test_invalid_headers_are_rejected():
    assert parse_header(b"\x00\x00\x00\x00", 0) is None
    assert parse_header(b"\xff\xfb", 0) is None
    # free format bitrate
    assert parse_header(bytes((0xFF, 0xFB, 0x00, 0xC0)), 0) is None
    # reserved sample rate index
    assert parse_header(bytes((0xFF, 0xFB, 0x9C, 0xC0)), 0) is None
    # reserved version bits
    assert parse_header(bytes((0xFF, 0xEB, 0x90, 0xC0)), 0) is None


def test_iter_frames_skips_id3_tag_and_junk():
    frame = build_frame(32, 48000)
    tag = b"ID3\x04\x00\x00\x00\x00\x00\x05" + b"TAGGY"
    data = tag + frame + b"junk" + frame * 2

    frames = list(iter_frames(data))

    assert id3v2_size(data) == 15
    assert len(frames) == 3
    assert frames[0].offset == 15
    assert frames[1].offset == 15 + len(frame) + 4


def test_iter_frames_drops_truncated_trailing_frame():
    frame = build_frame(32, 48000)
    frames = list(iter_frames(frame * 3 + frame[:40]))
    assert len(frames) == 3


def test_id3v2_size_ignores_non_syncsafe_size():
    assert id3v2_size(b"ID3\x04\x00\x00\x80\x00\x00\x00") == 0
    assert id3v2_size(b"not a tag at all") == 0
