import os

import pytest

from session_scribe.campaign import FileCampaignStorage


@pytest.fixture
def storage(tmp_path):
    return FileCampaignStorage(str(tmp_path / "Campaigns"))


def test_recording_round_trip(storage, tmp_path):
    name = storage.save_recording("Strahd", "session-01.mp3", b"audio")

    assert name == "session-01.mp3"
    assert (tmp_path / "Campaigns" / "Strahd" / "Recordings" / "session-01.mp3").read_bytes() == b"audio"
    assert storage.get_recording("Strahd", "session-01.mp3") == b"audio"
    assert storage.get_recording("Strahd", "session-02.mp3") is None


def test_transcription_is_stored_by_recording_stem(storage, tmp_path):
    path = storage.save_transcription("Strahd", "session-01.mp3", "The party enters Barovia.")

    assert path == tmp_path / "Campaigns" / "Strahd" / "Transcriptions" / "session-01.txt"
    assert storage.get_transcription("Strahd", "session-01") == "The party enters Barovia."


def test_missing_transcription_is_none(storage):
    assert storage.get_transcription("Strahd", "session-99") is None


def test_epic_moment_tale_and_video(storage, tmp_path):
    storage.save_epic_moment_tale("Strahd", "session-01", "A ballad")
    video_path = storage.save_epic_moment_video("Strahd", "session-01", b"mp4")

    assert storage.get_epic_moment_tale("Strahd", "session-01") == "A ballad"
    assert video_path == tmp_path / "Campaigns" / "Strahd" / "EpicMoments" / "session-01.mp4"
    assert video_path.read_bytes() == b"mp4"


@pytest.mark.parametrize("name", ["", "..", "../escape", "a/b", "a\\b"])
def test_names_escaping_their_directory_are_rejected(storage, name):
    with pytest.raises(ValueError):
        storage.save_transcription(name, "session-01", "text")
    with pytest.raises(ValueError):
        storage.save_recording("Strahd", name, b"audio")


def test_list_recordings_returns_sorted_stems(storage):
    assert storage.list_recordings("Strahd") == []

    storage.save_recording("Strahd", "session-02.wav", b"b")
    storage.save_recording("Strahd", "session-01.mp3", b"a")

    assert storage.list_recordings("Strahd") == ["session-01", "session-02"]


def test_missing_epic_moment_video_is_none(storage):
    assert storage.get_epic_moment_video("Strahd", "session-01") is None
    assert storage.get_epic_moment_video_path("Strahd", "session-01") is None

    storage.save_epic_moment_video("Strahd", "session-01", b"mp4")

    assert storage.get_epic_moment_video("Strahd", "session-01") == b"mp4"


def test_first_transcription_is_the_oldest(storage, tmp_path):
    storage.save_transcription("Strahd", "session-02", "second")
    storage.save_transcription("Strahd", "session-01", "first")
    transcripts = tmp_path / "Campaigns" / "Strahd" / "Transcriptions"
    os.utime(transcripts / "session-01.txt", (1_000, 1_000))
    os.utime(transcripts / "session-02.txt", (2_000, 2_000))

    assert storage.get_first_transcription("Strahd") == "first"
    assert storage.get_first_transcription("Phandelver") is None


def test_character_summary_and_portraits(storage, tmp_path):
    assert storage.get_character_summary("Strahd") is None
    assert storage.get_character_portrait("Strahd", "Ireena") is None

    summary_path = storage.save_character_summary("Strahd", '[{"name": "Ireena"}]')
    portrait_path = storage.save_character_portrait("Strahd", "Ireena", b"png")

    assert summary_path == tmp_path / "Campaigns" / "Strahd" / "Characters" / "list.json"
    assert storage.get_character_summary("Strahd") == '[{"name": "Ireena"}]'
    assert portrait_path == tmp_path / "Campaigns" / "Strahd" / "Characters" / "Ireena.png"
    assert storage.get_character_portrait("Strahd", "Ireena") == b"png"


def test_character_names_escaping_their_directory_are_rejected(storage):
    with pytest.raises(ValueError):
        storage.save_character_portrait("Strahd", "../../etc", b"png")
