import pytest

from session_scribe.config import ConfigManager, StorageSettings, TranscriptionSettings, VideoJobSettings


def test_default_value_is_used_without_env_or_override():
    assert ConfigManager.get_display_value("SEGMENT_MAX_SECONDS") == ("1200", "default")


def test_env_beats_default(monkeypatch):
    monkeypatch.setenv("SEGMENT_MAX_SECONDS", "600")
    assert ConfigManager.get_display_value("SEGMENT_MAX_SECONDS") == ("600", "env")


def test_override_beats_env(monkeypatch):
    monkeypatch.setenv("SEGMENT_MAX_SECONDS", "600")
    assert ConfigManager.get("SEGMENT_MAX_SECONDS", 300) == 300
    assert ConfigManager.get_display_value("SEGMENT_MAX_SECONDS", 300) == (300, "override")


def test_empty_override_falls_through(monkeypatch):
    monkeypatch.setenv("CHAT_MODEL", "gpt-4o-mini")
    assert ConfigManager.get("CHAT_MODEL", "") == "gpt-4o-mini"


def test_non_numeric_value_is_reported(monkeypatch):
    monkeypatch.setenv("MAX_PAYLOAD_BYTES", "lots")
    with pytest.raises(ValueError, match="MAX_PAYLOAD_BYTES"):
        ConfigManager.get_int("MAX_PAYLOAD_BYTES")


def test_transcription_settings_defaults():
    settings = TranscriptionSettings.from_env()

    assert settings.max_segment_duration_seconds == 1200.0
    assert settings.max_payload_bytes == 25 * 1024 * 1024
    assert settings.target_bitrate == "64k"
    assert settings.model == "gpt-4o-transcribe"
    assert settings.max_concurrent_requests is None


def test_transcription_settings_overrides(monkeypatch):
    monkeypatch.setenv("MAX_PAYLOAD_BYTES", "1000")
    settings = TranscriptionSettings.from_env({"SEGMENT_MAX_SECONDS": 90})

    assert settings.max_segment_duration_seconds == 90.0
    assert settings.max_payload_bytes == 1000


def test_video_settings_fall_back_to_azure_openai(monkeypatch):
    monkeypatch.setenv("AZURE_OPENAI_ENDPOINT", "https://res.openai.azure.com")
    monkeypatch.setenv("AZURE_OPENAI_API_KEY", "azure-key")

    settings = VideoJobSettings.from_env()

    assert settings.endpoint == "https://res.openai.azure.com"
    assert settings.api_key == "azure-key"
    assert settings.model == "sora"
    assert settings.poll_interval_seconds == 5.0
    assert settings.max_wait_seconds == 3600.0
    assert settings.max_poll_failures == 0


def test_dedicated_video_endpoint_wins(monkeypatch):
    monkeypatch.setenv("AZURE_OPENAI_ENDPOINT", "https://res.openai.azure.com")
    monkeypatch.setenv("VIDEO_ENDPOINT", "https://video.example.com")
    monkeypatch.setenv("POLL_MAX_FAILURES", "3")

    settings = VideoJobSettings.from_env()

    assert settings.endpoint == "https://video.example.com"
    assert settings.max_poll_failures == 3


def test_storage_settings(monkeypatch, tmp_path):
    assert StorageSettings.from_env().campaigns_dir == "Campaigns"
    monkeypatch.setenv("CAMPAIGNS_DIR", str(tmp_path))
    assert StorageSettings.from_env().campaigns_dir == str(tmp_path)
