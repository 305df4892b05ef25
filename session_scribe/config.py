"""
Configuration management with three-tier precedence system:
1. Default values from codebase
2. Environment variables from .env
3. Explicit overrides (CLI flags, test doubles)

Precedence: Overrides > Environment Variables > Defaults

Components never read configuration themselves: the settings dataclasses below
are built once and passed into each constructor.
"""

import logging
import os
from dataclasses import dataclass
from typing import Any, Dict, Optional

from dotenv import load_dotenv

# Load environment variables from .env file
load_dotenv()


class ConfigManager:
    """Manages configuration with three-tier precedence."""

    # Default values (Tier 1 - Codebase defaults)
    DEFAULTS = {
        "OPENAI_API_KEY": "",
        "OPENAI_BASE_URL": "",
        "AZURE_OPENAI_ENDPOINT": "",
        "AZURE_OPENAI_API_KEY": "",
        "AZURE_OPENAI_API_VERSION": "2025-03-01-preview",
        "TRANSCRIPTION_MODEL": "gpt-4o-transcribe",
        "CHAT_MODEL": "gpt-4o",
        "IMAGE_MODEL": "gpt-image-1",
        "VIDEO_MODEL": "sora",
        "VIDEO_ENDPOINT": "",
        "VIDEO_API_KEY": "",
        "VIDEO_BEARER_TOKEN": "",
        "SEGMENT_MAX_SECONDS": "1200",
        "MAX_PAYLOAD_BYTES": "26214400",
        "TARGET_BITRATE": "64k",
        "POLL_INTERVAL_SECONDS": "5",
        "POLL_MAX_WAIT_SECONDS": "3600",
        "POLL_MAX_FAILURES": "0",
        "CAMPAIGNS_DIR": "Campaigns",
        "LOG_LEVEL": "INFO",
    }

    @staticmethod
    def get(key: str, override: Optional[Any] = None) -> Any:
        """
        Resolve a setting: explicit override, then environment, then default.

        Empty strings count as unset at every tier, so an empty CLI flag or
        ``KEY=`` line in .env falls through to the next source.
        """
        value, _ = ConfigManager.get_display_value(key, override)
        return value

    @staticmethod
    def get_int(key: str, override: Optional[Any] = None) -> int:
        """Get a configuration value converted to int."""
        value = ConfigManager.get(key, override)
        try:
            return int(value)
        except (TypeError, ValueError) as e:
            raise ValueError(f"Configuration value {key}={value!r} is not an integer") from e

    @staticmethod
    def get_float(key: str, override: Optional[Any] = None) -> float:
        """Get a configuration value converted to float."""
        value = ConfigManager.get(key, override)
        try:
            return float(value)
        except (TypeError, ValueError) as e:
            raise ValueError(f"Configuration value {key}={value!r} is not a number") from e

    @staticmethod
    def get_display_value(key: str, override: Optional[Any] = None) -> tuple[Any, str]:
        """
        Resolve a setting and report which tier supplied it.

        Args:
            key: Configuration key (see DEFAULTS)
            override: Value from the caller, e.g. a command line flag

        Returns:
            (value, source) with source one of 'override', 'env', 'default'
        """
        for value, source in ((override, "override"), (os.getenv(key), "env")):
            if value is not None and value != "":
                return value, source

        return ConfigManager.DEFAULTS.get(key, ""), "default"


@dataclass(frozen=True)
class TranscriptionSettings:
    """Limits applied when splitting and uploading recordings."""

    max_segment_duration_seconds: float = 20 * 60
    max_payload_bytes: int = 26_214_400  # 25 MiB
    target_bitrate: str = "64k"
    max_concurrent_requests: Optional[int] = None
    model: str = "gpt-4o-transcribe"

    @classmethod
    def from_env(cls, overrides: Optional[Dict[str, Any]] = None) -> "TranscriptionSettings":
        overrides = overrides or {}
        return cls(
            max_segment_duration_seconds=ConfigManager.get_float(
                "SEGMENT_MAX_SECONDS", overrides.get("SEGMENT_MAX_SECONDS")
            ),
            max_payload_bytes=ConfigManager.get_int("MAX_PAYLOAD_BYTES", overrides.get("MAX_PAYLOAD_BYTES")),
            target_bitrate=ConfigManager.get("TARGET_BITRATE", overrides.get("TARGET_BITRATE")),
            model=ConfigManager.get("TRANSCRIPTION_MODEL", overrides.get("TRANSCRIPTION_MODEL")),
        )


@dataclass(frozen=True)
class VideoJobSettings:
    """Endpoint, model and polling behaviour of the video generation client."""

    endpoint: str
    model: str = "sora"
    api_key: str = ""
    width: int = 1920
    height: int = 1080
    n_seconds: int = 15
    poll_interval_seconds: float = 5.0
    max_wait_seconds: Optional[float] = 3600.0
    max_polls: Optional[int] = None
    max_poll_failures: int = 0
    request_timeout_seconds: float = 60.0

    @classmethod
    def from_env(cls, overrides: Optional[Dict[str, Any]] = None) -> "VideoJobSettings":
        overrides = overrides or {}
        endpoint = ConfigManager.get("VIDEO_ENDPOINT", overrides.get("VIDEO_ENDPOINT")) or ConfigManager.get(
            "AZURE_OPENAI_ENDPOINT"
        )
        api_key = ConfigManager.get("VIDEO_API_KEY", overrides.get("VIDEO_API_KEY")) or ConfigManager.get(
            "AZURE_OPENAI_API_KEY"
        )
        return cls(
            endpoint=endpoint,
            model=ConfigManager.get("VIDEO_MODEL", overrides.get("VIDEO_MODEL")),
            api_key=api_key,
            poll_interval_seconds=ConfigManager.get_float(
                "POLL_INTERVAL_SECONDS", overrides.get("POLL_INTERVAL_SECONDS")
            ),
            max_wait_seconds=ConfigManager.get_float("POLL_MAX_WAIT_SECONDS", overrides.get("POLL_MAX_WAIT_SECONDS")),
            max_poll_failures=ConfigManager.get_int("POLL_MAX_FAILURES", overrides.get("POLL_MAX_FAILURES")),
        )


@dataclass(frozen=True)
class StorageSettings:
    """Where campaign recordings, transcripts and artifacts are kept."""

    campaigns_dir: str = "Campaigns"

    @classmethod
    def from_env(cls, overrides: Optional[Dict[str, Any]] = None) -> "StorageSettings":
        overrides = overrides or {}
        return cls(campaigns_dir=ConfigManager.get("CAMPAIGNS_DIR", overrides.get("CAMPAIGNS_DIR")))


def configure_logging(level: Optional[str] = None) -> None:
    """Configure root logging from LOG_LEVEL (or an explicit level)."""
    log_level = str(ConfigManager.get("LOG_LEVEL", level)).upper()
    logging.basicConfig(
        level=getattr(logging, log_level, logging.INFO),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )
