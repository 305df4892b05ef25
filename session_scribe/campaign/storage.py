"""
Filesystem-based storage for campaign recordings and derived artifacts.

Each campaign gets a directory with one sub-directory per kind of asset:

    <campaigns_dir>/<campaign>/Recordings/<file>
    <campaigns_dir>/<campaign>/Transcriptions/<recording>.txt
    <campaigns_dir>/<campaign>/EpicMoments/<recording>.txt
    <campaigns_dir>/<campaign>/EpicMoments/<recording>.mp4
    <campaigns_dir>/<campaign>/Characters/list.json
    <campaigns_dir>/<campaign>/Characters/<character>.png

Recordings are addressed by their stem (file name without extension).
"""

from pathlib import Path, PurePath
from typing import List, Optional, Protocol


class CampaignStorage(Protocol):
    """Storage contract used by the campaign analysis service."""

    def save_recording(self, campaign: str, file_name: str, data: bytes) -> str: ...

    def list_recordings(self, campaign: str) -> List[str]: ...

    def save_transcription(self, campaign: str, recording: str, text: str) -> Path: ...

    def get_transcription(self, campaign: str, recording: str) -> Optional[str]: ...

    def get_first_transcription(self, campaign: str) -> Optional[str]: ...

    def save_epic_moment_tale(self, campaign: str, recording: str, text: str) -> Path: ...

    def save_epic_moment_video(self, campaign: str, recording: str, video: bytes) -> Path: ...

    def get_epic_moment_video_path(self, campaign: str, recording: str) -> Optional[Path]: ...

    def save_character_summary(self, campaign: str, json_text: str) -> Path: ...

    def get_character_summary(self, campaign: str) -> Optional[str]: ...

    def save_character_portrait(self, campaign: str, character: str, image: bytes) -> Path: ...

    def get_character_portrait_path(self, campaign: str, character: str) -> Optional[Path]: ...


class FileCampaignStorage:
    """Stores campaign assets on the local filesystem."""

    DIRS = {
        "recordings": "Recordings",
        "transcriptions": "Transcriptions",
        "epic_moments": "EpicMoments",
        "characters": "Characters",
    }
    CHARACTER_SUMMARY_FILE = "list.json"

    def __init__(self, campaigns_dir: str = "Campaigns"):
        """
        Initialize storage.

        Args:
            campaigns_dir: Root directory holding one directory per campaign
        """
        self.campaigns_dir = Path(campaigns_dir)
        self.campaigns_dir.mkdir(parents=True, exist_ok=True)

    # Recordings

    def save_recording(self, campaign: str, file_name: str, data: bytes) -> str:
        """
        Save an uploaded recording.

        Returns:
            The stored file name
        """
        file_name = self._safe_name(file_name)
        path = self._asset_dir(campaign, "recordings") / file_name
        path.write_bytes(data)
        return file_name

    def get_recording(self, campaign: str, file_name: str) -> Optional[bytes]:
        """Get the bytes of a stored recording."""
        path = self._campaign_dir(campaign) / self.DIRS["recordings"] / self._safe_name(file_name)
        return path.read_bytes() if path.exists() else None

    def list_recordings(self, campaign: str) -> List[str]:
        """Names (file stems) of the campaign's stored recordings, sorted."""
        path = self._campaign_dir(campaign) / self.DIRS["recordings"]
        if not path.is_dir():
            return []
        return sorted(f.stem for f in path.iterdir() if f.is_file())

    # Transcriptions

    def save_transcription(self, campaign: str, recording: str, text: str) -> Path:
        """Save the transcript of a recording."""
        return self._save_text(campaign, "transcriptions", recording, text)

    def get_transcription(self, campaign: str, recording: str) -> Optional[str]:
        """Get the transcript of a recording."""
        return self._load_text(campaign, "transcriptions", recording)

    def get_first_transcription(self, campaign: str) -> Optional[str]:
        """Get the transcript written first, i.e. the campaign's earliest session."""
        path = self._campaign_dir(campaign) / self.DIRS["transcriptions"]
        if not path.is_dir():
            return None

        transcripts = sorted(path.glob("*.txt"), key=lambda f: (f.stat().st_mtime, f.name))
        if not transcripts:
            return None

        with open(transcripts[0], "r", encoding="utf-8") as f:
            return f.read()

    # Epic moments

    def save_epic_moment_tale(self, campaign: str, recording: str, text: str) -> Path:
        """Save the tale written from a recording."""
        return self._save_text(campaign, "epic_moments", recording, text)

    def get_epic_moment_tale(self, campaign: str, recording: str) -> Optional[str]:
        """Get the tale written from a recording."""
        return self._load_text(campaign, "epic_moments", recording)

    def save_epic_moment_video(self, campaign: str, recording: str, video: bytes) -> Path:
        """Save the generated clip of a recording."""
        path = self._asset_dir(campaign, "epic_moments") / f"{self._stem(recording)}.mp4"
        path.write_bytes(video)
        return path

    def get_epic_moment_video_path(self, campaign: str, recording: str) -> Optional[Path]:
        """Path of a recording's generated clip, or None if there is none yet."""
        path = self._campaign_dir(campaign) / self.DIRS["epic_moments"] / f"{self._stem(recording)}.mp4"
        return path if path.exists() else None

    def get_epic_moment_video(self, campaign: str, recording: str) -> Optional[bytes]:
        """Get the generated clip of a recording."""
        path = self.get_epic_moment_video_path(campaign, recording)
        return path.read_bytes() if path else None

    # Characters

    def save_character_summary(self, campaign: str, json_text: str) -> Path:
        """Save the campaign's character list (JSON)."""
        path = self._asset_dir(campaign, "characters") / self.CHARACTER_SUMMARY_FILE
        with open(path, "w", encoding="utf-8") as f:
            f.write(json_text)
        return path

    def get_character_summary(self, campaign: str) -> Optional[str]:
        """Get the campaign's character list (JSON)."""
        path = self._campaign_dir(campaign) / self.DIRS["characters"] / self.CHARACTER_SUMMARY_FILE
        if not path.exists():
            return None

        with open(path, "r", encoding="utf-8") as f:
            return f.read()

    def save_character_portrait(self, campaign: str, character: str, image: bytes) -> Path:
        """Save a character's portrait as PNG."""
        path = self._asset_dir(campaign, "characters") / f"{self._safe_name(character)}.png"
        path.write_bytes(image)
        return path

    def get_character_portrait_path(self, campaign: str, character: str) -> Optional[Path]:
        """Path of a character's portrait, or None if there is none yet."""
        path = self._campaign_dir(campaign) / self.DIRS["characters"] / f"{self._safe_name(character)}.png"
        return path if path.exists() else None

    def get_character_portrait(self, campaign: str, character: str) -> Optional[bytes]:
        """Get a character's portrait."""
        path = self.get_character_portrait_path(campaign, character)
        return path.read_bytes() if path else None

    def _campaign_dir(self, campaign: str) -> Path:
        return self.campaigns_dir / self._safe_name(campaign)

    def _asset_dir(self, campaign: str, kind: str) -> Path:
        path = self._campaign_dir(campaign) / self.DIRS[kind]
        path.mkdir(parents=True, exist_ok=True)
        return path

    def _save_text(self, campaign: str, kind: str, recording: str, text: str) -> Path:
        path = self._asset_dir(campaign, kind) / f"{self._stem(recording)}.txt"
        with open(path, "w", encoding="utf-8") as f:
            f.write(text)
        return path

    def _load_text(self, campaign: str, kind: str, recording: str) -> Optional[str]:
        path = self._campaign_dir(campaign) / self.DIRS[kind] / f"{self._stem(recording)}.txt"
        if not path.exists():
            return None

        with open(path, "r", encoding="utf-8") as f:
            return f.read()

    @classmethod
    def _stem(cls, recording: str) -> str:
        return PurePath(cls._safe_name(recording)).stem

    @staticmethod
    def _safe_name(name: str) -> str:
        """Reject names that could escape their directory."""
        if not name or name in (".", "..") or "/" in name or "\\" in name or ".." in name:
            raise ValueError(f"Invalid name: {name!r}")
        return name
