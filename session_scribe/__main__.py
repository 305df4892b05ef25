"""
Command line entry point.

Usage:
    python -m session_scribe transcribe recordings/session-01.mp3 -o session-01.txt
    python -m session_scribe transcribe recordings/session-01.mp3 --campaign "Curse of Strahd"
    python -m session_scribe epic-moment "Curse of Strahd" session-01
    python -m session_scribe recordings "Curse of Strahd"
    python -m session_scribe characters "Curse of Strahd"
    python -m session_scribe portrait "Curse of Strahd" Ireena
    python -m session_scribe video "A dragon lands on a burning tavern" -o dragon.mp4
"""

import argparse
import logging
import sys
from pathlib import Path

from .audio import AudioBuffer, OpenAITranscriber, TranscriptionOrchestrator
from .campaign import CachedCampaignAnalysisService, CampaignAnalysisService, FileCampaignStorage
from .cancellation import CancellationToken
from .client import ApiKeyCredential, BearerTokenCredential, VideoJobClient
from .config import ConfigManager, StorageSettings, TranscriptionSettings, VideoJobSettings, configure_logging
from .errors import SessionScribeError
from .openai_client import create_openai_client

logger = logging.getLogger("session_scribe")


def _video_client(settings: VideoJobSettings) -> VideoJobClient:
    if settings.api_key:
        credential = ApiKeyCredential(settings.api_key)
    elif ConfigManager.get("VIDEO_BEARER_TOKEN"):
        # Read again on every request so a refreshed token is picked up mid-poll
        credential = BearerTokenCredential(lambda: ConfigManager.get("VIDEO_BEARER_TOKEN"))
    else:
        raise ValueError("Set VIDEO_API_KEY (or AZURE_OPENAI_API_KEY) or VIDEO_BEARER_TOKEN")
    return VideoJobClient(settings, credential)


def _storage(args) -> FileCampaignStorage:
    return FileCampaignStorage(StorageSettings.from_env({"CAMPAIGNS_DIR": args.campaigns_dir}).campaigns_dir)


def _build_service(args, video: bool = False) -> CachedCampaignAnalysisService:
    transcription_settings = TranscriptionSettings.from_env()
    openai_client = create_openai_client()
    service = CampaignAnalysisService(
        storage=_storage(args),
        orchestrator=TranscriptionOrchestrator(transcription_settings),
        transcriber=OpenAITranscriber(openai_client, model=transcription_settings.model, language=args.language),
        video_client=_video_client(VideoJobSettings.from_env()) if video else None,
        chat_client=openai_client,
        chat_model=ConfigManager.get("CHAT_MODEL"),
        image_model=ConfigManager.get("IMAGE_MODEL"),
    )
    return CachedCampaignAnalysisService(service)


def cmd_transcribe(args, token: CancellationToken) -> None:
    audio_path = Path(args.audio)
    if not audio_path.exists():
        raise FileNotFoundError(f"Audio file not found: {audio_path}")

    if args.campaign:
        service = _build_service(args)
        recordings = service.save_recordings_and_transcribe(
            args.campaign, [(audio_path.name, audio_path.read_bytes())], token
        )
        logger.info(f"Transcribed {', '.join(recordings)} into campaign {args.campaign}")
        return

    settings = TranscriptionSettings.from_env({"SEGMENT_MAX_SECONDS": args.segment_seconds})
    transcriber = OpenAITranscriber(create_openai_client(), model=settings.model, language=args.language)
    orchestrator = TranscriptionOrchestrator(settings)
    transcript = orchestrator.transcribe(
        AudioBuffer(audio_path.read_bytes(), audio_path.name), audio_path.name, transcriber, token
    )

    if args.output:
        Path(args.output).write_text(transcript, encoding="utf-8")
        logger.info(f"Transcript saved to {args.output}")
    else:
        print(transcript)


def cmd_epic_moment(args, token: CancellationToken) -> None:
    service = _build_service(args, video=True)
    path = service.generate_epic_moment_video(args.campaign, args.recording, token)
    print(path)


def cmd_recordings(args, token: CancellationToken) -> None:
    for recording in _storage(args).list_recordings(args.campaign):
        print(recording)


def cmd_characters(args, token: CancellationToken) -> None:
    service = _build_service(args)
    for character in service.extract_characters(args.campaign, token):
        print(f"{character['name']}: {character['description']}")


def cmd_portrait(args, token: CancellationToken) -> None:
    service = _build_service(args)
    path = service.generate_character_portrait(args.campaign, args.character, token)
    print(path)


def cmd_video(args, token: CancellationToken) -> None:
    client = _video_client(VideoJobSettings.from_env())
    video = client.generate_video(args.prompt, token)
    Path(args.output).write_bytes(video)
    logger.info(f"Video saved to {args.output} ({len(video)} bytes)")


def main(argv=None) -> int:
    """Main entry point."""
    parser = argparse.ArgumentParser(
        prog="session-scribe",
        description="Transcribe tabletop session recordings and generate epic moment clips",
    )
    parser.add_argument("--log-level", default=None, help="Logging level (default: LOG_LEVEL or INFO)")
    parser.add_argument("--campaigns-dir", default=None, help="Campaign storage root (default: CAMPAIGNS_DIR)")
    parser.add_argument("--language", default=None, help="Language hint for transcription (e.g. en)")
    subparsers = parser.add_subparsers(dest="command", required=True)

    transcribe = subparsers.add_parser("transcribe", help="Transcribe a recording of any length")
    transcribe.add_argument("audio", help="MP3 or WAV recording")
    transcribe.add_argument("-o", "--output", help="Write the transcript to this file instead of stdout")
    transcribe.add_argument("--campaign", help="Store the recording and transcript in this campaign")
    transcribe.add_argument("--segment-seconds", type=float, default=None, help="Maximum segment duration")
    transcribe.set_defaults(handler=cmd_transcribe)

    epic = subparsers.add_parser("epic-moment", help="Write a tale and render a clip from a transcribed recording")
    epic.add_argument("campaign", help="Campaign name")
    epic.add_argument("recording", help="Recording name (file name without extension)")
    epic.set_defaults(handler=cmd_epic_moment)

    recordings = subparsers.add_parser("recordings", help="List the stored recordings of a campaign")
    recordings.add_argument("campaign", help="Campaign name")
    recordings.set_defaults(handler=cmd_recordings)

    characters = subparsers.add_parser("characters", help="Identify the main characters of a campaign")
    characters.add_argument("campaign", help="Campaign name")
    characters.set_defaults(handler=cmd_characters)

    portrait = subparsers.add_parser("portrait", help="Paint the portrait of a campaign character")
    portrait.add_argument("campaign", help="Campaign name")
    portrait.add_argument("character", help="Character name, as listed by the characters command")
    portrait.set_defaults(handler=cmd_portrait)

    video = subparsers.add_parser("video", help="Generate a clip from a prompt")
    video.add_argument("prompt", help="Scene description")
    video.add_argument("-o", "--output", required=True, help="Output MP4 file")
    video.set_defaults(handler=cmd_video)

    args = parser.parse_args(argv)
    configure_logging(args.log_level)

    token = CancellationToken()
    try:
        args.handler(args, token)
    except KeyboardInterrupt:
        token.cancel("Interrupted by user")
        logger.error("Interrupted by user")
        return 130
    except (SessionScribeError, ValueError, FileNotFoundError) as e:
        logger.error(f"{type(e).__name__}: {e}")
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
