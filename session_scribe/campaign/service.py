"""
Campaign-level features built on the transcription pipeline and the job client.

- Save uploaded session recordings and store their transcripts
- Turn a session transcript into an exaggerated "epic moment" tale with a chat
  model, then into a short video clip with the video generation job API
- Identify the main player characters of a campaign and paint their portraits

``CachedCampaignAnalysisService`` wraps the service and answers from storage
whenever the requested artifact already exists.
"""

import base64
import json
import logging
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Tuple

from ..audio import AudioBuffer, RemoteTranscriber, TranscriptionOrchestrator
from ..cancellation import CancellationToken, run_cancellable
from ..client import VideoJobClient
from ..errors import CharacterNotFoundError, GenerationError, TranscriptNotFoundError
from .storage import CampaignStorage

logger = logging.getLogger(__name__)

BARD_PROMPT = """You are a bard following a group of Dungeons & Dragons heroes, tasked with collecting tales of their most epic moments during their adventures.
Analyze the transcript of this play session and extract a tale of one epic encounter. Recount it as a story or ballad of about 10 sentences.
Exaggerate the details and the facts to make it more interesting and entertaining."""

CHARACTERS_PROMPT = """Analyze the following Dungeons & Dragons session transcript. Identify up to 3 main player characters.
For each character, provide their name and a concise, one-sentence visual description suitable for an AI image generator.
Do not include the Dungeon Master (DM). Focus on physical appearance, class, race, and notable gear mentioned.
Answer with a JSON object of the form {"characters": [{"name": "...", "description": "..."}]}."""

PORTRAIT_PROMPT = "Fantasy character portrait, digital painting, epic, detailed. A D&D character: {description}."

MAX_CHARACTERS = 3


class CampaignAnalysisService:
    """Orchestrates recording transcription, epic moments and character portraits for a campaign."""

    def __init__(
        self,
        storage: CampaignStorage,
        orchestrator: TranscriptionOrchestrator,
        transcriber: RemoteTranscriber,
        video_client: Optional[VideoJobClient] = None,
        chat_client=None,
        chat_model: str = "gpt-4o",
        image_model: str = "gpt-image-1",
    ):
        """
        Initialize the service.

        Args:
            storage: Where recordings, transcripts and artifacts are kept
            orchestrator: Long-recording transcription pipeline
            transcriber: Remote transcription capability handed to the orchestrator
            video_client: Video generation client (required for epic moments)
            chat_client: OpenAI-compatible client used for tales, characters and portraits
            chat_model: Chat model or Azure deployment name
            image_model: Image model or Azure deployment name used for portraits
        """
        self.storage = storage
        self.orchestrator = orchestrator
        self.transcriber = transcriber
        self.video_client = video_client
        self.chat_client = chat_client
        self.chat_model = chat_model
        self.image_model = image_model

    def save_recordings_and_transcribe(
        self,
        campaign: str,
        files: Iterable[Tuple[str, bytes]],
        cancel_token: Optional[CancellationToken] = None,
    ) -> List[str]:
        """
        Store each recording and its transcript.

        Args:
            campaign: Campaign name
            files: (file name, file contents) pairs
            cancel_token: Cancels the transcription in progress

        Returns:
            Recording names (file stems) in upload order
        """
        token = cancel_token or CancellationToken()
        recordings = []
        for file_name, data in files:
            token.raise_if_cancelled()
            stored_name = self.storage.save_recording(campaign, file_name, data)
            logger.info(f"Saved recording {stored_name} for campaign {campaign}")

            transcript = self.orchestrator.transcribe(
                AudioBuffer(data, stored_name), stored_name, self.transcriber, token
            )
            token.raise_if_cancelled()
            self.storage.save_transcription(campaign, stored_name, transcript)
            recordings.append(Path(stored_name).stem)

        return recordings

    def write_epic_moment_tale(self, transcript: str, cancel_token: Optional[CancellationToken] = None) -> str:
        """Ask the chat model for a tale of the session's most epic moment."""
        logger.info(f"Generating epic moment tale using {self.chat_model}...")
        tale = self._chat(BARD_PROMPT, transcript, cancel_token or CancellationToken())
        if not tale.strip():
            raise GenerationError("epic moment tale", "chat model returned an empty answer")
        return tale

    def generate_epic_moment_video(
        self,
        campaign: str,
        recording: str,
        cancel_token: Optional[CancellationToken] = None,
    ) -> Path:
        """
        Write a tale from a recording's transcript and render it as a video clip.

        Returns:
            Path of the stored video

        Raises:
            TranscriptNotFoundError: If the recording has not been transcribed
        """
        if self.video_client is None:
            raise RuntimeError("A video client is required to generate epic moment videos")

        token = cancel_token or CancellationToken()

        transcript = self.storage.get_transcription(campaign, recording)
        if not transcript:
            raise TranscriptNotFoundError(campaign, recording)

        tale = self.write_epic_moment_tale(transcript, token)
        token.raise_if_cancelled()
        self.storage.save_epic_moment_tale(campaign, recording, tale)

        video = self.video_client.generate_video(tale, token)
        token.raise_if_cancelled()

        path = self.storage.save_epic_moment_video(campaign, recording, video)
        logger.info(f"Saved epic moment video for {recording} to {path}")
        return path

    def extract_characters(
        self, campaign: str, cancel_token: Optional[CancellationToken] = None
    ) -> List[Dict[str, str]]:
        """
        Identify the main player characters from the campaign's first session.

        Returns:
            Up to three ``{"name": ..., "description": ...}`` entries, also
            stored as the campaign's character summary

        Raises:
            TranscriptNotFoundError: If no recording of the campaign was transcribed
            GenerationError: If the chat model's answer is not a character list
        """
        token = cancel_token or CancellationToken()

        transcript = self.storage.get_first_transcription(campaign)
        if not transcript:
            raise TranscriptNotFoundError(campaign)

        logger.info(f"Extracting characters of {campaign} using {self.chat_model}...")
        answer = self._chat(CHARACTERS_PROMPT, transcript, token, response_format={"type": "json_object"})
        characters = parse_characters(answer)

        token.raise_if_cancelled()
        self.storage.save_character_summary(campaign, json.dumps(characters, ensure_ascii=False, indent=2))
        logger.info(f"Found {len(characters)} character(s) in {campaign}: {', '.join(c['name'] for c in characters)}")
        return characters

    def generate_character_portrait(
        self,
        campaign: str,
        character_name: str,
        cancel_token: Optional[CancellationToken] = None,
    ) -> Path:
        """
        Paint a portrait of a character from the campaign's character summary.

        Returns:
            Path of the stored PNG

        Raises:
            CharacterNotFoundError: If the character is not in the summary
            GenerationError: If the image model returned no image
        """
        if self.chat_client is None:
            raise RuntimeError("An OpenAI client is required to generate portraits")

        token = cancel_token or CancellationToken()

        summary = self.storage.get_character_summary(campaign)
        characters = parse_characters(summary) if summary else []
        character = next((c for c in characters if c["name"] == character_name), None)
        if character is None:
            raise CharacterNotFoundError(campaign, character_name)

        kwargs = {}
        # DALL-E answers with URLs unless asked otherwise; gpt-image models always return base64
        if self.image_model.startswith("dall-e"):
            kwargs["response_format"] = "b64_json"

        logger.info(f"Painting portrait of {character_name} using {self.image_model}...")
        response = run_cancellable(
            token,
            self.chat_client.images.generate,
            model=self.image_model,
            prompt=PORTRAIT_PROMPT.format(description=character["description"].rstrip(".")),
            size="1024x1024",
            n=1,
            **kwargs,
        )

        data = response.data[0].b64_json if response.data else None
        if not data:
            raise GenerationError(f"portrait of {character_name}", "image model returned no image")

        token.raise_if_cancelled()
        path = self.storage.save_character_portrait(campaign, character_name, base64.b64decode(data))
        logger.info(f"Saved portrait of {character_name} to {path}")
        return path

    def _chat(self, system_prompt: str, user_content: str, token: CancellationToken, **kwargs) -> str:
        if self.chat_client is None:
            raise RuntimeError("A chat client is required to write tales and extract characters")

        response = run_cancellable(
            token,
            self.chat_client.chat.completions.create,
            model=self.chat_model,
            messages=[
                {"role": "system", "content": system_prompt},
                {"role": "user", "content": user_content},
            ],
            **kwargs,
        )
        return response.choices[0].message.content or ""


def parse_characters(answer: str) -> List[Dict[str, str]]:
    """
    Read a character list from a model answer or a stored summary.

    Accepts a bare JSON list or an object with a ``characters`` list.

    Raises:
        GenerationError: If the text is not such a list
    """
    try:
        parsed = json.loads(answer)
    except (TypeError, ValueError) as e:
        raise GenerationError("character list", f"answer is not JSON ({e})") from e

    if isinstance(parsed, dict):
        parsed = parsed.get("characters")
    if not isinstance(parsed, list):
        raise GenerationError("character list", "answer does not contain a list of characters")

    characters = []
    for entry in parsed:
        if not isinstance(entry, dict) or not entry.get("name") or not entry.get("description"):
            raise GenerationError("character list", f"invalid character entry: {entry!r}")
        characters.append({"name": str(entry["name"]), "description": str(entry["description"])})

    return characters[:MAX_CHARACTERS]


class CachedCampaignAnalysisService:
    """
    Serve campaign artifacts from storage when they already exist.

    Every operation first looks for its stored result and only calls the
    wrapped service when there is none.
    """

    def __init__(self, service: CampaignAnalysisService):
        self.service = service
        self.storage = service.storage

    def save_recordings_and_transcribe(
        self,
        campaign: str,
        files: Iterable[Tuple[str, bytes]],
        cancel_token: Optional[CancellationToken] = None,
    ) -> List[str]:
        """Skip the upload when exactly these recordings are already stored."""
        files = list(files)
        uploaded = {Path(file_name).stem for file_name, _ in files}
        stored = set(self.storage.list_recordings(campaign))

        if stored and uploaded == stored:
            logger.info(f"Recordings of {campaign} already stored, skipping transcription")
            return sorted(stored)
        return self.service.save_recordings_and_transcribe(campaign, files, cancel_token)

    def generate_epic_moment_video(
        self,
        campaign: str,
        recording: str,
        cancel_token: Optional[CancellationToken] = None,
    ) -> Path:
        existing = self.storage.get_epic_moment_video_path(campaign, recording)
        if existing is not None:
            logger.info(f"Epic moment video for {recording} already exists: {existing}")
            return existing
        return self.service.generate_epic_moment_video(campaign, recording, cancel_token)

    def extract_characters(
        self, campaign: str, cancel_token: Optional[CancellationToken] = None
    ) -> List[Dict[str, str]]:
        existing = self.storage.get_character_summary(campaign)
        if existing is not None:
            return parse_characters(existing)
        return self.service.extract_characters(campaign, cancel_token)

    def generate_character_portrait(
        self,
        campaign: str,
        character_name: str,
        cancel_token: Optional[CancellationToken] = None,
    ) -> Path:
        existing = self.storage.get_character_portrait_path(campaign, character_name)
        if existing is not None:
            return existing
        return self.service.generate_character_portrait(campaign, character_name, cancel_token)
