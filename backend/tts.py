"""ElevenLabs text-to-speech over its REST API."""

import logging
from typing import Optional

import httpx

from api_keys import api_keys_manager

logger = logging.getLogger(__name__)

ELEVENLABS_BASE_URL = "https://api.elevenlabs.io/v1"
DEFAULT_VOICE_ID = "JBFqnCBsd6RMkjVDRZzb"  # George
DEFAULT_MODEL_ID = "eleven_multilingual_v2"
OUTPUT_FORMAT = "mp3_44100_128"


class TTSError(Exception):
    """Speech synthesis failed or is not configured."""


def text_to_speech(text: str, voice_id: Optional[str] = None, model_id: str = DEFAULT_MODEL_ID,
                   timeout: float = 60.0) -> bytes:
    """Synthesize ``text`` and return the MP3 bytes."""
    api_key = api_keys_manager.get_key("elevenlabs")
    if not api_key:
        raise TTSError("ELEVENLABS_API_KEY not set")

    voice_id = voice_id or DEFAULT_VOICE_ID
    try:
        response = httpx.post(
            f"{ELEVENLABS_BASE_URL}/text-to-speech/{voice_id}",
            params={"output_format": OUTPUT_FORMAT},
            headers={"xi-api-key": api_key, "Accept": "audio/mpeg"},
            json={"text": text, "model_id": model_id},
            timeout=timeout,
        )
        response.raise_for_status()
    except httpx.HTTPStatusError as e:
        raise TTSError(f"ElevenLabs API error: {e.response.status_code}") from e
    except httpx.HTTPError as e:
        raise TTSError(f"ElevenLabs request failed: {e}") from e

    logger.info(f"Synthesized {len(text)} chars into {len(response.content)} bytes (voice={voice_id})")
    return response.content
