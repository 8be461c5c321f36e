"""
ElevenLabs text-to-speech

POST {base}/text-to-speech/{voice_id} returns MP3 bytes.
"""
from __future__ import annotations

import logging

import httpx

from app.api.errors import AppError
from app.core.config import settings

logger = logging.getLogger(__name__)

# Smallest valid MPEG frame header, enough for clients that sniff the type
MOCK_AUDIO = b"\xff\xfb\x90\x64" + b"\x00" * 413


class TtsClient:
    def __init__(self) -> None:
        self._mock = settings.TTS_MOCK
        self._base_url = settings.ELEVENLABS_BASE_URL.rstrip("/")
        self._api_key = settings.ELEVENLABS_API_KEY
        self.default_voice_id = settings.ELEVENLABS_DEFAULT_VOICE_ID

    def synthesize(self, *, text: str, voice_id: str | None = None) -> bytes:
        """
        Render text to speech

        Args:
            text: text to speak
            voice_id: ElevenLabs voice, the default voice when omitted

        Returns:
            MP3 bytes

        Raises:
            AppError: 502701 on HTTP failure, 500701 without an API key
        """
        if self._mock:
            return MOCK_AUDIO
        if not self._api_key:
            raise AppError(code=500701, message="ELEVENLABS_API_KEY not configured", status_code=500)
        body = {
            "text": text,
            "model_id": settings.ELEVENLABS_MODEL_ID,
            "voice_settings": {"stability": 0.5, "similarity_boost": 0.75},
        }
        url = f"{self._base_url}/text-to-speech/{voice_id or self.default_voice_id}"
        try:
            with httpx.Client(timeout=60) as client:
                r = client.post(url, json=body, headers={
                    "xi-api-key": self._api_key,
                    "Accept": "audio/mpeg",
                    "Content-Type": "application/json",
                })
                r.raise_for_status()
        except httpx.HTTPError as e:
            raise AppError(code=502701, message=f"TTS error: {e}", status_code=502)
        return r.content


tts_client = TtsClient()
