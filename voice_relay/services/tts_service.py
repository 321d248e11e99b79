import asyncio
import base64
import logging
from typing import Optional, Tuple

import httpx

from voice_relay.config import Settings
from voice_relay.models.chat_models import TTSRequest, TTSResponse
from voice_relay.utils.error_handler import (
    ConfigurationError,
    MalformedResponseError,
    RelayError,
    RequestValidationFailed,
    UpstreamError,
)
from voice_relay.utils.text_cleaning import clamp_speed, resolve_format, sanitize_text, truncate_text

FPT_TTS_URL = "https://api.fpt.ai/hmi/tts/v5"
MURF_TTS_URL = "https://api.murf.ai/v1/speech/generate"


class SpeechProvider:
    """Adapter for a text-to-speech API."""

    name = "speech"
    credential_name = "API key"
    default_voice = ""
    max_chars = 5000
    min_chars = 3
    speed_range: Tuple[float, float] = (-3, 3)
    # used when the caller sends no speed at all
    default_speed = None
    # used when the caller sends something that is not a number
    fallback_speed = None
    sanitize = False

    def __init__(self, api_key: Optional[str]):
        self.api_key = api_key

    @property
    def configured(self) -> bool:
        return bool(self.api_key)

    def prepare_text(self, text: str) -> str:
        text = truncate_text(text, self.max_chars)
        return sanitize_text(text) if self.sanitize else text.strip()

    def resolve_speed(self, speed):
        if speed is None:
            return self.default_speed
        low, high = self.speed_range
        return clamp_speed(speed, low, high, self.fallback_speed)

    def check_voice(self, voice: str) -> None:
        pass

    async def synthesize(self, client: httpx.AsyncClient, text: str, voice: str, format_: str, speed) -> str:
        """Return base64-encoded audio."""
        raise NotImplementedError


class FptSpeechProvider(SpeechProvider):
    """
    FPT.AI TTS v5. The first call only queues the job and hands back an
    `async` URL; the audio appears there once it is rendered, so we poll it.
    """

    name = "fpt"
    credential_name = "FPT_API_KEY"
    default_voice = "linhsan"
    max_chars = 5000
    speed_range = (-3, 3)
    default_speed = 0
    sanitize = True

    def __init__(self, api_key: Optional[str], poll_attempts: int = 10, poll_interval: float = 1.0):
        super().__init__(api_key)
        self.poll_attempts = poll_attempts
        self.poll_interval = poll_interval

    def check_voice(self, voice: str) -> None:
        # the voice travels in an HTTP header, which only carries ASCII
        if not voice.isascii():
            raise RequestValidationFailed(f"Invalid voice: {voice!r}")

    async def synthesize(self, client: httpx.AsyncClient, text: str, voice: str, format_: str, speed) -> str:
        headers = {
            "api-key": self.api_key,
            "voice": voice,
            # empty header lets FPT use its own default speed
            "speed": "" if speed is None else str(speed),
            "format": format_,
            "Cache-Control": "no-cache",
        }
        response = await client.post(FPT_TTS_URL, content=text.encode("utf-8"), headers=headers)

        if response.is_error:
            logging.error(f"FPT TTS raw error: {response.text}")
            raise UpstreamError("FPT TTS error", detail=response.text, status_code=response.status_code)

        try:
            data = response.json()
        except ValueError:
            raise MalformedResponseError("FPT returned a non-JSON response", raw=response.text)

        if not isinstance(data, dict) or "error" not in data:
            raise MalformedResponseError("FPT response has no error code", raw=data)
        if data["error"] != 0:
            logging.error(f"FPT TTS raw error: {data}")
            raise UpstreamError("FPT TTS error", detail=data.get("message") or data)

        async_url = data.get("async")
        if not async_url:
            raise MalformedResponseError("FPT returned no audio link", raw=data)

        audio = await self.fetch_audio(client, async_url)
        return base64.b64encode(audio).decode("ascii")

    async def fetch_audio(self, client: httpx.AsyncClient, url: str) -> bytes:
        for attempt in range(1, self.poll_attempts + 1):
            response = await client.get(url)
            if response.status_code == 200 and response.content:
                return response.content
            logging.info(f"FPT audio not ready (attempt {attempt}/{self.poll_attempts}, status {response.status_code})")
            if attempt < self.poll_attempts:
                await asyncio.sleep(self.poll_interval)
        raise UpstreamError("FPT audio was not ready in time", detail=url, status_code=504)


class MurfSpeechProvider(SpeechProvider):
    """Murf speech/generate, asking for the audio inline as base64."""

    name = "murf"
    credential_name = "MURF_API_KEY"
    default_voice = "en-US-natalie"
    max_chars = 3000
    speed_range = (-50, 50)
    default_speed = 0
    fallback_speed = 0

    async def synthesize(self, client: httpx.AsyncClient, text: str, voice: str, format_: str, speed) -> str:
        payload = {
            "text": text,
            "voiceId": voice,
            "format": format_.upper(),
            "rate": int(speed),
            "encodeAsBase64": True,
        }
        headers = {
            "api-key": self.api_key,
            "accept": "application/json",
            "Content-Type": "application/json",
        }
        response = await client.post(MURF_TTS_URL, json=payload, headers=headers)

        if response.is_error:
            logging.error(f"Murf raw error: {response.text}")
            raise UpstreamError("Murf TTS error", detail=response.text, status_code=response.status_code)

        try:
            data = response.json()
        except ValueError:
            raise MalformedResponseError("Murf returned a non-JSON response", raw=response.text)

        encoded = data.get("encodedAudio") if isinstance(data, dict) else None
        if not encoded or not isinstance(encoded, str):
            raise MalformedResponseError("Murf returned no encoded audio", raw=data)
        return encoded


def create_speech_provider(settings: Settings) -> SpeechProvider:
    if settings.tts_provider == "murf":
        return MurfSpeechProvider(settings.murf_api_key)
    return FptSpeechProvider(
        settings.fpt_api_key,
        poll_attempts=settings.fpt_poll_attempts,
        poll_interval=settings.fpt_poll_interval,
    )


class SpeechRelay:
    def __init__(self, provider: SpeechProvider, client: httpx.AsyncClient):
        self.provider = provider
        self.client = client

    async def speak(self, request: TTSRequest) -> TTSResponse:
        if not self.provider.configured:
            raise ConfigurationError(f"{self.provider.credential_name} is not set")

        if not request.text:
            raise RequestValidationFailed("text must be a non-empty string")

        text = self.provider.prepare_text(request.text)
        if len(text) < self.provider.min_chars:
            raise RequestValidationFailed(f"Text must be at least {self.provider.min_chars} characters")

        voice = request.voice or request.voiceId or self.provider.default_voice
        self.provider.check_voice(voice)
        format_ = resolve_format(request.format)
        speed = self.provider.resolve_speed(request.speed)

        try:
            audio = await self.provider.synthesize(self.client, text, voice, format_, speed)
        except RelayError:
            raise
        except Exception as e:
            logging.exception(f"{self.provider.name} TTS request failed:")
            raise UpstreamError(str(e) or f"Failed to reach {self.provider.name}")

        return TTSResponse(audio=audio, format=format_)
