import logging
from typing import Dict, List, Optional, Sequence

import httpx

from voice_relay.config import Settings
from voice_relay.models.chat_models import ChatRequest, ChatTurn
from voice_relay.utils.error_handler import (
    ConfigurationError,
    EmptyGenerationError,
    MalformedResponseError,
    RelayError,
    RequestValidationFailed,
    UpstreamError,
)

GEMINI_API_BASE_URL = "https://generativelanguage.googleapis.com/v1beta/models"


def _turn(role: str, text: str) -> Dict:
    return {"role": role, "parts": [{"text": text}]}


def build_contents(message: str, history: Sequence[ChatTurn], persona: Optional[str] = None) -> List[Dict]:
    """
    Build the Gemini `contents` list: optional persona preamble, the history
    in order (anything that is not "user" becomes "model"), then the new message.
    """
    contents = []
    if persona:
        contents.append(_turn("user", persona.strip()))
    for turn in history:
        contents.append(_turn("user" if turn.role == "user" else "model", turn.text))
    contents.append(_turn("user", message.strip()))
    return contents


class GenerationProvider:
    """Adapter for a text-generation API."""

    name = "generation"
    credential_name = "API key"

    def __init__(self, api_key: Optional[str], persona: Optional[str] = None):
        self.api_key = api_key
        self.persona = persona

    @property
    def configured(self) -> bool:
        return bool(self.api_key)

    def build_payload(self, message: str, history: Sequence[ChatTurn]) -> Dict:
        raise NotImplementedError

    async def generate(self, client: httpx.AsyncClient, message: str, history: Sequence[ChatTurn]) -> str:
        raise NotImplementedError


class GeminiProvider(GenerationProvider):
    """Gemini generateContent, with the persona sent as the leading user turn."""

    name = "gemini"
    credential_name = "GEMINI_API_KEY"

    def __init__(self, api_key: Optional[str], persona: Optional[str] = None,
                 model: str = "gemini-2.5-flash", temperature: float = 0.7, max_output_tokens: int = 1024):
        super().__init__(api_key, persona)
        self.model = model
        self.temperature = temperature
        self.max_output_tokens = max_output_tokens

    @property
    def url(self) -> str:
        return f"{GEMINI_API_BASE_URL}/{self.model}:generateContent"

    def _generation_config(self) -> Dict:
        return {
            "temperature": self.temperature,
            "maxOutputTokens": self.max_output_tokens,
        }

    def build_payload(self, message: str, history: Sequence[ChatTurn]) -> Dict:
        return {
            "contents": build_contents(message, history, self.persona),
            "generationConfig": self._generation_config(),
        }

    async def generate(self, client: httpx.AsyncClient, message: str, history: Sequence[ChatTurn]) -> str:
        response = await client.post(
            self.url,
            params={"key": self.api_key},
            json=self.build_payload(message, history),
            headers={"Content-Type": "application/json"},
        )

        if response.is_error:
            logging.error(f"Gemini raw error: {response.text}")
            raise UpstreamError("Gemini API error", detail=response.text, status_code=response.status_code)

        try:
            data = response.json()
        except ValueError:
            raise MalformedResponseError("Gemini returned a non-JSON response", raw=response.text)

        text = extract_text(data)
        if not text:
            raise EmptyGenerationError("Gemini returned no content", raw=data)
        return text


class GeminiSystemInstructionProvider(GeminiProvider):
    """Gemini generateContent, with the persona sent as `systemInstruction`."""

    def build_payload(self, message: str, history: Sequence[ChatTurn]) -> Dict:
        payload = {
            "contents": build_contents(message, history),
            "generationConfig": self._generation_config(),
        }
        if self.persona:
            payload["systemInstruction"] = {"parts": [{"text": self.persona.strip()}]}
        return payload


def extract_text(data) -> str:
    """Return candidates[0].content.parts[0].text, stripped, or "" if any step is missing."""
    try:
        text = data["candidates"][0]["content"]["parts"][0]["text"]
    except (KeyError, IndexError, TypeError):
        return ""
    return text.strip() if isinstance(text, str) else ""


def create_generation_provider(settings: Settings) -> GenerationProvider:
    provider_cls = GeminiSystemInstructionProvider if settings.persona_mode == "system_instruction" else GeminiProvider
    return provider_cls(settings.gemini_api_key, persona=settings.persona, model=settings.gemini_model)


class ChatRelay:
    def __init__(self, provider: GenerationProvider, client: httpx.AsyncClient):
        self.provider = provider
        self.client = client

    async def reply(self, request: ChatRequest) -> str:
        if not self.provider.configured:
            raise ConfigurationError(f"{self.provider.credential_name} is not set")

        message = request.message.strip()
        if not message:
            raise RequestValidationFailed("message must be a non-empty string")

        try:
            return await self.provider.generate(self.client, message, request.history)
        except RelayError:
            raise
        except Exception as e:
            logging.exception(f"{self.provider.name} request failed:")
            raise UpstreamError(str(e) or f"Failed to reach {self.provider.name}")
