from typing import Any, List, Optional

from pydantic import BaseModel


class ChatTurn(BaseModel):
    role: Optional[str] = None
    text: str


class ChatRequest(BaseModel):
    message: str
    history: List[ChatTurn] = []


class ChatResponse(BaseModel):
    text: str


class TTSRequest(BaseModel):
    text: str
    voice: Optional[str] = None
    voiceId: Optional[str] = None
    format: Optional[str] = "mp3"
    # Resolved per provider; anything non-numeric falls back to its default
    speed: Any = None


class TTSResponse(BaseModel):
    audio: str
    format: str


class ErrorResponse(BaseModel):
    error: str
    detail: Optional[Any] = None
    raw: Optional[Any] = None
