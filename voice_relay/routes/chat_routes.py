from fastapi import APIRouter, Depends, Request

from voice_relay.models.chat_models import ChatRequest, ChatResponse, ErrorResponse, TTSRequest, TTSResponse
from voice_relay.services.llm_service import ChatRelay
from voice_relay.services.tts_service import SpeechRelay

router = APIRouter()

ERROR_RESPONSES = {status: {"model": ErrorResponse} for status in (400, 500, 502)}


def get_chat_relay(request: Request) -> ChatRelay:
    return request.app.state.chat_relay


def get_speech_relay(request: Request) -> SpeechRelay:
    return request.app.state.speech_relay


@router.post("/api/chat", response_model=ChatResponse, responses=ERROR_RESPONSES)
async def chat(request: ChatRequest, relay: ChatRelay = Depends(get_chat_relay)):
    text = await relay.reply(request)
    return ChatResponse(text=text)


@router.post("/api/tts", response_model=TTSResponse, responses=ERROR_RESPONSES)
@router.post("/api/tts/active", response_model=TTSResponse, responses=ERROR_RESPONSES)
async def tts(request: TTSRequest, relay: SpeechRelay = Depends(get_speech_relay)):
    return await relay.speak(request)


@router.get("/health")
async def health_check(request: Request):
    chat_relay = get_chat_relay(request)
    speech_relay = get_speech_relay(request)
    return {
        "status": "healthy",
        "chat_provider": chat_relay.provider.name,
        "tts_provider": speech_relay.provider.name,
        "chat_configured": chat_relay.provider.configured,
        "tts_configured": speech_relay.provider.configured,
    }
