import logging
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Optional

import httpx
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import FileResponse
from fastapi.staticfiles import StaticFiles

from voice_relay.config import Settings
from voice_relay.routes import chat_routes
from voice_relay.services.llm_service import ChatRelay, create_generation_provider
from voice_relay.services.tts_service import SpeechRelay, create_speech_provider
from voice_relay.utils.error_handler import create_error_response, register_error_handlers


def create_app(settings: Optional[Settings] = None, http_client: Optional[httpx.AsyncClient] = None) -> FastAPI:
    """
    Build the relay app. Pass `http_client` to route provider calls through
    your own client (it is then left open on shutdown).
    """
    settings = settings or Settings()

    # --- Configure logging ---
    logging.basicConfig(
        level=getattr(logging, settings.log_level.upper(), logging.INFO),
        format="%(asctime)s - %(levelname)s - %(message)s",
    )

    generation_provider = create_generation_provider(settings)
    speech_provider = create_speech_provider(settings)

    # Log keys presence (no actual values for safety)
    logging.info(f"GEMINI_API_KEY loaded: {generation_provider.configured}")
    logging.info(f"{speech_provider.credential_name} loaded: {speech_provider.configured}")
    if not generation_provider.configured:
        logging.warning("GEMINI_API_KEY not found in environment. Chat requests will fail.")
    if not speech_provider.configured:
        logging.warning(f"{speech_provider.credential_name} not found in environment. TTS requests will fail.")

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        client = http_client if http_client is not None else httpx.AsyncClient(timeout=settings.http_timeout)
        app.state.chat_relay = ChatRelay(generation_provider, client)
        app.state.speech_relay = SpeechRelay(speech_provider, client)
        try:
            yield
        finally:
            if http_client is None:
                await client.aclose()

    app = FastAPI(title="Voice Relay", lifespan=lifespan)
    app.state.settings = settings

    # --- CORS ---
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.allowed_origins_list,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    register_error_handlers(app)
    app.include_router(chat_routes.router)

    # --- Serve the browser client ---
    static_dir = Path(settings.static_dir)
    index_file = static_dir / "index.html"

    @app.get("/", response_class=FileResponse)
    async def get_index():
        if not index_file.is_file():
            return create_error_response(404, "Client page not found")
        return FileResponse(index_file)

    if static_dir.is_dir():
        app.mount("/static", StaticFiles(directory=static_dir), name="static")

    return app
