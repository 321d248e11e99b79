import uvicorn

from voice_relay.config import Settings
from voice_relay.main import create_app

settings = Settings()
app = create_app(settings)

if __name__ == "__main__":
    uvicorn.run(app, host=settings.host, port=settings.port)
