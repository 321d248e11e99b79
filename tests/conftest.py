import pytest

from voice_relay.config import Settings


@pytest.fixture
def settings(tmp_path):
    return Settings(
        _env_file=None,
        gemini_api_key="gemini-test-key",
        fpt_api_key="fpt-test-key",
        murf_api_key="murf-test-key",
        fpt_poll_interval=0,
        static_dir=str(tmp_path),
    )
