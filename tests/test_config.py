import pytest

from quiz_video.config import load_settings
from quiz_video.errors import ConfigurationError


def test_defaults():
    settings = load_settings(_env_file=None)

    assert settings.PORT == 3000
    assert settings.STAGING_SERVER_PORT == 3001
    assert settings.duration_in_frames == 300
    assert settings.REMOTION_COMPOSITION_ID == "QuizScene"
    assert settings.TTS_DEFAULT_VOICE == "nova"


def test_missing_bucket_is_configuration_error(monkeypatch):
    monkeypatch.delenv("GCS_BUCKET", raising=False)

    with pytest.raises(ConfigurationError) as exc_info:
        load_settings(_env_file=None)

    assert "GCS_BUCKET" in str(exc_info.value)


def test_missing_azure_credentials(monkeypatch):
    monkeypatch.delenv("AZURE_OPENAI_API_KEY", raising=False)

    with pytest.raises(ConfigurationError):
        load_settings(_env_file=None, TTS_PROVIDER="azure_openai")


def test_openai_provider_requires_key(monkeypatch):
    monkeypatch.delenv("OPENAI_API_KEY", raising=False)

    with pytest.raises(ConfigurationError):
        load_settings(_env_file=None, TTS_PROVIDER="openai")


def test_unknown_provider():
    with pytest.raises(ConfigurationError):
        load_settings(_env_file=None, TTS_PROVIDER="polly")
