"""
Root conftest — isolate API key environment variables so that config tests
are not affected by real keys in the developer's or CI environment.
"""
import pytest

_API_KEY_ENV_VARS = [
    "OPENAI_API_KEY",
    "OPENAI_BASE_URL",
    "OLLAMA_BASE_URL",
    "JARVIS_CONFIG",
]


@pytest.fixture(autouse=True)
def _clear_api_keys_from_env(monkeypatch):
    """Remove API key env vars for every test so Settings() behaves as if no
    keys are present unless the test explicitly provides them. Also disables
    .env file loading so a local .env cannot leak real credentials into tests."""
    for var in _API_KEY_ENV_VARS:
        monkeypatch.delenv(var, raising=False)

    import jarvis.config.settings as settings_module
    from pydantic_settings import SettingsConfigDict
    patched_config = SettingsConfigDict(
        env_file=None,
        env_file_encoding="utf-8",
        env_nested_delimiter="__",
        extra="ignore",
        case_sensitive=False,
    )
    monkeypatch.setattr(settings_module.Settings, "model_config", patched_config)
    monkeypatch.setattr(settings_module, "_singleton", None)
