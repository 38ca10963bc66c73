"""Unit tests for settings, logging setup and dependency wiring."""

import logging

import pytest

from carrot.application.services.usage_tracker import UsageTracker
from carrot.config import Settings
from carrot.infrastructure.bedrock import BedrockBackend
from carrot.infrastructure.dependencies import (
    create_agent,
    create_backend,
    create_history,
    create_orchestrator,
)
from carrot.infrastructure.logging.log_config import setup_logging
from carrot.infrastructure.ollama import OllamaBackend


def _settings(**overrides) -> Settings:
    return Settings(_env_file=None, **overrides)


def test_settings_defaults():
    settings = _settings()

    assert settings.provider == "ollama"
    assert settings.ollama_base_url == "http://localhost:11434"
    assert settings.bedrock_default_model == "meta.llama3-70b-instruct-v1:0"
    assert settings.default_retries == 3
    assert settings.agent_max_iterations == 10
    assert settings.history_max_messages == 100


def test_settings_read_prefixed_environment(monkeypatch):
    """CARROT_* variables override defaults."""
    monkeypatch.setenv("CARROT_PROVIDER", "bedrock")
    monkeypatch.setenv("CARROT_BEDROCK_REGION", "eu-west-1")
    monkeypatch.setenv("CARROT_DEFAULT_RETRIES", "5")

    settings = _settings()

    assert settings.provider == "bedrock"
    assert settings.bedrock_region == "eu-west-1"
    assert settings.default_retries == 5


def test_settings_env_file_is_dotenv():
    assert Settings.model_config.get("env_file") == ".env"
    assert Settings.model_config.get("env_prefix") == "CARROT_"


def test_create_backend_selects_ollama():
    backend = create_backend(_settings(ollama_default_model="mistral"))

    assert isinstance(backend, OllamaBackend)
    assert backend.backend_name == "ollama"
    assert backend.default_model == "mistral"


def test_create_backend_selects_bedrock():
    backend = create_backend(_settings(provider="bedrock"))

    assert isinstance(backend, BedrockBackend)
    assert backend.default_model == "meta.llama3-70b-instruct-v1:0"


def test_create_orchestrator_uses_settings():
    tracker = UsageTracker()
    orchestrator = create_orchestrator(_settings(), on_usage=tracker)

    assert orchestrator.default_model == "llama3"
    assert orchestrator.backend.backend_name == "ollama"


def test_create_history_and_agent_use_configured_sizes():
    settings = _settings(history_max_messages=7, agent_history_size=4)

    assert create_history(settings).max_messages == 7
    assert create_agent(settings).history.max_messages == 4


def test_setup_logging_applies_category_levels():
    setup_logging(_settings(log_level_http="ERROR", log_level_agent="DEBUG"))

    assert logging.getLogger("httpx").level == logging.ERROR
    assert logging.getLogger("carrot.application.services").level == logging.DEBUG


@pytest.mark.parametrize("raw", ["nonsense", ""])
def test_setup_logging_unknown_level_falls_back_to_info(raw):
    setup_logging(_settings(log_level_backend=raw))

    assert logging.getLogger("carrot.infrastructure.ollama").level == logging.INFO
