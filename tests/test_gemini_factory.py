"""Tests for the per-run Gemini client factory."""

import pytest
from unittest.mock import patch

from comic_genesis.core import settings as settings_module
from comic_genesis.core.exceptions import ConfigurationError
from comic_genesis.core.gemini_factory import (
    GeminiNotConfiguredError,
    build_gemini_client,
    resolve_api_key,
)


class TestGeminiNotConfiguredError:
    def test_is_configuration_error(self):
        assert isinstance(GeminiNotConfiguredError(), ConfigurationError)

    def test_has_helpful_message(self):
        assert "GEMINI_API_KEY" in str(GeminiNotConfiguredError())


class TestResolveApiKey:
    def test_explicit_key_wins(self, monkeypatch):
        monkeypatch.setattr(settings_module.settings, "gemini_api_key", "default-key")
        assert resolve_api_key("run-key") == "run-key"

    def test_falls_back_to_settings(self, monkeypatch):
        monkeypatch.setattr(settings_module.settings, "gemini_api_key", "default-key")
        assert resolve_api_key(None) == "default-key"
        assert resolve_api_key("   ") == "default-key"

    def test_raises_when_no_key(self):
        with pytest.raises(GeminiNotConfiguredError):
            resolve_api_key(None)


class TestBuildGeminiClient:
    def test_raises_when_no_credentials(self):
        with pytest.raises(GeminiNotConfiguredError):
            build_gemini_client()

    def test_builds_client_with_api_key(self, monkeypatch):
        monkeypatch.setattr(settings_module.settings, "gemini_text_model", "text-model")
        monkeypatch.setattr(settings_module.settings, "gemini_image_model", "image-model")

        with patch("comic_genesis.services.gemini.genai") as mock_genai:
            client = build_gemini_client("run-key")

        assert mock_genai.Client.call_args.kwargs["api_key"] == "run-key"
        assert client._text_model == "text-model"
        assert client._image_model == "image-model"
