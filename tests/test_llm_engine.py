"""
Tests for the LiteLLM call helpers and the provider registry.
"""

from unittest.mock import AsyncMock, patch

import pytest

from qna.engines import call_llm, create_llm_config, extract_json, get_response_text
from qna.llm import get_default_config, get_model_config, validate_provider_setup


class TestProviderRegistry:

    def test_model_config_merges_provider(self):
        config = get_model_config("openai", "gpt-4o")
        assert config["model"] == "openai/gpt-4o"
        assert config["provider"] == "openai"

    def test_unknown_model(self):
        with pytest.raises(ValueError):
            get_model_config("openai", "not-a-model")

    def test_roles(self):
        assert get_default_config("questions") == ("openai", "gpt-4o")
        with pytest.raises(ValueError):
            get_default_config("poetry")

    def test_validate_setup_reports_missing_key(self, monkeypatch):
        monkeypatch.delenv("OPENAI_API_KEY", raising=False)
        result = validate_provider_setup("openai", "gpt-4o")
        assert result["valid"]
        assert result["missing_env_vars"] == ["OPENAI_API_KEY"]


class TestLLMConfig:

    def test_missing_api_key(self, monkeypatch):
        monkeypatch.delenv("OPENAI_API_KEY", raising=False)
        with pytest.raises(ValueError, match="OPENAI_API_KEY"):
            create_llm_config("openai", "gpt-4o")

    def test_overrides(self, monkeypatch):
        monkeypatch.setenv("OPENAI_API_KEY", "sk-test")
        config = create_llm_config("openai", "gpt-4o", temperature=0.1)
        assert config["api_key"] == "sk-test"
        assert config["temperature"] == 0.1

    @pytest.mark.asyncio
    async def test_call_llm_passes_extra_options(self, monkeypatch):
        monkeypatch.setenv("OPENAI_API_KEY", "sk-test")
        with patch("qna.engines.llm_engine.litellm.acompletion", new=AsyncMock(return_value="reply")) as completion:
            result = await call_llm(
                [{"role": "user", "content": "hi"}], "openai", "o3-mini",
                response_format={"type": "json_object"},
            )

        assert result == "reply"
        kwargs = completion.await_args.kwargs
        assert kwargs["model"] == "openai/o3-mini"
        assert kwargs["api_key"] == "sk-test"
        assert kwargs["reasoning_effort"] == "medium"
        assert kwargs["response_format"] == {"type": "json_object"}
        assert "provider" not in kwargs


class TestExtractJson:

    def test_plain_and_fenced(self):
        assert extract_json('{"a": 1}') == {"a": 1}
        assert extract_json('```json\n{"a": 1}\n```') == {"a": 1}

    def test_embedded_object(self):
        assert extract_json('Here you go: {"a": [1, 2]} hope that helps') == {"a": [1, 2]}

    @pytest.mark.parametrize("text", ["", "   ", None, "no braces", "[1]"])
    def test_rejects(self, text):
        with pytest.raises(ValueError):
            extract_json(text)

    def test_response_text(self, llm_response):
        assert get_response_text(llm_response('{"a": 1}')) == '{"a": 1}'
