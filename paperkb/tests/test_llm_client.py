"""Tests for LLMClient provider abstraction."""

import asyncio
import pytest
from unittest.mock import MagicMock, patch

from paperkb.common.llm_client import LLMClient, TextGenerator


class TestLLMClientInit:
    def test_missing_groq_key_logs_info(self, caplog):
        import logging
        with caplog.at_level(logging.INFO, logger="paperkb.common.llm_client"):
            client = LLMClient(provider="groq")
        assert not client.is_available
        assert "API key not provided" in caplog.text

    def test_missing_anthropic_key_logs_info(self, caplog):
        import logging
        with caplog.at_level(logging.INFO, logger="paperkb.common.llm_client"):
            client = LLMClient(provider="anthropic")
        assert not client.is_available
        assert "API key not provided" in caplog.text

    def test_unsupported_provider_logs_warning(self, caplog):
        import logging
        with caplog.at_level(logging.WARNING, logger="paperkb.common.llm_client"):
            client = LLMClient(provider="unsupported_xyz")
        assert not client.is_available
        assert "Unsupported" in caplog.text

    def test_groq_uses_openai_compatible_endpoint(self):
        with patch("openai.OpenAI") as mock_openai:
            client = LLMClient(provider="groq", model="llama3-8b-8192", groq_api_key="gsk-test")
        assert client.is_available
        _, kwargs = mock_openai.call_args
        assert kwargs["api_key"] == "gsk-test"
        assert "api.groq.com" in kwargs["base_url"]

    def test_from_config(self):
        from paperkb.common.config import LLMConfig
        cfg = LLMConfig(provider="openai", openai_model="gpt-4o-mini", timeout=12.0)
        client = LLMClient.from_config(cfg)
        assert client.provider == "openai"
        assert client.model == "gpt-4o-mini"
        assert client.timeout == 12.0
        assert not client.is_available

    def test_satisfies_text_generator_protocol(self):
        assert isinstance(LLMClient(provider="groq"), TextGenerator)


class TestLLMClientGenerate:
    def test_generate_raises_when_unavailable(self):
        client = LLMClient(provider="anthropic")
        with pytest.raises(RuntimeError, match="not available"):
            client.generate("test")

    def test_generate_openai_compatible(self):
        with patch("openai.OpenAI"):
            client = LLMClient(provider="groq", model="llama3-8b-8192", groq_api_key="gsk-test")

        response = MagicMock()
        response.choices[0].message.content = "  an answer  "
        client._client.chat.completions.create.return_value = response

        assert client.generate("question", system="be brief", max_tokens=50) == "an answer"
        _, kwargs = client._client.chat.completions.create.call_args
        assert kwargs["model"] == "llama3-8b-8192"
        assert kwargs["max_tokens"] == 50
        assert kwargs["messages"][0] == {"role": "system", "content": "be brief"}

    @pytest.mark.asyncio
    async def test_complete_raises_when_unavailable(self):
        client = LLMClient(provider="groq")
        with pytest.raises(RuntimeError, match="not available"):
            await client.complete("test")

    @pytest.mark.asyncio
    async def test_complete_runs_generate(self):
        with patch("openai.OpenAI"):
            client = LLMClient(provider="openai", model="gpt-4o-mini", openai_api_key="sk-test")

        with patch.object(client, "generate", return_value="done") as mock_generate:
            result = await client.complete("prompt", max_tokens=100, temperature=0.1)

        assert result == "done"
        _, kwargs = mock_generate.call_args
        assert kwargs["max_tokens"] == 100
        assert kwargs["temperature"] == 0.1

    @pytest.mark.asyncio
    async def test_complete_times_out(self):
        import time
        with patch("openai.OpenAI"):
            client = LLMClient(provider="openai", model="gpt-4o-mini", openai_api_key="sk-test", timeout=0.05)

        with patch.object(client, "generate", side_effect=lambda *a, **k: time.sleep(0.5)):
            with pytest.raises(asyncio.TimeoutError):
                await client.complete("prompt")
