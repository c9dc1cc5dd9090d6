"""Tests for the inference backend adapters."""

from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from reqagent.core.exceptions import AdapterError
from reqagent.models.schemas import ProviderConfig, ProviderKind
from reqagent.providers.base import ChatMessage, ExecutionRequest, ResponseFormat
from reqagent.providers.ollama_provider import DEFAULT_OLLAMA_ENDPOINT, OllamaProvider
from reqagent.providers.openai_provider import OpenAIProvider
from reqagent.providers.registry import create_adapter, get_adapter_class, list_registered_kinds
from reqagent.providers.vllm_provider import VLLMProvider


def chat_request(**kwargs) -> ExecutionRequest:
    return ExecutionRequest(
        messages=[
            ChatMessage(role="system", content="You are helpful."),
            ChatMessage(role="user", content="Say hi"),
        ],
        **kwargs,
    )


def completion_response(content='{"ok": true}', model="served-model"):
    """Object shaped like an OpenAI/LiteLLM chat completion."""
    return SimpleNamespace(
        choices=[SimpleNamespace(message=SimpleNamespace(content=content))],
        usage=SimpleNamespace(prompt_tokens=12, completion_tokens=8, total_tokens=20),
        model=model,
    )


class TestRegistry:
    """Tests for the adapter registry."""

    def test_builtin_kinds_registered(self):
        kinds = set(list_registered_kinds())
        assert {ProviderKind.OPENAI, ProviderKind.VLLM, ProviderKind.OLLAMA} <= kinds

    def test_adapter_classes(self):
        assert get_adapter_class(ProviderKind.OPENAI) is OpenAIProvider
        assert get_adapter_class(ProviderKind.VLLM) is VLLMProvider
        assert get_adapter_class(ProviderKind.OLLAMA) is OllamaProvider

    def test_create_adapter(self):
        adapter = create_adapter(ProviderConfig(name="local", kind=ProviderKind.OLLAMA, models="llama3"))
        assert isinstance(adapter, OllamaProvider)
        assert adapter.name == "local"
        assert adapter.default_model == "llama3"

    def test_create_vllm_without_endpoint_fails(self):
        with pytest.raises(ValueError):
            create_adapter(ProviderConfig(name="gpu", kind=ProviderKind.VLLM, models="qwen"))

    def test_missing_model_is_adapter_error(self):
        adapter = OllamaProvider(ProviderConfig(name="bare", kind=ProviderKind.OLLAMA))
        with pytest.raises(AdapterError):
            adapter.resolve_model(chat_request())


class TestOpenAIProvider:
    """Tests for the OpenAI adapter."""

    @pytest.fixture
    def client(self):
        client = MagicMock()
        client.chat.completions.create = AsyncMock(return_value=completion_response())
        return client

    @pytest.fixture
    def provider(self, client):
        config = ProviderConfig(name="openai", kind=ProviderKind.OPENAI, api_key="sk-test", models="gpt-4o-mini")
        return OpenAIProvider(config, client=client)

    @pytest.mark.asyncio
    async def test_complete_normalizes_response(self, provider, client):
        result = await provider.complete(chat_request(temperature=0.2, max_tokens=100))

        assert result.content == '{"ok": true}'
        assert result.usage.prompt_tokens == 12
        assert result.usage.completion_tokens == 8
        assert result.usage.total_tokens == 20
        assert result.resolved_model == "served-model"
        assert result.provider_name == "openai"

        kwargs = client.chat.completions.create.call_args.kwargs
        assert kwargs["model"] == "gpt-4o-mini"
        assert kwargs["temperature"] == 0.2
        assert kwargs["max_tokens"] == 100
        assert kwargs["messages"][1] == {"role": "user", "content": "Say hi"}
        assert "response_format" not in kwargs

    @pytest.mark.asyncio
    async def test_json_mode_sets_response_format(self, provider, client):
        await provider.complete(chat_request(model="gpt-4o", response_format=ResponseFormat.JSON_OBJECT))

        kwargs = client.chat.completions.create.call_args.kwargs
        assert kwargs["model"] == "gpt-4o"
        assert kwargs["response_format"] == {"type": "json_object"}

    @pytest.mark.asyncio
    async def test_sdk_error_becomes_adapter_error(self, provider, client):
        client.chat.completions.create.side_effect = RuntimeError("401 invalid api key")

        with pytest.raises(AdapterError) as exc_info:
            await provider.complete(chat_request())
        assert exc_info.value.provider_name == "openai"
        assert "401" in str(exc_info.value)

    @pytest.mark.asyncio
    async def test_empty_choices(self, provider, client):
        client.chat.completions.create.return_value = SimpleNamespace(choices=[], usage=None, model="x")

        with pytest.raises(AdapterError):
            await provider.complete(chat_request())

    @pytest.mark.asyncio
    async def test_health_probe(self, provider, client):
        client.models.list = AsyncMock(return_value=[])
        assert await provider.is_healthy()

        client.models.list.side_effect = RuntimeError("down")
        assert not await provider.is_healthy()


class TestVLLMProvider:
    """Tests for the vLLM adapter."""

    @pytest.fixture
    def provider(self):
        config = ProviderConfig(
            name="gpu-box", kind=ProviderKind.VLLM, endpoint="http://gpu:8000/", models="Qwen/Qwen2-7B"
        )
        return VLLMProvider(config)

    def test_base_url_appends_v1(self, provider):
        assert provider.base_url == "http://gpu:8000/v1"

    def test_base_url_keeps_existing_v1(self):
        config = ProviderConfig(name="gpu", kind=ProviderKind.VLLM, endpoint="http://gpu:8000/v1")
        assert VLLMProvider(config).base_url == "http://gpu:8000/v1"

    def test_litellm_prefix(self):
        assert VLLMProvider.get_litellm_model("llama") == "openai/llama"
        assert VLLMProvider.get_litellm_model("openai/llama") == "openai/llama"

    @pytest.mark.asyncio
    async def test_complete_goes_through_litellm(self, provider):
        mock_completion = AsyncMock(return_value=completion_response(model="Qwen/Qwen2-7B"))
        with patch("reqagent.providers.vllm_provider.acompletion", mock_completion):
            result = await provider.complete(chat_request(response_format=ResponseFormat.JSON_OBJECT))

        kwargs = mock_completion.call_args.kwargs
        assert kwargs["model"] == "openai/Qwen/Qwen2-7B"
        assert kwargs["api_base"] == "http://gpu:8000/v1"
        assert kwargs["api_key"] == "EMPTY"
        assert kwargs["response_format"] == {"type": "json_object"}
        assert result.usage.total_tokens == 20
        assert result.resolved_model == "Qwen/Qwen2-7B"

    @pytest.mark.asyncio
    async def test_litellm_error_becomes_adapter_error(self, provider):
        mock_completion = AsyncMock(side_effect=ConnectionError("connection refused"))
        with patch("reqagent.providers.vllm_provider.acompletion", mock_completion):
            with pytest.raises(AdapterError):
                await provider.complete(chat_request())

    @pytest.mark.asyncio
    async def test_malformed_response(self, provider):
        mock_completion = AsyncMock(return_value=SimpleNamespace(choices=[]))
        with patch("reqagent.providers.vllm_provider.acompletion", mock_completion):
            with pytest.raises(AdapterError):
                await provider.complete(chat_request())


class TestOllamaProvider:
    """Tests for the Ollama adapter."""

    @pytest.fixture
    def provider(self):
        return OllamaProvider(ProviderConfig(name="ollama", kind=ProviderKind.OLLAMA, models="llama3"))

    def test_default_endpoint(self, provider):
        assert provider.base_url == DEFAULT_OLLAMA_ENDPOINT

    def test_base_url_strips_v1(self):
        config = ProviderConfig(name="o", kind=ProviderKind.OLLAMA, endpoint="http://box:11434/v1/")
        assert OllamaProvider(config).base_url == "http://box:11434"

    def test_build_payload(self, provider):
        payload = provider._build_payload(
            chat_request(temperature=0.3, max_tokens=256, response_format=ResponseFormat.JSON_OBJECT)
        )
        assert payload["model"] == "llama3"
        assert payload["stream"] is False
        assert payload["options"] == {"temperature": 0.3, "num_predict": 256}
        assert payload["format"] == "json"

    def test_build_payload_plain_text(self, provider):
        payload = provider._build_payload(chat_request())
        assert "options" not in payload
        assert "format" not in payload

    @staticmethod
    def mock_http_client(data=None, error=None):
        response = MagicMock()
        response.json.return_value = data
        response.raise_for_status = MagicMock()
        client = MagicMock()
        client.__aenter__.return_value = client
        client.__aexit__.return_value = False
        client.post = AsyncMock(return_value=response, side_effect=error)
        return client

    @pytest.mark.asyncio
    async def test_complete_sums_tokens(self, provider):
        client = self.mock_http_client({
            "model": "llama3:8b",
            "message": {"role": "assistant", "content": '{"requirements": []}'},
            "prompt_eval_count": 30,
            "eval_count": 12,
        })
        with patch("reqagent.providers.ollama_provider.httpx.AsyncClient", return_value=client):
            result = await provider.complete(chat_request())

        assert client.post.call_args.args[0] == f"{DEFAULT_OLLAMA_ENDPOINT}/api/chat"
        assert result.content == '{"requirements": []}'
        assert result.usage.prompt_tokens == 30
        assert result.usage.completion_tokens == 12
        assert result.usage.total_tokens == 42
        assert result.resolved_model == "llama3:8b"

    @pytest.mark.asyncio
    async def test_missing_message(self, provider):
        client = self.mock_http_client({"model": "llama3", "done": True})
        with patch("reqagent.providers.ollama_provider.httpx.AsyncClient", return_value=client):
            with pytest.raises(AdapterError):
                await provider.complete(chat_request())

    @pytest.mark.asyncio
    async def test_transport_error(self, provider):
        client = self.mock_http_client(error=ConnectionError("refused"))
        with patch("reqagent.providers.ollama_provider.httpx.AsyncClient", return_value=client):
            with pytest.raises(AdapterError):
                await provider.complete(chat_request())
