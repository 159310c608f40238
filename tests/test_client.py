"""
Unit tests for GeminiClient and ContentPart (the SDK is mocked).
"""
from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from pharmacy_ai.core.exceptions import GeminiCallFailedError
from pharmacy_ai.llm.client import (
    ContentPart,
    GeminiClient,
    GeminiConfigurationError,
    resolve_model_name,
)
from pharmacy_ai.llm.runtime import CallRequest, GeminiRuntime


class _BlockedResponse:
    @property
    def text(self):
        raise ValueError("The response.text quick accessor requires a valid Part")


class TestContentPart:

    def test_text_part(self):
        part = ContentPart.from_text("hello")
        assert not part.is_binary
        assert part.to_gemini() == "hello"

    def test_binary_part(self):
        part = ContentPart.from_bytes(b"\x89PNG", "image/png")
        assert part.is_binary
        assert part.to_gemini() == {"mime_type": "image/png", "data": b"\x89PNG"}


class TestResolveModelName:

    def test_default(self):
        assert resolve_model_name(None) == "gemini-2.5-flash"

    def test_strips_models_prefix(self):
        assert resolve_model_name("models/gemini-2.5-pro") == "gemini-2.5-pro"

    def test_retired_alias(self):
        assert resolve_model_name("gemini-1.5-flash") == "gemini-2.5-flash"

    def test_unknown_name_kept(self):
        assert resolve_model_name("gemini-3-flash-preview") == "gemini-3-flash-preview"


class TestGeminiClient:

    @pytest.mark.asyncio
    async def test_missing_key_raises(self):
        client = GeminiClient(api_key="")
        assert not client.is_configured
        with pytest.raises(GeminiConfigurationError):
            await client.generate_content([ContentPart.from_text("hi")])

    @pytest.mark.asyncio
    @patch("pharmacy_ai.llm.client.genai")
    async def test_generate_content(self, mock_genai: MagicMock):
        model = mock_genai.GenerativeModel.return_value
        model.generate_content_async = AsyncMock(return_value=SimpleNamespace(text="Hello there"))

        client = GeminiClient(api_key="test-key", default_model="gemini-2.5-flash", request_timeout=30)
        text = await client.generate_content(
            [ContentPart.from_bytes(b"img", "image/jpeg"), ContentPart.from_text("Read it")],
            system_instruction="You are a pharmacist.",
        )

        assert text == "Hello there"
        mock_genai.configure.assert_called_once_with(api_key="test-key")
        mock_genai.GenerativeModel.assert_called_once_with(
            model_name="gemini-2.5-flash",
            system_instruction="You are a pharmacist.",
        )
        model.generate_content_async.assert_awaited_once_with(
            [{"mime_type": "image/jpeg", "data": b"img"}, "Read it"],
            request_options={"timeout": 30},
        )

    @pytest.mark.asyncio
    @patch("pharmacy_ai.llm.client.genai")
    async def test_configures_sdk_once(self, mock_genai: MagicMock):
        model = mock_genai.GenerativeModel.return_value
        model.generate_content_async = AsyncMock(return_value=SimpleNamespace(text="ok"))

        client = GeminiClient(api_key="test-key")
        await client.generate_content([ContentPart.from_text("a")], model="models/gemini-1.5-pro")
        await client.generate_content([ContentPart.from_text("b")])

        assert mock_genai.configure.call_count == 1
        mock_genai.GenerativeModel.assert_any_call(model_name="gemini-2.5-pro")

    @pytest.mark.asyncio
    @patch("pharmacy_ai.llm.client.genai")
    async def test_blocked_reply_is_empty_text(self, mock_genai: MagicMock):
        model = mock_genai.GenerativeModel.return_value
        model.generate_content_async = AsyncMock(return_value=_BlockedResponse())

        client = GeminiClient(api_key="test-key")
        assert await client.generate_content([ContentPart.from_text("a")]) == ""

    @pytest.mark.asyncio
    async def test_runtime_without_key_fails_after_one_attempt(self, clock):
        runtime = GeminiRuntime(GeminiClient(api_key=""), clock=clock)

        with pytest.raises(GeminiCallFailedError) as exc_info:
            await runtime.generate_text(CallRequest(
                parts=[ContentPart.from_text("hi")],
                cache_key="chat:no-key",
            ))

        assert exc_info.value.attempts == 1
        assert exc_info.value.upstream_message == "GEMINI_API_KEY is not set"
        assert len(runtime.cache) == 0
        assert clock.sleeps == []
