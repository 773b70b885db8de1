"""Unit tests for the Responses API transport."""
from __future__ import annotations

from unittest.mock import MagicMock

import httpx
import pytest
from openai import APIConnectionError, BadRequestError

from config import ReasonerConfig
from cua_client import CuaClient
from cua_types import ComputerCallOutput, MessageOutput
from exceptions import ConfigurationError, ReasoningConnectionError, ReasoningError


def _config(**overrides) -> ReasonerConfig:
    values = {
        "api_key": "sk-test",
        "base_url": "https://api.example.com/v1",
        "model": "computer-use-preview",
        "max_retries": 2,
    }
    values.update(overrides)
    return ReasonerConfig(**values)


def _request() -> httpx.Request:
    return httpx.Request("POST", "https://api.example.com/v1/responses")


class TestCuaClient:
    """Tests for CuaClient."""

    def test_missing_api_key_raises(self, monkeypatch):
        monkeypatch.delenv("OPENAI_API_KEY", raising=False)
        with pytest.raises(ConfigurationError):
            CuaClient(_config(api_key=""))

    @pytest.mark.asyncio
    async def test_turn_request_shape(self, mock_openai, payloads):
        payloads.queue(mock_openai, payloads.response(output=[payloads.computer_call()]))
        client = CuaClient(_config(), client=mock_openai)

        output = await client.turn("Goal: x", "https://example.com", extra_text="go ahead")

        assert isinstance(output, ComputerCallOutput)
        kwargs = mock_openai.responses.create.call_args.kwargs
        assert kwargs["model"] == "computer-use-preview"
        assert kwargs["truncation"] == "auto"
        assert "previous_response_id" not in kwargs
        assert kwargs["tools"] == [
            {
                "type": "computer_use_preview",
                "display_width": 1280,
                "display_height": 800,
                "environment": "browser",
            }
        ]
        content = kwargs["input"][0]["content"]
        assert kwargs["input"][0]["role"] == "user"
        assert [part["text"] for part in content] == [
            "Goal: x",
            "current_url=https://example.com",
            "go ahead",
        ]

    @pytest.mark.asyncio
    async def test_tool_omitted_for_other_models(self, mock_openai, payloads):
        payloads.queue(mock_openai, payloads.response(output=[payloads.message("hi")]))
        client = CuaClient(_config(model="gpt-4o"), client=mock_openai)

        output = await client.turn("Goal: x", None, previous="resp_0")

        assert output == MessageOutput(text="hi")
        kwargs = mock_openai.responses.create.call_args.kwargs
        assert "tools" not in kwargs
        assert kwargs["previous_response_id"] == "resp_0"

    @pytest.mark.asyncio
    async def test_observation_reply_shape(self, mock_openai, payloads):
        payloads.queue(mock_openai, payloads.response(output=[payloads.message("ok")]))
        client = CuaClient(_config(), client=mock_openai)
        checks = [{"id": "sc_1", "code": "c", "message": "m"}]

        await client.send_observation("call_1", "QUJD", previous="resp_1", safety_checks=checks)

        kwargs = mock_openai.responses.create.call_args.kwargs
        assert kwargs["previous_response_id"] == "resp_1"
        assert kwargs["input"] == [
            {
                "type": "computer_call_output",
                "call_id": "call_1",
                "output": {
                    "type": "computer_screenshot",
                    "image_url": "data:image/png;base64,QUJD",
                },
                "acknowledged_safety_checks": checks,
            }
        ]

    @pytest.mark.asyncio
    async def test_transient_errors_are_retried(self, mock_openai, payloads, monkeypatch):
        monkeypatch.setattr("asyncio.sleep", _no_sleep)
        ok = MagicMock()
        ok.model_dump.return_value = payloads.response(output=[payloads.message("hi")])
        mock_openai.responses.create.side_effect = [APIConnectionError(request=_request()), ok]
        client = CuaClient(_config(), client=mock_openai)

        output = await client.turn("Goal: x", None)

        assert output == MessageOutput(text="hi")
        assert mock_openai.responses.create.call_count == 2

    @pytest.mark.asyncio
    async def test_exhausted_retries_raise_connection_error(self, mock_openai, monkeypatch):
        monkeypatch.setattr("asyncio.sleep", _no_sleep)
        mock_openai.responses.create.side_effect = APIConnectionError(request=_request())
        client = CuaClient(_config(), client=mock_openai)

        with pytest.raises(ReasoningConnectionError):
            await client.turn("Goal: x", None)
        assert mock_openai.responses.create.call_count == 2

    @pytest.mark.asyncio
    async def test_client_errors_are_not_retried(self, mock_openai):
        response = httpx.Response(400, request=_request())
        mock_openai.responses.create.side_effect = BadRequestError(
            "bad request", response=response, body=None
        )
        client = CuaClient(_config(), client=mock_openai)

        with pytest.raises(ReasoningError):
            await client.turn("Goal: x", None)
        assert mock_openai.responses.create.call_count == 1


async def _no_sleep(_seconds: float) -> None:
    return None
