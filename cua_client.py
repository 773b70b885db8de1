"""Transport for the OpenAI computer-use Responses API."""
from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional

from openai import (
    APIConnectionError,
    APIError,
    APITimeoutError,
    AsyncOpenAI,
    InternalServerError,
    RateLimitError,
)
from tenacity import (
    AsyncRetrying,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from config.models import ReasonerConfig
from cua_types import CuaOutput, parse_response
from exceptions import ConfigurationError, ReasoningConnectionError, ReasoningError

_TRANSIENT_ERRORS = (
    APIConnectionError,
    APITimeoutError,
    RateLimitError,
    InternalServerError,
)


class CuaClient:
    """Sends new turns and observation replies, and decodes the service output."""

    def __init__(
        self,
        config: ReasonerConfig,
        client: Optional[AsyncOpenAI] = None,
        logger: Optional[logging.Logger] = None,
    ):
        self.config = config
        self.logger = logger or logging.getLogger("cua_client")

        if client is None:
            if not config.api_key:
                raise ConfigurationError(
                    "OPENAI_API_KEY is not set",
                    details={"base_url": config.base_url},
                )
            client = AsyncOpenAI(
                api_key=config.api_key,
                base_url=config.base_url,
                timeout=config.request_timeout,
                max_retries=0,
            )
        self.client = client

    def _tools(self) -> List[Dict[str, Any]]:
        if not self.config.wants_computer_tool:
            return []
        return [
            {
                "type": "computer_use_preview",
                "display_width": self.config.display_width,
                "display_height": self.config.display_height,
                "environment": self.config.environment,
            }
        ]

    def _request_kwargs(
        self,
        input_items: List[Dict[str, Any]],
        previous: Optional[str],
    ) -> Dict[str, Any]:
        kwargs: Dict[str, Any] = {
            "model": self.config.model,
            "input": input_items,
            "truncation": self.config.truncation,
        }
        tools = self._tools()
        if tools:
            kwargs["tools"] = tools
        if previous:
            kwargs["previous_response_id"] = previous
        return kwargs

    async def _create(self, kwargs: Dict[str, Any]) -> Dict[str, Any]:
        """Call the service, retrying transient transport errors."""
        retrying = AsyncRetrying(
            stop=stop_after_attempt(self.config.max_retries),
            wait=wait_exponential(multiplier=1.0, min=1.0, max=10),
            retry=retry_if_exception_type(_TRANSIENT_ERRORS),
            reraise=True,
        )
        try:
            async for attempt in retrying:
                with attempt:
                    if attempt.retry_state.attempt_number > 1:
                        self.logger.warning(
                            f"Retrying service call (attempt {attempt.retry_state.attempt_number})"
                        )
                    response = await self.client.responses.create(**kwargs)
        except _TRANSIENT_ERRORS as e:
            raise ReasoningConnectionError(
                f"Service unreachable: {e}", base_url=self.config.base_url
            ) from e
        except APIError as e:
            raise ReasoningError(f"Service call failed: {e}") from e

        if hasattr(response, "model_dump"):
            return response.model_dump()
        return dict(response)

    async def turn(
        self,
        instructions: str,
        current_url: Optional[str],
        extra_text: Optional[str] = None,
        previous: Optional[str] = None,
    ) -> CuaOutput:
        """
        Start a new turn.

        Args:
            instructions: Composed operator instructions and goal
            current_url: URL of the latest observation
            extra_text: Optional additional user text
            previous: Response id to continue from

        Returns:
            The classified service output
        """
        content: List[Dict[str, Any]] = [
            {"type": "input_text", "text": instructions},
            {"type": "input_text", "text": f"current_url={current_url or ''}"},
        ]
        if extra_text:
            content.append({"type": "input_text", "text": extra_text})

        input_items = [{"role": "user", "content": content}]
        self.logger.debug(f"New turn (previous={previous})")
        payload = await self._create(self._request_kwargs(input_items, previous))
        return parse_response(payload)

    async def send_observation(
        self,
        call_id: str,
        image_base64: str,
        previous: Optional[str] = None,
        safety_checks: Optional[List[Dict[str, Any]]] = None,
    ) -> CuaOutput:
        """Reply to a pending computer call with a screenshot."""
        input_items = [
            {
                "type": "computer_call_output",
                "call_id": call_id,
                "output": {
                    "type": "computer_screenshot",
                    "image_url": f"data:image/png;base64,{image_base64}",
                },
                "acknowledged_safety_checks": list(safety_checks or []),
            }
        ]
        self.logger.debug(f"Observation reply for call {call_id}")
        payload = await self._create(self._request_kwargs(input_items, previous))
        return parse_response(payload)
