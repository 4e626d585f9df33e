"""Anthropic (Claude) continuation provider.

The story so far is prefilled as the assistant turn, so the model picks up
mid-text instead of answering it. The Messages API rejects a prefill ending
in whitespace, so trailing whitespace is trimmed from the prefill.
"""

import time
from typing import Any

import anthropic
from anthropic import AsyncAnthropic

from loomtree.errors import ProviderError
from loomtree.models import GenerationParams
from loomtree.providers.base import Continuation, ContinuationProvider, LogprobNormalizer

CONTINUE_INSTRUCTION = (
    "Continue the story. Write only the continuation, picking up exactly where "
    "the text leaves off."
)


class AnthropicProvider(ContinuationProvider):
    """Continuations from Anthropic's Messages API."""

    suggested_models = [
        "claude-sonnet-4-5",
        "claude-haiku-4-5",
        "claude-opus-4-1",
    ]

    def __init__(self, client: AsyncAnthropic) -> None:
        self._client = client

    @property
    def name(self) -> str:
        return "anthropic"

    async def request_continuation(
        self, prompt: str, params: GenerationParams
    ) -> Continuation:
        start = time.monotonic()
        try:
            response = await self._client.messages.create(**self._build_params(prompt, params))
        except anthropic.AnthropicError as e:
            raise ProviderError(self.name, str(e)) from e
        latency_ms = int((time.monotonic() - start) * 1000)

        return Continuation(
            text=self._extract_text(response),
            model=response.model,
            finish_reason=response.stop_reason,
            usage={
                "input_tokens": response.usage.input_tokens,
                "output_tokens": response.usage.output_tokens,
            },
            latency_ms=latency_ms,
            logprobs=LogprobNormalizer.empty() if params.logprobs else None,
        )

    @staticmethod
    def _build_params(prompt: str, params: GenerationParams) -> dict[str, Any]:
        """Build kwargs dict for client.messages.create()."""
        messages: list[dict[str, str]] = [{"role": "user", "content": CONTINUE_INSTRUCTION}]
        prefill = prompt.rstrip()
        if prefill:
            messages.append({"role": "assistant", "content": prefill})

        request: dict[str, Any] = {
            "model": params.model,
            "max_tokens": params.max_tokens,
            "temperature": params.temperature,
            "messages": messages,
        }
        # Newer Claude models reject temperature and top_p together.
        if params.top_p < 1.0:
            request["top_p"] = params.top_p
        if params.stop:
            request["stop_sequences"] = params.stop
        return request

    @staticmethod
    def _extract_text(response: Any) -> str:
        parts = []
        for block in response.content:
            if block.type == "text":
                parts.append(block.text)
        return "".join(parts)
