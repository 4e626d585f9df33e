"""Shared base class for OpenAI-compatible continuation providers.

Handles parameter building, response parsing, and logprob normalization for
both endpoint styles:

- ``chat``: Chat Completions, with the story as the user turn and a system
  instruction asking for a bare continuation.
- ``completion``: the legacy Completions endpoint, which continues the raw
  prompt directly (base models).
"""

import time
from typing import Any, Literal

import openai
from openai import AsyncOpenAI

from loomtree.errors import ProviderError
from loomtree.models import GenerationParams
from loomtree.providers.base import Continuation, ContinuationProvider, LogprobNormalizer

CONTINUE_INSTRUCTION = (
    "Continue the text supplied by the user. Reply with the continuation only: "
    "do not repeat, summarize, or comment on the existing text."
)

# Chat Completions caps top_logprobs at 20; legacy Completions at 5.
_MAX_CHAT_TOP_LOGPROBS = 20
_MAX_COMPLETION_LOGPROBS = 5


class OpenAICompatibleProvider(ContinuationProvider):
    """Base provider for any API that speaks the OpenAI protocol."""

    def __init__(self, client: AsyncOpenAI, *, mode: Literal["chat", "completion"]) -> None:
        self._client = client
        self._mode = mode

    async def request_continuation(
        self, prompt: str, params: GenerationParams
    ) -> Continuation:
        start = time.monotonic()
        try:
            if self._mode == "chat":
                response = await self._client.chat.completions.create(
                    **self._build_chat_params(prompt, params)
                )
            else:
                response = await self._client.completions.create(
                    **self._build_completion_params(prompt, params)
                )
        except openai.OpenAIError as e:
            raise ProviderError(self.name, str(e)) from e
        latency_ms = int((time.monotonic() - start) * 1000)

        if not response.choices:
            raise ProviderError(self.name, "response contained no choices")
        choice = response.choices[0]

        if self._mode == "chat":
            text = choice.message.content or ""
            logprobs = None
            if choice.logprobs and choice.logprobs.content:
                logprobs = LogprobNormalizer.from_openai_chat(choice.logprobs.content)
        else:
            text = choice.text or ""
            logprobs = LogprobNormalizer.from_openai_completion(choice.logprobs)

        usage = None
        if response.usage is not None:
            usage = {
                "input_tokens": response.usage.prompt_tokens,
                "output_tokens": response.usage.completion_tokens,
            }

        return Continuation(
            text=text,
            model=response.model,
            finish_reason=choice.finish_reason,
            usage=usage,
            latency_ms=latency_ms,
            logprobs=logprobs,
        )

    @staticmethod
    def _build_chat_params(prompt: str, params: GenerationParams) -> dict[str, Any]:
        """Build kwargs for client.chat.completions.create()."""
        request: dict[str, Any] = {
            "model": params.model,
            "max_tokens": params.max_tokens,
            "temperature": params.temperature,
            "top_p": params.top_p,
            "n": 1,
            "messages": [
                {"role": "system", "content": CONTINUE_INSTRUCTION},
                {"role": "user", "content": prompt},
            ],
        }
        if params.stop:
            request["stop"] = params.stop
        if params.logprobs:
            request["logprobs"] = True
            request["top_logprobs"] = min(params.logprobs, _MAX_CHAT_TOP_LOGPROBS)
        return request

    @staticmethod
    def _build_completion_params(prompt: str, params: GenerationParams) -> dict[str, Any]:
        """Build kwargs for client.completions.create()."""
        request: dict[str, Any] = {
            "model": params.model,
            "prompt": prompt,
            "max_tokens": params.max_tokens,
            "temperature": params.temperature,
            "top_p": params.top_p,
            "n": 1,
        }
        if params.stop:
            request["stop"] = params.stop
        if params.logprobs:
            request["logprobs"] = min(params.logprobs, _MAX_COMPLETION_LOGPROBS)
        return request
