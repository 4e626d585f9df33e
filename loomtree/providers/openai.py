"""OpenAI continuation providers: thin subclasses of OpenAICompatibleProvider.

Registered under the model config types they serve: ``openai-chat`` for chat
models and ``openai`` for completion (base) models.
"""

from openai import AsyncOpenAI

from loomtree.providers.openai_compat import OpenAICompatibleProvider


class OpenAIChatProvider(OpenAICompatibleProvider):
    """Continuations from OpenAI's Chat Completions API."""

    suggested_models = [
        "gpt-4o",
        "gpt-4o-mini",
        "gpt-4-turbo",
        "gpt-3.5-turbo",
    ]

    def __init__(
        self,
        *,
        client: AsyncOpenAI | None = None,
        api_key: str | None = None,
        base_url: str | None = None,
    ) -> None:
        super().__init__(client or AsyncOpenAI(api_key=api_key, base_url=base_url), mode="chat")

    @property
    def name(self) -> str:
        return "openai-chat"


class OpenAICompletionProvider(OpenAICompatibleProvider):
    """Continuations from the legacy Completions API, for base models."""

    suggested_models = [
        "gpt-3.5-turbo-instruct",
        "davinci-002",
        "babbage-002",
    ]

    def __init__(
        self,
        *,
        client: AsyncOpenAI | None = None,
        api_key: str | None = None,
        base_url: str | None = None,
    ) -> None:
        super().__init__(
            client or AsyncOpenAI(api_key=api_key, base_url=base_url), mode="completion"
        )

    @property
    def name(self) -> str:
        return "openai"
