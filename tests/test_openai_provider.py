"""Contract tests for the OpenAI chat and completion providers, using mocked clients."""

from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock

import openai
import pytest

from loomtree.errors import ProviderError
from loomtree.models import GenerationParams
from loomtree.providers.openai import OpenAIChatProvider, OpenAICompletionProvider
from loomtree.providers.openai_compat import CONTINUE_INSTRUCTION


def _make_usage(prompt_tokens: int = 12, completion_tokens: int = 7) -> MagicMock:
    usage = MagicMock()
    usage.prompt_tokens = prompt_tokens
    usage.completion_tokens = completion_tokens
    return usage


def _make_chat_completion(
    content: str | None = " and then",
    model: str = "gpt-4o-mini-2024-07-18",
    finish_reason: str = "length",
    logprobs_content: list | None = None,
) -> MagicMock:
    choice = MagicMock()
    choice.message.content = content
    choice.finish_reason = finish_reason
    if logprobs_content is None:
        choice.logprobs = None
    else:
        choice.logprobs = SimpleNamespace(content=logprobs_content)

    completion = MagicMock()
    completion.choices = [choice]
    completion.model = model
    completion.usage = _make_usage()
    return completion


def _make_text_completion(text: str = " the wolf", logprobs=None) -> MagicMock:
    choice = MagicMock()
    choice.text = text
    choice.finish_reason = "stop"
    choice.logprobs = logprobs

    completion = MagicMock()
    completion.choices = [choice]
    completion.model = "davinci-002"
    completion.usage = _make_usage()
    return completion


def _make_chat_client(completion=None, side_effect=None) -> AsyncMock:
    client = AsyncMock()
    client.chat = MagicMock()
    client.chat.completions = MagicMock()
    client.chat.completions.create = AsyncMock(
        return_value=completion or _make_chat_completion(), side_effect=side_effect
    )
    return client


def _make_completion_client(completion=None) -> AsyncMock:
    client = AsyncMock()
    client.completions = MagicMock()
    client.completions.create = AsyncMock(return_value=completion or _make_text_completion())
    return client


def _params(**overrides) -> GenerationParams:
    return GenerationParams(**{"model": "gpt-4o-mini", **overrides})


class TestNames:
    async def test_chat_name(self):
        assert OpenAIChatProvider(client=_make_chat_client()).name == "openai-chat"

    async def test_completion_name(self):
        assert OpenAICompletionProvider(client=_make_completion_client()).name == "openai"


class TestChatContinuation:
    async def test_returns_text_and_metadata(self):
        provider = OpenAIChatProvider(client=_make_chat_client())
        result = await provider.request_continuation("Once", _params())
        assert result.text == " and then"
        assert result.model == "gpt-4o-mini-2024-07-18"
        assert result.finish_reason == "length"
        assert result.usage == {"input_tokens": 12, "output_tokens": 7}
        assert result.latency_ms >= 0

    async def test_none_content_becomes_empty_text(self):
        provider = OpenAIChatProvider(client=_make_chat_client(_make_chat_completion(content=None)))
        result = await provider.request_continuation("Once", _params())
        assert result.text == ""

    async def test_request_shape(self):
        client = _make_chat_client()
        provider = OpenAIChatProvider(client=client)
        await provider.request_continuation(
            "Once upon", _params(max_tokens=64, temperature=0.5, top_p=0.9, stop=["\n"])
        )
        kwargs = client.chat.completions.create.call_args.kwargs
        assert kwargs["model"] == "gpt-4o-mini"
        assert kwargs["max_tokens"] == 64
        assert kwargs["temperature"] == 0.5
        assert kwargs["top_p"] == 0.9
        assert kwargs["n"] == 1
        assert kwargs["stop"] == ["\n"]
        assert kwargs["messages"] == [
            {"role": "system", "content": CONTINUE_INSTRUCTION},
            {"role": "user", "content": "Once upon"},
        ]

    async def test_top_logprobs_capped(self):
        client = _make_chat_client()
        await OpenAIChatProvider(client=client).request_continuation("x", _params(logprobs=50))
        kwargs = client.chat.completions.create.call_args.kwargs
        assert kwargs["logprobs"] is True
        assert kwargs["top_logprobs"] == 20

    async def test_no_logprobs_requested(self):
        client = _make_chat_client()
        await OpenAIChatProvider(client=client).request_continuation("x", _params(logprobs=None))
        kwargs = client.chat.completions.create.call_args.kwargs
        assert "logprobs" not in kwargs
        assert "stop" not in kwargs

    async def test_logprobs_normalized(self):
        content = [
            SimpleNamespace(
                token=" and",
                logprob=-0.1,
                top_logprobs=[
                    SimpleNamespace(token=" and", logprob=-0.1),
                    SimpleNamespace(token=" but", logprob=-2.5),
                ],
            )
        ]
        client = _make_chat_client(_make_chat_completion(logprobs_content=content))
        result = await OpenAIChatProvider(client=client).request_continuation("x", _params())
        assert result.logprobs.provider_format == "openai"
        assert result.logprobs.tokens[0].token == " and"
        assert [a.token for a in result.logprobs.tokens[0].top_alternatives] == [" but"]

    async def test_sdk_error_wrapped(self):
        error = openai.OpenAIError("rate limited")
        provider = OpenAIChatProvider(client=_make_chat_client(side_effect=error))
        with pytest.raises(ProviderError) as exc_info:
            await provider.request_continuation("x", _params())
        assert exc_info.value.provider == "openai-chat"
        assert exc_info.value.__cause__ is error

    async def test_empty_choices(self):
        completion = _make_chat_completion()
        completion.choices = []
        provider = OpenAIChatProvider(client=_make_chat_client(completion))
        with pytest.raises(ProviderError):
            await provider.request_continuation("x", _params())


class TestCompletionContinuation:
    async def test_raw_prompt_sent(self):
        client = _make_completion_client()
        provider = OpenAICompletionProvider(client=client)
        result = await provider.request_continuation("Once upon", _params(model="davinci-002"))
        kwargs = client.completions.create.call_args.kwargs
        assert kwargs["prompt"] == "Once upon"
        assert kwargs["logprobs"] == 5
        assert result.text == " the wolf"
        assert result.model == "davinci-002"

    async def test_logprobs_normalized(self):
        logprobs = SimpleNamespace(
            tokens=[" the", " wolf"],
            token_logprobs=[-0.2, -1.0],
            top_logprobs=[{" the": -0.2, " a": -1.9}, {" wolf": -1.0}],
        )
        client = _make_completion_client(_make_text_completion(logprobs=logprobs))
        result = await OpenAICompletionProvider(client=client).request_continuation("x", _params())
        data = result.logprobs
        assert data.provider_format == "openai-completion"
        assert [t.token for t in data.tokens] == [" the", " wolf"]
        assert data.tokens[0].top_alternatives[0].token == " a"
        assert data.top_k_available == 2
