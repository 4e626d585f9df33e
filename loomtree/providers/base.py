"""Abstract continuation provider interface and shared data types."""

import math
from abc import ABC, abstractmethod
from typing import Any

from pydantic import BaseModel

from loomtree.models import AlternativeToken, GenerationParams, LogprobData, TokenLogprob


class Continuation(BaseModel):
    """One generated continuation of a prompt."""

    text: str
    model: str
    finish_reason: str | None = None
    usage: dict[str, int] | None = None
    latency_ms: int | None = None
    logprobs: LogprobData | None = None


class ContinuationProvider(ABC):
    """Abstract interface for text generation backends.

    Implementations raise ProviderError (with the SDK exception as __cause__)
    on any failure and never retry.
    """

    suggested_models: list[str] = []

    @property
    @abstractmethod
    def name(self) -> str:
        """Provider identifier; matches the model config ``type`` that selects it."""
        ...

    @abstractmethod
    async def request_continuation(
        self, prompt: str, params: GenerationParams
    ) -> Continuation:
        """Generate exactly one continuation of prompt."""
        ...


class LogprobNormalizer:
    """Normalize logprob data from provider formats to canonical LogprobData."""

    @staticmethod
    def from_openai_chat(logprobs_content: Any) -> LogprobData | None:
        """Convert the ``logprobs.content`` list of a ChatCompletion choice.

        Each entry has token, logprob, and top_logprobs[]. OpenAI reports
        natural logs, which is the canonical unit. Returns None if input is
        None or empty.
        """
        if not logprobs_content:
            return None

        tokens: list[TokenLogprob] = []
        max_alts = 0
        for entry in logprobs_content:
            alternatives: list[AlternativeToken] = []
            top_logprobs = getattr(entry, "top_logprobs", None) or []
            for alt in top_logprobs:
                if alt.token != entry.token:
                    alternatives.append(
                        AlternativeToken(
                            token=alt.token,
                            logprob=alt.logprob,
                            linear_prob=math.exp(alt.logprob),
                        )
                    )
            max_alts = max(max_alts, len(top_logprobs))
            tokens.append(
                TokenLogprob(
                    token=entry.token,
                    logprob=entry.logprob,
                    linear_prob=math.exp(entry.logprob),
                    top_alternatives=alternatives,
                )
            )

        return LogprobData(tokens=tokens, provider_format="openai", top_k_available=max_alts)

    @staticmethod
    def from_openai_completion(logprobs: Any) -> LogprobData | None:
        """Convert the parallel-list ``logprobs`` of a legacy Completion choice.

        ``tokens`` and ``token_logprobs`` are aligned lists; ``top_logprobs`` is
        a list of {token: logprob} dicts, one per position. The first token's
        logprob may be None when the prompt is echoed; such positions are
        skipped.
        """
        if logprobs is None or not getattr(logprobs, "tokens", None):
            return None

        top_per_position = getattr(logprobs, "top_logprobs", None) or []
        tokens: list[TokenLogprob] = []
        max_alts = 0
        for i, (token, logprob) in enumerate(zip(logprobs.tokens, logprobs.token_logprobs)):
            if logprob is None:
                continue
            top = top_per_position[i] if i < len(top_per_position) and top_per_position[i] else {}
            max_alts = max(max_alts, len(top))
            alternatives = [
                AlternativeToken(token=alt, logprob=lp, linear_prob=math.exp(lp))
                for alt, lp in sorted(top.items(), key=lambda kv: kv[1], reverse=True)
                if alt != token
            ]
            tokens.append(
                TokenLogprob(
                    token=token,
                    logprob=logprob,
                    linear_prob=math.exp(logprob),
                    top_alternatives=alternatives,
                )
            )

        return LogprobData(
            tokens=tokens, provider_format="openai-completion", top_k_available=max_alts
        )

    @staticmethod
    def empty() -> LogprobData:
        """Return an empty LogprobData for providers that don't expose logprobs."""
        return LogprobData(tokens=[], provider_format="none", top_k_available=0)
