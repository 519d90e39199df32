"""Summarization provider over OpenAI-compatible chat endpoints.

Supports the Hugging Face inference router, OpenAI, Azure OpenAI and local
OpenAI-compatible servers.  Each configured model is retried on transient
errors; any other failure moves on to the next model in the chain.  Only when
every model has failed does ``summarize`` raise ``ProviderError``.
"""

from __future__ import annotations

import logging
from typing import Any

import openai
from openai import AsyncAzureOpenAI, AsyncOpenAI
from tenacity import AsyncRetrying, retry_if_exception_type, stop_after_attempt, wait_exponential

from config import Settings
from engine.errors import ProviderError, ValidationError
from prompts.system_prompt import SUMMARY_PROMPT

logger = logging.getLogger("condense.llm")

TRANSIENT_ERRORS: tuple[type[Exception], ...] = (
    openai.APIConnectionError,
    openai.APITimeoutError,
    openai.RateLimitError,
    openai.InternalServerError,
)


class LLMError(Exception):
    """Raised when a single model call produced no usable reply."""


def _build_client(cfg: Settings) -> tuple[AsyncOpenAI, list[str]]:
    """Return (async_client, model_chain) based on the configured provider."""
    provider = cfg.llm_provider.lower()

    if provider == "azure":
        client = AsyncAzureOpenAI(
            azure_endpoint=cfg.azure_openai_endpoint,
            api_key=cfg.azure_openai_api_key,
            api_version="2024-12-01-preview",
        )
        models = [cfg.azure_openai_deployment]
    elif provider == "local":
        client = AsyncOpenAI(base_url=cfg.local_llm_base_url, api_key="not-needed")
        models = [cfg.local_llm_model]
    elif provider == "openai":
        client = AsyncOpenAI(api_key=cfg.openai_api_key)
        models = [cfg.openai_model]
    else:  # default: huggingface router
        client = AsyncOpenAI(base_url=cfg.hf_base_url, api_key=cfg.hf_token or "missing-token")
        models = cfg.model_list()

    return client, models


class LLMSummaryProvider:
    """``summarize(text) -> summary`` with model fallback and retries."""

    def __init__(
        self,
        client: AsyncOpenAI,
        models: list[str],
        *,
        max_tokens: int = 300,
        temperature: float = 0.3,
        attempts_per_model: int = 2,
        retry_wait_min: float = 2.0,
    ) -> None:
        if not models:
            raise ValueError("At least one model is required.")
        self._client = client
        self.models = models
        self.max_tokens = max_tokens
        self.temperature = temperature
        self.attempts_per_model = max(1, attempts_per_model)
        self.retry_wait_min = retry_wait_min

    @classmethod
    def from_settings(cls, cfg: Settings) -> LLMSummaryProvider:
        client, models = _build_client(cfg)
        logger.info("Summarization provider=%s models=%s", cfg.llm_provider, models)
        return cls(
            client,
            models,
            max_tokens=cfg.summary_max_tokens,
            temperature=cfg.summary_temperature,
            attempts_per_model=cfg.provider_attempts_per_model,
        )

    async def summarize(self, text: str) -> str:
        """Summarize *text*, trying each model in turn.

        Raises
        ------
        ValidationError
            If *text* is empty.
        ProviderError
            If every model in the chain failed.
        """
        if not text or not text.strip():
            raise ValidationError("Content cannot be empty")

        last_exc: Exception | None = None
        for model in self.models:
            try:
                return await self._complete_with_retry(model, text)
            except Exception as exc:
                logger.warning("Model %s failed (%s); trying next model.", model, exc)
                last_exc = exc

        raise ProviderError(f"All models failed. Last error: {last_exc or 'unknown error'}")

    async def _complete_with_retry(self, model: str, text: str) -> str:
        async for attempt in AsyncRetrying(
            stop=stop_after_attempt(self.attempts_per_model),
            wait=wait_exponential(multiplier=self.retry_wait_min, min=self.retry_wait_min, max=30),
            retry=retry_if_exception_type(TRANSIENT_ERRORS),
            reraise=True,
        ):
            with attempt:
                return await self.chat_completion(model, SUMMARY_PROMPT, text)
        raise LLMError(f"No attempt made for model {model}")  # pragma: no cover

    async def chat_completion(self, model: str, system_prompt: str, user_message: str) -> str:
        """Send a chat-completion request and return the assistant's text reply."""
        kwargs: dict[str, Any] = {
            "model": model,
            "temperature": self.temperature,
            "max_tokens": self.max_tokens,
            "messages": [
                {"role": "system", "content": system_prompt},
                {"role": "user", "content": user_message},
            ],
        }
        response = await self._client.chat.completions.create(**kwargs)
        if not response.choices:
            raise LLMError(f"Model {model} returned no choices.")
        content = response.choices[0].message.content
        if content is None or not content.strip():
            raise LLMError(f"Model {model} returned empty content.")
        return content.strip()

    async def aclose(self) -> None:
        await self._client.close()
