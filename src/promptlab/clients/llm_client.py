"""LLM client with retry logic and typed provider errors."""

import asyncio
import time
from typing import Any, Dict, List, Optional

import openai
from loguru import logger
from openai import AsyncOpenAI

from ..config import Settings
from ..errors import (
    LLMAuthenticationError,
    LLMConnectionError,
    LLMError,
    LLMRateLimitError,
    LLMResponseError,
    LLMServerError,
)
from .base import BaseLLMClient, GenerationOptions, GenerationResult, TokenUsage
from .pricing import ModelPricing, lookup_pricing

MAX_RETRIES = 5
INITIAL_RETRY_DELAY = 1.0
BACKOFF_MULTIPLIER = 2.0
TOKENS_PER_MILLION = 1_000_000


class LLMClient(BaseLLMClient):
    """OpenAI-compatible client with automatic retry and exponential backoff."""

    def __init__(self, settings: Settings, model: Optional[str] = None):
        """Initialize LLM client with OpenAI credentials."""
        self.settings = settings
        client_kwargs: Dict[str, Any] = {
            "api_key": settings.api_key or "local",
            "timeout": settings.timeout,
            "max_retries": 0,
        }
        if settings.base_url:
            client_kwargs["base_url"] = settings.base_url
        self.async_client = AsyncOpenAI(**client_kwargs)
        self.model = model or settings.model
        self.temperature = settings.temperature
        self.max_tokens = settings.max_tokens
        self.pricing = self._resolve_pricing()

    @classmethod
    def judge(cls, settings: Settings) -> "LLMClient":
        """Client bound to the judge model (falls back to the main model)."""
        return cls(settings, model=settings.judge_model or settings.model)

    async def agenerate(
        self,
        prompt: str,
        options: Optional[GenerationOptions] = None,
    ) -> GenerationResult:
        """Send asynchronous chat completion request with retry logic."""
        options = options or GenerationOptions()
        request = self._build_request(prompt, options)
        retry_delay = INITIAL_RETRY_DELAY

        for attempt in range(MAX_RETRIES):
            try:
                start_time = time.time()
                response = await self.async_client.chat.completions.create(**request)
                latency = (time.time() - start_time) * 1000
                return self._to_result(response, latency)

            except openai.RateLimitError as e:
                if attempt < MAX_RETRIES - 1:
                    logger.warning(
                        f"Rate limit hit, retrying in {retry_delay}s... "
                        f"(attempt {attempt + 1}/{MAX_RETRIES})"
                    )
                    await asyncio.sleep(retry_delay)
                    retry_delay *= BACKOFF_MULTIPLIER
                else:
                    logger.error(f"Rate limit exceeded after {MAX_RETRIES} attempts")
                    raise LLMRateLimitError(str(e)) from e

            except openai.AuthenticationError as e:
                logger.error(f"LLM authentication failed: {e}")
                raise LLMAuthenticationError(str(e)) from e

            except openai.APITimeoutError as e:
                logger.error(f"LLM request timed out: {e}")
                raise LLMConnectionError(str(e)) from e

            except openai.APIConnectionError as e:
                logger.error(f"LLM connection failed: {e}")
                raise LLMConnectionError(str(e)) from e

            except openai.InternalServerError as e:
                logger.error(f"LLM server error: {e}")
                raise LLMServerError(str(e)) from e

            except openai.APIStatusError as e:
                logger.error(f"LLM request rejected ({e.status_code}): {e}")
                raise LLMError(str(e)) from e

        raise RuntimeError("Unexpected end of retry loop")

    def _build_request(self, prompt: str, options: GenerationOptions) -> Dict[str, Any]:
        messages: List[Dict[str, str]] = []
        if options.system_prompt:
            messages.append({"role": "system", "content": options.system_prompt})
        messages.append({"role": "user", "content": prompt})

        request: Dict[str, Any] = {
            "model": options.model or self.model,
            "messages": messages,
            "temperature": options.temperature if options.temperature is not None else self.temperature,
        }
        max_tokens = options.max_tokens or self.max_tokens
        if max_tokens:
            request["max_tokens"] = max_tokens
        if options.json_mode:
            request["response_format"] = {"type": "json_object"}
        return request

    def _to_result(self, response: Any, latency_ms: float) -> GenerationResult:
        if not getattr(response, "choices", None):
            raise LLMResponseError("Provider returned no choices")

        content = response.choices[0].message.content or ""
        usage = TokenUsage()
        if response.usage:
            usage = TokenUsage(
                prompt_tokens=response.usage.prompt_tokens or 0,
                completion_tokens=response.usage.completion_tokens or 0,
            )

        logger.debug(
            f"LLM response: {len(content)} chars, "
            f"{usage.total_tokens} tokens, {latency_ms:.0f}ms"
        )
        return GenerationResult(
            text=content,
            usage=usage,
            cost=self.calculate_cost(usage),
            latency_ms=latency_ms,
        )

    @property
    def reports_cost(self) -> bool:
        return self.pricing is not None and not self.pricing.is_free

    def calculate_cost(self, usage: TokenUsage) -> float:
        """Cost in USD from per-million token prices; 0 for unpriced models."""
        if self.pricing is None:
            return 0.0
        return (
            usage.prompt_tokens * self.pricing.prompt_per_million
            + usage.completion_tokens * self.pricing.completion_per_million
        ) / TOKENS_PER_MILLION

    def _resolve_pricing(self) -> Optional[ModelPricing]:
        """Configured prices win; otherwise the model's listed price."""
        prompt_price = self.settings.prompt_price_per_million
        completion_price = self.settings.completion_price_per_million
        if prompt_price is not None or completion_price is not None:
            return ModelPricing(
                prompt_per_million=prompt_price or 0.0,
                completion_per_million=completion_price or 0.0,
            )
        pricing = lookup_pricing(self.model)
        if pricing is None:
            logger.warning(
                f"No token prices known for model '{self.model}'; its calls are reported as free. "
                "Set prompt_price_per_million and completion_price_per_million to track cost."
            )
        return pricing
