"""Completion provider adapter and the bounded-retry generation client."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Awaitable, Protocol

import openai
from openai import AsyncOpenAI

from nutrivida.config import get_api_key
from nutrivida.errors import GenerationError

logger = logging.getLogger(__name__)


@dataclass
class Completion:
    text: str
    model: str | None = None
    prompt_tokens: int = 0
    completion_tokens: int = 0

    @property
    def total_tokens(self) -> int:
        return self.prompt_tokens + self.completion_tokens


class CompletionProvider(Protocol):
    async def complete(
        self,
        system_prompt: str,
        user_prompt: str,
        max_tokens: int,
        temperature: float,
    ) -> Completion: ...


class OpenAIProvider:
    """Chat-completions provider backed by an injected AsyncOpenAI client."""

    def __init__(self, client: AsyncOpenAI, model: str, json_mode: bool = True) -> None:
        self.client = client
        self.model = model
        self.json_mode = json_mode

    @classmethod
    def from_config(cls, config: dict) -> OpenAIProvider | None:
        """Build a provider from settings, or None when no API key is configured."""
        gen = config["generation"]
        api_key = get_api_key(config)
        if api_key is None:
            logger.info(
                "%s not set; meal plans will use fallback generation",
                gen.get("api_key_env", "OPENAI_API_KEY"),
            )
            return None

        # Retries and timeouts are owned by GenerationClient, not the SDK
        client = AsyncOpenAI(
            api_key=api_key,
            base_url=gen.get("base_url") or None,
            max_retries=0,
            timeout=float(gen["timeout_seconds"]),
        )
        return cls(client, model=gen["model"])

    async def complete(
        self,
        system_prompt: str,
        user_prompt: str,
        max_tokens: int,
        temperature: float,
    ) -> Completion:
        kwargs: dict = {
            "model": self.model,
            "messages": [
                {"role": "system", "content": system_prompt},
                {"role": "user", "content": user_prompt},
            ],
            "max_tokens": max_tokens,
            "temperature": temperature,
        }
        if self.json_mode:
            kwargs["response_format"] = {"type": "json_object"}

        resp = await self.client.chat.completions.create(**kwargs)

        if not resp.choices:
            raise GenerationError("Provider returned no choices", reason="empty")
        choice = resp.choices[0]
        if choice.finish_reason == "length":
            raise GenerationError(
                f"Completion truncated at {max_tokens} tokens", reason="truncated"
            )
        content = (choice.message.content or "").strip()
        if not content:
            raise GenerationError("Provider returned an empty completion", reason="empty")

        usage = resp.usage
        return Completion(
            text=content,
            model=resp.model or self.model,
            prompt_tokens=usage.prompt_tokens if usage else 0,
            completion_tokens=usage.completion_tokens if usage else 0,
        )


def _classify_provider_error(error: Exception) -> str:
    if isinstance(error, openai.APITimeoutError):
        return "timeout"
    if isinstance(error, openai.APIConnectionError):
        return "unreachable"
    if isinstance(error, (openai.AuthenticationError, openai.PermissionDeniedError)):
        return "auth"
    if isinstance(error, openai.RateLimitError):
        return "quota"
    return "provider"


# Failures that will not change on an immediate second attempt
NON_RETRYABLE = {"auth", "truncated", "cancelled"}


class GenerationClient:
    """Calls a CompletionProvider with a per-attempt timeout and at most one retry.

    Every provider-side failure surfaces as GenerationError. Exceptions that
    are not provider or network failures propagate unchanged.
    """

    def __init__(
        self,
        provider: CompletionProvider,
        timeout_s: float = 60.0,
        max_retries: int = 1,
        max_tokens: int = 4000,
        temperature: float = 0.7,
    ) -> None:
        self.provider = provider
        self.timeout_s = timeout_s
        self.max_retries = max(0, min(1, max_retries))
        self.max_tokens = max_tokens
        self.temperature = temperature

    @classmethod
    def from_config(cls, config: dict) -> GenerationClient | None:
        provider = OpenAIProvider.from_config(config)
        if provider is None:
            return None
        gen = config["generation"]
        return cls(
            provider,
            timeout_s=float(gen["timeout_seconds"]),
            max_retries=int(gen["max_retries"]),
            max_tokens=int(gen["max_tokens"]),
            temperature=float(gen["temperature"]),
        )

    async def _attempt(
        self,
        call: Awaitable[Completion],
        timeout: float,
        cancel: asyncio.Event | None,
    ) -> Completion:
        if cancel is None:
            return await asyncio.wait_for(call, timeout=timeout)

        request = asyncio.ensure_future(call)
        cancelled = asyncio.ensure_future(cancel.wait())
        try:
            done, _pending = await asyncio.wait(
                {request, cancelled}, timeout=timeout, return_when=asyncio.FIRST_COMPLETED
            )
        finally:
            for task in (request, cancelled):
                if not task.done():
                    task.cancel()
        if request in done:
            return request.result()
        if cancelled in done:
            raise GenerationError("Generation cancelled by caller", reason="cancelled")
        raise asyncio.TimeoutError

    async def generate(
        self,
        prompt: str,
        system_instruction: str,
        max_tokens: int | None = None,
        temperature: float | None = None,
        timeout: float | None = None,
        cancel: asyncio.Event | None = None,
    ) -> Completion:
        """Return one complete provider response or raise GenerationError.

        ``timeout`` is the caller's deadline for the whole call, retries
        included; each attempt is still bounded by ``timeout_s``. Setting
        ``cancel`` abandons the call with reason "cancelled".
        """
        loop = asyncio.get_running_loop()
        deadline = None if timeout is None else loop.time() + timeout
        attempts = 1 + self.max_retries
        attempt = 0

        while True:
            attempt += 1
            bound = self.timeout_s
            caller_bound = False
            if deadline is not None and deadline - loop.time() < bound:
                bound = deadline - loop.time()
                caller_bound = True
            if bound <= 0:
                error = GenerationError(
                    f"Caller deadline of {timeout:g}s expired", reason="timeout"
                )
            elif cancel is not None and cancel.is_set():
                error = GenerationError("Generation cancelled by caller", reason="cancelled")
            else:
                try:
                    return await self._attempt(
                        self.provider.complete(
                            system_instruction,
                            prompt,
                            max_tokens if max_tokens is not None else self.max_tokens,
                            temperature if temperature is not None else self.temperature,
                        ),
                        bound,
                        cancel,
                    )
                except asyncio.TimeoutError:
                    if caller_bound:
                        error = GenerationError(
                            f"Caller deadline of {timeout:g}s expired", reason="timeout"
                        )
                    else:
                        error = GenerationError(
                            f"Provider timed out after {bound:g}s", reason="timeout"
                        )
                except GenerationError as e:
                    error = e
                except openai.OpenAIError as e:
                    error = GenerationError(
                        f"Provider error: {e}", reason=_classify_provider_error(e)
                    )
                except OSError as e:
                    error = GenerationError(f"Network error: {e}", reason="unreachable")

            logger.warning(
                "Generation attempt %d/%d failed (%s): %s",
                attempt,
                attempts,
                error.reason,
                error,
            )
            expired = bound <= 0 or (caller_bound and error.reason == "timeout")
            if attempt >= attempts or expired or error.reason in NON_RETRYABLE:
                raise error


def estimate_cost(
    pricing: dict,
    model: str | None,
    prompt_tokens: int,
    completion_tokens: int,
) -> float | None:
    """Estimate request cost in USD from per-1k token prices.

    The longest pricing key that prefixes the model name wins, so
    "gpt-4o-mini-2024-07-18" is priced as gpt-4o-mini, not gpt-4.
    """
    if not model:
        return None
    matches = [key for key in pricing if model.startswith(key)]
    if not matches:
        return None
    price = pricing[max(matches, key=len)]
    cost = (prompt_tokens / 1000) * price["input"] + (completion_tokens / 1000) * price["output"]
    return round(cost, 6)
