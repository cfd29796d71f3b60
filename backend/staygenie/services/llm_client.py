"""LLM client — OpenAI for every completion, Anthropic when OpenAI fails."""

import logging
from collections.abc import Awaitable, Callable

import anthropic
from openai import AsyncOpenAI

from staygenie.config import Settings

logger = logging.getLogger(__name__)


def strip_code_fences(raw: str) -> str:
    """Remove markdown code fences models like to wrap JSON in."""
    raw = raw.strip()
    if raw.startswith("```"):
        lines = [line for line in raw.split("\n") if not line.strip().startswith("```")]
        raw = "\n".join(lines).strip()
    return raw


class LLMClient:
    """Text completions from the first configured provider that answers.

    Callers get raw text and parse it themselves; a RuntimeError means no
    provider produced anything and the caller should use its fallback.
    """

    def __init__(self, settings: Settings):
        self._openai_model = settings.openai_model
        self._anthropic_model = settings.anthropic_model
        self._openai = None
        self._anthropic = None

        if settings.openai_api_key:
            self._openai = AsyncOpenAI(
                api_key=settings.openai_api_key, timeout=settings.llm_timeout, max_retries=1,
            )
        if settings.anthropic_api_key:
            self._anthropic = anthropic.AsyncAnthropic(
                api_key=settings.anthropic_api_key, timeout=settings.llm_timeout, max_retries=1,
            )

    def _providers(self) -> list[tuple[str, Callable[..., Awaitable[str]]]]:
        providers = []
        if self._openai:
            providers.append(("OpenAI", self._complete_openai))
        if self._anthropic:
            providers.append(("Anthropic", self._complete_anthropic))
        return providers

    async def complete(
        self,
        system: str,
        user: str,
        *,
        max_tokens: int = 1000,
        temperature: float = 0,
        json_mode: bool = False,
    ) -> str:
        """Single-turn completion.

        json_mode asks OpenAI for a JSON object; Anthropic relies on the prompt.
        Raises RuntimeError when every configured provider fails.
        """
        providers = self._providers()
        if not providers:
            raise RuntimeError("All LLM providers failed: no provider configured")

        errors = []
        for name, call in providers:
            try:
                text = await call(system, user, max_tokens, temperature, json_mode)
            except Exception as e:
                errors.append(f"{name}: {e}")
                logger.warning(f"{name} completion failed: {type(e).__name__}: {e}")
                continue
            if errors:
                logger.info(f"{name} answered after {len(errors)} provider failure(s)")
            return text

        raise RuntimeError(f"All LLM providers failed: {'; '.join(errors)}")

    async def _complete_openai(
        self, system: str, user: str, max_tokens: int, temperature: float, json_mode: bool,
    ) -> str:
        kwargs: dict = {
            "model": self._openai_model,
            "max_tokens": max_tokens,
            "temperature": temperature,
            "messages": [
                {"role": "system", "content": system},
                {"role": "user", "content": user},
            ],
        }
        if json_mode:
            kwargs["response_format"] = {"type": "json_object"}
        response = await self._openai.chat.completions.create(**kwargs)
        return (response.choices[0].message.content or "").strip()

    async def _complete_anthropic(
        self, system: str, user: str, max_tokens: int, temperature: float, json_mode: bool,
    ) -> str:
        response = await self._anthropic.messages.create(
            model=self._anthropic_model,
            max_tokens=max_tokens,
            temperature=temperature,
            system=system,
            messages=[{"role": "user", "content": user}],
        )
        return response.content[0].text.strip()
