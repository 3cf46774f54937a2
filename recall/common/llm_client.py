"""
LLM Client

Async text generation for response synthesis. One provider is active per
client, chosen by LLMConfig.provider; each provider's async SDK is used
directly so callers can await generation on the event loop.
"""

import logging
from typing import Any, Optional

from .config import LLMConfig

logger = logging.getLogger("recall.common.llm_client")

SUPPORTED_PROVIDERS = ("anthropic", "openai", "google")


def _build_provider_client(provider: str, api_key: str) -> Any:
    if provider == "openai":
        from openai import AsyncOpenAI
        return AsyncOpenAI(api_key=api_key)
    if provider == "anthropic":
        import anthropic
        return anthropic.AsyncAnthropic(api_key=api_key)
    import google.generativeai as genai
    genai.configure(api_key=api_key)
    return genai


class LLMClient:
    """
    Provider-agnostic async generation.

    Usage:
        llm = LLMClient(config.llm)
        if llm.is_available:
            text = await llm.generate("Question?", system="Be brief.")
    """

    def __init__(self, config: LLMConfig, client: Any = None):
        """
        Args:
            config: Provider choice, keys and model names
            client: Pre-built provider client (AsyncOpenAI, AsyncAnthropic or
                the configured google.generativeai module)
        """
        self.provider = (config.provider or "openai").lower()
        self.model = ""
        self._client = None

        if self.provider not in SUPPORTED_PROVIDERS:
            logger.warning("Unsupported LLM provider: %s", self.provider)
            return

        self.model = getattr(config, f"{self.provider}_model")
        if client is not None:
            self._client = client
            return

        api_key = getattr(config, f"{self.provider}_api_key")
        if not api_key:
            logger.info("%s API key not provided, LLM client unavailable", self.provider)
            return
        self._client = _build_provider_client(self.provider, api_key)

    @property
    def is_available(self) -> bool:
        return self._client is not None

    async def generate(
        self,
        prompt: str,
        *,
        system: Optional[str] = None,
        max_tokens: int = 500,
        timeout: float = 30.0,
    ) -> str:
        """
        Generate a completion for prompt.

        Provider errors propagate; retry policy belongs to the caller.
        """
        if not self.is_available:
            raise RuntimeError("LLM client is not available")

        if self.provider == "openai":
            messages = [{"role": "user", "content": prompt}]
            if system:
                messages.insert(0, {"role": "system", "content": system})
            response = await self._client.chat.completions.create(
                model=self.model,
                max_tokens=max_tokens,
                messages=messages,
                timeout=timeout,
            )
            return (response.choices[0].message.content or "").strip()

        if self.provider == "anthropic":
            extra = {"system": system} if system else {}
            response = await self._client.messages.create(
                model=self.model,
                max_tokens=max_tokens,
                messages=[{"role": "user", "content": prompt}],
                timeout=timeout,
                **extra,
            )
            return response.content[0].text.strip()

        model = self._client.GenerativeModel(model_name=self.model, system_instruction=system)
        response = await model.generate_content_async(
            prompt,
            generation_config={"max_output_tokens": max_tokens},
            request_options={"timeout": timeout},
        )
        return response.text.strip()
