"""
Provider-agnostic LLM client for Corteza pipelines.

Supports Anthropic, OpenAI, and Google Gemini with a shared text-generation
interface. Provider SDK errors are translated into the Corteza error taxonomy
here, so callers never see SDK exception types.
"""

from __future__ import annotations

import hashlib
import logging
from typing import Optional

from .config import LLMConfig
from .errors import ConfigurationError, ProviderUnavailable, RateLimited, status_code_of

logger = logging.getLogger("corteza.common.llm_client")


class LLMClient:
    """Unified text generation client across LLM providers."""

    def __init__(
        self,
        provider: str = "anthropic",
        model: str = "",
        anthropic_api_key: Optional[str] = None,
        openai_api_key: Optional[str] = None,
        google_api_key: Optional[str] = None,
        timeout: float = 30.0,
    ) -> None:
        self.provider = (provider or "anthropic").lower()
        self.model = model
        self.timeout = timeout
        self._client = None

        if self.provider == "anthropic":
            if not anthropic_api_key:
                logger.info("%s API key not provided, LLM client unavailable", self.provider)
                return
            try:
                import anthropic

                self._client = anthropic.Anthropic(api_key=anthropic_api_key)
            except ImportError:
                logger.warning("anthropic package not installed")
            except Exception as e:
                logger.warning("Failed to initialize Anthropic client: %s", e)
            return

        if self.provider == "openai":
            if not openai_api_key:
                logger.info("%s API key not provided, LLM client unavailable", self.provider)
                return
            try:
                from openai import OpenAI

                self._client = OpenAI(api_key=openai_api_key)
            except ImportError:
                logger.warning("openai package not installed")
            except Exception as e:
                logger.warning("Failed to initialize OpenAI client: %s", e)
            return

        if self.provider == "google":
            if not google_api_key:
                logger.info("%s API key not provided, LLM client unavailable", self.provider)
                return
            try:
                import google.generativeai as genai

                genai.configure(api_key=google_api_key)
                self._client = genai  # Store the module, not a model instance
                self._google_models = {}  # Cache models by system prompt hash
            except ImportError:
                logger.warning("google-generativeai package not installed")
            except Exception as e:
                logger.warning("Failed to initialize Gemini client: %s", e)
            return

        logger.warning("Unsupported LLM provider: %s", self.provider)

    @classmethod
    def from_config(cls, llm: LLMConfig) -> "LLMClient":
        models = {
            "anthropic": llm.anthropic_model,
            "openai": llm.openai_model,
            "google": llm.google_model,
        }
        provider = (llm.provider or "anthropic").lower()
        return cls(
            provider=provider,
            model=models.get(provider, ""),
            anthropic_api_key=llm.anthropic_api_key,
            openai_api_key=llm.openai_api_key,
            google_api_key=llm.google_api_key,
            timeout=llm.timeout,
        )

    @property
    def is_available(self) -> bool:
        return self._client is not None

    def generate(
        self,
        prompt: str,
        *,
        system: Optional[str] = None,
        max_tokens: int = 512,
        temperature: Optional[float] = None,
        timeout: Optional[float] = None,
    ) -> str:
        """Generate a completion. ``timeout`` defaults to the client's configured timeout.

        Raises:
            ConfigurationError: the client has no usable provider
            RateLimited: the provider answered 429
            ProviderUnavailable: any other provider failure
        """
        if not self.is_available:
            raise ConfigurationError("LLM client is not available")

        try:
            return self._generate(
                prompt, system, max_tokens, temperature,
                timeout if timeout is not None else self.timeout,
            )
        except ConfigurationError:
            raise
        except Exception as e:
            status = status_code_of(e)
            if status == 429:
                raise RateLimited(
                    f"{self.provider} rate limit exceeded", provider=self.provider, status_code=429
                ) from e
            raise ProviderUnavailable(
                f"{self.provider} generation failed: {e}", provider=self.provider, status_code=status
            ) from e

    def _generate(
        self,
        prompt: str,
        system: Optional[str],
        max_tokens: int,
        temperature: Optional[float],
        timeout: float,
    ) -> str:
        if self.provider == "anthropic":
            kwargs = {}
            if system:
                kwargs["system"] = system
            if temperature is not None:
                kwargs["temperature"] = temperature
            response = self._client.messages.create(
                model=self.model,
                max_tokens=max_tokens,
                messages=[{"role": "user", "content": prompt}],
                timeout=timeout,
                **kwargs,
            )
            return response.content[0].text.strip()

        if self.provider == "openai":
            messages = []
            if system:
                messages.append({"role": "system", "content": system})
            messages.append({"role": "user", "content": prompt})
            kwargs = {}
            if temperature is not None:
                kwargs["temperature"] = temperature
            response = self._client.chat.completions.create(
                model=self.model,
                max_tokens=max_tokens,
                messages=messages,
                timeout=timeout,
                **kwargs,
            )
            return (response.choices[0].message.content or "").strip()

        if self.provider == "google":
            cache_key = hashlib.md5((system or "").encode()).hexdigest()
            if cache_key not in self._google_models:
                kwargs = {"model_name": self.model}
                if system:
                    kwargs["system_instruction"] = system
                self._google_models[cache_key] = self._client.GenerativeModel(**kwargs)
            model = self._google_models[cache_key]
            generation_config = {"max_output_tokens": max_tokens}
            if temperature is not None:
                generation_config["temperature"] = temperature
            response = model.generate_content(
                prompt,
                generation_config=generation_config,
                request_options={"timeout": timeout},
            )
            return response.text.strip()

        raise ConfigurationError(f"Unsupported LLM provider: {self.provider}")
