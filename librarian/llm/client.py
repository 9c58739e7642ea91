"""
LLM client for OpenAI-compatible chat APIs (Groq by default).
"""

from __future__ import annotations

import logging
import os
import random
import time
from typing import Dict, Iterator, List, Optional

from openai import APIError, OpenAI, RateLimitError

from librarian.core.config import AppConfig
from librarian.core.errors import ConfigError, LLMError

GROQ_BASE_URL = "https://api.groq.com/openai/v1"
DEFAULT_MODEL = "openai/gpt-oss-120b"

LLM_BASE_URL = os.getenv("LLM_BASE_URL", GROQ_BASE_URL)
LLM_MODEL = os.getenv("LLM_MODEL")

logger = logging.getLogger(__name__)

Message = Dict[str, str]


def message(role: str, content: str) -> Message:
    return {"role": role, "content": content}


class GroqClient:
    """OpenAI-compatible chat client pointed at Groq (or LLM_BASE_URL)."""

    def __init__(
        self,
        api_key: str,
        model_name: Optional[str] = None,
        base_url: Optional[str] = None,
        max_retries: int = 3,
    ):
        if not api_key:
            raise ConfigError("API key required. Set GROQ_API_KEY or save one in the config file.")
        self.model_name = model_name or LLM_MODEL or DEFAULT_MODEL
        self.base_url = base_url or LLM_BASE_URL
        self.max_retries = max_retries
        # Retries are handled below so rate limits get jittered backoff
        self.client = OpenAI(base_url=self.base_url, api_key=api_key, max_retries=0)

    def chat(
        self,
        messages: List[Message],
        max_tokens: int = 2048,
        temperature: float = 0.7,
    ) -> str:
        """Complete a conversation and return the assistant text."""
        retry_count = 0
        while True:
            try:
                response = self.client.chat.completions.create(
                    model=self.model_name,
                    messages=messages,
                    max_tokens=max_tokens,
                    temperature=temperature,
                )
            except RateLimitError as e:
                retry_count += 1
                if retry_count > self.max_retries:
                    raise LLMError(f"Rate limit exceeded after {self.max_retries} retries") from e
                # Exponential backoff with jitter
                backoff = (2**retry_count) + random.uniform(0, 1)
                logger.warning(
                    "Rate limit hit (429). Retrying in %s s (attempt %s/%s)",
                    round(backoff, 1),
                    retry_count,
                    self.max_retries,
                )
                time.sleep(backoff)
                continue
            except APIError as e:
                raise LLMError(f"Chat completion failed: {e}") from e

            if not response.choices:
                raise LLMError("Empty response from API")
            choice = response.choices[0]
            text = choice.message.content or ""
            if not text.strip():
                logger.warning(
                    "Empty content in response (finish_reason=%s)",
                    getattr(choice, "finish_reason", "?"),
                )
            return text.strip()

    def stream(
        self,
        messages: List[Message],
        max_tokens: int = 2048,
        temperature: float = 0.7,
    ) -> Iterator[str]:
        """Yield content deltas as they arrive."""
        try:
            response = self.client.chat.completions.create(
                model=self.model_name,
                messages=messages,
                max_tokens=max_tokens,
                temperature=temperature,
                stream=True,
            )
            for chunk in response:
                if chunk.choices and chunk.choices[0].delta.content is not None:
                    yield chunk.choices[0].delta.content
        except APIError as e:
            raise LLMError(f"Streaming failed: {e}") from e


def create_client(
    api_key: Optional[str] = None,
    model_name: Optional[str] = None,
    base_url: Optional[str] = None,
) -> GroqClient:
    """Create a client; missing arguments come from the saved config and environment."""
    config = AppConfig.load()
    key = api_key or config.get_api_key()
    if not key:
        raise ConfigError("No API key configured. Set GROQ_API_KEY or save one in the config file.")
    return GroqClient(api_key=key, model_name=model_name or config.default_model, base_url=base_url)
