"""Configuration for chat answers and study-material generation."""

from __future__ import annotations

import os
from dataclasses import dataclass


@dataclass
class GenerationConfig:
    """Settings for grounded chat and content generation."""

    max_tokens: int = 2048
    temperature: float = 0.3
    # Approximate characters per token for English text
    chars_per_token: int = 4
    model_context_tokens: int = int(os.getenv("LLM_CONTEXT_TOKENS", "131072"))
    # Tokens kept free for the model's reply
    response_reserve_tokens: int = 2048
    min_context_chars: int = 1500
    max_context_chars: int = 10000
    chat_context_chars: int = 6000
    generation_context_chars: int = 10000
    overview_documents: int = 10
