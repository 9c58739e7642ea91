"""
LLM client module for OpenAI-compatible chat APIs.
"""

from .client import GroqClient, create_client

__all__ = ["GroqClient", "create_client"]
