"""Generative-model provider implementations."""

from depscout.inference.providers.claude import ClaudeClient
from depscout.inference.providers.ollama import OllamaClient
from depscout.inference.providers.openai import OpenAIClient

__all__ = [
    "ClaudeClient",
    "OllamaClient",
    "OpenAIClient",
]
