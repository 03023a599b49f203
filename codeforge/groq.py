"""Groq adapter: the OpenAI wire format served from Groq's endpoint."""

from __future__ import annotations

from .llm import ProviderType
from .openai_client import OpenAICompatibleAdapter


class GroqAdapter(OpenAICompatibleAdapter):
    provider_type = ProviderType.GROQ
    label = "Groq"
    missing_key_message = (
        "Groq API key is required. Get a free key at console.groq.com and set GROQ_API_KEY "
        "or groq.api_key in config.yaml."
    )
