from __future__ import annotations

from typing import Optional, Protocol

from openai import AsyncOpenAI

from app.core.config import settings

_client: Optional[AsyncOpenAI] = None

if settings.openai_api_key:
    _client = AsyncOpenAI(api_key=settings.openai_api_key, timeout=settings.llm_timeout_seconds, max_retries=0)


def get_client() -> Optional[AsyncOpenAI]:
    """Returns AsyncOpenAI client if api key is configured."""
    return _client


class CompletionModel(Protocol):
    async def complete(self, prompt: str, model: str) -> str: ...


class OpenAICompletionModel:
    """Text-in/text-out completion on top of the chat completions API."""

    def __init__(self, client: Optional[AsyncOpenAI]):
        self.client = client

    async def complete(self, prompt: str, model: str) -> str:
        if self.client is None:
            raise RuntimeError("OpenAI API key is not configured")
        resp = await self.client.chat.completions.create(
            model=model,
            messages=[{"role": "user", "content": prompt}],
        )
        return resp.choices[0].message.content or ""
