"""OpenRouter LLM client built on the OpenAI-compatible SDK."""
from __future__ import annotations

import time
from dataclasses import dataclass
from typing import Any

from life_encyclopedia.config import settings
from life_encyclopedia.services import logger as log_service


@dataclass
class Usage:
    input_tokens: int = 0
    output_tokens: int = 0


@dataclass
class TextBlock:
    type: str
    text: str


@dataclass
class MessageResponse:
    content: list[TextBlock]
    usage: Usage

    @property
    def text(self) -> str:
        return "".join(block.text for block in self.content if block.type == "text")


class OpenRouterMessagesAdapter:
    def __init__(self, openai_client: Any):
        self._client = openai_client

    @staticmethod
    def _temperature_for_model(model: str, requested: float | None) -> float:
        # Some OpenAI GPT-5-compatible gateways reject anything but the default temperature.
        if "gpt-5" in (model or "").lower():
            return 1
        return 0 if requested is None else requested

    def _from_openai_response(self, response: Any) -> MessageResponse:
        choice = response.choices[0].message
        content: list[TextBlock] = []
        text = getattr(choice, "content", None)
        if text:
            content.append(TextBlock(type="text", text=text))

        usage = getattr(response, "usage", None)
        return MessageResponse(
            content=content,
            usage=Usage(
                input_tokens=getattr(usage, "prompt_tokens", 0) or 0,
                output_tokens=getattr(usage, "completion_tokens", 0) or 0,
            ),
        )

    async def create(
        self,
        *,
        model: str,
        max_tokens: int,
        system: str,
        messages: list[dict[str, Any]],
        temperature: float | None = None,
    ) -> MessageResponse:
        response = await self._client.chat.completions.create(
            model=model,
            messages=[{"role": "system", "content": system}, *messages],
            max_tokens=max_tokens,
            temperature=self._temperature_for_model(model, temperature),
        )
        return self._from_openai_response(response)


class OpenRouterClientAdapter:
    def __init__(self, openai_client: Any):
        self.messages = OpenRouterMessagesAdapter(openai_client)


def get_client() -> OpenRouterClientAdapter:
    """Get OpenRouter client via OpenAI-compatible SDK."""
    from openai import AsyncOpenAI

    base_url = settings.openrouter_base_url.strip() or "https://openrouter.ai/api/v1"
    openai_client = AsyncOpenAI(
        api_key=settings.openrouter_api_key,
        base_url=base_url,
    )
    return OpenRouterClientAdapter(openai_client)


def get_model() -> str:
    """Get the active OpenRouter model id."""
    if settings.openrouter_model:
        return settings.openrouter_model
    return settings.default_model


_client: OpenRouterClientAdapter | None = None


def client() -> OpenRouterClientAdapter:
    """Get or create the LLM client."""
    global _client
    if _client is None:
        _client = get_client()
    return _client


async def generate(
    system: str,
    prompt: str,
    *,
    max_tokens: int,
    temperature: float | None = None,
    caller: str,
    model: str | None = None,
) -> str:
    """Run one system+user completion and return its text.

    Errors propagate after being logged; callers decide how to degrade.
    """
    active_model = model or get_model()
    t0 = time.monotonic()
    try:
        response = await client().messages.create(
            model=active_model,
            max_tokens=max_tokens,
            system=system,
            messages=[{"role": "user", "content": prompt}],
            temperature=temperature,
        )
    except Exception as exc:
        log_service.log_llm_call(
            model=active_model,
            caller=caller,
            duration_ms=int((time.monotonic() - t0) * 1000),
            status="error",
            error=str(exc),
        )
        raise

    log_service.log_llm_call(
        model=active_model,
        caller=caller,
        input_tokens=response.usage.input_tokens,
        output_tokens=response.usage.output_tokens,
        duration_ms=int((time.monotonic() - t0) * 1000),
    )
    return response.text
