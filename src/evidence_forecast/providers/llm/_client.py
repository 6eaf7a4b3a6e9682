"""Shared Anthropic client plumbing for tool-based structured outputs."""

from __future__ import annotations

import os
from typing import Protocol, cast

_AsyncAnthropic: object | None
try:
    from anthropic import AsyncAnthropic as _AsyncAnthropicImpl
except ImportError:  # pragma: no cover
    _AsyncAnthropic = None
else:  # pragma: no cover
    _AsyncAnthropic = _AsyncAnthropicImpl


class _AnthropicMessages(Protocol):
    async def create(self, **kwargs: object) -> object: ...


class AnthropicClient(Protocol):
    messages: _AnthropicMessages


class _AsyncAnthropicCtor(Protocol):
    def __call__(self, *, api_key: str) -> AnthropicClient: ...


def resolve_client(
    client: AnthropicClient | None = None,
    api_key: str | None = None,
) -> AnthropicClient:
    """Return the injected client or construct an AsyncAnthropic one from the environment."""
    if client is not None:
        return client

    resolved_key = api_key or os.getenv("ANTHROPIC_API_KEY")
    if not resolved_key:
        raise ValueError(
            "ANTHROPIC_API_KEY is required for the 'anthropic' backend. "
            "Set ANTHROPIC_API_KEY or use FORECAST_LLM_BACKEND=mock."
        )

    if _AsyncAnthropic is None:
        raise ValueError(
            "Anthropic backend requested but dependency is not installed. "
            "Install with `pip install evidence-forecast[llm]`."
        )

    ctor = cast("_AsyncAnthropicCtor", _AsyncAnthropic)
    return ctor(api_key=resolved_key)


class ToolCaller:
    """Issues single-turn requests that force one named tool call, or plain text completions."""

    def __init__(self, client: AnthropicClient, *, model: str, max_tokens: int = 2048) -> None:
        if max_tokens <= 0:
            raise ValueError("max_tokens must be positive")
        self._client = client
        self.model = model
        self._max_tokens = max_tokens

    async def call_tool(
        self,
        *,
        system: str,
        prompt: str,
        tool_name: str,
        description: str,
        input_schema: dict[str, object],
    ) -> dict[str, object]:
        """Send a request with ``tool_choice`` pinned to ``tool_name`` and return its input."""
        response = await self._client.messages.create(
            model=self.model,
            max_tokens=self._max_tokens,
            temperature=0.0,
            system=system,
            messages=[{"role": "user", "content": prompt}],
            tools=[
                {
                    "name": tool_name,
                    "description": description,
                    "input_schema": input_schema,
                }
            ],
            tool_choice={"type": "tool", "name": tool_name},
        )
        return extract_tool_input(response, tool_name=tool_name)

    async def complete_text(self, *, system: str, prompt: str) -> str:
        """Send a plain request and return the concatenated text blocks."""
        response = await self._client.messages.create(
            model=self.model,
            max_tokens=self._max_tokens,
            temperature=0.2,
            system=system,
            messages=[{"role": "user", "content": prompt}],
        )
        return extract_text(response)


def extract_tool_input(response: object, *, tool_name: str) -> dict[str, object]:
    """Extract tool input from an Anthropic response."""
    content = getattr(response, "content", None)
    if not isinstance(content, list):
        raise RuntimeError("Anthropic response content is not a list")

    for block in content:
        block_type = getattr(block, "type", None)
        name = getattr(block, "name", None)
        if block_type != "tool_use" or name != tool_name:
            continue

        tool_input = getattr(block, "input", None)
        if not isinstance(tool_input, dict):
            raise RuntimeError("Anthropic tool_use block input is not a dict")
        return tool_input

    raise RuntimeError(f"Anthropic response did not include tool_use for {tool_name!r}")


def extract_text(response: object) -> str:
    """Extract and join text blocks from an Anthropic response."""
    content = getattr(response, "content", None)
    if not isinstance(content, list):
        raise RuntimeError("Anthropic response content is not a list")

    parts = [
        getattr(block, "text", "")
        for block in content
        if getattr(block, "type", None) == "text"
    ]
    text = "".join(p for p in parts if isinstance(p, str)).strip()
    if not text:
        raise RuntimeError("Anthropic response did not include any text")
    return text
