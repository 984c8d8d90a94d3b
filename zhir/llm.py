"""
LLM Service module for the Zhir assistant.
Provides a unified chat and streaming interface over OpenAI, Gemini, Ollama,
and Anthropic providers.
"""

import json
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import AsyncIterator, Optional

import httpx

from zhir.config import Config

logger = logging.getLogger(__name__)


@dataclass
class TokenUsage:
    """Token usage information from an LLM call."""
    prompt: int = 0
    completion: int = 0
    total: int = 0


@dataclass
class ChatResult:
    """Result from a chat completion, including token usage."""
    content: str
    usage: TokenUsage = field(default_factory=TokenUsage)


class LLMProvider(ABC):
    """Abstract base class for LLM providers."""

    name: str = "base"

    @abstractmethod
    async def chat(
        self,
        messages: list[dict[str, str]],
        temperature: Optional[float] = None,
        max_tokens: Optional[int] = None,
    ) -> str:
        """
        Send a chat completion request.

        Args:
            messages: List of message dicts with 'role' and 'content' keys.
            temperature: Override default temperature.
            max_tokens: Override default max tokens.

        Returns:
            The assistant's response text.
        """
        pass

    async def chat_with_usage(
        self,
        messages: list[dict[str, str]],
        temperature: Optional[float] = None,
        max_tokens: Optional[int] = None,
    ) -> ChatResult:
        """
        Send a chat completion and return both text and token usage.

        Default implementation calls :meth:`chat` and returns zero usage.
        Providers should override to extract real token counts.
        """
        content = await self.chat(messages, temperature, max_tokens)
        return ChatResult(content=content)

    async def stream_chat(
        self,
        messages: list[dict[str, str]],
        temperature: Optional[float] = None,
        max_tokens: Optional[int] = None,
    ) -> AsyncIterator[str]:
        """
        Stream a chat completion fragment by fragment.

        The returned iterator is lazy, finite and cannot be restarted.
        Default implementation falls back to non-streaming :meth:`chat`
        and yields the full response as one fragment.
        """
        full = await self.chat(messages, temperature, max_tokens)
        yield full


def _split_system(messages: list[dict[str, str]]) -> tuple[Optional[str], list[dict[str, str]]]:
    """Separate the system prompt from the conversation messages."""
    system_msg = None
    chat_messages = []
    for msg in messages:
        if msg["role"] == "system":
            system_msg = msg["content"]
        else:
            chat_messages.append({"role": msg["role"], "content": msg["content"]})
    return system_msg, chat_messages


class OpenAIProvider(LLMProvider):
    """OpenAI LLM provider implementation."""

    name = "openai"

    def __init__(self):
        from openai import AsyncOpenAI

        self.client = AsyncOpenAI(
            api_key=Config.OPENAI_API_KEY,
            base_url=Config.OPENAI_BASE_URL,
        )
        self.model = Config.OPENAI_MODEL
        self.default_temperature = Config.LLM_TEMPERATURE
        self.default_max_tokens = Config.LLM_MAX_TOKENS

    async def chat(
        self,
        messages: list[dict[str, str]],
        temperature: Optional[float] = None,
        max_tokens: Optional[int] = None,
    ) -> str:
        result = await self.chat_with_usage(messages, temperature, max_tokens)
        return result.content

    async def chat_with_usage(
        self,
        messages: list[dict[str, str]],
        temperature: Optional[float] = None,
        max_tokens: Optional[int] = None,
    ) -> ChatResult:
        response = await self.client.chat.completions.create(
            model=self.model,
            messages=messages,
            temperature=temperature or self.default_temperature,
            max_tokens=max_tokens or self.default_max_tokens,
        )
        content = response.choices[0].message.content or ""
        usage = TokenUsage()
        if response.usage:
            usage = TokenUsage(
                prompt=response.usage.prompt_tokens or 0,
                completion=response.usage.completion_tokens or 0,
                total=response.usage.total_tokens or 0,
            )
        return ChatResult(content=content, usage=usage)

    async def stream_chat(
        self,
        messages: list[dict[str, str]],
        temperature: Optional[float] = None,
        max_tokens: Optional[int] = None,
    ) -> AsyncIterator[str]:
        stream = await self.client.chat.completions.create(
            model=self.model,
            messages=messages,
            temperature=temperature or self.default_temperature,
            max_tokens=max_tokens or self.default_max_tokens,
            stream=True,
        )
        async for chunk in stream:
            delta = chunk.choices[0].delta if chunk.choices else None
            if delta and delta.content:
                yield delta.content


class GeminiProvider(LLMProvider):
    """Google Gemini LLM provider implementation."""

    name = "gemini"

    def __init__(self):
        from google import genai
        from google.genai import types

        self.client = genai.Client(api_key=Config.GEMINI_API_KEY)
        self.types = types
        self.model_name = Config.GEMINI_MODEL
        self.default_temperature = Config.LLM_TEMPERATURE
        self.default_max_tokens = Config.LLM_MAX_TOKENS

    def _build_request(
        self,
        messages: list[dict[str, str]],
        temperature: Optional[float],
        max_tokens: Optional[int],
    ):
        """Convert chat messages into Gemini contents and generation config."""
        system_msg, chat_messages = _split_system(messages)

        contents = []
        for msg in chat_messages:
            # Gemini calls the assistant role "model"
            role = "user" if msg["role"] == "user" else "model"
            contents.append(self.types.Content(
                role=role,
                parts=[self.types.Part(text=msg["content"])]
            ))

        config = self.types.GenerateContentConfig(
            temperature=temperature or self.default_temperature,
            max_output_tokens=max_tokens or self.default_max_tokens,
            system_instruction=system_msg,
        )
        return contents, config

    async def chat(
        self,
        messages: list[dict[str, str]],
        temperature: Optional[float] = None,
        max_tokens: Optional[int] = None,
    ) -> str:
        result = await self.chat_with_usage(messages, temperature, max_tokens)
        return result.content

    async def chat_with_usage(
        self,
        messages: list[dict[str, str]],
        temperature: Optional[float] = None,
        max_tokens: Optional[int] = None,
    ) -> ChatResult:
        contents, config = self._build_request(messages, temperature, max_tokens)

        response = await self.client.aio.models.generate_content(
            model=self.model_name,
            contents=contents,
            config=config,
        )
        usage = TokenUsage()
        if hasattr(response, "usage_metadata") and response.usage_metadata:
            um = response.usage_metadata
            usage = TokenUsage(
                prompt=getattr(um, "prompt_token_count", 0) or 0,
                completion=getattr(um, "candidates_token_count", 0) or 0,
                total=getattr(um, "total_token_count", 0) or 0,
            )
        return ChatResult(content=response.text or "", usage=usage)

    async def stream_chat(
        self,
        messages: list[dict[str, str]],
        temperature: Optional[float] = None,
        max_tokens: Optional[int] = None,
    ) -> AsyncIterator[str]:
        contents, config = self._build_request(messages, temperature, max_tokens)

        stream = await self.client.aio.models.generate_content_stream(
            model=self.model_name,
            contents=contents,
            config=config,
        )
        async for chunk in stream:
            if chunk.text:
                yield chunk.text


class OllamaProvider(LLMProvider):
    """Ollama local LLM provider implementation."""

    name = "ollama"

    def __init__(self):
        self.base_url = Config.OLLAMA_BASE_URL
        self.model = Config.OLLAMA_MODEL
        self.default_temperature = Config.LLM_TEMPERATURE
        self.default_max_tokens = Config.LLM_MAX_TOKENS
        self.client = httpx.AsyncClient(timeout=120.0)

    def _payload(
        self,
        messages: list[dict[str, str]],
        temperature: Optional[float],
        max_tokens: Optional[int],
        stream: bool,
    ) -> dict:
        return {
            "model": self.model,
            "messages": messages,
            "stream": stream,
            "options": {
                "temperature": temperature or self.default_temperature,
                "num_predict": max_tokens or self.default_max_tokens,
            },
        }

    async def chat(
        self,
        messages: list[dict[str, str]],
        temperature: Optional[float] = None,
        max_tokens: Optional[int] = None,
    ) -> str:
        response = await self.client.post(
            f"{self.base_url}/api/chat",
            json=self._payload(messages, temperature, max_tokens, stream=False),
        )
        response.raise_for_status()
        data = response.json()
        return data.get("message", {}).get("content", "")

    async def stream_chat(
        self,
        messages: list[dict[str, str]],
        temperature: Optional[float] = None,
        max_tokens: Optional[int] = None,
    ) -> AsyncIterator[str]:
        async with self.client.stream(
            "POST",
            f"{self.base_url}/api/chat",
            json=self._payload(messages, temperature, max_tokens, stream=True),
        ) as resp:
            resp.raise_for_status()
            async for line in resp.aiter_lines():
                if not line:
                    continue
                try:
                    data = json.loads(line)
                except json.JSONDecodeError:
                    logger.warning("Skipping malformed Ollama stream line: %r", line[:80])
                    continue
                content = data.get("message", {}).get("content", "")
                if content:
                    yield content

    async def close(self):
        """Close the HTTP client."""
        await self.client.aclose()


class AnthropicProvider(LLMProvider):
    """Anthropic Claude LLM provider implementation."""

    name = "anthropic"

    def __init__(self):
        from anthropic import AsyncAnthropic

        self.client = AsyncAnthropic(api_key=Config.ANTHROPIC_API_KEY)
        self.model = Config.ANTHROPIC_MODEL
        self.default_temperature = Config.LLM_TEMPERATURE
        self.default_max_tokens = Config.LLM_MAX_TOKENS

    def _kwargs(
        self,
        messages: list[dict[str, str]],
        temperature: Optional[float],
        max_tokens: Optional[int],
    ) -> dict:
        system_msg, chat_messages = _split_system(messages)
        kwargs = {
            "model": self.model,
            "messages": chat_messages,
            "temperature": temperature or self.default_temperature,
            "max_tokens": max_tokens or self.default_max_tokens,
        }
        if system_msg:
            kwargs["system"] = system_msg
        return kwargs

    async def chat(
        self,
        messages: list[dict[str, str]],
        temperature: Optional[float] = None,
        max_tokens: Optional[int] = None,
    ) -> str:
        result = await self.chat_with_usage(messages, temperature, max_tokens)
        return result.content

    async def chat_with_usage(
        self,
        messages: list[dict[str, str]],
        temperature: Optional[float] = None,
        max_tokens: Optional[int] = None,
    ) -> ChatResult:
        response = await self.client.messages.create(**self._kwargs(messages, temperature, max_tokens))
        content = response.content[0].text
        usage = TokenUsage()
        if hasattr(response, "usage") and response.usage:
            usage = TokenUsage(
                prompt=getattr(response.usage, "input_tokens", 0) or 0,
                completion=getattr(response.usage, "output_tokens", 0) or 0,
                total=(
                    (getattr(response.usage, "input_tokens", 0) or 0)
                    + (getattr(response.usage, "output_tokens", 0) or 0)
                ),
            )
        return ChatResult(content=content, usage=usage)

    async def stream_chat(
        self,
        messages: list[dict[str, str]],
        temperature: Optional[float] = None,
        max_tokens: Optional[int] = None,
    ) -> AsyncIterator[str]:
        async with self.client.messages.stream(**self._kwargs(messages, temperature, max_tokens)) as stream:
            async for text in stream.text_stream:
                if text:
                    yield text


# Provider registry
_providers: dict[str, type[LLMProvider]] = {
    "openai": OpenAIProvider,
    "gemini": GeminiProvider,
    "ollama": OllamaProvider,
    "anthropic": AnthropicProvider,
}

# Singleton instance
_llm_instance: Optional[LLMProvider] = None


def get_llm_provider() -> LLMProvider:
    """
    Get the configured LLM provider instance (singleton).

    Returns:
        The LLM provider instance based on LLM_PROVIDER config.

    Raises:
        ValueError: If the provider is not supported or not configured.
    """
    global _llm_instance

    if _llm_instance is None:
        provider_name = Config.LLM_PROVIDER.lower()

        if provider_name not in _providers:
            raise ValueError(
                f"Unsupported LLM provider: {provider_name}. "
                f"Supported: {', '.join(_providers.keys())}"
            )

        Config.validate_llm_config()
        _llm_instance = _providers[provider_name]()
        logger.info("Initialized LLM provider: %s", provider_name)

    return _llm_instance


async def check_provider_availability(provider_name: str) -> dict:
    """
    Check if a provider is available and configured.

    Returns:
        Dict with 'available' bool and optional 'error' message.
    """
    provider_name = provider_name.lower()

    if provider_name not in _providers:
        return {"available": False, "error": f"Unknown provider: {provider_name}"}

    # Check configuration
    if provider_name == "openai":
        if not Config.OPENAI_API_KEY:
            return {"available": False, "error": "OPENAI_API_KEY not configured"}
    elif provider_name == "gemini":
        if not Config.GEMINI_API_KEY:
            return {"available": False, "error": "GEMINI_API_KEY not configured"}
    elif provider_name == "anthropic":
        if not Config.ANTHROPIC_API_KEY:
            return {"available": False, "error": "ANTHROPIC_API_KEY not configured"}
    elif provider_name == "ollama":
        # Check if Ollama is running
        try:
            async with httpx.AsyncClient(timeout=5.0) as client:
                response = await client.get(f"{Config.OLLAMA_BASE_URL}/api/tags")
                if response.status_code != 200:
                    return {"available": False, "error": "Ollama not responding"}
        except httpx.HTTPError as e:
            return {"available": False, "error": f"Cannot connect to Ollama: {e}"}

    return {"available": True}


def list_providers() -> list[str]:
    """List all registered provider names."""
    return list(_providers.keys())
