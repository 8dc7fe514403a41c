"""Model providers: registry, key validation and per-provider clients.

Every client exposes one coroutine, ``complete(system=..., prompt=...)``,
returning the raw text the model produced. OpenAI, Groq, DeepSeek and a local
Ollama server speak the OpenAI chat-completions protocol and share
:class:`OpenAICompatibleClient`; Anthropic and Gemini get their own request
builders over ``aiohttp``.
"""
from __future__ import annotations

import asyncio
import inspect
import logging
import re
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, List, Optional, Protocol

import aiohttp
from openai import AsyncOpenAI

from ..errors import ModelResponseError, ProviderConfigurationError

logger = logging.getLogger(__name__)

ANTHROPIC_MESSAGES_URL = "https://api.anthropic.com/v1/messages"
ANTHROPIC_VERSION = "2023-06-01"
GEMINI_URL_TEMPLATE = "https://generativelanguage.googleapis.com/v1beta/models/{model}:generateContent"
MIN_KEY_LENGTH = 20


class Provider(str, Enum):
    OPENAI = "openai"
    ANTHROPIC = "anthropic"
    GROQ = "groq"
    DEEPSEEK = "deepseek"
    GEMINI = "gemini"
    OLLAMA = "ollama"


@dataclass(frozen=True, slots=True)
class ProviderSpec:
    """Static description of one provider."""

    provider: Provider
    name: str
    default_model: str
    key_prefix: str = ""
    base_url: Optional[str] = None
    api_key_env: Optional[str] = None
    requires_api_key: bool = True
    description: str = ""

    def validate_key(self, key: Optional[str]) -> bool:
        if not self.requires_api_key:
            return True
        if not key or not key.strip():
            return False
        return key.startswith(self.key_prefix) and len(key) > MIN_KEY_LENGTH


PROVIDER_REGISTRY: Dict[Provider, ProviderSpec] = {
    Provider.OPENAI: ProviderSpec(
        provider=Provider.OPENAI,
        name="OpenAI",
        default_model="gpt-5-nano",
        key_prefix="sk-",
        api_key_env="OPENAI_API_KEY",
        description="GPT-5, GPT-o models and more",
    ),
    Provider.ANTHROPIC: ProviderSpec(
        provider=Provider.ANTHROPIC,
        name="Anthropic",
        default_model="claude-haiku-4-5-20251001",
        key_prefix="sk-ant-",
        api_key_env="ANTHROPIC_API_KEY",
        description="Claude models (Opus, Sonnet, Haiku)",
    ),
    Provider.GROQ: ProviderSpec(
        provider=Provider.GROQ,
        name="Groq",
        default_model="openai/gpt-oss-20b",
        key_prefix="gsk_",
        base_url="https://api.groq.com/openai/v1",
        api_key_env="GROQ_API_KEY",
        description="Fast inference for open-weight models",
    ),
    Provider.DEEPSEEK: ProviderSpec(
        provider=Provider.DEEPSEEK,
        name="DeepSeek",
        default_model="deepseek-chat",
        key_prefix="sk-",
        base_url="https://api.deepseek.com/v1",
        api_key_env="DEEPSEEK_API_KEY",
        description="DeepSeek models",
    ),
    Provider.GEMINI: ProviderSpec(
        provider=Provider.GEMINI,
        name="Google Gemini",
        default_model="gemini-2.5-flash",
        key_prefix="AIza",
        api_key_env="GEMINI_API_KEY",
        description="Gemini models with large context windows",
    ),
    Provider.OLLAMA: ProviderSpec(
        provider=Provider.OLLAMA,
        name="Ollama (Local)",
        default_model="llama3.2",
        base_url="http://localhost:11434/v1",
        requires_api_key=False,
        description="Models served by a local Ollama instance",
    ),
}


def get_provider(provider: Provider | str) -> ProviderSpec:
    """Resolve ``provider`` (enum or id string) to its registry entry."""

    try:
        key = provider if isinstance(provider, Provider) else Provider(str(provider).strip().lower())
    except ValueError as exc:
        supported = ", ".join(item.value for item in Provider)
        raise ProviderConfigurationError(
            f"Unsupported provider {provider!r}; expected one of: {supported}"
        ) from exc
    return PROVIDER_REGISTRY[key]


def list_providers() -> List[ProviderSpec]:
    return list(PROVIDER_REGISTRY.values())


def validate_provider_key(provider: Provider | str, key: Optional[str]) -> bool:
    return get_provider(provider).validate_key(key)


class ModelClient(Protocol):
    """Protocol describing the behaviour expected from any model backend."""

    async def complete(self, *, system: str, prompt: str, temperature: float) -> str:
        ...


# These models reject any temperature other than the default.
FIXED_TEMPERATURE_MODELS = re.compile(r"^(?:o\d|gpt-5)", re.IGNORECASE)


def supports_temperature(model: str) -> bool:
    return not FIXED_TEMPERATURE_MODELS.match(model.rsplit("/", 1)[-1])


class OpenAICompatibleClient:
    """Chat-completions client for OpenAI and API-compatible providers."""

    def __init__(
        self,
        *,
        model: str,
        api_key: Optional[str] = None,
        base_url: Optional[str] = None,
        client: Any | None = None,
        timeout: float = 30.0,
    ) -> None:
        if client is None:
            # Local servers ignore the key but the SDK insists on one.
            client = AsyncOpenAI(api_key=api_key or "ollama", base_url=base_url, timeout=timeout)
        self._client = client
        self._model = model

    @property
    def model(self) -> str:
        return self._model

    async def complete(self, *, system: str, prompt: str, temperature: float) -> str:
        request: Dict[str, Any] = {
            "model": self._model,
            "response_format": {"type": "json_object"},
            "messages": [
                {"role": "system", "content": system},
                {"role": "user", "content": prompt},
            ],
        }
        if supports_temperature(self._model):
            request["temperature"] = temperature

        create = getattr(self._client.chat.completions, "create")
        try:
            result = create(**request)
            if inspect.iscoroutine(result):
                response = await result
            else:
                response = result
        except TypeError:
            response = await asyncio.to_thread(create, **request)

        message = response.choices[0].message
        content = getattr(message, "content", None)
        if not content:
            raise ModelResponseError("Chat completion did not include content", data={"model": self._model})
        return content


class AnthropicClient:
    """Messages API client over ``aiohttp``."""

    def __init__(
        self,
        *,
        api_key: str,
        model: str,
        timeout: float = 30.0,
        max_tokens: int = 4096,
        url: str = ANTHROPIC_MESSAGES_URL,
    ) -> None:
        self._api_key = api_key
        self._model = model
        self._timeout = timeout
        self._max_tokens = max_tokens
        self._url = url

    @property
    def model(self) -> str:
        return self._model

    def build_request(self, *, system: str, prompt: str, temperature: float) -> Dict[str, Any]:
        return {
            "model": self._model,
            "max_tokens": self._max_tokens,
            "temperature": temperature,
            "system": system,
            "messages": [{"role": "user", "content": prompt}],
        }

    @staticmethod
    def parse_response(data: Dict[str, Any]) -> str:
        blocks = data.get("content") or []
        text = "".join(block.get("text", "") for block in blocks if block.get("type") == "text")
        if not text:
            raise ModelResponseError("Anthropic response did not include text content", data={"response": data})
        return text

    async def complete(self, *, system: str, prompt: str, temperature: float) -> str:
        headers = {
            "x-api-key": self._api_key,
            "anthropic-version": ANTHROPIC_VERSION,
            "Content-Type": "application/json",
        }
        payload = self.build_request(system=system, prompt=prompt, temperature=temperature)

        timeout = aiohttp.ClientTimeout(total=self._timeout)
        async with aiohttp.ClientSession(timeout=timeout) as session:
            async with session.post(self._url, headers=headers, json=payload) as resp:
                if resp.status != 200:
                    error_text = await resp.text()
                    raise ModelResponseError(
                        f"Anthropic API error {resp.status}",
                        data={"status": resp.status, "body": error_text},
                    )
                data = await resp.json()
        return self.parse_response(data)


class GeminiClient:
    """``generateContent`` client over ``aiohttp``."""

    def __init__(
        self,
        *,
        api_key: str,
        model: str,
        timeout: float = 30.0,
        max_tokens: int = 4096,
    ) -> None:
        self._api_key = api_key
        self._model = model.removeprefix("models/")
        self._timeout = timeout
        self._max_tokens = max_tokens

    @property
    def model(self) -> str:
        return self._model

    @property
    def url(self) -> str:
        return GEMINI_URL_TEMPLATE.format(model=self._model)

    def build_request(self, *, system: str, prompt: str, temperature: float) -> Dict[str, Any]:
        return {
            "systemInstruction": {"parts": [{"text": system}]},
            "contents": [{"role": "user", "parts": [{"text": prompt}]}],
            "generationConfig": {
                "temperature": temperature,
                "maxOutputTokens": self._max_tokens,
                "responseMimeType": "application/json",
            },
        }

    @staticmethod
    def parse_response(data: Dict[str, Any]) -> str:
        candidates = data.get("candidates") or []
        if not candidates:
            raise ModelResponseError("Gemini response did not include candidates", data={"response": data})
        parts = (candidates[0].get("content") or {}).get("parts") or []
        text = "".join(part.get("text", "") for part in parts)
        if not text:
            raise ModelResponseError("Gemini response did not include text content", data={"response": data})
        return text

    async def complete(self, *, system: str, prompt: str, temperature: float) -> str:
        headers = {"x-goog-api-key": self._api_key, "Content-Type": "application/json"}
        payload = self.build_request(system=system, prompt=prompt, temperature=temperature)

        timeout = aiohttp.ClientTimeout(total=self._timeout)
        async with aiohttp.ClientSession(timeout=timeout) as session:
            async with session.post(self.url, headers=headers, json=payload) as resp:
                if resp.status != 200:
                    error_text = await resp.text()
                    raise ModelResponseError(
                        f"Gemini API error {resp.status}",
                        data={"status": resp.status, "body": error_text},
                    )
                data = await resp.json()
        return self.parse_response(data)


def create_model_client(
    provider: Provider | str,
    api_key: Optional[str],
    model: Optional[str] = None,
    *,
    timeout: float = 30.0,
) -> ModelClient:
    """Build the client for ``provider``.

    Raises :class:`ProviderConfigurationError` for unknown providers or keys
    that fail the provider's format check.
    """

    spec = get_provider(provider)
    if not spec.validate_key(api_key):
        raise ProviderConfigurationError(f"Missing or malformed API key for provider {spec.provider.value!r}")

    model_name = model or spec.default_model
    logger.debug(
        "Creating model client",
        extra={"provider": spec.provider.value, "model": model_name},
    )

    if spec.provider is Provider.ANTHROPIC:
        return AnthropicClient(api_key=api_key or "", model=model_name, timeout=timeout)
    if spec.provider is Provider.GEMINI:
        return GeminiClient(api_key=api_key or "", model=model_name, timeout=timeout)
    return OpenAICompatibleClient(
        model=model_name,
        api_key=api_key,
        base_url=spec.base_url,
        timeout=timeout,
    )


__all__ = [
    "PROVIDER_REGISTRY",
    "AnthropicClient",
    "GeminiClient",
    "ModelClient",
    "OpenAICompatibleClient",
    "Provider",
    "ProviderSpec",
    "create_model_client",
    "get_provider",
    "supports_temperature",
    "list_providers",
    "validate_provider_key",
]
