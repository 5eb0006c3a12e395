"""
SceneCast Text Gateway

One capability per provider: stream text fragments for a prompt, or return
one complete text. Provider configuration is passed in explicitly; nothing
here reads credentials from the environment.
"""

import json
from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime, timezone
from email.utils import parsedate_to_datetime
from enum import Enum
from typing import AsyncIterator, Optional

import httpx
import openai

from scenecast.core.config import Settings
from scenecast.core.exceptions import (
    ContentBlockedError,
    LLMProviderError,
    LLMResponseError,
    MissingConfigError,
    RateLimitError,
)
from scenecast.core.logging_config import get_logger
from scenecast.core.retry import LLM_RETRY_CONFIG, is_transient_http_error, retry_async_call

logger = get_logger("llm.gateway")


class ModelProvider(str, Enum):
    """Supported text providers."""
    OPENAI = "openai"
    GEMINI = "gemini"

    @property
    def display_name(self) -> str:
        return _DISPLAY_NAMES[self]


_DISPLAY_NAMES = {
    ModelProvider.OPENAI: "OpenAI GPT-4",
    ModelProvider.GEMINI: "Google Gemini",
}


@dataclass
class ProviderConfig:
    """Resolved configuration for one text provider call site."""
    provider: ModelProvider
    api_key: str
    model: str
    base_url: str
    timeout: float = 120.0

    @classmethod
    def from_settings(
        cls,
        settings: Settings,
        provider: ModelProvider,
        api_key: Optional[str] = None,
        model: Optional[str] = None,
    ) -> "ProviderConfig":
        """
        Build a config from settings, letting a per-request key or model win.

        Raises:
            MissingConfigError: If no API key is available for the provider
        """
        if provider == ModelProvider.GEMINI:
            key = api_key or settings.gemini_api_key
            if not key:
                raise MissingConfigError("GEMINI_API_KEY", "Gemini API key not configured")
            return cls(
                provider=provider,
                api_key=key,
                model=model or settings.gemini_text_model,
                base_url=settings.gemini_base_url,
                timeout=settings.request_timeout,
            )

        key = api_key or settings.openai_api_key
        if not key:
            raise MissingConfigError("OPENAI_API_KEY", "OpenAI API key not configured")
        return cls(
            provider=ModelProvider.OPENAI,
            api_key=key,
            model=model or settings.openai_text_model,
            base_url=settings.openai_base_url,
            timeout=settings.request_timeout,
        )


class TextGateway(ABC):
    """Abstract text generation gateway."""

    def __init__(self, config: ProviderConfig):
        self.config = config

    @property
    def display_name(self) -> str:
        """Human-readable provider name used in progress messages."""
        return self.config.provider.display_name

    @abstractmethod
    def stream_text(
        self,
        prompt: str,
        system: Optional[str] = None,
        temperature: float = 0.7,
        max_tokens: int = 4000,
    ) -> AsyncIterator[str]:
        """Yield text fragments as the provider produces them."""

    @abstractmethod
    async def _complete_once(
        self,
        prompt: str,
        system: Optional[str],
        temperature: float,
        max_tokens: int,
    ) -> str:
        """Single non-streaming completion call."""

    async def generate_text(
        self,
        prompt: str,
        system: Optional[str] = None,
        temperature: float = 0.7,
        max_tokens: int = 4000,
    ) -> str:
        """Return one complete text, retrying transient provider failures."""
        try:
            return await retry_async_call(
                self._complete_once,
                prompt,
                system,
                temperature,
                max_tokens,
                config=LLM_RETRY_CONFIG,
                should_retry=is_transient_http_error,
            )
        except httpx.HTTPError as e:
            raise LLMProviderError(self.config.provider.value, str(e)) from e

    async def aclose(self) -> None:
        """Release any pooled connections."""


# =============================================================================
# OPENAI
# =============================================================================

class OpenAIChatGateway(TextGateway):
    """OpenAI-compatible chat completions via the openai SDK."""

    def __init__(self, config: ProviderConfig, http_client: Optional[httpx.AsyncClient] = None):
        super().__init__(config)
        self._client = openai.AsyncOpenAI(
            api_key=config.api_key,
            base_url=config.base_url,
            timeout=config.timeout,
            max_retries=0,
            http_client=http_client,
        )

    def _messages(self, prompt: str, system: Optional[str]) -> list:
        messages = []
        if system:
            messages.append({"role": "system", "content": system})
        messages.append({"role": "user", "content": prompt})
        return messages

    async def stream_text(
        self,
        prompt: str,
        system: Optional[str] = None,
        temperature: float = 0.7,
        max_tokens: int = 4000,
    ) -> AsyncIterator[str]:
        try:
            stream = await self._client.chat.completions.create(
                model=self.config.model,
                messages=self._messages(prompt, system),
                temperature=temperature,
                max_tokens=max_tokens,
                stream=True,
            )
            async for chunk in stream:
                if not chunk.choices:
                    continue
                delta = chunk.choices[0].delta.content
                if delta:
                    yield delta
        except openai.APIError as e:
            raise _map_openai_error(e) from e

    async def _complete_once(
        self,
        prompt: str,
        system: Optional[str],
        temperature: float,
        max_tokens: int,
    ) -> str:
        try:
            response = await self._client.chat.completions.create(
                model=self.config.model,
                messages=self._messages(prompt, system),
                temperature=temperature,
                max_tokens=max_tokens,
            )
        except openai.APIError as e:
            raise _map_openai_error(e) from e

        if not response.choices:
            raise LLMResponseError("OpenAI returned no choices")
        return response.choices[0].message.content or ""

    async def aclose(self) -> None:
        await self._client.close()


def _map_openai_error(error: "openai.APIError") -> LLMProviderError:
    if isinstance(error, openai.RateLimitError):
        return RateLimitError("openai")
    if isinstance(error, openai.APIStatusError):
        return LLMProviderError("openai", error.message, status_code=error.status_code)
    return LLMProviderError("openai", str(error))


# =============================================================================
# GEMINI
# =============================================================================

class GeminiTextGateway(TextGateway):
    """Gemini generateContent / streamGenerateContent over REST."""

    def __init__(self, config: ProviderConfig, http_client: Optional[httpx.AsyncClient] = None):
        super().__init__(config)
        self._owns_client = http_client is None
        self._client = http_client or httpx.AsyncClient(timeout=config.timeout)

    def _headers(self) -> dict:
        return {
            "Content-Type": "application/json",
            "x-goog-api-key": self.config.api_key,
        }

    def _body(self, prompt: str, system: Optional[str], temperature: float, max_tokens: int) -> dict:
        body = {
            "contents": [{"role": "user", "parts": [{"text": prompt}]}],
            "generationConfig": {
                "temperature": temperature,
                "maxOutputTokens": max_tokens,
            },
        }
        if system:
            body["systemInstruction"] = {"parts": [{"text": system}]}
        return body

    def _url(self, method: str) -> str:
        return f"{self.config.base_url}/models/{self.config.model}:{method}"

    async def stream_text(
        self,
        prompt: str,
        system: Optional[str] = None,
        temperature: float = 0.7,
        max_tokens: int = 4000,
    ) -> AsyncIterator[str]:
        url = self._url("streamGenerateContent")
        body = self._body(prompt, system, temperature, max_tokens)

        try:
            async with self._client.stream(
                "POST", url, params={"alt": "sse"}, headers=self._headers(), json=body
            ) as response:
                if response.status_code >= 400:
                    await response.aread()
                    raise _map_gemini_status(response)

                async for line in response.aiter_lines():
                    if not line.startswith("data:"):
                        continue
                    payload = line[len("data:"):].strip()
                    if not payload:
                        continue
                    try:
                        data = json.loads(payload)
                    except json.JSONDecodeError:
                        logger.warning(f"Skipping undecodable Gemini stream line: {payload[:80]}")
                        continue
                    text = extract_gemini_text(data)
                    if text:
                        yield text
        except httpx.HTTPError as e:
            raise LLMProviderError("gemini", str(e)) from e

    async def _complete_once(
        self,
        prompt: str,
        system: Optional[str],
        temperature: float,
        max_tokens: int,
    ) -> str:
        response = await self._client.post(
            self._url("generateContent"),
            headers=self._headers(),
            json=self._body(prompt, system, temperature, max_tokens),
        )
        if response.status_code >= 400:
            raise _map_gemini_status(response)

        data = response.json()
        if not data.get("candidates"):
            block_reason = data.get("promptFeedback", {}).get("blockReason", "UNKNOWN")
            logger.warning(f"Gemini blocked content: {block_reason}")
            raise ContentBlockedError("gemini", block_reason)
        return extract_gemini_text(data)

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()


def extract_gemini_text(data: dict) -> str:
    """Concatenate the text parts of the first candidate."""
    candidates = data.get("candidates") or []
    if not candidates:
        return ""
    parts = candidates[0].get("content", {}).get("parts") or []
    return "".join(part.get("text", "") for part in parts if "text" in part)


def parse_retry_after(value: Optional[str]) -> Optional[float]:
    """Seconds to wait from a Retry-After header, given as seconds or an HTTP-date."""
    if not value:
        return None
    try:
        return max(float(value), 0.0)
    except ValueError:
        pass
    try:
        when = parsedate_to_datetime(value)
    except (TypeError, ValueError):
        logger.warning(f"Ignoring unparseable Retry-After header: {value}")
        return None
    if when.tzinfo is None:
        when = when.replace(tzinfo=timezone.utc)
    return max((when - datetime.now(timezone.utc)).total_seconds(), 0.0)


def _map_gemini_status(response: httpx.Response) -> LLMProviderError:
    if response.status_code == 429:
        return RateLimitError("gemini", parse_retry_after(response.headers.get("retry-after")))
    try:
        reason = response.json().get("error", {}).get("message") or response.text
    except ValueError:
        reason = response.text
    return LLMProviderError("gemini", reason, status_code=response.status_code)


def create_text_gateway(
    config: ProviderConfig,
    http_client: Optional[httpx.AsyncClient] = None,
) -> TextGateway:
    """Instantiate the gateway class for a provider config."""
    if config.provider == ModelProvider.GEMINI:
        return GeminiTextGateway(config, http_client=http_client)
    return OpenAIChatGateway(config, http_client=http_client)
