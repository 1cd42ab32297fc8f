"""LLM backends — OpenAI-style chat completions from a local server or a hosted provider.

Both variants take an ordered list of ``{"role", "content"}`` messages and
return the completion text with reasoning markup removed. Any failure to get
a usable completion is raised as :class:`UpstreamUnavailable`; nothing here
retries.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from typing import Any

import httpx
import openai

from ..modules.postprocess import strip_thinking
from .config import AppConfig, LlamaCppConfig, ProviderConfig
from .errors import ConfigError, UpstreamUnavailable

logger = logging.getLogger(__name__)

ChatMessage = dict[str, str]

DEFAULT_TIMEOUT = 120.0


def _message_content(payload: Any) -> Any:
    """``choices[0].message.content`` of a decoded response body, or None."""
    try:
        return payload["choices"][0]["message"]["content"]
    except (KeyError, IndexError, TypeError):
        return None


class LLMBackend(ABC):
    """A chat-completion endpoint selected once from configuration."""

    def __init__(self, model: str, default_temperature: float, timeout: float = DEFAULT_TIMEOUT) -> None:
        self.model = model
        self.default_temperature = default_temperature
        self.timeout = timeout

    @property
    @abstractmethod
    def name(self) -> str:
        """Backend name used in logs and error messages."""

    @property
    @abstractmethod
    def url(self) -> str:
        """Full chat-completions URL."""

    @abstractmethod
    def _send(self, messages: list[ChatMessage], temperature: float) -> Any:
        """Perform one request and return the raw ``message.content`` value."""

    def _unavailable(self, message: str, status: int | None = None) -> UpstreamUnavailable:
        logger.warning("%s request to %s failed: %s", self.name, self.url, message)
        return UpstreamUnavailable(message, backend=self.name, url=self.url, status=status)

    def complete(self, messages: list[ChatMessage], temperature: float | None = None) -> str:
        """Run one completion and return its cleaned text."""
        temp = self.default_temperature if temperature is None else temperature
        logger.debug(
            "%s request: model=%s messages=%d temperature=%s",
            self.name, self.model, len(messages), temp,
        )

        content = self._send(messages, temp)
        if not isinstance(content, str) or not content.strip():
            raise self._unavailable(
                f"Invalid response from {self.name} server: missing generated content."
            )

        text = strip_thinking(content)
        if not text:
            raise self._unavailable(
                f"Invalid response from {self.name} server: only reasoning, no final answer."
            )
        logger.debug("%s response: %d chars", self.name, len(text))
        return text


class LlamaCppBackend(LLMBackend):
    """Local llama.cpp (or any OpenAI-compatible) inference server."""

    def __init__(self, cfg: LlamaCppConfig, timeout: float = DEFAULT_TIMEOUT) -> None:
        super().__init__(cfg.model, cfg.temperature, timeout)
        self._base_url = cfg.base_url.rstrip("/")
        self._api_key = cfg.api_key

    @property
    def name(self) -> str:
        return "llama.cpp"

    @property
    def url(self) -> str:
        return f"{self._base_url}/v1/chat/completions"

    def _send(self, messages: list[ChatMessage], temperature: float) -> Any:
        body = {"model": self.model, "temperature": temperature, "messages": messages}
        headers = {"content-type": "application/json"}
        if self._api_key:
            headers["authorization"] = f"Bearer {self._api_key}"

        try:
            resp = httpx.post(self.url, json=body, headers=headers, timeout=self.timeout)
        except httpx.TimeoutException as exc:
            raise self._unavailable(
                f"Timed out after {self.timeout:g}s waiting for {self.name} server at {self.url}"
            ) from exc
        except httpx.HTTPError as exc:
            raise self._unavailable(f"Failed to reach {self.name} server at {self.url}: {exc}") from exc

        if not resp.is_success:
            detail = resp.text[:500] or resp.reason_phrase
            raise self._unavailable(
                f"{self.name} server error ({resp.status_code}): {detail}", status=resp.status_code
            )

        try:
            payload = resp.json()
        except ValueError as exc:
            raise self._unavailable(f"Invalid JSON response from {self.name} server: {exc}") from exc
        return _message_content(payload)


class ProviderBackend(LLMBackend):
    """Hosted OpenAI-compatible provider (DeepSeek, OpenAI, ...)."""

    def __init__(self, cfg: ProviderConfig, timeout: float = DEFAULT_TIMEOUT) -> None:
        temperature = cfg.temperature if cfg.temperature is not None else 0.3
        super().__init__(cfg.model_id, temperature, timeout)
        self._base_url = cfg.base_url.rstrip("/")
        self._client = openai.OpenAI(
            api_key=cfg.api_key,
            base_url=self._base_url,
            timeout=timeout,
            max_retries=0,
        )

    @property
    def name(self) -> str:
        return "provider"

    @property
    def url(self) -> str:
        return f"{self._base_url}/chat/completions"

    def _send(self, messages: list[ChatMessage], temperature: float) -> Any:
        try:
            response = self._client.chat.completions.create(
                model=self.model,
                temperature=temperature,
                messages=messages,
            )
        except openai.APITimeoutError as exc:
            raise self._unavailable(
                f"Timed out after {self.timeout:g}s waiting for {self.name} server at {self.url}"
            ) from exc
        except openai.APIConnectionError as exc:
            raise self._unavailable(f"Failed to reach {self.name} server at {self.url}: {exc}") from exc
        except openai.APIStatusError as exc:
            raise self._unavailable(
                f"{self.name} server error ({exc.status_code}): {exc.message}", status=exc.status_code
            ) from exc
        except (openai.APIError, ValueError) as exc:
            raise self._unavailable(f"Invalid JSON response from {self.name} server: {exc}") from exc

        try:
            return response.choices[0].message.content
        except (AttributeError, IndexError, TypeError):
            return None


def create_backend(config: AppConfig) -> LLMBackend:
    """Build the backend selected by ``llm.provider``."""
    timeout = config.pipeline.request_timeout
    if config.llm.provider == "provider":
        if config.provider is None:
            raise ConfigError("provider section is required when llm.provider=provider")
        backend: LLMBackend = ProviderBackend(config.provider, timeout=timeout)
    else:
        if config.llamacpp is None:
            raise ConfigError("llamacpp section is required when llm.provider=llamacpp")
        backend = LlamaCppBackend(config.llamacpp, timeout=timeout)
    logger.info("Using %s backend (%s, model %s)", backend.name, backend.url, backend.model)
    return backend
