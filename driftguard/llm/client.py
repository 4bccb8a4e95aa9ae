"""HTTP client for the optional LLM drift checks (OpenAI-compatible and Ollama)."""

from __future__ import annotations

import ipaddress
import json
import os
import re
from dataclasses import dataclass
from typing import Callable, Dict, Iterable, Optional, Sequence
from urllib.error import HTTPError, URLError
from urllib.parse import urlparse
from urllib.request import Request, urlopen

from ..logging import get_logger

logger = get_logger("llm")

DEFAULT_TIMEOUT = 30.0
MOCK_RESPONSE_ENV = "DRIFTGUARD_MOCK_RESPONSE"
ALLOW_CUSTOM_ENV = "DRIFTGUARD_ALLOW_CUSTOM_LLM"
_USER_AGENT = "driftguard"
_ERROR_DETAIL_CHARS = 500

DEFAULT_BASE_URLS: Dict[str, str] = {
    "llm7": "https://api.llm7.io/v1",
    "openrouter": "https://openrouter.ai/api/v1",
    "groq": "https://api.groq.com/openai/v1",
    "openai": "https://api.openai.com/v1",
    "ollama": "http://localhost:11434",
}

TRUSTED_HOSTS = (
    "api.openai.com",
    "api.anthropic.com",
    "api.groq.com",
    "openrouter.ai",
    "api.llm7.io",
    "api.together.xyz",
    "api.mistral.ai",
    "api.cohere.ai",
    "generativelanguage.googleapis.com",
    "localhost",
    "127.0.0.1",
    "0.0.0.0",
    "::1",
)

_INTERNAL_SUFFIXES = (".internal", ".local", ".private", ".corp", ".lan")
_PRIVATE_172 = re.compile(r"^172\.(1[6-9]|2[0-9]|3[01])\.")


class LLMError(RuntimeError):
    """Raised for rejected endpoints and failed completions."""


@dataclass
class LLMRequest:
    """A single completion request handed to the transport."""

    url: str
    payload: Dict[str, object]
    headers: Dict[str, str]
    timeout: float


Transport = Callable[[LLMRequest], Dict[str, object]]


class LLMClient:
    """Turns a plain-text prompt into a plain-text completion."""

    def __init__(
        self,
        provider: str = "openai-compatible",
        model: str | None = None,
        *,
        api_key: str | None = None,
        base_url: str | None = None,
        temperature: Optional[float] = None,
        max_tokens: Optional[int] = None,
        mock_response: str | None = None,
        trusted_hosts: Sequence[str] = (),
        timeout: float = DEFAULT_TIMEOUT,
        transport: Transport | None = None,
    ) -> None:
        self.provider = (provider or "openai-compatible").lower()
        self.model = model
        self.api_key = api_key or ""
        self.temperature = temperature
        self.max_tokens = max_tokens
        self.mock_response = mock_response
        self.timeout = timeout
        self.base_url = _normalize_base_url(base_url or DEFAULT_BASE_URLS.get(self.provider, ""))
        self._transport = transport or _http_transport
        if self.base_url and self.provider != "mock":
            validate_base_url(self.base_url, self.provider, extra_hosts=trusted_hosts)

    @classmethod
    def from_config(cls, config, *, transport: Transport | None = None) -> "LLMClient":
        """Build a client from an :class:`~driftguard.config.LLMConfig`."""
        return cls(
            config.provider,
            config.model,
            api_key=config.api_key,
            base_url=config.base_url,
            temperature=config.temperature,
            max_tokens=config.max_tokens,
            mock_response=config.mock_response,
            trusted_hosts=config.trusted_hosts,
            transport=transport,
        )

    def complete(self, prompt: str) -> str:
        if self.provider == "mock":
            return self._mock_completion()
        if self.provider == "ollama":
            return self._ollama_completion(prompt)
        return self._chat_completion(prompt)

    # ------------------------------------------------------------------
    # Internals

    def _mock_completion(self) -> str:
        response = self.mock_response or os.environ.get(MOCK_RESPONSE_ENV)
        if not response:
            raise LLMError(f"Mock LLM provider requires llm.mock_response or {MOCK_RESPONSE_ENV}.")
        return response

    def _chat_completion(self, prompt: str) -> str:
        if not self.base_url:
            raise LLMError("llm.base_url is required for openai-compatible providers")
        headers = {"Content-Type": "application/json", "User-Agent": _USER_AGENT}
        if self.api_key:
            headers["Authorization"] = f"Bearer {self.api_key}"
        payload: Dict[str, object] = {
            "model": self.model,
            "messages": [{"role": "user", "content": prompt}],
        }
        if self.temperature is not None:
            payload["temperature"] = self.temperature
        if self.max_tokens is not None:
            payload["max_tokens"] = self.max_tokens
        request = LLMRequest(
            url=f"{self.base_url}/chat/completions",
            payload=payload,
            headers=headers,
            timeout=self.timeout,
        )
        return _chat_content(self._transport(request))

    def _ollama_completion(self, prompt: str) -> str:
        request = LLMRequest(
            url=f"{self.base_url}/api/chat",
            payload={
                "model": self.model,
                "messages": [{"role": "user", "content": prompt}],
                "stream": False,
            },
            headers={"Content-Type": "application/json", "User-Agent": _USER_AGENT},
            timeout=self.timeout,
        )
        response = self._transport(request)
        message = response.get("message")
        if isinstance(message, dict) and isinstance(message.get("content"), str):
            return message["content"]
        return ""


def validate_base_url(base_url: str, provider: str, *, extra_hosts: Iterable[str] = ()) -> None:
    """Reject endpoints outside the trusted host list unless they look internal."""
    parsed = urlparse(base_url)
    if parsed.scheme not in {"http", "https"} or not parsed.hostname:
        raise LLMError(f"LLM base URL must use HTTP or HTTPS protocol: {base_url}")
    host = parsed.hostname.lower()

    if parsed.scheme == "http" and not is_local_host(host):
        logger.warning(
            "Using insecure HTTP for LLM endpoint %s; API keys may be transmitted insecurely.", base_url
        )

    trusted = {item.lower() for item in TRUSTED_HOSTS}
    trusted.update(item.lower() for item in extra_hosts if item)
    if any(host == item or host.endswith(f".{item}") for item in trusted):
        return
    if provider == "ollama" and is_local_host(host):
        return
    if is_internal_host(host):
        logger.warning("Using custom LLM endpoint %s. Ensure this is a trusted internal service.", host)
        return
    raise LLMError(
        f"Untrusted LLM endpoint: {host}. Use an internal/private domain, add it to llm.trusted_hosts, "
        f"or set {ALLOW_CUSTOM_ENV}=true to bypass this check."
    )


def is_local_host(host: str) -> bool:
    lowered = host.lower()
    if lowered in {"localhost", "0.0.0.0", "::1"}:
        return True
    try:
        address = ipaddress.ip_address(lowered)
    except ValueError:
        return False
    return address.is_loopback or address.is_private


def is_internal_host(host: str) -> bool:
    if is_local_host(host) or _PRIVATE_172.match(host):
        return True
    if host.endswith(_INTERNAL_SUFFIXES):
        return True
    return os.environ.get(ALLOW_CUSTOM_ENV, "").strip().lower() == "true"


def _normalize_base_url(url: str) -> str:
    return url.rstrip("/") if url else ""


def _chat_content(payload: Dict[str, object]) -> str:
    choices = payload.get("choices")
    if not isinstance(choices, list) or not choices:
        return ""
    first = choices[0]
    if not isinstance(first, dict):
        return ""
    message = first.get("message")
    if isinstance(message, dict) and isinstance(message.get("content"), str):
        return message["content"]
    return ""


def _http_transport(request: LLMRequest) -> Dict[str, object]:
    data = json.dumps(request.payload).encode("utf-8")
    http_request = Request(request.url, data=data, headers=request.headers, method="POST")
    try:
        with urlopen(http_request, timeout=request.timeout) as response:  # type: ignore[arg-type]
            raw = response.read()
    except HTTPError as exc:  # pragma: no cover - depends on runtime
        detail = exc.read().decode("utf-8", errors="ignore")
        if len(detail) > _ERROR_DETAIL_CHARS:
            detail = detail[:_ERROR_DETAIL_CHARS] + "..."
        raise LLMError(
            f"LLM request to {request.url} failed with status {exc.code}.\nResponse: {detail}\n"
            "Check your API key and model configuration."
        ) from exc
    except URLError as exc:  # pragma: no cover - depends on runtime
        raise LLMError(f"LLM request to {request.url} failed: {exc.reason}") from exc
    except TimeoutError as exc:  # pragma: no cover - depends on runtime
        raise LLMError(f"LLM request to {request.url} timed out after {request.timeout}s") from exc

    try:
        payload = json.loads(raw.decode("utf-8"))
    except (UnicodeDecodeError, json.JSONDecodeError) as exc:
        raise LLMError("LLM endpoint returned invalid JSON") from exc
    return payload if isinstance(payload, dict) else {}


__all__ = [
    "DEFAULT_BASE_URLS",
    "LLMClient",
    "LLMError",
    "LLMRequest",
    "TRUSTED_HOSTS",
    "Transport",
    "is_internal_host",
    "is_local_host",
    "validate_base_url",
]
