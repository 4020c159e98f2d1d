"""
Chat-completions providers over HTTP.

ChatCompletionsProvider speaks the OpenAI-style wire format used by the
ByteDance Ark and DeepSeek endpoints:

    POST {model, messages: [{role: "user", content}], max_tokens, temperature}
    -> {choices: [{message: {content}}], usage: {...}}

DashScopeProvider (the DouBao endpoint) wraps the same fields under
`input` / `parameters` and nests choices under `output`.

Status mapping: 401 -> InvalidCredentialError, 429 -> RateLimitedError,
other non-2xx -> ServerError. A body that does not contain the expected
path is an InvalidResponseError.
"""

import logging
import time
from typing import Any, Dict, Optional, Sequence, Union

import httpx

from deepreview.core.config import settings
from deepreview.core.logging_utils import log_llm_usage, mask_secret, sanitize_for_logging
from deepreview.services.http_client import HTTPClientManager
from deepreview.shared.errors import (
    AnalysisTimeoutError,
    InvalidCredentialError,
    InvalidResponseError,
    RateLimitedError,
    ServerError,
)

from .base import BaseProvider

logger = logging.getLogger("DeepReview.Analysis.ChatCompletions")

PathKey = Union[str, int]


class ChatCompletionsProvider(BaseProvider):
    """
    OpenAI-compatible chat-completions provider.

    Args:
        name: Display name ("ByteDance", "DeepSeek", ...)
        url: Full endpoint URL
        api_key: Bearer token; empty means "not configured"
        model: Model identifier sent in the payload
        http: Shared client manager owned by the gateway
        max_tokens: Default output budget
        temperature: Sampling temperature
        allows_local_substitute: Whether this provider may fall back to the
            local template when unconfigured
    """

    response_path: Sequence[PathKey] = ("choices", 0, "message", "content")

    def __init__(
        self,
        name: str,
        url: str,
        api_key: Optional[str],
        model: str,
        http: HTTPClientManager,
        max_tokens: Optional[int] = None,
        temperature: Optional[float] = None,
        allows_local_substitute: bool = True,
    ):
        self._name = name
        self.url = url
        self.api_key = api_key or ""
        self.model = model
        self._http = http
        self.max_tokens = max_tokens if max_tokens is not None else settings.ANALYSIS_MAX_TOKENS
        self.temperature = temperature if temperature is not None else settings.ANALYSIS_TEMPERATURE
        self.allows_local_substitute = allows_local_substitute

    @property
    def name(self) -> str:
        return self._name

    @property
    def is_configured(self) -> bool:
        return bool(self.api_key.strip())

    def build_payload(self, prompt: str, max_tokens: int) -> Dict[str, Any]:
        return {
            "model": self.model,
            "messages": [{"role": "user", "content": prompt}],
            "max_tokens": max_tokens,
            "temperature": self.temperature,
        }

    def extract_usage(self, data: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        usage = data.get("usage")
        return usage if isinstance(usage, dict) else None

    def extract_content(self, data: Any) -> str:
        """Follow response_path to the assistant text."""
        node = data
        for key in self.response_path:
            if isinstance(key, int):
                if not isinstance(node, list) or len(node) <= key:
                    raise InvalidResponseError(self.name, f"missing index {key}")
            elif not isinstance(node, dict) or key not in node:
                raise InvalidResponseError(self.name, f"missing key '{key}'")
            node = node[key]

        if not isinstance(node, str):
            raise InvalidResponseError(self.name, "content is not a string")
        if not node.strip():
            raise InvalidResponseError(self.name, "content is empty")
        return node

    async def invoke(self, prompt: str, max_tokens: Optional[int] = None) -> str:
        if not self.is_configured:
            raise InvalidCredentialError(self.name)

        payload = self.build_payload(prompt, max_tokens or self.max_tokens)
        headers = {
            "Authorization": f"Bearer {self.api_key}",
            "Content-Type": "application/json",
        }
        logger.debug(
            f"{self.name}: POST {self.url}",
            extra={"payload": sanitize_for_logging(payload), "api_key": mask_secret(self.api_key)},
        )

        client = await self._http.get_client()
        started = time.monotonic()
        try:
            response = await client.post(self.url, json=payload, headers=headers)
        except httpx.TimeoutException as e:
            raise AnalysisTimeoutError(self.name, self._http.default_timeout) from e
        except httpx.HTTPError as e:
            raise ServerError(self.name, f"transport error: {e}") from e
        duration_ms = int((time.monotonic() - started) * 1000)

        if response.status_code == 401:
            raise InvalidCredentialError(self.name)
        if response.status_code == 429:
            raise RateLimitedError(self.name)
        if not response.is_success:
            raise ServerError(
                self.name,
                f"HTTP {response.status_code}: {response.text[:200]}",
                status_code=response.status_code,
            )

        try:
            data = response.json()
        except ValueError as e:
            raise InvalidResponseError(self.name, "body is not JSON") from e

        content = self.extract_content(data)
        log_llm_usage(
            provider=self.name,
            model=self.model,
            usage=self.extract_usage(data) if isinstance(data, dict) else None,
            duration_ms=duration_ms,
        )
        return content


class DashScopeProvider(ChatCompletionsProvider):
    """DashScope text-generation endpoint (the DouBao provider)."""

    response_path = ("output", "choices", 0, "message", "content")

    def build_payload(self, prompt: str, max_tokens: int) -> Dict[str, Any]:
        return {
            "model": self.model,
            "input": {
                "messages": [{"role": "user", "content": prompt}],
            },
            "parameters": {
                "max_tokens": max_tokens,
                "temperature": self.temperature,
                "result_format": "message",
            },
        }
