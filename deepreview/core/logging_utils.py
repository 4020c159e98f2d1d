"""
Logging helpers for provider calls.

Journal text is private and provider keys are secrets, so request payloads
go through sanitize_for_logging() before they reach a log line: credential
fields are replaced, bearer tokens inside strings are scrubbed and long
reflection text is cut down to a short preview.

Usage events (token counts per provider call) are written as one
`LLM_USAGE {json}` line each so they can be grepped or aggregated.
"""
import json
import logging
import re
from typing import Any, Optional


# Header and payload keys whose values are credentials (compared lowercased, "-" as "_")
CREDENTIAL_KEYS = frozenset({
    "api_key", "apikey", "x_api_key", "authorization",
    "access_token", "refresh_token", "secret", "password",
})

REDACTED = "***REDACTED***"

_BEARER_RE = re.compile(r"(?i)bearer\s+[A-Za-z0-9._\-]+")
_CONTROL_RE = re.compile(r"[\x00-\x1F\x7F]+")


def _is_credential_key(key: Any) -> bool:
    return str(key).lower().replace("-", "_") in CREDENTIAL_KEYS


def preview_text(text: str, max_len: int = 100) -> str:
    """Single-line preview of free text: control characters collapsed, length capped."""
    cleaned = _BEARER_RE.sub("Bearer " + REDACTED, text)
    cleaned = _CONTROL_RE.sub(" ", cleaned)
    if len(cleaned) <= max_len:
        return cleaned
    return f"{cleaned[:max_len]}... (+{len(cleaned) - max_len} chars)"


def sanitize_for_logging(data: Any, max_len: int = 100) -> Any:
    """
    Return a copy of data that is safe to log.

    Args:
        data: Payload, headers or any nested dict/list/str structure
        max_len: Maximum characters kept from each string value

    Returns:
        The sanitized structure; numbers and booleans pass through unchanged
    """
    if data is None or isinstance(data, (bool, int, float)):
        return data
    if isinstance(data, dict):
        return {
            k: REDACTED if _is_credential_key(k) else sanitize_for_logging(v, max_len)
            for k, v in data.items()
        }
    if isinstance(data, (list, tuple)):
        return [sanitize_for_logging(item, max_len) for item in data]
    return preview_text(str(data), max_len)


def mask_secret(value: Optional[str]) -> str:
    """Show only the last four characters of a credential."""
    if not value:
        return "<unset>"
    if len(value) <= 4:
        return "****"
    return "****" + value[-4:]


# =============================================================================
# STRUCTURED USAGE LOGGING
# =============================================================================

_usage_logger = logging.getLogger("DeepReview.Usage")


def log_llm_usage(
    provider: str,
    model: str,
    usage: Optional[dict[str, Any]],
    duration_ms: Optional[int] = None,
    attempt: int = 1,
) -> None:
    """
    Log a structured usage event for a text-generation call.

    Produces a single `LLM_USAGE {json}` line. Providers report token counts
    under different key names; both OpenAI-style and DashScope-style are read.

    Args:
        provider: Provider name (e.g., 'DeepSeek')
        model: Model identifier
        usage: The provider's raw usage object, if any
        duration_ms: Request duration in milliseconds
        attempt: Attempt number within the retry loop
    """
    usage = usage or {}
    input_tokens = int(usage.get("prompt_tokens") or usage.get("input_tokens") or 0)
    output_tokens = int(usage.get("completion_tokens") or usage.get("output_tokens") or 0)

    event: dict[str, Any] = {
        "event": "llm_usage",
        "provider": provider,
        "model": model,
        "input_tokens": input_tokens,
        "output_tokens": output_tokens,
        "total_tokens": input_tokens + output_tokens,
        "attempt": attempt,
    }
    if duration_ms is not None:
        event["duration_ms"] = duration_ms

    _usage_logger.info("LLM_USAGE %s", json.dumps(event))
