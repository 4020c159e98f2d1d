"""
==============================================================================
ANALYSIS GATEWAY
==============================================================================

Turns a journal Entry into a narrative analysis by asking text-generation
providers in priority order:

1. Refuse immediately when there is no network connection
2. Build one prompt from the entry
3. For each configured provider, retry up to max_retry_attempts with a fixed
   delay; an invalid credential ends that provider early
4. The first non-empty text wins
5. If every configured provider failed, an unconfigured provider that allows
   it answers with the local template; otherwise AllProvidersUnavailable

The gateway never writes to the entry store. Callers persist the result with
store.update(entry.with_analysis(text)).
"""

import asyncio
import contextlib
import logging
from enum import Enum
from typing import Awaitable, Callable, Dict, List, Optional, Sequence

import httpx
from pydantic import BaseModel

from deepreview.core.config import settings
from deepreview.features.analysis.local import generate_local_analysis
from deepreview.features.analysis.prompts import build_analysis_prompt
from deepreview.features.analysis.providers import (
    AttemptOutcome,
    BaseProvider,
    ChatCompletionsProvider,
    DashScopeProvider,
    ProviderAttempt,
)
from deepreview.features.journal.models import Entry
from deepreview.services.http_client import HTTPClientManager
from deepreview.shared.correlation import correlation_scope
from deepreview.shared.errors import (
    AllProvidersUnavailableError,
    AnalysisError,
    AnalysisTimeoutError,
    ErrorCode,
    ErrorDetail,
    InvalidResponseError,
    NetworkUnavailableError,
    ServerError,
)
from deepreview.shared.observable import StatePublisher

logger = logging.getLogger("DeepReview.Analysis.Gateway")

VALIDATION_PROMPT = "Reply with the single word: ok"

_OUTCOMES = {
    ErrorCode.RATE_LIMITED: AttemptOutcome.RATE_LIMITED,
    ErrorCode.INVALID_CREDENTIAL: AttemptOutcome.INVALID_CREDENTIAL,
    ErrorCode.INVALID_RESPONSE: AttemptOutcome.INVALID_RESPONSE,
    ErrorCode.TIMEOUT: AttemptOutcome.TIMEOUT,
}


class AnalysisPhase(str, Enum):
    IDLE = "idle"
    ANALYZING = "analyzing"
    SUCCEEDED = "succeeded"
    FAILED = "failed"


class NetworkStatus(str, Enum):
    SATISFIED = "satisfied"
    UNSATISFIED = "unsatisfied"
    UNKNOWN = "unknown"


class GatewayState(BaseModel):
    """Snapshot of the gateway's observable fields."""
    phase: AnalysisPhase = AnalysisPhase.IDLE
    is_analyzing: bool = False
    progress: float = 0.0
    last_error: Optional[ErrorDetail] = None
    network_status: NetworkStatus = NetworkStatus.UNKNOWN


ConnectivityCheck = Callable[[], Awaitable[bool]]


def build_default_providers(http: HTTPClientManager) -> List[BaseProvider]:
    """ByteDance Ark -> DouBao (DashScope) -> DeepSeek, credentials from settings."""
    return [
        ChatCompletionsProvider(
            name="ByteDance",
            url=settings.BYTEDANCE_URL,
            api_key=settings.BYTEDANCE_API_KEY,
            model=settings.BYTEDANCE_MODEL,
            http=http,
        ),
        DashScopeProvider(
            name="DouBao",
            url=settings.DOUBAO_URL,
            api_key=settings.DOUBAO_API_KEY,
            model=settings.DOUBAO_MODEL,
            http=http,
        ),
        ChatCompletionsProvider(
            name="DeepSeek",
            url=settings.DEEPSEEK_URL,
            api_key=settings.DEEPSEEK_API_KEY,
            model=settings.DEEPSEEK_MODEL,
            http=http,
        ),
    ]


class AnalysisGateway(StatePublisher[GatewayState]):
    """
    Multi-provider analysis with retry, fallthrough and a local substitute.

    Args:
        providers: Ordered providers; defaults to build_default_providers()
        user_name: Name embedded in the prompt (default: settings.USER_NAME)
        max_retry_attempts: Attempts per configured provider (default 3)
        retry_delay: Seconds between attempts of one provider
        overall_timeout: Upper bound in seconds for a single attempt
        connectivity_check: Async callable returning True when online;
            defaults to a HEAD request against settings.CONNECTIVITY_CHECK_URL
        http: Shared client manager; created from settings if omitted
        progress_interval: Seconds between cosmetic progress ticks
    """

    def __init__(
        self,
        providers: Optional[Sequence[BaseProvider]] = None,
        user_name: Optional[str] = None,
        max_retry_attempts: Optional[int] = None,
        retry_delay: Optional[float] = None,
        overall_timeout: Optional[float] = None,
        connectivity_check: Optional[ConnectivityCheck] = None,
        http: Optional[HTTPClientManager] = None,
        progress_interval: float = 0.5,
    ):
        super().__init__()
        self.http = http or HTTPClientManager(default_timeout=settings.ANALYSIS_REQUEST_TIMEOUT)
        self.providers: List[BaseProvider] = (
            list(providers) if providers is not None else build_default_providers(self.http)
        )
        self.user_name = user_name if user_name is not None else settings.USER_NAME
        self.max_retry_attempts = max(
            1, max_retry_attempts if max_retry_attempts is not None else settings.ANALYSIS_MAX_RETRIES
        )
        self.retry_delay = retry_delay if retry_delay is not None else settings.ANALYSIS_RETRY_DELAY
        self.overall_timeout = (
            overall_timeout if overall_timeout is not None else settings.ANALYSIS_OVERALL_TIMEOUT
        )
        self.progress_interval = progress_interval
        self._check_online = connectivity_check or self._http_check

        self.phase = AnalysisPhase.IDLE
        self.progress = 0.0
        self.last_error: Optional[ErrorDetail] = None
        self.network_status = NetworkStatus.UNKNOWN
        self.attempts: List[ProviderAttempt] = []

    # ------------------------------------------------------------------
    # Observable state
    # ------------------------------------------------------------------

    @property
    def is_analyzing(self) -> bool:
        return self.phase == AnalysisPhase.ANALYZING

    @property
    def state(self) -> GatewayState:
        return GatewayState(
            phase=self.phase,
            is_analyzing=self.is_analyzing,
            progress=self.progress,
            last_error=self.last_error,
            network_status=self.network_status,
        )

    # ------------------------------------------------------------------
    # Connectivity
    # ------------------------------------------------------------------

    async def _http_check(self) -> bool:
        client = await self.http.get_client()
        try:
            await client.head(settings.CONNECTIVITY_CHECK_URL, timeout=5.0)
        except httpx.HTTPError as e:
            logger.info(f"Connectivity check failed: {e}")
            return False
        return True

    async def refresh_network_status(self) -> NetworkStatus:
        online = await self._check_online()
        status = NetworkStatus.SATISFIED if online else NetworkStatus.UNSATISFIED
        if status != self.network_status:
            self.network_status = status
            self._publish()
        return status

    # ------------------------------------------------------------------
    # Analysis
    # ------------------------------------------------------------------

    async def analyze_review(self, entry: Entry) -> str:
        """
        Produce an analysis for the entry.

        Returns:
            The analysis text (from a provider or the local template)

        Raises:
            NetworkUnavailableError: offline; no provider was attempted
            AllProvidersUnavailableError: every provider failed or was unusable
        """
        with correlation_scope() as correlation_id:
            if await self.refresh_network_status() != NetworkStatus.SATISFIED:
                error = NetworkUnavailableError()
                logger.warning("Analysis refused: network unavailable")
                self._finish_failed(error, correlation_id)
                raise error

            self._start()
            ticker = asyncio.create_task(self._tick_progress())
            try:
                text = await self._run_providers(entry)
            except AnalysisError as e:
                logger.error(f"Analysis failed: {e.message}")
                self._finish_failed(e, correlation_id)
                raise
            finally:
                ticker.cancel()
                with contextlib.suppress(asyncio.CancelledError):
                    await ticker

            self._finish_succeeded()
            logger.info(f"Analysis complete for entry {entry.id}", extra={"chars": len(text)})
            return text

    async def _run_providers(self, entry: Entry) -> str:
        prompt = build_analysis_prompt(entry, self.user_name)
        failures: Dict[str, str] = {}
        local_candidate: Optional[BaseProvider] = None
        self.attempts = []

        for provider in self.providers:
            if not provider.is_configured:
                logger.info(f"{provider.name}: no credential configured, skipping")
                self.attempts.append(ProviderAttempt(provider.name, 0, AttemptOutcome.SKIPPED))
                failures[provider.name] = "not configured"
                if local_candidate is None and provider.allows_local_substitute:
                    local_candidate = provider
                continue

            try:
                return await self._invoke_with_retry(provider, prompt)
            except AnalysisError as e:
                failures[provider.name] = e.message
                logger.warning(f"{provider.name}: giving up ({e.code.value}), trying next provider")

        if local_candidate is not None:
            logger.info(f"{local_candidate.name}: answering with the local template")
            self.attempts.append(ProviderAttempt(local_candidate.name, 0, AttemptOutcome.LOCAL))
            return generate_local_analysis(entry, self.user_name)

        raise AllProvidersUnavailableError(failures)

    async def _invoke_with_retry(self, provider: BaseProvider, prompt: str) -> str:
        last_error: Optional[AnalysisError] = None

        for attempt in range(1, self.max_retry_attempts + 1):
            try:
                text = await asyncio.wait_for(provider.invoke(prompt), timeout=self.overall_timeout)
                if not text or not text.strip():
                    raise InvalidResponseError(provider.name, "content is empty")
                self.attempts.append(ProviderAttempt(provider.name, attempt, AttemptOutcome.SUCCESS))
                logger.info(f"{provider.name}: succeeded on attempt {attempt}")
                return text
            except asyncio.TimeoutError:
                last_error = AnalysisTimeoutError(provider.name, self.overall_timeout)
            except AnalysisError as e:
                last_error = e
            except Exception as e:  # pylint: disable=broad-except
                logger.warning(f"{provider.name}: unexpected error {e!r}")
                last_error = ServerError(provider.name, str(e))

            self.attempts.append(ProviderAttempt(
                provider.name,
                attempt,
                _OUTCOMES.get(last_error.code, AttemptOutcome.ERROR),
                error=last_error.message,
                metadata={"code": last_error.code.value},
            ))
            logger.warning(
                f"{provider.name}: attempt {attempt}/{self.max_retry_attempts} failed: {last_error.message}"
            )

            if not last_error.retryable:
                break
            if attempt < self.max_retry_attempts and self.retry_delay > 0:
                await asyncio.sleep(self.retry_delay)

        raise last_error

    # ------------------------------------------------------------------
    # State transitions
    # ------------------------------------------------------------------

    def _start(self) -> None:
        self.phase = AnalysisPhase.ANALYZING
        self.progress = 0.0
        self.last_error = None
        self._publish()

    def _finish_succeeded(self) -> None:
        self.phase = AnalysisPhase.SUCCEEDED
        self.progress = 1.0
        self.last_error = None
        self._publish()

    def _finish_failed(self, error: AnalysisError, correlation_id: Optional[str]) -> None:
        self.phase = AnalysisPhase.FAILED
        self.progress = 0.0
        self.last_error = error.to_detail(correlation_id)
        self._publish()

    async def _tick_progress(self) -> None:
        while True:
            await asyncio.sleep(self.progress_interval)
            self.progress = min(0.9, round(self.progress + 0.1, 2))
            self._publish()

    # ------------------------------------------------------------------
    # Credentials
    # ------------------------------------------------------------------

    async def validate_credentials(self) -> Dict[str, bool]:
        """
        Check each provider with a one-shot short request.

        Unconfigured providers are reported False without a network call.
        """
        results: Dict[str, bool] = {}
        for provider in self.providers:
            if not provider.is_configured:
                results[provider.name] = False
                continue
            try:
                text = await asyncio.wait_for(
                    provider.invoke(VALIDATION_PROMPT, max_tokens=8),
                    timeout=self.overall_timeout,
                )
                results[provider.name] = bool(text.strip())
            except (AnalysisError, asyncio.TimeoutError) as e:
                logger.warning(f"{provider.name}: credential check failed: {e}")
                results[provider.name] = False
        return results

    async def aclose(self) -> None:
        await self.http.shutdown()
