"""
ClaimCheck API client.

WHAT THIS DOES:
Talks to the ClaimCheck HTTP API (/api/verify, /api/search, ...) and hands
back typed, validated responses. Used by the request hooks and by scripts
that drive the service.

GUARANTEES:
- Never raises for request failures: every call returns Ok(model) or Err(APIError)
- Network failures and 5xx responses are retried with exponential backoff
  and jitter, at most `max_attempts` attempts in total
- 4xx responses are never retried (they are caller errors, not transient)
- Each attempt has its own timeout, so a call takes at most roughly
  timeout × max_attempts plus backoff
- A success body that does not match the expected schema is a DECODE_ERROR,
  never passed through
- Cancellation is cooperative: fire a CancellationToken and the call resolves
  promptly to CANCELLED, whether it is mid-request or mid-backoff

BACKOFF:
    delay = base_delay * 2**attempt
    delay = min(delay + random(0, 0.3 * delay), max_delay)

USAGE:
    async with ApiClient("http://localhost:8000") as client:
        result = await client.verify("The Moon is 384,400 km away.", "ChatGPT")
        if result.is_ok:
            print(result.value.summary)
"""

import asyncio
import logging
import random
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Optional, TypeVar

import httpx
from pydantic import BaseModel, ValidationError

from claimcheck.models.errors import UPSTREAM_MESSAGE, APIError, ErrorCode
from claimcheck.models.result import Err, Ok, Result
from claimcheck.models.schemas import (
    ErrorResponse,
    RankingPostResponse,
    RankingsResponse,
    RephraseResponse,
    SearchResponse,
    VerifyResponse,
)

logger = logging.getLogger(__name__)

M = TypeVar("M", bound=BaseModel)
T = TypeVar("T")

_KNOWN_CODES = frozenset(code.value for code in ErrorCode)

# Per-attempt timeouts (seconds)
DEFAULT_TIMEOUT = 30.0
VERIFY_TIMEOUT = 60.0

# Retry policy
MAX_ATTEMPTS = 3
BASE_DELAY = 1.0
MAX_DELAY = 10.0
JITTER = 0.3


@dataclass(frozen=True)
class RequestSpec:
    """Everything needed to make one logical request (all attempts of it)."""

    method: str
    path: str
    body: Optional[dict] = None
    timeout: float = DEFAULT_TIMEOUT
    retry: bool = True


class CancellationToken:
    """
    Cooperative cancellation flag shared between a caller and a request.

    The owner calls cancel() (e.g. when the view that started the request
    goes away); the client notices and resolves the call to CANCELLED.
    """

    def __init__(self):
        self._event = asyncio.Event()

    def cancel(self) -> None:
        self._event.set()

    @property
    def is_cancelled(self) -> bool:
        return self._event.is_set()

    async def wait(self) -> None:
        await self._event.wait()


def _cancelled() -> APIError:
    return APIError(ErrorCode.CANCELLED, "Request cancelled")


class _Cancelled:
    """Marker returned by _race when the token won."""


_CANCELLED = _Cancelled()


class ApiClient:
    """
    Async client for the ClaimCheck API.

    The httpx client is created lazily (same pattern as our other HTTP
    clients) and closed with close() or by leaving the `async with` block.
    `transport`, `sleep` and `rng` are injectable so tests can run the
    retry loop against httpx.MockTransport without real waiting.
    """

    def __init__(
        self,
        base_url: str = "http://localhost:8000",
        transport: Optional[httpx.AsyncBaseTransport] = None,
        max_attempts: int = MAX_ATTEMPTS,
        base_delay: float = BASE_DELAY,
        max_delay: float = MAX_DELAY,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
        rng: Optional[random.Random] = None,
    ):
        if max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        self.base_url = base_url.rstrip("/")
        self.max_attempts = max_attempts
        self.base_delay = base_delay
        self.max_delay = max_delay
        self._transport = transport
        self._sleep = sleep
        self._rng = rng or random.Random()
        self._client: Optional[httpx.AsyncClient] = None

    def _get_client(self) -> httpx.AsyncClient:
        """Get or create the HTTP client (lazy initialization)."""
        if self._client is None:
            # No httpx timeout: the per-attempt wait_for in _attempt is the only limit
            self._client = httpx.AsyncClient(
                base_url=self.base_url,
                transport=self._transport,
                timeout=None,
            )
        return self._client

    async def close(self):
        """Close the HTTP client."""
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    async def __aenter__(self) -> "ApiClient":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.close()

    def backoff_delay(self, attempt: int) -> float:
        """Delay before retrying after failed attempt number `attempt` (0-based)."""
        delay = self.base_delay * (2 ** attempt)
        delay += self._rng.random() * JITTER * delay
        return min(delay, self.max_delay)

    # =========================================================================
    # CORE REQUEST LOOP
    # =========================================================================

    async def request(
        self,
        spec: RequestSpec,
        response_model: type[M],
        token: Optional[CancellationToken] = None,
    ) -> Result[M, APIError]:
        """
        Perform `spec`, retrying transient failures, and decode into `response_model`.

        Returns:
            Ok(response_model instance) or Err(APIError). Never raises for
            request failures.
        """
        attempts = self.max_attempts if spec.retry else 1
        last_error: Optional[APIError] = None

        for attempt in range(attempts):
            if token is not None and token.is_cancelled:
                return Err(_cancelled())

            outcome = await self._race(self._attempt(spec, response_model), token)
            if outcome is _CANCELLED:
                logger.info(f"{spec.method} {spec.path} cancelled")
                return Err(_cancelled())

            result, retryable = outcome
            if result.is_ok or not retryable:
                return result

            last_error = result.error
            if attempt == attempts - 1:
                break

            delay = self.backoff_delay(attempt)
            logger.warning(
                f"{spec.method} {spec.path} failed ({last_error.code.value}: {last_error.message}), "
                f"retrying in {delay:.2f}s (attempt {attempt + 1}/{attempts})"
            )
            if await self._race(self._sleep(delay), token) is _CANCELLED:
                logger.info(f"{spec.method} {spec.path} cancelled during backoff")
                return Err(_cancelled())

        logger.error(f"{spec.method} {spec.path} gave up after {attempts} attempts")
        return Err(last_error)

    async def _race(self, awaitable: Awaitable[T], token: Optional[CancellationToken]):
        """Await `awaitable` unless the token fires first (then return _CANCELLED)."""
        if token is None:
            return await awaitable

        work = asyncio.ensure_future(awaitable)
        cancel_waiter = asyncio.ensure_future(token.wait())
        try:
            done, _ = await asyncio.wait({work, cancel_waiter}, return_when=asyncio.FIRST_COMPLETED)
        except asyncio.CancelledError:
            work.cancel()
            raise
        finally:
            cancel_waiter.cancel()

        if work in done:
            return work.result()

        work.cancel()
        # Let the aborted attempt unwind so its connection is released
        await asyncio.gather(work, return_exceptions=True)
        return _CANCELLED

    async def _attempt(self, spec: RequestSpec, response_model: type[M]) -> tuple[Result[M, APIError], bool]:
        """One HTTP round trip. Returns (result, retryable)."""
        client = self._get_client()

        try:
            response = await asyncio.wait_for(
                client.request(spec.method, spec.path, json=spec.body),
                timeout=spec.timeout,
            )
        except (asyncio.TimeoutError, httpx.TimeoutException):
            return Err(APIError(ErrorCode.TIMEOUT, "Request timed out. Please try again.")), True
        except httpx.HTTPError as e:
            logger.warning(f"{spec.method} {spec.path} network error: {e}")
            return Err(APIError(ErrorCode.UPSTREAM_ERROR, UPSTREAM_MESSAGE)), True
        except Exception:
            logger.exception(f"{spec.method} {spec.path} failed unexpectedly")
            return Err(APIError(ErrorCode.UPSTREAM_ERROR, UPSTREAM_MESSAGE)), False

        if response.status_code >= 500:
            return Err(self._error_from_response(response, ErrorCode.UPSTREAM_ERROR)), True
        if response.status_code >= 400:
            return Err(self._error_from_response(response, ErrorCode.VALIDATION_ERROR)), False

        return self._decode(response, response_model), False

    @staticmethod
    def _error_from_response(response: httpx.Response, default_code: ErrorCode) -> APIError:
        """Build an APIError from an error response, trusting its body only if well-formed."""
        message = UPSTREAM_MESSAGE if default_code == ErrorCode.UPSTREAM_ERROR else "Request failed"
        code = default_code
        field = None

        try:
            body = ErrorResponse.model_validate(response.json())
        except (ValueError, ValidationError):
            body = None

        if body is not None:
            if body.error.strip():
                message = body.error
            if body.code in _KNOWN_CODES:
                code = ErrorCode(body.code)
            field = body.field

        return APIError(code, message, status=response.status_code, field=field)

    @staticmethod
    def _decode(response: httpx.Response, response_model: type[M]) -> Result[M, APIError]:
        try:
            data = response.json()
        except ValueError:
            logger.error(f"Undecodable response body from {response.request.url}")
            return Err(APIError(ErrorCode.DECODE_ERROR, "Received an unreadable response from the server"))

        try:
            return Ok(response_model.model_validate(data))
        except ValidationError as e:
            logger.error(f"Response from {response.request.url} failed validation: {e}")
            return Err(APIError(ErrorCode.DECODE_ERROR, "Received an unexpected response from the server"))

    # =========================================================================
    # TYPED OPERATIONS
    # =========================================================================

    async def verify(
        self,
        text: str,
        source_label: str,
        token: Optional[CancellationToken] = None,
    ) -> Result[VerifyResponse, APIError]:
        """Verify text (longer per-attempt timeout: extraction is slow)."""
        spec = RequestSpec(
            "POST",
            "/api/verify",
            body={"text": text, "sourceLabel": source_label},
            timeout=VERIFY_TIMEOUT,
        )
        return await self.request(spec, VerifyResponse, token)

    async def search(
        self,
        query: str,
        token: Optional[CancellationToken] = None,
    ) -> Result[SearchResponse, APIError]:
        spec = RequestSpec("POST", "/api/search", body={"query": query})
        return await self.request(spec, SearchResponse, token)

    async def rephrase(
        self,
        text: str,
        token: Optional[CancellationToken] = None,
    ) -> Result[RephraseResponse, APIError]:
        spec = RequestSpec("POST", "/api/rephrase", body={"text": text})
        return await self.request(spec, RephraseResponse, token)

    async def get_rankings(
        self,
        token: Optional[CancellationToken] = None,
    ) -> Result[RankingsResponse, APIError]:
        # Leaderboard reads are polled anyway, so a failure just waits for the next poll
        spec = RequestSpec("GET", "/api/rankings", retry=False)
        return await self.request(spec, RankingsResponse, token)

    async def post_ranking(
        self,
        ai_source: str,
        verified: int = 0,
        false: int = 0,
        unconfirmed: int = 0,
        opinions: int = 0,
        token: Optional[CancellationToken] = None,
    ) -> Result[RankingPostResponse, APIError]:
        # Not idempotent: a retried POST could count the same check twice
        spec = RequestSpec(
            "POST",
            "/api/rankings",
            body={
                "aiSource": ai_source,
                "verified": verified,
                "false": false,
                "unconfirmed": unconfirmed,
                "opinions": opinions,
            },
            retry=False,
        )
        return await self.request(spec, RankingPostResponse, token)
