"""
Request Hooks — per-view request lifecycle on top of the API client.

WHAT THIS IS:
A small, UI-agnostic state machine that a view (web, TUI, notebook widget)
owns for each kind of request it makes:

    idle → loading → (success | error | cancelled) → idle (via reset)

While loading, the hook exposes an elapsed-time counter, a progress step
keyed by elapsed seconds and a rotating advisory "loading fact".

RULES:
- One request in flight per hook. submit() while loading is a no-op.
- Input is validated locally first; bad input goes straight to `error`
  without touching the network.
- teardown() (the view went away) cancels the in-flight request through the
  client's CancellationToken and freezes the hook: no state changes, no
  callbacks, ever again.
- Cancellation is silent: the hook lands in `cancelled` with no error text,
  and on_success is never called for a cancelled request.

USAGE:
    hook = VerifyHook(client, on_success=show_results)
    await hook.submit(text, "ChatGPT")
    if hook.state is RequestState.ERROR:
        show_error(hook.error)
"""

import asyncio
import logging
import random
import time
from enum import Enum
from typing import Any, Awaitable, Callable, Generic, Optional, TypeVar

from claimcheck.client.api_client import ApiClient, CancellationToken
from claimcheck.models.errors import APIError, ErrorCode
from claimcheck.models.result import Err, Result
from claimcheck.models.schemas import (
    AIRanking,
    RankingsResponse,
    RephraseResponse,
    SearchResponse,
    VerifyResponse,
)
from claimcheck.services.validation import (
    validate_rephrase_text,
    validate_search_query,
    validate_source_label,
    validate_verify_text,
)

logger = logging.getLogger(__name__)

M = TypeVar("M")

LOADING_FACTS: tuple[str, ...] = (
    "Did you know? Language models can state invented facts with complete confidence.",
    "Specific dates, statistics and citations are where AI answers go wrong most often.",
    "AI models sometimes cite sources that sound real but do not exist.",
    "Cross-checking a claim against three or more independent sources catches most errors.",
    "Pro tip: .edu and .gov sources are generally the most reliable places to start.",
    "Wikipedia is useful for orientation, but check the citations it links to.",
    "A traditional search shows ten links. An AI answer shows one. Verify it.",
    "Pro tip: always double-check AI claims that contain exact numbers.",
    "Peer-reviewed journals remain the gold standard for scientific claims.",
    "Two independent trusted sources are needed before a claim counts as verified here.",
)

# Probability per tick of rotating to another fact
FACT_ROTATION_CHANCE = 0.3

RANKINGS_REFRESH_SECONDS = 30.0

# (seconds elapsed, message): the latest step whose threshold has passed is shown
VERIFY_STEPS: tuple[tuple[float, str], ...] = (
    (0, "Reading your text..."),
    (2, "Extracting claims..."),
    (5, "Searching trusted sources..."),
    (10, "Cross-referencing..."),
)
SEARCH_STEPS: tuple[tuple[float, str], ...] = (
    (0, "Searching trusted sources..."),
    (3, "Cross-referencing sources..."),
    (6, "Calculating trust score..."),
)
REPHRASE_STEPS: tuple[tuple[float, str], ...] = ((0, "Rephrasing..."),)
RANKINGS_STEPS: tuple[tuple[float, str], ...] = ((0, "Loading rankings..."),)


class RequestState(str, Enum):
    IDLE = "idle"
    LOADING = "loading"
    SUCCESS = "success"
    ERROR = "error"
    CANCELLED = "cancelled"


class RequestHook(Generic[M]):
    """
    Base lifecycle for one kind of request.

    Subclasses set `steps` and expose a submit-style coroutine that
    validates input and then calls `_run` with the client call to make.
    """

    steps: tuple[tuple[float, str], ...] = ()

    def __init__(
        self,
        client: ApiClient,
        on_success: Optional[Callable[[M], Any]] = None,
        clock: Callable[[], float] = time.monotonic,
        rng: Optional[random.Random] = None,
    ):
        self.client = client
        self.on_success = on_success
        self._clock = clock
        self._rng = rng or random.Random()

        self.state = RequestState.IDLE
        self.data: Optional[M] = None
        self.error: Optional[str] = None
        self.current_fact = ""

        self._token: Optional[CancellationToken] = None
        self._started_at: Optional[float] = None
        self._settled_elapsed = 0.0
        self._torn_down = False

    # =========================================================================
    # DERIVED STATE
    # =========================================================================

    @property
    def is_loading(self) -> bool:
        return self.state is RequestState.LOADING

    @property
    def is_torn_down(self) -> bool:
        return self._torn_down

    @property
    def elapsed(self) -> float:
        """Seconds since the request started (frozen once it settles)."""
        if self.is_loading and self._started_at is not None:
            return self._clock() - self._started_at
        return self._settled_elapsed

    @property
    def current_step(self) -> str:
        if not self.is_loading:
            return ""
        elapsed = self.elapsed
        step = ""
        for threshold, message in self.steps:
            if elapsed >= threshold:
                step = message
        return step

    def tick(self) -> str:
        """Call about once a second while loading; sometimes rotates the fact."""
        if self.is_loading and self._rng.random() < FACT_ROTATION_CHANCE:
            self.current_fact = self._rng.choice(LOADING_FACTS)
        return self.current_fact

    # =========================================================================
    # TRANSITIONS
    # =========================================================================

    async def _run(self, call: Callable[[CancellationToken], Awaitable[Result[M, APIError]]]) -> bool:
        """
        Start a request unless one is already in flight.

        Returns True if a request was started.
        """
        if self._torn_down or self.is_loading:
            return False

        token = CancellationToken()
        self._token = token
        self.state = RequestState.LOADING
        self.data = None
        self.error = None
        self._started_at = self._clock()
        self.current_fact = self._rng.choice(LOADING_FACTS)

        try:
            result = await call(token)
        except asyncio.CancelledError:
            # The task driving submit() was cancelled: settle before propagating
            token.cancel()
            if not self._torn_down and token is self._token:
                self._settled_elapsed = self._clock() - self._started_at
                self._token = None
                self.state = RequestState.CANCELLED
            raise

        # The view is gone, or reset() started over: this result belongs to nobody
        if self._torn_down or token is not self._token:
            return True

        self._settled_elapsed = self._clock() - self._started_at
        self._token = None
        if token.is_cancelled:
            result = Err(APIError(ErrorCode.CANCELLED, "Request cancelled"))
        self._settle(result)
        return True

    def _settle(self, result: Result[M, APIError]) -> None:
        if result.is_ok:
            self.state = RequestState.SUCCESS
            self.data = result.value
            self._on_data(result.value)
            if self.on_success is not None:
                self.on_success(result.value)
        elif result.error.code is ErrorCode.CANCELLED:
            self.state = RequestState.CANCELLED
        else:
            self.state = RequestState.ERROR
            self.error = result.error.message
            logger.info(f"{type(self).__name__} failed: {result.error.code.value}")

    def _on_data(self, data: M) -> None:
        """Subclass hook for derived state; runs before on_success."""

    def _reject(self, error: APIError) -> bool:
        """Local validation failure: straight to error, no request."""
        if self._torn_down or self.is_loading:
            return False
        self.state = RequestState.ERROR
        self.data = None
        self.error = error.message
        return False

    def cancel(self) -> None:
        """Abort the in-flight request; the hook settles in `cancelled`."""
        if self._token is not None:
            self._token.cancel()

    def reset(self) -> None:
        """Back to idle, abandoning any in-flight request."""
        if self._torn_down:
            return
        if self._token is not None:
            self._token.cancel()
        self._token = None
        self.state = RequestState.IDLE
        self.data = None
        self.error = None
        self.current_fact = ""
        self._started_at = None
        self._settled_elapsed = 0.0

    def teardown(self) -> None:
        """The owning view is going away: cancel and stop all updates."""
        self._torn_down = True
        if self._token is not None:
            self._token.cancel()


# =============================================================================
# CONCRETE HOOKS
# =============================================================================

class VerifyHook(RequestHook[VerifyResponse]):
    steps = VERIFY_STEPS

    async def submit(self, text: Any, source_label: Any) -> bool:
        if self.is_loading:
            return False
        checked_text = validate_verify_text(text)
        if checked_text.is_err:
            return self._reject(checked_text.error)
        checked_label = validate_source_label(source_label)
        if checked_label.is_err:
            return self._reject(checked_label.error)

        return await self._run(
            lambda token: self.client.verify(checked_text.value, checked_label.value, token=token)
        )


class SearchHook(RequestHook[SearchResponse]):
    steps = SEARCH_STEPS

    async def submit(self, query: Any) -> bool:
        if self.is_loading:
            return False
        checked = validate_search_query(query)
        if checked.is_err:
            return self._reject(checked.error)
        return await self._run(lambda token: self.client.search(checked.value, token=token))


class RephraseHook(RequestHook[RephraseResponse]):
    steps = REPHRASE_STEPS

    async def submit(self, text: Any) -> bool:
        if self.is_loading:
            return False
        checked = validate_rephrase_text(text)
        if checked.is_err:
            return self._reject(checked.error)
        return await self._run(lambda token: self.client.rephrase(checked.value, token=token))


class RankingsHook(RequestHook[RankingsResponse]):
    """
    Leaderboard loader.

    `rankings` keeps the last successfully loaded list, so a failed refresh
    shows an error without blanking the board.
    """

    steps = RANKINGS_STEPS

    def __init__(self, client: ApiClient, **kwargs):
        super().__init__(client, **kwargs)
        self.rankings: list[AIRanking] = []

    def _on_data(self, data: RankingsResponse) -> None:
        self.rankings = list(data.rankings)

    async def refresh(self) -> bool:
        return await self._run(lambda token: self.client.get_rankings(token=token))

    async def poll(
        self,
        interval: float = RANKINGS_REFRESH_SECONDS,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ) -> None:
        """Refresh now and then every `interval` seconds until teardown()."""
        while not self._torn_down:
            await self.refresh()
            if self._torn_down:
                break
            await sleep(interval)
