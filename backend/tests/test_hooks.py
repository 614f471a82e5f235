"""
Tests for the request hooks (idle → loading → success/error/cancelled).

The hooks drive a real ApiClient over httpx.MockTransport; a gate lets a
test hold a request in flight while it inspects or tears down the hook.
"""

import asyncio
import random

import httpx
import pytest

from claimcheck.client.api_client import ApiClient
from claimcheck.client.hooks import (
    LOADING_FACTS,
    RankingsHook,
    RephraseHook,
    RequestState,
    SearchHook,
    VerifyHook,
)

VERIFY_BODY = {
    "claims": [],
    "summary": {"total": 0, "verified": 0, "false": 0, "unconfirmed": 0, "opinions": 0},
    "message": "No factual claims found to verify.",
}

SEARCH_BODY = {
    "query": "q",
    "answer": "An answer.",
    "trustScore": 50,
    "sources": [],
    "sourceAgreement": 0,
    "warnings": [],
}

RANKINGS_BODY = {
    "rankings": [
        {"name": "ChatGPT", "checksCount": 2, "verifiedRate": 80, "falseRate": 10, "avgScore": 60},
    ]
}


class Server:
    """Scripted backend. Requests wait on `gate` while it is closed."""

    def __init__(self, status=200, body=None):
        self.status = status
        self.body = VERIFY_BODY if body is None else body
        self.gate = asyncio.Event()
        self.gate.set()
        self.received = asyncio.Event()
        self.requests = []

    async def handle(self, request):
        self.requests.append(request)
        self.received.set()
        await self.gate.wait()
        return httpx.Response(self.status, json=self.body)

    def client(self):
        async def no_sleep(delay):
            pass

        return ApiClient(
            "http://claimcheck.test",
            transport=httpx.MockTransport(self.handle),
            max_attempts=1,
            sleep=no_sleep,
        )

    def hold(self):
        self.gate.clear()
        self.received.clear()


class Clock:
    def __init__(self):
        self.now = 100.0

    def __call__(self):
        return self.now


# =============================================================================
# BASIC LIFECYCLE
# =============================================================================

@pytest.mark.asyncio
async def test_new_hook_is_idle():
    hook = VerifyHook(Server().client())

    assert hook.state is RequestState.IDLE
    assert (hook.data, hook.error, hook.current_step, hook.elapsed) == (None, None, "", 0.0)


@pytest.mark.asyncio
async def test_success_sets_data_and_calls_back():
    server = Server()
    received = []
    hook = VerifyHook(server.client(), on_success=received.append)

    started = await hook.submit("The Moon orbits Earth.", "ChatGPT")

    assert started is True
    assert hook.state is RequestState.SUCCESS
    assert hook.data.message == "No factual claims found to verify."
    assert received == [hook.data]
    assert hook.error is None


@pytest.mark.asyncio
async def test_invalid_input_errors_without_a_request():
    server = Server()
    hook = VerifyHook(server.client())

    started = await hook.submit("   ", "ChatGPT")

    assert started is False
    assert hook.state is RequestState.ERROR
    assert hook.error == "Please paste some text to verify"
    assert server.requests == []


@pytest.mark.asyncio
async def test_server_error_message_is_shown():
    server = Server(status=400, body={"error": "Please enter a search query", "code": "VALIDATION_ERROR"})
    hook = SearchHook(server.client())

    await hook.submit("What is the speed of light?")

    assert hook.state is RequestState.ERROR
    assert hook.error == "Please enter a search query"
    assert hook.data is None


@pytest.mark.asyncio
async def test_rephrase_hook():
    server = Server(body={"rephrased": "Different words."})
    hook = RephraseHook(server.client())

    await hook.submit("Same facts.")

    assert hook.state is RequestState.SUCCESS
    assert hook.data.rephrased == "Different words."


# =============================================================================
# IN-FLIGHT BEHAVIOR
# =============================================================================

@pytest.mark.asyncio
async def test_submit_while_loading_is_a_no_op():
    server = Server()
    server.hold()
    hook = VerifyHook(server.client())

    first = asyncio.create_task(hook.submit("First text", "ChatGPT"))
    await server.received.wait()

    assert hook.is_loading
    assert await hook.submit("Second text", "ChatGPT") is False
    assert await hook.submit("", "ChatGPT") is False, "Validation errors do not clobber a loading hook"

    server.gate.set()
    assert await first is True
    assert len(server.requests) == 1
    assert hook.state is RequestState.SUCCESS


@pytest.mark.asyncio
async def test_steps_and_elapsed_follow_the_clock():
    server = Server()
    server.hold()
    clock = Clock()
    hook = VerifyHook(server.client(), clock=clock)

    task = asyncio.create_task(hook.submit("Some text", "ChatGPT"))
    await server.received.wait()

    assert hook.current_step == "Reading your text..."
    clock.now += 3
    assert hook.current_step == "Extracting claims..."
    clock.now += 8
    assert hook.current_step == "Cross-referencing..."
    assert hook.elapsed == pytest.approx(11)
    assert hook.current_fact in LOADING_FACTS

    server.gate.set()
    await task
    clock.now += 50
    assert hook.elapsed == pytest.approx(11), "Elapsed freezes once the request settles"
    assert hook.current_step == ""


@pytest.mark.asyncio
async def test_tick_rotates_facts_only_while_loading():
    server = Server()
    server.hold()
    hook = SearchHook(server.client(), rng=random.Random(1))

    assert hook.tick() == ""

    task = asyncio.create_task(hook.submit("query"))
    await server.received.wait()
    seen = {hook.tick() for _ in range(200)}

    assert seen <= set(LOADING_FACTS)
    assert len(seen) > 1, "Facts should rotate over many ticks"

    server.gate.set()
    await task
    settled = hook.current_fact
    assert all(hook.tick() == settled for _ in range(20))


# =============================================================================
# CANCELLATION AND TEARDOWN
# =============================================================================

@pytest.mark.asyncio
async def test_cancel_settles_silently():
    server = Server()
    server.hold()
    received = []
    hook = VerifyHook(server.client(), on_success=received.append)

    task = asyncio.create_task(hook.submit("Some text", "ChatGPT"))
    await server.received.wait()
    hook.cancel()
    await asyncio.wait_for(task, timeout=2)

    assert hook.state is RequestState.CANCELLED
    assert hook.error is None
    assert received == []


@pytest.mark.asyncio
async def test_teardown_freezes_the_hook():
    server = Server()
    server.hold()
    received = []
    hook = VerifyHook(server.client(), on_success=received.append)

    task = asyncio.create_task(hook.submit("Some text", "ChatGPT"))
    await server.received.wait()
    hook.teardown()
    server.gate.set()
    await asyncio.wait_for(task, timeout=2)

    assert hook.is_torn_down
    assert hook.state is RequestState.LOADING, "No transitions after teardown"
    assert hook.data is None
    assert received == []

    assert await hook.submit("More text", "ChatGPT") is False
    assert len(server.requests) == 1


@pytest.mark.asyncio
async def test_reset_abandons_the_in_flight_request():
    server = Server()
    server.hold()
    received = []
    hook = VerifyHook(server.client(), on_success=received.append)

    task = asyncio.create_task(hook.submit("Some text", "ChatGPT"))
    await server.received.wait()
    hook.reset()
    server.gate.set()
    await asyncio.wait_for(task, timeout=2)

    assert hook.state is RequestState.IDLE
    assert hook.data is None and hook.error is None
    assert received == []


@pytest.mark.asyncio
async def test_cancelled_submit_task_frees_the_hook():
    server = Server(body=SEARCH_BODY)
    server.hold()
    hook = SearchHook(server.client())

    task = asyncio.create_task(hook.submit("first query"))
    await server.received.wait()
    task.cancel()
    with pytest.raises(asyncio.CancelledError):
        await task

    assert hook.state is RequestState.CANCELLED
    assert not hook.is_loading

    server.gate.set()
    assert await hook.submit("second query") is True, "A new submission must start after cancellation"
    assert hook.state is RequestState.SUCCESS
    assert len(server.requests) == 2


# =============================================================================
# RANKINGS
# =============================================================================

@pytest.mark.asyncio
async def test_rankings_refresh_loads_the_board():
    hook = RankingsHook(Server(body=RANKINGS_BODY).client())

    await hook.refresh()

    assert hook.state is RequestState.SUCCESS
    [ranking] = hook.rankings
    assert (ranking.name, ranking.avg_score) == ("ChatGPT", 60)


@pytest.mark.asyncio
async def test_failed_refresh_keeps_the_last_board():
    server = Server(body=RANKINGS_BODY)
    hook = RankingsHook(server.client())
    await hook.refresh()

    server.status, server.body = 503, {"error": "down"}
    await hook.refresh()

    assert hook.state is RequestState.ERROR
    assert [r.name for r in hook.rankings] == ["ChatGPT"]


@pytest.mark.asyncio
async def test_poll_refreshes_until_teardown():
    server = Server(body=RANKINGS_BODY)
    hook = RankingsHook(server.client())
    intervals = []

    async def fake_sleep(interval):
        intervals.append(interval)
        if len(intervals) == 3:
            hook.teardown()

    await asyncio.wait_for(hook.poll(interval=30.0, sleep=fake_sleep), timeout=2)

    assert len(server.requests) == 3
    assert intervals == [30.0, 30.0, 30.0]
