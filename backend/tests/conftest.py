"""
Shared fixtures: fake collaborator, settings and source builders.

The fake collaborator stands in for OpenAI so the pipeline tests run
offline and deterministically.
"""

import asyncio
from typing import Optional

import pytest

from claimcheck.config import Settings
from claimcheck.models.schemas import ExtractionResult, RawClaim, RawSearchAnswer, RawSource
from claimcheck.services.collaborator import ClaimCollaborator
from claimcheck.services.rankings import InMemoryRankingsStore, RankingsAggregator


class FakeCollaborator(ClaimCollaborator):
    """
    Scripted collaborator.

    - `error`: raised from every call instead of answering
    - `gate`: if set, every call waits for it first (for slow / cancelled cases)
    """

    def __init__(
        self,
        extraction: Optional[ExtractionResult] = None,
        search_answer: Optional[RawSearchAnswer] = None,
        rephrased: str = "Rewritten text.",
        error: Optional[BaseException] = None,
        gate: Optional[asyncio.Event] = None,
    ):
        self.extraction = extraction or ExtractionResult()
        self.search_answer = search_answer or RawSearchAnswer()
        self.rephrased = rephrased
        self.error = error
        self.gate = gate
        self.calls: list[tuple] = []

    async def _maybe_wait_and_fail(self):
        if self.gate is not None:
            await self.gate.wait()
        if self.error is not None:
            raise self.error

    async def extract_claims(self, text: str, source_label: str) -> ExtractionResult:
        self.calls.append(("extract_claims", text, source_label))
        await self._maybe_wait_and_fail()
        return self.extraction

    async def search(self, query: str) -> RawSearchAnswer:
        self.calls.append(("search", query))
        await self._maybe_wait_and_fail()
        return self.search_answer

    async def rephrase(self, text: str) -> str:
        self.calls.append(("rephrase", text))
        await self._maybe_wait_and_fail()
        return self.rephrased


def raw_source(domain: str, stance: Optional[str] = "supports", commercial: bool = False) -> RawSource:
    return RawSource(
        url=f"https://{domain}/article",
        title=f"Article on {domain}",
        snippet="Relevant quote",
        domain=domain,
        stance=stance,
        commercial=commercial,
    )


def raw_claim(text: str, sources: list[RawSource], type: str = "fact", status: Optional[str] = None) -> RawClaim:
    return RawClaim(claim=text, type=type, status=status, explanation="Checked.", sources=sources)


@pytest.fixture
def settings() -> Settings:
    return Settings(openai_api_key="test-key", collaborator_timeout_seconds=1.0)


@pytest.fixture
def rankings() -> RankingsAggregator:
    return RankingsAggregator(InMemoryRankingsStore())
