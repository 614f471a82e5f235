"""
Rankings Aggregator — a leaderboard of content sources.

WHAT THIS DOES:
Every verification adds its per-status tallies under the name of the source
that produced the text (e.g. "ChatGPT"). The leaderboard then ranks sources
by how often their claims check out.

FORMULA (per source with at least one check):
    factual_total = verified + false + unconfirmed      (opinions excluded)
    verified_rate = round(verified / factual_total * 100)
    false_rate    = round(false / factual_total * 100)
    avg_score     = verified_rate - 2 * false_rate

    A zero factual_total gives rates of 0, never a division error.
    Rounding is half-up: 12.5 → 13.

EXAMPLE:
    verified=8, false=1, unconfirmed=1
    → factual_total=10, verified_rate=80, false_rate=10, avg_score=60

CONCURRENCY:
record() is additive and commutative. Each store serializes its own
read-modify-write, so interleaved record() calls never lose an update.

STORES:
- InMemoryRankingsStore: default, volatile (resets when the process restarts)
- SqlRankingsStore: durable, any async SQLAlchemy database
"""

import asyncio
import logging
import threading
from abc import ABC, abstractmethod
from dataclasses import dataclass, replace
from functools import lru_cache
from typing import Optional

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from claimcheck.config import get_settings
from claimcheck.models.errors import APIError
from claimcheck.models.ranking import RankingRecord
from claimcheck.models.result import Ok, Result
from claimcheck.models.schemas import AIRanking, VerificationSummary
from claimcheck.services.validation import validate_ranking_name

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RankingTallies:
    """Counts contributed by one verification."""

    verified: int = 0
    false: int = 0
    unconfirmed: int = 0
    opinions: int = 0

    @classmethod
    def from_summary(cls, summary: VerificationSummary) -> "RankingTallies":
        return cls(
            verified=summary.verified,
            false=summary.false,
            unconfirmed=summary.unconfirmed,
            opinions=summary.opinions,
        )


@dataclass
class RankingCounts:
    """Cumulative tallies stored for one source."""

    name: str
    checks_count: int = 0
    verified: int = 0
    false: int = 0
    unconfirmed: int = 0
    opinions: int = 0


# =============================================================================
# STORES
# =============================================================================

class RankingsStore(ABC):
    """Where tallies live. `all()` must return rows in insertion order."""

    @abstractmethod
    async def increment(self, name: str, tallies: RankingTallies) -> None:
        """Add one check plus the given tallies to `name`, creating it if needed."""

    @abstractmethod
    async def all(self) -> list[RankingCounts]:
        """Snapshot of every row, oldest first."""


class InMemoryRankingsStore(RankingsStore):
    """
    Process-local store. Lost on restart.

    A threading.Lock guards the dict so the store stays correct even when
    called from worker threads, not just from the event loop.
    """

    def __init__(self):
        self._rows: dict[str, RankingCounts] = {}
        self._lock = threading.Lock()

    async def increment(self, name: str, tallies: RankingTallies) -> None:
        with self._lock:
            row = self._rows.get(name)
            if row is None:
                row = RankingCounts(name=name)
                self._rows[name] = row
            row.checks_count += 1
            row.verified += tallies.verified
            row.false += tallies.false
            row.unconfirmed += tallies.unconfirmed
            row.opinions += tallies.opinions

    async def all(self) -> list[RankingCounts]:
        with self._lock:
            return [replace(row) for row in self._rows.values()]


class SqlRankingsStore(RankingsStore):
    """
    Durable store on top of SQLAlchemy.

    Increments are single UPDATE statements (`col = col + n`), so the
    database applies them atomically; the asyncio.Lock keeps this process
    from racing itself on the first insert of a name.
    """

    def __init__(self, sessionmaker: async_sessionmaker[AsyncSession]):
        self._sessionmaker = sessionmaker
        self._lock = asyncio.Lock()

    async def _increment_once(self, name: str, tallies: RankingTallies) -> None:
        async with self._sessionmaker() as session:
            async with session.begin():
                result = await session.execute(
                    update(RankingRecord)
                    .where(RankingRecord.name == name)
                    .values(
                        checks_count=RankingRecord.checks_count + 1,
                        verified=RankingRecord.verified + tallies.verified,
                        false=RankingRecord.false + tallies.false,
                        unconfirmed=RankingRecord.unconfirmed + tallies.unconfirmed,
                        opinions=RankingRecord.opinions + tallies.opinions,
                    )
                )
                if result.rowcount == 0:
                    session.add(
                        RankingRecord(
                            name=name,
                            checks_count=1,
                            verified=tallies.verified,
                            false=tallies.false,
                            unconfirmed=tallies.unconfirmed,
                            opinions=tallies.opinions,
                        )
                    )

    async def increment(self, name: str, tallies: RankingTallies) -> None:
        async with self._lock:
            try:
                await self._increment_once(name, tallies)
            except IntegrityError:
                # Another process inserted the same name first; the row exists now
                logger.warning(f"Concurrent insert for ranking '{name}', retrying as update")
                await self._increment_once(name, tallies)

    async def all(self) -> list[RankingCounts]:
        async with self._sessionmaker() as session:
            rows = await session.scalars(select(RankingRecord).order_by(RankingRecord.id))
            return [
                RankingCounts(
                    name=row.name,
                    checks_count=row.checks_count,
                    verified=row.verified,
                    false=row.false,
                    unconfirmed=row.unconfirmed,
                    opinions=row.opinions,
                )
                for row in rows
            ]


# =============================================================================
# AGGREGATOR
# =============================================================================

def _rate(part: int, total: int) -> int:
    """Percentage rounded half-up, 0 when total is 0."""
    if total <= 0:
        return 0
    # Integer form of floor(part * 100 / total + 0.5), no float error
    return (part * 200 + total) // (2 * total)


def compute_ranking(counts: RankingCounts) -> AIRanking:
    """Derive leaderboard figures from raw tallies."""
    factual_total = counts.verified + counts.false + counts.unconfirmed
    verified_rate = _rate(counts.verified, factual_total)
    false_rate = _rate(counts.false, factual_total)

    return AIRanking(
        name=counts.name,
        checks_count=counts.checks_count,
        verified_rate=verified_rate,
        false_rate=false_rate,
        avg_score=verified_rate - 2 * false_rate,
    )


class RankingsAggregator:
    """
    The repository the rest of the app talks to: record() and list().

    The backing store is injectable (in-memory for tests and the default
    deployment, SQL for durable setups).
    """

    def __init__(self, store: Optional[RankingsStore] = None):
        self.store = store or InMemoryRankingsStore()

    async def record(self, name: str, tallies: RankingTallies) -> Result[None, APIError]:
        """Add one check's tallies under `name`. Rejects blank / non-string names."""
        validated = validate_ranking_name(name)
        if validated.is_err:
            return validated

        await self.store.increment(validated.value, tallies)
        logger.info(f"Recorded ranking for '{validated.value}': {tallies}")
        return Ok(None)

    async def list(self) -> list[AIRanking]:
        """Leaderboard sorted by avg_score descending; ties keep insertion order."""
        rows = await self.store.all()
        rankings = [compute_ranking(row) for row in rows if row.checks_count > 0]
        # sorted() is stable, so equal scores stay in insertion order
        return sorted(rankings, key=lambda r: -r.avg_score)


def build_rankings_store() -> RankingsStore:
    """Pick the store from settings: SQL when a URL is configured, else memory."""
    settings = get_settings()
    if not settings.rankings_database_url:
        logger.info("Rankings store: in-memory (volatile)")
        return InMemoryRankingsStore()

    # Local import keeps the engine from being created when it is not needed
    from claimcheck.database import create_sessionmaker, get_engine

    logger.info("Rankings store: SQL database")
    return SqlRankingsStore(create_sessionmaker(get_engine()))


@lru_cache
def get_rankings_aggregator() -> RankingsAggregator:
    """Process-wide aggregator (FastAPI dependency)."""
    return RankingsAggregator(build_rankings_store())
