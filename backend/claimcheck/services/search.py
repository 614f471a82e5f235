"""
Search Service — answers a question and scores how far to trust the answer.

WHAT THIS DOES:
1. Validate the query
2. Ask the collaborator for an answer plus the sources behind it
3. Classify every source (trust tier, commercial flag)
4. Score the answer 0-100 from source quality and agreement
5. Attach advisory warnings the UI shows under the answer

TRUST SCORE:
    no sources                        → 0
    otherwise start at 50
      + 15 per high-trust source
      +  8 per medium-trust source
      + 20 if ≥ 3 sources agree (+10 if ≥ 2)
      - 20 if there is no high or medium source at all
    clamped to 0-100

The score is computed over every source the collaborator returned; only the
best `max_search_sources` (high → medium → low) are sent back.
"""

import logging
import re
from typing import Any, Optional

from claimcheck.config import Settings, get_settings
from claimcheck.models.errors import APIError
from claimcheck.models.result import Ok, Result
from claimcheck.models.schemas import SearchResponse, Source
from claimcheck.services.collaborator import ClaimCollaborator, call_collaborator
from claimcheck.services.trust.source_classifier import classify_sources, sort_sources_by_quality
from claimcheck.services.trust.verdict_aggregator import source_agreement
from claimcheck.services.validation import sanitize_for_display, validate_search_query

logger = logging.getLogger(__name__)

NO_ANSWER = "Unable to find a clear answer."

WARNING_NO_HIGH_TRUST = (
    "No high-trust sources (.edu, .gov, peer-reviewed) found. "
    "Consider verifying with additional sources."
)
WARNING_LIMITED_SOURCES = "Limited sources available. Cross-reference with additional searches."
WARNING_UNCERTAIN = "This topic contains uncertainty. Multiple perspectives may exist."
WARNING_CONFLICTING = "Some sources contradict this answer. Review them before relying on it."

HEDGING_WORDS = ("may", "might", "could", "possibly", "reportedly", "allegedly")
_HEDGING = re.compile(r"\b(?:" + "|".join(HEDGING_WORDS) + r")\b", re.IGNORECASE)


def calculate_trust_score(sources: list[Source], agreement_count: int) -> int:
    """Trust score for a search answer (see module docstring)."""
    if not sources:
        return 0

    high = sum(1 for s in sources if s.quality == "high")
    medium = sum(1 for s in sources if s.quality == "medium")

    score = 50 + 15 * high + 8 * medium
    if agreement_count >= 3:
        score += 20
    elif agreement_count >= 2:
        score += 10
    if high == 0 and medium == 0:
        score -= 20

    return max(0, min(100, score))


def generate_warnings(sources: list[Source], answer: str) -> list[str]:
    """Advisory warnings, in display order."""
    warnings = []

    if not any(s.quality == "high" for s in sources):
        warnings.append(WARNING_NO_HIGH_TRUST)

    if len(sources) < 2:
        warnings.append(WARNING_LIMITED_SOURCES)

    # Whole words only: "mayor" or "Mayo Clinic" are not hedging
    if _HEDGING.search(answer):
        warnings.append(WARNING_UNCERTAIN)

    if any(s.stance == "contradicts" for s in sources):
        warnings.append(WARNING_CONFLICTING)

    return warnings


class SearchService:
    """Runs one search from raw query to SearchResponse."""

    def __init__(self, collaborator: ClaimCollaborator, settings: Optional[Settings] = None):
        self.collaborator = collaborator
        self.settings = settings or get_settings()

    async def search(self, query: Any) -> Result[SearchResponse, APIError]:
        checked = validate_search_query(query, self.settings.max_search_length)
        if checked.is_err:
            return checked
        query = checked.value

        logger.info(f"Search starting: '{query[:80]}'")

        raw = await call_collaborator(
            self.collaborator.search(query),
            timeout=self.settings.collaborator_timeout_seconds,
            operation="search",
        )
        if raw.is_err:
            return raw

        # Sources are cited in support of the answer unless they say otherwise
        sources = classify_sources(raw.value.sources, default_stance="supports")
        answer = sanitize_for_display(raw.value.answer) or NO_ANSWER
        # Without a count from the collaborator, only independent supporting sources agree
        agreement = raw.value.agreement_count or source_agreement(sources)

        trust_score = calculate_trust_score(sources, agreement)
        warnings = generate_warnings(sources, answer)
        top_sources = sort_sources_by_quality(sources)[: self.settings.max_search_sources]

        logger.info(
            f"Search complete: trust_score={trust_score}, "
            f"{len(sources)} sources ({len(top_sources)} returned), {len(warnings)} warnings"
        )
        return Ok(
            SearchResponse(
                query=query,
                answer=answer,
                trust_score=trust_score,
                sources=top_sources,
                source_agreement=agreement,
                warnings=warnings,
            )
        )
