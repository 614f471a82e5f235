"""
Verdict Aggregator.

WHAT THIS DOES:
Given one claim and its classified sources, decides the claim's status
(verified / false / unconfirmed / opinion) and a 0-100 confidence score.
This is the decision logic of the whole system: the collaborator finds
and reads sources, but the verdict is computed here, from tiers and stances.

DECISION POLICY:
- Collaborator says the statement is an opinion      → opinion, 0
- Otherwise, no sources at all                       → unconfirmed, 0
- ≥ 2 independent high/medium sources support it and
  no high/medium source contradicts it               → verified
- High/medium sources contradict it at least as
  often as high/medium sources support it            → false
- Anything else (thin, silent or conflicting)        → unconfirmed

"Independent" means distinct domains: three pages from cdc.gov count once.
Commercial sources never count toward the two-source threshold; they are
weighted like low-tier sources whatever their tier.

CONFIDENCE BANDS:
    verified, ≥ 2 high supporting          90-100
    verified, high + medium mix            70-89
    unconfirmed with some support          40-69   (thin or conflicting)
    false, or unconfirmed with no support   0-39   (contradicted or absent)

Within each band the score only grows with more (or higher-tier) supporting
sources, and the bands are ordered the same way as the statuses, so adding
or upgrading a corroborating source can never lower confidence.

USAGE:
    result = aggregate("Water boils at 100 °C at sea level", sources)
    if result.is_ok:
        verdict = result.value   # Verdict(status="verified", confidence=92)
"""

import logging
from dataclasses import dataclass

from claimcheck.models.errors import APIError, validation_error
from claimcheck.models.result import Err, Ok, Result
from claimcheck.models.schemas import ClaimStatus, ClaimType, Source

logger = logging.getLogger(__name__)

# Minimum independent high/medium sources needed to call a claim verified
VERIFIED_THRESHOLD = 2

# How much a neutral (silent) source adds while a claim is unconfirmed
NEUTRAL_WEIGHT = {"high": 3, "medium": 2, "low": 1}


@dataclass(frozen=True)
class Verdict:
    """Outcome for a single claim."""
    status: ClaimStatus
    confidence: int


@dataclass
class EvidenceProfile:
    """Counts of independent sources by stance and effective tier."""

    high_support: int = 0
    medium_support: int = 0
    low_support: int = 0
    high_contra: int = 0
    medium_contra: int = 0
    low_contra: int = 0
    neutral_weight: int = 0

    @property
    def trusted_support(self) -> int:
        return self.high_support + self.medium_support

    @property
    def trusted_contra(self) -> int:
        return self.high_contra + self.medium_contra

    @property
    def any_support(self) -> int:
        return self.trusted_support + self.low_support


def _independence_key(source: Source, index: int) -> str:
    # Sources with no origin at all cannot be matched to each other
    return source.domain or source.url or f"#{index}"


def _effective_tier(source: Source) -> str:
    return "low" if source.commercial else source.quality


def build_profile(sources: list[Source]) -> EvidenceProfile:
    """Tally independent sources per stance and effective tier."""
    profile = EvidenceProfile()
    seen: set[tuple[str, str]] = set()

    for index, source in enumerate(sources):
        key = (source.stance, _independence_key(source, index))
        if key in seen:
            continue
        seen.add(key)

        tier = _effective_tier(source)
        if source.stance == "supports":
            if tier == "high":
                profile.high_support += 1
            elif tier == "medium":
                profile.medium_support += 1
            else:
                profile.low_support += 1
        elif source.stance == "contradicts":
            if tier == "high":
                profile.high_contra += 1
            elif tier == "medium":
                profile.medium_contra += 1
            else:
                profile.low_contra += 1
        else:
            profile.neutral_weight += NEUTRAL_WEIGHT[tier]

    return profile


def source_agreement(sources: list[Source]) -> int:
    """Number of independent, non-commercial sources that support the claim."""
    keys = {
        _independence_key(source, index)
        for index, source in enumerate(sources)
        if source.stance == "supports" and not source.commercial
    }
    return len(keys)


def _clamp(value: int, low: int, high: int) -> int:
    return max(low, min(high, value))


def _decide(profile: EvidenceProfile) -> Verdict:
    # Verified: enough independent trusted corroboration, no trusted dissent
    if profile.trusted_support >= VERIFIED_THRESHOLD and profile.trusted_contra == 0:
        if profile.high_support >= VERIFIED_THRESHOLD:
            bonus = 2 * (profile.high_support - VERIFIED_THRESHOLD) + profile.medium_support
            return Verdict("verified", 90 + min(10, bonus))
        # high_support <= 1 here, so the floor is 64 + 3*2 = 70
        score = 64 + 5 * profile.high_support + 3 * profile.medium_support
        return Verdict("verified", min(89, score))

    # False: trusted sources contradict at least as much as they support
    if profile.trusted_contra > 0 and profile.trusted_contra >= profile.trusted_support:
        score = (
            36
            + 4 * profile.trusted_support
            + profile.low_support
            - 8 * profile.high_contra
            - 5 * profile.medium_contra
        )
        return Verdict("false", _clamp(score, 0, 39))

    # Unconfirmed, nothing supports it: absent evidence
    if profile.any_support == 0:
        score = 25 + profile.neutral_weight - 2 * profile.low_contra
        return Verdict("unconfirmed", _clamp(score, 0, 39))

    # Unconfirmed with some support: thin or conflicting evidence
    score = (
        40
        + 8 * profile.high_support
        + 5 * profile.medium_support
        + 2 * profile.low_support
        + profile.neutral_weight
        - 6 * profile.trusted_contra
        - profile.low_contra
    )
    return Verdict("unconfirmed", _clamp(score, 40, 69))


def aggregate(
    claim_text: str,
    sources: list[Source],
    claim_type: ClaimType = "fact",
) -> Result[Verdict, APIError]:
    """
    Compute status and confidence for one claim.

    Args:
        claim_text: The claim itself (must be non-empty)
        sources: Classified sources (output of the trust classifier)
        claim_type: Collaborator hint; "opinion" short-circuits to an opinion verdict

    Returns:
        Ok(Verdict) or Err(VALIDATION_ERROR) for empty/non-string claim text
    """
    if not isinstance(claim_text, str) or not claim_text.strip():
        return Err(validation_error("Claim text must be a non-empty string", field="claim"))

    if claim_type == "opinion":
        return Ok(Verdict("opinion", 0))

    if not sources:
        return Ok(Verdict("unconfirmed", 0))

    profile = build_profile(sources)
    verdict = _decide(profile)

    logger.debug(
        f"Verdict for '{claim_text[:60]}': {verdict.status} ({verdict.confidence}) "
        f"from {len(sources)} sources, profile={profile}"
    )
    return Ok(verdict)
