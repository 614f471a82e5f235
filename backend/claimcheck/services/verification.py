"""
Verification Pipeline — turns pasted text into verified claims.

WHAT THIS DOES:
Coordinates the collaborator, the trust classifier, the verdict aggregator
and the rankings aggregator for one POST /api/verify request.

PIPELINE STAGES:
1. Validation: text and source label are checked before anything else
2. Extraction: the collaborator splits the text into claims with sources
3. Trust Layer: classify every source → decide status + confidence per claim
4. Assembly: tally the summary, pick the message, build the VerifyResponse
5. Bookkeeping: add the tallies to the leaderboard under the source label

FAILURE MODEL:
verify() never raises for expected failures. It returns Err(APIError):
- VALIDATION_ERROR for bad input (collaborator is never called)
- UPSTREAM_ERROR when the collaborator fails, times out or returns junk
- CONFIG_ERROR when the collaborator has no credentials
If the surrounding task is cancelled the CancelledError propagates and the
leaderboard is left untouched.

USAGE:
    service = VerificationService(collaborator, rankings)
    result = await service.verify(text, "ChatGPT")
    if result.is_ok:
        response = result.value
"""

import logging
from typing import Any, Optional

from claimcheck.config import Settings, get_settings
from claimcheck.models.errors import APIError
from claimcheck.models.result import Ok, Result
from claimcheck.models.schemas import (
    Claim,
    ClaimStatus,
    RawClaim,
    Stance,
    VerificationSummary,
    VerifyResponse,
)
from claimcheck.services.collaborator import ClaimCollaborator, call_collaborator
from claimcheck.services.rankings import RankingsAggregator, RankingTallies
from claimcheck.services.trust.source_classifier import classify_sources
from claimcheck.services.trust.verdict_aggregator import aggregate, source_agreement
from claimcheck.services.validation import (
    sanitize_for_display,
    validate_source_label,
    validate_verify_text,
)

logger = logging.getLogger(__name__)

NO_CLAIMS_MESSAGE = "No factual claims found to verify."

# Sources the collaborator sent without a stance inherit one from its own guess
_STANCE_FROM_STATUS: dict[Optional[ClaimStatus], Stance] = {
    "verified": "supports",
    "false": "contradicts",
}


def default_stance_for(status_hint: Optional[ClaimStatus]) -> Stance:
    return _STANCE_FROM_STATUS.get(status_hint, "neutral")


def build_claim(raw: RawClaim) -> Optional[Claim]:
    """
    Run the trust layer on one extracted claim.

    Returns None (and logs) when the claim has no usable text.
    """
    sources = classify_sources(raw.sources, default_stance_for(raw.status))

    result = aggregate(raw.claim, sources, raw.type)
    if result.is_err:
        logger.warning(f"Skipping extracted claim: {result.error.message}")
        return None

    verdict = result.value
    return Claim(
        claim=sanitize_for_display(raw.claim),
        type=raw.type,
        status=verdict.status,
        explanation=sanitize_for_display(raw.explanation),
        sources=sources,
        confidence=verdict.confidence,
        source_agreement=source_agreement(sources),
    )


class VerificationService:
    """
    Orchestrates one verification from raw text to VerifyResponse.

    The rankings aggregator is optional so the pipeline can run without
    touching the leaderboard (e.g. in tests of the trust layer alone).
    """

    def __init__(
        self,
        collaborator: ClaimCollaborator,
        rankings: Optional[RankingsAggregator] = None,
        settings: Optional[Settings] = None,
    ):
        self.collaborator = collaborator
        self.rankings = rankings
        self.settings = settings or get_settings()

    async def verify(self, text: Any, source_label: Any) -> Result[VerifyResponse, APIError]:
        # Stage 1: Validation
        checked_text = validate_verify_text(text, self.settings.max_verify_length)
        if checked_text.is_err:
            return checked_text
        checked_label = validate_source_label(source_label, self.settings.max_source_label_length)
        if checked_label.is_err:
            return checked_label

        text, label = checked_text.value, checked_label.value
        logger.info(f"Verification starting: {len(text)} chars from '{label}'")

        # Stage 2: Extraction
        extraction = await call_collaborator(
            self.collaborator.extract_claims(text, label),
            timeout=self.settings.collaborator_timeout_seconds,
            operation="verify",
        )
        if extraction.is_err:
            return extraction

        # Stage 3: Trust Layer
        claims = [
            claim
            for claim in (build_claim(raw) for raw in extraction.value.claims)
            if claim is not None
        ]

        # Stage 4: Assembly
        summary = VerificationSummary.from_claims(claims)
        if not claims:
            message = NO_CLAIMS_MESSAGE
        else:
            message = sanitize_for_display(extraction.value.overall_verdict or "") or None

        response = VerifyResponse(claims=claims, summary=summary, message=message)

        # Stage 5: Bookkeeping
        if self.rankings is not None and summary.total > 0:
            recorded = await self.rankings.record(label, RankingTallies.from_summary(summary))
            if recorded.is_err:
                logger.warning(f"Rankings not updated for '{label}': {recorded.error.message}")

        logger.info(
            f"Verification complete: {summary.total} claims "
            f"({summary.verified} verified, {summary.false} false, "
            f"{summary.unconfirmed} unconfirmed, {summary.opinions} opinions)"
        )
        return Ok(response)
