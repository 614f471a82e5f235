"""
API Routes — thin HTTP wrappers around the services.

ENDPOINTS:
- POST /api/verify     → text + source label → claims, summary, message
- POST /api/search     → query → answer, trust score, sources, warnings
- POST /api/rephrase   → text → rewritten text
- GET  /api/rankings   → leaderboard of content sources
- POST /api/rankings   → add one check's tallies to the leaderboard

STATUS CODES:
- 200 success (including verify with zero claims)
- 400 VALIDATION_ERROR, body {"error", "code", "field"?}
- 405 wrong method (see main.py exception handlers)
- 500 CONFIG_ERROR (missing credentials) and rephrase failures
- 502 UPSTREAM_ERROR (collaborator unreachable, slow or malformed)

Routes do no business logic: each one builds a service from its
dependencies, awaits it and converts the Result into a response.
"""

import logging

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from claimcheck.models.result import Ok, Result
from claimcheck.models.schemas import (
    RankingPostResponse,
    RankingsResponse,
    RankingSubmission,
    RephraseRequest,
    SearchRequest,
    VerifyRequest,
)
from claimcheck.services.collaborator import ClaimCollaborator, get_collaborator
from claimcheck.services.rankings import (
    RankingsAggregator,
    RankingTallies,
    get_rankings_aggregator,
)
from claimcheck.services.rephraser import RephraseService
from claimcheck.services.search import SearchService
from claimcheck.services.verification import VerificationService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["api"])


def _respond(result: Result[BaseModel, object]) -> JSONResponse:
    """Ok → 200 with the camelCase body, Err → the error's status and body."""
    if result.is_err:
        return JSONResponse(status_code=result.error.status, content=result.error.to_body())
    return JSONResponse(status_code=200, content=result.value.model_dump(mode="json", by_alias=True))


# =============================================================================
# VERIFY
# =============================================================================

@router.post("/verify")
async def verify(
    request: VerifyRequest,
    collaborator: ClaimCollaborator = Depends(get_collaborator),
    rankings: RankingsAggregator = Depends(get_rankings_aggregator),
) -> JSONResponse:
    """
    Verify every factual claim in a piece of text.

    Example:
        POST /api/verify
        {"text": "The Great Wall is visible from space.", "sourceLabel": "ChatGPT"}

        Returns {"claims": [...], "summary": {...}, "message": "..."}
    """
    service = VerificationService(collaborator, rankings)
    return _respond(await service.verify(request.text, request.source_label))


# =============================================================================
# SEARCH
# =============================================================================

@router.post("/search")
async def search(
    request: SearchRequest,
    collaborator: ClaimCollaborator = Depends(get_collaborator),
) -> JSONResponse:
    """Answer a question with trust-scored sources."""
    service = SearchService(collaborator)
    return _respond(await service.search(request.query))


# =============================================================================
# REPHRASE
# =============================================================================

@router.post("/rephrase")
async def rephrase(
    request: RephraseRequest,
    collaborator: ClaimCollaborator = Depends(get_collaborator),
) -> JSONResponse:
    service = RephraseService(collaborator)
    return _respond(await service.rephrase(request.text))


# =============================================================================
# RANKINGS
# =============================================================================

@router.get("/rankings")
async def list_rankings(
    rankings: RankingsAggregator = Depends(get_rankings_aggregator),
) -> JSONResponse:
    """Leaderboard, best average score first."""
    leaderboard = await rankings.list()
    logger.debug(f"Serving {len(leaderboard)} rankings")
    return _respond(Ok(RankingsResponse(rankings=leaderboard)))


@router.post("/rankings")
async def record_ranking(
    submission: RankingSubmission,
    rankings: RankingsAggregator = Depends(get_rankings_aggregator),
) -> JSONResponse:
    """
    Record one check's tallies by hand.

    Example:
        POST /api/rankings
        {"aiSource": "ChatGPT", "verified": 3, "false": 1, "unconfirmed": 0, "opinions": 2}
    """
    tallies = RankingTallies(
        verified=submission.verified,
        false=submission.false,
        unconfirmed=submission.unconfirmed,
        opinions=submission.opinions,
    )
    result = await rankings.record(submission.ai_source, tallies)
    if result.is_err:
        return _respond(result)
    return _respond(Ok(RankingPostResponse(success=True)))
