"""
Pydantic schemas for API request/response validation.

These define the shape of data that goes in and out of the API, plus the
raw payloads the external collaborator hands back before we classify them.

FLOW OVERVIEW:
==============
1. User sends VerifyRequest to /api/verify (or SearchRequest to /api/search)
2. Collaborator returns RawClaim[] / RawSearchAnswer (untrusted, loosely typed)
3. Trust classifier turns RawSource → Source (adds quality tier)
4. Verdict aggregator assigns status + confidence → Claim
5. Claims are tallied into a VerificationSummary → VerifyResponse

JSON keys are camelCase (sourceLabel, trustScore, ...) because the UI
consumes them directly; Python attributes stay snake_case.
"""

from typing import Literal, Optional

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator


TrustTier = Literal["high", "medium", "low"]
ClaimStatus = Literal["verified", "false", "unconfirmed", "opinion"]
ClaimType = Literal["fact", "opinion", "prediction"]
Stance = Literal["supports", "contradicts", "neutral"]

CLAIM_STATUSES: tuple[str, ...] = ("verified", "false", "unconfirmed", "opinion")


class CamelModel(BaseModel):
    """Base for models exchanged with the UI: accepts both key styles."""

    model_config = ConfigDict(populate_by_name=True)


# =============================================================================
# SOURCE SCHEMAS
# =============================================================================
#
# WHEN USED:
# - RawSource: what the collaborator returns (no trust tier yet)
# - Source: after the trust classifier has run
#

class RawSource(BaseModel):
    """
    A source exactly as the collaborator reported it.

    `stance` and `commercial` are hints: the collaborator read the page,
    we did not. Missing hints are filled in by the verification service.
    """

    model_config = ConfigDict(extra="ignore")

    url: str = ""
    title: str = ""
    snippet: str = ""
    domain: str = ""
    stance: Optional[Stance] = None
    commercial: bool = False

    @field_validator("url", "title", "snippet", "domain", mode="before")
    @classmethod
    def _none_to_empty(cls, value):
        return "" if value is None else value

    @field_validator("stance", mode="before")
    @classmethod
    def _normalize_stance(cls, value):
        if isinstance(value, str):
            value = value.strip().lower()
            aliases = {"support": "supports", "agrees": "supports", "contradict": "contradicts"}
            value = aliases.get(value, value)
            return value if value in ("supports", "contradicts", "neutral") else None
        return value


class Source(BaseModel):
    """
    A classified source attached to a claim or search answer.

    DISPLAYED: as a source card with a trust badge (quality).
    """

    url: str
    title: str
    snippet: str
    domain: str
    quality: TrustTier
    stance: Stance = "neutral"
    commercial: bool = Field(
        default=False,
        description="Commercial interest: may give context, never counts toward verification",
    )


# =============================================================================
# CLAIM SCHEMAS
# =============================================================================

class RawClaim(BaseModel):
    """
    One assertion extracted by the collaborator.

    `status` is the collaborator's own opinion of the verdict; it is only
    used to infer stances for sources that arrive without one. The final
    status is always recomputed by the verdict aggregator.
    """

    model_config = ConfigDict(extra="ignore")

    claim: str = Field(default="", validation_alias=AliasChoices("claim", "text"))
    type: ClaimType = "fact"
    status: Optional[ClaimStatus] = None
    explanation: str = ""
    sources: list[RawSource] = Field(default_factory=list)

    @field_validator("type", mode="before")
    @classmethod
    def _normalize_type(cls, value):
        if isinstance(value, str) and value.strip().lower() in ("fact", "opinion", "prediction"):
            return value.strip().lower()
        return "fact"

    @field_validator("status", mode="before")
    @classmethod
    def _normalize_status(cls, value):
        if isinstance(value, str) and value.strip().lower() in CLAIM_STATUSES:
            return value.strip().lower()
        return None

    @field_validator("explanation", mode="before")
    @classmethod
    def _explanation_none(cls, value):
        return "" if value is None else value

    @field_validator("sources", mode="before")
    @classmethod
    def _sources_none(cls, value):
        return [] if value is None else value


class ExtractionResult(BaseModel):
    """Full collaborator payload for a verification request."""

    model_config = ConfigDict(extra="ignore")

    claims: list[RawClaim] = Field(default_factory=list)
    overall_verdict: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("overallVerdict", "overall_verdict"),
    )


class Claim(CamelModel):
    """
    A verified claim as returned to the caller. Immutable once built.

    LIFECYCLE:
    1. Collaborator extracts RawClaim
    2. Trust classifier tiers its sources
    3. Verdict aggregator sets status + confidence
    """

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    claim: str
    type: ClaimType = "fact"
    status: ClaimStatus
    explanation: str = ""
    sources: list[Source] = Field(default_factory=list)
    confidence: int = Field(ge=0, le=100)
    source_agreement: int = Field(default=0, alias="sourceAgreement")


class VerificationSummary(BaseModel):
    """
    Per-status counts over a set of claims.

    Invariant: total == verified + false + unconfirmed + opinions.
    Purely derived from the claims; never used to override them.
    """

    total: int
    verified: int
    false: int
    unconfirmed: int
    opinions: int

    @classmethod
    def from_claims(cls, claims: list[Claim]) -> "VerificationSummary":
        counts = {status: 0 for status in CLAIM_STATUSES}
        for claim in claims:
            counts[claim.status] += 1
        return cls(
            total=len(claims),
            verified=counts["verified"],
            false=counts["false"],
            unconfirmed=counts["unconfirmed"],
            opinions=counts["opinion"],
        )


# =============================================================================
# VERIFY ENDPOINT
# =============================================================================

class VerifyRequest(CamelModel):
    """
    Request body for POST /api/verify.

    Example:
        {"text": "The Eiffel Tower is 330 m tall.", "sourceLabel": "ChatGPT"}

    The older `content` / `aiSource` keys are still accepted.
    """

    text: Optional[str] = Field(default=None, validation_alias=AliasChoices("text", "content"))
    source_label: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("sourceLabel", "source_label", "aiSource"),
        serialization_alias="sourceLabel",
    )


class VerifyResponse(CamelModel):
    """Response body for POST /api/verify (200 even when `claims` is empty)."""

    claims: list[Claim]
    summary: VerificationSummary
    message: Optional[str] = None


# =============================================================================
# SEARCH ENDPOINT
# =============================================================================

class RawSearchAnswer(BaseModel):
    """Collaborator payload for a search request."""

    model_config = ConfigDict(extra="ignore")

    answer: str = ""
    sources: list[RawSource] = Field(default_factory=list)
    agreement_count: Optional[int] = Field(
        default=None,
        ge=0,
        validation_alias=AliasChoices("agreementCount", "agreement_count", "sourceAgreement"),
    )

    @field_validator("answer", mode="before")
    @classmethod
    def _answer_none(cls, value):
        return "" if value is None else value

    @field_validator("sources", mode="before")
    @classmethod
    def _sources_none(cls, value):
        return [] if value is None else value


class SearchRequest(CamelModel):
    """Request body for POST /api/search."""

    query: Optional[str] = None


class SearchResponse(CamelModel):
    """Response body for POST /api/search."""

    query: str
    answer: str
    trust_score: int = Field(ge=0, le=100, alias="trustScore")
    sources: list[Source]
    source_agreement: int = Field(alias="sourceAgreement")
    warnings: list[str]


# =============================================================================
# REPHRASE ENDPOINT
# =============================================================================

class RephraseRequest(CamelModel):
    """Request body for POST /api/rephrase."""

    text: Optional[str] = None


class RephraseResponse(CamelModel):
    rephrased: str


# =============================================================================
# RANKINGS ENDPOINT
# =============================================================================

class RankingSubmission(CamelModel):
    """
    Request body for POST /api/rankings.

    Counts default to 0; any extra keys (e.g. `total`) are ignored.
    """

    ai_source: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("aiSource", "ai_source", "sourceLabel"),
    )
    verified: int = Field(default=0, ge=0)
    false: int = Field(default=0, ge=0)
    unconfirmed: int = Field(default=0, ge=0)
    opinions: int = Field(default=0, ge=0)


class AIRanking(CamelModel):
    """Leaderboard row for one content source."""

    name: str
    checks_count: int = Field(alias="checksCount")
    verified_rate: int = Field(alias="verifiedRate")
    false_rate: int = Field(alias="falseRate")
    avg_score: int = Field(alias="avgScore")


class RankingsResponse(CamelModel):
    rankings: list[AIRanking]


class RankingPostResponse(CamelModel):
    """Response body for POST /api/rankings."""

    success: bool


class ErrorResponse(BaseModel):
    """Uniform error body for every non-2xx response."""

    error: str
    code: Optional[str] = None
    field: Optional[str] = None
