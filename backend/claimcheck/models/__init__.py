# Result type, error taxonomy and API schemas
from claimcheck.models.errors import APIError, ErrorCode
from claimcheck.models.result import Err, Ok, Result
from claimcheck.models.schemas import (
    AIRanking,
    Claim,
    Source,
    VerificationSummary,
    VerifyResponse,
    SearchResponse,
)

__all__ = [
    "APIError",
    "ErrorCode",
    "Err",
    "Ok",
    "Result",
    "AIRanking",
    "Claim",
    "Source",
    "VerificationSummary",
    "VerifyResponse",
    "SearchResponse",
]
