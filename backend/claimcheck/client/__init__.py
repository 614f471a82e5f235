"""
Client Module — typed access to the ClaimCheck API.

COMPONENTS:
- ApiClient: retrying, cancellable HTTP client returning Result values
- RequestSpec / CancellationToken: request description and abort handle
- VerifyHook, SearchHook, RephraseHook, RankingsHook: per-view request lifecycle

USAGE:
    from claimcheck.client import ApiClient, VerifyHook

    async with ApiClient("http://localhost:8000") as client:
        hook = VerifyHook(client)
        await hook.submit(text, "ChatGPT")
"""

from claimcheck.client.api_client import ApiClient, CancellationToken, RequestSpec
from claimcheck.client.hooks import (
    LOADING_FACTS,
    RankingsHook,
    RephraseHook,
    RequestHook,
    RequestState,
    SearchHook,
    VerifyHook,
)

__all__ = [
    "ApiClient",
    "CancellationToken",
    "RequestSpec",
    "LOADING_FACTS",
    "RankingsHook",
    "RephraseHook",
    "RequestHook",
    "RequestState",
    "SearchHook",
    "VerifyHook",
]
