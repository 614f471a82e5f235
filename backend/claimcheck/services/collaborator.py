"""
External Collaborator — claim extraction, web search and text rewriting.

WHAT THIS IS:
The black box the verification pipeline delegates natural-language work to.
It reads text, finds sources and reports what it found. It does NOT decide
verdicts; the verdict aggregator does that from the sources it returns.

CONTRACT:
- extract_claims(text, source_label) → ExtractionResult (RawClaim[] + overall verdict text)
- search(query)                      → RawSearchAnswer (answer + RawSource[] + agreement count)
- rephrase(text)                     → str

Implementations raise CollaboratorError when the collaborator is unreachable
or returns something unusable, and CollaboratorConfigError when credentials
are missing. Services translate those into UPSTREAM_ERROR / CONFIG_ERROR.

STRUCTURED OUTPUT:
We use OpenAI's JSON mode. Models sometimes wrap the JSON in prose anyway,
so parse_json_payload falls back to the outermost {...} block.

USAGE:
    collaborator = OpenAICollaborator()
    extraction = await collaborator.extract_claims(text, "ChatGPT")
"""

import asyncio
import json
import logging
import re
from abc import ABC, abstractmethod
from functools import lru_cache
from typing import Awaitable, Optional, TypeVar

from openai import AsyncOpenAI, OpenAIError
from pydantic import ValidationError

from claimcheck.config import Settings, get_settings
from claimcheck.models.errors import (
    APIError,
    CollaboratorConfigError,
    CollaboratorError,
    config_error,
    upstream_error,
)
from claimcheck.models.result import Err, Ok, Result
from claimcheck.models.schemas import ExtractionResult, RawSearchAnswer

logger = logging.getLogger(__name__)

T = TypeVar("T")

_JSON_BLOCK = re.compile(r"\{[\s\S]*\}")

VERIFY_PROMPT = """You are an expert fact-checker. Your job is to find and report evidence for every factual claim in a text produced by {source_label}.

INSTRUCTIONS:
1. Extract EVERY factual claim. Do not skip any.
2. Mark each claim's type: "fact" (verifiable), "opinion" (subjective) or "prediction".
3. For each factual claim, gather 1-4 sources. Prefer .gov, .edu, peer-reviewed and major reference sources.
4. For every source state its stance toward the claim: "supports", "contradicts" or "neutral".
5. Mark a source "commercial": true if it is selling something related to the claim.
6. Give your own status guess ("verified", "false", "unconfirmed", "opinion") and explain it.

OUTPUT FORMAT (JSON):
{{
  "claims": [
    {{
      "claim": "The exact claim text",
      "type": "fact",
      "status": "verified",
      "explanation": "According to [source], ...",
      "sources": [
        {{"url": "https://...", "title": "Title", "snippet": "Relevant quote", "domain": "example.gov", "stance": "supports", "commercial": false}}
      ]
    }}
  ],
  "overallVerdict": "One or two sentences summarizing the findings."
}}

Return ONLY valid JSON."""

SEARCH_PROMPT = """Find accurate, factual information to answer the user's question.

INSTRUCTIONS:
1. Use multiple sources; prioritize .edu, .gov and peer-reviewed sources.
2. For every source state whether it "supports", "contradicts" or is "neutral" toward your answer.
3. Count how many sources agree with your answer (agreementCount).
4. Be factual, clear and professional.

OUTPUT FORMAT (JSON):
{
  "answer": "Your answer based on the sources.",
  "sources": [
    {"url": "URL", "title": "Title", "snippet": "Relevant quote", "domain": "domain.com", "stance": "supports"}
  ],
  "agreementCount": 2
}

Return ONLY valid JSON."""

REPHRASE_PROMPT = """Rewrite the user's text in different words while keeping ALL the same facts.

RULES:
1. Keep ALL facts exactly the same
2. Change sentence structure and word choices
3. Use professional language
4. Keep approximately the same length

Return ONLY the rewritten text."""


def parse_json_payload(text: Optional[str]) -> dict:
    """
    Parse a JSON object out of collaborator output.

    Raises:
        CollaboratorError: no JSON object could be recovered
    """
    if not text or not text.strip():
        raise CollaboratorError("Collaborator returned an empty response")

    try:
        data = json.loads(text)
    except json.JSONDecodeError:
        match = _JSON_BLOCK.search(text)
        if not match:
            raise CollaboratorError("Collaborator response contained no JSON object")
        try:
            data = json.loads(match.group(0))
        except json.JSONDecodeError as e:
            raise CollaboratorError(f"Collaborator returned malformed JSON: {e}") from e

    if not isinstance(data, dict):
        raise CollaboratorError("Collaborator JSON payload is not an object")
    return data


# =============================================================================
# INTERFACE
# =============================================================================

class ClaimCollaborator(ABC):
    """
    Abstract collaborator. Implement this to plug in another provider;
    tests use in-memory fakes.
    """

    @abstractmethod
    async def extract_claims(self, text: str, source_label: str) -> ExtractionResult:
        """Extract claims from text and gather sources for each."""

    @abstractmethod
    async def search(self, query: str) -> RawSearchAnswer:
        """Answer a question from sources."""

    @abstractmethod
    async def rephrase(self, text: str) -> str:
        """Rewrite text, keeping every fact."""


# =============================================================================
# OPENAI IMPLEMENTATION
# =============================================================================

class OpenAICollaborator(ClaimCollaborator):
    """
    Collaborator backed by OpenAI chat completions.

    The client is created lazily so a missing API key only fails the first
    request that needs it (CONFIG_ERROR → HTTP 500), never app startup.
    """

    def __init__(self, settings: Optional[Settings] = None, client: Optional[AsyncOpenAI] = None):
        self.settings = settings or get_settings()
        self._client = client

    def _get_client(self) -> AsyncOpenAI:
        if self._client is None:
            if not self.settings.openai_api_key:
                raise CollaboratorConfigError("OPENAI_API_KEY is not configured")
            self._client = AsyncOpenAI(
                api_key=self.settings.openai_api_key,
                timeout=self.settings.collaborator_timeout_seconds,
            )
        return self._client

    async def _complete(
        self,
        model: str,
        system: str,
        user: str,
        max_tokens: int,
        json_mode: bool,
    ) -> str:
        client = self._get_client()
        kwargs = {}
        if json_mode:
            kwargs["response_format"] = {"type": "json_object"}

        try:
            response = await client.chat.completions.create(
                model=model,
                messages=[
                    {"role": "system", "content": system},
                    {"role": "user", "content": user},
                ],
                temperature=0.1,  # Low temperature for consistent extraction
                max_tokens=max_tokens,
                **kwargs,
            )
        except OpenAIError as e:
            logger.error(f"Collaborator request failed ({model}): {e}")
            raise CollaboratorError(f"Collaborator request failed: {e}") from e

        if not response.choices:
            raise CollaboratorError("Collaborator returned no choices")
        return response.choices[0].message.content or ""

    async def extract_claims(self, text: str, source_label: str) -> ExtractionResult:
        logger.info(f"Extracting claims from {source_label} text ({len(text)} chars)")

        content = await self._complete(
            model=self.settings.verification_model,
            system=VERIFY_PROMPT.format(source_label=source_label),
            user=text,
            max_tokens=8000,
            json_mode=True,
        )
        data = parse_json_payload(content)

        try:
            return ExtractionResult.model_validate(data)
        except ValidationError as e:
            logger.error(f"Malformed extraction payload: {e}")
            raise CollaboratorError("Collaborator returned a malformed claims payload") from e

    async def search(self, query: str) -> RawSearchAnswer:
        logger.info(f"Searching sources for: '{query[:80]}'")

        content = await self._complete(
            model=self.settings.search_model,
            system=SEARCH_PROMPT,
            user=query,
            max_tokens=2000,
            json_mode=True,
        )
        data = parse_json_payload(content)

        try:
            return RawSearchAnswer.model_validate(data)
        except ValidationError as e:
            logger.error(f"Malformed search payload: {e}")
            raise CollaboratorError("Collaborator returned a malformed search payload") from e

    async def rephrase(self, text: str) -> str:
        content = await self._complete(
            model=self.settings.rephrase_model,
            system=REPHRASE_PROMPT,
            user=text,
            max_tokens=1000,
            json_mode=False,
        )
        rephrased = content.strip()
        if not rephrased:
            raise CollaboratorError("Collaborator produced no rewritten text")
        return rephrased


# =============================================================================
# BOUNDARY HELPER
# =============================================================================

async def call_collaborator(
    awaitable: Awaitable[T],
    timeout: float,
    operation: str,
) -> Result[T, APIError]:
    """
    Await a collaborator call with a time limit and classify every failure.

    Nothing raised by the collaborator crosses this line: missing credentials
    become CONFIG_ERROR, everything else UPSTREAM_ERROR with a generic,
    retry-suggesting message (details go to the log only).
    Task cancellation is not caught; it propagates to the caller.
    """
    try:
        return Ok(await asyncio.wait_for(awaitable, timeout=timeout))
    except CollaboratorConfigError as e:
        logger.error(f"{operation}: collaborator not configured: {e}")
        return Err(config_error())
    except asyncio.TimeoutError:
        logger.error(f"{operation}: collaborator timed out after {timeout:.0f}s")
        return Err(upstream_error("The request took too long to complete. Please try again."))
    except CollaboratorError as e:
        logger.error(f"{operation}: collaborator failed: {e}")
        return Err(upstream_error())
    except Exception:
        logger.exception(f"{operation}: unexpected collaborator failure")
        return Err(upstream_error())


@lru_cache
def get_collaborator() -> ClaimCollaborator:
    """Process-wide collaborator (FastAPI dependency)."""
    return OpenAICollaborator()
