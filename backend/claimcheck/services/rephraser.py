"""
Rephrase Service — rewrites text in different words, keeping every fact.

Failures of the rewriting collaborator are reported as HTTP 500 rather than
502: rephrasing is a convenience feature and the UI treats any failure the
same way ("Rephrase failed").
"""

import logging
from dataclasses import replace
from typing import Any, Optional

from claimcheck.config import Settings, get_settings
from claimcheck.models.errors import APIError, ErrorCode
from claimcheck.models.result import Err, Ok, Result
from claimcheck.models.schemas import RephraseResponse
from claimcheck.services.collaborator import ClaimCollaborator, call_collaborator
from claimcheck.services.validation import validate_rephrase_text

logger = logging.getLogger(__name__)


class RephraseService:
    def __init__(self, collaborator: ClaimCollaborator, settings: Optional[Settings] = None):
        self.collaborator = collaborator
        self.settings = settings or get_settings()

    async def rephrase(self, text: Any) -> Result[RephraseResponse, APIError]:
        checked = validate_rephrase_text(text, self.settings.max_rephrase_length)
        if checked.is_err:
            return checked

        rewritten = await call_collaborator(
            self.collaborator.rephrase(checked.value),
            timeout=self.settings.collaborator_timeout_seconds,
            operation="rephrase",
        )
        if rewritten.is_err:
            error = rewritten.error
            if error.code == ErrorCode.UPSTREAM_ERROR:
                error = replace(error, status=500)
            return Err(error)

        logger.info(f"Rephrased {len(checked.value)} chars → {len(rewritten.value)} chars")
        return Ok(RephraseResponse(rephrased=rewritten.value.strip()))
