"""
Input validation and sanitization.

Every request handler validates here BEFORE any collaborator call, so bad
input is rejected with an actionable 400 and never costs a network round trip.

Each validator returns Ok(clean_value) or Err(APIError(VALIDATION_ERROR)),
with a message the UI can show as-is.
"""

import re
from typing import Any, Optional

from claimcheck.config import get_settings
from claimcheck.models.errors import APIError, validation_error
from claimcheck.models.result import Err, Ok, Result

# Control characters except tab, newline and carriage return
_CONTROL_CHARS = re.compile(r"[\x00-\x08\x0B\x0C\x0E-\x1F\x7F]")


def sanitize_for_display(value: str) -> str:
    """Drop NUL/control characters and surrounding whitespace."""
    if not isinstance(value, str):
        return ""
    return _CONTROL_CHARS.sub("", value).strip()


def _validate_text(
    value: Any,
    field: str,
    type_message: str,
    required_message: str,
    too_long_message: str,
    max_length: int,
) -> Result[str, APIError]:
    if not isinstance(value, str):
        return Err(validation_error(type_message, field=field))

    cleaned = sanitize_for_display(value)
    if not cleaned:
        return Err(validation_error(required_message, field=field))
    if len(cleaned) > max_length:
        return Err(validation_error(too_long_message, field=field))

    return Ok(cleaned)


def validate_verify_text(value: Any, max_length: Optional[int] = None) -> Result[str, APIError]:
    limit = max_length or get_settings().max_verify_length
    return _validate_text(
        value,
        field="text",
        type_message="Text must be a string",
        required_message="Please paste some text to verify",
        too_long_message=f"Text must be {limit:,} characters or less",
        max_length=limit,
    )


def validate_source_label(value: Any, max_length: Optional[int] = None) -> Result[str, APIError]:
    limit = max_length or get_settings().max_source_label_length
    return _validate_text(
        value,
        field="sourceLabel",
        type_message="Source label must be a string",
        required_message="Please select which AI generated this text",
        too_long_message=f"Source label must be {limit:,} characters or less",
        max_length=limit,
    )


def validate_search_query(value: Any, max_length: Optional[int] = None) -> Result[str, APIError]:
    limit = max_length or get_settings().max_search_length
    return _validate_text(
        value,
        field="query",
        type_message="Search query must be a string",
        required_message="Please enter a search query",
        too_long_message=f"Search query must be {limit:,} characters or less",
        max_length=limit,
    )


def validate_rephrase_text(value: Any, max_length: Optional[int] = None) -> Result[str, APIError]:
    limit = max_length or get_settings().max_rephrase_length
    return _validate_text(
        value,
        field="text",
        type_message="Text must be a string",
        required_message="Text is required",
        too_long_message=f"Text must be {limit:,} characters or less",
        max_length=limit,
    )


def validate_ranking_name(value: Any) -> Result[str, APIError]:
    """Rankings only require a non-blank string name."""
    if not isinstance(value, str) or not value.strip():
        return Err(validation_error("AI source is required", field="aiSource"))
    return Ok(value.strip())
