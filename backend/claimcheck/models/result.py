"""
Result type — explicit success/failure values.

Every operation that crosses a boundary (validation, collaborator calls,
HTTP requests) returns a Result instead of raising. Callers branch on
`is_ok` and read either `.value` or `.error`, never both.

USAGE:
    result = validate_search_query(raw)
    if result.is_err:
        return result            # propagate the failure unchanged
    query = result.value
"""

from dataclasses import dataclass
from typing import Generic, TypeVar, Union

T = TypeVar("T")
E = TypeVar("E")


@dataclass(frozen=True)
class Ok(Generic[T]):
    """Successful outcome carrying a value."""

    value: T

    @property
    def is_ok(self) -> bool:
        return True

    @property
    def is_err(self) -> bool:
        return False


@dataclass(frozen=True)
class Err(Generic[E]):
    """Failed outcome carrying a structured error."""

    error: E

    @property
    def is_ok(self) -> bool:
        return False

    @property
    def is_err(self) -> bool:
        return True


Result = Union[Ok[T], Err[E]]
