"""Result types for railway-oriented programming.

Token and cache operations report expected failures as values instead of
raising. Callers pattern-match on the outcome:

    result = await token_service.rotate(refresh_token, device_id)
    match result:
        case Success(value=pair):
            return pair
        case Failure(error=error):
            return rejection_response(error)
"""

from dataclasses import dataclass
from typing import Generic, TypeVar

T = TypeVar("T")  # Success type
E = TypeVar("E")  # Error type


@dataclass(frozen=True, slots=True, kw_only=True)
class Success(Generic[T]):
    """Successful outcome.

    Attributes:
        value: The produced value.
    """

    value: T


@dataclass(frozen=True, slots=True, kw_only=True)
class Failure(Generic[E]):
    """Failed outcome.

    Attributes:
        error: The error describing the failure.
    """

    error: E


type Result[T, E] = Success[T] | Failure[E]
