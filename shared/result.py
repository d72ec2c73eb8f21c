"""Typed outcomes returned across the collaborator boundary."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Callable, Generic, Optional, TypeVar

from domain.errors import InstallerError


T = TypeVar("T")
E = TypeVar("E")

_LOGGER = logging.getLogger(__name__)


@dataclass(slots=True)
class Result(Generic[T, E]):
    """Discriminated union capturing either a success value or an error."""

    value: Optional[T] = None
    error: Optional[E] = None

    @classmethod
    def ok(cls, value: T) -> "Result[T, E]":
        return cls(value=value)

    @classmethod
    def err(cls, error: E) -> "Result[T, E]":
        return cls(error=error)

    def is_ok(self) -> bool:
        return self.error is None

    def is_err(self) -> bool:
        return self.error is not None

    def unwrap(self) -> T:
        if self.error is not None:
            raise RuntimeError(f"Tried to unwrap error result: {self.error}")
        return self.value  # type: ignore[return-value]

    def unwrap_err(self) -> E:
        if self.error is None:
            raise RuntimeError("Tried to unwrap the error of a successful result")
        return self.error


def capture(action: str, call: Callable[[], T]) -> "Result[T, InstallerError]":
    """Run ``call`` and fold any :class:`InstallerError` into an error result.

    Only engine errors are captured.  Anything else is a programming error
    and propagates to the caller.
    """

    try:
        return Result.ok(call())
    except InstallerError as exc:
        _LOGGER.warning("Failed to %s: %s", action, exc)
        return Result.err(exc)


__all__ = ["Result", "capture"]
