"""Tagged success/failure values returned by workflow operations.

Input errors and GitHub failures are reported through ``Result`` rather than
raised, so the CLI can always decide how to present them and the session a
command was working on is never left half-updated.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Generic, TypeVar

T = TypeVar("T")


@dataclass(frozen=True)
class Result(Generic[T]):
    ok: bool
    value: T | None = None
    reason: str | None = None

    @classmethod
    def success(cls, value: Any = None) -> Result:
        return cls(ok=True, value=value)

    @classmethod
    def failure(cls, reason: str, value: Any = None) -> Result:
        """Build a failed result.

        ``value`` is optional: a failure may still carry a session that holds
        a complete local change (e.g. a comment kept as staged after posting
        it to GitHub failed) which the caller should persist.
        """
        return cls(ok=False, value=value, reason=reason)

    def __bool__(self) -> bool:
        return self.ok
