"""Abstract session store interface.

A store is the handle through which the CLI loads the review session once,
hands it to workflow operations by value, and saves the result once. The
CLI depends on BaseSessionStore, not on a concrete backend, so tests can
swap in MemoryStore without touching the file system.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from prguide_core.models import ReviewSession


class BaseSessionStore(ABC):
    """Persistence for the single live review session of a working directory.

    There is no locking: two processes saving at once race and the last
    writer wins.
    """

    @abstractmethod
    def load(self) -> ReviewSession | None:
        """Return the stored session, or None if there is no usable session.

        A missing, unreadable or schema-mismatched document is "no session";
        this method never raises for those cases.
        """

    @abstractmethod
    def save(self, session: ReviewSession) -> None:
        """Persist the full session, replacing whatever was stored."""

    @abstractmethod
    def clear(self) -> bool:
        """Remove the stored session. Returns True if something was removed."""

    def exists(self) -> bool:
        return self.load() is not None
