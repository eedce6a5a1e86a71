"""In-memory session store with no file system access.

Used by tests and by callers that want to drive a review without touching
the working directory. Sessions are copied in and out so a caller holding
a loaded session can never change the stored one by accident.
"""

from __future__ import annotations

import copy
from typing import TYPE_CHECKING

from prguide_store.base import BaseSessionStore

if TYPE_CHECKING:
    from prguide_core.models import ReviewSession


class MemoryStore(BaseSessionStore):
    def __init__(self, session: ReviewSession | None = None):
        self._session = copy.deepcopy(session)
        self.saves = 0

    def load(self) -> ReviewSession | None:
        return copy.deepcopy(self._session)

    def save(self, session: ReviewSession) -> None:
        self._session = copy.deepcopy(session)
        self.saves += 1

    def clear(self) -> bool:
        existed = self._session is not None
        self._session = None
        return existed
