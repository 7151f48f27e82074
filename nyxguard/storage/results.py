"""Per-tab detection result cache.

A result is kept for `ttl_seconds` after its evaluation timestamp and is
mirrored to the database so it survives a restart. A newer evaluation for
the same tab replaces the old one outright; navigation or closing the tab
clears it.
"""

from __future__ import annotations

import logging
import time
from typing import Callable, Optional

from ..analyzer.models import DetectionResult
from ..cache import CacheManager
from .database import Database

logger = logging.getLogger(__name__)

RESULT_TTL_SECONDS = 10 * 60
RESULT_KEY_PREFIX = "result:"


def result_key(tab_id: int) -> str:
    return f"{RESULT_KEY_PREFIX}{tab_id}"


class ResultStore:
    """Session-scoped results keyed by tab id."""

    def __init__(
        self,
        database: Optional[Database] = None,
        ttl_seconds: float = RESULT_TTL_SECONDS,
        clock: Callable[[], float] = time.time,
    ):
        self.database = database
        self.ttl_seconds = ttl_seconds
        self.clock = clock
        self._cache: CacheManager[DetectionResult] = CacheManager(
            ttl_seconds=ttl_seconds, namespace="results", clock=clock
        )

    async def save(self, tab_id: int, result: DetectionResult) -> None:
        self._cache.set(result_key(tab_id), result, timestamp=result.timestamp)
        if self.database:
            await self.database.set_json(result_key(tab_id), result.to_dict())

    async def load(self, tab_id: int) -> Optional[DetectionResult]:
        """Return the tab's live result, or None when absent or expired."""
        cached = self._cache.get(result_key(tab_id))
        if cached is not None:
            return cached
        if not self.database:
            return None

        stored = await self.database.get_json(result_key(tab_id))
        if not stored:
            return None
        try:
            result = DetectionResult.from_dict(stored)
        except (KeyError, TypeError, ValueError) as exc:
            logger.warning("Discarding unreadable stored result for tab %s: %s", tab_id, exc)
            await self.clear(tab_id)
            return None

        if self.clock() - result.timestamp > self.ttl_seconds:
            await self.clear(tab_id)
            return None

        self._cache.set(result_key(tab_id), result, timestamp=result.timestamp)
        return result

    async def tab_ids(self) -> list[int]:
        """Tab ids with a persisted result; expiry is checked by load()."""
        if not self.database:
            return []
        ids = []
        for key in await self.database.keys(RESULT_KEY_PREFIX):
            suffix = key[len(RESULT_KEY_PREFIX):]
            if suffix.lstrip("-").isdigit():
                ids.append(int(suffix))
        return sorted(ids)

    async def clear(self, tab_id: int) -> None:
        self._cache.delete(result_key(tab_id))
        if self.database:
            await self.database.delete(result_key(tab_id))
