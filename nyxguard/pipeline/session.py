"""Per-tab state and debounced recomputation."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Dict, Optional

logger = logging.getLogger(__name__)

RECALC_DELAY_MS = 400


@dataclass
class TabState:
    """Signals accumulated for one tab since its last navigation."""

    tracker_count: int = 0
    last_url: Optional[str] = None
    last_payload: Optional[dict[str, Any]] = None


class Debouncer:
    """
    Single-slot delayed task per session.

    Scheduling while a task is pending for the same session is a no-op, so a
    burst of triggers produces one run. The slot is cleared before the
    callback executes, so a trigger arriving mid-run schedules a fresh one.
    """

    def __init__(self, delay_ms: int = RECALC_DELAY_MS):
        self.delay = delay_ms / 1000.0
        self._pending: Dict[int, asyncio.Task] = {}

    def schedule(self, session_id: int, callback: Callable[[], Awaitable[None]]) -> bool:
        """Schedule callback after the delay; False when one is already pending."""
        if session_id in self._pending:
            return False
        self._pending[session_id] = asyncio.ensure_future(self._run(session_id, callback))
        return True

    async def _run(self, session_id: int, callback: Callable[[], Awaitable[None]]) -> None:
        await asyncio.sleep(self.delay)
        self._pending.pop(session_id, None)
        try:
            await callback()
        except Exception as e:
            logger.error(f"Debounced task for session {session_id} failed: {e}", exc_info=True)

    def is_pending(self, session_id: int) -> bool:
        return session_id in self._pending

    def cancel(self, session_id: int) -> bool:
        task = self._pending.pop(session_id, None)
        if task is None:
            return False
        task.cancel()
        return True

    def cancel_all(self) -> None:
        for session_id in list(self._pending):
            self.cancel(session_id)
