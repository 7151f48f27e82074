"""Per-tab scan orchestration.

Receives content payloads and tracker hits for browser tabs, enriches them
with reputation data, runs the scoring engine and keeps the latest result per
tab. Evaluations for one tab are serialized, and an evaluation that outlives
its page (navigation or tab close) is dropped without saving or alerting.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Dict, Mapping, Optional

from ..analyzer.engine import evaluate
from ..analyzer.features import build_features
from ..analyzer.models import DetectionResult
from ..analyzer.reputation import ReputationLookup, ReputationService
from ..storage.results import ResultStore
from ..storage.settings import Settings, SettingsStore
from ..utils.domains import is_http_url, normalize_domain
from .alerts import DangerAlerter
from .session import Debouncer, TabState

logger = logging.getLogger(__name__)


class ScanService:
    """Background worker for page risk evaluation."""

    def __init__(
        self,
        settings_store: SettingsStore,
        results: ResultStore,
        reputation: Optional[ReputationService] = None,
        alerter: Optional[DangerAlerter] = None,
        debouncer: Optional[Debouncer] = None,
        weights: Optional[Mapping[str, int]] = None,
    ):
        self.settings_store = settings_store
        self.results = results
        self.reputation = reputation
        self.alerter = alerter or DangerAlerter()
        self.debouncer = debouncer or Debouncer()
        self.weights = weights
        self._tabs: Dict[int, TabState] = {}
        self._locks: Dict[int, asyncio.Lock] = {}

    def tab_state(self, tab_id: int) -> TabState:
        state = self._tabs.get(tab_id)
        if state is None:
            state = TabState()
            self._tabs[tab_id] = state
        return state

    async def _lookup_reputation(self, payload: Mapping[str, Any], settings: Settings) -> Optional[ReputationLookup]:
        if not (self.reputation and settings.enable_reputation_checks and settings.reputation_api_key):
            return None
        domain = normalize_domain(payload.get("domain") or "") or normalize_domain(payload.get("url") or "")
        if not domain:
            return None
        return await self.reputation.lookup(domain, settings.reputation_api_key)

    def _is_current(self, tab_id: int, state: TabState) -> bool:
        return self._tabs.get(tab_id) is state

    async def _evaluate(self, tab_id: int, payload: Mapping[str, Any]) -> Optional[DetectionResult]:
        # Navigation or close replaces the TabState; a stale evaluation must not write.
        state = self.tab_state(tab_id)
        lock = self._locks.setdefault(tab_id, asyncio.Lock())
        async with lock:
            if not self._is_current(tab_id, state):
                return None
            settings = await self.settings_store.get()
            reputation = await self._lookup_reputation(payload, settings)
            features = build_features(
                payload,
                tracker_count=state.tracker_count,
                reputation=reputation,
                include_text_sample=settings.enable_text_sample,
            )
            if features is None:
                logger.debug("Cannot evaluate tab %s: no usable domain in payload", tab_id)
                return None

            result = evaluate(features, settings, weights=self.weights)
            if not self._is_current(tab_id, state):
                logger.debug(
                    "Dropping stale result for tab %s (%s): page changed during evaluation",
                    tab_id,
                    result.domain,
                )
                return None
            await self.results.save(tab_id, result)
            logger.info(
                "Tab %s: %s scored %s (%s), %d reason(s)",
                tab_id,
                result.domain,
                result.score,
                result.level,
                len(result.reasons),
            )
            await self.alerter.maybe_notify(tab_id, result, settings)
            return result

    async def submit_features(self, tab_id: int, payload: Mapping[str, Any]) -> Optional[DetectionResult]:
        """Evaluate a fresh content payload for a tab; None for non-HTTP pages."""
        if not is_http_url(payload.get("url")):
            return None
        self.tab_state(tab_id).last_payload = dict(payload)
        return await self._evaluate(tab_id, payload)

    def record_tracker_hit(self, tab_id: int) -> bool:
        """Count a matched tracker request and schedule a debounced recompute."""
        if tab_id < 0:
            return False
        self.tab_state(tab_id).tracker_count += 1
        return self.debouncer.schedule(tab_id, lambda: self._recompute(tab_id))

    async def _recompute(self, tab_id: int) -> None:
        await self.rescan(tab_id)

    async def rescan(self, tab_id: int) -> Optional[DetectionResult]:
        """Recompute the tab's result from its last content payload."""
        payload = self.tab_state(tab_id).last_payload
        if not payload or not is_http_url(payload.get("url")):
            return None
        return await self._evaluate(tab_id, payload)

    async def get_result(self, tab_id: int) -> Optional[DetectionResult]:
        return await self.results.load(tab_id)

    async def on_navigation(self, tab_id: int, url: Optional[str] = None, clear_result: bool = True) -> None:
        """Forget everything known about the tab's previous page."""
        self.debouncer.cancel(tab_id)
        self._tabs[tab_id] = TabState(last_url=url)
        self.alerter.reset(tab_id)
        if clear_result:
            await self.results.clear(tab_id)

    async def on_tab_closed(self, tab_id: int) -> None:
        self.debouncer.cancel(tab_id)
        self._tabs.pop(tab_id, None)
        lock = self._locks.get(tab_id)
        if lock is not None and not lock.locked():
            del self._locks[tab_id]
        self.alerter.reset(tab_id)
        await self.results.clear(tab_id)

    async def add_to_list(self, domain: str, list_name: str) -> Settings:
        return await self.settings_store.add_to_list(domain, list_name)

    async def reset_settings(self) -> Settings:
        return await self.settings_store.reset()

    def shutdown(self) -> None:
        self.debouncer.cancel_all()
