"""
Domain reputation lookups (VirusTotal).

The adapter never raises to its caller: every failure resolves to a typed
status. Answers are cached per domain (long TTL for checked/no_data, short TTL
for errors), concurrent lookups for one domain share a single request, and a
single process-wide gate keeps requests at least `min_interval` seconds apart
across all domains (free tier: 4 req/min).
"""

from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass
from typing import Any, Callable, Dict, Optional
from urllib.parse import quote

import aiohttp

from ..cache import CacheManager
from ..constants import ReputationStatus
from ..utils.rate_limiter import MinIntervalGate
from .models import ReputationSummary

logger = logging.getLogger(__name__)

VIRUSTOTAL_API_BASE = "https://www.virustotal.com/api/v3/domains/"
CACHE_TTL_SECONDS = 6 * 60 * 60
ERROR_CACHE_TTL_SECONDS = 5 * 60
MIN_REQUEST_INTERVAL_SECONDS = 16.0
REQUEST_TIMEOUT_SECONDS = 15.0


@dataclass(frozen=True)
class ReputationLookup:
    """Result of a reputation lookup; summary is set only when checked."""

    status: ReputationStatus
    summary: Optional[ReputationSummary] = None


def _count(value: Any) -> int:
    if value is None:
        return 0
    return int(value)


def parse_summary(payload: Any) -> Optional[ReputationSummary]:
    """Extract the summary from a domain report; None when stats are absent."""
    data = payload.get("data") if isinstance(payload, dict) else None
    attrs = data.get("attributes") if isinstance(data, dict) else None
    if not isinstance(attrs, dict):
        return None
    stats = attrs.get("last_analysis_stats")
    if not isinstance(stats, dict):
        return None

    return ReputationSummary(
        malicious=_count(stats.get("malicious")),
        suspicious=_count(stats.get("suspicious")),
        harmless=_count(stats.get("harmless")),
        undetected=_count(stats.get("undetected")),
        reputation=_count(attrs.get("reputation")),
        last_analysis_date=_count(attrs.get("last_analysis_date")),
    )


class ReputationService:
    """Cached, coalesced and rate-limited reputation adapter."""

    def __init__(
        self,
        api_base: str = VIRUSTOTAL_API_BASE,
        timeout: float = REQUEST_TIMEOUT_SECONDS,
        cache_ttl: float = CACHE_TTL_SECONDS,
        error_cache_ttl: float = ERROR_CACHE_TTL_SECONDS,
        min_interval: float = MIN_REQUEST_INTERVAL_SECONDS,
        clock: Callable[[], float] = time.time,
        gate: Optional[MinIntervalGate] = None,
    ):
        self.api_base = api_base
        self.timeout = timeout
        self.cache_ttl = cache_ttl
        self.error_cache_ttl = error_cache_ttl
        self._cache: CacheManager[ReputationLookup] = CacheManager(
            ttl_seconds=cache_ttl, namespace="reputation", clock=clock
        )
        self._gate = gate or MinIntervalGate(min_interval)
        self._in_flight: Dict[str, asyncio.Task] = {}

    async def lookup(self, domain: str, api_key: str) -> ReputationLookup:
        """Return the reputation of a domain, from cache when fresh."""
        key = (api_key or "").strip()
        if not domain or not key:
            return ReputationLookup(ReputationStatus.NO_DATA)

        cached = self._cache.get(domain)
        if cached is not None:
            return cached

        running = self._in_flight.get(domain)
        if running is None:
            running = asyncio.ensure_future(self._fetch(domain, key))
            self._in_flight[domain] = running
        return await asyncio.shield(running)

    async def _fetch(self, domain: str, api_key: str) -> ReputationLookup:
        try:
            try:
                queued = self._gate.wait_time()
                if queued:
                    logger.debug("Reputation lookup for %s queued %.1fs behind rate limit", domain, queued)
                await self._gate.wait()
                result = await self._request(domain, api_key)
            except asyncio.TimeoutError:
                logger.debug(f"Reputation lookup timeout for {domain}")
                result = ReputationLookup(ReputationStatus.ERROR)
            except Exception as e:
                logger.debug(f"Reputation lookup error for {domain}: {e}")
                result = ReputationLookup(ReputationStatus.ERROR)

            ttl = self.error_cache_ttl if result.status == ReputationStatus.ERROR else self.cache_ttl
            self._cache.set(domain, result, ttl_seconds=ttl)
            logger.debug("Reputation %s: %s (cache: %s)", domain, result.status, self.stats())
            return result
        finally:
            self._in_flight.pop(domain, None)

    async def _request(self, domain: str, api_key: str) -> ReputationLookup:
        url = f"{self.api_base}{quote(domain, safe='')}"
        headers = {"x-apikey": api_key}
        timeout = aiohttp.ClientTimeout(total=self.timeout)

        async with aiohttp.ClientSession() as session:
            async with session.get(url, headers=headers, timeout=timeout) as resp:
                if resp.status == 404:
                    return ReputationLookup(ReputationStatus.NO_DATA)
                if not 200 <= resp.status < 300:
                    if resp.status == 429:
                        logger.warning("Reputation API rate limit exceeded")
                    else:
                        logger.debug(f"Reputation lookup for {domain} failed with HTTP {resp.status}")
                    return ReputationLookup(ReputationStatus.ERROR)

                payload = await resp.json(content_type=None)

        summary = parse_summary(payload)
        if summary is None:
            return ReputationLookup(ReputationStatus.NO_DATA)

        logger.debug(
            f"Reputation: {domain} = {summary.malicious} malicious, {summary.suspicious} suspicious"
        )
        return ReputationLookup(ReputationStatus.CHECKED, summary)

    def clear(self) -> None:
        self._cache.clear()

    def stats(self) -> Dict[str, Any]:
        stats = self._cache.stats()
        stats["in_flight"] = len(self._in_flight)
        return stats
