"""Tests for the scan service and debouncer."""

import asyncio

import pytest

from nyxguard.analyzer.models import ReputationSummary
from nyxguard.analyzer.reputation import ReputationLookup
from nyxguard.constants import ReputationStatus, RiskLevel
from nyxguard.pipeline.alerts import DangerAlerter
from nyxguard.pipeline.service import ScanService
from nyxguard.pipeline.session import Debouncer
from nyxguard.storage.database import Database
from nyxguard.storage.results import ResultStore
from nyxguard.storage.settings import Settings, SettingsStore

LOGIN_PAGE = {
    "url": "https://login.xn--80ak6aa92e.com/signin",
    "has_password_form": True,
    "suspicious_login_keywords_found": ["sign in", "verify"],
    "iframe_hidden_count": 3,
}


class _FakeReputation:
    def __init__(self, lookup: ReputationLookup):
        self.result = lookup
        self.calls: list[tuple[str, str]] = []

    async def lookup(self, domain: str, api_key: str) -> ReputationLookup:
        self.calls.append((domain, api_key))
        return self.result


class _Notifications:
    def __init__(self):
        self.sent: list[str] = []

    async def __call__(self, title: str, message: str) -> bool:
        self.sent.append(title)
        return True


def _service(db, reputation=None, notifier=None, delay_ms=10) -> ScanService:
    return ScanService(
        settings_store=SettingsStore(db),
        results=ResultStore(db),
        reputation=reputation,
        alerter=DangerAlerter(notifier or _Notifications()),
        debouncer=Debouncer(delay_ms),
    )


async def _drain(debouncer: Debouncer, tab_id: int) -> None:
    task = debouncer._pending.get(tab_id)
    if task is not None:
        await task


@pytest.mark.asyncio
async def test_submit_features_scores_and_stores(tmp_path):
    async with Database(tmp_path / "scan.db") as db:
        notifier = _Notifications()
        service = _service(db, notifier=notifier)

        result = await service.submit_features(1, LOGIN_PAGE)

        assert result.domain == "login.xn--80ak6aa92e.com"
        assert [r.id for r in result.reasons] == ["punycode-domain", "suspicious-login", "hidden-iframes"]
        assert result.score == 57
        assert result.level == RiskLevel.MEDIUM
        assert await service.get_result(1) is result
        assert notifier.sent == ["NyxGuard: ELEVATED risk"]


@pytest.mark.asyncio
@pytest.mark.parametrize("url", ["chrome://extensions", "about:blank", "file:///tmp/a.html", None])
async def test_non_http_pages_are_ignored(tmp_path, url):
    async with Database(tmp_path / "scan.db") as db:
        service = _service(db)
        assert await service.submit_features(1, {"url": url}) is None
        assert await service.get_result(1) is None


@pytest.mark.asyncio
async def test_tracker_hits_are_debounced(tmp_path):
    async with Database(tmp_path / "scan.db") as db:
        service = _service(db)
        await service.submit_features(4, {"url": "https://news.test/"})

        assert service.record_tracker_hit(4) is True
        assert service.record_tracker_hit(4) is False
        assert service.record_tracker_hit(4) is False
        assert service.debouncer.is_pending(4)
        await _drain(service.debouncer, 4)

        result = await service.get_result(4)
        assert service.tab_state(4).tracker_count == 3
        assert [r.id for r in result.reasons] == ["tracker-density"]
        assert result.score == 5


@pytest.mark.asyncio
async def test_tracker_hit_without_page_is_counted_only(tmp_path):
    async with Database(tmp_path / "scan.db") as db:
        service = _service(db)
        assert service.record_tracker_hit(-1) is False
        service.record_tracker_hit(9)
        await _drain(service.debouncer, 9)
        assert service.tab_state(9).tracker_count == 1
        assert await service.get_result(9) is None


@pytest.mark.asyncio
async def test_reputation_used_only_when_enabled(tmp_path):
    lookup = ReputationLookup(ReputationStatus.CHECKED, ReputationSummary(malicious=4, reputation=-20))
    reputation = _FakeReputation(lookup)
    async with Database(tmp_path / "scan.db") as db:
        service = _service(db, reputation=reputation)
        page = {"url": "https://bad.test/"}

        result = await service.submit_features(1, page)
        assert reputation.calls == []
        assert result.features.reputation_status == ReputationStatus.NO_DATA

        await service.settings_store.save(Settings(enable_reputation_checks=True, reputation_api_key="k"))
        result = await service.submit_features(1, page)
        assert reputation.calls == [("bad.test", "k")]
        assert [r.id for r in result.reasons] == ["reputation-malicious", "reputation-poor"]
        assert result.score == 63
        assert result.level == RiskLevel.HIGH


@pytest.mark.asyncio
async def test_reputation_error_adds_no_reasons(tmp_path):
    reputation = _FakeReputation(ReputationLookup(ReputationStatus.ERROR))
    async with Database(tmp_path / "scan.db") as db:
        service = _service(db, reputation=reputation)
        await service.settings_store.save(Settings(enable_reputation_checks=True, reputation_api_key="k"))
        result = await service.submit_features(1, {"url": "https://ok.test/"})
        assert result.features.reputation_status == ReputationStatus.ERROR
        assert result.reasons == []
        assert result.score == 0


@pytest.mark.asyncio
async def test_navigation_resets_tab(tmp_path):
    async with Database(tmp_path / "scan.db") as db:
        service = _service(db)
        await service.submit_features(2, LOGIN_PAGE)
        service.record_tracker_hit(2)

        await service.on_navigation(2, "https://next.test/")

        assert not service.debouncer.is_pending(2)
        assert service.tab_state(2).tracker_count == 0
        assert service.tab_state(2).last_url == "https://next.test/"
        assert await service.get_result(2) is None
        assert await service.rescan(2) is None


@pytest.mark.asyncio
async def test_tab_closed_forgets_state(tmp_path):
    async with Database(tmp_path / "scan.db") as db:
        service = _service(db)
        await service.submit_features(3, LOGIN_PAGE)
        await service.on_tab_closed(3)
        assert await service.get_result(3) is None
        assert service.tab_state(3).last_payload is None


@pytest.mark.asyncio
async def test_allowlisting_current_domain(tmp_path):
    async with Database(tmp_path / "scan.db") as db:
        service = _service(db)
        await service.submit_features(1, LOGIN_PAGE)

        settings = await service.add_to_list("https://login.xn--80ak6aa92e.com/", "allow")
        assert settings.allowlist == ["login.xn--80ak6aa92e.com"]

        result = await service.rescan(1)
        assert result.score == 0
        assert [r.id for r in result.reasons] == ["allowlist"]


@pytest.mark.asyncio
async def test_results_are_serialized_per_tab(tmp_path):
    async with Database(tmp_path / "scan.db") as db:
        service = _service(db)
        first, second = await asyncio.gather(
            service.submit_features(1, {"url": "https://first.test/"}),
            service.submit_features(1, LOGIN_PAGE),
        )
        stored = await service.get_result(1)
        assert stored is second
        assert first.domain == "first.test"


@pytest.mark.asyncio
async def test_reset_settings(tmp_path):
    async with Database(tmp_path / "scan.db") as db:
        service = _service(db)
        await service.add_to_list("bad.test", "deny")
        assert await service.reset_settings() == Settings()


@pytest.mark.asyncio
async def test_debouncer_runs_once_and_survives_errors():
    debouncer = Debouncer(delay_ms=1)
    runs: list[int] = []

    async def failing():
        runs.append(1)
        raise RuntimeError("boom")

    assert debouncer.schedule(1, failing)
    assert not debouncer.schedule(1, failing)
    await _drain(debouncer, 1)
    assert runs == [1]
    assert not debouncer.is_pending(1)

    assert debouncer.schedule(1, failing)
    assert debouncer.cancel(1)
    assert not debouncer.cancel(1)
    debouncer.cancel_all()
    await asyncio.sleep(0)


class _BlockedReputation:
    """Reputation lookup that holds until released."""

    def __init__(self, lookup: ReputationLookup):
        self.result = lookup
        self.started = asyncio.Event()
        self.release = asyncio.Event()

    async def lookup(self, domain: str, api_key: str) -> ReputationLookup:
        self.started.set()
        await self.release.wait()
        return self.result


async def _start_blocked_scan(service, reputation, tab_id, page):
    await service.settings_store.save(Settings(enable_reputation_checks=True, reputation_api_key="k"))
    task = asyncio.ensure_future(service.submit_features(tab_id, page))
    await reputation.started.wait()
    return task


@pytest.mark.asyncio
async def test_evaluation_outliving_navigation_is_dropped(tmp_path):
    reputation = _BlockedReputation(
        ReputationLookup(ReputationStatus.CHECKED, ReputationSummary(malicious=5))
    )
    notifier = _Notifications()
    async with Database(tmp_path / "scan.db") as db:
        service = _service(db, reputation=reputation, notifier=notifier)
        task = await _start_blocked_scan(service, reputation, 7, {"url": "https://old.test/"})

        await service.on_navigation(7, "https://new.test/")
        reputation.release.set()

        assert await task is None
        assert await service.get_result(7) is None
        assert notifier.sent == []
        assert service.tab_state(7).last_url == "https://new.test/"


@pytest.mark.asyncio
async def test_evaluation_outliving_tab_close_is_dropped(tmp_path):
    reputation = _BlockedReputation(
        ReputationLookup(ReputationStatus.CHECKED, ReputationSummary(malicious=5))
    )
    notifier = _Notifications()
    async with Database(tmp_path / "scan.db") as db:
        service = _service(db, reputation=reputation, notifier=notifier)
        task = await _start_blocked_scan(service, reputation, 8, {"url": "https://old.test/"})

        await service.on_tab_closed(8)
        # A new page in a reused tab id waits for the same lock.
        fresh = asyncio.ensure_future(service.submit_features(8, {"url": "https://fresh.test/"}))
        reputation.release.set()

        assert await task is None
        result = await fresh
        assert result.domain == "fresh.test"
        assert (await service.get_result(8)).domain == "fresh.test"
        assert notifier.sent == ["NyxGuard: ELEVATED risk"]
