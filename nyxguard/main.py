"""Command-line entry point for NyxGuard."""

import argparse
import asyncio
import json
import logging
import sys
from pathlib import Path
from typing import Optional, Sequence

from .analyzer.reputation import ReputationService
from .config import Config, load_config, validate_config
from .pipeline.alerts import DangerAlerter, reliability_score
from .pipeline.service import ScanService
from .pipeline.session import Debouncer
from .storage.database import Database, StorageError
from .storage.results import ResultStore
from .storage.settings import SettingsStore, parse_domain_lines, settings_to_dict

logger = logging.getLogger(__name__)


def configure_logging(level: str = "INFO") -> None:
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        handlers=[
            logging.StreamHandler(sys.stderr),
        ],
    )


def build_service(config: Config, database: Database) -> ScanService:
    """Wire the scan service from configuration."""
    return ScanService(
        settings_store=SettingsStore(database),
        results=ResultStore(database, ttl_seconds=config.result_ttl),
        reputation=ReputationService(
            api_base=config.virustotal_api_base,
            timeout=config.reputation_timeout,
            cache_ttl=config.reputation_cache_ttl,
            error_cache_ttl=config.reputation_error_cache_ttl,
            min_interval=config.reputation_min_interval,
        ),
        alerter=DangerAlerter(cooldown_seconds=config.alert_cooldown),
        debouncer=Debouncer(config.recalc_delay_ms),
        weights=config.weights,
    )


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="nyxguard", description="Score web page risk from observed signals.")
    sub = parser.add_subparsers(dest="command", required=True)

    scan = sub.add_parser("scan", help="Score a content payload (JSON file, '-' for stdin)")
    scan.add_argument("payload", help="Path to a JSON payload")
    scan.add_argument("--tab", type=int, default=1, help="Tab/session id to store the result under")
    scan.add_argument("--trackers", type=int, default=0, help="Tracker requests matched on the page")

    result = sub.add_parser("result", help="Show the cached result for a tab (all tabs when omitted)")
    result.add_argument("--tab", type=int, default=None)

    settings = sub.add_parser("settings", help="Show or reset settings")
    settings.add_argument("action", choices=["show", "reset"])

    for name in ("allow", "deny"):
        cmd = sub.add_parser(name, help=f"Add a domain to the {name}list")
        cmd.add_argument("domain")

    lists = sub.add_parser("lists", help="Import domain lists")
    lists_sub = lists.add_subparsers(dest="lists_action", required=True)
    imp = lists_sub.add_parser("import", help="Merge one-domain-per-line file into a list")
    imp.add_argument("file", type=Path)
    imp.add_argument("--list", dest="list_name", choices=["allow", "deny"], required=True)

    return parser


def _read_payload(source: str) -> dict:
    text = sys.stdin.read() if source == "-" else Path(source).read_text()
    payload = json.loads(text)
    if not isinstance(payload, dict):
        raise ValueError("Payload must be a JSON object")
    return payload


def _emit(data: object) -> None:
    print(json.dumps(data, indent=2, sort_keys=True))


async def run_command(args: argparse.Namespace, config: Config) -> int:
    async with Database(config.db_path) as database:
        service = build_service(config, database)
        try:
            if args.command == "scan":
                payload = _read_payload(args.payload)
                service.tab_state(args.tab).tracker_count = max(0, args.trackers)
                outcome = await service.submit_features(args.tab, payload)
                if outcome is None:
                    logger.error("Payload cannot be evaluated (needs an http(s) url and a valid domain)")
                    return 1
                data = outcome.to_dict()
                data["reliability"] = reliability_score(outcome.score)
                _emit(data)
            elif args.command == "result":
                if args.tab is not None:
                    outcome = await service.get_result(args.tab)
                    _emit(outcome.to_dict() if outcome else None)
                else:
                    summary = {}
                    for tab_id in await service.results.tab_ids():
                        outcome = await service.get_result(tab_id)
                        if outcome:
                            summary[str(tab_id)] = {
                                "domain": outcome.domain,
                                "score": outcome.score,
                                "level": str(outcome.level),
                            }
                    _emit(summary)
            elif args.command == "settings":
                if args.action == "reset":
                    current = await service.reset_settings()
                else:
                    current = await service.settings_store.get()
                _emit(settings_to_dict(current))
            elif args.command in ("allow", "deny"):
                current = await service.add_to_list(args.domain, args.command)
                _emit({"allowlist": current.allowlist, "denylist": current.denylist})
            elif args.command == "lists":
                parsed = parse_domain_lines(args.file.read_text())
                current = await service.settings_store.get()
                if args.list_name == "allow":
                    current = await service.settings_store.update_domain_lists(
                        allowlist=current.allowlist + parsed.domains
                    )
                else:
                    current = await service.settings_store.update_domain_lists(
                        denylist=current.denylist + parsed.domains
                    )
                if parsed.invalid:
                    logger.info("Skipped %d invalid line(s)", len(parsed.invalid))
                _emit(
                    {
                        "allowlist": current.allowlist,
                        "denylist": current.denylist,
                        "invalid": parsed.invalid,
                    }
                )
        finally:
            service.shutdown()
    return 0


def main(argv: Optional[Sequence[str]] = None) -> int:
    """Entry point."""
    args = build_parser().parse_args(argv)
    config = load_config()
    configure_logging(config.log_level)

    errors = validate_config(config)
    if errors:
        for err in errors:
            logger.error(err)
        return 1

    try:
        return asyncio.run(run_command(args, config))
    except (ValueError, OSError, StorageError) as e:
        logger.error(f"{args.command} failed: {e}")
        return 1


if __name__ == "__main__":
    sys.exit(main())
