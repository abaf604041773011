"""Command line entry point for the property matcher."""

from dotenv import load_dotenv
load_dotenv()

import argparse
import json
import signal
import sys
import threading
import time
from pathlib import Path
from typing import Any, Dict, Optional, Tuple

from property_matcher.adapters import HTTPSearchAdapter
from property_matcher.config.environment import EnvironmentConfig
from property_matcher.config.exceptions import ConfigurationError
from property_matcher.config.loader import load_config, validate_config_file
from property_matcher.config.models import AppConfig
from property_matcher.domain.models import Offer, Requirement
from property_matcher.logging import get_logger
from property_matcher.logging.config import configure_logging
from property_matcher.logging.context import log_context
from property_matcher.matching.engine import MatchingEngine
from property_matcher.persistence.backends import create_backend
from property_matcher.persistence.store import ClientStore
from property_matcher.scheduler import SchedulerService
from property_matcher.search import SearchFanout

logger = get_logger(__name__, component="cli")

LOG_LEVELS = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]


def load_runtime_config(
    config_path: Optional[Path], log_level_override: Optional[str]
) -> Tuple[AppConfig, EnvironmentConfig]:
    """
    Load configuration and settle the effective log level.

    Priority: CLI flag > LOG_LEVEL environment variable > config file.
    The environment variable is already folded in by load_config.

    Raises:
        ConfigurationError: If configuration is invalid
    """
    app_config, env_config = load_config(config_path)
    if log_level_override:
        app_config.logging.level = log_level_override
    env_config.log_level = app_config.logging.level
    return app_config, env_config


def build_store(app_config: AppConfig) -> ClientStore:
    store = ClientStore(create_backend(app_config.storage))
    store.load()
    return store


def build_engine(app_config: AppConfig, store: ClientStore) -> MatchingEngine:
    return MatchingEngine(
        store,
        threshold=app_config.matching.similarity_threshold,
        rate_limit=app_config.matching.rate_limit_delta,
    )


def read_json_file(path: Path) -> Dict[str, Any]:
    """Read a JSON object from a file.

    Raises:
        ValueError: If the file is missing or does not hold a JSON object
    """
    try:
        with open(path, "r", encoding="utf-8") as f:
            data = json.load(f)
    except FileNotFoundError as e:
        raise ValueError(f"File not found: {path}") from e
    except json.JSONDecodeError as e:
        raise ValueError(f"Invalid JSON in {path}: {e}") from e

    if not isinstance(data, dict):
        raise ValueError(f"Expected a JSON object in {path}, got {type(data).__name__}")
    return data


def print_json(data: Any) -> None:
    print(json.dumps(data, ensure_ascii=False, indent=2, default=str))


def cmd_search(args: argparse.Namespace, app_config: AppConfig) -> int:
    requirement = Requirement.model_validate(read_json_file(args.requirement))
    adapter = HTTPSearchAdapter.from_config(app_config.search)
    try:
        fanout = SearchFanout.from_config(adapter, app_config.search)
        with log_context(search_id=f"cli-{int(time.time())}"):
            results = fanout.quick_search(requirement) if args.quick else fanout.search(requirement)
    finally:
        adapter.close()

    print_json(
        [
            {
                "id": r.id,
                "title": r.offer.title,
                "link": r.offer.link,
                "relevanceScore": r.relevance_score,
                "isFallback": r.is_fallback,
                "fallbackReason": r.fallback_reason,
                "meta": r.offer.meta.model_dump(mode="json", exclude_none=True),
            }
            for r in results
        ]
    )
    return 0


def cmd_match(args: argparse.Namespace, app_config: AppConfig) -> int:
    offer = Offer.model_validate(read_json_file(args.offer))
    store = build_store(app_config)
    try:
        candidates = build_engine(app_config, store).evaluate(offer)
    finally:
        store.close()

    print_json([c.to_worklist_item() for c in candidates])
    return 0


def cmd_stats(args: argparse.Namespace, app_config: AppConfig) -> int:
    store = build_store(app_config)
    try:
        engine = build_engine(app_config, store)
        print_json(
            {
                "matching": engine.get_matching_stats().to_dict(),
                "interactions": engine.get_interaction_stats().to_dict(),
            }
        )
    finally:
        store.close()
    return 0


def cmd_deactivate(args: argparse.Namespace, app_config: AppConfig) -> int:
    store = build_store(app_config)
    try:
        client = build_engine(app_config, store).mark_inactive(args.phone, reason=args.reason)
    finally:
        store.close()
    print(f"Requests for {client.phone_number} marked inactive ({args.reason})")
    return 0


def cmd_reactivate(args: argparse.Namespace, app_config: AppConfig) -> int:
    store = build_store(app_config)
    try:
        client = build_engine(app_config, store).reactivate(args.phone)
    finally:
        store.close()
    print(f"Requests for {client.phone_number} reactivated")
    return 0


def cmd_cleanup(args: argparse.Namespace, app_config: AppConfig) -> int:
    store = build_store(app_config)
    max_idle = app_config.maintenance.inactive_after_delta

    if not args.daemon:
        try:
            removed = store.clean_inactive(max_idle)
        finally:
            store.close()
        print(f"Removed {removed} inactive clients")
        return 0

    shutdown_event = threading.Event()
    scheduler_service = SchedulerService(
        cleanup_callable=lambda: store.clean_inactive(max_idle),
        interval_seconds=app_config.maintenance.cleanup_interval_seconds,
        shutdown_event=shutdown_event,
    )

    def signal_handler(signum, frame):
        logger.info(
            f"Received signal {signum}, shutting down",
            extra={"event": "service.signal_received", "signal": signum},
        )
        scheduler_service.shutdown(wait=False)

    signal.signal(signal.SIGINT, signal_handler)
    signal.signal(signal.SIGTERM, signal_handler)

    scheduler_service.start()
    logger.info(
        "Cleanup scheduler started. Press Ctrl+C to stop",
        extra={"event": "service.daemon_mode.started"},
    )

    try:
        shutdown_event.wait()
    except KeyboardInterrupt:
        logger.info("Keyboard interrupt received, shutting down", extra={"event": "service.keyboard_interrupt"})
        scheduler_service.shutdown(wait=False)
    finally:
        store.close()
    return 0


COMMANDS = {
    "search": cmd_search,
    "match": cmd_match,
    "stats": cmd_stats,
    "deactivate": cmd_deactivate,
    "reactivate": cmd_reactivate,
    "cleanup": cmd_cleanup,
}


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="property-matcher",
        description="Property Matcher - match property offers against standing seeker requests",
    )
    parser.add_argument(
        "--config",
        type=Path,
        default=None,
        help="Path to configuration file (default: config.yaml or config/config.yaml)",
    )
    parser.add_argument(
        "--log-level",
        default=None,
        choices=LOG_LEVELS,
        help="Log level (overrides config and environment)",
    )

    sub = parser.add_subparsers(dest="command", required=True)

    search = sub.add_parser("search", help="Run a search fan-out and print scored results")
    search.add_argument("--requirement", type=Path, required=True, help="JSON file with the requirement")
    search.add_argument("--quick", action="store_true", help="Exact query only, at most 5 results")

    match = sub.add_parser("match", help="Print the match worklist for an offer (nothing is sent)")
    match.add_argument("--offer", type=Path, required=True, help="JSON file with the offer event")

    sub.add_parser("stats", help="Print matching and interaction statistics")

    deactivate = sub.add_parser("deactivate", help="Stop matching a client's requests")
    deactivate.add_argument("phone")
    deactivate.add_argument("--reason", default="user_request")

    reactivate = sub.add_parser("reactivate", help="Resume matching a client's requests")
    reactivate.add_argument("phone")

    cleanup = sub.add_parser("cleanup", help="Remove idle unprotected clients")
    cleanup.add_argument("--daemon", action="store_true", help="Keep running on the configured interval")

    validate = sub.add_parser("validate-config", help="Validate a configuration file and exit")
    validate.add_argument("path", type=Path, nargs="?", default=Path("config.yaml"))

    return parser


def main(argv: Optional[list] = None) -> int:
    """
    Main entry point for the property matcher CLI.

    Returns:
        Exit code (0 for success, 1 for failure).
    """
    start_time = time.time()
    args = build_parser().parse_args(argv)

    if args.command == "validate-config":
        return 0 if validate_config_file(args.path) else 1

    try:
        app_config, env_config = load_runtime_config(args.config, args.log_level)
        configure_logging(
            level=env_config.log_level,
            format_type=app_config.logging.format,
            environment=env_config.environment,
            stream=sys.stderr,
        )

        logger.info(
            "Property matcher starting",
            extra={
                "event": "service.starting",
                "command": args.command,
                "log_level": env_config.log_level,
                "storage_backend": app_config.storage.backend,
                "storage_target": app_config.storage_target(),
            },
        )

        exit_code = COMMANDS[args.command](args, app_config)

        logger.info(
            "Property matcher stopped",
            extra={
                "event": "service.stopping",
                "command": args.command,
                "uptime_seconds": round(time.time() - start_time, 2),
            },
        )
        return exit_code

    except ConfigurationError as e:
        print(f"Configuration Error: {e}", file=sys.stderr)
        return 1
    except KeyboardInterrupt:
        print("\nShutdown requested by user", file=sys.stderr)
        return 0
    except Exception as e:
        print(f"Error: {e}", file=sys.stderr)
        logger.critical(
            f"Command {args.command} failed",
            extra={"event": "service.command.failed", "error_type": type(e).__name__, "error": str(e)},
            exc_info=True,
        )
        return 1


if __name__ == "__main__":
    sys.exit(main())
