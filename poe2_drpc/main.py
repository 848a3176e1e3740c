"""poe2-drpc: entry point."""

from __future__ import annotations

import argparse
import json
import logging
import signal
import sys
import threading
from dataclasses import asdict, replace
from pathlib import Path

from dotenv import load_dotenv

from poe2_drpc.areas import AreaTranslations
from poe2_drpc.config import (
    CONFIG_FILE,
    AppConfig,
    ConfigurationError,
    check_log_path,
    resolve_log_path,
)
from poe2_drpc.parser import parse_line
from poe2_drpc.pipeline import PipelineConfig, PresencePipeline, scan_joined_players
from poe2_drpc.presence import build_payload
from poe2_drpc.process import GameProcessMonitor
from poe2_drpc.publisher import PresencePublisher
from poe2_drpc.sink import DiscordPresenceSink
from poe2_drpc.status import Status, apply
from poe2_drpc.watcher import LogLineSource

_LOG_FMT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"

EXIT_OK = 0
EXIT_FAILURE = 1
EXIT_CONFIG = 2

logger = logging.getLogger(__name__)


def configure_logging(log_file: str, debug: bool = False) -> None:
    """Log to a file (always) and to the console."""
    handlers: list[logging.Handler] = [logging.StreamHandler(sys.stderr)]
    if log_file:
        handlers.append(logging.FileHandler(log_file, encoding="utf-8"))
    logging.basicConfig(
        level=logging.DEBUG if debug else logging.INFO,
        format=_LOG_FMT,
        handlers=handlers,
        force=True,
    )
    # pypresence/asyncio chatter is only interesting when debugging
    if not debug:
        logging.getLogger("asyncio").setLevel(logging.WARNING)


def build_arg_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="poe2-drpc",
        description="Show your Path of Exile 2 character and area as Discord rich presence",
    )
    parser.add_argument("-c", "--config", default=CONFIG_FILE, help="Path to config.json")
    parser.add_argument("-l", "--log-path", help="Path to Client.txt")
    parser.add_argument("-g", "--game-dir", help="Game directory (uses logs/Client.txt)")
    parser.add_argument("-t", "--translations-file", help="Path to area translations JSON")
    parser.add_argument("--poll-interval", type=float, help="Seconds between log polls")
    parser.add_argument("--debounce", type=float, dest="debounce_window",
                        help="Seconds to collapse status changes before publishing")
    parser.add_argument("--client-id", dest="discord_client_id", help="Discord application id")
    parser.add_argument("--no-replay", dest="replay_history", action="store_false", default=None,
                        help="Start at the end of the log instead of replaying it")
    parser.add_argument("--ignore-process", dest="require_game_process", action="store_false",
                        default=None, help="Publish even when the game is not running")
    parser.add_argument("--activity-liveness", dest="activity_is_liveness", action="store_true",
                        default=None, help="Treat any log line as a liveness signal")
    parser.add_argument("--debug", action="store_true", default=None, help="Verbose logging")

    diag = parser.add_mutually_exclusive_group()
    diag.add_argument("--dump-status", action="store_true",
                      help="Replay the whole log, print the resulting status and exit")
    diag.add_argument("--tail", type=int, metavar="N",
                      help="Print how the last N log lines are parsed and exit")
    return parser


_CLI_FIELDS = (
    "log_path", "game_dir", "translations_file", "poll_interval", "debounce_window",
    "discord_client_id", "replay_history", "require_game_process", "activity_is_liveness",
    "debug",
)


def load_config(args: argparse.Namespace) -> AppConfig:
    """config.json, then POE2_DRPC_* environment, then command line."""
    config = AppConfig.load(args.config).with_env()
    overrides = {
        name: getattr(args, name)
        for name in _CLI_FIELDS
        if getattr(args, name, None) is not None
    }
    config = replace(config, **overrides).coerced()
    config.validate()
    return config


def load_translations(config: AppConfig) -> AreaTranslations:
    try:
        return AreaTranslations.load(config.translations_file or None)
    except (OSError, ValueError) as e:
        raise ConfigurationError(f"Cannot load translations: {e}") from e


def dump_status(log_path: Path, config: AppConfig, translations: AreaTranslations) -> int:
    """Fold the complete log and print the status and payload as JSON."""
    source = LogLineSource(log_path)
    status = Status(other_players=scan_joined_players(log_path))
    while True:
        for line in source.poll():
            status = apply(parse_line(line), status,
                           activity_is_liveness=config.activity_is_liveness)
        if not source.has_backlog:
            break
    payload = build_payload(status, translations)
    result = {
        "status": {**asdict(status), "other_players": sorted(status.other_players)},
        "payload": asdict(payload) if payload else None,
        "offset": source.position.offset,
    }
    print(json.dumps(result, indent=2, ensure_ascii=False))
    return EXIT_OK


def show_tail(log_path: Path, count: int) -> int:
    for line in LogLineSource(log_path).read_tail(count):
        event = parse_line(line)
        print(f"{type(event).__name__:<16} {line}")
    return EXIT_OK


def run(config: AppConfig, log_path: Path, translations: AreaTranslations) -> int:
    publisher = PresencePublisher(
        DiscordPresenceSink(config.discord_client_id),
        translations,
        debounce_window=config.debounce_window,
        backoff_initial=config.backoff_initial,
        backoff_max=config.backoff_max,
    )
    monitor = GameProcessMonitor() if config.require_game_process else None
    pipeline = PresencePipeline(
        PipelineConfig(
            log_path=log_path,
            poll_interval=config.poll_interval,
            activity_is_liveness=config.activity_is_liveness,
            replay_history=config.replay_history,
            process_check_interval=config.process_check_interval,
        ),
        publisher,
        process_monitor=monitor,
    )

    shutdown = threading.Event()

    def request_shutdown(signum: int, _frame: object) -> None:
        logger.info("Received signal %d, shutting down...", signum)
        shutdown.set()

    signal.signal(signal.SIGINT, request_shutdown)
    signal.signal(signal.SIGTERM, request_shutdown)

    pipeline.start()
    logger.info("poe2-drpc started")
    try:
        # Short waits keep the main thread responsive to signals on Windows
        while not shutdown.wait(0.5):
            pass
    finally:
        pipeline.stop()
    return EXIT_OK


def main(argv: list[str] | None = None) -> int:
    load_dotenv()
    args = build_arg_parser().parse_args(argv)

    try:
        config = load_config(args)
    except ConfigurationError as e:
        configure_logging("", debug=False)
        logger.error("Configuration error: %s", e)
        return EXIT_CONFIG

    configure_logging(config.log_file, config.debug)

    try:
        log_path = resolve_log_path(config)
        check_log_path(log_path)
        translations = load_translations(config)
    except ConfigurationError as e:
        logger.error("Configuration error: %s", e)
        return EXIT_CONFIG

    if args.tail is not None:
        return show_tail(log_path, args.tail)
    if args.dump_status:
        return dump_status(log_path, config, translations)

    try:
        return run(config, log_path, translations)
    except Exception:
        logger.exception("Fatal error")
        return EXIT_FAILURE


if __name__ == "__main__":
    sys.exit(main())
