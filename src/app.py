"""Application entry point for the killwatch watcher."""

from __future__ import annotations

import argparse
import logging
import os
from logging.handlers import RotatingFileHandler
from typing import Optional

from art import tprint

from adapters.esi_resolver import EsiResolver
from adapters.sqlite_storage import SQLiteEntityStore
from adapters.webhook_notifier import WebhookNotifier
from adapters.zkillboard_feed import ZKillboardFeed
from core.composer import MessageComposer
from core.dispatcher import Dispatcher, Pacer
from core.errors import FatalStartupError, PersistenceError
from core.location_filter import LocationFilter
from core.models import TrackedEntity
from core.processor import UpdateCycle
from core.scheduler import Scheduler, Ticker

NAME = "KILLWATCH"
FONT = "tarty-1"

EXIT_FATAL = 2


def _print_banner() -> None:
    tprint(NAME, FONT, space=1)


class _RedactingFormatter(logging.Formatter):
    def __init__(self, secrets: list[str], fmt: str, datefmt: Optional[str] = None) -> None:
        super().__init__(fmt=fmt, datefmt=datefmt)
        self._secrets = [secret for secret in secrets if secret]

    def format(self, record: logging.LogRecord) -> str:
        message = super().format(record)
        for secret in self._secrets:
            message = message.replace(secret, "***")
        return message


def _collect_redaction_values(config: dict, extra: Optional[list[str]] = None) -> list[str]:
    redact_cfg = config.get("redact", {}) if config else {}
    if not redact_cfg.get("enabled", False):
        return []
    values = [value for value in (extra or []) if value]
    for name in redact_cfg.get("patterns", []):
        value = os.getenv(name)
        if value:
            values.append(value)
    return sorted(set(values), key=len, reverse=True)


def _configure_logging(config: dict, project_root: str, secrets: Optional[list[str]] = None) -> None:
    config = config or {}
    if not config.get("enabled", True):
        return

    level_name = str(config.get("level", "INFO")).upper()
    level = getattr(logging, level_name, logging.INFO)

    fmt = "%(asctime)s %(levelname)s %(name)s: %(message)s"
    datefmt = "%Y-%m-%d %H:%M:%S"
    formatter = _RedactingFormatter(_collect_redaction_values(config, secrets), fmt=fmt, datefmt=datefmt)

    handlers: list[logging.Handler] = []

    if config.get("console", True):
        console_handler = logging.StreamHandler()
        console_handler.setLevel(level)
        console_handler.setFormatter(formatter)
        handlers.append(console_handler)

    file_cfg = config.get("file", {})
    if file_cfg.get("enabled", False):
        path = file_cfg.get("path", "logs/killwatch.log")
        if not os.path.isabs(path):
            path = os.path.join(project_root, path)
        directory = os.path.dirname(path)
        if directory:
            os.makedirs(directory, exist_ok=True)

        max_bytes = int(file_cfg.get("max_bytes", 5 * 1024 * 1024))
        backup_count = int(file_cfg.get("backup_count", 5))
        file_handler = RotatingFileHandler(
            path,
            maxBytes=max_bytes,
            backupCount=backup_count,
            encoding="utf-8",
        )
        file_handler.setLevel(level)
        file_handler.setFormatter(formatter)
        handlers.append(file_handler)

    if not handlers:
        return

    logging.basicConfig(level=level, handlers=handlers)


def _load_settings(config_path: Optional[str] = None):
    """Import settings lazily so config errors surface as a clean exit."""

    if config_path:
        # settings reads the path once, at import time.
        os.environ["KILLWATCH_CONFIG"] = os.path.abspath(config_path)

    import settings

    return settings


def _logging_config(config: dict, log_level: Optional[str]) -> dict:
    if not log_level:
        return config
    return {**(config or {}), "level": log_level}


def seed_entities(store: SQLiteEntityStore, definitions: list[dict]) -> list[TrackedEntity]:
    """Sync configured entities into the store and return the tracked set.

    New entities start with zero watermarks. Existing ones keep their stored
    watermarks and only get name, templates and exclusions refreshed.
    """

    logger = logging.getLogger(__name__)
    try:
        for definition in definitions:
            entity = store.find_by_external_id(definition["external_id"])
            if entity is None:
                entity = TrackedEntity(id=None, external_id=definition["external_id"], name=definition["name"])
                logger.info("Tracking new entity #%d (%s)", entity.external_id, entity.name)
            entity.name = definition["name"]
            entity.kill_template = definition["kill_template"]
            entity.loss_template = definition["loss_template"]
            store.save(entity)
            store.replace_excluded_locations(entity.id, definition["excluded_locations"])
        stored = store.load_all()
    except PersistenceError as e:
        raise FatalStartupError(str(e)) from e

    configured = {definition["external_id"] for definition in definitions}
    tracked = []
    for entity in stored:
        if entity.external_id not in configured:
            logger.info("Entity #%d (%s) is not configured, ignoring it", entity.external_id, entity.name)
            continue
        tracked.append(entity)
    return tracked


def _run(once: bool, config_path: Optional[str] = None, log_level: Optional[str] = None) -> None:
    _print_banner()
    settings = _load_settings(config_path)
    if not settings.WEBHOOK.url:
        raise FatalStartupError("webhook.url or WEBHOOK_URL is required")
    _configure_logging(
        _logging_config(settings.LOGGING, log_level),
        settings.PROJECT_ROOT,
        secrets=[settings.WEBHOOK.url],
    )
    logger = logging.getLogger(__name__)

    logger.info("Starting killwatch")

    store = SQLiteEntityStore(settings.DB_PATH)
    store.init_db()
    entities = seed_entities(store, settings.ENTITIES)
    logger.info("%s entities are tracked", len(entities))

    if settings.WEBHOOK.payload_format == "text":
        logger.warning("webhook.payload_format=text is deprecated, prefer attachments")

    resolver = EsiResolver(settings.RESOLVER, user_agent=settings.FEED.user_agent)
    cycle = UpdateCycle(
        feed=ZKillboardFeed(settings.FEED),
        location_filter=LocationFilter(resolver),
        composer=MessageComposer(resolver, link_base=settings.WEBHOOK.link_base),
        dispatcher=Dispatcher(WebhookNotifier(settings.WEBHOOK), Pacer(settings.WEBHOOK.rate_limit_seconds)),
        store=store,
    )
    logger.info(
        "Polling %s feed every %s seconds, delivering %s payloads",
        settings.FEED.format,
        settings.SCHEDULE.interval_seconds,
        settings.WEBHOOK.payload_format,
    )

    scheduler = Scheduler(Ticker(settings.SCHEDULE.interval_seconds), lambda: cycle.run(entities))
    scheduler.run(max_ticks=1 if once else None)


def _list_entities(config_path: Optional[str] = None) -> None:
    settings = _load_settings(config_path)
    store = SQLiteEntityStore(settings.DB_PATH)
    store.init_db()
    try:
        entities = store.load_all()
    except PersistenceError as e:
        raise FatalStartupError(str(e)) from e
    if not entities:
        print("No entities are tracked yet.")
        return
    for index, entity in enumerate(entities, start=1):
        excluded = ", ".join(str(location_id) for location_id in sorted(entity.excluded_locations)) or "-"
        print(
            f"{index}. {entity.name} | #{entity.external_id} | "
            f"kill #{entity.last_kill_id} | loss #{entity.last_loss_id} | excluded: {excluded}"
        )


def main(argv: Optional[list[str]] = None) -> None:
    parser = argparse.ArgumentParser(prog="killwatch")
    subparsers = parser.add_subparsers(dest="command")

    common = argparse.ArgumentParser(add_help=False)
    common.add_argument("--config", help="Path to config.json (overrides KILLWATCH_CONFIG)")

    run_parser = subparsers.add_parser("run", parents=[common], help="Start the watcher")
    run_parser.add_argument("--once", action="store_true", help="Run a single sweep and exit")
    run_parser.add_argument(
        "--log-level",
        type=str.upper,
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Override logging.level from the config file",
    )
    subparsers.add_parser("entities", parents=[common], help="List tracked entities and their watermarks")

    args = parser.parse_args(argv)
    config_path = getattr(args, "config", None)
    try:
        if args.command == "entities":
            _list_entities(config_path)
            return
        _run(
            once=getattr(args, "once", False),
            config_path=config_path,
            log_level=getattr(args, "log_level", None),
        )
    except FatalStartupError as e:
        logging.getLogger(__name__).critical("Fatal startup error: %s", e)
        print(f"killwatch: {e}")
        raise SystemExit(EXIT_FATAL) from e


if __name__ == "__main__":
    main()
