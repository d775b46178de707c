"""Long-running ingest loop: poll the source XML, store JSON snapshots + history.

Run:
  cd meteo_ingest
  python run_ingest_loop.py

Requirements:
- SOURCE_URL must be set in env, .env or appsettings.json

Console commands while running: start, stop, quit (or q).

Exit codes:
  0  quit
  1  missing/invalid configuration
  2  database could not be prepared
  3  any other startup fault
  130 interrupted (Ctrl+C)
"""

from __future__ import annotations

import logging
import sys

from db import StoreError, ensure_ready, recent_readings
from scheduler import Coordinator
from settings import ConfigError, load_config

logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s: %(message)s")
logger = logging.getLogger("run_ingest_loop")

EXIT_OK = 0
EXIT_CONFIG = 1
EXIT_STORE = 2
EXIT_STARTUP = 3
EXIT_INTERRUPTED = 130


def main(stream=None, **driver_kwargs) -> int:
    try:
        cfg = load_config()
    except ConfigError as e:
        logger.error("%s", e)
        logger.error("run meteo-ingest-env-template (env_template.py) to list every supported setting")
        return EXIT_CONFIG

    logging.getLogger().setLevel(getattr(logging, cfg.log_level, logging.INFO))

    try:
        if ensure_ready(cfg.db_path):
            logger.critical("history database %s was recreated", cfg.db_path)
        last = recent_readings(cfg.db_path, limit=1)
        if last:
            logger.info(
                "last recorded reading: %s available=%s",
                last[0]["Timestamp"],
                bool(last[0]["IsAvailable"]),
            )
    except StoreError as e:
        logger.error("%s", e)
        return EXIT_STORE

    try:
        coordinator = Coordinator(cfg, stream=stream, **driver_kwargs)
    except Exception as e:
        logger.exception("startup failed: %s", e)
        return EXIT_STARTUP

    logger.info("ingesting %s -> %s", coordinator.driver.source_url, cfg.snapshot_path)
    try:
        coordinator.run()
    except KeyboardInterrupt:
        coordinator.shutdown()
        logger.info("interrupted")
        return EXIT_INTERRUPTED

    return EXIT_OK


def cli() -> None:
    sys.exit(main())


if __name__ == "__main__":
    cli()
