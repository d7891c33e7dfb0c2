"""
Radar Sync - application entry point.

Initializes the archive, starts the reference-image scheduler and optionally
the Flask viewer API, then runs the poll loop until shutdown.
"""

from __future__ import annotations

import logging
import os
import sys
import threading

from radarsync.config import load_config, validate_config
from radarsync.poller import PollLoop, PollSignals
from radarsync.scheduler import start_scheduler
from radarsync.state import install_log_handler
from radarsync.sync import initialize_archive
from radarsync.web import app


def setup_logging(config: dict) -> None:
    level_str = config.get("logging", {}).get("level", "INFO").upper()
    level = getattr(logging, level_str, logging.INFO)

    handlers: list[logging.Handler] = [logging.StreamHandler(sys.stdout)]

    log_file = config.get("logging", {}).get("file", "")
    if log_file:
        try:
            log_dir = os.path.dirname(log_file)
            if log_dir:
                os.makedirs(log_dir, exist_ok=True)
            handlers.append(logging.FileHandler(log_file))
        except OSError as exc:
            logging.getLogger(__name__).warning(
                "Could not open log file %s: %s. Logging to stdout only.",
                log_file,
                exc,
            )

    logging.basicConfig(
        level=level,
        format="%(asctime)s %(levelname)-8s %(name)s: %(message)s",
        datefmt="%Y-%m-%dT%H:%M:%S",
        handlers=handlers,
    )
    install_log_handler()


def _start_web(config: dict, signals: PollSignals) -> None:
    app.config["RADARSYNC_CONFIG"] = config
    app.config["RADARSYNC_SIGNALS"] = signals
    host = config["web"]["host"]
    port = int(config["web"]["port"])
    threading.Thread(
        target=app.run,
        kwargs={"host": host, "port": port, "debug": False, "use_reloader": False},
        name="web-viewer",
        daemon=True,
    ).start()
    logging.getLogger(__name__).info("Viewer API available at http://%s:%d", host, port)


def main() -> int:
    config = load_config()
    setup_logging(config)

    logger = logging.getLogger(__name__)
    logger.info("Radar Sync starting up.")

    errors = validate_config(config)
    if errors:
        for err in errors:
            logger.error("Config error: %s", err)
        return 2

    signals = PollSignals()
    scheduler = None
    try:
        initialize_archive(config)
        scheduler = start_scheduler(lambda: config)
        if config["web"].get("enabled", True):
            _start_web(config, signals)
        else:
            logger.info("Viewer API disabled; running poll loop only.")
        PollLoop(config, signals).run()
    except KeyboardInterrupt:
        signals.request_shutdown()
        logger.info("Interrupted.")
    except OSError as exc:
        logger.critical("Local archive error, stopping: %s", exc, exc_info=True)
        return 1
    finally:
        if scheduler is not None:
            scheduler.shutdown(wait=False)
        logger.info("Radar Sync shut down.")
    return 0


if __name__ == "__main__":
    sys.exit(main())
