"""JSON log demo: writes random log traffic into a bounded JSON-array file."""

import argparse
import logging
import random
import signal
import sys
import time
import uuid

from jsonlog.bootstrap import CONSOLE_FORMAT, JSONLogging
from jsonlog.config import load_config, load_yaml_config

logging.basicConfig(
    level=logging.INFO,
    format=CONSOLE_FORMAT,
    stream=sys.stderr,
)
logger = logging.getLogger(__name__)

_running = True


def _signal_handler(sig, _frame):
    global _running
    logger.info("Shutdown signal received (signal %d), stopping...", sig)
    _running = False


LEVELS = [logging.INFO, logging.INFO, logging.INFO, logging.DEBUG, logging.WARNING, logging.ERROR]
SERVICES = ["auth-api", "order-svc", "payment-gw", "user-svc", "catalog-api"]
MESSAGES = {
    logging.INFO: [
        "Request processed successfully",
        "Health check passed",
        "Cache hit for user session",
        "Database query completed in 12ms",
    ],
    logging.DEBUG: [
        "Entering request handler",
        "Parsed request body",
    ],
    logging.WARNING: [
        "Slow query detected (>500ms)",
        "Connection pool nearing capacity",
    ],
    logging.ERROR: [
        "Failed to connect to database",
        "Timeout waiting for upstream response",
    ],
}


def build_cli_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="JSON log demo generator")
    parser.add_argument("--config", default=None, help="Path to YAML config file")
    parser.add_argument("--count", type=int, default=None,
                        help="Stop after this many entries (default: run until interrupted)")
    return parser


def main():
    signal.signal(signal.SIGINT, _signal_handler)
    signal.signal(signal.SIGTERM, _signal_handler)

    args = build_cli_parser().parse_args()
    config = load_config(load_yaml_config(args.config))
    logger.info(
        "Config: log_file=%s, max_entries=%d, flush=%s, level=%s, truncate_every=%d",
        config.log_file, config.max_entries, config.flush_policy,
        config.log_level, config.truncate_every,
    )

    json_logging = JSONLogging.from_config(config)
    demo_logger = json_logging.logger(config.label, level=config.level_number)
    demo_logger.propagate = config.console

    written = 0
    try:
        while _running and (args.count is None or written < args.count):
            level = random.choice(LEVELS)
            demo_logger.log(
                level,
                random.choice(MESSAGES[level]),
                extra={"metadata": {
                    "service": random.choice(SERVICES),
                    "request_id": uuid.uuid4().hex[:8],
                }},
            )
            written += 1
            if written % config.truncate_every == 0:
                json_logging.truncate()
            time.sleep(config.interval_seconds)
    except KeyboardInterrupt:
        pass

    json_logging.truncate()
    json_logging.close()
    logger.info("Shut down cleanly. Total log calls: %d", written)


if __name__ == "__main__":
    main()
