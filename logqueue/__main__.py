"""Command-line entry point: ``python -m logqueue``."""

import argparse
import logging
import sys

from .broker.config import BrokerConfig
from .broker.server import run_server
from .storage.errors import FormatError


logger = logging.getLogger("logqueue")


def build_config(argv=None) -> BrokerConfig:
    config = BrokerConfig.from_env()

    parser = argparse.ArgumentParser(description="Durable HTTP message queue broker")
    parser.add_argument("--host", default=config.host, help=f"Listen address (default: {config.host})")
    parser.add_argument("--port", type=int, default=config.port, help=f"Listen port (default: {config.port})")
    parser.add_argument(
        "--data-dir",
        default=config.data_dir,
        help=f"Directory holding the queue log files (default: {config.data_dir})",
    )
    parser.add_argument("--workers", type=int, default=config.workers, help="Storage thread pool size")
    parser.add_argument(
        "--no-fsync",
        dest="fsync",
        action="store_false",
        default=config.fsync,
        help="Do not fsync after every append",
    )
    parser.add_argument("--log-level", default=config.log_level, help="Logging level (default: INFO)")
    args = parser.parse_args(argv)

    config.host = args.host
    config.port = args.port
    config.data_dir = args.data_dir
    config.workers = args.workers
    config.fsync = args.fsync
    config.log_level = args.log_level.upper()
    return config


def main(argv=None) -> int:
    config = build_config(argv)
    try:
        run_server(config)
    except FormatError as e:
        logger.critical(f"Refusing to start, corrupt queue data: {e}")
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
