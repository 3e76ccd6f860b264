"""Broker configuration."""

import os
from dataclasses import dataclass


def _env_bool(value: str) -> bool:
    return value.strip().lower() not in ("0", "false", "no", "off", "")


@dataclass
class BrokerConfig:
    """Configuration for the LogQueue broker."""

    host: str = "127.0.0.1"
    port: int = 7749
    data_dir: str = "./data"
    max_message_size: int = 1024
    fsync: bool = True
    workers: int = 4
    log_level: str = "INFO"

    @classmethod
    def from_env(cls) -> "BrokerConfig":
        """Build a config from LOGQUEUE_* environment variables."""
        config = cls()
        env = os.environ
        if "LOGQUEUE_HOST" in env:
            config.host = env["LOGQUEUE_HOST"]
        if "LOGQUEUE_PORT" in env:
            config.port = int(env["LOGQUEUE_PORT"])
        if "LOGQUEUE_DATA_DIR" in env:
            config.data_dir = env["LOGQUEUE_DATA_DIR"]
        if "LOGQUEUE_FSYNC" in env:
            config.fsync = _env_bool(env["LOGQUEUE_FSYNC"])
        if "LOGQUEUE_WORKERS" in env:
            config.workers = int(env["LOGQUEUE_WORKERS"])
        if "LOGQUEUE_LOG_LEVEL" in env:
            config.log_level = env["LOGQUEUE_LOG_LEVEL"].upper()
        return config
