"""Broker layer for LogQueue."""

from .server import LogQueueServer, create_app, run_server
from .config import BrokerConfig

__all__ = ["LogQueueServer", "BrokerConfig", "create_app", "run_server"]
