"""Request handlers for the broker."""

import logging

from .protocol import (
    GetRequest,
    PutRequest,
    Reply,
    format_error,
    format_message,
    format_no_content,
    format_not_found,
    format_sequence,
)
from ..storage.errors import FormatError
from ..storage.store import QueueStore


logger = logging.getLogger(__name__)


class RequestHandler:
    """Runs validated requests against the queue store.

    Handlers are synchronous and may block on disk I/O; the server calls
    them from a thread pool.
    """

    def __init__(self, store: QueueStore) -> None:
        self._store = store

    def handle_put(self, cmd: PutRequest, payload: bytes) -> Reply:
        """Append ``payload`` to the named queue, creating it if needed."""
        if len(payload) != cmd.length:
            return format_error(
                f"put: body is {len(payload)} bytes, expected {cmd.length}", 400
            )
        try:
            queue = self._store.find_or_create(cmd.name)
            seq = queue.append(payload)
        except (FormatError, OSError) as e:
            logger.exception(f"put: failed writing to queue '{cmd.name}'")
            return format_error(f"put: {e}")
        logger.debug(f"Stored message {seq} ({len(payload)} bytes) in '{queue.name}'")
        return format_sequence(seq)

    def handle_get(self, cmd: GetRequest) -> Reply:
        """Read one message from the named queue."""
        queue = self._store.lookup(cmd.name)
        if queue is None:
            return format_not_found(cmd.name)
        try:
            payload = queue.read(cmd.seq)
        except (FormatError, OSError) as e:
            logger.exception(f"get: failed reading message {cmd.seq} of '{queue.name}'")
            return format_error(f"get: {e}")
        if payload is None:
            return format_no_content()
        logger.debug(f"Read message {cmd.seq} ({len(payload)} bytes) from '{queue.name}'")
        return format_message(payload)
