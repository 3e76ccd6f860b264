"""Registry of queue logs kept under one storage directory."""

import logging
import threading
from pathlib import Path
from typing import Dict, List, Optional

from .errors import FormatError, FormatErrorKind
from .log import LOG_SUFFIX, QueueLog


logger = logging.getLogger(__name__)


def canonical_name(name: str) -> str:
    """Queue names are case-insensitive."""
    return name.lower()


class QueueStore:
    """Maps canonical queue names to their logs.

    Every ``*.log`` file in the storage directory is recovered when the
    store is opened; a malformed file aborts the open with FormatError.

    Thread-safe: queue creation is serialized by a store-level lock,
    lookups are plain dictionary reads and never wait on it.
    """

    def __init__(self, data_dir: str, fsync: bool = True) -> None:
        self._data_dir = Path(data_dir)
        self._data_dir.mkdir(parents=True, exist_ok=True)
        self._fsync = fsync
        self._lock = threading.Lock()
        self._queues: Dict[str, QueueLog] = {}

        try:
            self._recover()
        except BaseException:
            self.close()
            raise

    def _recover(self) -> None:
        """Scan the storage directory and rebuild every queue's index."""
        for path in sorted(self._data_dir.iterdir()):
            if not path.name.endswith(LOG_SUFFIX) or not path.is_file():
                continue
            name = canonical_name(path.name[: -len(LOG_SUFFIX)])
            if name in self._queues:
                raise FormatError(
                    FormatErrorKind.DUPLICATE_QUEUE,
                    f"queue '{name}' is also stored in {self._queues[name].path}",
                    path=str(path),
                )
            self._queues[name] = QueueLog.recover(path, name, fsync=self._fsync)

        total = sum(len(q) for q in self._queues.values())
        logger.info(
            f"Recovered {len(self._queues)} queues ({total} messages) from {self._data_dir}"
        )

    def path_for(self, name: str) -> Path:
        return self._data_dir / f"{canonical_name(name)}{LOG_SUFFIX}"

    def lookup(self, name: str) -> Optional[QueueLog]:
        """Return the log for ``name``, or None. Never creates a queue."""
        return self._queues.get(canonical_name(name))

    def find_or_create(self, name: str) -> QueueLog:
        """Return the log for ``name``, creating its file on first use.

        The name must already be validated: it becomes a file name.
        """
        key = canonical_name(name)
        queue = self._queues.get(key)
        if queue is not None:
            return queue

        with self._lock:
            queue = self._queues.get(key)
            if queue is None:
                path = self.path_for(key)
                try:
                    queue = QueueLog.create(key, path, fsync=self._fsync)
                except FileExistsError:
                    logger.warning(f"Queue file {path} appeared on disk, recovering it")
                    queue = QueueLog.recover(path, key, fsync=self._fsync)
                self._queues[key] = queue
            return queue

    def names(self) -> List[str]:
        """Return the canonical names of all queues."""
        return sorted(self._queues)

    def message_counts(self) -> Dict[str, int]:
        """Return the number of messages in each queue."""
        queues = dict(self._queues)
        return {name: len(queues[name]) for name in sorted(queues)}

    def __contains__(self, name: str) -> bool:
        return canonical_name(name) in self._queues

    def close(self) -> None:
        """Close every queue log."""
        with self._lock:
            for queue in self._queues.values():
                queue.close()
            self._queues = {}
