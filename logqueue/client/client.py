"""Python client SDK for LogQueue."""

from typing import Dict, Optional

import httpx


class LogQueueError(Exception):
    """Raised when the broker returns an error."""

    def __init__(self, message: str, status_code: Optional[int] = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class QueueNotFoundError(LogQueueError):
    """Raised when reading from a queue that does not exist."""

    pass


class LogQueueClient:
    """Synchronous HTTP client for a LogQueue broker.

    Usage:
        with LogQueueClient() as client:
            seq = client.put("orders", b"hello world")
            msg = client.get("orders", seq)
    """

    def __init__(
        self,
        base_url: str = "http://127.0.0.1:7749",
        timeout: float = 30.0,
        transport: Optional[httpx.BaseTransport] = None,
    ) -> None:
        self._base_url = base_url
        self._timeout = timeout
        self._transport = transport
        self._http: Optional[httpx.Client] = None

    def connect(self) -> None:
        """Open the underlying HTTP connection pool."""
        if self._http is None:
            self._http = httpx.Client(
                base_url=self._base_url,
                timeout=self._timeout,
                transport=self._transport,
            )

    def close(self) -> None:
        """Close the connection pool."""
        if self._http:
            self._http.close()
            self._http = None

    def put(self, name: str, payload: bytes) -> int:
        """Append a message to a queue.

        Args:
            name: Queue name, made of ``[-.A-Za-z0-9]``.
            payload: Message bytes, at most 1024.

        Returns:
            The 1-based sequence number of the stored message.

        Raises:
            LogQueueError: If the broker rejects or fails the write.
        """
        if isinstance(payload, str):
            payload = payload.encode("utf-8")
        response = self._request(
            "POST",
            f"/put/{name}",
            content=payload,
            headers={"Content-Length": str(len(payload))},
        )
        if response.status_code != 200:
            raise self._error(response)
        try:
            return int(response.text.strip())
        except ValueError:
            raise LogQueueError(f"Unexpected response: {response.text!r}", response.status_code)

    def get(self, name: str, seq: int) -> Optional[bytes]:
        """Read message ``seq`` (1-based) from a queue.

        Returns:
            The message bytes, or None if there is no message at ``seq``.

        Raises:
            QueueNotFoundError: If the queue does not exist.
            LogQueueError: If the broker returns any other error.
        """
        response = self._request("GET", f"/get/{name}", params={"n": str(seq)})
        if response.status_code == 200:
            return response.content
        if response.status_code == 204:
            return None
        raise self._error(response)

    def queues(self) -> Dict[str, int]:
        """Return every queue name with its message count."""
        response = self._request("GET", "/queues")
        if response.status_code != 200:
            raise self._error(response)
        return response.json()["queues"]

    def _request(self, method: str, url: str, **kwargs) -> httpx.Response:
        if not self._http:
            raise LogQueueError("Not connected")
        try:
            return self._http.request(method, url, **kwargs)
        except httpx.HTTPError as e:
            raise LogQueueError(f"Request failed: {e}") from e

    @staticmethod
    def _error(response: httpx.Response) -> LogQueueError:
        message = response.text.strip() or response.reason_phrase
        if response.status_code == 404:
            return QueueNotFoundError(message, response.status_code)
        return LogQueueError(message, response.status_code)

    def __enter__(self) -> "LogQueueClient":
        """Context manager entry."""
        self.connect()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        """Context manager exit."""
        self.close()
