"""Tests for request validation, handlers and the HTTP API."""

import asyncio
import sys
from pathlib import Path

import pytest
from fastapi.testclient import TestClient

# Add parent directory to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent))

from logqueue.broker.config import BrokerConfig
from logqueue.broker.handlers import RequestHandler
from logqueue.broker.protocol import (
    GetRequest,
    IncompleteBodyError,
    PutRequest,
    ValidationError,
    parse_get,
    parse_put,
    read_body,
    validate_name,
)
from logqueue.broker.server import LogQueueServer
from logqueue.client import LogQueueClient, LogQueueError, QueueNotFoundError
from logqueue.storage.record import FILE_HEADER
from logqueue.storage.store import QueueStore


@pytest.fixture
def config(tmp_path):
    return BrokerConfig(data_dir=str(tmp_path / "data"), fsync=False, workers=2)


@pytest.fixture
def server(config):
    server = LogQueueServer(config)
    yield server
    server.close()


@pytest.fixture
def http(server):
    with TestClient(server.app) as client:
        yield client


def collect(*chunks: bytes, length: int) -> bytes:
    async def stream():
        for chunk in chunks:
            yield chunk

    return asyncio.run(read_body(stream(), length))


def send_raw_put(app, path: str, content_length: int, messages) -> int:
    """Drive the ASGI app with hand-built body messages; return the status."""
    scope = {
        "type": "http",
        "asgi": {"version": "3.0"},
        "http_version": "1.1",
        "method": "POST",
        "scheme": "http",
        "path": path,
        "raw_path": path.encode("ascii"),
        "root_path": "",
        "query_string": b"",
        "headers": [
            (b"host", b"testserver"),
            (b"content-length", str(content_length).encode("ascii")),
        ],
        "client": ("127.0.0.1", 50000),
        "server": ("testserver", 80),
    }
    pending = list(messages)
    sent = []

    async def receive():
        if pending:
            return pending.pop(0)
        return {"type": "http.disconnect"}

    async def send(message):
        sent.append(message)

    asyncio.run(app(scope, receive, send))
    start = next(m for m in sent if m["type"] == "http.response.start")
    return start["status"]


class TestValidation:
    """Tests for queue name and request validation."""

    @pytest.mark.parametrize("name", ["a", "orders", "Orders-2024.v1", "...", "-", "0"])
    def test_valid_names(self, name):
        """Test that names made of [-.A-Za-z0-9] are accepted."""
        assert validate_name(name) == name

    @pytest.mark.parametrize(
        "name", ["", None, "a/b", "a b", "a\x00b", "../etc", "q_1", "é", "a\n"]
    )
    def test_invalid_names(self, name):
        """Test that other names are rejected."""
        with pytest.raises(ValidationError):
            validate_name(name)

    def test_parse_put(self):
        """Test a well-formed write request."""
        assert parse_put("q", "5") == PutRequest(name="q", length=5)
        assert parse_put("q", "0") == PutRequest(name="q", length=0)
        assert parse_put("q", "1024") == PutRequest(name="q", length=1024)

    @pytest.mark.parametrize("length", [None, "", "abc", "-1", "1.5", "0x10"])
    def test_parse_put_bad_length(self, length):
        """Test that a missing or unparsable length is rejected."""
        with pytest.raises(ValidationError):
            parse_put("q", length)

    def test_parse_put_too_big(self):
        """Test the message size cap."""
        with pytest.raises(ValidationError, match="too big"):
            parse_put("q", "1025")
        assert parse_put("q", "2000", max_size=4096).length == 2000

    def test_parse_get(self):
        """Test that any integer is a valid sequence number."""
        assert parse_get("q", "3") == GetRequest(name="q", seq=3)
        assert parse_get("q", "0") == GetRequest(name="q", seq=0)
        assert parse_get("q", "-7") == GetRequest(name="q", seq=-7)

    @pytest.mark.parametrize("seq", [None, "", "one", "1.0", "1e3"])
    def test_parse_get_bad_number(self, seq):
        """Test that a missing or non-integer number is rejected."""
        with pytest.raises(ValidationError):
            parse_get("q", seq)


class TestReadBody:
    """Tests for the bounded body reader."""

    def test_exact_body(self):
        """Test that chunks are joined up to the declared length."""
        assert collect(b"ab", b"", b"cd", length=4) == b"abcd"

    def test_empty_body(self):
        """Test a zero-length body."""
        assert collect(b"", length=0) == b""

    def test_short_body(self):
        """Test that fewer bytes than declared is an I/O error."""
        with pytest.raises(IncompleteBodyError):
            collect(b"abc", length=10)

    def test_long_body(self):
        """Test that more bytes than declared is rejected."""
        with pytest.raises(ValidationError):
            collect(b"abc", b"def", length=4)


class TestRequestHandler:
    """Tests for the storage-facing handlers."""

    @pytest.fixture
    def store(self, tmp_path):
        store = QueueStore(str(tmp_path / "data"), fsync=False)
        yield store
        store.close()

    def test_put_and_get(self, store):
        """Test that replies carry sequence numbers and payloads."""
        handler = RequestHandler(store)
        reply = handler.handle_put(PutRequest("q", 3), b"abc")
        assert (reply.status, reply.body) == (200, b"1\n")

        reply = handler.handle_get(GetRequest("q", 1))
        assert (reply.status, reply.body) == (200, b"abc")
        assert reply.media_type == "application/octet-stream"

    def test_get_missing_queue(self, store):
        """Test that reading an unknown queue is not found."""
        reply = RequestHandler(store).handle_get(GetRequest("nope", 1))
        assert reply.status == 404
        assert store.lookup("nope") is None

    def test_get_out_of_range(self, store):
        """Test that reading past the end is no content."""
        handler = RequestHandler(store)
        handler.handle_put(PutRequest("q", 1), b"x")
        for seq in (0, -1, 2):
            assert handler.handle_get(GetRequest("q", seq)).status == 204

    def test_put_length_mismatch(self, store):
        """Test that a payload must match its declared length."""
        reply = RequestHandler(store).handle_put(PutRequest("q", 5), b"abc")
        assert reply.status == 400
        assert store.lookup("q") is None

    def test_get_corrupt_record(self, store, tmp_path):
        """Test that a damaged record is a server error, not a crash."""
        handler = RequestHandler(store)
        handler.handle_put(PutRequest("q", 3), b"abc")
        with open(tmp_path / "data" / "q.log", "r+b") as f:
            f.seek(len(FILE_HEADER))
            f.write(b"?")

        reply = handler.handle_get(GetRequest("q", 1))
        assert reply.status == 500
        assert b"bad-magic" in reply.body


class TestHttpApi:
    """Tests for the HTTP routes."""

    def test_scenario(self, http):
        """Test append, read and out-of-range read over HTTP."""
        for expected, payload in enumerate([b"A", b"BB", b"CCC"], start=1):
            res = http.post("/put/orders", content=payload)
            assert res.status_code == 200
            assert res.text == f"{expected}\n"

        res = http.get("/get/orders", params={"n": "2"})
        assert res.status_code == 200
        assert res.content == b"BB"
        assert res.headers["content-type"] == "application/octet-stream"

        assert http.get("/get/orders", params={"n": "4"}).status_code == 204

    def test_put_method(self, http):
        """Test that PUT is accepted as well as POST."""
        assert http.put("/put/q", content=b"hello").text == "1\n"

    def test_binary_payload(self, http):
        """Test that arbitrary bytes survive unchanged."""
        payload = bytes(range(256)) * 4
        assert http.post("/put/bin", content=payload).status_code == 200
        assert http.get("/get/bin", params={"n": "1"}).content == payload

    def test_empty_payload(self, http):
        """Test that a zero-length message is stored."""
        res = http.post("/put/q", content=b"", headers={"Content-Length": "0"})
        assert res.text == "1\n"
        res = http.get("/get/q", params={"n": "1"})
        assert res.status_code == 200
        assert res.content == b""

    def test_out_of_range(self, http):
        """Test that zero and negative numbers are no content."""
        http.post("/put/q", content=b"x")
        for n in ("0", "-1", "2"):
            assert http.get("/get/q", params={"n": n}).status_code == 204

    def test_unknown_queue(self, http):
        """Test that reads never create queues."""
        res = http.get("/get/ghost", params={"n": "1"})
        assert res.status_code == 404
        assert http.get("/queues").json() == {"queues": {}}

    def test_missing_or_bad_number(self, http):
        """Test that the read number must be an integer."""
        http.post("/put/q", content=b"x")
        assert http.get("/get/q").status_code == 400
        assert http.get("/get/q", params={"n": "first"}).status_code == 400

    @pytest.mark.parametrize("path", ["/put/", "/put/a/b", "/put/a%20b", "/put/a%00b", "/put/a_b"])
    def test_invalid_names_rejected(self, http, server, path):
        """Test that invalid names never reach storage."""
        res = http.post(path, content=b"x")
        assert res.status_code == 400
        assert server.store.names() == []

    def test_too_big(self, http, server):
        """Test the 1024-byte cap."""
        assert http.post("/put/q", content=b"x" * 1024).status_code == 200
        res = http.post("/put/q", content=b"x" * 1025)
        assert res.status_code == 400
        assert server.store.lookup("q").message_count() == 1

    def test_missing_content_length(self, http, server):
        """Test that a chunked body without a declared length is rejected."""
        res = http.post("/put/q", content=iter([b"abc"]))
        assert res.status_code == 400
        assert "content-length" in res.text
        assert server.store.names() == []

    def test_case_insensitive_names(self, http):
        """Test that queue names are case-insensitive."""
        http.post("/put/Orders", content=b"one")
        http.post("/put/ORDERS", content=b"two")
        assert http.get("/get/orders", params={"n": "2"}).content == b"two"

    def test_queue_listing(self, http):
        """Test the queue listing."""
        http.post("/put/a", content=b"1")
        http.post("/put/a", content=b"2")
        http.post("/put/B", content=b"1")
        assert http.get("/queues").json() == {"queues": {"a": 2, "b": 1}}

    @pytest.mark.parametrize(
        "messages",
        [
            [{"type": "http.request", "body": b"abc", "more_body": False}],
            [
                {"type": "http.request", "body": b"abc", "more_body": True},
                {"type": "http.disconnect"},
            ],
        ],
        ids=["short-body", "client-disconnect"],
    )
    def test_incomplete_body(self, server, messages):
        """Test that a body shorter than its Content-Length stores nothing."""
        status = send_raw_put(server.app, "/put/orders", 10, messages)
        assert status == 500
        assert server.store.names() == []

    def test_restart(self, config):
        """Test that messages and numbering survive a server restart."""
        server = LogQueueServer(config)
        with TestClient(server.app) as http:
            http.post("/put/orders", content=b"A")
            http.post("/put/orders", content=b"BB")

        server = LogQueueServer(config)
        with TestClient(server.app) as http:
            assert http.get("/get/orders", params={"n": "2"}).content == b"BB"
            assert http.post("/put/orders", content=b"CCC").text == "3\n"


class TestClientSdk:
    """Tests for the HTTP client against the ASGI app."""

    @pytest.fixture
    def client(self, http):
        client = LogQueueClient(base_url="http://testserver")
        client._http = http
        yield client

    def test_put_get(self, client):
        """Test the client round trip."""
        assert client.put("orders", b"hello") == 1
        assert client.put("orders", "world") == 2
        assert client.get("orders", 1) == b"hello"
        assert client.get("orders", 2) == b"world"
        assert client.get("orders", 3) is None

    def test_errors(self, client):
        """Test that broker errors become exceptions."""
        with pytest.raises(QueueNotFoundError):
            client.get("missing", 1)
        with pytest.raises(LogQueueError) as exc:
            client.put("bad name", b"x")
        assert exc.value.status_code == 400

    def test_queues(self, client):
        """Test the queue listing through the client."""
        client.put("q", b"x")
        assert client.queues() == {"q": 1}

    def test_not_connected(self):
        """Test that requests need a connection."""
        with pytest.raises(LogQueueError):
            LogQueueClient().get("q", 1)


class TestConfig:
    """Tests for environment and command-line configuration."""

    def test_defaults(self):
        """Test the default listen address and limits."""
        config = BrokerConfig()
        assert (config.host, config.port) == ("127.0.0.1", 7749)
        assert config.max_message_size == 1024
        assert config.fsync is True

    def test_from_env(self, monkeypatch):
        """Test that LOGQUEUE_* variables override defaults."""
        monkeypatch.setenv("LOGQUEUE_PORT", "9000")
        monkeypatch.setenv("LOGQUEUE_DATA_DIR", "/srv/queues")
        monkeypatch.setenv("LOGQUEUE_FSYNC", "off")
        monkeypatch.setenv("LOGQUEUE_LOG_LEVEL", "debug")
        config = BrokerConfig.from_env()
        assert config.port == 9000
        assert config.data_dir == "/srv/queues"
        assert config.fsync is False
        assert config.log_level == "DEBUG"

    def test_command_line_overrides_env(self, monkeypatch):
        """Test that flags take precedence over the environment."""
        from logqueue.__main__ import build_config

        monkeypatch.setenv("LOGQUEUE_PORT", "9000")
        config = build_config(["--port", "9100", "--data-dir", "q", "--no-fsync"])
        assert config.port == 9100
        assert config.data_dir == "q"
        assert config.fsync is False
