"""HTTP server for the LogQueue broker."""

import asyncio
import logging
from concurrent.futures import ThreadPoolExecutor
from contextlib import asynccontextmanager
from typing import Optional

import uvicorn
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse, Response
from starlette.requests import ClientDisconnect

from .config import BrokerConfig
from .handlers import RequestHandler
from .protocol import (
    IncompleteBodyError,
    Reply,
    ValidationError,
    format_error,
    parse_get,
    parse_put,
    read_body,
)
from ..storage.store import QueueStore


logger = logging.getLogger(__name__)


def to_response(reply: Reply) -> Response:
    return Response(content=reply.body, status_code=reply.status, media_type=reply.media_type)


class LogQueueServer:
    """HTTP front end for a queue store.

    All queue logs are recovered when the server is constructed, before
    it can accept a request. Storage operations are run in a thread pool
    to avoid blocking the event loop.
    """

    def __init__(self, config: Optional[BrokerConfig] = None) -> None:
        self._config = config or BrokerConfig()
        self._store = QueueStore(self._config.data_dir, fsync=self._config.fsync)
        self._handler = RequestHandler(self._store)
        self._executor = ThreadPoolExecutor(max_workers=self._config.workers)
        self.app = self._build_app()

    @property
    def store(self) -> QueueStore:
        return self._store

    def _build_app(self) -> FastAPI:
        @asynccontextmanager
        async def lifespan(app: FastAPI):
            yield
            self.close()

        app = FastAPI(title="LogQueue", docs_url=None, redoc_url=None, lifespan=lifespan)
        app.add_api_route("/put/{name:path}", self._put, methods=["POST", "PUT"])
        app.add_api_route("/get/{name:path}", self._get, methods=["GET"])
        app.add_api_route("/queues", self._queues, methods=["GET"])
        return app

    async def _run(self, fn, *args):
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(self._executor, fn, *args)

    async def _put(self, name: str, request: Request) -> Response:
        """Store the request body as the next message of queue ``name``."""
        try:
            cmd = parse_put(
                name,
                request.headers.get("content-length"),
                self._config.max_message_size,
            )
            payload = await read_body(request.stream(), cmd.length)
        except ValidationError as e:
            logger.warning(f"put: rejected request for '{name}': {e}")
            return to_response(format_error(f"put: {e}", 400))
        except (IncompleteBodyError, ClientDisconnect) as e:
            logger.error(f"put: incomplete body for '{name}': {e}")
            return to_response(format_error(f"put: {str(e) or 'client disconnected'}"))

        reply = await self._run(self._handler.handle_put, cmd, payload)
        return to_response(reply)

    async def _get(self, name: str, request: Request) -> Response:
        """Return message ``n`` of queue ``name``."""
        try:
            cmd = parse_get(name, request.query_params.get("n"))
        except ValidationError as e:
            logger.warning(f"get: rejected request for '{name}': {e}")
            return to_response(format_error(f"get: {e}", 400))

        reply = await self._run(self._handler.handle_get, cmd)
        return to_response(reply)

    async def _queues(self) -> JSONResponse:
        """List queues with their message counts."""
        return JSONResponse({"queues": self._store.message_counts()})

    def close(self) -> None:
        """Close the queue store and stop the worker pool."""
        self._executor.shutdown(wait=True)
        self._store.close()
        logger.info("LogQueue broker stopped")


def create_app(config: Optional[BrokerConfig] = None) -> FastAPI:
    """Recover the data directory and return the ASGI application."""
    return LogQueueServer(config).app


def run_server(config: Optional[BrokerConfig] = None) -> None:
    """Run the broker server (blocking)."""
    config = config or BrokerConfig.from_env()
    logging.basicConfig(
        level=getattr(logging, config.log_level.upper(), logging.INFO),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )

    server = LogQueueServer(config)
    logger.info(
        f"LogQueue broker listening on {config.host}:{config.port}, writing to {config.data_dir}"
    )
    uvicorn.run(
        server.app,
        host=config.host,
        port=config.port,
        log_level=config.log_level.lower(),
    )


if __name__ == "__main__":
    run_server()
