"""Tool Server - Expose registered tools to generated programs over loopback HTTP.

The server is a small FastAPI application served in-process by uvicorn on a
socket the ToolServer binds itself, so the port is known before the first
request and ephemeral allocation keeps concurrent executors apart.

Wire protocol (POST /call):
    request:  {"tool_name": str, "input": str}
    success:  {"success": true,  "result": str, "tool": str, "input": str}
    failure:  {"success": false, "error": str,  "tool": str, "input": str}

Status codes: 200 success, 400 malformed request, 404 unknown tool,
500 tool raised. The body alone is always enough to tell success from failure.
"""

import asyncio
import contextlib
import socket
from collections.abc import Iterator
from types import TracebackType

import structlog
import uvicorn
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from ptc_runtime.config.core import ToolServerConfig

from .exceptions import BindError, ShutdownError
from .registry import ToolCallRequest, ToolRegistry, simplify_tool_error

logger = structlog.get_logger(__name__)

CALL_PATH = "/call"


def create_tool_app(registry: ToolRegistry) -> FastAPI:
    """Build the FastAPI application serving a registry.

    Args:
        registry: Tools to expose

    Returns:
        FastAPI app with /call, /tools and /health routes
    """
    app = FastAPI(title="PTC Tool Server", docs_url=None, redoc_url=None, openapi_url=None)

    @app.exception_handler(RequestValidationError)
    async def malformed_request(request: Request, exc: RequestValidationError) -> JSONResponse:
        return JSONResponse(
            status_code=400,
            content={
                "success": False,
                "error": f"Malformed tool request: {simplify_tool_error(exc)}",
                "tool": "",
                "input": "",
            },
        )

    @app.post(CALL_PATH)
    async def call_tool(request: ToolCallRequest) -> JSONResponse:
        response = await registry.invoke(request.tool_name, request.input)
        if response.success:
            status_code = 200
        elif request.tool_name not in registry:
            status_code = 404
        else:
            status_code = 500
        return JSONResponse(status_code=status_code, content=response.to_wire())

    @app.get("/tools")
    async def list_tools() -> dict:
        return {"tools": registry.describe()}

    @app.get("/health")
    async def health() -> dict:
        return {"status": "ok", "tools": len(registry)}

    return app


class _EmbeddedServer(uvicorn.Server):
    """uvicorn server that leaves process signal handling to the host."""

    def install_signal_handlers(self) -> None:
        pass

    @contextlib.contextmanager
    def capture_signals(self) -> Iterator[None]:
        yield


class ToolServer:
    """Loopback HTTP server hosting a ToolRegistry.

    Lifecycle: created stopped; start() binds and serves (idempotent while
    running); stop() shuts down gracefully and releases the port. The server
    can be started again after a stop.
    """

    def __init__(self, registry: ToolRegistry, config: ToolServerConfig | None = None) -> None:
        """Initialize the tool server.

        Args:
            registry: Tools to expose
            config: Server configuration (host, port, timeouts)
        """
        self.registry = registry
        self.config = config or ToolServerConfig()
        self.app = create_tool_app(registry)

        self._server: _EmbeddedServer | None = None
        self._serve_task: asyncio.Task[None] | None = None
        self._socket: socket.socket | None = None
        self._port = 0
        self._lock = asyncio.Lock()

    @property
    def is_running(self) -> bool:
        return self._server is not None

    @property
    def port(self) -> int:
        """Bound port, 0 when not running."""
        return self._port

    @property
    def base_url(self) -> str:
        """Base URL for generated programs, empty when not running."""
        if not self.is_running:
            return ""
        host = self.config.host
        if host in ("0.0.0.0", ""):
            host = "127.0.0.1"
        elif host == "::":
            host = "::1"
        if ":" in host:
            host = f"[{host}]"
        return f"http://{host}:{self._port}"

    def get_port(self) -> int:
        return self.port

    def get_base_url(self) -> str:
        return self.base_url

    def _bind(self) -> socket.socket:
        host, port = self.config.host, self.config.port
        family = socket.AF_INET6 if ":" in host else socket.AF_INET
        sock = socket.socket(family, socket.SOCK_STREAM)
        try:
            sock.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
            sock.bind((host, port))
        except OSError as e:
            sock.close()
            raise BindError(host, port, str(e)) from e
        return sock

    async def _wait_started(self, server: _EmbeddedServer, task: asyncio.Task[None]) -> None:
        while not server.started:
            if task.done():
                error = task.exception()
                reason = str(error) if error else "server exited during startup"
                raise BindError(self.config.host, self._port, reason)
            await asyncio.sleep(0.01)

    async def start(self) -> str:
        """Bind a port and begin serving.

        Returns:
            Base URL of the running server

        Raises:
            BindError: If no port can be acquired or startup does not complete
        """
        async with self._lock:
            if self.is_running:
                logger.debug("Tool server already running", port=self._port)
                return self.base_url

            sock = self._bind()
            self._port = sock.getsockname()[1]

            config = uvicorn.Config(
                self.app,
                lifespan="off",
                access_log=False,
                log_config=None,
                log_level="warning",
            )
            server = _EmbeddedServer(config)
            task = asyncio.create_task(server.serve(sockets=[sock]), name=f"ptc-tool-server-{self._port}")

            try:
                await asyncio.wait_for(self._wait_started(server, task), self.config.startup_timeout)
            except BaseException as e:
                server.should_exit = True
                server.force_exit = True
                task.cancel()
                with contextlib.suppress(asyncio.CancelledError, Exception):
                    await task
                sock.close()
                port = self._port
                self._port = 0
                if isinstance(e, TimeoutError):
                    raise BindError(
                        self.config.host, port, f"startup timed out after {self.config.startup_timeout}s"
                    ) from e
                raise

            self._server = server
            self._serve_task = task
            self._socket = sock

            logger.info(
                "Tool server started",
                port=self._port,
                base_url=self.base_url,
                tools=self.registry.names,
            )
            return self.base_url

    async def stop(self, timeout: float | None = None) -> None:
        """Shut down gracefully and release the port.

        In-flight requests may finish until ``timeout`` elapses; after that the
        server is forced to exit and remaining requests are aborted. Stopping a
        server that is not running is a no-op.

        Args:
            timeout: Grace period in seconds (default: config.shutdown_timeout)

        Raises:
            ShutdownError: If the listener could not be closed
        """
        async with self._lock:
            if self._server is None or self._serve_task is None:
                return

            server, task, sock, port = self._server, self._serve_task, self._socket, self._port
            grace = self.config.shutdown_timeout if timeout is None else timeout
            server.should_exit = True

            try:
                try:
                    await asyncio.wait_for(asyncio.shield(task), grace)
                except TimeoutError:
                    logger.warning("Graceful shutdown timed out, forcing exit", port=port, timeout=grace)
                    server.force_exit = True
                    try:
                        await asyncio.wait_for(asyncio.shield(task), grace)
                    except TimeoutError:
                        task.cancel()
                        with contextlib.suppress(asyncio.CancelledError):
                            await task
            except Exception as e:
                raise ShutdownError(f"Failed to shut down tool server on port {port}: {e}") from e
            finally:
                if sock is not None:
                    sock.close()
                self._server = None
                self._serve_task = None
                self._socket = None
                self._port = 0

            logger.info("Tool server stopped", port=port)

    async def __aenter__(self) -> "ToolServer":
        """Async context manager entry."""
        await self.start()
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        """Async context manager exit."""
        await self.stop()
