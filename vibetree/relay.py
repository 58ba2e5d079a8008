"""Loopback notification relay for Claude hooks.

Claude sessions running in worktrees report lifecycle events by POSTing to
this relay (see :mod:`vibetree.hooks` for the injected commands)::

    POST /notification   {"type": "claude-needs-input" | "claude-finished",
                          "worktree": "<cwd>", "message": "..."}

    200 {"success": true}         accepted
    400 {"error": "Invalid payload"}
    404 Not found                 any other method or path
    200 (empty)                   OPTIONS on any path

The relay is unauthenticated and binds to 127.0.0.1 only.  Every response
allows cross-origin POST/OPTIONS from any origin.

Accepted events are dispatched after the response has been produced, so a
slow or broken UI never holds up the hook process waiting on curl.  Dispatch
asks the UI context whether desktop notifications are enabled (failing open
to "enabled"), shows a desktop notification whose click focuses the
originating worktree, and always forwards the event to the UI context when
one is attached.

Lifecycle::

    STOPPED --start()--> STARTING --bound--> LISTENING
                            ^   |
                            +---+  address in use: port += 1, retry after delay
    STARTING/LISTENING --stop()--> STOPPED

Only ``EADDRINUSE`` is retried (indefinitely); any other bind error
propagates out of :meth:`NotificationRelayServer.start`.
"""

import asyncio
import enum
import errno
import logging
import socket
import weakref
from pathlib import PurePath

import uvicorn
from fastapi import BackgroundTasks, FastAPI, Request
from fastapi.exception_handlers import http_exception_handler
from fastapi.responses import JSONResponse, PlainTextResponse, Response
from pydantic import BaseModel, Field, ValidationError
from starlette.exceptions import HTTPException as StarletteHTTPException

from vibetree.config import DEFAULT_PREFERENCE_TIMEOUT, DEFAULT_RETRY_DELAY
from vibetree.desktop import DesktopNotifier
from vibetree.hooks import RELAY_PORT
from vibetree.logging_setup import log_source
from vibetree.ui import UiContext

logger = logging.getLogger(__name__)

DEFAULT_PORT = RELAY_PORT
LOOPBACK_HOST = "127.0.0.1"
NOTIFICATION_PATH = "/notification"

CORS_HEADERS = {
    "Access-Control-Allow-Origin": "*",
    "Access-Control-Allow-Methods": "POST, OPTIONS",
    "Access-Control-Allow-Headers": "Content-Type",
}

# ---------------------------------------------------------------------------
# Event model
# ---------------------------------------------------------------------------

class NotificationKind(str, enum.Enum):
    NEEDS_INPUT = "claude-needs-input"
    FINISHED = "claude-finished"


_TITLES = {
    NotificationKind.NEEDS_INPUT: "Claude needs your input",
    NotificationKind.FINISHED: "Claude finished",
}

_DEFAULT_MESSAGES = {
    NotificationKind.NEEDS_INPUT: "Waiting for your response",
    NotificationKind.FINISHED: "Task completed",
}


class NotificationEvent(BaseModel):
    type: NotificationKind
    worktree: str = Field(min_length=1)
    message: str | None = None


def project_name(worktree: str) -> str:
    """Display name for a worktree: the final path segment."""
    return PurePath(worktree).name or worktree


def notification_text(event: NotificationEvent) -> tuple[str, str]:
    """Return the (title, body) of the desktop notification for *event*."""
    message = event.message or _DEFAULT_MESSAGES[event.type]
    return _TITLES[event.type], f"{project_name(event.worktree)}: {message}"


# ---------------------------------------------------------------------------
# Server
# ---------------------------------------------------------------------------

class RelayState(enum.Enum):
    STOPPED = "stopped"
    STARTING = "starting"
    LISTENING = "listening"


def _bind_socket(host: str, port: int) -> socket.socket:
    """Bind and listen on *host*:*port*.  Raises OSError on failure."""
    sock = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
    try:
        sock.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
        sock.bind((host, port))
        sock.listen(128)
    except OSError:
        sock.close()
        raise
    sock.setblocking(False)
    return sock


class NotificationRelayServer:
    """Owns the relay listener, its port and the weak UI-context reference.

    Construct one per process and hand it to whatever wires up the UI.
    ``app`` can be driven directly by a test client without binding.
    """

    def __init__(
        self,
        port: int = DEFAULT_PORT,
        *,
        host: str = LOOPBACK_HOST,
        retry_delay: float = DEFAULT_RETRY_DELAY,
        preference_timeout: float = DEFAULT_PREFERENCE_TIMEOUT,
        notifier: DesktopNotifier | None = None,
        icon: str | None = None,
    ):
        self.host = host
        self.retry_delay = retry_delay
        self.preference_timeout = preference_timeout
        self.notifier = notifier if notifier is not None else DesktopNotifier(icon=icon)
        self._port = port
        self._state = RelayState.STOPPED
        self._ui_ref: weakref.ref | None = None
        self._server: uvicorn.Server | None = None
        self._serve_task: asyncio.Task | None = None
        self._socket: socket.socket | None = None
        self.app = self._create_app()

    @property
    def port(self) -> int:
        return self._port

    @property
    def state(self) -> RelayState:
        return self._state

    # --- UI context -------------------------------------------------------

    def set_ui_context(self, ctx: UiContext | None) -> None:
        """Attach (or with ``None``, detach) the UI context.  Held weakly."""
        self._ui_ref = weakref.ref(ctx) if ctx is not None else None

    def _ui_context(self) -> UiContext | None:
        return self._ui_ref() if self._ui_ref is not None else None

    # --- HTTP surface -----------------------------------------------------

    def _create_app(self) -> FastAPI:
        app = FastAPI(
            title="VibeTree relay",
            docs_url=None,
            redoc_url=None,
            openapi_url=None,
        )

        @app.options("/{full_path:path}")
        def preflight(full_path: str):
            return Response(status_code=200, headers=CORS_HEADERS)

        @app.post(NOTIFICATION_PATH)
        async def post_notification(request: Request, background_tasks: BackgroundTasks):
            body = await request.body()
            try:
                event = NotificationEvent.model_validate_json(body)
            except ValidationError:
                logger.warning("Rejected malformed notification payload (%d bytes)", len(body))
                return JSONResponse(
                    {"error": "Invalid payload"}, status_code=400, headers=CORS_HEADERS,
                )
            background_tasks.add_task(self.dispatch, event)
            return JSONResponse({"success": True}, headers=CORS_HEADERS)

        # Unknown paths (404) and known paths with another method (405) alike
        @app.exception_handler(StarletteHTTPException)
        async def not_found(request: Request, exc: StarletteHTTPException):
            if exc.status_code not in (404, 405):
                return await http_exception_handler(request, exc)
            return PlainTextResponse("Not found", status_code=404, headers=CORS_HEADERS)

        return app

    # --- Dispatch ---------------------------------------------------------

    async def dispatch(self, event: NotificationEvent) -> None:
        """Fan an accepted event out to the desktop and the UI context.

        Never raises; sink failures are logged.
        """
        name = project_name(event.worktree)
        token = log_source.set(name)
        try:
            if await self._notifications_enabled():
                await self._present(event)
            self._deliver(event, name)
        finally:
            log_source.reset(token)

    async def _notifications_enabled(self) -> bool:
        ctx = self._ui_context()
        if ctx is None:
            return True
        try:
            enabled = await asyncio.wait_for(
                ctx.notifications_enabled(), timeout=self.preference_timeout,
            )
        except Exception:
            logger.debug("Notification preference unavailable — defaulting to enabled", exc_info=True)
            return True
        return bool(enabled)

    async def _present(self, event: NotificationEvent) -> None:
        title, body = notification_text(event)
        try:
            await self.notifier.show(title, body, on_click=lambda: self._focus(event.worktree))
        except Exception:
            logger.exception("Desktop notification failed for %s", event.worktree)

    def _focus(self, worktree: str) -> None:
        ctx = self._ui_context()
        if ctx is None:
            return
        try:
            ctx.focus_worktree(worktree)
        except Exception:
            logger.exception("Could not focus worktree %s", worktree)

    def _deliver(self, event: NotificationEvent, name: str) -> None:
        ctx = self._ui_context()
        if ctx is None:
            logger.debug("No UI attached — dropping in-app event for %s", event.worktree)
            return
        payload = {
            "type": event.type.value,
            "worktree": event.worktree,
            "projectName": name,
            "message": event.message,
        }
        try:
            ctx.send_event(payload)
        except Exception:
            logger.exception("In-app delivery failed for %s", event.worktree)

    # --- Lifecycle --------------------------------------------------------

    async def _bind_with_retry(self) -> socket.socket | None:
        """Bind, stepping the port on conflict.  None if stopped meanwhile."""
        while self._state is RelayState.STARTING:
            try:
                return _bind_socket(self.host, self._port)
            except OSError as exc:
                if exc.errno != errno.EADDRINUSE:
                    raise
                logger.warning(
                    "Relay port %d in use — retrying on %d in %.1fs",
                    self._port, self._port + 1, self.retry_delay,
                )
                self._port += 1
                await asyncio.sleep(self.retry_delay)
        return None

    async def start(self) -> None:
        """Start listening.  No-op unless currently stopped."""
        if self._state is not RelayState.STOPPED:
            return
        self._state = RelayState.STARTING
        try:
            sock = await self._bind_with_retry()
        except BaseException:
            self._state = RelayState.STOPPED
            raise
        if sock is None:
            return

        config = uvicorn.Config(
            self.app,
            log_config=None,
            log_level="warning",
            access_log=False,
            lifespan="off",
            timeout_graceful_shutdown=5,
        )
        server = uvicorn.Server(config)
        task = asyncio.create_task(server.serve(sockets=[sock]))
        self._server = server
        self._socket = sock
        self._serve_task = task

        # stop() may run while uvicorn is still starting up
        while not server.started and self._state is RelayState.STARTING:
            if task.done():
                await self.stop()
                raise RuntimeError("Notification relay exited during startup")
            await asyncio.sleep(0.01)
        if self._state is not RelayState.STARTING:
            return

        self._state = RelayState.LISTENING
        logger.info("Notification relay listening on http://%s:%d", self.host, self._port)

    async def wait_closed(self) -> None:
        """Block until the listener shuts down."""
        if self._serve_task is not None:
            await asyncio.shield(self._serve_task)

    async def stop(self) -> None:
        """Close the listener.  Safe to call repeatedly or before start()."""
        was = self._state
        self._state = RelayState.STOPPED
        server, task, sock = self._server, self._serve_task, self._socket
        self._server = self._serve_task = self._socket = None

        if server is not None:
            server.should_exit = True
        if task is not None:
            try:
                await task
            except Exception:
                logger.exception("Notification relay did not shut down cleanly")
        if sock is not None:
            sock.close()

        aclose = getattr(self.notifier, "aclose", None)
        if aclose is not None:
            await aclose()
        if was is not RelayState.STOPPED:
            logger.info("Notification relay stopped")
