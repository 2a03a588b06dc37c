"""Listener lifecycle for the web UI server.

:func:`init` mirrors how an embedding process starts the UI: hand it a bind
address and it returns a server that is already accepting connections on a
background thread. Problems that make serving impossible (a broken asset
bundle, an unparsable address, a port that is already taken) are raised as
:class:`StartupError` subclasses before :func:`init` returns so the caller
decides whether to exit.
"""

from __future__ import annotations

import errno
import os
import socket
import threading
import time
from collections.abc import Callable
from dataclasses import dataclass, field

import structlog
import uvicorn
from fastapi import FastAPI

from .api import create_app
from .assets import AssetTree, StartupError, load_bundled_assets
from .health import ComponentVersions

logger = structlog.get_logger(__name__)

DEFAULT_ADDRESS = ':8080'
STARTUP_TIMEOUT = 10.0


class AddressError(StartupError):
    """The bind address is not of the form ``host:port``."""


class ListenerError(StartupError):
    """The listener could not be bound or stopped while starting."""


@dataclass(frozen=True, slots=True)
class ServerSettings:
    """Listener configuration; only the address is chosen by the caller."""

    address: str = DEFAULT_ADDRESS
    read_timeout: float = 10.0
    write_timeout: float = 10.0
    max_header_bytes: int = 1 << 20
    versions: ComponentVersions = field(default_factory=ComponentVersions)


def parse_address(address: str) -> tuple[str, int]:
    """Split ``host:port`` into its parts.

    An empty host (``:8080``) binds every interface and IPv6 hosts are written
    in brackets (``[::1]:8080``).
    """
    host, sep, port_text = address.rpartition(':')
    if not sep:
        msg = f'Bind address {address!r} is missing a port.'
        raise AddressError(msg)
    if host.startswith('[') and host.endswith(']'):
        host = host[1:-1]
    elif ':' in host:
        msg = f'IPv6 host in {address!r} must be enclosed in brackets.'
        raise AddressError(msg)
    try:
        port = int(port_text)
    except ValueError as exc:
        msg = f'Port {port_text!r} in {address!r} is not a number.'
        raise AddressError(msg) from exc
    if not 0 <= port <= 65535:
        msg = f'Port {port} in {address!r} is out of range.'
        raise AddressError(msg)
    return host, port


# Errors meaning the host has no usable IPv6 stack.
_NO_IPV6 = frozenset({errno.EAFNOSUPPORT, errno.EADDRNOTAVAIL, errno.EPROTONOSUPPORT})


def _listen(
    family: socket.AddressFamily,
    host: str,
    port: int,
    *,
    dual_stack: bool,
) -> socket.socket:
    sock = socket.socket(family, socket.SOCK_STREAM)
    try:
        sock.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
        if dual_stack:
            sock.setsockopt(socket.IPPROTO_IPV6, socket.IPV6_V6ONLY, 0)
        sock.bind((host, port))
        sock.listen()
    except OSError:
        sock.close()
        raise
    return sock


def bind_socket(host: str, port: int) -> socket.socket:
    """Create a listening TCP socket, raising :class:`ListenerError` on failure.

    An empty host listens on every IPv4 and IPv6 interface through a single
    dual-stack socket, falling back to IPv4 alone where IPv6 is unavailable.
    """
    try:
        if not host and socket.has_ipv6:
            try:
                return _listen(socket.AF_INET6, '::', port, dual_stack=True)
            except OSError as exc:
                if exc.errno not in _NO_IPV6:
                    raise
        family = socket.AF_INET6 if ':' in host else socket.AF_INET
        return _listen(family, host, port, dual_stack=False)
    except OSError as exc:
        msg = f'Cannot listen on {host or "*"}:{port}: {exc.strerror or exc}'
        raise ListenerError(msg) from exc


def _exit_process(exc: BaseException) -> None:
    logger.critical('listener_failed', error=str(exc))
    os._exit(1)


class WebUIServer:
    """Owns the asset tree, the ASGI application and the listener thread."""

    def __init__(
        self,
        settings: ServerSettings | None = None,
        assets: AssetTree | None = None,
        *,
        on_fatal: Callable[[BaseException], None] = _exit_process,
    ) -> None:
        self.settings = settings or ServerSettings()
        self.assets: AssetTree = assets if assets is not None else load_bundled_assets()
        self.app: FastAPI = create_app(
            self.assets,
            self.settings.versions,
            write_timeout=self.settings.write_timeout,
        )
        self._on_fatal = on_fatal
        self._server: uvicorn.Server | None = None
        self._thread: threading.Thread | None = None
        self._socket: socket.socket | None = None
        self._failure: BaseException | None = None

    @property
    def bound_address(self) -> tuple[str, int]:
        """Host and port the listener is bound to (resolves port ``0``)."""
        if self._socket is None:
            msg = 'Server has not been started.'
            raise RuntimeError(msg)
        host, port = self._socket.getsockname()[:2]
        return host, port

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def _uvicorn_config(self) -> uvicorn.Config:
        return uvicorn.Config(
            self.app,
            http='h11',
            lifespan='off',
            log_config=None,
            access_log=False,
            timeout_keep_alive=int(self.settings.read_timeout),
            h11_max_incomplete_event_size=self.settings.max_header_bytes,
        )

    def _serve(self, server: uvicorn.Server, sock: socket.socket) -> None:
        # uvicorn reports some startup failures through sys.exit.
        try:
            server.run(sockets=[sock])
        except (Exception, SystemExit) as exc:
            self._failure = exc
            if server.started:
                self._on_fatal(exc)

    def start(self, timeout: float = STARTUP_TIMEOUT) -> None:
        """Bind the configured address and serve on a daemon thread.

        Returns once uvicorn accepts connections.
        """
        if self._thread is not None:
            msg = 'Server is already started.'
            raise RuntimeError(msg)
        host, port = parse_address(self.settings.address)
        self._socket = bind_socket(host, port)
        self._server = uvicorn.Server(self._uvicorn_config())
        self._thread = threading.Thread(
            target=self._serve,
            args=(self._server, self._socket),
            name='webui-listener',
            daemon=True,
        )
        self._thread.start()

        deadline = time.monotonic() + timeout
        while not self._server.started:
            if not self._thread.is_alive():
                msg = f'Listener on {self.settings.address} stopped during startup.'
                raise ListenerError(msg) from self._failure
            if time.monotonic() > deadline:
                msg = f'Listener on {self.settings.address} did not start within {timeout}s.'
                raise ListenerError(msg)
            time.sleep(0.01)
        bound_host, bound_port = self.bound_address
        logger.info('listener_started', host=bound_host, port=bound_port)

    def wait(self) -> None:
        """Block until the listener thread ends (normally: process exit)."""
        if self._thread is not None:
            self._thread.join()


def init(
    address: str = DEFAULT_ADDRESS,
    assets: AssetTree | None = None,
    versions: ComponentVersions | None = None,
) -> WebUIServer:
    """Construct the server for ``address`` and start listening."""

    settings = ServerSettings(address=address, versions=versions or ComponentVersions())
    server = WebUIServer(settings, assets)
    server.start()
    return server
