"""HTTP surface of the pgwatch web UI server."""

from __future__ import annotations

import asyncio
from collections.abc import Iterable, Iterator, Mapping
from http import HTTPStatus

import structlog
from fastapi import FastAPI, Request
from fastapi.responses import HTMLResponse, PlainTextResponse, Response, StreamingResponse
from jinja2 import TemplateError
from starlette.types import ASGIApp, Message, Receive, Scope, Send

from . import __version__
from .assets import INDEX_DOCUMENT, AssetFile, AssetTree
from .headers import DEFAULT_HEADER_RULES, HeaderRule, content_type_for, headers_for
from .health import ComponentVersions, render_versions

logger = structlog.get_logger(__name__)


def status_response(status: HTTPStatus) -> PlainTextResponse:
    """Plain-text response carrying the standard reason phrase as its body."""

    return PlainTextResponse(status.phrase, status_code=status.value)


def asset_path_for(request_path: str) -> str:
    """Map a URL path onto a path in the asset tree.

    ``/`` serves the index document; any other path loses its leading slash
    and is otherwise used verbatim.
    """
    if request_path == '/':
        return INDEX_DOCUMENT
    return request_path.removeprefix('/')


class AssetResponse(StreamingResponse):
    """Streams an opened asset and always closes it once the exchange ends.

    The byte count is logged whether the body was fully sent, cut short, or
    never started because the client went away.
    """

    def __init__(
        self,
        asset: AssetFile,
        headers: Mapping[str, str] | None = None,
        media_type: str | None = None,
    ) -> None:
        self.asset = asset
        self.bytes_sent = 0
        super().__init__(self._chunks(), headers=headers, media_type=media_type)

    def _chunks(self) -> Iterator[bytes]:
        for chunk in self.asset.iter_chunks():
            self.bytes_sent += len(chunk)
            yield chunk

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        try:
            await super().__call__(scope, receive, send)
        finally:
            self.asset.stream.close()
            logger.info('asset_served', path=self.asset.path, bytes=self.bytes_sent)


class WriteTimeoutMiddleware:
    """Bound the time an HTTP response may take once the request has arrived."""

    def __init__(self, app: ASGIApp, timeout: float) -> None:
        self.app = app
        self.timeout = timeout

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope['type'] != 'http':
            await self.app(scope, receive, send)
            return

        response_started = False

        async def tracking_send(message: Message) -> None:
            nonlocal response_started
            if message['type'] == 'http.response.start':
                response_started = True
            await send(message)

        try:
            async with asyncio.timeout(self.timeout):
                await self.app(scope, receive, tracking_send)
        except TimeoutError:
            logger.warning(
                'response_timed_out',
                path=scope.get('path'),
                timeout=self.timeout,
                started=response_started,
            )
            if not response_started:
                await status_response(HTTPStatus.INTERNAL_SERVER_ERROR)(scope, receive, send)


def create_app(
    assets: AssetTree,
    versions: ComponentVersions | None = None,
    *,
    header_rules: Iterable[HeaderRule] = DEFAULT_HEADER_RULES,
    write_timeout: float | None = None,
) -> FastAPI:
    """Instantiate the FastAPI application serving ``assets``.

    Parameters
    ----------
    assets:
        Read-only tree the catch-all route serves from.
    versions:
        Versions listed on ``/health``; defaults to the bundled component set.
    header_rules:
        Prefix rules adding response headers to matching asset paths.
    write_timeout:
        Seconds a response may take before it is abandoned; ``None`` disables
        the limit.
    """
    component_versions = versions or ComponentVersions()
    rules = tuple(header_rules)
    app = FastAPI(
        title='pgwatch web UI',
        version=__version__,
        summary='Static web UI, version page and API placeholder for pgwatch3.',
        docs_url=None,
        redoc_url=None,
        openapi_url=None,
    )
    if write_timeout is not None:
        app.add_middleware(WriteTimeoutMiddleware, timeout=write_timeout)

    # Plain Starlette routes with methods=None match every HTTP method,
    # including extension methods such as PROPFIND.
    def health(_request: Request) -> Response:
        """Report the versions of pgwatch3 and its companion services."""
        try:
            body = render_versions(component_versions)
        except TemplateError as exc:
            logger.error('health_render_failed', error=str(exc))
            return status_response(HTTPStatus.INTERNAL_SERVER_ERROR)
        return HTMLResponse(body)

    def api_placeholder(_request: Request) -> Response:
        """Reserved for the pgwatch3 API; answers every request with an empty 200."""
        return Response(status_code=HTTPStatus.OK)

    def static_asset(request: Request) -> Response:
        """Stream a single file of the bundled web UI."""
        if request.method != 'GET':
            return status_response(HTTPStatus.METHOD_NOT_ALLOWED)

        path = asset_path_for(f'/{request.path_params["asset_path"]}')
        try:
            asset = assets.open(path)
        except FileNotFoundError as exc:
            logger.info('asset_not_found', path=path, error=str(exc))
            return status_response(HTTPStatus.NOT_FOUND)
        except OSError as exc:
            logger.error('asset_unreadable', path=path, error=str(exc))
            return status_response(HTTPStatus.INTERNAL_SERVER_ERROR)

        headers = headers_for(path, rules)
        if asset.size:
            headers['Content-Length'] = str(asset.size)
        return AssetResponse(asset, headers=headers, media_type=content_type_for(path))

    app.add_route('/health', health, methods=None)
    app.add_route('/api', api_placeholder, methods=None)
    app.add_route('/{asset_path:path}', static_asset, methods=None)

    return app
