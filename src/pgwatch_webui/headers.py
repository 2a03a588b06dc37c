"""Response header policy for bundled assets."""

from __future__ import annotations

import mimetypes
from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from pathlib import PurePosixPath
from types import MappingProxyType

CACHE_FOREVER = 'public, max-age=31536000'

# Common web types resolve the same on every platform; anything else falls
# through to the host's mimetypes registry.
_WEB_TYPES: Mapping[str, str] = MappingProxyType(
    {
        '.avif': 'image/avif',
        '.css': 'text/css; charset=utf-8',
        '.gif': 'image/gif',
        '.htm': 'text/html; charset=utf-8',
        '.html': 'text/html; charset=utf-8',
        '.jpeg': 'image/jpeg',
        '.jpg': 'image/jpeg',
        '.js': 'text/javascript; charset=utf-8',
        '.json': 'application/json',
        '.mjs': 'text/javascript; charset=utf-8',
        '.pdf': 'application/pdf',
        '.png': 'image/png',
        '.svg': 'image/svg+xml',
        '.wasm': 'application/wasm',
        '.webp': 'image/webp',
        '.xml': 'text/xml; charset=utf-8',
    }
)


def content_type_for(path: str) -> str | None:
    """Return the media type implied by the extension of ``path``.

    Unknown or missing extensions yield ``None``; content is never sniffed.
    """
    suffix = PurePosixPath(path).suffix.lower()
    if not suffix:
        return None
    known = _WEB_TYPES.get(suffix)
    if known is not None:
        return known
    if not mimetypes.inited:
        mimetypes.init()
    return mimetypes.types_map.get(suffix) or mimetypes.common_types.get(suffix)


@dataclass(frozen=True, slots=True)
class HeaderRule:
    """Headers added to every asset whose path starts with ``prefix``."""

    prefix: str
    headers: Mapping[str, str]

    def matches(self, path: str) -> bool:
        return path.startswith(self.prefix)


DEFAULT_HEADER_RULES: tuple[HeaderRule, ...] = (
    HeaderRule(prefix='static/', headers=MappingProxyType({'Cache-Control': CACHE_FOREVER})),
)


def headers_for(path: str, rules: Iterable[HeaderRule] = DEFAULT_HEADER_RULES) -> dict[str, str]:
    """Collect the headers of every rule matching ``path``; later rules win."""

    collected: dict[str, str] = {}
    for rule in rules:
        if rule.matches(path):
            collected.update(rule.headers)
    return collected
