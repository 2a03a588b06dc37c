"""Read-only asset trees backing the static handler.

The web UI ships as package data under ``pgwatch_webui/build``. At runtime the
server only ever reads from it, so every tree here is immutable once built and
safe to share between concurrent requests without locking.
"""

from __future__ import annotations

import io
from collections.abc import Iterator, Mapping
from dataclasses import dataclass
from importlib import resources
from importlib.resources.abc import Traversable
from pathlib import Path
from types import MappingProxyType
from typing import BinaryIO, Protocol

BUNDLE_PACKAGE = 'pgwatch_webui'
BUNDLE_DIRECTORY = 'build'
INDEX_DOCUMENT = 'index.html'


class StartupError(Exception):
    """Unrecoverable configuration problem detected while starting the server."""


class AssetBundleError(StartupError):
    """The bundled asset tree is missing or malformed."""


def is_valid_path(path: str) -> bool:
    """Return ``True`` for slash-separated relative paths without dot segments."""

    if not path or path.startswith('/') or path.endswith('/'):
        return False
    return all(part not in ('', '.', '..') for part in path.split('/'))


def _not_found(path: str) -> FileNotFoundError:
    return FileNotFoundError(2, 'asset not found', path)


@dataclass(frozen=True, slots=True)
class AssetFile:
    """An opened asset: its path, a binary stream and the size when known."""

    path: str
    stream: BinaryIO
    size: int | None

    def iter_chunks(self, chunk_size: int = 64 * 1024) -> Iterator[bytes]:
        """Yield the asset body and close the stream once exhausted."""

        with self.stream:
            while chunk := self.stream.read(chunk_size):
                yield chunk


class AssetTree(Protocol):
    """Read-only lookup of relative paths to file contents."""

    def open(self, path: str) -> AssetFile:
        """Open ``path`` for reading.

        Raises :class:`FileNotFoundError` when the path is absent, invalid or a
        directory, and any other :class:`OSError` when the file cannot be read.
        """
        ...

    def walk(self) -> Iterator[tuple[str, int | None]]:
        """Yield ``(path, size)`` for every file in the tree."""
        ...


class MappingAssetTree:
    """Asset tree held entirely in memory."""

    def __init__(self, files: Mapping[str, bytes]) -> None:
        self._files: Mapping[str, bytes] = MappingProxyType(dict(files))

    def open(self, path: str) -> AssetFile:
        if not is_valid_path(path) or path not in self._files:
            raise _not_found(path)
        content = self._files[path]
        return AssetFile(path=path, stream=io.BytesIO(content), size=len(content))

    def walk(self) -> Iterator[tuple[str, int | None]]:
        for path in sorted(self._files):
            yield path, len(self._files[path])


def _resource_size(resource: Traversable) -> int | None:
    # zip-backed traversables cannot stat; the handler then omits Content-Length.
    if isinstance(resource, Path):
        return resource.stat().st_size
    return None


class PackageAssetTree:
    """Asset tree rooted at a directory of package data.

    The file listing is taken once at construction; lookups consult that
    index, so a name that is not part of the bundle is never handed to the
    filesystem.
    """

    def __init__(self, root: Traversable) -> None:
        self._root = root
        self._index: Mapping[str, int | None] = MappingProxyType(dict(_scan(root)))

    @property
    def root(self) -> Traversable:
        return self._root

    def open(self, path: str) -> AssetFile:
        if path not in self._index:
            raise _not_found(path)
        resource = self._root.joinpath(*path.split('/'))
        stream = resource.open('rb')
        return AssetFile(path=path, stream=stream, size=self._index[path])

    def walk(self) -> Iterator[tuple[str, int | None]]:
        for path in sorted(self._index):
            yield path, self._index[path]


def _scan(root: Traversable) -> Iterator[tuple[str, int | None]]:
    pending: list[tuple[str, Traversable]] = [('', root)]
    while pending:
        prefix, directory = pending.pop()
        for child in directory.iterdir():
            relative = f'{prefix}{child.name}'
            if child.is_dir():
                pending.append((f'{relative}/', child))
            elif child.is_file():
                yield relative, _resource_size(child)


def load_bundled_assets(
    package: str = BUNDLE_PACKAGE,
    directory: str = BUNDLE_DIRECTORY,
) -> PackageAssetTree:
    """Return the asset tree rooted at ``directory`` inside ``package``.

    Parameters
    ----------
    package:
        Import name of the package that carries the bundle as package data.
    directory:
        Bundle directory relative to the package root.

    Raises
    ------
    AssetBundleError
        When the package cannot be imported or the bundle directory is absent
        or cannot be listed.
    """
    try:
        package_root = resources.files(package)
    except ModuleNotFoundError as exc:
        msg = f'Asset package {package!r} is not importable.'
        raise AssetBundleError(msg) from exc
    root = package_root.joinpath(directory)
    if not root.is_dir():
        msg = f'Asset bundle {directory!r} is missing from package {package!r}.'
        raise AssetBundleError(msg)
    try:
        return PackageAssetTree(root)
    except OSError as exc:
        msg = f'Asset bundle {directory!r} in package {package!r} cannot be listed: {exc}'
        raise AssetBundleError(msg) from exc
