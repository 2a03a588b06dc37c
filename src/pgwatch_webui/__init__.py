"""pgwatch3 web UI server package.

Serves the bundled single-page application, the ``/health`` version page and
the reserved ``/api`` endpoint. Keep public APIs explicit in ``__all__``.
"""

from __future__ import annotations

__version__ = '3.0.0'

from .api import create_app  # noqa: E402, F401
from .assets import (  # noqa: E402, F401
    AssetBundleError,
    MappingAssetTree,
    PackageAssetTree,
    StartupError,
    load_bundled_assets,
)
from .health import ComponentVersions  # noqa: E402, F401
from .server import (  # noqa: E402, F401
    AddressError,
    ListenerError,
    ServerSettings,
    WebUIServer,
    init,
)

__all__: list[str] = [
    '__version__',
    'AddressError',
    'AssetBundleError',
    'ComponentVersions',
    'ListenerError',
    'MappingAssetTree',
    'PackageAssetTree',
    'ServerSettings',
    'StartupError',
    'WebUIServer',
    'create_app',
    'init',
    'load_bundled_assets',
]
