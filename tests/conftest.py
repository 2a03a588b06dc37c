"""Shared fixtures for the web UI test-suite."""

from __future__ import annotations

import logging
from collections.abc import Iterator

import pytest
import structlog
from fastapi.testclient import TestClient

from pgwatch_webui import ComponentVersions, MappingAssetTree, create_app

SAMPLE_FILES: dict[str, bytes] = {
    'index.html': b'<!doctype html><title>pgwatch3</title><div id="root"></div>',
    'manifest.json': b'{"short_name": "pgwatch3"}',
    'favicon.blob': b'\x00\x01\x02\x03',
    'empty.txt': b'',
    'static/js/main.js': b'console.log("pgwatch3");',
    'static/css/main.css': b'body{margin:0}',
    'static/media/logo.svg': b'<svg xmlns="http://www.w3.org/2000/svg"/>',
}

SAMPLE_VERSIONS = ComponentVersions(application='3.0.0', postgres='14.4', grafana='8.7.0')


@pytest.fixture(autouse=True)
def _restore_logging() -> Iterator[None]:
    # CLI runs reconfigure structlog and the root logger globally.
    root = logging.getLogger()
    handlers, level = list(root.handlers), root.level
    yield
    structlog.reset_defaults()
    root.handlers[:] = handlers
    root.setLevel(level)


@pytest.fixture
def sample_tree() -> MappingAssetTree:
    return MappingAssetTree(SAMPLE_FILES)


@pytest.fixture
def client(sample_tree: MappingAssetTree) -> TestClient:
    return TestClient(create_app(sample_tree, SAMPLE_VERSIONS))
