"""Validate the version page and the reserved API endpoint."""

from __future__ import annotations

import pytest
from fastapi.testclient import TestClient
from jinja2 import TemplateSyntaxError
from structlog.testing import capture_logs

from pgwatch_webui import ComponentVersions, MappingAssetTree, __version__, create_app
from pgwatch_webui import api as api_module
from pgwatch_webui.health import render_versions

METHODS = ['GET', 'POST', 'PUT', 'PATCH', 'DELETE', 'OPTIONS', 'PROPFIND', 'MKCOL']


@pytest.mark.parametrize('method', METHODS)
def test_health_lists_versions_for_any_method(client: TestClient, method: str) -> None:
    response = client.request(method, '/health')
    assert response.status_code == 200
    assert response.headers['content-type'].startswith('text/html')
    for version in ('3.0.0', '14.4', '8.7.0'):
        assert version in response.text


def test_health_uses_configured_versions() -> None:
    versions = ComponentVersions(application='9.9.9', postgres='17.2', grafana='11.0.1')
    client = TestClient(create_app(MappingAssetTree({}), versions))
    body = client.get('/health').text
    assert '<li>pgwatch3 9.9.9</li>' in body
    assert '<li>Grafana 11.0.1</li>' in body
    assert '<li>Postgres 17.2</li>' in body


def test_default_versions_track_package_version() -> None:
    assert ComponentVersions().application == __version__
    assert ComponentVersions().postgres == '14.4'
    assert ComponentVersions().grafana == '8.7.0'


def test_version_strings_are_escaped() -> None:
    rendered = render_versions(ComponentVersions(application='<b>3</b>'))
    assert '&lt;b&gt;3&lt;/b&gt;' in rendered
    assert '<b>' not in rendered


def test_template_failure_is_internal_error(
    client: TestClient, monkeypatch: pytest.MonkeyPatch
) -> None:
    def broken(_versions: ComponentVersions) -> str:
        return render_versions(_versions, source='{% if %}')

    monkeypatch.setattr(api_module, 'render_versions', broken)
    with capture_logs() as logs:
        response = client.get('/health')
    assert response.status_code == 500
    assert response.text == 'Internal Server Error'
    assert logs[0]['event'] == 'health_render_failed'


def test_broken_template_source_raises() -> None:
    with pytest.raises(TemplateSyntaxError):
        render_versions(ComponentVersions(), source='{% for %}')


@pytest.mark.parametrize('method', METHODS)
def test_api_placeholder_returns_empty_ok(client: TestClient, method: str) -> None:
    response = client.request(method, '/api', content=b'{"query": "ignored"}')
    assert response.status_code == 200
    assert response.content == b''


def test_api_sub_paths_fall_through_to_assets(client: TestClient) -> None:
    assert client.get('/api/metrics').status_code == 404


def test_schema_routes_are_not_exposed(client: TestClient) -> None:
    for path in ('/docs', '/redoc', '/openapi.json'):
        assert client.get(path).status_code == 404


@pytest.mark.parametrize('path', ['/health', '/api'])
def test_head_is_answered(client: TestClient, path: str) -> None:
    assert client.head(path).status_code == 200
