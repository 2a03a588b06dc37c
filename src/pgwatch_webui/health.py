"""Version page reported on ``/health``."""

from __future__ import annotations

from dataclasses import dataclass

from jinja2 import Environment, select_autoescape

from . import __version__

VERSIONS_TEMPLATE = """\
<html>
<body>
<ul>
    <li>pgwatch3 {{ versions.application }}</li>
    <li>Grafana {{ versions.grafana }}</li>
    <li>Postgres {{ versions.postgres }}</li>
</ul>
</body>
</html>"""

_environment = Environment(autoescape=select_autoescape(default_for_string=True))


@dataclass(frozen=True, slots=True)
class ComponentVersions:
    """Versions of the application and the services shipped alongside it."""

    application: str = __version__
    postgres: str = '14.4'
    grafana: str = '8.7.0'


def render_versions(versions: ComponentVersions, source: str = VERSIONS_TEMPLATE) -> str:
    """Render the version fragment.

    The template is compiled on every call so a broken ``source`` surfaces as
    :class:`jinja2.TemplateError` to the caller instead of at import time.
    """
    template = _environment.from_string(source)
    return template.render(versions=versions)
