"""Jinja2 rendering for template modules.

Templates see:
    apogee.shell, apogee.platform, apogee.host
    vars  - runtime vars at the time the template group runs
    data  - the module's own `data` mapping
"""

import json
import logging
from pathlib import Path
from typing import Any, Mapping, Optional

from jinja2 import Environment, TemplateError as JinjaTemplateError

from apogee.core.errors import TemplateError

logger = logging.getLogger(__name__)


def _tojson(value: Any) -> str:
    # Plain JSON; jinja2's builtin tojson HTML-escapes for use in markup.
    return json.dumps(value, ensure_ascii=False)


def make_environment() -> Environment:
    # Control blocks on their own lines should not leave blank lines behind.
    env = Environment(
        trim_blocks=True,
        lstrip_blocks=True,
        keep_trailing_newline=True,
        autoescape=False,
    )
    env.filters["tojson"] = _tojson
    return env


class TemplateRenderer:
    """Renders template files for one run.

    Example:
        renderer = TemplateRenderer()
        text = renderer.render_file(Path("starship.toml.j2"), context, name="starship")
    """

    def __init__(self, env: Optional[Environment] = None):
        self.env = env or make_environment()

    def render_text(self, source: str, context: Mapping[str, Any], name: str = "<string>") -> str:
        try:
            return self.env.from_string(source).render(**context)
        except JinjaTemplateError as e:
            raise TemplateError(f"templates.{name}: render failed: {e}") from e

    def render_file(self, path: Path, context: Mapping[str, Any], name: str = "") -> str:
        """Read and render one template file.

        Raises:
            TemplateError: If the file cannot be read or rendered
        """
        label = name or path.stem
        try:
            source = path.read_text(encoding="utf-8")
        except OSError as e:
            raise TemplateError(f"templates.{label}: failed to read template file {path}: {e}") from e

        logger.debug(f"Rendering template {label} from {path}")
        return self.render_text(source, context, name=label)


def template_context(
    shell: str,
    platform: str,
    host: str,
    vars: Mapping[str, str],
    data: Mapping[str, Any],
) -> dict[str, Any]:
    return {
        "apogee": {"shell": shell, "platform": platform, "host": host},
        "vars": dict(vars),
        "data": dict(data),
    }
