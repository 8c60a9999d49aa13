"""Jinja2 template rendering shared by the seed and domain builders."""

from __future__ import annotations

from pathlib import Path
from typing import Optional

import jinja2

from mkvm.constants import TEMPLATES_DIR
from mkvm.exceptions import TemplateRenderFailed


def template_environment(root: Optional[Path] = None) -> jinja2.Environment:
    """Missing substitutions are errors, not empty strings."""
    return jinja2.Environment(
        loader=jinja2.FileSystemLoader(str(root or TEMPLATES_DIR)),
        undefined=jinja2.StrictUndefined,
        autoescape=jinja2.select_autoescape(enabled_extensions=("xml",), default_for_string=False),
        keep_trailing_newline=True,
    )


def render_template(env: jinja2.Environment, template_name: str, **params) -> str:
    try:
        return env.get_template(template_name).render(**params)
    except jinja2.TemplateError as exc:
        raise TemplateRenderFailed(f"can't render template {template_name}: {exc}") from exc
