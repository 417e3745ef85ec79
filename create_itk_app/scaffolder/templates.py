"""Jinja2 template rendering for the generated project files.

Provides the ``TemplateRenderer`` class which loads the ``.j2`` templates
shipped in ``create_itk_app/scaffolder/templates/`` and renders them with a
context built from the ``ResolvedConfig``.  Templates only substitute
values; every value that lands inside JavaScript source goes through an
escaping filter matching its position (string literal or JSX text).
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any

from jinja2 import Environment, FileSystemLoader, StrictUndefined

from create_itk_app.config import Settings
from create_itk_app.models import ResolvedConfig


# ---------------------------------------------------------------------------
# Template directory discovery
# ---------------------------------------------------------------------------

_DEFAULT_TEMPLATE_DIR = Path(__file__).parent / "templates"


# ---------------------------------------------------------------------------
# TemplateRenderer
# ---------------------------------------------------------------------------


class TemplateRenderer:
    """Renders the project templates.

    Undefined variables are errors rather than empty strings, so a typo in a
    template cannot silently produce a broken file.
    """

    def __init__(self, template_dir: str | Path | None = None) -> None:
        if template_dir is None:
            template_dir = _DEFAULT_TEMPLATE_DIR
        self.template_dir = Path(template_dir)
        self.env = Environment(
            loader=FileSystemLoader(str(self.template_dir)),
            autoescape=False,
            undefined=StrictUndefined,
            keep_trailing_newline=True,
            trim_blocks=True,
            lstrip_blocks=True,
        )
        self.env.filters["js_string"] = js_string_filter
        self.env.filters["jsx_text"] = jsx_text_filter

    def render(self, template_path: str, context: dict[str, Any]) -> str:
        """Render a single template with the provided context.

        Args:
            template_path: Path relative to the template directory (e.g.
                ``"src/App.js.j2"``).
            context: Dictionary of variables available inside the template.

        Returns:
            The rendered template content as a string.
        """
        template = self.env.get_template(template_path)
        return template.render(**context)

    def list_templates(self) -> list[str]:
        """Return a sorted list of all ``.j2`` template paths."""
        if not self.template_dir.is_dir():
            return []
        return sorted(
            p.relative_to(self.template_dir).as_posix()
            for p in self.template_dir.rglob("*.j2")
        )


def build_context(config: ResolvedConfig, settings: Settings) -> dict[str, Any]:
    """Build the template context from the resolved configuration."""
    return {
        "app_name": config.app_name,
        "description": config.description,
        "author": str(config.author),
        "homepage": config.homepage,
        "github_user": config.github_user,
        "repo": config.repo,
        "plugins": [plugin.model_dump() for plugin in settings.craco_plugins],
    }


# ---------------------------------------------------------------------------
# Escaping filters
# ---------------------------------------------------------------------------

_JS_UNSAFE = {
    "<": "\\u003c",
    ">": "\\u003e",
    "&": "\\u0026",
    "\u2028": "\\u2028",
    "\u2029": "\\u2029",
}


def js_string_filter(value: Any) -> str:
    """Render *value* as a double-quoted JavaScript string literal.

    Quotes, backslashes and control characters are escaped by JSON
    encoding; ``<``, ``>``, ``&`` and the two line-separator code points
    are escaped as well so the literal is also safe inside JSX and inline
    ``<script>`` blocks.
    """
    encoded = json.dumps(str(value), ensure_ascii=False)
    return "".join(_JS_UNSAFE.get(char, char) for char in encoded)


def jsx_text_filter(value: Any) -> str:
    """Render *value* as a JSX expression container holding a string.

    ``{"..."}`` is the only form in which arbitrary text (including ``{``,
    ``<`` and quotes) is guaranteed to appear verbatim in JSX output.
    """
    return "{" + js_string_filter(value) + "}"
