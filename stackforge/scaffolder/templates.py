"""Jinja2 template rendering for scaffolded artifacts.

Provides the TemplateRenderer class which loads Jinja2 templates from the
``stackforge/scaffolder/templates/`` directory and renders them with
resource-specific context data.  Supports single-file rendering and prefix
(tree) rendering.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any

from jinja2 import Environment, FileSystemLoader, StrictUndefined, select_autoescape

from .naming import camel_case, kebab_case


# ---------------------------------------------------------------------------
# Template directory discovery
# ---------------------------------------------------------------------------

_DEFAULT_TEMPLATE_DIR = Path(__file__).parent / "templates"


# ---------------------------------------------------------------------------
# TemplateRenderer
# ---------------------------------------------------------------------------


class TemplateRenderer:
    """Renders Jinja2 templates for scaffolded artifacts.

    The renderer discovers ``.j2`` template files under a configurable
    template directory.  Undefined variables raise instead of rendering as
    empty strings, so a template that drifts from its context fails loudly.
    """

    def __init__(self, template_dir: str | Path | None = None) -> None:
        if template_dir is None:
            template_dir = _DEFAULT_TEMPLATE_DIR
        self.template_dir = Path(template_dir)
        self.env = Environment(
            loader=FileSystemLoader(str(self.template_dir)),
            autoescape=select_autoescape([]),
            undefined=StrictUndefined,
            keep_trailing_newline=True,
            trim_blocks=True,
            lstrip_blocks=True,
        )
        # Register custom filters
        self.env.filters["camel_case"] = camel_case
        self.env.filters["kebab_case"] = kebab_case

    # -- Single template rendering -----------------------------------------

    def render(self, template_path: str, context: dict[str, Any]) -> str:
        """Render a single template with the provided context.

        Args:
            template_path: Path relative to the template directory (e.g.
                ``"resource/service/list.ts.j2"``).
            context: Dictionary of variables available inside the template.

        Returns:
            The rendered template content as a string.
        """
        template = self.env.get_template(template_path)
        return template.render(**context)

    # -- Tree rendering ----------------------------------------------------

    def render_tree(
        self,
        template_prefix: str,
        context: dict[str, Any],
        *,
        skip_patterns: list[str] | None = None,
    ) -> list[tuple[str, str]]:
        """Render every ``*.j2`` file under *template_prefix*.

        Returns ``(relative_output_path, content)`` pairs in sorted path
        order; the ``.j2`` suffix is stripped and the directory structure
        below the prefix is preserved.

        Args:
            template_prefix: Subdirectory inside the template root to scan.
            context: Template context variables.
            skip_patterns: Optional list of path substrings to skip.
        """
        skip_patterns = skip_patterns or []
        rendered: list[tuple[str, str]] = []
        for template_key in self.list_templates(template_prefix):
            rel = template_key[len(template_prefix):].lstrip("/")
            if any(pat in rel for pat in skip_patterns):
                continue
            output_name = rel[: -len(".j2")]
            rendered.append((output_name, self.render(template_key, context)))
        return rendered

    # -- Utility -----------------------------------------------------------

    def list_templates(self, prefix: str = "") -> list[str]:
        """Return a sorted list of all ``.j2`` template paths under *prefix*.

        Paths are relative to the template root directory and always use
        forward slashes.
        """
        search_dir = self.template_dir / prefix if prefix else self.template_dir
        if not search_dir.is_dir():
            return []
        return sorted(
            p.relative_to(self.template_dir).as_posix()
            for p in search_dir.rglob("*.j2")
        )
