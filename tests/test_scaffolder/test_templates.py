"""Tests for the Jinja2 template renderer (stackforge.scaffolder.templates)."""

from __future__ import annotations

from pathlib import Path

import pytest
from jinja2 import UndefinedError

from stackforge.scaffolder.templates import TemplateRenderer

pytestmark = pytest.mark.unit


@pytest.fixture
def renderer() -> TemplateRenderer:
    return TemplateRenderer()


@pytest.fixture
def custom_dir(tmp_path: Path) -> Path:
    (tmp_path / "kit" / "nested").mkdir(parents=True)
    (tmp_path / "kit" / "a.txt.j2").write_text("{{ name }}\n", encoding="utf-8")
    (tmp_path / "kit" / "nested" / "b.ts.j2").write_text("export const {{ name | camel_case }} = 1;\n", encoding="utf-8")
    (tmp_path / "kit" / "skip-me.j2").write_text("{{ missing }}", encoding="utf-8")
    (tmp_path / "filters").mkdir()
    (tmp_path / "filters" / "case.txt.j2").write_text(
        "{{ n | camel_case }} {{ n | kebab_case }}", encoding="utf-8"
    )
    (tmp_path / "kit" / "notes.md").write_text("not a template", encoding="utf-8")
    return tmp_path


class TestFilters:
    def test_case_filters(self, custom_dir: Path):
        out = TemplateRenderer(custom_dir).render("filters/case.txt.j2", {"n": "blog_post"})
        assert out == "blogPost blog-post"

    def test_middleware_name_is_camel_cased(self, renderer: TemplateRenderer):
        out = renderer.render("middleware/custom.ts.j2", {"name": "tenant_guard"})
        assert "export function tenantGuard(" in out


class TestRendering:
    def test_strict_undefined(self, custom_dir: Path):
        with pytest.raises(UndefinedError):
            TemplateRenderer(custom_dir).render("kit/skip-me.j2", {})

    def test_keeps_trailing_newline(self, custom_dir: Path):
        assert TemplateRenderer(custom_dir).render("kit/a.txt.j2", {"name": "x"}) == "x\n"

    def test_render_tree_strips_suffix_and_sorts(self, custom_dir: Path):
        renderer = TemplateRenderer(custom_dir)
        rendered = renderer.render_tree("kit", {"name": "blog-post"}, skip_patterns=["skip-me"])
        assert rendered == [
            ("a.txt", "blog-post\n"),
            ("nested/b.ts", "export const blogPost = 1;\n"),
        ]

    def test_list_templates_posix_paths(self, custom_dir: Path):
        renderer = TemplateRenderer(custom_dir)
        assert renderer.list_templates("kit") == ["kit/a.txt.j2", "kit/nested/b.ts.j2", "kit/skip-me.j2"]

    def test_list_templates_missing_prefix(self, renderer: TemplateRenderer):
        assert renderer.list_templates("does-not-exist") == []

    def test_packaged_templates_present(self, renderer: TemplateRenderer):
        templates = renderer.list_templates()
        for expected in (
            "base/src/routes/index.ts.j2",
            "base/prisma/schema.prisma.j2",
            "resource/service/_skeleton.ts.j2",
            "resource/routes/nested.ts.j2",
            "middleware/rateLimit.ts.j2",
            "errors/index.ts.j2",
        ):
            assert expected in templates
