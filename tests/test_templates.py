from datetime import date

import pytest
from jinja2 import UndefinedError

from inkpress.config import load_config
from inkpress.templates import TemplateEngine, TemplateNotFound, error_placeholder


def make_engine(tmp_path, config_yaml=""):
    if config_yaml:
        (tmp_path / "config.yml").write_text(config_yaml, encoding="utf-8")
    config = load_config(tmp_path)
    return TemplateEngine(config, today=date(2030, 6, 1)), config.paths.templates


def test_user_template_takes_precedence(tmp_path):
    engine, templates = make_engine(tmp_path, "site:\n  title: Mine\n")
    (templates / "post.html.jinja").write_text(
        "<p>{{ site.title }}|{{ page.title }}|{{ current_year }}</p>", encoding="utf-8"
    )
    html = engine.render("post", {"page": {"title": "Hello"}})
    assert html == "<p>Mine|Hello|2030</p>"


def test_layout_suffix_order(tmp_path):
    engine, templates = make_engine(tmp_path)
    (templates / "essay.html").write_text("plain html", encoding="utf-8")
    assert engine.render("essay", {}) == "plain html"
    (templates / "essay.jinja").write_text("jinja", encoding="utf-8")
    assert engine.render("essay", {}) == "jinja"


def test_missing_layout_falls_back_to_base(tmp_path):
    engine, _ = make_engine(tmp_path)
    html = engine.render("does-not-exist", {"page": {"title": "T", "content": "<b>x</b>", "url": "/t/"}})
    assert "<b>x</b>" in html
    assert "<!DOCTYPE html>" in html
    assert engine.has_layout("post")
    assert not engine.has_layout("does-not-exist")


def test_missing_layout_without_fallback_raises(tmp_path):
    engine, _ = make_engine(tmp_path, "build:\n  fallback_layout: ''\n")
    with pytest.raises(TemplateNotFound):
        engine.render("does-not-exist", {})


def test_render_failure_returns_placeholder_with_literal_message(tmp_path, caplog):
    engine, templates = make_engine(tmp_path)
    (templates / "broken.html.jinja").write_text("{{ raise_it() }}", encoding="utf-8")
    with pytest.raises(UndefinedError) as info:
        engine.render("broken", {})
    html = engine.render_failure(info.value, "broken", source="notes/broken.md")
    assert html == (
        "<h1>Template Render Error</h1><p>UndefinedError: 'raise_it' is undefined</p>"
    )
    assert "notes/broken.md" in caplog.text


def test_render_failure_for_missing_template(tmp_path):
    engine, _ = make_engine(tmp_path, "build:\n  fallback_layout: ''\n")
    with pytest.raises(TemplateNotFound) as info:
        engine.render("ghost", {})
    html = engine.render_failure(info.value, "ghost", source="ghost.md")
    assert "Template not found" in html


def test_error_placeholder_escapes_markup_but_keeps_quotes():
    assert error_placeholder("a < b") == "<h1>Template Render Error</h1><p>a &lt; b</p>"
    assert error_placeholder("'x' & \"y\"") == (
        "<h1>Template Render Error</h1><p>'x' &amp; \"y\"</p>"
    )


def test_filters_and_autoescape(tmp_path):
    engine, templates = make_engine(tmp_path)
    (templates / "filters.html.jinja").write_text(
        "{{ when | date }} {{ when | date('%d/%m') }} {{ name | slugify }} {{ raw }}",
        encoding="utf-8",
    )
    html = engine.render(
        "filters", {"when": date(2024, 2, 3), "name": "Web Dev", "raw": "<i>"}
    )
    assert html == "2024-02-03 03/02 web-dev &lt;i&gt;"


def test_globals_expose_config(tmp_path):
    engine, templates = make_engine(
        tmp_path,
        "social:\n  - {name: GitHub, url: 'https://github.com/x'}\ncustom:\n  accent: teal\n",
    )
    (templates / "g.html.jinja").write_text(
        "{{ social[0].name }} {{ custom.accent }} {{ config.server.port }}", encoding="utf-8"
    )
    assert engine.render("g", {}) == "GitHub teal 3000"
