"""Template rendering engine for Inkpress.

This module uses Jinja2 to render layouts. Templates are looked up in the
project's templates directory first and then in the built-in default theme
shipped with the package, so a project without templates still builds.

Key class:
- TemplateEngine: Resolves layouts and renders them with the site context.
"""

from __future__ import annotations

import html
import logging
from datetime import date
from typing import Any

from jinja2 import (
    ChoiceLoader,
    Environment,
    FileSystemLoader,
    PackageLoader,
    Template,
    TemplateNotFound,
    select_autoescape,
)

from .config import Config
from .utils import slugify

logger = logging.getLogger(__name__)

__all__ = ["TemplateEngine", "TemplateNotFound", "error_placeholder"]

LAYOUT_SUFFIXES = (".html.jinja", ".jinja", ".html")


def error_placeholder(message: str) -> str:
    """Return the minimal page written when a template fails to render.

    Only ``&``, ``<`` and ``>`` are escaped so quotes in the message stay as
    written.
    """
    return f"<h1>Template Render Error</h1><p>{html.escape(message, quote=False)}</p>"


def _format_date(value: Any, fmt: str = "%Y-%m-%d") -> str:
    if isinstance(value, date):
        return value.strftime(fmt)
    return str(value)


class TemplateEngine:
    """Template rendering engine using Jinja2.

    Attributes:
        config: Site configuration.
        env: Jinja2 environment.
        globals: Bindings shared by every render call.
    """

    def __init__(self, config: Config, today: date | None = None):
        """Initialize the template engine.

        Args:
            config: Site configuration.
            today: Date used for ``current_year``; defaults to today.
        """
        self.config = config
        self.env = Environment(
            loader=ChoiceLoader(
                [
                    FileSystemLoader(str(config.paths.templates)),
                    PackageLoader("inkpress", "themes/default"),
                ]
            ),
            autoescape=select_autoescape(["html", "xml", "jinja"]),
            enable_async=False,
        )
        self.env.filters["date"] = _format_date
        self.env.filters["slugify"] = slugify
        year = (today or date.today()).year
        self.globals: dict[str, Any] = {
            "site": config.raw.get("site", {}),
            "social": config.social,
            "current_year": year,
            "config": config.raw,
            "custom": config.custom,
        }

    def resolve_layout(self, layout: str) -> Template:
        """Find the template for a layout name.

        Tries ``<layout>.html.jinja``, ``<layout>.jinja``, ``<layout>.html``,
        then the same names for the configured fallback layout.

        Args:
            layout: Layout name.

        Returns:
            Jinja2 Template object.

        Raises:
            TemplateNotFound: If neither the layout nor the fallback exists.
        """
        candidates = [f"{layout}{suffix}" for suffix in LAYOUT_SUFFIXES]
        fallback = self.config.build.fallback_layout
        if fallback and fallback != layout:
            candidates.extend(f"{fallback}{suffix}" for suffix in LAYOUT_SUFFIXES)
        return self.env.select_template(candidates)

    def has_layout(self, layout: str) -> bool:
        """Whether ``layout`` itself exists, ignoring the fallback."""
        try:
            self.env.select_template([f"{layout}{suffix}" for suffix in LAYOUT_SUFFIXES])
        except TemplateNotFound:
            return False
        return True

    def render(self, layout: str, context: dict[str, Any]) -> str:
        """Render a layout with the shared bindings plus ``context``.

        Args:
            layout: Layout name.
            context: Page-specific bindings (``page``, ``navigation``...).

        Returns:
            Rendered HTML.

        Raises:
            TemplateNotFound: If no template matches.
            Exception: Anything raised while rendering the template.
        """
        template = self.resolve_layout(layout)
        return template.render(**self.globals, **context)

    def render_failure(self, exc: Exception, layout: str, source: str) -> str:
        """Log a render failure and return the placeholder page for it."""
        if isinstance(exc, TemplateNotFound):
            message = f"Template not found: {exc.message or exc.name}"
        else:
            message = f"{type(exc).__name__}: {exc}"
        logger.error("Render template failed for %s (%s): %s", source, layout, message)
        return error_placeholder(message)
