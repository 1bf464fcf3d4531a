"""Markdown rendering for Inkpress.

Markdown bodies are converted to HTML with mistune. Fenced code blocks with a
language are highlighted with Pygments when highlighting is enabled.

Key classes:
- MarkdownRenderer: Converts Markdown text to HTML using the configured options.
"""

from __future__ import annotations

import re

import mistune
from mistune.util import escape as escape_html
from pygments import highlight
from pygments.formatters import HtmlFormatter
from pygments.lexers import get_lexer_by_name
from pygments.util import ClassNotFound

from .config import MarkdownConfig


def _generate_heading_id(text: str) -> str:
    """Generate a URL-friendly ID from heading text.

    Args:
        text: The heading text.

    Returns:
        URL-friendly slug suitable for anchor links.
    """
    slug = re.sub(r"<[^>]+>", "", text).lower().strip()
    slug = re.sub(r"[^\w\s-]", "", slug)
    slug = re.sub(r"[-\s]+", "-", slug)
    return slug.strip("-")


class _HighlightRenderer(mistune.HTMLRenderer):
    """HTML renderer adding heading anchors and Pygments code highlighting."""

    def __init__(self, escape: bool = False, highlight_code: bool = True):
        super().__init__(escape=escape)
        self.highlight_code = highlight_code
        self._heading_id_counts: dict[str, int] = {}

    def heading(self, text: str, level: int, **attrs) -> str:
        base_id = _generate_heading_id(text)
        if base_id in self._heading_id_counts:
            self._heading_id_counts[base_id] += 1
            heading_id = f"{base_id}-{self._heading_id_counts[base_id]}"
        else:
            self._heading_id_counts[base_id] = 0
            heading_id = base_id
        return f'<h{level} id="{heading_id}">{text}</h{level}>\n'

    def block_code(self, code: str, info: str | None = None) -> str:
        """Render a code block, highlighted when the language is known.

        Args:
            code: The code content.
            info: Language identifier (e.g., 'python', 'javascript').

        Returns:
            HTML string with the code block.
        """
        lang = info.split()[0] if info else ""
        if lang and self.highlight_code:
            try:
                lexer = get_lexer_by_name(lang, stripall=True)
            except ClassNotFound:
                lexer = None
            if lexer is not None:
                formatter = HtmlFormatter(nowrap=False, cssclass="highlight")
                return highlight(code, lexer, formatter)
        escaped = escape_html(code)
        lang_class = f' class="language-{lang}"' if lang else ""
        return f"<pre><code{lang_class}>{escaped}</code></pre>\n"


class MarkdownRenderer:
    """Renders Markdown content to HTML.

    Attributes:
        options: Markdown settings from the site configuration.
    """

    def __init__(self, options: MarkdownConfig | None = None):
        self.options = options or MarkdownConfig()

    def render(self, content: str) -> str:
        """Render Markdown content to HTML.

        A fresh mistune parser is created per call so heading anchors never
        leak between documents.

        Args:
            content: Markdown source.

        Returns:
            Rendered HTML.
        """
        renderer = _HighlightRenderer(
            escape=self.options.escape, highlight_code=self.options.highlight
        )
        markdown = mistune.create_markdown(
            renderer=renderer,
            hard_wrap=self.options.hard_wrap,
            plugins=list(self.options.plugins),
        )
        return markdown(content)
