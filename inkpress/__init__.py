"""Inkpress static site generator.

This package turns a tree of Markdown files with YAML front matter into a static
HTML site rendered through Jinja2 templates.

The pipeline runs in one pass: configuration is loaded once, content files are
walked and extracted into entries, entries are aggregated into categories, tags,
navigation and statistics, and the build orchestrator renders every entry and
copies static assets into the output directory.

The main entry point is the CLI module, which builds the site once or keeps
watching and serving it during development.
"""

__all__ = ["__version__"]
__version__ = "0.1.0"
