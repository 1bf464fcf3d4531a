"""Feed generation for Inkpress.

This module generates sitemap.xml and rss.xml from the entries of a build
pass. Both need the site's base URL (``site.url``); without it they are
skipped.

Output depends only on the content, never on the wall clock, so rebuilding an
unchanged site produces identical files.

Classes:
    FeedGenerator: Base class for feed generators.
    SitemapGenerator: Generates sitemap.xml.
    RSSGenerator: Generates an RSS 2.0 feed of published posts.
    FeedRegistry: Runs a set of generators.

Functions:
    create_default_feed_registry: Create a registry with default generators.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from collections.abc import Iterable
from datetime import date
from pathlib import Path

from markupsafe import escape

from .config import SiteConfig
from .content import ContentEntry

logger = logging.getLogger(__name__)

RFC822 = "%a, %d %b %Y 00:00:00 +0000"


class FeedGenerator(ABC):
    """Abstract base class for feed generators."""

    @property
    @abstractmethod
    def filename(self) -> str:
        """Output filename such as 'sitemap.xml'."""
        ...

    @abstractmethod
    def generate(self, entries: list[ContentEntry], site: SiteConfig) -> str | None:
        """Generate feed content.

        Args:
            entries: Entries to include, newest first.
            site: Site metadata providing the base URL and title.

        Returns:
            Feed content, or None when the feed cannot be generated.
        """
        ...

    def write(self, output_dir: Path, entries: list[ContentEntry], site: SiteConfig) -> bool:
        """Generate and write the feed.

        Returns:
            True if the feed was written, False if skipped.
        """
        content = self.generate(entries, site)
        if content is None:
            return False
        (output_dir / self.filename).write_text(content, encoding="utf-8")
        return True


class SitemapGenerator(FeedGenerator):
    """Generates sitemap.xml listing every page and published post."""

    @property
    def filename(self) -> str:
        return "sitemap.xml"

    def generate(self, entries: list[ContentEntry], site: SiteConfig) -> str | None:
        base_url = site.url.rstrip("/")
        if not base_url:
            return None
        lines = [
            '<?xml version="1.0" encoding="UTF-8"?>',
            '<urlset xmlns="http://www.sitemaps.org/schemas/sitemap/0.9">',
        ]
        for entry in entries:
            if entry.draft:
                continue
            lastmod = entry.date.strftime("%Y-%m-%d")
            lines.append(
                f"  <url><loc>{escape(base_url + entry.url)}</loc><lastmod>{lastmod}</lastmod></url>"
            )
        lines.append("</urlset>")
        return "\n".join(lines)


class RSSGenerator(FeedGenerator):
    """Generates an RSS 2.0 feed of published posts, newest first."""

    @property
    def filename(self) -> str:
        return "rss.xml"

    def generate(self, entries: list[ContentEntry], site: SiteConfig) -> str | None:
        base_url = site.url.rstrip("/")
        if not base_url:
            return None
        posts = sorted(
            (e for e in entries if not e.is_page and not e.draft),
            key=lambda e: e.date,
            reverse=True,
        )
        items = [
            f"<item><title>{escape(post.title)}</title>"
            f"<link>{escape(base_url + post.url)}</link>"
            f"<description>{escape(post.excerpt or post.title)}</description>"
            f"<pubDate>{post.date.strftime(RFC822)}</pubDate></item>"
            for post in posts
        ]
        last_build: date | None = posts[0].date if posts else None
        rss = [
            '<?xml version="1.0" encoding="UTF-8"?>',
            '<rss version="2.0"><channel>',
            f"<title>{escape(site.title)}</title>",
            f"<link>{escape(base_url)}</link>",
            f"<description>{escape(site.description)}</description>",
        ]
        if last_build is not None:
            rss.append(f"<lastBuildDate>{last_build.strftime(RFC822)}</lastBuildDate>")
        rss.extend(items)
        rss.append("</channel></rss>")
        return "\n".join(rss)


class FeedRegistry:
    """Registry running every registered feed generator."""

    def __init__(self) -> None:
        self._generators: list[FeedGenerator] = []

    def register(self, generator: FeedGenerator) -> None:
        self._generators.append(generator)

    def generate_all(
        self, output_dir: Path, entries: Iterable[ContentEntry], site: SiteConfig
    ) -> list[str]:
        """Generate all registered feeds.

        A feed that cannot be written is logged and skipped.

        Returns:
            Filenames that were written.
        """
        entries_list = list(entries)
        written = []
        for generator in self._generators:
            try:
                if generator.write(output_dir, entries_list, site):
                    written.append(generator.filename)
            except OSError as exc:
                logger.error("Error writing %s: %s", generator.filename, exc)
        return written


def create_default_feed_registry() -> FeedRegistry:
    """Create a registry with the sitemap and RSS generators."""
    registry = FeedRegistry()
    registry.register(SitemapGenerator())
    registry.register(RSSGenerator())
    return registry
