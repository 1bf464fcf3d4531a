"""Site building for Inkpress.

This module runs one build pass: clean the output directory, generate every
page, then copy static assets.

Key pieces:
- BuildState: States a builder moves through during a pass.
- SiteBuilder: Runs build passes for one configuration.
- BuildResult: Summary of a finished pass.
- build_site: Convenience wrapper running a single pass.

Rendering problems never abort a pass: a page whose template fails is written
as an error placeholder, and clean/copy failures are logged.
"""

from __future__ import annotations

import enum
import logging
from dataclasses import dataclass, field
from datetime import date
from pathlib import Path
from typing import Any

from .aggregate import ARCHIVE_URL, Bucket, SiteContent, safe_aggregate
from .config import Config
from .content import ContentEntry, ContentExtractor, Corpus, load_corpus
from .feeds import create_default_feed_registry
from .templates import TemplateEngine
from .utils import clean_output_dir, copy_tree, output_path_for_url

logger = logging.getLogger(__name__)

ROOT_INDEX = "index.md"


class BuildState(enum.Enum):
    IDLE = "idle"
    CLEANING = "cleaning"
    GENERATING = "generating"
    COPYING_ASSETS = "copying-assets"


@dataclass
class BuildResult:
    """Result of a site build operation.

    Attributes:
        output_dir: Directory where the site was built.
        content: Aggregated content of the pass.
        written: URLs of every HTML page written.
        failed: URLs written as error placeholders.
        feeds: Feed filenames written.
        static_files: Number of static files copied.
    """

    output_dir: Path
    content: SiteContent
    written: list[str] = field(default_factory=list)
    failed: list[str] = field(default_factory=list)
    feeds: list[str] = field(default_factory=list)
    static_files: int = 0


class SiteBuilder:
    """Runs build passes for one configuration.

    Attributes:
        config: Configuration the builder was created with.
        state: Current BuildState.
        today: Date used for undated entries and ``current_year``.
    """

    def __init__(
        self,
        config: Config,
        extractor: ContentExtractor | None = None,
        today: date | None = None,
    ):
        self.config = config
        self.today = today
        self.extractor = extractor or ContentExtractor(
            config, clock=(lambda: today) if today else date.today
        )
        self.state = BuildState.IDLE

    @property
    def output_dir(self) -> Path:
        return self.config.paths.output

    def build(self) -> BuildResult:
        """Run one full pass: clean, generate, copy assets.

        Returns:
            BuildResult describing the pass.
        """
        logger.info("Building site into %s", self.output_dir)
        try:
            if self.config.build.clean:
                self.state = BuildState.CLEANING
                self.clean()
            self.output_dir.mkdir(parents=True, exist_ok=True)

            self.state = BuildState.GENERATING
            result = self.generate()

            self.state = BuildState.COPYING_ASSETS
            result.static_files = self.copy_static()
        finally:
            self.state = BuildState.IDLE
        logger.info(
            "Build finished: %d pages (%d failed), %d static files",
            len(result.written),
            len(result.failed),
            result.static_files,
        )
        return result

    def clean(self) -> None:
        """Empty the output directory, keeping ``.git``."""
        try:
            clean_output_dir(self.output_dir)
        except OSError as exc:
            logger.error("Error cleaning output %s: %s", self.output_dir, exc)

    def copy_static(self) -> int:
        """Mirror the static directory into the output directory."""
        try:
            copied = copy_tree(self.config.paths.static, self.output_dir)
        except OSError as exc:
            logger.error("Error copying static files: %s", exc)
            return 0
        logger.info("Copied %d static files", copied)
        return copied

    def generate(self) -> BuildResult:
        """Render the homepage, every entry and the listing pages."""
        corpus = load_corpus(self.config, self.extractor)
        content = safe_aggregate(
            corpus.posts,
            corpus.pages,
            recent_limit=self.config.build.recent_posts,
            navigation=self.config.navigation,
        )
        engine = TemplateEngine(self.config, today=self.today)
        result = BuildResult(output_dir=self.output_dir, content=content)
        base_context: dict[str, Any] = {
            "navigation": content.navigation,
            "content": content,
        }

        homepage = self.config.build.generate_homepage
        if homepage:
            self._write(
                engine,
                result,
                "/",
                self.config.build.homepage_layout,
                {**base_context, **self._homepage_context(content)},
                source="homepage",
            )

        for entry in self._entries_to_render(corpus, homepage):
            self._write(
                engine,
                result,
                entry.url,
                entry.layout,
                {**base_context, "page": entry},
                source=entry.path,
            )

        if self.config.build.taxonomy_pages:
            self._write_listings(engine, result, content, base_context)

        if self.config.build.feeds:
            result.feeds = create_default_feed_registry().generate_all(
                self.output_dir, [*content.pages, *content.posts], self.config.site
            )
        return result

    def _entries_to_render(self, corpus: Corpus, homepage: bool) -> list[ContentEntry]:
        if not homepage:
            return corpus.entries
        return [entry for entry in corpus.entries if entry.path != ROOT_INDEX]

    def _homepage_context(self, content: SiteContent) -> dict[str, Any]:
        return {
            "page": {"title": self.config.site.title, "url": "/"},
            "posts": content.published,
            "total_posts": content.stats.total_posts,
            "stats": content.stats,
            "recent_posts": content.recent_posts,
            "categories": content.categories,
            "tags": content.tags,
        }

    def _write_listings(
        self,
        engine: TemplateEngine,
        result: BuildResult,
        content: SiteContent,
        base_context: dict[str, Any],
    ) -> None:
        """Write archive, category and tag pages the content does not already provide."""
        from_content = set(result.written)
        generated: dict[str, str] = {}
        listings: list[tuple[str, str, dict[str, Any]]] = []
        if content.posts and engine.has_layout("archive"):
            listings.append(
                (
                    ARCHIVE_URL,
                    "archive",
                    {
                        "page": {"title": "Archive", "url": ARCHIVE_URL},
                        "posts": content.published,
                    },
                )
            )
        for layout, buckets in (("category", content.categories), ("tag", content.tags)):
            if not engine.has_layout(layout):
                continue
            for bucket in buckets.values():
                listings.append((bucket.url, layout, self._bucket_context(bucket)))

        for url, layout, context in listings:
            name = context["page"]["title"]
            if url in from_content:
                logger.info("Skipping generated %s page %s: content exists", layout, url)
                continue
            if url in generated:
                logger.warning(
                    "Skipping %s page for %r: %s is already used by %r",
                    layout,
                    name,
                    url,
                    generated[url],
                )
                continue
            generated[url] = name
            self._write(engine, result, url, layout, {**base_context, **context}, source=url)

    @staticmethod
    def _bucket_context(bucket: Bucket) -> dict[str, Any]:
        return {"page": {"title": bucket.name, "url": bucket.url}, "bucket": bucket}

    def _write(
        self,
        engine: TemplateEngine,
        result: BuildResult,
        url: str,
        layout: str,
        context: dict[str, Any],
        source: str,
    ) -> None:
        failed = False
        try:
            html = engine.render(layout, context)
        except Exception as exc:
            html = engine.render_failure(exc, layout, source)
            result.failed.append(url)
            failed = True
        target = output_path_for_url(self.output_dir, url)
        try:
            target.parent.mkdir(parents=True, exist_ok=True)
            target.write_text(html, encoding="utf-8")
        except OSError as exc:
            logger.error("Build failed for %s: %s", source, exc)
            if not failed:
                result.failed.append(url)
            return
        result.written.append(url)
        logger.debug("Wrote %s", target)


def build_site(config: Config, today: date | None = None) -> BuildResult:
    """Run a single build pass for ``config``.

    Args:
        config: Site configuration.
        today: Optional date for undated entries.

    Returns:
        BuildResult of the pass.
    """
    return SiteBuilder(config, today=today).build()
