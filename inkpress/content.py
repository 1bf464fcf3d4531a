"""Content processing for Inkpress.

This module turns Markdown files into ContentEntry records. It extracts front
matter, renders the body, fills every field with an explicit value or a
computed default, and splits the resulting corpus into posts and pages.

Key classes:
- ContentEntry: Immutable record derived from one Markdown file.
- ContentExtractor: Builds a ContentEntry from file content and its relative path.
- FileContentLoader: Discovers Markdown files under the content root.
- Corpus: Posts and pages discovered in one build pass.

A file whose base name is ``index`` is a page; every other Markdown file is a
post. Files without front matter are treated as having empty metadata unless
``build.require_front_matter`` is set, in which case they are skipped.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterable
from dataclasses import dataclass, field
from datetime import date, datetime
from pathlib import Path, PurePosixPath
from typing import Any

from .config import Config
from .extractors import parse_frontmatter, split_frontmatter
from .renderers import MarkdownRenderer
from .utils import (
    MARKDOWN_SUFFIX,
    count_words,
    generate_excerpt,
    iter_files,
    reading_time,
    titleize,
    url_from_path,
)

logger = logging.getLogger(__name__)

INDEX_NAME = "index"


@dataclass(frozen=True)
class ContentEntry:
    """A post or page derived from one Markdown file.

    Attributes:
        title: Human-readable title.
        date: Publication date.
        layout: Name of the template used to render the entry.
        categories: Category names, de-duplicated in declaration order.
        tags: Tag names, de-duplicated in declaration order.
        author: Author name.
        excerpt: Short plain-text summary.
        draft: Whether the entry is a draft.
        featured: Whether the entry is featured.
        path: Source path relative to the content root (POSIX).
        url: Public URL.
        word_count: Number of words in the body.
        reading_time: Estimated reading minutes.
        content: Rendered HTML body.
        metadata: The parsed front matter.
    """

    title: str
    date: date
    layout: str
    categories: tuple[str, ...]
    tags: tuple[str, ...]
    author: str
    excerpt: str
    draft: bool
    featured: bool
    path: str
    url: str
    word_count: int
    reading_time: int
    content: str = ""
    metadata: dict[str, Any] = field(default_factory=dict, compare=False)

    @property
    def filename(self) -> str:
        """Base name of the source file without extension."""
        return PurePosixPath(self.path).stem

    @property
    def directory(self) -> str:
        parent = PurePosixPath(self.path).parent.as_posix()
        return "" if parent == "." else parent

    @property
    def is_page(self) -> bool:
        return self.filename == INDEX_NAME

    @property
    def name(self) -> str:
        """Name the entry is known by: its stem, or its folder for index files."""
        if self.is_page:
            return PurePosixPath(self.directory).name if self.directory else INDEX_NAME
        return self.filename


def _as_date(value: Any, today: date, source: str) -> date:
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if isinstance(value, str):
        try:
            return date.fromisoformat(value.strip()[:10])
        except ValueError:
            pass
    logger.warning("Unrecognized date %r in %s; using %s", value, source, today)
    return today


def _as_names(value: Any) -> tuple[str, ...]:
    """Normalize a category/tag value to a tuple of unique strings."""
    if value is None:
        return ()
    if isinstance(value, str):
        value = [value]
    if not isinstance(value, (list, tuple)):
        return ()
    names: list[str] = []
    for item in value:
        if item is None:
            continue
        name = str(item)
        if name not in names:
            names.append(name)
    return tuple(names)


TRUE_STRINGS = frozenset({"true", "yes", "on", "1"})
FALSE_STRINGS = frozenset({"false", "no", "off", "0", ""})


def _as_flag(value: Any, source: str, key: str) -> bool:
    """Read a boolean front matter value; strings like ``"false"`` count as False."""
    if isinstance(value, bool):
        return value
    if value is None:
        return False
    if isinstance(value, int):
        return value != 0
    if isinstance(value, str):
        text = value.strip().lower()
        if text in TRUE_STRINGS:
            return True
        if text in FALSE_STRINGS:
            return False
    logger.warning("Unrecognized %s value %r in %s; using False", key, value, source)
    return False


def _as_text(value: Any, default: str) -> str:
    if value is None or value == "":
        return default
    return str(value)


class ContentExtractor:
    """Builds ContentEntry records from Markdown sources.

    Attributes:
        config: Site configuration (author, default layout, front matter policy).
        renderer: Markdown renderer used for the body.
        clock: Callable returning today's date for entries without one.
    """

    def __init__(
        self,
        config: Config,
        renderer: MarkdownRenderer | None = None,
        clock: Callable[[], date] = date.today,
    ):
        self.config = config
        self.renderer = renderer or MarkdownRenderer(config.markdown)
        self.clock = clock

    @property
    def require_front_matter(self) -> bool:
        return self.config.build.require_front_matter

    def extract(self, file_content: str, relative_path: str) -> ContentEntry | None:
        """Extract a ContentEntry from a file's text.

        Args:
            file_content: Full text of the Markdown file.
            relative_path: Path relative to the content root.

        Returns:
            The entry, or None when front matter is required but absent.
        """
        block, body = split_frontmatter(file_content)
        if block is None:
            if self.require_front_matter:
                logger.info("Skipping %s: no front matter", relative_path)
                return None
            metadata: dict[str, Any] = {}
        else:
            metadata = parse_frontmatter(block, relative_path)

        html = self.renderer.render(body)
        words = count_words(body)
        filename = PurePosixPath(relative_path).name
        today = self.clock()
        raw_date = metadata.get("date")
        entry_date = _as_date(raw_date, today, relative_path) if raw_date else today

        return ContentEntry(
            title=_as_text(metadata.get("title"), titleize(filename)),
            date=entry_date,
            layout=_as_text(metadata.get("layout"), self.config.build.default_layout),
            categories=_as_names(metadata.get("categories")),
            tags=_as_names(metadata.get("tags")),
            author=_as_text(metadata.get("author"), self.config.site.author),
            excerpt=_as_text(metadata.get("excerpt"), generate_excerpt(body)),
            draft=_as_flag(metadata.get("draft"), relative_path, "draft"),
            featured=_as_flag(metadata.get("featured"), relative_path, "featured"),
            path=relative_path,
            url=url_from_path(relative_path),
            word_count=words,
            reading_time=reading_time(words),
            content=html,
            metadata=metadata,
        )

    def extract_file(self, path: Path, relative_path: str) -> ContentEntry | None:
        """Read and extract one file, logging and skipping it on failure.

        Args:
            path: Absolute path of the file.
            relative_path: Path relative to the content root.

        Returns:
            The entry, or None when the file was skipped.
        """
        try:
            text = path.read_text(encoding="utf-8")
            return self.extract(text, relative_path)
        except Exception as exc:
            logger.warning("Failed to process %s: %s", relative_path, exc)
            return None


class FileContentLoader:
    """Discovers Markdown files below the content root.

    Attributes:
        content_dir: Root of the content tree.
    """

    def __init__(self, content_dir: Path):
        self.content_dir = content_dir

    def iter_files(self) -> list[tuple[Path, str]]:
        """List (absolute path, relative path) for every Markdown file."""
        return [
            (path, rel)
            for path, rel in iter_files(self.content_dir)
            if path.suffix.lower() == MARKDOWN_SUFFIX
        ]


@dataclass
class Corpus:
    """Entries discovered in one build pass, in discovery order."""

    posts: list[ContentEntry] = field(default_factory=list)
    pages: list[ContentEntry] = field(default_factory=list)

    @property
    def entries(self) -> list[ContentEntry]:
        return [*self.pages, *self.posts]

    @classmethod
    def from_entries(cls, entries: Iterable[ContentEntry]) -> Corpus:
        corpus = cls()
        for entry in entries:
            (corpus.pages if entry.is_page else corpus.posts).append(entry)
        return corpus


def load_corpus(config: Config, extractor: ContentExtractor | None = None) -> Corpus:
    """Walk the content directory and extract every Markdown file.

    Args:
        config: Site configuration.
        extractor: Optional custom extractor.

    Returns:
        Corpus with posts and pages split by the index rule.
    """
    extractor = extractor or ContentExtractor(config)
    loader = FileContentLoader(config.paths.content)
    entries = []
    for path, rel in loader.iter_files():
        entry = extractor.extract_file(path, rel)
        if entry is not None:
            entries.append(entry)
    corpus = Corpus.from_entries(entries)
    logger.info(
        "Discovered %d posts and %d pages in %s",
        len(corpus.posts),
        len(corpus.pages),
        config.paths.content,
    )
    return corpus
