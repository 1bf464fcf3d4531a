"""Utility functions for Inkpress.

This module contains the small helpers used throughout the pipeline: directory
walking, string processing, URL derivation, text statistics and output
directory maintenance.

Key functions:
    walk_directory: Visit every non-hidden file below a directory.
    slugify: Convert display names to URL slugs.
    titleize: Convert filenames to human-readable titles.
    url_from_path: Derive the public URL of a content file.
    output_path_for_url: Map a URL to the HTML file written for it.
    count_words: Count words in a text body.
    reading_time: Estimate reading minutes from a word count.
    generate_excerpt: Build a short plain-text summary.
    clean_output_dir: Empty a directory while keeping version control data.
    copy_tree: Mirror one directory into another.
"""

from __future__ import annotations

import logging
import math
import re
import shutil
from collections.abc import Callable, Iterator
from pathlib import Path, PurePosixPath

logger = logging.getLogger(__name__)

HIDDEN_PREFIX = "."
VCS_DIRS = frozenset({".git"})
WORDS_PER_MINUTE = 200
EXCERPT_LENGTH = 150
MARKDOWN_SUFFIX = ".md"

TAG_RE = re.compile(r"<[^>]*>")
NON_WORD_RE = re.compile(r"[^\w\s]")
SLUG_RE = re.compile(r"\W+")


def iter_files(root: Path) -> Iterator[tuple[Path, str]]:
    """Yield every non-hidden file below ``root``.

    Entries whose name starts with a dot are skipped, directories and files
    alike. Traversal is depth-first using an explicit stack, and entries of a
    directory are visited in name order so repeated walks agree.

    Args:
        root: Directory to walk. A missing directory yields nothing.

    Yields:
        Tuples of (absolute path, POSIX path relative to ``root``).
    """
    root = Path(root)
    if not root.is_dir():
        return
    stack: list[tuple[Path, PurePosixPath]] = [(root, PurePosixPath())]
    while stack:
        directory, rel_dir = stack.pop()
        try:
            children = sorted(directory.iterdir(), key=lambda p: p.name)
        except OSError as exc:
            logger.warning("Could not read directory %s: %s", directory, exc)
            continue
        subdirs: list[tuple[Path, PurePosixPath]] = []
        for child in children:
            if child.name.startswith(HIDDEN_PREFIX):
                continue
            rel = rel_dir / child.name
            if child.is_dir():
                subdirs.append((child, rel))
            elif child.is_file():
                yield child.resolve(), rel.as_posix()
        # Reversed so the first subdirectory is popped first.
        stack.extend(reversed(subdirs))


def walk_directory(root: Path, visit: Callable[[Path, str], None]) -> None:
    """Call ``visit(absolute_path, relative_path)`` for every file in ``root``.

    Args:
        root: Directory to walk.
        visit: Callback receiving each file.
    """
    for path, rel in iter_files(root):
        visit(path, rel)


def slugify(name: str) -> str:
    """Convert a display name into a URL slug.

    Runs of non-word characters collapse into a single hyphen. Word characters
    are Unicode-aware, so CJK names keep their ideographs.

    Args:
        name: Category, tag or other display name.

    Returns:
        Lowercase, hyphen-delimited slug.

    Examples:
        >>> slugify("Web Development")
        'web-development'
        >>> slugify("  C++ & Rust!  ")
        'c-rust'
    """
    return SLUG_RE.sub("-", str(name).lower()).strip("-")


def strip_markdown_suffix(name: str) -> str:
    """Drop a trailing ``.md`` extension, matched case-insensitively."""
    if name.lower().endswith(MARKDOWN_SUFFIX):
        return name[: -len(MARKDOWN_SUFFIX)]
    return name


def titleize(filename: str) -> str:
    """Convert a filename to a human-readable title.

    Hyphens become spaces and the first letter of every word is capitalized;
    the rest of each word is left as written.

    Args:
        filename: Filename with or without the ``.md`` extension (any case).

    Returns:
        Title string.

    Examples:
        >>> titleize("my-first-post.md")
        'My First Post'
    """
    stem = strip_markdown_suffix(filename)
    return " ".join(word[:1].upper() + word[1:] for word in stem.split("-"))


def url_from_path(relative_path: str) -> str:
    """Derive the public URL for a content file.

    Args:
        relative_path: Path of the ``.md`` file relative to the content root.

    Returns:
        URL with leading and trailing slashes.

    Examples:
        >>> url_from_path("about.md")
        '/about/'
        >>> url_from_path("index.md")
        '/'
        >>> url_from_path("blog/index.md")
        '/blog/'
        >>> url_from_path("blog/post-1.md")
        '/blog/post-1/'
    """
    rel = PurePosixPath(relative_path.replace("\\", "/"))
    if rel.suffix.lower() == MARKDOWN_SUFFIX:
        rel = rel.with_suffix("")
    if rel.name == "index":
        parent = rel.parent.as_posix()
        return "/" if parent == "." else f"/{parent}/"
    return f"/{rel.as_posix()}/"


def output_path_for_url(output_dir: Path, url: str) -> Path:
    """Return the HTML file written for ``url`` inside ``output_dir``.

    Args:
        output_dir: Build output directory.
        url: Public URL such as ``/blog/post/``.

    Returns:
        ``output_dir/blog/post/index.html``, or ``output_dir/index.html`` for ``/``.
    """
    stripped = url.strip("/")
    if not stripped:
        return output_dir / "index.html"
    return output_dir.joinpath(*stripped.split("/"), "index.html")


def strip_tags(text: str) -> str:
    return TAG_RE.sub("", text)


def generate_excerpt(text: str, length: int = EXCERPT_LENGTH) -> str:
    """Build a plain-text excerpt from a content body.

    HTML tags are removed, every line break becomes a space, and the result is
    trimmed. Text longer than ``length`` is cut and suffixed with ``...``.

    Args:
        text: Source body.
        length: Maximum number of characters kept.

    Returns:
        Excerpt string.
    """
    cleaned = re.sub(r"[\r\n]", " ", strip_tags(text)).strip()
    if len(cleaned) > length:
        return cleaned[:length] + "..."
    return cleaned


def count_words(text: str) -> int:
    """Count words after dropping punctuation.

    Args:
        text: Body text.

    Returns:
        Number of whitespace-separated tokens.
    """
    return len(NON_WORD_RE.sub("", text).split())


def reading_time(word_count: int, words_per_minute: int = WORDS_PER_MINUTE) -> int:
    """Estimate reading time in whole minutes, rounded up."""
    return math.ceil(max(word_count, 0) / words_per_minute)


def clean_output_dir(path: Path, keep: frozenset[str] = VCS_DIRS) -> None:
    """Remove everything inside ``path`` except entries named in ``keep``.

    The directory itself is preserved (and created when missing). Failures on
    individual entries are logged and do not stop the cleanup.

    Args:
        path: Output directory.
        keep: Top-level entry names to leave in place.
    """
    path.mkdir(parents=True, exist_ok=True)
    for item in sorted(path.iterdir()):
        if item.name in keep:
            continue
        try:
            if item.is_dir() and not item.is_symlink():
                shutil.rmtree(item)
            else:
                item.unlink()
        except OSError as exc:
            logger.error("Could not remove %s: %s", item, exc)


def copy_tree(source: Path, destination: Path, skip: frozenset[str] = VCS_DIRS) -> int:
    """Mirror ``source`` into ``destination``, overwriting existing files.

    Directories named in ``skip`` are not copied. Failures on individual files
    are logged and the copy carries on.

    Args:
        source: Directory to copy from.
        destination: Directory to copy into.
        skip: Directory names to leave out.

    Returns:
        Number of files copied.
    """
    if not source.is_dir():
        return 0
    copied = 0
    stack = [source]
    while stack:
        directory = stack.pop()
        target_dir = destination / directory.relative_to(source)
        target_dir.mkdir(parents=True, exist_ok=True)
        for item in sorted(directory.iterdir()):
            if item.is_dir():
                if item.name not in skip:
                    stack.append(item)
                continue
            try:
                shutil.copy2(item, target_dir / item.name)
                copied += 1
            except OSError as exc:
                logger.error("Could not copy %s: %s", item, exc)
    return copied
