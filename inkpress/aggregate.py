"""Corpus aggregation for Inkpress.

Given the posts and pages of one build pass, this module derives everything
templates list across entries: category and tag buckets, the navigation
menu, recent posts and corpus statistics. Results are rebuilt from scratch on
every pass.

Key pieces:
- aggregate: Pure function building a SiteContent from entries.
- safe_aggregate: Same, but returns an empty SiteContent instead of raising.
- SiteContent: Aggregated view handed to templates.
"""

from __future__ import annotations

import logging
import math
from collections.abc import Iterable, Mapping, Sequence
from dataclasses import dataclass, field
from datetime import date
from typing import Any

from .content import ContentEntry
from .utils import slugify

logger = logging.getLogger(__name__)

RECENT_POSTS_LIMIT = 5
NAV_CATEGORY_LIMIT = 5
ABOUT_NAME = "about"
ARCHIVE_URL = "/archive/"


@dataclass(frozen=True)
class PostRef:
    """Lightweight reference to a post stored inside buckets."""

    title: str
    url: str
    date: date


@dataclass
class Bucket:
    """A category or tag with the posts that carry it.

    Attributes:
        name: Display name as written in front matter.
        slug: URL slug of the name.
        url: Listing page URL.
        count: Number of member posts.
        posts: Member posts in date-descending order.
    """

    name: str
    slug: str
    url: str
    count: int = 0
    posts: list[PostRef] = field(default_factory=list)

    def add(self, entry: ContentEntry) -> None:
        self.count += 1
        self.posts.append(PostRef(title=entry.title, url=entry.url, date=entry.date))


@dataclass(frozen=True)
class NavEntry:
    title: str
    url: str
    icon: str
    type: str
    count: int | None = None


@dataclass(frozen=True)
class Stats:
    """Corpus statistics.

    Word and reading time totals cover published posts only; their averages
    are divided by the number of all posts, drafts included.
    """

    total_posts: int = 0
    total_words: int = 0
    total_reading_time: int = 0
    average_words: int = 0
    average_reading_time: int = 0
    published_posts: int = 0
    draft_posts: int = 0
    featured_posts: int = 0


@dataclass
class SiteContent:
    """Aggregated content for one build pass.

    Attributes:
        posts: All posts, newest first (drafts included).
        pages: Index pages in discovery order.
        categories: Category buckets by name.
        tags: Tag buckets by name.
        navigation: Navigation menu entries.
        recent_posts: Newest published posts as plain dicts.
        stats: Corpus statistics.
    """

    posts: list[ContentEntry] = field(default_factory=list)
    pages: list[ContentEntry] = field(default_factory=list)
    categories: dict[str, Bucket] = field(default_factory=dict)
    tags: dict[str, Bucket] = field(default_factory=dict)
    navigation: list[Any] = field(default_factory=list)
    recent_posts: list[dict[str, Any]] = field(default_factory=list)
    stats: Stats = field(default_factory=Stats)

    @property
    def published(self) -> list[ContentEntry]:
        return [post for post in self.posts if not post.draft]

    def lookup(self, kind: str, slug: str | None = None) -> Any:
        """Return one kind of aggregated content.

        Args:
            kind: One of ``posts``, ``pages``, ``categories``, ``tags``,
                ``recent`` or ``stats``.
            slug: For ``categories`` and ``tags``, the bucket name to return.

        Returns:
            The requested content, or None for unknown kinds and names.
        """
        if kind == "posts":
            return self.posts
        if kind == "pages":
            return self.pages
        if kind in ("categories", "tags"):
            buckets = self.categories if kind == "categories" else self.tags
            return buckets.get(slug) if slug is not None else buckets
        if kind == "recent":
            return self.recent_posts
        if kind == "stats":
            return self.stats
        return None


HOME_NAV = NavEntry(title="Home", url="/", icon="home", type="home")


def sort_posts(posts: Iterable[ContentEntry]) -> list[ContentEntry]:
    """Sort posts newest first; ties keep discovery order."""
    return sorted(posts, key=lambda post: post.date, reverse=True)


def build_buckets(
    posts: Iterable[ContentEntry], attribute: str, prefix: str
) -> dict[str, Bucket]:
    """Group posts by each name in ``attribute`` (``categories`` or ``tags``).

    Args:
        posts: Posts in the order their references should be listed.
        attribute: Entry attribute holding the names.
        prefix: URL prefix for listing pages, e.g. ``/tag/``.

    Returns:
        Buckets keyed by name, in first-seen order.
    """
    buckets: dict[str, Bucket] = {}
    for post in posts:
        for name in getattr(post, attribute):
            bucket = buckets.get(name)
            if bucket is None:
                slug = slugify(name)
                bucket = buckets[name] = Bucket(name=name, slug=slug, url=f"{prefix}{slug}/")
            bucket.add(post)
    return buckets


def _round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def compute_stats(posts: Sequence[ContentEntry]) -> Stats:
    published = [post for post in posts if not post.draft]
    total_words = sum(post.word_count for post in published)
    total_reading = sum(post.reading_time for post in published)
    total = len(posts)
    return Stats(
        total_posts=total,
        total_words=total_words,
        total_reading_time=total_reading,
        average_words=_round_half_up(total_words / total) if total else 0,
        average_reading_time=_round_half_up(total_reading / total) if total else 0,
        published_posts=len(published),
        draft_posts=total - len(published),
        featured_posts=sum(1 for post in posts if post.featured),
    )


def recent_posts(
    posts: Iterable[ContentEntry], limit: int = RECENT_POSTS_LIMIT
) -> list[dict[str, Any]]:
    """Project the first ``limit`` published posts to title/url/date/excerpt."""
    published = [post for post in posts if not post.draft]
    return [
        {"title": post.title, "url": post.url, "date": post.date, "excerpt": post.excerpt}
        for post in published[: max(limit, 0)]
    ]


def build_navigation(
    categories: Mapping[str, Bucket],
    entries: Iterable[ContentEntry],
    total_posts: int,
) -> list[NavEntry]:
    """Generate the navigation menu.

    Order: Home, up to five categories with more than one post (largest
    first), About when an entry named ``about`` exists, Archive when there is
    at least one post.
    """
    navigation = [HOME_NAV]
    top = sorted(
        (bucket for bucket in categories.values() if bucket.count > 1),
        key=lambda bucket: bucket.count,
        reverse=True,
    )[:NAV_CATEGORY_LIMIT]
    for bucket in top:
        navigation.append(
            NavEntry(
                title=bucket.name,
                url=bucket.url,
                icon="folder",
                type="category",
                count=bucket.count,
            )
        )
    about = next((entry for entry in entries if entry.name == ABOUT_NAME), None)
    if about is not None:
        navigation.append(NavEntry(title="About", url=about.url, icon="user", type="page"))
    if total_posts > 0:
        navigation.append(
            NavEntry(
                title="Archive",
                url=ARCHIVE_URL,
                icon="archive",
                type="archive",
                count=total_posts,
            )
        )
    return navigation


def aggregate(
    posts: Iterable[ContentEntry],
    pages: Iterable[ContentEntry] = (),
    recent_limit: int = RECENT_POSTS_LIMIT,
    navigation: Sequence[Any] | None = None,
) -> SiteContent:
    """Aggregate posts and pages into a SiteContent.

    Args:
        posts: Posts in discovery order.
        pages: Index pages in discovery order.
        recent_limit: Number of recent posts to keep.
        navigation: Explicit navigation from the configuration. When non-empty
            it replaces the generated menu.

    Returns:
        Freshly built SiteContent.
    """
    sorted_posts = sort_posts(posts)
    page_list = list(pages)
    categories = build_buckets(sorted_posts, "categories", "/category/")
    tags = build_buckets(sorted_posts, "tags", "/tag/")
    stats = compute_stats(sorted_posts)
    if navigation:
        nav: list[Any] = list(navigation)
    else:
        nav = build_navigation(categories, [*page_list, *sorted_posts], stats.total_posts)
    return SiteContent(
        posts=sorted_posts,
        pages=page_list,
        categories=categories,
        tags=tags,
        navigation=nav,
        recent_posts=recent_posts(sorted_posts, recent_limit),
        stats=stats,
    )


def empty_site_content() -> SiteContent:
    """Return the well-formed result used when aggregation fails."""
    return SiteContent(navigation=[HOME_NAV])


def safe_aggregate(
    posts: Iterable[ContentEntry],
    pages: Iterable[ContentEntry] = (),
    recent_limit: int = RECENT_POSTS_LIMIT,
    navigation: Sequence[Any] | None = None,
) -> SiteContent:
    """Aggregate, falling back to an empty SiteContent on any error."""
    try:
        return aggregate(posts, pages, recent_limit=recent_limit, navigation=navigation)
    except Exception:
        logger.exception("Content aggregation failed; continuing with empty listings")
        return empty_site_content()
