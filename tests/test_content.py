import math
from dataclasses import FrozenInstanceError, replace
from datetime import date, datetime
from pathlib import Path

import pytest

from inkpress.config import load_config
from inkpress.content import ContentEntry, ContentExtractor, Corpus, load_corpus
from inkpress.extractors import extract_frontmatter, parse_frontmatter, split_frontmatter

TODAY = date(2024, 5, 1)


def make_extractor(tmp_path: Path, config_yaml: str = "") -> ContentExtractor:
    if config_yaml:
        (tmp_path / "config.yml").write_text(config_yaml, encoding="utf-8")
    return ContentExtractor(load_config(tmp_path), clock=lambda: TODAY)


def test_split_frontmatter():
    block, body = split_frontmatter("---\ntitle: Hi\n---\n# Body\n")
    assert block == "title: Hi"
    assert body == "# Body\n"

    block, body = split_frontmatter("# No front matter\n")
    assert block is None
    assert body == "# No front matter\n"

    # delimiter must open the file
    block, _ = split_frontmatter("\n---\ntitle: Hi\n---\nBody")
    assert block is None


def test_parse_frontmatter_failures_fall_back_to_empty(caplog):
    assert parse_frontmatter("title: [unclosed", "bad.md") == {}
    assert "bad.md" in caplog.text
    assert parse_frontmatter("- a\n- b", "list.md") == {}
    assert parse_frontmatter("", "empty.md") == {}
    assert extract_frontmatter("---\nbroken: [\n---\nBody text") == ({}, "Body text")


def test_extract_defaults_from_filename(tmp_path):
    extractor = make_extractor(tmp_path, "site:\n  author: Site Author\n")
    entry = extractor.extract("Plain body without metadata", "notes/my-first-post.md")
    assert entry is not None
    assert entry.title == "My First Post"
    assert entry.date == TODAY
    assert entry.layout == "post"
    assert entry.author == "Site Author"
    assert entry.categories == ()
    assert entry.tags == ()
    assert entry.draft is False
    assert entry.featured is False
    assert entry.url == "/notes/my-first-post/"
    assert entry.excerpt == "Plain body without metadata"
    assert entry.metadata == {}


def test_extract_title_only_front_matter(tmp_path):
    extractor = make_extractor(tmp_path)
    entry = extractor.extract("---\ntitle: Hello World\n---\nBody\n", "blog/my-first-post.md")
    assert entry.title == "Hello World"
    assert entry.date == TODAY
    assert entry.url == "/blog/my-first-post/"


def test_extract_explicit_metadata(tmp_path):
    extractor = make_extractor(tmp_path)
    text = """---
title: Explicit
date: 2023-02-03
layout: essay
categories: [Go, Go, Web]
tags: python
author: Grace
excerpt: Custom summary
draft: true
featured: true
---
# Heading

Some **bold** words here.
"""
    entry = extractor.extract(text, "essays/explicit.md")
    assert entry.title == "Explicit"
    assert entry.date == date(2023, 2, 3)
    assert entry.layout == "essay"
    assert entry.categories == ("Go", "Web")
    assert entry.tags == ("python",)
    assert entry.author == "Grace"
    assert entry.excerpt == "Custom summary"
    assert entry.draft is True
    assert entry.featured is True
    assert '<h1 id="heading">Heading</h1>' in entry.content
    assert "<strong>bold</strong>" in entry.content
    assert entry.word_count == 5
    assert entry.reading_time == 1
    assert entry.metadata["title"] == "Explicit"


def test_extract_date_variants(tmp_path, caplog):
    extractor = make_extractor(tmp_path)
    dt = extractor.extract("---\ndate: 2022-01-02 10:30:00\n---\nx", "a.md")
    assert dt.date == date(2022, 1, 2)
    quoted = extractor.extract("---\ndate: '2021-12-24'\n---\nx", "b.md")
    assert quoted.date == date(2021, 12, 24)
    bad = extractor.extract("---\ndate: someday\n---\nx", "c.md")
    assert bad.date == TODAY
    assert "c.md" in caplog.text


def test_extract_word_count_and_reading_time(tmp_path):
    extractor = make_extractor(tmp_path)
    body = " ".join(["word"] * 401)
    entry = extractor.extract(body, "long.md")
    assert entry.word_count == 401
    assert entry.reading_time == math.ceil(401 / 200) == 3

    empty = extractor.extract("", "empty.md")
    assert empty.word_count == 0
    assert empty.reading_time == 0
    assert empty.excerpt == ""


def test_excerpt_is_truncated(tmp_path):
    extractor = make_extractor(tmp_path)
    entry = extractor.extract("a" * 300, "long-line.md")
    assert entry.excerpt == "a" * 150 + "..."


def test_index_file_is_a_page(tmp_path):
    extractor = make_extractor(tmp_path)
    root = extractor.extract("Hello", "index.md")
    assert root.is_page
    assert root.url == "/"
    assert root.name == "index"

    about = extractor.extract("About us", "about/index.md")
    assert about.is_page
    assert about.url == "/about/"
    assert about.name == "about"

    post = extractor.extract("Post", "about.md")
    assert not post.is_page
    assert post.name == "about"
    assert post.filename == "about"
    assert post.directory == ""


def test_missing_front_matter_is_lenient_by_default(tmp_path):
    extractor = make_extractor(tmp_path)
    entry = extractor.extract("# Just a body\n", "loose.md")
    assert entry is not None
    assert entry.metadata == {}
    assert "Just a body" in entry.content


def test_missing_front_matter_skipped_when_required(tmp_path):
    extractor = make_extractor(tmp_path, "build:\n  require_front_matter: true\n")
    assert extractor.extract("# Just a body\n", "loose.md") is None
    kept = extractor.extract("---\ntitle: Kept\n---\nbody", "kept.md")
    assert kept is not None
    assert kept.title == "Kept"


def test_invalid_front_matter_still_parses_body(tmp_path, caplog):
    extractor = make_extractor(tmp_path)
    entry = extractor.extract("---\ntitle: [oops\n---\nStill here", "broken-meta.md")
    assert entry.title == "Broken Meta"
    assert "Still here" in entry.content
    assert "broken-meta.md" in caplog.text


def test_extract_file_skips_unreadable(tmp_path, caplog):
    extractor = make_extractor(tmp_path)
    path = tmp_path / "binary.md"
    path.write_bytes(b"\xff\xfe\x00bad")
    assert extractor.extract_file(path, "binary.md") is None
    assert "binary.md" in caplog.text


def test_entries_are_immutable(tmp_path):
    extractor = make_extractor(tmp_path)
    entry = extractor.extract("x", "a.md")
    with pytest.raises(FrozenInstanceError):
        entry.title = "changed"
    assert replace(entry, title="changed").title == "changed"


def test_code_blocks_are_highlighted(tmp_path):
    extractor = make_extractor(tmp_path)
    entry = extractor.extract("```python\nprint('hi')\n```\n", "code.md")
    assert 'class="highlight"' in entry.content

    plain = make_extractor(tmp_path, "markdown:\n  highlight: false\n")
    entry = plain.extract("```python\nx < 1\n```\n", "code.md")
    assert '<code class="language-python">x &lt; 1' in entry.content


def test_load_corpus_splits_posts_and_pages(tmp_path):
    content = tmp_path / "content"
    (content / "blog").mkdir(parents=True)
    (content / "index.md").write_text("Hello", encoding="utf-8")
    (content / "blog" / "index.md").write_text("Blog home", encoding="utf-8")
    (content / "blog" / "first.md").write_text("---\ntitle: First\n---\nOne", encoding="utf-8")
    (content / "about.md").write_text("About", encoding="utf-8")
    (content / "notes.txt").write_text("ignored", encoding="utf-8")
    (content / ".secret.md").write_text("hidden", encoding="utf-8")

    corpus = load_corpus(load_config(tmp_path))

    assert sorted(p.url for p in corpus.pages) == ["/", "/blog/"]
    assert sorted(p.url for p in corpus.posts) == ["/about/", "/blog/first/"]
    assert len(corpus.entries) == 4


def test_corpus_from_entries():
    def entry(path, url):
        return ContentEntry(
            title=path,
            date=datetime(2024, 1, 1).date(),
            layout="post",
            categories=(),
            tags=(),
            author="",
            excerpt="",
            draft=False,
            featured=False,
            path=path,
            url=url,
            word_count=0,
            reading_time=0,
        )

    corpus = Corpus.from_entries([entry("index.md", "/"), entry("a.md", "/a/")])
    assert [p.path for p in corpus.pages] == ["index.md"]
    assert [p.path for p in corpus.posts] == ["a.md"]


@pytest.mark.parametrize(
    "raw, expected",
    [
        ("true", True),
        ("false", False),
        ("'false'", False),
        ("'No'", False),
        ("yes", True),
        ("'on'", True),
        ("0", False),
        ("1", True),
        ("''", False),
    ],
)
def test_draft_flag_spellings(tmp_path, raw, expected):
    extractor = make_extractor(tmp_path)
    entry = extractor.extract(f"---\ndraft: {raw}\nfeatured: {raw}\n---\nx", "flag.md")
    assert entry.draft is expected
    assert entry.featured is expected


def test_unrecognized_flag_is_false(tmp_path, caplog):
    extractor = make_extractor(tmp_path)
    entry = extractor.extract("---\ndraft: maybe\n---\nx", "unsure.md")
    assert entry.draft is False
    assert "unsure.md" in caplog.text


def test_uppercase_suffix_entry(tmp_path):
    extractor = make_extractor(tmp_path)
    entry = extractor.extract("Loud", "notes/Shout-Out.MD")
    assert entry.url == "/notes/Shout-Out/"
    assert entry.title == "Shout Out"
