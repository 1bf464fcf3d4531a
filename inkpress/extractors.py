"""Front matter parsing for Inkpress.

A content file may start with a YAML block between two ``---`` lines. This
module splits that block from the body and parses it into a mapping.

Key functions:
- split_frontmatter: Separate the raw YAML block from the body.
- parse_frontmatter: Load the YAML block, falling back to an empty mapping.
- extract_frontmatter: Both steps at once.
"""

from __future__ import annotations

import logging
import re
from typing import Any

import yaml

logger = logging.getLogger(__name__)

FRONTMATTER_RE = re.compile(r"^---\s*\n(.*?)\n---\s*\n", re.DOTALL)


def split_frontmatter(text: str) -> tuple[str | None, str]:
    """Split a leading front matter block from the body.

    Args:
        text: Raw file content.

    Returns:
        Tuple of (YAML block or None when absent, body). Without a block the
        body is the whole text.
    """
    match = FRONTMATTER_RE.match(text)
    if not match:
        return None, text
    return match.group(1), text[match.end() :]


def parse_frontmatter(block: str, source: str = "<string>") -> dict[str, Any]:
    """Parse a YAML front matter block.

    Args:
        block: YAML text between the delimiters.
        source: Name of the file, used in log messages.

    Returns:
        Parsed mapping, or an empty dict when the block is invalid or not a mapping.
    """
    try:
        data = yaml.safe_load(block)
    except yaml.YAMLError as exc:
        logger.warning("Front matter parsing failed for %s: %s", source, exc)
        return {}
    if data is None:
        return {}
    if not isinstance(data, dict):
        logger.warning(
            "Front matter in %s is a %s, not a mapping; ignoring it",
            source,
            type(data).__name__,
        )
        return {}
    return data


def extract_frontmatter(text: str, source: str = "<string>") -> tuple[dict[str, Any], str]:
    """Extract YAML front matter from content.

    Args:
        text: Raw file content.
        source: Name of the file, used in log messages.

    Returns:
        Tuple of (front matter dict, remaining content).
    """
    block, body = split_frontmatter(text)
    if block is None:
        return {}, body
    return parse_frontmatter(block, source), body
