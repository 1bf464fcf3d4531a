"""Configuration loading for Inkpress.

This module reads ``config.yml`` from the project root, merges it over the
built-in defaults and resolves every configured path to an absolute directory.

Key pieces:
- DEFAULT_CONFIG: Mapping with every supported key and its default value.
- deep_merge: Pure recursive merge of two mappings.
- resolve_paths: Turns relative path settings into absolute, existing directories.
- Config: Typed view over the merged configuration.
- load_config: Builds a Config for a project root.

A Config is a value: reloading means building a new one and swapping the
reference, never mutating an existing instance.
"""

from __future__ import annotations

import copy
import logging
from collections.abc import Mapping
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml

logger = logging.getLogger(__name__)

CONFIG_FILENAME = "config.yml"

DEFAULT_CONFIG: dict[str, Any] = {
    "site": {
        "title": "My Site",
        "description": "",
        "author": "",
        "url": "",
        "language": "en",
    },
    "paths": {
        "content": "./content",
        "templates": "./templates",
        "output": "./public",
        "static": "./static",
    },
    "markdown": {
        "plugins": ["strikethrough", "footnotes", "table", "url"],
        "escape": False,
        "hard_wrap": False,
        "highlight": True,
    },
    "server": {
        "host": "localhost",
        "port": 3000,
        "ws_port": None,
        "open": False,
        "delay": 1.0,
    },
    "build": {
        "clean": True,
        "generate_homepage": True,
        "homepage_layout": "index",
        "default_layout": "post",
        "fallback_layout": "base",
        "recent_posts": 5,
        "require_front_matter": False,
        "taxonomy_pages": True,
        "feeds": True,
    },
    "navigation": [],
    "social": [],
    "custom": {},
}


class ConfigError(Exception):
    """Raised when a configuration value cannot be used."""


def deep_merge(base: Mapping[str, Any], override: Mapping[str, Any]) -> dict[str, Any]:
    """Merge ``override`` into ``base`` and return a new mapping.

    When both sides hold a mapping for the same key the two are merged
    recursively. Any other value in ``override`` (lists included) replaces the
    value in ``base`` wholesale. Neither input is mutated.

    Args:
        base: Mapping providing default values.
        override: Mapping whose values take precedence.

    Returns:
        A new merged dictionary.

    Examples:
        >>> deep_merge({"a": {"x": 1, "y": 2}}, {"a": {"y": 3}})
        {'a': {'x': 1, 'y': 3}}
    """
    result: dict[str, Any] = copy.deepcopy(dict(base))
    for key, value in override.items():
        current = result.get(key)
        if isinstance(current, Mapping) and isinstance(value, Mapping):
            result[key] = deep_merge(current, value)
        else:
            result[key] = copy.deepcopy(value)
    return result


def resolve_path(value: str, project_root: Path) -> Path:
    """Resolve a configured path against the project root.

    ``./name`` and bare relative names are joined to the root, ``../name`` is
    normalized against the root, and absolute paths pass through unchanged.

    Args:
        value: Path string from the configuration.
        project_root: Directory holding the configuration file.

    Returns:
        Absolute path.
    """
    path = Path(value).expanduser()
    if path.is_absolute():
        return path
    if value.startswith("./"):
        return project_root / value[2:]
    return (project_root / path).resolve()


def resolve_paths(paths: Mapping[str, Any], project_root: Path) -> dict[str, Any]:
    """Resolve every string under ``paths`` and make sure each directory exists.

    Args:
        paths: The ``paths`` section of the merged configuration.
        project_root: Directory holding the configuration file.

    Returns:
        New mapping with string values replaced by absolute Paths.
    """
    resolved: dict[str, Any] = {}
    for key, value in paths.items():
        if not isinstance(value, str):
            resolved[key] = value
            continue
        target = resolve_path(value, project_root)
        if not target.exists():
            target.mkdir(parents=True, exist_ok=True)
            logger.info("Created %s directory: %s", key, target)
        resolved[key] = target
    return resolved


@dataclass(frozen=True)
class SiteConfig:
    """Site-wide metadata exposed to templates."""

    title: str = "My Site"
    description: str = ""
    author: str = ""
    url: str = ""
    language: str = "en"


@dataclass(frozen=True)
class PathsConfig:
    """Absolute directories used by a build.

    Attributes:
        content: Root of the Markdown content tree.
        templates: Directory holding layout templates.
        output: Directory the site is written to.
        static: Directory mirrored verbatim into the output.
        config: Optional extra configuration directory.
    """

    content: Path
    templates: Path
    output: Path
    static: Path
    config: Path | None = None


@dataclass(frozen=True)
class MarkdownConfig:
    plugins: tuple[str, ...] = ("strikethrough", "footnotes", "table", "url")
    escape: bool = False
    hard_wrap: bool = False
    highlight: bool = True


@dataclass(frozen=True)
class ServerConfig:
    host: str = "localhost"
    port: int = 3000
    ws_port: int | None = None
    open: bool = False
    delay: float = 1.0

    @property
    def reload_port(self) -> int:
        """Port of the live reload websocket, one above the HTTP port by default."""
        return int(self.ws_port) if self.ws_port else self.port + 1


@dataclass(frozen=True)
class BuildConfig:
    clean: bool = True
    generate_homepage: bool = True
    homepage_layout: str = "index"
    default_layout: str = "post"
    fallback_layout: str = "base"
    recent_posts: int = 5
    require_front_matter: bool = False
    taxonomy_pages: bool = True
    feeds: bool = True


@dataclass(frozen=True)
class Config:
    """Resolved configuration for one project.

    Attributes:
        project_root: Directory the configuration was loaded from.
        config_file: Location of ``config.yml`` (may not exist).
        site: Site metadata.
        paths: Absolute directories.
        markdown: Markdown rendering options.
        server: Development server options.
        build: Build behavior switches.
        navigation: Explicit navigation entries; empty means auto-generated.
        social: Social links passed through to templates.
        custom: Free-form values passed through to templates.
        raw: The merged mapping the typed sections were built from.
    """

    project_root: Path
    config_file: Path
    site: SiteConfig
    paths: PathsConfig
    markdown: MarkdownConfig = field(default_factory=MarkdownConfig)
    server: ServerConfig = field(default_factory=ServerConfig)
    build: BuildConfig = field(default_factory=BuildConfig)
    navigation: list[Any] = field(default_factory=list)
    social: list[Any] = field(default_factory=list)
    custom: dict[str, Any] = field(default_factory=dict)
    raw: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_mapping(
        cls, data: Mapping[str, Any], project_root: Path, config_file: Path
    ) -> Config:
        """Build a Config from an already merged mapping.

        Args:
            data: Merged configuration (defaults plus user document).
            project_root: Directory relative paths are resolved against.
            config_file: Location of the configuration file.

        Returns:
            Config with resolved, existing directories.

        Raises:
            ConfigError: If a required path is missing or a section has the wrong shape.
        """
        paths = resolve_paths(_section(data, "paths"), project_root)
        for required in ("content", "templates", "output", "static"):
            if not isinstance(paths.get(required), Path):
                raise ConfigError(f"paths.{required} must be a directory path")

        markdown = _known_fields(MarkdownConfig, _section(data, "markdown"))
        if "plugins" in markdown:
            markdown["plugins"] = tuple(markdown["plugins"] or ())

        raw = dict(data)
        raw["paths"] = {key: str(value) for key, value in paths.items()}
        return cls(
            project_root=project_root,
            config_file=config_file,
            site=SiteConfig(**_known_fields(SiteConfig, _section(data, "site"))),
            paths=PathsConfig(
                content=paths["content"],
                templates=paths["templates"],
                output=paths["output"],
                static=paths["static"],
                config=paths.get("config"),
            ),
            markdown=MarkdownConfig(**markdown),
            server=ServerConfig(**_known_fields(ServerConfig, _section(data, "server"))),
            build=BuildConfig(**_known_fields(BuildConfig, _section(data, "build"))),
            navigation=list(data.get("navigation") or []),
            social=list(data.get("social") or []),
            custom=dict(data.get("custom") or {}),
            raw=raw,
        )


def _section(data: Mapping[str, Any], name: str) -> Mapping[str, Any]:
    value = data.get(name) or {}
    if not isinstance(value, Mapping):
        raise ConfigError(f"'{name}' must be a mapping, got {type(value).__name__}")
    return value


def _known_fields(cls: type, values: Mapping[str, Any]) -> dict[str, Any]:
    """Keep only keys that are fields of the dataclass ``cls``."""
    names = cls.__dataclass_fields__.keys()
    return {key: value for key, value in values.items() if key in names}


def read_config_file(config_file: Path) -> dict[str, Any]:
    """Read the user configuration document.

    A missing file, malformed YAML or a document that is not a mapping is
    logged and treated as an empty document.

    Args:
        config_file: Path to ``config.yml``.

    Returns:
        Parsed mapping, or an empty dict.
    """
    if not config_file.exists():
        logger.warning("Config file not found at %s; using defaults", config_file)
        return {}
    try:
        with open(config_file, encoding="utf-8") as f:
            loaded = yaml.safe_load(f)
    except yaml.YAMLError as exc:
        logger.error("Could not parse %s: %s; using defaults", config_file, exc)
        return {}
    if loaded is None:
        return {}
    if not isinstance(loaded, dict):
        logger.warning(
            "Config file %s does not contain a mapping; using defaults", config_file
        )
        return {}
    logger.info("Loaded config file: %s", config_file)
    return loaded


def load_config(project_root: Path, config_file: Path | None = None) -> Config:
    """Load and resolve the configuration for a project.

    Args:
        project_root: Root directory of the project.
        config_file: Optional override for the configuration file location.

    Returns:
        A fresh Config value.
    """
    project_root = Path(project_root).resolve()
    config_file = config_file or project_root / CONFIG_FILENAME
    merged = deep_merge(DEFAULT_CONFIG, read_config_file(config_file))
    return Config.from_mapping(merged, project_root, config_file)
