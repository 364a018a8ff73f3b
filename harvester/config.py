"""Harvester configuration — store layout, sources, and build settings.

The store root holds everything a run reads and writes::

    <root>/sources.json          list of {"name": ..., "url": ...}
    <root>/harvest-index.json    the harvest index
    <root>/build/<source>/       source checkouts
    <root>/harvest/<slug>/       harvested artifacts
    <root>/tags/<tag>.json       tag indexes (per the index's tag template)
"""

from __future__ import annotations

import json
import os
import re
import shlex
from dataclasses import dataclass, field
from pathlib import Path

import yaml

from harvester.errors import ConfigError

ROOT_ENV = "HARVESTER_ROOT"
BUILD_COMMAND_ENV = "HARVESTER_BUILD_COMMAND"

DEFAULT_SOURCES_FILE = "sources.json"
DEFAULT_BUILD_COMMAND = ("potatoverse", "package", "build")
DEFAULT_BUILD_TIMEOUT = 600  # seconds

_SOURCE_NAME_RE = re.compile(r"^[A-Za-z0-9_][A-Za-z0-9._-]*$")


@dataclass
class Source:
    """A repository to harvest packages from."""

    name: str
    url: str


@dataclass
class HarvestConfig:
    root: Path
    sources: list[Source] = field(default_factory=list)
    build_command: list[str] = field(default_factory=lambda: list(DEFAULT_BUILD_COMMAND))
    build_timeout: int = DEFAULT_BUILD_TIMEOUT
    refresh_metadata: bool = False
    prune_tags: bool = False

    @property
    def build_dir(self) -> Path:
        return self.root / "build"

    @property
    def harvest_dir(self) -> Path:
        return self.root / "harvest"

    @property
    def index_path(self) -> Path:
        return self.root / "harvest-index.json"

    @property
    def output_root(self) -> Path:
        """Root that absolute-looking index templates are resolved against."""
        return self.root


def default_root() -> Path:
    return Path(os.environ.get(ROOT_ENV, ".")).expanduser()


def load_config(
    root: str | Path | None = None,
    sources_file: str | Path | None = None,
    build_command: str | None = None,
    **overrides,
) -> HarvestConfig:
    """Build the run configuration.

    *root* defaults to ``$HARVESTER_ROOT`` or the current directory, and
    *sources_file* to ``sources.json`` inside the root.  The build command
    comes from the argument, then ``$HARVESTER_BUILD_COMMAND``, then
    ``potatoverse package build``.

    Raises:
        ConfigError: If the sources file is missing or malformed.
    """
    root_path = Path(root).expanduser() if root else default_root()
    sources_path = Path(sources_file) if sources_file else root_path / DEFAULT_SOURCES_FILE

    command = build_command or os.environ.get(BUILD_COMMAND_ENV, "")
    config = HarvestConfig(
        root=root_path.resolve(),
        sources=load_sources(sources_path),
        **overrides,
    )
    if command:
        config.build_command = shlex.split(command)
    if not config.build_command:
        raise ConfigError("Build command is empty")
    return config


def load_sources(path: str | Path) -> list[Source]:
    """Load the source list from JSON, or YAML for ``.yaml``/``.yml`` files.

    Either a bare list or a mapping with a ``sources`` list is accepted.
    """
    path = Path(path)
    if not path.exists():
        raise ConfigError(f"Sources file not found: {path}")

    try:
        with open(path, encoding="utf-8") as f:
            if path.suffix in (".yaml", ".yml"):
                data = yaml.safe_load(f)
            else:
                data = json.load(f)
    except (json.JSONDecodeError, yaml.YAMLError) as e:
        raise ConfigError(f"Invalid sources file {path}: {e}") from e

    if isinstance(data, dict):
        data = data.get("sources", [])
    if not isinstance(data, list):
        raise ConfigError(f"Sources file {path} must hold a list of sources")

    sources = []
    seen = set()
    for i, item in enumerate(data):
        if not isinstance(item, dict) or not item.get("name") or not item.get("url"):
            raise ConfigError(f"Source {i + 1} in {path} needs a 'name' and a 'url'")
        name = str(item["name"])
        if not _SOURCE_NAME_RE.match(name):
            raise ConfigError(f"Source name {name!r} is not a valid directory name")
        if name in seen:
            raise ConfigError(f"Duplicate source name {name!r}")
        seen.add(name)
        sources.append(Source(name=name, url=str(item["url"])))
    return sources
