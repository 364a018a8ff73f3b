"""Git operations — clone or update the source repositories being harvested."""

from __future__ import annotations

import logging
from pathlib import Path

from git import InvalidGitRepositoryError, NoSuchPathError, Repo
from git.exc import CommandError

from harvester.config import Source
from harvester.errors import SourceSyncFailed

logger = logging.getLogger(__name__)


def sync_source(source: Source, build_dir: Path) -> Path:
    """Make sure a local checkout of *source* exists and is up to date.

    A source whose ``url`` is an existing local directory is harvested in
    place.  Otherwise the repo is cloned into ``build_dir/<name>`` on the
    first run and pulled on later runs.

    Returns:
        The directory to scan for manifests.

    Raises:
        SourceSyncFailed: If cloning or pulling fails.
    """
    local = Path(source.url).expanduser()
    if not _looks_remote(source.url) and local.is_dir():
        logger.info("  Using local source %s", local)
        return local

    repo_dir = Path(build_dir) / source.name
    try:
        if repo_dir.exists():
            logger.info("  Updating existing repo...")
            Repo(repo_dir).remotes.origin.pull()
        else:
            logger.info("  Cloning repo...")
            repo_dir.parent.mkdir(parents=True, exist_ok=True)
            Repo.clone_from(source.url, repo_dir)
    except (CommandError, InvalidGitRepositoryError, NoSuchPathError, AttributeError) as e:
        raise SourceSyncFailed(source.name, str(e)) from e
    return repo_dir


def _looks_remote(url: str) -> bool:
    return url.startswith(("http://", "https://", "git@", "git://", "ssh://"))
