"""File scanner — discover package manifests in a source checkout."""

from pathlib import Path

from harvester.models.manifest import MANIFEST_FILE_NAMES

# Directories to always skip
SKIP_DIRS = {
    ".git", ".hg", ".svn", "__pycache__", "node_modules", ".venv", "venv",
    ".tox", ".mypy_cache", ".pytest_cache", ".ruff_cache",
}


def find_manifest_files(root: Path) -> list[Path]:
    """Recursively find ``potato.yaml`` / ``potato.yml`` files under *root*.

    Version-control metadata and dependency caches are never entered.  The
    result is sorted so every run visits manifests in the same order.
    """
    root = Path(root)
    if not root.is_dir():
        return []

    found = []
    for item in root.rglob("*"):
        if item.name in MANIFEST_FILE_NAMES and item.is_file() and _should_include(item, root):
            found.append(item)
    return sorted(found)


def _should_include(path: Path, root: Path) -> bool:
    """Check that no directory between *root* and *path* is skipped."""
    for part in path.relative_to(root).parts[:-1]:
        if part in SKIP_DIRS:
            return False
    return True
