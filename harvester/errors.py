"""Error hierarchy for the harvester.

Manifest-scoped errors (``InvalidManifest``, ``ManifestParseError``,
``BuildFailed``, ``ArtifactNotFound``) are caught by the pipeline for the one
manifest that raised them and never stop a run.  ``CorruptRegistry``,
``ConfigError`` and ``TagIndexWriteFailed`` are fatal.
"""

from __future__ import annotations


class HarvesterError(Exception):
    """Base error for the harvester.

    All harvester-specific errors inherit from this.
    """


# =============================================================================
# Manifest Errors
# =============================================================================


class ManifestParseError(HarvesterError):
    """A manifest file could not be read or decoded.

    Attributes:
        path: The manifest file that failed to parse
        reason: Human-readable error description
    """

    def __init__(self, path: str, reason: str) -> None:
        self.path = path
        self.reason = reason
        super().__init__(f"Failed to parse {path}: {reason}")


class InvalidManifest(HarvesterError):
    """A manifest is missing a required field or carries an unusable value.

    Attributes:
        reason: Human-readable error description
    """

    def __init__(self, reason: str) -> None:
        self.reason = reason
        super().__init__(reason)


class DuplicateVersion(HarvesterError):
    """The registry already records this slug/version pair.

    Not a failure: the pipeline uses it as the reason for a no-op skip.
    """

    def __init__(self, slug: str, version: str) -> None:
        self.slug = slug
        self.version = version
        super().__init__(f"{slug} {version} already harvested")


# =============================================================================
# Build Errors
# =============================================================================


class BuildFailed(HarvesterError):
    """The external package build exited with a non-zero status.

    Attributes:
        package_dir: Directory the build ran in
        exit_code: Process exit status
        stderr: Tail of the build's stderr, for the log
    """

    def __init__(self, package_dir: str, exit_code: int, stderr: str = "") -> None:
        self.package_dir = package_dir
        self.exit_code = exit_code
        self.stderr = stderr
        super().__init__(f"Build failed in {package_dir} (exit code {exit_code})")


class ArtifactNotFound(HarvesterError):
    """No build artifact exists at any candidate location.

    Attributes:
        declared: The output file name the manifest declared
        candidates: Every path that was checked, in order
    """

    def __init__(self, declared: str, candidates: list[str]) -> None:
        self.declared = declared
        self.candidates = candidates
        super().__init__(f"Could not find output zip file (looked for: {declared})")


class SourceSyncFailed(HarvesterError):
    """A source repository could not be cloned or updated."""

    def __init__(self, source_name: str, reason: str) -> None:
        self.source_name = source_name
        self.reason = reason
        super().__init__(f"Failed to sync source {source_name}: {reason}")


# =============================================================================
# Fatal Errors
# =============================================================================


class CorruptRegistry(HarvesterError):
    """The persisted harvest index exists but does not match the schema."""

    def __init__(self, path: str, reason: str) -> None:
        self.path = path
        self.reason = reason
        super().__init__(f"Corrupt harvest index {path}: {reason}")


class InvalidTagName(HarvesterError):
    """A tag name cannot be turned into a safe file name."""

    def __init__(self, tag: str) -> None:
        self.tag = tag
        super().__init__(f"Tag name {tag!r} cannot be used in an index path")


class TagIndexWriteFailed(HarvesterError):
    """A tag index document could not be written inside the output tree."""

    def __init__(self, tag: str, reason: str) -> None:
        self.tag = tag
        self.reason = reason
        super().__init__(f"Failed to write tag index for {tag!r}: {reason}")


class ConfigError(HarvesterError):
    """The harvester configuration (sources file, paths) is unusable."""
