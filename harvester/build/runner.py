"""Package builder — runs the external build tool in a package directory."""

from __future__ import annotations

import logging
import subprocess
import time
from dataclasses import dataclass
from pathlib import Path

from harvester.config import DEFAULT_BUILD_COMMAND, DEFAULT_BUILD_TIMEOUT

logger = logging.getLogger(__name__)


@dataclass
class BuildResult:
    """Outcome of one package build."""

    package_dir: str
    exit_code: int = 0
    stdout: str = ""
    stderr: str = ""
    duration_ms: int = 0
    error: str = ""

    @property
    def passed(self) -> bool:
        return self.exit_code == 0 and not self.error


class PackageBuilder:
    """Runs ``potatoverse package build`` (or a configured command)."""

    def __init__(
        self,
        command: list[str] | None = None,
        timeout: int = DEFAULT_BUILD_TIMEOUT,
    ):
        self.command = list(command or DEFAULT_BUILD_COMMAND)
        self.timeout = timeout

    def build(self, package_dir: str | Path) -> BuildResult:
        """Build the package in *package_dir* and wait for it to finish.

        Never raises for tool failures: a missing executable or a timeout is
        reported as a failed result.
        """
        package_dir = str(package_dir)
        logger.debug("Running %s in %s", " ".join(self.command), package_dir)

        start = time.monotonic()
        try:
            proc = subprocess.run(
                self.command,
                cwd=package_dir,
                capture_output=True,
                text=True,
                timeout=self.timeout,
            )
        except subprocess.TimeoutExpired:
            return BuildResult(
                package_dir=package_dir,
                exit_code=-1,
                error=f"Build timed out after {self.timeout}s.",
                duration_ms=self.timeout * 1000,
            )
        except OSError as e:
            return BuildResult(package_dir=package_dir, exit_code=-1, error=str(e))

        duration = int((time.monotonic() - start) * 1000)
        return BuildResult(
            package_dir=package_dir,
            exit_code=proc.returncode,
            stdout=proc.stdout[-5000:],
            stderr=proc.stderr[-5000:],
            duration_ms=duration,
        )
