"""Atomic JSON writes for the harvest index and tag documents."""

from __future__ import annotations

import json
import os
import tempfile
from pathlib import Path
from typing import Any


def dump_json(data: Any) -> str:
    """Serialize with the fixed formatting used for every index file."""
    return json.dumps(data, indent=4, ensure_ascii=False) + "\n"


def atomic_write_json(path: Path, data: Any) -> None:
    """Write ``data`` to ``path`` so readers never see a partial file.

    The content goes to a temp file in the target directory, is fsynced, and
    then replaces the target in one rename.  On failure the temp file is
    removed and the previous file is left untouched.
    """
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    content = dump_json(data)

    fd, tmp_name = tempfile.mkstemp(prefix=f".{path.name}.", suffix=".tmp", dir=path.parent)
    tmp_path = Path(tmp_name)
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as f:
            f.write(content)
            f.flush()
            os.fsync(f.fileno())
        os.replace(tmp_path, path)
    except BaseException:
        if tmp_path.exists():
            tmp_path.unlink()
        raise
