# ============================================================================
# FILE OUTPUT
# ============================================================================
# EPOCH: 1 - WORKFLOW COMPILATION
# STATUS: Core - Atomic file replacement
# PURPOSE: Write lock files and the action cache without partial contents
# CREATED: 19 OCT 2026
# ============================================================================
"""
File Output

atomic_write_text() writes to a temp file in the target directory and
renames it over the target with os.replace, so a concurrent reader sees
either the old file or the new one.
"""

import os
import tempfile
from pathlib import Path
from typing import Union


def atomic_write_text(path: Union[str, Path], text: str) -> Path:
    """
    Replace `path` with `text` (UTF-8), creating parent directories.

    Raises:
        OSError: the directory is not writable; no temp file is left behind
    """
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp_name = tempfile.mkstemp(prefix=f".{path.name}.", suffix=".tmp", dir=str(path.parent))
    try:
        with os.fdopen(fd, "w", encoding="utf-8", newline="\n") as f:
            f.write(text)
        os.replace(tmp_name, path)
    except OSError:
        if os.path.exists(tmp_name):
            os.unlink(tmp_name)
        raise
    return path


__all__ = ["atomic_write_text"]
