"""Path and filename helpers."""

import json
import os
import re
import tempfile
from pathlib import Path
from typing import Any

_UNSAFE_CHARS = re.compile(r'[<>:"/\\|?*\x00-\x1f]')


def ensure_dir(path: Path) -> Path:
    """Create *path* (and parents) if missing and return it."""
    path.mkdir(parents=True, exist_ok=True)
    return path


def safe_filename(name: str) -> str:
    """Replace characters that are not allowed in file names."""
    return _UNSAFE_CHARS.sub("_", name).strip() or "_"


def write_json_atomic(path: Path, data: dict[str, Any]) -> None:
    """Write *data* as JSON to *path* via a temp file and rename.

    Readers never observe a half-written record.
    """
    ensure_dir(path.parent)
    fd, tmp = tempfile.mkstemp(dir=path.parent, prefix=f".{path.name}.", suffix=".tmp")
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as f:
            json.dump(data, f, ensure_ascii=False, indent=2)
        os.replace(tmp, path)
    except BaseException:
        Path(tmp).unlink(missing_ok=True)
        raise
