"""Filesystem helpers shared by the feature and lock managers."""

import os
import re
import tempfile
from pathlib import Path
from typing import Union

_SLUG_PATTERN = re.compile(r"[^a-z0-9]+")


def slugify(text: str) -> str:
    """Convert a title to the kebab-case used in feature filenames."""
    slug = _SLUG_PATTERN.sub("-", text.lower()).strip("-")
    return slug or "feature"


def write_file_atomic(path: Path, data: Union[str, bytes], mode: int = 0o644) -> None:
    """Write ``data`` to ``path`` so readers never see a partial file.

    The content goes to a temporary file in the destination directory, is
    flushed to disk, given ``mode`` and then renamed over ``path``. The
    temporary file is removed if any step fails.
    """
    if isinstance(data, str):
        data = data.encode("utf-8")

    path.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp_name = tempfile.mkstemp(dir=str(path.parent), prefix=f".{path.name}.", suffix=".tmp")
    try:
        with os.fdopen(fd, "wb") as handle:
            handle.write(data)
            handle.flush()
            os.fsync(handle.fileno())
        os.chmod(tmp_name, mode)
        os.replace(tmp_name, path)
    except BaseException:
        try:
            os.unlink(tmp_name)
        except OSError:
            pass
        raise
