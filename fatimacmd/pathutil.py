"""Small filesystem and URL helpers."""

from __future__ import annotations

import os


def ensure_directory(path: str, force_create: bool) -> None:
    """Create ``path`` when missing and ``force_create`` is set.

    Raises FileExistsError when ``path`` exists but is not a directory.
    """
    if not os.path.exists(path):
        if force_create:
            os.makedirs(path, mode=0o755, exist_ok=True)
        return
    if not os.path.isdir(path):
        raise FileExistsError(f"{path} path exist as file")


def check_file_exist(path: str) -> None:
    """Raise unless ``path`` exists and is a regular (non-directory) file."""
    try:
        st = os.stat(path)
    except FileNotFoundError as exc:
        raise FileNotFoundError(f"not exist file : {path}") from exc
    except OSError as exc:
        raise OSError(f"error checking : {path} ({exc})") from exc

    if os.path.isdir(path) or (st.st_mode & 0o170000) == 0o040000:
        raise IsADirectoryError("exist but it is directory")


def remove_last_slash(url: str) -> str:
    """Strip every trailing slash from ``url``."""
    return url.rstrip("/")