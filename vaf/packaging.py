"""
Archive creation with ignore-pattern support.

Patterns follow .gitignore conventions closely enough for deploy packages:
a pattern without a slash matches any path component (``*.log``,
``node_modules``), a pattern with a slash is anchored at the root
(``dist/**``), and a trailing ``/**`` or ``/`` means the directory and
everything below it.
"""

from __future__ import annotations

import fnmatch
import hashlib
import os
import zipfile
from pathlib import Path
from typing import Iterable, List, Optional

IGNORE_FILE = ".vafignore"

DEFAULT_IGNORE_PATTERNS = [
    "node_modules/**",
    ".git/**",
    "*.log",
    ".env",
    ".DS_Store",
]

# Temporary archives and staging files written by the CLI itself
TRANSIENT_PREFIX = ".vaf-"
TRANSIENT_PATTERNS = [TRANSIENT_PREFIX + "*"]


def read_ignore_file(directory: str | Path) -> List[str]:
    """
    Read exclusion patterns from .vafignore.

    Blank lines and lines starting with ``#`` are skipped. Without an ignore
    file the default pattern set is returned.
    """
    ignore_file = Path(directory) / IGNORE_FILE
    if not ignore_file.exists():
        return list(DEFAULT_IGNORE_PATTERNS)

    content = ignore_file.read_text(encoding="utf-8", errors="replace")
    patterns = []
    for line in content.splitlines():
        line = line.strip()
        if not line or line.startswith("#"):
            continue
        patterns.append(line)
    return patterns


def _normalize(pattern: str) -> str:
    pat = pattern.strip()
    if pat.startswith("./"):
        pat = pat[2:]
    pat = pat.lstrip("/")
    while pat.startswith("**/"):
        pat = pat[3:]
    if pat.endswith("/**"):
        pat = pat[:-3]
    return pat.rstrip("/")


def is_excluded(rel_path: str, patterns: Iterable[str]) -> bool:
    """Check a slash-separated path relative to the archive root against patterns."""
    parts = [p for p in rel_path.replace(os.sep, "/").split("/") if p]
    if not parts:
        return False
    for pattern in patterns:
        pat = _normalize(pattern)
        if not pat:
            continue
        if "/" in pat:
            for i in range(1, len(parts) + 1):
                if fnmatch.fnmatchcase("/".join(parts[:i]), pat):
                    return True
        elif any(fnmatch.fnmatchcase(part, pat) for part in parts):
            return True
    return False


def without_directory(patterns: Iterable[str], directory: str) -> List[str]:
    """Drop every pattern that mentions a directory name."""
    return [p for p in patterns if directory not in p]


def pack(
    directory: str | Path,
    excludes: Iterable[str],
    output: str | Path,
    prefix: str = "",
) -> Path:
    """
    Zip a directory.

    Args:
        directory: Directory to archive
        excludes: Exclusion patterns, matched against paths relative to directory
        output: Archive path to write
        prefix: Path prefix for every entry inside the archive

    Returns:
        Path of the written archive

    Raises:
        OSError: If the directory cannot be read or the archive cannot be written
    """
    root = Path(directory).resolve()
    output_path = Path(output).resolve()
    patterns = list(excludes)
    if not root.is_dir():
        raise FileNotFoundError(f"{root} is not a directory")

    with zipfile.ZipFile(output_path, "w", zipfile.ZIP_DEFLATED, compresslevel=9) as zf:
        for dirpath, dirnames, filenames in os.walk(root):
            rel_dir = Path(dirpath).relative_to(root).as_posix()
            rel_dir = "" if rel_dir == "." else rel_dir + "/"
            # prune excluded dirs
            dirnames[:] = sorted(d for d in dirnames if not is_excluded(rel_dir + d, patterns))
            for filename in sorted(filenames):
                full = Path(dirpath) / filename
                if full.resolve() == output_path or not full.is_file():
                    continue
                rel = rel_dir + filename
                if is_excluded(rel, patterns):
                    continue
                zf.write(full, prefix + rel)
    return output_path


def archive_entries(archive: str | Path) -> List[str]:
    with zipfile.ZipFile(archive, "r") as zf:
        return zf.namelist()


def hash_file(path: str | Path) -> str:
    h = hashlib.sha256()
    with open(path, "rb") as f:
        while True:
            chunk = f.read(65536)
            if not chunk:
                break
            h.update(chunk)
    return h.hexdigest()[:12]


def format_bytes(size: Optional[int]) -> str:
    if not size:
        return "0 Bytes"
    units = ["Bytes", "KB", "MB", "GB"]
    value = float(size)
    i = 0
    while value >= 1024 and i < len(units) - 1:
        value /= 1024
        i += 1
    return f"{round(value, 2):g} {units[i]}"
