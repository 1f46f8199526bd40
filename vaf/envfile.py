from __future__ import annotations

from pathlib import Path
from typing import Dict

from .errors import VafError


def parse_env_text(text: str) -> Dict[str, str]:
    """Parse KEY=VALUE lines. Blank lines, comments and lines without '=' are skipped."""
    variables: Dict[str, str] = {}
    for line in text.splitlines():
        line = line.strip()
        if not line or line.startswith("#") or "=" not in line:
            continue
        key, value = line.split("=", 1)
        key = key.strip()
        if key:
            variables[key] = value.strip()
    return variables


def parse_env_file(path: str | Path) -> Dict[str, str]:
    path = Path(path)
    if not path.is_file():
        raise VafError(f"File not found: {path}")
    return parse_env_text(path.read_text(encoding="utf-8", errors="replace"))
