"""
CLI settings: API URL and auth token.

Settings are read once when the CLI starts and written back only when a
command changes them. The object is passed to whatever needs it.
"""

import json
import logging
import os
from pathlib import Path
from typing import Any, Dict, Optional

from .errors import VafError

logger = logging.getLogger(__name__)

DEFAULT_API_URL = "http://localhost:3000"


def get_vaf_home() -> Path:
    """
    Get the VAF home directory.

    Returns:
        Path: VAF home directory ($VAF_HOME or ~/.vaf)
    """
    vaf_home = os.environ.get("VAF_HOME")
    if vaf_home:
        return Path(vaf_home).expanduser().resolve()
    return Path.home() / ".vaf"


class Settings:
    """Persistent CLI settings stored as JSON."""

    def __init__(self, path: Optional[Path] = None, data: Optional[Dict[str, Any]] = None):
        self.path = path or get_vaf_home() / "config.json"
        self._data: Dict[str, Any] = dict(data) if data else {"api_url": DEFAULT_API_URL}

    @classmethod
    def load(cls, path: Optional[Path] = None) -> "Settings":
        """
        Load settings from disk.

        A missing or unreadable file yields defaults.
        """
        settings = cls(path)
        if settings.path.exists():
            try:
                with open(settings.path, "r") as f:
                    data = json.load(f)
                if isinstance(data, dict):
                    settings._data.update(data)
            except (OSError, json.JSONDecodeError) as e:
                logger.warning(f"Ignoring unreadable settings file {settings.path}: {e}")
        return settings

    def save(self) -> None:
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            with open(self.path, "w") as f:
                json.dump(self._data, f, indent=2)
        except OSError as e:
            raise VafError(f"Failed to save config: {e}")

    def as_dict(self) -> Dict[str, Any]:
        return dict(self._data)

    @property
    def api_url(self) -> str:
        return os.environ.get("VAF_API_URL") or self._data.get("api_url") or DEFAULT_API_URL

    @property
    def token(self) -> Optional[str]:
        return self._data.get("token")

    def set_api_url(self, url: str) -> None:
        self._data["api_url"] = url.rstrip("/")
        self.save()

    def set_token(self, token: str) -> None:
        self._data["token"] = token
        self.save()

    def clear_token(self) -> None:
        self._data.pop("token", None)
        self.save()
