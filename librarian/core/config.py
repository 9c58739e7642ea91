"""
Process-wide configuration persisted as JSON in the user's config directory.
"""

from __future__ import annotations

import dataclasses
import json
import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv

from .errors import ConfigError

# Load .env file if it exists
_env_file = Path.cwd() / ".env"
if _env_file.exists():
    load_dotenv(_env_file)

logger = logging.getLogger(__name__)

CONFIG_FILENAME = "config.json"


def config_dir() -> Path:
    """Directory holding config.json (LIBRARIAN_CONFIG_DIR overrides)."""
    override = os.getenv("LIBRARIAN_CONFIG_DIR")
    if override:
        return Path(override).expanduser()
    base = os.getenv("XDG_CONFIG_HOME")
    root = Path(base).expanduser() if base else Path.home() / ".config"
    return root / "librarian"


def default_data_dir() -> Path:
    """Directory holding bucket stores (LIBRARIAN_DATA_DIR overrides)."""
    override = os.getenv("LIBRARIAN_DATA_DIR")
    if override:
        return Path(override).expanduser()
    base = os.getenv("XDG_DATA_HOME")
    root = Path(base).expanduser() if base else Path.home() / ".local" / "share"
    return root / "librarian"


@dataclass
class AppConfig:
    """User settings: API key, preferred model, data location and current bucket."""

    groq_api_key: Optional[str] = None
    default_model: Optional[str] = None
    data_dir: Optional[str] = None
    current_bucket: Optional[str] = None

    @classmethod
    def path(cls) -> Path:
        return config_dir() / CONFIG_FILENAME

    @classmethod
    def load(cls, path: Path | None = None) -> "AppConfig":
        """Load config from file, or return defaults if the file does not exist."""
        path = path or cls.path()
        if not path.exists():
            return cls()
        try:
            raw = json.loads(path.read_text(encoding="utf-8"))
        except json.JSONDecodeError as e:
            raise ConfigError(f"Failed to parse config file {path}: {e}") from e
        if not isinstance(raw, dict):
            raise ConfigError(f"Config file {path} must contain a JSON object")
        known = {f.name for f in dataclasses.fields(cls)}
        unknown = set(raw) - known
        if unknown:
            logger.warning("Ignoring unknown config keys: %s", ", ".join(sorted(unknown)))
        return cls(**{k: v for k, v in raw.items() if k in known})

    def save(self, path: Path | None = None) -> None:
        """Write config with owner-only permissions, since it may hold an API key."""
        path = path or self.path()
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(json.dumps(dataclasses.asdict(self), indent=2), encoding="utf-8")
        if os.name == "posix":
            os.chmod(path, 0o600)

    def get_api_key(self) -> Optional[str]:
        """Configured Groq API key, falling back to GROQ_API_KEY."""
        if self.groq_api_key:
            return self.groq_api_key
        return os.getenv("GROQ_API_KEY") or None

    def has_api_key(self) -> bool:
        return self.get_api_key() is not None

    def resolved_data_dir(self) -> Path:
        if self.data_dir:
            return Path(self.data_dir).expanduser()
        return default_data_dir()
