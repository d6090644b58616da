"""Reading and writing the user's gator configuration file."""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from pathlib import Path

CONFIG_FILE_NAME = ".gatorconfig.json"

_JSON_KEYS = {"db_url": "db_url", "current_user_name": "current_user_name"}


@dataclass
class Config:
    """Connection string and current user, stored as JSON in the home directory."""

    db_url: str = ""
    current_user_name: str = ""
    path: Path | None = field(default=None, compare=False, repr=False)

    def set_user(self, user_name: str) -> None:
        """Make ``user_name`` the current user and save the configuration."""
        self.current_user_name = user_name
        self.write()

    def write(self) -> None:
        """Save the configuration, replacing the file's previous contents."""
        target = self.path if self.path is not None else config_file_path()
        payload = {"db_url": self.db_url, "current_user_name": self.current_user_name}
        text = json.dumps(payload, separators=(",", ":"), ensure_ascii=False) + "\n"
        Path(target).write_text(text, encoding="utf-8")


def config_file_path() -> Path:
    """Return the location of the configuration file in the home directory."""
    return Path.home() / CONFIG_FILE_NAME


def _match_key(key: str) -> str | None:
    if key in _JSON_KEYS:
        return _JSON_KEYS[key]
    folded = key.casefold()
    for json_key, attribute in _JSON_KEYS.items():
        if json_key.casefold() == folded:
            return attribute
    return None


def read(path: str | Path | None = None) -> Config:
    """Load the configuration from ``path``, or from the home directory by default."""
    source = Path(path) if path is not None else config_file_path()
    with source.open(encoding="utf-8") as handle:
        data = json.load(handle)
    if not isinstance(data, dict):
        raise ValueError("configuration must be a JSON object")

    config = Config(path=source)
    for key, value in data.items():
        attribute = _match_key(key)
        if attribute is None or value is None:
            continue
        if not isinstance(value, str):
            raise ValueError(f"configuration field {key!r} must be a string")
        setattr(config, attribute, value)
    return config