"""Reading and writing the user's gator configuration file."""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

CONFIG_FILE_NAME = ".gatorconfig.json"

_DB_URL_KEY = "db_url"
_USER_KEY = "current_user_name"

_JSON_ESCAPES = {
    "<": "\\u003c",
    ">": "\\u003e",
    "&": "\\u0026",
    "\u2028": "\\u2028",
    "\u2029": "\\u2029",
}


def config_file_path() -> Path:
    """Return the location of the configuration file in the user's home directory."""
    return Path.home() / CONFIG_FILE_NAME


def _encode(payload: dict[str, str]) -> str:
    text = json.dumps(payload, separators=(",", ":"), ensure_ascii=False)
    for char, escape in _JSON_ESCAPES.items():
        text = text.replace(char, escape)
    return text + "\n"


def _string_field(data: dict[str, Any], key: str) -> str:
    value = data.get(key)
    if value is None:
        return ""
    if not isinstance(value, str):
        raise ValueError(f"config field {key!r} must be a string, got {type(value).__name__}")
    return value


@dataclass
class Config:
    """Database location and the name of the user currently logged in."""

    db_url: str = ""
    username: str = ""
    path: Path | None = field(default=None, compare=False, repr=False)

    def set_user(self, user_name: str) -> None:
        """Make ``user_name`` the current user and save the configuration."""
        self.username = user_name
        self.write()

    def write(self) -> None:
        """Save the configuration to its file, replacing what was there."""
        target = Path(self.path) if self.path is not None else config_file_path()
        payload = {_DB_URL_KEY: self.db_url, _USER_KEY: self.username}
        target.write_text(_encode(payload), encoding="utf-8")


def read(path: str | Path | None = None) -> Config:
    """Load the configuration from ``path``, or from the default file when not given."""
    target = Path(path) if path is not None else config_file_path()
    text = target.read_text(encoding="utf-8")
    try:
        data, _ = json.JSONDecoder().raw_decode(text.lstrip())
    except json.JSONDecodeError as exc:
        raise ValueError(f"invalid config file {target}: {exc}") from exc
    if data is None:
        data = {}
    if not isinstance(data, dict):
        raise ValueError(f"invalid config file {target}: expected a JSON object")
    return Config(
        db_url=_string_field(data, _DB_URL_KEY),
        username=_string_field(data, _USER_KEY),
        path=target,
    )