"""Configuration loading and validation logic."""
from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Callable, Dict, List, Mapping, Sequence
import json
import os
import tomllib

import yaml

from .console import Console


CONFIG_FILENAME = "Smaug.toml"
SETTINGS_STEM = "config"
HOME_ENV_VAR = "SMAUG_HOME"

ConfigLoader = Callable[[Any], Mapping[str, Any]]


_FILE_LOADERS: Dict[str, ConfigLoader] = {
    ".toml": lambda stream: tomllib.load(stream),
    ".json": lambda stream: json.load(stream),
    ".yaml": lambda stream: yaml.safe_load(stream),
    ".yml": lambda stream: yaml.safe_load(stream),
}


def load_config_file(path: Path) -> Mapping[str, Any]:
    """Load and decode a configuration mapping from ``path``."""

    suffix = path.suffix.lower()
    loader = _FILE_LOADERS.get(suffix)
    if loader is None:
        raise ValueError(f"Unsupported configuration file extension: {suffix}")
    mode = "rb" if suffix == ".toml" else "r"
    kwargs: Dict[str, Any] = {}
    if mode == "r":
        kwargs["encoding"] = "utf-8"
    with path.open(mode, **kwargs) as handle:
        data = loader(handle)
    if data is None:
        data = {}
    if not isinstance(data, Mapping):
        raise TypeError(f"Configuration file '{path}' must contain a mapping at the root")
    return data


def _find_config_file(directory: Path, stem: str) -> Path | None:
    found: Path | None = None
    if not directory.is_dir():
        return None
    for path in sorted(directory.iterdir()):
        if not path.is_file() or path.stem != stem:
            continue
        if path.suffix.lower() not in _FILE_LOADERS:
            continue
        if found is not None:
            raise ValueError(
                f"Multiple configuration files found for '{stem}': '{found.name}' and '{path.name}'. "
                "Only one format per configuration entry is allowed."
            )
        found = path
    return found


def _normalize_string_list(value: Any, *, field_name: str) -> List[str]:
    if value is None:
        return []
    if isinstance(value, str):
        text = value.strip()
        return [text] if text else []
    if isinstance(value, Sequence):
        result: List[str] = []
        for item in value:
            if not isinstance(item, str):
                raise TypeError(f"{field_name} entries must be strings")
            text = item.strip()
            if text:
                result.append(text)
        return result
    raise TypeError(f"{field_name} must be a string or sequence of strings")


def _section(data: Mapping[str, Any], name: str, *, required: bool) -> Mapping[str, Any]:
    section = data.get(name)
    if section is None:
        if required:
            raise ValueError(f"[{name}] section is required in {CONFIG_FILENAME}")
        return {}
    if not isinstance(section, Mapping):
        raise TypeError(f"[{name}] must be a table")
    return section


@dataclass(frozen=True, slots=True)
class ProjectSettings:
    name: str
    title: str
    version: str = "0.1"
    authors: List[str] = field(default_factory=list)
    icon: str = "metadata/icon.png"
    compile_ruby: bool = False

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> "ProjectSettings":
        name = str(data.get("name") or "").strip()
        if not name:
            raise ValueError("project.name is required and cannot be empty")
        title = str(data.get("title") or name).strip()
        compile_ruby = data.get("compile_ruby", False)
        if not isinstance(compile_ruby, bool):
            raise TypeError("project.compile_ruby must be a boolean if specified")
        return cls(
            name=name,
            title=title,
            version=str(data.get("version", "0.1")),
            authors=_normalize_string_list(data.get("authors"), field_name="project.authors"),
            icon=str(data.get("icon") or "metadata/icon.png"),
            compile_ruby=compile_ruby,
        )


@dataclass(frozen=True, slots=True)
class DragonRubySettings:
    version: str
    edition: str = "standard"

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> "DragonRubySettings":
        version = data.get("version")
        if version is None or not str(version).strip():
            raise ValueError("dragonruby.version is required")
        edition = str(data.get("edition") or "standard").strip().lower()
        return cls(version=str(version).strip(), edition=edition)


@dataclass(frozen=True, slots=True)
class ItchSettings:
    url: str | None = None
    username: str | None = None

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> "ItchSettings":
        url = data.get("url")
        username = data.get("username")
        return cls(
            url=str(url) if url else None,
            username=str(username) if username else None,
        )


@dataclass(frozen=True, slots=True)
class SmaugConfig:
    """Resolved ``Smaug.toml`` for one project."""

    project: ProjectSettings
    dragonruby: DragonRubySettings
    itch: ItchSettings = field(default_factory=ItchSettings)

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> "SmaugConfig":
        return cls(
            project=ProjectSettings.from_mapping(_section(data, "project", required=True)),
            dragonruby=DragonRubySettings.from_mapping(_section(data, "dragonruby", required=True)),
            itch=ItchSettings.from_mapping(_section(data, "itch", required=False)),
        )


def load_project_config(path: Path) -> SmaugConfig:
    """Load ``Smaug.toml`` from ``path``.

    Raises ``OSError`` when the file cannot be read, ``tomllib.TOMLDecodeError``
    when it is not valid TOML and ``ValueError``/``TypeError`` when required
    fields are missing or malformed.
    """

    return SmaugConfig.from_mapping(load_config_file(path))


def default_home(env: Mapping[str, str] | None = None) -> Path:
    environ = os.environ if env is None else env
    override = environ.get(HOME_ENV_VAR)
    if override:
        return Path(override).expanduser()
    return Path.home() / ".smaug"


@dataclass(slots=True)
class UserSettings:
    home: Path
    log_level: str = "info"
    dragonruby_dir: Path | None = None

    @classmethod
    def from_mapping(cls, home: Path, data: Mapping[str, Any]) -> "UserSettings":
        global_section = data.get("global", {}) if isinstance(data, Mapping) else {}
        if not isinstance(global_section, Mapping):
            raise TypeError("[global] must be a table")
        raw_dir = global_section.get("dragonruby_dir")
        dragonruby_dir = None
        if raw_dir:
            dragonruby_dir = Path(str(raw_dir)).expanduser()
            if not dragonruby_dir.is_absolute():
                dragonruby_dir = home / dragonruby_dir
        log_level = str(global_section.get("log_level", "info")).lower()
        if log_level not in Console.LEVELS:
            raise ValueError(f"global.log_level must be one of: {', '.join(Console.LEVELS)}")
        return cls(
            home=home,
            log_level=log_level,
            dragonruby_dir=dragonruby_dir,
        )

    @classmethod
    def load(cls, home: Path) -> "UserSettings":
        path = _find_config_file(home, SETTINGS_STEM)
        if path is None:
            return cls(home=home)
        return cls.from_mapping(home, load_config_file(path))

    @property
    def installs_dir(self) -> Path:
        return self.dragonruby_dir or self.home / "dragonruby"
