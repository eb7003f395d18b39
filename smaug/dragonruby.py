"""Lookup of locally installed DragonRuby toolchains."""
from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import List
import platform
import re

from .config_loader import SmaugConfig


DEFAULT_EDITION = "standard"
_INSTALL_PATTERN = re.compile(r"^(?P<version>\d+(?:\.\d+)*)(?:-(?P<edition>[A-Za-z]+))?$")


def publish_executable_name(system: str | None = None) -> str:
    system_name = (system or platform.system()).lower()
    if system_name == "windows":
        return "dragonruby-publish.exe"
    return "dragonruby-publish"


def _version_key(version: str) -> tuple[int, ...]:
    return tuple(int(part) for part in version.split("."))


@dataclass(frozen=True, slots=True)
class DragonRuby:
    version: str
    edition: str
    install_dir: Path

    @property
    def publish_executable(self) -> Path:
        return self.install_dir / publish_executable_name()

    def __str__(self) -> str:
        return f"DragonRuby {self.version} ({self.edition})"


class DragonRubyRegistry:
    """Installed toolchains, one directory per version under ``root``.

    Directories are named ``<version>`` or ``<version>-<edition>``; anything
    else under ``root`` is ignored.
    """

    def __init__(self, root: Path) -> None:
        self.root = root

    def list_installed(self) -> List[DragonRuby]:
        if not self.root.is_dir():
            return []
        installs: List[DragonRuby] = []
        for path in self.root.iterdir():
            if not path.is_dir():
                continue
            match = _INSTALL_PATTERN.match(path.name)
            if match is None:
                continue
            installs.append(
                DragonRuby(
                    version=match.group("version"),
                    edition=(match.group("edition") or DEFAULT_EDITION).lower(),
                    install_dir=path.resolve(),
                )
            )
        installs.sort(key=lambda item: (_version_key(item.version), item.edition), reverse=True)
        return installs

    def find(self, version: str, edition: str | None = None) -> DragonRuby | None:
        matches = [item for item in self.list_installed() if item.version == version]
        if edition:
            wanted = edition.lower()
            exact = [item for item in matches if item.edition == wanted]
            # Any edition can publish a standard project.
            if exact or wanted != DEFAULT_EDITION:
                matches = exact
        return matches[0] if matches else None

    def configured_version(self, config: SmaugConfig) -> DragonRuby | None:
        return self.find(config.dragonruby.version, config.dragonruby.edition)
