"""Generation of DragonRuby's ``game_metadata.txt``."""
from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Dict

from .config_loader import SmaugConfig


METADATA_DIRNAME = "metadata"
METADATA_FILENAME = "game_metadata.txt"


@dataclass(frozen=True, slots=True)
class GameMetadata:
    dev_id: str
    dev_title: str
    game_id: str
    game_title: str
    version: str
    icon: str
    compile_ruby: bool = False

    @classmethod
    def from_config(cls, config: SmaugConfig) -> "GameMetadata":
        project = config.project
        return cls(
            dev_id=config.itch.username or "",
            dev_title=", ".join(project.authors),
            game_id=config.itch.url or project.name,
            game_title=project.title,
            version=project.version,
            icon=project.icon,
            compile_ruby=project.compile_ruby,
        )

    def to_mapping(self) -> Dict[str, str]:
        return {
            "devid": self.dev_id,
            "devtitle": self.dev_title,
            "gameid": self.game_id,
            "gametitle": self.game_title,
            "version": self.version,
            "icon": self.icon,
            "compile_ruby": "true" if self.compile_ruby else "false",
        }

    def render(self) -> str:
        return "".join(f"{key}={value}\n" for key, value in self.to_mapping().items())

    def write(self, path: Path) -> None:
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(self.render(), encoding="utf-8")


def metadata_path(project_root: Path) -> Path:
    return project_root / METADATA_DIRNAME / METADATA_FILENAME
