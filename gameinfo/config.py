from __future__ import annotations

import json
import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

from gameinfo.tools import get_program_folder

logger = logging.getLogger(__name__)

ENV_LOG_LEVEL = "GAMEINFO_LOG_LEVEL"
ENV_CONFIG = "GAMEINFO_CONFIG"

DEFAULT_EXPORT_FORMATS = {
    "image": "img-png",
    "tileset": "tls-png",
    "music": "mus-imf-idsoftware-type0",
}


class ConfigError(ValueError):
    ...


@dataclass
class Config:
    """
    User settings kept in `config.json` in the program folder

        logLevel:     Name of the logging level the command line starts with
        plugins:      Modules imported at startup so they can register formats
        exportFormat: Item kind -> format id used when export is given no -t
    """
    logLevel: str = "WARNING"
    plugins: list[str] = field(default_factory=list)
    exportFormat: dict[str, str] = field(default_factory=lambda: dict(DEFAULT_EXPORT_FORMATS))

    @staticmethod
    def default_path() -> Path:
        override = os.getenv(ENV_CONFIG)
        if override:
            return Path(override).expanduser()
        return get_program_folder("gameinfo") / "config.json"

    @classmethod
    def load(cls, path: Optional[Path] = None) -> Config:
        path = path or cls.default_path()
        config = cls()

        if path.is_file():
            logger.debug("Loading config from %s", path)
            try:
                with path.open("r") as f:
                    data = json.load(f)
            except json.JSONDecodeError as e:
                raise ConfigError(f"{path} is not valid JSON: {e}") from e
            if not isinstance(data, dict):
                raise ConfigError(f"{path} must hold a JSON object")

            config.logLevel = str(data.get("logLevel", config.logLevel))
            config.plugins = list(data.get("plugins", config.plugins))
            config.exportFormat.update(data.get("exportFormat", {}))

        level = os.getenv(ENV_LOG_LEVEL)
        if level:
            config.logLevel = level
        return config

    def save(self, path: Optional[Path] = None) -> Path:
        path = path or self.default_path()
        path.parent.mkdir(parents=True, exist_ok=True)
        with path.open("w") as f:
            json.dump({"logLevel": self.logLevel,
                       "plugins": self.plugins,
                       "exportFormat": self.exportFormat}, f, indent=4)
        return path

    @property
    def level(self) -> int:
        level = logging.getLevelName(self.logLevel.upper())
        if not isinstance(level, int):
            raise ConfigError(f"Unknown log level \"{self.logLevel}\"")
        return level

    def apply_logging(self, debug: bool = False):
        logging.basicConfig(
            level=logging.DEBUG if debug else self.level,
            format="%(levelname)s:%(name)s: %(message)s",
        )
