"""
hz_config.py

Game configuration: progression pacing, attempts per round, deal size and
where the game data and saved games live. Values come from defaults, then an
optional YAML file, then explicit overrides (for example CLI flags).
"""

import logging
from dataclasses import asdict, dataclass, fields
from pathlib import Path
from typing import Any, Dict, Optional

import yaml

logger = logging.getLogger(__name__)

CONFIG_FILE_NAME = "hanzi_forge.yaml"


@dataclass
class GameConfig:
    """
    Settings shared by every round of a game.
    """
    rounds_per_level: int = 2     # rounds played before moving up a level
    max_level: int = 7            # levels stop increasing here
    max_attempts: int = 3         # wrong submissions allowed per round
    decoy_count: int = 2          # extra words whose parts are mixed into the pool
    data_dir: str = "game_data"
    games_dir: str = ".games"
    seed: Optional[int] = None

    def __post_init__(self):
        # YAML hands back whatever the file says; bool is an int subclass.
        for name in ('rounds_per_level', 'max_level', 'max_attempts', 'decoy_count', 'seed'):
            value = getattr(self, name)
            if value is None and name == 'seed':
                continue
            if isinstance(value, bool) or not isinstance(value, int):
                raise ValueError(f"'{name}' must be an integer, got {value!r}")
        for name in ('data_dir', 'games_dir'):
            if not isinstance(getattr(self, name), str):
                raise ValueError(f"'{name}' must be a path string, got {getattr(self, name)!r}")
        for name in ('rounds_per_level', 'max_level', 'max_attempts'):
            if getattr(self, name) < 1:
                raise ValueError(f"'{name}' must be at least 1, got {getattr(self, name)}")
        if self.decoy_count < 0:
            raise ValueError(f"'decoy_count' must not be negative, got {self.decoy_count}")

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "GameConfig":
        known = {f.name for f in fields(cls)}
        unknown = sorted(set(data) - known)
        if unknown:
            logger.warning("Ignoring unknown config keys: %s", ", ".join(unknown))
        return cls(**{key: value for key, value in data.items() if key in known})

    def with_overrides(self, **overrides: Any) -> "GameConfig":
        """Returns a copy with every non-None override applied."""
        data = self.to_dict()
        data.update({key: value for key, value in overrides.items() if value is not None})
        return GameConfig.from_dict(data)


def load_config(path: Optional[Path] = None) -> GameConfig:
    """
    Loads the configuration from a YAML file.

    Args:
        path (Optional[Path]): The file to read. If None, `hanzi_forge.yaml` in
            the working directory is used when present.

    Returns:
        GameConfig: The loaded configuration, or the defaults when no file
        exists.
    """
    if path is None:
        path = Path(CONFIG_FILE_NAME)
        if not path.exists():
            return GameConfig()
    path = Path(path)
    with path.open(encoding='utf-8') as handle:
        try:
            data = yaml.safe_load(handle) or {}
        except yaml.YAMLError as e:
            raise ValueError(f"Config file {path} is not valid YAML: {e}") from e
    if not isinstance(data, dict):
        raise ValueError(f"Config file {path} must contain a mapping, got {type(data).__name__}")
    logger.debug("Loaded config from %s", path)
    return GameConfig.from_dict(data)


def save_config(config: GameConfig, path: Path) -> None:
    path = Path(path)
    with path.open('w', encoding='utf-8') as handle:
        yaml.safe_dump(config.to_dict(), handle, sort_keys=False, allow_unicode=True)
