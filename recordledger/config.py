"""
Node configuration, loaded from YAML.

    node:
      key_path: keys/node.pem          # generated on first start if missing
      ledger_path: data/ledger.jsonl   # omit for an in-memory log
      state_path: data/state.json      # omit to keep state in memory only
    logging:
      level: INFO
      json: false
    programs:
      - id: auction.aleo
        kind: auction
        auctioneer: aleo1...
      - id: token.aleo
        kind: token
        admin: aleo1...                # optional

Relative paths are resolved against the directory of the config file.
"""

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional

import yaml

from recordledger.core.exceptions import ConfigError


_LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


@dataclass
class ProgramConfig:
    program_id: str
    kind: str
    params: Dict[str, Any] = field(default_factory=dict)


@dataclass
class NodeConfig:
    key_path: Optional[Path] = None
    ledger_path: Optional[Path] = None
    state_path: Optional[Path] = None
    log_level: str = "INFO"
    log_json: bool = False
    programs: List[ProgramConfig] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: Dict[str, Any], base_dir: Optional[Path] = None) -> "NodeConfig":
        if not isinstance(data, dict):
            raise ConfigError("config root must be a mapping")
        base_dir = Path(base_dir) if base_dir else Path.cwd()

        node = data.get("node") or {}
        logging_section = data.get("logging") or {}

        level = str(logging_section.get("level", "INFO")).upper()
        if level not in _LOG_LEVELS:
            raise ConfigError(f"invalid log level '{level}'")

        programs = []
        for position, entry in enumerate(data.get("programs") or []):
            if not isinstance(entry, dict):
                raise ConfigError("program entry must be a mapping", {"position": position})
            entry = dict(entry)
            try:
                program_id = entry.pop("id")
                kind = entry.pop("kind")
            except KeyError as exc:
                raise ConfigError(
                    f"program entry is missing {exc.args[0]!r}",
                    {"position": position},
                ) from None
            programs.append(ProgramConfig(program_id=program_id, kind=kind, params=entry))

        return cls(
            key_path=_resolve(node.get("key_path"), base_dir),
            ledger_path=_resolve(node.get("ledger_path"), base_dir),
            state_path=_resolve(node.get("state_path"), base_dir),
            log_level=level,
            log_json=bool(logging_section.get("json", False)),
            programs=programs,
        )

    @classmethod
    def from_yaml(cls, config_file: Path) -> "NodeConfig":
        """Load configuration from a YAML file."""
        config_file = Path(config_file)
        try:
            with open(config_file, "r", encoding="utf-8") as f:
                data = yaml.safe_load(f) or {}
        except OSError as exc:
            raise ConfigError(f"cannot read config: {exc}") from exc
        except yaml.YAMLError as exc:
            raise ConfigError(f"invalid YAML in {config_file}: {exc}") from exc
        return cls.from_dict(data, base_dir=config_file.parent)


def _resolve(value: Optional[str], base_dir: Path) -> Optional[Path]:
    if value is None:
        return None
    path = Path(value).expanduser()
    return path if path.is_absolute() else base_dir / path


def load_config(path: Path) -> NodeConfig:
    return NodeConfig.from_yaml(path)
