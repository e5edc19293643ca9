from __future__ import annotations

import json
from dataclasses import asdict, dataclass, field
from pathlib import Path
from typing import Any, Dict, Optional

from loguru import logger

DEFAULT_STATE_FILE = ".evosim_state.json"


@dataclass
class AppState:
    """Host settings remembered between runs."""

    parameters: Dict[str, float] = field(default_factory=dict)
    config_file: Optional[str] = None
    csv_file: Optional[str] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "AppState":
        parameters = data.get("parameters") or {}
        return cls(
            parameters={str(name): float(value) for name, value in dict(parameters).items()},
            config_file=data.get("config_file"),
            csv_file=data.get("csv_file"),
        )


class StateManager:
    """
    Keeps parameter values and the last config and CSV paths in a JSON file.
    An unreadable file is treated as empty; a failed write only logs.
    """

    def __init__(self, state_path: Optional[Path] = None) -> None:
        self.state_path = Path(state_path) if state_path is not None else Path.cwd() / DEFAULT_STATE_FILE
        self.state = self._read()

    def _read(self) -> AppState:
        if not self.state_path.exists():
            return AppState()
        try:
            return AppState.from_dict(json.loads(self.state_path.read_text(encoding="utf-8")))
        except (OSError, ValueError, TypeError, AttributeError) as exc:
            logger.warning("ignoring unreadable state file {}: {}", self.state_path, exc)
            return AppState()

    def save(self) -> None:
        try:
            self.state_path.write_text(json.dumps(asdict(self.state), indent=2), encoding="utf-8")
        except OSError as exc:
            logger.warning("could not write state file {}: {}", self.state_path, exc)

    def _update(self, **changes: Any) -> None:
        for name, value in changes.items():
            setattr(self.state, name, value)
        self.save()

    def set_parameters(self, values: Dict[str, float]) -> None:
        self._update(parameters=dict(values))

    def get_parameters(self) -> Dict[str, float]:
        return dict(self.state.parameters)

    def set_config_file(self, path: Path) -> None:
        self._update(config_file=str(path))

    def get_config_file(self) -> Optional[Path]:
        return Path(self.state.config_file) if self.state.config_file else None

    def set_csv_file(self, path: Path) -> None:
        self._update(csv_file=str(path))

    def get_csv_file(self) -> Optional[Path]:
        return Path(self.state.csv_file) if self.state.csv_file else None
