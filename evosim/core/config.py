from __future__ import annotations

import json
import math
from dataclasses import dataclass, asdict, field
from pathlib import Path
from typing import Any, Dict, Iterable, Optional, Tuple


@dataclass
class EngineConfig:
    max_turns: Optional[float] = None  # None: no limit
    reiterations: int = 4
    recombination: bool = True
    hidden_layers: int = 1
    duration_noise: float = 0.001
    seed: Optional[int] = None
    max_workers: Optional[int] = None

    def turn_limit(self) -> float:
        return math.inf if self.max_turns is None else float(self.max_turns)


@dataclass
class GeneticsConfig:
    mutation_rate_per_gene: float = 0.40 / 20.0
    mutation_intensity: float = 0.10
    genome_size: int = 4


@dataclass
class BushConfig:
    fly_quantity: int = 80
    wasp_quantity: int = 80
    cluster_quantity: int = 200
    fruits_per_cluster: int = 50
    max_age: float = 1200.0


@dataclass
class LoggingConfig:
    level: str = "INFO"
    log_dir: Optional[str] = None
    enable_colors: bool = True


@dataclass
class SimulationConfig:
    engine: EngineConfig = field(default_factory=EngineConfig)
    genetics: GeneticsConfig = field(default_factory=GeneticsConfig)
    bush: BushConfig = field(default_factory=BushConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    def update_from_mapping(self, data: Dict[str, Any]) -> None:
        """Merge settings from a nested mapping into the config."""
        for section_name, section_values in data.items():
            section = getattr(self, section_name, None)
            if section is None or not isinstance(section_values, dict):
                continue
            for key, value in section_values.items():
                if hasattr(section, key):
                    setattr(section, key, value)

    def iter_sections(self) -> Iterable[Tuple[str, Any]]:
        yield "engine", self.engine
        yield "genetics", self.genetics
        yield "bush", self.bush
        yield "logging", self.logging


def load_config(path: Path) -> SimulationConfig:
    """Read a JSON config file on top of the defaults."""
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(path)
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except json.JSONDecodeError as exc:
        raise ValueError(f"Invalid config file {path}: {exc}") from exc
    if not isinstance(data, dict):
        raise ValueError(f"Config file {path} must contain a JSON object")
    config = SimulationConfig()
    config.update_from_mapping(data)
    return config

