from __future__ import annotations

import itertools
import threading
from dataclasses import dataclass
from typing import Dict, Iterator, List, Mapping, Tuple


@dataclass
class WorldParameter:
    """A host-adjustable value; ``dirty`` marks changes not yet applied to the world."""

    value: float
    min_value: float
    max_value: float
    step: float = 1.0
    param_id: int = 0
    dirty: bool = False

    def clamp(self, value: float) -> float:
        return min(self.max_value, max(self.min_value, value))


class ParameterSet:
    """
    Named parameters a host may change at any time. Changes only reach the
    world when the owner applies the dirty ones between two generations.
    """

    def __init__(self) -> None:
        self._parameters: Dict[str, WorldParameter] = {}
        self._ids = itertools.count()
        self._lock = threading.Lock()

    def create(self, name: str, value: float, min_value: float, max_value: float, step: float = 1.0) -> int:
        parameter = WorldParameter(
            value=0.0,
            min_value=min_value,
            max_value=max_value,
            step=step,
            param_id=next(self._ids),
        )
        parameter.value = parameter.clamp(value)
        self._parameters[name] = parameter
        return parameter.param_id

    def __contains__(self, name: str) -> bool:
        return name in self._parameters

    def __iter__(self) -> Iterator[str]:
        return iter(self._parameters)

    def __len__(self) -> int:
        return len(self._parameters)

    def get(self, name: str) -> WorldParameter:
        try:
            return self._parameters[name]
        except KeyError:
            raise KeyError(f"Unknown parameter: {name}") from None

    def get_value(self, name: str) -> float:
        return self.get(name).value

    def set_value(self, name: str, value: float) -> float:
        """Clamp and store ``value``; returns what was stored."""
        parameter = self.get(name)
        with self._lock:
            old = parameter.value
            parameter.value = parameter.clamp(float(value))
            if old != parameter.value:
                parameter.dirty = True
            return parameter.value

    def dirty_items(self) -> List[Tuple[str, WorldParameter]]:
        return [(name, parameter) for name, parameter in self._parameters.items() if parameter.dirty]

    def take_dirty(self) -> List[Tuple[str, float]]:
        """Clear every dirty flag and return the values they guarded.

        A write that lands after this call dirties its parameter again, so it
        is picked up by the next call instead of being lost.
        """
        with self._lock:
            taken = []
            for name, parameter in self._parameters.items():
                if parameter.dirty:
                    parameter.dirty = False
                    taken.append((name, parameter.value))
            return taken

    def mark_clean(self, name: str) -> None:
        parameter = self.get(name)
        with self._lock:
            parameter.dirty = False

    def values(self) -> Dict[str, float]:
        return {name: parameter.value for name, parameter in self._parameters.items()}

    def update_values(self, values: Mapping[str, float]) -> None:
        for name, value in values.items():
            if name in self._parameters:
                self.set_value(name, value)
