# SPDX-License-Identifier: MIT
"""
Agents and their genome-encoded decision network.
"""

from __future__ import annotations

import itertools
import math
from typing import Any, List, Sequence

from .genome import Genome
from .randomness import randone

DEFAULT_DURATION_NOISE = 0.001
DEFAULT_HIDDEN_LAYERS = 1
MAX_HIDDEN_LAYERS = 100

_agent_ids = itertools.count()


def squash(value: float) -> float:
    """Bounded squashing function mapping any real into (-1, 1)."""
    return value / (1.0 + abs(value))


def scale(gene: float) -> float:
    """Rescale a gene from [0, 1] to [-1, 1]."""
    return (gene - 0.5) * 2.0


class GeneCursor:
    """
    Reads consecutive genes of one genome for a single decision.

    A new cursor is created for every decision, so every decision starts at
    gene 0 and identical inputs reuse identical genes.
    """

    def __init__(self, genome: Genome) -> None:
        self.genome = genome
        self.position = 0

    def next(self) -> float:
        value = self.genome.get(self.position)
        self.position += 1
        return value

    def layer(self, signals: Sequence[float], output_size: int) -> List[float]:
        outputs: List[float] = []
        for _ in range(output_size):
            total = 0.0
            for signal in signals:
                total += signal * scale(self.next())
            outputs.append(1.0 if total > self.next() else 0.0)
        return outputs

    def network(self, signals: Sequence[float], hidden_layers: int = DEFAULT_HIDDEN_LAYERS) -> bool:
        """
        Binary decision of a feed-forward network. Hidden layers keep the input
        width, the final layer has a single neuron.
        """
        assert signals, "empty input signals"
        assert 0 <= hidden_layers <= MAX_HIDDEN_LAYERS, f"bad hidden layer count {hidden_layers}"
        width = len(signals)
        current: List[float] = list(signals)
        for remaining in range(hidden_layers, -1, -1):
            current = self.layer(current, width if remaining else 1)
        return current[0] > 0.5


class Agent:
    """
    One simulated individual. Several agents may share a single genome.

    Concrete species subclass this and implement :meth:`cognite`.
    """

    species_name = "Agent"

    def __init__(
        self,
        genome: Genome,
        death_chance: float = 0.0,
        max_age: float = math.inf,
        duration_noise: float = DEFAULT_DURATION_NOISE,
        hidden_layers: int = DEFAULT_HIDDEN_LAYERS,
    ) -> None:
        self.id = next(_agent_ids)
        self.genome = genome
        self.death_chance = 0.0
        self.set_death_chance(death_chance)
        self.max_age = max_age
        self.duration_noise = duration_noise
        self.hidden_layers = hidden_layers
        self.personal_fitness = 0.0
        self.birth_time = -1.0
        self.death_time = -1.0
        self.current_action_duration = 0.0
        self.action_finishing_time = 0.0
        self.set_action_finishing_time(0.0)

    @property
    def species(self) -> str:
        return self.genome.species

    # ------------------------------------------------------------ lifecycle
    def set_death_chance(self, chance: float) -> None:
        assert 0.0 <= chance <= 1.0, f"death chance {chance} out of range 0..1"
        self.death_chance = chance

    def set_max_age(self, max_age: float) -> None:
        assert max_age >= 0.0, f"negative max age {max_age}"
        self.max_age = max_age

    def set_action_finishing_time(self, time: float) -> None:
        self.action_finishing_time = time + randone() * self.duration_noise

    def freeze_until(self, time: float) -> None:
        self.set_action_finishing_time(time)

    def starts_to_act(self, duration: float, now: float) -> None:
        assert duration >= 0.0, f"negative action duration {duration}"
        self.current_action_duration = duration
        self.set_action_finishing_time(now + duration)

    def accomplish_action(self) -> float:
        finished = self.action_finishing_time
        self.action_finishing_time = 0.0
        self.current_action_duration = 0.0
        return finished

    def died(self, duration: float | None = None) -> bool:
        """
        Roll whether the agent dies during ``duration`` time units, or during
        its current action when no duration is given.
        """
        if duration is None:
            duration = self.current_action_duration
        assert 0.0 <= self.death_chance <= 1.0, "death chance out of range"
        survive = (1.0 - self.death_chance) ** duration
        dead = survive < randone() or self.action_finishing_time > self.max_age
        if dead:
            self.mark_dead()
        return dead

    def mark_dead(self) -> None:
        # Death is approximated to the middle of the running action.
        if self.death_time < 0.0:
            self.death_time = self.action_finishing_time - self.current_action_duration / 2.0

    def is_alive(self) -> bool:
        return self.death_time < 0.0

    def life_span(self) -> float:
        if self.birth_time < 0.0:
            return 0.0
        assert self.death_time >= 0.0, "agent is born and still alive"
        assert self.birth_time <= self.death_time, "agent was born after its death"
        return self.death_time - self.birth_time

    def inc_personal_fitness(self, amount: float) -> None:
        self.personal_fitness += amount

    # ------------------------------------------------------------ cognition
    def decide(self, perception: Any, now: float) -> Any:
        """Turn a perception into an action. Each call reads genes from index 0."""
        if self.birth_time < 0.0:
            self.birth_time = now
        return self.cognite(perception, GeneCursor(self.genome))

    def cognite(self, perception: Any, cursor: GeneCursor) -> Any:
        raise NotImplementedError

    def __repr__(self) -> str:
        return f"{type(self).__name__}(id={self.id}, genome={self.genome.id}, due={self.action_finishing_time:.3f})"
