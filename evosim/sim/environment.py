# SPDX-License-Identifier: MIT
"""
Extension contract implemented by every concrete scenario.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Protocol, TypeVar

from .agent import Agent
from .genome import Genome

if TYPE_CHECKING:
    from .world import World


class Environment(Protocol):
    """Capabilities the engine calls on the scenario it drives."""

    def attach(self, world: "World") -> None:
        """Bind the engine that owns this environment."""
        ...

    def recreate(self) -> None:
        """Reset resource state for a fresh replica run."""
        ...

    def make_perception(self, agent: Agent) -> Any:
        ...

    def execute_action(self, agent: Agent, action: Any) -> None:
        """Apply ``action`` (or reject it) and schedule the agent's next turn."""
        ...

    def create_agent(self, genome: Genome) -> Agent:
        ...

    def calculate_fitness(self) -> float:
        """Score every genome in the genepool; returns the best fitness."""
        ...

    def reset_statistics(self) -> None:
        ...

    def on_agent_death(self, agent: Agent) -> None:
        ...

    def collect_replica_statistics(self, other: Any) -> None:
        ...

    def finish_replica_statistics(self, replica_count: int) -> None:
        ...


EnvT = TypeVar("EnvT", bound=Environment)
