# SPDX-License-Identifier: MIT
"""
Generic simulation engine: genomes, agents, the environment contract, the
world event loop and parallel replica runs.
"""

from .agent import Agent, GeneCursor, scale, squash  # noqa: F401
from .environment import Environment  # noqa: F401
from .genome import Genome  # noqa: F401
from .replicas import ReplicaCoordinator, run_generation  # noqa: F401
from .world import SpeciesStats, World, stochastic_universal_sampling  # noqa: F401
