from __future__ import annotations

from typing import List, Optional

import pytest

from evosim.core.config import SimulationConfig
from evosim.sim import randomness
from evosim.sim.agent import Agent, GeneCursor
from evosim.sim.genome import Genome
from evosim.sim.world import World
from evosim.worlds import FLY, GENOME_SIZE, WASP, Bushworld

LONE = "Lone"


class LoneAgent(Agent):
    species_name = LONE
    genes_per_decision = 0

    def cognite(self, perception, cursor: GeneCursor):
        for _ in range(self.genes_per_decision):
            cursor.next()
        return "rest"


class SingleTurnEnvironment:
    """Every agent rests for one time unit; each genome with offspring scores 1."""

    def __init__(self, genes_per_decision: int = 0, action_duration: float = 1.0) -> None:
        self.world: Optional[World] = None
        self.genes_per_decision = genes_per_decision
        self.action_duration = action_duration
        self.acted: List[int] = []
        self.deaths = 0
        self.collected = 0.0
        self.finished_with: Optional[int] = None
        self.resets = 0

    def attach(self, world) -> None:
        self.world = world

    def recreate(self) -> None:
        self.acted = []
        self.deaths = 0

    def make_perception(self, agent):
        return {"time": self.world.turn}

    def execute_action(self, agent, action) -> None:
        agent.starts_to_act(self.action_duration, self.world.turn)
        self.acted.append(agent.id)

    def create_agent(self, genome: Genome) -> Agent:
        agent = LoneAgent(genome, duration_noise=0.0)
        agent.genes_per_decision = self.genes_per_decision
        return agent

    def calculate_fitness(self) -> float:
        for genome in self.world.genepool:
            genome.fitness = 1.0 if genome.offspring_quantity else 0.0
        return 1.0

    def reset_statistics(self) -> None:
        self.resets += 1

    def on_agent_death(self, agent) -> None:
        self.deaths += 1

    def collect_replica_statistics(self, other: "SingleTurnEnvironment") -> None:
        self.collected += len(other.acted)

    def finish_replica_statistics(self, replica_count: int) -> None:
        self.finished_with = replica_count
        self.collected /= replica_count


@pytest.fixture(autouse=True)
def seeded_randomness():
    randomness.seed(12345)
    yield


@pytest.fixture
def single_turn_env() -> SingleTurnEnvironment:
    return SingleTurnEnvironment()


@pytest.fixture
def lone_world(single_turn_env):
    """One genome, one offspring, no mutation, no recombination, one turn per agent."""
    world = World(single_turn_env, max_turns=0.5, reiterations=3, recombination=False, seed=7)
    genome = Genome(LONE, 2, 0.5, mutation_rate=0.0)
    world.register_species(LONE)
    world.genepool.append(genome)
    world.set_offspring_quantity(LONE, 1)
    return world


def make_bush_world(
    seed: Optional[int] = 11,
    flies: int = 6,
    wasps: int = 4,
    branches: int = 4,
    fruits: int = 6,
    reiterations: int = 2,
    max_age: float = 60.0,
) -> World:
    bush = Bushworld(branches, fruits)
    world = World(bush, reiterations=reiterations, seed=seed)
    with randomness.use_generator(world.rng):
        world.add_new_genomes(FLY, flies, GENOME_SIZE)
        world.add_new_genomes(WASP, wasps, GENOME_SIZE)
    world.clear_population()
    world.set_offspring_quantity(FLY, flies)
    world.set_offspring_quantity(WASP, wasps)
    world.set_mutation_rate(0.4)
    world.set_mutation_intensity(0.1)
    bush.set_insect_death_chance(2.0 / max_age)
    bush.set_host_max_age(max_age)
    bush.set_parasitoid_beginning_time(max_age / 2.0)
    bush.set_parasitoid_max_age(max_age * 2.0)
    return world


@pytest.fixture
def bush_world() -> World:
    return make_bush_world()


@pytest.fixture
def small_config() -> SimulationConfig:
    config = SimulationConfig()
    config.update_from_mapping(
        {
            "engine": {"reiterations": 2, "seed": 3, "max_workers": 2},
            "bush": {
                "fly_quantity": 6,
                "wasp_quantity": 4,
                "cluster_quantity": 4,
                "fruits_per_cluster": 6,
                "max_age": 60.0,
            },
            "logging": {"level": "WARNING"},
        }
    )
    return config


@pytest.fixture(scope="session")
def qt_app():
    """One Qt application object for every Qt test in the run."""
    QtCore = pytest.importorskip("PySide6.QtCore")
    return QtCore.QCoreApplication.instance() or QtCore.QCoreApplication([])
