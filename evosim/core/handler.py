from __future__ import annotations

import threading
import time
from dataclasses import dataclass, field
from typing import Callable, Dict, Optional, Protocol

from loguru import logger

from evosim.sim.genome import MUTATION_RATE_SCALER
from evosim.sim.randomness import use_generator
from evosim.sim.replicas import ReplicaCoordinator
from evosim.sim.world import World
from evosim.worlds import FLY, WASP, Bushworld, BushworldDatabase

from .config import SimulationConfig
from .parameters import ParameterSet
from .statistics import SimulationDatabase


@dataclass
class GenerationState:
    generation: int = 0
    population: int = 0
    extinct: bool = False
    best_fitness: float = 0.0
    average_fitness: Dict[str, float] = field(default_factory=dict)
    best_genome_fitness: Dict[str, float] = field(default_factory=dict)
    elapsed: float = 0.0


class WorldHandler(Protocol):
    """Interface a host uses to drive one kind of world between generations."""

    parameters: ParameterSet
    world: World

    def init_world(self) -> None:
        ...

    def run_one_generation(self) -> GenerationState:
        ...

    def get_generation(self) -> int:
        ...

    def get_population_size(self) -> int:
        ...

    def extincted(self) -> bool:
        ...

    def apply_changes(self) -> None:
        ...

    def create_database(self) -> SimulationDatabase:
        ...

    def snapshot(self) -> GenerationState:
        ...


def run_generation_cycle(handler: WorldHandler, database: SimulationDatabase) -> GenerationState:
    """One host iteration: apply queued parameters, run a generation, record it."""
    handler.apply_changes()
    state = handler.run_one_generation()
    database.collect(handler.world)
    return state


class BushworldHandler:
    """
    Owns a bush world and its host-facing parameters. Parameter changes are
    queued as dirty flags and applied by :meth:`apply_changes` between
    generations, never while a generation runs.
    """

    WASP_QUANTITY = "Wasp Quantity"
    FLY_QUANTITY = "Fly Quantity"
    CLUSTER_QUANTITY = "Cluster Quantity"
    FRUITS_PER_CLUSTER = "Fruits per Cluster"
    MUTATION_RATE = "Mutation Rate Per Gene"
    MUTATION_INTENSITY = "Mutation Intensity"
    PARALLEL_WORLDS = "Parallel Worlds"
    RECOMBINATION = "Recombination"
    HIDDEN_LAYERS = "Neuronal Network Hidden Layer"

    def __init__(self, config: Optional[SimulationConfig] = None) -> None:
        self.config = config or SimulationConfig()
        self.parameters = ParameterSet()
        self._lock = threading.Lock()
        self._last_state = GenerationState()
        self._create_parameters()
        self._appliers: Dict[str, Callable[[float], None]] = {
            self.WASP_QUANTITY: lambda v: self.world.set_offspring_quantity(WASP, int(v)),
            self.FLY_QUANTITY: lambda v: self.world.set_offspring_quantity(FLY, int(v)),
            self.CLUSTER_QUANTITY: lambda v: self.bushworld.set_branch_quantity(int(v)),
            self.FRUITS_PER_CLUSTER: lambda v: self.bushworld.set_fruits_per_branch(int(v)),
            self.MUTATION_RATE: lambda v: self.world.set_mutation_rate(v * MUTATION_RATE_SCALER),
            self.MUTATION_INTENSITY: lambda v: self.world.set_mutation_intensity(v),
            self.PARALLEL_WORLDS: lambda v: self.world.set_max_generation_reiterations(int(v)),
            self.RECOMBINATION: lambda v: self.world.set_recombination(bool(int(v))),
            self.HIDDEN_LAYERS: self._set_hidden_layers,
        }
        self.init_world()

    def _create_parameters(self) -> None:
        bush = self.config.bush
        genetics = self.config.genetics
        engine = self.config.engine
        scaler = MUTATION_RATE_SCALER
        create = self.parameters.create
        create(self.WASP_QUANTITY, bush.wasp_quantity, 0, 501)
        create(self.FLY_QUANTITY, bush.fly_quantity, 1, 501)
        create(self.CLUSTER_QUANTITY, bush.cluster_quantity, 1, 401)
        create(self.FRUITS_PER_CLUSTER, bush.fruits_per_cluster, 1, 401)
        create(self.MUTATION_RATE, genetics.mutation_rate_per_gene, 0.0, 1.0 / scaler, 0.002 / scaler)
        create(self.MUTATION_INTENSITY, genetics.mutation_intensity, 0.0, 0.501, 0.001)
        create(self.PARALLEL_WORLDS, engine.reiterations, 1, 201)
        create(self.RECOMBINATION, 1 if engine.recombination else 0, 0, 2)
        create(self.HIDDEN_LAYERS, engine.hidden_layers, 0, 9)

    # ------------------------------------------------------------- parameters
    def get_parameter_value(self, name: str) -> float:
        return self.parameters.get_value(name)

    def set_parameter_value(self, name: str, value: float) -> float:
        return self.parameters.set_value(name, value)

    def _set_hidden_layers(self, value: float) -> None:
        self.world.hidden_layers = int(value)

    def apply_changes(self) -> None:
        """Push every dirty parameter into the world.

        Flags are cleared before the values are applied, so a host write that
        races with this call stays dirty for the next one.
        """
        with self._lock:
            for name, value in self.parameters.take_dirty():
                self._appliers[name](value)
                logger.info("parameter {!r} set to {}", name, value)

    # ------------------------------------------------------------------ world
    def init_world(self) -> None:
        """Build a fresh world from the current parameter values."""
        value = self.parameters.get_value
        engine = self.config.engine
        max_age = float(self.config.bush.max_age)
        fly_quantity = int(value(self.FLY_QUANTITY))
        wasp_quantity = int(value(self.WASP_QUANTITY))
        genome_size = self.config.genetics.genome_size

        bushworld = Bushworld(int(value(self.CLUSTER_QUANTITY)), int(value(self.FRUITS_PER_CLUSTER)))
        world = World(
            bushworld,
            max_turns=engine.turn_limit(),
            reiterations=int(value(self.PARALLEL_WORLDS)),
            recombination=bool(int(value(self.RECOMBINATION))),
            seed=engine.seed,
            hidden_layers=int(value(self.HIDDEN_LAYERS)),
            duration_noise=engine.duration_noise,
        )
        with use_generator(world.rng):
            world.add_new_genomes(FLY, fly_quantity, genome_size)
            world.add_new_genomes(WASP, wasp_quantity, genome_size)
        # Seeded agents only bring genomes; replicas create their own agents.
        world.clear_population()
        world.set_offspring_quantity(FLY, fly_quantity)
        world.set_offspring_quantity(WASP, wasp_quantity)
        world.set_mutation_intensity(value(self.MUTATION_INTENSITY))
        world.set_mutation_rate(value(self.MUTATION_RATE) * MUTATION_RATE_SCALER)
        bushworld.set_insect_death_chance(2.0 / max_age)
        bushworld.set_host_max_age(max_age)
        bushworld.set_parasitoid_beginning_time(max_age)
        bushworld.set_parasitoid_max_age(max_age * 2.0)

        with self._lock:
            self.bushworld = bushworld
            self.world = world
            self.coordinator = ReplicaCoordinator(world, engine.max_workers)
            for name in self.parameters:
                self.parameters.mark_clean(name)
            self._last_state = GenerationState()
        logger.info(
            "bush world ready: {} flies, {} wasps, {}x{} fruits",
            fly_quantity,
            wasp_quantity,
            bushworld.branch_quantity(),
            bushworld.fruits_per_branch(),
        )

    def run_one_generation(self) -> GenerationState:
        with self._lock:
            started = time.perf_counter()
            self.coordinator.run_generation()
            state = GenerationState(
                generation=self.world.generation,
                population=self.world.get_planned_population_size(),
                extinct=self.world.get_planned_population_size() == 0,
                best_fitness=self.world.best_fitness,
                average_fitness={name: self.world.get_average_fitness(name) for name in (FLY, WASP)},
                best_genome_fitness={name: self.world.get_best_genome_fitness(name) for name in (FLY, WASP)},
                elapsed=time.perf_counter() - started,
            )
            self._last_state = state
            return state

    def get_generation(self) -> int:
        return self.world.generation

    def get_population_size(self) -> int:
        return self.world.get_planned_population_size()

    def extincted(self) -> bool:
        return self.get_population_size() == 0

    def create_database(self) -> SimulationDatabase:
        return BushworldDatabase()

    def snapshot(self) -> GenerationState:
        with self._lock:
            return self._last_state
