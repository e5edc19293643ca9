# SPDX-License-Identifier: MIT
"""
Bush world: insects lay eggs into fruits hanging on the branches of a bush.

Flies lay one egg into an empty fruit. Wasps parasitise a fly egg by laying
their own egg into it. At the end of a replica every fruit counts once, for
the wasp if it parasitised the fly egg and for the fly otherwise.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import TYPE_CHECKING, List, Optional

from loguru import logger

from evosim.sim.agent import Agent
from evosim.sim.genome import Genome
from evosim.sim.randomness import randone

from .insects import FLY, WASP, Fly, Insect, Wasp
from .perception import Action, ActionType, Perception

if TYPE_CHECKING:
    from evosim.sim.world import World

DEFAULT_DEATH_CHANCE = 0.002
DEFAULT_PARASITOID_BEGINNING_TIME = 500.0
EGG_LAYING_DURATION = 3.3
FRUIT_CHANGE_DURATION = 3.3
MIN_ACTION_INTENSITY = 0.1
UNKNOWN_ACTION_DURATION = 1.0


@dataclass
class FlyEgg:
    fly_genome: Genome
    laying_fly: Insect
    wasp_genome: Optional[Genome] = None
    laying_wasp: Optional[Insect] = None


Fruit = List[FlyEgg]
Branch = List[Fruit]


class Bushworld:
    """Environment of branches and fruits populated by flies and wasps."""

    def __init__(
        self,
        branch_quantity: int = 200,
        fruits_per_branch: int = 50,
        death_chance: float = DEFAULT_DEATH_CHANCE,
        parasitoid_beginning_time: float = DEFAULT_PARASITOID_BEGINNING_TIME,
        host_max_age: float = math.inf,
        parasitoid_max_age: float = math.inf,
    ) -> None:
        self.world: Optional["World"] = None
        self.bush: List[Branch] = []
        self.insect_death_chance = DEFAULT_DEATH_CHANCE
        self.set_insect_death_chance(death_chance)
        self.parasitoid_beginning_time = parasitoid_beginning_time
        self.host_max_age = host_max_age
        self.parasitoid_max_age = parasitoid_max_age
        self.fly_branch_time = 0.0
        self.fly_branch_jumps = 0.0
        self.wasp_branch_time = 0.0
        self.wasp_branch_jumps = 0.0
        self.set_bush_size(branch_quantity, fruits_per_branch)

    # ------------------------------------------------------------------ bush
    def attach(self, world: "World") -> None:
        self.world = world

    def _require_world(self) -> "World":
        assert self.world is not None, "bush world is not attached to an engine"
        return self.world

    def branch_quantity(self) -> int:
        return len(self.bush)

    def fruits_per_branch(self) -> int:
        assert self.bush, "empty bush"
        return len(self.bush[0])

    def set_bush_size(self, branch_quantity: int, fruits_per_branch: int) -> None:
        """Grow a new empty bush and move living insects onto it."""
        assert branch_quantity >= 1 and fruits_per_branch >= 1, "creating empty bush"
        self.bush = [[[] for _ in range(fruits_per_branch)] for _ in range(branch_quantity)]
        if self.world is not None:
            for agent in self.world.population.values():
                self.place_insect_randomly(agent)

    def set_branch_quantity(self, branch_quantity: int) -> None:
        self.set_bush_size(branch_quantity, self.fruits_per_branch())

    def set_fruits_per_branch(self, fruits_per_branch: int) -> None:
        self.set_bush_size(self.branch_quantity(), fruits_per_branch)

    def recreate(self) -> None:
        self.set_bush_size(self.branch_quantity(), self.fruits_per_branch())

    def choose_fruit(self, branch: int) -> int:
        size = len(self.bush[branch])
        assert size, "empty branch"
        return min(int(randone() * size), size - 1)

    def place_insect_randomly(self, insect: Insect) -> None:
        branch = min(int(len(self.bush) * randone()), len(self.bush) - 1)
        fruit = min(int(len(self.bush[branch]) * randone()), len(self.bush[branch]) - 1)
        insect.set_position(branch, fruit)

    # ------------------------------------------------------------ parameters
    def set_insect_death_chance(self, chance: float) -> None:
        assert 0.0 <= chance <= 1.0, f"death chance {chance} out of range 0..1"
        self.insect_death_chance = chance

    def set_parasitoid_beginning_time(self, time: float) -> None:
        self.parasitoid_beginning_time = time

    def set_host_max_age(self, max_age: float) -> None:
        self.host_max_age = max_age
        if self.world is not None:
            self.world.set_max_age(max_age, FLY)

    def set_parasitoid_max_age(self, max_age: float) -> None:
        self.parasitoid_max_age = max_age
        if self.world is not None:
            self.world.set_max_age(max_age, WASP)

    # ------------------------------------------------------ engine contract
    def create_agent(self, genome: Genome) -> Agent:
        if genome.species == WASP:
            insect: Insect = Wasp(genome, max_age=self.parasitoid_max_age)
        else:
            assert genome.species == FLY, f"unknown genome species {genome.species!r}"
            insect = Fly(genome, max_age=self.host_max_age)
        insect.set_death_chance(self.insect_death_chance)
        self.place_insect_randomly(insect)
        return insect

    def make_perception(self, agent: Agent) -> Perception:
        insect = _as_insect(agent)
        assert insect.branch < len(self.bush), f"insect sits on missing branch {insect.branch}"
        branch = self.bush[insect.branch]
        assert insect.fruit < len(branch), f"insect sits on missing fruit {insect.fruit}"
        fruit = branch[insect.fruit]
        seen = Perception(
            fruits_in_branch=len(branch),
            competition_pressure=1.0,
            fruit_free=not fruit,
            fly_eggs_in_fruit=len(fruit),
            current_time=self._require_world().turn,
        )
        for egg in fruit:
            if egg.wasp_genome is not None:
                seen.wasp_eggs_in_fruit += 1
            if egg.fly_genome is not insect.genome and egg.wasp_genome is not insect.genome:
                seen.foreign_eggs_in_fruit += 1
            else:
                seen.own_eggs_in_fruit += 1
        return seen

    def action_duration(self, action: Action) -> float:
        intensity = action.intensity
        if intensity <= 0.0:
            logger.warning("action {} with intensity {} <= 0, using {}", action.kind.name, intensity, MIN_ACTION_INTENSITY)
            intensity = MIN_ACTION_INTENSITY
        if action.kind == ActionType.LAY_EGG:
            return EGG_LAYING_DURATION
        if action.kind == ActionType.GO_TO_FRUIT:
            return FRUIT_CHANGE_DURATION
        if action.kind in (ActionType.GO_TO_BRANCH_WEST, ActionType.GO_TO_BRANCH_EAST):
            return 3.0 + flying_distance(intensity) * 3.0
        if action.kind == ActionType.WAIT:
            return intensity
        return UNKNOWN_ACTION_DURATION

    def execute_action(self, agent: Agent, action: Action) -> None:
        world = self._require_world()
        insect = _as_insect(agent)
        insect.starts_to_act(self.action_duration(action), world.turn)

        if action.kind == ActionType.LAY_EGG:
            self._lay_egg(insect)
        elif action.kind == ActionType.GO_TO_FRUIT:
            insect.fruit = self.choose_fruit(insect.branch)
        elif action.kind in (ActionType.GO_TO_BRANCH_WEST, ActionType.GO_TO_BRANCH_EAST):
            distance = flying_distance(action.intensity)
            if action.kind == ActionType.GO_TO_BRANCH_EAST:
                distance = -distance
            insect.branch = (insect.branch + distance) % len(self.bush)
            self.add_branch_jumps(insect.parasitoid, 1)
            self.add_branch_time(insect.parasitoid, world.turn - insect.last_branch_arrival_time)

    def _lay_egg(self, insect: Insect) -> None:
        fruit = self.bush[insect.branch][insect.fruit]
        if not insect.parasitoid:
            if fruit:
                logger.trace("fly {} found fruit already taken", insect.id)
                return
            fruit.append(FlyEgg(fly_genome=insect.genome, laying_fly=insect))
            return
        if not fruit or fruit[0].wasp_genome is not None:
            logger.trace("wasp {} found no egg to parasitise", insect.id)
            return
        fruit[0].wasp_genome = insect.genome
        fruit[0].laying_wasp = insect

    def calculate_fitness(self) -> float:
        world = self._require_world()
        for genome in world.genepool:
            genome.fitness = 0.0
        best = 0.0
        for branch in self.bush:
            for fruit in branch:
                if not fruit:
                    continue
                egg = fruit[0]
                if egg.wasp_genome is not None:
                    assert egg.laying_wasp is not None, "wasp egg without its wasp"
                    genome, layer = egg.wasp_genome, egg.laying_wasp
                else:
                    genome, layer = egg.fly_genome, egg.laying_fly
                genome.increase_fitness(1.0)
                world.inc_agent_fitness_statistic(layer, 1.0)
                best = max(best, genome.fitness)
                fruit.clear()
        return best

    def on_agent_death(self, agent: Agent) -> None:
        insect = _as_insect(agent)
        last_branch_time = insect.death_time - insect.last_branch_arrival_time
        assert last_branch_time >= 0.0, f"negative last branch time {last_branch_time}"
        self.add_branch_time(insect.parasitoid, last_branch_time)

    def reset_statistics(self) -> None:
        self.fly_branch_time = 0.0
        self.fly_branch_jumps = 0.0
        self.wasp_branch_time = 0.0
        self.wasp_branch_jumps = 0.0
        if self.world is not None:
            self.world.best_fitness = 0.0
            self.world.freeze_agents(self.parasitoid_beginning_time, WASP)

    # ------------------------------------------------------------ statistics
    def add_branch_jumps(self, parasitoid: bool, jumps: float) -> None:
        if parasitoid:
            self.wasp_branch_jumps += jumps
        else:
            self.fly_branch_jumps += jumps

    def add_branch_time(self, parasitoid: bool, time: float) -> None:
        assert time >= 0.0, f"negative branch time {time}"
        if parasitoid:
            self.wasp_branch_time += time
        else:
            self.fly_branch_time += time

    def branch_jumps(self, parasitoid: bool) -> float:
        return self.wasp_branch_jumps if parasitoid else self.fly_branch_jumps

    def branch_time(self, parasitoid: bool) -> float:
        return self.wasp_branch_time if parasitoid else self.fly_branch_time

    def average_branch_time(self, species: str) -> float:
        parasitoid = species == WASP
        visits = self.branch_jumps(parasitoid) + self._require_world().get_offspring_quantity(species)
        return self.branch_time(parasitoid) / visits if visits else 0.0

    def average_cluster_jumps(self, species: str) -> float:
        offspring = self._require_world().get_offspring_quantity(species)
        return self.branch_jumps(species == WASP) / offspring if offspring else 0.0

    def best_insect(self, species: str) -> Insect:
        return _as_insect(self._require_world().get_best_agent(species))

    def collect_replica_statistics(self, other: "Bushworld") -> None:
        for parasitoid in (True, False):
            self.add_branch_jumps(parasitoid, other.branch_jumps(parasitoid))
            self.add_branch_time(parasitoid, other.branch_time(parasitoid))
        for species in (WASP, FLY):
            mine, theirs = self.best_insect(species), other.best_insect(species)
            mine.cluster_jumps += theirs.cluster_jumps
            mine.avg_branch_time = mine.average_branch_time() + theirs.average_branch_time()

    def finish_replica_statistics(self, replica_count: int) -> None:
        assert replica_count >= 1, "no replicas to average"
        self.wasp_branch_jumps /= replica_count
        self.fly_branch_jumps /= replica_count
        self.wasp_branch_time /= replica_count
        self.fly_branch_time /= replica_count
        for species in (WASP, FLY):
            best = self.best_insect(species)
            best.cluster_jumps /= replica_count
            best.avg_branch_time = best.average_branch_time() / replica_count


def flying_distance(intensity: float) -> int:
    return int(intensity)


def _as_insect(agent: Agent) -> Insect:
    assert isinstance(agent, Insect), f"{agent!r} is not an insect"
    return agent
