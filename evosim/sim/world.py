# SPDX-License-Identifier: MIT
"""
Simulation engine: population, genepool, the per-turn event loop and the
per-generation genetic-algorithm pipeline.

The engine is generic over an :class:`~evosim.sim.environment.Environment`
and only calls the methods of that contract. Replica fan-out and merging live
in :mod:`evosim.sim.replicas`; this module supplies the steps they combine.
"""

from __future__ import annotations

import copy
import heapq
import math
from dataclasses import dataclass, field
from typing import Dict, Generic, Iterable, List, Optional, Tuple

import numpy as np
from loguru import logger

from .agent import DEFAULT_DURATION_NOISE, DEFAULT_HIDDEN_LAYERS, Agent
from .environment import EnvT
from .genome import Genome, collective_fitness
from .randomness import randone

DEFAULT_OFFSPRING_QUANTITY = 50
MAX_REITERATIONS = 1_000_000


@dataclass
class SpeciesStats:
    """Per-species selection settings and statistics."""

    offspring_quantity: int = DEFAULT_OFFSPRING_QUANTITY
    dynamic_offspring: bool = False
    genomes: List[Genome] = field(default_factory=list)
    best_agent: Optional[Agent] = None
    best_genome_fitness: float = 0.0
    last_average_genome: Optional[Genome] = None


def stochastic_universal_sampling(genomes: List[Genome], quantity: int, offset: Optional[float] = None) -> None:
    """
    Distribute ``quantity`` offspring over ``genomes`` proportionally to
    fitness, using evenly spaced pointers starting at ``offset`` (random in
    ``[0, 1/quantity)`` when omitted). Without any fitness all genomes count
    as equal. The offspring always sum to ``quantity`` for a non-empty list.
    """
    for genome in genomes:
        genome.set_offspring_quantity(0)
    if not quantity or not genomes:
        return
    distance = 1.0 / quantity
    total = collective_fitness(genomes)
    all_equal = total == 0.0
    if all_equal:
        total = float(len(genomes))

    def share(genome: Genome) -> float:
        return (1.0 if all_equal else genome.fitness) / total

    if offset is None:
        offset = randone() * distance
    assert 0.0 <= offset < distance or quantity == 0, f"pointer offset {offset} out of range"

    index = 0
    border = share(genomes[0])
    pointer = 0
    last = len(genomes) - 1
    while pointer < quantity:
        position = offset + distance * pointer
        if position < border or index == last:
            genomes[index].inc_offspring_quantity()
            pointer += 1
        else:
            index += 1
            border += share(genomes[index])


def offspring_from_fitness(genomes: Iterable[Genome]) -> int:
    """Set every genome's offspring to its whole-number fitness; return the sum."""
    total = 0
    for genome in genomes:
        genome.set_offspring_quantity(max(0, int(genome.fitness)))
        total += genome.offspring_quantity
    return total


class World(Generic[EnvT]):
    """
    Owns the population and genepool of one simulation and advances them.

    A world is deep-copyable: replicas are plain copies whose environment is
    recreated before their run.
    """

    def __init__(
        self,
        environment: EnvT,
        *,
        max_turns: float = math.inf,
        reiterations: int = 1,
        recombination: bool = True,
        seed: Optional[int] = None,
        hidden_layers: int = DEFAULT_HIDDEN_LAYERS,
        duration_noise: float = DEFAULT_DURATION_NOISE,
        standard_offspring_quantity: int = DEFAULT_OFFSPRING_QUANTITY,
    ) -> None:
        self.environment = environment
        self.max_turns = max_turns
        self.reiterations = 1
        self.set_max_generation_reiterations(reiterations)
        self.recombination = recombination
        self.hidden_layers = hidden_layers
        self.duration_noise = duration_noise
        self.standard_offspring_quantity = standard_offspring_quantity
        self.seed_sequence = np.random.SeedSequence(seed)
        self.rng = np.random.default_rng(self.seed_sequence.spawn(1)[0])

        self.turn = 0.0
        self.generation = 0
        self.best_fitness = 0.0
        self.genepool: List[Genome] = []
        self.population: Dict[int, Agent] = {}
        self.species: Dict[str, SpeciesStats] = {}
        self._schedule: List[Tuple[float, int]] = []

        environment.attach(self)

    # ------------------------------------------------------------- species
    def register_species(self, name: str) -> SpeciesStats:
        stats = self.species.get(name)
        if stats is None:
            stats = SpeciesStats(offspring_quantity=self.standard_offspring_quantity)
            self.species[name] = stats
        return stats

    def species_stats(self, name: str) -> SpeciesStats:
        stats = self.species.get(name)
        assert stats is not None, f"unknown species {name!r}"
        return stats

    def set_offspring_quantity(self, species: str, quantity: int) -> None:
        assert quantity >= 0, f"negative offspring quantity {quantity}"
        self.register_species(species).offspring_quantity = int(quantity)

    def get_offspring_quantity(self, species: str) -> int:
        stats = self.species.get(species)
        return stats.offspring_quantity if stats else 0

    def set_dynamic_offspring_quantity(self, species: str, dynamic: bool) -> None:
        self.register_species(species).dynamic_offspring = dynamic

    def set_standard_offspring_quantity(self, quantity: int) -> None:
        """Offspring target for species registered from now on."""
        self.standard_offspring_quantity = int(quantity)

    def set_mutation_rate(self, rate: float, species: Optional[str] = None) -> None:
        for genome in self.genepool:
            if species is None or genome.species == species:
                genome.mutation_rate = rate

    def set_mutation_intensity(self, intensity: float, species: Optional[str] = None) -> None:
        for genome in self.genepool:
            if species is None or genome.species == species:
                genome.mutation_intensity = intensity

    def set_max_generation_reiterations(self, reiterations: int) -> None:
        assert 1 <= reiterations <= MAX_REITERATIONS, f"bad reiteration count {reiterations}"
        self.reiterations = int(reiterations)

    def set_recombination(self, enabled: bool) -> None:
        self.recombination = bool(enabled)

    def genomes_of(self, species: str) -> List[Genome]:
        return [genome for genome in self.genepool if genome.species == species]

    # ---------------------------------------------------------- population
    def get_population_size(self, species: Optional[str] = None) -> int:
        if species is None:
            return len(self.population)
        return sum(1 for agent in self.population.values() if agent.species == species)

    def get_planned_population_size(self) -> int:
        """Agents each replica materialises from the current genepool."""
        return sum(genome.offspring_quantity for genome in self.genepool)

    def reschedule(self, agent: Agent) -> None:
        heapq.heappush(self._schedule, (agent.action_finishing_time, agent.id))

    def add_agent(self, agent: Agent) -> Agent:
        self.register_species(agent.species)
        agent.genome.name = agent.species_name
        self.population[agent.id] = agent
        self.reschedule(agent)
        return agent

    def add_new_agent(self, genome: Genome, quantity: int = 1) -> None:
        for _ in range(quantity):
            agent = self.environment.create_agent(genome)
            agent.hidden_layers = self.hidden_layers
            agent.duration_noise = self.duration_noise
            self.add_agent(agent)

    def add_new_genomes(self, species: str, quantity: int, gene_quantity: int = 0) -> List[Genome]:
        """Seed ``quantity`` random genomes of ``species``, one agent each."""
        self.register_species(species)
        created = []
        for _ in range(quantity):
            genome = Genome(species, gene_quantity)
            genome.set_offspring_quantity(1)
            self.add_new_agent(genome)
            self.genepool.append(genome)
            created.append(genome)
        return created

    def create_offspring(self) -> None:
        assert not self.population, "living agents before offspring creation"
        for genome in self.genepool:
            self.add_new_agent(genome, genome.offspring_quantity)

    def kill_agent(self, agent: Agent) -> None:
        agent.mark_dead()
        self.population.pop(agent.id, None)

    def kill_all_agents(self) -> None:
        for agent in list(self.population.values()):
            agent.mark_dead()
            self.environment.on_agent_death(agent)
        self.population.clear()
        self._schedule.clear()

    def clear_population(self) -> None:
        self.population.clear()
        self._schedule.clear()

    def freeze_agents(self, end_time: float, species: Optional[str] = None) -> None:
        """Hold agents back until ``end_time``."""
        for agent in self.population.values():
            if species is None or agent.species == species:
                agent.freeze_until(end_time)
                self.reschedule(agent)

    def set_max_age(self, max_age: float, species: Optional[str] = None) -> None:
        for agent in self.population.values():
            if species is None or agent.species == species:
                agent.set_max_age(max_age)

    # ---------------------------------------------------------- event loop
    def _next_due(self) -> Optional[Agent]:
        while self._schedule:
            due, agent_id = self._schedule[0]
            agent = self.population.get(agent_id)
            if agent is None or agent.action_finishing_time != due:
                heapq.heappop(self._schedule)
                continue
            return agent
        return None

    def run(self) -> bool:
        """
        Advance the earliest due agent by one step. Returns False when the
        time limit is reached or nobody is left.
        """
        agent = self._next_due()
        if agent is None:
            return False
        if agent.died():
            heapq.heappop(self._schedule)
            logger.trace("agent {} died at {:.3f}", agent.id, agent.death_time)
            self.environment.on_agent_death(agent)
            self.population.pop(agent.id, None)
            return True

        self.turn = max(self.turn, agent.action_finishing_time)
        if self.turn > self.max_turns:
            return False
        heapq.heappop(self._schedule)
        agent.accomplish_action()

        perception = self.environment.make_perception(agent)
        action = agent.decide(perception, self.turn)
        self.environment.execute_action(agent, action)
        self.reschedule(agent)
        return True

    def run_until_done(self) -> None:
        while self.population and self.run():
            pass

    # ---------------------------------------------------------- statistics
    def inc_agent_fitness_statistic(self, agent: Agent, amount: float = 1.0) -> None:
        stats = self.species_stats(agent.species)
        agent.inc_personal_fitness(amount)
        if stats.best_agent is None or agent.personal_fitness > stats.best_agent.personal_fitness:
            stats.best_agent = agent

    def reset_agent_fitness_statistics(self) -> None:
        for stats in self.species.values():
            stats.best_agent = None
            stats.best_genome_fitness = 0.0

    def get_best_agent(self, species: str) -> Agent:
        """Best agent of the generation, or a fresh placeholder when there is none."""
        stats = self.species_stats(species)
        if stats.best_agent is None:
            stats.best_agent = self.environment.create_agent(Genome(species))
        return stats.best_agent

    def get_best_per_agent_fitness(self, species: str) -> float:
        stats = self.species_stats(species)
        return stats.best_agent.personal_fitness if stats.best_agent else 0.0

    def set_best_per_agent_fitness(self, species: str, fitness: float) -> None:
        self.get_best_agent(species).personal_fitness = fitness

    def get_best_genome_fitness(self, species: str) -> float:
        """Replica-averaged fitness of the fittest genome of the last generation."""
        return self.species_stats(species).best_genome_fitness

    def get_average_fitness(self, species: str) -> float:
        fitness = 0.0
        individuals = 0
        for genome in self.genepool:
            if genome.species == species:
                fitness += genome.fitness
                individuals += genome.offspring_quantity
        return fitness / individuals if individuals else 0.0

    def get_collective_fitness(self, genomes: Optional[Iterable[Genome]] = None) -> float:
        return collective_fitness(self.genepool if genomes is None else genomes)

    def average_genome(self, species: str) -> Optional[Genome]:
        """
        Offspring-weighted mean genome of ``species``. While the species wants
        no offspring the last computed average is returned instead.
        """
        stats = self.species_stats(species)
        if not stats.offspring_quantity:
            return stats.last_average_genome
        average: Optional[Genome] = None
        individuals = 0
        for genome in self.genepool:
            if genome.species != species or not genome.offspring_quantity:
                continue
            if average is None:
                average = Genome(species, len(genome), 0.0)
                average.name = genome.name
            average += genome * float(genome.offspring_quantity)
            average.increase_fitness(genome.fitness)
            individuals += genome.offspring_quantity
        if average is None or not individuals:
            return None
        average /= float(individuals)
        average.fitness /= individuals
        average.offspring_quantity = individuals
        average.name = f"Average {average.name}"
        stats.last_average_genome = average
        return average

    def best_genome(self, species: str) -> Optional[Genome]:
        best: Optional[Genome] = None
        for genome in self.genepool:
            if genome.species == species and (best is None or genome.fitness > best.fitness):
                best = genome
        if best is None:
            return None
        twin = best.copy()
        twin.name = f"Best {best.name}"
        return twin

    # ------------------------------------------------------------ pipeline
    def calculate_offspring(self) -> None:
        for name, stats in self.species.items():
            stats.genomes = self.genomes_of(name)
            for genome in stats.genomes:
                genome.last_offspring_quantity = genome.offspring_quantity
            if stats.dynamic_offspring:
                stats.offspring_quantity = offspring_from_fitness(stats.genomes)
            else:
                stochastic_universal_sampling(stats.genomes, stats.offspring_quantity)

    def delete_unused_genomes(self) -> None:
        kept = []
        for genome in self.genepool:
            wanted = self.species_stats(genome.species).offspring_quantity
            if genome.offspring_quantity or not wanted:
                kept.append(genome)
        self.genepool = kept

    def fortune_wheel_genome(self, stats: SpeciesStats) -> Genome:
        """Pick a parent with probability proportional to its offspring quantity."""
        assert stats.offspring_quantity >= 1, "no offspring wanted"
        assert stats.genomes, "empty genome list"
        total = sum(genome.offspring_quantity for genome in stats.genomes)
        assert total >= 1, "no genome has offspring"
        ticket = min(int(total * randone()), total - 1)
        border = 0
        for genome in stats.genomes:
            border += genome.offspring_quantity
            if ticket < border:
                return genome
        return stats.genomes[-1]

    def recombine_all_genomes(self) -> None:
        pool: List[Genome] = []
        for name, stats in self.species.items():
            if not stats.genomes:
                continue
            if not stats.offspring_quantity:
                stats.genomes = self.genomes_of(name)
                pool.extend(stats.genomes)
                continue
            children = []
            for _ in range(stats.offspring_quantity):
                child = Genome.recombine(self.fortune_wheel_genome(stats), self.fortune_wheel_genome(stats))
                child.set_offspring_quantity(1)
                children.append(child)
            stats.genomes = children
            pool.extend(children)
        self.genepool = pool

    def mutate_genomes(self) -> int:
        mutants = 0
        for genome in list(self.genepool):
            slot = 0
            while slot < genome.offspring_quantity:
                slot += 1
                if not genome.mutation_chance():
                    continue
                mutant = genome.copy()
                mutant.renew_id()
                mutant.set_offspring_quantity(1)
                carry = genome.fitness / genome.offspring_quantity
                mutant.fitness = carry
                genome.fitness -= carry
                genome.dec_offspring_quantity(1)
                mutant.mutate()
                self.genepool.append(mutant)
                mutants += 1
        return mutants

    def set_all_fitnesses(self, value: float = 0.0) -> None:
        for genome in self.genepool:
            genome.fitness = value

    def prepare_generation(self) -> None:
        """Selection, pruning, recombination and mutation ahead of the replica runs."""
        self.calculate_offspring()
        self.delete_unused_genomes()
        if self.recombination:
            self.recombine_all_genomes()
        mutants = self.mutate_genomes()
        self.set_all_fitnesses(0.0)
        self.best_fitness = 0.0
        self.environment.reset_statistics()
        self.reset_agent_fitness_statistics()
        logger.debug(
            "generation {}: {} genomes, {} mutants, {} planned agents",
            self.generation,
            len(self.genepool),
            mutants,
            self.get_planned_population_size(),
        )

    def replicate(self, rng_seed: Optional[np.random.SeedSequence] = None) -> "World[EnvT]":
        """Deep copy for one replica run: fresh environment, copied genepool, no agents."""
        replica = copy.deepcopy(self)
        replica.clear_population()
        if rng_seed is not None:
            replica.seed_sequence = rng_seed
        replica.environment.recreate()
        return replica

    def run_replica(self) -> float:
        """Materialise offspring, run to extinction or time limit and score."""
        self.create_offspring()
        self.environment.reset_statistics()
        self.reset_agent_fitness_statistics()
        self.turn = 0.0
        self.run_until_done()
        self.kill_all_agents()
        self.best_fitness = self.environment.calculate_fitness()
        return self.best_fitness

    def merge_genomes(self, replica: "World[EnvT]") -> None:
        assert len(replica.genepool) == len(self.genepool), "different genepool sizes"
        for canonical, copied in zip(self.genepool, replica.genepool):
            canonical.merge(copied)

    def accumulate_fitness(self, replica: "World[EnvT]") -> None:
        for canonical, copied in zip(self.genepool, replica.genepool):
            canonical.increase_fitness(copied.fitness)

    def merge_replica_statistics(self, replica: "World[EnvT]") -> None:
        for name in self.species:
            summed = self.get_best_per_agent_fitness(name) + replica.get_best_per_agent_fitness(name)
            self.set_best_per_agent_fitness(name, summed)
        self.best_fitness += replica.best_fitness
        self.environment.collect_replica_statistics(replica.environment)

    def finish_generation(self, replica_count: Optional[int] = None) -> None:
        count = replica_count or self.reiterations
        for name in self.species:
            self.set_best_per_agent_fitness(name, self.get_best_per_agent_fitness(name) / count)
        self.best_fitness /= count
        self.environment.finish_replica_statistics(count)
        for genome in self.genepool:
            genome.fitness /= count
        for name, stats in self.species.items():
            fitnesses = [genome.fitness for genome in self.genepool if genome.species == name]
            stats.best_genome_fitness = max(fitnesses, default=0.0)
        self.generation += 1
        logger.info(
            "generation {} done: best fitness {:.3f}, genepool {}",
            self.generation,
            self.best_fitness,
            len(self.genepool),
        )
