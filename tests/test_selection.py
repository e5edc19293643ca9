import numpy as np
import pytest

from evosim.sim.genome import Genome
from evosim.sim.world import World, offspring_from_fitness, stochastic_universal_sampling

from .conftest import LONE, SingleTurnEnvironment


def genomes_with_fitness(*fitnesses, species=LONE):
    genomes = []
    for fitness in fitnesses:
        genome = Genome(species, 2, 0.5)
        genome.fitness = float(fitness)
        genomes.append(genome)
    return genomes


def test_sus_is_proportional_to_fitness():
    genomes = genomes_with_fitness(4, 3, 2, 1)
    stochastic_universal_sampling(genomes, 10, offset=0.0)
    assert [genome.offspring_quantity for genome in genomes] == [4, 3, 2, 1]


def test_sus_without_fitness_treats_genomes_as_equal():
    genomes = genomes_with_fitness(0, 0, 0, 0)
    stochastic_universal_sampling(genomes, 8, offset=0.0)
    assert [genome.offspring_quantity for genome in genomes] == [2, 2, 2, 2]


def test_sus_for_zero_offspring_clears_everything():
    genomes = genomes_with_fitness(5, 1)
    genomes[0].set_offspring_quantity(3)
    stochastic_universal_sampling(genomes, 0)
    assert [genome.offspring_quantity for genome in genomes] == [0, 0]


def test_sus_rejects_offset_outside_pointer_distance():
    with pytest.raises(AssertionError):
        stochastic_universal_sampling(genomes_with_fitness(1, 1), 4, offset=0.3)


@pytest.mark.parametrize("quantity", [1, 2, 7, 10, 33, 60])
def test_sus_offspring_sum_is_exact(quantity):
    rng = np.random.default_rng(quantity)
    for _ in range(25):
        genomes = genomes_with_fitness(*rng.random(int(rng.integers(1, 12))) * 10.0)
        stochastic_universal_sampling(genomes, quantity)
        assert sum(genome.offspring_quantity for genome in genomes) == quantity


def test_sus_gives_nothing_to_zero_fitness_genome():
    genomes = genomes_with_fitness(0, 5, 0, 5)
    stochastic_universal_sampling(genomes, 6)
    assert genomes[0].offspring_quantity == 0
    assert genomes[2].offspring_quantity == 0


def test_offspring_from_fitness():
    genomes = genomes_with_fitness(2.7, 0.4, 3)
    assert offspring_from_fitness(genomes) == 5
    assert [genome.offspring_quantity for genome in genomes] == [2, 0, 3]


@pytest.fixture
def world():
    world = World(SingleTurnEnvironment(), recombination=False, seed=1)
    world.register_species(LONE)
    return world


def test_calculate_offspring_fills_species_target(world):
    world.genepool.extend(genomes_with_fitness(3, 1))
    world.set_offspring_quantity(LONE, 8)
    world.calculate_offspring()
    assert world.get_planned_population_size() == 8
    assert world.species_stats(LONE).genomes == world.genepool


def test_dynamic_offspring_uses_fitness(world):
    world.genepool.extend(genomes_with_fitness(3, 2))
    world.set_dynamic_offspring_quantity(LONE, True)
    world.calculate_offspring()
    assert world.get_offspring_quantity(LONE) == 5
    assert [genome.offspring_quantity for genome in world.genepool] == [3, 2]


def test_unused_genomes_are_pruned(world):
    world.genepool.extend(genomes_with_fitness(1, 0, 1))
    world.set_offspring_quantity(LONE, 4)
    world.calculate_offspring()
    world.delete_unused_genomes()
    assert len(world.genepool) == 2
    assert all(genome.offspring_quantity for genome in world.genepool)


def test_species_without_offspring_target_keeps_genomes(world):
    world.genepool.extend(genomes_with_fitness(0, 0))
    world.set_offspring_quantity(LONE, 0)
    world.calculate_offspring()
    world.delete_unused_genomes()
    assert len(world.genepool) == 2


def test_fortune_wheel_only_picks_parents_with_offspring(world):
    genomes = genomes_with_fitness(0, 1)
    genomes[1].set_offspring_quantity(3)
    world.genepool.extend(genomes)
    stats = world.species_stats(LONE)
    stats.genomes = genomes
    stats.offspring_quantity = 3
    assert all(world.fortune_wheel_genome(stats) is genomes[1] for _ in range(50))


def test_recombination_replaces_genomes_with_single_offspring_children(world):
    world.genepool.extend(genomes_with_fitness(2, 1))
    world.set_offspring_quantity(LONE, 6)
    world.calculate_offspring()
    parents = {genome.id for genome in world.genepool}
    world.recombine_all_genomes()
    assert len(world.genepool) == 6
    assert all(genome.offspring_quantity == 1 for genome in world.genepool)
    assert not parents & {genome.id for genome in world.genepool}
    assert world.species_stats(LONE).genomes == world.genepool


def test_recombination_keeps_species_without_offspring(world):
    world.register_species("Idle")
    idle = genomes_with_fitness(0, species="Idle")
    world.genepool.extend(idle)
    world.set_offspring_quantity("Idle", 0)
    world.genepool.extend(genomes_with_fitness(1))
    world.set_offspring_quantity(LONE, 2)
    world.calculate_offspring()
    world.recombine_all_genomes()
    assert idle[0] in world.genepool
    assert len(world.genepool) == 3


def test_mutation_splits_offspring_and_fitness(world):
    parent = Genome(LONE, 5, 0.5, mutation_rate=20.0)
    parent.fitness = 6.0
    parent.set_offspring_quantity(3)
    world.genepool.append(parent)
    assert world.mutate_genomes() == 2
    mutants = world.genepool[1:]
    assert len(mutants) == 2
    assert parent.offspring_quantity == 1
    assert all(mutant.offspring_quantity == 1 for mutant in mutants)
    assert all(mutant.id != parent.id for mutant in mutants)
    assert parent.fitness == pytest.approx(2.0)
    assert all(mutant.fitness == pytest.approx(2.0) for mutant in mutants)
    assert sum(genome.fitness for genome in world.genepool) == pytest.approx(6.0)
    assert world.get_planned_population_size() == 3


def test_no_mutation_without_rate(world):
    parent = Genome(LONE, 5, 0.5, mutation_rate=0.0)
    parent.set_offspring_quantity(4)
    world.genepool.append(parent)
    assert world.mutate_genomes() == 0
    assert world.genepool == [parent]


def test_prepare_generation_resets_fitness_and_keeps_target(world):
    world.genepool.extend(genomes_with_fitness(3, 1, 0))
    world.set_offspring_quantity(LONE, 5)
    world.set_mutation_rate(1.0)
    world.prepare_generation()
    assert world.get_planned_population_size() == 5
    assert all(genome.fitness == 0.0 for genome in world.genepool)
    assert world.best_fitness == 0.0
