import math

import pytest

from evosim.sim.agent import Agent
from evosim.sim.genome import Genome
from evosim.sim.world import World

from .conftest import LONE, LoneAgent, SingleTurnEnvironment, make_bush_world


class CountingEnvironment(SingleTurnEnvironment):
    """Agents act with a configurable death chance and record their turns."""

    def __init__(self, death_chance=0.0, **kwargs):
        super().__init__(**kwargs)
        self.death_chance = death_chance
        self.turns = []

    def create_agent(self, genome):
        agent = LoneAgent(genome, death_chance=self.death_chance, duration_noise=0.0)
        return agent

    def execute_action(self, agent, action):
        self.turns.append((self.world.turn, agent.id))
        super().execute_action(agent, action)


def lone_world(env, **kwargs):
    world = World(env, **kwargs)
    world.register_species(LONE)
    return world


def test_clock_never_runs_backwards():
    world = make_bush_world(seed=5)
    world.set_mutation_rate(0.0)
    world.calculate_offspring()
    world.create_offspring()
    world.environment.reset_statistics()
    times = []
    while world.population and world.run():
        times.append(world.turn)
    assert times
    assert times == sorted(times)


def test_time_limit_stops_without_consuming_the_action():
    env = CountingEnvironment()
    world = lone_world(env, max_turns=5.0)
    world.duration_noise = 0.0
    world.add_new_genomes(LONE, 1)
    world.run_until_done()
    agent = next(iter(world.population.values()))
    assert [turn for turn, _ in env.turns] == [0.0, 1.0, 2.0, 3.0, 4.0, 5.0]
    assert agent.action_finishing_time == 6.0
    assert agent.is_alive()
    assert world.turn == 6.0


def test_loop_ends_when_everybody_died():
    env = CountingEnvironment(death_chance=1.0)
    world = lone_world(env)
    world.add_new_genomes(LONE, 3)
    world.run_until_done()
    assert not world.population
    assert env.deaths == 3
    # Each agent acted once, then died during that action.
    assert len(env.turns) == 3


def test_equal_finishing_times_run_in_agent_id_order():
    env = CountingEnvironment()
    world = lone_world(env, max_turns=0.5)
    world.duration_noise = 0.0
    world.add_new_genomes(LONE, 4)
    world.run_until_done()
    ids = [agent_id for _, agent_id in env.turns]
    assert ids == sorted(ids)
    assert len(ids) == 4


def test_rescheduled_agents_are_not_run_twice():
    env = CountingEnvironment()
    world = lone_world(env, max_turns=3.5)
    world.duration_noise = 0.0
    world.add_new_genomes(LONE, 2)
    world.freeze_agents(2.0)
    world.run_until_done()
    assert [turn for turn, _ in env.turns] == [2.0, 2.0, 3.0, 3.0]


def test_add_new_genomes_seeds_one_agent_each():
    world = lone_world(SingleTurnEnvironment(), hidden_layers=3, duration_noise=0.25)
    created = world.add_new_genomes(LONE, 5, 7)
    assert len(created) == 5
    assert world.get_population_size() == 5
    assert world.get_population_size(LONE) == 5
    assert world.get_population_size("Other") == 0
    assert all(len(genome) == 7 for genome in created)
    assert all(agent.hidden_layers == 3 for agent in world.population.values())
    assert all(agent.duration_noise == 0.25 for agent in world.population.values())


def test_create_offspring_requires_empty_population():
    world = lone_world(SingleTurnEnvironment())
    world.add_new_genomes(LONE, 1)
    with pytest.raises(AssertionError):
        world.create_offspring()


def test_create_offspring_materialises_planned_agents():
    world = lone_world(SingleTurnEnvironment())
    genome = Genome(LONE)
    genome.set_offspring_quantity(4)
    world.genepool.append(genome)
    world.create_offspring()
    assert world.get_population_size() == world.get_planned_population_size() == 4
    assert all(agent.genome is genome for agent in world.population.values())


def test_kill_all_agents_notifies_environment():
    env = SingleTurnEnvironment()
    world = lone_world(env)
    world.add_new_genomes(LONE, 3)
    agents = list(world.population.values())
    world.kill_all_agents()
    assert not world.population
    assert env.deaths == 3
    assert not any(agent.is_alive() for agent in agents)


def test_set_max_age_per_species():
    world = lone_world(SingleTurnEnvironment())
    world.add_new_genomes(LONE, 2)
    world.set_max_age(10.0, "Other")
    assert all(agent.max_age == math.inf for agent in world.population.values())
    world.set_max_age(10.0, LONE)
    assert all(agent.max_age == 10.0 for agent in world.population.values())


def test_unknown_species_is_rejected():
    world = lone_world(SingleTurnEnvironment())
    with pytest.raises(AssertionError):
        world.species_stats("Nobody")


def test_reiterations_are_bounded():
    world = lone_world(SingleTurnEnvironment())
    with pytest.raises(AssertionError):
        world.set_max_generation_reiterations(0)


def test_mutation_settings_per_species():
    world = lone_world(SingleTurnEnvironment())
    lone = Genome(LONE)
    other = Genome("Other")
    world.genepool.extend([lone, other])
    world.set_mutation_rate(0.5, LONE)
    world.set_mutation_intensity(0.3)
    assert lone.mutation_rate == 0.5
    assert other.mutation_rate != 0.5
    assert lone.mutation_intensity == other.mutation_intensity == 0.3


def test_best_agent_statistic():
    world = lone_world(SingleTurnEnvironment())
    world.add_new_genomes(LONE, 2)
    first, second = world.population.values()
    world.inc_agent_fitness_statistic(first, 2.0)
    world.inc_agent_fitness_statistic(second, 1.0)
    assert world.get_best_agent(LONE) is first
    assert world.get_best_per_agent_fitness(LONE) == 2.0
    world.inc_agent_fitness_statistic(second, 2.0)
    assert world.get_best_agent(LONE) is second
    world.reset_agent_fitness_statistics()
    assert world.get_best_per_agent_fitness(LONE) == 0.0


def test_best_agent_placeholder_when_nobody_scored():
    world = lone_world(SingleTurnEnvironment())
    placeholder = world.get_best_agent(LONE)
    assert isinstance(placeholder, Agent)
    assert placeholder.personal_fitness == 0.0
    assert placeholder.life_span() == 0.0
    assert world.get_best_agent(LONE) is placeholder


def test_average_and_best_genome():
    world = lone_world(SingleTurnEnvironment())
    low = Genome(LONE, 2, 0.0)
    high = Genome(LONE, 2, 1.0)
    low.fitness, high.fitness = 1.0, 5.0
    low.set_offspring_quantity(1)
    high.set_offspring_quantity(3)
    world.genepool.extend([low, high])

    average = world.average_genome(LONE)
    assert average.values() == pytest.approx([0.75, 0.75])
    assert average.fitness == pytest.approx(6.0 / 4)
    assert average.offspring_quantity == 4
    assert average.name.startswith("Average")
    assert world.get_average_fitness(LONE) == pytest.approx(6.0 / 4)

    best = world.best_genome(LONE)
    assert best.values() == [1.0, 1.0]
    assert best.name.startswith("Best")
    assert best is not high
    assert world.best_genome("Other") is None


def test_average_genome_reused_while_species_wants_no_offspring():
    world = lone_world(SingleTurnEnvironment())
    genome = Genome(LONE, 2, 0.5)
    genome.set_offspring_quantity(2)
    world.genepool.append(genome)
    world.set_offspring_quantity(LONE, 2)
    average = world.average_genome(LONE)
    world.set_offspring_quantity(LONE, 0)
    assert world.average_genome(LONE) is average


def test_replicate_copies_genepool_and_drops_agents():
    env = SingleTurnEnvironment()
    world = lone_world(env)
    world.add_new_genomes(LONE, 2, 3)
    replica = world.replicate()
    assert not replica.population
    assert replica.environment is not env
    assert replica.environment.world is replica
    assert [g.values() for g in replica.genepool] == [g.values() for g in world.genepool]
    assert replica.genepool[0] is not world.genepool[0]
    assert world.get_population_size() == 2


def test_kill_agent_removes_one_agent():
    world = lone_world(SingleTurnEnvironment())
    world.add_new_genomes(LONE, 2)
    victim = next(iter(world.population.values()))
    world.kill_agent(victim)
    assert not victim.is_alive()
    assert world.get_population_size() == 1
    # Stale schedule entries of the dead agent are skipped.
    assert world.run()


def test_collective_fitness_and_standard_offspring():
    world = World(SingleTurnEnvironment(), standard_offspring_quantity=7)
    assert world.register_species("First").offspring_quantity == 7
    world.set_standard_offspring_quantity(3)
    assert world.register_species("Second").offspring_quantity == 3
    assert world.get_offspring_quantity("First") == 7
    assert world.get_offspring_quantity("Unknown") == 0

    genomes = [Genome(LONE), Genome(LONE)]
    genomes[0].fitness, genomes[1].fitness = 1.5, 2.0
    world.genepool.extend(genomes)
    assert world.get_collective_fitness() == 3.5
    assert world.get_collective_fitness(genomes[:1]) == 1.5
