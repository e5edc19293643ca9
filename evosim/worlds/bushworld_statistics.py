# SPDX-License-Identifier: MIT
"""Statistics series recorded for bush world runs."""

from __future__ import annotations

from evosim.core.statistics import DataSeries, SimulationDatabase
from evosim.sim.world import World

from .bushworld import Bushworld
from .insects import FLY, WASP

BOTH = "Fly and Wasp"


class BushworldDatabase(SimulationDatabase):
    def __init__(self) -> None:
        super().__init__()
        series = self.add_series
        self.average_fly = series(DataSeries("Average Fly Genome", FLY))
        self.best_fly = series(DataSeries("Best Fly Genome", FLY))
        self.average_wasp = series(DataSeries("Average Wasp Genome", WASP))
        self.best_wasp = series(DataSeries("Best Wasp Genome", WASP))
        self.cluster_time = series(DataSeries("Average Cluster Time", BOTH))
        self.cluster_jumps = series(DataSeries("Average Cluster Jumps", BOTH))
        self.best_jumps = series(DataSeries("Best Insect Cluster Jumps", BOTH))
        self.best_cluster_time = series(DataSeries("Best Insect Average Cluster Time", BOTH))
        self.average_fitness = series(DataSeries("Average Fitness", BOTH))
        self.best_fitness = series(DataSeries("Best Fitness", BOTH))

    def collect(self, world: World) -> None:
        bush = world.environment
        assert isinstance(bush, Bushworld), "bush world statistics need a bush world"

        def pair(fly_value: float, wasp_value: float):
            return self.values_record(BOTH, [fly_value, wasp_value])

        self.average_fly.records.append(self.average_genome_record(world, FLY))
        self.best_fly.records.append(self.best_genome_record(world, FLY))
        self.average_wasp.records.append(self.average_genome_record(world, WASP))
        self.best_wasp.records.append(self.best_genome_record(world, WASP))
        self.cluster_time.records.append(pair(bush.average_branch_time(FLY), bush.average_branch_time(WASP)))
        self.cluster_jumps.records.append(pair(bush.average_cluster_jumps(FLY), bush.average_cluster_jumps(WASP)))
        self.best_jumps.records.append(
            pair(bush.best_insect(FLY).cluster_jumps, bush.best_insect(WASP).cluster_jumps)
        )
        self.best_cluster_time.records.append(
            pair(bush.best_insect(FLY).average_branch_time(), bush.best_insect(WASP).average_branch_time())
        )
        self.average_fitness.records.append(
            pair(world.get_average_fitness(FLY), world.get_average_fitness(WASP))
        )
        self.best_fitness.records.append(
            pair(self.best_fitness_per_offspring(world, FLY), self.best_fitness_per_offspring(world, WASP))
        )
