# SPDX-License-Identifier: MIT
"""
Parallel replica runs of one generation and their merge into the canonical
world.
"""

from __future__ import annotations

from concurrent.futures import ThreadPoolExecutor
from typing import Generic, List, Optional

import numpy as np
from loguru import logger

from .environment import EnvT
from .randomness import use_generator
from .world import World


class ReplicaCoordinator(Generic[EnvT]):
    """
    Runs ``world.reiterations`` independent copies of a generation on a
    thread pool. Every replica draws from its own generator, spawned from the
    world's seed sequence, and results are merged in replica order so seeded
    runs are reproducible.
    """

    def __init__(self, world: World[EnvT], max_workers: Optional[int] = None) -> None:
        self.world = world
        self.max_workers = max_workers

    def _spawn_replicas(self, count: int) -> List[World[EnvT]]:
        seeds = self.world.seed_sequence.spawn(count)
        return [self.world.replicate(seed) for seed in seeds]

    @staticmethod
    def _run_one(replica: World[EnvT]) -> World[EnvT]:
        with use_generator(np.random.default_rng(replica.seed_sequence)):
            replica.run_replica()
        return replica

    def fan_out(self) -> List[World[EnvT]]:
        """Run every replica of the current generation and return them finished."""
        count = self.world.reiterations
        replicas = self._spawn_replicas(count)
        workers = self.max_workers or count
        if workers <= 1 or count == 1:
            return [self._run_one(replica) for replica in replicas]
        with ThreadPoolExecutor(max_workers=workers, thread_name_prefix="replica") as pool:
            return list(pool.map(self._run_one, replicas))

    def merge(self, replica: World[EnvT]) -> None:
        """Fold one finished replica into the canonical world.

        Only called on the coordinator thread once every replica is done, one
        replica at a time in replica order, so no accumulator needs a lock.
        """
        self.world.merge_genomes(replica)
        self.world.accumulate_fitness(replica)
        self.world.merge_replica_statistics(replica)

    def run_generation(self, generations: int = 1) -> None:
        for _ in range(generations):
            with use_generator(self.world.rng):
                self.world.prepare_generation()
            replicas = self.fan_out()
            with use_generator(self.world.rng):
                for replica in replicas:
                    self.merge(replica)
            logger.debug("merged {} replicas into generation {}", len(replicas), self.world.generation)
            self.world.finish_generation(len(replicas))


def run_generation(world: World[EnvT], generations: int = 1, max_workers: Optional[int] = None) -> World[EnvT]:
    """Advance ``world`` by ``generations`` full generations."""
    ReplicaCoordinator(world, max_workers).run_generation(generations)
    return world
