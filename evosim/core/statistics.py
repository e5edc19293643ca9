# SPDX-License-Identifier: MIT
"""
Per-generation statistics recorded as named data series and exported as CSV.
"""

from __future__ import annotations

import csv
import io
from dataclasses import dataclass, field
from pathlib import Path
from typing import IO, Iterator, List, Optional, Sequence, Union

from loguru import logger

from evosim.sim.genome import Genome
from evosim.sim.world import World


@dataclass
class DataSeries:
    """One value vector per generation, stored as genomes so fitness travels along."""

    title: str
    species_name: str
    records: List[Optional[Genome]] = field(default_factory=list)


class SimulationDatabase:
    """
    Collects data series from a world once per generation. Subclasses define
    the series and override :meth:`collect`.
    """

    def __init__(self) -> None:
        self.series: List[DataSeries] = []

    def add_series(self, series: DataSeries) -> DataSeries:
        self.series.append(series)
        return series

    def collect(self, world: World) -> None:
        raise NotImplementedError

    def clear(self) -> None:
        for series in self.series:
            series.records.clear()

    def generations(self) -> int:
        return max((len(series.records) for series in self.series), default=0)

    # --------------------------------------------------------------- records
    @staticmethod
    def values_record(species: str, values: Sequence[float], fitness: float = 0.0) -> Genome:
        record = Genome(species, len(values), 0.0)
        for index, value in enumerate(values):
            record.set(index, value)
        record.fitness = fitness
        return record

    @staticmethod
    def average_genome_record(world: World, species: str) -> Optional[Genome]:
        average = world.average_genome(species)
        return average.copy() if average is not None else None

    @staticmethod
    def best_genome_record(world: World, species: str) -> Optional[Genome]:
        return world.best_genome(species)

    @staticmethod
    def best_fitness_per_offspring(world: World, species: str) -> float:
        best = world.best_genome(species)
        if best is None or not best.offspring_quantity:
            return 0.0
        return best.fitness / best.offspring_quantity

    # ---------------------------------------------------------------- export
    def rows(self) -> Iterator[List[object]]:
        """Yield ``generation, title, species, fitness, genes...`` rows."""
        for series in self.series:
            for generation, record in enumerate(series.records, start=1):
                if record is None:
                    continue
                yield [generation, series.title, series.species_name, *record.to_row()]

    def write_csv(self, target: Union[str, Path, IO[str]]) -> None:
        if isinstance(target, (str, Path)):
            path = Path(target)
            with path.open("w", newline="", encoding="utf-8") as handle:
                self._write(handle)
            logger.info("wrote statistics for {} generations to {}", self.generations(), path)
        else:
            self._write(target)

    def _write(self, handle: IO[str]) -> None:
        if not self.series:
            handle.write("empty database\n")
            return
        writer = csv.writer(handle)
        for row in self.rows():
            writer.writerow(row)

    def to_csv_string(self) -> str:
        buffer = io.StringIO()
        self._write(buffer)
        return buffer.getvalue()
