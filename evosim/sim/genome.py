# SPDX-License-Identifier: MIT
"""
Real-valued genomes with fitness and offspring bookkeeping.

A genome grows on demand: reading or writing an index beyond its current
length extends it with independently uniform-random genes. Genes read once
never change through growth, only through mutation, arithmetic or ``set``.
"""

from __future__ import annotations

import itertools
from typing import Iterable, List, Optional

from .randomness import randone

MIN_GENE_VALUE = 0.0
MAX_GENE_VALUE = 1.0
MUTATION_RATE_SCALER = 20.0
STRONG_MUTATION_CHANCE = 0.05
MAX_GENE_INDEX = 100_000

DEFAULT_MUTATION_RATE = 0.01
DEFAULT_MUTATION_INTENSITY = 0.21

_genome_ids = itertools.count()


class Genome:
    """Ordered gene vector of one genotype, tagged with its species."""

    def __init__(
        self,
        species: str,
        gene_quantity: int = 0,
        init_value: Optional[float] = None,
        mutation_intensity: float = DEFAULT_MUTATION_INTENSITY,
        mutation_rate: float = DEFAULT_MUTATION_RATE,
    ) -> None:
        self.species = species
        self.name = species
        self.id = next(_genome_ids)
        self.fitness = 0.0
        self.offspring_quantity = 0
        self.last_offspring_quantity = 0
        self.mutation_intensity = mutation_intensity
        self.mutation_rate = mutation_rate
        self.genes: List[float] = []
        self.reinitialize(gene_quantity, init_value)

    # ------------------------------------------------------------------ genes
    def __len__(self) -> int:
        return len(self.genes)

    def reinitialize(self, gene_quantity: Optional[int] = None, init_value: Optional[float] = None) -> None:
        """Rebuild the gene vector. This is the only way a genome can shrink."""
        if gene_quantity is None:
            gene_quantity = len(self.genes)
        assert gene_quantity >= 0, f"negative gene quantity {gene_quantity}"
        if init_value is None:
            self.genes = [randone() for _ in range(gene_quantity)]
        else:
            self.genes = [float(init_value)] * gene_quantity

    def _grow(self, upto: int) -> None:
        # Fill slots up to but excluding ``upto`` with fresh random genes.
        assert 0 <= upto <= MAX_GENE_INDEX + 1, f"gene index {upto} out of range"
        while len(self.genes) < upto:
            self.genes.append(randone())

    def is_gene(self, index: int) -> bool:
        return 0 <= index < len(self.genes)

    def get(self, index: int) -> float:
        self._grow(index + 1)
        return self.genes[index]

    def set(self, index: int, value: float) -> None:
        if index >= len(self.genes):
            self._grow(index)
            self.genes.append(float(value))
        else:
            self.genes[index] = float(value)

    def add(self, index: int, value: float) -> None:
        self._grow(index + 1)
        self.genes[index] += value

    def divide(self, index: int, divider: float) -> None:
        if index >= len(self.genes):
            self._grow(index)
            self.genes.append(randone())
        self.genes[index] /= divider

    def values(self) -> List[float]:
        return list(self.genes)

    def gene_sum(self) -> float:
        return float(sum(self.genes))

    def describe_gene(self, index: int) -> str:
        return f"{self.species} Gene {index}"

    # -------------------------------------------------------------- identity
    def renew_id(self) -> None:
        self.id = next(_genome_ids)

    def copy(self) -> "Genome":
        """Exact copy, including id and bookkeeping."""
        twin = Genome.__new__(Genome)
        twin.__dict__.update(self.__dict__)
        twin.genes = list(self.genes)
        return twin

    # ------------------------------------------------------------- offspring
    def set_offspring_quantity(self, quantity: int) -> None:
        assert quantity >= 0, f"negative offspring quantity {quantity}"
        self.offspring_quantity = int(quantity)

    def inc_offspring_quantity(self, amount: int = 1) -> None:
        self.offspring_quantity += amount

    def dec_offspring_quantity(self, amount: int = 1) -> None:
        self.offspring_quantity = max(0, self.offspring_quantity - amount)

    def increase_fitness(self, amount: float) -> None:
        self.fitness += amount

    # -------------------------------------------------------------- mutation
    def mutation_chance(self, gene_quantity: Optional[int] = None) -> bool:
        """
        Roll whether at least one of ``gene_quantity`` genes mutates.

        The chance is ``1 - (1 - rate / MUTATION_RATE_SCALER) ** n``. With
        no genes nothing can mutate.
        """
        if gene_quantity is None:
            gene_quantity = len(self.genes)
        if gene_quantity <= 0:
            return False
        survive = (1.0 - self.mutation_rate / MUTATION_RATE_SCALER) ** gene_quantity
        return randone() > survive

    def mutate(self) -> int:
        """
        Mutate at least one gene and keep going while the shrinking set of
        untouched genes still rolls a mutation. Returns the number of
        mutated genes.
        """
        remaining = list(range(len(self.genes)))
        mutated = 0
        while remaining:
            slot = int(len(remaining) * randone())
            slot = min(slot, len(remaining) - 1)
            index = remaining.pop(slot)
            if randone() < STRONG_MUTATION_CHANCE:
                value = randone() * MAX_GENE_VALUE
            else:
                delta = randone() * self.mutation_intensity - self.mutation_intensity / 2.0
                value = self.genes[index] + delta
            self.genes[index] = min(MAX_GENE_VALUE, max(MIN_GENE_VALUE, value))
            mutated += 1
            if not self.mutation_chance(len(remaining)):
                break
        return mutated

    @staticmethod
    def recombine(parent_a: "Genome", parent_b: "Genome", cut: Optional[float] = None) -> "Genome":
        """
        Single-point crossover. Indices below ``cut`` come from ``parent_a``,
        the rest from ``parent_b``; a short parent grows on read.
        """
        length = max(len(parent_a), len(parent_b))
        child = Genome(
            parent_a.species,
            length,
            0.0,
            mutation_intensity=parent_a.mutation_intensity,
            mutation_rate=parent_a.mutation_rate,
        )
        child.name = parent_a.name
        if not length:
            return child
        if cut is None:
            cut = length * randone()
        assert 0 <= cut <= length, f"cut point {cut} out of range"
        for index in range(length):
            source = parent_a if index < cut else parent_b
            child.genes[index] = source.get(index)
        return child

    def merge(self, other: "Genome") -> None:
        """Append the trailing genes ``other`` has beyond this genome's length."""
        if len(other) > len(self):
            self.genes.extend(other.genes[len(self):])

    # ------------------------------------------------------------ arithmetic
    def _combined(self, other: "Genome", sign: float) -> "Genome":
        result = self.copy()
        length = max(len(self), len(other))
        result.genes = [
            (self.genes[i] if i < len(self) else 0.0) + sign * (other.genes[i] if i < len(other) else 0.0)
            for i in range(length)
        ]
        return result

    def _scaled(self, factor: float) -> "Genome":
        result = self.copy()
        result.genes = [gene * factor for gene in self.genes]
        return result

    def __add__(self, other: "Genome") -> "Genome":
        return self._combined(other, 1.0)

    def __sub__(self, other: "Genome") -> "Genome":
        return self._combined(other, -1.0)

    def __mul__(self, factor: float) -> "Genome":
        return self._scaled(factor)

    __rmul__ = __mul__

    def __truediv__(self, divider: float) -> "Genome":
        return self._scaled(1.0 / divider)

    def __iadd__(self, other: "Genome") -> "Genome":
        self.genes = self._combined(other, 1.0).genes
        return self

    def __isub__(self, other: "Genome") -> "Genome":
        self.genes = self._combined(other, -1.0).genes
        return self

    def __imul__(self, factor: float) -> "Genome":
        self.genes = [gene * factor for gene in self.genes]
        return self

    def __itruediv__(self, divider: float) -> "Genome":
        self.genes = [gene / divider for gene in self.genes]
        return self

    def __lt__(self, other: "Genome") -> bool:
        return self.fitness < other.fitness

    def __gt__(self, other: "Genome") -> bool:
        return self.fitness > other.fitness

    # ---------------------------------------------------------------- export
    def to_row(self) -> List[float]:
        return [self.fitness, *self.genes]

    def __repr__(self) -> str:
        return (
            f"Genome(id={self.id}, species={self.species!r}, fitness={self.fitness:.3f}, "
            f"offspring={self.offspring_quantity}, genes={len(self.genes)})"
        )


def collective_fitness(genomes: Iterable[Genome]) -> float:
    return float(sum(genome.fitness for genome in genomes))
