"""Gene vectors: random generation, mutation and two-parent combination."""

from __future__ import annotations

from dataclasses import asdict, dataclass, fields
from typing import Dict, Tuple
import math
import random

from .config import GeneSpec, ReproductionConfig


@dataclass(frozen=True)
class Genes:
    food_preference: float
    exploration: float
    reproduction_threshold: float
    mutation_rate: float
    risk_tolerance: float
    social_drive: float
    intelligence: float
    creativity: float
    curiosity: float
    lineage_id: int

    def numeric(self) -> Dict[str, float]:
        values = asdict(self)
        values.pop("lineage_id")
        return values


NUMERIC_GENES: Tuple[str, ...] = tuple(f.name for f in fields(Genes) if f.name != "lineage_id")


def random_lineage(rng: random.Random, space: int) -> int:
    return rng.randrange(space)


def random_genes(specs: Dict[str, GeneSpec], rng: random.Random, repro: ReproductionConfig) -> Genes:
    values = {name: rng.uniform(specs[name].init_low, specs[name].init_high) for name in NUMERIC_GENES}
    return Genes(lineage_id=random_lineage(rng, repro.lineage_space), **values)


def mutate_value(
    rng: random.Random,
    value: float,
    mutation_rate: float,
    spec: GeneSpec,
) -> float:
    if rng.random() < mutation_rate:
        value += rng.uniform(-spec.magnitude, spec.magnitude)
    if math.isnan(value):
        value = spec.low
    return spec.clamp(value)


def mutate(
    parent: Genes,
    specs: Dict[str, GeneSpec],
    rng: random.Random,
    repro: ReproductionConfig,
) -> Genes:
    """Mutate each numeric gene with the parent's own mutation rate.

    ``mutation_rate`` goes through the same roll, so evolvability itself
    evolves. The lineage marker is reseeded with a small fixed chance.
    """
    rate = parent.mutation_rate
    values = {name: mutate_value(rng, getattr(parent, name), rate, specs[name]) for name in NUMERIC_GENES}
    lineage = parent.lineage_id
    if rng.random() < repro.new_lineage_chance:
        lineage = random_lineage(rng, repro.lineage_space)
    return Genes(lineage_id=lineage, **values)


def combine(
    parent_a: Genes,
    parent_b: Genes,
    specs: Dict[str, GeneSpec],
    rng: random.Random,
    repro: ReproductionConfig,
) -> Genes:
    values = {
        name: specs[name].clamp((getattr(parent_a, name) + getattr(parent_b, name)) / 2.0)
        for name in NUMERIC_GENES
    }
    if parent_a.lineage_id == parent_b.lineage_id:
        lineage = parent_a.lineage_id
    else:
        lineage = random_lineage(rng, repro.lineage_space)
    return mutate(Genes(lineage_id=lineage, **values), specs, rng, repro)
