from __future__ import annotations

import random

import pytest

from evoworld.agents import Agent
from evoworld.config import SimConfig
from evoworld.genetics import Genes
from evoworld.grid import create_grid


class FixedRandom(random.Random):
    """Every ``random()`` draw returns the same value."""

    def __init__(self, value: float = 0.0, seed: int = 0) -> None:
        super().__init__(seed)
        self.value = value

    def random(self) -> float:
        return self.value


def neutral_genes(**overrides) -> Genes:
    values = dict(
        food_preference=1.0,
        exploration=0.5,
        reproduction_threshold=15.0,
        mutation_rate=0.01,
        risk_tolerance=0.5,
        social_drive=0.5,
        intelligence=0.5,
        creativity=0.5,
        curiosity=0.5,
        lineage_id=1,
    )
    values.update(overrides)
    return Genes(**values)


def within_bounds(genes: Genes, specs) -> bool:
    return all(specs[name].low <= value <= specs[name].high for name, value in genes.numeric().items())


@pytest.fixture
def quiet_config() -> SimConfig:
    """Small world with every background random process switched off."""
    return SimConfig().with_overrides(
        **{
            "grid.width": 5,
            "grid.height": 5,
            "grid.food_spawn_chance": 0.0,
            "grid.recycle_food": False,
            "grid.stick_spawn_chance": 0.0,
            "grid.stone_spawn_chance": 0.0,
            "learning.epsilon": 0.0,
            "learning.memory_transfer_chance": 0.0,
            "invention.enabled": False,
            "crafting.enabled": False,
        }
    )


@pytest.fixture
def make_grid():
    def _make(width: int = 5, height: int = 5, food=()):
        grid = create_grid(width, height)
        for x, y in food:
            grid[y][x].food = True
        return grid

    return _make


@pytest.fixture
def make_agent():
    def _make(agent_id: int, x: int, y: int, energy: float = 10.0, sex=None, age_ticks: int = 0, **genes) -> Agent:
        return Agent(id=agent_id, x=x, y=y, energy=energy, genes=neutral_genes(**genes), sex=sex, age_ticks=age_ticks)

    return _make


@pytest.fixture
def fixed_rng():
    return FixedRandom
