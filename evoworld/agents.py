"""Agent model, ageing and fertility."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import List, Optional, Set, Tuple
import random

from . import genetics
from .config import LifeConfig, SimConfig, SEX_FEMALE, SEX_MALE
from .genetics import Genes
from .grid import Grid, grid_size
from .inventions import Invention, InventionEffects
from .memory import QTable


@dataclass
class Tool:
    type: str
    durability: int


@dataclass
class Pregnancy:
    mate_id: int
    gestation_progress: int
    child_genes: Genes
    child_inventions: List[Invention] = field(default_factory=list)
    child_invention_points: float = 0.0


@dataclass
class Agent:
    id: int
    x: int
    y: int
    energy: float
    genes: Genes
    memory: QTable = field(default_factory=QTable)
    sex: Optional[str] = None
    age_ticks: int = 0
    last_action: str = "none"
    pregnancy: Optional[Pregnancy] = None
    reproduction_cooldown: int = 0
    tool: Optional[Tool] = None
    stored_food: int = 0
    inventions: List[Invention] = field(default_factory=list)
    invention_points: float = 0.0

    def copy(self) -> "Agent":
        pregnancy = None
        if self.pregnancy is not None:
            pregnancy = Pregnancy(
                mate_id=self.pregnancy.mate_id,
                gestation_progress=self.pregnancy.gestation_progress,
                child_genes=self.pregnancy.child_genes,
                child_inventions=list(self.pregnancy.child_inventions),
                child_invention_points=self.pregnancy.child_invention_points,
            )
        return Agent(
            id=self.id,
            x=self.x,
            y=self.y,
            energy=self.energy,
            genes=self.genes,
            memory=self.memory.copy(),
            sex=self.sex,
            age_ticks=self.age_ticks,
            last_action=self.last_action,
            pregnancy=pregnancy,
            reproduction_cooldown=self.reproduction_cooldown,
            tool=Tool(self.tool.type, self.tool.durability) if self.tool else None,
            stored_food=self.stored_food,
            inventions=list(self.inventions),
            invention_points=self.invention_points,
        )

    @property
    def position(self) -> Tuple[int, int]:
        return self.x, self.y

    @property
    def is_pregnant(self) -> bool:
        return self.pregnancy is not None

    def age_years(self, life: LifeConfig) -> float:
        return self.age_ticks * life.years_per_tick

    def step_age(self) -> None:
        self.age_ticks += 1
        if self.reproduction_cooldown > 0:
            self.reproduction_cooldown -= 1

    def too_old(self, life: LifeConfig) -> bool:
        return self.age_years(life) > life.max_lifespan_years

    def hunger_cutoff(self, cfg: SimConfig) -> float:
        return cfg.learning.hungry_cutoff_ratio * self.genes.food_preference

    def reproduction_threshold(self, cfg: SimConfig, effects: Optional[InventionEffects] = None) -> float:
        """Own threshold lowered for risk takers and by reproduction inventions."""
        threshold = self.genes.reproduction_threshold
        if cfg.sexual:
            weight = cfg.reproduction.risk_threshold_weight
            threshold *= 1.0 - weight * (self.genes.risk_tolerance - 0.5)
        if effects is not None:
            threshold *= 1.0 - effects.repro_reduction
        return threshold


def fertility_factor(age_years: float, life: LifeConfig) -> float:
    """0 outside the fertile window, rising linearly to 1 at prime age and back down."""
    low = life.min_repro_age_years
    prime = life.prime_age_years
    high = life.max_repro_age_years
    if age_years <= low or age_years >= high:
        return 0.0
    if age_years <= prime:
        return (age_years - low) / max(1e-9, prime - low)
    return (high - age_years) / max(1e-9, high - prime)


def is_fertile(agent: Agent, life: LifeConfig) -> bool:
    return fertility_factor(agent.age_years(life), life) > 0.0


def create_random_agent(agent_id: int, x: int, y: int, cfg: SimConfig, rng: random.Random) -> Agent:
    life = cfg.life
    sex = None
    age_ticks = 0
    if cfg.sexual:
        sex = SEX_MALE if rng.random() < 0.5 else SEX_FEMALE
        # founders start between fertile age and prime so the first generation can mate
        years = rng.uniform(life.min_repro_age_years, life.prime_age_years)
        age_ticks = int(years / life.years_per_tick)
    return Agent(
        id=agent_id,
        x=x,
        y=y,
        energy=float(rng.randint(cfg.energy.initial_min, cfg.energy.initial_max)),
        genes=genetics.random_genes(cfg.genes, rng, cfg.reproduction),
        sex=sex,
        age_ticks=age_ticks,
    )


def seed_agents(grid: Grid, cfg: SimConfig, rng: random.Random, count: Optional[int] = None) -> List[Agent]:
    """Place founders on free land cells; may return fewer than requested."""
    count = cfg.grid.initial_agents if count is None else count
    width, height = grid_size(grid)
    agents: List[Agent] = []
    taken: Set[Tuple[int, int]] = set()
    attempts = 0
    while len(agents) < count and attempts < cfg.grid.placement_attempts:
        attempts += 1
        x = rng.randrange(width)
        y = rng.randrange(height)
        cell = grid[y][x]
        if (x, y) in taken or cell.food or cell.is_water or cell.occupant_id is not None:
            continue
        taken.add((x, y))
        agent = create_random_agent(len(agents) + 1, x, y, cfg, rng)
        cell.occupant_id = agent.id
        agents.append(agent)
    return agents


def next_agent_id(agents: List[Agent]) -> int:
    return max((a.id for a in agents), default=0) + 1
