"""Stateful world wrapper around the pure step engine."""

from __future__ import annotations

from collections import Counter, deque
from dataclasses import dataclass, field
from typing import Deque, Dict, List, Optional
import logging
import random

from .agents import Agent, seed_agents
from .config import SimConfig
from .engine import DEATH_LOW_ENERGY, DEATH_OLD_AGE, StepResult, step_world
from .grid import Grid, count_food, generate_grid
from .inventions import DiscoveryEvent

logger = logging.getLogger("evoworld.environment")


@dataclass(frozen=True)
class HistoryPoint:
    tick: int
    total_agents: int
    counts_by_lineage: Dict[int, int]

    @classmethod
    def from_agents(cls, tick: int, agents: List[Agent]) -> "HistoryPoint":
        counts = Counter(a.genes.lineage_id for a in agents)
        return cls(tick=tick, total_agents=len(agents), counts_by_lineage=dict(counts))


@dataclass
class WorldState:
    grid: Grid
    agents: List[Agent]
    tick: int = 0
    history: List[HistoryPoint] = field(default_factory=list)
    discoveries: List[DiscoveryEvent] = field(default_factory=list)


@dataclass
class StepStats:
    step: int
    population: int
    births: int
    matings: int
    deaths: int
    deaths_low_energy: int
    deaths_old_age: int
    collisions: int
    discoveries: int
    food: int
    pregnant: int
    lineages: int
    avg_energy: float
    avg_age_years: float
    avg_q_entries: float
    total_inventions: int


class Environment:
    def __init__(self, cfg: SimConfig, rng: random.Random, state: WorldState) -> None:
        self.cfg = cfg
        self.rng = rng
        self.grid: Grid = state.grid
        self.agents: List[Agent] = state.agents
        self.tick = state.tick
        self.history: Deque[HistoryPoint] = deque(state.history, maxlen=cfg.history_length)
        self.discoveries: List[DiscoveryEvent] = list(state.discoveries)
        self.last_logs: List[str] = []

    @classmethod
    def create(cls, cfg: SimConfig, seed: Optional[int] = None, initial_population: Optional[int] = None) -> "Environment":
        rng = random.Random(seed)
        grid = generate_grid(cfg.grid, rng)
        agents = seed_agents(grid, cfg, rng, initial_population)
        wanted = cfg.grid.initial_agents if initial_population is None else initial_population
        if len(agents) < wanted:
            logger.info("placed %d of %d founders", len(agents), wanted)
        return cls(cfg, rng, WorldState(grid=grid, agents=agents))

    @classmethod
    def from_state(cls, cfg: SimConfig, state: WorldState, seed: Optional[int] = None) -> "Environment":
        return cls(cfg, random.Random(seed), state)

    def state(self) -> WorldState:
        return WorldState(
            grid=self.grid,
            agents=self.agents,
            tick=self.tick,
            history=list(self.history),
            discoveries=list(self.discoveries),
        )

    def restore(self, state: WorldState) -> None:
        """Swap in a fully decoded state; nothing changes if this is never reached."""
        self.grid = state.grid
        self.agents = state.agents
        self.tick = state.tick
        self.history = deque(state.history, maxlen=self.cfg.history_length)
        self.discoveries = list(state.discoveries)
        self.last_logs = []

    def step(self) -> StepStats:
        result = step_world(self.agents, self.grid, self.cfg, self.rng, tick=self.tick + 1)
        self.tick += 1
        self.agents = result.agents
        self.grid = result.grid
        self.last_logs = result.logs
        self.discoveries.extend(result.discoveries)
        self.history.append(HistoryPoint.from_agents(self.tick, self.agents))
        return self._collect_stats(result)

    def _collect_stats(self, result: StepResult) -> StepStats:
        agents = self.agents
        population = len(agents)
        life = self.cfg.life
        if population:
            avg_energy = sum(a.energy for a in agents) / population
            avg_age_years = sum(a.age_years(life) for a in agents) / population
            avg_q_entries = sum(len(a.memory) for a in agents) / population
        else:
            avg_energy = avg_age_years = avg_q_entries = 0.0
        return StepStats(
            step=self.tick,
            population=population,
            births=result.births,
            matings=result.matings,
            deaths=sum(result.deaths.values()),
            deaths_low_energy=result.deaths[DEATH_LOW_ENERGY],
            deaths_old_age=result.deaths[DEATH_OLD_AGE],
            collisions=result.collisions,
            discoveries=len(result.discoveries),
            food=count_food(self.grid),
            pregnant=sum(1 for a in agents if a.is_pregnant),
            lineages=len({a.genes.lineage_id for a in agents}),
            avg_energy=avg_energy,
            avg_age_years=avg_age_years,
            avg_q_entries=avg_q_entries,
            total_inventions=sum(len(a.inventions) for a in agents),
        )
