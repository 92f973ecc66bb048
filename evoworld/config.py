"""Simulation configuration and shared constants."""

from __future__ import annotations

from dataclasses import dataclass, field, fields, replace
from enum import Enum
from typing import Any, Dict, Tuple


class Terrain(str, Enum):
    PLAIN = "plain"
    WATER = "water"
    RICH = "rich"
    HAZARD = "hazard"


class Direction(str, Enum):
    UP = "up"
    DOWN = "down"
    LEFT = "left"
    RIGHT = "right"
    STAY = "stay"

    @property
    def delta(self) -> Tuple[int, int]:
        return _DELTAS[self]


_DELTAS = {
    Direction.UP: (0, -1),
    Direction.DOWN: (0, 1),
    Direction.LEFT: (-1, 0),
    Direction.RIGHT: (1, 0),
    Direction.STAY: (0, 0),
}

# Fixed order used everywhere a direction scan happens (state bits, tie-breaks).
CARDINALS: Tuple[Direction, ...] = (Direction.UP, Direction.DOWN, Direction.LEFT, Direction.RIGHT)
ALL_ACTIONS: Tuple[Direction, ...] = CARDINALS + (Direction.STAY,)

SEX_MALE = "M"
SEX_FEMALE = "F"

MODE_SEXUAL = "sexual"
MODE_ASEXUAL = "asexual"


@dataclass(frozen=True)
class GeneSpec:
    low: float
    high: float
    init_low: float
    init_high: float
    magnitude: float

    def clamp(self, value: float) -> float:
        return self.low if value < self.low else self.high if value > self.high else value


def default_gene_specs() -> Dict[str, GeneSpec]:
    return {
        "food_preference": GeneSpec(0.0, 1.0, 0.6, 1.0, 0.15),
        "exploration": GeneSpec(0.0, 1.0, 0.3, 0.8, 0.2),
        "reproduction_threshold": GeneSpec(8.0, 30.0, 15.0, 23.0, 3.0),
        "mutation_rate": GeneSpec(0.01, 0.6, 0.1, 0.3, 0.05),
        "risk_tolerance": GeneSpec(0.0, 1.0, 0.2, 0.8, 0.1),
        "social_drive": GeneSpec(0.0, 1.0, 0.2, 0.8, 0.1),
        "intelligence": GeneSpec(0.0, 1.0, 0.2, 0.8, 0.1),
        "creativity": GeneSpec(0.0, 1.0, 0.2, 0.8, 0.1),
        "curiosity": GeneSpec(0.0, 1.0, 0.2, 0.8, 0.1),
    }


@dataclass(frozen=True)
class GridConfig:
    width: int = 20
    height: int = 14
    initial_agents: int = 10
    initial_food: int = 24
    food_spawn_chance: float = 0.6
    food_spawn_batch: int = 1
    recycle_food: bool = True
    max_food_per_agent: float = 4.0
    water_prob: float = 0.06
    rich_prob: float = 0.08
    hazard_prob: float = 0.05
    stick_spawn_chance: float = 0.002
    stone_spawn_chance: float = 0.001
    placement_attempts: int = 2000


@dataclass(frozen=True)
class LearningConfig:
    alpha: float = 0.3
    gamma: float = 0.9
    epsilon: float = 0.2
    low_energy_max: float = 6.0
    mid_energy_max: float = 14.0
    hungry_cutoff_ratio: float = 6.0
    social_margin: float = 0.1
    social_chance: float = 0.3
    social_radius: int = 2
    memory_transfer_chance: float = 0.2
    memory_transfer_rate: float = 0.7


@dataclass(frozen=True)
class EnergyConfig:
    base_cost: float = 1.0
    food_bonus: float = 5.0
    rich_bonus: float = 2.0
    hazard_drain: float = 2.0
    shelter_refund: float = 1.0
    fire_warmth: float = 1.0
    initial_min: int = 10
    initial_max: int = 15
    reward_tick: float = -1.0
    reward_food: float = 5.0
    reward_reproduction: float = 2.0
    reward_invention: float = 3.0
    reward_death: float = -5.0


@dataclass(frozen=True)
class LifeConfig:
    years_per_tick: float = 0.25
    min_repro_age_years: float = 16.0
    prime_age_years: float = 28.0
    max_repro_age_years: float = 45.0
    max_lifespan_years: float = 70.0


@dataclass(frozen=True)
class ReproductionConfig:
    mode: str = MODE_SEXUAL
    risk_threshold_weight: float = 0.3
    mating_cost: float = 2.0
    gestation_ticks: int = 3
    cooldown_ticks: int = 5
    new_lineage_chance: float = 0.08
    lineage_space: int = 999999

    def __post_init__(self) -> None:
        if self.mode not in (MODE_SEXUAL, MODE_ASEXUAL):
            raise ValueError(f"unknown reproduction mode: {self.mode!r}")


@dataclass(frozen=True)
class InventionConfig:
    enabled: bool = True
    points_rate: float = 1.0
    points_cost: float = 12.0
    min_energy: float = 12.0
    discovery_base: float = 0.25
    magnitude_scale: float = 1.0
    inheritance_base: float = 0.8
    points_transfer: float = 0.3
    max_detection_bonus: int = 3
    min_energy_multiplier: float = 0.25
    max_repro_reduction: float = 0.5
    max_damage_avoidance: float = 0.9


@dataclass(frozen=True)
class CraftingConfig:
    enabled: bool = True
    tool_chance: float = 0.3
    stone_tool_durability: int = 10
    stick_tool_durability: int = 6
    tool_food_bonus: float = 1.0
    shelter_chance: float = 0.25
    shelter_durability: int = 20
    fire_chance: float = 0.2
    fire_min_energy: float = 10.0
    fire_ticks: int = 8


@dataclass(frozen=True)
class SimConfig:
    grid: GridConfig = field(default_factory=GridConfig)
    learning: LearningConfig = field(default_factory=LearningConfig)
    energy: EnergyConfig = field(default_factory=EnergyConfig)
    life: LifeConfig = field(default_factory=LifeConfig)
    reproduction: ReproductionConfig = field(default_factory=ReproductionConfig)
    invention: InventionConfig = field(default_factory=InventionConfig)
    crafting: CraftingConfig = field(default_factory=CraftingConfig)
    genes: Dict[str, GeneSpec] = field(default_factory=default_gene_specs)
    history_length: int = 60

    @property
    def sexual(self) -> bool:
        return self.reproduction.mode == MODE_SEXUAL

    def with_overrides(self, **overrides: Any) -> "SimConfig":
        """Return a copy with dotted fields replaced, e.g. ``**{"grid.width": 8}``.

        Plain keys replace top-level fields (``history_length=10``).
        """
        groups: Dict[str, Dict[str, Any]] = {}
        top: Dict[str, Any] = {}
        group_names = {f.name for f in fields(self)}
        for key, value in overrides.items():
            if "." in key:
                group, name = key.split(".", 1)
                if group not in group_names:
                    raise KeyError(f"unknown config group: {group}")
                groups.setdefault(group, {})[name] = value
            else:
                if key not in group_names:
                    raise KeyError(f"unknown config field: {key}")
                top[key] = value
        for group, values in groups.items():
            if group == "genes":
                genes = dict(self.genes)
                genes.update(values)
                top["genes"] = genes
            else:
                top[group] = replace(getattr(self, group), **values)
        return replace(self, **top)
