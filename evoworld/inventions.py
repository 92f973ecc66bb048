"""Procedural inventions.

Agents bank invention points every tick. Once they have enough points and
energy, a discovery roll may produce a new named invention whose effect is
one of a closed set of modifiers. The step engine reads those modifiers
through :class:`InventionEffects`; inventions never change global rules.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING, Any, Dict, Iterable, List, Optional
import random

from .config import InventionConfig

if TYPE_CHECKING:
    from .agents import Agent


class EffectKind(str, Enum):
    ENERGY_EFFICIENCY = "energy_efficiency"
    FOOD_DETECTION = "food_detection"
    REPRODUCTION_BONUS = "reproduction_bonus"
    STORAGE = "storage"
    DAMAGE_AVOIDANCE = "damage_avoidance"


EFFECT_KINDS = tuple(EffectKind)

_PREFIXES = ("Sun", "Stone", "River", "Ember", "Moss", "Thorn", "Ash", "Reed", "Bone", "Cloud")
_ROOTS = ("weave", "craft", "lore", "sense", "ward", "hold", "path", "mark", "song", "knot")
_SUFFIXES = {
    EffectKind.ENERGY_EFFICIENCY: "Stride",
    EffectKind.FOOD_DETECTION: "Scent",
    EffectKind.REPRODUCTION_BONUS: "Kinship",
    EffectKind.STORAGE: "Cache",
    EffectKind.DAMAGE_AVOIDANCE: "Guard",
}


@dataclass(frozen=True)
class Invention:
    id: str
    name: str
    kind: EffectKind
    magnitude: float
    discovered_tick: int
    inventor_id: int

    def to_json(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "kind": self.kind.value,
            "magnitude": self.magnitude,
            "discoveredTick": self.discovered_tick,
            "inventorId": self.inventor_id,
        }

    @classmethod
    def from_json(cls, raw: Dict[str, Any]) -> "Invention":
        return cls(
            id=str(raw["id"]),
            name=str(raw["name"]),
            kind=EffectKind(raw["kind"]),
            magnitude=float(raw["magnitude"]),
            discovered_tick=int(raw["discoveredTick"]),
            inventor_id=int(raw["inventorId"]),
        )


@dataclass(frozen=True)
class DiscoveryEvent:
    tick: int
    agent_id: int
    invention: Invention

    def describe(self) -> str:
        return (
            f"tick {self.tick}: agent {self.agent_id} invented {self.invention.name} "
            f"({self.invention.kind.value} {self.invention.magnitude:.2f})"
        )

    def to_json(self) -> Dict[str, Any]:
        return {"tick": self.tick, "agentId": self.agent_id, "invention": self.invention.to_json()}

    @classmethod
    def from_json(cls, raw: Dict[str, Any]) -> "DiscoveryEvent":
        return cls(
            tick=int(raw["tick"]),
            agent_id=int(raw["agentId"]),
            invention=Invention.from_json(raw["invention"]),
        )


@dataclass(frozen=True)
class InventionEffects:
    energy_multiplier: float = 1.0
    detection_bonus: int = 0
    repro_reduction: float = 0.0
    storage_capacity: int = 0
    damage_avoidance: float = 0.0

    @classmethod
    def from_inventions(cls, inventions: Iterable[Invention], cfg: InventionConfig) -> "InventionEffects":
        multiplier = 1.0
        detection = 0
        reduction = 0.0
        storage = 0
        safe = 1.0
        for invention in inventions:
            kind = invention.kind
            if kind == EffectKind.ENERGY_EFFICIENCY:
                multiplier *= 1.0 - invention.magnitude
            elif kind == EffectKind.FOOD_DETECTION:
                detection += max(1, int(round(invention.magnitude)))
            elif kind == EffectKind.REPRODUCTION_BONUS:
                reduction += invention.magnitude
            elif kind == EffectKind.STORAGE:
                storage += max(1, int(round(invention.magnitude)))
            elif kind == EffectKind.DAMAGE_AVOIDANCE:
                safe *= 1.0 - invention.magnitude
            else:
                raise ValueError(f"unhandled invention effect: {kind!r}")
        return cls(
            energy_multiplier=max(cfg.min_energy_multiplier, multiplier),
            detection_bonus=min(cfg.max_detection_bonus, detection),
            repro_reduction=min(cfg.max_repro_reduction, reduction),
            storage_capacity=storage,
            damage_avoidance=min(cfg.max_damage_avoidance, 1.0 - safe),
        )


def effect_magnitude(kind: EffectKind, scale: float) -> float:
    """Raw magnitude for one invention; ``scale`` already folds in the inventor's genes."""
    if kind == EffectKind.ENERGY_EFFICIENCY:
        return min(0.5, 0.1 * scale)
    if kind == EffectKind.FOOD_DETECTION:
        return max(1.0, round(1.0 * scale))
    if kind == EffectKind.REPRODUCTION_BONUS:
        return min(0.3, 0.1 * scale)
    if kind == EffectKind.STORAGE:
        return max(1.0, round(2.0 * scale))
    if kind == EffectKind.DAMAGE_AVOIDANCE:
        return min(0.6, 0.2 * scale)
    raise ValueError(f"unhandled invention effect: {kind!r}")


def accrue_points(agent: "Agent", cfg: InventionConfig) -> float:
    gained = cfg.points_rate * agent.genes.curiosity * agent.genes.exploration
    agent.invention_points += gained
    return gained


def try_discover(agent: "Agent", tick: int, cfg: InventionConfig, rng: random.Random) -> Optional[DiscoveryEvent]:
    if agent.energy < cfg.min_energy or agent.invention_points < cfg.points_cost:
        return None
    chance = cfg.discovery_base * (agent.genes.curiosity + agent.genes.creativity) / 2.0
    if rng.random() >= chance:
        return None
    agent.invention_points -= cfg.points_cost
    kind = rng.choice(EFFECT_KINDS)
    scale = cfg.magnitude_scale * (0.5 + (agent.genes.intelligence + agent.genes.creativity) / 2.0)
    name = f"{rng.choice(_PREFIXES)}{rng.choice(_ROOTS)} {_SUFFIXES[kind]}"
    invention = Invention(
        id=f"{tick}-{agent.id}-{len(agent.inventions)}",
        name=name,
        kind=kind,
        magnitude=effect_magnitude(kind, scale),
        discovered_tick=tick,
        inventor_id=agent.id,
    )
    agent.inventions.append(invention)
    return DiscoveryEvent(tick=tick, agent_id=agent.id, invention=invention)


def inherit_inventions(
    parents: Iterable["Agent"],
    carrier_social: float,
    cfg: InventionConfig,
    rng: random.Random,
) -> List[Invention]:
    chance = cfg.inheritance_base * carrier_social
    inherited: List[Invention] = []
    seen = set()
    for parent in parents:
        for invention in parent.inventions:
            if invention.id in seen:
                continue
            seen.add(invention.id)
            if rng.random() < chance:
                inherited.append(invention)
    return inherited


def inherited_points(parents: List["Agent"], cfg: InventionConfig) -> float:
    if not parents:
        return 0.0
    mean = sum(p.invention_points for p in parents) / len(parents)
    return mean * cfg.points_transfer
