"""World step engine.

``step_world`` advances one tick and never mutates its inputs. The tick runs
in two phases:

  PHASE 1: INTENT
    Every living agent picks a direction from the same pre-tick snapshot.

  PHASE 2: RESOLUTION (input agent order, which decides contested cells)
    a. movement against a destination map seeded with every agent's origin,
    b. energy, terrain, feeding, crafting, inventions and ageing,
    c. reproduction (asexual split or mating/pregnancy) with a per-tick
       used-set so nobody donates energy to two matings,
    d. death, reward and the Q-update for the pre-move state/action.

Grid upkeep (food recycling and spawning, sticks and stones) runs last on the
returned grid.
"""

from __future__ import annotations

from collections import Counter
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Set, Tuple
import logging
import math
import random

from . import crafting, genetics, inventions
from .agents import Agent, Pregnancy, fertility_factor, is_fertile, next_agent_id
from .config import SEX_FEMALE, SEX_MALE, SimConfig, Terrain
from .decision import Decision, decide, state_key
from .grid import (
    Grid,
    clamp_move,
    copy_grid,
    grid_size,
    in_bounds,
    neighbor_positions,
    place_food,
    recycle_food,
    spawn_resources,
)
from .inventions import DiscoveryEvent, InventionEffects

logger = logging.getLogger("evoworld.engine")

DEATH_LOW_ENERGY = "low energy"
DEATH_OLD_AGE = "old age"

Position = Tuple[int, int]


@dataclass
class StepResult:
    agents: List[Agent]
    grid: Grid
    logs: List[str]
    discoveries: List[DiscoveryEvent] = field(default_factory=list)
    births: int = 0
    deaths: Counter = field(default_factory=Counter)
    collisions: int = 0
    matings: int = 0
    removed: List[Agent] = field(default_factory=list)


@dataclass
class _Turn:
    agent: Agent
    origin: Position
    decision: Decision
    effects: InventionEffects
    sense_range: int
    reward: float = 0.0
    notes: List[str] = field(default_factory=list)
    death: Optional[str] = None

    @property
    def alive(self) -> bool:
        return self.death is None


def validate_world(agents: List[Agent], grid: Grid, cfg: SimConfig) -> None:
    width, height = grid_size(grid)
    if (width, height) != (cfg.grid.width, cfg.grid.height):
        raise ValueError(
            f"grid is {width}x{height}, config expects {cfg.grid.width}x{cfg.grid.height}"
        )
    if any(len(row) != width for row in grid):
        raise ValueError("grid rows have uneven widths")
    seen: Dict[Position, int] = {}
    for agent in agents:
        if not in_bounds(grid, agent.x, agent.y):
            raise ValueError(f"agent {agent.id} at ({agent.x},{agent.y}) is outside the grid")
        if agent.energy <= 0:
            continue
        if agent.position in seen:
            raise ValueError(
                f"agents {seen[agent.position]} and {agent.id} share cell ({agent.x},{agent.y})"
            )
        seen[agent.position] = agent.id


def step_world(
    agents: List[Agent],
    grid: Grid,
    cfg: SimConfig,
    rng: random.Random,
    tick: int = 0,
) -> StepResult:
    validate_world(agents, grid, cfg)

    living = [a.copy() for a in agents if a.energy > 0]
    world = copy_grid(grid)
    for row in world:
        for cell in row:
            cell.occupant_id = None
    result = StepResult(agents=[], grid=world, logs=[])

    turns = _plan(living, grid, cfg, rng)
    claims = _resolve_moves(turns, world, result)
    for turn in turns:
        _live(turn, world, cfg, rng, tick, result)
    newborns = _reproduce(turns, world, claims, cfg, rng, next_agent_id(agents), result)
    for turn in turns:
        _settle(turn, world, cfg, result)

    survivors = [t.agent for t in turns if t.alive]
    result.agents = survivors + newborns
    for agent in result.agents:
        world[agent.y][agent.x].occupant_id = agent.id

    _maintain(world, len(result.agents), cfg, rng)
    logger.debug(
        "tick=%d agents=%d births=%d deaths=%d collisions=%d",
        tick, len(result.agents), result.births, sum(result.deaths.values()), result.collisions,
    )
    return result


# ---------------------------------------------------------------------------
# PHASE 1: intent
# ---------------------------------------------------------------------------

def _plan(living: List[Agent], snapshot: Grid, cfg: SimConfig, rng: random.Random) -> List[_Turn]:
    positions = [a.position for a in living]
    turns: List[_Turn] = []
    for agent in living:
        effects = _effects(agent, cfg)
        sense_range = 1 + effects.detection_bonus
        decision = decide(agent, snapshot, positions, cfg, rng, sense_range)
        turns.append(_Turn(agent, agent.position, decision, effects, sense_range))
    return turns


def _effects(agent: Agent, cfg: SimConfig) -> InventionEffects:
    if not cfg.invention.enabled or not agent.inventions:
        return InventionEffects()
    return InventionEffects.from_inventions(agent.inventions, cfg.invention)


# ---------------------------------------------------------------------------
# PHASE 2a: movement
# ---------------------------------------------------------------------------

def _resolve_moves(turns: List[_Turn], world: Grid, result: StepResult) -> Dict[Position, int]:
    # Every agent holds its own origin until it moves away, so a blocked agent
    # can always fall back to where it stood.
    claims: Dict[Position, int] = {t.origin: t.agent.id for t in turns}
    for turn in turns:
        agent = turn.agent
        dest = clamp_move(world, agent.x, agent.y, turn.decision.direction)
        if dest == turn.origin:
            continue
        dx, dy = dest
        if world[dy][dx].terrain == Terrain.WATER:
            turn.notes.append("blocked by water")
            result.logs.append(f"Agent {agent.id} blocked by water at ({dx},{dy}), stayed at {_fmt(turn.origin)}")
            continue
        holder = claims.get(dest)
        if holder is not None:
            result.collisions += 1
            turn.notes.append(f"collided with agent {holder}")
            result.logs.append(
                f"Agent {agent.id} collided at ({dx},{dy}) with agent {holder}, stayed at {_fmt(turn.origin)}"
            )
            continue
        del claims[turn.origin]
        claims[dest] = agent.id
        agent.x, agent.y = dest
    return claims


# ---------------------------------------------------------------------------
# PHASE 2b: energy, feeding, crafting, inventions, ageing
# ---------------------------------------------------------------------------

def _live(turn: _Turn, world: Grid, cfg: SimConfig, rng: random.Random, tick: int, result: StepResult) -> None:
    agent = turn.agent
    energy = cfg.energy
    cell = world[agent.y][agent.x]
    turn.reward += energy.reward_tick

    agent.energy -= energy.base_cost * turn.effects.energy_multiplier

    if cell.terrain == Terrain.HAZARD:
        if turn.effects.damage_avoidance > 0 and rng.random() < turn.effects.damage_avoidance:
            turn.notes.append("avoided hazard")
        else:
            agent.energy -= energy.hazard_drain
            refund = crafting.shelter_refund(cell, min(energy.shelter_refund, energy.hazard_drain))
            agent.energy += refund
            turn.notes.append("sheltered from hazard" if refund else f"hurt by hazard (-{energy.hazard_drain:g})")

    if cell.food:
        cell.food = False
        turn.reward += energy.reward_food
        capacity = turn.effects.storage_capacity
        if capacity > agent.stored_food and agent.energy > agent.reproduction_threshold(cfg, turn.effects):
            agent.stored_food += 1
            turn.notes.append("stored food")
        else:
            gain = energy.food_bonus
            if cell.terrain == Terrain.RICH:
                gain += energy.rich_bonus
            gain += crafting.use_tool(agent, cfg.crafting.tool_food_bonus)
            agent.energy += gain
            turn.notes.append(f"ate food (+{gain:g})")
    elif agent.stored_food > 0 and agent.energy <= agent.hunger_cutoff(cfg):
        agent.stored_food -= 1
        agent.energy += energy.food_bonus
        turn.notes.append("ate stored food")

    warmth = crafting.warm_at_fire(cell, energy.fire_warmth)
    if warmth:
        agent.energy += warmth
        turn.notes.append("warmed by fire")

    if cfg.crafting.enabled:
        tool = crafting.try_craft_tool(agent, cell, cfg.crafting, rng)
        if tool is not None:
            turn.notes.append(f"crafted {tool.type}")
        if crafting.try_build_shelter(agent, cell, cfg.crafting, rng) is not None:
            turn.notes.append("built shelter")
        if crafting.try_light_fire(agent, cell, cfg.crafting, rng) is not None:
            turn.notes.append("lit fire")

    if cfg.invention.enabled:
        inventions.accrue_points(agent, cfg.invention)
        event = inventions.try_discover(agent, tick, cfg.invention, rng)
        if event is not None:
            turn.reward += energy.reward_invention
            turn.notes.append(f"invented {event.invention.name}")
            result.discoveries.append(event)
            result.logs.append(f"Discovery: {event.describe()}")

    agent.step_age()
    if agent.energy <= 0:
        turn.death = DEATH_LOW_ENERGY
    elif agent.too_old(cfg.life):
        turn.death = DEATH_OLD_AGE


# ---------------------------------------------------------------------------
# PHASE 2c: reproduction
# ---------------------------------------------------------------------------

def _free_spots(world: Grid, claims: Dict[Position, int], x: int, y: int) -> List[Position]:
    return [
        (nx, ny)
        for _, nx, ny in neighbor_positions(world, x, y)
        if not world[ny][nx].is_water and (nx, ny) not in claims
    ]


def _reproduce(
    turns: List[_Turn],
    world: Grid,
    claims: Dict[Position, int],
    cfg: SimConfig,
    rng: random.Random,
    next_id: int,
    result: StepResult,
) -> List[Agent]:
    newborns: List[Agent] = []
    by_id = {t.agent.id: t for t in turns}
    by_position = {t.agent.position: t for t in turns}
    used: Set[int] = set()

    for turn in turns:
        agent = turn.agent
        if not turn.alive or agent.id in used:
            continue
        if not cfg.sexual:
            child = _split(turn, world, claims, cfg, rng, next_id, result)
        elif agent.is_pregnant:
            child = _gestate(turn, world, claims, cfg, rng, next_id, result)
        else:
            _mate(turn, by_id, by_position, world, used, cfg, rng, result)
            child = None
        if child is not None:
            used.add(agent.id)
            newborns.append(child)
            next_id += 1
    return newborns


def _split(
    turn: _Turn,
    world: Grid,
    claims: Dict[Position, int],
    cfg: SimConfig,
    rng: random.Random,
    child_id: int,
    result: StepResult,
) -> Optional[Agent]:
    parent = turn.agent
    if parent.energy <= parent.reproduction_threshold(cfg, turn.effects):
        return None
    spots = _free_spots(world, claims, parent.x, parent.y)
    if not spots:
        return None
    x, y = rng.choice(spots)
    child_energy = float(math.floor(parent.energy / 2))
    parent.energy -= child_energy
    child = Agent(
        id=child_id,
        x=x,
        y=y,
        energy=child_energy,
        genes=genetics.mutate(parent.genes, cfg.genes, rng, cfg.reproduction),
        memory=parent.memory.inherit(rng, cfg.learning.memory_transfer_chance, cfg.learning.memory_transfer_rate),
        last_action="Born (mutated copy of parent)",
    )
    if cfg.invention.enabled:
        child.inventions = inventions.inherit_inventions([parent], parent.genes.social_drive, cfg.invention, rng)
        child.invention_points = inventions.inherited_points([parent], cfg.invention)
    return _register_birth(turn, child, claims, cfg, result)


def _gestate(
    turn: _Turn,
    world: Grid,
    claims: Dict[Position, int],
    cfg: SimConfig,
    rng: random.Random,
    child_id: int,
    result: StepResult,
) -> Optional[Agent]:
    mother = turn.agent
    pregnancy = mother.pregnancy
    pregnancy.gestation_progress += 1
    if pregnancy.gestation_progress < cfg.reproduction.gestation_ticks:
        return None
    child_energy = float(math.floor(mother.energy / 2))
    if child_energy <= 0:
        turn.notes.append("birth stalled")
        result.logs.append(f"Agent {mother.id} is too weak to give birth (energy {mother.energy:g})")
        return None
    spots = _free_spots(world, claims, mother.x, mother.y)
    if not spots:
        turn.notes.append("birth stalled")
        result.logs.append(f"Agent {mother.id} could not give birth at {_fmt(mother.position)}: no free cell")
        return None
    x, y = rng.choice(spots)
    mother.energy -= child_energy
    child = Agent(
        id=child_id,
        x=x,
        y=y,
        energy=child_energy,
        genes=pregnancy.child_genes,
        memory=mother.memory.inherit(rng, cfg.learning.memory_transfer_chance, cfg.learning.memory_transfer_rate),
        sex=SEX_MALE if rng.random() < 0.5 else SEX_FEMALE,
        last_action=f"Born to {mother.id} and {pregnancy.mate_id}",
        inventions=list(pregnancy.child_inventions),
        invention_points=pregnancy.child_invention_points,
    )
    mother.pregnancy = None
    mother.reproduction_cooldown = cfg.reproduction.cooldown_ticks
    return _register_birth(turn, child, claims, cfg, result)


def _register_birth(
    turn: _Turn,
    child: Agent,
    claims: Dict[Position, int],
    cfg: SimConfig,
    result: StepResult,
) -> Agent:
    claims[child.position] = child.id
    turn.reward += cfg.energy.reward_reproduction
    turn.notes.append(f"gave birth to {child.id}")
    result.births += 1
    result.logs.append(
        f"Agent {turn.agent.id} reproduced: child {child.id} at {_fmt(child.position)} "
        f"with lineage {child.genes.lineage_id}, energy {child.energy:g}"
    )
    return child


def _can_mate(turn: _Turn, used: Set[int], cfg: SimConfig) -> bool:
    agent = turn.agent
    if not turn.alive or agent.id in used or agent.sex is None:
        return False
    if agent.is_pregnant or agent.reproduction_cooldown > 0:
        return False
    if not is_fertile(agent, cfg.life):
        return False
    return agent.energy > agent.reproduction_threshold(cfg, turn.effects)


def _mate(
    turn: _Turn,
    by_id: Dict[int, _Turn],
    by_position: Dict[Position, _Turn],
    world: Grid,
    used: Set[int],
    cfg: SimConfig,
    rng: random.Random,
    result: StepResult,
) -> None:
    if not _can_mate(turn, used, cfg):
        return
    agent = turn.agent
    candidates = []
    for _, nx, ny in neighbor_positions(world, agent.x, agent.y):
        other = by_position.get((nx, ny))
        if other is None or other.agent.sex == agent.sex:
            continue
        if _can_mate(other, used, cfg):
            candidates.append(other)
    if not candidates:
        return
    partner = rng.choice(candidates)
    life = cfg.life
    chance = min(
        fertility_factor(agent.age_years(life), life),
        fertility_factor(partner.agent.age_years(life), life),
    )
    if rng.random() >= chance:
        turn.notes.append(f"courted {partner.agent.id}")
        return

    mother, father = (turn, partner) if agent.sex == SEX_FEMALE else (partner, turn)
    repro = cfg.reproduction
    child_genes = genetics.combine(mother.agent.genes, father.agent.genes, cfg.genes, rng, repro)
    child_inventions = []
    child_points = 0.0
    if cfg.invention.enabled:
        parents = [mother.agent, father.agent]
        child_inventions = inventions.inherit_inventions(
            parents, mother.agent.genes.social_drive, cfg.invention, rng
        )
        child_points = inventions.inherited_points(parents, cfg.invention)
    for side in (mother, father):
        side.agent.energy -= repro.mating_cost
        side.reward += cfg.energy.reward_reproduction
        used.add(side.agent.id)
    mother.agent.pregnancy = Pregnancy(
        mate_id=father.agent.id,
        gestation_progress=0,
        child_genes=child_genes,
        child_inventions=child_inventions,
        child_invention_points=child_points,
    )
    father.agent.reproduction_cooldown = repro.cooldown_ticks
    mother.notes.append(f"conceived with {father.agent.id}")
    father.notes.append(f"mated with {mother.agent.id}")
    result.matings += 1
    result.logs.append(f"Agent {mother.agent.id} and agent {father.agent.id} mated; {mother.agent.id} is pregnant")


# ---------------------------------------------------------------------------
# PHASE 2d: death and learning
# ---------------------------------------------------------------------------

def _settle(turn: _Turn, world: Grid, cfg: SimConfig, result: StepResult) -> None:
    agent = turn.agent
    if turn.alive and agent.energy <= 0:
        turn.death = DEATH_LOW_ENERGY
    if not turn.alive:
        turn.reward += cfg.energy.reward_death

    learning = cfg.learning
    next_state = state_key(agent, world, cfg, turn.sense_range)
    agent.memory.update(
        turn.decision.state, turn.decision.direction, turn.reward, next_state, learning.alpha, learning.gamma
    )

    description = f"{turn.decision.rule}, moved to {_fmt(agent.position)}"
    if turn.notes:
        description += " and " + ", ".join(turn.notes)
    agent.last_action = description

    if not turn.alive:
        result.deaths[turn.death] += 1
        result.removed.append(agent)
        result.logs.append(f"Agent {agent.id} died of {turn.death} at {_fmt(agent.position)} and was removed.")
        return
    result.logs.append(
        f"Agent {agent.id} used {description}, energy now {agent.energy:g}, lineage={agent.genes.lineage_id}"
    )


# ---------------------------------------------------------------------------
# Grid upkeep
# ---------------------------------------------------------------------------

def _maintain(world: Grid, living: int, cfg: SimConfig, rng: random.Random) -> None:
    grid_cfg = cfg.grid
    if grid_cfg.recycle_food:
        recycle_food(world, living, grid_cfg.max_food_per_agent, rng)
    if rng.random() < grid_cfg.food_spawn_chance:
        place_food(world, grid_cfg.food_spawn_batch, rng, grid_cfg.placement_attempts)
    spawn_resources(world, rng, grid_cfg.stick_spawn_chance, grid_cfg.stone_spawn_chance)


def _fmt(position: Position) -> str:
    return f"({position[0]},{position[1]})"
