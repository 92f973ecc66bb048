"""Per-agent move decisions.

Rules are layered: the survival rule beats the social bias, which beats the
learned policy. Every decision in a tick reads the same pre-move snapshot.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import List, Sequence, Tuple
import random

from .agents import Agent
from .config import CARDINALS, Direction, SimConfig
from .grid import Grid, in_bounds
from .memory import StateKey, energy_bin, food_mask

RULE_SURVIVAL = "Rule 1: seek food (hard survival)"
RULE_SOCIAL_GATHER = "Rule 2: social (gather)"
RULE_SOCIAL_AVOID = "Rule 2: social (avoid crowd)"
RULE_LEARNED = "RL: learned policy"
RULE_STAY = "RL: choose stay"


@dataclass(frozen=True)
class Decision:
    direction: Direction
    rule: str
    state: StateKey


def food_directions(grid: Grid, x: int, y: int, sense_range: int = 1) -> List[Direction]:
    """Cardinal directions with food within ``sense_range`` cells."""
    found: List[Direction] = []
    for direction in CARDINALS:
        dx, dy = direction.delta
        for step in range(1, sense_range + 1):
            nx = x + dx * step
            ny = y + dy * step
            if not in_bounds(grid, nx, ny):
                break
            if grid[ny][nx].food:
                found.append(direction)
                break
    return found


def state_key(agent: Agent, grid: Grid, cfg: SimConfig, sense_range: int = 1) -> StateKey:
    return StateKey(
        energy_bin(agent.energy, cfg.learning),
        food_mask(food_directions(grid, agent.x, agent.y, sense_range)),
    )


def crowding(positions: Sequence[Tuple[int, int]], x: int, y: int, radius: int, exclude: Tuple[int, int]) -> int:
    return sum(
        1
        for px, py in positions
        if (px, py) != exclude and abs(px - x) + abs(py - y) <= radius
    )


def decide(
    agent: Agent,
    grid: Grid,
    positions: Sequence[Tuple[int, int]],
    cfg: SimConfig,
    rng: random.Random,
    sense_range: int = 1,
) -> Decision:
    state = state_key(agent, grid, cfg, sense_range)
    hungry = agent.energy <= agent.hunger_cutoff(cfg)

    if hungry:
        options = food_directions(grid, agent.x, agent.y, sense_range)
        if options:
            return Decision(rng.choice(options), RULE_SURVIVAL, state)
    else:
        social = agent.genes.social_drive
        learning = cfg.learning
        if abs(social - 0.5) > learning.social_margin and rng.random() < learning.social_chance:
            direction = _social_direction(agent, grid, positions, social > 0.5, learning.social_radius)
            if direction is not None:
                rule = RULE_SOCIAL_GATHER if social > 0.5 else RULE_SOCIAL_AVOID
                return Decision(direction, rule, state)

    action = agent.memory.choose_action(state, cfg.learning.epsilon, rng)
    return Decision(action, RULE_STAY if action == Direction.STAY else RULE_LEARNED, state)


def _social_direction(
    agent: Agent,
    grid: Grid,
    positions: Sequence[Tuple[int, int]],
    gather: bool,
    radius: int,
) -> Direction | None:
    best = None
    best_count = None
    for direction in CARDINALS:
        dx, dy = direction.delta
        nx = agent.x + dx
        ny = agent.y + dy
        if not in_bounds(grid, nx, ny) or grid[ny][nx].is_water:
            continue
        count = crowding(positions, nx, ny, radius, exclude=agent.position)
        if best_count is None or (count > best_count if gather else count < best_count):
            best = direction
            best_count = count
    return best
