"""Grid cells, terrain generation and food/resource upkeep."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Iterator, List, Optional, Tuple
import logging
import random

from .config import CARDINALS, Direction, GridConfig, Terrain

logger = logging.getLogger("evoworld.grid")


@dataclass
class Shelter:
    builder_id: int
    durability: int


@dataclass
class Fire:
    ticks_remaining: int


@dataclass
class Cell:
    food: bool = False
    occupant_id: Optional[int] = None
    terrain: Terrain = Terrain.PLAIN
    sticks: bool = False
    stones: bool = False
    shelter: Optional[Shelter] = None
    fire: Optional[Fire] = None

    @property
    def is_water(self) -> bool:
        return self.terrain == Terrain.WATER

    def copy(self) -> "Cell":
        return Cell(
            food=self.food,
            occupant_id=self.occupant_id,
            terrain=self.terrain,
            sticks=self.sticks,
            stones=self.stones,
            shelter=Shelter(self.shelter.builder_id, self.shelter.durability) if self.shelter else None,
            fire=Fire(self.fire.ticks_remaining) if self.fire else None,
        )


Grid = List[List[Cell]]


def create_grid(width: int, height: int) -> Grid:
    return [[Cell() for _ in range(width)] for _ in range(height)]


def copy_grid(grid: Grid) -> Grid:
    return [[cell.copy() for cell in row] for row in grid]


def grid_size(grid: Grid) -> Tuple[int, int]:
    height = len(grid)
    width = len(grid[0]) if height else 0
    return width, height


def in_bounds(grid: Grid, x: int, y: int) -> bool:
    width, height = grid_size(grid)
    return 0 <= x < width and 0 <= y < height


def iter_cells(grid: Grid) -> Iterator[Tuple[int, int, Cell]]:
    for y, row in enumerate(grid):
        for x, cell in enumerate(row):
            yield x, y, cell


def neighbor_positions(grid: Grid, x: int, y: int) -> List[Tuple[Direction, int, int]]:
    """Orthogonal in-bounds neighbours in up/down/left/right order."""
    positions: List[Tuple[Direction, int, int]] = []
    for direction in CARDINALS:
        dx, dy = direction.delta
        nx = x + dx
        ny = y + dy
        if in_bounds(grid, nx, ny):
            positions.append((direction, nx, ny))
    return positions


def clamp_move(grid: Grid, x: int, y: int, direction: Direction) -> Tuple[int, int]:
    width, height = grid_size(grid)
    dx, dy = direction.delta
    return max(0, min(width - 1, x + dx)), max(0, min(height - 1, y + dy))


def count_food(grid: Grid) -> int:
    return sum(1 for _, _, cell in iter_cells(grid) if cell.food)


def scatter_terrain(
    grid: Grid,
    rng: random.Random,
    water_prob: float,
    rich_prob: float,
    hazard_prob: float,
) -> None:
    """Roll every cell once; water wins over rich, rich over hazard."""
    for _, _, cell in iter_cells(grid):
        roll = rng.random()
        if roll < water_prob:
            cell.terrain = Terrain.WATER
            cell.food = False
        elif roll < water_prob + rich_prob:
            cell.terrain = Terrain.RICH
        elif roll < water_prob + rich_prob + hazard_prob:
            cell.terrain = Terrain.HAZARD
        else:
            cell.terrain = Terrain.PLAIN


def place_food(grid: Grid, count: int, rng: random.Random, max_attempts: int = 2000) -> int:
    """Rejection-sample ``count`` food items; returns how many were placed."""
    width, height = grid_size(grid)
    placed = 0
    attempts = 0
    while placed < count and attempts < max_attempts:
        attempts += 1
        x = rng.randrange(width)
        y = rng.randrange(height)
        cell = grid[y][x]
        if cell.food or cell.occupant_id is not None or cell.is_water:
            continue
        cell.food = True
        placed += 1
    if placed < count:
        logger.info("placed %d of %d food after %d attempts", placed, count, attempts)
    return placed


def recycle_food(grid: Grid, living_agents: int, max_food_per_agent: float, rng: random.Random) -> int:
    """Drop excess food when it outgrows the living population; returns removed count."""
    food_cells = [(x, y) for x, y, cell in iter_cells(grid) if cell.food]
    limit = max(5, int(living_agents * max_food_per_agent))
    excess = len(food_cells) - limit
    if excess <= 0:
        return 0
    for x, y in rng.sample(food_cells, excess):
        grid[y][x].food = False
    logger.debug("recycled %d food (limit=%d)", excess, limit)
    return excess


def spawn_resources(grid: Grid, rng: random.Random, stick_chance: float, stone_chance: float) -> int:
    spawned = 0
    for _, _, cell in iter_cells(grid):
        if cell.is_water or cell.food or cell.occupant_id is not None:
            continue
        if not cell.sticks and rng.random() < stick_chance:
            cell.sticks = True
            spawned += 1
        if not cell.stones and rng.random() < stone_chance:
            cell.stones = True
            spawned += 1
    return spawned


def generate_grid(cfg: GridConfig, rng: random.Random) -> Grid:
    grid = create_grid(cfg.width, cfg.height)
    scatter_terrain(grid, rng, cfg.water_prob, cfg.rich_prob, cfg.hazard_prob)
    place_food(grid, cfg.initial_food, rng, cfg.placement_attempts)
    return grid
