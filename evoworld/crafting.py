"""Tools, shelters and fires made from sticks and stones."""

from __future__ import annotations

from typing import Optional
import random

from .agents import Agent, Tool
from .config import CraftingConfig, Terrain
from .grid import Cell, Fire, Shelter

TOOL_STONE = "stone_tool"
TOOL_STICK = "digging_stick"


def try_craft_tool(agent: Agent, cell: Cell, cfg: CraftingConfig, rng: random.Random) -> Optional[Tool]:
    if agent.tool is not None or not (cell.stones or cell.sticks):
        return None
    if rng.random() >= cfg.tool_chance * agent.genes.intelligence:
        return None
    if cell.stones:
        cell.stones = False
        agent.tool = Tool(TOOL_STONE, cfg.stone_tool_durability)
    else:
        cell.sticks = False
        agent.tool = Tool(TOOL_STICK, cfg.stick_tool_durability)
    return agent.tool


def try_build_shelter(agent: Agent, cell: Cell, cfg: CraftingConfig, rng: random.Random) -> Optional[Shelter]:
    if cell.terrain != Terrain.HAZARD or cell.shelter is not None or not cell.sticks:
        return None
    if rng.random() >= cfg.shelter_chance * agent.genes.intelligence:
        return None
    cell.sticks = False
    cell.shelter = Shelter(builder_id=agent.id, durability=cfg.shelter_durability)
    return cell.shelter


def try_light_fire(agent: Agent, cell: Cell, cfg: CraftingConfig, rng: random.Random) -> Optional[Fire]:
    if cell.fire is not None or not cell.sticks or agent.energy < cfg.fire_min_energy:
        return None
    if rng.random() >= cfg.fire_chance * agent.genes.creativity:
        return None
    cell.sticks = False
    cell.fire = Fire(ticks_remaining=cfg.fire_ticks)
    return cell.fire


def use_tool(agent: Agent, bonus: float) -> float:
    """Spend one durability for a feeding bonus; the tool breaks at zero."""
    if agent.tool is None:
        return 0.0
    agent.tool.durability -= 1
    if agent.tool.durability <= 0:
        agent.tool = None
    return bonus


def shelter_refund(cell: Cell, refund: float) -> float:
    if cell.shelter is None:
        return 0.0
    cell.shelter.durability -= 1
    if cell.shelter.durability <= 0:
        cell.shelter = None
    return refund


def warm_at_fire(cell: Cell, warmth: float) -> float:
    if cell.fire is None:
        return 0.0
    cell.fire.ticks_remaining -= 1
    if cell.fire.ticks_remaining <= 0:
        cell.fire = None
    return warmth
