from conftest import FixedRandom

from evoworld.config import CraftingConfig, Terrain
from evoworld.crafting import (
    TOOL_STICK,
    TOOL_STONE,
    shelter_refund,
    try_build_shelter,
    try_craft_tool,
    try_light_fire,
    use_tool,
    warm_at_fire,
)
from evoworld.grid import Cell, Fire, Shelter


CFG = CraftingConfig()


def test_stone_is_preferred_for_tools(make_agent):
    agent = make_agent(1, 0, 0, intelligence=1.0)
    cell = Cell(sticks=True, stones=True)
    tool = try_craft_tool(agent, cell, CFG, FixedRandom(0.0))
    assert tool.type == TOOL_STONE
    assert tool.durability == CFG.stone_tool_durability
    assert not cell.stones and cell.sticks


def test_stick_tool_and_failed_roll(make_agent):
    agent = make_agent(1, 0, 0, intelligence=1.0)
    cell = Cell(sticks=True)
    assert try_craft_tool(agent, cell, CFG, FixedRandom(0.99)) is None
    assert try_craft_tool(agent, cell, CFG, FixedRandom(0.0)).type == TOOL_STICK
    # already carrying one
    assert try_craft_tool(agent, Cell(stones=True), CFG, FixedRandom(0.0)) is None


def test_tool_breaks_after_durability(make_agent):
    agent = make_agent(1, 0, 0, intelligence=1.0)
    try_craft_tool(agent, Cell(sticks=True), CFG, FixedRandom(0.0))
    bonuses = [use_tool(agent, 1.0) for _ in range(CFG.stick_tool_durability)]
    assert bonuses == [1.0] * CFG.stick_tool_durability
    assert agent.tool is None
    assert use_tool(agent, 1.0) == 0.0


def test_shelter_needs_hazard_and_sticks(make_agent):
    agent = make_agent(4, 0, 0, intelligence=1.0)
    assert try_build_shelter(agent, Cell(sticks=True), CFG, FixedRandom(0.0)) is None
    cell = Cell(terrain=Terrain.HAZARD, sticks=True)
    shelter = try_build_shelter(agent, cell, CFG, FixedRandom(0.0))
    assert shelter == Shelter(builder_id=4, durability=CFG.shelter_durability)
    assert not cell.sticks


def test_shelter_wears_out():
    cell = Cell(terrain=Terrain.HAZARD, shelter=Shelter(builder_id=1, durability=2))
    assert shelter_refund(cell, 1.0) == 1.0
    assert shelter_refund(cell, 1.0) == 1.0
    assert cell.shelter is None
    assert shelter_refund(cell, 1.0) == 0.0


def test_fire_needs_energy_and_burns_out(make_agent):
    cell = Cell(sticks=True)
    assert try_light_fire(make_agent(1, 0, 0, energy=5.0, creativity=1.0), cell, CFG, FixedRandom(0.0)) is None
    fire = try_light_fire(make_agent(1, 0, 0, energy=20.0, creativity=1.0), cell, CFG, FixedRandom(0.0))
    assert fire == Fire(ticks_remaining=CFG.fire_ticks)

    cell.fire = Fire(ticks_remaining=1)
    assert warm_at_fire(cell, 1.0) == 1.0
    assert cell.fire is None
    assert warm_at_fire(cell, 1.0) == 0.0
