import random

import pytest

from evoworld.agents import Pregnancy, Tool, create_random_agent, fertility_factor, is_fertile, next_agent_id, seed_agents
from evoworld.config import LifeConfig, SimConfig, SEX_FEMALE, SEX_MALE
from evoworld.grid import create_grid
from evoworld.inventions import InventionEffects


LIFE = LifeConfig()


@pytest.mark.parametrize("years", [0.0, 10.0, 16.0, 45.0, 60.0])
def test_fertility_is_zero_outside_window(years):
    assert fertility_factor(years, LIFE) == 0.0


def test_fertility_peaks_at_prime():
    assert fertility_factor(28.0, LIFE) == pytest.approx(1.0)
    assert fertility_factor(22.0, LIFE) == pytest.approx(0.5)
    assert 0.0 < fertility_factor(40.0, LIFE) < 1.0


def test_is_fertile_uses_age_ticks(make_agent):
    agent = make_agent(1, 0, 0, age_ticks=int(20 / LIFE.years_per_tick))
    assert is_fertile(agent, LIFE)
    agent.age_ticks = 0
    assert not is_fertile(agent, LIFE)


def test_risk_tolerance_shifts_threshold(make_agent):
    cfg = SimConfig()
    assert make_agent(1, 0, 0, risk_tolerance=0.5).reproduction_threshold(cfg) == pytest.approx(15.0)
    assert make_agent(1, 0, 0, risk_tolerance=1.0).reproduction_threshold(cfg) == pytest.approx(15.0 * 0.85)
    assert make_agent(1, 0, 0, risk_tolerance=0.0).reproduction_threshold(cfg) == pytest.approx(15.0 * 1.15)


def test_asexual_threshold_ignores_risk(make_agent):
    cfg = SimConfig().with_overrides(**{"reproduction.mode": "asexual"})
    assert make_agent(1, 0, 0, risk_tolerance=1.0).reproduction_threshold(cfg) == 15.0


def test_reproduction_invention_lowers_threshold(make_agent):
    cfg = SimConfig()
    effects = InventionEffects(repro_reduction=0.2)
    assert make_agent(1, 0, 0).reproduction_threshold(cfg, effects) == pytest.approx(12.0)


def test_ageing_counts_down_cooldown(make_agent):
    agent = make_agent(1, 0, 0)
    agent.reproduction_cooldown = 1
    agent.step_age()
    agent.step_age()
    assert agent.age_ticks == 2
    assert agent.reproduction_cooldown == 0


def test_copy_is_independent(make_agent):
    agent = make_agent(1, 0, 0)
    agent.tool = Tool("stone_tool", 3)
    agent.pregnancy = Pregnancy(mate_id=2, gestation_progress=1, child_genes=agent.genes)
    clone = agent.copy()
    clone.tool.durability = 0
    clone.pregnancy.gestation_progress = 3
    clone.memory.values["k"] = 1.0
    assert agent.tool.durability == 3
    assert agent.pregnancy.gestation_progress == 1
    assert len(agent.memory) == 0


def test_founders_are_sexed_and_of_fertile_age():
    cfg = SimConfig()
    rng = random.Random(3)
    for agent_id in range(1, 30):
        agent = create_random_agent(agent_id, 0, 0, cfg, rng)
        assert agent.sex in (SEX_MALE, SEX_FEMALE)
        assert LIFE.min_repro_age_years <= agent.age_years(LIFE) <= LIFE.prime_age_years
        assert cfg.energy.initial_min <= agent.energy <= cfg.energy.initial_max


def test_asexual_founders_have_no_sex():
    cfg = SimConfig().with_overrides(**{"reproduction.mode": "asexual"})
    agent = create_random_agent(1, 0, 0, cfg, random.Random(1))
    assert agent.sex is None
    assert agent.age_ticks == 0


def test_seed_agents_places_on_free_cells():
    cfg = SimConfig()
    grid = create_grid(4, 4)
    grid[0][0].food = True
    agents = seed_agents(grid, cfg, random.Random(8), count=6)
    positions = {a.position for a in agents}
    assert len(agents) == 6 == len(positions)
    assert (0, 0) not in positions
    for agent in agents:
        assert grid[agent.y][agent.x].occupant_id == agent.id


def test_seed_agents_returns_fewer_when_crowded():
    cfg = SimConfig()
    agents = seed_agents(create_grid(2, 1), cfg, random.Random(1), count=5)
    assert len(agents) == 2
    assert next_agent_id(agents) == 3
    assert next_agent_id([]) == 1
