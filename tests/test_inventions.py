import random

import pytest

from conftest import FixedRandom

from evoworld.config import InventionConfig
from evoworld.inventions import (
    DiscoveryEvent,
    EffectKind,
    Invention,
    InventionEffects,
    accrue_points,
    inherit_inventions,
    inherited_points,
    try_discover,
)


CFG = InventionConfig()


def invention(kind, magnitude, ident="1-1-0"):
    return Invention(id=ident, name="Sunweave Stride", kind=kind, magnitude=magnitude, discovered_tick=1, inventor_id=1)


def test_points_accrue_from_curiosity_and_exploration(make_agent):
    agent = make_agent(1, 0, 0, curiosity=0.5, exploration=0.4)
    assert accrue_points(agent, CFG) == pytest.approx(0.2)
    assert agent.invention_points == pytest.approx(0.2)


def test_discovery_spends_points(make_agent):
    agent = make_agent(7, 0, 0, energy=20.0)
    agent.invention_points = CFG.points_cost + 1.0
    event = try_discover(agent, 12, CFG, FixedRandom(0.0))
    assert isinstance(event, DiscoveryEvent)
    assert event.tick == 12 and event.agent_id == 7
    assert event.invention.id == "12-7-0"
    assert event.invention.inventor_id == 7
    assert event.invention.kind in EffectKind
    assert agent.inventions == [event.invention]
    assert agent.invention_points == pytest.approx(1.0)
    assert "agent 7 invented" in event.describe()


def test_discovery_gates(make_agent):
    tired = make_agent(1, 0, 0, energy=CFG.min_energy - 1)
    tired.invention_points = 100.0
    assert try_discover(tired, 1, CFG, FixedRandom(0.0)) is None

    poor = make_agent(1, 0, 0, energy=50.0)
    poor.invention_points = CFG.points_cost - 0.5
    assert try_discover(poor, 1, CFG, FixedRandom(0.0)) is None

    unlucky = make_agent(1, 0, 0, energy=50.0)
    unlucky.invention_points = 100.0
    assert try_discover(unlucky, 1, CFG, FixedRandom(0.99)) is None
    assert unlucky.invention_points == 100.0


def test_effects_stack_and_cap():
    effects = InventionEffects.from_inventions(
        [
            invention(EffectKind.ENERGY_EFFICIENCY, 0.1, "a"),
            invention(EffectKind.ENERGY_EFFICIENCY, 0.1, "b"),
            invention(EffectKind.FOOD_DETECTION, 2.0, "c"),
            invention(EffectKind.FOOD_DETECTION, 2.0, "d"),
            invention(EffectKind.STORAGE, 2.0, "e"),
            invention(EffectKind.REPRODUCTION_BONUS, 0.3, "f"),
            invention(EffectKind.REPRODUCTION_BONUS, 0.3, "g"),
        ],
        CFG,
    )
    assert effects.energy_multiplier == pytest.approx(0.81)
    assert effects.detection_bonus == CFG.max_detection_bonus
    assert effects.storage_capacity == 2
    assert effects.repro_reduction == CFG.max_repro_reduction
    assert effects.damage_avoidance == 0.0


def test_no_inventions_means_neutral_effects():
    assert InventionEffects.from_inventions([], CFG) == InventionEffects()


def test_energy_multiplier_floor():
    many = [invention(EffectKind.ENERGY_EFFICIENCY, 0.5, str(i)) for i in range(6)]
    assert InventionEffects.from_inventions(many, CFG).energy_multiplier == CFG.min_energy_multiplier


def test_inheritance_dedupes_and_scales_with_social_drive(make_agent):
    shared = invention(EffectKind.STORAGE, 2.0, "shared")
    mother = make_agent(1, 0, 0)
    father = make_agent(2, 1, 0)
    mother.inventions = [shared, invention(EffectKind.FOOD_DETECTION, 1.0, "m")]
    father.inventions = [shared]

    inherited = inherit_inventions([mother, father], 1.0, CFG, FixedRandom(0.0))
    assert [i.id for i in inherited] == ["shared", "m"]
    assert inherit_inventions([mother, father], 0.0, CFG, random.Random(1)) == []


def test_inherited_points_average_parents(make_agent):
    a = make_agent(1, 0, 0)
    b = make_agent(2, 0, 0)
    a.invention_points = 10.0
    b.invention_points = 20.0
    assert inherited_points([a, b], CFG) == pytest.approx(15.0 * CFG.points_transfer)
    assert inherited_points([], CFG) == 0.0


def test_json_round_trip():
    event = DiscoveryEvent(tick=3, agent_id=2, invention=invention(EffectKind.DAMAGE_AVOIDANCE, 0.2))
    raw = event.to_json()
    assert raw["agentId"] == 2
    assert raw["invention"]["discoveredTick"] == 1
    assert DiscoveryEvent.from_json(raw) == event
