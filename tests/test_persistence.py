import json

import pytest

from evoworld.config import SimConfig
from evoworld.environment import Environment
from evoworld.persistence import WorldLoadError, dumps, load_world, loads, save_world, world_to_dict


@pytest.fixture(scope="module")
def evolved():
    cfg = SimConfig().with_overrides(**{"grid.width": 10, "grid.height": 8, "grid.initial_agents": 8})
    env = Environment.create(cfg, seed=13)
    for _ in range(40):
        env.step()
    return cfg, env


def test_round_trip_preserves_world(evolved):
    cfg, env = evolved
    state = env.state()
    restored = loads(dumps(state), cfg)
    assert restored == state


def test_wire_shape_uses_camel_case(evolved):
    cfg, env = evolved
    data = world_to_dict(env.state())
    assert set(data) == {"grid", "agents", "tick", "history", "discoveries"}
    assert len(data["grid"]) == cfg.grid.height
    cell = data["grid"][0][0]
    assert set(cell) == {"food", "occupantId", "terrain", "resources", "structures"}
    if data["agents"]:
        agent = data["agents"][0]
        assert "ageTicks" in agent and "qTable" in agent["memory"]
        assert "foodPreference" in agent["genes"] and "lineageId" in agent["genes"]
    for point in data["history"]:
        assert all(isinstance(key, str) for key in point["countsByLineage"])


def test_discoveries_are_optional(evolved):
    cfg, env = evolved
    data = world_to_dict(env.state())
    del data["discoveries"]
    restored = loads(json.dumps(data), cfg)
    assert restored.discoveries == []
    assert restored.tick == env.tick


@pytest.mark.parametrize("field", ["grid", "agents", "tick", "history"])
def test_missing_field_is_rejected(evolved, field):
    cfg, env = evolved
    data = world_to_dict(env.state())
    del data[field]
    with pytest.raises(WorldLoadError, match=field):
        loads(json.dumps(data), cfg)


def test_dimension_mismatch_is_rejected(evolved):
    cfg, env = evolved
    text = dumps(env.state())
    with pytest.raises(WorldLoadError, match="rows"):
        loads(text, cfg.with_overrides(**{"grid.height": 9}))
    with pytest.raises(WorldLoadError, match="cells"):
        loads(text, cfg.with_overrides(**{"grid.width": 11}))


def test_agent_outside_grid_is_rejected(evolved):
    cfg, env = evolved
    data = world_to_dict(env.state())
    if not data["agents"]:
        pytest.skip("population died out")
    data["agents"][0]["x"] = cfg.grid.width
    with pytest.raises(WorldLoadError, match="outside"):
        loads(json.dumps(data), cfg)


def _cell_as_string(data):
    data["grid"][0][0] = "x"


def _agents_as_object(data):
    data["agents"] = {"a": 1}


def _q_table_as_string(data):
    data["agents"][0]["memory"] = {"qTable": "abc"}


def _memory_as_list(data):
    data["agents"][0]["memory"] = []


def _counts_as_list(data):
    data["history"][0]["countsByLineage"] = [1]


def test_malformed_input_is_rejected(evolved):
    cfg, env = evolved
    with pytest.raises(WorldLoadError):
        loads("{not json", cfg)
    with pytest.raises(WorldLoadError):
        loads("[]", cfg)
    data = world_to_dict(env.state())
    data["tick"] = "soon"
    with pytest.raises(WorldLoadError):
        loads(json.dumps(data), cfg)


@pytest.mark.parametrize(
    "corrupt", [_cell_as_string, _agents_as_object, _q_table_as_string, _memory_as_list, _counts_as_list]
)
def test_wrongly_typed_sections_are_rejected(evolved, corrupt):
    cfg, env = evolved
    data = world_to_dict(env.state())
    if not data["agents"] or not data["history"]:
        pytest.skip("population died out")
    corrupt(data)
    with pytest.raises(WorldLoadError):
        loads(json.dumps(data), cfg)


def test_shared_cell_is_rejected(evolved):
    cfg, env = evolved
    data = world_to_dict(env.state())
    if len(data["agents"]) < 2:
        pytest.skip("population died out")
    first, second = data["agents"][:2]
    second["x"], second["y"] = first["x"], first["y"]
    with pytest.raises(WorldLoadError, match="share cell"):
        loads(json.dumps(data), cfg)


def test_failed_load_leaves_environment_untouched(evolved, tmp_path):
    cfg, env = evolved
    path = tmp_path / "broken.json"
    path.write_text('{"grid": []}', encoding="utf-8")
    before = dumps(env.state())
    with pytest.raises(WorldLoadError):
        env.restore(load_world(path, cfg))
    assert dumps(env.state()) == before


def test_save_and_load_file(evolved, tmp_path):
    cfg, env = evolved
    path = save_world(env.state(), tmp_path / "nested" / "world.json")
    assert path.exists()
    loaded = load_world(path, cfg)
    resumed = Environment.from_state(cfg, loaded, seed=1)
    assert resumed.tick == env.tick
    assert [a.id for a in resumed.agents] == [a.id for a in env.agents]
    resumed.step()
    assert resumed.tick == env.tick + 1


def test_missing_file_is_a_load_error(tmp_path):
    with pytest.raises(WorldLoadError, match="cannot read"):
        load_world(tmp_path / "nope.json", SimConfig())
