"""JSON save/load for world state.

The wire shape is::

    {"grid": Cell[height][width], "agents": Agent[], "tick": int,
     "history": HistoryPoint[], "discoveries"?: DiscoveryEvent[]}

``discoveries`` is optional so older saves still load.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any, Dict, List, Tuple, Union
import json
import logging

from .agents import Agent, Pregnancy, Tool
from .config import SEX_FEMALE, SEX_MALE, SimConfig, Terrain
from .environment import HistoryPoint, WorldState
from .genetics import NUMERIC_GENES, Genes
from .grid import Cell, Fire, Grid, Shelter
from .inventions import DiscoveryEvent, Invention
from .memory import QTable

logger = logging.getLogger("evoworld.persistence")

REQUIRED_FIELDS = ("grid", "agents", "tick", "history")


class WorldLoadError(ValueError):
    """Raised when persisted state cannot be turned into a valid world."""


def _camel(name: str) -> str:
    head, *rest = name.split("_")
    return head + "".join(part.title() for part in rest)


_GENE_KEYS = {name: _camel(name) for name in NUMERIC_GENES}


# ---------------------------------------------------------------------------
# Encoding
# ---------------------------------------------------------------------------

def genes_to_json(genes: Genes) -> Dict[str, Any]:
    data: Dict[str, Any] = {_GENE_KEYS[name]: getattr(genes, name) for name in NUMERIC_GENES}
    data["lineageId"] = genes.lineage_id
    return data


def cell_to_json(cell: Cell) -> Dict[str, Any]:
    shelter = None
    if cell.shelter is not None:
        shelter = {"builderId": cell.shelter.builder_id, "durability": cell.shelter.durability}
    fire = {"ticksRemaining": cell.fire.ticks_remaining} if cell.fire is not None else None
    return {
        "food": cell.food,
        "occupantId": cell.occupant_id,
        "terrain": cell.terrain.value,
        "resources": {"sticks": cell.sticks, "stones": cell.stones},
        "structures": {"shelter": shelter, "fire": fire},
    }


def agent_to_json(agent: Agent) -> Dict[str, Any]:
    pregnancy = None
    if agent.pregnancy is not None:
        p = agent.pregnancy
        pregnancy = {
            "mateId": p.mate_id,
            "gestationProgress": p.gestation_progress,
            "childGenes": genes_to_json(p.child_genes),
            "childInventions": [inv.to_json() for inv in p.child_inventions],
            "childInventionPoints": p.child_invention_points,
        }
    return {
        "id": agent.id,
        "x": agent.x,
        "y": agent.y,
        "energy": agent.energy,
        "sex": agent.sex,
        "ageTicks": agent.age_ticks,
        "genes": genes_to_json(agent.genes),
        "memory": {"qTable": agent.memory.to_json()},
        "lastActionDescription": agent.last_action,
        "pregnancy": pregnancy,
        "reproductionCooldown": agent.reproduction_cooldown,
        "tool": {"type": agent.tool.type, "durability": agent.tool.durability} if agent.tool else None,
        "storedFood": agent.stored_food,
        "inventions": [inv.to_json() for inv in agent.inventions],
        "inventionPoints": agent.invention_points,
    }


def history_to_json(point: HistoryPoint) -> Dict[str, Any]:
    return {
        "tick": point.tick,
        "totalAgents": point.total_agents,
        "countsByLineage": {str(k): v for k, v in point.counts_by_lineage.items()},
    }


def world_to_dict(state: WorldState) -> Dict[str, Any]:
    return {
        "grid": [[cell_to_json(cell) for cell in row] for row in state.grid],
        "agents": [agent_to_json(agent) for agent in state.agents],
        "tick": state.tick,
        "history": [history_to_json(point) for point in state.history],
        "discoveries": [event.to_json() for event in state.discoveries],
    }


# ---------------------------------------------------------------------------
# Decoding
# ---------------------------------------------------------------------------

def _object(value: Any, what: str) -> Dict[str, Any]:
    if not isinstance(value, dict):
        raise WorldLoadError(f"{what} must be a JSON object, got {type(value).__name__}")
    return value


def _array(value: Any, what: str) -> List[Any]:
    if not isinstance(value, list):
        raise WorldLoadError(f"{what} must be a JSON array, got {type(value).__name__}")
    return value


def genes_from_json(raw: Dict[str, Any]) -> Genes:
    raw = _object(raw, "genes")
    values = {name: float(raw[key]) for name, key in _GENE_KEYS.items()}
    return Genes(lineage_id=int(raw["lineageId"]), **values)


def cell_from_json(raw: Dict[str, Any]) -> Cell:
    raw = _object(raw, "cell")
    resources = _object(raw.get("resources") or {}, "cell resources")
    structures = _object(raw.get("structures") or {}, "cell structures")
    shelter_raw = structures.get("shelter")
    fire_raw = structures.get("fire")
    occupant = raw.get("occupantId")
    return Cell(
        food=bool(raw["food"]),
        occupant_id=int(occupant) if occupant is not None else None,
        terrain=Terrain(raw.get("terrain", Terrain.PLAIN.value)),
        sticks=bool(resources.get("sticks", False)),
        stones=bool(resources.get("stones", False)),
        shelter=Shelter(int(shelter_raw["builderId"]), int(shelter_raw["durability"])) if shelter_raw else None,
        fire=Fire(int(fire_raw["ticksRemaining"])) if fire_raw else None,
    )


def agent_from_json(raw: Dict[str, Any]) -> Agent:
    raw = _object(raw, "agent")
    sex = raw.get("sex")
    if sex not in (None, SEX_MALE, SEX_FEMALE):
        raise ValueError(f"unknown sex {sex!r}")
    pregnancy = None
    p = raw.get("pregnancy")
    if p:
        p = _object(p, "pregnancy")
        pregnancy = Pregnancy(
            mate_id=int(p["mateId"]),
            gestation_progress=int(p["gestationProgress"]),
            child_genes=genes_from_json(p["childGenes"]),
            child_inventions=[Invention.from_json(inv) for inv in _array(p.get("childInventions", []), "childInventions")],
            child_invention_points=float(p.get("childInventionPoints", 0.0)),
        )
    tool = raw.get("tool")
    if tool:
        tool = _object(tool, "tool")
    memory = _object(raw.get("memory", {}), "agent memory")
    q_table = _object(memory.get("qTable", {}), "qTable")
    return Agent(
        id=int(raw["id"]),
        x=int(raw["x"]),
        y=int(raw["y"]),
        energy=float(raw["energy"]),
        genes=genes_from_json(raw["genes"]),
        memory=QTable.from_json(q_table),
        sex=sex,
        age_ticks=int(raw.get("ageTicks", 0)),
        last_action=str(raw.get("lastActionDescription", "none")),
        pregnancy=pregnancy,
        reproduction_cooldown=int(raw.get("reproductionCooldown", 0)),
        tool=Tool(str(tool["type"]), int(tool["durability"])) if tool else None,
        stored_food=int(raw.get("storedFood", 0)),
        inventions=[Invention.from_json(inv) for inv in _array(raw.get("inventions", []), "inventions")],
        invention_points=float(raw.get("inventionPoints", 0.0)),
    )


def history_from_json(raw: Dict[str, Any]) -> HistoryPoint:
    raw = _object(raw, "history point")
    counts = _object(raw.get("countsByLineage", {}), "countsByLineage")
    return HistoryPoint(
        tick=int(raw["tick"]),
        total_agents=int(raw["totalAgents"]),
        counts_by_lineage={int(k): int(v) for k, v in counts.items()},
    )


def world_from_dict(data: Any, cfg: SimConfig) -> WorldState:
    """Decode and validate a saved world; raises :class:`WorldLoadError`."""
    if not isinstance(data, dict):
        raise WorldLoadError("saved world must be a JSON object")
    missing = [name for name in REQUIRED_FIELDS if name not in data]
    if missing:
        raise WorldLoadError(f"saved world is missing required field(s): {', '.join(missing)}")

    width = cfg.grid.width
    height = cfg.grid.height
    rows = data["grid"]
    if not isinstance(rows, list) or len(rows) != height:
        got = len(rows) if isinstance(rows, list) else type(rows).__name__
        raise WorldLoadError(f"grid must have {height} rows, got {got}")
    for y, row in enumerate(rows):
        if not isinstance(row, list) or len(row) != width:
            got = len(row) if isinstance(row, list) else type(row).__name__
            raise WorldLoadError(f"grid row {y} must have {width} cells, got {got}")

    try:
        grid: Grid = [[cell_from_json(cell) for cell in row] for row in rows]
        agents = [agent_from_json(agent) for agent in _array(data["agents"], "agents")]
        tick = int(data["tick"])
        history = [history_from_json(point) for point in _array(data["history"], "history")]
        discoveries = [
            DiscoveryEvent.from_json(_object(event, "discovery"))
            for event in _array(data.get("discoveries") or [], "discoveries")
        ]
    except WorldLoadError:
        raise
    except (KeyError, TypeError, ValueError, AttributeError) as exc:
        raise WorldLoadError(f"malformed saved world: {exc!r}") from exc

    for agent in agents:
        if not (0 <= agent.x < width and 0 <= agent.y < height):
            raise WorldLoadError(
                f"agent {agent.id} at ({agent.x},{agent.y}) lies outside the {width}x{height} grid"
            )
    occupied: Dict[Tuple[int, int], int] = {}
    for agent in agents:
        if agent.energy <= 0:
            continue
        if agent.position in occupied:
            raise WorldLoadError(
                f"agents {occupied[agent.position]} and {agent.id} share cell ({agent.x},{agent.y})"
            )
        occupied[agent.position] = agent.id
    return WorldState(grid=grid, agents=agents, tick=tick, history=history, discoveries=discoveries)


# ---------------------------------------------------------------------------
# Files
# ---------------------------------------------------------------------------

def dumps(state: WorldState) -> str:
    return json.dumps(world_to_dict(state))


def loads(text: str, cfg: SimConfig) -> WorldState:
    try:
        data = json.loads(text)
    except json.JSONDecodeError as exc:
        raise WorldLoadError(f"saved world is not valid JSON: {exc}") from exc
    return world_from_dict(data, cfg)


def save_world(state: WorldState, path: Union[str, Path]) -> Path:
    target = Path(path)
    target.parent.mkdir(parents=True, exist_ok=True)
    target.write_text(dumps(state), encoding="utf-8")
    logger.info("saved world tick=%d agents=%d to %s", state.tick, len(state.agents), target)
    return target


def load_world(path: Union[str, Path], cfg: SimConfig) -> WorldState:
    source = Path(path)
    try:
        text = source.read_text(encoding="utf-8")
    except OSError as exc:
        raise WorldLoadError(f"cannot read {source}: {exc}") from exc
    try:
        state = loads(text, cfg)
    except WorldLoadError as exc:
        logger.warning("rejected saved world %s: %s", source, exc)
        raise
    logger.info("loaded world tick=%d agents=%d from %s", state.tick, len(state.agents), source)
    return state
