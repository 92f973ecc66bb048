"""Per-agent Q-learning memory.

States are ``(energy_bin, food_mask)`` pairs: three energy bins times a
four-bit mask of which cardinal directions have food in sensing range. With
five actions the table never holds more than 3 * 16 * 5 = 240 entries.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, Iterable, NamedTuple, Tuple
import random

import numpy as np

from .config import ALL_ACTIONS, CARDINALS, Direction, LearningConfig


class EnergyBin(str, Enum):
    LOW = "low"
    MID = "mid"
    HIGH = "high"


ENERGY_BINS: Tuple[EnergyBin, ...] = (EnergyBin.LOW, EnergyBin.MID, EnergyBin.HIGH)


class StateKey(NamedTuple):
    energy_bin: EnergyBin
    food_mask: int

    def encode(self) -> str:
        bits = "".join("1" if self.food_mask & (1 << i) else "0" for i in range(len(CARDINALS)))
        return f"{self.energy_bin.value}_{bits}"

    @classmethod
    def decode(cls, text: str) -> "StateKey":
        level, bits = text.split("_", 1)
        if len(bits) != len(CARDINALS) or set(bits) - {"0", "1"}:
            raise ValueError(f"bad food mask in state key: {text!r}")
        mask = sum(1 << i for i, bit in enumerate(bits) if bit == "1")
        return cls(EnergyBin(level), mask)

    @property
    def index(self) -> int:
        return ENERGY_BINS.index(self.energy_bin) * 16 + self.food_mask


STATE_COUNT = len(ENERGY_BINS) * 16
QKey = Tuple[StateKey, Direction]


def energy_bin(energy: float, cfg: LearningConfig) -> EnergyBin:
    if energy <= cfg.low_energy_max:
        return EnergyBin.LOW
    if energy <= cfg.mid_energy_max:
        return EnergyBin.MID
    return EnergyBin.HIGH


def food_mask(directions: Iterable[Direction]) -> int:
    mask = 0
    for direction in directions:
        mask |= 1 << CARDINALS.index(direction)
    return mask


@dataclass
class QTable:
    values: Dict[QKey, float] = field(default_factory=dict)

    def __len__(self) -> int:
        return len(self.values)

    def get(self, state: StateKey, action: Direction) -> float:
        return self.values.get((state, action), 0.0)

    def best_action(self, state: StateKey) -> Tuple[Direction, float]:
        # "stay" is scanned first so it wins ties and the never-visited case.
        best = Direction.STAY
        best_value = self.get(state, Direction.STAY)
        for action in CARDINALS:
            value = self.get(state, action)
            if value > best_value:
                best = action
                best_value = value
        return best, best_value

    def choose_action(self, state: StateKey, epsilon: float, rng: random.Random) -> Direction:
        if rng.random() < epsilon:
            return rng.choice(ALL_ACTIONS)
        return self.best_action(state)[0]

    def update(
        self,
        state: StateKey,
        action: Direction,
        reward: float,
        next_state: StateKey,
        alpha: float,
        gamma: float,
    ) -> float:
        old = self.get(state, action)
        _, best_next = self.best_action(next_state)
        value = (1.0 - alpha) * old + alpha * (reward + gamma * best_next)
        self.values[(state, action)] = value
        return value

    def copy(self) -> "QTable":
        return QTable(dict(self.values))

    def inherit(self, rng: random.Random, chance: float, rate: float) -> "QTable":
        """Partial copy for a newborn: each entry survives with ``chance``, scaled by ``rate``."""
        child = QTable()
        if chance <= 0.0:
            return child
        for key, value in self.values.items():
            if rng.random() < chance:
                child.values[key] = value * rate
        return child

    def to_array(self) -> np.ndarray:
        table = np.zeros((STATE_COUNT, len(ALL_ACTIONS)), dtype=np.float32)
        for (state, action), value in self.values.items():
            table[state.index, ALL_ACTIONS.index(action)] = value
        return table

    def to_json(self) -> Dict[str, float]:
        return {f"{state.encode()}|{action.value}": value for (state, action), value in self.values.items()}

    @classmethod
    def from_json(cls, raw: Dict[str, float]) -> "QTable":
        if not isinstance(raw, dict):
            raise ValueError(f"Q-table must be a mapping, got {type(raw).__name__}")
        table = cls()
        for key, value in raw.items():
            state_text, action_text = key.rsplit("|", 1)
            table.values[(StateKey.decode(state_text), Direction(action_text))] = float(value)
        return table
