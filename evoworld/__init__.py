"""Grid world of foraging, learning and evolving agents."""

from .config import SimConfig
from .engine import StepResult, step_world
from .environment import Environment, WorldState

__all__ = ["Environment", "SimConfig", "StepResult", "WorldState", "step_world"]
