"""Simulation driver."""

from __future__ import annotations

from dataclasses import asdict
from pathlib import Path
from typing import Dict, List, Optional
import csv
import os

import numpy as np

from .config import SimConfig
from .environment import Environment, StepStats
from .persistence import load_world, save_world


def _write_csv(stats: List[StepStats], csv_path: str) -> None:
    if not stats:
        with open(csv_path, "w", newline="") as handle:
            handle.write("")
        return
    fieldnames = list(asdict(stats[0]).keys())
    with open(csv_path, "w", newline="") as handle:
        writer = csv.DictWriter(handle, fieldnames=fieldnames)
        writer.writeheader()
        for row in stats:
            writer.writerow(asdict(row))


def _summarize(stats: List[StepStats]) -> Dict[str, float]:
    if not stats:
        return {
            "steps": 0,
            "final_pop": 0,
            "peak_pop": 0,
            "avg_pop": 0.0,
            "total_births": 0,
            "total_deaths": 0,
            "deaths_low_energy": 0,
            "deaths_old_age": 0,
            "total_collisions": 0,
            "total_discoveries": 0,
            "avg_energy": 0.0,
            "avg_age_years": 0.0,
            "final_lineages": 0,
        }
    population = np.array([s.population for s in stats], dtype=float)
    last = stats[-1]
    return {
        "steps": len(stats),
        "final_pop": last.population,
        "peak_pop": int(population.max()),
        "avg_pop": float(population.mean()),
        "total_births": sum(s.births for s in stats),
        "total_deaths": sum(s.deaths for s in stats),
        "deaths_low_energy": sum(s.deaths_low_energy for s in stats),
        "deaths_old_age": sum(s.deaths_old_age for s in stats),
        "total_collisions": sum(s.collisions for s in stats),
        "total_discoveries": sum(s.discoveries for s in stats),
        "avg_energy": float(np.mean([s.avg_energy for s in stats])),
        "avg_age_years": float(np.mean([s.avg_age_years for s in stats])),
        "final_lineages": last.lineages,
    }


def _print_summary(summary: Dict[str, float]) -> None:
    print("summary:")
    print(f"  steps={int(summary['steps'])} final_pop={int(summary['final_pop'])}")
    print(
        f"  total_births={int(summary['total_births'])} "
        f"total_deaths={int(summary['total_deaths'])} "
        f"starved={int(summary['deaths_low_energy'])} old_age={int(summary['deaths_old_age'])} "
        f"peak_pop={int(summary['peak_pop'])}"
    )
    print(
        f"  avg_pop={summary['avg_pop']:.1f} avg_age_years={summary['avg_age_years']:.2f} "
        f"avg_energy={summary['avg_energy']:.3f}"
    )
    print(
        f"  collisions={int(summary['total_collisions'])} discoveries={int(summary['total_discoveries'])} "
        f"lineages={int(summary['final_lineages'])}"
    )


def dump_qtables(env: Environment, out_dir: str) -> List[str]:
    """Write each living agent's Q-table as a dense ``.npy`` array (states x actions)."""
    os.makedirs(out_dir, exist_ok=True)
    paths = []
    for agent in env.agents:
        path = os.path.join(out_dir, f"Q_t{env.tick:05d}_agent{agent.id:04d}.npy")
        np.save(path, agent.memory.to_array())
        paths.append(path)
    return paths


def run_simulation(
    steps: int,
    cfg: Optional[SimConfig] = None,
    initial_population: Optional[int] = None,
    seed: Optional[int] = None,
    log_every: int = 100,
    csv_path: Optional[str] = None,
    summary: bool = True,
    load_path: Optional[str] = None,
    save_path: Optional[str] = None,
    qtable_dir: Optional[str] = None,
    print_logs: bool = False,
) -> List[StepStats]:
    cfg = cfg or SimConfig()
    if load_path:
        env = Environment.from_state(cfg, load_world(load_path, cfg), seed=seed)
    else:
        env = Environment.create(cfg, seed=seed, initial_population=initial_population)

    stats: List[StepStats] = []
    for _ in range(steps):
        step_stats = env.step()
        stats.append(step_stats)
        if print_logs:
            for line in env.last_logs:
                print(f"  [{step_stats.step}] {line}")
        if log_every and step_stats.step % log_every == 0:
            print(
                f"step={step_stats.step} pop={step_stats.population} "
                f"births={step_stats.births} matings={step_stats.matings} deaths={step_stats.deaths} "
                f"starv={step_stats.deaths_low_energy} age={step_stats.deaths_old_age} "
                f"coll={step_stats.collisions} inv={step_stats.discoveries} "
                f"food={step_stats.food} lineages={step_stats.lineages} "
                f"avgE={step_stats.avg_energy:.2f} avgQ={step_stats.avg_q_entries:.1f}"
            )
        if not env.agents:
            print(f"population extinct at step {step_stats.step}")
            break
    if csv_path:
        _write_csv(stats, csv_path)
    if save_path:
        save_world(env.state(), Path(save_path))
    if qtable_dir:
        dump_qtables(env, qtable_dir)
    if summary:
        _print_summary(_summarize(stats))
    return stats
