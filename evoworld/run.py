"""CLI entry point."""

from __future__ import annotations

import argparse
import logging
import sys

from .config import MODE_ASEXUAL, MODE_SEXUAL, SimConfig
from .persistence import WorldLoadError
from .simulation import run_simulation


def build_config(args: argparse.Namespace) -> SimConfig:
    overrides = {"reproduction.mode": args.mode}
    if args.width is not None:
        overrides["grid.width"] = args.width
    if args.height is not None:
        overrides["grid.height"] = args.height
    if args.no_inventions:
        overrides["invention.enabled"] = False
    return SimConfig().with_overrides(**overrides)


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description="EvoWorld simulation")
    parser.add_argument("--steps", type=int, default=500)
    parser.add_argument("--initial-pop", type=int, default=None)
    parser.add_argument("--seed", type=int, default=None)
    parser.add_argument("--mode", choices=(MODE_SEXUAL, MODE_ASEXUAL), default=MODE_SEXUAL)
    parser.add_argument("--width", type=int, default=None)
    parser.add_argument("--height", type=int, default=None)
    parser.add_argument("--no-inventions", action="store_true", help="Disable procedural inventions")
    parser.add_argument("--log-every", type=int, default=50)
    parser.add_argument("--print-logs", action="store_true", help="Print every per-agent log line")
    parser.add_argument("--csv", type=str, default=None, help="Write per-step stats to CSV")
    parser.add_argument("--no-summary", action="store_true", help="Disable summary output")
    parser.add_argument("--load", type=str, default=None, help="Resume from a saved world JSON")
    parser.add_argument("--save", type=str, default=None, help="Save the final world as JSON")
    parser.add_argument("--dump-qtables", type=str, default=None, help="Directory for per-agent .npy Q-tables")
    parser.add_argument("--log-level", default="WARNING")
    args = parser.parse_args(argv)

    logging.basicConfig(level=args.log_level.upper(), format="%(asctime)s %(name)s %(levelname)s %(message)s")

    try:
        run_simulation(
            steps=args.steps,
            cfg=build_config(args),
            initial_population=args.initial_pop,
            seed=args.seed,
            log_every=args.log_every,
            csv_path=args.csv,
            summary=not args.no_summary,
            load_path=args.load,
            save_path=args.save,
            qtable_dir=args.dump_qtables,
            print_logs=args.print_logs,
        )
    except WorldLoadError as exc:
        print(f"error: {exc}", file=sys.stderr)
        return 2
    return 0


if __name__ == "__main__":
    sys.exit(main())
