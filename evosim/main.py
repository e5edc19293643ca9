from __future__ import annotations

import argparse
import json
import sys
from pathlib import Path
from typing import Dict, Optional, Sequence, Tuple

from loguru import logger

from evosim.core import SimulationConfig, SimulationDatabase, load_config, setup_logger
from evosim.core.handler import BushworldHandler, GenerationState, run_generation_cycle
from evosim.core.state_manager import StateManager
from evosim.sim import randomness


def build_parser(description: str = "Evolutionary bush world simulation (headless)") -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description=description)
    parser.add_argument(
        "--generations",
        type=int,
        default=10,
        help="Number of generations to run (default: 10)",
    )
    parser.add_argument("--config", type=Path, help="JSON config file with engine/genetics/bush/logging sections")
    parser.add_argument(
        "--params",
        type=Path,
        help="JSON object of parameter values, e.g. {\"Fly Quantity\": 40}",
    )
    parser.add_argument("--seed", type=int, help="Seed for reproducible runs")
    parser.add_argument("--csv", type=Path, help="Write the statistics database to this CSV file")
    parser.add_argument("--log-level", default=None, help="Log level (default: from config, INFO)")
    parser.add_argument("--log-dir", default=None, help="Directory for log files")
    parser.add_argument(
        "--state-file",
        type=Path,
        help="Remember parameter values in this JSON file between runs",
    )
    return parser


def parse_args(argv: Sequence[str]) -> argparse.Namespace:
    return build_parser().parse_args(argv)


def load_parameter_values(path: Path) -> Dict[str, float]:
    try:
        data = json.loads(Path(path).read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError) as exc:
        raise ValueError(f"Failed to read parameter file {path}: {exc}") from exc
    if not isinstance(data, dict):
        raise ValueError(f"Parameter file {path} must contain a JSON object")
    return {str(k): float(v) for k, v in data.items()}


def build_config(args: argparse.Namespace) -> SimulationConfig:
    config = load_config(args.config) if args.config else SimulationConfig()
    if args.seed is not None:
        config.engine.seed = args.seed
    if args.log_level:
        config.logging.level = args.log_level
    if args.log_dir:
        config.logging.log_dir = args.log_dir
    return config


def build_handler(args: argparse.Namespace) -> Tuple[BushworldHandler, Optional[StateManager]]:
    """Configure logging and randomness, then build a handler with the remembered parameters."""
    config = build_config(args)
    setup_logger(config.logging.log_dir, config.logging.level, enable_colors=config.logging.enable_colors)
    if config.engine.seed is not None:
        randomness.seed(config.engine.seed)

    handler = BushworldHandler(config)
    state_manager = StateManager(args.state_file) if args.state_file else None
    values: Dict[str, float] = {}
    if state_manager is not None:
        values.update(state_manager.get_parameters())
    if args.params:
        values.update(load_parameter_values(args.params))
    unknown = sorted(set(values) - set(handler.parameters))
    if unknown:
        logger.warning("ignoring unknown parameters: {}", ", ".join(unknown))
    handler.parameters.update_values(values)
    return handler, state_manager


def log_generation(state: GenerationState) -> None:
    logger.info(
        "generation {:>4} | agents {:>4} | best {:.2f} | fly {:.3f} / {:.3f} | wasp {:.3f} / {:.3f} | {:.2f}s",
        state.generation,
        state.population,
        state.best_fitness,
        state.average_fitness.get("Fly", 0.0),
        state.best_genome_fitness.get("Fly", 0.0),
        state.average_fitness.get("Wasp", 0.0),
        state.best_genome_fitness.get("Wasp", 0.0),
        state.elapsed,
    )


def finish_run(
    args: argparse.Namespace,
    handler: BushworldHandler,
    database: SimulationDatabase,
    state_manager: Optional[StateManager],
) -> None:
    if args.csv:
        database.write_csv(args.csv)
    if state_manager is not None:
        state_manager.set_parameters(handler.parameters.values())
        if args.config:
            state_manager.set_config_file(args.config)
        if args.csv:
            state_manager.set_csv_file(args.csv)


def main(argv: Sequence[str] | None = None) -> int:
    argv = list(argv if argv is not None else sys.argv[1:])
    args = parse_args(argv)
    handler, state_manager = build_handler(args)
    database = handler.create_database()
    for _ in range(args.generations):
        state = run_generation_cycle(handler, database)
        log_generation(state)
        if state.extinct:
            logger.warning("population extinct after generation {}", state.generation)
            break

    finish_run(args, handler, database, state_manager)
    return 0


if __name__ == "__main__":
    sys.exit(main())
