"""CLI entrypoint for re-planning a dumped model input offline.

Usage::

    python -m joint_planner.replay DUMP_DIR [--horizon N] [--budget S]
        [--max-amount N] [--config config.json] [--render plan.png]

CLI arguments override config-file values; config-file values override
built-in defaults. The plan is printed to stdout as JSON.
"""

from __future__ import annotations

import argparse
import json
import logging
import sys
from dataclasses import replace
from pathlib import Path

from joint_planner.config.types import PlannerConfig
from joint_planner.domain.snapshot import ExplorationSnapshot
from joint_planner.io.dump import read_dump, read_manifest
from joint_planner.planning.driver import build_problem, solve
from joint_planner.viz.render import render_plan

logger = logging.getLogger(__name__)


def _build_parser() -> argparse.ArgumentParser:
    """Build the CLI argument parser."""
    parser = argparse.ArgumentParser(description="Re-plan a dumped exploration or tasking input")
    parser.add_argument("dump_dir", type=Path, help="Directory written by a planner dump")
    parser.add_argument(
        "--config",
        type=Path,
        default=None,
        help="JSON config file (CLI args override file values)",
    )
    parser.add_argument("--horizon", type=int, default=None)
    parser.add_argument("--budget", type=float, default=None, help="Solver time limit in seconds")
    parser.add_argument("--max-amount", type=int, default=None)
    parser.add_argument("--render", type=Path, default=None, help="Write a PNG of the plan")
    parser.add_argument(
        "--log-search-progress",
        action=argparse.BooleanOptionalAction,
        default=None,
    )
    parser.add_argument("--verbose", "-v", action="store_true", help="Enable debug logging")
    return parser


def _load_config(parser: argparse.ArgumentParser, path: Path | None) -> PlannerConfig:
    if path is None:
        return PlannerConfig()
    try:
        raw = json.loads(Path(path).read_text())
    except FileNotFoundError:
        parser.error(f"Config file not found: {path}")
    except json.JSONDecodeError as exc:
        parser.error(f"Config file is not valid JSON: {path}: {exc}")
    if not isinstance(raw, dict):
        parser.error(f"Config file must contain a JSON object: {path}")
    try:
        return PlannerConfig.from_mapping(raw)
    except ValueError as exc:
        parser.error(f"Invalid config file {path}: {exc}")


def _apply_overrides(config: PlannerConfig, args: argparse.Namespace) -> PlannerConfig:
    overrides: dict[str, object] = {}
    if args.horizon is not None:
        overrides["horizon"] = args.horizon
    if args.max_amount is not None:
        overrides["max_amount"] = args.max_amount
    if args.budget is not None:
        overrides["budget_seconds"] = args.budget
    solver = config.solver
    if args.log_search_progress is not None:
        solver = replace(solver, log_search_progress=args.log_search_progress)
    return replace(
        config,
        exploration=replace(config.exploration, **overrides),
        tasking=replace(config.tasking, **overrides),
        solver=solver,
    )


def main(argv: list[str] | None = None) -> None:
    """CLI entrypoint: plan the dump and print status and actions as JSON."""
    parser = _build_parser()
    args = parser.parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        stream=sys.stderr,
    )

    config = _load_config(parser, args.config)
    try:
        config = _apply_overrides(config, args)
    except ValueError as exc:
        parser.error(str(exc))

    try:
        manifest = read_manifest(args.dump_dir)
        snapshot = read_dump(args.dump_dir)
    except (OSError, ValueError) as exc:
        parser.error(f"Cannot read dump {args.dump_dir}: {exc}")
    budget = (
        config.exploration.budget_seconds
        if isinstance(snapshot, ExplorationSnapshot)
        else config.tasking.budget_seconds
    )
    problem = build_problem(snapshot, config)
    logger.info("replaying %s dump %s with %.2fs", manifest["kind"], args.dump_dir, budget)
    result = solve(
        problem,
        budget,
        log_search_progress=config.solver.log_search_progress,
        num_workers=config.solver.num_workers,
    )

    payload = {
        "kind": manifest["kind"],
        "step": manifest.get("step"),
        "group": manifest.get("group"),
        "status": result.status,
        "wall_time": result.wall_time,
        "objective": result.objective,
        "actions": None
        if result.actions is None
        else [list(action.to_command()) for action in result.actions],
        "constructor_actions": [list(action.to_command()) for action in result.constructor_actions],
    }
    print(json.dumps(payload, ensure_ascii=False, indent=2))

    if args.render is not None:
        out = render_plan(
            snapshot,
            result.actions,
            args.render,
            title=f"{manifest['kind']} step {manifest.get('step')}: {result.status}",
        )
        logger.info("rendered plan to %s", out)


if __name__ == "__main__":
    main()
