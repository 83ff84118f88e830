from __future__ import annotations

import argparse
import logging
import sys

from timetabler.core.config import get_settings
from timetabler.core.exceptions import AppError
from timetabler.schemas.solver import SolverSettings
from timetabler.services.catalog_loader import load_catalogs
from timetabler.services.local_search import SolverEvent
from timetabler.services.reporting import export_csv, render_score_summary, render_timetable
from timetabler.services.solver import solve

logger = logging.getLogger("timetabler")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="timetabler", description="Build a weekly timetable from CSV catalogs.")
    parser.add_argument("data_dir", help="Directory holding faculty.csv, rooms.csv, courses.csv and batches.csv")
    parser.add_argument("--time-limit", type=float, default=None, help="Search time limit in seconds")
    parser.add_argument("--seed", type=int, default=None, help="Random seed for reproducible runs")
    parser.add_argument("--instances", type=int, default=None, help="Number of parallel search instances")
    parser.add_argument("--max-iterations", type=int, default=None, help="Stop after this many moves")
    parser.add_argument("--output", default=None, help="Write the timetable to this CSV file")
    parser.add_argument("--quiet", action="store_true", help="Do not print the timetable table")
    parser.add_argument("--log-level", default=None, help="Override TIMETABLER_LOG_LEVEL")
    return parser


def _log_event(event: SolverEvent) -> None:
    if event.kind == "new_best":
        logger.debug("[%s] move %s best %s", event.instance, event.iteration, event.best)
    else:
        logger.info("[%s] %s at %.1fs: %s", event.instance, event.kind, event.elapsed_seconds, event.score)


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    settings = get_settings()
    logging.basicConfig(
        level=(args.log_level or settings.log_level).upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    solver_settings = SolverSettings(
        time_limit_seconds=args.time_limit or settings.time_limit_seconds,
        random_seed=args.seed if args.seed is not None else settings.random_seed,
        parallel_instances=args.instances or settings.parallel_instances,
        max_iterations=args.max_iterations,
        academic_year=settings.academic_year,
        working_days=settings.working_days,
    )

    catalogs, load_warnings = load_catalogs(args.data_dir)
    try:
        result = solve(catalogs, settings=solver_settings, event_sink=_log_event)
    except AppError as exc:
        logger.error("%s %s", exc.message, exc.details or "")
        return 2

    if not args.quiet:
        print(render_timetable(result.lessons))
    print(render_score_summary(result.score, result.constraints))
    for warning in [*load_warnings, *result.warnings]:
        print(f"warning: {warning}", file=sys.stderr)
    if args.output:
        export_csv(result.lessons, args.output)
    if result.error is not None:
        print(f"{result.error.kind.value}: {result.error.message}", file=sys.stderr)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
