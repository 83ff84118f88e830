from __future__ import annotations

from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
import logging
import random
from time import perf_counter
from typing import Literal

from timetabler.core.exceptions import MissingEssentialDataError, SchedulerError
from timetabler.models.catalog import Catalogs
from timetabler.models.lesson import Lesson
from timetabler.schemas.solver import AssignmentIn, ErrorKind, SolveError, SolverSettings
from timetabler.services.construction import construct
from timetabler.services.local_search import EventSink, LocalSearch, SolverEvent
from timetabler.services.moves import DomainProvider, MoveGenerator
from timetabler.services.problem_builder import Problem, build_problem
from timetabler.services.scoring import ConstraintTotal, HardSoftScore, ScoreDirector
from timetabler.services.termination import TerminationController

logger = logging.getLogger(__name__)


@dataclass
class SolveResult:
    status: Literal["solved", "infeasible"]
    score: HardSoftScore
    problem: Problem
    constraints: list[ConstraintTotal]
    error: SolveError | None = None
    iterations: int = 0
    runtime_ms: int = 0
    instance: int = 0
    termination_reason: str | None = None
    warnings: list[str] = field(default_factory=list)

    @property
    def lessons(self) -> list[Lesson]:
        return self.problem.lessons

    @property
    def is_feasible(self) -> bool:
        return self.status == "solved"


def _run_instance(
    catalogs: Catalogs,
    settings: SolverSettings,
    index: int,
    seed: int,
    event_sink: EventSink | None,
) -> SolveResult:
    started = perf_counter()
    termination = TerminationController(
        settings.time_limit_seconds,
        max_iterations=settings.max_iterations,
        plateau_iterations=settings.plateau_iterations,
    )
    problem = build_problem(catalogs, settings)
    rng = random.Random(seed + index)
    director = ScoreDirector(problem)
    domains = DomainProvider(problem)

    order = list(problem.lessons)
    if index > 0:
        rng.shuffle(order)
    constructed = construct(director, domains, order)
    logger.info("Instance %s: constructed %s lessons at %s", index, len(order), constructed)
    if event_sink is not None:
        event_sink(
            SolverEvent(
                kind="construction_finished",
                instance=index,
                iteration=0,
                score=constructed,
                best=constructed,
                elapsed_seconds=termination.elapsed(),
            )
        )

    generator = MoveGenerator(
        problem,
        director,
        domains,
        rng,
        swap_probability=settings.swap_probability,
        offender_focus=settings.offender_focus,
    )
    search = LocalSearch(director, generator, termination, settings, rng, event_sink=event_sink, instance=index)
    stats = search.run()

    score = director.score
    error = None
    status: Literal["solved", "infeasible"] = "solved"
    if not score.is_feasible:
        status = "infeasible"
        error = SolveError(
            kind=ErrorKind.no_feasible_assignment_found,
            message=f"No assignment without hard violations was found; best score is {score}",
        )
    return SolveResult(
        status=status,
        score=score,
        problem=problem,
        constraints=director.explain(),
        error=error,
        iterations=stats.iterations,
        runtime_ms=int((perf_counter() - started) * 1000),
        instance=index,
        termination_reason=stats.termination_reason,
        warnings=list(problem.warnings),
    )


def solve(
    catalogs: Catalogs,
    time_limit: float | None = None,
    *,
    settings: SolverSettings | None = None,
    event_sink: EventSink | None = None,
) -> SolveResult:
    """Build, construct and improve a timetable; return the best result found.

    Raises ``MissingEssentialDataError`` before any work when a catalog is
    empty. An infeasible outcome is returned, not raised, with its best score.
    """
    missing = catalogs.missing_catalogs()
    if missing:
        raise MissingEssentialDataError(missing)

    settings = settings or SolverSettings()
    if time_limit is not None:
        settings = SolverSettings.model_validate({**settings.model_dump(), "time_limit_seconds": time_limit})
    seed = settings.random_seed if settings.random_seed is not None else random.randrange(2**31)
    started = perf_counter()

    if settings.parallel_instances == 1:
        result = _run_instance(catalogs, settings, 0, seed, event_sink)
    else:
        with ThreadPoolExecutor(max_workers=settings.parallel_instances) as pool:
            futures = [
                pool.submit(_run_instance, catalogs, settings, index, seed, event_sink)
                for index in range(settings.parallel_instances)
            ]
            results = [future.result() for future in futures]
        result = min(results, key=lambda item: (item.score, item.instance))
        result.iterations = sum(item.iterations for item in results)

    result.runtime_ms = int((perf_counter() - started) * 1000)
    logger.info(
        "Solve finished: status=%s score=%s instance=%s runtime_ms=%s",
        result.status,
        result.score,
        result.instance,
        result.runtime_ms,
    )
    return result


def score_assignment(
    catalogs: Catalogs,
    assignments: list[AssignmentIn],
    *,
    settings: SolverSettings | None = None,
) -> ScoreDirector:
    """Apply externally supplied assignments to a freshly built problem and score them."""
    problem = build_problem(catalogs, settings or SolverSettings())
    for item in assignments:
        lesson = problem.lesson_by_id.get(item.lesson_id)
        if lesson is None:
            raise SchedulerError(message=f"Unknown lesson id {item.lesson_id}")
        if item.faculty_id is not None:
            lesson.faculty = _lookup(problem.faculty_by_id, item.faculty_id, "faculty")
        if item.room_id is not None:
            lesson.room = _lookup(problem.rooms_by_id, item.room_id, "room")
        if item.timeslot_id is not None:
            lesson.timeslot = _lookup(problem.slots.by_id, item.timeslot_id, "timeslot")
    return ScoreDirector(problem)


def _lookup(mapping: dict, key: int, label: str):
    value = mapping.get(key)
    if value is None:
        raise SchedulerError(message=f"Unknown {label} id {key}")
    return value
