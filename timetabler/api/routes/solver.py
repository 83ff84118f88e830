from __future__ import annotations

import logging

from fastapi import APIRouter

from timetabler.core.config import get_settings
from timetabler.models.catalog import Catalogs
from timetabler.schemas.solver import ScoreRequest, ScoreResponse, SolveRequest, SolveResponse, SolverSettings
from timetabler.services.reporting import constraint_summaries, lesson_out, report_order, score_out, to_solve_response
from timetabler.services.solver import score_assignment, solve

router = APIRouter()
logger = logging.getLogger(__name__)


def default_solver_settings() -> SolverSettings:
    settings = get_settings()
    return SolverSettings(
        time_limit_seconds=settings.time_limit_seconds,
        random_seed=settings.random_seed,
        parallel_instances=settings.parallel_instances,
        academic_year=settings.academic_year,
        working_days=settings.working_days,
    )


def _catalogs(payload: SolveRequest | ScoreRequest) -> Catalogs:
    return Catalogs(
        faculty=payload.faculty,
        rooms=payload.rooms,
        courses=payload.courses,
        batches=payload.batches,
    )


@router.post("/solve", response_model=SolveResponse)
def solve_timetable(payload: SolveRequest) -> SolveResponse:
    settings = payload.settings_override or default_solver_settings()
    logger.info(
        "Solve requested for %s batches, %s courses (time limit %ss)",
        len(payload.batches),
        len(payload.courses),
        payload.time_limit_seconds or settings.time_limit_seconds,
    )
    result = solve(_catalogs(payload), payload.time_limit_seconds, settings=settings)
    return to_solve_response(result)


@router.post("/score", response_model=ScoreResponse)
def score_timetable(payload: ScoreRequest) -> ScoreResponse:
    director = score_assignment(
        _catalogs(payload),
        payload.assignments,
        settings=payload.settings_override or default_solver_settings(),
    )
    return ScoreResponse(
        score=score_out(director.score),
        constraints=constraint_summaries(director.explain()),
        lessons=[lesson_out(lesson) for lesson in report_order(director.problem.lessons)],
    )
