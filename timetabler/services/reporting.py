from __future__ import annotations

import logging
from pathlib import Path

import pandas as pd
from tabulate import tabulate

from timetabler.models.lesson import Lesson
from timetabler.models.timeslots import day_index
from timetabler.schemas.solver import ConstraintSummary, LessonOut, ScoreOut, SolveResponse
from timetabler.services.scoring import ConstraintTotal, HardSoftScore
from timetabler.services.solver import SolveResult

logger = logging.getLogger(__name__)

REPORT_COLUMNS = ["Day", "Start", "End", "Batch", "Course", "Type", "Faculty", "Room"]


def report_order(lessons: list[Lesson]) -> list[Lesson]:
    """Day of week, then batch name, then start time; unscheduled lessons last."""

    def sort_key(lesson: Lesson) -> tuple:
        slot = lesson.timeslot
        if slot is None:
            return (1, 0, lesson.batch_name, 0, lesson.id)
        return (0, day_index(slot.day), lesson.batch_name, slot.start, lesson.id)

    return sorted(lessons, key=sort_key)


def lesson_out(lesson: Lesson) -> LessonOut:
    slot = lesson.timeslot
    return LessonOut(
        id=lesson.id,
        lesson_type=lesson.lesson_type.value,
        course_id=lesson.course.id,
        course_code=lesson.course.code,
        course_name=lesson.course.name,
        batch_id=lesson.batch.id if lesson.batch is not None else None,
        batch_name=lesson.batch_name,
        faculty_id=lesson.faculty.id if lesson.faculty is not None else None,
        faculty_name=lesson.faculty.name if lesson.faculty is not None else None,
        room_id=lesson.room.id if lesson.room is not None else None,
        room_number=lesson.room.number if lesson.room is not None else None,
        timeslot_id=slot.id if slot is not None else None,
        day=slot.day if slot is not None else None,
        start_time=slot.start_time if slot is not None else None,
        end_time=slot.end_time if slot is not None else None,
    )


def score_out(score: HardSoftScore) -> ScoreOut:
    return ScoreOut(
        hard=score.hard,
        soft=score.soft,
        uninitialized=score.uninitialized,
        feasible=score.is_feasible,
    )


def constraint_summaries(totals: list[ConstraintTotal], *, include_empty: bool = False) -> list[ConstraintSummary]:
    return [
        ConstraintSummary(name=item.name, level=item.level, matches=item.matches, score=item.score)
        for item in totals
        if include_empty or item.matches
    ]


def to_solve_response(result: SolveResult) -> SolveResponse:
    return SolveResponse(
        status=result.status,
        score=score_out(result.score),
        error=result.error,
        lessons=[lesson_out(lesson) for lesson in report_order(result.lessons)],
        warnings=result.warnings,
        constraints=constraint_summaries(result.constraints),
        iterations=result.iterations,
        runtime_ms=result.runtime_ms,
    )


def timetable_frame(lessons: list[Lesson]) -> pd.DataFrame:
    rows = []
    for lesson in report_order(lessons):
        slot = lesson.timeslot
        rows.append(
            {
                "Day": slot.day if slot is not None else "",
                "Start": slot.start_time if slot is not None else "",
                "End": slot.end_time if slot is not None else "",
                "Batch": lesson.batch_name,
                "Course": f"{lesson.course.code} {lesson.course.name}",
                "Type": lesson.lesson_type.value,
                "Faculty": lesson.faculty.name if lesson.faculty is not None else "",
                "Room": lesson.room.number if lesson.room is not None else "",
            }
        )
    return pd.DataFrame(rows, columns=REPORT_COLUMNS)


def render_timetable(lessons: list[Lesson]) -> str:
    frame = timetable_frame(lessons)
    if frame.empty:
        return "No lessons scheduled."
    return tabulate(frame, headers=frame.columns, tablefmt="grid", showindex=False, stralign="left")


def render_score_summary(score: HardSoftScore, totals: list[ConstraintTotal]) -> str:
    rows = [[item.name, item.level, item.matches, item.score] for item in totals if item.matches]
    table = tabulate(rows, headers=["Constraint", "Level", "Matches", "Score"], tablefmt="simple")
    status = "feasible" if score.is_feasible else "infeasible"
    return f"Score: {score} ({status})\n{table}" if rows else f"Score: {score} ({status})"


def export_csv(lessons: list[Lesson], path: str | Path) -> Path:
    target = Path(path)
    target.parent.mkdir(parents=True, exist_ok=True)
    timetable_frame(lessons).to_csv(target, index=False)
    logger.info("Exported %s lessons to %s", len(lessons), target)
    return target
