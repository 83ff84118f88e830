from __future__ import annotations

from collections.abc import Callable
import logging
from pathlib import Path
from typing import Any, TypeVar

import pandas as pd
from pydantic import ValidationError

from timetabler.models.catalog import Catalogs, Course, CourseKind, Faculty, PreferredSlot, Room, StudentBatch

logger = logging.getLogger(__name__)

T = TypeVar("T")

FACULTY_FILE = "faculty.csv"
ROOMS_FILE = "rooms.csv"
COURSES_FILE = "courses.csv"
MINORS_FILE = "minors.csv"
BATCHES_FILE = "batches.csv"

LIST_SEPARATOR = ";"


def split_ids(value: Any) -> tuple[int, ...]:
    text = str(value or "").strip()
    if not text:
        return ()
    return tuple(int(item.strip()) for item in text.split(LIST_SEPARATOR) if item.strip())


def split_names(value: Any) -> tuple[str, ...]:
    text = str(value or "").strip()
    if not text:
        return ()
    return tuple(item.strip() for item in text.split(LIST_SEPARATOR) if item.strip())


def parse_preferred_slots(value: Any) -> tuple[PreferredSlot, ...]:
    """Parse ``Monday 09:00-10:30;Tuesday 14:30-16:00`` into preferred slots."""
    slots: list[PreferredSlot] = []
    for item in split_names(value):
        day, _, span = item.partition(" ")
        start, _, end = span.strip().partition("-")
        slots.append(PreferredSlot(day=day, start_time=start.strip(), end_time=end.strip()))
    return tuple(slots)


def _int(value: Any, default: int = 0) -> int:
    text = str(value or "").strip()
    return int(float(text)) if text else default


def read_table(path: Path) -> list[dict[str, str]]:
    frame = pd.read_csv(path, comment="#", dtype=str, keep_default_na=False, skipinitialspace=True)
    frame.columns = [str(column).strip().lower() for column in frame.columns]
    return [{key: str(value).strip() for key, value in row.items()} for row in frame.to_dict(orient="records")]


def faculty_from_row(row: dict[str, str]) -> Faculty:
    return Faculty(
        id=_int(row["id"]),
        name=row["name"],
        subjects=split_names(row.get("subjects")),
        max_hours_per_day=_int(row.get("max_hours_per_day")),
        preferred_slots=parse_preferred_slots(row.get("preferred_slots")),
    )


def room_from_row(row: dict[str, str]) -> Room:
    return Room(
        id=_int(row["id"]),
        number=row["room_number"],
        capacity=_int(row["capacity"]),
        type=row["room_type"],
    )


def course_from_row(row: dict[str, str], *, default_kind: CourseKind = CourseKind.regular) -> Course:
    return Course(
        id=_int(row["id"]),
        code=row["code"],
        name=row["name"],
        kind=row.get("kind") or default_kind,
        lecture_hours=_int(row.get("lecture_hours")),
        theory_hours=_int(row.get("theory_hours")),
        practical_hours=_int(row.get("practical_hours")),
        credits=_int(row.get("credits")),
        eligible_faculty_ids=split_ids(row.get("eligible_faculty_ids")),
        allowed_room_ids=split_ids(row.get("allowed_room_ids")),
    )


def batch_from_row(row: dict[str, str]) -> StudentBatch:
    return StudentBatch(
        id=_int(row["id"]),
        name=row["name"],
        year=_int(row["year"]),
        headcount=_int(row["headcount"]),
        course_ids=split_ids(row.get("course_ids")),
        lecture_room_ids=split_ids(row.get("lecture_room_ids")),
        practical_room_ids=split_ids(row.get("practical_room_ids")),
    )


class CatalogLoader:
    """Reads the CSV catalogs of a data directory; malformed rows are skipped with a warning."""

    def __init__(self, directory: str | Path) -> None:
        self.directory = Path(directory)
        self.warnings: list[str] = []

    def _warn(self, message: str, *args: object) -> None:
        text = message % args
        logger.warning(text)
        self.warnings.append(text)

    def _load(self, filename: str, parse: Callable[[dict[str, str]], T], *, required: bool = True) -> list[T]:
        path = self.directory / filename
        if not path.exists():
            if required:
                self._warn("Catalog file %s not found", path)
            return []

        records: list[T] = []
        seen_ids: set[int] = set()
        for line_number, row in enumerate(read_table(path), start=2):
            try:
                record = parse(row)
            except (KeyError, ValueError, ValidationError) as exc:
                self._warn("Skipping %s row %s: %s", filename, line_number, exc)
                continue
            if record.id in seen_ids:
                self._warn("Skipping %s row %s: duplicate id %s", filename, line_number, record.id)
                continue
            seen_ids.add(record.id)
            records.append(record)
        logger.info("Loaded %s records from %s", len(records), path)
        return records

    def load(self) -> Catalogs:
        courses = self._load(COURSES_FILE, course_from_row)
        minors = self._load(
            MINORS_FILE,
            lambda row: course_from_row(row, default_kind=CourseKind.minor),
            required=False,
        )
        known = {course.id for course in courses}
        for minor in minors:
            if minor.id in known:
                self._warn("Skipping minor course %s: id %s already used", minor.code, minor.id)
                continue
            courses.append(minor)
        return Catalogs(
            faculty=self._load(FACULTY_FILE, faculty_from_row),
            rooms=self._load(ROOMS_FILE, room_from_row),
            courses=courses,
            batches=self._load(BATCHES_FILE, batch_from_row),
        )


def load_catalogs(directory: str | Path) -> tuple[Catalogs, list[str]]:
    loader = CatalogLoader(directory)
    catalogs = loader.load()
    return catalogs, loader.warnings
