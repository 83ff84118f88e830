from __future__ import annotations

from enum import Enum
from typing import Literal

from timetabler.models.catalog import Course, Faculty, Room, StudentBatch
from timetabler.models.timeslots import TimeSlot

PlanningField = Literal["faculty", "room", "timeslot"]
PLANNING_FIELDS: tuple[PlanningField, ...] = ("timeslot", "room", "faculty")


class LessonType(str, Enum):
    LECTURE = "LECTURE"
    LAB = "LAB"
    MINOR = "MINOR"


class Lesson:
    """One teaching unit; faculty, room and timeslot are the solver-owned fields."""

    __slots__ = ("id", "course", "batch", "lesson_type", "faculty", "room", "timeslot")

    def __init__(
        self,
        id: int,
        course: Course,
        batch: StudentBatch | None,
        lesson_type: LessonType,
        *,
        faculty: Faculty | None = None,
        room: Room | None = None,
        timeslot: TimeSlot | None = None,
    ) -> None:
        self.id = id
        self.course = course
        self.batch = batch
        self.lesson_type = lesson_type
        self.faculty = faculty
        self.room = room
        self.timeslot = timeslot

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Lesson):
            return NotImplemented
        return self.id == other.id

    def __hash__(self) -> int:
        return hash(self.id)

    def __repr__(self) -> str:
        return (
            f"Lesson(id={self.id}, course={self.course.code}, "
            f"batch={self.batch.name if self.batch else 'ALL'}, type={self.lesson_type.value})"
        )

    @property
    def is_minor(self) -> bool:
        return self.lesson_type == LessonType.MINOR

    @property
    def is_lab(self) -> bool:
        return self.lesson_type == LessonType.LAB

    @property
    def batch_name(self) -> str:
        return self.batch.name if self.batch is not None else "ALL"

    @property
    def is_complete(self) -> bool:
        return self.faculty is not None and self.room is not None and self.timeslot is not None

    def unassigned_count(self) -> int:
        return sum(1 for field in PLANNING_FIELDS if getattr(self, field) is None)

    def assignment(self) -> tuple[Faculty | None, Room | None, TimeSlot | None]:
        return (self.faculty, self.room, self.timeslot)

    def restore(self, assignment: tuple[Faculty | None, Room | None, TimeSlot | None]) -> None:
        self.faculty, self.room, self.timeslot = assignment
