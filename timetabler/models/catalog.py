from __future__ import annotations

from enum import Enum

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from timetabler.models.timeslots import DAY_ORDER, TIME_PATTERN, parse_time_to_minutes


class CourseKind(str, Enum):
    regular = "regular"
    minor = "minor"


class RoomType(str, Enum):
    lecture = "lecture"
    computer_lab = "computer_lab"
    hardware_lab = "hardware_lab"


LAB_ROOM_TYPES = frozenset({RoomType.computer_lab, RoomType.hardware_lab})

ROOM_TYPE_ALIASES = {
    "lecture_room": RoomType.lecture,
    "lecture": RoomType.lecture,
    "computer_lab": RoomType.computer_lab,
    "hardware_lab": RoomType.hardware_lab,
}


class CatalogRecord(BaseModel):
    model_config = ConfigDict(frozen=True)


class Room(CatalogRecord):
    id: int
    number: str = Field(min_length=1, max_length=50)
    capacity: int = Field(ge=0)
    type: RoomType

    @field_validator("type", mode="before")
    @classmethod
    def normalize_type(cls, value: object) -> object:
        if isinstance(value, str):
            key = value.strip().lower().replace(" ", "_").replace("-", "_")
            return ROOM_TYPE_ALIASES.get(key, key)
        return value

    @property
    def is_lab_room(self) -> bool:
        return self.type in LAB_ROOM_TYPES

    @property
    def is_lecture_room(self) -> bool:
        return self.type == RoomType.lecture

    @property
    def ideal_daily_load(self) -> int:
        return 5 if self.is_lecture_room else 2


class PreferredSlot(CatalogRecord):
    day: str
    start_time: str
    end_time: str

    @field_validator("day")
    @classmethod
    def validate_day(cls, value: str) -> str:
        day = value.strip()
        if day not in DAY_ORDER:
            raise ValueError("Invalid day value")
        return day

    @field_validator("start_time", "end_time")
    @classmethod
    def validate_time(cls, value: str) -> str:
        if not TIME_PATTERN.match(value):
            raise ValueError("Time must be in HH:MM 24-hour format")
        return value

    @model_validator(mode="after")
    def validate_time_order(self) -> "PreferredSlot":
        if parse_time_to_minutes(self.end_time) <= parse_time_to_minutes(self.start_time):
            raise ValueError("end_time must be after start_time")
        return self

    @property
    def key(self) -> tuple[str, int, int]:
        return (self.day, parse_time_to_minutes(self.start_time), parse_time_to_minutes(self.end_time))


class Faculty(CatalogRecord):
    id: int
    name: str = Field(min_length=1, max_length=200)
    subjects: tuple[str, ...] = ()
    max_hours_per_day: int = Field(default=0, ge=0, le=24)
    preferred_slots: tuple[PreferredSlot, ...] = ()


class Course(CatalogRecord):
    id: int
    code: str = Field(min_length=1, max_length=50)
    name: str = Field(min_length=1, max_length=200)
    kind: CourseKind = CourseKind.regular
    lecture_hours: int = Field(default=0, ge=0)
    theory_hours: int = Field(default=0, ge=0)
    practical_hours: int = Field(default=0, ge=0)
    credits: int = Field(default=0, ge=0)
    eligible_faculty_ids: tuple[int, ...] = ()
    allowed_room_ids: tuple[int, ...] = ()

    @field_validator("kind", mode="before")
    @classmethod
    def normalize_kind(cls, value: object) -> object:
        # Electives and other labels schedule like regular courses.
        if isinstance(value, str):
            return CourseKind.minor if value.strip().lower() == "minor" else CourseKind.regular
        return value

    @property
    def hours_per_week(self) -> int:
        return self.lecture_hours + self.theory_hours + self.practical_hours

    @property
    def is_lab(self) -> bool:
        return self.practical_hours > 0

    @property
    def is_minor(self) -> bool:
        return self.kind == CourseKind.minor


class StudentBatch(CatalogRecord):
    id: int
    name: str = Field(min_length=1, max_length=100)
    year: int = Field(ge=1900, le=2200)
    headcount: int = Field(ge=0)
    course_ids: tuple[int, ...] = ()
    lecture_room_ids: tuple[int, ...] = ()
    practical_room_ids: tuple[int, ...] = ()


class Catalogs(BaseModel):
    """Validated reference data handed to the solver."""

    faculty: list[Faculty] = Field(default_factory=list)
    rooms: list[Room] = Field(default_factory=list)
    courses: list[Course] = Field(default_factory=list)
    batches: list[StudentBatch] = Field(default_factory=list)

    def missing_catalogs(self) -> list[str]:
        return [name for name in ("faculty", "rooms", "courses", "batches") if not getattr(self, name)]

    def required_labs_per_week(self, batch: StudentBatch) -> int:
        courses = {course.id: course for course in self.courses}
        return sum(
            courses[course_id].practical_hours
            for course_id in batch.course_ids
            if course_id in courses and courses[course_id].is_lab
        )
