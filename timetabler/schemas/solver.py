from __future__ import annotations

from enum import Enum
from typing import Literal

from pydantic import BaseModel, Field, field_validator, model_validator

from timetabler.models.catalog import Course, Faculty, Room, StudentBatch
from timetabler.models.timeslots import DAY_ORDER, TIME_PATTERN, parse_time_to_minutes


class ConstraintWeights(BaseModel):
    room_conflict: int = Field(default=10, ge=0, le=10_000)
    faculty_conflict: int = Field(default=10, ge=0, le=10_000)
    batch_conflict: int = Field(default=10, ge=0, le=10_000)
    faculty_spacing: int = Field(default=10, ge=0, le=10_000)
    room_capacity: int = Field(default=5, ge=0, le=10_000)
    faculty_qualification: int = Field(default=8, ge=0, le=10_000)
    room_type: int = Field(default=10, ge=0, le=10_000)
    slot_duration: int = Field(default=10, ge=0, le=10_000)
    weekly_lab_cadence: int = Field(default=10, ge=0, le=10_000)
    one_lab_per_day: int = Field(default=10, ge=0, le=10_000)
    course_once_per_day: int = Field(default=10, ge=0, le=10_000)
    lunch_break: int = Field(default=10, ge=0, le=10_000)
    slot_legality: int = Field(default=10, ge=0, le=10_000)
    minor_fixed_slot: int = Field(default=10, ge=0, le=10_000)
    faculty_batch_daily_cap: int = Field(default=10, ge=0, le=10_000)

    faculty_load: int = Field(default=10, ge=0, le=1000)
    room_load: int = Field(default=1, ge=0, le=1000)
    batch_load: int = Field(default=10, ge=0, le=1000)
    daily_batch_load: int = Field(default=1, ge=0, le=1000)
    preferred_start: int = Field(default=1, ge=0, le=1000)
    contiguity: int = Field(default=1, ge=0, le=1000)
    schedule_gap: int = Field(default=1, ge=0, le=1000)
    short_gap: int = Field(default=1, ge=0, le=1000)
    room_change: int = Field(default=1, ge=0, le=1000)
    faculty_slot_preference: int = Field(default=2, ge=0, le=1000)
    faculty_daily_hours: int = Field(default=5, ge=0, le=1000)


class ScoringParameters(BaseModel):
    target_faculty_lessons: int = Field(default=15, ge=0, le=200)
    faculty_load_tolerance: int = Field(default=2, ge=0, le=200)
    batch_load_min: int = Field(default=20, ge=0, le=500)
    batch_load_max: int = Field(default=25, ge=0, le=500)
    target_daily_lessons: int = Field(default=4, ge=0, le=50)
    daily_lessons_variance: int = Field(default=1, ge=0, le=50)
    preferred_start_time: str = "09:00"
    max_gap_minutes: int = Field(default=60, ge=0, le=24 * 60)
    contiguity_buffer_minutes: int = Field(default=5, ge=0, le=120)
    min_faculty_break_minutes: int = Field(default=15, ge=0, le=240)
    max_faculty_lessons_per_batch_day: int = Field(default=2, ge=1, le=20)

    @field_validator("preferred_start_time")
    @classmethod
    def validate_time(cls, value: str) -> str:
        if not TIME_PATTERN.match(value):
            raise ValueError("Time must be in HH:MM 24-hour format")
        return value

    @model_validator(mode="after")
    def validate_band(self) -> "ScoringParameters":
        if self.batch_load_min > self.batch_load_max:
            raise ValueError("batch_load_min cannot exceed batch_load_max")
        return self

    @property
    def preferred_start_minute(self) -> int:
        return parse_time_to_minutes(self.preferred_start_time)


class SolverSettings(BaseModel):
    time_limit_seconds: float = Field(default=300.0, gt=0, le=86_400)
    max_iterations: int | None = Field(default=None, ge=0)
    plateau_iterations: int = Field(default=2000, ge=1, le=10_000_000)
    random_seed: int | None = Field(default=None, ge=0, le=2_000_000_000)
    parallel_instances: int = Field(default=1, ge=1, le=32)
    hard_tolerance: int = Field(default=10, ge=0, le=10_000)
    annealing_initial_temperature: float = Field(default=6.0, ge=0.01, le=10_000.0)
    annealing_cooling_rate: float = Field(default=0.9995, ge=0.80, le=0.999999)
    annealing_min_temperature: float = Field(default=0.05, gt=0, le=100.0)
    reheat_after: int = Field(default=3000, ge=10, le=10_000_000)
    swap_probability: float = Field(default=0.3, ge=0.0, le=1.0)
    offender_focus: float = Field(default=0.7, ge=0.0, lt=1.0)
    academic_year: int = Field(default=2024, ge=1900, le=2200)
    working_days: list[str] = Field(
        default_factory=lambda: ["Monday", "Tuesday", "Wednesday", "Thursday", "Friday"],
        min_length=1,
        max_length=7,
    )
    weights: ConstraintWeights = Field(default_factory=ConstraintWeights)
    parameters: ScoringParameters = Field(default_factory=ScoringParameters)

    @field_validator("working_days")
    @classmethod
    def validate_days(cls, value: list[str]) -> list[str]:
        unknown = [day for day in value if day not in DAY_ORDER]
        if unknown:
            raise ValueError(f"Unknown working days: {', '.join(unknown)}")
        return sorted(set(value), key=DAY_ORDER.index)

    @model_validator(mode="after")
    def validate_temperatures(self) -> "SolverSettings":
        if self.annealing_min_temperature > self.annealing_initial_temperature:
            raise ValueError("annealing_min_temperature cannot exceed annealing_initial_temperature")
        return self


class ErrorKind(str, Enum):
    missing_essential_data = "MissingEssentialData"
    no_feasible_assignment_found = "NoFeasibleAssignmentFound"


class SolveError(BaseModel):
    kind: ErrorKind
    message: str


class ScoreOut(BaseModel):
    hard: int
    soft: int
    uninitialized: int = 0
    feasible: bool


class ConstraintSummary(BaseModel):
    name: str
    level: Literal["hard", "soft"]
    matches: int
    score: int


class LessonOut(BaseModel):
    id: int
    lesson_type: str
    course_id: int
    course_code: str
    course_name: str
    batch_id: int | None = None
    batch_name: str
    faculty_id: int | None = None
    faculty_name: str | None = None
    room_id: int | None = None
    room_number: str | None = None
    timeslot_id: int | None = None
    day: str | None = None
    start_time: str | None = None
    end_time: str | None = None


class SolveRequest(BaseModel):
    faculty: list[Faculty] = Field(default_factory=list)
    rooms: list[Room] = Field(default_factory=list)
    courses: list[Course] = Field(default_factory=list)
    batches: list[StudentBatch] = Field(default_factory=list)
    time_limit_seconds: float | None = Field(default=None, gt=0, le=86_400)
    settings_override: SolverSettings | None = None


class SolveResponse(BaseModel):
    status: Literal["solved", "infeasible"]
    score: ScoreOut
    error: SolveError | None = None
    lessons: list[LessonOut]
    warnings: list[str] = Field(default_factory=list)
    constraints: list[ConstraintSummary] = Field(default_factory=list)
    iterations: int = 0
    runtime_ms: int = 0


class AssignmentIn(BaseModel):
    lesson_id: int
    faculty_id: int | None = None
    room_id: int | None = None
    timeslot_id: int | None = None


class ScoreRequest(BaseModel):
    faculty: list[Faculty] = Field(default_factory=list)
    rooms: list[Room] = Field(default_factory=list)
    courses: list[Course] = Field(default_factory=list)
    batches: list[StudentBatch] = Field(default_factory=list)
    assignments: list[AssignmentIn] = Field(default_factory=list)
    settings_override: SolverSettings | None = None


class ScoreResponse(BaseModel):
    score: ScoreOut
    constraints: list[ConstraintSummary] = Field(default_factory=list)
    lessons: list[LessonOut]
