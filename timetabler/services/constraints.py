"""Constraint catalog.

Every entry declares its level, the lesson fields it reads and one of three
shapes the score director knows how to maintain incrementally:

* ``UnaryConstraint``: a penalty computed from a single lesson.
* ``PairConstraint``: a match between two lessons that share a scope key
  (same batch, faculty or room on the same day).
* ``GroupConstraint``: a penalty computed from every lesson sharing a key.

Magnitudes are unweighted; the weight comes from ``ConstraintWeights`` under
the constraint's name.
"""

from __future__ import annotations

from collections.abc import Callable, Collection, Hashable
from dataclasses import dataclass
from enum import Enum
import math
from typing import TYPE_CHECKING, Literal, Union

from timetabler.models.lesson import Lesson
from timetabler.models.timeslots import MINOR_START

if TYPE_CHECKING:
    from timetabler.schemas.solver import ConstraintWeights
    from timetabler.services.problem_builder import Problem

ConstraintLevel = Literal["hard", "soft"]
HARD: ConstraintLevel = "hard"
SOFT: ConstraintLevel = "soft"

LAB_SLOT_MINUTES = 120


class Scope(str, Enum):
    batch_day = "batch_day"
    faculty_day = "faculty_day"
    room_day = "room_day"


SCOPE_FIELDS: dict[Scope, frozenset[str]] = {
    Scope.batch_day: frozenset({"timeslot"}),
    Scope.faculty_day: frozenset({"faculty", "timeslot"}),
    Scope.room_day: frozenset({"room", "timeslot"}),
}


def scope_key(scope: Scope, lesson: Lesson) -> Hashable | None:
    slot = lesson.timeslot
    if slot is None:
        return None
    if scope == Scope.batch_day:
        return (lesson.batch.id, slot.day) if lesson.batch is not None else None
    if scope == Scope.faculty_day:
        return (lesson.faculty.id, slot.day) if lesson.faculty is not None else None
    return (lesson.room.id, slot.day) if lesson.room is not None else None


@dataclass(frozen=True)
class UnaryConstraint:
    name: str
    level: ConstraintLevel
    fields: frozenset[str]
    penalty: Callable[[Lesson, "Problem"], int]


@dataclass(frozen=True)
class PairConstraint:
    name: str
    level: ConstraintLevel
    fields: frozenset[str]
    scope: Scope
    match: Callable[[Lesson, Lesson, "Problem"], int]


@dataclass(frozen=True)
class GroupConstraint:
    name: str
    level: ConstraintLevel
    fields: frozenset[str]
    key: Callable[[Lesson, "Problem"], Hashable | None]
    penalty: Callable[[Hashable, Collection[Lesson], "Problem"], int]


Constraint = Union[UnaryConstraint, PairConstraint, GroupConstraint]


def constraint_weight(constraint: Constraint, weights: "ConstraintWeights") -> int:
    return int(getattr(weights, constraint.name))


# Unary -----------------------------------------------------------------------


def room_capacity_penalty(lesson: Lesson, problem: "Problem") -> int:
    if lesson.room is None or lesson.batch is None:
        return 0
    excess = lesson.batch.headcount - lesson.room.capacity
    if excess <= 0:
        return 0
    return excess // 5


def faculty_qualification_penalty(lesson: Lesson, problem: "Problem") -> int:
    if lesson.faculty is None:
        return 0
    return 0 if lesson.faculty.id in problem.eligible_faculty_ids.get(lesson.course.id, ()) else 1


def room_type_penalty(lesson: Lesson, problem: "Problem") -> int:
    room = lesson.room
    if room is None:
        return 0
    if lesson.batch is None:
        return 0 if room.id in problem.minor_room_ids.get(lesson.course.id, ()) else 1
    if lesson.is_lab:
        valid = room.is_lab_room and room.id in problem.practical_room_ids.get(lesson.batch.id, ())
    else:
        valid = room.is_lecture_room and room.id in problem.lecture_room_ids.get(lesson.batch.id, ())
    return 0 if valid else 1


def slot_duration_penalty(lesson: Lesson, problem: "Problem") -> int:
    slot = lesson.timeslot
    room = lesson.room
    if slot is None or room is None or lesson.batch is None:
        return 0
    if slot.duration == LAB_SLOT_MINUTES:
        valid = lesson.is_lab and room.id in problem.practical_room_ids.get(lesson.batch.id, ())
    else:
        valid = not lesson.is_lab and room.id in problem.lecture_room_ids.get(lesson.batch.id, ())
    return 0 if valid else 1


def lunch_break_penalty(lesson: Lesson, problem: "Problem") -> int:
    if lesson.timeslot is None or lesson.batch is None:
        return 0
    band = problem.slots.lunch_band_for_year(lesson.batch.year)
    return 1 if band.contains(lesson.timeslot.start) else 0


def slot_legality_penalty(lesson: Lesson, problem: "Problem") -> int:
    slot = lesson.timeslot
    if slot is None:
        return 0
    if lesson.batch is None:
        return 0 if problem.slots.is_legal_minor(slot) else 1
    return 0 if problem.slots.is_legal_for_year(lesson.batch.year, slot) else 1


def minor_fixed_slot_penalty(lesson: Lesson, problem: "Problem") -> int:
    if not lesson.is_minor or lesson.timeslot is None:
        return 0
    return 0 if lesson.timeslot.start == MINOR_START else 1


def preferred_start_penalty(lesson: Lesson, problem: "Problem") -> int:
    if lesson.timeslot is None:
        return 0
    return abs(lesson.timeslot.start - problem.settings.parameters.preferred_start_minute)


def faculty_slot_preference_penalty(lesson: Lesson, problem: "Problem") -> int:
    faculty = lesson.faculty
    slot = lesson.timeslot
    if faculty is None or slot is None or not faculty.preferred_slots:
        return 0
    preferred = {item.key for item in faculty.preferred_slots}
    return 0 if (slot.day, slot.start, slot.end) in preferred else 1


# Pairs -----------------------------------------------------------------------
# Pair matches are only evaluated for lessons sharing a scope key, so both
# timeslots are set and fall on the same day.


def overlap_match(left: Lesson, right: Lesson, problem: "Problem") -> int:
    return 1 if left.timeslot.overlaps(right.timeslot) else 0


def same_slot_match(left: Lesson, right: Lesson, problem: "Problem") -> int:
    a, b = left.timeslot, right.timeslot
    return 1 if (a.day, a.start, a.end) == (b.day, b.start, b.end) else 0


def faculty_spacing_match(left: Lesson, right: Lesson, problem: "Problem") -> int:
    gap = left.timeslot.gap_to(right.timeslot)
    return 1 if gap < problem.settings.parameters.min_faculty_break_minutes else 0


def contiguity_match(left: Lesson, right: Lesson, problem: "Problem") -> int:
    gap = left.timeslot.gap_to(right.timeslot)
    return -1 if 0 <= gap <= problem.settings.parameters.contiguity_buffer_minutes else 0


def schedule_gap_match(left: Lesson, right: Lesson, problem: "Problem") -> int:
    gap = left.timeslot.gap_to(right.timeslot)
    return gap if gap > problem.settings.parameters.max_gap_minutes else 0


def short_gap_match(left: Lesson, right: Lesson, problem: "Problem") -> int:
    params = problem.settings.parameters
    gap = left.timeslot.gap_to(right.timeslot)
    return gap if params.contiguity_buffer_minutes < gap <= params.max_gap_minutes else 0


def room_change_match(left: Lesson, right: Lesson, problem: "Problem") -> int:
    if left.room is None or right.room is None or left.room.id == right.room.id:
        return 0
    gap = left.timeslot.gap_to(right.timeslot)
    return 1 if 0 <= gap <= problem.settings.parameters.max_gap_minutes else 0


# Groups ----------------------------------------------------------------------


def _lab_batch_key(lesson: Lesson, problem: "Problem") -> Hashable | None:
    if not lesson.is_lab or lesson.batch is None or lesson.timeslot is None:
        return None
    return lesson.batch.id


def _lab_batch_day_key(lesson: Lesson, problem: "Problem") -> Hashable | None:
    if not lesson.is_lab or lesson.batch is None or lesson.timeslot is None:
        return None
    return (lesson.batch.id, lesson.timeslot.day)


def _batch_course_day_key(lesson: Lesson, problem: "Problem") -> Hashable | None:
    if lesson.batch is None or lesson.timeslot is None:
        return None
    return (lesson.batch.id, lesson.course.id, lesson.timeslot.day)


def _faculty_batch_day_key(lesson: Lesson, problem: "Problem") -> Hashable | None:
    if lesson.batch is None or lesson.faculty is None or lesson.timeslot is None:
        return None
    return (lesson.faculty.id, lesson.batch.id, lesson.timeslot.day)


def _faculty_key(lesson: Lesson, problem: "Problem") -> Hashable | None:
    return lesson.faculty.id if lesson.faculty is not None else None


def _faculty_day_key(lesson: Lesson, problem: "Problem") -> Hashable | None:
    if lesson.faculty is None or lesson.timeslot is None:
        return None
    return (lesson.faculty.id, lesson.timeslot.day)


def _room_key(lesson: Lesson, problem: "Problem") -> Hashable | None:
    return lesson.room.id if lesson.room is not None else None


def _batch_key(lesson: Lesson, problem: "Problem") -> Hashable | None:
    if lesson.batch is None or lesson.timeslot is None:
        return None
    return lesson.batch.id


def _batch_day_key(lesson: Lesson, problem: "Problem") -> Hashable | None:
    if lesson.batch is None or lesson.timeslot is None:
        return None
    return (lesson.batch.id, lesson.timeslot.day)


def weekly_lab_cadence_penalty(key: Hashable, members: Collection[Lesson], problem: "Problem") -> int:
    days = {lesson.timeslot.day for lesson in members}
    return max(0, problem.required_lab_days(key) - len(days))


def excess_over_one_penalty(key: Hashable, members: Collection[Lesson], problem: "Problem") -> int:
    return max(0, len(members) - 1)


def faculty_batch_daily_cap_penalty(key: Hashable, members: Collection[Lesson], problem: "Problem") -> int:
    return max(0, len(members) - problem.settings.parameters.max_faculty_lessons_per_batch_day)


def faculty_load_penalty(key: Hashable, members: Collection[Lesson], problem: "Problem") -> int:
    params = problem.settings.parameters
    deviation = abs(len(members) - params.target_faculty_lessons)
    return deviation if deviation > params.faculty_load_tolerance else 0


def room_load_penalty(key: Hashable, members: Collection[Lesson], problem: "Problem") -> int:
    ideal = problem.rooms_by_id[key].ideal_daily_load
    count = len(members)
    if count > ideal or count < max(1, ideal - 1):
        return abs(count - ideal)
    return 0


def batch_load_penalty(key: Hashable, members: Collection[Lesson], problem: "Problem") -> int:
    params = problem.settings.parameters
    count = len(members)
    if params.batch_load_min <= count <= params.batch_load_max:
        return 0
    return abs(count - (params.batch_load_min + params.batch_load_max) // 2)


def daily_batch_load_penalty(key: Hashable, members: Collection[Lesson], problem: "Problem") -> int:
    params = problem.settings.parameters
    deviation = abs(len(members) - params.target_daily_lessons)
    return deviation if deviation > params.daily_lessons_variance else 0


def faculty_daily_hours_penalty(key: Hashable, members: Collection[Lesson], problem: "Problem") -> int:
    faculty_id, _day = key
    limit_hours = problem.faculty_by_id[faculty_id].max_hours_per_day
    if limit_hours <= 0:
        return 0
    excess = sum(lesson.timeslot.duration for lesson in members) - limit_hours * 60
    return math.ceil(excess / 60) if excess > 0 else 0


_SLOT = frozenset({"timeslot"})
_ROOM = frozenset({"room"})
_FACULTY = frozenset({"faculty"})
_ROOM_SLOT = _ROOM | _SLOT
_FACULTY_SLOT = _FACULTY | _SLOT

CONSTRAINTS: tuple[Constraint, ...] = (
    PairConstraint("room_conflict", HARD, _ROOM_SLOT, Scope.room_day, overlap_match),
    PairConstraint("faculty_conflict", HARD, _FACULTY_SLOT, Scope.faculty_day, same_slot_match),
    PairConstraint("batch_conflict", HARD, _SLOT, Scope.batch_day, overlap_match),
    PairConstraint("faculty_spacing", HARD, _FACULTY_SLOT, Scope.faculty_day, faculty_spacing_match),
    UnaryConstraint("room_capacity", HARD, _ROOM, room_capacity_penalty),
    UnaryConstraint("faculty_qualification", HARD, _FACULTY, faculty_qualification_penalty),
    UnaryConstraint("room_type", HARD, _ROOM, room_type_penalty),
    UnaryConstraint("slot_duration", HARD, _ROOM_SLOT, slot_duration_penalty),
    GroupConstraint("weekly_lab_cadence", HARD, _SLOT, _lab_batch_key, weekly_lab_cadence_penalty),
    GroupConstraint("one_lab_per_day", HARD, _SLOT, _lab_batch_day_key, excess_over_one_penalty),
    GroupConstraint("course_once_per_day", HARD, _SLOT, _batch_course_day_key, excess_over_one_penalty),
    UnaryConstraint("lunch_break", HARD, _SLOT, lunch_break_penalty),
    UnaryConstraint("slot_legality", HARD, _SLOT, slot_legality_penalty),
    UnaryConstraint("minor_fixed_slot", HARD, _SLOT, minor_fixed_slot_penalty),
    GroupConstraint(
        "faculty_batch_daily_cap", HARD, _FACULTY_SLOT, _faculty_batch_day_key, faculty_batch_daily_cap_penalty
    ),
    GroupConstraint("faculty_load", SOFT, _FACULTY, _faculty_key, faculty_load_penalty),
    GroupConstraint("room_load", SOFT, _ROOM, _room_key, room_load_penalty),
    GroupConstraint("batch_load", SOFT, _SLOT, _batch_key, batch_load_penalty),
    GroupConstraint("daily_batch_load", SOFT, _SLOT, _batch_day_key, daily_batch_load_penalty),
    UnaryConstraint("preferred_start", SOFT, _SLOT, preferred_start_penalty),
    PairConstraint("contiguity", SOFT, _SLOT, Scope.batch_day, contiguity_match),
    PairConstraint("schedule_gap", SOFT, _SLOT, Scope.batch_day, schedule_gap_match),
    PairConstraint("short_gap", SOFT, _SLOT, Scope.batch_day, short_gap_match),
    PairConstraint("room_change", SOFT, _ROOM_SLOT, Scope.batch_day, room_change_match),
    UnaryConstraint("faculty_slot_preference", SOFT, _FACULTY_SLOT, faculty_slot_preference_penalty),
    GroupConstraint("faculty_daily_hours", SOFT, _FACULTY_SLOT, _faculty_day_key, faculty_daily_hours_penalty),
)

CONSTRAINTS_BY_NAME: dict[str, Constraint] = {constraint.name: constraint for constraint in CONSTRAINTS}
