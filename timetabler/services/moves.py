from __future__ import annotations

from dataclasses import dataclass
import random
from typing import Any

from timetabler.models.lesson import PLANNING_FIELDS, Lesson, PlanningField
from timetabler.models.timeslots import SlotKind
from timetabler.services.problem_builder import Problem
from timetabler.services.scoring import ScoreDirector


class DomainProvider:
    """Legal candidate values for each assignable field of a lesson."""

    def __init__(self, problem: Problem) -> None:
        self.problem = problem
        self._cache: dict[tuple[int, str], tuple[Any, ...]] = {}

    def domain(self, lesson: Lesson, field: PlanningField) -> tuple[Any, ...]:
        cache_key = (lesson.id, field)
        values = self._cache.get(cache_key)
        if values is None:
            values = self._compute(lesson, field)
            self._cache[cache_key] = values
        return values

    def _compute(self, lesson: Lesson, field: PlanningField) -> tuple[Any, ...]:
        problem = self.problem
        if field == "faculty":
            return problem.eligible_faculty.get(lesson.course.id, ())
        if field == "room":
            if lesson.batch is None:
                return problem.minor_rooms.get(lesson.course.id, ())
            if lesson.is_lab:
                return problem.practical_rooms.get(lesson.batch.id, ())
            return problem.lecture_rooms.get(lesson.batch.id, ())
        if field == "timeslot":
            menu = problem.timeslot_menu(lesson)
            if lesson.batch is None:
                return menu
            wanted = SlotKind.lab if lesson.is_lab else SlotKind.lecture
            matching = tuple(slot for slot in menu if slot.kind == wanted)
            return matching or menu
        raise ValueError(f"Unknown planning field: {field}")

    def contains(self, lesson: Lesson, field: PlanningField, value: Any) -> bool:
        return value in self.domain(lesson, field)


@dataclass(frozen=True)
class ReassignMove:
    lesson: Lesson
    field: PlanningField
    value: Any

    @property
    def lessons(self) -> tuple[Lesson, ...]:
        return (self.lesson,)

    def apply(self) -> ReassignMove:
        previous = getattr(self.lesson, self.field)
        setattr(self.lesson, self.field, self.value)
        return ReassignMove(self.lesson, self.field, previous)


@dataclass(frozen=True)
class SwapMove:
    left: Lesson
    right: Lesson
    field: PlanningField

    @property
    def lessons(self) -> tuple[Lesson, ...]:
        return (self.left, self.right)

    def apply(self) -> SwapMove:
        left_value = getattr(self.left, self.field)
        setattr(self.left, self.field, getattr(self.right, self.field))
        setattr(self.right, self.field, left_value)
        return self


Move = ReassignMove | SwapMove


class MoveGenerator:
    """Random reassign and swap moves, biased toward lessons in hard violations.

    With probability ``offender_focus`` the lesson is drawn from the current
    offenders; otherwise every lesson, field and domain value can be drawn,
    so every legal assignment stays reachable.
    """

    def __init__(
        self,
        problem: Problem,
        director: ScoreDirector,
        domains: DomainProvider,
        rng: random.Random,
        *,
        swap_probability: float = 0.3,
        offender_focus: float = 0.7,
    ) -> None:
        self.problem = problem
        self.director = director
        self.domains = domains
        self.random = rng
        self.swap_probability = swap_probability
        self.offender_focus = offender_focus
        self._fields_by_lesson = {
            lesson.id: tuple(field for field in PLANNING_FIELDS if len(domains.domain(lesson, field)) > 1)
            for lesson in problem.lessons
        }
        self._movable = [lesson for lesson in problem.lessons if self._fields_by_lesson[lesson.id]]
        self._peers = self._build_peers()

    def _build_peers(self) -> dict[tuple[int, str], list[Lesson]]:
        groups: dict[tuple, list[Lesson]] = {}
        for lesson in self.problem.lessons:
            batch_id = lesson.batch.id if lesson.batch is not None else None
            groups.setdefault(("slot", batch_id, lesson.lesson_type), []).append(lesson)
            groups.setdefault(("faculty", lesson.course.id), []).append(lesson)

        peers: dict[tuple[int, str], list[Lesson]] = {}
        for lesson in self.problem.lessons:
            batch_id = lesson.batch.id if lesson.batch is not None else None
            same_kind = [item for item in groups[("slot", batch_id, lesson.lesson_type)] if item is not lesson]
            peers[(lesson.id, "timeslot")] = same_kind
            peers[(lesson.id, "room")] = same_kind
            peers[(lesson.id, "faculty")] = [
                item for item in groups[("faculty", lesson.course.id)] if item is not lesson
            ]
        return peers

    @property
    def has_moves(self) -> bool:
        return bool(self._movable)

    def _pick_lesson(self) -> Lesson | None:
        if self.random.random() < self.offender_focus:
            offenders = [lesson for lesson in self.director.offenders() if self._fields_by_lesson[lesson.id]]
            if offenders:
                return self.random.choice(offenders)
        if not self._movable:
            return None
        return self.random.choice(self._movable)

    def propose(self) -> Move | None:
        lesson = self._pick_lesson()
        if lesson is None:
            return None
        field = self.random.choice(self._fields_by_lesson[lesson.id])
        if self.random.random() < self.swap_probability:
            move = self._propose_swap(lesson, field)
            if move is not None:
                return move
        return self._propose_reassign(lesson, field)

    def _propose_reassign(self, lesson: Lesson, field: PlanningField) -> ReassignMove | None:
        current = getattr(lesson, field)
        candidates = [value for value in self.domains.domain(lesson, field) if value != current]
        if not candidates:
            return None
        return ReassignMove(lesson, field, self.random.choice(candidates))

    def _propose_swap(self, lesson: Lesson, field: PlanningField) -> SwapMove | None:
        peers = self._peers.get((lesson.id, field), [])
        if not peers:
            return None
        partner = self.random.choice(peers)
        left_value = getattr(lesson, field)
        right_value = getattr(partner, field)
        if left_value is None or right_value is None or left_value == right_value:
            return None
        if not self.domains.contains(partner, field, left_value):
            return None
        if not self.domains.contains(lesson, field, right_value):
            return None
        return SwapMove(lesson, partner, field)
