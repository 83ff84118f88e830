from __future__ import annotations

from collections import Counter, defaultdict
from collections.abc import Hashable, Iterable
from dataclasses import dataclass
from itertools import combinations
import logging
from typing import Any, Protocol

from timetabler.models.lesson import PLANNING_FIELDS, Lesson, PlanningField
from timetabler.services.constraints import (
    CONSTRAINTS,
    HARD,
    Constraint,
    ConstraintLevel,
    GroupConstraint,
    PairConstraint,
    SCOPE_FIELDS,
    Scope,
    UnaryConstraint,
    constraint_weight,
    scope_key,
)
from timetabler.services.problem_builder import Problem

logger = logging.getLogger(__name__)

ALL_FIELDS = frozenset(PLANNING_FIELDS)


@dataclass(frozen=True, order=True)
class HardSoftScore:
    """Penalty score compared on (uninitialized, hard, soft); lower is better."""

    uninitialized: int = 0
    hard: int = 0
    soft: int = 0

    def __add__(self, other: HardSoftScore) -> HardSoftScore:
        return HardSoftScore(
            self.uninitialized + other.uninitialized,
            self.hard + other.hard,
            self.soft + other.soft,
        )

    def __sub__(self, other: HardSoftScore) -> HardSoftScore:
        return HardSoftScore(
            self.uninitialized - other.uninitialized,
            self.hard - other.hard,
            self.soft - other.soft,
        )

    def __str__(self) -> str:
        text = f"{self.hard}hard/{self.soft}soft"
        if self.uninitialized:
            text = f"{self.uninitialized}init/{text}"
        return text

    @property
    def is_feasible(self) -> bool:
        return self.hard == 0 and self.uninitialized == 0

    def as_tuple(self) -> tuple[int, int]:
        return (self.hard, self.soft)


@dataclass(frozen=True)
class ConstraintTotal:
    name: str
    level: ConstraintLevel
    matches: int
    magnitude: int
    score: int


class Move(Protocol):
    field: PlanningField

    @property
    def lessons(self) -> tuple[Lesson, ...]: ...

    def apply(self) -> Move: ...


def explain_score(problem: Problem, lessons: Iterable[Lesson] | None = None) -> list[ConstraintTotal]:
    """Rescan every constraint from scratch and return per-constraint totals."""
    lessons = list(problem.lessons if lessons is None else lessons)
    weights = problem.settings.weights
    by_scope: dict[Scope, dict[Hashable, list[Lesson]]] = {scope: defaultdict(list) for scope in Scope}
    for lesson in lessons:
        for scope in Scope:
            key = scope_key(scope, lesson)
            if key is not None:
                by_scope[scope][key].append(lesson)

    totals: list[ConstraintTotal] = []
    for constraint in CONSTRAINTS:
        matches = 0
        magnitude = 0
        if isinstance(constraint, UnaryConstraint):
            for lesson in lessons:
                value = constraint.penalty(lesson, problem)
                if value:
                    matches += 1
                    magnitude += value
        elif isinstance(constraint, PairConstraint):
            for bucket in by_scope[constraint.scope].values():
                for left, right in combinations(bucket, 2):
                    value = constraint.match(left, right, problem)
                    if value:
                        matches += 1
                        magnitude += value
        else:
            groups: dict[Hashable, list[Lesson]] = defaultdict(list)
            for lesson in lessons:
                key = constraint.key(lesson, problem)
                if key is not None:
                    groups[key].append(lesson)
            for key, members in groups.items():
                value = constraint.penalty(key, members, problem)
                if value:
                    matches += 1
                    magnitude += value
        weight = constraint_weight(constraint, weights)
        totals.append(ConstraintTotal(constraint.name, constraint.level, matches, magnitude, weight * magnitude))
    return totals


def calculate_score(problem: Problem, lessons: Iterable[Lesson] | None = None) -> HardSoftScore:
    lessons = list(problem.lessons if lessons is None else lessons)
    totals = explain_score(problem, lessons)
    return HardSoftScore(
        uninitialized=sum(lesson.unassigned_count() for lesson in lessons),
        hard=sum(item.score for item in totals if item.level == HARD),
        soft=sum(item.score for item in totals if item.level != HARD),
    )


class ScoreDirector:
    """Keeps the working score of a Problem up to date as moves are applied.

    Only constraints reading a changed field are retracted and re-inserted,
    and only for the lessons the move touches. Pair matches are tracked
    through per-scope indexes; group penalties through per-key member sets.
    """

    def __init__(self, problem: Problem) -> None:
        self.problem = problem
        self._unary = [item for item in CONSTRAINTS if isinstance(item, UnaryConstraint)]
        self._pairs = [item for item in CONSTRAINTS if isinstance(item, PairConstraint)]
        self._groups = [item for item in CONSTRAINTS if isinstance(item, GroupConstraint)]
        self._weights = {item.name: constraint_weight(item, problem.settings.weights) for item in CONSTRAINTS}
        self._affected_cache: dict[frozenset[str], tuple[list, list, list, list]] = {}
        self._reset()
        for lesson in problem.lessons:
            self._insert((lesson,), ALL_FIELDS, {item.name: {} for item in self._groups})
        logger.debug("Score director initialised at %s", self.score)

    def _reset(self) -> None:
        self._hard = 0
        self._soft = 0
        self._uninitialized = 0
        self._magnitude: dict[str, int] = {item.name: 0 for item in CONSTRAINTS}
        self._matches: dict[str, int] = {item.name: 0 for item in CONSTRAINTS}
        self._unary_cache: dict[str, dict[int, int]] = {item.name: {} for item in self._unary}
        self._index: dict[Scope, dict[Hashable, set[Lesson]]] = {scope: {} for scope in Scope}
        self._members: dict[str, dict[Hashable, set[Lesson]]] = {item.name: {} for item in self._groups}
        self._group_penalty: dict[str, dict[Hashable, int]] = {item.name: {} for item in self._groups}
        self._involvement: Counter[int] = Counter()

    @property
    def score(self) -> HardSoftScore:
        return HardSoftScore(self._uninitialized, self._hard, self._soft)

    def do_move(self, move: Move) -> tuple[HardSoftScore, Move]:
        """Apply ``move`` and return the score delta plus the move that reverts it."""
        before = self.score
        lessons = move.lessons
        fields = frozenset((move.field,))
        pending = self._retract(lessons, fields)
        undo = move.apply()
        self._insert(lessons, fields, pending)
        return self.score - before, undo

    def explain(self) -> list[ConstraintTotal]:
        return [
            ConstraintTotal(
                item.name,
                item.level,
                self._matches[item.name],
                self._magnitude[item.name],
                self._weights[item.name] * self._magnitude[item.name],
            )
            for item in CONSTRAINTS
        ]

    def match_count(self, name: str) -> int:
        return self._matches[name]

    def hard_magnitudes(self) -> tuple[int, ...]:
        return tuple(self._magnitude[item.name] for item in CONSTRAINTS if item.level == HARD)

    def offenders(self) -> list[Lesson]:
        """Lessons currently involved in at least one hard violation."""
        ids = {lesson_id for lesson_id, count in self._involvement.items() if count > 0}
        for constraint in self._groups:
            if constraint.level != HARD:
                continue
            members = self._members[constraint.name]
            for key in self._group_penalty[constraint.name]:
                ids.update(lesson.id for lesson in members.get(key, ()))
        return [self.problem.lesson_by_id[lesson_id] for lesson_id in sorted(ids)]

    def snapshot(self) -> dict[int, tuple[Any, Any, Any]]:
        return {lesson.id: lesson.assignment() for lesson in self.problem.lessons}

    def restore(self, snapshot: dict[int, tuple[Any, Any, Any]]) -> None:
        for lesson in self.problem.lessons:
            lesson.restore(snapshot[lesson.id])
        self._reset()
        for lesson in self.problem.lessons:
            self._insert((lesson,), ALL_FIELDS, {item.name: {} for item in self._groups})

    def _affected(self, fields: frozenset[str]) -> tuple[list, list, list, list]:
        cached = self._affected_cache.get(fields)
        if cached is None:
            cached = (
                [item for item in self._unary if item.fields & fields],
                [item for item in self._pairs if item.fields & fields],
                [item for item in self._groups if item.fields & fields],
                [scope for scope in Scope if SCOPE_FIELDS[scope] & fields],
            )
            self._affected_cache[fields] = cached
        return cached

    def _add(self, constraint: Constraint, magnitude: int, matches: int) -> None:
        self._magnitude[constraint.name] += magnitude
        self._matches[constraint.name] += matches
        weighted = self._weights[constraint.name] * magnitude
        if constraint.level == HARD:
            self._hard += weighted
        else:
            self._soft += weighted

    def _involve(self, lesson_ids: Iterable[int], sign: int) -> None:
        for lesson_id in lesson_ids:
            self._involvement[lesson_id] += sign
            if self._involvement[lesson_id] <= 0:
                del self._involvement[lesson_id]

    def _pair(self, constraint: PairConstraint, lesson: Lesson, partner: Lesson, sign: int) -> None:
        value = constraint.match(lesson, partner, self.problem)
        if not value:
            return
        self._add(constraint, sign * value, sign)
        if constraint.level == HARD and value > 0:
            self._involve((lesson.id, partner.id), sign)

    def _retract(self, lessons: tuple[Lesson, ...], fields: frozenset[str]) -> dict[str, dict[Hashable, int]]:
        unary, pairs, groups, scopes = self._affected(fields)
        problem = self.problem

        for lesson in lessons:
            self._uninitialized -= sum(1 for field in fields if getattr(lesson, field) is None)
            for constraint in unary:
                value = self._unary_cache[constraint.name].pop(lesson.id, 0)
                if value:
                    self._add(constraint, -value, -1)
                    if constraint.level == HARD and value > 0:
                        self._involve((lesson.id,), -1)

        detached: set[Lesson] = set()
        for lesson in lessons:
            for constraint in pairs:
                key = scope_key(constraint.scope, lesson)
                if key is None:
                    continue
                for partner in self._index[constraint.scope].get(key, ()):
                    if partner is not lesson and partner not in detached:
                        self._pair(constraint, lesson, partner, -1)
            detached.add(lesson)

        for scope in scopes:
            index = self._index[scope]
            for lesson in lessons:
                key = scope_key(scope, lesson)
                if key is None:
                    continue
                bucket = index[key]
                bucket.discard(lesson)
                if not bucket:
                    del index[key]

        pending: dict[str, dict[Hashable, int]] = {}
        for constraint in groups:
            before = pending.setdefault(constraint.name, {})
            members = self._members[constraint.name]
            penalties = self._group_penalty[constraint.name]
            for lesson in lessons:
                key = constraint.key(lesson, problem)
                if key is None:
                    continue
                before.setdefault(key, penalties.get(key, 0))
                members[key].discard(lesson)
        return pending

    def _insert(
        self,
        lessons: tuple[Lesson, ...],
        fields: frozenset[str],
        pending: dict[str, dict[Hashable, int]],
    ) -> None:
        unary, pairs, groups, scopes = self._affected(fields)
        problem = self.problem

        for lesson in lessons:
            self._uninitialized += sum(1 for field in fields if getattr(lesson, field) is None)
            for constraint in unary:
                value = constraint.penalty(lesson, problem)
                if value:
                    self._unary_cache[constraint.name][lesson.id] = value
                    self._add(constraint, value, 1)
                    if constraint.level == HARD and value > 0:
                        self._involve((lesson.id,), 1)

        for scope in scopes:
            index = self._index[scope]
            for lesson in lessons:
                key = scope_key(scope, lesson)
                if key is not None:
                    index.setdefault(key, set()).add(lesson)

        detached = set(lessons)
        for lesson in lessons:
            detached.discard(lesson)
            for constraint in pairs:
                key = scope_key(constraint.scope, lesson)
                if key is None:
                    continue
                for partner in self._index[constraint.scope].get(key, ()):
                    if partner is not lesson and partner not in detached:
                        self._pair(constraint, lesson, partner, 1)

        for constraint in groups:
            before = pending.get(constraint.name, {})
            members = self._members[constraint.name]
            penalties = self._group_penalty[constraint.name]
            for lesson in lessons:
                key = constraint.key(lesson, problem)
                if key is None:
                    continue
                before.setdefault(key, penalties.get(key, 0))
                members.setdefault(key, set()).add(lesson)
            for key, old in before.items():
                bucket = members.get(key)
                new = constraint.penalty(key, bucket, problem) if bucket else 0
                if not bucket:
                    members.pop(key, None)
                if new:
                    penalties[key] = new
                else:
                    penalties.pop(key, None)
                if new != old:
                    self._add(constraint, new - old, int(new != 0) - int(old != 0))
