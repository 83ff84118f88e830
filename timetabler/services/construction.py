from __future__ import annotations

import logging

from timetabler.models.lesson import Lesson
from timetabler.services.moves import DomainProvider, ReassignMove
from timetabler.services.scoring import HardSoftScore, ScoreDirector

logger = logging.getLogger(__name__)


def construct(
    director: ScoreDirector,
    domains: DomainProvider,
    order: list[Lesson] | None = None,
) -> HardSoftScore:
    """Greedy first-fit placement of every lesson.

    Candidates are tried timeslot first, then room, then faculty. The first
    combination adding no hard penalty wins; otherwise the least violating
    one is kept. A candidate that clears one hard violation while causing
    another does not count as conflict-free. Lessons with an empty domain
    stay unassigned.
    """
    lessons = order if order is not None else director.problem.lessons
    unplaced = 0
    for lesson in lessons:
        if not _place(director, domains, lesson):
            unplaced += 1

    score = director.score
    if unplaced:
        logger.warning("Construction left %s lessons without a complete candidate", unplaced)
    logger.info("Construction finished at %s", score)
    return score


def _adds_hard_violation(before: tuple[int, ...], after: tuple[int, ...]) -> bool:
    return any(new > old for old, new in zip(before, after))


def _place(director: ScoreDirector, domains: DomainProvider, lesson: Lesson) -> bool:
    slots = domains.domain(lesson, "timeslot")
    rooms = domains.domain(lesson, "room")
    faculty = domains.domain(lesson, "faculty")
    if not slots or not rooms or not faculty:
        return False

    base = director.score
    base_hard = director.hard_magnitudes()
    best: tuple[tuple[int, int], tuple] | None = None
    chosen = None
    for slot in slots:
        director.do_move(ReassignMove(lesson, "timeslot", slot))
        for room in rooms:
            director.do_move(ReassignMove(lesson, "room", room))
            for member in faculty:
                director.do_move(ReassignMove(lesson, "faculty", member))
                delta = director.score - base
                if not _adds_hard_violation(base_hard, director.hard_magnitudes()):
                    chosen = (slot, room, member)
                    break
                rank = (delta.hard, delta.soft)
                if best is None or rank < best[0]:
                    best = (rank, (slot, room, member))
            if chosen is not None:
                break
        if chosen is not None:
            break

    if chosen is None:
        chosen = best[1]
    slot, room, member = chosen
    for field, value in (("timeslot", slot), ("room", room), ("faculty", member)):
        if getattr(lesson, field) != value:
            director.do_move(ReassignMove(lesson, field, value))
    return True
