import random

from timetabler.services.construction import construct
from timetabler.services.moves import DomainProvider, MoveGenerator, ReassignMove, SwapMove
from timetabler.services.problem_builder import build_problem
from timetabler.services.scoring import HardSoftScore, ScoreDirector, calculate_score, explain_score


def constructed(catalogs, settings):
    problem = build_problem(catalogs, settings)
    director = ScoreDirector(problem)
    domains = DomainProvider(problem)
    construct(director, domains)
    return problem, director, domains


def test_score_ordering_is_lexicographic():
    assert HardSoftScore(0, 0, 500) < HardSoftScore(0, 1, 0)
    assert HardSoftScore(0, 50, 0) < HardSoftScore(1, 0, 0)
    assert HardSoftScore(0, 2, 3) - HardSoftScore(0, 1, 5) == HardSoftScore(0, 1, -2)
    assert HardSoftScore(0, 0, 7).is_feasible
    assert not HardSoftScore(2, 0, 0).is_feasible
    assert str(HardSoftScore(3, 10, -4)) == "3init/10hard/-4soft"
    assert str(HardSoftScore(0, 0, 755)) == "0hard/755soft"


def test_empty_assignment_counts_every_field_as_uninitialized(catalogs, solver_settings):
    problem = build_problem(catalogs, solver_settings)
    director = ScoreDirector(problem)

    assert director.score == HardSoftScore(uninitialized=len(problem.lessons) * 3)
    assert calculate_score(problem) == director.score


def test_incremental_score_matches_full_rescan_after_random_moves(catalogs, solver_settings):
    problem, director, domains = constructed(catalogs, solver_settings)
    rng = random.Random(3)
    generator = MoveGenerator(problem, director, domains, rng, swap_probability=0.4, offender_focus=0.5)

    assert director.score == calculate_score(problem)
    for step in range(400):
        move = generator.propose()
        if move is None:
            continue
        before = director.score
        delta, undo = director.do_move(move)
        assert director.score == before + delta
        assert director.score == calculate_score(problem)
        if step % 3 == 0:
            director.do_move(undo)
            assert director.score == before
            assert director.score == calculate_score(problem)

    assert director.explain() == explain_score(problem)


def test_swap_moves_keep_incremental_score_exact(catalogs, solver_settings):
    problem, director, _ = constructed(catalogs, solver_settings)
    cse_a_lectures = [
        lesson for lesson in problem.lessons if lesson.batch_name == "CSE-A" and not lesson.is_lab
    ]

    for left, right in zip(cse_a_lectures, cse_a_lectures[1:]):
        for field in ("timeslot", "room"):
            if getattr(left, field) == getattr(right, field):
                continue
            _, undo = director.do_move(SwapMove(left, right, field))
            assert director.score == calculate_score(problem)
            director.do_move(undo)
            assert director.score == calculate_score(problem)


def test_scoring_is_idempotent(catalogs, solver_settings):
    problem, director, _ = constructed(catalogs, solver_settings)

    first = calculate_score(problem)
    second = calculate_score(problem)
    assert first == second
    assert ScoreDirector(problem).score == director.score == first


def test_unassigning_a_field_restores_uninitialized_count(catalogs, solver_settings):
    problem, director, _ = constructed(catalogs, solver_settings)
    lesson = problem.lessons[0]

    delta, undo = director.do_move(ReassignMove(lesson, "room", None))
    assert delta.uninitialized == 1
    assert director.score == calculate_score(problem)
    delta, _ = director.do_move(undo)
    assert delta.uninitialized == -1
    assert director.score.uninitialized == 0


def test_offenders_track_hard_violations(catalogs, solver_settings):
    problem, director, _ = constructed(catalogs, solver_settings)
    cs_lectures = [lesson for lesson in problem.lessons if lesson.batch_name == "CSE-A" and lesson.course.code == "CS101"]
    first, second = cs_lectures[0], cs_lectures[1]

    _, undo = director.do_move(ReassignMove(second, "timeslot", first.timeslot))
    offenders = director.offenders()
    assert first in offenders and second in offenders
    assert director.match_count("batch_conflict") >= 1

    director.do_move(undo)
    assert director.score == calculate_score(problem)


def test_snapshot_and_restore_rebuild_state(catalogs, solver_settings):
    problem, director, domains = constructed(catalogs, solver_settings)
    snapshot = director.snapshot()
    expected = director.score
    generator = MoveGenerator(problem, director, domains, random.Random(5))

    for _ in range(50):
        move = generator.propose()
        if move is not None:
            director.do_move(move)

    director.restore(snapshot)
    assert director.score == expected
    assert director.snapshot() == snapshot
    assert director.score == calculate_score(problem)
