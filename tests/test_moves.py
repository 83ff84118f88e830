import random

from timetabler.models.timeslots import SlotKind
from timetabler.services.construction import construct
from timetabler.services.moves import DomainProvider, MoveGenerator, ReassignMove, SwapMove
from timetabler.services.problem_builder import build_problem
from timetabler.services.scoring import ScoreDirector


def test_domains_follow_lesson_type_and_pools(catalogs, solver_settings):
    problem = build_problem(catalogs, solver_settings)
    domains = DomainProvider(problem)
    lecture = next(lesson for lesson in problem.lessons if lesson.batch_name == "CSE-B" and not lesson.is_lab)
    lab = next(lesson for lesson in problem.lessons if lesson.batch_name == "CSE-A" and lesson.is_lab)
    minor = next(lesson for lesson in problem.lessons if lesson.is_minor)

    assert [room.id for room in domains.domain(lecture, "room")] == [2]
    assert [room.id for room in domains.domain(lab, "room")] == [3, 4]
    assert [room.id for room in domains.domain(minor, "room")] == [5]
    assert [member.id for member in domains.domain(lab, "faculty")] == [1, 2]

    lab_slots = domains.domain(lab, "timeslot")
    assert lab_slots and all(slot.kind == SlotKind.lab for slot in lab_slots)
    assert len(lab_slots) == 2 * len(solver_settings.working_days)
    lecture_slots = domains.domain(lecture, "timeslot")
    assert all(slot.kind == SlotKind.lecture for slot in lecture_slots)
    assert all(slot.kind == SlotKind.minor for slot in domains.domain(minor, "timeslot"))


def test_lab_domain_falls_back_to_full_menu_without_lab_slots(catalogs, solver_settings):
    batches = [batch.model_copy(update={"year": 2021}) if batch.name == "CSE-A" else batch for batch in catalogs.batches]
    problem = build_problem(catalogs.model_copy(update={"batches": batches}), solver_settings)
    domains = DomainProvider(problem)
    lab = next(lesson for lesson in problem.lessons if lesson.batch_name == "CSE-A" and lesson.is_lab)

    assert domains.domain(lab, "timeslot") == problem.slots.slots_for_year(2021)


def test_reassign_move_returns_its_inverse(catalogs, solver_settings):
    problem = build_problem(catalogs, solver_settings)
    lesson = problem.lessons[0]
    room = problem.rooms_by_id[1]

    undo = ReassignMove(lesson, "room", room).apply()
    assert lesson.room == room
    assert undo == ReassignMove(lesson, "room", None)
    undo.apply()
    assert lesson.room is None


def test_swap_move_is_its_own_inverse(catalogs, solver_settings):
    problem = build_problem(catalogs, solver_settings)
    left, right = problem.lessons[0], problem.lessons[1]
    left.room = problem.rooms_by_id[1]
    right.room = problem.rooms_by_id[2]

    move = SwapMove(left, right, "room")
    undo = move.apply()
    assert (left.room.id, right.room.id) == (2, 1)
    undo.apply()
    assert (left.room.id, right.room.id) == (1, 2)


def test_generated_moves_stay_inside_domains(catalogs, solver_settings):
    problem = build_problem(catalogs, solver_settings)
    director = ScoreDirector(problem)
    domains = DomainProvider(problem)
    construct(director, domains)
    generator = MoveGenerator(problem, director, domains, random.Random(1), swap_probability=0.5)

    swaps = 0
    for _ in range(500):
        move = generator.propose()
        if move is None:
            continue
        if isinstance(move, SwapMove):
            swaps += 1
            assert move.left is not move.right
            assert domains.contains(move.left, move.field, getattr(move.right, move.field))
            assert domains.contains(move.right, move.field, getattr(move.left, move.field))
            if move.field != "faculty":
                assert move.left.batch == move.right.batch
                assert move.left.lesson_type == move.right.lesson_type
        else:
            assert domains.contains(move.lesson, move.field, move.value)
            assert getattr(move.lesson, move.field) != move.value
        director.do_move(move)
    assert swaps > 0


def test_single_value_domains_produce_no_moves(catalogs, solver_settings):
    problem = build_problem(catalogs, solver_settings)
    director = ScoreDirector(problem)
    domains = DomainProvider(problem)
    construct(director, domains)
    generator = MoveGenerator(problem, director, domains, random.Random(2))
    minor = next(lesson for lesson in problem.lessons if lesson.is_minor)

    for _ in range(300):
        move = generator.propose()
        if isinstance(move, ReassignMove) and move.lesson is minor:
            assert move.field == "timeslot"


def test_every_legal_value_is_reachable(catalogs, solver_settings):
    problem = build_problem(catalogs, solver_settings)
    director = ScoreDirector(problem)
    domains = DomainProvider(problem)
    construct(director, domains)
    generator = MoveGenerator(problem, director, domains, random.Random(4), swap_probability=0.0, offender_focus=0.0)
    lesson = next(lesson for lesson in problem.lessons if lesson.batch_name == "CSE-A" and not lesson.is_lab)

    seen = set()
    for _ in range(20_000):
        move = generator.propose()
        if isinstance(move, ReassignMove) and move.lesson is lesson and move.field == "timeslot":
            seen.add(move.value.id)
    expected = {slot.id for slot in domains.domain(lesson, "timeslot") if slot != lesson.timeslot}
    assert seen == expected
