import pytest
from pydantic import ValidationError

from timetabler.core.exceptions import MissingEssentialDataError, SchedulerError
from timetabler.models.catalog import Catalogs, Course, Faculty, Room, StudentBatch
from timetabler.schemas.solver import AssignmentIn, ErrorKind, SolverSettings
from timetabler.services.moves import ReassignMove
from timetabler.services.scoring import calculate_score
from timetabler.services.solver import score_assignment, solve


def single_course_catalogs(batches: int = 1) -> Catalogs:
    return Catalogs(
        faculty=[Faculty(id=1, name="Asha Menon")],
        rooms=[
            Room(id=1, number="LH-101", capacity=60, type="lecture"),
            Room(id=2, number="LH-102", capacity=60, type="lecture"),
        ],
        courses=[Course(id=1, code="CS101", name="Programming", lecture_hours=2, eligible_faculty_ids=(1,))],
        batches=[
            StudentBatch(
                id=index,
                name=f"CSE-{index}",
                year=2024,
                headcount=40,
                course_ids=(1,),
                lecture_room_ids=(index,),
            )
            for index in range(1, batches + 1)
        ],
    )


def test_two_lectures_land_on_different_days():
    settings = SolverSettings(
        working_days=["Monday", "Tuesday"],
        random_seed=3,
        time_limit_seconds=10,
        plateau_iterations=200,
    )

    result = solve(single_course_catalogs(), settings=settings)

    assert result.status == "solved"
    assert result.error is None
    assert result.score.hard == 0
    assert result.score.uninitialized == 0
    days = {lesson.timeslot.day for lesson in result.lessons}
    assert days == {"Monday", "Tuesday"}
    assert all(lesson.room.id == 1 and lesson.faculty.id == 1 for lesson in result.lessons)


def test_moving_a_shared_faculty_lesson_removes_the_conflict():
    catalogs = single_course_catalogs(batches=2)
    settings = SolverSettings(working_days=["Monday", "Tuesday"])
    monday_nine = 1
    director = score_assignment(
        catalogs,
        [
            AssignmentIn(lesson_id=1, faculty_id=1, room_id=1, timeslot_id=monday_nine),
            AssignmentIn(lesson_id=3, faculty_id=1, room_id=2, timeslot_id=monday_nine),
        ],
        settings=settings,
    )
    problem = director.problem
    assert problem.slots.by_id[monday_nine].label() == "Monday 09:00-10:30"
    assert director.match_count("faculty_conflict") == 1

    tuesday_nine = next(
        slot for slot in problem.slots.cohort_slots[1] if slot.day == "Tuesday" and slot.start_time == "09:00"
    )
    before = director.score
    delta, _ = director.do_move(ReassignMove(problem.lesson_by_id[3], "timeslot", tuesday_nine))

    assert director.match_count("faculty_conflict") == 0
    assert delta.hard < 0
    assert director.score < before
    assert director.score == calculate_score(problem)


def test_missing_catalog_fails_fast(catalogs):
    events = []

    with pytest.raises(MissingEssentialDataError) as exc_info:
        solve(catalogs.model_copy(update={"batches": []}), event_sink=events.append)

    assert exc_info.value.missing == ["batches"]
    assert events == []


def test_infeasible_result_reports_best_score(catalogs, solver_settings):
    courses = [
        course.model_copy(update={"lecture_hours": 10}) if course.code == "MA101" else course
        for course in catalogs.courses
    ]
    settings = solver_settings.model_copy(update={"working_days": ["Monday", "Tuesday"], "max_iterations": 300})

    result = solve(catalogs.model_copy(update={"courses": courses}), settings=settings)

    assert result.status == "infeasible"
    assert not result.is_feasible
    assert result.error.kind == ErrorKind.no_feasible_assignment_found
    assert str(result.score) in result.error.message
    assert result.score.hard > 0
    assert all(lesson.is_complete for lesson in result.lessons)
    assert result.termination_reason == "iteration_limit"


def test_time_limit_argument_overrides_settings(catalogs, solver_settings):
    settings = solver_settings.model_copy(update={"max_iterations": 100})

    result = solve(catalogs, 0.5, settings=settings)

    assert result.runtime_ms < 5_000
    assert result.termination_reason in {"deadline", "iteration_limit", "plateau"}


def test_event_sink_sees_every_phase(catalogs, solver_settings):
    events = []

    result = solve(catalogs, settings=solver_settings, event_sink=events.append)

    kinds = [event.kind for event in events]
    assert kinds[0] == "construction_finished"
    assert kinds[1] == "search_started"
    assert kinds[-1] == "search_finished"
    assert events[-1].best == result.score
    assert all(event.instance == 0 for event in events)


def test_parallel_instances_keep_the_best(catalogs, solver_settings):
    settings = solver_settings.model_copy(update={"parallel_instances": 2, "max_iterations": 300})
    events = []

    result = solve(catalogs, settings=settings, event_sink=events.append)

    finished = {event.instance: event.best for event in events if event.kind == "search_finished"}
    assert set(finished) == {0, 1}
    assert result.score == min(finished.values())
    assert result.instance in finished
    assert result.iterations == 600
    assert result.score == calculate_score(result.problem)


def test_seeded_runs_are_reproducible(catalogs, solver_settings):
    settings = solver_settings.model_copy(update={"max_iterations": 400})

    first = solve(catalogs, settings=settings)
    second = solve(catalogs, settings=settings)

    assert first.score == second.score
    assert [lesson.assignment() for lesson in first.lessons] == [lesson.assignment() for lesson in second.lessons]


def test_score_assignment_rejects_unknown_ids(catalogs):
    with pytest.raises(SchedulerError, match="Unknown lesson id 999"):
        score_assignment(catalogs, [AssignmentIn(lesson_id=999)])
    with pytest.raises(SchedulerError, match="Unknown room id 42"):
        score_assignment(catalogs, [AssignmentIn(lesson_id=1, room_id=42)])


def test_feasible_solution_respects_hard_rules(catalogs, solver_settings):
    result = solve(catalogs, settings=solver_settings.model_copy(update={"max_iterations": 500}))
    assert result.score.hard == 0
    problem = result.problem

    room_slots = [(lesson.room.id, lesson.timeslot.id) for lesson in result.lessons]
    faculty_slots = [(lesson.faculty.id, lesson.timeslot.id) for lesson in result.lessons]
    assert len(set(room_slots)) == len(room_slots)
    assert len(set(faculty_slots)) == len(faculty_slots)
    for lesson in result.lessons:
        assert lesson.faculty.id in lesson.course.eligible_faculty_ids
        assert lesson.timeslot in problem.timeslot_menu(lesson)
        if lesson.is_minor:
            assert lesson.room.id in lesson.course.allowed_room_ids
        elif lesson.is_lab:
            assert lesson.room.is_lab_room and lesson.room.id in lesson.batch.practical_room_ids
        else:
            assert lesson.room.is_lecture_room and lesson.room.id in lesson.batch.lecture_room_ids


def test_time_limit_argument_is_validated(catalogs, solver_settings):
    with pytest.raises(ValidationError):
        solve(catalogs, -5, settings=solver_settings)
    with pytest.raises(ValidationError):
        solve(catalogs, 0, settings=solver_settings)


def test_scheduler_error_defaults_to_empty_details():
    error = SchedulerError("Unknown room id 7")

    assert error.status_code == 400
    assert error.details == {}
    assert str(error) == "Unknown room id 7"
