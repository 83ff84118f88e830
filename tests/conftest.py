import pytest
from fastapi.testclient import TestClient

from timetabler.core.config import get_settings
from timetabler.main import app
from timetabler.models.catalog import Catalogs, Course, Faculty, Room, StudentBatch
from timetabler.schemas.solver import SolverSettings


def sample_rooms() -> list[Room]:
    return [
        Room(id=1, number="LH-101", capacity=60, type="lecture"),
        Room(id=2, number="LH-102", capacity=60, type="Lecture Room"),
        Room(id=3, number="CL-1", capacity=60, type="computer_lab"),
        Room(id=4, number="HL-1", capacity=60, type="hardware_lab"),
        Room(id=5, number="LH-201", capacity=150, type="lecture"),
    ]


def sample_faculty() -> list[Faculty]:
    return [
        Faculty(id=1, name="Asha Menon", subjects=("Programming",), max_hours_per_day=6),
        Faculty(id=2, name="Ravi Kumar", subjects=("Programming",), max_hours_per_day=6),
        Faculty(id=3, name="Meera Iyer", subjects=("Mathematics",), max_hours_per_day=6),
        Faculty(id=4, name="John Mathew", subjects=("Physics",), max_hours_per_day=6),
        Faculty(id=5, name="Nisha Rao", subjects=("Economics",)),
    ]


def sample_courses() -> list[Course]:
    return [
        Course(
            id=10,
            code="CS101",
            name="Programming Fundamentals",
            lecture_hours=2,
            theory_hours=1,
            practical_hours=2,
            credits=4,
            eligible_faculty_ids=(1, 2),
        ),
        Course(id=11, code="MA101", name="Calculus", lecture_hours=3, credits=3, eligible_faculty_ids=(3,)),
        Course(
            id=12,
            code="PH101",
            name="Physics",
            lecture_hours=1,
            practical_hours=2,
            credits=2,
            eligible_faculty_ids=(4,),
        ),
        Course(
            id=20,
            code="MN201",
            name="Economics Minor",
            kind="minor",
            lecture_hours=2,
            credits=2,
            eligible_faculty_ids=(5,),
            allowed_room_ids=(5,),
        ),
    ]


def sample_batches() -> list[StudentBatch]:
    return [
        StudentBatch(
            id=100,
            name="CSE-A",
            year=2024,
            headcount=50,
            course_ids=(10, 11, 12),
            lecture_room_ids=(1, 2),
            practical_room_ids=(3, 4),
        ),
        StudentBatch(
            id=101,
            name="CSE-B",
            year=2023,
            headcount=45,
            course_ids=(10, 11),
            lecture_room_ids=(2,),
            practical_room_ids=(3,),
        ),
    ]


@pytest.fixture()
def catalogs() -> Catalogs:
    return Catalogs(
        faculty=sample_faculty(),
        rooms=sample_rooms(),
        courses=sample_courses(),
        batches=sample_batches(),
    )


@pytest.fixture()
def solver_settings() -> SolverSettings:
    return SolverSettings(
        time_limit_seconds=10,
        plateau_iterations=300,
        random_seed=7,
        academic_year=2024,
    )


@pytest.fixture()
def client(monkeypatch):
    monkeypatch.setenv("TIMETABLER_TIME_LIMIT_SECONDS", "5")
    monkeypatch.setenv("TIMETABLER_RANDOM_SEED", "11")
    get_settings.cache_clear()
    with TestClient(app) as test_client:
        yield test_client
    get_settings.cache_clear()


CATALOG_FILES = {
    "faculty.csv": (
        "id,name,subjects,max_hours_per_day,preferred_slots\n"
        "1,Asha Menon,Programming;Algorithms,6,Monday 09:00-10:30;Tuesday 14:30-16:00\n"
        "2,Meera Iyer,Mathematics,,\n"
    ),
    "rooms.csv": (
        "# campus rooms\n"
        "id,room_number,capacity,room_type\n"
        "1,LH-101,60,Lecture Room\n"
        "2,CL-1,60,computer_lab\n"
    ),
    "courses.csv": (
        "id,code,name,lecture_hours,theory_hours,practical_hours,credits,eligible_faculty_ids\n"
        "10,CS101,Programming Fundamentals,2,1,2,4,1\n"
        "11,MA101,Calculus,3,0,0,3,2\n"
    ),
    "batches.csv": (
        "id,name,year,headcount,course_ids,lecture_room_ids,practical_room_ids\n"
        "100,CSE-A,2024,50,10;11,1,2\n"
    ),
}


@pytest.fixture()
def catalog_dir(tmp_path):
    for name, content in CATALOG_FILES.items():
        (tmp_path / name).write_text(content)
    return tmp_path
