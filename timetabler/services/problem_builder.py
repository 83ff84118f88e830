from __future__ import annotations

from dataclasses import dataclass, field
import logging
import math

from timetabler.core.exceptions import MissingEssentialDataError
from timetabler.models.catalog import Catalogs, Course, Faculty, Room, StudentBatch
from timetabler.models.lesson import Lesson, LessonType
from timetabler.models.timeslots import SlotCatalog, TimeSlot
from timetabler.schemas.solver import SolverSettings

logger = logging.getLogger(__name__)


@dataclass
class Problem:
    lessons: list[Lesson]
    settings: SolverSettings
    slots: SlotCatalog
    faculty_by_id: dict[int, Faculty]
    rooms_by_id: dict[int, Room]
    courses_by_id: dict[int, Course]
    batches_by_id: dict[int, StudentBatch]
    eligible_faculty: dict[int, tuple[Faculty, ...]]
    lecture_rooms: dict[int, tuple[Room, ...]]
    practical_rooms: dict[int, tuple[Room, ...]]
    minor_rooms: dict[int, tuple[Room, ...]]
    lab_lesson_counts: dict[int, int]
    required_labs: dict[int, int]
    warnings: list[str] = field(default_factory=list)

    def __post_init__(self) -> None:
        self.lesson_by_id = {lesson.id: lesson for lesson in self.lessons}
        self.eligible_faculty_ids = {
            course_id: frozenset(item.id for item in faculty)
            for course_id, faculty in self.eligible_faculty.items()
        }
        self.lecture_room_ids = {batch_id: frozenset(room.id for room in rooms) for batch_id, rooms in self.lecture_rooms.items()}
        self.practical_room_ids = {
            batch_id: frozenset(room.id for room in rooms) for batch_id, rooms in self.practical_rooms.items()
        }
        self.minor_room_ids = {course_id: frozenset(room.id for room in rooms) for course_id, rooms in self.minor_rooms.items()}

    def required_lab_days(self, batch_id: int) -> int:
        # A batch cannot spread more labs over the week than it has lab lessons.
        return min(self.required_labs.get(batch_id, 0), self.lab_lesson_counts.get(batch_id, 0))

    def timeslot_menu(self, lesson: Lesson) -> tuple[TimeSlot, ...]:
        if lesson.batch is None:
            return self.slots.minor_slots
        return self.slots.slots_for_year(lesson.batch.year)


class ProblemBuilder:
    def __init__(self, catalogs: Catalogs, settings: SolverSettings) -> None:
        missing = catalogs.missing_catalogs()
        if missing:
            raise MissingEssentialDataError(missing)
        self.catalogs = catalogs
        self.settings = settings
        self.warnings: list[str] = []
        self.faculty_by_id = {item.id: item for item in catalogs.faculty}
        self.rooms_by_id = {item.id: item for item in catalogs.rooms}
        self.courses_by_id = {item.id: item for item in catalogs.courses}
        self.batches_by_id = {item.id: item for item in catalogs.batches}
        self.slots = SlotCatalog(days=settings.working_days, academic_year=settings.academic_year)

    def _warn(self, message: str, *args: object) -> None:
        text = message % args if args else message
        logger.warning(text)
        self.warnings.append(text)

    def _resolve_rooms(self, room_ids: tuple[int, ...], *, owner: str, pool: str) -> tuple[Room, ...]:
        rooms: list[Room] = []
        for room_id in room_ids:
            room = self.rooms_by_id.get(room_id)
            if room is None:
                self._warn("%s room id %s not found for %s", pool, room_id, owner)
                continue
            rooms.append(room)
        return tuple(rooms)

    def _resolve_faculty(self, course: Course) -> tuple[Faculty, ...]:
        faculty: list[Faculty] = []
        for faculty_id in course.eligible_faculty_ids:
            item = self.faculty_by_id.get(faculty_id)
            if item is None:
                self._warn("Faculty id %s not found for course %s", faculty_id, course.code)
                continue
            faculty.append(item)
        return tuple(faculty)

    def build(self) -> Problem:
        lessons: list[Lesson] = []
        eligible_faculty: dict[int, tuple[Faculty, ...]] = {}
        lecture_rooms: dict[int, tuple[Room, ...]] = {}
        practical_rooms: dict[int, tuple[Room, ...]] = {}
        minor_rooms: dict[int, tuple[Room, ...]] = {}
        lab_lesson_counts: dict[int, int] = {}
        required_labs: dict[int, int] = {}
        next_id = 1

        for course in self.catalogs.courses:
            eligible_faculty[course.id] = self._resolve_faculty(course)

        for batch in sorted(self.catalogs.batches, key=lambda item: item.id):
            lecture_pool = self._resolve_rooms(batch.lecture_room_ids, owner=f"batch {batch.name}", pool="Lecture")
            practical_pool = self._resolve_rooms(batch.practical_room_ids, owner=f"batch {batch.name}", pool="Practical")
            if not lecture_pool:
                self._warn("Batch %s has no lecture rooms assigned; skipping its lessons", batch.name)
                continue
            lecture_rooms[batch.id] = lecture_pool
            practical_rooms[batch.id] = practical_pool
            required_labs[batch.id] = self.catalogs.required_labs_per_week(batch)
            lab_lesson_counts[batch.id] = 0

            for course_id in batch.course_ids:
                course = self.courses_by_id.get(course_id)
                if course is None:
                    self._warn("Course id %s not found for batch %s", course_id, batch.name)
                    continue
                if course.is_minor:
                    self._warn("Minor course %s listed on batch %s is scheduled for all batches", course.code, batch.name)
                    continue
                if not eligible_faculty[course.id]:
                    self._warn("Course %s has no eligible faculty", course.name)
                    continue

                for _ in range(course.lecture_hours + course.theory_hours):
                    lessons.append(Lesson(next_id, course, batch, LessonType.LECTURE))
                    next_id += 1

                lab_count = math.ceil(course.practical_hours / 2)
                if lab_count and not practical_pool:
                    self._warn("No practical rooms available for batch %s; skipping labs of %s", batch.name, course.code)
                    continue
                for _ in range(lab_count):
                    lessons.append(Lesson(next_id, course, batch, LessonType.LAB))
                    next_id += 1
                lab_lesson_counts[batch.id] += lab_count

        for course in self.catalogs.courses:
            if not course.is_minor:
                continue
            if not eligible_faculty[course.id]:
                self._warn("Minor course %s has no eligible faculty", course.name)
                continue
            rooms = self._resolve_rooms(course.allowed_room_ids, owner=f"minor {course.code}", pool="Lecture")
            if not rooms:
                self._warn("No lecture rooms available for minor %s", course.code)
                continue
            minor_rooms[course.id] = rooms
            for _ in range(course.lecture_hours):
                lessons.append(Lesson(next_id, course, None, LessonType.MINOR))
                next_id += 1

        logger.info(
            "Built problem with %s lessons (%s minor) across %s batches",
            len(lessons),
            sum(1 for lesson in lessons if lesson.is_minor),
            len(lecture_rooms),
        )
        return Problem(
            lessons=lessons,
            settings=self.settings,
            slots=self.slots,
            faculty_by_id=self.faculty_by_id,
            rooms_by_id=self.rooms_by_id,
            courses_by_id=self.courses_by_id,
            batches_by_id=self.batches_by_id,
            eligible_faculty=eligible_faculty,
            lecture_rooms=lecture_rooms,
            practical_rooms=practical_rooms,
            minor_rooms=minor_rooms,
            lab_lesson_counts=lab_lesson_counts,
            required_labs=required_labs,
            warnings=list(self.warnings),
        )


def build_problem(catalogs: Catalogs, settings: SolverSettings | None = None) -> Problem:
    return ProblemBuilder(catalogs, settings or SolverSettings()).build()
