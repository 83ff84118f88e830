from timetabler.models.catalog import (  # noqa: F401
    Catalogs,
    Course,
    CourseKind,
    Faculty,
    PreferredSlot,
    Room,
    RoomType,
    StudentBatch,
)
from timetabler.models.lesson import PLANNING_FIELDS, Lesson, LessonType, PlanningField  # noqa: F401
from timetabler.models.timeslots import SlotCatalog, SlotKind, TimeSlot  # noqa: F401
