from timetabler.models.catalog import CourseKind, RoomType
from timetabler.services.catalog_loader import load_catalogs, parse_preferred_slots, split_ids


def test_loads_every_catalog(catalog_dir):
    catalogs, warnings = load_catalogs(catalog_dir)

    assert warnings == []
    assert [member.name for member in catalogs.faculty] == ["Asha Menon", "Meera Iyer"]
    asha = catalogs.faculty[0]
    assert asha.subjects == ("Programming", "Algorithms")
    assert asha.max_hours_per_day == 6
    assert [slot.key for slot in asha.preferred_slots] == [("Monday", 540, 630), ("Tuesday", 870, 960)]
    assert catalogs.faculty[1].max_hours_per_day == 0
    assert [room.type for room in catalogs.rooms] == [RoomType.lecture, RoomType.computer_lab]
    assert catalogs.courses[0].eligible_faculty_ids == (1,)
    assert catalogs.batches[0].course_ids == (10, 11)
    assert catalogs.batches[0].practical_room_ids == (2,)
    assert catalogs.missing_catalogs() == []


def test_bad_and_duplicate_rows_are_skipped(catalog_dir):
    (catalog_dir / "rooms.csv").write_text(
        "id,room_number,capacity,room_type\n"
        "1,LH-101,60,lecture\n"
        "2,LH-102,lots,lecture\n"
        "3,XX-1,30,swimming_pool\n"
        "1,LH-999,90,lecture\n"
    )

    catalogs, warnings = load_catalogs(catalog_dir)

    assert [room.number for room in catalogs.rooms] == ["LH-101"]
    assert len(warnings) == 3
    assert warnings[0].startswith("Skipping rooms.csv row 3")
    assert warnings[1].startswith("Skipping rooms.csv row 4")
    assert warnings[2] == "Skipping rooms.csv row 5: duplicate id 1"


def test_missing_file_is_reported_and_leaves_catalog_empty(catalog_dir):
    (catalog_dir / "batches.csv").unlink()

    catalogs, warnings = load_catalogs(catalog_dir)

    assert catalogs.batches == []
    assert catalogs.missing_catalogs() == ["batches"]
    assert any("batches.csv not found" in warning for warning in warnings)


def test_minors_file_adds_minor_courses(catalog_dir):
    (catalog_dir / "minors.csv").write_text(
        "id,code,name,lecture_hours,eligible_faculty_ids,allowed_room_ids\n"
        "20,MN201,Economics Minor,2,2,1\n"
        "11,MN202,Clashing Minor,2,2,1\n"
    )

    catalogs, warnings = load_catalogs(catalog_dir)

    minors = [course for course in catalogs.courses if course.is_minor]
    assert [course.code for course in minors] == ["MN201"]
    assert minors[0].kind == CourseKind.minor
    assert minors[0].allowed_room_ids == (1,)
    assert warnings == ["Skipping minor course MN202: id 11 already used"]


def test_list_helpers():
    assert split_ids("1; 2;;3") == (1, 2, 3)
    assert split_ids("") == ()
    assert parse_preferred_slots("") == ()
    assert parse_preferred_slots("Friday 16:15-17:45")[0].end_time == "17:45"
