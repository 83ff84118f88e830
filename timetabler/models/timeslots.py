from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
import re

DAY_ORDER = ("Monday", "Tuesday", "Wednesday", "Thursday", "Friday", "Saturday", "Sunday")

TIME_PATTERN = re.compile(r"^([01]\d|2[0-3]):[0-5]\d$")


def parse_time_to_minutes(value: str) -> int:
    if not TIME_PATTERN.match(value):
        raise ValueError("Time must be in HH:MM 24-hour format")
    hours, minutes = value.split(":")
    return int(hours) * 60 + int(minutes)


def minutes_to_time(value: int) -> str:
    hours = value // 60
    minutes = value % 60
    return f"{hours:02d}:{minutes:02d}"


def day_index(day: str) -> int:
    try:
        return DAY_ORDER.index(day)
    except ValueError:
        return len(DAY_ORDER)


class SlotKind(str, Enum):
    lecture = "lecture"
    lab = "lab"
    minor = "minor"


@dataclass(frozen=True)
class MenuEntry:
    start: int
    end: int
    kind: SlotKind


@dataclass(frozen=True)
class TimeSlot:
    id: int
    day: str
    start: int
    end: int
    kind: SlotKind

    @property
    def duration(self) -> int:
        return self.end - self.start

    @property
    def start_time(self) -> str:
        return minutes_to_time(self.start)

    @property
    def end_time(self) -> str:
        return minutes_to_time(self.end)

    @property
    def signature(self) -> tuple[int, int, SlotKind]:
        return (self.start, self.end, self.kind)

    def overlaps(self, other: TimeSlot) -> bool:
        return self.day == other.day and self.start < other.end and other.start < self.end

    def gap_to(self, other: TimeSlot) -> int:
        """Minutes between the earlier slot's end and the later slot's start (negative on overlap)."""
        if self.start <= other.start:
            return other.start - self.end
        return self.start - other.end

    def label(self) -> str:
        return f"{self.day} {self.start_time}-{self.end_time}"


def _entry(start: str, end: str, kind: SlotKind) -> MenuEntry:
    return MenuEntry(parse_time_to_minutes(start), parse_time_to_minutes(end), kind)


# Keyed by year of study (1 = newest intake).
COHORT_MENUS: dict[int, tuple[MenuEntry, ...]] = {
    1: (
        _entry("09:00", "10:30", SlotKind.lecture),
        _entry("10:45", "12:15", SlotKind.lecture),
        _entry("12:15", "13:15", SlotKind.lecture),
        _entry("14:30", "16:00", SlotKind.lecture),
        _entry("16:15", "17:45", SlotKind.lecture),
        _entry("11:15", "13:15", SlotKind.lab),
        _entry("14:30", "16:30", SlotKind.lab),
    ),
    2: (
        _entry("09:00", "10:30", SlotKind.lecture),
        _entry("10:45", "12:15", SlotKind.lecture),
        _entry("12:15", "13:15", SlotKind.lecture),
        _entry("14:30", "16:00", SlotKind.lecture),
        _entry("14:30", "16:30", SlotKind.lab),
    ),
    3: (
        _entry("09:00", "10:30", SlotKind.lecture),
        _entry("11:15", "12:15", SlotKind.lecture),
        _entry("13:30", "15:00", SlotKind.lecture),
        _entry("15:15", "16:45", SlotKind.lecture),
        _entry("17:00", "18:00", SlotKind.lecture),
        _entry("09:00", "11:00", SlotKind.lab),
    ),
    4: (
        _entry("09:00", "10:30", SlotKind.lecture),
        _entry("13:30", "14:30", SlotKind.lecture),
        _entry("14:45", "16:15", SlotKind.lecture),
        _entry("16:30", "18:00", SlotKind.lecture),
    ),
}

MINOR_MENU: tuple[MenuEntry, ...] = (
    _entry("08:00", "09:00", SlotKind.minor),
    _entry("18:00", "19:30", SlotKind.minor),
)

MINOR_START = parse_time_to_minutes("18:00")


@dataclass(frozen=True)
class LunchBand:
    start: int
    end: int

    def contains(self, minute: int) -> bool:
        return self.start <= minute < self.end


JUNIOR_LUNCH = LunchBand(parse_time_to_minutes("13:15"), parse_time_to_minutes("14:30"))
SENIOR_LUNCH = LunchBand(parse_time_to_minutes("12:15"), parse_time_to_minutes("13:15"))


class SlotCatalog:
    """Week of concrete time slots built from the cohort menus and the shared minor menu."""

    def __init__(self, *, days: list[str] | tuple[str, ...], academic_year: int) -> None:
        self.days = tuple(days)
        self.academic_year = academic_year
        next_id = 1
        self.cohort_slots: dict[int, tuple[TimeSlot, ...]] = {}
        for year_of_study, menu in COHORT_MENUS.items():
            slots, next_id = self._expand(menu, next_id)
            self.cohort_slots[year_of_study] = slots
        self.minor_slots, next_id = self._expand(MINOR_MENU, next_id)
        self.cohort_signatures = {
            year_of_study: frozenset(entry_signature(entry) for entry in menu)
            for year_of_study, menu in COHORT_MENUS.items()
        }
        self.minor_signatures = frozenset(entry_signature(entry) for entry in MINOR_MENU)
        self.by_id: dict[int, TimeSlot] = {
            slot.id: slot
            for slots in (*self.cohort_slots.values(), self.minor_slots)
            for slot in slots
        }

    def _expand(self, menu: tuple[MenuEntry, ...], next_id: int) -> tuple[tuple[TimeSlot, ...], int]:
        slots: list[TimeSlot] = []
        for day in self.days:
            for entry in sorted(menu, key=lambda item: (item.start, item.end)):
                slots.append(TimeSlot(id=next_id, day=day, start=entry.start, end=entry.end, kind=entry.kind))
                next_id += 1
        return tuple(slots), next_id

    def year_of_study(self, enrollment_year: int) -> int:
        year = self.academic_year - enrollment_year + 1
        return year if year in COHORT_MENUS else 1

    def slots_for_year(self, enrollment_year: int) -> tuple[TimeSlot, ...]:
        return self.cohort_slots[self.year_of_study(enrollment_year)]

    def is_legal_for_year(self, enrollment_year: int, slot: TimeSlot) -> bool:
        if slot.kind == SlotKind.minor:
            return False
        return slot.signature in self.cohort_signatures[self.year_of_study(enrollment_year)]

    def is_legal_minor(self, slot: TimeSlot) -> bool:
        return slot.signature in self.minor_signatures

    def lunch_band_for_year(self, enrollment_year: int) -> LunchBand:
        return JUNIOR_LUNCH if self.year_of_study(enrollment_year) <= 2 else SENIOR_LUNCH


def entry_signature(entry: MenuEntry) -> tuple[int, int, SlotKind]:
    return (entry.start, entry.end, entry.kind)
