"""Timetable derivations: grouping by day, weekly grid, today/tomorrow views and slot status.

Everything here works on plain ``TimetableSlot`` values. The functions are pure: they
never touch the database and never read the clock, so callers pass ``now`` in.
"""

from __future__ import annotations

import logging
import sqlite3
from dataclasses import dataclass
from datetime import datetime

logger = logging.getLogger(__name__)

DAY_NAMES = ["Sunday", "Monday", "Tuesday", "Wednesday", "Thursday", "Friday", "Saturday"]

UPCOMING = "upcoming"
ONGOING = "ongoing"
FINISHED = "finished"

TODAY = "today"
TOMORROW = "tomorrow"

PREDEFINED_BANDS = [
    ("08:00", "10:00"),
    ("10:00", "12:00"),
    ("12:00", "14:00"),
]


def truncate_hhmm(value: str) -> str:
    """``"09:05:00"`` -> ``"09:05"``; ``"9:05"`` -> ``"09:05"``."""
    minutes = parse_time_minutes(value)
    return f"{minutes // 60:02d}:{minutes % 60:02d}"


def parse_time_minutes(value: str) -> int:
    parts = str(value).strip().split(":")
    if len(parts) < 2:
        raise ValueError(f"Invalid time of day: {value!r}")
    hour = int(parts[0])
    minute = int(parts[1])
    if not (0 <= hour <= 23 and 0 <= minute <= 59):
        raise ValueError(f"Invalid time of day: {value!r}")
    return hour * 60 + minute


@dataclass(frozen=True)
class TimetableSlot:
    id: int
    class_id: int
    subject_id: int
    day_of_week: int
    start_time: str
    end_time: str
    teacher_id: int | None = None
    classroom: str | None = None
    subject_name: str = ""
    class_name: str = ""
    teacher_name: str = ""

    def __post_init__(self):
        # bands and grid cells are keyed on these strings, so they must be canonical
        object.__setattr__(self, "start_time", truncate_hhmm(self.start_time))
        object.__setattr__(self, "end_time", truncate_hhmm(self.end_time))

    @property
    def start_minutes(self) -> int:
        return parse_time_minutes(self.start_time)

    @property
    def end_minutes(self) -> int:
        return parse_time_minutes(self.end_time)

    @property
    def band(self) -> tuple[str, str]:
        return (self.start_time, self.end_time)

    @property
    def day_name(self) -> str:
        return DAY_NAMES[self.day_of_week]


@dataclass(frozen=True)
class SlotStatus:
    kind: str
    minutes: int


def slot_from_row(row) -> TimetableSlot:
    keys = row.keys()

    def _opt(name: str):
        return row[name] if name in keys else None

    teacher_id = _opt("teacher_id")
    return TimetableSlot(
        id=int(row["id"]),
        class_id=int(row["class_id"]),
        subject_id=int(row["subject_id"]),
        day_of_week=int(row["day_of_week"]),
        start_time=row["start_time"],
        end_time=row["end_time"],
        teacher_id=int(teacher_id) if teacher_id is not None else None,
        classroom=_opt("classroom") or None,
        subject_name=_opt("subject_name") or "",
        class_name=_opt("class_name") or "",
        teacher_name=_opt("teacher_name") or "",
    )


_SLOT_SELECT = """
    SELECT ts.*, s.name AS subject_name, c.name AS class_name, u.full_name AS teacher_name
    FROM timetable_slots ts
    JOIN subjects s ON s.id = ts.subject_id
    JOIN classes c ON c.id = ts.class_id
    LEFT JOIN users u ON u.id = ts.teacher_id
"""


def fetch_slots_for_class(db: sqlite3.Connection, class_id: int) -> list[TimetableSlot]:
    rows = db.execute(
        _SLOT_SELECT + " WHERE ts.class_id = ? ORDER BY ts.day_of_week ASC, time(ts.start_time) ASC",
        (int(class_id),),
    ).fetchall()
    return [slot_from_row(r) for r in rows]


def fetch_slots_for_teacher(db: sqlite3.Connection, teacher_id: int) -> list[TimetableSlot]:
    rows = db.execute(
        _SLOT_SELECT + " WHERE ts.teacher_id = ? ORDER BY ts.day_of_week ASC, time(ts.start_time) ASC",
        (int(teacher_id),),
    ).fetchall()
    return [slot_from_row(r) for r in rows]


def fetch_all_slots(db: sqlite3.Connection) -> list[TimetableSlot]:
    rows = db.execute(
        _SLOT_SELECT + " ORDER BY c.name ASC, ts.day_of_week ASC, time(ts.start_time) ASC, ts.id ASC"
    ).fetchall()
    return [slot_from_row(r) for r in rows]


def fetch_classes(db: sqlite3.Connection) -> list[sqlite3.Row]:
    return db.execute("SELECT * FROM classes ORDER BY name ASC").fetchall()


def _slot_sort_key(slot: TimetableSlot) -> tuple[int, int, int]:
    return (slot.start_minutes, slot.end_minutes, slot.id)


def slot_status(slot: TimetableSlot, now: datetime) -> SlotStatus:
    now_minutes = now.hour * 60 + now.minute
    start = slot.start_minutes
    end = slot.end_minutes
    if now_minutes < start:
        return SlotStatus(UPCOMING, start - now_minutes)
    if start <= now_minutes < end:
        return SlotStatus(ONGOING, end - now_minutes)
    return SlotStatus(FINISHED, 0)


def group_by_day(slots) -> dict[int, list[TimetableSlot]]:
    grouped: dict[int, list[TimetableSlot]] = {}
    for slot in slots:
        grouped.setdefault(int(slot.day_of_week), []).append(slot)
    return {day: sorted(grouped[day], key=_slot_sort_key) for day in sorted(grouped)}


def active_days(slots) -> list[int]:
    return sorted({int(slot.day_of_week) for slot in slots})


def band_key(band: tuple[str, str]) -> str:
    return f"{band[0]}-{band[1]}"


def time_bands(slots) -> list[tuple[str, str]]:
    bands = {slot.band for slot in slots}
    return sorted(bands, key=lambda b: (parse_time_minutes(b[0]), parse_time_minutes(b[1])))


def build_grid(slots) -> tuple[list[tuple[str, str]], dict[str, dict[int, TimetableSlot]]]:
    bands = time_bands(slots)
    grid: dict[str, dict[int, TimetableSlot]] = {}
    for slot in slots:
        cells = grid.setdefault(band_key(slot.band), {})
        previous = cells.get(slot.day_of_week)
        if previous is not None:
            # last write wins; grid_conflicts() reports the collision
            logger.warning(
                "Timetable grid collision on %s %s: slot %s replaces slot %s",
                DAY_NAMES[slot.day_of_week],
                band_key(slot.band),
                slot.id,
                previous.id,
            )
        cells[slot.day_of_week] = slot
    return bands, grid


def grid_conflicts(slots) -> list[tuple[str, int, list[TimetableSlot]]]:
    """Band/day cells holding more than one slot, as ``(band_key, day, slots)``."""
    cells: dict[tuple[str, int], list[TimetableSlot]] = {}
    for slot in slots:
        cells.setdefault((band_key(slot.band), slot.day_of_week), []).append(slot)
    conflicts = [(key, day, found) for (key, day), found in cells.items() if len(found) > 1]
    conflicts.sort(key=lambda c: (c[1], parse_time_minutes(c[0].split("-")[0])))
    return conflicts


def day_index_for(now: datetime, which: str = TODAY) -> int:
    # datetime.weekday() is Monday=0; the timetable counts from Sunday=0
    today = (now.weekday() + 1) % 7
    if which == TODAY:
        return today
    if which == TOMORROW:
        return (today + 1) % 7
    raise ValueError(f"Unknown view: {which!r}")


def slots_for_view(slots, day_index: int) -> list[TimetableSlot]:
    return list(group_by_day(slots).get(int(day_index), []))
