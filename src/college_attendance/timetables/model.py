"""Weekly timetable model.

A timetable belongs to one (branch, semester, academic year) and holds a list of
day schedules, each an ordered list of time slots. Slot times are fixed-width
"HH:MM" strings so lexicographic order equals chronological order.

Every slot carries a durable ``slot_id``. Slots stored before ids existed get a
deterministic id derived from their content when loaded, so they stay addressable
and the id is persisted on the next save. The positional "<Day>-<index>" form is
still accepted; indices always refer to the current sorted order of the day.
"""

from __future__ import annotations

import re
import uuid
from dataclasses import dataclass, field
from datetime import datetime
from typing import Iterable, Optional

from ..common.datetime_utils import ONE_MILLISECOND, format_hhmm, isoformat_or_none, normalize_hhmm
from ..common.validators import optional_text, require_choice, require_max_length
from ..core.enums import ClassType, Weekday
from ..core.exceptions import NotFoundError, TimeSlotConflictError, ValidationError

_POSITIONAL_REF_RE = re.compile(r"^([A-Za-z]+)-(\d+)$")


def new_slot_id() -> str:
    return uuid.uuid4().hex


def legacy_slot_id(day: str, doc: dict) -> str:
    key = "|".join(str(doc.get(k, "")) for k in ("start_time", "end_time", "subject_id", "room", "type"))
    return uuid.uuid5(uuid.NAMESPACE_OID, f"{day}|{key}").hex


@dataclass
class TimeSlot:
    slot_id: str
    start_time: str
    end_time: str
    subject_id: int
    room: str = ""
    type: ClassType = ClassType.LECTURE

    @classmethod
    def create(
        cls,
        *,
        start_time: str,
        end_time: str,
        subject_id: int,
        room: Optional[str] = "",
        type: ClassType | str = ClassType.LECTURE,
        slot_id: Optional[str] = None,
    ) -> "TimeSlot":
        """Validate and normalize a slot; a fresh id is assigned when none is given."""
        start = normalize_hhmm(start_time, "Start time")
        end = normalize_hhmm(end_time, "End time")
        if end <= start:
            raise ValidationError("End time must be after start time")
        room = optional_text(room) or ""
        require_max_length(room, "Room number", 20)
        try:
            subject_id = int(subject_id)
        except (TypeError, ValueError):
            raise ValidationError("Subject is required")
        return cls(
            slot_id=slot_id or new_slot_id(),
            start_time=start,
            end_time=end,
            subject_id=subject_id,
            room=room,
            type=require_choice(type or ClassType.LECTURE.value, ClassType, "Class type"),
        )

    def overlaps(self, start_time: str, end_time: str) -> bool:
        # Half-open intervals: touching slots (10:00-11:00 after 09:00-10:00) do not overlap.
        return start_time < self.end_time and end_time > self.start_time

    def to_document(self) -> dict:
        return {
            "slot_id": self.slot_id,
            "start_time": self.start_time,
            "end_time": self.end_time,
            "subject_id": self.subject_id,
            "room": self.room,
            "type": self.type.value,
        }

    @classmethod
    def from_document(cls, doc: dict, *, day: str) -> "TimeSlot":
        return cls(
            slot_id=doc.get("slot_id") or legacy_slot_id(day, doc),
            start_time=doc["start_time"],
            end_time=doc["end_time"],
            subject_id=int(doc["subject_id"]),
            room=doc.get("room") or "",
            type=ClassType(doc.get("type") or ClassType.LECTURE.value),
        )

    def to_dict(self, subjects: Optional[dict] = None) -> dict:
        subject = subjects.get(self.subject_id) if subjects else None
        return {
            "id": self.slot_id,
            "startTime": self.start_time,
            "endTime": self.end_time,
            "subject": subject.to_ref() if subject else self.subject_id,
            "room": self.room,
            "type": self.type.value,
        }


@dataclass
class DaySchedule:
    day: Weekday
    time_slots: list[TimeSlot] = field(default_factory=list)

    @classmethod
    def of(cls, day: Weekday | str, slots: Iterable[TimeSlot] = ()) -> "DaySchedule":
        ds = cls(day=require_choice(day, Weekday, "Day"), time_slots=list(slots))
        ds.sort()
        return ds

    def sort(self) -> None:
        self.time_slots.sort(key=lambda s: s.start_time)

    def index_of(self, slot_id: str) -> Optional[int]:
        for i, slot in enumerate(self.time_slots):
            if slot.slot_id == slot_id:
                return i
        return None


@dataclass(frozen=True)
class NextClass:
    day: Weekday
    slot: TimeSlot

    def to_dict(self, subjects: Optional[dict] = None) -> dict:
        return {"day": self.day.value, **self.slot.to_dict(subjects)}


def schedule_to_document(schedule: Iterable[DaySchedule]) -> list[dict]:
    return [
        {"day": ds.day.value, "time_slots": [s.to_document() for s in ds.time_slots]}
        for ds in schedule
    ]


def schedule_from_document(doc: Optional[list]) -> list[DaySchedule]:
    schedule: list[DaySchedule] = []
    for day_doc in doc or []:
        day = day_doc["day"]
        slots: list[TimeSlot] = []
        seen: set[str] = set()
        for slot_doc in day_doc.get("time_slots") or []:
            slot = TimeSlot.from_document(slot_doc, day=day)
            if slot.slot_id in seen:
                slot.slot_id = f"{slot.slot_id}{len(slots)}"
            seen.add(slot.slot_id)
            slots.append(slot)
        schedule.append(DaySchedule.of(day, slots))
    return schedule


@dataclass
class Timetable:
    timetable_id: int
    branch_id: int
    semester: int
    academic_year: str
    effective_from: datetime
    schedule: list[DaySchedule] = field(default_factory=list)
    version: int = 1
    is_active: bool = True
    effective_to: Optional[datetime] = None
    notes: Optional[str] = None
    revision: int = 0

    # --- queries -------------------------------------------------------------

    def find_day(self, day: Weekday | str) -> Optional[DaySchedule]:
        day = require_choice(day, Weekday, "Day")
        for ds in self.schedule:
            if ds.day == day:
                return ds
        return None

    def get_schedule_for_day(self, day: Weekday | str) -> list[TimeSlot]:
        ds = self.find_day(day)
        return list(ds.time_slots) if ds else []

    def get_todays_schedule(self, now: datetime) -> list[TimeSlot]:
        return self.get_schedule_for_day(Weekday.from_index(now.weekday()))

    def is_currently_active(self, now: datetime) -> bool:
        if not self.is_active or now < self.effective_from:
            return False
        return self.effective_to is None or now <= self.effective_to

    def has_time_conflict(
        self,
        day: Weekday | str,
        start_time: str,
        end_time: str,
        *,
        ignore_slot_id: Optional[str] = None,
    ) -> bool:
        ds = self.find_day(day)
        if not ds:
            return False
        return any(
            slot.overlaps(start_time, end_time)
            for slot in ds.time_slots
            if slot.slot_id != ignore_slot_id
        )

    def subject_ids(self) -> list[int]:
        seen: dict[int, None] = {}
        for ds in self.schedule:
            for slot in ds.time_slots:
                seen.setdefault(slot.subject_id, None)
        return list(seen)

    def get_weekly_class_count(self) -> dict[int, int]:
        counts: dict[int, int] = {}
        for ds in self.schedule:
            for slot in ds.time_slots:
                counts[slot.subject_id] = counts.get(slot.subject_id, 0) + 1
        return counts

    def get_next_class(self, now: datetime) -> Optional[NextClass]:
        """First slot starting after ``now``.

        Looks at the rest of today, then each following day in week order
        (Sunday wraps to Monday). The last candidate is today one week later.
        """
        today = Weekday.from_index(now.weekday())
        current = format_hhmm(now)

        for slot in self.get_schedule_for_day(today):
            if slot.start_time > current:
                return NextClass(day=today, slot=slot)

        for offset in range(1, 8):
            day = Weekday.from_index(today.index + offset)
            slots = self.get_schedule_for_day(day)
            if slots:
                return NextClass(day=day, slot=slots[0])
        return None

    def is_empty(self) -> bool:
        return not any(ds.time_slots for ds in self.schedule)

    # --- slot editing ----------------------------------------------------------

    def add_time_slot(self, day: Weekday | str, slot: TimeSlot) -> TimeSlot:
        day = require_choice(day, Weekday, "Day")
        if self.has_time_conflict(day, slot.start_time, slot.end_time):
            raise TimeSlotConflictError("Time slot conflicts with existing schedule")

        ds = self.find_day(day)
        if ds is None:
            ds = DaySchedule(day=day)
            self.schedule.append(ds)
        ds.time_slots.append(slot)
        ds.sort()
        return slot

    def locate_slot(self, ref: str) -> tuple[DaySchedule, int]:
        """Resolve a slot reference: slot id first, then "<Day>-<index>"."""
        for ds in self.schedule:
            idx = ds.index_of(ref)
            if idx is not None:
                return ds, idx

        m = _POSITIONAL_REF_RE.match(ref or "")
        if m:
            return self.locate_slot_at(m.group(1), int(m.group(2)))
        raise NotFoundError("Time slot not found")

    def locate_slot_at(self, day: Weekday | str, index: int) -> tuple[DaySchedule, int]:
        try:
            day = Weekday(day)
        except ValueError:
            raise NotFoundError("Time slot not found")
        if index < 0:
            raise ValidationError("Invalid slot index")
        ds = self.find_day(day)
        if ds is None or index >= len(ds.time_slots):
            raise NotFoundError("Time slot not found")
        return ds, index

    def _replace_slot(self, ds: DaySchedule, index: int, **fields) -> TimeSlot:
        current = ds.time_slots[index]
        updated = TimeSlot.create(slot_id=current.slot_id, **fields)
        if self.has_time_conflict(ds.day, updated.start_time, updated.end_time, ignore_slot_id=current.slot_id):
            raise TimeSlotConflictError("Time slot conflicts with existing schedule")
        ds.time_slots[index] = updated
        ds.sort()
        return updated

    def update_time_slot(self, ref: str, **fields) -> TimeSlot:
        """Replace start/end/subject/room/type of a slot, keeping its id.

        ``fields`` are the keyword arguments of :meth:`TimeSlot.create`.
        """
        ds, index = self.locate_slot(ref)
        return self._replace_slot(ds, index, **fields)

    def update_time_slot_at(self, day: Weekday | str, index: int, **fields) -> TimeSlot:
        ds, index = self.locate_slot_at(day, index)
        return self._replace_slot(ds, index, **fields)

    def _remove_slot(self, ds: DaySchedule, index: int) -> TimeSlot:
        removed = ds.time_slots.pop(index)
        self.schedule = [d for d in self.schedule if d.time_slots]
        return removed

    def delete_time_slot(self, ref: str) -> TimeSlot:
        ds, index = self.locate_slot(ref)
        return self._remove_slot(ds, index)

    def delete_time_slot_at(self, day: Weekday | str, index: int) -> TimeSlot:
        ds, index = self.locate_slot_at(day, index)
        return self._remove_slot(ds, index)

    def merge_days(self, days: Iterable[DaySchedule]) -> None:
        """Append slots day by day (no overlap check), creating missing days."""
        for incoming in days:
            ds = self.find_day(incoming.day)
            if ds is None:
                self.schedule.append(DaySchedule.of(incoming.day, incoming.time_slots))
            else:
                ds.time_slots.extend(incoming.time_slots)
                ds.sort()

    # --- versioning ------------------------------------------------------------

    def supersede(self, new_schedule: list[DaySchedule], effective_from: datetime, *, version: int, notes: Optional[str] = None) -> "Timetable":
        """Close this timetable 1 ms before ``effective_from`` and build its successor.

        The caller persists both; ``version`` comes from the repository (max + 1).
        """
        self.is_active = False
        self.effective_to = effective_from - ONE_MILLISECOND
        return Timetable(
            timetable_id=0,
            branch_id=self.branch_id,
            semester=self.semester,
            academic_year=self.academic_year,
            effective_from=effective_from,
            schedule=new_schedule,
            version=version,
            is_active=True,
            notes=notes,
        )

    # --- serialization -----------------------------------------------------------

    def ordered_schedule(self) -> list[DaySchedule]:
        return sorted(self.schedule, key=lambda ds: ds.day.index)

    def to_dict(self, *, subjects: Optional[dict] = None, branch=None, day: Optional[Weekday] = None) -> dict:
        schedule = self.ordered_schedule()
        if day is not None:
            schedule = [ds for ds in schedule if ds.day == day]
        return {
            "id": self.timetable_id,
            "branch": {"id": branch.branch_id, "name": branch.name, "code": branch.code} if branch else self.branch_id,
            "semester": self.semester,
            "academicYear": self.academic_year,
            "version": self.version,
            "isActive": self.is_active,
            "effectiveFrom": isoformat_or_none(self.effective_from),
            "effectiveTo": isoformat_or_none(self.effective_to),
            "notes": self.notes,
            "schedule": [
                {"day": ds.day.value, "timeSlots": [s.to_dict(subjects) for s in ds.time_slots]}
                for ds in schedule
            ],
        }

