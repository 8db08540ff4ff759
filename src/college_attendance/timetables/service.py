from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Callable, Iterable, Optional, Sequence

from ..branches.model import Branch
from ..branches.repository import BranchRepository
from ..common.datetime_utils import is_academic_year, parse_iso_datetime
from ..common.validators import FieldErrors, optional_text, require_choice, require_int_range, require_max_length
from ..core.constants import MAX_SEMESTER, MIN_SEMESTER
from ..core.enums import Role, Weekday
from ..core.exceptions import AuthorizationError, NotFoundError, ValidationError
from ..subjects.repository import SubjectRepository
from ..users.model import Actor
from .model import DaySchedule, NextClass, TimeSlot, Timetable
from .repository import TimetableRepository

logger = logging.getLogger(__name__)


def parse_slot_payload(data: dict, *, slot_id: Optional[str] = None) -> TimeSlot:
    """Build a TimeSlot from a wire dict ({startTime, endTime, subject, room, type})."""
    if not data.get("startTime") or not data.get("endTime") or data.get("subject") in (None, ""):
        raise ValidationError("Please provide start time, end time, and subject")
    return TimeSlot.create(
        start_time=str(data["startTime"]),
        end_time=str(data["endTime"]),
        subject_id=data["subject"],
        room=data.get("room"),
        type=data.get("type"),
        slot_id=slot_id,
    )


def parse_schedule_payload(payload) -> list[DaySchedule]:
    """Parse [{day, timeSlots:[...]}]; repeated days are folded together.

    Every slot gets a fresh durable id unless the payload carries one; a
    carried id may appear only once in the whole schedule.
    """
    if not isinstance(payload, list):
        raise ValidationError("Schedule must be a list of days")

    errors = FieldErrors()
    by_day: dict[Weekday, DaySchedule] = {}
    seen_ids: set[str] = set()
    for i, day_data in enumerate(payload):
        if not isinstance(day_data, dict):
            errors.add(f"schedule[{i}] must be an object")
            continue
        day = errors.check(require_choice, day_data.get("day"), Weekday, f"schedule[{i}].day")
        slot_list = day_data.get("timeSlots") or []
        if not isinstance(slot_list, list):
            errors.add(f"schedule[{i}].timeSlots must be a list")
            slot_list = []
        slots: list[TimeSlot] = []
        for j, slot_data in enumerate(slot_list):
            if not isinstance(slot_data, dict):
                errors.add(f"schedule[{i}].timeSlots[{j}] must be an object")
                continue
            slot_id = optional_text(slot_data.get("id"))
            if slot_id is not None:
                if slot_id in seen_ids:
                    errors.add(f"schedule[{i}].timeSlots[{j}].id {slot_id!r} is used by another slot")
                    continue
                seen_ids.add(slot_id)
            slot = errors.check(parse_slot_payload, slot_data, slot_id=slot_id)
            if slot:
                slots.append(slot)
        if day is None:
            continue
        ds = by_day.setdefault(day, DaySchedule(day=day))
        ds.time_slots.extend(slots)
    errors.raise_if_any("Invalid schedule")

    for ds in by_day.values():
        ds.sort()
    return list(by_day.values())


@dataclass(frozen=True)
class TodaySchedule:
    day: Weekday
    slots: list[TimeSlot]


class TimetableService:
    """Use cases around weekly timetables: queries, slot edits and versioning."""

    def __init__(
        self,
        timetables: TimetableRepository,
        subjects: SubjectRepository,
        branches: BranchRepository,
        *,
        clock: Callable[[], datetime] = datetime.now,
        timezone: Optional[str] = None,
    ):
        self._timetables = timetables
        self._subjects = subjects
        self._branches = branches
        self._clock = clock
        self._timezone = timezone or None

    def parse_moment(self, value) -> datetime:
        """Naive wall-clock datetime in the configured zone, like the clock."""
        return parse_iso_datetime(str(value), self._timezone)

    # --- presentation helpers ---------------------------------------------------

    def to_response(self, timetable: Timetable, *, day: Optional[Weekday] = None) -> dict:
        subjects = self._subjects.get_many(timetable.subject_ids())
        branch = self._branches.get_by_id(timetable.branch_id)
        return timetable.to_dict(subjects=subjects, branch=branch, day=day)

    def slots_response(self, slots: Iterable[TimeSlot]) -> list[dict]:
        slots = list(slots)
        subjects = self._subjects.get_many(s.subject_id for s in slots)
        return [s.to_dict(subjects) for s in slots]

    def next_class_response(self, next_class: NextClass) -> dict:
        subjects = self._subjects.get_many([next_class.slot.subject_id])
        return next_class.to_dict(subjects)

    # --- queries -------------------------------------------------------------------

    def get(self, timetable_id: int) -> Timetable:
        timetable = self._timetables.get_by_id(int(timetable_id))
        if not timetable:
            raise NotFoundError("Timetable not found")
        return timetable

    def list_timetables(
        self,
        actor: Actor,
        *,
        branch: Optional[str] = None,
        semester: Optional[int] = None,
        academic_year: Optional[str] = None,
    ) -> Sequence[Timetable]:
        """Active timetables; students only ever see their own branch/semester."""
        if actor.role == Role.STUDENT:
            return self._timetables.list(
                branch_id=actor.branch_id, semester=actor.semester, academic_year=academic_year
            )

        branch_id = None
        if branch:
            resolved = self._resolve_branch(branch)
            if resolved is None:
                return []
            branch_id = resolved.branch_id
        return self._timetables.list(branch_id=branch_id, semester=semester, academic_year=academic_year)

    def get_current(self, *, branch_id: int, semester: int, now: Optional[datetime] = None) -> Timetable:
        timetable = self._timetables.find_current(
            branch_id=int(branch_id), semester=int(semester), now=now or self._clock()
        )
        if not timetable:
            raise NotFoundError("No active timetable found for your branch and semester")
        return timetable

    def get_current_for(
        self,
        actor: Actor,
        *,
        branch_id: Optional[int] = None,
        semester: Optional[int] = None,
        now: Optional[datetime] = None,
    ) -> Timetable:
        if actor.role == Role.STUDENT:
            branch_id, semester = actor.branch_id, actor.semester
        if branch_id is None or semester is None:
            raise ValidationError("Branch and semester are required")
        return self.get_current(branch_id=branch_id, semester=semester, now=now)

    def get_today(self, actor: Actor, *, branch_id=None, semester=None, now: Optional[datetime] = None) -> TodaySchedule:
        now = now or self._clock()
        timetable = self.get_current_for(actor, branch_id=branch_id, semester=semester, now=now)
        return TodaySchedule(day=Weekday.from_index(now.weekday()), slots=timetable.get_todays_schedule(now))

    def get_next_class(self, actor: Actor, *, branch_id=None, semester=None, now: Optional[datetime] = None) -> Optional[NextClass]:
        now = now or self._clock()
        timetable = self.get_current_for(actor, branch_id=branch_id, semester=semester, now=now)
        return timetable.get_next_class(now)

    def list_versions(self, timetable_id: int) -> Sequence[Timetable]:
        timetable = self.get(timetable_id)
        return self._timetables.list_versions(
            branch_id=timetable.branch_id,
            semester=timetable.semester,
            academic_year=timetable.academic_year,
        )

    def history(self, actor: Actor, *, branch_id: Optional[int] = None, semester: Optional[int] = None) -> Sequence[Timetable]:
        if actor.role == Role.STUDENT:
            branch_id, semester = actor.branch_id, actor.semester
        if branch_id is None or semester is None:
            raise ValidationError("Branch and semester are required")
        return self._timetables.list_versions(branch_id=int(branch_id), semester=int(semester))

    def get_weekly_class_count(self, timetable_id: int) -> dict[int, int]:
        return self.get(timetable_id).get_weekly_class_count()

    # --- whole-timetable writes -------------------------------------------------

    def create_or_merge(self, *, current_role: Role, data: dict, now: Optional[datetime] = None) -> tuple[Timetable, bool]:
        """Create a timetable, or merge the posted days into the active one.

        Returns (timetable, created).
        """
        _require_admin(current_role)

        errors = FieldErrors()
        if not data.get("branch"):
            errors.add("Branch is required")
        semester = errors.check(require_int_range, data.get("semester"), "Semester", MIN_SEMESTER, MAX_SEMESTER)
        academic_year = str(data.get("academicYear") or "")
        if not is_academic_year(academic_year):
            errors.add("Academic year must be in format YYYY-YYYY")
        if not data.get("schedule"):
            errors.add("Schedule is required")
        notes = errors.check(require_max_length, optional_text(data.get("notes")), "Notes", 500)
        errors.raise_if_any("Please provide all required fields (branch, semester, academicYear, schedule)")

        branch = self._resolve_branch(str(data["branch"]))
        if not branch:
            raise ValidationError("Invalid branch. Please provide a valid branch code or name.")

        schedule = parse_schedule_payload(data["schedule"])
        self._ensure_subjects_exist(slot.subject_id for ds in schedule for slot in ds.time_slots)

        existing = self._timetables.find_active(
            branch_id=branch.branch_id, semester=semester, academic_year=academic_year
        )
        if existing:
            existing.merge_days(schedule)
            self._timetables.save(existing)
            logger.info("Merged %d day(s) into timetable %s", len(schedule), existing.timetable_id)
            return existing, False

        effective_from = now or self._clock()
        if data.get("effectiveFrom"):
            effective_from = self.parse_moment(data["effectiveFrom"])

        timetable = Timetable(
            timetable_id=0,
            branch_id=branch.branch_id,
            semester=semester,
            academic_year=academic_year,
            effective_from=effective_from,
            schedule=schedule,
            version=self._timetables.max_version(
                branch_id=branch.branch_id, semester=semester, academic_year=academic_year
            ) + 1,
            notes=notes,
        )
        timetable.timetable_id = self._timetables.create(timetable)
        logger.info(
            "Created timetable %s for %s sem %s (%s) v%s",
            timetable.timetable_id,
            branch.code,
            semester,
            academic_year,
            timetable.version,
        )
        return timetable, True

    def update(self, *, current_role: Role, timetable_id: int, data: dict) -> Timetable:
        """Bulk update of schedule/notes/effective dates.

        The replacement schedule is not checked for overlapping slots.
        """
        _require_admin(current_role)
        timetable = self.get(timetable_id)

        if data.get("schedule"):
            schedule = parse_schedule_payload(data["schedule"])
            self._ensure_subjects_exist(slot.subject_id for ds in schedule for slot in ds.time_slots)
            timetable.schedule = schedule
        if "notes" in data:
            timetable.notes = require_max_length(optional_text(data.get("notes")), "Notes", 500)
        if data.get("effectiveFrom"):
            timetable.effective_from = self.parse_moment(data["effectiveFrom"])
        if data.get("effectiveTo"):
            timetable.effective_to = self.parse_moment(data["effectiveTo"])
        if timetable.effective_to is not None and timetable.effective_to < timetable.effective_from:
            raise ValidationError("Effective to date must be after effective from date")

        self._timetables.save(timetable)
        return timetable

    def delete(self, *, current_role: Role, timetable_id: int) -> None:
        _require_admin(current_role)
        self.get(timetable_id)
        self._timetables.delete(int(timetable_id))
        logger.info("Deleted timetable %s", timetable_id)

    def create_new_version(
        self,
        *,
        current_role: Role,
        timetable_id: int,
        schedule_payload,
        effective_from: Optional[datetime] = None,
        notes: Optional[str] = None,
    ) -> Timetable:
        """Supersede a timetable with a new version effective from ``effective_from``.

        The source is closed 1 ms before the new version starts; nothing is deleted.
        """
        _require_admin(current_role)
        current = self.get(timetable_id)
        if not current.is_active:
            raise ValidationError("Only an active timetable can be superseded")

        schedule = parse_schedule_payload(schedule_payload)
        if not schedule:
            raise ValidationError("Schedule is required")
        self._ensure_subjects_exist(slot.subject_id for ds in schedule for slot in ds.time_slots)
        require_max_length(notes, "Notes", 500)

        effective_from = effective_from or self._clock()
        if effective_from <= current.effective_from:
            raise ValidationError("New version must take effect after the current version started")

        version = self._timetables.max_version(
            branch_id=current.branch_id, semester=current.semester, academic_year=current.academic_year
        ) + 1
        successor = current.supersede(schedule, effective_from, version=version, notes=notes)
        successor.timetable_id = self._timetables.supersede(current, successor)
        logger.info(
            "Timetable %s superseded by %s (v%s, effective %s)",
            current.timetable_id,
            successor.timetable_id,
            version,
            effective_from.isoformat(),
        )
        return successor

    # --- slot writes -------------------------------------------------------------------

    def add_slot(self, *, current_role: Role, timetable_id: int, data: dict) -> Timetable:
        _require_admin(current_role)
        if not data.get("day"):
            raise ValidationError("Please provide day, start time, end time, and subject")
        timetable = self.get(timetable_id)
        slot = parse_slot_payload(data)
        self._ensure_subjects_exist([slot.subject_id])

        timetable.add_time_slot(data["day"], slot)
        self._timetables.save(timetable)
        logger.info("Added slot %s on %s to timetable %s", slot.slot_id, data["day"], timetable_id)
        return timetable

    def update_slot(self, *, current_role: Role, timetable_id: int, slot_ref: str, data: dict) -> Timetable:
        _require_admin(current_role)
        timetable = self.get(timetable_id)
        fields = self._slot_fields(data)
        timetable.update_time_slot(slot_ref, **fields)
        self._timetables.save(timetable)
        return timetable

    def update_slot_at(self, *, current_role: Role, timetable_id: int, day: str, index: int, data: dict) -> Timetable:
        _require_admin(current_role)
        timetable = self.get(timetable_id)
        fields = self._slot_fields(data)
        timetable.update_time_slot_at(day, index, **fields)
        self._timetables.save(timetable)
        return timetable

    def delete_slot(self, *, current_role: Role, timetable_id: int, slot_ref: str) -> Optional[Timetable]:
        """Remove a slot; returns None when the now-empty timetable was deleted."""
        _require_admin(current_role)
        timetable = self.get(timetable_id)
        timetable.delete_time_slot(slot_ref)
        return self._save_or_drop_empty(timetable)

    def delete_slot_at(self, *, current_role: Role, timetable_id: int, day: str, index: int) -> Optional[Timetable]:
        _require_admin(current_role)
        timetable = self.get(timetable_id)
        timetable.delete_time_slot_at(day, index)
        return self._save_or_drop_empty(timetable)

    # --- internals ------------------------------------------------------------------------

    def _save_or_drop_empty(self, timetable: Timetable) -> Optional[Timetable]:
        if timetable.is_empty():
            self._timetables.delete(timetable.timetable_id)
            logger.info("Deleted timetable %s (was empty after removing slot)", timetable.timetable_id)
            return None
        self._timetables.save(timetable)
        return timetable

    def _slot_fields(self, data: dict) -> dict:
        slot = parse_slot_payload(data)
        self._ensure_subjects_exist([slot.subject_id])
        return {
            "start_time": slot.start_time,
            "end_time": slot.end_time,
            "subject_id": slot.subject_id,
            "room": slot.room,
            "type": slot.type,
        }

    def _resolve_branch(self, value: str) -> Optional[Branch]:
        value = value.strip()
        if value.isdigit():
            return self._branches.get_by_id(int(value))
        return self._branches.get_by_code(value.upper()) or self._branches.get_by_name(value)

    def _ensure_subjects_exist(self, subject_ids: Iterable[int]) -> None:
        wanted = list(dict.fromkeys(int(i) for i in subject_ids))
        if not wanted:
            return
        found = self._subjects.get_many(wanted)
        missing = [str(i) for i in wanted if i not in found]
        if missing:
            raise ValidationError(f"Invalid subjects: {', '.join(missing)}")


def _require_admin(role: Role) -> None:
    if role != Role.ADMIN:
        raise AuthorizationError("Access restricted to administrators only")
