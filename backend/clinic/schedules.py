from __future__ import annotations

import logging
from dataclasses import dataclass, replace
from typing import Any, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from . import repositories
from .errors import ConflictError, ForbiddenError, InvalidInputError
from .locks import BookingLocks, booking_locks
from .models import DoctorSchedule, Role, utcnow
from .timeutils import DayOfWeek, TimeRange, overlaps

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ScheduleValues:
	doctor_id: int
	room_id: int
	day_of_week: DayOfWeek
	time_range: TimeRange
	slot_duration: int = 30
	is_active: bool = True

	@classmethod
	def from_schedule(cls, schedule: DoctorSchedule) -> ScheduleValues:
		return cls(
			doctor_id=schedule.doctor_id,
			room_id=schedule.room_id,
			day_of_week=schedule.day_of_week,
			time_range=schedule.time_range,
			slot_duration=schedule.slot_duration,
			is_active=schedule.is_active,
		)


def _check_role(role: Role, caller_id: int, values: ScheduleValues, existing: Optional[DoctorSchedule]) -> None:
	if role == Role.PATIENT:
		raise ForbiddenError("Patients cannot manage doctor schedules")
	if role != Role.DOCTOR:
		return
	if existing is None:
		if values.doctor_id != caller_id:
			raise ForbiddenError("Doctors can only create their own schedules")
		return
	if existing.doctor_id != caller_id:
		raise ForbiddenError("Doctors can only update their own schedules")
	if values.doctor_id != existing.doctor_id:
		raise ForbiddenError("Cannot change schedule to another doctor")


async def _room_conflict(db: AsyncSession, values: ScheduleValues, exclude_id: Optional[int]) -> Optional[str]:
	taken = await repositories.list_room_schedules(db, values.room_id, values.day_of_week, exclude_id=exclude_id)
	for other, doctor in taken:
		if overlaps(values.time_range, other.time_range):
			return (
				f"Room is already booked by {doctor.name or doctor.email} "
				f"from {other.start_time} to {other.end_time} on {values.day_of_week.value}"
			)
	return None


async def upsert_schedule(
	db: AsyncSession,
	values: ScheduleValues,
	caller_id: int,
	role: Role,
	schedule_id: Optional[int] = None,
	*,
	locks: BookingLocks = booking_locks,
) -> DoctorSchedule:
	"""Create a weekly schedule, or overwrite ``schedule_id`` with ``values``.

	An active schedule may not overlap another active schedule in the same
	room on the same weekday, whichever doctor holds it. Touching ranges
	(one ending 12:00, the next starting 12:00) are fine.
	"""
	if values.slot_duration <= 0:
		raise InvalidInputError("Slot duration must be a positive number of minutes")

	existing = await repositories.require_schedule(db, schedule_id) if schedule_id is not None else None
	_check_role(role, caller_id, values, existing)
	await repositories.require_doctor(db, values.doctor_id)
	await repositories.require_room(db, values.room_id)

	async with locks.hold([("room", values.room_id, values.day_of_week)]):
		try:
			if values.is_active:
				reason = await _room_conflict(db, values, schedule_id)
				if reason:
					logger.warning("Schedule rejected: %s", reason)
					raise ConflictError(reason)

			schedule = existing or DoctorSchedule(created_at=utcnow())
			schedule.doctor_id = values.doctor_id
			schedule.room_id = values.room_id
			schedule.day_of_week = values.day_of_week
			schedule.start_time = values.time_range.start_time
			schedule.end_time = values.time_range.end_time
			schedule.slot_duration = values.slot_duration
			schedule.is_active = values.is_active
			schedule.updated_at = utcnow()
			if existing is None:
				db.add(schedule)
			await db.commit()
		except BaseException:
			await db.rollback()
			raise
	await db.refresh(schedule)
	logger.info(
		"Schedule %s saved: doctor %s room %s %s %s",
		schedule.id, schedule.doctor_id, schedule.room_id, schedule.day_of_week.value, values.time_range,
	)
	return schedule


async def update_schedule(
	db: AsyncSession,
	schedule_id: int,
	changes: dict[str, Any],
	caller_id: int,
	role: Role,
) -> DoctorSchedule:
	"""Apply a partial change set on top of the stored schedule."""
	existing = await repositories.require_schedule(db, schedule_id)
	current = ScheduleValues.from_schedule(existing)

	def pick(field: str, default: Any) -> Any:
		value = changes.get(field)
		return default if value is None else value

	merged = replace(
		current,
		doctor_id=pick("doctor_id", current.doctor_id),
		room_id=pick("room_id", current.room_id),
		day_of_week=DayOfWeek.parse(pick("day_of_week", current.day_of_week)),
		time_range=TimeRange(
			pick("start_time", current.time_range.start_time),
			pick("end_time", current.time_range.end_time),
		),
		slot_duration=pick("slot_duration", current.slot_duration),
		is_active=pick("is_active", current.is_active),
	)
	return await upsert_schedule(db, merged, caller_id, role, schedule_id=schedule_id)


async def delete_schedule(db: AsyncSession, schedule_id: int, caller_id: int, role: Role) -> None:
	schedule = await repositories.require_schedule(db, schedule_id)
	if role == Role.PATIENT:
		raise ForbiddenError("Patients cannot manage doctor schedules")
	if role == Role.DOCTOR and schedule.doctor_id != caller_id:
		raise ForbiddenError("Doctors can only delete their own schedules")
	await db.delete(schedule)
	await db.commit()
	logger.info("Schedule %s deleted", schedule_id)
