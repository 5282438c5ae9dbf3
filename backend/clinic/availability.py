from __future__ import annotations

from dataclasses import dataclass
from datetime import date, timedelta
from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession

from . import repositories
from .timeutils import DayOfWeek, TimeRange, overlaps, split_into_slots


@dataclass(frozen=True)
class Slot:
	time_range: TimeRange
	is_available: bool
	room_id: int
	slot_date: Optional[date] = None


def next_occurrence_on_or_after(day_of_week: DayOfWeek | str, from_date: date) -> date:
	"""First calendar date falling on ``day_of_week`` that is not before ``from_date``."""
	target = DayOfWeek.parse(day_of_week)
	return from_date + timedelta(days=(target.weekday - from_date.weekday()) % 7)


async def get_available_slots(db: AsyncSession, doctor_id: int, the_date: date) -> list[Slot]:
	"""Slots from the doctor's weekly schedules on ``the_date``, flagged against active bookings.

	Schedules are walked in start-time order and each contributes its own
	slots in order; nothing is merged or re-sorted across schedules.
	"""
	await repositories.require_doctor(db, doctor_id)
	schedules = await repositories.list_active_schedules(db, doctor_id, DayOfWeek.from_date(the_date))
	if not schedules:
		return []

	busy = [a.time_range for a in await repositories.list_active_appointments(db, the_date, doctor_id=doctor_id)]

	slots: list[Slot] = []
	for schedule in schedules:
		for window in split_into_slots(schedule.time_range, schedule.slot_duration):
			taken = any(overlaps(window, booked) for booked in busy)
			slots.append(Slot(time_range=window, is_available=not taken, room_id=schedule.room_id, slot_date=the_date))
	return slots


async def find_next_available_slots(
	db: AsyncSession,
	doctor_id: int,
	start_date: date,
	days_ahead: int = 21,
	limit: int = 3,
) -> list[Slot]:
	"""Earliest free slots for a doctor, searching ``days_ahead`` days from ``start_date``."""
	await repositories.require_doctor(db, doctor_id)
	found: list[Slot] = []
	if limit <= 0:
		return found

	# Only visit dates the weekly template actually covers.
	weekdays: set[DayOfWeek] = set()
	for day in DayOfWeek:
		if await repositories.list_active_schedules(db, doctor_id, day):
			weekdays.add(day)
	if not weekdays:
		return found

	horizon = start_date + timedelta(days=days_ahead)
	candidates = sorted(
		d
		for day in weekdays
		for d in _occurrences(day, start_date, horizon)
	)
	for the_date in candidates:
		for slot in await get_available_slots(db, doctor_id, the_date):
			if slot.is_available:
				found.append(slot)
				if len(found) >= limit:
					return found
	return found


def _occurrences(day: DayOfWeek, start: date, horizon: date) -> list[date]:
	current = next_occurrence_on_or_after(day, start)
	dates = []
	while current < horizon:
		dates.append(current)
		current += timedelta(days=7)
	return dates
