from __future__ import annotations

from datetime import date
from typing import Any, Optional, Sequence

from sqlalchemy import and_, case, func, select, true
from sqlalchemy.ext.asyncio import AsyncSession

from .errors import NotFoundError
from .models import ACTIVE_STATUSES, Appointment, CaseRecord, Doctor, DoctorSchedule, Patient, Room
from .timeutils import DayOfWeek, TimeRange


async def get_doctor(db: AsyncSession, doctor_id: int) -> Optional[Doctor]:
	return await db.get(Doctor, doctor_id)


async def get_patient(db: AsyncSession, patient_id: int) -> Optional[Patient]:
	return await db.get(Patient, patient_id)


async def get_room(db: AsyncSession, room_id: int) -> Optional[Room]:
	return await db.get(Room, room_id)


async def require_doctor(db: AsyncSession, doctor_id: int) -> Doctor:
	doctor = await get_doctor(db, doctor_id)
	if doctor is None:
		raise NotFoundError("Doctor not found")
	return doctor


async def require_patient(db: AsyncSession, patient_id: int) -> Patient:
	patient = await get_patient(db, patient_id)
	if patient is None:
		raise NotFoundError("Patient not found")
	return patient


async def require_room(db: AsyncSession, room_id: int) -> Room:
	room = await get_room(db, room_id)
	if room is None:
		raise NotFoundError("Room not found")
	return room


async def get_appointment_by_id(db: AsyncSession, appointment_id: int) -> Optional[Appointment]:
	stmt = select(Appointment).where(Appointment.id == appointment_id)
	res = await db.execute(stmt)
	return res.scalar_one_or_none()


async def require_appointment(db: AsyncSession, appointment_id: int) -> Appointment:
	appt = await get_appointment_by_id(db, appointment_id)
	if appt is None:
		raise NotFoundError("Appointment not found")
	return appt


async def find_exact_slot(
	db: AsyncSession,
	doctor_id: int,
	the_date: date,
	time_range: TimeRange,
	exclude_id: Optional[int] = None,
) -> Optional[Appointment]:
	conds = [
		Appointment.doctor_id == doctor_id,
		Appointment.appointment_date == the_date,
		Appointment.start_time == time_range.start_time,
		Appointment.end_time == time_range.end_time,
		Appointment.status.in_(ACTIVE_STATUSES),
	]
	if exclude_id is not None:
		conds.append(Appointment.id != exclude_id)
	stmt = select(Appointment).where(and_(*conds)).limit(1)
	return (await db.execute(stmt)).scalar_one_or_none()


async def list_active_appointments(
	db: AsyncSession,
	the_date: date,
	doctor_id: Optional[int] = None,
	patient_id: Optional[int] = None,
	room_id: Optional[int] = None,
	exclude_id: Optional[int] = None,
) -> list[Appointment]:
	"""Non-terminal appointments on a date, optionally scoped to one doctor, patient or room."""
	conds = [Appointment.appointment_date == the_date, Appointment.status.in_(ACTIVE_STATUSES)]
	if doctor_id is not None:
		conds.append(Appointment.doctor_id == doctor_id)
	if patient_id is not None:
		conds.append(Appointment.patient_id == patient_id)
	if room_id is not None:
		conds.append(Appointment.room_id == room_id)
	if exclude_id is not None:
		conds.append(Appointment.id != exclude_id)
	stmt = select(Appointment).where(and_(*conds)).order_by(Appointment.start_time)
	return list((await db.execute(stmt)).scalars().all())


async def _paginate(db: AsyncSession, model: Any, conds: Sequence[Any], order_by: Sequence[Any], page: int, limit: int) -> tuple[list, int]:
	where = and_(true(), *conds)
	total = (await db.execute(select(func.count()).select_from(model).where(where))).scalar_one()
	stmt = select(model).where(where).order_by(*order_by).offset((page - 1) * limit).limit(limit)
	rows = list((await db.execute(stmt)).scalars().all())
	return rows, total


async def list_appointments(
	db: AsyncSession,
	page: int = 1,
	limit: int = 10,
	**filters: Any,
) -> tuple[list[Appointment], int]:
	conds = []
	for field in ("status", "doctor_id", "patient_id", "room_id", "appointment_date"):
		value = filters.get(field)
		if value is not None:
			conds.append(getattr(Appointment, field) == value)
	order = (Appointment.appointment_date.desc(), Appointment.start_time)
	return await _paginate(db, Appointment, conds, order, page, limit)


async def get_schedule(db: AsyncSession, schedule_id: int) -> Optional[DoctorSchedule]:
	return await db.get(DoctorSchedule, schedule_id)


async def require_schedule(db: AsyncSession, schedule_id: int) -> DoctorSchedule:
	schedule = await get_schedule(db, schedule_id)
	if schedule is None:
		raise NotFoundError("Schedule not found")
	return schedule


async def list_active_schedules(db: AsyncSession, doctor_id: int, day_of_week: DayOfWeek) -> list[DoctorSchedule]:
	stmt = (
		select(DoctorSchedule)
		.where(
			DoctorSchedule.doctor_id == doctor_id,
			DoctorSchedule.day_of_week == day_of_week,
			DoctorSchedule.is_active.is_(True),
		)
		.order_by(DoctorSchedule.start_time, DoctorSchedule.id)
	)
	return list((await db.execute(stmt)).scalars().all())


async def list_room_schedules(
	db: AsyncSession,
	room_id: int,
	day_of_week: DayOfWeek,
	exclude_id: Optional[int] = None,
) -> list[tuple[DoctorSchedule, Doctor]]:
	"""Active schedules occupying a room on a weekday, with their doctors."""
	conds = [
		DoctorSchedule.room_id == room_id,
		DoctorSchedule.day_of_week == day_of_week,
		DoctorSchedule.is_active.is_(True),
	]
	if exclude_id is not None:
		conds.append(DoctorSchedule.id != exclude_id)
	stmt = (
		select(DoctorSchedule, Doctor)
		.join(Doctor, Doctor.id == DoctorSchedule.doctor_id)
		.where(and_(*conds))
		.order_by(DoctorSchedule.start_time)
	)
	return [(schedule, doctor) for schedule, doctor in (await db.execute(stmt)).all()]


async def list_schedules(
	db: AsyncSession,
	page: int = 1,
	limit: int = 10,
	**filters: Any,
) -> tuple[list[DoctorSchedule], int]:
	conds = []
	for field in ("doctor_id", "room_id", "day_of_week", "is_active"):
		value = filters.get(field)
		if value is not None:
			conds.append(getattr(DoctorSchedule, field) == value)
	weekday = case({day: day.weekday for day in DayOfWeek}, value=DoctorSchedule.day_of_week)
	order = (weekday, DoctorSchedule.start_time, DoctorSchedule.id)
	return await _paginate(db, DoctorSchedule, conds, order, page, limit)


async def get_case_record_for_appointment(db: AsyncSession, appointment_id: int) -> Optional[CaseRecord]:
	stmt = select(CaseRecord).where(CaseRecord.appointment_id == appointment_id)
	return (await db.execute(stmt)).scalar_one_or_none()


async def get_case_record(db: AsyncSession, record_id: int) -> Optional[CaseRecord]:
	return await db.get(CaseRecord, record_id)


async def list_case_records(
	db: AsyncSession,
	page: int = 1,
	limit: int = 10,
	**filters: Any,
) -> tuple[list[CaseRecord], int]:
	conds = []
	for field in ("doctor_id", "patient_id", "appointment_id"):
		value = filters.get(field)
		if value is not None:
			conds.append(getattr(CaseRecord, field) == value)
	return await _paginate(db, CaseRecord, conds, (CaseRecord.created_at.desc(), CaseRecord.id), page, limit)
