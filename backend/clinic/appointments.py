from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from datetime import date
from typing import Any, AsyncIterator, Awaitable, Callable, Optional

from sqlalchemy import delete, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from . import case_records, repositories
from .conflicts import CONFLICT_REASONS, BookingCandidate, ConflictKind, check_booking_conflict
from .errors import ConflictError, ForbiddenError, InvalidStateError, NotFoundError, PreconditionError
from .locks import BookingLocks, appointment_keys, booking_locks
from .models import Appointment, AppointmentStatus, CaseRecord, Role, utcnow
from .timeutils import TimeRange

logger = logging.getLogger(__name__)

CaseRecordLookup = Callable[[AsyncSession, int], Awaitable[bool]]

# Allowed moves per status; terminal statuses map to nothing.
TRANSITIONS: dict[AppointmentStatus, frozenset[AppointmentStatus]] = {
	AppointmentStatus.BOOKED: frozenset(
		{AppointmentStatus.CHECKED_IN, AppointmentStatus.COMPLETED, AppointmentStatus.CANCELLED}
	),
	AppointmentStatus.CHECKED_IN: frozenset({AppointmentStatus.COMPLETED, AppointmentStatus.CANCELLED}),
	AppointmentStatus.COMPLETED: frozenset(),
	AppointmentStatus.CANCELLED: frozenset(),
}

if set(TRANSITIONS) != set(AppointmentStatus):
	raise RuntimeError("Transition table does not cover every appointment status")


def can_transition(current: AppointmentStatus, target: AppointmentStatus) -> bool:
	return target in TRANSITIONS[current]


async def _move(db: AsyncSession, appt: Appointment, target: AppointmentStatus) -> None:
	"""Write ``target`` only if the stored status still allows the move.

	A transition that committed since ``appt`` was read makes this one
	fail with InvalidStateError.
	"""
	if not can_transition(appt.status, target):
		raise InvalidStateError(
			f"Cannot change appointment status from {appt.status.value} to {target.value}"
		)
	sources = [status for status, targets in TRANSITIONS.items() if target in targets]
	stmt = (
		update(Appointment)
		.where(Appointment.id == appt.id, Appointment.status.in_(sources))
		.values(status=target, updated_at=utcnow())
		.execution_options(synchronize_session=False)
	)
	if (await db.execute(stmt)).rowcount == 0:
		current = await db.scalar(select(Appointment.status).where(Appointment.id == appt.id))
		if current is None:
			raise NotFoundError("Appointment not found")
		raise InvalidStateError(
			f"Cannot change appointment status from {current.value} to {target.value}"
		)
	await db.refresh(appt)


def _forbid_patient_status_change(initiator_role: Optional[Role]) -> None:
	if initiator_role == Role.PATIENT:
		raise ForbiddenError(
			"Patients are not allowed to change appointment status. Please use the cancel option if needed."
		)


@asynccontextmanager
async def _transaction(db: AsyncSession) -> AsyncIterator[None]:
	"""Commit on success; roll back on any failure so no partial write survives."""
	try:
		yield
		await db.commit()
	except IntegrityError as exc:
		await db.rollback()
		logger.warning("Storage rejected appointment write: %s", exc.orig)
		raise ConflictError(CONFLICT_REASONS[ConflictKind.EXACT_SLOT]) from exc
	except BaseException:
		await db.rollback()
		raise


async def book_appointment(
	db: AsyncSession,
	candidate: BookingCandidate,
	reason_for_visit: Optional[str] = None,
	*,
	locks: BookingLocks = booking_locks,
) -> Appointment:
	keys = appointment_keys(candidate.doctor_id, candidate.patient_id, candidate.room_id, candidate.date)
	async with locks.hold(keys):
		async with _transaction(db):
			await repositories.require_doctor(db, candidate.doctor_id)
			await repositories.require_patient(db, candidate.patient_id)
			await repositories.require_room(db, candidate.room_id)

			result = await check_booking_conflict(db, candidate)
			result.raise_for_conflict()

			now = utcnow()
			appt = Appointment(
				doctor_id=candidate.doctor_id,
				patient_id=candidate.patient_id,
				room_id=candidate.room_id,
				appointment_date=candidate.date,
				start_time=candidate.time_range.start_time,
				end_time=candidate.time_range.end_time,
				reason_for_visit=reason_for_visit,
				status=AppointmentStatus.BOOKED,
				created_at=now,
				updated_at=now,
			)
			db.add(appt)
	logger.info(
		"Booked appointment %s: doctor %s patient %s room %s on %s %s",
		appt.id, appt.doctor_id, appt.patient_id, appt.room_id, appt.appointment_date, candidate.time_range,
	)
	return appt


async def check_in(db: AsyncSession, appointment_id: int, *, initiator_role: Optional[Role] = None) -> Appointment:
	_forbid_patient_status_change(initiator_role)
	async with _transaction(db):
		appt = await repositories.require_appointment(db, appointment_id)
		if appt.status != AppointmentStatus.BOOKED:
			raise InvalidStateError(f"Only BOOKED appointments can be checked in (current: {appt.status.value})")
		await _move(db, appt, AppointmentStatus.CHECKED_IN)
	logger.info("Appointment %s checked in", appointment_id)
	return appt


async def complete(
	db: AsyncSession,
	appointment_id: int,
	*,
	initiator_role: Optional[Role] = None,
	has_case_record: Optional[CaseRecordLookup] = None,
) -> Appointment:
	_forbid_patient_status_change(initiator_role)
	lookup = has_case_record or case_records.exists_for_appointment
	async with _transaction(db):
		appt = await repositories.require_appointment(db, appointment_id)
		if not can_transition(appt.status, AppointmentStatus.COMPLETED):
			raise InvalidStateError(f"Cannot complete an appointment that is {appt.status.value}")
		if not await lookup(db, appointment_id):
			raise PreconditionError(
				"Cannot complete appointment without a medical case record. Please add a case record first."
			)
		await _move(db, appt, AppointmentStatus.COMPLETED)
	logger.info("Appointment %s completed", appointment_id)
	return appt


async def cancel(db: AsyncSession, appointment_id: int) -> Appointment:
	async with _transaction(db):
		appt = await repositories.require_appointment(db, appointment_id)
		await _move(db, appt, AppointmentStatus.CANCELLED)
	logger.info("Appointment %s cancelled", appointment_id)
	return appt


async def reschedule(
	db: AsyncSession,
	appointment_id: int,
	initiator_role: Role,
	new_date: Optional[date] = None,
	new_time_range: Optional[TimeRange] = None,
	*,
	locks: BookingLocks = booking_locks,
) -> Appointment:
	"""Move an appointment to a new date and/or time range.

	Patients may never reschedule; they cancel and book again instead.
	The new placement goes through the same conflict checks as a fresh
	booking, with the appointment itself left out of them.
	"""
	if initiator_role == Role.PATIENT and (new_date is not None or new_time_range is not None):
		raise ForbiddenError("Patients cannot reschedule appointments. Please cancel and create a new appointment.")

	appt = await repositories.require_appointment(db, appointment_id)
	if new_date is None and new_time_range is None:
		return appt

	target_date = new_date or appt.appointment_date
	keys = appointment_keys(appt.doctor_id, appt.patient_id, appt.room_id, target_date)
	async with locks.hold(keys):
		async with _transaction(db):
			await db.refresh(appt)
			if appt.status.is_terminal:
				raise InvalidStateError(f"Cannot reschedule an appointment that is {appt.status.value}")
			target_range = new_time_range or appt.time_range
			candidate = BookingCandidate(
				doctor_id=appt.doctor_id,
				patient_id=appt.patient_id,
				room_id=appt.room_id,
				date=target_date,
				time_range=target_range,
			)
			result = await check_booking_conflict(db, candidate, exclude_appointment_id=appt.id)
			result.raise_for_conflict()

			appt.appointment_date = target_date
			appt.start_time = target_range.start_time
			appt.end_time = target_range.end_time
			appt.updated_at = utcnow()
	logger.info("Appointment %s rescheduled to %s %s", appointment_id, target_date, target_range)
	return appt


async def update_details(db: AsyncSession, appointment_id: int, reason_for_visit: Optional[str]) -> Appointment:
	async with _transaction(db):
		appt = await repositories.require_appointment(db, appointment_id)
		if appt.status.is_terminal:
			raise InvalidStateError(f"Cannot edit an appointment that is {appt.status.value}")
		appt.reason_for_visit = reason_for_visit
		appt.updated_at = utcnow()
	return appt


async def delete_appointment(db: AsyncSession, appointment_id: int) -> None:
	async with _transaction(db):
		await repositories.require_appointment(db, appointment_id)
		await db.execute(delete(CaseRecord).where(CaseRecord.appointment_id == appointment_id))
		await db.execute(delete(Appointment).where(Appointment.id == appointment_id))
	logger.info("Appointment %s deleted", appointment_id)


async def list_appointments(
	db: AsyncSession,
	caller_id: int,
	role: Role,
	page: int = 1,
	limit: int = 10,
	**filters: Any,
) -> tuple[list[Appointment], int]:
	"""Patients see their own appointments, doctors those assigned to them, staff everything."""
	if role == Role.PATIENT:
		filters["patient_id"] = caller_id
	elif role == Role.DOCTOR:
		filters["doctor_id"] = caller_id
	return await repositories.list_appointments(db, page=page, limit=limit, **filters)
