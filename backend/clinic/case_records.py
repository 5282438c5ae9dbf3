from __future__ import annotations

import logging
from datetime import date
from typing import Any, Optional

from sqlalchemy import func, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from . import repositories
from .errors import ConflictError, ForbiddenError, InvalidStateError, NotFoundError
from .models import Appointment, AppointmentStatus, CaseRecord, Role, utcnow

logger = logging.getLogger(__name__)

VITAL_FIELDS = ("blood_pressure", "temperature", "heart_rate", "weight", "height")
RECORDABLE_STATUSES = (AppointmentStatus.CHECKED_IN, AppointmentStatus.COMPLETED)
EDITABLE_FIELDS = ("chief_complaint", "diagnosis", "prescription", "notes", "vitals", "follow_up_date")
NOT_CHECKED_IN = "Please change the appointment status to CHECKED_IN before creating a case record"


async def exists_for_appointment(db: AsyncSession, appointment_id: int) -> bool:
	stmt = select(func.count(CaseRecord.id)).where(CaseRecord.appointment_id == appointment_id)
	return bool((await db.execute(stmt)).scalar_one())


def _clean_vitals(vitals: Optional[dict[str, Any]]) -> dict[str, Any]:
	return {k: v for k, v in (vitals or {}).items() if k in VITAL_FIELDS and v not in (None, "")}


async def create_from_appointment(
	db: AsyncSession,
	appointment_id: int,
	role: Role,
	chief_complaint: str,
	diagnosis: str,
	prescription: Optional[str] = None,
	notes: Optional[str] = None,
	vitals: Optional[dict[str, Any]] = None,
	follow_up_date: Optional[date] = None,
) -> CaseRecord:
	"""Attach the medical note for a checked-in or completed appointment.

	Doctor, patient and visit date are copied from the appointment.
	"""
	if role == Role.PATIENT:
		raise ForbiddenError("Patients cannot create case records")
	appt = await repositories.require_appointment(db, appointment_id)
	if appt.status not in RECORDABLE_STATUSES:
		raise InvalidStateError(NOT_CHECKED_IN)
	if await exists_for_appointment(db, appointment_id):
		raise ConflictError("Case record already exists for this appointment")

	now = utcnow()
	record = CaseRecord(
		appointment_id=appt.id,
		patient_id=appt.patient_id,
		doctor_id=appt.doctor_id,
		visit_date=appt.appointment_date,
		chief_complaint=chief_complaint,
		diagnosis=diagnosis,
		prescription=prescription,
		notes=notes,
		vitals=_clean_vitals(vitals),
		follow_up_date=follow_up_date,
		created_at=now,
		updated_at=now,
	)
	try:
		# claim the appointment row; matches nothing if it was cancelled meanwhile
		claim = (
			update(Appointment)
			.where(Appointment.id == appt.id, Appointment.status.in_(RECORDABLE_STATUSES))
			.values(status=Appointment.status)
			.execution_options(synchronize_session=False)
		)
		if (await db.execute(claim)).rowcount == 0:
			raise InvalidStateError(NOT_CHECKED_IN)
		db.add(record)
		await db.commit()
	except IntegrityError as exc:
		await db.rollback()
		raise ConflictError("Case record already exists for this appointment") from exc
	except BaseException:
		await db.rollback()
		raise
	await db.refresh(record)
	logger.info("Case record %s created for appointment %s", record.id, appointment_id)
	return record


def _check_access(record: CaseRecord, caller_id: int, role: Role) -> None:
	if role == Role.PATIENT and record.patient_id != caller_id:
		raise ForbiddenError("Unauthorized access to case record")
	if role == Role.DOCTOR and record.doctor_id != caller_id:
		raise ForbiddenError("Unauthorized access to case record")


async def get_case_record(db: AsyncSession, record_id: int, caller_id: int, role: Role) -> CaseRecord:
	record = await repositories.get_case_record(db, record_id)
	if record is None:
		raise NotFoundError("Case record not found")
	_check_access(record, caller_id, role)
	return record


async def update_case_record(
	db: AsyncSession,
	record_id: int,
	caller_id: int,
	role: Role,
	changes: dict[str, Any],
) -> CaseRecord:
	if role == Role.PATIENT:
		raise ForbiddenError("Patients cannot update case records")
	record = await get_case_record(db, record_id, caller_id, role)
	for field in EDITABLE_FIELDS:
		if field not in changes:
			continue
		value = changes[field]
		if field == "vitals":
			value = _clean_vitals(value)
		setattr(record, field, value)
	record.updated_at = utcnow()
	await db.commit()
	await db.refresh(record)
	return record


async def delete_case_record(db: AsyncSession, record_id: int, role: Role) -> None:
	if role != Role.STAFF:
		raise ForbiddenError("Only staff can delete case records")
	record = await repositories.get_case_record(db, record_id)
	if record is None:
		raise NotFoundError("Case record not found")
	await db.delete(record)
	await db.commit()
	logger.info("Case record %s deleted", record_id)


async def list_case_records(
	db: AsyncSession,
	caller_id: int,
	role: Role,
	page: int = 1,
	limit: int = 10,
	**filters: Any,
) -> tuple[list[CaseRecord], int]:
	# staff may filter by anyone; other roles are pinned to themselves
	if role == Role.PATIENT:
		filters["patient_id"] = caller_id
	elif role == Role.DOCTOR:
		filters["doctor_id"] = caller_id
	return await repositories.list_case_records(db, page=page, limit=limit, **filters)
