from __future__ import annotations

from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from . import appointments, repositories
from .auth import Identity, get_identity
from .conflicts import BookingCandidate, check_booking_conflict
from .db import get_db
from .deps import PageParams, page_params
from .errors import ForbiddenError, InvalidInputError
from .models import Appointment, AppointmentStatus, Role
from .schemas import AppointmentCreate, AppointmentOut, AppointmentPage, AppointmentUpdate, ConflictCheckInput, ConflictCheckResult
from .timeutils import TimeRange

router = APIRouter(prefix="/appointments", tags=["appointments"])


def _ensure_visible(appt: Appointment, identity: Identity) -> None:
	if identity.role == Role.PATIENT and appt.patient_id != identity.caller_id:
		raise ForbiddenError("You can only access your own appointments")
	if identity.role == Role.DOCTOR and appt.doctor_id != identity.caller_id:
		raise ForbiddenError("You can only access appointments assigned to you")


def _candidate(payload: AppointmentCreate, identity: Identity) -> BookingCandidate:
	patient_id = payload.patient_id
	if identity.role == Role.PATIENT:
		if patient_id is not None and patient_id != identity.caller_id:
			raise ForbiddenError("Patients can only book appointments for themselves")
		patient_id = identity.caller_id
	if patient_id is None:
		raise InvalidInputError("patient_id is required")
	return BookingCandidate(
		doctor_id=payload.doctor_id,
		patient_id=patient_id,
		room_id=payload.room_id,
		date=payload.appointment_date,
		time_range=TimeRange(payload.start_time, payload.end_time),
	)


@router.get("", response_model=AppointmentPage)
async def list_appointments(
	status_filter: Optional[AppointmentStatus] = Query(default=None, alias="status"),
	doctor_id: Optional[int] = None,
	patient_id: Optional[int] = None,
	for_date: Optional[date] = None,
	paging: PageParams = Depends(page_params),
	identity: Identity = Depends(get_identity),
	db: AsyncSession = Depends(get_db),
):
	rows, total = await appointments.list_appointments(
		db,
		identity.caller_id,
		identity.role,
		page=paging.page,
		limit=paging.limit,
		status=status_filter,
		doctor_id=doctor_id,
		patient_id=patient_id,
		appointment_date=for_date,
	)
	return AppointmentPage(
		appointments=[AppointmentOut.model_validate(r) for r in rows],
		pagination=paging.describe(total),
	)


@router.post("", response_model=AppointmentOut, status_code=status.HTTP_201_CREATED)
async def book_appointment(
	payload: AppointmentCreate,
	identity: Identity = Depends(get_identity),
	db: AsyncSession = Depends(get_db),
):
	candidate = _candidate(payload, identity)
	return await appointments.book_appointment(db, candidate, payload.reason_for_visit)


@router.post("/conflicts", response_model=ConflictCheckResult)
async def check_conflicts(
	payload: ConflictCheckInput,
	identity: Identity = Depends(get_identity),
	db: AsyncSession = Depends(get_db),
):
	result = await check_booking_conflict(db, _candidate(payload, identity), payload.exclude_appointment_id)
	return ConflictCheckResult(
		ok=result.ok,
		kind=result.kind.value if result.kind else None,
		reason=result.reason,
		conflicting_appointment_id=result.conflicting_appointment_id,
	)


@router.get("/{appointment_id}", response_model=AppointmentOut)
async def get_appointment(
	appointment_id: int,
	identity: Identity = Depends(get_identity),
	db: AsyncSession = Depends(get_db),
):
	appt = await repositories.require_appointment(db, appointment_id)
	_ensure_visible(appt, identity)
	return appt


@router.patch("/{appointment_id}", response_model=AppointmentOut)
async def update_appointment(
	appointment_id: int,
	payload: AppointmentUpdate,
	identity: Identity = Depends(get_identity),
	db: AsyncSession = Depends(get_db),
):
	appt = await repositories.require_appointment(db, appointment_id)
	_ensure_visible(appt, identity)

	new_range = None
	if payload.start_time or payload.end_time:
		new_range = TimeRange(payload.start_time or appt.start_time, payload.end_time or appt.end_time)
	appt = await appointments.reschedule(
		db, appointment_id, identity.role, new_date=payload.appointment_date, new_time_range=new_range
	)
	if "reason_for_visit" in payload.model_fields_set:
		appt = await appointments.update_details(db, appointment_id, payload.reason_for_visit)
	return appt


@router.delete("/{appointment_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_appointment(
	appointment_id: int,
	identity: Identity = Depends(get_identity),
	db: AsyncSession = Depends(get_db),
):
	appt = await repositories.require_appointment(db, appointment_id)
	_ensure_visible(appt, identity)
	await appointments.delete_appointment(db, appointment_id)


@router.post("/{appointment_id}/check-in", response_model=AppointmentOut)
async def check_in(
	appointment_id: int,
	identity: Identity = Depends(get_identity),
	db: AsyncSession = Depends(get_db),
):
	appt = await repositories.require_appointment(db, appointment_id)
	_ensure_visible(appt, identity)
	return await appointments.check_in(db, appointment_id, initiator_role=identity.role)


@router.post("/{appointment_id}/complete", response_model=AppointmentOut)
async def complete(
	appointment_id: int,
	identity: Identity = Depends(get_identity),
	db: AsyncSession = Depends(get_db),
):
	appt = await repositories.require_appointment(db, appointment_id)
	_ensure_visible(appt, identity)
	return await appointments.complete(db, appointment_id, initiator_role=identity.role)


@router.post("/{appointment_id}/cancel", response_model=AppointmentOut)
async def cancel(
	appointment_id: int,
	identity: Identity = Depends(get_identity),
	db: AsyncSession = Depends(get_db),
):
	appt = await repositories.require_appointment(db, appointment_id)
	_ensure_visible(appt, identity)
	return await appointments.cancel(db, appointment_id)
