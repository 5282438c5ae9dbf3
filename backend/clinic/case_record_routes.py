from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from . import case_records
from .auth import Identity, get_identity, require_role
from .db import get_db
from .deps import PageParams, page_params
from .models import Role
from .schemas import CaseRecordCreate, CaseRecordOut, CaseRecordPage, CaseRecordUpdate

router = APIRouter(prefix="/case-records", tags=["case-records"])


@router.get("", response_model=CaseRecordPage)
async def list_case_records(
	patient_id: Optional[int] = None,
	doctor_id: Optional[int] = None,
	appointment_id: Optional[int] = None,
	paging: PageParams = Depends(page_params),
	identity: Identity = Depends(get_identity),
	db: AsyncSession = Depends(get_db),
):
	rows, total = await case_records.list_case_records(
		db,
		identity.caller_id,
		identity.role,
		page=paging.page,
		limit=paging.limit,
		patient_id=patient_id,
		doctor_id=doctor_id,
		appointment_id=appointment_id,
	)
	return CaseRecordPage(case_records=[CaseRecordOut.model_validate(r) for r in rows], pagination=paging.describe(total))


@router.post("", response_model=CaseRecordOut, status_code=status.HTTP_201_CREATED)
async def create_case_record(
	payload: CaseRecordCreate,
	identity: Identity = Depends(require_role(Role.STAFF, Role.DOCTOR)),
	db: AsyncSession = Depends(get_db),
):
	return await case_records.create_from_appointment(
		db,
		payload.appointment_id,
		identity.role,
		chief_complaint=payload.chief_complaint,
		diagnosis=payload.diagnosis,
		prescription=payload.prescription,
		notes=payload.notes,
		vitals=payload.vitals.model_dump() if payload.vitals else None,
		follow_up_date=payload.follow_up_date,
	)


@router.get("/{record_id}", response_model=CaseRecordOut)
async def get_case_record(
	record_id: int,
	identity: Identity = Depends(get_identity),
	db: AsyncSession = Depends(get_db),
):
	return await case_records.get_case_record(db, record_id, identity.caller_id, identity.role)


@router.put("/{record_id}", response_model=CaseRecordOut)
async def update_case_record(
	record_id: int,
	payload: CaseRecordUpdate,
	identity: Identity = Depends(require_role(Role.STAFF, Role.DOCTOR)),
	db: AsyncSession = Depends(get_db),
):
	changes = payload.model_dump(exclude_unset=True)
	return await case_records.update_case_record(db, record_id, identity.caller_id, identity.role, changes)


@router.delete("/{record_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_case_record(
	record_id: int,
	identity: Identity = Depends(require_role(Role.STAFF)),
	db: AsyncSession = Depends(get_db),
):
	await case_records.delete_case_record(db, record_id, identity.role)
