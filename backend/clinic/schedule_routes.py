from __future__ import annotations

from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from . import availability, repositories, schedules
from .auth import Identity, get_identity, require_role
from .db import get_db
from .deps import PageParams, page_params
from .models import Role
from .schemas import ScheduleCreate, ScheduleOut, SchedulePage, ScheduleUpdate, SlotOut, SlotsResult
from .timeutils import DayOfWeek, TimeRange

router = APIRouter(prefix="/schedules", tags=["schedules"])

manage_schedules = require_role(Role.STAFF, Role.DOCTOR)


def _slot_out(slot: availability.Slot) -> SlotOut:
	return SlotOut(
		slot_date=slot.slot_date,
		start_time=slot.time_range.start_time,
		end_time=slot.time_range.end_time,
		is_available=slot.is_available,
		room_id=slot.room_id,
	)


@router.get("", response_model=SchedulePage)
async def list_schedules(
	doctor_id: Optional[int] = None,
	room_id: Optional[int] = None,
	day_of_week: Optional[DayOfWeek] = None,
	is_active: Optional[bool] = None,
	paging: PageParams = Depends(page_params),
	identity: Identity = Depends(get_identity),
	db: AsyncSession = Depends(get_db),
):
	rows, total = await repositories.list_schedules(
		db,
		page=paging.page,
		limit=paging.limit,
		doctor_id=doctor_id,
		room_id=room_id,
		day_of_week=day_of_week,
		is_active=is_active,
	)
	return SchedulePage(schedules=[ScheduleOut.model_validate(r) for r in rows], pagination=paging.describe(total))


@router.get("/slots", response_model=SlotsResult)
async def available_slots(
	doctor_id: int,
	for_date: date = Query(alias="date"),
	identity: Identity = Depends(get_identity),
	db: AsyncSession = Depends(get_db),
):
	slots = await availability.get_available_slots(db, doctor_id, for_date)
	return SlotsResult(
		doctor_id=doctor_id,
		for_date=for_date,
		day_of_week=DayOfWeek.from_date(for_date),
		slots=[_slot_out(s) for s in slots],
	)


@router.get("/next-available", response_model=list[SlotOut])
async def next_available(
	doctor_id: int,
	start_date: date,
	days_ahead: int = Query(default=21, ge=1, le=90),
	limit: int = Query(default=3, ge=1, le=50),
	identity: Identity = Depends(get_identity),
	db: AsyncSession = Depends(get_db),
):
	slots = await availability.find_next_available_slots(db, doctor_id, start_date, days_ahead=days_ahead, limit=limit)
	return [_slot_out(s) for s in slots]


@router.get("/{schedule_id}", response_model=ScheduleOut)
async def get_schedule(
	schedule_id: int,
	identity: Identity = Depends(get_identity),
	db: AsyncSession = Depends(get_db),
):
	return await repositories.require_schedule(db, schedule_id)


@router.post("", response_model=ScheduleOut, status_code=status.HTTP_201_CREATED)
async def create_schedule(
	payload: ScheduleCreate,
	identity: Identity = Depends(manage_schedules),
	db: AsyncSession = Depends(get_db),
):
	values = schedules.ScheduleValues(
		doctor_id=payload.doctor_id,
		room_id=payload.room_id,
		day_of_week=payload.day_of_week,
		time_range=TimeRange(payload.start_time, payload.end_time),
		slot_duration=payload.slot_duration,
		is_active=payload.is_active,
	)
	return await schedules.upsert_schedule(db, values, identity.caller_id, identity.role)


@router.put("/{schedule_id}", response_model=ScheduleOut)
async def update_schedule(
	schedule_id: int,
	payload: ScheduleUpdate,
	identity: Identity = Depends(manage_schedules),
	db: AsyncSession = Depends(get_db),
):
	changes = payload.model_dump(exclude_unset=True)
	return await schedules.update_schedule(db, schedule_id, changes, identity.caller_id, identity.role)


@router.delete("/{schedule_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_schedule(
	schedule_id: int,
	identity: Identity = Depends(manage_schedules),
	db: AsyncSession = Depends(get_db),
):
	await schedules.delete_schedule(db, schedule_id, identity.caller_id, identity.role)
