from __future__ import annotations

from datetime import date, datetime
from typing import Optional

from pydantic import BaseModel, Field

from .models import AppointmentStatus
from .timeutils import DayOfWeek

HHMM = r"^([01]\d|2[0-3]):[0-5]\d$"


class Pagination(BaseModel):
	page: int
	limit: int
	total: int
	pages: int


class AppointmentCreate(BaseModel):
	# patients booking for themselves may leave patient_id out
	patient_id: Optional[int] = None
	doctor_id: int
	room_id: int
	appointment_date: date
	start_time: str = Field(pattern=HHMM)
	end_time: str = Field(pattern=HHMM)
	reason_for_visit: Optional[str] = Field(default=None, max_length=500)


class ConflictCheckInput(AppointmentCreate):
	exclude_appointment_id: Optional[int] = None


class ConflictCheckResult(BaseModel):
	ok: bool
	kind: Optional[str] = None
	reason: Optional[str] = None
	conflicting_appointment_id: Optional[int] = None


class AppointmentUpdate(BaseModel):
	appointment_date: Optional[date] = None
	start_time: Optional[str] = Field(default=None, pattern=HHMM)
	end_time: Optional[str] = Field(default=None, pattern=HHMM)
	reason_for_visit: Optional[str] = Field(default=None, max_length=500)


class AppointmentOut(BaseModel):
	id: int
	doctor_id: int
	patient_id: int
	room_id: int
	appointment_date: date
	start_time: str
	end_time: str
	status: AppointmentStatus
	reason_for_visit: Optional[str] = None
	created_at: Optional[datetime] = None
	updated_at: Optional[datetime] = None

	class Config:
		from_attributes = True


class AppointmentPage(BaseModel):
	appointments: list[AppointmentOut]
	pagination: Pagination


class ScheduleCreate(BaseModel):
	doctor_id: int
	room_id: int
	day_of_week: DayOfWeek
	start_time: str = Field(pattern=HHMM)
	end_time: str = Field(pattern=HHMM)
	slot_duration: int = Field(default=30, gt=0)
	is_active: bool = True


class ScheduleUpdate(BaseModel):
	doctor_id: Optional[int] = None
	room_id: Optional[int] = None
	day_of_week: Optional[DayOfWeek] = None
	start_time: Optional[str] = Field(default=None, pattern=HHMM)
	end_time: Optional[str] = Field(default=None, pattern=HHMM)
	slot_duration: Optional[int] = Field(default=None, gt=0)
	is_active: Optional[bool] = None


class ScheduleOut(BaseModel):
	id: int
	doctor_id: int
	room_id: int
	day_of_week: DayOfWeek
	start_time: str
	end_time: str
	slot_duration: int
	is_active: bool

	class Config:
		from_attributes = True


class SchedulePage(BaseModel):
	schedules: list[ScheduleOut]
	pagination: Pagination


class SlotOut(BaseModel):
	slot_date: Optional[date] = None
	start_time: str
	end_time: str
	is_available: bool
	room_id: int


class SlotsResult(BaseModel):
	doctor_id: int
	for_date: date
	day_of_week: DayOfWeek
	slots: list[SlotOut]


class Vitals(BaseModel):
	blood_pressure: Optional[str] = None
	temperature: Optional[str] = None
	heart_rate: Optional[str] = None
	weight: Optional[str] = None
	height: Optional[str] = None


class CaseRecordCreate(BaseModel):
	appointment_id: int
	chief_complaint: str = Field(min_length=1)
	diagnosis: str = Field(min_length=1)
	prescription: Optional[str] = None
	notes: Optional[str] = None
	vitals: Optional[Vitals] = None
	follow_up_date: Optional[date] = None


class CaseRecordUpdate(BaseModel):
	chief_complaint: Optional[str] = Field(default=None, min_length=1)
	diagnosis: Optional[str] = Field(default=None, min_length=1)
	prescription: Optional[str] = None
	notes: Optional[str] = None
	vitals: Optional[Vitals] = None
	follow_up_date: Optional[date] = None


class CaseRecordOut(BaseModel):
	id: int
	appointment_id: int
	patient_id: int
	doctor_id: int
	chief_complaint: str
	diagnosis: str
	prescription: Optional[str] = None
	notes: Optional[str] = None
	vitals: dict = {}
	visit_date: date
	follow_up_date: Optional[date] = None

	class Config:
		from_attributes = True


class CaseRecordPage(BaseModel):
	case_records: list[CaseRecordOut]
	pagination: Pagination
