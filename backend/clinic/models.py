from __future__ import annotations

import enum
from datetime import date, datetime, timezone
from typing import Optional

from sqlalchemy import JSON, Boolean, Date, DateTime, Enum, ForeignKey, Index, Integer, String, Text, text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from .db import Base
from .timeutils import DayOfWeek, TimeRange


def utcnow() -> datetime:
	return datetime.now(timezone.utc)


class Role(str, enum.Enum):
	STAFF = "Staff"
	DOCTOR = "Doctor"
	PATIENT = "Patient"


class AppointmentStatus(str, enum.Enum):
	BOOKED = "BOOKED"
	CHECKED_IN = "CHECKED_IN"
	COMPLETED = "COMPLETED"
	CANCELLED = "CANCELLED"

	@property
	def is_terminal(self) -> bool:
		return self in TERMINAL_STATUSES


TERMINAL_STATUSES = (AppointmentStatus.COMPLETED, AppointmentStatus.CANCELLED)
ACTIVE_STATUSES = (AppointmentStatus.BOOKED, AppointmentStatus.CHECKED_IN)


class Doctor(Base):
	__tablename__ = "doctors"

	id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
	name: Mapped[str] = mapped_column(String(200), nullable=False, index=True)
	email: Mapped[str] = mapped_column(String(320), nullable=False, unique=True)
	specialization: Mapped[Optional[str]] = mapped_column(String(200), nullable=True)

	appointments: Mapped[list[Appointment]] = relationship(back_populates="doctor", cascade="all, delete-orphan", passive_deletes=True)
	schedules: Mapped[list[DoctorSchedule]] = relationship(back_populates="doctor", cascade="all, delete-orphan", passive_deletes=True)


class Patient(Base):
	__tablename__ = "patients"

	id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
	name: Mapped[str] = mapped_column(String(200), nullable=False, index=True)
	email: Mapped[str] = mapped_column(String(320), nullable=False, unique=True)
	phone_no: Mapped[Optional[str]] = mapped_column(String(30), nullable=True)

	appointments: Mapped[list[Appointment]] = relationship(back_populates="patient", cascade="all, delete-orphan", passive_deletes=True)


class Room(Base):
	__tablename__ = "rooms"

	id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
	name: Mapped[str] = mapped_column(String(200), nullable=False)
	room_no: Mapped[str] = mapped_column(String(50), nullable=False, unique=True)
	floor: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)
	is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
	# administrative owner, opaque id issued by the identity provider
	staff_id: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)


class DoctorSchedule(Base):
	__tablename__ = "doctor_schedules"
	__table_args__ = (
		Index("ix_schedule_room_day", "room_id", "day_of_week"),
	)

	id: Mapped[int] = mapped_column(Integer, primary_key=True)
	doctor_id: Mapped[int] = mapped_column(ForeignKey("doctors.id", ondelete="CASCADE"), index=True)
	room_id: Mapped[int] = mapped_column(ForeignKey("rooms.id", ondelete="CASCADE"), index=True)
	day_of_week: Mapped[DayOfWeek] = mapped_column(Enum(DayOfWeek, native_enum=False, length=10), nullable=False)
	start_time: Mapped[str] = mapped_column(String(5), nullable=False)
	end_time: Mapped[str] = mapped_column(String(5), nullable=False)
	slot_duration: Mapped[int] = mapped_column(Integer, nullable=False, default=30)
	is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
	created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)
	updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)

	doctor: Mapped[Doctor] = relationship(back_populates="schedules")
	room: Mapped[Room] = relationship()

	@property
	def time_range(self) -> TimeRange:
		return TimeRange(self.start_time, self.end_time)


class Appointment(Base):
	__tablename__ = "appointments"

	id: Mapped[int] = mapped_column(Integer, primary_key=True)
	doctor_id: Mapped[int] = mapped_column(ForeignKey("doctors.id", ondelete="CASCADE"), index=True)
	patient_id: Mapped[int] = mapped_column(ForeignKey("patients.id", ondelete="CASCADE"), index=True)
	room_id: Mapped[int] = mapped_column(ForeignKey("rooms.id", ondelete="CASCADE"), index=True)
	appointment_date: Mapped[date] = mapped_column(Date, nullable=False, index=True)
	start_time: Mapped[str] = mapped_column(String(5), nullable=False)
	end_time: Mapped[str] = mapped_column(String(5), nullable=False)
	reason_for_visit: Mapped[Optional[str]] = mapped_column(String(500), nullable=True)
	status: Mapped[AppointmentStatus] = mapped_column(
		Enum(AppointmentStatus, native_enum=False, length=20), nullable=False, default=AppointmentStatus.BOOKED
	)
	created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)
	updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)

	doctor: Mapped[Doctor] = relationship(back_populates="appointments")
	patient: Mapped[Patient] = relationship(back_populates="appointments")
	room: Mapped[Room] = relationship()
	case_record: Mapped[Optional[CaseRecord]] = relationship(back_populates="appointment", cascade="all, delete-orphan", passive_deletes=True)

	@property
	def time_range(self) -> TimeRange:
		return TimeRange(self.start_time, self.end_time)


# Last line of defence against two concurrent writers taking the same exact slot.
Index(
	"uix_active_doctor_slot",
	Appointment.doctor_id,
	Appointment.appointment_date,
	Appointment.start_time,
	Appointment.end_time,
	unique=True,
	sqlite_where=text("status IN ('BOOKED', 'CHECKED_IN')"),
	postgresql_where=text("status IN ('BOOKED', 'CHECKED_IN')"),
)


class CaseRecord(Base):
	__tablename__ = "case_records"

	id: Mapped[int] = mapped_column(Integer, primary_key=True)
	appointment_id: Mapped[int] = mapped_column(
		ForeignKey("appointments.id", ondelete="CASCADE"), unique=True, nullable=False
	)
	patient_id: Mapped[int] = mapped_column(ForeignKey("patients.id", ondelete="CASCADE"), index=True)
	doctor_id: Mapped[int] = mapped_column(ForeignKey("doctors.id", ondelete="CASCADE"), index=True)
	chief_complaint: Mapped[str] = mapped_column(Text, nullable=False)
	diagnosis: Mapped[str] = mapped_column(Text, nullable=False)
	prescription: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
	notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
	vitals: Mapped[dict] = mapped_column(JSON, default=dict)  # blood_pressure, temperature, heart_rate, weight, height
	visit_date: Mapped[date] = mapped_column(Date, nullable=False)
	follow_up_date: Mapped[Optional[date]] = mapped_column(Date, nullable=True)
	created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)
	updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)

	appointment: Mapped[Appointment] = relationship(back_populates="case_record")
