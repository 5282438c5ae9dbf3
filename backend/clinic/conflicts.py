"""Booking conflict detection across the doctor, patient and room of a candidate.

Checks run in a fixed order and the first failure wins:

1. the doctor already holds the identical slot on that date
2. the patient has an overlapping appointment
3. the doctor has an overlapping appointment
4. the room is occupied for an overlapping range

Only non-terminal (BOOKED, CHECKED_IN) appointments take part.
"""

from __future__ import annotations

import enum
import logging
from dataclasses import dataclass
from datetime import date
from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession

from . import repositories
from .errors import ConflictError
from .timeutils import TimeRange, overlaps

logger = logging.getLogger(__name__)


class ConflictKind(str, enum.Enum):
	EXACT_SLOT = "EXACT_SLOT"
	PATIENT = "PATIENT"
	DOCTOR = "DOCTOR"
	ROOM = "ROOM"


CONFLICT_REASONS: dict[ConflictKind, str] = {
	ConflictKind.EXACT_SLOT: "Exact slot already booked: another patient has an appointment with this doctor at the same time",
	ConflictKind.PATIENT: "Patient has a conflicting appointment during this time",
	ConflictKind.DOCTOR: "Doctor is already booked at this time with another patient",
	ConflictKind.ROOM: "Room is already occupied at this time",
}


@dataclass(frozen=True)
class BookingCandidate:
	doctor_id: int
	patient_id: int
	room_id: int
	date: date
	time_range: TimeRange


@dataclass(frozen=True)
class ConflictResult:
	kind: Optional[ConflictKind] = None
	conflicting_appointment_id: Optional[int] = None

	@property
	def ok(self) -> bool:
		return self.kind is None

	@property
	def reason(self) -> Optional[str]:
		return CONFLICT_REASONS[self.kind] if self.kind else None

	def raise_for_conflict(self) -> None:
		if self.kind is not None:
			raise ConflictError(self.reason)


async def _first_overlap(db: AsyncSession, candidate: BookingCandidate, exclude_id: Optional[int], **scope: int) -> Optional[int]:
	existing = await repositories.list_active_appointments(db, candidate.date, exclude_id=exclude_id, **scope)
	for appt in existing:
		if overlaps(candidate.time_range, appt.time_range):
			return appt.id
	return None


async def check_booking_conflict(
	db: AsyncSession,
	candidate: BookingCandidate,
	exclude_appointment_id: Optional[int] = None,
) -> ConflictResult:
	"""Return the first conflict for ``candidate``, or an ok result.

	``exclude_appointment_id`` leaves an appointment out of every check so a
	reschedule does not collide with itself.
	"""
	await repositories.require_doctor(db, candidate.doctor_id)
	exact = await repositories.find_exact_slot(
		db, candidate.doctor_id, candidate.date, candidate.time_range, exclude_id=exclude_appointment_id
	)
	if exact is not None:
		return _reject(ConflictKind.EXACT_SLOT, exact.id, candidate)

	scopes = (
		(ConflictKind.PATIENT, {"patient_id": candidate.patient_id}),
		(ConflictKind.DOCTOR, {"doctor_id": candidate.doctor_id}),
		(ConflictKind.ROOM, {"room_id": candidate.room_id}),
	)
	for kind, scope in scopes:
		hit = await _first_overlap(db, candidate, exclude_appointment_id, **scope)
		if hit is not None:
			return _reject(kind, hit, candidate)
	return ConflictResult()


def _reject(kind: ConflictKind, appointment_id: int, candidate: BookingCandidate) -> ConflictResult:
	logger.warning(
		"Booking conflict %s on %s %s with appointment %s",
		kind.value, candidate.date.isoformat(), candidate.time_range, appointment_id,
	)
	return ConflictResult(kind=kind, conflicting_appointment_id=appointment_id)
