from clinic import appointments
from clinic.conflicts import BookingCandidate, ConflictKind, check_booking_conflict
from clinic.errors import ConflictError, NotFoundError
from clinic.timeutils import TimeRange
from .support import MONDAY, TUESDAY, ClinicTestCase


class TestCheckBookingConflict(ClinicTestCase):

	async def asyncSetUp(self):
		await super().asyncSetUp()
		self.existing = await appointments.book_appointment(
			self.db, self.candidate(), "fever", locks=self.locks
		)

	def candidate(self, doctor=None, patient=None, room=None, day=MONDAY, start="09:00", end="09:30"):
		return BookingCandidate(
			doctor_id=(doctor or self.doctor).id,
			patient_id=(patient or self.patient).id,
			room_id=(room or self.room).id,
			date=day,
			time_range=TimeRange(start, end),
		)

	async def test_exact_slot_reported_before_overlap(self):
		# same patient too, but the identical doctor slot wins
		result = await check_booking_conflict(self.db, self.candidate(room=self.other_room))
		self.assertEqual(result.kind, ConflictKind.EXACT_SLOT)
		self.assertEqual(result.conflicting_appointment_id, self.existing.id)
		self.assertIn("already booked", result.reason)

	async def test_exact_slot_ignores_room(self):
		result = await check_booking_conflict(
			self.db, self.candidate(patient=self.other_patient, room=self.other_room)
		)
		self.assertEqual(result.kind, ConflictKind.EXACT_SLOT)

	async def test_patient_overlap(self):
		result = await check_booking_conflict(
			self.db, self.candidate(doctor=self.other_doctor, room=self.other_room, start="09:15", end="09:45")
		)
		self.assertEqual(result.kind, ConflictKind.PATIENT)

	async def test_doctor_overlap(self):
		result = await check_booking_conflict(
			self.db, self.candidate(patient=self.other_patient, room=self.other_room, start="09:15", end="09:45")
		)
		self.assertEqual(result.kind, ConflictKind.DOCTOR)
		self.assertEqual(result.reason, "Doctor is already booked at this time with another patient")

	async def test_room_overlap(self):
		result = await check_booking_conflict(
			self.db, self.candidate(doctor=self.other_doctor, patient=self.other_patient, start="09:15", end="09:45")
		)
		self.assertEqual(result.kind, ConflictKind.ROOM)
		with self.assertRaises(ConflictError) as ctx:
			result.raise_for_conflict()
		self.assertEqual(str(ctx.exception), "Room is already occupied at this time")

	async def test_disjoint_resources_accepted(self):
		result = await check_booking_conflict(
			self.db, self.candidate(doctor=self.other_doctor, patient=self.other_patient, room=self.other_room)
		)
		self.assertTrue(result.ok)
		self.assertIsNone(result.reason)
		result.raise_for_conflict()

	async def test_back_to_back_accepted(self):
		result = await check_booking_conflict(self.db, self.candidate(start="09:30", end="10:00"))
		self.assertTrue(result.ok)

	async def test_other_date_accepted(self):
		result = await check_booking_conflict(self.db, self.candidate(day=TUESDAY))
		self.assertTrue(result.ok)

	async def test_excluded_appointment_does_not_collide_with_itself(self):
		result = await check_booking_conflict(
			self.db, self.candidate(start="09:10", end="09:40"), exclude_appointment_id=self.existing.id
		)
		self.assertTrue(result.ok)

	async def test_terminal_appointments_ignored(self):
		await appointments.cancel(self.db, self.existing.id)
		result = await check_booking_conflict(self.db, self.candidate(patient=self.other_patient))
		self.assertTrue(result.ok)

	async def test_unknown_doctor(self):
		candidate = BookingCandidate(999, self.patient.id, self.room.id, MONDAY, TimeRange("11:00", "11:30"))
		with self.assertRaises(NotFoundError):
			await check_booking_conflict(self.db, candidate)
