"""Shared fixtures: a throw-away SQLite database with a small clinic in it."""

import os
import tempfile
import unittest
from datetime import date

from clinic.db import Base, make_engine, make_sessionmaker
from clinic.locks import BookingLocks
from clinic.models import Doctor, Patient, Room

# 2026-11-02 is a Monday
MONDAY = date(2026, 11, 2)
TUESDAY = date(2026, 11, 3)


class ClinicTestCase(unittest.IsolatedAsyncioTestCase):
	"""Each test gets a fresh database file, session and lock registry."""

	async def asyncSetUp(self):
		self._tmp = tempfile.TemporaryDirectory()
		url = f"sqlite+aiosqlite:///{os.path.join(self._tmp.name, 'clinic-test.db')}"
		self.engine = make_engine(url)
		async with self.engine.begin() as conn:
			await conn.run_sync(Base.metadata.create_all)
		self.Session = make_sessionmaker(self.engine)
		self.db = self.Session()
		self.locks = BookingLocks()

		self.doctor = Doctor(name="Dr. Ahuja", email="ahuja@example.com", specialization="General Physician")
		self.other_doctor = Doctor(name="Dr. Rao", email="rao@example.com")
		self.patient = Patient(name="Priya Sharma", email="priya@example.com")
		self.other_patient = Patient(name="Arjun Patel", email="arjun@example.com")
		self.third_patient = Patient(name="Sneha Gupta", email="sneha@example.com")
		self.room = Room(name="Consultation 1", room_no="101")
		self.other_room = Room(name="Consultation 2", room_no="102")
		self.db.add_all([
			self.doctor, self.other_doctor,
			self.patient, self.other_patient, self.third_patient,
			self.room, self.other_room,
		])
		await self.db.commit()
		# detached, so a rollback cannot expire them
		self.db.expunge_all()

	async def asyncTearDown(self):
		await self.db.close()
		await self.engine.dispose()
		self._tmp.cleanup()
