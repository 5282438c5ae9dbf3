"""HTTP surface, driven in-process through httpx against the ASGI app."""

import httpx

from clinic.db import get_db
from clinic.main import app
from .support import MONDAY, ClinicTestCase

STAFF = {"X-Caller-Id": "1", "X-Caller-Role": "Staff"}


class TestApi(ClinicTestCase):

	async def asyncSetUp(self):
		await super().asyncSetUp()

		async def override_get_db():
			async with self.Session() as session:
				yield session

		app.dependency_overrides[get_db] = override_get_db
		self.client = httpx.AsyncClient(transport=httpx.ASGITransport(app=app), base_url="http://test")

	async def asyncTearDown(self):
		await self.client.aclose()
		app.dependency_overrides.clear()
		await super().asyncTearDown()

	def as_patient(self, patient=None):
		return {"X-Caller-Id": str((patient or self.patient).id), "X-Caller-Role": "Patient"}

	def booking(self, start="09:00", end="09:30", patient=None, room=None):
		return {
			"patient_id": (patient or self.patient).id,
			"doctor_id": self.doctor.id,
			"room_id": (room or self.room).id,
			"appointment_date": MONDAY.isoformat(),
			"start_time": start,
			"end_time": end,
			"reason_for_visit": "fever",
		}

	async def test_health(self):
		resp = await self.client.get("/health")
		self.assertEqual(resp.status_code, 200)
		self.assertEqual(resp.json()["status"], "healthy")

	async def test_identity_required(self):
		resp = await self.client.get("/appointments")
		self.assertEqual(resp.status_code, 401)
		resp = await self.client.get("/appointments", headers={"X-Caller-Id": "1", "X-Caller-Role": "Janitor"})
		self.assertEqual(resp.status_code, 401)

	async def test_book_and_reject_overlap(self):
		resp = await self.client.post("/appointments", json=self.booking(), headers=STAFF)
		self.assertEqual(resp.status_code, 201)
		body = resp.json()
		self.assertEqual(body["status"], "BOOKED")
		self.assertEqual(body["start_time"], "09:00")

		resp = await self.client.post(
			"/appointments",
			json=self.booking("09:15", "09:45", patient=self.other_patient, room=self.other_room),
			headers=STAFF,
		)
		self.assertEqual(resp.status_code, 409)
		self.assertEqual(resp.json(), {
			"success": False,
			"message": "Doctor is already booked at this time with another patient",
			"error": "ConflictError",
		})

	async def test_conflict_preview(self):
		await self.client.post("/appointments", json=self.booking(), headers=STAFF)
		resp = await self.client.post(
			"/appointments/conflicts", json=self.booking(patient=self.other_patient), headers=STAFF
		)
		self.assertEqual(resp.status_code, 200)
		self.assertFalse(resp.json()["ok"])
		self.assertIn("Exact slot already booked", resp.json()["reason"])

	async def test_patient_books_only_for_self(self):
		resp = await self.client.post(
			"/appointments", json=self.booking(patient=self.other_patient), headers=self.as_patient()
		)
		self.assertEqual(resp.status_code, 403)

		payload = self.booking()
		del payload["patient_id"]
		resp = await self.client.post("/appointments", json=payload, headers=self.as_patient())
		self.assertEqual(resp.status_code, 201)
		self.assertEqual(resp.json()["patient_id"], self.patient.id)

	async def test_backwards_range_rejected(self):
		resp = await self.client.post("/appointments", json=self.booking("10:00", "09:00"), headers=STAFF)
		self.assertEqual(resp.status_code, 422)
		self.assertEqual(resp.json()["error"], "InvalidInputError")

	async def test_lifecycle(self):
		appt_id = (await self.client.post("/appointments", json=self.booking(), headers=STAFF)).json()["id"]

		resp = await self.client.post(f"/appointments/{appt_id}/check-in", headers=self.as_patient())
		self.assertEqual(resp.status_code, 403)
		resp = await self.client.post(f"/appointments/{appt_id}/check-in", headers=STAFF)
		self.assertEqual(resp.json()["status"], "CHECKED_IN")

		resp = await self.client.post(f"/appointments/{appt_id}/complete", headers=STAFF)
		self.assertEqual(resp.status_code, 400)

		doctor = {"X-Caller-Id": str(self.doctor.id), "X-Caller-Role": "Doctor"}
		resp = await self.client.post(
			"/case-records",
			json={"appointment_id": appt_id, "chief_complaint": "fever", "diagnosis": "flu"},
			headers=doctor,
		)
		self.assertEqual(resp.status_code, 201)
		self.assertEqual(resp.json()["visit_date"], MONDAY.isoformat())

		resp = await self.client.post(f"/appointments/{appt_id}/complete", headers=doctor)
		self.assertEqual(resp.json()["status"], "COMPLETED")
		resp = await self.client.post(f"/appointments/{appt_id}/cancel", headers=STAFF)
		self.assertEqual(resp.status_code, 409)

	async def test_other_patients_appointment_hidden(self):
		appt_id = (await self.client.post("/appointments", json=self.booking(), headers=STAFF)).json()["id"]
		resp = await self.client.get(f"/appointments/{appt_id}", headers=self.as_patient(self.other_patient))
		self.assertEqual(resp.status_code, 403)
		resp = await self.client.get("/appointments", headers=self.as_patient(self.other_patient))
		self.assertEqual(resp.json()["pagination"]["total"], 0)
		resp = await self.client.get("/appointments/999", headers=STAFF)
		self.assertEqual(resp.status_code, 404)

	async def test_schedule_and_slots(self):
		schedule = {
			"doctor_id": self.doctor.id,
			"room_id": self.room.id,
			"day_of_week": "MONDAY",
			"start_time": "09:00",
			"end_time": "12:00",
			"slot_duration": 30,
		}
		resp = await self.client.post("/schedules", json=schedule, headers=self.as_patient())
		self.assertEqual(resp.status_code, 403)
		resp = await self.client.post("/schedules", json=schedule, headers=STAFF)
		self.assertEqual(resp.status_code, 201)

		clash = dict(schedule, doctor_id=self.other_doctor.id, start_time="11:00", end_time="13:00")
		resp = await self.client.post("/schedules", json=clash, headers=STAFF)
		self.assertEqual(resp.status_code, 409)
		self.assertIn("Dr. Ahuja", resp.json()["message"])

		await self.client.post("/appointments", json=self.booking(), headers=STAFF)
		resp = await self.client.get(
			"/schedules/slots",
			params={"doctor_id": self.doctor.id, "date": MONDAY.isoformat()},
			headers=self.as_patient(),
		)
		self.assertEqual(resp.status_code, 200)
		body = resp.json()
		self.assertEqual(body["day_of_week"], "MONDAY")
		self.assertEqual(len(body["slots"]), 6)
		self.assertFalse(body["slots"][0]["is_available"])
		self.assertTrue(all(s["is_available"] for s in body["slots"][1:]))

		resp = await self.client.get(
			"/schedules/next-available",
			params={"doctor_id": self.doctor.id, "start_date": MONDAY.isoformat(), "limit": 2},
			headers=STAFF,
		)
		self.assertEqual([s["start_time"] for s in resp.json()], ["09:30", "10:00"])

	async def test_rejections_are_logged(self):
		with self.assertLogs("clinic.main", level="INFO") as logs:
			resp = await self.client.get("/appointments/999", headers=STAFF)
		self.assertEqual(resp.status_code, 404)
		self.assertIn("GET /appointments/999 rejected (NotFoundError): Appointment not found", logs.output[0])

	async def test_slots_for_unknown_doctor(self):
		resp = await self.client.get(
			"/schedules/slots", params={"doctor_id": 999, "date": MONDAY.isoformat()}, headers=STAFF
		)
		self.assertEqual(resp.status_code, 404)
		self.assertEqual(resp.json()["error"], "NotFoundError")
