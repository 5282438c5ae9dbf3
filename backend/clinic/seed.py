from __future__ import annotations

import asyncio
import logging

from sqlalchemy import select, func
from sqlalchemy.ext.asyncio import AsyncSession

from .db import SessionLocal
from .models import Doctor, DoctorSchedule, Patient, Room
from .timeutils import DayOfWeek

logger = logging.getLogger(__name__)


async def seed() -> None:
    async with SessionLocal() as db:  # type: AsyncSession
        # Doctor
        existing_dr = (await db.execute(select(Doctor).where(func.lower(Doctor.email) == "ahuja@example.com"))).scalar_one_or_none()
        if existing_dr is None:
            dr = Doctor(name="Dr. Ahuja", email="ahuja@example.com", specialization="General Physician")
            db.add(dr)
            await db.flush()
        else:
            dr = existing_dr

        # Consultation room
        room = (await db.execute(select(Room).where(Room.room_no == "101"))).scalar_one_or_none()
        if room is None:
            room = Room(name="Consultation 1", room_no="101", floor="1")
            db.add(room)
            await db.flush()

        patients_data = [
            ("Priya Sharma", "priya.sharma@gmail.com"),
            ("Arjun Patel", "arjun.patel@gmail.com"),
            ("Sneha Gupta", "sneha.gupta@gmail.com"),
        ]
        for name, email in patients_data:
            existing_pt = (await db.execute(select(Patient).where(func.lower(Patient.email) == email.lower()))).scalar_one_or_none()
            if existing_pt is None:
                db.add(Patient(name=name, email=email))

        # Weekday schedule: 09:00-12:00 and 14:00-17:00, 30 minute slots
        for day in list(DayOfWeek)[:5]:
            for start, end in (("09:00", "12:00"), ("14:00", "17:00")):
                row = (await db.execute(select(DoctorSchedule).where(
                    DoctorSchedule.doctor_id == dr.id,
                    DoctorSchedule.day_of_week == day,
                    DoctorSchedule.start_time == start,
                ))).scalar_one_or_none()
                if row is None:
                    db.add(DoctorSchedule(
                        doctor_id=dr.id,
                        room_id=room.id,
                        day_of_week=day,
                        start_time=start,
                        end_time=end,
                        slot_duration=30,
                    ))

        await db.commit()
        logger.info("Seeded demo doctor %s, room %s and %d patients", dr.name, room.room_no, len(patients_data))


if __name__ == "__main__":
    asyncio.run(seed())
