from __future__ import annotations

import asyncio
from contextlib import asynccontextmanager
from datetime import date
from typing import AsyncIterator, Hashable, Iterable


class BookingLocks:
	"""Per-key asyncio locks held across a check-then-write sequence.

	Keys are acquired in sorted order so two writers contending for
	overlapping key sets cannot deadlock. A lock is dropped from the
	registry once nobody holds or waits on it.
	"""

	def __init__(self) -> None:
		self._locks: dict[Hashable, asyncio.Lock] = {}
		self._users: dict[Hashable, int] = {}

	def __len__(self) -> int:
		return len(self._locks)

	def _checkout(self, key: Hashable) -> asyncio.Lock:
		lock = self._locks.get(key)
		if lock is None:
			lock = self._locks[key] = asyncio.Lock()
		self._users[key] = self._users.get(key, 0) + 1
		return lock

	def _checkin(self, key: Hashable) -> None:
		self._users[key] -= 1
		if self._users[key] == 0:
			del self._users[key]
			del self._locks[key]

	@asynccontextmanager
	async def hold(self, keys: Iterable[Hashable]) -> AsyncIterator[None]:
		ordered = sorted(set(keys), key=repr)
		acquired: list[Hashable] = []
		try:
			for key in ordered:
				lock = self._checkout(key)
				try:
					await lock.acquire()
				except BaseException:
					self._checkin(key)
					raise
				acquired.append(key)
			yield
		finally:
			for key in reversed(acquired):
				self._locks[key].release()
				self._checkin(key)


def appointment_keys(doctor_id: int, patient_id: int, room_id: int, day: date) -> list[tuple]:
	return [
		("doctor", doctor_id, day),
		("patient", patient_id, day),
		("room", room_id, day),
	]


booking_locks = BookingLocks()
