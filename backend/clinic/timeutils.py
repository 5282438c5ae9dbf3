"""Time-of-day ranges, overlap detection and slot partitioning.

All times are zero-padded 24-hour ``"HH:MM"`` strings in clinic local time,
so plain string comparison orders them the same way as the clock does.
Every conflict check in the package goes through :func:`overlaps`.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from datetime import date
from enum import Enum
from typing import Iterator

from .errors import InvalidInputError

_HHMM = re.compile(r"^([01]\d|2[0-3]):([0-5]\d)$")


def parse_hhmm(value: str) -> str:
	if not isinstance(value, str) or not _HHMM.match(value):
		raise InvalidInputError(f"Invalid time {value!r}, expected HH:MM")
	return value


def to_minutes(value: str) -> int:
	hours, minutes = parse_hhmm(value).split(":")
	return int(hours) * 60 + int(minutes)


def from_minutes(total: int) -> str:
	return f"{total // 60:02d}:{total % 60:02d}"


@dataclass(frozen=True, order=True)
class TimeRange:
	start_time: str
	end_time: str

	def __post_init__(self) -> None:
		parse_hhmm(self.start_time)
		parse_hhmm(self.end_time)
		if not self.start_time < self.end_time:
			raise InvalidInputError(
				f"Start time {self.start_time} must be before end time {self.end_time}"
			)

	@property
	def minutes(self) -> int:
		return to_minutes(self.end_time) - to_minutes(self.start_time)

	def __str__(self) -> str:
		return f"{self.start_time}-{self.end_time}"


def overlaps(a: TimeRange, b: TimeRange) -> bool:
	"""Half-open overlap: ranges that only touch (10:00 end, 10:00 start) do not overlap."""
	return a.start_time < b.end_time and a.end_time > b.start_time


def split_into_slots(window: TimeRange, slot_minutes: int) -> Iterator[TimeRange]:
	"""Yield consecutive whole slots of ``slot_minutes``; a trailing partial slot is dropped."""
	if slot_minutes <= 0:
		raise InvalidInputError("Slot duration must be a positive number of minutes")
	current = to_minutes(window.start_time)
	end = to_minutes(window.end_time)
	while current + slot_minutes <= end:
		yield TimeRange(from_minutes(current), from_minutes(current + slot_minutes))
		current += slot_minutes


class DayOfWeek(str, Enum):
	# Declared in date.weekday() order: MONDAY == 0 ... SUNDAY == 6
	MONDAY = "MONDAY"
	TUESDAY = "TUESDAY"
	WEDNESDAY = "WEDNESDAY"
	THURSDAY = "THURSDAY"
	FRIDAY = "FRIDAY"
	SATURDAY = "SATURDAY"
	SUNDAY = "SUNDAY"

	@property
	def weekday(self) -> int:
		return _WEEK.index(self)

	@classmethod
	def from_date(cls, day: date) -> DayOfWeek:
		return _WEEK[day.weekday()]

	@classmethod
	def parse(cls, value: str | DayOfWeek) -> DayOfWeek:
		if isinstance(value, DayOfWeek):
			return value
		try:
			return cls(str(value).strip().upper())
		except ValueError:
			raise InvalidInputError(f"Unknown day of week {value!r}") from None


_WEEK: list[DayOfWeek] = list(DayOfWeek)
