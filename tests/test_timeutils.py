import itertools
import unittest
from datetime import date

from clinic.errors import InvalidInputError
from clinic.timeutils import DayOfWeek, TimeRange, from_minutes, overlaps, split_into_slots, to_minutes


class TestOverlaps(unittest.TestCase):

	def test_back_to_back_ranges_do_not_overlap(self):
		self.assertFalse(overlaps(TimeRange("09:00", "10:00"), TimeRange("10:00", "11:00")))
		self.assertFalse(overlaps(TimeRange("10:00", "11:00"), TimeRange("09:00", "10:00")))

	def test_partial_overlap(self):
		self.assertTrue(overlaps(TimeRange("09:00", "10:00"), TimeRange("09:30", "10:30")))

	def test_containment_and_identity(self):
		outer = TimeRange("09:00", "12:00")
		self.assertTrue(overlaps(outer, TimeRange("10:00", "10:30")))
		self.assertTrue(overlaps(outer, outer))

	def test_symmetry(self):
		ranges = [
			TimeRange("08:00", "09:00"),
			TimeRange("08:30", "09:30"),
			TimeRange("09:00", "10:00"),
			TimeRange("09:15", "09:45"),
			TimeRange("07:00", "12:00"),
			TimeRange("13:00", "13:05"),
		]
		for a, b in itertools.product(ranges, repeat=2):
			self.assertEqual(overlaps(a, b), overlaps(b, a), f"{a} vs {b}")

	def test_string_order_matches_clock_order(self):
		self.assertTrue(overlaps(TimeRange("09:50", "10:10"), TimeRange("10:05", "10:30")))
		self.assertFalse(overlaps(TimeRange("08:00", "09:59"), TimeRange("09:59", "10:00")))


class TestTimeRange(unittest.TestCase):

	def test_start_must_precede_end(self):
		with self.assertRaises(InvalidInputError):
			TimeRange("10:00", "10:00")
		with self.assertRaises(InvalidInputError):
			TimeRange("11:00", "10:00")

	def test_rejects_malformed_times(self):
		for bad in ("9:00", "24:00", "10:60", "ten", ""):
			with self.assertRaises(InvalidInputError):
				TimeRange(bad, "23:00")

	def test_minutes_round_trip(self):
		self.assertEqual(to_minutes("13:45"), 825)
		self.assertEqual(from_minutes(825), "13:45")
		self.assertEqual(TimeRange("09:00", "10:30").minutes, 90)


class TestSplitIntoSlots(unittest.TestCase):

	def test_exact_multiple(self):
		slots = list(split_into_slots(TimeRange("09:00", "10:00"), 30))
		self.assertEqual(slots, [TimeRange("09:00", "09:30"), TimeRange("09:30", "10:00")])

	def test_partial_remainder_dropped(self):
		slots = list(split_into_slots(TimeRange("09:00", "09:45"), 30))
		self.assertEqual(slots, [TimeRange("09:00", "09:30")])

	def test_window_shorter_than_slot(self):
		self.assertEqual(list(split_into_slots(TimeRange("09:00", "09:20"), 30)), [])

	def test_slots_are_back_to_back(self):
		slots = list(split_into_slots(TimeRange("08:00", "12:00"), 20))
		self.assertEqual(len(slots), 12)
		for first, second in zip(slots, slots[1:]):
			self.assertEqual(first.end_time, second.start_time)
			self.assertFalse(overlaps(first, second))

	def test_non_positive_duration(self):
		with self.assertRaises(InvalidInputError):
			list(split_into_slots(TimeRange("09:00", "10:00"), 0))


class TestDayOfWeek(unittest.TestCase):

	def test_from_date_matches_calendar(self):
		self.assertEqual(DayOfWeek.from_date(date(2024, 1, 1)), DayOfWeek.MONDAY)
		self.assertEqual(DayOfWeek.from_date(date(2023, 12, 31)), DayOfWeek.SUNDAY)
		self.assertEqual(DayOfWeek.from_date(date(2026, 11, 6)), DayOfWeek.FRIDAY)

	def test_index_follows_weekday(self):
		for offset in range(7):
			day = date(2026, 11, 2 + offset)
			self.assertEqual(DayOfWeek.from_date(day).weekday, day.weekday())

	def test_parse(self):
		self.assertEqual(DayOfWeek.parse("monday"), DayOfWeek.MONDAY)
		self.assertEqual(DayOfWeek.parse(" Sunday "), DayOfWeek.SUNDAY)
		with self.assertRaises(InvalidInputError):
			DayOfWeek.parse("Funday")
