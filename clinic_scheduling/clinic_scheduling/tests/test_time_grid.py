"""
Tests for scheduling/time_grid.py

Tests backend/client slot grids, business hours and required slot sequences.
"""

import unittest
from datetime import time, timedelta

from clinic_scheduling.clinic_scheduling.scheduling.exceptions import ConfigurationError
from clinic_scheduling.clinic_scheduling.scheduling.time_grid import TimeGrid, date_range, to_time

from clinic_scheduling.clinic_scheduling.tests.utils import MONDAY, SATURDAY, SUNDAY, TUESDAY


class TestTimeGrid(unittest.TestCase):
	"""Tests for TimeGrid."""

	def setUp(self):
		self.grid = TimeGrid()

	def test_weekday_backend_slots(self):
		"""Test that a weekday has 10-minute slots from 09:00 to 15:50."""
		slots = self.grid.backend_slots(TUESDAY)

		self.assertEqual(len(slots), 42)
		self.assertEqual(slots[0], time(9, 0))
		self.assertEqual(slots[1], time(9, 10))
		self.assertEqual(slots[-1], time(15, 50))

	def test_saturday_closes_at_noon(self):
		"""Test Saturday business hours (09:00-12:00)."""
		self.assertEqual(len(self.grid.backend_slots(SATURDAY)), 18)
		self.assertEqual(self.grid.client_slots(SATURDAY)[-1], time(11, 30))

	def test_sunday_is_closed(self):
		"""Test that Sunday has no slots at all."""
		self.assertFalse(self.grid.is_open(SUNDAY))
		self.assertEqual(self.grid.backend_slots(SUNDAY), [])
		self.assertEqual(self.grid.client_slots(SUNDAY), [])

	def test_client_slots_are_backend_anchors(self):
		"""Test that every client slot is also a backend slot."""
		backend = set(self.grid.backend_slots(MONDAY))
		client = self.grid.client_slots(MONDAY)

		self.assertEqual(len(client), 14)
		self.assertTrue(set(client).issubset(backend))

	def test_required_backend_slots(self):
		"""Test the exact sequence covering [start, start + duration)."""
		required = self.grid.required_backend_slots("09:00", 30, TUESDAY)
		self.assertEqual(required, [time(9, 0), time(9, 10), time(9, 20)])

	def test_required_backend_slots_clipped_at_closing(self):
		"""Test that the sequence is cut at closing time."""
		required = self.grid.required_backend_slots(time(15, 40), 30, TUESDAY)

		self.assertEqual(required, [time(15, 40), time(15, 50)])
		self.assertFalse(self.grid.fits(time(15, 40), 30, TUESDAY))

	def test_last_client_slot_fits_only_short_durations(self):
		"""Test the 15:30 client slot against 30 and 60 minute services."""
		self.assertTrue(self.grid.fits("15:30", 30, TUESDAY))
		self.assertFalse(self.grid.fits("15:30", 60, TUESDAY))

	def test_required_backend_slots_closed_day(self):
		"""Test that a closed day requires no slots (and therefore never fits)."""
		self.assertEqual(self.grid.required_backend_slots("10:00", 30, SUNDAY), [])
		self.assertFalse(self.grid.fits("10:00", 30, SUNDAY))

	def test_start_off_grid_has_no_slots(self):
		"""Test that a start off the 10-minute grid or outside business hours never fits."""
		self.assertEqual(self.grid.required_backend_slots("15:45", 30, TUESDAY), [])
		self.assertEqual(self.grid.required_backend_slots("08:50", 30, TUESDAY), [])
		self.assertEqual(self.grid.required_backend_slots("16:00", 10, TUESDAY), [])
		self.assertFalse(self.grid.fits("15:45", 30, TUESDAY))

	def test_is_backend_anchor(self):
		self.assertTrue(self.grid.is_backend_anchor("09:00", TUESDAY))
		self.assertTrue(self.grid.is_backend_anchor(time(15, 50), TUESDAY))
		self.assertFalse(self.grid.is_backend_anchor("09:05", TUESDAY))
		self.assertFalse(self.grid.is_backend_anchor("16:00", TUESDAY))
		self.assertFalse(self.grid.is_backend_anchor("09:00", SUNDAY))

	def test_validate_duration(self):
		"""Test that durations must be positive multiples of 10 minutes."""
		self.assertEqual(self.grid.validate_duration(40), 40)
		self.assertEqual(self.grid.slots_needed(90), 9)

		for invalid in (0, -10, 25, True, "30", None):
			with self.assertRaises(ConfigurationError):
				self.grid.validate_duration(invalid)

	def test_client_granularity_must_be_multiple(self):
		"""Test that client granularity must be a multiple of backend granularity."""
		with self.assertRaises(ConfigurationError):
			TimeGrid(backend_slot_minutes=10, client_slot_minutes=25)

	def test_business_hours_validation(self):
		"""Test misaligned or inverted business hours."""
		with self.assertRaises(ConfigurationError):
			TimeGrid(business_hours={0: (time(9, 5), time(16, 0))})

		with self.assertRaises(ConfigurationError):
			TimeGrid(business_hours={0: (time(16, 0), time(9, 0))})

		with self.assertRaises(ConfigurationError):
			TimeGrid(business_hours={7: (time(9, 0), time(16, 0))})

	def test_custom_business_hours(self):
		"""Test a grid with custom hours (Sunday opened)."""
		grid = TimeGrid(business_hours={6: (time(10, 0), time(11, 0))})

		self.assertEqual(grid.client_slots(SUNDAY), [time(10, 0), time(10, 30)])
		self.assertFalse(grid.is_open(MONDAY))


class TestTimeHelpers(unittest.TestCase):
	"""Tests for time conversion helpers."""

	def test_to_time(self):
		"""Test conversions from database and string values."""
		self.assertEqual(to_time(timedelta(hours=9, minutes=30)), time(9, 30))
		self.assertEqual(to_time("14:10"), time(14, 10))
		self.assertEqual(to_time("14:10:00"), time(14, 10))
		self.assertEqual(to_time(time(8, 0)), time(8, 0))

	def test_to_time_invalid(self):
		with self.assertRaises(ConfigurationError):
			to_time("not-a-time")

		with self.assertRaises(ConfigurationError):
			to_time(930)

	def test_date_range_inclusive(self):
		days = date_range(MONDAY, SUNDAY)

		self.assertEqual(len(days), 7)
		self.assertEqual(days[0], MONDAY)
		self.assertEqual(days[-1], SUNDAY)
		self.assertEqual(date_range(TUESDAY, TUESDAY), [TUESDAY])
