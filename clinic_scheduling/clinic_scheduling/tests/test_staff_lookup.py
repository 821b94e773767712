"""
Tests for scheduling/staff_lookup.py and scheduling/diagnostics.py
"""

import unittest
from datetime import datetime, time

from clinic_scheduling.clinic_scheduling.scheduling.diagnostics import get_slot_diagnostics
from clinic_scheduling.clinic_scheduling.scheduling.models import CONSUME, REVERT, CapacityChangeEvent, Resource
from clinic_scheduling.clinic_scheduling.scheduling.staff_lookup import find_available_resources
from clinic_scheduling.clinic_scheduling.scheduling.time_grid import TimeGrid

from clinic_scheduling.clinic_scheduling.tests.utils import (
	TUESDAY,
	InMemoryAvailabilityStore,
	facility,
	staff,
)


class TestFindAvailableResources(unittest.TestCase):
	"""Tests for find_available_resources."""

	def setUp(self):
		self.grid = TimeGrid()
		self.store = InMemoryAvailabilityStore([
			staff("Ana", "groomer"),
			staff("Bruno", "groomer", "bather"),
			staff("Carla", "vet"),
			facility("Bath", 3),
			Resource(id="Diego", capabilities=frozenset({"groomer"}), is_active=False),
		])
		self.store.seed_day(TUESDAY, self.grid)

	def test_filters_by_capability(self):
		"""Test that only active groomers free for the full duration are returned."""
		self.store.set_row("Ana", TUESDAY, time(9, 20), available=False)

		found = find_available_resources(self.store, self.grid, TUESDAY, "09:00", 30, "groomer")
		self.assertEqual([resource.id for resource in found], ["Bruno"])

		found = find_available_resources(self.store, self.grid, TUESDAY, "09:30", 30, "Groomer")
		self.assertEqual([resource.id for resource in found], ["Ana", "Bruno"])

	def test_without_capability_returns_all_staff(self):
		"""Test that shared facilities and inactive staff are never returned."""
		found = find_available_resources(self.store, self.grid, TUESDAY, time(10, 0), 60)
		self.assertEqual([resource.id for resource in found], ["Ana", "Bruno", "Carla"])

	def test_unknown_capability(self):
		found = find_available_resources(self.store, self.grid, TUESDAY, "10:00", 30, "surgeon")
		self.assertEqual(found, [])
		self.assertEqual(self.store.fetch_calls, 0)


class TestSlotDiagnostics(unittest.TestCase):
	"""Tests for get_slot_diagnostics."""

	def setUp(self):
		self.grid = TimeGrid()
		self.store = InMemoryAvailabilityStore([staff("S")])
		self.store.seed_day(TUESDAY, self.grid)

	def event(self, change_type, appointment_id, minute):
		return CapacityChangeEvent(
			resource_id="S",
			date=TUESDAY,
			time_slot=time(9, 0),
			change_type=change_type,
			trigger_source="booking",
			timestamp=datetime(2026, 11, 1, 12, minute),
			appointment_id=appointment_id
		)

	def test_latest_event_per_slot(self):
		"""Test that each slot shows its state and the most recent event."""
		self.store.set_row("S", TUESDAY, time(9, 0), available=False)
		self.store.append_events([
			self.event(CONSUME, "APT-1", 0),
			self.event(REVERT, "APT-1", 5),
			self.event(CONSUME, "APT-2", 10),
		])

		rows = get_slot_diagnostics(self.store, self.grid, "S", TUESDAY)

		self.assertEqual(len(rows), 42)
		self.assertEqual(rows[0]["time_slot"], "09:00")
		self.assertEqual(rows[0]["state"], "unavailable")
		self.assertFalse(rows[0]["usable"])
		self.assertEqual(rows[0]["change_type"], CONSUME)
		self.assertEqual(rows[0]["appointment_id"], "APT-2")

		self.assertEqual(rows[1]["state"], "available")
		self.assertIsNone(rows[1]["change_type"])

	def test_missing_row_reported(self):
		"""Test that a slot without a row is reported as unusable with no state."""
		self.store.drop_row("S", TUESDAY, time(9, 10))

		rows = get_slot_diagnostics(self.store, self.grid, "S", TUESDAY)

		self.assertIsNone(rows[1]["state"])
		self.assertFalse(rows[1]["usable"])
