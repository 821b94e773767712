"""
Tests for api/availability_api.py

Tests whitelisted API endpoints against rows generated on the site database.
"""

import json
import unittest
from datetime import timedelta
from unittest.mock import patch

import frappe
from frappe.utils import add_days, getdate, today

from clinic_scheduling.api.availability_api import (
	READ_RETRY,
	SlotConflictError,
	check_booking,
	engine_errors,
	get_availability_summary,
	get_available_staff,
	get_client_slots,
	get_dual_service_start_times,
	get_next_available_slot,
	get_slot_diagnostics,
	get_unavailable_dates,
	set_slot_availability,
)
from clinic_scheduling.api.security import clear_rate_limits
from clinic_scheduling.clinic_scheduling.scheduling.exceptions import (
	ConfigurationError,
	ConflictError,
	TransientStoreError,
)
from clinic_scheduling.clinic_scheduling.scheduling.frappe_store import FrappeAvailabilityStore
from clinic_scheduling.clinic_scheduling.scheduling.settings import get_scheduling_settings, get_time_grid
from clinic_scheduling.clinic_scheduling.tests.test_frappe_store import make_resource


STAFF = "Test Groomer API"
VET = "Test Vet API"


def next_tuesday(start):
	target = getdate(start)
	while target.weekday() != 1:
		target += timedelta(days=1)
	return target


class TestAvailabilityAPI(unittest.TestCase):
	"""Tests for availability API endpoints."""

	def setUp(self):
		"""Set up test data before each test."""
		frappe.set_user("Administrator")
		clear_rate_limits()

		make_resource(STAFF, capabilities="groomer")
		make_resource(VET, capabilities="vet")

		self.target_date = next_tuesday(add_days(today(), 30))
		self.date_str = self.target_date.strftime("%Y-%m-%d")

		# Solo este día tiene filas para los recursos de prueba
		grid = get_time_grid(get_scheduling_settings())
		store = FrappeAvailabilityStore()
		for resource in store.get_resources([STAFF, VET]).values():
			store.insert_missing_rows(resource, self.target_date, grid.backend_slots(self.target_date))

	def tearDown(self):
		"""Clean up after tests."""
		frappe.set_user("Administrator")
		frappe.db.rollback()

	def test_get_client_slots(self):
		"""Test that a free day returns client slots as HH:MM strings."""
		result = get_client_slots(STAFF, self.date_str, 30)

		self.assertIsInstance(result, list)
		self.assertEqual(result[0], "09:00")
		self.assertIn("15:30", result)

	def test_get_client_slots_json_resources(self):
		result = get_client_slots(json.dumps([STAFF, VET]), self.date_str, "60")
		self.assertEqual(result[-1], "15:00")

	def test_get_client_slots_invalid_input(self):
		"""Test that bad input is rejected with ValidationError."""
		with self.assertRaises(frappe.ValidationError):
			get_client_slots(STAFF, self.date_str, 25)

		with self.assertRaises(frappe.ValidationError):
			get_client_slots(STAFF, "03/11/2026", 30)

		with self.assertRaises(frappe.ValidationError):
			get_client_slots("Nonexistent Resource", self.date_str, 30)

		with self.assertRaises(frappe.ValidationError):
			get_client_slots("", self.date_str, 30)

	def test_get_dual_service_start_times(self):
		result = get_dual_service_start_times(self.date_str, STAFF, 60, VET, 30)

		self.assertEqual(result[0], "09:00")
		self.assertEqual(result[-1], "15:00")

	def test_get_dual_service_half_pair(self):
		with self.assertRaises(frappe.ValidationError):
			get_dual_service_start_times(self.date_str, STAFF, 60, VET, None)

	def test_get_unavailable_dates(self):
		"""Test that only the generated day is available within the window."""
		result = get_unavailable_dates(STAFF, 30)

		self.assertIsInstance(result, list)
		self.assertNotIn(self.date_str, result)
		self.assertEqual(result, sorted(result))

	def test_get_next_available_slot(self):
		result = get_next_available_slot(STAFF, 30)
		self.assertEqual(result, {"date": self.date_str, "start_time": "09:00"})

	def test_get_available_staff(self):
		result = get_available_staff(self.date_str, "09:00", 30, "groomer")

		names = [row["name"] for row in result]
		self.assertIn(STAFF, names)
		self.assertNotIn(VET, names)

	def test_check_booking(self):
		"""Test the booking check with a secondary component."""
		result = check_booking(self.date_str, "09:00", 60, json.dumps([STAFF]), VET, 30)

		self.assertTrue(result["available"])
		self.assertEqual(len(result["components"]), 2)

		with self.assertRaises(frappe.ValidationError):
			check_booking(self.date_str, "09:00", 60, STAFF, VET, None)

		result = check_booking(self.date_str, "15:45", 30, STAFF)
		self.assertFalse(result["available"])

	def test_get_availability_summary(self):
		result = get_availability_summary(STAFF, self.date_str, self.date_str, 30)
		self.assertEqual(result, [{"date": self.date_str, "available_slots": 14}])

		with self.assertRaises(frappe.ValidationError):
			get_availability_summary(STAFF, self.date_str, add_days(self.date_str, -1), 30)

	def test_get_slot_diagnostics(self):
		"""Test that diagnostics are restricted to System Manager."""
		result = get_slot_diagnostics(STAFF, self.date_str)

		self.assertEqual(result[0]["time_slot"], "09:00")
		self.assertTrue(result[0]["usable"])

		frappe.set_user("Guest")
		with self.assertRaises(frappe.PermissionError):
			get_slot_diagnostics(STAFF, self.date_str)

	def test_set_slot_availability(self):
		"""Test that a manual block hides the slots and is audited as override."""
		result = set_slot_availability(STAFF, self.date_str, '["09:00", "09:10", "09:20"]', available=0)

		self.assertEqual(result["changed"], ["09:00", "09:10", "09:20"])
		self.assertEqual(result["unchanged"], 0)
		self.assertNotIn("09:00", get_client_slots(STAFF, self.date_str, 30))

		events = FrappeAvailabilityStore().get_events(resource_id=STAFF, target_date=self.target_date)
		self.assertEqual(events[0].change_type, "override")
		self.assertTrue(events[0].trigger_source.startswith("manual:"))
		self.assertIsNone(events[0].appointment_id)

		result = set_slot_availability(STAFF, self.date_str, "09:00,09:10", available="true")
		self.assertEqual(result["changed"], ["09:00", "09:10"])

	def test_set_slot_availability_invalid_input(self):
		yesterday = add_days(today(), -1)

		for args in (
			(STAFF, yesterday, "09:00"),
			(STAFF, self.date_str, "09:05"),
			(STAFF, self.date_str, ""),
			(STAFF, self.date_str, "9h00"),
		):
			with self.assertRaises(frappe.ValidationError):
				set_slot_availability(*args, available=0)

		with self.assertRaises(frappe.ValidationError):
			set_slot_availability(STAFF, self.date_str, "09:00")

		with self.assertRaises(frappe.ValidationError):
			set_slot_availability(STAFF, self.date_str, "09:00", available="maybe")

	def test_set_slot_availability_requires_system_manager(self):
		frappe.set_user("Guest")
		with self.assertRaises(frappe.PermissionError):
			set_slot_availability(STAFF, self.date_str, "09:00", available=0)

		frappe.set_user("Administrator")
		self.assertIn("09:00", get_client_slots(STAFF, self.date_str, 30))


class TestEngineErrors(unittest.TestCase):
	"""Tests for the engine exception translation."""

	def tearDown(self):
		frappe.db.rollback()

	def test_conflict_becomes_slot_conflict_error(self):
		with self.assertRaises(SlotConflictError):
			with engine_errors("test"):
				raise ConflictError("Slot tomado")

		self.assertTrue(issubclass(SlotConflictError, frappe.ValidationError))

	def test_configuration_error_becomes_validation_error(self):
		with self.assertRaises(frappe.ValidationError):
			with engine_errors("test"):
				raise ConfigurationError("Duración inválida")

	def test_unexpected_error_is_logged_and_propagated(self):
		with patch.object(frappe, "log_error") as log_error:
			with self.assertRaises(KeyError):
				with engine_errors("test"):
					raise KeyError("resource")

		log_error.assert_called_once()
		self.assertEqual(log_error.call_args.kwargs["title"], "Availability API")

	def test_user_errors_are_not_logged(self):
		with patch.object(frappe, "log_error") as log_error:
			with self.assertRaises(frappe.ValidationError):
				with engine_errors("test"):
					frappe.throw("Fecha inválida")

		log_error.assert_not_called()

	def test_transient_error_becomes_query_timeout(self):
		with self.assertRaises(frappe.QueryTimeoutError):
			with engine_errors("test"):
				raise TransientStoreError("timeout")

	def test_read_retry_recovers_from_one_timeout(self):
		"""Test that read endpoints retry a single transient failure."""
		calls = []

		def flaky():
			calls.append(1)
			if len(calls) == 1:
				raise TransientStoreError("timeout")
			return ["09:00"]

		self.assertEqual(READ_RETRY.copy(sleep=lambda seconds: None)(flaky), ["09:00"])
		self.assertEqual(len(calls), 2)
