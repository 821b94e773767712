# Copyright (c) 2026, Clinic Scheduling contributors
# For license information, please see license.txt

"""
Tests for Clinic Resource DocType

Tests kind/capacity rules, capability normalisation and capacity changes,
which only touch rows from the clinic business date onwards.
"""

from datetime import time
from unittest.mock import patch

import frappe
from frappe.tests.utils import FrappeTestCase
from frappe.utils import add_days, getdate, today

from clinic_scheduling.clinic_scheduling.scheduling.frappe_store import FrappeAvailabilityStore
from clinic_scheduling.clinic_scheduling.scheduling.models import SlotKey


class TestClinicResource(FrappeTestCase):
	"""Tests for Clinic Resource DocType."""

	def make(self, name, kind, capacity=1, capabilities=None):
		return frappe.get_doc({
			"doctype": "Clinic Resource",
			"resource_name": name,
			"resource_kind": kind,
			"capacity": capacity,
			"capabilities": capabilities,
			"is_active": 1
		}).insert(ignore_permissions=True)

	def test_exclusive_capacity_forced_to_one(self):
		"""Test that a staff member always has capacity 1."""
		resource = self.make("Test Exclusive Resource", "Exclusive", capacity=4)
		self.assertEqual(resource.capacity, 1)

	def test_shared_requires_capacity(self):
		with self.assertRaises(frappe.ValidationError):
			self.make("Test Shared Zero", "Shared", capacity=0)

	def test_capabilities_normalised(self):
		resource = self.make("Test Caps Resource", "Exclusive", capabilities=" Groomer \nVET\ngroomer")
		self.assertEqual(resource.capabilities, "groomer\nvet")

	def test_capacity_change_shifts_future_rows(self):
		"""Test that raising capacity keeps consumed units and adds the new ones."""
		resource = self.make("Test Shared Resize", "Shared", capacity=2)
		store = FrappeAvailabilityStore()
		target_date = getdate(add_days(today(), 10))

		shared = store.get_resources([resource.name])[resource.name]
		store.insert_missing_rows(shared, target_date, [time(9, 0)])
		store.claim(shared, SlotKey(resource.name, target_date, time(9, 0)))

		resource.capacity = 3
		resource.save(ignore_permissions=True)

		row = store.fetch_rows([resource.name], target_date, target_date)[0]
		self.assertEqual(row.remaining_capacity, 2)

	def test_capacity_cannot_drop_below_consumed(self):
		resource = self.make("Test Shared Shrink", "Shared", capacity=2)
		store = FrappeAvailabilityStore()
		target_date = getdate(add_days(today(), 10))

		shared = store.get_resources([resource.name])[resource.name]
		store.insert_missing_rows(shared, target_date, [time(9, 0)])
		key = SlotKey(resource.name, target_date, time(9, 0))
		store.claim(shared, key)
		store.claim(shared, key)

		resource.capacity = 1
		with self.assertRaises(frappe.ValidationError):
			resource.save(ignore_permissions=True)

	def test_capacity_change_starts_at_business_date(self):
		"""Test that rows before the business date keep their capacity and availability."""
		resource = self.make("Test Shared Business Date", "Shared", capacity=1)
		store = FrappeAvailabilityStore()
		business_date = getdate(add_days(today(), 10))
		earlier = getdate(add_days(today(), 9))

		shared = store.get_resources([resource.name])[resource.name]
		for target_date in (earlier, business_date):
			store.insert_missing_rows(shared, target_date, [time(9, 0)])
			store.claim(shared, SlotKey(resource.name, target_date, time(9, 0)))

		with patch(
			"clinic_scheduling.clinic_scheduling.doctype.clinic_resource.clinic_resource.business_today",
			return_value=business_date
		):
			resource.capacity = 2
			resource.save(ignore_permissions=True)

		before, after = store.fetch_rows([resource.name], earlier, business_date)
		self.assertEqual((before.remaining_capacity, before.available), (0, False))
		self.assertEqual((after.remaining_capacity, after.available), (1, True))

	def tearDown(self):
		"""Clean up after tests."""
		frappe.db.rollback()
