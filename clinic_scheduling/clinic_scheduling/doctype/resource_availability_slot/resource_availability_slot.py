# Copyright (c) 2026, Clinic Scheduling contributors
# For license information, please see license.txt

"""
Resource Availability Slot DocType

One row per (resource, date, backend slot). Absence of a row means the
slot is unavailable.
"""

import frappe
from frappe import _
from frappe.model.document import Document
from frappe.utils import get_time

from clinic_scheduling.clinic_scheduling.scheduling.models import EXCLUSIVE
from clinic_scheduling.clinic_scheduling.scheduling.settings import get_scheduling_settings
from clinic_scheduling.clinic_scheduling.scheduling.time_grid import to_minutes


class ResourceAvailabilitySlot(Document):
	"""Fila de disponibilidad; el estado depende del tipo de recurso."""

	def validate(self) -> None:
		"""
		Validación antes de guardar.

		- time_slot alineado al grid backend configurado
		- Exclusive: remaining_capacity siempre 0
		- Shared: remaining_capacity no supera la capacity del recurso
		"""
		self._validate_alignment()

		resource = frappe.get_cached_doc("Clinic Resource", self.resource)

		if resource.resource_kind == EXCLUSIVE:
			self.remaining_capacity = 0
			return

		if self.remaining_capacity > resource.capacity:
			frappe.throw(
				_(f"Remaining Capacity ({self.remaining_capacity}) no puede superar Capacity ({resource.capacity})")
			)

		self.available = 1 if self.remaining_capacity > 0 else 0

	def _validate_alignment(self) -> None:
		# El horario comercial está alineado al mismo grid contado desde medianoche
		slot_minutes = int(get_scheduling_settings().backend_slot_minutes)
		slot = get_time(self.time_slot)

		if to_minutes(slot) % slot_minutes or slot.second:
			frappe.throw(
				_(f"Time Slot {slot.strftime('%H:%M:%S')} debe estar alineado a {slot_minutes} minutos")
			)


def on_doctype_update():
	"""Índice único por (resource, date, time_slot): base del upsert idempotente."""
	frappe.db.add_unique(
		"Resource Availability Slot",
		["resource", "date", "time_slot"],
		constraint_name="unique_resource_date_slot"
	)
