# Copyright (c) 2026, Clinic Scheduling contributors
# For license information, please see license.txt

"""
Capacity Change Event DocType

Append-only audit trail of every capacity mutation (consume, revert,
override, edit-shift, cron).
"""

import frappe
from frappe import _
from frappe.model.document import Document


class CapacityChangeEvent(Document):
	"""Evento de auditoría: se inserta una vez y no se modifica ni elimina."""

	def validate(self) -> None:
		if not self.is_new():
			frappe.throw(_("Capacity Change Event es de solo inserción"))

		if self.change_type != "cron" and not self.time_slot:
			frappe.throw(_(f"Time Slot es requerido para eventos {self.change_type}"))

	def on_trash(self) -> None:
		frappe.throw(_("Capacity Change Event es de solo inserción"))


def on_doctype_update():
	frappe.db.add_index("Capacity Change Event", ["resource", "date", "time_slot"])
