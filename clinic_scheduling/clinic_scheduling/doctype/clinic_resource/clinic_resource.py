# Copyright (c) 2026, Clinic Scheduling contributors
# For license information, please see license.txt

"""
Clinic Resource DocType

Bookable capacity unit:
- Exclusive: a staff member (groomer, vet), capacity 1
- Shared: a facility used concurrently (e.g. bathing station), capacity N
"""

import frappe
from frappe import _
from frappe.model.document import Document

from clinic_scheduling.clinic_scheduling.scheduling.models import (
	EXCLUSIVE,
	SHARED,
	normalize_capabilities,
)
from clinic_scheduling.clinic_scheduling.scheduling.settings import business_today


class ClinicResource(Document):
	"""
	Clinic Resource with validations.

	Validations:
	- resource_kind required (Exclusive/Shared)
	- Exclusive: capacity forced to 1
	- Shared: capacity > 0, cannot shrink below consumed slots
	- capabilities normalised (one tag per line, lower-case, sorted)
	"""

	def validate(self) -> None:
		"""
		Validación antes de guardar.
		"""
		self._validate_kind_and_capacity()
		self._normalize_capabilities()

	def _validate_kind_and_capacity(self) -> None:
		if self.resource_kind not in (EXCLUSIVE, SHARED):
			frappe.throw(_("Resource Kind debe ser Exclusive o Shared"))

		if self.resource_kind == EXCLUSIVE:
			# Un miembro del staff atiende una cita a la vez
			self.capacity = 1
			return

		if not self.capacity or self.capacity <= 0:
			frappe.throw(_("Capacity debe ser mayor que 0 para recursos Shared"))

		if not self.is_new() and self.has_value_changed("capacity"):
			self._validate_capacity_change()

	def _validate_capacity_change(self) -> None:
		"""
		Al cambiar la capacidad de un recurso Shared, no puede quedar por debajo
		de lo ya consumido en slots futuros.
		"""
		previous = self.get_doc_before_save()
		if not previous:
			return

		max_consumed = frappe.db.sql("""
			SELECT MAX(%s - remaining_capacity)
			FROM `tabResource Availability Slot`
			WHERE resource = %s
			AND date >= %s
		""", (previous.capacity, self.name, business_today()))[0][0] or 0

		if max_consumed > self.capacity:
			frappe.throw(
				_(f"Capacity ({self.capacity}) es menor que los cupos ya reservados ({max_consumed})")
			)

	def _normalize_capabilities(self) -> None:
		tags = normalize_capabilities(self.capabilities)
		self.capabilities = "\n".join(sorted(tags)) if tags else None

	def on_update(self) -> None:
		"""
		Post-guardado.

		Ejecuta:
		1. Ajustar la capacidad de filas futuras si cambió (Shared)
		2. Encolar el backfill de la ventana si el recurso quedó activo
		"""
		self._shift_future_capacity()
		self._enqueue_window_backfill()

	def _enqueue_window_backfill(self) -> None:
		if not self.is_active:
			return

		# Nuevo o recién reactivado
		if self.get_doc_before_save() and not self.has_value_changed("is_active"):
			return

		frappe.enqueue(
			"clinic_scheduling.clinic_scheduling.scheduling.tasks.ensure_availability_window",
			queue="long",
			enqueue_after_commit=True,
		)

	def _shift_future_capacity(self) -> None:
		"""
		Ajusta remaining_capacity de filas futuras cuando cambia la capacidad
		de un recurso Shared (conserva los cupos consumidos).
		"""
		if self.resource_kind != SHARED or not self.has_value_changed("capacity"):
			return

		previous = self.get_doc_before_save()
		if not previous or not previous.capacity:
			return

		delta = self.capacity - previous.capacity
		from_date = business_today()

		frappe.db.sql("""
			UPDATE `tabResource Availability Slot`
			SET remaining_capacity = remaining_capacity + %s
			WHERE resource = %s
			AND date >= %s
		""", (delta, self.name, from_date))

		# Sentencia aparte: available se deriva del valor ya actualizado
		frappe.db.sql("""
			UPDATE `tabResource Availability Slot`
			SET available = CASE WHEN remaining_capacity > 0 THEN 1 ELSE 0 END
			WHERE resource = %s
			AND date >= %s
		""", (self.name, from_date))
