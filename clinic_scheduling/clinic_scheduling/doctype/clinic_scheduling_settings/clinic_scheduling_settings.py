# Copyright (c) 2026, Clinic Scheduling contributors
# For license information, please see license.txt

"""
Clinic Scheduling Settings DocType

Single DocType with slot granularities, availability window, clinic
timezone, store timeout and business hours.
"""

import frappe
import pytz
from frappe import _
from frappe.model.document import Document

from clinic_scheduling.clinic_scheduling.scheduling.exceptions import ConfigurationError
from clinic_scheduling.clinic_scheduling.scheduling.settings import business_hours_from_rows
from clinic_scheduling.clinic_scheduling.scheduling.time_grid import TimeGrid


class ClinicSchedulingSettings(Document):
	"""
	Validations:
	- client_slot_minutes multiple of backend_slot_minutes
	- business hours aligned to the backend grid, one row per weekday
	- timezone known to pytz
	"""

	def validate(self) -> None:
		"""
		Validación antes de guardar.
		"""
		self._validate_timezone()
		self._validate_unique_weekdays()
		self._validate_grid()

	def _validate_timezone(self) -> None:
		if self.timezone and self.timezone not in pytz.all_timezones_set:
			frappe.throw(_(f"Timezone inválido: {self.timezone}"))

	def _validate_unique_weekdays(self) -> None:
		seen = set()
		for idx, row in enumerate(self.business_hours or [], 1):
			if row.weekday in seen:
				frappe.throw(_(f"Fila {idx}: {row.weekday} está repetido"))
			seen.add(row.weekday)

	def _validate_grid(self) -> None:
		"""Construye un TimeGrid con la configuración para validarla completa."""
		try:
			TimeGrid(
				business_hours=business_hours_from_rows(self.business_hours) if self.business_hours else None,
				backend_slot_minutes=self.backend_slot_minutes or 10,
				client_slot_minutes=self.client_slot_minutes or 30
			)
		except ConfigurationError as e:
			frappe.throw(_(str(e)))
