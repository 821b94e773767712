"""
Scheduling Exceptions

Errors raised by the availability engine. They carry no Frappe dependency;
the API layer translates them into frappe.throw() calls.
"""

from typing import Any, Optional


class SchedulingError(Exception):
	"""Excepción base del motor de disponibilidad."""
	pass


class TransientStoreError(SchedulingError):
	"""Fallo de I/O contra el store (timeout, deadlock, conexión). Reintentable por el caller."""
	pass


class ConfigurationError(SchedulingError):
	"""Entrada inválida: recurso desconocido, duración mal formada, par dual incompleto."""
	pass


class ConflictError(SchedulingError):
	"""
	Un consume perdió la carrera contra otro consumidor concurrente.

	El caller debe volver a consultar disponibilidad antes de reintentar.
	"""

	def __init__(self, message: str, slot_key: Optional[Any] = None):
		super().__init__(message)
		self.slot_key = slot_key


class ScanCancelled(SchedulingError):
	"""Un scan de fechas fue abandonado por el caller. No tiene efectos secundarios."""
	pass
