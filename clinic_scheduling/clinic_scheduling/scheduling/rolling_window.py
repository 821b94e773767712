"""
Rolling Window Maintainer

Keeps availability rows for every active resource across the rolling
window, and prunes rows for past dates:
- tick: add the date at the end of the window (daily)
- ensure_window: backfill every date of a range
- refresh: cleanup + backfill of the whole window

Each resource is filled inside its own unit of work, so a failure only
discards that resource. A run always reports an aggregate summary instead
of aborting.
"""

from dataclasses import dataclass, field
from datetime import date, timedelta
from typing import Any, Dict, List, Optional, Sequence

import frappe
from frappe.utils import now_datetime

from .models import CRON, CapacityChangeEvent, Resource
from .store import AvailabilityStore
from .time_grid import TimeGrid, date_range


DEFAULT_WINDOW_DAYS = 90


@dataclass
class MaintenanceSummary:
	"""Resultado agregado de una ejecución del maintainer."""

	start_date: date
	end_date: date
	cleanup_before: Optional[date] = None
	rows_inserted: int = 0
	rows_deleted: int = 0
	succeeded: List[str] = field(default_factory=list)
	failed: Dict[str, str] = field(default_factory=dict)

	@property
	def success(self) -> bool:
		return not self.failed

	def as_dict(self) -> Dict[str, Any]:
		return {
			"success": self.success,
			"start_date": self.start_date.isoformat(),
			"end_date": self.end_date.isoformat(),
			"cleanup_before": self.cleanup_before.isoformat() if self.cleanup_before else None,
			"rows_inserted": self.rows_inserted,
			"rows_deleted": self.rows_deleted,
			"succeeded": list(self.succeeded),
			"failed": dict(self.failed)
		}


class RollingWindowMaintainer:
	"""Mantiene la ventana de disponibilidad de window_days días."""

	def __init__(
		self,
		store: AvailabilityStore,
		time_grid: TimeGrid,
		window_days: int = DEFAULT_WINDOW_DAYS,
		trigger_source: str = "scheduler"
	):
		self.store = store
		self.time_grid = time_grid
		self.window_days = window_days
		self.trigger_source = trigger_source
		self.logger = frappe.logger("clinic_scheduling")

	def tick(self, today: date) -> MaintenanceSummary:
		"""
		Tick diario.

		Algoritmo:
			1. target = today + window_days
			2. Para cada recurso activo, insertar los backend slots de target
			   que falten (estado completo); idempotente por clave
			3. Eliminar filas con date < today

		Returns:
			MaintenanceSummary
		"""
		target = today + timedelta(days=self.window_days)
		summary = MaintenanceSummary(start_date=target, end_date=target)

		self._fill([target], summary)
		self._cleanup(today, summary)
		self._log(summary, "tick")

		return summary

	def ensure_window(self, start_date: date, end_date: date) -> MaintenanceSummary:
		"""Backfill de todas las fechas de [start_date, end_date] sin limpieza."""
		summary = MaintenanceSummary(start_date=start_date, end_date=end_date)

		self._fill(date_range(start_date, end_date), summary)
		self._log(summary, "ensure_window")

		return summary

	def refresh(self, today: date) -> MaintenanceSummary:
		"""Limpieza + backfill de la ventana completa, incluido el target del tick."""
		end_date = today + timedelta(days=self.window_days)
		summary = MaintenanceSummary(start_date=today, end_date=end_date)

		self._cleanup(today, summary)
		self._fill(date_range(today, end_date), summary)
		self._log(summary, "refresh")

		return summary

	def _fill(self, dates: Sequence[date], summary: MaintenanceSummary) -> None:
		try:
			resources = self.store.get_active_resources()
		except Exception as e:
			summary.failed["*"] = str(e)
			frappe.log_error(
				title="Rolling Availability Window",
				message=f"No se pudieron obtener los recursos activos: {str(e)}"
			)
			return

		for resource in resources:
			try:
				with self.store.atomic(f"fill {resource.id}"):
					inserted = self._fill_resource(resource, dates)
				summary.rows_inserted += inserted
				summary.succeeded.append(resource.id)
			except Exception as e:
				# Solo se descarta este recurso; el upsert es seguro de re-ejecutar
				summary.failed[resource.id] = str(e)
				self.logger.error(f"Error generando disponibilidad para {resource.id}: {str(e)}")
				frappe.log_error(
					title="Rolling Availability Window",
					message=f"Error generando disponibilidad para {resource.id}: {str(e)}"
				)

	def _fill_resource(self, resource: Resource, dates: Sequence[date]) -> int:
		"""Cada fecha con filas nuevas deja su evento cron antes de pasar a la siguiente."""
		inserted = 0

		for target_date in dates:
			slots = self.time_grid.backend_slots(target_date)
			if not slots:
				continue

			count = self.store.insert_missing_rows(resource, target_date, slots)
			if count:
				inserted += count
				self.store.append_events([CapacityChangeEvent(
					resource_id=resource.id,
					date=target_date,
					change_type=CRON,
					trigger_source=self.trigger_source,
					timestamp=now_datetime(),
					new_state=f"{count} slots {resource.full_state().describe()}"
				)])

		return inserted

	def _cleanup(self, today: date, summary: MaintenanceSummary) -> None:
		summary.cleanup_before = today
		try:
			with self.store.atomic("cleanup"):
				summary.rows_deleted = self.store.delete_rows_before(today)
		except Exception as e:
			summary.failed["cleanup"] = str(e)
			frappe.log_error(
				title="Rolling Availability Window",
				message=f"Error eliminando disponibilidad anterior a {today}: {str(e)}"
			)

	def _log(self, summary: MaintenanceSummary, operation: str) -> None:
		message = (
			f"{operation}: {summary.rows_inserted} slots generados "
			f"({summary.start_date} a {summary.end_date}), "
			f"{summary.rows_deleted} eliminados, "
			f"{len(summary.succeeded)} recursos OK, {len(summary.failed)} con error"
		)
		if summary.failed:
			self.logger.warning(message)
		else:
			self.logger.info(message)
