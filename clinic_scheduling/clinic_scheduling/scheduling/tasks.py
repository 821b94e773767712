"""
Scheduled Tasks

Background tasks that run periodically:
- roll_availability_window: extends the availability window by one day and
  prunes past rows (daily, configured in hooks.py)

Background jobs:
- ensure_availability_window: backfills the window when a resource is activated
- refresh_availability_window: cleanup + backfill requested from the admin console
"""

from datetime import timedelta
from typing import Any, Dict

import frappe

from .rolling_window import RollingWindowMaintainer
from .settings import business_today, get_scheduling_settings, get_store, get_time_grid


def build_maintainer(settings=None, trigger_source: str = "scheduler") -> RollingWindowMaintainer:
	settings = settings or get_scheduling_settings()
	# Cada recurso se confirma por separado: un fallo no revierte a los demás
	return RollingWindowMaintainer(
		get_store(settings, commit_each=True),
		get_time_grid(settings),
		window_days=int(settings.window_days),
		trigger_source=trigger_source
	)


def roll_availability_window() -> Dict[str, Any]:
	"""
	Tick diario de la ventana de disponibilidad.

	Algoritmo:
		1. Resolver la fecha de negocio local
		2. Ejecutar tick() (aislado por recurso)
		3. Commit de todos los cambios
		4. Log del resumen

	Returns:
		dict: resumen agregado (ver MaintenanceSummary.as_dict)
	"""
	settings = get_scheduling_settings()
	maintainer = build_maintainer(settings)

	summary = maintainer.tick(business_today(settings))

	# Commit de todos los cambios
	frappe.db.commit()

	frappe.logger("clinic_scheduling").info(
		f"roll_availability_window: {summary.rows_inserted} slots para {summary.end_date}, "
		f"{summary.rows_deleted} eliminados, errores: {len(summary.failed)}"
	)

	return summary.as_dict()


def refresh_availability_window(trigger_source: str = "admin") -> Dict[str, Any]:
	"""Limpieza + backfill completo de la ventana (invocado desde la consola admin)."""
	settings = get_scheduling_settings()
	maintainer = build_maintainer(settings, trigger_source=trigger_source)

	summary = maintainer.refresh(business_today(settings))
	frappe.db.commit()

	return summary.as_dict()


def ensure_availability_window() -> Dict[str, Any]:
	"""
	Backfill de la ventana sin limpieza.

	Encolado desde Clinic Resource al activar un recurso, para que tenga filas
	en toda la ventana sin esperar al tick diario.
	"""
	settings = get_scheduling_settings()
	maintainer = build_maintainer(settings, trigger_source="resource-activation")

	today = business_today(settings)
	summary = maintainer.ensure_window(today, today + timedelta(days=int(settings.window_days)))
	frappe.db.commit()

	return summary.as_dict()
