"""
Scheduling Settings

Reads Clinic Scheduling Settings (Single DocType) and builds the engine
collaborators from it. This is also the only place where "now" is turned
into the clinic's business-local date.
"""

from datetime import date, datetime, time
from typing import Any, Dict, Optional, Tuple

import frappe
import pytz

from .frappe_store import FrappeAvailabilityStore
from .ledger import DEFAULT_TRIGGER_SOURCE, CapacityLedger
from .time_grid import (
	BACKEND_SLOT_MINUTES,
	CLIENT_SLOT_MINUTES,
	DEFAULT_BUSINESS_HOURS,
	WEEKDAY_NAMES,
	TimeGrid,
	to_time,
)


SETTINGS_DOCTYPE = "Clinic Scheduling Settings"

DEFAULTS = {
	"backend_slot_minutes": BACKEND_SLOT_MINUTES,
	"client_slot_minutes": CLIENT_SLOT_MINUTES,
	"window_days": 90,
	"timezone": "America/Sao_Paulo",
	"store_timeout_seconds": 10,
}


def get_scheduling_settings() -> Dict[str, Any]:
	"""
	Configuración efectiva: valores del Single con defaults para lo vacío.

	Returns:
		frappe._dict con las claves de DEFAULTS más "business_hours"
	"""
	settings = frappe._dict(DEFAULTS)
	settings.business_hours = dict(DEFAULT_BUSINESS_HOURS)

	doc = frappe.get_cached_doc(SETTINGS_DOCTYPE)

	for fieldname in DEFAULTS:
		value = doc.get(fieldname)
		if value:
			settings[fieldname] = value

	if doc.get("business_hours"):
		settings.business_hours = business_hours_from_rows(doc.business_hours)

	return settings


def business_hours_from_rows(rows) -> Dict[int, Tuple[time, time]]:
	"""Convierte la tabla hija Clinic Business Hours a {weekday: (abre, cierra)}."""
	hours = {}
	for row in rows:
		weekday = WEEKDAY_NAMES.index(row.weekday)
		hours[weekday] = (to_time(row.opens_at), to_time(row.closes_at))
	return hours


def get_time_grid(settings: Optional[Dict[str, Any]] = None) -> TimeGrid:
	settings = settings or get_scheduling_settings()
	return TimeGrid(
		business_hours=settings.business_hours,
		backend_slot_minutes=int(settings.backend_slot_minutes),
		client_slot_minutes=int(settings.client_slot_minutes)
	)


def get_store(settings: Optional[Dict[str, Any]] = None, commit_each: bool = False) -> FrappeAvailabilityStore:
	settings = settings or get_scheduling_settings()
	return FrappeAvailabilityStore(
		timeout_seconds=int(settings.store_timeout_seconds),
		commit_each=commit_each
	)


def get_capacity_ledger(
	settings: Optional[Dict[str, Any]] = None,
	trigger_source: str = DEFAULT_TRIGGER_SOURCE
) -> CapacityLedger:
	"""
	Ledger sobre el store de Frappe para el flujo de reservas.

	El llamador controla la transacción: consume/revert/shift se ejecutan
	dentro de la misma transacción que guarda la cita.
	"""
	settings = settings or get_scheduling_settings()
	return CapacityLedger(get_store(settings), get_time_grid(settings), trigger_source=trigger_source)


def get_clinic_timezone(settings: Optional[Dict[str, Any]] = None):
	"""Timezone pytz de la clínica; UTC si el nombre configurado es inválido."""
	settings = settings or get_scheduling_settings()
	tz_name = settings.timezone or "UTC"

	try:
		return pytz.timezone(tz_name)
	except pytz.UnknownTimeZoneError:
		frappe.log_error(
			title="Clinic Scheduling Settings",
			message=f"Invalid timezone '{tz_name}', usando UTC"
		)
		return pytz.UTC


def business_now(settings: Optional[Dict[str, Any]] = None, now: Optional[datetime] = None) -> datetime:
	"""Instante actual en la hora local de la clínica."""
	tz = get_clinic_timezone(settings)
	now = now or datetime.now(pytz.UTC)
	if now.tzinfo is None:
		now = pytz.UTC.localize(now)
	return now.astimezone(tz)


def business_today(settings: Optional[Dict[str, Any]] = None, now: Optional[datetime] = None) -> date:
	"""
	Fecha de negocio local de la clínica.

	Se resuelve una sola vez en el borde (API, tareas); el motor recibe
	siempre fechas ya resueltas.
	"""
	return business_now(settings, now).date()
