"""
Availability API Endpoints

Whitelisted functions for the booking flow and the admin console.
Read endpoints allow guest access with rate limiting; maintenance and
diagnostics endpoints require System Manager.

Every endpoint returns plain data (lists of times, dates, dicts).
"""

from contextlib import contextmanager
from datetime import timedelta
from typing import Any, Dict, Iterator, List, Optional

import frappe
from frappe import _

from clinic_scheduling.clinic_scheduling.scheduling.date_scanner import BatchDateScanner
from clinic_scheduling.clinic_scheduling.scheduling.diagnostics import get_slot_diagnostics as build_slot_diagnostics
from clinic_scheduling.clinic_scheduling.scheduling.dual_finder import DualResourceSlotFinder
from clinic_scheduling.clinic_scheduling.scheduling.exceptions import (
	ConfigurationError,
	ConflictError,
	TransientStoreError,
)
from clinic_scheduling.clinic_scheduling.scheduling.models import BookingRequest, ServiceComponent
from clinic_scheduling.clinic_scheduling.scheduling.resolver import check_booking_request, resolve_client_slots
from clinic_scheduling.clinic_scheduling.scheduling.retry import retry_policy
from clinic_scheduling.clinic_scheduling.scheduling.settings import (
	business_now,
	business_today,
	get_capacity_ledger,
	get_scheduling_settings,
	get_store,
	get_time_grid,
)
from clinic_scheduling.clinic_scheduling.scheduling.staff_lookup import find_available_resources
from clinic_scheduling.clinic_scheduling.scheduling.tasks import refresh_availability_window

from clinic_scheduling.api.security import check_rate_limit
from clinic_scheduling.api.shared.validators import (
	optional_count,
	optional_docname,
	optional_flag,
	parse_resource_list,
	parse_time_list,
	validate_date_string,
	validate_docname,
	validate_duration,
	validate_time_string,
)


# Lecturas idempotentes: un timeout aislado se reintenta una vez
READ_RETRY = retry_policy(attempts=2, backoff_seconds=0.2)


class SlotConflictError(frappe.ValidationError):
	"""El slot ya no está disponible; el cliente debe volver a consultar."""
	pass


@contextmanager
def engine_errors(action: str) -> Iterator[None]:
	"""
	Traduce excepciones del motor a frappe.throw con la clase adecuada.

	- ConfigurationError -> frappe.ValidationError
	- ConflictError -> SlotConflictError
	- TransientStoreError -> frappe.QueryTimeoutError (reintentable)
	- cualquier otro error inesperado se registra en Error Log y se propaga
	"""
	try:
		yield
	except ConfigurationError as e:
		frappe.throw(_(str(e)), frappe.ValidationError)
	except ConflictError:
		frappe.throw(_("Slot no longer available. Please choose another time."), SlotConflictError)
	except TransientStoreError as e:
		frappe.log_error(title="Availability API", message=f"{action}: {str(e)}")
		frappe.throw(_("Availability is temporarily unavailable. Please try again."), frappe.QueryTimeoutError)
	except (frappe.ValidationError, frappe.PermissionError):
		raise
	except Exception:
		frappe.log_error(title="Availability API", message=f"{action}: {frappe.get_traceback()}")
		raise


def _format_time(value) -> str:
	return value.strftime("%H:%M")


@frappe.whitelist(allow_guest=True, methods=["GET"])
def get_client_slots(resources, date: str, duration) -> List[str]:
	"""
	Client slots (30 min) disponibles para todos los recursos durante la
	duración completa.

	Rate limited: 30 requests per minute per client.

	Args:
		resources: lista de Clinic Resource (JSON o separada por comas)
		date: fecha (YYYY-MM-DD)
		duration: duración en minutos (múltiplo de 10)

	Returns:
		list[str]: ["09:00", "09:30", ...]
	"""
	check_rate_limit("get_client_slots")

	resources = parse_resource_list(resources)
	target_date = validate_date_string(date, "date")
	duration = validate_duration(duration)

	with engine_errors("get_client_slots"):
		settings = get_scheduling_settings()
		slots = READ_RETRY(lambda: resolve_client_slots(
			get_store(settings), get_time_grid(settings), target_date, duration, resources
		))
		return [_format_time(slot) for slot in slots]


@frappe.whitelist(allow_guest=True, methods=["GET"])
def get_dual_service_start_times(
	date: str,
	primary_resource: str,
	primary_duration,
	secondary_resource: Optional[str] = None,
	secondary_duration=None
) -> List[str]:
	"""
	Start times para una reserva de uno o dos componentes simultáneos.

	Rate limited: 30 requests per minute per client.

	Example:
		```javascript
		frappe.call({
			method: "clinic_scheduling.api.availability_api.get_dual_service_start_times",
			args: {
				date: "2026-11-03",
				primary_resource: "Ana Groomer",
				primary_duration: 60,
				secondary_resource: "Dr. Paulo",
				secondary_duration: 30
			}
		});
		```
	"""
	check_rate_limit("get_dual_service_start_times")

	target_date = validate_date_string(date, "date")
	primary_resource = validate_docname(primary_resource, "primary_resource")
	primary_duration = validate_duration(primary_duration, "primary_duration")
	secondary_resource = optional_docname(secondary_resource, "secondary_resource")
	if secondary_duration not in (None, ""):
		secondary_duration = validate_duration(secondary_duration, "secondary_duration")
	else:
		secondary_duration = None

	with engine_errors("get_dual_service_start_times"):
		settings = get_scheduling_settings()
		finder = DualResourceSlotFinder(get_store(settings), get_time_grid(settings))
		start_times = READ_RETRY(lambda: finder.find_start_times_for_pairs(
			target_date,
			primary_resource,
			primary_duration,
			secondary_resource,
			secondary_duration
		))
		return [_format_time(start) for start in start_times]


@frappe.whitelist(allow_guest=True, methods=["GET"])
def get_unavailable_dates(resources, duration, window_days=None) -> List[str]:
	"""
	Fechas de la ventana (desde hoy) sin ningún horario disponible.

	Rate limited: 20 requests per minute per client.

	Returns:
		list[str]: fechas YYYY-MM-DD ordenadas
	"""
	check_rate_limit("get_unavailable_dates")

	resources = parse_resource_list(resources)
	duration = validate_duration(duration)

	with engine_errors("get_unavailable_dates"):
		settings = get_scheduling_settings()
		max_window = int(settings.window_days)
		window = validate_duration(window_days, "window_days") if window_days else max_window

		scanner = BatchDateScanner(get_store(settings), get_time_grid(settings), max_window)
		unavailable = READ_RETRY(lambda: scanner.unavailable_dates(
			resources,
			duration,
			business_today(settings),
			window_days=min(window, max_window)
		))
		return [target_date.isoformat() for target_date in sorted(unavailable)]


@frappe.whitelist(allow_guest=True, methods=["GET"])
def get_next_available_slot(resources, duration) -> Optional[Dict[str, str]]:
	"""
	Próximo horario libre dentro de la ventana.

	Returns:
		dict: {"date": "2026-11-03", "start_time": "10:30"} o None
	"""
	check_rate_limit("get_next_available_slot")

	resources = parse_resource_list(resources)
	duration = validate_duration(duration)

	with engine_errors("get_next_available_slot"):
		settings = get_scheduling_settings()
		now = business_now(settings)

		scanner = BatchDateScanner(get_store(settings), get_time_grid(settings), int(settings.window_days))
		found = READ_RETRY(lambda: scanner.next_available(resources, duration, now.date(), not_before=now.time()))
		if not found:
			return None

		found_date, start = found
		return {"date": found_date.isoformat(), "start_time": _format_time(start)}


@frappe.whitelist(allow_guest=True, methods=["GET"])
def get_available_staff(date: str, start_time: str, duration, capability: Optional[str] = None) -> List[Dict[str, Any]]:
	"""
	Miembros del staff libres para un horario, opcionalmente filtrados por capability.

	Returns:
		list[dict]: [{"name": "Ana Groomer", "capabilities": ["groomer"]}, ...]
	"""
	check_rate_limit("get_available_staff")

	target_date = validate_date_string(date, "date")
	start = validate_time_string(start_time, "start_time")
	duration = validate_duration(duration)
	capability = optional_docname(capability, "capability")

	with engine_errors("get_available_staff"):
		settings = get_scheduling_settings()
		resources = READ_RETRY(lambda: find_available_resources(
			get_store(settings), get_time_grid(settings), target_date, start, duration, capability
		))
		return [
			{"name": resource.id, "capabilities": sorted(resource.capabilities)}
			for resource in resources
		]


@frappe.whitelist(methods=["GET"])
def get_availability_summary(resources, from_date: str, to_date: str, duration) -> List[Dict[str, Any]]:
	"""
	Cantidad de horarios disponibles por fecha (calendario de la consola admin).

	Returns:
		list[dict]: [{"date": "2026-11-03", "available_slots": 12}, ...]
	"""
	resources = parse_resource_list(resources)
	start_date = validate_date_string(from_date, "from_date")
	end_date = validate_date_string(to_date, "to_date")
	duration = validate_duration(duration)

	if start_date > end_date:
		frappe.throw(_("from_date debe ser menor o igual que to_date"))

	if end_date - start_date > timedelta(days=366):
		frappe.throw(_("El rango no puede superar un año"))

	with engine_errors("get_availability_summary"):
		settings = get_scheduling_settings()
		scanner = BatchDateScanner(get_store(settings), get_time_grid(settings), int(settings.window_days))
		summary = scanner.availability_summary(resources, duration, start_date, end_date)
		return [
			{"date": target_date.isoformat(), "available_slots": count}
			for target_date, count in sorted(summary.items())
		]


@frappe.whitelist(allow_guest=True, methods=["GET", "POST"])
def check_booking(
	date: str,
	start_time: str,
	duration,
	resources,
	secondary_resources=None,
	secondary_duration=None
) -> Dict[str, Any]:
	"""
	Valida una solicitud de reserva ANTES de crearla.

	Returns:
		dict: {"available": bool, "components": [...]}
	"""
	check_rate_limit("check_booking")

	target_date = validate_date_string(date, "date")
	start = validate_time_string(start_time, "start_time")
	duration = validate_duration(duration)
	resources = parse_resource_list(resources)

	secondary = None
	if secondary_resources or secondary_duration not in (None, ""):
		if not secondary_resources or secondary_duration in (None, ""):
			frappe.throw(_("secondary_resources y secondary_duration deben enviarse juntos"))
		secondary = ServiceComponent(
			tuple(parse_resource_list(secondary_resources, "secondary_resources")),
			validate_duration(secondary_duration, "secondary_duration")
		)

	with engine_errors("check_booking"):
		settings = get_scheduling_settings()
		request = BookingRequest(
			date=target_date,
			start_time=start,
			duration_minutes=duration,
			required_resources=tuple(resources),
			secondary=secondary
		)
		return READ_RETRY(lambda: check_booking_request(get_store(settings), get_time_grid(settings), request))


@frappe.whitelist(methods=["GET"])
def get_slot_diagnostics(resource: str, date: str) -> List[Dict[str, Any]]:
	"""
	Estado de cada backend slot de un recurso con el último evento que lo
	modificó. Útil para depurar dobles reservas.

	Requires: System Manager
	"""
	frappe.only_for("System Manager")

	resource = validate_docname(resource, "resource")
	target_date = validate_date_string(date, "date")

	with engine_errors("get_slot_diagnostics"):
		settings = get_scheduling_settings()
		return build_slot_diagnostics(get_store(settings), get_time_grid(settings), resource, target_date)


@frappe.whitelist(methods=["POST"])
def set_slot_availability(
	resource: str,
	date: str,
	time_slots,
	available=None,
	remaining_capacity=None
) -> Dict[str, Any]:
	"""
	Edición manual de slots: bloquear por ausencia, liberar o ajustar la
	capacidad restante de una instalación. Cada slot modificado queda
	auditado como override.

	Requires: System Manager
	"""
	frappe.only_for("System Manager")

	resource = validate_docname(resource, "resource")
	target_date = validate_date_string(date, "date")
	slots = parse_time_list(time_slots)
	available = optional_flag(available, "available")
	remaining_capacity = optional_count(remaining_capacity, "remaining_capacity")

	if target_date < business_today():
		frappe.throw(_("Cannot edit availability for past dates"), frappe.ValidationError)

	with engine_errors("set_slot_availability"):
		ledger = get_capacity_ledger(trigger_source=f"manual:{frappe.session.user}")
		events = ledger.set_slot_state(
			resource,
			target_date,
			slots,
			available=available,
			remaining_capacity=remaining_capacity
		)

	return {
		"resource": resource,
		"date": target_date.isoformat(),
		"changed": [_format_time(event.time_slot) for event in events],
		"unchanged": len(slots) - len(events)
	}


@frappe.whitelist(methods=["POST"])
def refresh_availability() -> Dict[str, Any]:
	"""
	Limpieza y regeneración completa de la ventana de disponibilidad.

	Requires: System Manager
	"""
	frappe.only_for("System Manager")

	with engine_errors("refresh_availability"):
		return refresh_availability_window(trigger_source=f"admin:{frappe.session.user}")
