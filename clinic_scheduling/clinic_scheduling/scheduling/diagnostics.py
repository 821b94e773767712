"""
Slot Diagnostics

Read-only view joining the current slot state with the latest audit event
that touched it. Used to debug double-bookings.
"""

from datetime import date
from typing import Any, Dict, List

from .matrix import AvailabilityMatrixBuilder
from .store import AvailabilityStore
from .time_grid import TimeGrid


def get_slot_diagnostics(
	store: AvailabilityStore,
	time_grid: TimeGrid,
	resource_id: str,
	target_date: date
) -> List[Dict[str, Any]]:
	"""
	Estado por backend slot de un recurso en un día.

	Returns:
		list[dict]: [
			{
				"time_slot": "09:00",
				"state": "available" | "unavailable" | "3/5" | None,
				"usable": bool,
				"change_type": "consume" | ... | None,
				"appointment_id": str | None,
				"changed_at": datetime | None
			},
			...
		]
	"""
	matrix = AvailabilityMatrixBuilder(store).build([resource_id], target_date, target_date)

	# Eventos vienen más recientes primero: el primero por slot es el último cambio
	latest = {}
	for event in store.get_events(resource_id=resource_id, target_date=target_date):
		if event.time_slot is not None and event.time_slot not in latest:
			latest[event.time_slot] = event

	rows = []
	for time_slot in time_grid.backend_slots(target_date):
		state = matrix.get_state(target_date, time_slot, resource_id)
		event = latest.get(time_slot)
		rows.append({
			"time_slot": time_slot.strftime("%H:%M"),
			"state": state.describe() if state is not None else None,
			"usable": matrix.is_usable(target_date, time_slot, resource_id),
			"change_type": event.change_type if event else None,
			"appointment_id": event.appointment_id if event else None,
			"changed_at": event.timestamp if event else None
		})

	return rows
