"""
Available Staff Lookup

Which active exclusive resources (optionally with a given capability) can
serve a client slot for the full duration.
"""

from datetime import date, time
from typing import List, Optional, Union

from .matrix import AvailabilityMatrixBuilder
from .models import Resource
from .resolver import SlotResolver
from .store import AvailabilityStore
from .time_grid import TimeGrid, to_time


def find_available_resources(
	store: AvailabilityStore,
	time_grid: TimeGrid,
	target_date: date,
	start: Union[time, str],
	duration_minutes: int,
	capability: Optional[str] = None
) -> List[Resource]:
	"""
	Recursos exclusivos libres para [start, start + duration).

	Args:
		capability: tag requerido (p.ej. "groomer", "vet"); None = cualquiera

	Returns:
		list[Resource]: ordenada por id
	"""
	start = to_time(start)
	time_grid.validate_duration(duration_minutes)

	candidates = [
		resource for resource in store.get_active_resources()
		if resource.is_exclusive and (not capability or resource.has_capability(capability))
	]
	if not candidates:
		return []

	matrix = AvailabilityMatrixBuilder(store).build(
		[resource.id for resource in candidates], target_date, target_date
	)
	resolver = SlotResolver(time_grid, matrix)

	available = [
		resource for resource in candidates
		if resolver.is_client_slot_available(target_date, start, duration_minutes, [resource.id])
	]
	return sorted(available, key=lambda resource: resource.id)
