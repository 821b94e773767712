"""
Slot Resolver

Decides whether a client slot can serve a request: every backend slot
covering the full duration must be usable for every required resource.
"""

from datetime import date, time
from typing import Any, Dict, List, Optional, Sequence, Union

from .exceptions import ConfigurationError
from .matrix import AvailabilityMatrix, AvailabilityMatrixBuilder
from .models import BookingRequest
from .store import AvailabilityStore
from .time_grid import TimeGrid, to_time


def normalize_resource_ids(resource_ids: Union[str, Sequence[str]]) -> List[str]:
	"""Lista de ids sin duplicados, preservando orden."""
	if isinstance(resource_ids, str):
		resource_ids = [resource_ids]

	result = []
	for resource_id in resource_ids or []:
		if resource_id and resource_id not in result:
			result.append(resource_id)

	if not result:
		raise ConfigurationError("Se requiere al menos un recurso")

	return result


class SlotResolver:
	"""
	Resolución de un client slot contra una AvailabilityMatrix.

	Costo: O(duration / backend_slot_minutes × |resources|) lookups por candidato.
	"""

	def __init__(self, time_grid: TimeGrid, matrix: AvailabilityMatrix):
		self.time_grid = time_grid
		self.matrix = matrix

	def is_client_slot_available(
		self,
		target_date: date,
		start: Union[time, str],
		duration_minutes: int,
		resource_ids: Sequence[str],
		units: int = 1
	) -> bool:
		"""
		Indica si el client slot está completamente disponible.

		Algoritmo:
			1. Calcular required_backend_slots
			2. Si la secuencia quedó corta (cierre, inicio fuera del grid o del
			   horario comercial), retornar False
			3. Para cada recurso y cada slot requerido, consultar la matriz;
			   la primera celda no usable corta en False
			4. Retornar True

		Args:
			target_date: fecha de negocio
			start: hora de inicio (anchor)
			duration_minutes: duración completa del servicio
			resource_ids: recursos requeridos
			units: unidades de capacidad por slot (compartidos)

		Returns:
			bool
		"""
		required = self.time_grid.required_backend_slots(start, duration_minutes, target_date)
		if len(required) < self.time_grid.slots_needed(duration_minutes):
			return False

		for resource_id in resource_ids:
			for time_slot in required:
				if not self.matrix.is_usable(target_date, time_slot, resource_id, units):
					return False

		return True

	def available_client_slots(
		self,
		target_date: date,
		duration_minutes: int,
		resource_ids: Sequence[str]
	) -> List[time]:
		"""Todos los client slots del día que pueden atender la duración."""
		return [
			start
			for start in self.time_grid.client_slots(target_date)
			if self.is_client_slot_available(target_date, start, duration_minutes, resource_ids)
		]

	def first_available_client_slot(
		self,
		target_date: date,
		duration_minutes: int,
		resource_ids: Sequence[str]
	) -> Optional[time]:
		"""Primer client slot disponible del día, o None."""
		for start in self.time_grid.client_slots(target_date):
			if self.is_client_slot_available(target_date, start, duration_minutes, resource_ids):
				return start
		return None


def resolve_client_slots(
	store: AvailabilityStore,
	time_grid: TimeGrid,
	target_date: date,
	duration_minutes: int,
	resource_ids: Sequence[str]
) -> List[time]:
	"""Client slots disponibles para un set de recursos en un día (una consulta)."""
	resource_ids = normalize_resource_ids(resource_ids)
	time_grid.validate_duration(duration_minutes)

	matrix = AvailabilityMatrixBuilder(store).build(resource_ids, target_date, target_date)
	return SlotResolver(time_grid, matrix).available_client_slots(
		target_date, duration_minutes, resource_ids
	)


def check_booking_request(
	store: AvailabilityStore,
	time_grid: TimeGrid,
	request: BookingRequest
) -> Dict[str, Any]:
	"""
	Valida una BookingRequest contra la disponibilidad vigente.

	El componente secundario empieza a la misma hora que el principal.

	Returns:
		dict: {
			"available": bool,
			"components": [
				{"resources": [...], "duration_minutes": int, "required_slots": [...], "available": bool},
				...
			]
		}
	"""
	components = request.components()
	start = to_time(request.start_time)

	resource_ids: List[str] = []
	for component in components:
		time_grid.validate_duration(component.duration_minutes)
		for resource_id in normalize_resource_ids(component.resources):
			if resource_id not in resource_ids:
				resource_ids.append(resource_id)

	matrix = AvailabilityMatrixBuilder(store).build(resource_ids, request.date, request.date)
	resolver = SlotResolver(time_grid, matrix)

	results = []
	for component in components:
		required = time_grid.required_backend_slots(start, component.duration_minutes, request.date)
		results.append({
			"resources": list(component.resources),
			"duration_minutes": component.duration_minutes,
			"required_slots": [slot.strftime("%H:%M") for slot in required],
			"available": resolver.is_client_slot_available(
				request.date, start, component.duration_minutes, component.resources
			)
		})

	available = all(result["available"] for result in results)

	# Un recurso compartido en ambos componentes necesita 2 unidades donde se solapan
	if available and len(components) == 2:
		common = set(components[0].resources) & set(components[1].resources)
		overlap = set(results[0]["required_slots"]) & set(results[1]["required_slots"])
		for resource_id in common:
			if matrix.resources[resource_id].is_exclusive:
				raise ConfigurationError(
					f"El recurso exclusivo {resource_id} no puede atender ambos componentes a la vez"
				)
			for time_slot in overlap:
				if not matrix.is_usable(request.date, to_time(time_slot), resource_id, units=2):
					available = False

	return {
		"available": available,
		"components": results
	}
