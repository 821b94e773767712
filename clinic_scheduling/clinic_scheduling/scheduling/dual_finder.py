"""
Dual Resource Slot Finder

Start times for bookings with one or two concurrent service components
(e.g. grooming + veterinary), each with its own resources and duration.
Both components start at the same client start time.
"""

from datetime import date, time
from typing import List, Optional, Sequence, Set, Union

from .exceptions import ConfigurationError
from .matrix import AvailabilityMatrix, AvailabilityMatrixBuilder
from .models import ServiceComponent
from .resolver import SlotResolver, normalize_resource_ids
from .store import AvailabilityStore
from .time_grid import TimeGrid


def pair_component(
	resources: Union[str, Sequence[str], None],
	duration_minutes: Optional[int],
	label: str = "secondary"
) -> Optional[ServiceComponent]:
	"""
	Arma un ServiceComponent a partir de un par (recurso, duración).

	Returns:
		ServiceComponent, o None si ambos valores están vacíos

	Raises:
		ConfigurationError: si solo uno de los dos valores está presente
	"""
	if not resources and duration_minutes is None:
		return None

	if not resources:
		raise ConfigurationError(f"{label}: duración sin recurso")

	if duration_minutes is None:
		raise ConfigurationError(f"{label}: recurso sin duración")

	return ServiceComponent(tuple(normalize_resource_ids(resources)), duration_minutes)


class DualResourceSlotFinder:
	"""Enumera start times válidos para uno o dos componentes simultáneos."""

	def __init__(self, store: AvailabilityStore, time_grid: TimeGrid):
		self.store = store
		self.time_grid = time_grid

	def find_start_times(
		self,
		target_date: date,
		primary: ServiceComponent,
		secondary: Optional[ServiceComponent] = None
	) -> List[time]:
		"""
		Start times donde el componente principal (y el secundario, si existe)
		están disponibles empezando en el mismo client slot.

		Algoritmo:
			1. Validar componentes y duraciones (antes de tocar el store)
			2. Construir la matriz del día para la unión de recursos
			3. Para cada client slot: validar principal, luego secundario
			4. Si un recurso compartido aparece en ambos, exigir 2 unidades
			   en los slots donde los componentes se solapan

		Returns:
			list[time]: ordenada
		"""
		if primary is None:
			raise ConfigurationError("primary: se requiere un componente principal")

		components = [primary] if secondary is None else [primary, secondary]
		for component in components:
			self.time_grid.validate_duration(component.duration_minutes)

		resource_ids: List[str] = []
		for component in components:
			for resource_id in normalize_resource_ids(component.resources):
				if resource_id not in resource_ids:
					resource_ids.append(resource_id)

		matrix = AvailabilityMatrixBuilder(self.store).build(resource_ids, target_date, target_date)
		shared_by_both = self._resources_in_both(matrix, primary, secondary)
		resolver = SlotResolver(self.time_grid, matrix)

		start_times = []
		for start in self.time_grid.client_slots(target_date):
			if not resolver.is_client_slot_available(
				target_date, start, primary.duration_minutes, primary.resources
			):
				continue

			if secondary is not None:
				if not resolver.is_client_slot_available(
					target_date, start, secondary.duration_minutes, secondary.resources
				):
					continue

				if shared_by_both and not self._overlap_has_capacity(
					matrix, target_date, start, primary, secondary, shared_by_both
				):
					continue

			start_times.append(start)

		return start_times

	def find_start_times_for_pairs(
		self,
		target_date: date,
		primary_resource: Union[str, Sequence[str]],
		primary_duration: int,
		secondary_resource: Union[str, Sequence[str], None] = None,
		secondary_duration: Optional[int] = None
	) -> List[time]:
		"""Variante con pares (recurso, duración) sueltos, como llegan desde la API."""
		primary = pair_component(primary_resource, primary_duration, "primary")
		if primary is None:
			raise ConfigurationError("primary: se requiere recurso y duración")

		secondary = pair_component(secondary_resource, secondary_duration, "secondary")
		return self.find_start_times(target_date, primary, secondary)

	def _resources_in_both(
		self,
		matrix: AvailabilityMatrix,
		primary: ServiceComponent,
		secondary: Optional[ServiceComponent]
	) -> Set[str]:
		"""
		Recursos compartidos requeridos por ambos componentes.

		Un recurso exclusivo en ambos componentes es un error: un miembro del
		staff no atiende dos componentes simultáneos.
		"""
		if secondary is None:
			return set()

		common = set(primary.resources) & set(secondary.resources)
		for resource_id in common:
			if matrix.resources[resource_id].is_exclusive:
				raise ConfigurationError(
					f"El recurso exclusivo {resource_id} no puede atender ambos componentes a la vez"
				)
		return common

	def _overlap_has_capacity(
		self,
		matrix: AvailabilityMatrix,
		target_date: date,
		start: time,
		primary: ServiceComponent,
		secondary: ServiceComponent,
		shared_ids: Set[str]
	) -> bool:
		primary_slots = self.time_grid.required_backend_slots(start, primary.duration_minutes, target_date)
		secondary_slots = self.time_grid.required_backend_slots(start, secondary.duration_minutes, target_date)
		overlap = set(primary_slots) & set(secondary_slots)

		for resource_id in shared_ids:
			for time_slot in overlap:
				if not matrix.is_usable(target_date, time_slot, resource_id, units=2):
					return False
		return True
