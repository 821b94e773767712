"""
Availability Matrix

In-memory lookup built from one bulk fetch of availability rows:
matrix[date][time_slot][resource_id] -> slot state.

Missing entries stay missing; every lookup on them reports "not usable".
"""

from datetime import date, time
from typing import Dict, Iterable, List, Optional, Sequence

from .models import AvailabilityRow, Resource, SlotState
from .store import AvailabilityStore


class AvailabilityMatrix:
	"""Estados de slot agrupados por fecha, luego slot, luego recurso."""

	def __init__(self, resources: Dict[str, Resource]):
		self.resources = resources
		self._cells: Dict[date, Dict[time, Dict[str, SlotState]]] = {}

	def set_state(self, target_date: date, time_slot: time, resource_id: str, state: SlotState) -> None:
		self._cells.setdefault(target_date, {}).setdefault(time_slot, {})[resource_id] = state

	def get_state(self, target_date: date, time_slot: time, resource_id: str) -> Optional[SlotState]:
		return self._cells.get(target_date, {}).get(time_slot, {}).get(resource_id)

	def is_usable(self, target_date: date, time_slot: time, resource_id: str, units: int = 1) -> bool:
		"""Fail-closed: una celda ausente nunca es usable."""
		state = self.get_state(target_date, time_slot, resource_id)
		return state is not None and state.can_serve(units)

	def has_date(self, target_date: date) -> bool:
		return target_date in self._cells

	def dates(self) -> List[date]:
		return sorted(self._cells)

	def __len__(self) -> int:
		return sum(
			len(by_resource)
			for by_slot in self._cells.values()
			for by_resource in by_slot.values()
		)


def build_availability_matrix(
	resources: Dict[str, Resource],
	rows: Iterable[AvailabilityRow],
	start_date: Optional[date] = None,
	end_date: Optional[date] = None
) -> AvailabilityMatrix:
	"""
	Construye la matriz a partir de filas crudas.

	Filas de recursos no solicitados o fuera del rango se ignoran. No se
	rellenan huecos con un estado por defecto.

	Args:
		resources: recursos por id (definen cómo interpretar cada fila)
		rows: filas del store
		start_date, end_date: rango inclusive opcional

	Returns:
		AvailabilityMatrix
	"""
	matrix = AvailabilityMatrix(resources)

	for row in rows:
		resource = resources.get(row.resource_id)
		if resource is None:
			continue
		if start_date and row.date < start_date:
			continue
		if end_date and row.date > end_date:
			continue

		state = resource.state_from_row(row.available, row.remaining_capacity)
		matrix.set_state(row.date, row.time_slot, row.resource_id, state)

	return matrix


class AvailabilityMatrixBuilder:
	"""Carga el set de recursos y sus filas en una sola consulta al store."""

	def __init__(self, store: AvailabilityStore):
		self.store = store

	def build(self, resource_ids: Sequence[str], start_date: date, end_date: date) -> AvailabilityMatrix:
		resources = self.store.get_resources(resource_ids)
		rows = self.store.fetch_rows(list(resources), start_date, end_date)
		return build_availability_matrix(resources, rows, start_date, end_date)
