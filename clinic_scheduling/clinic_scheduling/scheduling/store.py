"""
Availability Store Interface

Defines the operations the engine needs from the relational store. The
Frappe implementation lives in frappe_store.py; tests use an in-memory one.
"""

from abc import ABC, abstractmethod
from contextlib import contextmanager
from datetime import date, time
from typing import Dict, Iterator, List, Optional, Sequence

from .models import AvailabilityRow, CapacityChangeEvent, Resource, SlotKey, SlotState, StateChange


class AvailabilityStore(ABC):
	"""
	Interfaz base del store de disponibilidad.

	Contratos:
	- Ausencia de fila = no disponible (fail-closed)
	- insert_missing_rows es idempotente por (resource, date, time_slot)
	- claim/release son condicionales sobre el estado vivo, nunca sobre un snapshot

	Todas las operaciones pueden lanzar TransientStoreError.
	"""

	@abstractmethod
	def get_resources(self, resource_ids: Sequence[str]) -> Dict[str, Resource]:
		"""
		Obtiene recursos por id, en el mismo orden recibido.

		Raises:
			ConfigurationError: si algún id no existe
		"""
		pass

	@abstractmethod
	def get_active_resources(self) -> List[Resource]:
		"""Todos los recursos activos."""
		pass

	@abstractmethod
	def fetch_rows(
		self,
		resource_ids: Sequence[str],
		start_date: date,
		end_date: date
	) -> List[AvailabilityRow]:
		"""Una sola consulta para todo el set de recursos y el rango (inclusive)."""
		pass

	@abstractmethod
	def insert_missing_rows(self, resource: Resource, target_date: date, slots: Sequence[time]) -> int:
		"""
		Inserta filas con estado completo para los slots que aún no existen.

		Returns:
			int: cantidad de filas insertadas
		"""
		pass

	@abstractmethod
	def delete_rows_before(self, cutoff: date) -> int:
		"""Elimina filas con date < cutoff. Retorna la cantidad eliminada."""
		pass

	@abstractmethod
	def claim(self, resource: Resource, key: SlotKey, force: bool = False) -> Optional[StateChange]:
		"""
		Consume una unidad de capacidad si el estado vivo es usable.

		Con force=True consume siempre, creando la fila si no existe.

		Returns:
			StateChange, o None si el estado no era usable (conflicto)
		"""
		pass

	@abstractmethod
	def release(self, resource: Resource, key: SlotKey) -> Optional[StateChange]:
		"""
		Devuelve una unidad de capacidad sin superar la capacidad original.

		Returns:
			StateChange, o None si la fila no existe
		"""
		pass

	@abstractmethod
	def set_state(self, resource: Resource, key: SlotKey, state: SlotState) -> StateChange:
		"""
		Escribe un estado absoluto (edición manual), creando la fila si no existe.

		Returns:
			StateChange con previous=None si la fila no existía
		"""
		pass

	@abstractmethod
	def append_events(self, events: Sequence[CapacityChangeEvent]) -> None:
		"""Agrega eventos al log de auditoría. Nunca modifica eventos previos."""
		pass

	@contextmanager
	def atomic(self, label: str) -> Iterator[None]:
		"""
		Unidad de trabajo: si el bloque falla, sus escrituras se descartan
		sin afectar lo hecho antes. Por defecto no hace nada.
		"""
		yield

	@abstractmethod
	def get_events(
		self,
		resource_id: Optional[str] = None,
		target_date: Optional[date] = None,
		appointment_id: Optional[str] = None,
		limit: Optional[int] = None
	) -> List[CapacityChangeEvent]:
		"""Eventos de auditoría, más recientes primero."""
		pass
