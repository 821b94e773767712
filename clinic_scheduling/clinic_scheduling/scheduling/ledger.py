"""
Capacity Ledger

Mutating side of the engine. Consumes, reverts, overrides and shifts slot
capacity for exactly the (resource, date, slot) tuples of one appointment,
always against live store state, and appends one Capacity Change Event per
mutated tuple.
"""

from datetime import date, datetime, time
from typing import Callable, Dict, List, Optional, Sequence, Tuple

import frappe
from frappe.utils import now_datetime

from .exceptions import ConfigurationError, ConflictError
from .models import (
	CONSUME,
	EDIT_SHIFT,
	OVERRIDE,
	REVERT,
	CapacityChangeEvent,
	ExclusiveSlot,
	Resource,
	SharedSlot,
	SlotKey,
	SlotState,
	StateChange,
)
from .resolver import normalize_resource_ids
from .store import AvailabilityStore
from .time_grid import TimeGrid, to_time


DEFAULT_TRIGGER_SOURCE = "booking"
MANUAL_TRIGGER_SOURCE = "manual"


class CapacityLedger:
	"""
	Ledger de capacidad.

	- consume: condicional; todo o nada para las tuplas de la cita
	- revert: inverso exacto de consume
	- override: consume siempre, incluso sobre slots no usables; siempre audita
	- shift: mueve una cita (revert + consume) como una sola operación
	- set_slot_state: edición manual del estado de slots (bloquear, liberar,
	  ajustar capacidad), auditada como override

	Las claves se procesan en orden determinístico (recurso, fecha, slot) para
	que dos citas solapadas tomen los locks en el mismo orden.
	"""

	def __init__(
		self,
		store: AvailabilityStore,
		time_grid: Optional[TimeGrid] = None,
		trigger_source: str = DEFAULT_TRIGGER_SOURCE,
		clock: Callable[[], datetime] = now_datetime
	):
		self.store = store
		# Las escrituras forzadas solo pueden crear filas sobre este grid
		self.time_grid = time_grid or TimeGrid()
		self.trigger_source = trigger_source
		self.clock = clock
		self.logger = frappe.logger("clinic_scheduling")

	def consume(
		self,
		resource_ids: Sequence[str],
		target_date: date,
		slots: Sequence[time],
		appointment_id: str,
		override: bool = False,
		trigger_source: Optional[str] = None
	) -> List[CapacityChangeEvent]:
		"""
		Consume capacidad para una cita.

		Algoritmo:
			1. Resolver recursos y claves ordenadas
			2. Para cada clave, claim condicional sobre el estado vivo
			3. Si alguna pierde: liberar las ya tomadas (sin auditar) y lanzar ConflictError
			4. Registrar un evento consume por clave

		Args:
			override: delega en override() (bypass autorizado por política)

		Returns:
			list[CapacityChangeEvent]: eventos registrados

		Raises:
			ConflictError: si algún slot ya no está disponible
			ConfigurationError: recurso desconocido o entrada vacía
		"""
		if override:
			return self.override(resource_ids, target_date, slots, appointment_id, trigger_source)

		resources, keys = self._resolve(resource_ids, target_date, slots, appointment_id)
		changes = self._claim_all(resources, keys, appointment_id)

		return self._record(CONSUME, changes, appointment_id, trigger_source)

	def revert(
		self,
		resource_ids: Sequence[str],
		target_date: date,
		slots: Sequence[time],
		appointment_id: str,
		trigger_source: Optional[str] = None
	) -> List[CapacityChangeEvent]:
		"""
		Devuelve la capacidad consumida por una cita (cancelación).

		Un slot sin fila (ya podado por ser fecha pasada) se omite: no hay
		estado que restaurar ni evento que registrar.
		"""
		resources, keys = self._resolve(resource_ids, target_date, slots, appointment_id)

		changes = []
		for key in keys:
			change = self.store.release(resources[key.resource_id], key)
			if change is None:
				self.logger.warning(f"revert {appointment_id}: slot {key} no existe, se omite")
				continue
			changes.append((key, change))

		return self._record(REVERT, changes, appointment_id, trigger_source)

	def override(
		self,
		resource_ids: Sequence[str],
		target_date: date,
		slots: Sequence[time],
		appointment_id: str,
		trigger_source: Optional[str] = None
	) -> List[CapacityChangeEvent]:
		"""
		Consume forzado (p.ej. doble reserva por decisión del staff).

		Nunca falla por disponibilidad y siempre registra un evento override
		por clave, aun cuando el slot ya estaba ocupado.

		Raises:
			ConfigurationError: si algún slot no es un backend slot del día
		"""
		resources, keys = self._resolve(resource_ids, target_date, slots, appointment_id)
		changes = self._force_claim_all(resources, keys, appointment_id)

		return self._record(OVERRIDE, changes, appointment_id, trigger_source)

	def shift(
		self,
		resource_ids: Sequence[str],
		old_date: date,
		old_slots: Sequence[time],
		new_date: date,
		new_slots: Sequence[time],
		appointment_id: str,
		new_resource_ids: Optional[Sequence[str]] = None,
		override: bool = False,
		trigger_source: Optional[str] = None
	) -> List[CapacityChangeEvent]:
		"""
		Mueve una cita a otra fecha/hora (y opcionalmente otros recursos).

		Libera las claves viejas y consume las nuevas. Si las nuevas pierden
		o el store falla, se restaura el consumo viejo y se propaga el error.

		Returns:
			list[CapacityChangeEvent]: eventos edit-shift (liberaciones y consumos)
		"""
		if new_resource_ids is None:
			new_resource_ids = resource_ids

		old_resources, old_keys = self._resolve(resource_ids, old_date, old_slots, appointment_id)
		new_resources, new_keys = self._resolve(new_resource_ids, new_date, new_slots, appointment_id)

		released = []
		for key in old_keys:
			change = self.store.release(old_resources[key.resource_id], key)
			if change is not None:
				released.append((key, change))

		try:
			if override:
				claimed = self._force_claim_all(new_resources, new_keys, appointment_id)
			else:
				claimed = self._claim_all(new_resources, new_keys, appointment_id)
		except Exception:
			# Restaurar el consumo original (conflicto o error del store)
			for key, _change in released:
				self.store.claim(old_resources[key.resource_id], key, force=True)
			raise

		return self._record(EDIT_SHIFT, released + claimed, appointment_id, trigger_source)

	def set_slot_state(
		self,
		resource_id: str,
		target_date: date,
		slots: Sequence[time],
		available: Optional[bool] = None,
		remaining_capacity: Optional[int] = None,
		trigger_source: Optional[str] = None
	) -> List[CapacityChangeEvent]:
		"""
		Edición manual del estado de slots (bloqueo por ausencia, liberación,
		ajuste de capacidad de una instalación).

		Exclusive: requiere `available`. Shared: `remaining_capacity` entre 0 y
		capacity; si solo llega `available`, equivale a capacity o 0.

		Los slots cuyo estado no cambia se omiten sin evento. Si el store falla
		a mitad de camino, los slots ya editados vuelven a su estado previo.

		Returns:
			list[CapacityChangeEvent]: eventos override sin appointment

		Raises:
			ConfigurationError: estado incompleto o fuera de rango, o slot fuera del grid
		"""
		if not slots:
			raise ConfigurationError("Se requiere al menos un slot")

		resource_id = normalize_resource_ids([resource_id])[0]
		resource = self.store.get_resources([resource_id])[resource_id]
		state = self._manual_state(resource, available, remaining_capacity)

		keys = sorted({SlotKey(resource_id, target_date, to_time(slot)) for slot in slots})
		self._validate_on_grid(keys)

		changes = []
		try:
			for key in keys:
				change = self.store.set_state(resource, key, state)
				if change.previous == change.new:
					continue
				changes.append((key, change))
		except Exception:
			for key, change in reversed(changes):
				if change.previous is not None:
					self.store.set_state(resource, key, change.previous)
			raise

		return self._record(OVERRIDE, changes, None, trigger_source or MANUAL_TRIGGER_SOURCE)

	# ===== HELPERS =====

	def _manual_state(
		self,
		resource: Resource,
		available: Optional[bool],
		remaining_capacity: Optional[int]
	) -> SlotState:
		if resource.is_exclusive:
			if available is None:
				raise ConfigurationError(f"Resource {resource.id}: se requiere 'available'")
			return ExclusiveSlot(available=bool(available))

		if remaining_capacity is None:
			if available is None:
				raise ConfigurationError(
					f"Resource {resource.id}: se requiere 'remaining_capacity' o 'available'"
				)
			remaining_capacity = resource.capacity if available else 0

		if not 0 <= remaining_capacity <= resource.capacity:
			raise ConfigurationError(
				f"Resource {resource.id}: remaining_capacity debe estar entre 0 y {resource.capacity}"
			)
		return SharedSlot(capacity=resource.capacity, remaining=remaining_capacity)

	def _resolve(
		self,
		resource_ids: Sequence[str],
		target_date: date,
		slots: Sequence[time],
		appointment_id: str
	) -> Tuple[Dict[str, Resource], List[SlotKey]]:
		if not appointment_id:
			raise ConfigurationError("appointment_id es requerido")

		if not slots:
			raise ConfigurationError("Se requiere al menos un slot")

		resource_ids = normalize_resource_ids(resource_ids)
		resources = self.store.get_resources(resource_ids)

		keys = sorted({
			SlotKey(resource_id, target_date, to_time(slot))
			for resource_id in resource_ids
			for slot in slots
		})
		return resources, keys

	def _claim_all(
		self,
		resources: Dict[str, Resource],
		keys: List[SlotKey],
		appointment_id: str
	) -> List[Tuple[SlotKey, StateChange]]:
		"""
		Claim condicional de todas las claves; todo o nada.

		Ante un conflicto o un error del store a mitad de camino, las claves
		ya tomadas se liberan, así un reintento de la misma cita no choca con
		su propio consumo parcial.
		"""
		claimed = []
		try:
			for key in keys:
				change = self.store.claim(resources[key.resource_id], key)
				if change is None:
					self.logger.info(f"consume {appointment_id}: conflicto en {key}")
					raise ConflictError(f"Slot {key} ya no está disponible", slot_key=key)

				claimed.append((key, change))
		except Exception:
			self._release_claimed(resources, claimed)
			raise

		return claimed

	def _force_claim_all(
		self,
		resources: Dict[str, Resource],
		keys: List[SlotKey],
		appointment_id: str
	) -> List[Tuple[SlotKey, StateChange]]:
		"""Claim forzado de todas las claves; libera lo tomado si el store falla."""
		self._validate_on_grid(keys)

		claimed = []
		try:
			for key in keys:
				change = self.store.claim(resources[key.resource_id], key, force=True)
				if change.previous is None or not change.previous.is_usable:
					self.logger.warning(
						f"override {appointment_id}: slot {key} consumido sin disponibilidad "
						f"(estado previo: {change.previous.describe() if change.previous else 'sin fila'})"
					)
				claimed.append((key, change))
		except Exception:
			self._release_claimed(resources, claimed)
			raise

		return claimed

	def _release_claimed(
		self,
		resources: Dict[str, Resource],
		claimed: List[Tuple[SlotKey, StateChange]]
	) -> None:
		"""Compensación sin auditar de claims de una operación que no se completó."""
		for taken_key, _change in claimed:
			self.store.release(resources[taken_key.resource_id], taken_key)

	def _validate_on_grid(self, keys: Sequence[SlotKey]) -> None:
		"""Las escrituras forzadas pueden crear filas: solo sobre backend slots del día."""
		for key in keys:
			if not self.time_grid.is_backend_anchor(key.time_slot, key.date):
				raise ConfigurationError(
					f"{key.time_slot.strftime('%H:%M')} no es un horario válido para "
					f"{key.date.isoformat()}"
				)

	def _record(
		self,
		change_type: str,
		changes: List[Tuple[SlotKey, StateChange]],
		appointment_id: Optional[str],
		trigger_source: Optional[str]
	) -> List[CapacityChangeEvent]:
		timestamp = self.clock()
		events = [
			CapacityChangeEvent(
				resource_id=key.resource_id,
				date=key.date,
				time_slot=key.time_slot,
				change_type=change_type,
				appointment_id=appointment_id,
				trigger_source=trigger_source or self.trigger_source,
				timestamp=timestamp,
				previous_state=change.previous.describe() if change.previous else None,
				new_state=change.new.describe()
			)
			for key, change in changes
		]

		if events:
			self.store.append_events(events)
			self.logger.info(
				f"{change_type} {appointment_id or events[0].trigger_source}: {len(events)} slots "
				f"({events[0].resource_id} {events[0].date})"
			)

		return events
