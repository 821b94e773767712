"""
Test helpers

InMemoryAvailabilityStore implements the AvailabilityStore contract on
plain dicts. claim/release hold a lock, so concurrent consumers are
linearised the same way SELECT ... FOR UPDATE does on the site database.
"""

import threading
from datetime import date, time
from typing import Dict, List, Optional, Sequence

from clinic_scheduling.clinic_scheduling.scheduling.exceptions import ConfigurationError, TransientStoreError
from clinic_scheduling.clinic_scheduling.scheduling.models import (
	EXCLUSIVE,
	SHARED,
	AvailabilityRow,
	CapacityChangeEvent,
	Resource,
	SlotKey,
	SlotState,
	StateChange,
)
from clinic_scheduling.clinic_scheduling.scheduling.store import AvailabilityStore
from clinic_scheduling.clinic_scheduling.scheduling.time_grid import TimeGrid


# Semana de referencia: lunes 2 a domingo 8 de noviembre de 2026
MONDAY = date(2026, 11, 2)
TUESDAY = date(2026, 11, 3)
SATURDAY = date(2026, 11, 7)
SUNDAY = date(2026, 11, 8)


def staff(resource_id: str, *capabilities: str) -> Resource:
	return Resource(id=resource_id, kind=EXCLUSIVE, capacity=1, capabilities=frozenset(capabilities))


def facility(resource_id: str, capacity: int) -> Resource:
	return Resource(id=resource_id, kind=SHARED, capacity=capacity)


class InMemoryAvailabilityStore(AvailabilityStore):
	"""Store en memoria para tests del motor."""

	def __init__(self, resources: Sequence[Resource] = ()):
		self.resources: Dict[str, Resource] = {resource.id: resource for resource in resources}
		self.rows: Dict[SlotKey, AvailabilityRow] = {}
		self.events: List[CapacityChangeEvent] = []
		self.fetch_calls = 0
		self.fail_inserts_for = set()
		self.fail_inserts_on = set()
		self.transient_failures = 0
		self._lock = threading.Lock()

	# ===== helpers de armado =====

	def add_resource(self, resource: Resource) -> None:
		self.resources[resource.id] = resource

	def seed_day(self, target_date: date, time_grid: Optional[TimeGrid] = None, resource_ids=None) -> None:
		"""Genera filas completas para los recursos indicados (o todos) en un día."""
		time_grid = time_grid or TimeGrid()
		for resource_id in resource_ids or list(self.resources):
			self.insert_missing_rows(self.resources[resource_id], target_date, time_grid.backend_slots(target_date))

	def set_row(self, resource_id: str, target_date: date, time_slot: time, available=False, remaining=0) -> None:
		key = SlotKey(resource_id, target_date, time_slot)
		self.rows[key] = AvailabilityRow(resource_id, target_date, time_slot, available, remaining)

	def drop_row(self, resource_id: str, target_date: date, time_slot: time) -> None:
		self.rows.pop(SlotKey(resource_id, target_date, time_slot), None)

	def state(self, resource_id: str, target_date: date, time_slot: time):
		row = self.rows.get(SlotKey(resource_id, target_date, time_slot))
		if row is None:
			return None
		return self.resources[resource_id].state_from_row(row.available, row.remaining_capacity)

	# ===== AvailabilityStore =====

	def get_resources(self, resource_ids: Sequence[str]) -> Dict[str, Resource]:
		missing = [resource_id for resource_id in resource_ids if resource_id not in self.resources]
		if missing:
			raise ConfigurationError(f"Clinic Resource desconocido: {', '.join(missing)}")
		return {resource_id: self.resources[resource_id] for resource_id in resource_ids}

	def get_active_resources(self) -> List[Resource]:
		return sorted(
			(resource for resource in self.resources.values() if resource.is_active),
			key=lambda resource: resource.id
		)

	def fetch_rows(self, resource_ids: Sequence[str], start_date: date, end_date: date) -> List[AvailabilityRow]:
		if self.transient_failures:
			self.transient_failures -= 1
			raise TransientStoreError("fetch_rows: timeout")

		self.fetch_calls += 1
		wanted = set(resource_ids)
		return sorted(
			(
				row for row in self.rows.values()
				if row.resource_id in wanted and start_date <= row.date <= end_date
			),
			key=lambda row: row.key
		)

	def insert_missing_rows(self, resource: Resource, target_date: date, slots: Sequence[time]) -> int:
		if resource.id in self.fail_inserts_for:
			raise TransientStoreError(f"insert_missing_rows: {resource.id} no responde")
		if target_date in self.fail_inserts_on:
			raise TransientStoreError(f"insert_missing_rows: {target_date} no responde")

		values = resource.row_values(resource.full_state())
		inserted = 0
		with self._lock:
			for slot in slots:
				key = SlotKey(resource.id, target_date, slot)
				if key in self.rows:
					continue
				self.rows[key] = AvailabilityRow(
					resource.id, target_date, slot, bool(values["available"]), values["remaining_capacity"]
				)
				inserted += 1
		return inserted

	def delete_rows_before(self, cutoff: date) -> int:
		with self._lock:
			old = [key for key in self.rows if key.date < cutoff]
			for key in old:
				del self.rows[key]
		return len(old)

	def claim(self, resource: Resource, key: SlotKey, force: bool = False) -> Optional[StateChange]:
		with self._lock:
			row = self.rows.get(key)
			if row is None:
				if not force:
					return None
				previous = None
				new_state = resource.full_state().consumed()
			else:
				previous = resource.state_from_row(row.available, row.remaining_capacity)
				if not previous.is_usable and not force:
					return None
				new_state = previous.consumed()

			self._write(resource, key, new_state)
		return StateChange(previous=previous, new=new_state)

	def release(self, resource: Resource, key: SlotKey) -> Optional[StateChange]:
		with self._lock:
			row = self.rows.get(key)
			if row is None:
				return None
			previous = resource.state_from_row(row.available, row.remaining_capacity)
			new_state = previous.released()
			self._write(resource, key, new_state)
		return StateChange(previous=previous, new=new_state)

	def set_state(self, resource: Resource, key: SlotKey, state: SlotState) -> StateChange:
		with self._lock:
			row = self.rows.get(key)
			previous = None if row is None else resource.state_from_row(row.available, row.remaining_capacity)
			self._write(resource, key, state)
		return StateChange(previous=previous, new=state)

	def _write(self, resource: Resource, key: SlotKey, state) -> None:
		values = resource.row_values(state)
		self.rows[key] = AvailabilityRow(
			key.resource_id, key.date, key.time_slot, bool(values["available"]), values["remaining_capacity"]
		)

	def append_events(self, events: Sequence[CapacityChangeEvent]) -> None:
		with self._lock:
			self.events.extend(events)

	def get_events(
		self,
		resource_id: Optional[str] = None,
		target_date: Optional[date] = None,
		appointment_id: Optional[str] = None,
		limit: Optional[int] = None
	) -> List[CapacityChangeEvent]:
		events = [
			event for event in reversed(self.events)
			if (not resource_id or event.resource_id == resource_id)
			and (not target_date or event.date == target_date)
			and (not appointment_id or event.appointment_id == appointment_id)
		]
		return events[:limit] if limit else events
