"""
Frappe Availability Store

AvailabilityStore backed by the site database:
- Clinic Resource
- Resource Availability Slot (unique on resource, date, time_slot)
- Capacity Change Event (append-only)

Database timeouts, deadlocks and lost connections surface as
TransientStoreError.
"""

from contextlib import contextmanager
from datetime import date, time
from typing import Dict, Iterator, List, Optional, Sequence

import frappe
from frappe.utils import now_datetime

from .exceptions import ConfigurationError, SchedulingError, TransientStoreError
from .models import (
	AvailabilityRow,
	CapacityChangeEvent,
	Resource,
	SlotKey,
	SlotState,
	StateChange,
	normalize_capabilities,
)
from .store import AvailabilityStore
from .time_grid import to_time


RESOURCE_DOCTYPE = "Clinic Resource"
SLOT_DOCTYPE = "Resource Availability Slot"
EVENT_DOCTYPE = "Capacity Change Event"

RESOURCE_FIELDS = ["name", "resource_kind", "capacity", "capabilities", "is_active"]


def _time_str(value: time) -> str:
	return value.strftime("%H:%M:%S")


def resource_from_record(record) -> Resource:
	"""Convierte un registro de Clinic Resource a Resource."""
	return Resource(
		id=record.name,
		kind=record.resource_kind,
		capacity=int(record.capacity or 1),
		capabilities=normalize_capabilities(record.capabilities),
		is_active=bool(record.is_active)
	)


class FrappeAvailabilityStore(AvailabilityStore):
	"""
	Store sobre frappe.db.

	Las mutaciones corren dentro de la transacción del request; el commit lo
	hace el caller (booking). Las tareas de mantenimiento usan commit_each
	para confirmar cada unidad de trabajo (atomic) por separado.
	"""

	def __init__(self, timeout_seconds: Optional[int] = None, commit_each: bool = False):
		self.timeout_seconds = timeout_seconds
		self.commit_each = commit_each

	@contextmanager
	def _guard(self, operation: str) -> Iterator[None]:
		"""Aplica el timeout por sentencia y traduce errores transitorios."""
		try:
			if self.timeout_seconds:
				frappe.db.set_execution_timeout(self.timeout_seconds)
			yield
		except SchedulingError:
			raise
		except (frappe.QueryTimeoutError, frappe.QueryDeadlockError) as e:
			raise TransientStoreError(f"{operation}: {e}") from e
		except Exception as e:
			if frappe.db.is_timedout(e) or frappe.db.is_deadlocked(e) or frappe.db.is_interface_error(e):
				raise TransientStoreError(f"{operation}: {e}") from e
			raise

	# ===== RESOURCES =====

	def get_resources(self, resource_ids: Sequence[str]) -> Dict[str, Resource]:
		with self._guard("get_resources"):
			records = frappe.get_all(
				RESOURCE_DOCTYPE,
				filters={"name": ["in", list(resource_ids)]},
				fields=RESOURCE_FIELDS
			)

		by_id = {record.name: resource_from_record(record) for record in records}
		missing = [resource_id for resource_id in resource_ids if resource_id not in by_id]
		if missing:
			raise ConfigurationError(f"Clinic Resource desconocido: {', '.join(missing)}")

		return {resource_id: by_id[resource_id] for resource_id in resource_ids}

	def get_active_resources(self) -> List[Resource]:
		with self._guard("get_active_resources"):
			records = frappe.get_all(
				RESOURCE_DOCTYPE,
				filters={"is_active": 1},
				fields=RESOURCE_FIELDS,
				order_by="name asc"
			)

		return [resource_from_record(record) for record in records]

	# ===== AVAILABILITY ROWS =====

	def fetch_rows(
		self,
		resource_ids: Sequence[str],
		start_date: date,
		end_date: date
	) -> List[AvailabilityRow]:
		if not resource_ids:
			return []

		with self._guard("fetch_rows"):
			records = frappe.get_all(
				SLOT_DOCTYPE,
				filters={
					"resource": ["in", list(resource_ids)],
					"date": ["between", [start_date, end_date]]
				},
				fields=["resource", "date", "time_slot", "available", "remaining_capacity"],
				order_by="date asc, time_slot asc"
			)

		return [
			AvailabilityRow(
				resource_id=record.resource,
				date=record.date,
				time_slot=to_time(record.time_slot),
				available=bool(record.available),
				remaining_capacity=int(record.remaining_capacity or 0)
			)
			for record in records
		]

	def insert_missing_rows(self, resource: Resource, target_date: date, slots: Sequence[time]) -> int:
		with self._guard("insert_missing_rows"):
			existing = {
				to_time(value)
				for value in frappe.get_all(
					SLOT_DOCTYPE,
					filters={"resource": resource.id, "date": target_date},
					pluck="time_slot"
				)
			}

			missing = [slot for slot in slots if slot not in existing]
			if not missing:
				return 0

			values = resource.row_values(resource.full_state())
			now = now_datetime()
			user = frappe.session.user
			rows = [
				(
					frappe.generate_hash(length=12),
					resource.id,
					target_date,
					_time_str(slot),
					values["available"],
					values["remaining_capacity"],
					now,
					now,
					user,
					user
				)
				for slot in missing
			]

			# ignore_duplicates: otra ejecución concurrente pudo insertar las mismas claves
			frappe.db.bulk_insert(
				SLOT_DOCTYPE,
				fields=[
					"name", "resource", "date", "time_slot", "available",
					"remaining_capacity", "creation", "modified", "owner", "modified_by"
				],
				values=rows,
				ignore_duplicates=True
			)

		return len(missing)

	def delete_rows_before(self, cutoff: date) -> int:
		with self._guard("delete_rows_before"):
			filters = {"date": ["<", cutoff]}
			count = frappe.db.count(SLOT_DOCTYPE, filters)
			if count:
				frappe.db.delete(SLOT_DOCTYPE, filters)

		return count

	def _locked_row(self, key: SlotKey):
		"""Lee la fila viva con SELECT ... FOR UPDATE."""
		return frappe.db.get_value(
			SLOT_DOCTYPE,
			{
				"resource": key.resource_id,
				"date": key.date,
				"time_slot": _time_str(key.time_slot)
			},
			["name", "available", "remaining_capacity"],
			as_dict=True,
			for_update=True
		)

	def claim(self, resource: Resource, key: SlotKey, force: bool = False) -> Optional[StateChange]:
		with self._guard("claim"):
			row = self._locked_row(key)

			if not row:
				if not force:
					return None
				# Override sobre un slot inexistente: se crea ya consumido
				new_state = resource.full_state().consumed()
				self._insert_row(resource, key, new_state)
				return StateChange(previous=None, new=new_state)

			previous = resource.state_from_row(row.available, row.remaining_capacity)
			if not previous.is_usable and not force:
				return None

			new_state = previous.consumed()
			frappe.db.set_value(SLOT_DOCTYPE, row.name, resource.row_values(new_state))

		return StateChange(previous=previous, new=new_state)

	def release(self, resource: Resource, key: SlotKey) -> Optional[StateChange]:
		with self._guard("release"):
			row = self._locked_row(key)
			if not row:
				return None

			previous = resource.state_from_row(row.available, row.remaining_capacity)
			new_state = previous.released()
			frappe.db.set_value(SLOT_DOCTYPE, row.name, resource.row_values(new_state))

		return StateChange(previous=previous, new=new_state)

	def set_state(self, resource: Resource, key: SlotKey, state: SlotState) -> StateChange:
		with self._guard("set_state"):
			row = self._locked_row(key)
			if not row:
				self._insert_row(resource, key, state)
				return StateChange(previous=None, new=state)

			previous = resource.state_from_row(row.available, row.remaining_capacity)
			frappe.db.set_value(SLOT_DOCTYPE, row.name, resource.row_values(state))

		return StateChange(previous=previous, new=state)

	def _insert_row(self, resource: Resource, key: SlotKey, state: SlotState) -> None:
		frappe.get_doc({
			"doctype": SLOT_DOCTYPE,
			"resource": key.resource_id,
			"date": key.date,
			"time_slot": _time_str(key.time_slot),
			**resource.row_values(state)
		}).insert(ignore_permissions=True)

	# ===== UNIT OF WORK =====

	@contextmanager
	def atomic(self, label: str) -> Iterator[None]:
		"""
		Savepoint alrededor del bloque.

		- Falla: rollback al savepoint; lo hecho antes del bloque se conserva
		- Éxito con commit_each: commit inmediato, así un deadlock posterior
		  (que en MariaDB revierte la transacción entera) no lo deshace
		"""
		save_point = f"cs_{frappe.generate_hash(length=10)}"
		frappe.db.savepoint(save_point)
		try:
			yield
		except Exception:
			self._rollback_to(save_point, label)
			raise

		if self.commit_each:
			frappe.db.commit()
		else:
			frappe.db.release_savepoint(save_point)

	def _rollback_to(self, save_point: str, label: str) -> None:
		try:
			frappe.db.rollback(save_point=save_point)
		except Exception:
			# La base ya revirtió la transacción (deadlock): el savepoint no existe
			frappe.logger("clinic_scheduling").warning(
				f"{label}: savepoint perdido, se revierte la transacción pendiente"
			)
			frappe.db.rollback()

	# ===== AUDIT EVENTS =====

	def append_events(self, events: Sequence[CapacityChangeEvent]) -> None:
		with self._guard("append_events"):
			for event in events:
				frappe.get_doc({
					"doctype": EVENT_DOCTYPE,
					"resource": event.resource_id,
					"date": event.date,
					"time_slot": _time_str(event.time_slot) if event.time_slot else None,
					"change_type": event.change_type,
					"appointment": event.appointment_id,
					"trigger_source": event.trigger_source,
					"previous_state": event.previous_state,
					"new_state": event.new_state,
					"timestamp": event.timestamp
				}).insert(ignore_permissions=True)

	def get_events(
		self,
		resource_id: Optional[str] = None,
		target_date: Optional[date] = None,
		appointment_id: Optional[str] = None,
		limit: Optional[int] = None
	) -> List[CapacityChangeEvent]:
		filters = {}
		if resource_id:
			filters["resource"] = resource_id
		if target_date:
			filters["date"] = target_date
		if appointment_id:
			filters["appointment"] = appointment_id

		with self._guard("get_events"):
			records = frappe.get_all(
				EVENT_DOCTYPE,
				filters=filters,
				fields=[
					"resource", "date", "time_slot", "change_type", "appointment",
					"trigger_source", "previous_state", "new_state", "timestamp"
				],
				order_by="timestamp desc, creation desc",
				limit_page_length=limit or 0
			)

		return [
			CapacityChangeEvent(
				resource_id=record.resource,
				date=record.date,
				change_type=record.change_type,
				trigger_source=record.trigger_source,
				timestamp=record.timestamp,
				time_slot=to_time(record.time_slot) if record.time_slot else None,
				appointment_id=record.appointment,
				previous_state=record.previous_state,
				new_state=record.new_state
			)
			for record in records
		]
