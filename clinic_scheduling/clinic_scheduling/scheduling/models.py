"""
Scheduling Data Model

Plain value types shared by the engine:
- Resource with its two kinds (Exclusive staff, Shared facility)
- Slot states as a tagged variant with a single usability predicate
- Availability rows, slot keys and audit events
- Service requirements and booking requests
"""

from dataclasses import dataclass, field, replace
from datetime import date, datetime, time
from typing import Any, Dict, FrozenSet, Iterable, List, Optional, Tuple, Union

from .exceptions import ConfigurationError


EXCLUSIVE = "Exclusive"
SHARED = "Shared"
RESOURCE_KINDS = (EXCLUSIVE, SHARED)

# change_type de Capacity Change Event
CONSUME = "consume"
REVERT = "revert"
OVERRIDE = "override"
EDIT_SHIFT = "edit-shift"
CRON = "cron"
CHANGE_TYPES = (CONSUME, REVERT, OVERRIDE, EDIT_SHIFT, CRON)


@dataclass(frozen=True)
class ExclusiveSlot:
	"""Estado de un slot de un recurso exclusivo (staff): disponible o no."""

	available: bool

	@property
	def is_usable(self) -> bool:
		return self.can_serve(1)

	def can_serve(self, units: int) -> bool:
		return self.available and units <= 1

	def consumed(self) -> "ExclusiveSlot":
		return ExclusiveSlot(available=False)

	def released(self) -> "ExclusiveSlot":
		return ExclusiveSlot(available=True)

	def describe(self) -> str:
		return "available" if self.available else "unavailable"


@dataclass(frozen=True)
class SharedSlot:
	"""
	Estado de un slot de un recurso compartido (facility).

	remaining puede quedar negativo tras un override: así un revert posterior
	sigue siendo el inverso exacto.
	"""

	capacity: int
	remaining: int

	@property
	def is_usable(self) -> bool:
		return self.can_serve(1)

	def can_serve(self, units: int) -> bool:
		return self.remaining >= units

	def consumed(self) -> "SharedSlot":
		return replace(self, remaining=self.remaining - 1)

	def released(self) -> "SharedSlot":
		return replace(self, remaining=min(self.capacity, self.remaining + 1))

	def describe(self) -> str:
		return f"{self.remaining}/{self.capacity}"


SlotState = Union[ExclusiveSlot, SharedSlot]


def normalize_capabilities(capabilities: Union[str, Iterable[str], None]) -> FrozenSet[str]:
	"""Tags de capacidad: uno por línea o coma, sin espacios, en minúsculas."""
	if not capabilities:
		return frozenset()

	if isinstance(capabilities, str):
		capabilities = capabilities.replace(",", "\n").splitlines()

	return frozenset(tag.strip().lower() for tag in capabilities if tag and tag.strip())


@dataclass(frozen=True)
class Resource:
	"""
	Unidad de capacidad reservable.

	- Exclusive: un miembro del staff, capacity 1
	- Shared: una instalación compartida (p.ej. baño), capacity N
	"""

	id: str
	kind: str = EXCLUSIVE
	capacity: int = 1
	capabilities: FrozenSet[str] = field(default_factory=frozenset)
	is_active: bool = True

	def __post_init__(self):
		if self.kind not in RESOURCE_KINDS:
			raise ConfigurationError(f"Resource {self.id}: tipo inválido '{self.kind}'")

		if self.kind == EXCLUSIVE and self.capacity != 1:
			raise ConfigurationError(f"Resource {self.id}: un recurso Exclusive tiene capacity 1")

		if self.kind == SHARED and self.capacity < 1:
			raise ConfigurationError(f"Resource {self.id}: capacity debe ser mayor que 0")

	@property
	def is_exclusive(self) -> bool:
		return self.kind == EXCLUSIVE

	def has_capability(self, tag: str) -> bool:
		return tag.strip().lower() in self.capabilities

	def full_state(self) -> SlotState:
		"""Estado inicial de un slot recién generado: disponible / capacidad completa."""
		if self.is_exclusive:
			return ExclusiveSlot(available=True)
		return SharedSlot(capacity=self.capacity, remaining=self.capacity)

	def state_from_row(self, available: Any, remaining_capacity: Any) -> SlotState:
		"""Interpreta una fila del store según el tipo de recurso."""
		if self.is_exclusive:
			return ExclusiveSlot(available=bool(available))
		return SharedSlot(capacity=self.capacity, remaining=int(remaining_capacity or 0))

	def row_values(self, state: SlotState) -> Dict[str, int]:
		"""Inverso de state_from_row: columnas a persistir."""
		if isinstance(state, ExclusiveSlot):
			return {"available": int(state.available), "remaining_capacity": 0}
		return {"available": int(state.remaining > 0), "remaining_capacity": state.remaining}


@dataclass(frozen=True, order=True)
class SlotKey:
	"""Tupla (recurso, fecha, backend slot) sobre la que se linealiza la capacidad."""

	resource_id: str
	date: date
	time_slot: time

	def __str__(self) -> str:
		return f"{self.resource_id} {self.date.isoformat()} {self.time_slot.strftime('%H:%M')}"


@dataclass(frozen=True)
class AvailabilityRow:
	"""Fila cruda de disponibilidad tal como la devuelve el store."""

	resource_id: str
	date: date
	time_slot: time
	available: bool = False
	remaining_capacity: int = 0

	@property
	def key(self) -> SlotKey:
		return SlotKey(self.resource_id, self.date, self.time_slot)


@dataclass(frozen=True)
class StateChange:
	"""Estado antes/después de una mutación sobre un SlotKey."""

	previous: Optional[SlotState]
	new: SlotState


@dataclass(frozen=True)
class CapacityChangeEvent:
	"""Registro append-only de auditoría de capacidad."""

	resource_id: str
	date: date
	change_type: str
	trigger_source: str
	timestamp: datetime
	time_slot: Optional[time] = None
	appointment_id: Optional[str] = None
	previous_state: Optional[str] = None
	new_state: Optional[str] = None

	def __post_init__(self):
		if self.change_type not in CHANGE_TYPES:
			raise ConfigurationError(f"change_type inválido: '{self.change_type}'")


@dataclass(frozen=True)
class ServiceRequirement:
	"""Duración y tipos de recurso que exige un servicio."""

	service_id: str
	duration_minutes: int
	required_resource_kinds: Tuple[str, ...] = (EXCLUSIVE,)


@dataclass(frozen=True)
class ServiceComponent:
	"""Un componente de servicio: recursos requeridos y duración."""

	resources: Tuple[str, ...]
	duration_minutes: int

	def __post_init__(self):
		if not self.resources:
			raise ConfigurationError("Un componente de servicio requiere al menos un recurso")

		if self.duration_minutes is None:
			raise ConfigurationError("Un componente de servicio requiere duración")


@dataclass(frozen=True)
class BookingRequest:
	"""
	Solicitud de reserva con un componente principal y, opcionalmente,
	un segundo componente que empieza a la misma hora.
	"""

	date: date
	start_time: time
	duration_minutes: int
	required_resources: Tuple[str, ...]
	secondary: Optional[ServiceComponent] = None

	def components(self) -> List[ServiceComponent]:
		primary = ServiceComponent(tuple(self.required_resources), self.duration_minutes)
		if self.secondary is None:
			return [primary]
		return [primary, self.secondary]
