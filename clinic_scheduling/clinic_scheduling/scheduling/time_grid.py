"""
Time Grid Service

Defines the two slot granularities used by the engine and the business
hours that bound them:
- Backend slots: 10-minute anchors used for bookkeeping
- Client slots: 30-minute anchors presented for selection

All functions take calendar dates already resolved to the clinic's local
business day (see settings.business_today); no timezone math happens here.
"""

from datetime import date, datetime, time, timedelta
from typing import Dict, List, Optional, Tuple, Union

from .exceptions import ConfigurationError


BACKEND_SLOT_MINUTES = 10
CLIENT_SLOT_MINUTES = 30

WEEKDAY_NAMES = [
	"Monday", "Tuesday", "Wednesday", "Thursday", "Friday", "Saturday", "Sunday"
]

# date.weekday() -> (apertura, cierre). Domingo cerrado.
DEFAULT_BUSINESS_HOURS: Dict[int, Tuple[time, time]] = {
	0: (time(9, 0), time(16, 0)),
	1: (time(9, 0), time(16, 0)),
	2: (time(9, 0), time(16, 0)),
	3: (time(9, 0), time(16, 0)),
	4: (time(9, 0), time(16, 0)),
	5: (time(9, 0), time(12, 0)),
}


def to_time(time_value: Union[time, timedelta, str]) -> time:
	"""
	Convierte diferentes formatos de tiempo a datetime.time.

	Args:
		time_value: puede ser time, timedelta (desde medianoche), o string HH:MM[:SS]

	Returns:
		datetime.time object
	"""
	if isinstance(time_value, datetime):
		return time_value.time()
	elif isinstance(time_value, time):
		return time_value
	elif isinstance(time_value, timedelta):
		# timedelta representa tiempo desde medianoche (así vienen los campos Time de la DB)
		return (datetime.min + time_value).time()
	elif isinstance(time_value, str):
		try:
			return time.fromisoformat(time_value.strip())
		except ValueError:
			raise ConfigurationError(f"Hora inválida: '{time_value}'")
	else:
		raise ConfigurationError(f"Cannot convert {type(time_value)} to time")


def to_minutes(value: time) -> int:
	"""Minutos desde medianoche."""
	return value.hour * 60 + value.minute


def from_minutes(minutes: int) -> time:
	"""Inverso de to_minutes."""
	return time(minutes // 60, minutes % 60)


def date_range(start_date: date, end_date: date) -> List[date]:
	"""Fechas de start_date a end_date, ambas inclusive."""
	days = (end_date - start_date).days
	return [start_date + timedelta(days=offset) for offset in range(days + 1)]


class TimeGrid:
	"""
	Backend/client slot grids bounded by per-weekday business hours.

	Invariantes:
	- client_slot_minutes es múltiplo de backend_slot_minutes
	- apertura y cierre caen sobre el grid backend
	- todo anchor client es también un anchor backend
	"""

	def __init__(
		self,
		business_hours: Optional[Dict[int, Tuple[time, time]]] = None,
		backend_slot_minutes: int = BACKEND_SLOT_MINUTES,
		client_slot_minutes: int = CLIENT_SLOT_MINUTES
	):
		if backend_slot_minutes <= 0 or client_slot_minutes <= 0:
			raise ConfigurationError("Las granularidades deben ser mayores que 0")

		if client_slot_minutes % backend_slot_minutes != 0:
			raise ConfigurationError(
				f"client_slot_minutes ({client_slot_minutes}) debe ser múltiplo de "
				f"backend_slot_minutes ({backend_slot_minutes})"
			)

		self.backend_slot_minutes = backend_slot_minutes
		self.client_slot_minutes = client_slot_minutes

		if business_hours is None:
			business_hours = DEFAULT_BUSINESS_HOURS

		self.business_hours: Dict[int, Tuple[time, time]] = {}
		for weekday, (opens_at, closes_at) in business_hours.items():
			self._validate_hours(weekday, opens_at, closes_at)
			self.business_hours[weekday] = (opens_at, closes_at)

	def _validate_hours(self, weekday: int, opens_at: time, closes_at: time) -> None:
		if weekday not in range(7):
			raise ConfigurationError(f"Weekday inválido: {weekday}")

		if opens_at >= closes_at:
			raise ConfigurationError(
				f"{WEEKDAY_NAMES[weekday]}: la apertura ({opens_at.strftime('%H:%M')}) "
				f"debe ser menor que el cierre ({closes_at.strftime('%H:%M')})"
			)

		for boundary in (opens_at, closes_at):
			if to_minutes(boundary) % self.backend_slot_minutes or boundary.second:
				raise ConfigurationError(
					f"{WEEKDAY_NAMES[weekday]}: {boundary.strftime('%H:%M')} no está alineado "
					f"al grid de {self.backend_slot_minutes} minutos"
				)

	def hours_for(self, target_date: date) -> Optional[Tuple[time, time]]:
		"""(apertura, cierre) para el día, o None si está cerrado."""
		return self.business_hours.get(target_date.weekday())

	def is_open(self, target_date: date) -> bool:
		return self.hours_for(target_date) is not None

	def backend_slots(self, target_date: date) -> List[time]:
		"""
		Anchors de 10 minutos dentro del horario comercial del día.

		Returns:
			list[time]: ordenada; vacía si el día está cerrado
		"""
		return self._anchors(target_date, self.backend_slot_minutes)

	def client_slots(self, target_date: date) -> List[time]:
		"""Anchors de 30 minutos; subconjunto alineado de backend_slots."""
		return self._anchors(target_date, self.client_slot_minutes)

	def _anchors(self, target_date: date, step_minutes: int) -> List[time]:
		hours = self.hours_for(target_date)
		if not hours:
			return []

		opens_at, closes_at = hours
		return [
			from_minutes(minutes)
			for minutes in range(to_minutes(opens_at), to_minutes(closes_at), step_minutes)
		]

	def is_backend_anchor(self, value: Union[time, str], target_date: date) -> bool:
		"""True si value es un backend slot del día (alineado y en horario comercial)."""
		value = to_time(value)
		hours = self.hours_for(target_date)
		if not hours or value.second or value.microsecond:
			return False

		opens_at, closes_at = hours
		minutes = to_minutes(value)
		return (
			to_minutes(opens_at) <= minutes < to_minutes(closes_at)
			and (minutes - to_minutes(opens_at)) % self.backend_slot_minutes == 0
		)

	def validate_duration(self, duration_minutes: int) -> int:
		"""
		Valida que la duración sea un múltiplo positivo del grid backend.

		No se redondea: una duración fuera del grid es un error de entrada.

		Raises:
			ConfigurationError: si la duración no es válida
		"""
		if isinstance(duration_minutes, bool) or not isinstance(duration_minutes, int):
			raise ConfigurationError(f"Duración inválida: {duration_minutes!r}")

		if duration_minutes <= 0:
			raise ConfigurationError("La duración debe ser mayor que 0")

		if duration_minutes % self.backend_slot_minutes != 0:
			raise ConfigurationError(
				f"La duración ({duration_minutes} min) debe ser múltiplo de "
				f"{self.backend_slot_minutes} minutos"
			)

		return duration_minutes

	def slots_needed(self, duration_minutes: int) -> int:
		"""Cantidad de backend slots que exige una duración."""
		return self.validate_duration(duration_minutes) // self.backend_slot_minutes

	def required_backend_slots(
		self,
		start: Union[time, str],
		duration_minutes: int,
		target_date: date
	) -> List[time]:
		"""
		Secuencia exacta de backend anchors que cubre [start, start + duration).

		La secuencia se corta en el cierre del día. Si queda más corta que
		slots_needed(duration), el slot no puede atender la solicitud completa
		y el caller debe tratarlo como no disponible. Un inicio fuera del grid
		o fuera del horario comercial no tiene ningún slot que lo cubra.

		Args:
			start: hora de inicio
			duration_minutes: duración del servicio
			target_date: fecha de negocio

		Returns:
			list[time]: anchors requeridos, posiblemente cortados o vacíos
		"""
		start = to_time(start)
		self.validate_duration(duration_minutes)

		if not self.is_backend_anchor(start, target_date):
			return []

		start_minutes = to_minutes(start)
		closes_at = to_minutes(self.hours_for(target_date)[1])
		slots = []
		for offset in range(0, duration_minutes, self.backend_slot_minutes):
			minutes = start_minutes + offset
			# Cortar al cierre del día
			if minutes >= closes_at:
				break
			slots.append(from_minutes(minutes))

		return slots

	def fits(self, start: Union[time, str], duration_minutes: int, target_date: date) -> bool:
		"""True si la duración completa cabe antes del cierre."""
		required = self.required_backend_slots(start, duration_minutes, target_date)
		return len(required) == self.slots_needed(duration_minutes)
