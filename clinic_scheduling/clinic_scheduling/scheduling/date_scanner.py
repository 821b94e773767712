"""
Batch Date Scanner

Classifies whole dates of a window as available/unavailable for a set of
resources and a duration, using a single bulk fetch for the whole window.
Scans are read-only and can be abandoned mid-flight.
"""

from datetime import date, time, timedelta
from typing import Callable, Dict, List, Optional, Sequence, Set, Tuple

from .exceptions import ConfigurationError, ScanCancelled
from .matrix import AvailabilityMatrix, AvailabilityMatrixBuilder
from .resolver import SlotResolver, normalize_resource_ids
from .store import AvailabilityStore
from .time_grid import TimeGrid, date_range


DEFAULT_WINDOW_DAYS = 90
SUNDAY = 6


class BatchDateScanner:
	"""
	Scanner de fechas sobre una ventana.

	should_abort: callable opcional que se consulta entre fechas; si retorna
	True el scan lanza ScanCancelled.
	"""

	def __init__(
		self,
		store: AvailabilityStore,
		time_grid: TimeGrid,
		window_days: int = DEFAULT_WINDOW_DAYS
	):
		self.store = store
		self.time_grid = time_grid
		self.window_days = window_days

	def unavailable_dates(
		self,
		resource_ids: Sequence[str],
		duration_minutes: int,
		start_date: date,
		window_days: Optional[int] = None,
		should_abort: Optional[Callable[[], bool]] = None
	) -> Set[date]:
		"""
		Fechas de [start_date, start_date + window_days) sin ningún client slot
		disponible para todos los recursos durante la duración completa.

		Algoritmo:
			1. Una sola consulta para toda la ventana y todos los recursos
			2. Domingos: no disponibles sin consultar la matriz
			3. Para cada fecha restante, recorrer client slots y cortar en el
			   primero disponible; si no hay, la fecha es no disponible

		Returns:
			set[date]
		"""
		resource_ids, dates, matrix = self._prepare(
			resource_ids, duration_minutes, start_date, window_days
		)
		resolver = SlotResolver(self.time_grid, matrix)

		unavailable = set()
		for target_date in dates:
			self._check_abort(should_abort)

			if target_date.weekday() == SUNDAY:
				unavailable.add(target_date)
				continue

			if resolver.first_available_client_slot(target_date, duration_minutes, resource_ids) is None:
				unavailable.add(target_date)

		return unavailable

	def next_available(
		self,
		resource_ids: Sequence[str],
		duration_minutes: int,
		start_date: date,
		window_days: Optional[int] = None,
		not_before: Optional[time] = None,
		should_abort: Optional[Callable[[], bool]] = None
	) -> Optional[Tuple[date, time]]:
		"""
		Primer (fecha, hora) de la ventana que atiende la solicitud.

		Args:
			not_before: en start_date, descartar horas anteriores (p.ej. hora actual)

		Returns:
			(date, time) o None si la ventana no tiene disponibilidad
		"""
		resource_ids, dates, matrix = self._prepare(
			resource_ids, duration_minutes, start_date, window_days
		)
		resolver = SlotResolver(self.time_grid, matrix)

		for target_date in dates:
			self._check_abort(should_abort)

			if target_date.weekday() == SUNDAY:
				continue

			for start in self.time_grid.client_slots(target_date):
				if target_date == start_date and not_before and start < not_before:
					continue
				if resolver.is_client_slot_available(target_date, start, duration_minutes, resource_ids):
					return target_date, start

		return None

	def availability_summary(
		self,
		resource_ids: Sequence[str],
		duration_minutes: int,
		start_date: date,
		end_date: date,
		should_abort: Optional[Callable[[], bool]] = None
	) -> Dict[date, int]:
		"""
		Cantidad de client slots disponibles por fecha en [start_date, end_date].

		Domingos reportan 0.
		"""
		if end_date < start_date:
			raise ConfigurationError("end_date debe ser mayor o igual que start_date")

		window_days = (end_date - start_date).days + 1
		resource_ids, dates, matrix = self._prepare(
			resource_ids, duration_minutes, start_date, window_days
		)
		resolver = SlotResolver(self.time_grid, matrix)

		summary = {}
		for target_date in dates:
			self._check_abort(should_abort)

			if target_date.weekday() == SUNDAY:
				summary[target_date] = 0
				continue

			summary[target_date] = len(
				resolver.available_client_slots(target_date, duration_minutes, resource_ids)
			)

		return summary

	def _prepare(
		self,
		resource_ids: Sequence[str],
		duration_minutes: int,
		start_date: date,
		window_days: Optional[int]
	) -> Tuple[List[str], List[date], AvailabilityMatrix]:
		resource_ids = normalize_resource_ids(resource_ids)
		self.time_grid.validate_duration(duration_minutes)

		if window_days is None:
			window_days = self.window_days
		if window_days <= 0:
			raise ConfigurationError("window_days debe ser mayor que 0")

		end_date = start_date + timedelta(days=window_days - 1)
		matrix = AvailabilityMatrixBuilder(self.store).build(resource_ids, start_date, end_date)
		return resource_ids, date_range(start_date, end_date), matrix

	def _check_abort(self, should_abort: Optional[Callable[[], bool]]) -> None:
		if should_abort is not None and should_abort():
			raise ScanCancelled("Scan de fechas cancelado por el caller")
