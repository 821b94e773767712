"""
Retry Policy

Retry values built with tenacity and passed explicitly into request-scoped
calls (`policy(fn)`). Only TransientStoreError is retried; conflicts and
configuration errors are returned to the caller immediately. No retry state
lives at module level: every call gets its own attempt counter.
"""

from typing import Callable, Optional

from tenacity import Retrying, retry_if_exception_type, stop_after_attempt, wait_incrementing

from .exceptions import TransientStoreError


def retry_policy(
	attempts: int = 1,
	backoff_seconds: float = 0.0,
	sleep: Optional[Callable[[float], None]] = None
) -> Retrying:
	"""
	Política de reintentos para operaciones del store.

	Args:
		attempts: intentos totales (incluye el primero)
		backoff_seconds: espera agregada por cada reintento (lineal)
		sleep: reemplazo de la espera (tests)

	Returns:
		tenacity.Retrying: invocable como policy(fn, *args, **kwargs)
	"""
	if attempts < 1:
		raise ValueError("attempts debe ser al menos 1")
	if backoff_seconds < 0:
		raise ValueError("backoff_seconds no puede ser negativo")

	options = {}
	if sleep is not None:
		options["sleep"] = sleep

	return Retrying(
		stop=stop_after_attempt(attempts),
		wait=wait_incrementing(start=backoff_seconds, increment=backoff_seconds),
		retry=retry_if_exception_type(TransientStoreError),
		reraise=True,
		**options
	)


NO_RETRY = retry_policy()
