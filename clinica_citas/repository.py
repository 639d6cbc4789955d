from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from threading import Lock
from typing import Any

from .errors import StorageError
from .models import Cita

logger = logging.getLogger(__name__)


class CitaRepository(ABC):
    """Puerto de almacenamiento de citas."""

    @abstractmethod
    async def save(self, cita: Cita) -> Cita:
        """Persiste la cita y la devuelve. Lanza StorageError."""


class InMemoryCitaRepository(CitaRepository):
    """
    Almacén transitorio en memoria, indexado por id.
    - un id repetido sobrescribe el registro anterior (gana la última escritura)
    - getAll/getById/clear sirven para depuración y tests
    """

    def __init__(self) -> None:
        self._citas: dict[str, dict[str, Any]] = {}
        self._lock = Lock()

    async def save(self, cita: Cita) -> Cita:
        if cita is None or not getattr(cita, "id", None):
            logger.error("Intento de guardar una cita sin ID")
            raise StorageError("Cita inválida: ID requerido")

        try:
            record = cita.to_dict()
        except Exception as e:
            logger.error(f"Error al serializar la cita {cita.id}: {e}")
            raise StorageError(f"Error al guardar la cita: {e}") from e

        with self._lock:
            self._citas[cita.id] = record
        return cita

    async def get_all(self) -> list[dict[str, Any]]:
        with self._lock:
            return [dict(r) for r in self._citas.values()]

    async def get_by_id(self, cita_id: str) -> dict[str, Any] | None:
        with self._lock:
            record = self._citas.get(cita_id)
            return dict(record) if record is not None else None

    async def clear(self) -> None:
        with self._lock:
            self._citas.clear()
