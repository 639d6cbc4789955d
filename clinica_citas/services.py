from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Any

from .errors import ValidationError
from .models import Cita
from .notifications import EmailService
from .repository import CitaRepository

logger = logging.getLogger(__name__)

MSG_CITA_CREADA = "Tu cita ha sido enviada exitosamente. Te hemos enviado un email de confirmación."
MSG_ERROR_CREAR = "Error al crear la cita"

# Tipo de fallo (no se serializa): decide el status HTTP en la frontera
ERROR_VALIDACION = "validacion"
ERROR_INTERNO = "interno"


# =========================
# Helper / DTO
# =========================
@dataclass(frozen=True)
class ResultadoCita:
    success: bool
    message: str
    appointment_id: str | None = None
    error: str | None = None

    def to_dict(self) -> dict[str, Any]:
        out: dict[str, Any] = {"success": self.success, "message": self.message}
        if self.appointment_id:
            out["appointmentId"] = self.appointment_id
        return out


# =========================
# Crear cita (use case core)
# =========================
class CrearCitaUseCase:
    """
    Use case: crear una cita.
    - construye y valida la Cita
    - la guarda en el repositorio (un fallo aquí cancela la operación)
    - envía en paralelo el email a la clínica y la confirmación al paciente;
      sus errores se registran pero no cambian el resultado
    Nunca lanza: siempre devuelve un ResultadoCita.
    """

    def __init__(self, repository: CitaRepository, email_service: EmailService):
        self.repository = repository
        self.email_service = email_service

    async def execute(self, datos: Any) -> ResultadoCita:
        try:
            cita = Cita.crear(datos)
        except ValidationError as e:
            logger.info(f"Cita rechazada: {e}")
            return ResultadoCita(False, str(e), error=ERROR_VALIDACION)

        try:
            guardada = await self.repository.save(cita)
        except Exception as e:
            logger.error(f"Error al guardar la cita {cita.id}: {e}")
            return ResultadoCita(False, MSG_ERROR_CREAR, error=ERROR_INTERNO)

        try:
            await self._notificar(guardada)
        except Exception as e:
            logger.error(f"Error al despachar las notificaciones de la cita {guardada.id}: {e}")

        return ResultadoCita(True, MSG_CITA_CREADA, appointment_id=guardada.id)

    async def _notificar(self, cita: Cita) -> None:
        resultados = await asyncio.gather(
            self.email_service.enviar_email_cita(cita),
            self.email_service.enviar_email_confirmacion(cita),
            return_exceptions=True,
        )
        for tipo, res in zip(("clínica", "confirmación"), resultados):
            if isinstance(res, Exception):
                logger.error(f"Email de {tipo} no enviado para cita {cita.id}: {res}")
