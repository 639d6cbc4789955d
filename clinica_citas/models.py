from __future__ import annotations

import re
import secrets
import string
import time
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any

from .errors import ValidationError

# Servicios médicos válidos -> nombre legible
SERVICIOS_MAP: dict[str, str] = {
    "consulta-general": "Consulta General",
    "medicina-interna": "Medicina Interna",
    "cardiologia": "Cardiología",
    "dermatologia": "Dermatología",
    "ginecologia": "Ginecología",
    "pediatria": "Pediatría",
    "ortopedia": "Ortopedia",
    "neurologia": "Neurología",
    "psicologia": "Psicología",
    "nutricion": "Nutrición",
    "laboratorio": "Laboratorio",
    "radiologia": "Radiología",
    "fisioterapia": "Fisioterapia",
    "odontologia": "Odontología",
    "oftalmologia": "Oftalmología",
    "otorrinolaringologia": "Otorrinolaringología",
    "urologia": "Urología",
    "gastroenterologia": "Gastroenterología",
    "endocrinologia": "Endocrinología",
    "reumatologia": "Reumatología",
}
SERVICIOS_VALIDOS: tuple[str, ...] = tuple(SERVICIOS_MAP)

EMAIL_REGEX = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")
PHONE_REGEX = re.compile(r"^\+?[0-9\s\-()]{10,}$")

MIN_NAME_LENGTH = 2
MAX_MESSAGE_LENGTH = 1000
ESTADO_PENDIENTE = "pendiente"

_ID_ALPHABET = string.digits + string.ascii_lowercase


def servicios_validos() -> list[str]:
    """Copia del catálogo: modificarla no altera el original."""
    return list(SERVICIOS_VALIDOS)


def es_servicio_valido(service: Any) -> bool:
    return isinstance(service, str) and service in SERVICIOS_MAP


def nombre_servicio(service: str) -> str:
    """Nombre legible del servicio; los códigos desconocidos pasan sin cambios."""
    return SERVICIOS_MAP.get(service, service)


def nuevo_id_cita() -> str:
    suffix = "".join(secrets.choice(_ID_ALPHABET) for _ in range(9))
    return f"CITA-{int(time.time() * 1000)}-{suffix}"


def _to_iso(dt: datetime) -> str:
    # ISO 8601 en UTC con milisegundos y sufijo Z
    return dt.astimezone(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


def _parse_fecha(value: Any) -> Any:
    if value is None or value == "":
        return datetime.now(timezone.utc)
    if isinstance(value, datetime):
        return value if value.tzinfo else value.replace(tzinfo=timezone.utc)
    if isinstance(value, str):
        try:
            dt = datetime.fromisoformat(value.strip().replace("Z", "+00:00"))
        except ValueError:
            return value
        return dt if dt.tzinfo else dt.replace(tzinfo=timezone.utc)
    return value


def _strip(value: Any) -> Any:
    return value.strip() if isinstance(value, str) else value


@dataclass(frozen=True)
class Cita:
    """
    Solicitud de cita médica.

    Una instancia siempre es válida: __post_init__ rechaza cualquier campo
    inválido (el primero que falla, en orden id -> name -> email -> phone ->
    service -> message -> created_at -> status) y no existe forma de mutarla.
    """

    id: str
    name: str
    email: str
    phone: str
    service: str
    message: str
    created_at: datetime
    status: str = ESTADO_PENDIENTE

    def __post_init__(self) -> None:
        if not self.id or not isinstance(self.id, str):
            raise ValidationError("ID de cita es requerido y debe ser una cadena")

        if not isinstance(self.name, str) or len(self.name.strip()) < MIN_NAME_LENGTH:
            raise ValidationError("Nombre es requerido y debe tener al menos 2 caracteres")

        if not isinstance(self.email, str) or not EMAIL_REGEX.fullmatch(self.email):
            raise ValidationError("Email es requerido y debe tener un formato válido")

        if not isinstance(self.phone, str) or not PHONE_REGEX.fullmatch(self.phone):
            raise ValidationError("Teléfono es requerido y debe tener al menos 10 dígitos")

        if not es_servicio_valido(self.service):
            raise ValidationError("Servicio es requerido y debe ser válido")

        if not isinstance(self.message, str):
            raise ValidationError("Mensaje debe ser una cadena de texto")
        if len(self.message) > MAX_MESSAGE_LENGTH:
            raise ValidationError("Mensaje no puede exceder 1000 caracteres")

        if not isinstance(self.created_at, datetime):
            raise ValidationError("Fecha de creación es requerida y debe ser una fecha válida")

        if not isinstance(self.status, str):
            raise ValidationError("Estado debe ser una cadena de texto")

    @classmethod
    def crear(cls, datos: Any) -> "Cita":
        """
        Construye una Cita a partir de datos no confiables.

        Normaliza (trim de name/phone/message, email en minúsculas) y completa
        id, createdAt, status y message si faltan. Lanza ValidationError.
        """
        if not isinstance(datos, dict):
            raise ValidationError("Los datos de la cita deben ser un objeto")

        cita_id = datos.get("id") or nuevo_id_cita()
        email = datos.get("email")
        message = datos.get("message")

        return cls(
            id=cita_id,
            name=_strip(datos.get("name")),
            email=email.strip().lower() if isinstance(email, str) else email,
            phone=_strip(datos.get("phone")),
            service=datos.get("service"),
            message=_strip(message) if message is not None else "",
            created_at=_parse_fecha(datos.get("createdAt")),
            status=datos.get("status") or ESTADO_PENDIENTE,
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "email": self.email,
            "phone": self.phone,
            "service": self.service,
            "message": self.message,
            "createdAt": _to_iso(self.created_at),
            "status": self.status,
        }
