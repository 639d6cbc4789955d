from __future__ import annotations

import json
import logging
import os
import re
from dataclasses import dataclass, field
from typing import Mapping

from dotenv import load_dotenv

from .errors import ConfigurationError

logger = logging.getLogger(__name__)

DEFAULT_CORS_ORIGINS = (
    "http://localhost:3000",
    "http://localhost:3001",
    "http://localhost:5173",
)

# Variables sin las cuales el servidor no arranca
STARTUP_REQUIRED_VARS = ("EMAIL_USER", "EMAIL_PASS", "JWT_SECRET")

REQUIRED_VARS = (
    "EMAIL_USER",
    "EMAIL_PASS",
    "JWT_SECRET",
    "CLINIC_NAME",
    "CLINIC_EMAIL",
    "CLINIC_PHONE",
)
PRODUCTION_VARS = ("VALID_CLIENT_CREDENTIALS", "ENCRYPTION_KEY")
OPTIONAL_VARS = (
    "API_KEYS",
    "LOG_LEVEL",
    "RATE_LIMIT_WINDOW_MS",
    "RATE_LIMIT_MAX_GENERAL",
    "RATE_LIMIT_MAX_CITAS",
    "CORS_ALLOWED_ORIGINS",
)

_DURATION_RE = re.compile(r"^\s*(\d+)\s*([smhd]?)\s*$")
_DURATION_UNITS = {"": 1, "s": 1, "m": 60, "h": 3600, "d": 86400}


def duration_to_seconds(value: str | int) -> int:
    """
    Convierte "24h", "30m", "7d", "45s" o "3600" en segundos.
    """
    if isinstance(value, int):
        return value
    m = _DURATION_RE.match(value or "")
    if not m:
        raise ConfigurationError(f"Duración inválida: {value!r}")
    return int(m.group(1)) * _DURATION_UNITS[m.group(2)]


def _int_env(env: Mapping[str, str], name: str, default: int) -> int:
    raw = env.get(name)
    if raw is None or raw == "":
        return default
    try:
        return int(raw)
    except ValueError:
        logger.warning(f"Valor inválido para {name}={raw!r}, usando {default}")
        return default


def _list_env(env: Mapping[str, str], name: str, default: tuple[str, ...] = ()) -> tuple[str, ...]:
    raw = env.get(name)
    if not raw:
        return default
    return tuple(item.strip() for item in raw.split(",") if item.strip())


@dataclass(frozen=True)
class Settings:
    """
    Configuración del proceso. Se construye una sola vez al arrancar y se
    pasa explícitamente a cada componente.
    """

    environment: str = "development"
    port: int = 3000
    log_level: str = "INFO"

    jwt_secret: str | None = None
    jwt_expires_in: str = "24h"
    encryption_key: str | None = None
    valid_client_credentials: str | None = None

    clinic_name: str = "Clínica"
    clinic_email: str = ""
    clinic_phone: str = ""
    clinic_address: str = ""

    email_user: str | None = None
    email_pass: str | None = None
    email_host: str = "smtp.gmail.com"
    email_port: int = 465

    api_keys: tuple[str, ...] = ()
    cors_allowed_origins: tuple[str, ...] = field(default=DEFAULT_CORS_ORIGINS)

    rate_limit_window_seconds: int = 15 * 60
    rate_limit_max_general: int = 100
    rate_limit_max_citas: int = 10

    @property
    def is_production(self) -> bool:
        return self.environment == "production"

    @property
    def jwt_expires_seconds(self) -> int:
        return duration_to_seconds(self.jwt_expires_in)

    @staticmethod
    def from_env(env: Mapping[str, str] | None = None) -> "Settings":
        """
        Carga la configuración desde variables de entorno (y .env si existe).
        """
        if env is None:
            load_dotenv()
            env = os.environ

        window_ms = _int_env(env, "RATE_LIMIT_WINDOW_MS", 15 * 60 * 1000)

        return Settings(
            environment=env.get("ENVIRONMENT", "development").lower(),
            port=_int_env(env, "PORT", 3000),
            log_level=env.get("LOG_LEVEL", "INFO").upper(),
            jwt_secret=env.get("JWT_SECRET") or None,
            jwt_expires_in=env.get("JWT_EXPIRES_IN") or "24h",
            encryption_key=env.get("ENCRYPTION_KEY") or None,
            valid_client_credentials=env.get("VALID_CLIENT_CREDENTIALS") or None,
            clinic_name=env.get("CLINIC_NAME", "Clínica"),
            clinic_email=env.get("CLINIC_EMAIL", ""),
            clinic_phone=env.get("CLINIC_PHONE", ""),
            clinic_address=env.get("CLINIC_ADDRESS", ""),
            email_user=env.get("EMAIL_USER") or None,
            email_pass=env.get("EMAIL_PASS") or None,
            email_host=env.get("EMAIL_HOST", "smtp.gmail.com"),
            email_port=_int_env(env, "EMAIL_PORT", 465),
            api_keys=_list_env(env, "API_KEYS"),
            cors_allowed_origins=_list_env(env, "CORS_ALLOWED_ORIGINS", DEFAULT_CORS_ORIGINS),
            rate_limit_window_seconds=max(1, window_ms // 1000),
            rate_limit_max_general=_int_env(env, "RATE_LIMIT_MAX_GENERAL", 100),
            rate_limit_max_citas=_int_env(env, "RATE_LIMIT_MAX_CITAS", 10),
        )

    def check_startup(self) -> None:
        missing = [
            name
            for name, value in (
                ("EMAIL_USER", self.email_user),
                ("EMAIL_PASS", self.email_pass),
                ("JWT_SECRET", self.jwt_secret),
            )
            if not value
        ]
        if missing:
            raise ConfigurationError(f"Variables de entorno faltantes: {', '.join(missing)}")


# =========================
# Validación del entorno (CLI validate-env)
# =========================
@dataclass
class ReporteEntorno:
    environment: str
    lines: list[str] = field(default_factory=list)
    errors: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.errors

    def error(self, msg: str) -> None:
        self.errors.append(msg)
        self.lines.append(f"ERROR {msg}")

    def warn(self, msg: str) -> None:
        self.warnings.append(msg)
        self.lines.append(f"WARN  {msg}")

    def info(self, msg: str) -> None:
        self.lines.append(f"OK    {msg}")


def _mask(name: str, value: str) -> str:
    if any(tag in name for tag in ("PASS", "SECRET", "KEY")):
        return "*" * min(len(value), 8)
    return value


def validar_entorno(env: Mapping[str, str], environment: str | None = None) -> ReporteEntorno:
    environment = (environment or env.get("ENVIRONMENT") or "development").lower()
    rep = ReporteEntorno(environment=environment)
    production = environment == "production"

    for name in REQUIRED_VARS:
        value = env.get(name)
        if not value:
            rep.error(f"{name}: FALTANTE")
        else:
            rep.info(f"{name}: {_mask(name, value)}")

    if production:
        for name in PRODUCTION_VARS:
            value = env.get(name)
            if not value:
                rep.error(f"{name}: FALTANTE (requerida en producción)")
            else:
                rep.info(f"{name}: {_mask(name, value)}")

    for name in OPTIONAL_VARS:
        if not env.get(name):
            rep.warn(f"{name}: No configurada (usando valores por defecto)")

    if production:
        jwt_secret = env.get("JWT_SECRET")
        if jwt_secret and len(jwt_secret) < 32:
            rep.error("JWT_SECRET: Demasiado corto para producción (mínimo 32 caracteres)")

        raw = env.get("VALID_CLIENT_CREDENTIALS")
        if raw:
            try:
                creds = json.loads(raw)
            except json.JSONDecodeError:
                rep.error("VALID_CLIENT_CREDENTIALS: Formato JSON inválido")
            else:
                if not isinstance(creds, list) or not creds:
                    rep.error("VALID_CLIENT_CREDENTIALS: Debe ser un array JSON no vacío")
                else:
                    rep.info(f"VALID_CLIENT_CREDENTIALS: {len(creds)} credenciales configuradas")

    email_user = env.get("EMAIL_USER")
    email_pass = env.get("EMAIL_PASS")
    if email_user and email_pass:
        if "@" not in email_user:
            rep.error("EMAIL_USER: Formato de email inválido")
        if len(email_pass) < 8:
            rep.error("EMAIL_PASS: Contraseña demasiado corta")

    origins = _list_env(env, "CORS_ALLOWED_ORIGINS")
    if origins and production and not any(o.startswith("https://") for o in origins):
        rep.warn("CORS_ALLOWED_ORIGINS: En producción, se recomienda usar solo HTTPS")

    return rep
