from __future__ import annotations

import hmac
import json
from datetime import datetime, timedelta, timezone
from typing import Any

from jose import ExpiredSignatureError, JWTError, jwt

from .config import Settings
from .errors import ConfigurationError, TokenExpiredError, TokenInvalidError

JWT_ALG = "HS256"
ROLE_CLIENT = "client"


def _secret(settings: Settings) -> str:
    if not settings.jwt_secret:
        raise ConfigurationError("JWT_SECRET no configurado")
    return settings.jwt_secret


def create_access_token(
    claims: dict[str, Any],
    settings: Settings,
    expires_delta: timedelta | None = None,
) -> str:
    """
    Firma un token con los claims dados y vida limitada (JWT_EXPIRES_IN, 24h por defecto).
    Sin secreto configurado lanza ConfigurationError (error del servidor).
    """
    secret = _secret(settings)
    now = datetime.now(timezone.utc)
    if expires_delta is None:
        expires_delta = timedelta(seconds=settings.jwt_expires_seconds)

    payload: dict[str, Any] = dict(claims)
    payload["iat"] = int(now.timestamp())
    payload["exp"] = int((now + expires_delta).timestamp())

    return jwt.encode(payload, secret, algorithm=JWT_ALG)


def create_client_token(client_id: str, settings: Settings, expires_delta: timedelta | None = None) -> str:
    return create_access_token(
        {
            "clientId": client_id,
            "role": ROLE_CLIENT,
            "timestamp": datetime.now(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z"),
        },
        settings,
        expires_delta=expires_delta,
    )


def decode_token(token: str, settings: Settings) -> dict[str, Any]:
    """
    Verifica firma y expiración.
    - TokenExpiredError: firma válida pero caducado
    - TokenInvalidError: malformado o firma incorrecta
    """
    secret = _secret(settings)
    try:
        return jwt.decode(token, secret, algorithms=[JWT_ALG])
    except ExpiredSignatureError as e:
        raise TokenExpiredError("Token expirado") from e
    except JWTError as e:
        raise TokenInvalidError("Token inválido") from e


def load_client_credentials(settings: Settings) -> list[tuple[str, str]]:
    """Lista de pares (clientId, clientSecret) de VALID_CLIENT_CREDENTIALS."""
    if not settings.valid_client_credentials:
        return []
    try:
        data = json.loads(settings.valid_client_credentials)
        return [(str(c["clientId"]), str(c["clientSecret"])) for c in data]
    except (ValueError, TypeError, KeyError) as e:
        raise ConfigurationError(f"VALID_CLIENT_CREDENTIALS inválido: {e}") from e


def verify_client_credentials(client_id: str, client_secret: str, settings: Settings) -> bool:
    """
    Solo en producción y con lista configurada se comparan las credenciales;
    en cualquier otro caso se acepta cualquier par no vacío.
    """
    if not client_id or not client_secret:
        return False
    if not settings.is_production or not settings.valid_client_credentials:
        return True

    valid = False
    for cid, csecret in load_client_credentials(settings):
        id_ok = hmac.compare_digest(cid.encode("utf-8"), client_id.encode("utf-8"))
        secret_ok = hmac.compare_digest(csecret.encode("utf-8"), client_secret.encode("utf-8"))
        valid = valid or (id_ok and secret_ok)
    return valid
