"""
Cliente HTTP de la API de citas (usado por streamlit_app.py).
"""
from __future__ import annotations

import base64
import json
from datetime import datetime, timezone
from typing import Any

import requests

DEFAULT_TIMEOUT = 10


# JWT helpers (solo para la UI, sin verificar la firma)

def _b64url_decode(data: str) -> bytes:
    padding = "=" * (-len(data) % 4)
    return base64.urlsafe_b64decode(data + padding)


def jwt_payload(token: str) -> dict:
    try:
        parts = token.split(".")
        if len(parts) != 3:
            return {}
        payload = json.loads(_b64url_decode(parts[1]).decode("utf-8"))
        return payload if isinstance(payload, dict) else {}
    except (ValueError, UnicodeDecodeError):
        return {}


def jwt_is_expired(token: str, skew_seconds: int = 5) -> bool:
    exp = jwt_payload(token).get("exp")
    try:
        exp_int = int(exp)
    except (TypeError, ValueError):
        return True

    now = int(datetime.now(tz=timezone.utc).timestamp())
    return now >= (exp_int - skew_seconds)


# HTTP

def _post(api_base: str, path: str, payload: dict, token: str | None = None) -> requests.Response:
    headers = {"Content-Type": "application/json"}
    if token:
        headers["Authorization"] = f"Bearer {token}"
    r = requests.post(f"{api_base}{path}", headers=headers, json=payload, timeout=DEFAULT_TIMEOUT)

    if r.status_code == 401:
        raise PermissionError(f"401 Unauthorized: {_message(r)}")
    return r


def _message(r: requests.Response) -> str:
    try:
        return str(r.json().get("message", r.text))
    except ValueError:
        return r.text


def obtener_token(
    api_base: str,
    client_id: str | None = None,
    client_secret: str | None = None,
    encrypted: bool = False,
) -> str:
    """
    Pide un token a /api/auth/token. Con encrypted=True los valores ya vienen
    cifrados y se envían como encryptedClientId/encryptedClientSecret.
    """
    if encrypted:
        payload = {"encryptedClientId": client_id, "encryptedClientSecret": client_secret}
    else:
        payload = {"clientId": client_id, "clientSecret": client_secret}

    r = _post(api_base, "/api/auth/token", payload)
    r.raise_for_status()
    return r.json()["data"]["token"]


def enviar_cita(api_base: str, token: str, datos: dict[str, Any]) -> dict[str, Any]:
    """
    Envía la solicitud de cita. Devuelve el cuerpo JSON tanto en éxito (201)
    como en error de validación (400), para mostrar el mensaje al usuario.
    """
    r = _post(api_base, "/api/citas", datos, token=token)
    if r.status_code in (400, 429):
        return r.json()
    r.raise_for_status()
    return r.json()
